"""
Entry point for the User Accounts API.

Run locally:
    JWT_SECRET_KEY=... uvicorn app.main:app --reload

Interactive docs available at:
    http://localhost:8000/docs  (Swagger UI)
    http://localhost:8000/redoc (ReDoc)
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.apis.users import router as users_router
from app.config import settings
from app.errors import PayloadError, UserAPIError

# ── Logging ───────────────────────────────────────────────────────────────────
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
)

logger = logging.getLogger(__name__)

# Challenge sent with 401s; tokens travel bare in `Authorization`.
AUTH_CHALLENGE = 'JWT realm="thatSong"'

# ── FastAPI app ───────────────────────────────────────────────────────────────
app = FastAPI(
    title="User Accounts API",
    description=(
        "Create, read, update and delete user profiles, and log in to receive a JWT. "
        "Protected endpoints expect the token, as is, in the `Authorization` header."
    ),
    version="1.0.0",
    license_info={"name": "MIT"},
)

# ── Routers ───────────────────────────────────────────────────────────────────
app.include_router(users_router)


# ── Error responders ──────────────────────────────────────────────────────────
@app.exception_handler(UserAPIError)
async def handle_user_api_error(request: Request, exc: UserAPIError) -> JSONResponse:
    """Map an API error to its status code; 5xx details stay in the logs."""
    if exc.status_code >= 500:
        logger.error(
            "%s %s failed: %s", request.method, request.url.path, exc.message, exc_info=exc
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": "internal server error"},
        )

    headers = None
    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": AUTH_CHALLENGE}
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message},
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Reject malformed payloads with 400 and the list of offending fields."""
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    error = PayloadError(errors=errors)
    return JSONResponse(
        status_code=error.status_code,
        content=jsonable_encoder({"detail": error.message, "errors": error.errors}),
    )


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    """Last resort for faults outside the error taxonomy."""
    logger.error("%s %s failed unexpectedly", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "internal server error"},
    )


# ── Health check ──────────────────────────────────────────────────────────────
@app.get("/health", tags=["Health"], summary="Health check")
def health() -> dict:
    """Returns 200 OK when the service is running."""
    return {"status": "ok"}
