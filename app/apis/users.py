"""
Users router — all endpoints under /users.

Routes marked (token) require a valid JWT in the `Authorization` header
(via the `require_token` dependency).  Authorization is open to every
authenticated caller — no additional role checks are applied.

The UserRepository is injected via `get_user_repository`.  Swapping the
storage backend (e.g. an in-memory repo for tests) only requires overriding
that single dependency — no route or service code changes are needed.

Failures are raised as `UserAPIError` subclasses and turned into responses by
the handler registered in `app.main`.

Endpoints
─────────
  GET    /users                       List all users                 (token)
  GET    /users/token                 Check that a token is valid    (token)
  GET    /users/username/{username}   Get a user by username
  GET    /users/{user_id}             Get a user with relationships  (token)
  POST   /users/login                 Log in and receive a token
  POST   /users                       Create a user
  PUT    /users/{user_id}             Update a user
  DELETE /users/{user_id}             Delete a user
"""

import logging

from fastapi import APIRouter, Depends, Response, status

from app.dao.base import UserRepository
from app.dependencies.api import get_token_service, require_token
from app.dependencies.dao import get_user_repository
from app.schemas.users import (
    CreateUserRequest,
    LoginRequest,
    TokenStatusResponse,
    UpdateUserRequest,
    UserProfileResponse,
    UserResponse,
)
from app.services.auth import TokenService
from app.services.users import (
    fetch_all_users,
    fetch_user_by_username,
    fetch_user_profile,
    login_user,
    modify_user,
    register_user,
    remove_user,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


@router.get(
    "",
    response_model=list[UserResponse],
    summary="List all users",
)
def list_users(
    claims: dict = Depends(require_token),
    repo: UserRepository = Depends(get_user_repository),
) -> list[UserResponse]:
    """Return every stored user, without password hashes."""
    logger.info("GET /users called by '%s'", claims.get("identity"))
    return fetch_all_users(repo=repo)


@router.get(
    "/token",
    response_model=TokenStatusResponse,
    summary="Check a token",
    description="Returns 200 when the `Authorization` header holds a valid token.",
)
def check_token(claims: dict = Depends(require_token)) -> TokenStatusResponse:
    return TokenStatusResponse()


@router.get(
    "/username/{username}",
    response_model=UserResponse,
    summary="Get a user by username",
)
def get_user_by_username(
    username: str,
    repo: UserRepository = Depends(get_user_repository),
) -> UserResponse:
    """Look up a user by username (case-insensitive).  No token required."""
    logger.info("GET /users/username/%s called", username)
    return fetch_user_by_username(username=username, repo=repo)


@router.get(
    "/{user_id}",
    response_model=UserProfileResponse,
    summary="Get a user by id",
    description="Returns the user together with their songs, followers and following.",
)
async def get_user(
    user_id: str,
    claims: dict = Depends(require_token),
    repo: UserRepository = Depends(get_user_repository),
) -> UserProfileResponse:
    logger.info("GET /users/%s called by '%s'", user_id, claims.get("identity"))
    return await fetch_user_profile(user_id=user_id, repo=repo)


@router.post(
    "/login",
    response_model=UserResponse,
    summary="Log in",
    description=(
        "Submit a username and password.  On success the signed token is returned "
        "in the `Authorization` response header and the body holds the user.  Send "
        "the token back, as is, in the `Authorization` header of protected requests."
    ),
)
def login(
    body: LoginRequest,
    response: Response,
    repo: UserRepository = Depends(get_user_repository),
    tokens: TokenService = Depends(get_token_service),
) -> UserResponse:
    """Validate credentials and issue a JWT."""
    user, token = login_user(credentials=body, repo=repo, tokens=tokens)
    response.headers["Authorization"] = token
    return user


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a user",
)
def create_user(
    body: CreateUserRequest,
    repo: UserRepository = Depends(get_user_repository),
) -> UserResponse:
    """Create a user; 409 if the username or email is taken."""
    logger.info("POST /users called for '%s'", body.username)
    return register_user(request=body, repo=repo)


@router.put(
    "/{user_id}",
    response_model=UserResponse,
    summary="Update a user",
)
def update_user(
    user_id: str,
    body: UpdateUserRequest,
    repo: UserRepository = Depends(get_user_repository),
) -> UserResponse:
    """Apply a partial update to a user."""
    logger.info("PUT /users/%s called", user_id)
    return modify_user(user_id=user_id, request=body, repo=repo)


@router.delete(
    "/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a user",
)
def delete_user(
    user_id: str,
    repo: UserRepository = Depends(get_user_repository),
) -> None:
    logger.info("DELETE /users/%s called", user_id)
    remove_user(user_id=user_id, repo=repo)
