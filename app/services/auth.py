"""
Authentication service: password hashing + JWT creation/verification.

Flow
────
1. Client calls POST /users/login with a JSON {username, password} body.
2. The login flow (app.services.users) checks the password against the
   stored bcrypt hash with `verify_password`.
3. On success `TokenService.issue` signs a 28-day JWT whose `identity`
   claim is the user's id.  It is returned in the `Authorization` header.
4. Protected requests send the bare token back in `Authorization`.
5. The `require_token` dependency runs `TokenService.authenticate` before
   the route handler.
"""

import logging
import time
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from app.errors import AuthError, ConfigurationError, PasswordVerificationError

logger = logging.getLogger(__name__)

# Fixed application identifier, used for both `iss` and `aud`.
APP_IDENTIFIER = "thatSong"
# 28 days.  Policy constant, not configurable per call.
TOKEN_LIFETIME_SECONDS = 86400 * 28

# Without these python-jose skips checks for claims the token simply omits.
_REQUIRED_CLAIMS = {
    "require_aud": True,
    "require_iss": True,
    "require_iat": True,
    "require_exp": True,
}

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


# ── Password helpers ──────────────────────────────────────────────────────────

def hash_password(password: str) -> str:
    """Return the salted bcrypt hash of *password*."""
    return pwd_context.hash(password)


def verify_password(password: str, hashed_password: str) -> bool:
    """
    Check *password* against a stored bcrypt hash.

    Returns ``False`` on a clean mismatch.  Raises `PasswordVerificationError`
    when the hash is unusable or the backend fails, so callers can log the
    fault while still answering with the generic login failure.
    """
    try:
        return pwd_context.verify(password, hashed_password)
    except (ValueError, TypeError) as exc:
        raise PasswordVerificationError(f"password verification failed: {exc}") from exc


def dummy_verify() -> None:
    """Spend one hash comparison so unknown usernames cost the same as wrong passwords."""
    pwd_context.dummy_verify()


# ── Token helpers ─────────────────────────────────────────────────────────────

class TokenService:
    """
    Issues and verifies the API's bearer tokens.

    The signing key is injected once at construction; an empty key is a fatal
    misconfiguration and raises `ConfigurationError` immediately rather than
    on the first request.
    """

    def __init__(self, secret_key: str, algorithm: str = "HS256") -> None:
        if not secret_key:
            raise ConfigurationError("JWT signing key is not configured")
        self._secret_key = secret_key
        self._algorithm = algorithm

    def issue(self, identity: str, now: Optional[float] = None) -> str:
        """Sign a token for *identity*, valid from *now* for 28 days."""
        issued_at = int(time.time() if now is None else now)
        payload = {
            "iss": APP_IDENTIFIER,
            "aud": APP_IDENTIFIER,
            "iat": issued_at,
            "exp": issued_at + TOKEN_LIFETIME_SECONDS,
            "identity": identity,
        }
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    def authenticate(self, token: Optional[str], now: Optional[float] = None) -> dict:
        """
        Validate a raw bearer token and return its claims.

        Raises `AuthError` with reason missing-token, expired-token or
        malformed-or-invalid-token (401), or verification-failure (500) for
        anything unexpected.
        """
        if token is None or not token.strip():
            raise AuthError(AuthError.MISSING_TOKEN)

        try:
            claims = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                audience=APP_IDENTIFIER,
                issuer=APP_IDENTIFIER,
                options=_REQUIRED_CLAIMS,
            )
        except ExpiredSignatureError:
            raise AuthError(AuthError.EXPIRED_TOKEN)
        except JWTError as exc:
            logger.info("Rejected token: %s", exc)
            raise AuthError(AuthError.INVALID_TOKEN)
        except Exception:
            logger.exception("Unexpected failure while verifying token")
            raise AuthError(AuthError.VERIFICATION_FAILURE, status_code=500)

        # Second expiry check against our own clock, in seconds on both sides.
        expires_at = claims.get("exp")
        if not isinstance(expires_at, (int, float)) or isinstance(expires_at, bool):
            raise AuthError(AuthError.INVALID_TOKEN)
        current = time.time() if now is None else now
        if expires_at <= current:
            raise AuthError(AuthError.EXPIRED_TOKEN)

        return claims
