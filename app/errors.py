"""
Error taxonomy for the User Accounts API.

Every handler-level failure is raised as a `UserAPIError` subclass and
funnelled to the single responder registered in `app.main`, which maps the
error to its status code and a client-facing message.

Internal faults (5xx) carry a detailed message for the logs only; the
responder replaces it with a generic one before it reaches the client.
"""

from typing import Optional

from fastapi import status


class UserAPIError(Exception):
    """Base class for every error the API answers with a status code."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


# ── Auth ──────────────────────────────────────────────────────────────────────

class AuthError(UserAPIError):
    """
    The bearer token was rejected.

    ``reason`` is one of ``MISSING_TOKEN``, ``EXPIRED_TOKEN``,
    ``INVALID_TOKEN`` (caller's fault, 401) or ``VERIFICATION_FAILURE``
    (our fault, 500).
    """

    MISSING_TOKEN = "missing-token"
    EXPIRED_TOKEN = "expired-token"
    INVALID_TOKEN = "malformed-or-invalid-token"
    VERIFICATION_FAILURE = "verification-failure"

    _messages = {
        MISSING_TOKEN: "JWT required",
        EXPIRED_TOKEN: "JWT expired",
        INVALID_TOKEN: "invalid token",
        VERIFICATION_FAILURE: "unknown error",
    }

    def __init__(self, reason: str, status_code: int = status.HTTP_401_UNAUTHORIZED) -> None:
        super().__init__(self._messages[reason], status_code)
        self.reason = reason


class CredentialError(UserAPIError):
    """Login failed. Same message whether the username or the password was wrong."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self) -> None:
        super().__init__("username or password is incorrect")


# ── Resources ─────────────────────────────────────────────────────────────────

class NotFoundError(UserAPIError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str = "user not found") -> None:
        super().__init__(message)


class ConflictError(UserAPIError):
    """A unique field (username or email) is already taken."""

    USERNAME_TAKEN = "username-taken"
    EMAIL_TAKEN = "email-taken"

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, reason: str) -> None:
        field = "username" if reason == self.USERNAME_TAKEN else "email"
        super().__init__(f"that {field} is taken")
        self.reason = reason


class PayloadError(UserAPIError):
    """The request body failed validation."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "invalid payload", errors: Optional[list] = None) -> None:
        super().__init__(message)
        self.errors = errors or []


# ── Internal faults ───────────────────────────────────────────────────────────

class StoreError(UserAPIError):
    """The persistence layer failed. Not to be confused with "not found"."""

    LOOKUP_FAILED = "lookup-failed"
    WRITE_FAILED = "write-failed"

    def __init__(self, reason: str, detail: str = "") -> None:
        super().__init__(f"{reason}: {detail}" if detail else reason)
        self.reason = reason


class ConfigurationError(UserAPIError):
    """Fatal misconfiguration detected at startup (e.g. no signing key)."""


class PasswordVerificationError(UserAPIError):
    """The password hasher itself failed, as opposed to a clean mismatch."""
