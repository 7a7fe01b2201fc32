"""
User service layer — login flow and profile CRUD over the DAO.

Each function receives a `UserRepository` instance (injected by the router via
FastAPI's dependency system).  The service has no knowledge of which storage
backend is in use — DynamoDB, in-memory, or any future alternative.

Every value returned to a route is a response model without a password
field; store records with ``hashed_password`` never leave this module.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from starlette.concurrency import run_in_threadpool

from app.dao.base import UserRepository
from app.errors import ConflictError, CredentialError, NotFoundError, PasswordVerificationError
from app.schemas.users import (
    DEFAULT_PROFILE_PIC,
    CreateUserRequest,
    FollowSummary,
    LoginRequest,
    UpdateUserRequest,
    UserProfileResponse,
    UserResponse,
)
from app.services.auth import TokenService, dummy_verify, hash_password, verify_password

logger = logging.getLogger(__name__)


# ── Login ─────────────────────────────────────────────────────────────────────

def login_user(
    credentials: LoginRequest,
    repo: UserRepository,
    tokens: TokenService,
) -> tuple[UserResponse, str]:
    """
    Check *credentials* and mint a token for the matching user.

    Returns the sanitized user and the signed token.  An unknown username and
    a wrong password raise the same `CredentialError`; a store fault
    propagates as `StoreError`.
    """
    username = credentials.username.strip().lower()
    record = repo.get_by_username(username)

    if record is None:
        dummy_verify()
        logger.warning("Failed login attempt.")
        raise CredentialError()

    try:
        matched = verify_password(credentials.password, record.get("hashed_password", ""))
    except PasswordVerificationError as exc:
        logger.warning("Password check errored for user '%s': %s", record["id"], exc)
        matched = False

    if not matched:
        logger.warning("Failed login attempt.")
        raise CredentialError()

    user = UserResponse.model_validate(record)
    token = tokens.issue(identity=user.id)
    logger.info("User '%s' logged in.", user.id)
    return user, token


# ── Reads ─────────────────────────────────────────────────────────────────────

def fetch_all_users(repo: UserRepository) -> list[UserResponse]:
    """Return all stored users, sanitized."""
    return [UserResponse.model_validate(r) for r in repo.list_all()]


def fetch_user_by_username(username: str, repo: UserRepository) -> UserResponse:
    record = repo.get_by_username(username.strip().lower())
    if record is None:
        raise NotFoundError()
    return UserResponse.model_validate(record)


async def fetch_user_profile(user_id: str, repo: UserRepository) -> UserProfileResponse:
    """
    Return the user with its songs, followers and following.

    The three relationship lookups are independent reads, so they run
    concurrently in the threadpool and are joined before responding.
    """
    record = await run_in_threadpool(repo.get, user_id)
    if record is None:
        raise NotFoundError()

    songs, followers, following = await asyncio.gather(
        run_in_threadpool(repo.get_user_songs, user_id),
        run_in_threadpool(repo.get_followers, user_id),
        run_in_threadpool(repo.get_following, user_id),
    )

    return UserProfileResponse(
        **UserResponse.model_validate(record).model_dump(),
        user_songs=songs,
        followers=[FollowSummary.model_validate(f) for f in followers],
        following=[FollowSummary.model_validate(f) for f in following],
    )


# ── Writes ────────────────────────────────────────────────────────────────────

def _check_available(
    repo: UserRepository,
    username: Optional[str],
    email: Optional[str],
    user_id: Optional[str] = None,
) -> None:
    """Raise `ConflictError` if *username* or *email* belongs to another user."""
    if email is not None:
        owner = repo.get_by_email(email)
        if owner is not None and owner["id"] != user_id:
            raise ConflictError(ConflictError.EMAIL_TAKEN)
    if username is not None:
        owner = repo.get_by_username(username)
        if owner is not None and owner["id"] != user_id:
            raise ConflictError(ConflictError.USERNAME_TAKEN)


def register_user(request: CreateUserRequest, repo: UserRepository) -> UserResponse:
    """
    Create a user account.

    Username and email arrive lowercased from the request model.  Both must
    be unused; nothing is written otherwise.
    """
    _check_available(repo, request.username, request.email)

    record = {
        "id": uuid.uuid4().hex,
        "username": request.username,
        "email": request.email,
        "hashed_password": hash_password(request.password),
        "profile_pic": request.profile_pic or DEFAULT_PROFILE_PIC,
        "created_at": datetime.now(timezone.utc).isoformat(),
    }
    repo.save(record)

    logger.info("User '%s' created.", record["id"])
    return UserResponse.model_validate(record)


def modify_user(user_id: str, request: UpdateUserRequest, repo: UserRepository) -> UserResponse:
    """Apply the fields set in *request* to an existing user."""
    record = repo.get(user_id)
    if record is None:
        raise NotFoundError()

    changes = request.model_dump(exclude_unset=True, exclude_none=True)
    _check_available(repo, changes.get("username"), changes.get("email"), user_id=user_id)

    if "password" in changes:
        changes["hashed_password"] = hash_password(changes.pop("password"))

    updated = {**record, **changes}
    repo.save(updated)

    logger.info("User '%s' updated (%s).", user_id, ", ".join(sorted(changes)) or "no changes")
    return UserResponse.model_validate(updated)


def remove_user(user_id: str, repo: UserRepository) -> None:
    if not repo.delete(user_id):
        raise NotFoundError()
    logger.info("User '%s' deleted.", user_id)
