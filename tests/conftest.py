import os
import sys
from pathlib import Path
from typing import Optional

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Settings are read at import time and refuse to load without a signing key.
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from app.main import app
from app.dao.base import UserRepository
from app.dependencies.api import get_token_service
from app.dependencies.dao import get_user_repository
from app.services.auth import hash_password

# Hashing is slow on purpose; do it once per session.
YAHOO_HASH = hash_password("yahoo")


class InMemoryUserRepository(UserRepository):
    """Dict-backed repository; records every call so tests can assert on store access."""

    def __init__(self) -> None:
        self.users: dict[str, dict] = {}
        self.songs: list[dict] = []
        self.follows: list[tuple[str, str]] = []  # (follower_id, followed_id)
        self.calls: list[str] = []

    def save(self, record: dict) -> None:
        self.calls.append("save")
        self.users[record["id"]] = dict(record)

    def get(self, user_id: str) -> Optional[dict]:
        self.calls.append("get")
        record = self.users.get(user_id)
        return dict(record) if record else None

    def _find(self, field: str, value: str) -> Optional[dict]:
        for record in self.users.values():
            if record[field] == value:
                return dict(record)
        return None

    def get_by_username(self, username: str) -> Optional[dict]:
        self.calls.append("get_by_username")
        return self._find("username", username)

    def get_by_email(self, email: str) -> Optional[dict]:
        self.calls.append("get_by_email")
        return self._find("email", email)

    def list_all(self) -> list[dict]:
        self.calls.append("list_all")
        return [dict(r) for r in self.users.values()]

    def delete(self, user_id: str) -> bool:
        self.calls.append("delete")
        return self.users.pop(user_id, None) is not None

    def get_user_songs(self, user_id: str) -> list[dict]:
        self.calls.append("get_user_songs")
        return [s for s in self.songs if s["user_id"] == user_id]

    def get_followers(self, user_id: str) -> list[dict]:
        self.calls.append("get_followers")
        return [dict(self.users[f]) for f, t in self.follows if t == user_id]

    def get_following(self, user_id: str) -> list[dict]:
        self.calls.append("get_following")
        return [dict(self.users[t]) for f, t in self.follows if f == user_id]


def make_user(user_id: str, username: str, email: str, hashed_password: str = YAHOO_HASH) -> dict:
    return {
        "id": user_id,
        "username": username,
        "email": email,
        "hashed_password": hashed_password,
        "profile_pic": "https://example.com/pic.png",
        "created_at": "2026-01-01T00:00:00+00:00",
    }


@pytest.fixture(name="make_user")
def make_user_fixture():
    return make_user


@pytest.fixture()
def repo():
    store = InMemoryUserRepository()
    store.users["u1"] = make_user("u1", "djshmarl", "djshmarl@example.com")
    store.users["u2"] = make_user("u2", "rita", "rita@example.com")
    store.users["u3"] = make_user("u3", "bo", "bo@example.com")
    store.songs.append({"id": "s1", "user_id": "u1", "title": "Yahoo Blues"})
    store.follows.extend([("u2", "u1"), ("u1", "u3")])
    store.calls.clear()
    return store


@pytest.fixture()
def token_service():
    return get_token_service()


@pytest.fixture()
def auth_headers(token_service):
    return {"Authorization": token_service.issue(identity="u1")}


@pytest.fixture()
def client(repo):
    app.dependency_overrides[get_user_repository] = lambda: repo
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
