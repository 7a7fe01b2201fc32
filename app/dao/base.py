"""
Abstract DAO (Data Access Object) for user records.

`UserRepository` defines the persistence contract that the service layer
depends on.  Concrete implementations (DynamoDB, in-memory for tests, …) must
fulfil this interface without the service or router knowing which backend is
in use.

Records are plain dicts.  A user record holds ``id``, ``username``,
``email``, ``hashed_password``, ``profile_pic`` and ``created_at``;
usernames and emails are stored lowercased.
"""

from abc import ABC, abstractmethod
from typing import Optional


class UserRepository(ABC):
    """Persistence interface for user records and their relationships."""

    @abstractmethod
    def save(self, record: dict) -> None:
        """
        Persist a user record.

        Parameters
        ----------
        record : dict
            The full user record to store.  Must contain an ``id`` string key
            that serves as the unique identifier.  An existing record with the
            same id is replaced.
        """

    @abstractmethod
    def get(self, user_id: str) -> Optional[dict]:
        """
        Retrieve a single user record by its id.

        Returns ``None`` when no matching record is found.
        """

    @abstractmethod
    def get_by_username(self, username: str) -> Optional[dict]:
        """Return the record whose (lowercased) username matches, or ``None``."""

    @abstractmethod
    def get_by_email(self, email: str) -> Optional[dict]:
        """Return the record whose (lowercased) email matches, or ``None``."""

    @abstractmethod
    def list_all(self) -> list[dict]:
        """Return every stored user record."""

    @abstractmethod
    def delete(self, user_id: str) -> bool:
        """
        Delete the record with the given *user_id*.

        Returns ``True`` if the record existed and was removed,
        ``False`` if no matching record was found.
        """

    # ── Relationships ─────────────────────────────────────────────────────────

    @abstractmethod
    def get_user_songs(self, user_id: str) -> list[dict]:
        """Return the song records owned by *user_id*."""

    @abstractmethod
    def get_followers(self, user_id: str) -> list[dict]:
        """Return the user records that follow *user_id*."""

    @abstractmethod
    def get_following(self, user_id: str) -> list[dict]:
        """Return the user records *user_id* follows."""
