"""
FastAPI dependency for UserRepository injection.

Routes declare `repo: UserRepository = Depends(get_user_repository)` and
receive the concrete DynamoDB implementation at runtime.

Swapping the backend (e.g. for tests) only requires overriding this one
dependency — no service or route code changes are needed:

    app.dependency_overrides[get_user_repository] = lambda: InMemoryUserRepository()
"""

from app.dao.base import UserRepository
from app.dao.dynamodb import DynamoDBUserRepository

# A single, module-level instance is sufficient — DynamoDBUserRepository is
# stateless apart from the cached table handles.
_repository = DynamoDBUserRepository()


def get_user_repository() -> UserRepository:
    """Return the active UserRepository implementation."""
    return _repository
