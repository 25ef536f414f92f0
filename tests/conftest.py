"""Pytest configuration shared across the suite."""

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

from pathlib import Path

import pytest

from swipify.services import PendingLoginStore, TokenCipherService, UserRepository


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "swipify.db")


@pytest.fixture
def cipher() -> TokenCipherService:
    return TokenCipherService(secret="unit-test-secret")


@pytest.fixture
def pending_store(db_path: str) -> PendingLoginStore:
    return PendingLoginStore(db_path)


@pytest.fixture
def user_repo(db_path: str, cipher: TokenCipherService) -> UserRepository:
    return UserRepository(db_path, token_cipher=cipher)
