"""
tests/conftest.py — Shared Test Fixtures
=========================================
Every test gets its own SQLite file and upload folder under ``tmp_path``.
"""

import asyncio
import os

# main.py builds a module-level app from the environment on import
TEST_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("FORUM_SECRET_KEY", TEST_SECRET)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from config import Settings  # noqa: E402
from context import build_context  # noqa: E402
from query_client import eq  # noqa: E402
from services.users import register_user  # noqa: E402


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        db_path=str(tmp_path / "forum.sqlite3"),
        secret_key=TEST_SECRET,
        upload_folder=str(tmp_path / "uploads"),
        bcrypt_rounds=4,
    )


@pytest.fixture
def ctx(settings):
    return build_context(settings)


@pytest.fixture
def make_user(ctx):
    """Register a user and return its Token; ``role`` bumps the account role."""

    def _make(username: str, password: str = "secret123", role: str = "user"):
        token = asyncio.run(register_user(ctx, username, f"{username}@example.com", password))
        if role != "user":
            asyncio.run(ctx.client.update("users", {"role": role}, [eq("id", token.user.id)]))
            token.user.role = role
        return token

    return _make


@pytest.fixture
def client(settings):
    from main import create_app

    with TestClient(create_app(settings)) as test_client:
        yield test_client
