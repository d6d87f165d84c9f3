"""
tests/test_session.py — Session validation, stores and the session manager
"""

import asyncio
from datetime import timedelta

import pytest

from auth import SessionIdentity, encode_session_token
from errors import NoToken, SessionUserMissing, TokenExpired, TokenMalformed
from query_client import eq
from schemas.shared import UserId
from session import FileSessionStore, MemorySessionStore, SessionManager, validate_session


def run(coro):
    return asyncio.run(coro)


class TestValidateSession:
    def test_valid_token_returns_user_with_avatar(self, ctx, make_user):
        token = make_user("alice")
        user = run(validate_session(ctx, token.access_token))
        assert user.id == token.user.id
        assert user.username == "alice"
        assert user.email == "alice@example.com"
        assert user.avatar_url.endswith("name=alice")

    def test_missing_token(self, ctx):
        with pytest.raises(NoToken):
            run(validate_session(ctx, None))

    def test_malformed_token(self, ctx):
        with pytest.raises(TokenMalformed):
            run(validate_session(ctx, "garbage"))

    def test_expired_token(self, ctx, make_user):
        token = make_user("bob")
        identity = SessionIdentity(user_id=UserId(token.user.id), email="bob@example.com")
        stale = encode_session_token(identity, timedelta(seconds=-1), ctx.settings.secret_key)
        with pytest.raises(TokenExpired):
            run(validate_session(ctx, stale))

    def test_deleted_user(self, ctx, make_user):
        token = make_user("carol")
        run(ctx.client.delete("users", [eq("id", token.user.id)]))
        with pytest.raises(SessionUserMissing):
            run(validate_session(ctx, token.access_token))

    def test_missing_profile_falls_back_to_default_avatar(self, ctx, make_user):
        token = make_user("dave")
        run(ctx.client.delete("profiles", [eq("user_id", token.user.id)]))
        user = run(validate_session(ctx, token.access_token))
        assert user.avatar_url.endswith("name=dave")


class TestSessionManager:
    def test_login_persists_token(self, ctx, make_user):
        make_user("erin")
        store = MemorySessionStore()
        manager = SessionManager(ctx, store)
        user = run(manager.login("erin@example.com", "secret123"))
        assert user.username == "erin"
        assert store.read()

    def test_restore_with_stale_user_logs_out(self, ctx, make_user):
        token = make_user("frank")
        store = MemorySessionStore()
        store.persist(token.access_token)
        run(ctx.client.delete("users", [eq("id", token.user.id)]))

        manager = SessionManager(ctx, store)
        assert run(manager.restore()) is None
        assert store.read() is None
        assert manager.user is None

    def test_restore_valid_session(self, ctx, make_user):
        token = make_user("gina")
        store = MemorySessionStore()
        store.persist(token.access_token)
        manager = SessionManager(ctx, store)
        assert run(manager.restore()).username == "gina"

    def test_logout_clears_store(self, ctx):
        store = MemorySessionStore()
        manager = SessionManager(ctx, store)
        run(manager.register("hank", "hank@example.com", "secret123"))
        manager.logout()
        assert store.read() is None
        assert manager.user is None


class TestFileSessionStore:
    def test_persist_read_clear(self, tmp_path):
        store = FileSessionStore(tmp_path / "session.json")
        assert store.read() is None
        store.persist("abc")
        assert FileSessionStore(tmp_path / "session.json").read() == "abc"
        store.clear()
        assert store.read() is None

    def test_corrupt_file_reads_as_empty(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text("{not json", encoding="utf-8")
        store = FileSessionStore(path)
        assert store.read() is None
        store.persist("fresh")
        assert store.read() == "fresh"
