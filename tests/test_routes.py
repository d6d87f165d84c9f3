"""
tests/test_routes.py — FastAPI route integration tests
=======================================================
Drives the app through TestClient: auth guards, status code mapping and the
main read/write paths.
"""

import asyncio

import pytest

from query_client import eq


def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def _register(client, username: str) -> str:
    resp = client.post("/auth/register", json={
        "username": username,
        "email": f"{username}@example.com",
        "password": "secret123",
    })
    assert resp.status_code == 201, resp.text
    return resp.json()["access_token"]


@pytest.fixture
def token(client):
    return _register(client, "alice")


class TestHealthEndpoint:
    def test_health_returns_ok(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


class TestAuthRoutes:
    def test_register_login_me(self, client, token):
        resp = client.post("/auth/login", json={"email": "alice@example.com", "password": "secret123"})
        assert resp.status_code == 200
        assert resp.json()["token_type"] == "bearer"

        me = client.get("/auth/me", headers=_auth(resp.json()["access_token"]))
        assert me.status_code == 200
        assert me.json()["username"] == "alice"

    def test_duplicate_email_is_conflict(self, client, token):
        resp = client.post("/auth/register", json={
            "username": "alice2", "email": "alice@example.com", "password": "secret123",
        })
        assert resp.status_code == 409

    def test_bad_password_is_unauthorized(self, client, token):
        resp = client.post("/auth/login", json={"email": "alice@example.com", "password": "nope-nope"})
        assert resp.status_code == 401

    def test_login_failures_look_the_same(self, client, token):
        unknown = client.post("/auth/login", json={"email": "ghost@example.com", "password": "secret123"})
        wrong = client.post("/auth/login", json={"email": "alice@example.com", "password": "nope-nope"})
        assert unknown.status_code == wrong.status_code == 401
        assert unknown.json() == wrong.json() == {"detail": "Incorrect email or password"}

    def test_invalid_registration_is_bad_request(self, client):
        resp = client.post("/auth/register", json={"username": "x", "email": "x@example.com", "password": "secret123"})
        assert resp.status_code == 400

    def test_me_requires_token(self, client):
        assert client.get("/auth/me").status_code == 401
        assert client.get("/auth/me", headers=_auth("garbage")).status_code == 401


class TestThreadRoutes:
    def test_create_list_and_read(self, client, token):
        resp = client.post("/threads/", json={"title": "LAN party", "content": "Who is in?", "category_id": 1},
                           headers=_auth(token))
        assert resp.status_code == 201
        thread_id = resp.json()["id"]

        reply = client.post(f"/threads/{thread_id}/posts", json={"content": "Me!"}, headers=_auth(token))
        assert reply.status_code == 201

        listing = client.get("/threads/")
        assert listing.status_code == 200
        assert listing.json()[0]["post_count"] == 1

        detail = client.get(f"/threads/{thread_id}")
        assert detail.status_code == 200
        assert detail.json()["posts"][0]["content"] == "Me!"

    def test_like_is_idempotent(self, client, token):
        thread_id = client.post("/threads/", json={"title": "t", "content": "c", "category_id": 1},
                                headers=_auth(token)).json()["id"]
        client.post(f"/threads/{thread_id}/like", headers=_auth(token))
        resp = client.post(f"/threads/{thread_id}/like", headers=_auth(token))
        assert resp.json() == {"liked": True, "like_count": 1}

    def test_missing_thread_is_not_found(self, client):
        assert client.get("/threads/999").status_code == 404

    def test_creating_requires_login(self, client):
        resp = client.post("/threads/", json={"title": "t", "content": "c", "category_id": 1})
        assert resp.status_code == 401

    def test_bad_sort_rejected(self, client):
        assert client.get("/threads/?sort_by=random").status_code == 422


class TestProfileRoutes:
    def test_profile_page_and_follow(self, client, token):
        bob = _register(client, "bob")
        resp = client.post("/users/alice/follow", headers=_auth(bob))
        assert resp.status_code == 200
        assert resp.json()["follower_count"] == 1

        page = client.get("/users/alice", headers=_auth(bob)).json()
        assert page["is_following"] is True
        assert page["profile"]["username"] == "alice"

        followers = client.get("/users/alice/followers").json()
        assert [f["username"] for f in followers] == ["bob"]

    def test_private_lists_are_forbidden(self, client, token):
        client.put("/users/me/settings", json={"show_followers": False}, headers=_auth(token))
        assert client.get("/users/alice/followers").status_code == 403
        assert client.get("/users/alice/followers", headers=_auth(token)).status_code == 200

    def test_update_profile(self, client, token):
        resp = client.put("/users/me", json={"display_name": "Alice A.", "bio": "FPS main"}, headers=_auth(token))
        assert resp.status_code == 200
        assert resp.json()["display_name"] == "Alice A."

    def test_avatar_upload_is_served(self, client, token):
        resp = client.post("/users/me/avatar", headers=_auth(token),
                           files={"file": ("me.png", b"\x89PNG\r\n\x1a\nfake", "image/png")})
        assert resp.status_code == 200
        url = resp.json()["avatar_url"]
        served = client.get(url)
        assert served.status_code == 200
        assert served.content == b"\x89PNG\r\n\x1a\nfake"

    def test_avatar_upload_rejects_text(self, client, token):
        resp = client.post("/users/me/avatar", headers=_auth(token),
                           files={"file": ("notes.txt", b"hello", "text/plain")})
        assert resp.status_code == 400


class TestReportRoutes:
    def test_duplicate_report_is_conflict(self, client, token):
        bob = _register(client, "bob")
        thread_id = client.post("/threads/", json={"title": "t", "content": "c", "category_id": 1},
                                headers=_auth(token)).json()["id"]
        body = {"report_type": "thread", "reason": "spam", "thread_id": thread_id}
        assert client.post("/reports/", json=body, headers=_auth(bob)).status_code == 201
        assert client.post("/reports/check", json=body, headers=_auth(bob)).json() == {"already_reported": True}
        assert client.post("/reports/", json=body, headers=_auth(bob)).status_code == 409


class TestAdminRoutes:
    def test_regular_user_forbidden(self, client, token):
        assert client.get("/admin/stats", headers=_auth(token)).status_code == 403
        assert client.get("/admin/stats").status_code == 401

    def test_moderator_dashboard(self, client, token):
        mod = _register(client, "mod_max")
        ctx = client.app.state.context
        user = asyncio.run(ctx.client.select_one("users", filters=[eq("username", "mod_max")]))
        asyncio.run(ctx.client.update("users", {"role": "moderator"}, [eq("id", user["id"])]))

        thread_id = client.post("/threads/", json={"title": "t", "content": "c", "category_id": 1},
                                headers=_auth(token)).json()["id"]
        stats = client.get("/admin/stats", headers=_auth(mod)).json()
        assert stats["total_users"] == 2
        assert stats["total_threads"] == 1

        pinned = client.post(f"/admin/threads/{thread_id}/pin", headers=_auth(mod))
        assert pinned.json()["is_pinned"] is True
        assert client.get("/admin/threads?status=pinned", headers=_auth(mod)).json()[0]["id"] == thread_id

        report = client.post("/reports/", json={"report_type": "thread", "reason": "spam", "thread_id": thread_id},
                             headers=_auth(token)).json()
        resolved = client.put(f"/admin/reports/{report['id']}", json={"status": "resolved"}, headers=_auth(mod))
        assert resolved.json()["status"] == "resolved"
        again = client.put(f"/admin/reports/{report['id']}", json={"status": "dismissed"}, headers=_auth(mod))
        assert again.status_code == 400

        assert client.delete(f"/admin/threads/{thread_id}", headers=_auth(mod)).status_code == 200
        assert client.get(f"/threads/{thread_id}").status_code == 404


class TestBrowseRoutes:
    def test_categories_and_search(self, client, token):
        categories = client.get("/browse/categories").json()
        assert "Reviews" in [c["name"] for c in categories]

        client.post("/threads/", json={"title": "Elden Ring builds", "content": "c", "category_id": 1},
                    headers=_auth(token))
        results = client.get("/browse/search", params={"q": "elden"}).json()
        assert results[0]["type"] == "thread"

        home = client.get("/browse/home").json()
        assert len(home["recent_threads"]) == 1
