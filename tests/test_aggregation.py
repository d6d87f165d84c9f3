"""
tests/test_aggregation.py — View composition for listings, profiles and the admin dashboard
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from errors import NotFound, PermissionDenied, TransportFailure
from query_client import eq
from schemas.shared import UserId
from services import aggregation
from services.aggregation import (
    build_admin_stats,
    build_admin_thread_list,
    build_home_page,
    build_profile_page,
    build_recent_activity,
    build_reviews,
    build_thread_list,
    search,
)
from services.follows import follow_user
from services.likes import like_thread
from services.posts import create_post
from services.profiles import resolve_profile_id
from services.threads import create_thread, set_thread_flags
from services.users import update_profile, update_user_settings


def run(coro):
    return asyncio.run(coro)


def iso(dt: datetime) -> str:
    return dt.isoformat(timespec="microseconds")


@pytest.fixture
def alice(make_user):
    return make_user("alice").user


@pytest.fixture
def bob(make_user):
    return make_user("bob").user


def reviews_category(ctx):
    return run(ctx.client.select_one("categories", filters=[eq("name", "Reviews")]))["id"]


class TestThreadList:
    def test_pinned_first_then_newest(self, ctx, alice):
        first = run(create_thread(ctx, alice.id, "First", "body", 1))
        second = run(create_thread(ctx, alice.id, "Second", "body", 1))
        third = run(create_thread(ctx, alice.id, "Third", "body", 1))
        run(set_thread_flags(ctx, first["id"], is_pinned=True))

        items = run(build_thread_list(ctx))
        assert [i.id for i in items] == [first["id"], third["id"], second["id"]]
        assert items[0].is_pinned is True

    def test_limit(self, ctx, alice):
        for n in range(5):
            run(create_thread(ctx, alice.id, f"Thread {n}", "body", 1))
        assert len(run(build_thread_list(ctx, limit=3))) == 3

    def test_counts_and_viewer_state(self, ctx, alice, bob):
        thread = run(create_thread(ctx, alice.id, "Keyboards", "body", 1))
        run(create_post(ctx, bob.id, thread["id"], "reply"))
        run(like_thread(ctx, thread["id"], bob.id))

        item = run(build_thread_list(ctx, viewer_user_id=UserId(bob.id)))[0]
        assert item.post_count == 1
        assert item.like_count == 1
        assert item.is_liked is True
        assert item.author.username == "alice"
        assert item.category.name == "General"

        guest_item = run(build_thread_list(ctx))[0]
        assert guest_item.is_liked is False

    def test_search_by_title_and_author(self, ctx, alice, bob):
        run(create_thread(ctx, alice.id, "Speedrun tips", "body", 1))
        run(create_thread(ctx, bob.id, "Raid schedule", "body", 1))

        by_title = run(build_thread_list(ctx, search="speedrun"))
        assert [i.title for i in by_title] == ["Speedrun tips"]
        by_author = run(build_thread_list(ctx, search="bob", search_type="author"))
        assert [i.title for i in by_author] == ["Raid schedule"]

    def test_author_search_matches_display_name(self, ctx, alice, bob):
        run(update_profile(ctx, bob.id, display_name="ProGamer"))
        run(create_thread(ctx, alice.id, "Speedrun tips", "body", 1))
        run(create_thread(ctx, bob.id, "Raid schedule", "body", 1))

        by_display_name = run(build_thread_list(ctx, search="progamer", search_type="author"))
        assert [i.title for i in by_display_name] == ["Raid schedule"]

    def test_author_search_skips_deleted_authors(self, ctx, alice, bob):
        run(create_thread(ctx, alice.id, "Orphan", "body", 1))
        run(create_thread(ctx, bob.id, "Kept", "body", 1))
        run(ctx.client.delete("users", [eq("id", alice.id)]))

        assert run(build_thread_list(ctx, search="deleted", search_type="author")) == []

    def test_wildcards_are_literal(self, ctx, alice):
        run(create_thread(ctx, alice.id, "100% completion", "body", 1))
        run(create_thread(ctx, alice.id, "Other", "body", 1))
        assert [i.title for i in run(build_thread_list(ctx, search="%"))] == ["100% completion"]

    def test_failed_secondary_degrades(self, ctx, alice, monkeypatch):
        run(create_thread(ctx, alice.id, "Keyboards", "body", 1))

        async def broken(*args, **kwargs):
            raise TransportFailure("count posts")

        monkeypatch.setattr(aggregation, "count_posts_by_thread", broken)
        items = run(build_thread_list(ctx))
        assert items[0].post_count == 0

    def test_reviews_and_home(self, ctx, alice):
        run(create_thread(ctx, alice.id, "General chat", "body", 1))
        run(create_thread(ctx, alice.id, "Review: controller", "body", reviews_category(ctx)))

        assert [i.title for i in run(build_reviews(ctx))] == ["Review: controller"]
        home = run(build_home_page(ctx))
        assert len(home.recent_threads) == 2
        assert [i.title for i in home.recent_reviews] == ["Review: controller"]


class TestThreadDetail:
    def test_counts_a_view_and_lists_related(self, ctx, alice):
        thread = run(create_thread(ctx, alice.id, "Main", "body", 1))
        run(create_thread(ctx, alice.id, "Sibling", "body", 1))
        run(create_thread(ctx, alice.id, "Elsewhere", "body", reviews_category(ctx)))

        detail = run(aggregation.build_thread_detail(ctx, thread["id"]))
        assert detail.view_count == 1
        assert [r.title for r in detail.related_threads] == ["Sibling"]
        assert run(aggregation.build_thread_detail(ctx, thread["id"])).view_count == 2

    def test_missing_thread(self, ctx):
        with pytest.raises(NotFound):
            run(aggregation.build_thread_detail(ctx, 4242))


class TestProfilePage:
    def test_view_counted_for_others_only(self, ctx, alice, bob):
        page = run(build_profile_page(ctx, "alice", UserId(alice.id)))
        assert page.is_own_profile is True
        assert page.profile.views == 0
        assert page.profile.email == "alice@example.com"

        page = run(build_profile_page(ctx, "alice", UserId(bob.id)))
        assert page.is_own_profile is False
        assert page.profile.views == 1
        assert page.profile.email is None

    def test_follow_state(self, ctx, alice, bob):
        run(follow_user(ctx, bob.id, alice.id))
        page = run(build_profile_page(ctx, "alice", UserId(bob.id)))
        assert page.is_following is True
        assert page.follow_counts.follower_count == 1

    def test_guests_refused_when_hidden(self, ctx, alice):
        run(update_user_settings(ctx, alice.id, show_profile_to_guests=False))
        with pytest.raises(PermissionDenied):
            run(build_profile_page(ctx, "alice"))

    def test_unknown_username(self, ctx):
        with pytest.raises(NotFound):
            run(build_profile_page(ctx, "ghost"))


class TestSearch:
    def test_threads_and_users(self, ctx, alice, make_user):
        make_user("alien_fan")
        run(create_thread(ctx, alice.id, "Alien Isolation replay", "body", 1))

        results = run(search(ctx, "ali"))
        assert [(r.type, r.title) for r in results if r.type == "thread"] == [("thread", "Alien Isolation replay")]
        assert {r.username for r in results if r.type == "user"} == {"alice", "alien_fan"}
        assert run(search(ctx, "ali", "threads"))[0].category == "General"
        assert run(search(ctx, "   ")) == []


class TestAdminStats:
    def test_today_counts(self, ctx, alice):
        now = datetime.now(timezone.utc)
        run(create_thread(ctx, alice.id, "Today", "body", 1))
        profile_id = run(resolve_profile_id(ctx, alice.id))
        run(ctx.client.insert("threads", {
            "title": "Old", "content": "body", "author_id": profile_id, "category_id": 1,
            "created_at": iso(now - timedelta(days=3)),
        }))
        run(ctx.client.insert("reports", {
            "reporter_id": profile_id, "report_type": "thread", "reason": "spam", "thread_id": 1,
        }))

        stats = run(build_admin_stats(ctx, now=now))
        assert stats.total_users == 1
        assert stats.today_users == 1
        assert stats.total_threads == 2
        assert stats.today_threads == 1
        assert stats.pending_reports == 1

    def test_day_boundary_uses_utc(self, ctx, alice):
        now = datetime(2026, 3, 10, 20, 0, tzinfo=timezone.utc)
        profile_id = run(resolve_profile_id(ctx, alice.id))
        run(ctx.client.insert("threads", {
            "title": "Evening", "content": "body", "author_id": profile_id, "category_id": 1,
            "created_at": iso(now - timedelta(hours=1)),
        }))
        run(ctx.client.insert("threads", {
            "title": "Yesterday", "content": "body", "author_id": profile_id, "category_id": 1,
            "created_at": iso(now - timedelta(days=1)),
        }))

        # 07:00 on 11 March in UTC+11 is still 10 March in UTC
        local = now.astimezone(timezone(timedelta(hours=11)))
        assert run(build_admin_stats(ctx, now=local)).today_threads == 1


class TestRecentActivity:
    def test_sorted_by_original_timestamp(self, ctx, alice):
        now = datetime.now(timezone.utc) + timedelta(seconds=1)
        profile_id = run(resolve_profile_id(ctx, alice.id))
        thread = run(ctx.client.insert("threads", {
            "title": "Ancient thread", "content": "body", "author_id": profile_id, "category_id": 1,
            "created_at": iso(now - timedelta(days=2)),
        }))
        run(ctx.client.insert("posts", {
            "content": "reply", "author_id": profile_id, "thread_id": thread["id"],
            "created_at": iso(now - timedelta(hours=1)),
        }))
        run(ctx.client.insert("reports", {
            "reporter_id": profile_id, "report_type": "thread", "reason": "spam", "thread_id": thread["id"],
            "created_at": iso(now - timedelta(minutes=10)),
        }))

        activity = run(build_recent_activity(ctx, now=now))
        assert [a.type for a in activity] == ["user_register", "report_create", "post_create", "thread_create"]
        assert [a.time for a in activity] == ["just now", "10 minutes ago", "1 hour ago", "2 days ago"]
        assert activity[1].severity == "medium"
        assert activity[3].description == '@alice started a new thread: "Ancient thread" (General)'

    def test_limit(self, ctx, make_user):
        for name in ("one", "two", "three"):
            make_user(f"user_{name}")
        assert len(run(build_recent_activity(ctx, limit=2))) == 2


class TestAdminThreadList:
    def test_filters_and_sorts(self, ctx, alice, bob):
        a = run(create_thread(ctx, alice.id, "Beta thread", "body", 1))
        b = run(create_thread(ctx, bob.id, "Alpha thread", "body", reviews_category(ctx)))
        run(create_post(ctx, alice.id, b["id"], "reply"))
        run(set_thread_flags(ctx, a["id"], is_pinned=True))

        by_title = run(build_admin_thread_list(ctx, sort_by="title"))
        assert [t.title for t in by_title] == ["Alpha thread", "Beta thread"]
        assert [t.id for t in run(build_admin_thread_list(ctx, status="pinned"))] == [a["id"]]
        assert [t.id for t in run(build_admin_thread_list(ctx, status="normal"))] == [b["id"]]
        assert [t.id for t in run(build_admin_thread_list(ctx, search="bob"))] == [b["id"]]
        assert run(build_admin_thread_list(ctx, sort_by="activity"))[0].stats.post_count == 1

    def test_deleted_author_fallback(self, ctx, alice):
        run(create_thread(ctx, alice.id, "Orphan", "body", 1))
        run(ctx.client.delete("users", [eq("id", alice.id)]))
        item = run(build_admin_thread_list(ctx))[0]
        assert item.author.username == "Deleted User"
