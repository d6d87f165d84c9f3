"""
tests/test_content.py — Threads, replies, likes, follows and reports
"""

import asyncio

import pytest

from errors import NotFound, ThreadLocked, ValidationError
from schemas.reports import ReportCreate
from schemas.shared import UserId
from services.aggregation import build_thread_detail
from services.follows import (
    check_follow_status,
    follow_user,
    get_follow_counts,
    get_followers_list,
    get_following_list,
    unfollow_user,
)
from services.likes import check_user_thread_like, get_thread_like_count, like_thread, unlike_thread
from services.posts import create_post, like_post, toggle_post_like
from services.reports import check_existing_report, list_reports, submit_report
from services.threads import create_thread, get_thread, set_thread_flags


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def alice(make_user):
    return make_user("alice").user


@pytest.fixture
def bob(make_user):
    return make_user("bob").user


@pytest.fixture
def thread(ctx, alice):
    return run(create_thread(ctx, alice.id, "Which mouse do you use?", "Looking for a new one.", 1))


class TestThreads:
    @pytest.mark.parametrize("title, content, category_id, field", [
        ("", "body", 1, "title"),
        ("x" * 201, "body", 1, "title"),
        ("title", "", 1, "content"),
        ("title", "y" * 5001, 1, "content"),
        ("title", "body", None, "category_id"),
        ("title", "body", 999, "category_id"),
    ])
    def test_validation(self, ctx, alice, title, content, category_id, field):
        with pytest.raises(ValidationError) as exc_info:
            run(create_thread(ctx, alice.id, title, content, category_id))
        assert exc_info.value.field == field

    def test_unknown_thread(self, ctx):
        with pytest.raises(NotFound):
            run(get_thread(ctx, 12345))

    def test_locked_thread_refuses_replies(self, ctx, alice, thread):
        run(set_thread_flags(ctx, thread["id"], is_locked=True))
        with pytest.raises(ThreadLocked):
            run(create_post(ctx, alice.id, thread["id"], "Too late"))


class TestPostLikes:
    def test_liked_reply_shows_in_thread_detail(self, ctx, alice, bob, thread):
        post = run(create_post(ctx, alice.id, thread["id"], "G Pro here"))
        run(like_post(ctx, post["id"], bob.id))

        detail = run(build_thread_detail(ctx, thread["id"], UserId(bob.id)))
        assert detail.posts[0].likes[0].count == 1
        assert detail.posts[0].user_liked is True
        assert detail.posts[0].position == 1

        as_alice = run(build_thread_detail(ctx, thread["id"], UserId(alice.id)))
        assert as_alice.posts[0].user_liked is False

    def test_toggle(self, ctx, alice, bob, thread):
        post = run(create_post(ctx, alice.id, thread["id"], "G Pro here"))
        state = run(toggle_post_like(ctx, post["id"], bob.id))
        assert state.liked and state.like_count == 1
        state = run(toggle_post_like(ctx, post["id"], bob.id))
        assert not state.liked and state.like_count == 0


class TestThreadLikes:
    def test_liking_twice_counts_once(self, ctx, bob, thread):
        assert run(like_thread(ctx, thread["id"], bob.id)) is True
        assert run(like_thread(ctx, thread["id"], bob.id)) is False
        assert run(get_thread_like_count(ctx, thread["id"])) == 1
        assert run(check_user_thread_like(ctx, thread["id"], bob.id)) is True

    def test_unlike(self, ctx, bob, thread):
        run(like_thread(ctx, thread["id"], bob.id))
        assert run(unlike_thread(ctx, thread["id"], bob.id)) is True
        assert run(get_thread_like_count(ctx, thread["id"])) == 0
        assert run(unlike_thread(ctx, thread["id"], bob.id)) is False

    def test_caller_without_profile(self, ctx, thread):
        with pytest.raises(NotFound):
            run(like_thread(ctx, thread["id"], UserId(999)))


class TestFollows:
    def test_follow_and_unfollow_are_symmetric(self, ctx, alice, bob):
        before = run(get_follow_counts(ctx, bob.id))
        assert run(follow_user(ctx, alice.id, bob.id)) is True
        assert run(check_follow_status(ctx, alice.id, bob.id)) is True
        assert run(get_follow_counts(ctx, bob.id)).follower_count == before.follower_count + 1
        assert run(get_follow_counts(ctx, alice.id)).following_count == 1

        assert run(unfollow_user(ctx, alice.id, bob.id)) is True
        assert run(check_follow_status(ctx, alice.id, bob.id)) is False
        assert run(get_follow_counts(ctx, bob.id)) == before

    def test_duplicate_follow_is_noop(self, ctx, alice, bob):
        run(follow_user(ctx, alice.id, bob.id))
        assert run(follow_user(ctx, alice.id, bob.id)) is False
        assert run(get_follow_counts(ctx, bob.id)).follower_count == 1

    def test_self_follow(self, ctx, alice):
        with pytest.raises(ValidationError):
            run(follow_user(ctx, alice.id, alice.id))

    def test_lists_surface_user_ids(self, ctx, alice, bob):
        run(follow_user(ctx, alice.id, bob.id))
        followers = run(get_followers_list(ctx, bob.id))
        assert [(f.id, f.username) for f in followers] == [(alice.id, "alice")]
        following = run(get_following_list(ctx, alice.id))
        assert [(f.id, f.username) for f in following] == [(bob.id, "bob")]


class TestReports:
    def test_duplicate_report_detected(self, ctx, alice, bob, thread):
        report = ReportCreate(report_type="thread", reason="spam", thread_id=thread["id"])
        assert run(check_existing_report(ctx, report, bob.id)) is False
        row = run(submit_report(ctx, report, bob.id))
        assert row["status"] == "pending"
        assert run(check_existing_report(ctx, report, bob.id)) is True
        assert run(check_existing_report(ctx, report, alice.id)) is False

    def test_reported_user_is_content_owner(self, ctx, alice, bob, thread):
        post = run(create_post(ctx, alice.id, thread["id"], "spammy link"))
        row = run(submit_report(ctx, ReportCreate(report_type="post", reason="spam", post_id=post["id"]), bob.id))
        assert row["reported_user_id"] == thread["author_id"]

    def test_profile_report_resolves_profile_id(self, ctx, alice, bob, thread):
        report = ReportCreate(report_type="profile", reason="harassment", reported_user_id=alice.id)
        row = run(submit_report(ctx, report, bob.id))
        assert row["reported_user_id"] == thread["author_id"]

    @pytest.mark.parametrize("payload", [
        {"report_type": "thread", "reason": "spam"},
        {"report_type": "thread", "reason": "spam", "thread_id": 1, "post_id": 1},
        {"report_type": "post", "reason": "spam", "thread_id": 1},
    ])
    def test_target_must_match_type(self, ctx, bob, thread, payload):
        with pytest.raises(ValidationError):
            run(submit_report(ctx, ReportCreate(**payload), bob.id))

    def test_list_by_status(self, ctx, bob, thread):
        run(submit_report(ctx, ReportCreate(report_type="thread", reason="spam", thread_id=thread["id"]), bob.id))
        assert len(run(list_reports(ctx, status="pending"))) == 1
        assert run(list_reports(ctx, status="resolved")) == []
