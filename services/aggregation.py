"""View composition: stitch base rows and their dependent lookups into page models.

Every builder follows the same shape. Base rows come first, then the one-hop
lookups they reference (authors, categories), then the per-page secondaries
(counts, viewer state) run concurrently through ``gather_fields``. A failing
secondary degrades to its default instead of failing the page.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Optional

from context import ForumContext
from errors import NotFound, PermissionDenied, ValidationError
from query_client import any_ilike, contains_pattern, desc, gte, eq, ilike, in_
from schemas.admin import ActivityItem, AdminStats, AdminThreadItem, AdminThreadStats
from schemas.browse import HomePage, SearchResult
from schemas.posts import PostView, ThreadDetail
from schemas.profile import FollowCounts, ProfilePage
from schemas.shared import ProfileId, UserId
from schemas.threads import SEARCH_TYPES, SORT_OPTIONS, RelatedThread, ThreadListItem
from services.categories import category_summary, get_categories_by_ids, get_category_by_name
from services.fanout import gather_fields
from services.follows import check_follow_status, get_follow_counts
from services.likes import count_likes_by_thread, get_thread_like_count, threads_liked_by
from services.posts import count_likes_by_post, list_thread_posts, posts_liked_by
from services.profiles import author_summary, find_profile, get_profiles_by_ids
from services.threads import (
    count_posts_by_thread,
    fetch_thread_rows,
    get_related_threads,
    get_thread,
    increment_thread_views,
)
from services.users import (
    get_user_by_username,
    get_user_profile,
    get_user_settings,
    increment_profile_views,
)
from utils.time_helpers import format_time_ago, parse_timestamp, start_of_day

logger = logging.getLogger(__name__)

REVIEWS_CATEGORY = "Reviews"
SEARCH_SCOPES = ('all', 'threads', 'users')
ADMIN_STATUS_FILTERS = ('all', 'pinned', 'locked', 'normal')
ADMIN_SORT_OPTIONS = ('newest', 'oldest', 'title', 'views', 'activity')
UNKNOWN_USER = "Unknown"


async def _viewer_profile_id(ctx: ForumContext, viewer_user_id: Optional[UserId]) -> Optional[ProfileId]:
    if viewer_user_id is None:
        return None
    profile = await find_profile(ctx, viewer_user_id)
    return ProfileId(profile["id"]) if profile else None


async def _empty_set():
    return set()


async def _decorate_threads(ctx: ForumContext, rows: List[dict], viewer_user_id: Optional[UserId],
                            operation: str) -> List[ThreadListItem]:
    if not rows:
        return []
    profiles, categories, viewer = await asyncio.gather(
        get_profiles_by_ids(ctx, [row["author_id"] for row in rows]),
        get_categories_by_ids(ctx, [row["category_id"] for row in rows]),
        _viewer_profile_id(ctx, viewer_user_id),
    )
    thread_ids = [row["id"] for row in rows]
    fields = await gather_fields(operation, {
        "post_counts": (count_posts_by_thread(ctx, thread_ids), {}),
        "like_counts": (count_likes_by_thread(ctx, thread_ids), {}),
        "liked": (threads_liked_by(ctx, viewer, thread_ids) if viewer else _empty_set(), set()),
    })
    return [
        ThreadListItem(
            **row,
            author=author_summary(profiles.get(row["author_id"])),
            category=category_summary(categories.get(row["category_id"])),
            post_count=fields["post_counts"].get(row["id"], 0),
            like_count=fields["like_counts"].get(row["id"], 0),
            is_liked=row["id"] in fields["liked"],
        )
        for row in rows
    ]


async def build_thread_list(ctx: ForumContext, viewer_user_id: Optional[UserId] = None,
                            category_id: Optional[int] = None, search: Optional[str] = None,
                            search_type: str = 'title', sort_by: str = 'newest',
                            limit: int = 50) -> List[ThreadListItem]:
    """Forum listing, pinned threads first, at most ``limit`` items."""
    if sort_by not in SORT_OPTIONS:
        raise ValidationError('sort_by', f'sort_by must be one of: {list(SORT_OPTIONS)}')
    if search_type not in SEARCH_TYPES:
        raise ValidationError('search_type', f'search_type must be one of: {list(SEARCH_TYPES)}')
    search = (search or "").strip() or None
    by_author = search is not None and search_type == 'author'
    rows = await fetch_thread_rows(
        ctx,
        category_id=category_id,
        search=None if by_author else search,
        search_type=search_type,
        sort_by=sort_by,
        limit=limit,
    )
    items = await _decorate_threads(ctx, rows, viewer_user_id, "thread list")
    if by_author:
        needle = search.lower()
        items = [
            item for item in items
            if item.author.id is not None
            and (needle in item.author.username.lower() or needle in item.author.display_name.lower())
        ]
    return items[:limit]


async def build_thread_detail(ctx: ForumContext, thread_id: int,
                              viewer_user_id: Optional[UserId] = None) -> ThreadDetail:
    await increment_thread_views(ctx, thread_id)
    thread = await get_thread(ctx, thread_id)
    posts, related, viewer = await asyncio.gather(
        list_thread_posts(ctx, thread_id),
        get_related_threads(ctx, thread),
        _viewer_profile_id(ctx, viewer_user_id),
    )
    author_ids = [thread["author_id"]] + [p["author_id"] for p in posts] + [r["author_id"] for r in related]
    profiles, categories = await asyncio.gather(
        get_profiles_by_ids(ctx, author_ids),
        get_categories_by_ids(ctx, [thread["category_id"]]),
    )
    post_ids = [p["id"] for p in posts]
    fields = await gather_fields("thread detail", {
        "like_count": (get_thread_like_count(ctx, thread_id), 0),
        "liked_threads": (threads_liked_by(ctx, viewer, [thread_id]) if viewer else _empty_set(), set()),
        "post_likes": (count_likes_by_post(ctx, post_ids), {}),
        "liked_posts": (posts_liked_by(ctx, viewer, post_ids) if viewer else _empty_set(), set()),
    })

    post_views = [
        PostView(
            **post,
            author=author_summary(profiles.get(post["author_id"])),
            likes=[{"count": fields["post_likes"].get(post["id"], 0)}],
            user_liked=post["id"] in fields["liked_posts"],
            position=position,
        )
        for position, post in enumerate(posts, start=1)
    ]
    related_views = [
        RelatedThread(**row, author=author_summary(profiles.get(row["author_id"])))
        for row in related
    ]
    return ThreadDetail(
        **thread,
        author=author_summary(profiles.get(thread["author_id"])),
        category=category_summary(categories.get(thread["category_id"])),
        like_count=fields["like_count"],
        is_liked=thread_id in fields["liked_threads"],
        posts=post_views,
        related_threads=related_views,
    )


async def build_profile_page(ctx: ForumContext, username: str,
                             viewer_user_id: Optional[UserId] = None) -> ProfilePage:
    user = await get_user_by_username(ctx, username)
    if not user:
        raise NotFound("profile page", message=f"User {username} not found")
    user_id = UserId(user["id"])
    settings = await get_user_settings(ctx, user_id)
    if viewer_user_id is None and not settings.show_profile_to_guests:
        raise PermissionDenied("Sign in to view this profile")

    is_own = viewer_user_id == user_id
    if not is_own:
        profile = await find_profile(ctx, user_id)
        if profile:
            await increment_profile_views(ctx, ProfileId(profile["id"]))

    view = await get_user_profile(ctx, user_id)
    if view is None:
        raise NotFound("profile page", message=f"User {username} not found")
    if not is_own:
        view.email = None

    async def is_following():
        if viewer_user_id is None or is_own:
            return False
        return await check_follow_status(ctx, viewer_user_id, user_id)

    fields = await gather_fields("profile page", {
        "follow_counts": (get_follow_counts(ctx, user_id), FollowCounts()),
        "is_following": (is_following(), False),
    })
    return ProfilePage(
        profile=view,
        settings=settings,
        follow_counts=fields["follow_counts"],
        is_following=fields["is_following"],
        is_own_profile=is_own,
    )


async def build_reviews(ctx: ForumContext, viewer_user_id: Optional[UserId] = None,
                        limit: int = 50) -> List[ThreadListItem]:
    category = await get_category_by_name(ctx, REVIEWS_CATEGORY)
    if not category:
        logger.warning("No %r category, reviews listing is empty", REVIEWS_CATEGORY)
        return []
    return await build_thread_list(ctx, viewer_user_id, category_id=category["id"], limit=limit)


async def build_home_page(ctx: ForumContext, viewer_user_id: Optional[UserId] = None) -> HomePage:
    recent_threads, recent_reviews = await asyncio.gather(
        build_thread_list(ctx, viewer_user_id, limit=5),
        build_reviews(ctx, viewer_user_id, limit=5),
    )
    return HomePage(recent_threads=recent_threads, recent_reviews=recent_reviews)


async def search(ctx: ForumContext, query: str, scope: str = 'all') -> List[SearchResult]:
    """Header search: up to 5 matching threads followed by up to 3 users."""
    if scope not in SEARCH_SCOPES:
        raise ValidationError('scope', f'scope must be one of: {list(SEARCH_SCOPES)}')
    query = (query or "").strip()
    if not query:
        return []
    pattern = contains_pattern(query)

    async def threads():
        if scope == 'users':
            return []
        return await ctx.client.select(
            "threads",
            ["id", "title", "content", "category_id"],
            [any_ilike(["title", "content"], pattern)],
            order=[desc("created_at"), desc("id")],
            limit=5,
        )

    async def users():
        if scope == 'threads':
            return []
        return await ctx.client.select(
            "profiles",
            ["user_id", "username", "display_name", "avatar_url"],
            [ilike("username", pattern)],
            order=[desc("created_at"), desc("id")],
            limit=3,
        )

    thread_rows, user_rows = await asyncio.gather(threads(), users())
    categories = await get_categories_by_ids(ctx, [row["category_id"] for row in thread_rows])
    results = [
        SearchResult(
            id=row["id"],
            title=row["title"],
            type='thread',
            content=row["content"][:150],
            category=category_summary(categories.get(row["category_id"])).name,
        )
        for row in thread_rows
    ]
    results.extend(
        SearchResult(
            id=row["user_id"],
            title=row["display_name"] or row["username"],
            type='user',
            username=row["username"],
            avatar_url=row["avatar_url"],
        )
        for row in user_rows
    )
    return results


# Admin dashboard

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def build_admin_stats(ctx: ForumContext, now: Optional[datetime] = None) -> AdminStats:
    today = start_of_day((now or _utcnow()).astimezone(timezone.utc)).isoformat(timespec="microseconds")
    counts = ctx.client.count
    fields = await gather_fields("admin stats", {
        "total_users": (counts("users"), 0),
        "total_threads": (counts("threads"), 0),
        "total_posts": (counts("posts"), 0),
        "total_reports": (counts("reports"), 0),
        "today_users": (counts("users", [gte("created_at", today)]), 0),
        "today_threads": (counts("threads", [gte("created_at", today)]), 0),
        "today_posts": (counts("posts", [gte("created_at", today)]), 0),
        "pending_reports": (counts("reports", [eq("status", "pending")]), 0),
    })
    return AdminStats(**fields)


def _truncate(text: Optional[str], length: int) -> str:
    if not text:
        return "Untitled"
    return text if len(text) <= length else text[:length] + "..."


async def build_recent_activity(ctx: ForumContext, now: Optional[datetime] = None,
                                limit: int = 8) -> List[ActivityItem]:
    """Newest registrations, threads, reports and replies, newest first."""
    now = now or _utcnow()
    newest = [desc("created_at"), desc("id")]
    sources = await gather_fields("recent activity", {
        "users": (ctx.client.select("profiles", ["id", "username", "created_at"], order=newest, limit=3), []),
        "threads": (ctx.client.select(
            "threads", ["id", "title", "author_id", "category_id", "created_at"], order=newest, limit=4), []),
        "reports": (ctx.client.select(
            "reports", ["id", "reporter_id", "report_type", "status", "created_at"], order=newest, limit=3), []),
        "posts": (ctx.client.select(
            "posts", ["id", "author_id", "thread_id", "created_at"], order=newest, limit=3), []),
    })
    profile_ids = [t["author_id"] for t in sources["threads"]]
    profile_ids += [r["reporter_id"] for r in sources["reports"]]
    profile_ids += [p["author_id"] for p in sources["posts"]]
    thread_ids = sorted({p["thread_id"] for p in sources["posts"]})
    lookups = await gather_fields("recent activity", {
        "profiles": (get_profiles_by_ids(ctx, profile_ids), {}),
        "categories": (get_categories_by_ids(ctx, [t["category_id"] for t in sources["threads"]]), {}),
        "threads": (ctx.client.select("threads", ["id", "title"], [in_("id", thread_ids)]) if thread_ids
                    else _empty_list(), []),
    })
    profiles = lookups["profiles"]
    categories = lookups["categories"]
    titles = {t["id"]: t["title"] for t in lookups["threads"]}

    def username(profile_id) -> Optional[str]:
        return (profiles.get(profile_id) or {}).get("username")

    pending = []
    for user in sources["users"]:
        pending.append(("user_%s" % user["id"], "user_register", user["created_at"],
                        f"New user registered: @{user['username']}", user["username"], "low"))
    for thread in sources["threads"]:
        author = username(thread["author_id"])
        category = (categories.get(thread["category_id"]) or {}).get("name")
        description = f'@{author or UNKNOWN_USER} started a new thread: "{_truncate(thread["title"], 40)}"'
        if category:
            description += f" ({category})"
        pending.append(("thread_%s" % thread["id"], "thread_create", thread["created_at"],
                        description, author, "low"))
    for report in sources["reports"]:
        reporter = username(report["reporter_id"])
        pending.append(("report_%s" % report["id"], "report_create", report["created_at"],
                        f"@{reporter or UNKNOWN_USER} reported a {report['report_type']}", reporter,
                        "medium" if report["status"] == "pending" else "low"))
    for post in sources["posts"]:
        author = username(post["author_id"])
        title = _truncate(titles.get(post["thread_id"]), 30)
        pending.append(("post_%s" % post["id"], "post_create", post["created_at"],
                        f'@{author or UNKNOWN_USER} replied to "{title}"', author, "low"))

    epoch = datetime.min.replace(tzinfo=timezone.utc)
    timed = [(parse_timestamp(entry[2]) or epoch, entry) for entry in pending]
    timed.sort(key=lambda pair: pair[0], reverse=True)
    return [
        ActivityItem(
            id=item_id,
            type=kind,
            description=description,
            occurred_at=occurred_at,
            time=format_time_ago(occurred_at, now),
            username=name,
            severity=severity,
        )
        for occurred_at, (item_id, kind, _, description, name, severity) in timed[:limit]
    ]


async def _empty_list():
    return []


async def build_admin_thread_list(ctx: ForumContext, search: Optional[str] = None,
                                  category_id: Optional[int] = None, status: str = 'all',
                                  sort_by: str = 'newest') -> List[AdminThreadItem]:
    """Every thread with its counters, filtered and sorted for the moderation screen."""
    if status not in ADMIN_STATUS_FILTERS:
        raise ValidationError('status', f'status must be one of: {list(ADMIN_STATUS_FILTERS)}')
    if sort_by not in ADMIN_SORT_OPTIONS:
        raise ValidationError('sort_by', f'sort_by must be one of: {list(ADMIN_SORT_OPTIONS)}')

    rows = await ctx.client.select("threads", order=[desc("created_at"), desc("id")])
    if not rows:
        return []
    profiles, categories = await asyncio.gather(
        get_profiles_by_ids(ctx, [row["author_id"] for row in rows]),
        get_categories_by_ids(ctx, [row["category_id"] for row in rows]),
    )
    counts = await gather_fields("admin thread list", {
        "posts": (ctx.client.count_by("posts", "thread_id"), {}),
        "likes": (ctx.client.count_by("thread_likes", "thread_id"), {}),
    })
    items = [
        AdminThreadItem(
            id=row["id"],
            title=row["title"],
            content=row["content"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            view_count=row["view_count"] or 0,
            is_pinned=bool(row["is_pinned"]),
            is_locked=bool(row["is_locked"]),
            author=author_summary(profiles.get(row["author_id"])),
            category=category_summary(categories.get(row["category_id"])),
            stats=AdminThreadStats(
                post_count=counts["posts"].get(row["id"], 0),
                like_count=counts["likes"].get(row["id"], 0),
            ),
        )
        for row in rows
    ]

    if search and search.strip():
        needle = search.strip().lower()
        items = [i for i in items if needle in i.title.lower() or needle in i.author.username.lower()]
    if category_id:
        items = [i for i in items if i.category.id == category_id]
    if status == 'pinned':
        items = [i for i in items if i.is_pinned]
    elif status == 'locked':
        items = [i for i in items if i.is_locked]
    elif status == 'normal':
        items = [i for i in items if not i.is_pinned and not i.is_locked]

    if sort_by == 'newest':
        items.sort(key=lambda i: parse_timestamp(i.created_at), reverse=True)
    elif sort_by == 'oldest':
        items.sort(key=lambda i: parse_timestamp(i.created_at))
    elif sort_by == 'title':
        items.sort(key=lambda i: i.title.lower())
    elif sort_by == 'views':
        items.sort(key=lambda i: i.view_count, reverse=True)
    elif sort_by == 'activity':
        items.sort(key=lambda i: i.stats.post_count, reverse=True)
    return items
