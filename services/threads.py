import logging
from typing import Dict, Iterable, List, Optional

from context import ForumContext
from errors import NotFound, ValidationError
from query_client import contains_pattern, desc, asc, eq, ilike, in_, neq, utcnow_iso
from schemas.shared import ProfileId, UserId
from schemas.threads import THREAD_CONTENT_MAX, THREAD_TITLE_MAX, ThreadSummary
from services.categories import category_summary, get_categories_by_ids, get_category
from services.profiles import resolve_profile_id

logger = logging.getLogger(__name__)

SORT_ORDERS = {
    'newest': [desc('created_at'), desc('id')],
    'oldest': [asc('created_at'), asc('id')],
    'popular': [desc('view_count'), desc('id')],
}


def validate_thread(title: str, content: str, category_id: Optional[int]):
    """Field checks run before any query is issued."""
    if not title or not title.strip():
        raise ValidationError('title', 'Thread title is required')
    if len(title.strip()) > THREAD_TITLE_MAX:
        raise ValidationError('title', f'Thread title must be at most {THREAD_TITLE_MAX} characters long')
    if not content or not content.strip():
        raise ValidationError('content', 'Thread content is required')
    if len(content.strip()) > THREAD_CONTENT_MAX:
        raise ValidationError('content', f'Thread content must be at most {THREAD_CONTENT_MAX} characters long')
    if not category_id:
        raise ValidationError('category_id', 'A category is required')


async def create_thread(ctx: ForumContext, user_id: UserId, title: str, content: str,
                        category_id: Optional[int]) -> dict:
    validate_thread(title, content, category_id)
    author_id = await resolve_profile_id(ctx, user_id)
    try:
        await get_category(ctx, category_id)
    except NotFound:
        raise ValidationError('category_id', 'Category not found')
    thread = await ctx.client.insert("threads", {
        "title": title.strip(),
        "content": content.strip(),
        "author_id": author_id,
        "category_id": category_id,
        "view_count": 0,
    })
    logger.info("Thread %s created by profile %s", thread["id"], author_id)
    return thread


async def get_thread(ctx: ForumContext, thread_id: int) -> dict:
    try:
        return await ctx.client.select_one("threads", filters=[eq("id", thread_id)])
    except NotFound:
        raise NotFound("get thread", message=f"Thread {thread_id} not found")


async def increment_thread_views(ctx: ForumContext, thread_id: int):
    await ctx.client.increment("threads", "view_count", [eq("id", thread_id)])


async def fetch_thread_rows(ctx: ForumContext, category_id: Optional[int] = None, search: Optional[str] = None,
                            search_type: str = 'title', sort_by: str = 'newest', limit: int = 50) -> List[dict]:
    """Base rows for the forum listing. Pinned threads always come first.

    Author search cannot be expressed as a filter on ``threads``; it is
    applied by the caller after the fetch.
    """
    filters = []
    if category_id:
        filters.append(eq("category_id", category_id))
    if search:
        if search_type == 'title':
            filters.append(ilike("title", contains_pattern(search)))
        elif search_type == 'content':
            filters.append(ilike("content", contains_pattern(search)))
    order = [desc("is_pinned")] + SORT_ORDERS.get(sort_by, SORT_ORDERS['newest'])
    return await ctx.client.select("threads", filters=filters, order=order, limit=limit)


async def get_related_threads(ctx: ForumContext, thread: dict, limit: int = 5) -> List[dict]:
    if not thread.get("category_id"):
        return []
    return await ctx.client.select(
        "threads",
        ["id", "title", "created_at", "view_count", "author_id"],
        [eq("category_id", thread["category_id"]), neq("id", thread["id"])],
        order=[desc("created_at"), desc("id")],
        limit=limit,
    )


async def set_thread_flags(ctx: ForumContext, thread_id: int, **flags) -> int:
    values = {name: bool(value) for name, value in flags.items()}
    values["updated_at"] = utcnow_iso()
    updated = await ctx.client.update("threads", values, [eq("id", thread_id)])
    if not updated:
        raise NotFound("update thread", message=f"Thread {thread_id} not found")
    return updated


async def delete_thread(ctx: ForumContext, thread_id: int):
    deleted = await ctx.client.delete("threads", [eq("id", thread_id)])
    if not deleted:
        raise NotFound("delete thread", message=f"Thread {thread_id} not found")
    logger.info("Thread %s deleted", thread_id)


async def count_posts_by_thread(ctx: ForumContext, thread_ids: Iterable[int]) -> Dict[int, int]:
    ids = list(thread_ids)
    if not ids:
        return {}
    return await ctx.client.count_by("posts", "thread_id", [in_("thread_id", ids)])


async def get_user_latest_threads(ctx: ForumContext, profile_id: ProfileId, limit: int = 5) -> List[ThreadSummary]:
    rows = await ctx.client.select(
        "threads",
        filters=[eq("author_id", profile_id)],
        order=[desc("created_at"), desc("id")],
        limit=limit,
    )
    if not rows:
        return []
    categories = await get_categories_by_ids(ctx, [row["category_id"] for row in rows])
    post_counts = await count_posts_by_thread(ctx, [row["id"] for row in rows])
    return [
        ThreadSummary(
            id=row["id"],
            title=row["title"],
            content=row["content"],
            created_at=row["created_at"],
            author_id=row["author_id"],
            category_id=row["category_id"],
            view_count=row["view_count"] or 0,
            categories=category_summary(categories.get(row["category_id"])),
            posts={"count": post_counts.get(row["id"], 0)},
        )
        for row in rows
    ]
