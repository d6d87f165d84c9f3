import asyncio
import logging
from typing import Dict, Iterable, List, Set

from context import ForumContext
from errors import NotFound, ThreadLocked, ValidationError
from query_client import asc, desc, eq, in_, lt
from schemas.posts import POST_CONTENT_MAX, PostLikeState, PostSummary, ThreadRef
from schemas.shared import ProfileId, UserId
from services.profiles import resolve_profile_id
from services.threads import get_thread

logger = logging.getLogger(__name__)


async def create_post(ctx: ForumContext, user_id: UserId, thread_id: int, content: str) -> dict:
    if not content or not content.strip():
        raise ValidationError('content', 'Reply content is required')
    if len(content) > POST_CONTENT_MAX:
        raise ValidationError('content', f'Reply must be at most {POST_CONTENT_MAX} characters long')
    thread = await get_thread(ctx, thread_id)
    if thread["is_locked"]:
        raise ThreadLocked(thread_id)
    author_id = await resolve_profile_id(ctx, user_id)
    post = await ctx.client.insert("posts", {
        "content": content,
        "author_id": author_id,
        "thread_id": thread_id,
    })
    logger.info("Post %s added to thread %s by profile %s", post["id"], thread_id, author_id)
    return post


async def get_post(ctx: ForumContext, post_id: int) -> dict:
    try:
        return await ctx.client.select_one("posts", filters=[eq("id", post_id)])
    except NotFound:
        raise NotFound("get post", message=f"Post {post_id} not found")


async def list_thread_posts(ctx: ForumContext, thread_id: int) -> List[dict]:
    return await ctx.client.select(
        "posts", filters=[eq("thread_id", thread_id)], order=[asc("created_at"), asc("id")]
    )


async def get_post_position(ctx: ForumContext, post: dict) -> int:
    """1-based position of ``post`` within its thread."""
    earlier = await ctx.client.count(
        "posts", [eq("thread_id", post["thread_id"]), lt("created_at", post["created_at"])]
    )
    return earlier + 1


# Post likes

async def like_post(ctx: ForumContext, post_id: int, user_id: UserId) -> bool:
    """Like a post. Returns False when the like already existed."""
    profile_id = await resolve_profile_id(ctx, user_id)
    row = await ctx.client.insert("likes", {"user_id": profile_id, "post_id": post_id}, ignore_conflicts=True)
    return row is not None


async def unlike_post(ctx: ForumContext, post_id: int, user_id: UserId) -> bool:
    profile_id = await resolve_profile_id(ctx, user_id)
    deleted = await ctx.client.delete("likes", [eq("user_id", profile_id), eq("post_id", post_id)])
    return deleted > 0


async def check_user_post_like(ctx: ForumContext, post_id: int, user_id: UserId) -> bool:
    profile_id = await resolve_profile_id(ctx, user_id)
    row = await ctx.client.maybe_one("likes", ["id"], [eq("user_id", profile_id), eq("post_id", post_id)])
    return row is not None


async def get_post_like_count(ctx: ForumContext, post_id: int) -> int:
    return await ctx.client.count("likes", [eq("post_id", post_id)])


async def toggle_post_like(ctx: ForumContext, post_id: int, user_id: UserId) -> PostLikeState:
    await get_post(ctx, post_id)
    if await check_user_post_like(ctx, post_id, user_id):
        await unlike_post(ctx, post_id, user_id)
        liked = False
    else:
        await like_post(ctx, post_id, user_id)
        liked = True
    return PostLikeState(post_id=post_id, liked=liked, like_count=await get_post_like_count(ctx, post_id))


async def count_likes_by_post(ctx: ForumContext, post_ids: Iterable[int]) -> Dict[int, int]:
    ids = list(post_ids)
    if not ids:
        return {}
    return await ctx.client.count_by("likes", "post_id", [in_("post_id", ids)])


async def posts_liked_by(ctx: ForumContext, profile_id: ProfileId, post_ids: Iterable[int]) -> Set[int]:
    ids = list(post_ids)
    if not ids:
        return set()
    rows = await ctx.client.select("likes", ["post_id"], [eq("user_id", profile_id), in_("post_id", ids)])
    return {row["post_id"] for row in rows}


async def get_user_latest_posts(ctx: ForumContext, profile_id: ProfileId, limit: int = 5) -> List[PostSummary]:
    rows = await ctx.client.select(
        "posts", filters=[eq("author_id", profile_id)], order=[desc("created_at"), desc("id")], limit=limit
    )
    if not rows:
        return []
    thread_rows, like_counts, positions = await asyncio.gather(
        ctx.client.select("threads", ["id", "title"], [in_("id", {row["thread_id"] for row in rows})]),
        count_likes_by_post(ctx, [row["id"] for row in rows]),
        asyncio.gather(*(get_post_position(ctx, row) for row in rows)),
    )
    threads = {t["id"]: t for t in thread_rows}
    return [
        PostSummary(
            id=row["id"],
            content=row["content"],
            created_at=row["created_at"],
            author_id=row["author_id"],
            thread_id=row["thread_id"],
            threads=ThreadRef(**threads[row["thread_id"]]) if row["thread_id"] in threads else None,
            likes={"count": like_counts.get(row["id"], 0)},
            position=position,
        )
        for row, position in zip(rows, positions)
    ]
