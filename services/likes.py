"""Thread likes. Post likes live with the posts in ``services.posts``."""
import logging
from typing import Dict, Iterable, Set

from context import ForumContext
from query_client import eq, in_
from schemas.shared import ProfileId, UserId
from services.profiles import resolve_profile_id

logger = logging.getLogger(__name__)


async def like_thread(ctx: ForumContext, thread_id: int, user_id: UserId) -> bool:
    """Like a thread. Liking twice is a no-op and returns False."""
    profile_id = await resolve_profile_id(ctx, user_id)
    row = await ctx.client.insert(
        "thread_likes", {"user_id": profile_id, "thread_id": thread_id}, ignore_conflicts=True
    )
    return row is not None


async def unlike_thread(ctx: ForumContext, thread_id: int, user_id: UserId) -> bool:
    profile_id = await resolve_profile_id(ctx, user_id)
    deleted = await ctx.client.delete("thread_likes", [eq("user_id", profile_id), eq("thread_id", thread_id)])
    return deleted > 0


async def check_user_thread_like(ctx: ForumContext, thread_id: int, user_id: UserId) -> bool:
    profile_id = await resolve_profile_id(ctx, user_id)
    row = await ctx.client.maybe_one(
        "thread_likes", ["id"], [eq("user_id", profile_id), eq("thread_id", thread_id)]
    )
    return row is not None


async def get_thread_like_count(ctx: ForumContext, thread_id: int) -> int:
    return await ctx.client.count("thread_likes", [eq("thread_id", thread_id)])


async def count_likes_by_thread(ctx: ForumContext, thread_ids: Iterable[int]) -> Dict[int, int]:
    ids = list(thread_ids)
    if not ids:
        return {}
    return await ctx.client.count_by("thread_likes", "thread_id", [in_("thread_id", ids)])


async def threads_liked_by(ctx: ForumContext, profile_id: ProfileId, thread_ids: Iterable[int]) -> Set[int]:
    ids = list(thread_ids)
    if not ids:
        return set()
    rows = await ctx.client.select(
        "thread_likes", ["thread_id"], [eq("user_id", profile_id), in_("thread_id", ids)]
    )
    return {row["thread_id"] for row in rows}
