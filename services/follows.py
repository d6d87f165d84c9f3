import asyncio
import logging
from typing import List

from context import ForumContext
from errors import ValidationError
from query_client import asc, eq, in_
from schemas.profile import FollowCounts, FollowUser
from schemas.shared import ProfileId, UserId
from services.profiles import resolve_profile_id

logger = logging.getLogger(__name__)


async def _resolve_pair(ctx: ForumContext, follower_id: UserId, following_id: UserId):
    return await asyncio.gather(resolve_profile_id(ctx, follower_id), resolve_profile_id(ctx, following_id))


async def follow_user(ctx: ForumContext, follower_id: UserId, following_id: UserId) -> bool:
    """Follow ``following_id``. Following someone twice is a no-op and returns False."""
    if follower_id == following_id:
        raise ValidationError('following_id', 'You cannot follow yourself')
    follower, following = await _resolve_pair(ctx, follower_id, following_id)
    row = await ctx.client.insert(
        "follows", {"follower_id": follower, "following_id": following}, ignore_conflicts=True
    )
    if row is not None:
        logger.info("Profile %s now follows profile %s", follower, following)
    return row is not None


async def unfollow_user(ctx: ForumContext, follower_id: UserId, following_id: UserId) -> bool:
    follower, following = await _resolve_pair(ctx, follower_id, following_id)
    deleted = await ctx.client.delete("follows", [eq("follower_id", follower), eq("following_id", following)])
    return deleted > 0


async def check_follow_status(ctx: ForumContext, follower_id: UserId, following_id: UserId) -> bool:
    follower, following = await _resolve_pair(ctx, follower_id, following_id)
    row = await ctx.client.maybe_one("follows", ["id"], [eq("follower_id", follower), eq("following_id", following)])
    return row is not None


async def get_follow_counts(ctx: ForumContext, user_id: UserId) -> FollowCounts:
    profile_id = await resolve_profile_id(ctx, user_id)
    follower_count, following_count = await asyncio.gather(
        ctx.client.count("follows", [eq("following_id", profile_id)]),
        ctx.client.count("follows", [eq("follower_id", profile_id)]),
    )
    return FollowCounts(follower_count=follower_count, following_count=following_count)


async def _edge_profiles(ctx: ForumContext, profile_ids: List[ProfileId]) -> List[FollowUser]:
    """Dereference each edge's profile and its user account, keeping edge order."""
    if not profile_ids:
        return []
    profiles = {p["id"]: p for p in await ctx.client.select("profiles", filters=[in_("id", profile_ids)])}
    user_ids = [p["user_id"] for p in profiles.values()]
    users = {u["id"]: u for u in await ctx.client.select("users", ["id", "username"], [in_("id", user_ids)])}
    result = []
    for pid in profile_ids:
        profile = profiles.get(pid)
        if not profile:
            result.append(FollowUser())
            continue
        username = users.get(profile["user_id"], {}).get("username")
        result.append(FollowUser(
            id=profile["user_id"],
            username=username,
            display_name=profile.get("display_name") or username,
            avatar_url=profile.get("avatar_url"),
        ))
    return result


async def get_followers_list(ctx: ForumContext, user_id: UserId) -> List[FollowUser]:
    profile_id = await resolve_profile_id(ctx, user_id)
    edges = await ctx.client.select("follows", ["follower_id"], [eq("following_id", profile_id)], order=[asc("id")])
    return await _edge_profiles(ctx, [edge["follower_id"] for edge in edges])


async def get_following_list(ctx: ForumContext, user_id: UserId) -> List[FollowUser]:
    profile_id = await resolve_profile_id(ctx, user_id)
    edges = await ctx.client.select("follows", ["following_id"], [eq("follower_id", profile_id)], order=[asc("id")])
    return await _edge_profiles(ctx, [edge["following_id"] for edge in edges])
