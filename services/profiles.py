"""Profile lookups shared by every content service.

Content tables point at ``profiles.id``; callers arrive with a ``users.id``.
Everything that crosses between the two goes through here.
"""
from typing import Dict, Iterable, Optional
from urllib.parse import quote

from context import ForumContext
from errors import NotFound
from query_client import eq, in_
from schemas.shared import DEFAULT_AVATAR_URL, DELETED_USER, AuthorSummary, ProfileId, UserId


def default_avatar_url(username: str) -> str:
    return f"{DEFAULT_AVATAR_URL}{quote(username)}"


async def find_profile(ctx: ForumContext, user_id: UserId) -> Optional[dict]:
    return await ctx.client.maybe_one("profiles", filters=[eq("user_id", user_id)])


async def resolve_profile_id(ctx: ForumContext, user_id: UserId) -> ProfileId:
    """Map a user id onto its profile id, raising ``NotFound`` if there is no profile."""
    try:
        row = await ctx.client.select_one("profiles", ["id"], [eq("user_id", user_id)])
    except NotFound:
        raise NotFound("resolve profile", message=f"No profile for user {user_id}")
    return ProfileId(row["id"])


async def get_profiles_by_ids(ctx: ForumContext, profile_ids: Iterable[Optional[int]]) -> Dict[int, dict]:
    ids = sorted({pid for pid in profile_ids if pid is not None})
    if not ids:
        return {}
    rows = await ctx.client.select("profiles", filters=[in_("id", ids)])
    return {row["id"]: row for row in rows}


def author_summary(profile: Optional[dict]) -> AuthorSummary:
    if not profile:
        return AuthorSummary()
    username = profile.get("username") or DELETED_USER
    return AuthorSummary(
        id=profile["id"],
        username=username,
        display_name=profile.get("display_name") or username,
        avatar_url=profile.get("avatar_url") or default_avatar_url(username),
        role=profile.get("role") or "user",
        bio=profile.get("bio"),
    )
