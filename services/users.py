import logging
import re
from datetime import datetime
from typing import Optional

from auth import SessionIdentity, encode_session_token, hash_password, verify_password
from context import ForumContext
from errors import (
    ConstraintViolation,
    DataError,
    DuplicateEmail,
    DuplicateUsername,
    InvalidPassword,
    UserNotFound,
    ValidationError,
)
from query_client import eq, in_
from schemas.auth import SessionUser, Token
from schemas.profile import PrivacySettings, ProfileStats, ProfileView
from schemas.shared import ProfileId, UserId
from services.fanout import gather_fields
from services.posts import get_user_latest_posts
from services.profiles import default_avatar_url, find_profile
from services.threads import get_user_latest_threads

logger = logging.getLogger(__name__)

USERNAME_RE = re.compile(r"^[A-Za-z0-9_]{3,30}$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 6
PRIVACY_FLAGS = (
    "show_likes",
    "show_followers",
    "show_following",
    "show_online_status",
    "show_profile_to_guests",
    "allow_messages",
)


def validate_registration(username: str, email: str, password: str):
    if not username or not USERNAME_RE.match(username):
        raise ValidationError('username', 'Username must be 3-30 characters: letters, digits or underscore')
    if not email or not EMAIL_RE.match(email):
        raise ValidationError('email', 'Enter a valid email address')
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError('password', f'Password must be at least {MIN_PASSWORD_LENGTH} characters long')


async def get_user_by_id(ctx: ForumContext, user_id: UserId) -> Optional[dict]:
    return await ctx.client.maybe_one("users", filters=[eq("id", user_id)])


async def get_user_by_email(ctx: ForumContext, email: str) -> Optional[dict]:
    return await ctx.client.maybe_one("users", filters=[eq("email", email.strip().lower())])


async def get_user_by_username(ctx: ForumContext, username: str) -> Optional[dict]:
    return await ctx.client.maybe_one("users", filters=[eq("username", username)])


def session_user(user: dict, profile: Optional[dict]) -> SessionUser:
    return SessionUser(
        id=user["id"],
        username=user["username"],
        email=user["email"],
        role=user["role"] or "user",
        avatar_url=(profile or {}).get("avatar_url") or default_avatar_url(user["username"]),
    )


def issue_token(ctx: ForumContext, user: dict) -> str:
    identity = SessionIdentity(user_id=UserId(user["id"]), email=user["email"])
    return encode_session_token(identity, ctx.token_lifetime, ctx.settings.secret_key)


async def register_user(ctx: ForumContext, username: str, email: str, password: str) -> Token:
    username = (username or "").strip()
    email = (email or "").strip().lower()
    validate_registration(username, email, password)

    if await get_user_by_email(ctx, email):
        raise DuplicateEmail()
    if await get_user_by_username(ctx, username):
        raise DuplicateUsername()

    try:
        user = await ctx.client.insert("users", {
            "username": username,
            "email": email,
            "password_hash": hash_password(password),
            "role": "user",
        })
    except ConstraintViolation:
        # Lost a race with a concurrent registration
        if await get_user_by_email(ctx, email):
            raise DuplicateEmail()
        raise DuplicateUsername()
    try:
        profile = await ctx.client.insert("profiles", {
            "user_id": user["id"],
            "username": username,
            "display_name": username,
            "avatar_url": default_avatar_url(username),
            "bio": "",
            "role": "user",
        })
    except DataError as exc:
        logger.error("Profile creation failed for user %s, removing the account: %s", user["id"], exc)
        await ctx.client.delete("users", [eq("id", user["id"])])
        raise DataError("register user", exc, message="Could not create profile")

    logger.info("Registered user %s (%s)", user["id"], username)
    return Token(access_token=issue_token(ctx, user), user=session_user(user, profile))


async def login_user(ctx: ForumContext, email: str, password: str) -> Token:
    user = await get_user_by_email(ctx, email or "")
    if not user:
        raise UserNotFound()
    if not verify_password(password or "", user["password_hash"]):
        raise InvalidPassword()
    profile = await find_profile(ctx, UserId(user["id"]))
    if profile is None:
        logger.warning("User %s has no profile", user["id"])
    logger.info("User %s logged in", user["id"])
    return Token(access_token=issue_token(ctx, user), user=session_user(user, profile))


def _joined(created_at) -> Optional[str]:
    if not created_at:
        return None
    try:
        return datetime.fromisoformat(str(created_at)).date().isoformat()
    except ValueError:
        return None


async def _likes_received(ctx: ForumContext, profile_id: ProfileId) -> int:
    posts = await ctx.client.select("posts", ["id"], [eq("author_id", profile_id)])
    if not posts:
        return 0
    return await ctx.client.count("likes", [in_("post_id", [p["id"] for p in posts])])


async def get_user_profile(ctx: ForumContext, user_id: UserId) -> Optional[ProfileView]:
    """Account + profile + stats + latest activity, or None if the user does not exist."""
    user = await get_user_by_id(ctx, user_id)
    if not user:
        return None
    profile = await find_profile(ctx, user_id)
    if profile is None:
        logger.warning("User %s has no profile, using defaults", user_id)

    stats = ProfileStats(joined=_joined(user["created_at"]))
    latest_threads, latest_posts = [], []
    if profile is not None:
        profile_id = ProfileId(profile["id"])
        fields = await gather_fields("user profile", {
            "thread_count": (ctx.client.count("threads", [eq("author_id", profile_id)]), 0),
            "post_count": (ctx.client.count("posts", [eq("author_id", profile_id)]), 0),
            "like_count": (_likes_received(ctx, profile_id), 0),
            "follower_count": (ctx.client.count("follows", [eq("following_id", profile_id)]), 0),
            "latest_threads": (get_user_latest_threads(ctx, profile_id, 5), []),
            "latest_posts": (get_user_latest_posts(ctx, profile_id, 5), []),
        })
        latest_threads = fields.pop("latest_threads")
        latest_posts = fields.pop("latest_posts")
        stats = ProfileStats(joined=stats.joined, **fields)

    profile = profile or {}
    return ProfileView(
        id=user["id"],
        username=user["username"],
        email=user["email"],
        avatar_url=profile.get("avatar_url") or default_avatar_url(user["username"]),
        display_name=profile.get("display_name") or user["username"],
        bio=profile.get("bio") or "",
        role=user["role"] or "user",
        profile_id=profile.get("id"),
        views=profile.get("views") or 0,
        stats=stats,
        latest_threads=latest_threads,
        latest_posts=latest_posts,
    )


async def update_profile(ctx: ForumContext, user_id: UserId, display_name: Optional[str] = None,
                         bio: Optional[str] = None, avatar_url: Optional[str] = None) -> dict:
    changes = {}
    if display_name is not None:
        changes["display_name"] = display_name
    if bio is not None:
        changes["bio"] = bio
    if avatar_url is not None:
        changes["avatar_url"] = avatar_url
    if changes:
        await ctx.client.update("profiles", changes, [eq("user_id", user_id)])
    return await ctx.client.select_one("profiles", filters=[eq("user_id", user_id)])


async def increment_profile_views(ctx: ForumContext, profile_id: ProfileId):
    await ctx.client.increment("profiles", "views", [eq("id", profile_id)])


async def get_user_settings(ctx: ForumContext, user_id: UserId) -> PrivacySettings:
    row = await ctx.client.maybe_one("user_settings", filters=[eq("user_id", user_id)])
    if not row:
        return PrivacySettings()
    return PrivacySettings(**{flag: bool(row[flag]) for flag in PRIVACY_FLAGS})


async def update_user_settings(ctx: ForumContext, user_id: UserId, **changes) -> PrivacySettings:
    current = await get_user_settings(ctx, user_id)
    merged = current.dict()
    merged.update({flag: bool(value) for flag, value in changes.items() if flag in PRIVACY_FLAGS and value is not None})
    await ctx.client.upsert("user_settings", {"user_id": user_id, **merged}, on_conflict="user_id")
    return PrivacySettings(**merged)
