import logging
import time
from pathlib import Path
from typing import Optional

from context import ForumContext
from errors import ForumError, ValidationError
from schemas.shared import UserId
from services.profiles import find_profile
from services.users import update_profile

logger = logging.getLogger(__name__)

# Configuration
AVATAR_BUCKET = "avatars"
ALLOWED_EXTENSIONS = {'jpg', 'jpeg', 'png', 'gif', 'webp'}
MAX_FILE_SIZE = 2 * 1024 * 1024  # 2MB


def validate_avatar(filename: str, content_type: Optional[str], size: int) -> str:
    """Check an avatar upload and return its normalised extension."""
    if size > MAX_FILE_SIZE:
        raise ValidationError('avatar', 'File size cannot exceed 2MB')
    if not content_type or not content_type.startswith('image/'):
        raise ValidationError('avatar', 'Only image files can be uploaded')
    ext = Path(filename or "").suffix.lower().lstrip('.')
    if ext not in ALLOWED_EXTENSIONS:
        raise ValidationError('avatar', 'Unsupported file format. Upload a PNG, JPG, GIF or WebP file.')
    return ext


def avatar_path(username: str, ext: str, timestamp_ms: Optional[int] = None) -> str:
    """Path inside the avatar bucket: ``{username}-{timestamp}.{ext}``."""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"{username}-{timestamp_ms}.{ext}"


def stored_avatar_path(avatar_url: Optional[str]) -> Optional[str]:
    """Path inside the avatar bucket for a URL we issued, else None."""
    if not avatar_url:
        return None
    marker = f"/cdn/{AVATAR_BUCKET}/"
    if marker not in avatar_url:
        return None
    return avatar_url.split(marker, 1)[1]


async def replace_avatar(ctx: ForumContext, user_id: UserId, username: str, filename: str,
                         content_type: Optional[str], content: bytes) -> str:
    """Store a new avatar, point the profile at it and drop the old file."""
    ext = validate_avatar(filename, content_type, len(content))
    profile = await find_profile(ctx, user_id)
    old_path = stored_avatar_path((profile or {}).get("avatar_url"))

    new_path = avatar_path(username, ext)
    url = await ctx.client.upload_blob(AVATAR_BUCKET, new_path, content)
    await update_profile(ctx, user_id, avatar_url=url)

    if old_path and old_path != new_path:
        try:
            await ctx.client.remove_blob(AVATAR_BUCKET, old_path)
        except (ForumError, ValueError) as exc:
            logger.warning("Could not delete old avatar %s: %s", old_path, exc)
    return url
