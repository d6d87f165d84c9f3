from pydantic import BaseModel
from typing import NewType, Optional

# users.id and profiles.id are different key spaces. Content tables
# (threads, posts, likes, follows, reports) always hold a ProfileId.
UserId = NewType("UserId", int)
ProfileId = NewType("ProfileId", int)

DEFAULT_AVATAR_URL = "https://ui-avatars.com/api/?background=6366F1&color=fff&name="
DELETED_USER = "Deleted User"
UNKNOWN_CATEGORY = "Unknown"


class AuthorSummary(BaseModel):
    id: Optional[int] = None  # profiles.id
    username: str = DELETED_USER
    display_name: str = DELETED_USER
    avatar_url: Optional[str] = None
    role: str = "user"
    bio: Optional[str] = None


class CategorySummary(BaseModel):
    id: int = 0
    name: str = UNKNOWN_CATEGORY


class CountSummary(BaseModel):
    count: int = 0
