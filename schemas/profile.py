from pydantic import BaseModel, validator
from typing import List, Optional
from schemas.posts import PostSummary
from schemas.threads import ThreadSummary

DISPLAY_NAME_MAX = 50
BIO_MAX = 500


class ProfileStats(BaseModel):
    thread_count: int = 0
    post_count: int = 0
    like_count: int = 0
    follower_count: int = 0
    joined: Optional[str] = None


class ProfileView(BaseModel):
    id: int  # users.id
    username: str
    email: Optional[str] = None
    avatar_url: str
    display_name: str
    bio: str = ""
    role: str = "user"
    profile_id: Optional[int] = None
    views: int = 0
    stats: ProfileStats = ProfileStats()
    latest_threads: List[ThreadSummary] = []
    latest_posts: List[PostSummary] = []


class ProfileUpdate(BaseModel):
    display_name: Optional[str] = None
    bio: Optional[str] = None

    @validator('display_name')
    def validate_display_name(cls, v):
        if v is not None:
            v = v.strip()
            if len(v) < 1:
                raise ValueError('Display name cannot be empty')
            if len(v) > DISPLAY_NAME_MAX:
                raise ValueError(f'Display name must be at most {DISPLAY_NAME_MAX} characters long')
        return v

    @validator('bio')
    def validate_bio(cls, v):
        if v is not None and len(v) > BIO_MAX:
            raise ValueError(f'Bio must be at most {BIO_MAX} characters long')
        return v


class PrivacySettings(BaseModel):
    show_likes: bool = True
    show_followers: bool = True
    show_following: bool = True
    show_online_status: bool = True
    show_profile_to_guests: bool = True
    allow_messages: bool = True


class PrivacySettingsUpdate(BaseModel):
    show_likes: Optional[bool] = None
    show_followers: Optional[bool] = None
    show_following: Optional[bool] = None
    show_online_status: Optional[bool] = None
    show_profile_to_guests: Optional[bool] = None
    allow_messages: Optional[bool] = None


class FollowUser(BaseModel):
    id: Optional[int] = None  # users.id
    username: Optional[str] = None
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None


class FollowCounts(BaseModel):
    follower_count: int = 0
    following_count: int = 0


class ProfilePage(BaseModel):
    profile: ProfileView
    settings: PrivacySettings
    follow_counts: FollowCounts
    is_following: bool = False
    is_own_profile: bool = False
