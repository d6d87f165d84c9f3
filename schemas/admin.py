from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from schemas.shared import AuthorSummary, CategorySummary


class AdminStats(BaseModel):
    total_users: int = 0
    total_threads: int = 0
    total_posts: int = 0
    total_reports: int = 0
    today_users: int = 0
    today_threads: int = 0
    today_posts: int = 0
    pending_reports: int = 0


class ActivityItem(BaseModel):
    id: str
    type: str  # 'user_register', 'thread_create', 'report_create' or 'post_create'
    description: str
    occurred_at: datetime
    time: str  # relative label, e.g. "3 minutes ago"
    username: Optional[str] = None
    severity: str = 'low'


class AdminThreadStats(BaseModel):
    post_count: int = 0
    like_count: int = 0


class AdminThreadItem(BaseModel):
    id: int
    title: str
    content: str
    created_at: datetime
    updated_at: Optional[datetime] = None
    view_count: int = 0
    is_pinned: bool = False
    is_locked: bool = False
    author: AuthorSummary = AuthorSummary()
    category: CategorySummary = CategorySummary()
    stats: AdminThreadStats = AdminThreadStats()


class ThreadFlagUpdate(BaseModel):
    value: Optional[bool] = None  # None toggles the current value
