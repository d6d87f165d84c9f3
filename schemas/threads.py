from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime
from schemas.shared import AuthorSummary, CategorySummary, CountSummary

THREAD_TITLE_MAX = 200
THREAD_CONTENT_MAX = 5000
SORT_OPTIONS = ('newest', 'oldest', 'popular')
SEARCH_TYPES = ('title', 'content', 'author')


class ThreadCreate(BaseModel):
    title: str
    content: str
    category_id: Optional[int] = None


class ThreadListItem(BaseModel):
    id: int
    title: str
    content: str
    author_id: Optional[int] = None
    category_id: Optional[int] = None
    view_count: int = 0
    is_pinned: bool = False
    is_locked: bool = False
    created_at: datetime
    updated_at: Optional[datetime] = None
    author: AuthorSummary = AuthorSummary()
    category: CategorySummary = CategorySummary()
    post_count: int = 0
    like_count: int = 0
    is_liked: bool = False


class RelatedThread(BaseModel):
    id: int
    title: str
    created_at: datetime
    view_count: int = 0
    author: AuthorSummary = AuthorSummary()


class ThreadSummary(BaseModel):
    """A thread as listed on its author's profile."""
    id: int
    title: str
    content: str
    created_at: datetime
    author_id: Optional[int] = None
    category_id: Optional[int] = None
    view_count: int = 0
    categories: CategorySummary = CategorySummary()
    posts: CountSummary = CountSummary()

