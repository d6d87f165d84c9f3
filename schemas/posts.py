from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime
from schemas.shared import AuthorSummary, CategorySummary, CountSummary
from schemas.threads import RelatedThread

POST_CONTENT_MAX = 5000


class PostCreate(BaseModel):
    content: str


class PostView(BaseModel):
    id: int
    content: str
    author_id: Optional[int] = None
    thread_id: int
    created_at: datetime
    updated_at: Optional[datetime] = None
    author: AuthorSummary = AuthorSummary()
    likes: List[CountSummary] = []
    user_liked: bool = False
    position: int = 1


class ThreadRef(BaseModel):
    id: int
    title: str


class PostSummary(BaseModel):
    """A post as listed on its author's profile."""
    id: int
    content: str
    created_at: datetime
    author_id: Optional[int] = None
    thread_id: int
    threads: Optional[ThreadRef] = None
    likes: CountSummary = CountSummary()
    position: int = 1


class PostLikeState(BaseModel):
    post_id: int
    liked: bool
    like_count: int


class ThreadDetail(BaseModel):
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
    like_count: int = 0
    is_liked: bool = False
    posts: List[PostView] = []
    related_threads: List[RelatedThread] = []
