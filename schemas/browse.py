from pydantic import BaseModel
from typing import List, Optional
from schemas.threads import ThreadListItem


class CategoryResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None


class SearchResult(BaseModel):
    id: int
    title: str
    type: str  # 'thread' or 'user'
    content: Optional[str] = None
    category: Optional[str] = None
    username: Optional[str] = None
    avatar_url: Optional[str] = None


class HomePage(BaseModel):
    recent_threads: List[ThreadListItem] = []
    recent_reviews: List[ThreadListItem] = []
