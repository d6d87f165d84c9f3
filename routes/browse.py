from typing import List, Literal, Optional

from fastapi import APIRouter, Depends

from context import ForumContext
from schemas.auth import SessionUser
from schemas.browse import CategoryResponse, HomePage, SearchResult
from schemas.threads import ThreadListItem
from services.aggregation import build_home_page, build_reviews, search
from services.categories import list_categories
from utils.route_helpers import get_context, get_optional_user

router = APIRouter(prefix="/browse", tags=["browse"])


def _viewer(user: Optional[SessionUser]):
    return user.id if user else None


@router.get("/home", response_model=HomePage)
async def home(current_user: Optional[SessionUser] = Depends(get_optional_user),
               ctx: ForumContext = Depends(get_context)):
    """Newest threads and newest reviews for the landing page."""
    return await build_home_page(ctx, _viewer(current_user))


@router.get("/reviews", response_model=List[ThreadListItem])
async def reviews(current_user: Optional[SessionUser] = Depends(get_optional_user),
                  ctx: ForumContext = Depends(get_context)):
    return await build_reviews(ctx, _viewer(current_user))


@router.get("/categories", response_model=List[CategoryResponse])
async def categories(ctx: ForumContext = Depends(get_context)):
    return await list_categories(ctx)


@router.get("/search", response_model=List[SearchResult])
async def header_search(q: str = "", scope: Literal['all', 'threads', 'users'] = 'all',
                        ctx: ForumContext = Depends(get_context)):
    return await search(ctx, q, scope)
