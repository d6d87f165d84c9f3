from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query, status

from context import ForumContext
from schemas.auth import SessionUser
from schemas.posts import PostCreate, ThreadDetail
from schemas.threads import ThreadCreate, ThreadListItem
from services.aggregation import build_thread_detail, build_thread_list
from services.likes import get_thread_like_count, like_thread, unlike_thread
from services.posts import create_post
from services.threads import create_thread, get_thread
from utils.route_helpers import get_context, get_current_user, get_optional_user

router = APIRouter(prefix="/threads", tags=["threads"])


@router.get("/", response_model=List[ThreadListItem])
async def list_threads(
    category_id: Optional[int] = None,
    search: Optional[str] = None,
    search_type: Literal['title', 'content', 'author'] = 'title',
    sort_by: Literal['newest', 'oldest', 'popular'] = 'newest',
    limit: int = Query(50, ge=1, le=100),
    current_user: Optional[SessionUser] = Depends(get_optional_user),
    ctx: ForumContext = Depends(get_context),
):
    """Forum listing. Pinned threads always come first."""
    return await build_thread_list(
        ctx,
        viewer_user_id=current_user.id if current_user else None,
        category_id=category_id,
        search=search,
        search_type=search_type,
        sort_by=sort_by,
        limit=limit,
    )


@router.post("/", status_code=status.HTTP_201_CREATED)
async def new_thread(thread: ThreadCreate,
                     current_user: SessionUser = Depends(get_current_user),
                     ctx: ForumContext = Depends(get_context)):
    return await create_thread(ctx, current_user.id, thread.title, thread.content, thread.category_id)


@router.get("/{thread_id}", response_model=ThreadDetail)
async def thread_detail(thread_id: int,
                        current_user: Optional[SessionUser] = Depends(get_optional_user),
                        ctx: ForumContext = Depends(get_context)):
    """Thread page. Counts as a view."""
    return await build_thread_detail(ctx, thread_id, current_user.id if current_user else None)


@router.post("/{thread_id}/posts", status_code=status.HTTP_201_CREATED)
async def reply(thread_id: int, post: PostCreate,
                current_user: SessionUser = Depends(get_current_user),
                ctx: ForumContext = Depends(get_context)):
    return await create_post(ctx, current_user.id, thread_id, post.content)


@router.post("/{thread_id}/like")
async def like(thread_id: int,
               current_user: SessionUser = Depends(get_current_user),
               ctx: ForumContext = Depends(get_context)):
    await get_thread(ctx, thread_id)
    await like_thread(ctx, thread_id, current_user.id)
    return {"liked": True, "like_count": await get_thread_like_count(ctx, thread_id)}


@router.delete("/{thread_id}/like")
async def unlike(thread_id: int,
                 current_user: SessionUser = Depends(get_current_user),
                 ctx: ForumContext = Depends(get_context)):
    await get_thread(ctx, thread_id)
    await unlike_thread(ctx, thread_id, current_user.id)
    return {"liked": False, "like_count": await get_thread_like_count(ctx, thread_id)}
