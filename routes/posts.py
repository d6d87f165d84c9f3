from fastapi import APIRouter, Depends

from context import ForumContext
from schemas.auth import SessionUser
from schemas.posts import PostLikeState
from services.posts import (
    check_user_post_like,
    get_post,
    get_post_like_count,
    get_post_position,
    toggle_post_like,
)
from utils.route_helpers import get_context, get_current_user

router = APIRouter(prefix="/posts", tags=["posts"])


@router.get("/{post_id}")
async def read_post(post_id: int, ctx: ForumContext = Depends(get_context)):
    post = await get_post(ctx, post_id)
    return {**post, "position": await get_post_position(ctx, post)}


@router.post("/{post_id}/like", response_model=PostLikeState)
async def like_post(post_id: int,
                    current_user: SessionUser = Depends(get_current_user),
                    ctx: ForumContext = Depends(get_context)):
    """Toggle the current user's like on a reply."""
    return await toggle_post_like(ctx, post_id, current_user.id)


@router.get("/{post_id}/like-status", response_model=PostLikeState)
async def get_post_like_status(post_id: int,
                               current_user: SessionUser = Depends(get_current_user),
                               ctx: ForumContext = Depends(get_context)):
    await get_post(ctx, post_id)
    return PostLikeState(
        post_id=post_id,
        liked=await check_user_post_like(ctx, post_id, current_user.id),
        like_count=await get_post_like_count(ctx, post_id),
    )
