from typing import List, Optional

from fastapi import APIRouter, Depends, File, UploadFile

from context import ForumContext
from errors import NotFound, PermissionDenied
from file_utils import replace_avatar
from schemas.auth import SessionUser
from schemas.profile import (
    FollowCounts,
    FollowUser,
    PrivacySettings,
    PrivacySettingsUpdate,
    ProfilePage,
    ProfileUpdate,
    ProfileView,
)
from schemas.shared import UserId
from services.aggregation import build_profile_page
from services.follows import (
    follow_user,
    get_follow_counts,
    get_followers_list,
    get_following_list,
    unfollow_user,
)
from services.users import (
    get_user_by_username,
    get_user_profile,
    get_user_settings,
    update_profile,
    update_user_settings,
)
from utils.route_helpers import get_context, get_current_user, get_optional_user

router = APIRouter(prefix="/users", tags=["profile"])


async def user_id_for(ctx: ForumContext, username: str) -> UserId:
    user = await get_user_by_username(ctx, username)
    if not user:
        raise NotFound("find user", message=f"User {username} not found")
    return UserId(user["id"])


@router.get("/me", response_model=ProfileView)
async def my_profile(current_user: SessionUser = Depends(get_current_user),
                     ctx: ForumContext = Depends(get_context)):
    profile = await get_user_profile(ctx, current_user.id)
    if profile is None:
        raise NotFound("my profile", message="Profile not found")
    return profile


@router.put("/me", response_model=ProfileView)
async def update_my_profile(update: ProfileUpdate,
                            current_user: SessionUser = Depends(get_current_user),
                            ctx: ForumContext = Depends(get_context)):
    await update_profile(ctx, current_user.id, display_name=update.display_name, bio=update.bio)
    return await my_profile(current_user, ctx)


@router.post("/me/avatar")
async def upload_avatar(file: UploadFile = File(...),
                        current_user: SessionUser = Depends(get_current_user),
                        ctx: ForumContext = Depends(get_context)):
    """Upload a new avatar. The previous one is removed."""
    content = await file.read()
    url = await replace_avatar(ctx, current_user.id, current_user.username,
                               file.filename, file.content_type, content)
    return {"message": "Avatar updated", "avatar_url": url}


@router.get("/me/settings", response_model=PrivacySettings)
async def my_settings(current_user: SessionUser = Depends(get_current_user),
                      ctx: ForumContext = Depends(get_context)):
    return await get_user_settings(ctx, current_user.id)


@router.put("/me/settings", response_model=PrivacySettings)
async def update_my_settings(update: PrivacySettingsUpdate,
                             current_user: SessionUser = Depends(get_current_user),
                             ctx: ForumContext = Depends(get_context)):
    return await update_user_settings(ctx, current_user.id, **update.dict(exclude_none=True))


@router.get("/{username}", response_model=ProfilePage)
async def profile_page(username: str,
                       current_user: Optional[SessionUser] = Depends(get_optional_user),
                       ctx: ForumContext = Depends(get_context)):
    return await build_profile_page(ctx, username, current_user.id if current_user else None)


@router.post("/{username}/follow", response_model=FollowCounts)
async def follow(username: str,
                 current_user: SessionUser = Depends(get_current_user),
                 ctx: ForumContext = Depends(get_context)):
    target = await user_id_for(ctx, username)
    await follow_user(ctx, current_user.id, target)
    return await get_follow_counts(ctx, target)


@router.delete("/{username}/follow", response_model=FollowCounts)
async def unfollow(username: str,
                   current_user: SessionUser = Depends(get_current_user),
                   ctx: ForumContext = Depends(get_context)):
    target = await user_id_for(ctx, username)
    await unfollow_user(ctx, current_user.id, target)
    return await get_follow_counts(ctx, target)


async def _visible_list(ctx: ForumContext, username: str, viewer: Optional[SessionUser], flag: str) -> UserId:
    target = await user_id_for(ctx, username)
    is_own = viewer is not None and viewer.id == target
    if not is_own and not getattr(await get_user_settings(ctx, target), flag):
        raise PermissionDenied("This list is private")
    return target


@router.get("/{username}/followers", response_model=List[FollowUser])
async def followers(username: str,
                    current_user: Optional[SessionUser] = Depends(get_optional_user),
                    ctx: ForumContext = Depends(get_context)):
    target = await _visible_list(ctx, username, current_user, "show_followers")
    return await get_followers_list(ctx, target)


@router.get("/{username}/following", response_model=List[FollowUser])
async def following(username: str,
                    current_user: Optional[SessionUser] = Depends(get_optional_user),
                    ctx: ForumContext = Depends(get_context)):
    target = await _visible_list(ctx, username, current_user, "show_following")
    return await get_following_list(ctx, target)
