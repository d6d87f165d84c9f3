from fastapi import APIRouter, Depends, status

from context import ForumContext
from schemas.auth import LoginRequest, SessionUser, Token, UserCreate
from services.users import login_user, register_user
from utils.route_helpers import get_context, get_current_user, ok

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
async def register(user: UserCreate, ctx: ForumContext = Depends(get_context)):
    return await register_user(ctx, user.username, user.email, user.password)


@router.post("/login", response_model=Token)
async def login(login_data: LoginRequest, ctx: ForumContext = Depends(get_context)):
    return await login_user(ctx, login_data.email, login_data.password)


@router.get("/me", response_model=SessionUser)
async def me(current_user: SessionUser = Depends(get_current_user)):
    """Current user from the bearer token."""
    return current_user


@router.post("/logout")
async def logout(current_user: SessionUser = Depends(get_current_user)):
    # Tokens are stateless; the client drops its copy
    return ok()
