from typing import Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer

from context import ForumContext
from errors import AuthError
from schemas.auth import SessionUser
from services.moderation import require_moderator
from session import validate_session

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


def get_context(request: Request) -> ForumContext:
    """The ForumContext built at startup (see main.create_app)."""
    return request.app.state.context


async def get_current_user(token: Optional[str] = Depends(oauth2_scheme),
                           ctx: ForumContext = Depends(get_context)) -> SessionUser:
    # AuthError subclasses are turned into 401s by the app's exception handlers
    return await validate_session(ctx, token)


async def get_optional_user(token: Optional[str] = Depends(oauth2_scheme),
                            ctx: ForumContext = Depends(get_context)) -> Optional[SessionUser]:
    """Signed-in user, or None for guests and stale tokens."""
    if not token:
        return None
    try:
        return await validate_session(ctx, token)
    except AuthError:
        return None


def get_moderator(user: SessionUser = Depends(get_current_user)) -> SessionUser:
    return require_moderator(user)


def ok(**extra) -> dict:
    return {"status": "ok", **extra}