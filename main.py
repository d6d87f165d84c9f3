import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import Settings, load_settings
from context import build_context
from errors import (
    AuthError,
    ConstraintViolation,
    DataError,
    DuplicateEmail,
    DuplicateUsername,
    ForumError,
    InvalidCredentials,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from routes.admin import router as admin_router
from routes.auth import router as auth_router
from routes.browse import router as browse_router
from routes.cdn import router as cdn_router
from routes.posts import router as posts_router
from routes.profile import router as profile_router
from routes.reports import router as reports_router
from routes.threads import router as threads_router

logger = logging.getLogger(__name__)


def status_for(exc: ForumError) -> int:
    if isinstance(exc, PermissionDenied):
        return 403
    if isinstance(exc, (DuplicateEmail, DuplicateUsername, ConstraintViolation)):
        return 409
    if isinstance(exc, AuthError):
        return 401
    if isinstance(exc, NotFound):
        return 404
    if isinstance(exc, ValidationError):
        return 400
    return 500


async def forum_error_handler(request: Request, exc: ForumError):
    status_code = status_for(exc)
    if status_code == 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        detail = "Something went wrong, please try again later"
    elif isinstance(exc, DataError) and status_code == 409:
        detail = "That conflicts with existing data"
    elif isinstance(exc, InvalidCredentials):
        detail = InvalidCredentials.message
    else:
        detail = exc.message
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return JSONResponse(status_code=status_code, content={"detail": detail}, headers=headers)


def configure_logging(level: str):
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.context = build_context(settings)
        logger.info("Forum API ready (database %s)", settings.db_path)
        yield

    app = FastAPI(title="GameForum API", lifespan=lifespan)

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],  # Allows all methods
        allow_headers=["*"],  # Allows all headers
    )
    app.add_exception_handler(ForumError, forum_error_handler)

    # Include routers
    app.include_router(auth_router)
    app.include_router(threads_router)
    app.include_router(posts_router)
    app.include_router(profile_router)
    app.include_router(reports_router)
    app.include_router(admin_router)
    app.include_router(browse_router)
    app.include_router(cdn_router)

    @app.get("/health", tags=["health"])
    def health():
        return {"status": "ok"}

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=21541)
