"""Session persistence and validation.

A session is a signed token. ``validate_session`` turns one back into the
``SessionUser`` it belongs to; ``SessionManager`` wires validation to a
``SessionStore`` so that any failed validation doubles as a logout.
"""
import json
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from auth import decode_session_token
from context import ForumContext
from errors import AuthError, NoToken, SessionUserMissing
from schemas.auth import SessionUser, Token
from services.profiles import find_profile
from services.users import get_user_by_id, login_user, register_user, session_user

logger = logging.getLogger(__name__)

AUTH_TOKEN_KEY = "gameforum_auth_token"


class SessionStore(ABC):
    @abstractmethod
    def persist(self, token: str):
        ...

    @abstractmethod
    def read(self) -> Optional[str]:
        ...

    @abstractmethod
    def clear(self):
        ...


class MemorySessionStore(SessionStore):
    def __init__(self):
        self._token = None

    def persist(self, token: str):
        self._token = token

    def read(self) -> Optional[str]:
        return self._token

    def clear(self):
        self._token = None


class FileSessionStore(SessionStore):
    """Keeps the token in a small JSON file under a fixed key."""

    def __init__(self, path, key: str = AUTH_TOKEN_KEY):
        self.path = Path(path)
        self.key = key
        self._lock = threading.Lock()

    def _load(self) -> dict:
        try:
            return json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("Session file %s is corrupt, starting fresh", self.path)
            return {}

    def _save(self, data: dict):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data), encoding="utf-8")

    def persist(self, token: str):
        with self._lock:
            data = self._load()
            data[self.key] = token
            self._save(data)

    def read(self) -> Optional[str]:
        with self._lock:
            token = self._load().get(self.key)
        return token if isinstance(token, str) and token else None

    def clear(self):
        with self._lock:
            data = self._load()
            if data.pop(self.key, None) is not None:
                self._save(data)


async def validate_session(ctx: ForumContext, token: Optional[str]) -> SessionUser:
    """Decode ``token`` and confirm its user still exists.

    Raises ``NoToken``, ``TokenMalformed``, ``TokenExpired`` or
    ``SessionUserMissing``.
    """
    if not token:
        raise NoToken()
    claims = decode_session_token(token, ctx.settings.secret_key)
    user = await get_user_by_id(ctx, claims.identity.user_id)
    if not user:
        raise SessionUserMissing()
    profile = await find_profile(ctx, claims.identity.user_id)
    if profile is None:
        logger.warning("Session user %s has no profile", user["id"])
    return session_user(user, profile)


class SessionManager:
    """Login, restore and logout against one ``SessionStore``."""

    def __init__(self, ctx: ForumContext, store: SessionStore):
        self.ctx = ctx
        self.store = store
        self.user: Optional[SessionUser] = None

    async def login(self, email: str, password: str) -> SessionUser:
        result = await login_user(self.ctx, email, password)
        return self._start(result)

    async def register(self, username: str, email: str, password: str) -> SessionUser:
        result = await register_user(self.ctx, username, email, password)
        return self._start(result)

    def _start(self, result: Token) -> SessionUser:
        self.store.persist(result.access_token)
        self.user = result.user
        return self.user

    async def restore(self) -> Optional[SessionUser]:
        """Re-validate the stored token. Any failure logs the user out."""
        token = self.store.read()
        if not token:
            self.user = None
            return None
        try:
            self.user = await validate_session(self.ctx, token)
        except AuthError as exc:
            logger.info("Stored session rejected (%s), logging out", exc.message)
            self.logout()
        return self.user

    def logout(self):
        self.store.clear()
        self.user = None
