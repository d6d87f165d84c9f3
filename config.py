import logging
import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

DEV_SECRET_KEY = "gameforum-dev-secret-change-me-in-production-0000"
MIN_SECRET_LENGTH = 32
TOKEN_EXPIRE_MINUTES = 60 * 24 * 7  # 7 days


@dataclass(frozen=True)
class Settings:
    """Runtime settings, read from the environment (and ``.env``)."""

    db_path: str = "forum.sqlite3"
    secret_key: str = DEV_SECRET_KEY
    token_expire_minutes: int = TOKEN_EXPIRE_MINUTES
    upload_folder: str = "uploads"
    public_base_url: str = ""
    cors_origins: List[str] = field(default_factory=list)
    log_level: str = "INFO"
    bcrypt_rounds: int = 12


def _cors_origins(raw: str) -> List[str]:
    return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]


def load_settings() -> Settings:
    secret = os.getenv("FORUM_SECRET_KEY", "")
    if not secret:
        logger.warning("FORUM_SECRET_KEY is not set, using the development key")
        secret = DEV_SECRET_KEY
    elif len(secret) < MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"FORUM_SECRET_KEY is too short ({len(secret)} chars). "
            f"Minimum length is {MIN_SECRET_LENGTH} characters."
        )

    return Settings(
        db_path=os.getenv("FORUM_DB_PATH", "forum.sqlite3"),
        secret_key=secret,
        token_expire_minutes=int(os.getenv("FORUM_TOKEN_EXPIRE_MINUTES", TOKEN_EXPIRE_MINUTES)),
        upload_folder=os.getenv("FORUM_UPLOAD_FOLDER", "uploads"),
        public_base_url=os.getenv("FORUM_PUBLIC_BASE_URL", "").rstrip("/"),
        cors_origins=_cors_origins(os.getenv("FORUM_CORS_ORIGINS", "")),
        log_level=os.getenv("FORUM_LOG_LEVEL", "INFO").upper(),
        bcrypt_rounds=int(os.getenv("FORUM_BCRYPT_ROUNDS", 12)),
    )
