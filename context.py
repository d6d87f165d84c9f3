from dataclasses import dataclass
from datetime import timedelta

from auth import configure_password_hashing
from config import Settings
from database import init_db
from query_client import QueryClient, SqliteQueryClient


@dataclass
class ForumContext:
    """Everything a service call needs: the backend client and the settings.

    Passed explicitly into every service function instead of living in a
    module-level singleton, so tests and multiple tenants can each build
    their own.
    """

    client: QueryClient
    settings: Settings

    @property
    def token_lifetime(self) -> timedelta:
        return timedelta(minutes=self.settings.token_expire_minutes)


def build_context(settings: Settings) -> ForumContext:
    init_db(settings.db_path)
    configure_password_hashing(settings.bcrypt_rounds)
    client = SqliteQueryClient(
        settings.db_path,
        upload_folder=settings.upload_folder,
        public_base_url=settings.public_base_url,
    )
    return ForumContext(client=client, settings=settings)
