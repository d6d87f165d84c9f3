import logging
from typing import Dict, List, Optional

from context import ForumContext
from errors import InvalidTransition, PermissionDenied, ValidationError
from query_client import eq, utcnow_iso
from schemas.admin import AdminThreadItem
from schemas.auth import SessionUser
from schemas.reports import ReportView
from schemas.shared import UserId
from services import threads as thread_store
from services.aggregation import build_admin_thread_list
from services.profiles import resolve_profile_id
from services.reports import get_report

logger = logging.getLogger(__name__)

MODERATOR_ROLES = ('moderator', 'admin')
THREAD_FLAGS = ('is_pinned', 'is_locked')
REPORT_TRANSITIONS = {
    'pending': ('resolved', 'dismissed'),
}


def require_moderator(user: Optional[SessionUser]) -> SessionUser:
    if user is None or user.role not in MODERATOR_ROLES:
        raise PermissionDenied()
    return user


async def set_thread_flag(ctx: ForumContext, thread_id: int, flag: str, value: Optional[bool] = None) -> dict:
    """Set ``is_pinned``/``is_locked``. A ``None`` value flips the stored one."""
    if flag not in THREAD_FLAGS:
        raise ValidationError('flag', f'flag must be one of: {list(THREAD_FLAGS)}')
    if value is None:
        thread = await thread_store.get_thread(ctx, thread_id)
        value = not thread[flag]
    await thread_store.set_thread_flags(ctx, thread_id, **{flag: value})
    logger.info("Thread %s: %s set to %s", thread_id, flag, value)
    return await thread_store.get_thread(ctx, thread_id)


async def delete_thread(ctx: ForumContext, thread_id: int):
    """Hard delete. Posts, likes and thread likes go with it."""
    await thread_store.delete_thread(ctx, thread_id)
    logger.info("Thread %s removed by moderation", thread_id)


class ThreadBoard:
    """Local copy of the moderation thread list.

    Toggles are applied to the local item first and rolled back if the
    backend rejects them, so the board never shows a state the store does
    not hold.
    """

    def __init__(self, ctx: ForumContext, threads: List[AdminThreadItem]):
        self.ctx = ctx
        self.threads = list(threads)

    @classmethod
    async def load(cls, ctx: ForumContext, **filters) -> "ThreadBoard":
        return cls(ctx, await build_admin_thread_list(ctx, **filters))

    def _index(self) -> Dict[int, AdminThreadItem]:
        return {thread.id: thread for thread in self.threads}

    def get(self, thread_id: int) -> AdminThreadItem:
        thread = self._index().get(thread_id)
        if thread is None:
            raise ValidationError('thread_id', f'Thread {thread_id} is not on this board')
        return thread

    async def _toggle(self, thread_id: int, flag: str) -> AdminThreadItem:
        thread = self.get(thread_id)
        previous = getattr(thread, flag)
        setattr(thread, flag, not previous)
        try:
            await set_thread_flag(self.ctx, thread_id, flag, not previous)
        except Exception:
            setattr(thread, flag, previous)
            raise
        return thread

    async def toggle_pin(self, thread_id: int) -> AdminThreadItem:
        return await self._toggle(thread_id, 'is_pinned')

    async def toggle_lock(self, thread_id: int) -> AdminThreadItem:
        return await self._toggle(thread_id, 'is_locked')

    async def delete(self, thread_id: int):
        self.get(thread_id)
        await delete_thread(self.ctx, thread_id)
        self.threads = [thread for thread in self.threads if thread.id != thread_id]


async def set_report_status(ctx: ForumContext, report_id: int, status: str, moderator_id: UserId) -> ReportView:
    """Move a report out of ``pending``. Any other transition is refused."""
    report = await get_report(ctx, report_id)
    current = report["status"]
    if status not in REPORT_TRANSITIONS.get(current, ()):
        raise InvalidTransition(current, status)
    resolver = await resolve_profile_id(ctx, moderator_id)
    updated = await ctx.client.update(
        "reports",
        {"status": status, "resolved_by": resolver, "resolved_at": utcnow_iso()},
        [eq("id", report_id), eq("status", current)],
    )
    if not updated:
        # Someone else moved it first
        latest = await get_report(ctx, report_id)
        raise InvalidTransition(latest["status"], status)
    logger.info("Report %s %s by profile %s", report_id, status, resolver)
    return ReportView(**await get_report(ctx, report_id))
