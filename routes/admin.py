from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query

from context import ForumContext
from schemas.admin import ActivityItem, AdminStats, AdminThreadItem, ThreadFlagUpdate
from schemas.auth import SessionUser
from schemas.reports import ReportStatusUpdate, ReportView
from services.aggregation import build_admin_stats, build_admin_thread_list, build_recent_activity
from services.moderation import delete_thread, set_report_status, set_thread_flag
from services.reports import list_reports
from utils.route_helpers import get_context, get_moderator, ok

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/stats", response_model=AdminStats)
async def stats(moderator: SessionUser = Depends(get_moderator),
                ctx: ForumContext = Depends(get_context)):
    return await build_admin_stats(ctx)


@router.get("/activity", response_model=List[ActivityItem])
async def recent_activity(limit: int = Query(8, ge=1, le=50),
                          moderator: SessionUser = Depends(get_moderator),
                          ctx: ForumContext = Depends(get_context)):
    return await build_recent_activity(ctx, limit=limit)


@router.get("/threads", response_model=List[AdminThreadItem])
async def threads(search: Optional[str] = None,
                  category_id: Optional[int] = None,
                  status: Literal['all', 'pinned', 'locked', 'normal'] = 'all',
                  sort_by: Literal['newest', 'oldest', 'title', 'views', 'activity'] = 'newest',
                  moderator: SessionUser = Depends(get_moderator),
                  ctx: ForumContext = Depends(get_context)):
    return await build_admin_thread_list(ctx, search=search, category_id=category_id,
                                         status=status, sort_by=sort_by)


@router.post("/threads/{thread_id}/pin")
async def pin_thread(thread_id: int, update: Optional[ThreadFlagUpdate] = None,
                     moderator: SessionUser = Depends(get_moderator),
                     ctx: ForumContext = Depends(get_context)):
    """Pin or unpin. Without a value the current state is flipped."""
    thread = await set_thread_flag(ctx, thread_id, 'is_pinned', update.value if update else None)
    return ok(thread_id=thread_id, is_pinned=bool(thread["is_pinned"]))


@router.post("/threads/{thread_id}/lock")
async def lock_thread(thread_id: int, update: Optional[ThreadFlagUpdate] = None,
                      moderator: SessionUser = Depends(get_moderator),
                      ctx: ForumContext = Depends(get_context)):
    thread = await set_thread_flag(ctx, thread_id, 'is_locked', update.value if update else None)
    return ok(thread_id=thread_id, is_locked=bool(thread["is_locked"]))


@router.delete("/threads/{thread_id}")
async def remove_thread(thread_id: int,
                        moderator: SessionUser = Depends(get_moderator),
                        ctx: ForumContext = Depends(get_context)):
    await delete_thread(ctx, thread_id)
    return ok()


@router.get("/reports", response_model=List[ReportView])
async def reports(status: Optional[Literal['pending', 'resolved', 'dismissed']] = None,
                  moderator: SessionUser = Depends(get_moderator),
                  ctx: ForumContext = Depends(get_context)):
    return await list_reports(ctx, status=status)


@router.put("/reports/{report_id}", response_model=ReportView)
async def update_report(report_id: int, update: ReportStatusUpdate,
                        moderator: SessionUser = Depends(get_moderator),
                        ctx: ForumContext = Depends(get_context)):
    return await set_report_status(ctx, report_id, update.status, moderator.id)
