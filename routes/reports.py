from fastapi import APIRouter, Depends, HTTPException, status

from context import ForumContext
from schemas.auth import SessionUser
from schemas.reports import ReportCreate, ReportView
from services.reports import check_existing_report, submit_report
from utils.route_helpers import get_context, get_current_user

router = APIRouter(prefix="/reports", tags=["reports"])


@router.post("/", response_model=ReportView, status_code=status.HTTP_201_CREATED)
async def create_report(report: ReportCreate,
                        current_user: SessionUser = Depends(get_current_user),
                        ctx: ForumContext = Depends(get_context)):
    if await check_existing_report(ctx, report, current_user.id):
        raise HTTPException(status_code=409, detail="You have already reported this")
    return await submit_report(ctx, report, current_user.id)


@router.post("/check")
async def check_report(report: ReportCreate,
                       current_user: SessionUser = Depends(get_current_user),
                       ctx: ForumContext = Depends(get_context)):
    """Has the current user already reported this target?"""
    return {"already_reported": await check_existing_report(ctx, report, current_user.id)}
