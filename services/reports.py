import logging
from typing import List, Optional

from context import ForumContext
from errors import NotFound, ValidationError
from query_client import desc, eq
from schemas.reports import REPORT_STATUSES, ReportCreate, ReportView
from schemas.shared import ProfileId, UserId
from services.profiles import resolve_profile_id

logger = logging.getLogger(__name__)

TARGET_FIELDS = {
    'thread': 'thread_id',
    'post': 'post_id',
    'profile': 'reported_user_id',
}


def validate_report_target(report: ReportCreate):
    """Exactly the id matching ``report_type`` must be set."""
    expected = TARGET_FIELDS.get(report.report_type)
    if expected is None:
        raise ValidationError('report_type', f'Unknown report type: {report.report_type}')
    for report_type, field in TARGET_FIELDS.items():
        value = getattr(report, field)
        if field == expected and value is None:
            raise ValidationError(field, f'{field} is required for a {report_type} report')
        if field != expected and value is not None:
            raise ValidationError(field, f'{field} must not be set on a {report.report_type} report')


async def _target_owner(ctx: ForumContext, report: ReportCreate) -> Optional[ProfileId]:
    """Profile id of whoever owns the reported content."""
    if report.report_type == 'thread':
        table, target_id = "threads", report.thread_id
    elif report.report_type == 'post':
        table, target_id = "posts", report.post_id
    else:
        return await resolve_profile_id(ctx, UserId(report.reported_user_id))
    try:
        row = await ctx.client.select_one(table, ["author_id"], [eq("id", target_id)])
    except NotFound:
        raise NotFound(f"report {report.report_type}", message=f"{report.report_type.capitalize()} {target_id} not found")
    return row["author_id"]


async def submit_report(ctx: ForumContext, report: ReportCreate, reporter_id: UserId) -> dict:
    validate_report_target(report)
    reporter_profile_id = await resolve_profile_id(ctx, reporter_id)
    reported_profile_id = await _target_owner(ctx, report)
    row = await ctx.client.insert("reports", {
        "reporter_id": reporter_profile_id,
        "report_type": report.report_type,
        "reason": report.reason,
        "description": report.description or None,
        "thread_id": report.thread_id,
        "post_id": report.post_id,
        "reported_user_id": reported_profile_id,
        "status": "pending",
    })
    logger.info("Report %s filed by profile %s against %s", row["id"], reporter_profile_id, report.report_type)
    return row


async def check_existing_report(ctx: ForumContext, report: ReportCreate, reporter_id: UserId) -> bool:
    """Has this reporter already reported this exact target?"""
    validate_report_target(report)
    reporter_profile_id = await resolve_profile_id(ctx, reporter_id)
    filters = [eq("reporter_id", reporter_profile_id), eq("report_type", report.report_type)]
    if report.report_type == 'thread':
        filters.append(eq("thread_id", report.thread_id))
    elif report.report_type == 'post':
        filters.append(eq("post_id", report.post_id))
    else:
        reported = await resolve_profile_id(ctx, UserId(report.reported_user_id))
        filters.append(eq("reported_user_id", reported))
    return await ctx.client.maybe_one("reports", ["id"], filters) is not None


async def list_reports(ctx: ForumContext, status: Optional[str] = None, limit: int = 100) -> List[ReportView]:
    filters = []
    if status:
        if status not in REPORT_STATUSES:
            raise ValidationError('status', f'Unknown report status: {status}')
        filters.append(eq("status", status))
    rows = await ctx.client.select("reports", filters=filters, order=[desc("created_at"), desc("id")], limit=limit)
    return [ReportView(**row) for row in rows]


async def get_report(ctx: ForumContext, report_id: int) -> dict:
    try:
        return await ctx.client.select_one("reports", filters=[eq("id", report_id)])
    except NotFound:
        raise NotFound("get report", message=f"Report {report_id} not found")
