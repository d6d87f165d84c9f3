from pydantic import BaseModel, validator
from typing import Optional
from datetime import datetime

REPORT_TYPES = ('thread', 'post', 'profile')
REPORT_REASONS = (
    'spam',
    'harassment',
    'inappropriate_content',
    'hate_speech',
    'misinformation',
    'copyright_violation',
    'other',
)
REPORT_STATUSES = ('pending', 'resolved', 'dismissed')


class ReportCreate(BaseModel):
    report_type: str
    reason: str
    description: Optional[str] = None
    thread_id: Optional[int] = None
    post_id: Optional[int] = None
    reported_user_id: Optional[int] = None  # users.id of the reported account

    @validator('report_type')
    def validate_report_type(cls, v):
        if v not in REPORT_TYPES:
            raise ValueError(f'Report type must be one of: {list(REPORT_TYPES)}')
        return v

    @validator('reason')
    def validate_reason(cls, v):
        if v not in REPORT_REASONS:
            raise ValueError(f'Reason must be one of: {list(REPORT_REASONS)}')
        return v

    @validator('description')
    def validate_description(cls, v):
        if v is not None and len(v) > 1000:
            raise ValueError('Description must be at most 1000 characters long')
        return v


class ReportView(BaseModel):
    id: int
    reporter_id: int
    report_type: str
    reason: str
    description: Optional[str] = None
    thread_id: Optional[int] = None
    post_id: Optional[int] = None
    reported_user_id: Optional[int] = None
    status: str
    resolved_by: Optional[int] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime


class ReportStatusUpdate(BaseModel):
    status: str

    @validator('status')
    def validate_status(cls, v):
        if v not in REPORT_STATUSES:
            raise ValueError(f'Status must be one of: {list(REPORT_STATUSES)}')
        return v
