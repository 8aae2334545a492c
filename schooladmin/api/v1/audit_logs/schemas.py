from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel

from schooladmin.core.schemas import Pagination


class AuditLogResponse(BaseModel):
    id: UUID
    school_id: Optional[UUID] = None
    user_id: Optional[UUID] = None
    action: str
    entity: str
    entity_id: Optional[UUID] = None
    details: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class AuditLogFilters(BaseModel):
    school_id: Optional[UUID] = None
    action: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class AuditLogPage(BaseModel):
    logs: List[AuditLogResponse]
    pagination: Pagination
    filters: AuditLogFilters


class ApprovalStats(BaseModel):
    approve_count: int
    reject_count: int
    total_count: int
    approval_rate: float
