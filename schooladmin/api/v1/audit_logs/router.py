from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from schooladmin.auth.dependencies import require_actor_roles
from schooladmin.auth.roles import RoleGroups
from schooladmin.auth.schemas import ServiceContext
from schooladmin.core import audit_service
from schooladmin.core.schemas import Pagination, SuccessResponse
from schooladmin.db.session import get_db

from .schemas import ApprovalStats, AuditLogFilters, AuditLogPage, AuditLogResponse

router = APIRouter(prefix="/api/v1/audit-logs", tags=["audit-logs"])


@router.get("", response_model=SuccessResponse[AuditLogPage])
async def list_audit_logs(
    school_id: Optional[UUID] = Query(None),
    action: Optional[str] = Query(None, description="e.g. APPROVE_USER, IMPERSONATION_START"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    page: int = Query(1),
    limit: Optional[int] = Query(None, description="Items per page (default 20, max 100)"),
    context: ServiceContext = Depends(require_actor_roles(RoleGroups.PLATFORM_ADMINS)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[AuditLogPage]:
    """System-wide audit trail, newest first. SUPER_ADMIN only."""
    logs, total, page, limit = await audit_service.query_audit_logs(
        db,
        school_id=school_id,
        action=action,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    pages = audit_service.total_pages(total, limit)
    return SuccessResponse(
        data=AuditLogPage(
            logs=[AuditLogResponse.model_validate(log) for log in logs],
            pagination=Pagination(
                current_page=page,
                total_pages=pages,
                total_count=total,
                limit=limit,
                has_next_page=page < pages,
                has_prev_page=page > 1,
            ),
            filters=AuditLogFilters(
                school_id=school_id,
                action=action,
                start_date=start_date,
                end_date=end_date,
            ),
        )
    )


@router.get("/approval-stats", response_model=SuccessResponse[ApprovalStats])
async def approval_stats(
    school_id: Optional[UUID] = Query(None),
    approved_by: Optional[UUID] = Query(None),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    context: ServiceContext = Depends(require_actor_roles(RoleGroups.PLATFORM_ADMINS)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[ApprovalStats]:
    stats = await audit_service.get_approval_stats(
        db,
        school_id=school_id,
        approved_by=approved_by,
        start_date=start_date,
        end_date=end_date,
    )
    return SuccessResponse(data=ApprovalStats(**stats))
