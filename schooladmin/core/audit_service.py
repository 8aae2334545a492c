"""
Audit logging for user lifecycle and impersonation events, plus the
SUPER_ADMIN query side (filters, pagination, approval statistics).
"""

import math
from datetime import datetime, timezone
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from schooladmin.core.config import settings
from schooladmin.core.models import AuditLog

APPROVE_USER = "APPROVE_USER"
REJECT_USER = "REJECT_USER"


def log_audit(
    db: AsyncSession,
    action: str,
    entity: str,
    entity_id: Optional[UUID],
    *,
    user_id: Optional[UUID] = None,
    school_id: Optional[UUID] = None,
    details: Optional[str] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> AuditLog:
    """Append one audit log entry. Caller must commit."""
    entry = AuditLog(
        school_id=school_id,
        user_id=user_id,
        action=action,
        entity=entity,
        entity_id=entity_id,
        details=details,
        ip_address=ip_address,
        user_agent=user_agent,
        created_at=datetime.now(timezone.utc),
    )
    db.add(entry)
    return entry


def clamp_page(page: Optional[int], limit: Optional[int]) -> Tuple[int, int]:
    """Normalize page (>= 1) and limit (1..AUDIT_LOG_MAX_PAGE_SIZE)."""
    page = max(1, page or 1)
    if limit is None:
        limit = settings.audit_log_page_size
    limit = min(settings.audit_log_max_page_size, max(1, limit))
    return page, limit


def _apply_filters(
    stmt,
    school_id: Optional[UUID],
    action: Optional[str],
    start_date: Optional[datetime],
    end_date: Optional[datetime],
):
    if school_id:
        stmt = stmt.where(AuditLog.school_id == school_id)
    if action:
        stmt = stmt.where(AuditLog.action == action)
    if start_date:
        stmt = stmt.where(AuditLog.created_at >= start_date)
    if end_date:
        stmt = stmt.where(AuditLog.created_at <= end_date)
    return stmt


async def query_audit_logs(
    db: AsyncSession,
    *,
    school_id: Optional[UUID] = None,
    action: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page: Optional[int] = None,
    limit: Optional[int] = None,
) -> Tuple[List[AuditLog], int, int, int]:
    """Return (logs, total_count, page, limit); newest first."""
    page, limit = clamp_page(page, limit)

    count_stmt = _apply_filters(
        select(func.count()).select_from(AuditLog), school_id, action, start_date, end_date
    )
    total = (await db.execute(count_stmt)).scalar_one()

    stmt = _apply_filters(select(AuditLog), school_id, action, start_date, end_date)
    stmt = stmt.order_by(AuditLog.created_at.desc()).offset((page - 1) * limit).limit(limit)
    logs = list((await db.execute(stmt)).scalars().all())
    return logs, total, page, limit


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


async def get_approval_stats(
    db: AsyncSession,
    *,
    school_id: Optional[UUID] = None,
    approved_by: Optional[UUID] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> dict:
    """Counts of approve/reject decisions and the approval rate in percent."""
    stmt = select(AuditLog.action, func.count()).where(
        AuditLog.action.in_([APPROVE_USER, REJECT_USER])
    )
    stmt = _apply_filters(stmt, school_id, None, start_date, end_date)
    if approved_by:
        stmt = stmt.where(AuditLog.user_id == approved_by)
    stmt = stmt.group_by(AuditLog.action)
    counts = {action: count for action, count in (await db.execute(stmt)).all()}

    approve_count = counts.get(APPROVE_USER, 0)
    reject_count = counts.get(REJECT_USER, 0)
    total = approve_count + reject_count
    return {
        "approve_count": approve_count,
        "reject_count": reject_count,
        "total_count": total,
        "approval_rate": (approve_count / total) * 100 if total else 0.0,
    }
