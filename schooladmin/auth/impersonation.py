"""
SUPER_ADMIN impersonation of a user or of a whole school.

Rules:
- only a SUPER_ADMIN (by real role) may start a session;
- one active session per admin; a session is active while ended_at is null
  and expires_at is in the future (checked on read, never swept);
- SUPER_ADMIN targets cannot be impersonated and user targets must be APPROVED;
- start and end each write one audit row with IP and user agent.

The session row is the source of truth; the admin's identity-provider
metadata carries a copy (the "claim") so each request can find it cheaply.
"""

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from schooladmin.auth.identity import (
    IdentityMetadataStore,
    get_impersonation_claim,
    set_impersonation_claim,
)
from schooladmin.auth.models import User
from schooladmin.auth.roles import is_super_admin
from schooladmin.auth.schemas import (
    ImpersonationContext,
    ImpersonationStatus,
    RequestMeta,
    ServiceContext,
)
from schooladmin.core.audit_service import log_audit
from schooladmin.core.config import settings
from schooladmin.core.enums import Role, UserStatus
from schooladmin.core.exceptions import ErrorKind, ServiceError
from schooladmin.core.models import ImpersonationSession, School

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def get_active_session_for_admin(
    db: AsyncSession, admin_id: UUID
) -> Optional[ImpersonationSession]:
    result = await db.execute(
        select(ImpersonationSession)
        .where(
            ImpersonationSession.admin_id == admin_id,
            ImpersonationSession.ended_at.is_(None),
            ImpersonationSession.expires_at > _now(),
        )
        .limit(1)
    )
    return result.scalars().first()


async def _get_active_session(db: AsyncSession, session_id: UUID) -> Optional[ImpersonationSession]:
    result = await db.execute(
        select(ImpersonationSession).where(
            ImpersonationSession.id == session_id,
            ImpersonationSession.ended_at.is_(None),
            ImpersonationSession.expires_at > _now(),
        )
    )
    return result.scalar_one_or_none()


def _require_real_super_admin(admin: ServiceContext) -> None:
    if not is_super_admin(admin.role) or admin.is_impersonating:
        raise ServiceError(ErrorKind.AUTHORIZATION, "Only SUPER_ADMIN can impersonate")


async def _ensure_no_active_session(db: AsyncSession, admin_id: UUID) -> None:
    if await get_active_session_for_admin(db, admin_id):
        raise ServiceError(
            ErrorKind.CONFLICT, "Active impersonation session exists. End it first."
        )


def _new_session(admin: ServiceContext, meta: RequestMeta, **target) -> ImpersonationSession:
    started_at = _now()
    return ImpersonationSession(
        admin_id=admin.user_id,
        started_at=started_at,
        expires_at=started_at + timedelta(hours=settings.impersonation_session_hours),
        ip_address=meta.ip_address,
        user_agent=meta.user_agent,
        **target,
    )


async def start_user_impersonation(
    db: AsyncSession,
    store: IdentityMetadataStore,
    admin: ServiceContext,
    target_user_id: UUID,
    meta: RequestMeta,
) -> ImpersonationContext:
    _require_real_super_admin(admin)
    await _ensure_no_active_session(db, admin.user_id)

    target = await db.get(User, target_user_id)
    if not target:
        raise ServiceError(ErrorKind.NOT_FOUND, "Target user not found")
    if is_super_admin(target.role):
        raise ServiceError(ErrorKind.AUTHORIZATION, "Cannot impersonate another SUPER_ADMIN")
    if target.status != UserStatus.APPROVED.value:
        raise ServiceError(ErrorKind.CONFLICT, "Can only impersonate APPROVED users")

    session = _new_session(
        admin,
        meta,
        target_user_id=target.id,
        target_school_id=target.school_id,
        is_school_context=False,
    )
    db.add(session)
    await db.flush()

    log_audit(
        db,
        "IMPERSONATION_START",
        "User",
        target.id,
        user_id=admin.user_id,
        school_id=target.school_id,
        details=json.dumps(
            {
                "sessionId": str(session.id),
                "targetRole": target.role,
                "targetSchoolId": str(target.school_id) if target.school_id else None,
                "userAgent": meta.user_agent,
            }
        ),
        ip_address=meta.ip_address,
        user_agent=meta.user_agent,
    )
    await db.commit()

    context = ImpersonationContext(
        session_id=session.id,
        original_user_id=admin.user_id,
        target_user_id=target.id,
        target_role=Role(target.role),
        target_school_id=target.school_id,
        school_name=target.school.name if target.school else None,
        is_school_context=False,
        started_at=session.started_at,
        expires_at=session.expires_at,
    )
    await set_impersonation_claim(store, admin.external_id, context.model_dump(mode="json"))
    logger.info(
        "Impersonation %s started: admin %s -> user %s", session.id, admin.user_id, target.id
    )
    return context


async def start_school_impersonation(
    db: AsyncSession,
    store: IdentityMetadataStore,
    admin: ServiceContext,
    school_id: UUID,
    meta: RequestMeta,
) -> ImpersonationContext:
    """Act as an ADMIN of school_id without picking a specific user."""
    _require_real_super_admin(admin)

    school = await db.get(School, school_id)
    if not school:
        raise ServiceError(ErrorKind.NOT_FOUND, "School not found")
    await _ensure_no_active_session(db, admin.user_id)

    session = _new_session(
        admin,
        meta,
        target_user_id=None,
        target_school_id=school.id,
        is_school_context=True,
    )
    db.add(session)
    await db.flush()

    log_audit(
        db,
        "SCHOOL_IMPERSONATION_START",
        "School",
        school.id,
        user_id=admin.user_id,
        school_id=school.id,
        details=json.dumps(
            {
                "sessionId": str(session.id),
                "schoolId": str(school.id),
                "schoolName": school.name,
                "userAgent": meta.user_agent,
            }
        ),
        ip_address=meta.ip_address,
        user_agent=meta.user_agent,
    )
    await db.commit()

    context = ImpersonationContext(
        session_id=session.id,
        original_user_id=admin.user_id,
        target_user_id=None,
        target_role=Role.ADMIN,
        target_school_id=school.id,
        school_name=school.name,
        is_school_context=True,
        started_at=session.started_at,
        expires_at=session.expires_at,
    )
    await set_impersonation_claim(store, admin.external_id, context.model_dump(mode="json"))
    logger.info(
        "School impersonation %s started: admin %s -> school %s",
        session.id,
        admin.user_id,
        school.id,
    )
    return context


async def _close_session(
    db: AsyncSession,
    session: ImpersonationSession,
    action: str,
    meta: RequestMeta,
) -> bool:
    result = await db.execute(
        update(ImpersonationSession)
        .where(ImpersonationSession.id == session.id, ImpersonationSession.ended_at.is_(None))
        .values(ended_at=_now())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        return False

    if session.is_school_context:
        entity, entity_id = "School", session.target_school_id
    else:
        entity, entity_id = "User", session.target_user_id
    log_audit(
        db,
        action,
        entity,
        entity_id,
        user_id=session.admin_id,
        school_id=session.target_school_id,
        details=json.dumps({"sessionId": str(session.id), "userAgent": meta.user_agent}),
        ip_address=meta.ip_address,
        user_agent=meta.user_agent,
    )
    await db.commit()
    await db.refresh(session)
    logger.info("Impersonation %s ended (%s) by admin %s", session.id, action, session.admin_id)
    return True


async def end_impersonation(
    db: AsyncSession,
    store: IdentityMetadataStore,
    admin: ServiceContext,
    session_id: UUID,
    meta: RequestMeta,
) -> None:
    result = await db.execute(
        select(ImpersonationSession).where(
            ImpersonationSession.id == session_id,
            ImpersonationSession.admin_id == admin.user_id,
            ImpersonationSession.ended_at.is_(None),
        )
    )
    session = result.scalar_one_or_none()
    if not session or not await _close_session(db, session, "IMPERSONATION_END", meta):
        raise ServiceError(
            ErrorKind.NOT_FOUND, "Impersonation session not found or already ended"
        )
    # the claim may name a newer session than the one just ended
    claim = await get_impersonation_claim(store, admin.external_id)
    if claim and str(claim.get("session_id")) == str(session_id):
        await set_impersonation_claim(store, admin.external_id, None)


async def exit_impersonation(
    db: AsyncSession,
    store: IdentityMetadataStore,
    admin: ServiceContext,
    meta: RequestMeta,
) -> bool:
    """End whatever session the admin's claim names. Returns False if there was none."""
    claim = await get_impersonation_claim(store, admin.external_id)
    if not claim:
        return False

    session = await db.get(ImpersonationSession, UUID(str(claim["session_id"])))
    ended = False
    if session and session.ended_at is None and session.admin_id == admin.user_id:
        ended = await _close_session(db, session, "IMPERSONATION_EXIT", meta)
    await set_impersonation_claim(store, admin.external_id, None)
    return ended


async def get_active_impersonation(
    db: AsyncSession, store: IdentityMetadataStore, subject: str
) -> Optional[ImpersonationContext]:
    """Claim for subject if its session is still active; stale claims are cleared."""
    claim = await get_impersonation_claim(store, subject)
    if not claim:
        return None
    context = ImpersonationContext.model_validate(claim)
    if not await _get_active_session(db, context.session_id):
        await set_impersonation_claim(store, subject, None)
        logger.info("Cleared stale impersonation claim for session %s", context.session_id)
        return None
    return context


async def get_impersonation_status(
    db: AsyncSession, store: IdentityMetadataStore, subject: str
) -> ImpersonationStatus:
    context = await get_active_impersonation(db, store, subject)
    if not context:
        return ImpersonationStatus(is_impersonating=False)
    return ImpersonationStatus(
        is_impersonating=True,
        session_id=context.session_id,
        target_user_id=context.target_user_id,
        target_role=context.target_role,
        target_school_id=context.target_school_id,
        school_name=context.school_name,
        is_school_context=context.is_school_context,
        started_at=context.started_at,
        expires_at=context.expires_at,
    )


async def list_impersonation_history(
    db: AsyncSession, admin_id: Optional[UUID] = None
) -> List[ImpersonationSession]:
    stmt = select(ImpersonationSession)
    if admin_id:
        stmt = stmt.where(ImpersonationSession.admin_id == admin_id)
    stmt = stmt.order_by(ImpersonationSession.started_at.desc())
    result = await db.execute(stmt)
    return list(result.scalars().all())
