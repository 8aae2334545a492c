"""Guardian records link a PARENT user to the students they are responsible for."""

from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from schooladmin.auth.models import User
from schooladmin.auth.roles import require_school_access, require_school_context
from schooladmin.auth.schemas import ServiceContext
from schooladmin.core.audit_service import log_audit
from schooladmin.core.enums import Role
from schooladmin.core.exceptions import ErrorKind, ServiceError
from schooladmin.core.models import Guardian, Student

from .schemas import GuardianCreate, GuardianResponse, GuardianUpdate


def _to_response(guardian: Guardian, student_count: int = 0) -> GuardianResponse:
    user = guardian.user
    return GuardianResponse(
        id=guardian.id,
        school_id=guardian.school_id,
        user_id=guardian.user_id,
        first_name=user.first_name if user else None,
        last_name=user.last_name if user else None,
        email=user.email if user else None,
        phone=guardian.phone,
        address=guardian.address,
        student_count=student_count,
        created_at=guardian.created_at,
    )


async def _student_counts(db: AsyncSession, guardian_ids: List[UUID]) -> Dict[UUID, int]:
    if not guardian_ids:
        return {}
    result = await db.execute(
        select(Student.guardian_id, func.count(Student.id))
        .where(Student.guardian_id.in_(guardian_ids), Student.deleted_at.is_(None))
        .group_by(Student.guardian_id)
    )
    return {guardian_id: count for guardian_id, count in result.all()}


async def load_guardian(db: AsyncSession, context: ServiceContext, guardian_id: UUID) -> Guardian:
    require_school_context(context)
    guardian = await db.get(Guardian, guardian_id)
    if not guardian:
        raise ServiceError(ErrorKind.NOT_FOUND, "Guardian not found")
    require_school_access(context, guardian.school_id)
    return guardian


async def create_guardian(
    db: AsyncSession, context: ServiceContext, payload: GuardianCreate
) -> GuardianResponse:
    require_school_context(context)
    user = await db.get(User, payload.user_id)
    if not user:
        raise ServiceError(ErrorKind.NOT_FOUND, "User not found")
    require_school_access(context, user.school_id)
    if user.role != Role.PARENT.value:
        raise ServiceError(ErrorKind.VALIDATION, "Guardian user must have the PARENT role")

    existing = await db.execute(select(Guardian.id).where(Guardian.user_id == user.id))
    if existing.scalar_one_or_none():
        raise ServiceError(ErrorKind.CONFLICT, "Guardian record already exists for this user")

    guardian = Guardian(
        school_id=user.school_id,
        user_id=user.id,
        user=user,
        phone=payload.phone,
        address=payload.address,
    )
    db.add(guardian)
    await db.flush()
    log_audit(
        db,
        "CREATE_GUARDIAN",
        "Guardian",
        guardian.id,
        user_id=context.user_id,
        school_id=guardian.school_id,
        details=f"Guardian record for user {user.id}",
    )
    await db.commit()
    await db.refresh(guardian)
    return _to_response(guardian)


async def list_guardians(
    db: AsyncSession, context: ServiceContext, search: Optional[str] = None
) -> List[GuardianResponse]:
    require_school_context(context)
    stmt = (
        select(Guardian)
        .join(User, Guardian.user_id == User.id)
        .where(Guardian.school_id == context.school_id)
    )
    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(
            User.first_name.ilike(pattern)
            | User.last_name.ilike(pattern)
            | User.email.ilike(pattern)
        )
    stmt = stmt.order_by(User.last_name, User.first_name)
    result = await db.execute(stmt)
    guardians = list(result.unique().scalars().all())
    counts = await _student_counts(db, [g.id for g in guardians])
    return [_to_response(g, counts.get(g.id, 0)) for g in guardians]


async def get_guardian(
    db: AsyncSession, context: ServiceContext, guardian_id: UUID
) -> GuardianResponse:
    guardian = await load_guardian(db, context, guardian_id)
    counts = await _student_counts(db, [guardian.id])
    return _to_response(guardian, counts.get(guardian.id, 0))


async def update_guardian(
    db: AsyncSession, context: ServiceContext, guardian_id: UUID, payload: GuardianUpdate
) -> GuardianResponse:
    guardian = await load_guardian(db, context, guardian_id)
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(guardian, field, value)
    await db.commit()
    await db.refresh(guardian)
    counts = await _student_counts(db, [guardian.id])
    return _to_response(guardian, counts.get(guardian.id, 0))


async def list_own_students(db: AsyncSession, context: ServiceContext) -> List[Student]:
    """Students linked to the calling PARENT's guardian record."""
    require_school_context(context)
    result = await db.execute(
        select(Student)
        .join(Guardian, Student.guardian_id == Guardian.id)
        .where(
            Guardian.user_id == context.user_id,
            Student.school_id == context.school_id,
            Student.deleted_at.is_(None),
        )
        .order_by(Student.last_name, Student.first_name)
    )
    return list(result.scalars().all())
