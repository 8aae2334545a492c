import logging
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from schooladmin.api.v1.academic_years.service import get_academic_year
from schooladmin.auth.models import User
from schooladmin.auth.roles import require_school_access, require_school_context
from schooladmin.auth.schemas import ServiceContext
from schooladmin.core.audit_service import log_audit
from schooladmin.core.enums import EnrollmentStatus, Role, UserStatus
from schooladmin.core.exceptions import ErrorKind, ServiceError
from schooladmin.core.models import Enrollment, SchoolClass

from .schemas import ClassCreate, ClassResponse, ClassUpdate

logger = logging.getLogger(__name__)


def _class_to_response(obj: SchoolClass, active_enrollments: int = 0) -> ClassResponse:
    return ClassResponse(
        id=obj.id,
        school_id=obj.school_id,
        academic_year_id=obj.academic_year_id,
        academic_year_name=obj.academic_year.name if obj.academic_year else None,
        name=obj.name,
        grade=obj.grade,
        stream=obj.stream,
        class_teacher_id=obj.class_teacher_id,
        active_enrollments=active_enrollments,
        created_at=obj.created_at,
        updated_at=obj.updated_at,
    )


async def _active_counts(db: AsyncSession, class_ids: List[UUID]) -> Dict[UUID, int]:
    if not class_ids:
        return {}
    result = await db.execute(
        select(Enrollment.class_id, func.count(Enrollment.id))
        .where(
            Enrollment.class_id.in_(class_ids),
            Enrollment.status == EnrollmentStatus.ACTIVE.value,
        )
        .group_by(Enrollment.class_id)
    )
    return {class_id: count for class_id, count in result.all()}


async def _validate_class_teacher(db: AsyncSession, school_id: UUID, teacher_id: UUID) -> None:
    teacher = await db.get(User, teacher_id)
    if (
        not teacher
        or teacher.school_id != school_id
        or teacher.role != Role.TEACHER.value
        or teacher.status != UserStatus.APPROVED.value
    ):
        raise ServiceError(
            ErrorKind.VALIDATION, "Class teacher must be an approved TEACHER of this school"
        )


async def load_class(db: AsyncSession, context: ServiceContext, class_id: UUID) -> SchoolClass:
    require_school_context(context)
    obj = await db.get(SchoolClass, class_id)
    if not obj:
        raise ServiceError(ErrorKind.NOT_FOUND, "Class not found")
    require_school_access(context, obj.school_id)
    return obj


async def create_class(
    db: AsyncSession, context: ServiceContext, payload: ClassCreate
) -> ClassResponse:
    ay = await get_academic_year(db, context, payload.academic_year_id)
    if payload.class_teacher_id:
        await _validate_class_teacher(db, ay.school_id, payload.class_teacher_id)

    obj = SchoolClass(
        school_id=ay.school_id,
        academic_year_id=ay.id,
        academic_year=ay,
        name=payload.name.strip(),
        grade=payload.grade.strip(),
        stream=payload.stream.strip() if payload.stream else None,
        class_teacher_id=payload.class_teacher_id,
    )
    db.add(obj)
    try:
        await db.flush()
        log_audit(
            db,
            "CREATE_CLASS",
            "Class",
            obj.id,
            user_id=context.user_id,
            school_id=ay.school_id,
            details=f"Created class {obj.name} in {ay.name}",
        )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError(
            ErrorKind.CONFLICT, f"Class '{payload.name}' already exists in this academic year"
        )
    await db.refresh(obj)
    return _class_to_response(obj)


async def list_classes(
    db: AsyncSession,
    context: ServiceContext,
    academic_year_id: Optional[UUID] = None,
    grade: Optional[str] = None,
) -> List[ClassResponse]:
    require_school_context(context)
    stmt = select(SchoolClass).where(SchoolClass.school_id == context.school_id)
    if academic_year_id:
        stmt = stmt.where(SchoolClass.academic_year_id == academic_year_id)
    if grade:
        stmt = stmt.where(SchoolClass.grade == grade)
    stmt = stmt.order_by(SchoolClass.grade, SchoolClass.name)
    result = await db.execute(stmt)
    rows = list(result.unique().scalars().all())
    counts = await _active_counts(db, [c.id for c in rows])
    return [_class_to_response(c, counts.get(c.id, 0)) for c in rows]


async def get_class(db: AsyncSession, context: ServiceContext, class_id: UUID) -> ClassResponse:
    obj = await load_class(db, context, class_id)
    counts = await _active_counts(db, [obj.id])
    return _class_to_response(obj, counts.get(obj.id, 0))


async def update_class(
    db: AsyncSession, context: ServiceContext, class_id: UUID, payload: ClassUpdate
) -> ClassResponse:
    obj = await load_class(db, context, class_id)
    data = payload.model_dump(exclude_unset=True)
    if data.get("class_teacher_id"):
        await _validate_class_teacher(db, obj.school_id, data["class_teacher_id"])
    for field, value in data.items():
        if isinstance(value, str):
            value = value.strip()
        setattr(obj, field, value)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError(ErrorKind.CONFLICT, "Class name already exists in this academic year")
    await db.refresh(obj)
    counts = await _active_counts(db, [obj.id])
    return _class_to_response(obj, counts.get(obj.id, 0))


async def delete_class(db: AsyncSession, context: ServiceContext, class_id: UUID) -> None:
    obj = await load_class(db, context, class_id)
    has_enrollments = (
        await db.execute(select(Enrollment.id).where(Enrollment.class_id == obj.id).limit(1))
    ).scalar_one_or_none()
    if has_enrollments:
        raise ServiceError(
            ErrorKind.CONFLICT,
            "Cannot delete class with existing enrollments. Transfer or remove students first.",
        )
    log_audit(
        db,
        "DELETE_CLASS",
        "Class",
        obj.id,
        user_id=context.user_id,
        school_id=obj.school_id,
        details=f"Deleted class {obj.name}",
    )
    await db.delete(obj)
    await db.commit()
    logger.info("Class %s deleted by %s", class_id, context.user_id)
