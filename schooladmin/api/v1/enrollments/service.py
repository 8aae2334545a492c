"""
Enrollments: a student in a class for one academic year.

ACTIVE is the only state that moves: transfer keeps it ACTIVE in another class
of the same year; drop and complete end it.
"""

import logging
from datetime import date
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from schooladmin.api.v1.classes.service import load_class
from schooladmin.api.v1.students.service import load_student
from schooladmin.auth.roles import require_school_access, require_school_context
from schooladmin.auth.schemas import ServiceContext
from schooladmin.core.audit_service import log_audit
from schooladmin.core.enums import EnrollmentStatus
from schooladmin.core.exceptions import ErrorKind, ServiceError
from schooladmin.core.models import Enrollment, Invoice

from .schemas import EnrollmentCreate

logger = logging.getLogger(__name__)


async def load_enrollment(
    db: AsyncSession, context: ServiceContext, enrollment_id: UUID
) -> Enrollment:
    require_school_context(context)
    enrollment = await db.get(Enrollment, enrollment_id)
    if not enrollment:
        raise ServiceError(ErrorKind.NOT_FOUND, "Enrollment not found")
    require_school_access(context, enrollment.school_id)
    return enrollment


async def create_enrollment(
    db: AsyncSession, context: ServiceContext, payload: EnrollmentCreate
) -> Enrollment:
    student = await load_student(db, context, payload.student_id)
    school_class = await load_class(db, context, payload.class_id)
    if school_class.school_id != student.school_id:
        raise ServiceError(ErrorKind.NOT_FOUND, "Class not found")

    existing = await db.execute(
        select(Enrollment.id).where(
            Enrollment.student_id == student.id,
            Enrollment.academic_year_id == school_class.academic_year_id,
        )
    )
    if existing.scalar_one_or_none():
        raise ServiceError(ErrorKind.CONFLICT, "Student is already enrolled in this academic year")

    enrollment = Enrollment(
        school_id=student.school_id,
        student_id=student.id,
        academic_year_id=school_class.academic_year_id,
        class_id=school_class.id,
        status=EnrollmentStatus.ACTIVE.value,
        enrollment_date=payload.enrollment_date or date.today(),
    )
    db.add(enrollment)
    try:
        await db.flush()
        log_audit(
            db,
            "CREATE_ENROLLMENT",
            "Enrollment",
            enrollment.id,
            user_id=context.user_id,
            school_id=enrollment.school_id,
            details=f"Student {student.id} enrolled in class {school_class.name}",
        )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError(ErrorKind.CONFLICT, "Student is already enrolled in this academic year")
    await db.refresh(enrollment)
    return enrollment


async def list_enrollments(
    db: AsyncSession,
    context: ServiceContext,
    student_id: Optional[UUID] = None,
    class_id: Optional[UUID] = None,
    academic_year_id: Optional[UUID] = None,
    status_filter: Optional[str] = None,
) -> List[Enrollment]:
    require_school_context(context)
    stmt = select(Enrollment).where(Enrollment.school_id == context.school_id)
    if student_id:
        stmt = stmt.where(Enrollment.student_id == student_id)
    if class_id:
        stmt = stmt.where(Enrollment.class_id == class_id)
    if academic_year_id:
        stmt = stmt.where(Enrollment.academic_year_id == academic_year_id)
    if status_filter:
        stmt = stmt.where(Enrollment.status == status_filter)
    stmt = stmt.order_by(Enrollment.enrollment_date.desc(), Enrollment.created_at.desc())
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def transfer_enrollment(
    db: AsyncSession, context: ServiceContext, enrollment_id: UUID, class_id: UUID
) -> Enrollment:
    enrollment = await load_enrollment(db, context, enrollment_id)
    if enrollment.status != EnrollmentStatus.ACTIVE.value:
        raise ServiceError(ErrorKind.VALIDATION, "Can only transfer active enrollments")

    target = await load_class(db, context, class_id)
    if (
        target.school_id != enrollment.school_id
        or target.academic_year_id != enrollment.academic_year_id
    ):
        raise ServiceError(ErrorKind.NOT_FOUND, "Class not found in this academic year")
    if target.id == enrollment.class_id:
        raise ServiceError(ErrorKind.VALIDATION, "Student is already in this class")

    previous_class_id = enrollment.class_id
    enrollment.class_id = target.id
    log_audit(
        db,
        "TRANSFER_ENROLLMENT",
        "Enrollment",
        enrollment.id,
        user_id=context.user_id,
        school_id=enrollment.school_id,
        details=f"Class {previous_class_id} -> {target.id}",
    )
    await db.commit()
    await db.refresh(enrollment)
    return enrollment


async def _end_enrollment(
    db: AsyncSession,
    context: ServiceContext,
    enrollment_id: UUID,
    to_status: EnrollmentStatus,
    action: str,
) -> Enrollment:
    enrollment = await load_enrollment(db, context, enrollment_id)
    if enrollment.status != EnrollmentStatus.ACTIVE.value:
        raise ServiceError(
            ErrorKind.CONFLICT,
            f"Enrollment is not active. Current status: {enrollment.status}",
        )
    enrollment.status = to_status.value
    log_audit(
        db,
        action,
        "Enrollment",
        enrollment.id,
        user_id=context.user_id,
        school_id=enrollment.school_id,
    )
    await db.commit()
    await db.refresh(enrollment)
    return enrollment


async def drop_enrollment(db: AsyncSession, context: ServiceContext, enrollment_id: UUID) -> Enrollment:
    return await _end_enrollment(
        db, context, enrollment_id, EnrollmentStatus.DROPPED, "DROP_ENROLLMENT"
    )


async def complete_enrollment(
    db: AsyncSession, context: ServiceContext, enrollment_id: UUID
) -> Enrollment:
    """Close out an enrollment at the end of its academic year."""
    return await _end_enrollment(
        db, context, enrollment_id, EnrollmentStatus.COMPLETED, "COMPLETE_ENROLLMENT"
    )


async def delete_enrollment(db: AsyncSession, context: ServiceContext, enrollment_id: UUID) -> None:
    enrollment = await load_enrollment(db, context, enrollment_id)
    invoiced = (
        await db.execute(select(Invoice.id).where(Invoice.enrollment_id == enrollment.id).limit(1))
    ).scalar_one_or_none()
    if invoiced:
        raise ServiceError(ErrorKind.CONFLICT, "Cannot delete enrollment with associated invoices")
    log_audit(
        db,
        "DELETE_ENROLLMENT",
        "Enrollment",
        enrollment.id,
        user_id=context.user_id,
        school_id=enrollment.school_id,
    )
    await db.delete(enrollment)
    await db.commit()
    logger.info("Enrollment %s deleted by %s", enrollment_id, context.user_id)
