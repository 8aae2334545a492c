"""
Student records for the caller's school.

Deletion is soft: deleted_at is set and the row drops out of every read, but
enrollments and invoices keep pointing at it and restore_student brings it back.
"""

import logging
import math
from datetime import datetime, timezone
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from schooladmin.auth.roles import require_school_access, require_school_context
from schooladmin.auth.schemas import ServiceContext
from schooladmin.core.audit_service import log_audit
from schooladmin.core.enums import EnrollmentStatus
from schooladmin.core.exceptions import ErrorKind, ServiceError
from schooladmin.core.models import Enrollment, Guardian, Student
from schooladmin.core.schemas import Pagination

from .schemas import StudentCreate, StudentUpdate

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


async def _check_guardian(db: AsyncSession, school_id: UUID, guardian_id: Optional[UUID]) -> None:
    if guardian_id is None:
        return
    guardian = await db.get(Guardian, guardian_id)
    if not guardian or guardian.school_id != school_id:
        raise ServiceError(ErrorKind.NOT_FOUND, "Guardian not found")


async def _check_admission_number(
    db: AsyncSession,
    school_id: UUID,
    admission_number: Optional[str],
    exclude_id: Optional[UUID] = None,
) -> None:
    if not admission_number:
        return
    stmt = select(Student.id).where(
        Student.school_id == school_id, Student.admission_number == admission_number
    )
    if exclude_id is not None:
        stmt = stmt.where(Student.id != exclude_id)
    if (await db.execute(stmt)).scalar_one_or_none():
        raise ServiceError(ErrorKind.CONFLICT, "Admission number already exists")


async def load_student(
    db: AsyncSession, context: ServiceContext, student_id: UUID, include_deleted: bool = False
) -> Student:
    require_school_context(context)
    student = await db.get(Student, student_id)
    if not student or (student.deleted_at is not None and not include_deleted):
        raise ServiceError(ErrorKind.NOT_FOUND, "Student not found")
    require_school_access(context, student.school_id)
    return student


async def create_student(
    db: AsyncSession, context: ServiceContext, payload: StudentCreate
) -> Student:
    require_school_context(context)
    school_id = context.school_id
    admission_number = payload.admission_number.strip() if payload.admission_number else None
    await _check_admission_number(db, school_id, admission_number)
    await _check_guardian(db, school_id, payload.guardian_id)

    student = Student(
        school_id=school_id,
        first_name=payload.first_name.strip(),
        last_name=payload.last_name.strip(),
        date_of_birth=payload.date_of_birth,
        gender=payload.gender.value if payload.gender else None,
        address=payload.address,
        phone=payload.phone,
        email=payload.email,
        admission_number=admission_number,
        guardian_id=payload.guardian_id,
    )
    db.add(student)
    await db.flush()
    log_audit(
        db,
        "CREATE_STUDENT",
        "Student",
        student.id,
        user_id=context.user_id,
        school_id=school_id,
        details=f"Created student {student.first_name} {student.last_name}",
    )
    await db.commit()
    await db.refresh(student)
    return student


async def list_students(
    db: AsyncSession,
    context: ServiceContext,
    search: Optional[str] = None,
    gender: Optional[str] = None,
    has_guardian: Optional[bool] = None,
    page: int = 1,
    limit: Optional[int] = None,
) -> Tuple[List[Student], Pagination]:
    """Live students of the school, by last name. search matches names and admission number."""
    require_school_context(context)
    page = max(1, page or 1)
    limit = min(max(1, limit or DEFAULT_PAGE_SIZE), MAX_PAGE_SIZE)

    conditions = [Student.school_id == context.school_id, Student.deleted_at.is_(None)]
    if search:
        pattern = f"%{search.strip()}%"
        conditions.append(
            Student.first_name.ilike(pattern)
            | Student.last_name.ilike(pattern)
            | Student.admission_number.ilike(pattern)
        )
    if gender:
        conditions.append(Student.gender == gender)
    if has_guardian is True:
        conditions.append(Student.guardian_id.is_not(None))
    elif has_guardian is False:
        conditions.append(Student.guardian_id.is_(None))

    total = (
        await db.execute(select(func.count()).select_from(Student).where(*conditions))
    ).scalar_one()
    result = await db.execute(
        select(Student)
        .where(*conditions)
        .order_by(Student.last_name, Student.first_name)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    pages = math.ceil(total / limit) if total else 0
    pagination = Pagination(
        current_page=page,
        total_pages=pages,
        total_count=total,
        limit=limit,
        has_next_page=page < pages,
        has_prev_page=page > 1,
    )
    return list(result.scalars().all()), pagination


async def update_student(
    db: AsyncSession, context: ServiceContext, student_id: UUID, payload: StudentUpdate
) -> Student:
    student = await load_student(db, context, student_id)
    data = payload.model_dump(exclude_unset=True)
    if data.get("admission_number"):
        data["admission_number"] = data["admission_number"].strip()
        await _check_admission_number(
            db, student.school_id, data["admission_number"], exclude_id=student.id
        )
    if "guardian_id" in data:
        await _check_guardian(db, student.school_id, data["guardian_id"])
    if data.get("gender") is not None:
        data["gender"] = data["gender"].value

    for field, value in data.items():
        setattr(student, field, value)
    await db.commit()
    await db.refresh(student)
    return student


async def delete_student(db: AsyncSession, context: ServiceContext, student_id: UUID) -> None:
    student = await load_student(db, context, student_id)
    active = (
        await db.execute(
            select(Enrollment.id)
            .where(
                Enrollment.student_id == student.id,
                Enrollment.status == EnrollmentStatus.ACTIVE.value,
            )
            .limit(1)
        )
    ).scalar_one_or_none()
    if active:
        raise ServiceError(
            ErrorKind.CONFLICT,
            "Cannot delete student with active enrollments. Archive or transfer them first.",
        )
    student.deleted_at = datetime.now(timezone.utc)
    log_audit(
        db,
        "DELETE_STUDENT",
        "Student",
        student.id,
        user_id=context.user_id,
        school_id=student.school_id,
    )
    await db.commit()
    logger.info("Student %s soft-deleted by %s", student.id, context.user_id)


async def restore_student(db: AsyncSession, context: ServiceContext, student_id: UUID) -> Student:
    student = await load_student(db, context, student_id, include_deleted=True)
    if student.deleted_at is None:
        raise ServiceError(ErrorKind.CONFLICT, "Student is not deleted")
    student.deleted_at = None
    log_audit(
        db,
        "RESTORE_STUDENT",
        "Student",
        student.id,
        user_id=context.user_id,
        school_id=student.school_id,
    )
    await db.commit()
    await db.refresh(student)
    return student
