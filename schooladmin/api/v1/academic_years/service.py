"""Academic years and their terms, scoped to the caller's school."""

from datetime import date
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from schooladmin.auth.roles import require_school_access, require_school_context
from schooladmin.auth.schemas import ServiceContext
from schooladmin.core.audit_service import log_audit
from schooladmin.core.enums import AcademicYearStatus, TermStatus
from schooladmin.core.exceptions import ErrorKind, ServiceError
from schooladmin.core.models import AcademicYear, Term

from .schemas import AcademicYearCreate, AcademicYearUpdate, TermCreate


def _validate_dates(start_date: date, end_date: date) -> None:
    if end_date <= start_date:
        raise ServiceError(ErrorKind.VALIDATION, "end_date must be after start_date")


async def _unset_current(db: AsyncSession, school_id: UUID, keep_id: Optional[UUID] = None) -> None:
    stmt = update(AcademicYear).where(
        AcademicYear.school_id == school_id, AcademicYear.is_current.is_(True)
    )
    if keep_id is not None:
        stmt = stmt.where(AcademicYear.id != keep_id)
    await db.execute(stmt.values(is_current=False))


async def get_academic_year(
    db: AsyncSession, context: ServiceContext, academic_year_id: UUID
) -> AcademicYear:
    require_school_context(context)
    ay = await db.get(AcademicYear, academic_year_id)
    if not ay:
        raise ServiceError(ErrorKind.NOT_FOUND, "Academic year not found")
    require_school_access(context, ay.school_id)
    return ay


async def create_academic_year(
    db: AsyncSession, context: ServiceContext, payload: AcademicYearCreate
) -> AcademicYear:
    """Create a year. If is_current, every other year of the school stops being current."""
    require_school_context(context)
    _validate_dates(payload.start_date, payload.end_date)
    name = payload.name.strip()
    existing = await db.execute(
        select(AcademicYear.id).where(
            AcademicYear.school_id == context.school_id,
            AcademicYear.name == name,
        )
    )
    if existing.scalar_one_or_none():
        raise ServiceError(
            ErrorKind.CONFLICT, f"Academic year with name '{name}' already exists for this school"
        )
    if payload.is_current:
        await _unset_current(db, context.school_id)

    ay = AcademicYear(
        school_id=context.school_id,
        name=name,
        start_date=payload.start_date,
        end_date=payload.end_date,
        is_current=payload.is_current,
        status=AcademicYearStatus.ACTIVE.value,
    )
    db.add(ay)
    try:
        await db.flush()
        log_audit(
            db,
            "CREATE_ACADEMIC_YEAR",
            "AcademicYear",
            ay.id,
            user_id=context.user_id,
            school_id=context.school_id,
            details=f"Created academic year {name}",
        )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError(ErrorKind.CONFLICT, "Academic year name conflict")
    await db.refresh(ay)
    return ay


async def list_academic_years(
    db: AsyncSession, context: ServiceContext, status_filter: Optional[str] = None
) -> List[AcademicYear]:
    require_school_context(context)
    stmt = select(AcademicYear).where(AcademicYear.school_id == context.school_id)
    if status_filter:
        stmt = stmt.where(AcademicYear.status == status_filter)
    stmt = stmt.order_by(AcademicYear.start_date.desc())
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_current_academic_year(db: AsyncSession, context: ServiceContext) -> AcademicYear:
    require_school_context(context)
    result = await db.execute(
        select(AcademicYear).where(
            AcademicYear.school_id == context.school_id,
            AcademicYear.is_current.is_(True),
        )
    )
    ay = result.scalar_one_or_none()
    if not ay:
        raise ServiceError(ErrorKind.NOT_FOUND, "No current academic year set")
    return ay


async def update_academic_year(
    db: AsyncSession,
    context: ServiceContext,
    academic_year_id: UUID,
    payload: AcademicYearUpdate,
) -> AcademicYear:
    ay = await get_academic_year(db, context, academic_year_id)
    data = payload.model_dump(exclude_unset=True)

    start_date = data.get("start_date", ay.start_date)
    end_date = data.get("end_date", ay.end_date)
    _validate_dates(start_date, end_date)
    if "name" in data and data["name"]:
        data["name"] = data["name"].strip()
    if "status" in data and data["status"] is not None:
        data["status"] = AcademicYearStatus(data["status"]).value
    if data.get("is_current"):
        await _unset_current(db, ay.school_id, keep_id=ay.id)

    for field, value in data.items():
        if value is not None:
            setattr(ay, field, value)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError(ErrorKind.CONFLICT, "Academic year name conflict")
    await db.refresh(ay)
    return ay


# ----- Terms -----

async def create_term(
    db: AsyncSession, context: ServiceContext, academic_year_id: UUID, payload: TermCreate
) -> Term:
    ay = await get_academic_year(db, context, academic_year_id)
    _validate_dates(payload.start_date, payload.end_date)
    if payload.start_date < ay.start_date or payload.end_date > ay.end_date:
        raise ServiceError(ErrorKind.VALIDATION, "Term dates must fall within the academic year")

    term = Term(
        school_id=ay.school_id,
        academic_year_id=ay.id,
        name=payload.name.strip(),
        start_date=payload.start_date,
        end_date=payload.end_date,
        status=TermStatus.ACTIVE.value,
    )
    db.add(term)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError(
            ErrorKind.CONFLICT, f"Term '{payload.name}' already exists in this academic year"
        )
    await db.refresh(term)
    return term


async def list_terms(db: AsyncSession, context: ServiceContext, academic_year_id: UUID) -> List[Term]:
    ay = await get_academic_year(db, context, academic_year_id)
    result = await db.execute(
        select(Term).where(Term.academic_year_id == ay.id).order_by(Term.start_date)
    )
    return list(result.scalars().all())


async def get_term(db: AsyncSession, context: ServiceContext, term_id: UUID) -> Term:
    require_school_context(context)
    term = await db.get(Term, term_id)
    if not term:
        raise ServiceError(ErrorKind.NOT_FOUND, "Term not found")
    require_school_access(context, term.school_id)
    return term


async def lock_term(db: AsyncSession, context: ServiceContext, term_id: UUID) -> Term:
    """LOCKED terms are closed for new invoices."""
    term = await get_term(db, context, term_id)
    if term.status == TermStatus.LOCKED.value:
        raise ServiceError(ErrorKind.CONFLICT, "Term is already locked")
    term.status = TermStatus.LOCKED.value
    log_audit(
        db,
        "LOCK_TERM",
        "Term",
        term.id,
        user_id=context.user_id,
        school_id=term.school_id,
    )
    await db.commit()
    await db.refresh(term)
    return term
