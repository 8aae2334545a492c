"""School create / list / read, scoped by the caller's school."""

import logging
from typing import List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from schooladmin.auth.roles import is_super_admin, require_school_access
from schooladmin.auth.schemas import ServiceContext
from schooladmin.core.audit_service import log_audit
from schooladmin.core.enums import SchoolStatus
from schooladmin.core.exceptions import ErrorKind, ServiceError
from schooladmin.core.models import School

from .schemas import SchoolCreate

logger = logging.getLogger(__name__)


async def create_school(db: AsyncSession, context: ServiceContext, payload: SchoolCreate) -> School:
    slug = payload.slug.strip().lower()
    existing = (
        await db.execute(select(School.id).where(School.slug == slug))
    ).scalar_one_or_none()
    if existing:
        raise ServiceError(ErrorKind.CONFLICT, f"School with slug '{slug}' already exists")

    school = School(
        name=payload.name.strip(),
        slug=slug,
        address=payload.address,
        phone=payload.phone,
        email=payload.email,
        status=SchoolStatus.ACTIVE.value,
    )
    db.add(school)
    await db.flush()
    log_audit(
        db,
        "CREATE_SCHOOL",
        "School",
        school.id,
        user_id=context.user_id,
        school_id=school.id,
        details=f"Created school {school.name} ({school.slug})",
    )
    await db.commit()
    await db.refresh(school)
    logger.info("School %s created by %s", school.id, context.user_id)
    return school


async def list_schools(db: AsyncSession, context: ServiceContext) -> List[School]:
    stmt = select(School).order_by(School.name)
    if not is_super_admin(context.role):
        stmt = stmt.where(School.id == context.school_id)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_school(db: AsyncSession, context: ServiceContext, school_id: UUID) -> School:
    require_school_access(context, school_id)
    school = await db.get(School, school_id)
    if not school:
        raise ServiceError(ErrorKind.NOT_FOUND, "School not found")
    return school
