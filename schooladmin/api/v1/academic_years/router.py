from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from schooladmin.auth.dependencies import require_roles
from schooladmin.auth.roles import RoleGroups
from schooladmin.auth.schemas import ServiceContext
from schooladmin.core.schemas import SuccessResponse
from schooladmin.db.session import get_db

from .schemas import (
    AcademicYearCreate,
    AcademicYearResponse,
    AcademicYearUpdate,
    TermCreate,
    TermResponse,
)
from . import service

router = APIRouter(prefix="/api/v1/academic-years", tags=["academic-years"])


@router.post(
    "",
    response_model=SuccessResponse[AcademicYearResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_academic_year(
    payload: AcademicYearCreate,
    context: ServiceContext = Depends(require_roles(RoleGroups.SCHOOL_ADMINS)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[AcademicYearResponse]:
    """Create an academic year. is_current=true unsets the current flag on every other year."""
    ay = await service.create_academic_year(db, context, payload)
    return SuccessResponse(data=AcademicYearResponse.model_validate(ay))


@router.get("", response_model=SuccessResponse[List[AcademicYearResponse]])
async def list_academic_years(
    status_filter: Optional[str] = Query(None, description="ACTIVE, COMPLETED or ARCHIVED"),
    context: ServiceContext = Depends(require_roles(RoleGroups.ALL_STAFF)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[List[AcademicYearResponse]]:
    years = await service.list_academic_years(db, context, status_filter=status_filter)
    return SuccessResponse(data=[AcademicYearResponse.model_validate(ay) for ay in years])


@router.get("/current", response_model=SuccessResponse[AcademicYearResponse])
async def get_current_academic_year(
    context: ServiceContext = Depends(require_roles(RoleGroups.ALL_STAFF)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[AcademicYearResponse]:
    ay = await service.get_current_academic_year(db, context)
    return SuccessResponse(data=AcademicYearResponse.model_validate(ay))


@router.get("/{academic_year_id}", response_model=SuccessResponse[AcademicYearResponse])
async def get_academic_year(
    academic_year_id: UUID,
    context: ServiceContext = Depends(require_roles(RoleGroups.ALL_STAFF)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[AcademicYearResponse]:
    ay = await service.get_academic_year(db, context, academic_year_id)
    return SuccessResponse(data=AcademicYearResponse.model_validate(ay))


@router.patch("/{academic_year_id}", response_model=SuccessResponse[AcademicYearResponse])
async def update_academic_year(
    academic_year_id: UUID,
    payload: AcademicYearUpdate,
    context: ServiceContext = Depends(require_roles(RoleGroups.SCHOOL_ADMINS)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[AcademicYearResponse]:
    ay = await service.update_academic_year(db, context, academic_year_id, payload)
    return SuccessResponse(data=AcademicYearResponse.model_validate(ay))


@router.post(
    "/{academic_year_id}/terms",
    response_model=SuccessResponse[TermResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_term(
    academic_year_id: UUID,
    payload: TermCreate,
    context: ServiceContext = Depends(require_roles(RoleGroups.SCHOOL_ADMINS)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[TermResponse]:
    term = await service.create_term(db, context, academic_year_id, payload)
    return SuccessResponse(data=TermResponse.model_validate(term))


@router.get("/{academic_year_id}/terms", response_model=SuccessResponse[List[TermResponse]])
async def list_terms(
    academic_year_id: UUID,
    context: ServiceContext = Depends(require_roles(RoleGroups.ALL_STAFF)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[List[TermResponse]]:
    terms = await service.list_terms(db, context, academic_year_id)
    return SuccessResponse(data=[TermResponse.model_validate(t) for t in terms])


@router.post("/terms/{term_id}/lock", response_model=SuccessResponse[TermResponse])
async def lock_term(
    term_id: UUID,
    context: ServiceContext = Depends(require_roles(RoleGroups.SCHOOL_ADMINS)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[TermResponse]:
    """Close a term for new invoices."""
    term = await service.lock_term(db, context, term_id)
    return SuccessResponse(data=TermResponse.model_validate(term))
