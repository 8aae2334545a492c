from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from schooladmin.auth.dependencies import get_service_context, require_roles
from schooladmin.auth.roles import RoleGroups
from schooladmin.auth.schemas import ServiceContext
from schooladmin.core.schemas import SuccessResponse
from schooladmin.db.session import get_db

from .schemas import SchoolCreate, SchoolResponse
from . import service

router = APIRouter(prefix="/api/v1/schools", tags=["schools"])


@router.post(
    "",
    response_model=SuccessResponse[SchoolResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_school(
    payload: SchoolCreate,
    context: ServiceContext = Depends(require_roles(RoleGroups.PLATFORM_ADMINS)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[SchoolResponse]:
    """Register a new school. SUPER_ADMIN only."""
    school = await service.create_school(db, context, payload)
    return SuccessResponse(data=SchoolResponse.model_validate(school))


@router.get("", response_model=SuccessResponse[List[SchoolResponse]])
async def list_schools(
    context: ServiceContext = Depends(get_service_context),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[List[SchoolResponse]]:
    """All schools for SUPER_ADMIN; the caller's own school otherwise."""
    schools = await service.list_schools(db, context)
    return SuccessResponse(data=[SchoolResponse.model_validate(s) for s in schools])


@router.get("/{school_id}", response_model=SuccessResponse[SchoolResponse])
async def get_school(
    school_id: UUID,
    context: ServiceContext = Depends(get_service_context),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[SchoolResponse]:
    school = await service.get_school(db, context, school_id)
    return SuccessResponse(data=SchoolResponse.model_validate(school))
