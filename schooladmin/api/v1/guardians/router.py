from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from schooladmin.api.v1.students.schemas import StudentResponse
from schooladmin.auth.dependencies import require_roles
from schooladmin.auth.roles import RoleGroups
from schooladmin.auth.schemas import ServiceContext
from schooladmin.core.enums import Role
from schooladmin.core.schemas import SuccessResponse
from schooladmin.db.session import get_db

from .schemas import GuardianCreate, GuardianResponse, GuardianUpdate
from . import service

router = APIRouter(prefix="/api/v1/guardians", tags=["guardians"])


@router.post(
    "",
    response_model=SuccessResponse[GuardianResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_guardian(
    payload: GuardianCreate,
    context: ServiceContext = Depends(require_roles(RoleGroups.SCHOOL_ADMINS)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[GuardianResponse]:
    """Create the guardian record for an existing PARENT user."""
    return SuccessResponse(data=await service.create_guardian(db, context, payload))


@router.get("", response_model=SuccessResponse[List[GuardianResponse]])
async def list_guardians(
    search: Optional[str] = Query(None, description="Name or email"),
    context: ServiceContext = Depends(require_roles(RoleGroups.ACADEMIC_STAFF)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[List[GuardianResponse]]:
    return SuccessResponse(data=await service.list_guardians(db, context, search=search))


@router.get("/me/students", response_model=SuccessResponse[List[StudentResponse]])
async def my_students(
    context: ServiceContext = Depends(require_roles((Role.PARENT,))),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[List[StudentResponse]]:
    """Children of the calling parent."""
    students = await service.list_own_students(db, context)
    return SuccessResponse(data=[StudentResponse.model_validate(s) for s in students])


@router.get("/{guardian_id}", response_model=SuccessResponse[GuardianResponse])
async def get_guardian(
    guardian_id: UUID,
    context: ServiceContext = Depends(require_roles(RoleGroups.ACADEMIC_STAFF)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[GuardianResponse]:
    return SuccessResponse(data=await service.get_guardian(db, context, guardian_id))


@router.patch("/{guardian_id}", response_model=SuccessResponse[GuardianResponse])
async def update_guardian(
    guardian_id: UUID,
    payload: GuardianUpdate,
    context: ServiceContext = Depends(require_roles(RoleGroups.SCHOOL_ADMINS)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[GuardianResponse]:
    return SuccessResponse(data=await service.update_guardian(db, context, guardian_id, payload))
