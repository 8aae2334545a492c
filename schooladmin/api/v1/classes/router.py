from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from schooladmin.auth.dependencies import require_roles
from schooladmin.auth.roles import RoleGroups
from schooladmin.auth.schemas import ServiceContext
from schooladmin.core.schemas import SuccessResponse
from schooladmin.db.session import get_db

from .schemas import ClassCreate, ClassResponse, ClassUpdate
from . import service

router = APIRouter(prefix="/api/v1/classes", tags=["classes"])


@router.post(
    "",
    response_model=SuccessResponse[ClassResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_class(
    payload: ClassCreate,
    context: ServiceContext = Depends(require_roles(RoleGroups.SCHOOL_ADMINS)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[ClassResponse]:
    return SuccessResponse(data=await service.create_class(db, context, payload))


@router.get("", response_model=SuccessResponse[List[ClassResponse]])
async def list_classes(
    academic_year_id: Optional[UUID] = Query(None),
    grade: Optional[str] = Query(None),
    context: ServiceContext = Depends(require_roles(RoleGroups.ACADEMIC_STAFF)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[List[ClassResponse]]:
    """Classes of the caller's school with their active enrollment counts."""
    classes = await service.list_classes(db, context, academic_year_id=academic_year_id, grade=grade)
    return SuccessResponse(data=classes)


@router.get("/{class_id}", response_model=SuccessResponse[ClassResponse])
async def get_class(
    class_id: UUID,
    context: ServiceContext = Depends(require_roles(RoleGroups.ACADEMIC_STAFF)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[ClassResponse]:
    return SuccessResponse(data=await service.get_class(db, context, class_id))


@router.patch("/{class_id}", response_model=SuccessResponse[ClassResponse])
async def update_class(
    class_id: UUID,
    payload: ClassUpdate,
    context: ServiceContext = Depends(require_roles(RoleGroups.SCHOOL_ADMINS)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[ClassResponse]:
    return SuccessResponse(data=await service.update_class(db, context, class_id, payload))


@router.delete("/{class_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_class(
    class_id: UUID,
    context: ServiceContext = Depends(require_roles(RoleGroups.SCHOOL_ADMINS)),
    db: AsyncSession = Depends(get_db),
) -> None:
    """Refused while the class has enrollments."""
    await service.delete_class(db, context, class_id)
