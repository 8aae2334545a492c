from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from schooladmin.auth.dependencies import require_roles
from schooladmin.auth.roles import RoleGroups
from schooladmin.auth.schemas import ServiceContext
from schooladmin.core.enums import EnrollmentStatus
from schooladmin.core.schemas import SuccessResponse
from schooladmin.db.session import get_db

from .schemas import EnrollmentCreate, EnrollmentResponse, EnrollmentTransfer
from . import service

router = APIRouter(prefix="/api/v1/enrollments", tags=["enrollments"])


@router.post(
    "",
    response_model=SuccessResponse[EnrollmentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_enrollment(
    payload: EnrollmentCreate,
    context: ServiceContext = Depends(require_roles(RoleGroups.SCHOOL_ADMINS)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[EnrollmentResponse]:
    """Enroll a student in a class; the academic year is the class's."""
    enrollment = await service.create_enrollment(db, context, payload)
    return SuccessResponse(data=EnrollmentResponse.model_validate(enrollment))


@router.get("", response_model=SuccessResponse[List[EnrollmentResponse]])
async def list_enrollments(
    student_id: Optional[UUID] = Query(None),
    class_id: Optional[UUID] = Query(None),
    academic_year_id: Optional[UUID] = Query(None),
    status_filter: Optional[EnrollmentStatus] = Query(None, alias="status"),
    context: ServiceContext = Depends(require_roles(RoleGroups.ACADEMIC_STAFF)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[List[EnrollmentResponse]]:
    enrollments = await service.list_enrollments(
        db,
        context,
        student_id=student_id,
        class_id=class_id,
        academic_year_id=academic_year_id,
        status_filter=status_filter.value if status_filter else None,
    )
    return SuccessResponse(data=[EnrollmentResponse.model_validate(e) for e in enrollments])


@router.get("/{enrollment_id}", response_model=SuccessResponse[EnrollmentResponse])
async def get_enrollment(
    enrollment_id: UUID,
    context: ServiceContext = Depends(require_roles(RoleGroups.ACADEMIC_STAFF)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[EnrollmentResponse]:
    enrollment = await service.load_enrollment(db, context, enrollment_id)
    return SuccessResponse(data=EnrollmentResponse.model_validate(enrollment))


@router.post("/{enrollment_id}/transfer", response_model=SuccessResponse[EnrollmentResponse])
async def transfer_enrollment(
    enrollment_id: UUID,
    payload: EnrollmentTransfer,
    context: ServiceContext = Depends(require_roles(RoleGroups.SCHOOL_ADMINS)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[EnrollmentResponse]:
    enrollment = await service.transfer_enrollment(db, context, enrollment_id, payload.class_id)
    return SuccessResponse(data=EnrollmentResponse.model_validate(enrollment))


@router.post("/{enrollment_id}/drop", response_model=SuccessResponse[EnrollmentResponse])
async def drop_enrollment(
    enrollment_id: UUID,
    context: ServiceContext = Depends(require_roles(RoleGroups.SCHOOL_ADMINS)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[EnrollmentResponse]:
    enrollment = await service.drop_enrollment(db, context, enrollment_id)
    return SuccessResponse(data=EnrollmentResponse.model_validate(enrollment))


@router.post("/{enrollment_id}/complete", response_model=SuccessResponse[EnrollmentResponse])
async def complete_enrollment(
    enrollment_id: UUID,
    context: ServiceContext = Depends(require_roles(RoleGroups.SCHOOL_ADMINS)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[EnrollmentResponse]:
    enrollment = await service.complete_enrollment(db, context, enrollment_id)
    return SuccessResponse(data=EnrollmentResponse.model_validate(enrollment))


@router.delete("/{enrollment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_enrollment(
    enrollment_id: UUID,
    context: ServiceContext = Depends(require_roles(RoleGroups.SCHOOL_ADMINS)),
    db: AsyncSession = Depends(get_db),
) -> None:
    """Refused once the enrollment has been invoiced."""
    await service.delete_enrollment(db, context, enrollment_id)
