from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from schooladmin.auth.dependencies import require_roles
from schooladmin.auth.roles import RoleGroups
from schooladmin.auth.schemas import ServiceContext
from schooladmin.core.enums import Gender
from schooladmin.core.schemas import SuccessResponse
from schooladmin.db.session import get_db

from .schemas import StudentCreate, StudentPage, StudentResponse, StudentUpdate
from . import service

router = APIRouter(prefix="/api/v1/students", tags=["students"])


@router.post(
    "",
    response_model=SuccessResponse[StudentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_student(
    payload: StudentCreate,
    context: ServiceContext = Depends(require_roles(RoleGroups.SCHOOL_ADMINS)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[StudentResponse]:
    student = await service.create_student(db, context, payload)
    return SuccessResponse(data=StudentResponse.model_validate(student))


@router.get("", response_model=SuccessResponse[StudentPage])
async def list_students(
    search: Optional[str] = Query(None, description="Name or admission number"),
    gender: Optional[Gender] = Query(None),
    has_guardian: Optional[bool] = Query(None),
    page: int = Query(1),
    limit: Optional[int] = Query(None, description="Items per page (default 20, max 100)"),
    context: ServiceContext = Depends(require_roles(RoleGroups.ACADEMIC_STAFF)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[StudentPage]:
    students, pagination = await service.list_students(
        db,
        context,
        search=search,
        gender=gender.value if gender else None,
        has_guardian=has_guardian,
        page=page,
        limit=limit,
    )
    return SuccessResponse(
        data=StudentPage(
            students=[StudentResponse.model_validate(s) for s in students],
            pagination=pagination,
        )
    )


@router.get("/{student_id}", response_model=SuccessResponse[StudentResponse])
async def get_student(
    student_id: UUID,
    context: ServiceContext = Depends(require_roles(RoleGroups.ACADEMIC_STAFF)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[StudentResponse]:
    student = await service.load_student(db, context, student_id)
    return SuccessResponse(data=StudentResponse.model_validate(student))


@router.patch("/{student_id}", response_model=SuccessResponse[StudentResponse])
async def update_student(
    student_id: UUID,
    payload: StudentUpdate,
    context: ServiceContext = Depends(require_roles(RoleGroups.SCHOOL_ADMINS)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[StudentResponse]:
    student = await service.update_student(db, context, student_id, payload)
    return SuccessResponse(data=StudentResponse.model_validate(student))


@router.delete("/{student_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_student(
    student_id: UUID,
    context: ServiceContext = Depends(require_roles(RoleGroups.SCHOOL_ADMINS)),
    db: AsyncSession = Depends(get_db),
) -> None:
    """Soft delete. Refused while the student has an ACTIVE enrollment."""
    await service.delete_student(db, context, student_id)


@router.post("/{student_id}/restore", response_model=SuccessResponse[StudentResponse])
async def restore_student(
    student_id: UUID,
    context: ServiceContext = Depends(require_roles(RoleGroups.SCHOOL_ADMINS)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[StudentResponse]:
    student = await service.restore_student(db, context, student_id)
    return SuccessResponse(data=StudentResponse.model_validate(student))
