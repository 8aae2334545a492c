from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class EnrollmentCreate(BaseModel):
    student_id: UUID
    class_id: UUID
    enrollment_date: Optional[date] = None


class EnrollmentTransfer(BaseModel):
    class_id: UUID


class EnrollmentResponse(BaseModel):
    id: UUID
    school_id: UUID
    student_id: UUID
    academic_year_id: UUID
    class_id: UUID
    status: str
    enrollment_date: date
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
