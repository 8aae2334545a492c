from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ClassCreate(BaseModel):
    academic_year_id: UUID
    name: str = Field(..., min_length=1, max_length=100)
    grade: str = Field(..., min_length=1, max_length=20)
    stream: Optional[str] = Field(None, max_length=50)
    class_teacher_id: Optional[UUID] = None


class ClassUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    grade: Optional[str] = Field(None, min_length=1, max_length=20)
    stream: Optional[str] = Field(None, max_length=50)
    class_teacher_id: Optional[UUID] = None


class ClassResponse(BaseModel):
    id: UUID
    school_id: UUID
    academic_year_id: UUID
    academic_year_name: Optional[str] = None
    name: str
    grade: str
    stream: Optional[str] = None
    class_teacher_id: Optional[UUID] = None
    active_enrollments: int = 0
    created_at: datetime
    updated_at: datetime
