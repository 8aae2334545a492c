from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class GuardianCreate(BaseModel):
    user_id: UUID = Field(..., description="An existing PARENT user of the school")
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=500)


class GuardianUpdate(BaseModel):
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=500)


class GuardianResponse(BaseModel):
    id: UUID
    school_id: UUID
    user_id: UUID
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    student_count: int = 0
    created_at: datetime
