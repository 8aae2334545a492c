from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from schooladmin.core.enums import Role


class SchoolSummary(BaseModel):
    id: UUID
    name: str
    slug: str

    class Config:
        from_attributes = True


class UserResponse(BaseModel):
    id: UUID
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: str
    status: str
    school_id: Optional[UUID] = None
    is_active: bool
    approved_at: Optional[datetime] = None
    approved_by_id: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class UserProvisionRequest(BaseModel):
    """Sign-up payload. The external id comes from the verified token, never the body."""

    email: EmailStr
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    role: Role
    school_id: Optional[UUID] = None


class ProvisionResponse(BaseModel):
    user: UserResponse
    was_auto_approved: bool
    message: str


class TransitionRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=2000)


class ApprovalStatus(BaseModel):
    is_approved: bool
    status: str
    message: Optional[str] = None


class MeResponse(BaseModel):
    user: UserResponse
    approval: ApprovalStatus


class PendingRequestResponse(BaseModel):
    id: UUID
    role: str
    status: str
    school: Optional[SchoolSummary] = None
    requested_at: datetime


class CancelRequest(BaseModel):
    user_id: UUID


class MessageResponse(BaseModel):
    message: str
