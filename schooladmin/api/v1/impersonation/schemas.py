from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class StartUserImpersonation(BaseModel):
    target_user_id: UUID


class StartSchoolImpersonation(BaseModel):
    school_id: UUID


class EndImpersonation(BaseModel):
    session_id: UUID


class ExitResponse(BaseModel):
    ended: bool


class ImpersonationSessionResponse(BaseModel):
    id: UUID
    admin_id: UUID
    target_user_id: Optional[UUID] = None
    target_school_id: Optional[UUID] = None
    is_school_context: bool
    started_at: datetime
    expires_at: datetime
    ended_at: Optional[datetime] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    class Config:
        from_attributes = True
