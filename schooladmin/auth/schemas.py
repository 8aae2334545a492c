from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from schooladmin.core.enums import Role


class IdentityClaims(BaseModel):
    """Verified claims taken from the identity provider's token."""

    subject: str
    email: Optional[str] = None


class ServiceContext(BaseModel):
    """Caller as seen by authorization checks.

    role and school_id are the effective values: while a SUPER_ADMIN is
    impersonating they are the target's. user_id is always the real caller.
    """

    user_id: UUID
    external_id: str
    role: Role
    school_id: Optional[UUID] = None
    impersonation_session_id: Optional[UUID] = None

    @property
    def is_impersonating(self) -> bool:
        return self.impersonation_session_id is not None


class ImpersonationContext(BaseModel):
    """What the identity provider keeps for an impersonating admin."""

    is_impersonating: bool = True
    session_id: UUID
    original_user_id: UUID
    target_user_id: Optional[UUID] = None
    target_role: Role
    target_school_id: Optional[UUID] = None
    school_name: Optional[str] = None
    is_school_context: bool = False
    started_at: datetime
    expires_at: datetime


class ImpersonationStatus(BaseModel):
    is_impersonating: bool
    session_id: Optional[UUID] = None
    target_user_id: Optional[UUID] = None
    target_role: Optional[Role] = None
    target_school_id: Optional[UUID] = None
    school_name: Optional[str] = None
    is_school_context: bool = False
    started_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


class RequestMeta(BaseModel):
    """Client details recorded on impersonation audit rows."""

    ip_address: str = "unknown"
    user_agent: str = "unknown"
