import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Uuid

from schooladmin.db.session import Base


class ImpersonationSession(Base):
    """
    A SUPER_ADMIN acting as another user or as the admin of a school.

    Active while ended_at is null and expires_at is in the future. Expiry is
    only checked on read.
    """

    __tablename__ = "impersonation_sessions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    admin_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    # Null for school-context sessions
    target_user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    target_school_id = Column(Uuid, ForeignKey("schools.id", ondelete="SET NULL"), nullable=True)
    is_school_context = Column(Boolean, nullable=False, default=False)
    started_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    ended_at = Column(DateTime(timezone=True), nullable=True)
    ip_address = Column(String(100), nullable=True)
    user_agent = Column(String(500), nullable=True)
