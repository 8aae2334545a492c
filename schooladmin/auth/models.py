import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import relationship

from schooladmin.core.enums import UserStatus
from schooladmin.db.session import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """Application user, mirrored from an identity-provider account."""

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    # Subject id issued by the hosted identity provider
    external_id = Column(String(255), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    # SUPER_ADMIN, ADMIN, TEACHER, ACCOUNTANT, PARENT, STUDENT
    role = Column(String(20), nullable=False)
    # PENDING -> APPROVED | REJECTED; APPROVED <-> SUSPENDED
    status = Column(String(20), nullable=False, default=UserStatus.PENDING.value, index=True)
    # Null only for SUPER_ADMIN
    school_id = Column(Uuid, ForeignKey("schools.id"), nullable=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    approved_by_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    school = relationship("School", lazy="joined")
