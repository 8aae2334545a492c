import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Uuid

from schooladmin.core.enums import SchoolStatus
from schooladmin.db.session import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class School(Base):
    """Tenant school. Every non-SUPER_ADMIN user belongs to exactly one."""

    __tablename__ = "schools"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    # URL-safe public identifier; unique across the platform
    slug = Column(String(100), unique=True, nullable=False, index=True)
    address = Column(String(500), nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default=SchoolStatus.ACTIVE.value)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)
