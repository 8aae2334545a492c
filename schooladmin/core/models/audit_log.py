"""
Append-only audit log. Every user status transition, provisioning, cancellation
and impersonation start/end writes one row; rows are never updated or deleted.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, String, Text, Uuid, event

from schooladmin.db.session import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, ForeignKey("schools.id", ondelete="SET NULL"), nullable=True, index=True)
    # Actor. Not a foreign key: the row must survive deletion of the user.
    user_id = Column(Uuid, nullable=True, index=True)
    action = Column(String(100), nullable=False, index=True)
    entity = Column(String(50), nullable=False)
    entity_id = Column(Uuid, nullable=True)
    details = Column(Text, nullable=True)
    ip_address = Column(String(100), nullable=True)
    user_agent = Column(String(500), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )


@event.listens_for(AuditLog, "before_update")
def _reject_update(mapper, connection, target) -> None:
    raise ValueError("Audit log entries are immutable")


@event.listens_for(AuditLog, "before_delete")
def _reject_delete(mapper, connection, target) -> None:
    raise ValueError("Audit log entries cannot be deleted")
