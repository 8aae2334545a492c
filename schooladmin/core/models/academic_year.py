import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, String, UniqueConstraint, Uuid

from schooladmin.core.enums import AcademicYearStatus, TermStatus
from schooladmin.db.session import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AcademicYear(Base):
    """
    Academic year per school. At most one per school is is_current = true.
    Classes, enrollments and terms all hang off a year.
    """

    __tablename__ = "academic_years"
    __table_args__ = (UniqueConstraint("school_id", "name", name="uq_academic_year_school_name"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(50), nullable=False)  # e.g. "2025-2026"
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    is_current = Column(Boolean, nullable=False, default=False)
    status = Column(String(20), nullable=False, default=AcademicYearStatus.ACTIVE.value)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)


class Term(Base):
    """Billing and reporting period inside an academic year. LOCKED terms accept no new invoices."""

    __tablename__ = "terms"
    __table_args__ = (UniqueConstraint("academic_year_id", "name", name="uq_term_year_name"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    academic_year_id = Column(
        Uuid, ForeignKey("academic_years.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(50), nullable=False)  # e.g. "Term 1"
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default=TermStatus.ACTIVE.value)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)
