import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from schooladmin.db.session import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SchoolClass(Base):
    """A class (grade + optional stream) taught in one academic year."""

    __tablename__ = "classes"
    __table_args__ = (
        UniqueConstraint("academic_year_id", "name", name="uq_class_year_name"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    academic_year_id = Column(
        Uuid, ForeignKey("academic_years.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    name = Column(String(100), nullable=False)  # e.g. "Grade 4 East"
    grade = Column(String(20), nullable=False)
    stream = Column(String(50), nullable=True)
    class_teacher_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    academic_year = relationship("AcademicYear", lazy="joined")
