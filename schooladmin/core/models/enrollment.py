import uuid
from datetime import date, datetime, timezone

from sqlalchemy import Column, Date, DateTime, ForeignKey, String, UniqueConstraint, Uuid

from schooladmin.core.enums import EnrollmentStatus
from schooladmin.db.session import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Enrollment(Base):
    """
    A student's place in a class for one academic year. One enrollment per
    student per year; transfers move class_id instead of adding a row.
    """

    __tablename__ = "enrollments"
    __table_args__ = (
        UniqueConstraint("student_id", "academic_year_id", name="uq_enrollment_student_year"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="RESTRICT"), nullable=False, index=True)
    academic_year_id = Column(
        Uuid, ForeignKey("academic_years.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    class_id = Column(Uuid, ForeignKey("classes.id", ondelete="RESTRICT"), nullable=False, index=True)
    # ACTIVE -> COMPLETED | TRANSFERRED | DROPPED
    status = Column(String(20), nullable=False, default=EnrollmentStatus.ACTIVE.value)
    enrollment_date = Column(Date, nullable=False, default=date.today)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)
