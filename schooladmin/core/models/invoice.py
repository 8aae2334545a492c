"""Term invoices per enrollment and the payments applied against them."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Date, DateTime, ForeignKey, Numeric, String, Text, UniqueConstraint, Uuid

from schooladmin.core.enums import InvoiceStatus
from schooladmin.db.session import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Invoice(Base):
    """One invoice per enrollment per term. balance = amount - paid_amount."""

    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("enrollment_id", "term_id", name="uq_invoice_enrollment_term"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="RESTRICT"), nullable=False, index=True)
    enrollment_id = Column(Uuid, ForeignKey("enrollments.id", ondelete="RESTRICT"), nullable=False)
    term_id = Column(Uuid, ForeignKey("terms.id", ondelete="RESTRICT"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    paid_amount = Column(Numeric(12, 2), nullable=False, default=0)
    balance = Column(Numeric(12, 2), nullable=False)
    # PENDING | PARTIAL | PAID | OVERDUE
    status = Column(String(20), nullable=False, default=InvoiceStatus.PENDING.value, index=True)
    due_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    invoice_id = Column(Uuid, ForeignKey("invoices.id", ondelete="RESTRICT"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_date = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    method = Column(String(30), nullable=True)  # cash, bank_transfer, mobile_money, ...
    reference = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    recorded_by_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
