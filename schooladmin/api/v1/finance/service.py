"""
Term invoicing and payments.

An invoice is created once per enrollment per term with balance = amount.
Each payment lowers the balance; the invoice is PAID at zero, PARTIAL while
something is still owed, and OVERDUE instead when the due date has passed.
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from schooladmin.api.v1.academic_years.service import get_term
from schooladmin.api.v1.students.service import load_student
from schooladmin.auth.roles import require_school_access, require_school_context
from schooladmin.auth.schemas import ServiceContext
from schooladmin.core.audit_service import log_audit
from schooladmin.core.enums import EnrollmentStatus, InvoiceStatus, TermStatus
from schooladmin.core.exceptions import ErrorKind, ServiceError
from schooladmin.core.models import Enrollment, Invoice, Payment

from .schemas import (
    FinancialSummary,
    InvoiceGenerate,
    InvoiceGenerationError,
    InvoiceResponse,
    PaymentCreate,
    StudentFinancialSummary,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def _to_decimal(val) -> Decimal:
    if val is None:
        return Decimal("0")
    return val if isinstance(val, Decimal) else Decimal(str(val))


def _money(val) -> Decimal:
    return _to_decimal(val).quantize(CENT)


def invoice_status_after_payment(
    balance: Decimal, due_date: Optional[date], today: Optional[date] = None
) -> InvoiceStatus:
    if balance <= 0:
        return InvoiceStatus.PAID
    today = today or date.today()
    if due_date and today > due_date:
        return InvoiceStatus.OVERDUE
    return InvoiceStatus.PARTIAL


async def load_invoice(db: AsyncSession, context: ServiceContext, invoice_id: UUID) -> Invoice:
    require_school_context(context)
    invoice = await db.get(Invoice, invoice_id)
    if not invoice:
        raise ServiceError(ErrorKind.NOT_FOUND, "Invoice not found")
    require_school_access(context, invoice.school_id)
    return invoice


async def generate_invoices(
    db: AsyncSession, context: ServiceContext, payload: InvoiceGenerate
) -> Tuple[List[Invoice], List[InvoiceGenerationError]]:
    """
    Invoice each enrollment for the term. Enrollments that cannot be invoiced
    are reported in errors; the rest are created in one commit.
    """
    require_school_context(context)
    amount = _money(payload.amount)
    if amount <= 0:
        raise ServiceError(ErrorKind.VALIDATION, "Amount must be greater than 0")
    term = await get_term(db, context, payload.term_id)
    if term.status == TermStatus.LOCKED.value:
        raise ServiceError(ErrorKind.VALIDATION, "Term is locked and cannot be invoiced")

    invoices: List[Invoice] = []
    errors: List[InvoiceGenerationError] = []
    for enrollment_id in payload.enrollment_ids:
        enrollment = (
            await db.execute(
                select(Enrollment).where(
                    Enrollment.id == enrollment_id,
                    Enrollment.school_id == term.school_id,
                    Enrollment.status == EnrollmentStatus.ACTIVE.value,
                )
            )
        ).scalar_one_or_none()
        if not enrollment:
            errors.append(
                InvoiceGenerationError(
                    enrollment_id=enrollment_id, error="Enrollment not found or not active"
                )
            )
            continue
        if enrollment.academic_year_id != term.academic_year_id:
            errors.append(
                InvoiceGenerationError(
                    enrollment_id=enrollment_id,
                    error="Enrollment is not in the term's academic year",
                )
            )
            continue
        existing = (
            await db.execute(
                select(Invoice.id).where(
                    Invoice.enrollment_id == enrollment_id, Invoice.term_id == term.id
                )
            )
        ).scalar_one_or_none()
        if existing:
            errors.append(
                InvoiceGenerationError(
                    enrollment_id=enrollment_id, error="Invoice already exists for this term"
                )
            )
            continue

        invoice = Invoice(
            school_id=term.school_id,
            student_id=enrollment.student_id,
            enrollment_id=enrollment.id,
            term_id=term.id,
            amount=amount,
            paid_amount=Decimal("0.00"),
            balance=amount,
            status=InvoiceStatus.PENDING.value,
            due_date=payload.due_date,
        )
        db.add(invoice)
        await db.flush()
        invoices.append(invoice)

    if invoices:
        log_audit(
            db,
            "GENERATE_INVOICES",
            "Term",
            term.id,
            user_id=context.user_id,
            school_id=term.school_id,
            details=json.dumps(
                {"count": len(invoices), "amount": str(amount), "errors": len(errors)}
            ),
        )
        await db.commit()
        for invoice in invoices:
            await db.refresh(invoice)
    logger.info(
        "Generated %d invoice(s) for term %s (%d skipped)", len(invoices), term.id, len(errors)
    )
    return invoices, errors


async def apply_payment(
    db: AsyncSession, context: ServiceContext, invoice_id: UUID, payload: PaymentCreate
) -> Tuple[Payment, Invoice]:
    require_school_context(context)
    amount = _money(payload.amount)
    if amount <= 0:
        raise ServiceError(ErrorKind.VALIDATION, "Payment amount must be greater than 0")

    invoice = (
        await db.execute(
            select(Invoice)
            .where(Invoice.id == invoice_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if not invoice:
        raise ServiceError(ErrorKind.NOT_FOUND, "Invoice not found")
    require_school_access(context, invoice.school_id)

    balance = _money(invoice.balance)
    if amount > balance:
        raise ServiceError(
            ErrorKind.VALIDATION,
            f"Payment amount ({amount}) exceeds invoice balance ({balance})",
        )

    payment = Payment(
        school_id=invoice.school_id,
        invoice_id=invoice.id,
        amount=amount,
        payment_date=payload.payment_date or datetime.now(timezone.utc),
        method=payload.method.strip().lower() if payload.method else None,
        reference=(payload.reference or "").strip() or None,
        notes=payload.notes,
        recorded_by_id=context.user_id,
    )
    db.add(payment)
    await db.flush()

    old_status = invoice.status
    invoice.paid_amount = _money(invoice.paid_amount) + amount
    invoice.balance = _money(invoice.amount) - invoice.paid_amount
    invoice.status = invoice_status_after_payment(invoice.balance, invoice.due_date).value
    log_audit(
        db,
        "APPLY_PAYMENT",
        "Invoice",
        invoice.id,
        user_id=context.user_id,
        school_id=invoice.school_id,
        details=json.dumps(
            {
                "paymentId": str(payment.id),
                "amount": str(amount),
                "oldStatus": old_status,
                "newStatus": invoice.status,
            }
        ),
    )
    await db.commit()
    await db.refresh(payment)
    await db.refresh(invoice)
    return payment, invoice


async def list_invoices(
    db: AsyncSession,
    context: ServiceContext,
    status_filter: Optional[str] = None,
    student_id: Optional[UUID] = None,
    term_id: Optional[UUID] = None,
) -> List[Invoice]:
    require_school_context(context)
    stmt = select(Invoice).where(Invoice.school_id == context.school_id)
    if status_filter:
        stmt = stmt.where(Invoice.status == status_filter)
    if student_id:
        stmt = stmt.where(Invoice.student_id == student_id)
    if term_id:
        stmt = stmt.where(Invoice.term_id == term_id)
    stmt = stmt.order_by(Invoice.created_at.desc())
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def list_payments(db: AsyncSession, invoice_id: UUID) -> List[Payment]:
    result = await db.execute(
        select(Payment).where(Payment.invoice_id == invoice_id).order_by(Payment.payment_date.desc())
    )
    return list(result.scalars().all())


async def get_financial_summary(
    db: AsyncSession, context: ServiceContext, term_id: Optional[UUID] = None
) -> FinancialSummary:
    require_school_context(context)
    conditions = [Invoice.school_id == context.school_id]
    if term_id:
        conditions.append(Invoice.term_id == term_id)

    totals = (
        await db.execute(
            select(
                func.coalesce(func.sum(Invoice.amount), 0),
                func.coalesce(func.sum(Invoice.paid_amount), 0),
                func.coalesce(func.sum(Invoice.balance), 0),
                func.count(Invoice.id),
            ).where(*conditions)
        )
    ).one()
    by_status = dict(
        (
            await db.execute(
                select(Invoice.status, func.count(Invoice.id)).where(*conditions).group_by(Invoice.status)
            )
        ).all()
    )
    return FinancialSummary(
        total_invoiced=_money(totals[0]),
        total_paid=_money(totals[1]),
        total_balance=_money(totals[2]),
        invoice_count=totals[3],
        paid_count=by_status.get(InvoiceStatus.PAID.value, 0),
        pending_count=by_status.get(InvoiceStatus.PENDING.value, 0),
        partial_count=by_status.get(InvoiceStatus.PARTIAL.value, 0),
        overdue_count=by_status.get(InvoiceStatus.OVERDUE.value, 0),
    )


async def get_student_financial_summary(
    db: AsyncSession, context: ServiceContext, student_id: UUID
) -> StudentFinancialSummary:
    student = await load_student(db, context, student_id, include_deleted=True)
    invoices = await list_invoices(db, context, student_id=student.id)
    summary = StudentFinancialSummary(
        student_id=student.id,
        total_invoiced=_money(sum((_to_decimal(i.amount) for i in invoices), Decimal("0"))),
        total_paid=_money(sum((_to_decimal(i.paid_amount) for i in invoices), Decimal("0"))),
        total_balance=_money(sum((_to_decimal(i.balance) for i in invoices), Decimal("0"))),
        invoices=[InvoiceResponse.model_validate(i) for i in invoices],
    )
    return summary


async def delete_invoice(db: AsyncSession, context: ServiceContext, invoice_id: UUID) -> None:
    invoice = await load_invoice(db, context, invoice_id)
    has_payments = (
        await db.execute(select(Payment.id).where(Payment.invoice_id == invoice.id).limit(1))
    ).scalar_one_or_none()
    if has_payments:
        raise ServiceError(
            ErrorKind.CONFLICT,
            "Cannot delete invoice with associated payments. Void the invoice instead.",
        )
    log_audit(
        db,
        "DELETE_INVOICE",
        "Invoice",
        invoice.id,
        user_id=context.user_id,
        school_id=invoice.school_id,
        details=json.dumps({"amount": str(invoice.amount), "termId": str(invoice.term_id)}),
    )
    await db.delete(invoice)
    await db.commit()
