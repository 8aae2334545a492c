from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from schooladmin.auth.dependencies import require_roles
from schooladmin.auth.roles import RoleGroups
from schooladmin.auth.schemas import ServiceContext
from schooladmin.core.enums import InvoiceStatus
from schooladmin.core.schemas import SuccessResponse
from schooladmin.db.session import get_db

from .schemas import (
    FinancialSummary,
    InvoiceDetail,
    InvoiceGenerate,
    InvoiceGenerationResult,
    InvoiceResponse,
    PaymentCreate,
    PaymentResponse,
    PaymentResult,
    StudentFinancialSummary,
)
from . import service

router = APIRouter(prefix="/api/v1/finance", tags=["finance"])


@router.post(
    "/invoices/generate",
    response_model=SuccessResponse[InvoiceGenerationResult],
    status_code=status.HTTP_201_CREATED,
)
async def generate_invoices(
    payload: InvoiceGenerate,
    context: ServiceContext = Depends(require_roles(RoleGroups.FINANCIAL_STAFF)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[InvoiceGenerationResult]:
    """Invoice a batch of enrollments for one term; per-enrollment failures come back in errors."""
    invoices, errors = await service.generate_invoices(db, context, payload)
    return SuccessResponse(
        data=InvoiceGenerationResult(
            invoices=[InvoiceResponse.model_validate(i) for i in invoices],
            errors=errors,
        )
    )


@router.get("/invoices", response_model=SuccessResponse[List[InvoiceResponse]])
async def list_invoices(
    status_filter: Optional[InvoiceStatus] = Query(None, alias="status"),
    student_id: Optional[UUID] = Query(None),
    term_id: Optional[UUID] = Query(None),
    context: ServiceContext = Depends(require_roles(RoleGroups.FINANCIAL_STAFF)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[List[InvoiceResponse]]:
    invoices = await service.list_invoices(
        db,
        context,
        status_filter=status_filter.value if status_filter else None,
        student_id=student_id,
        term_id=term_id,
    )
    return SuccessResponse(data=[InvoiceResponse.model_validate(i) for i in invoices])


@router.get("/invoices/{invoice_id}", response_model=SuccessResponse[InvoiceDetail])
async def get_invoice(
    invoice_id: UUID,
    context: ServiceContext = Depends(require_roles(RoleGroups.FINANCIAL_STAFF)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[InvoiceDetail]:
    invoice = await service.load_invoice(db, context, invoice_id)
    payments = await service.list_payments(db, invoice.id)
    detail = InvoiceDetail.model_validate(invoice).model_copy(
        update={"payments": [PaymentResponse.model_validate(p) for p in payments]}
    )
    return SuccessResponse(data=detail)


@router.post(
    "/invoices/{invoice_id}/payments",
    response_model=SuccessResponse[PaymentResult],
    status_code=status.HTTP_201_CREATED,
)
async def apply_payment(
    invoice_id: UUID,
    payload: PaymentCreate,
    context: ServiceContext = Depends(require_roles(RoleGroups.FINANCIAL_STAFF)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[PaymentResult]:
    payment, invoice = await service.apply_payment(db, context, invoice_id, payload)
    return SuccessResponse(
        data=PaymentResult(
            payment=PaymentResponse.model_validate(payment),
            invoice=InvoiceResponse.model_validate(invoice),
        )
    )


@router.delete("/invoices/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_invoice(
    invoice_id: UUID,
    context: ServiceContext = Depends(require_roles(RoleGroups.SCHOOL_ADMINS)),
    db: AsyncSession = Depends(get_db),
) -> None:
    """Only invoices without payments can be deleted."""
    await service.delete_invoice(db, context, invoice_id)


@router.get("/summary", response_model=SuccessResponse[FinancialSummary])
async def financial_summary(
    term_id: Optional[UUID] = Query(None),
    context: ServiceContext = Depends(require_roles(RoleGroups.FINANCIAL_STAFF)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[FinancialSummary]:
    return SuccessResponse(data=await service.get_financial_summary(db, context, term_id=term_id))


@router.get(
    "/students/{student_id}/summary",
    response_model=SuccessResponse[StudentFinancialSummary],
)
async def student_financial_summary(
    student_id: UUID,
    context: ServiceContext = Depends(require_roles(RoleGroups.FINANCIAL_STAFF)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[StudentFinancialSummary]:
    summary = await service.get_student_financial_summary(db, context, student_id)
    return SuccessResponse(data=summary)
