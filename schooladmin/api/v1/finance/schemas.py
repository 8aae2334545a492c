from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class InvoiceGenerate(BaseModel):
    enrollment_ids: List[UUID] = Field(..., min_length=1)
    term_id: UUID
    amount: Decimal = Field(..., max_digits=12, decimal_places=2)
    due_date: Optional[date] = None


class PaymentCreate(BaseModel):
    amount: Decimal = Field(..., max_digits=12, decimal_places=2)
    method: Optional[str] = Field(None, max_length=30, description="cash, bank_transfer, mobile_money, card")
    reference: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None
    payment_date: Optional[datetime] = None


class PaymentResponse(BaseModel):
    id: UUID
    invoice_id: UUID
    amount: Decimal
    payment_date: datetime
    method: Optional[str] = None
    reference: Optional[str] = None
    notes: Optional[str] = None
    recorded_by_id: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class InvoiceResponse(BaseModel):
    id: UUID
    school_id: UUID
    student_id: UUID
    enrollment_id: UUID
    term_id: UUID
    amount: Decimal
    paid_amount: Decimal
    balance: Decimal
    status: str
    due_date: Optional[date] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class InvoiceDetail(InvoiceResponse):
    payments: List[PaymentResponse] = []


class InvoiceGenerationError(BaseModel):
    enrollment_id: UUID
    error: str


class InvoiceGenerationResult(BaseModel):
    invoices: List[InvoiceResponse]
    errors: List[InvoiceGenerationError]


class PaymentResult(BaseModel):
    payment: PaymentResponse
    invoice: InvoiceResponse


class FinancialSummary(BaseModel):
    total_invoiced: Decimal
    total_paid: Decimal
    total_balance: Decimal
    invoice_count: int
    paid_count: int
    pending_count: int
    partial_count: int
    overdue_count: int


class StudentFinancialSummary(BaseModel):
    student_id: UUID
    total_invoiced: Decimal
    total_paid: Decimal
    total_balance: Decimal
    invoices: List[InvoiceResponse]
