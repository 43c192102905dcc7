"""Fee ledger schemas: student fee records, offline payments, receipts."""

from datetime import date, datetime
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.core.enums import InstallmentState, PaymentMethod, StudentFeeStatus


# --- Student Fee Record ---
class InstallmentBalanceResponse(BaseModel):
    name: str
    amount: int
    paid_amount: int
    pending_amount: int
    due_date: date
    state: InstallmentState
    is_overdue: bool


class PaymentResponse(BaseModel):
    payment_id: UUID
    installment_name: str
    amount: int
    payment_method: PaymentMethod
    payment_reference: Optional[str] = None
    payment_date: date
    receipt_number: str
    remarks: Optional[str] = None
    received_by: Optional[UUID] = None
    created_at: datetime

    @classmethod
    def from_payment(cls, payment) -> "PaymentResponse":
        return cls(
            payment_id=payment.id,
            installment_name=payment.installment_name,
            amount=payment.amount,
            payment_method=payment.payment_method,
            payment_reference=payment.payment_reference,
            payment_date=payment.payment_date,
            receipt_number=payment.receipt_number,
            remarks=payment.remarks,
            received_by=payment.received_by,
            created_at=payment.created_at,
        )


class StudentFeeRecordSummary(BaseModel):
    id: UUID
    student_id: UUID
    student_name: str
    student_class: str
    student_section: str
    roll_number: Optional[str] = None
    fee_structure_id: UUID
    fee_structure_name: str
    academic_year: str
    total_amount: int
    total_paid: int
    total_pending: int
    status: StudentFeeStatus
    payment_percentage: int
    is_overdue: bool
    overdue_days: int
    next_due_date: Optional[date] = None
    installments: List[InstallmentBalanceResponse]


class StudentFeeRecordDetail(StudentFeeRecordSummary):
    version: int
    payments: List[PaymentResponse]
    created_at: datetime
    updated_at: datetime


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class StudentFeeRecordPage(BaseModel):
    records: List[StudentFeeRecordSummary]
    pagination: Pagination


# --- Payment ---
class OfflinePaymentCreate(BaseModel):
    """Amount and date are taken as sent and checked by the ledger, in its check order."""

    installment_name: str = Field(..., max_length=255)
    amount: Any = Field(None, description="Positive integer in the smallest currency unit")
    payment_method: PaymentMethod
    payment_date: Any = Field(None, description="ISO date; full timestamps are cut to their date")
    payment_reference: Optional[str] = Field(None, max_length=100)
    remarks: Optional[str] = None

    @field_validator("payment_method", mode="before")
    @classmethod
    def _lower_method(cls, value):
        return value.strip().lower() if isinstance(value, str) else value


class PaymentReceipt(BaseModel):
    receipt_number: str
    payment_id: UUID
    record_id: UUID
    installment_name: str
    amount: int
    payment_method: PaymentMethod
    payment_reference: Optional[str] = None
    payment_date: date
    installment_paid_amount: int
    installment_pending_amount: int
    installment_state: InstallmentState
    total_amount: int
    total_paid: int
    total_pending: int
    status: StudentFeeStatus
    created_at: datetime
