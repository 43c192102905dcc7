"""Receipt schemas: reprint view of one payment."""

from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel

from app.api.v1.fees.schemas import PaymentResponse
from app.core.enums import PaymentMethod, StudentFeeStatus


class ReceiptResponse(BaseModel):
    receipt_number: str
    payment_id: UUID
    record_id: UUID
    school_code: str
    school_name: str

    student_id: UUID
    student_name: str
    student_class: str
    student_section: str
    roll_number: Optional[str] = None
    academic_year: str
    fee_structure_name: str

    installment_name: str
    amount: int
    payment_method: PaymentMethod
    payment_reference: Optional[str] = None
    payment_date: date
    created_at: datetime

    # Installment and overall position as of this lookup
    installment_amount: int
    installment_paid_amount: int
    installment_pending_amount: int
    installment_payments: List[PaymentResponse]
    total_amount: int
    total_paid: int
    total_pending: int
    status: StudentFeeStatus
