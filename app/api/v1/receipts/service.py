"""
Receipt issuing: collision-free receipt numbers and reprint lookup.

Numbers look like RCP-SCH-A3K9-2024-25-00042: prefix, school code, academic year, then a
per-school, per-year sequence. The sequence row is incremented with a single atomic upsert in
the caller's transaction, so concurrent payments can never read the same value and a number is
never handed out twice.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.fees.schemas import PaymentResponse
from app.api.v1.fees.status import derive_fee_status
from app.core.config import settings
from app.core.exceptions import NotFound, ServiceError
from app.core.models import FeePayment, ReceiptCounter, StudentFeeRecord, Tenant

from .schemas import ReceiptResponse

SEQUENCE_WIDTH = 5

_UPSERT_BY_DIALECT = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def format_receipt_number(school_code: str, academic_year: str, seq: int) -> str:
    return f"{settings.receipt_prefix}-{school_code}-{academic_year}-{seq:0{SEQUENCE_WIDTH}d}"


async def next_receipt_sequence(db: AsyncSession, tenant_id: UUID, academic_year: str) -> int:
    """INSERT ... ON CONFLICT DO UPDATE SET seq = seq + 1 RETURNING seq, in the current transaction."""
    dialect = db.get_bind().dialect.name
    insert = _UPSERT_BY_DIALECT.get(dialect)
    if insert is None:
        raise ServiceError(f"Receipt sequence is not supported on the {dialect} backend")
    now = datetime.utcnow()
    stmt = (
        insert(ReceiptCounter)
        .values(tenant_id=tenant_id, academic_year=academic_year, seq=1, created_at=now, updated_at=now)
        .on_conflict_do_update(
            index_elements=[ReceiptCounter.tenant_id, ReceiptCounter.academic_year],
            set_={"seq": ReceiptCounter.seq + 1, "updated_at": now},
        )
        .returning(ReceiptCounter.seq)
    )
    return (await db.execute(stmt)).scalar_one()


async def get_school_code(db: AsyncSession, tenant_id: UUID) -> str:
    school_code = (
        await db.execute(select(Tenant.organization_code).where(Tenant.id == tenant_id))
    ).scalar_one_or_none()
    if school_code is None:
        raise NotFound("School not found", {"tenant_id": str(tenant_id)})
    return school_code


async def mint_receipt_number(db: AsyncSession, tenant_id: UUID, school_code: str, academic_year: str) -> str:
    """Next receipt number for the school and year. Rolls back with the caller's transaction."""
    seq = await next_receipt_sequence(db, tenant_id, academic_year)
    return format_receipt_number(school_code, academic_year, seq)


async def lookup_receipt(db: AsyncSession, tenant_id: UUID, receipt_number: str) -> ReceiptResponse:
    row = (
        await db.execute(
            select(FeePayment, StudentFeeRecord, Tenant)
            .join(StudentFeeRecord, FeePayment.record_id == StudentFeeRecord.id)
            .join(Tenant, FeePayment.tenant_id == Tenant.id)
            .where(
                FeePayment.tenant_id == tenant_id,
                FeePayment.receipt_number == receipt_number.strip(),
            )
            .execution_options(populate_existing=True)
        )
    ).first()
    if row is None:
        raise NotFound("Receipt not found", {"receipt_number": receipt_number})
    payment, record, tenant = row

    installment = record.installments_by_name.get(payment.installment_name)
    installment_payments = [p for p in record.payments if p.installment_name == payment.installment_name]
    installment_amount = installment.amount if installment else 0
    installment_paid = sum(p.amount for p in installment_payments)
    total_paid = record.total_paid

    return ReceiptResponse(
        receipt_number=payment.receipt_number,
        payment_id=payment.id,
        record_id=record.id,
        school_code=tenant.organization_code,
        school_name=tenant.organization_name,
        student_id=record.student_id,
        student_name=record.student_name,
        student_class=record.student_class,
        student_section=record.student_section,
        roll_number=record.roll_number,
        academic_year=record.academic_year,
        fee_structure_name=record.fee_structure_name,
        installment_name=payment.installment_name,
        amount=payment.amount,
        payment_method=payment.payment_method,
        payment_reference=payment.payment_reference,
        payment_date=payment.payment_date,
        created_at=payment.created_at,
        installment_amount=installment_amount,
        installment_paid_amount=installment_paid,
        installment_pending_amount=max(0, installment_amount - installment_paid),
        installment_payments=[PaymentResponse.from_payment(p) for p in installment_payments],
        total_amount=record.total_amount,
        total_paid=total_paid,
        total_pending=max(0, record.total_amount - total_paid),
        status=derive_fee_status(record.total_amount, total_paid),
    )
