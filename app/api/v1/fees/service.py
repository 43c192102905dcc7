"""
Fee ledger service: student fee records and offline payments.

Every payment runs in its own transaction. Installment balances, the payment row, the receipt
counter increment and the audit entry commit together or not at all.
"""

import logging
from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.api.v1.fee_structures import roster
from app.api.v1.receipts.service import get_school_code, mint_receipt_number
from app.core.config import settings
from app.core.enums import StudentFeeStatus
from app.core.exceptions import (
    ConcurrencyConflict,
    ExceedsPending,
    InvalidAmount,
    InvalidDate,
    NotFound,
    ReferenceRequired,
    UnknownInstallment,
)
from app.core.models import FeePayment, StudentFeeInstallment, StudentFeeRecord

from .audit_service import log_fee_audit
from .locks import record_locks
from .schemas import (
    InstallmentBalanceResponse,
    OfflinePaymentCreate,
    Pagination,
    PaymentReceipt,
    PaymentResponse,
    StudentFeeRecordDetail,
    StudentFeeRecordPage,
    StudentFeeRecordSummary,
)
from .status import (
    derive_fee_status,
    installment_state,
    is_installment_overdue,
    payment_percentage,
    summarize_dues,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def _today() -> date:
    return date.today()


def _is_positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _parse_payment_date(value) -> date:
    """Calendar date of a payment as sent by the client. Full ISO timestamps are cut to their date."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidDate("Payment date is required")
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            if len(text) > 10:
                return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
            return date.fromisoformat(text)
        except ValueError:
            pass
    raise InvalidDate("Payment date is not a valid date", {"payment_date": str(value)})


# --- Responses ---
def _installment_balances(record: StudentFeeRecord, today: date) -> List[InstallmentBalanceResponse]:
    return [
        InstallmentBalanceResponse(
            name=inst.name,
            amount=inst.amount,
            paid_amount=inst.paid_amount,
            pending_amount=inst.pending_amount,
            due_date=inst.due_date,
            state=installment_state(inst.amount, inst.paid_amount),
            is_overdue=is_installment_overdue(inst.amount, inst.paid_amount, inst.due_date, today),
        )
        for inst in record.installments
    ]


def _to_summary(record: StudentFeeRecord, today: Optional[date] = None) -> StudentFeeRecordSummary:
    today = today or _today()
    total_paid = record.total_paid
    dues = summarize_dues(record.installments, today)
    return StudentFeeRecordSummary(
        id=record.id,
        student_id=record.student_id,
        student_name=record.student_name,
        student_class=record.student_class,
        student_section=record.student_section,
        roll_number=record.roll_number,
        fee_structure_id=record.fee_structure_id,
        fee_structure_name=record.fee_structure_name,
        academic_year=record.academic_year,
        total_amount=record.total_amount,
        total_paid=total_paid,
        total_pending=max(0, record.total_amount - total_paid),
        status=derive_fee_status(record.total_amount, total_paid),
        payment_percentage=payment_percentage(record.total_amount, total_paid),
        is_overdue=dues.is_overdue,
        overdue_days=dues.overdue_days,
        next_due_date=dues.next_due_date,
        installments=_installment_balances(record, today),
    )


def _to_detail(record: StudentFeeRecord) -> StudentFeeRecordDetail:
    return StudentFeeRecordDetail(
        **_to_summary(record).model_dump(),
        version=record.version,
        payments=[PaymentResponse.from_payment(p) for p in record.payments],
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


# --- Payments ---
async def _load_record_for_update(db: AsyncSession, tenant_id: UUID, record_id: UUID) -> StudentFeeRecord:
    """Lock the record row and reload its balances; an earlier read in this session may be stale."""
    record = (
        await db.execute(
            select(StudentFeeRecord)
            .where(
                StudentFeeRecord.id == record_id,
                StudentFeeRecord.tenant_id == tenant_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if not record:
        raise NotFound("Student fee record not found", {"record_id": str(record_id)})
    await db.execute(
        select(StudentFeeInstallment)
        .where(StudentFeeInstallment.record_id == record.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return record


async def _apply_payment(
    db: AsyncSession,
    tenant_id: UUID,
    record_id: UUID,
    payload: OfflinePaymentCreate,
    received_by: Optional[UUID],
) -> PaymentReceipt:
    record = await _load_record_for_update(db, tenant_id, record_id)

    installment_name = (payload.installment_name or "").strip()
    installment = record.installments_by_name.get(installment_name)
    if installment is None:
        raise UnknownInstallment(
            f"Installment '{installment_name}' not found on this fee record",
            {"installment_name": installment_name},
        )
    if not _is_positive_int(payload.amount):
        raise InvalidAmount("Payment amount must be a positive integer", {"amount": payload.amount})
    payment_date = _parse_payment_date(payload.payment_date)
    today = _today()
    if payment_date > today:
        raise InvalidDate(
            "Payment date cannot be in the future",
            {"payment_date": payment_date.isoformat(), "today": today.isoformat()},
        )
    pending = installment.pending_amount
    if payload.amount > pending:
        raise ExceedsPending(installment.name, pending, payload.amount)
    reference = (payload.payment_reference or "").strip() or None
    if payload.payment_method.requires_reference and not reference:
        raise ReferenceRequired(
            f"Payment reference is required for {payload.payment_method.value} payments",
            {"payment_method": payload.payment_method.value},
        )

    school_code = await get_school_code(db, tenant_id)
    receipt_number = await mint_receipt_number(db, tenant_id, school_code, record.academic_year)

    old_paid = installment.paid_amount
    installment.paid_amount = old_paid + payload.amount
    payment = FeePayment(
        tenant_id=tenant_id,
        record=record,
        installment_id=installment.id,
        installment_name=installment.name,
        amount=payload.amount,
        payment_method=payload.payment_method.value,
        payment_reference=reference,
        payment_date=payment_date,
        receipt_number=receipt_number,
        remarks=(payload.remarks or "").strip() or None,
        received_by=received_by,
    )
    db.add(payment)
    # Touching the record row bumps its version even though only child rows changed
    record.updated_at = datetime.utcnow()
    await db.flush()

    await log_fee_audit(
        db, tenant_id, "fee_payments", payment.id,
        "PAYMENT",
        {"installment_name": installment.name, "paid_amount": old_paid},
        {
            "installment_name": installment.name,
            "paid_amount": installment.paid_amount,
            "amount": payment.amount,
            "payment_method": payment.payment_method,
            "receipt_number": receipt_number,
        },
        received_by,
    )
    await db.commit()

    total_paid = sum(inst.paid_amount for inst in record.installments)
    logger.info(
        "Recorded payment %s of %s on record %s installment '%s' (%s)",
        receipt_number, payment.amount, record.id, installment.name, payment.payment_method,
    )
    return PaymentReceipt(
        receipt_number=receipt_number,
        payment_id=payment.id,
        record_id=record.id,
        installment_name=installment.name,
        amount=payment.amount,
        payment_method=payload.payment_method,
        payment_reference=reference,
        payment_date=payment.payment_date,
        installment_paid_amount=installment.paid_amount,
        installment_pending_amount=installment.pending_amount,
        installment_state=installment_state(installment.amount, installment.paid_amount),
        total_amount=record.total_amount,
        total_paid=total_paid,
        total_pending=max(0, record.total_amount - total_paid),
        status=derive_fee_status(record.total_amount, total_paid),
        created_at=payment.created_at,
    )


async def record_payment(
    db: AsyncSession,
    tenant_id: UUID,
    record_id: UUID,
    payload: OfflinePaymentCreate,
    received_by: Optional[UUID] = None,
) -> PaymentReceipt:
    """
    Apply one offline payment to one installment.

    Payments on the same record are serialized by a per-record lock in this process and by the
    row lock plus version check across processes. A payment that loses the version check is
    rolled back and re-validated against fresh balances, up to LEDGER_MAX_RETRIES attempts.
    Any other failure rolls back and propagates unchanged.
    """
    attempts = settings.ledger_max_retries
    for attempt in range(1, attempts + 1):
        async with record_locks.hold(record_id):
            try:
                return await _apply_payment(db, tenant_id, record_id, payload, received_by)
            except StaleDataError:
                await db.rollback()
                logger.warning(
                    "Payment on record %s lost a concurrent update (attempt %d of %d)",
                    record_id, attempt, attempts,
                )
            except Exception:
                await db.rollback()
                raise
    logger.error("Payment on record %s abandoned after %d attempts", record_id, attempts)
    raise ConcurrencyConflict(
        "Fee record was modified concurrently, please retry",
        {"record_id": str(record_id), "attempts": attempts},
    )


# --- Queries ---
async def get_student_fee_record(
    db: AsyncSession,
    tenant_id: UUID,
    record_id: UUID,
) -> StudentFeeRecordDetail:
    record = (
        await db.execute(
            select(StudentFeeRecord)
            .where(
                StudentFeeRecord.id == record_id,
                StudentFeeRecord.tenant_id == tenant_id,
            )
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if not record:
        raise NotFound("Student fee record not found", {"record_id": str(record_id)})
    return _to_detail(record)


async def list_student_fee_records(
    db: AsyncSession,
    tenant_id: UUID,
    class_name: Optional[str] = None,
    section_name: Optional[str] = None,
    search: Optional[str] = None,
    status: Optional[StudentFeeStatus] = None,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> StudentFeeRecordPage:
    page = max(1, page or 1)
    limit = min(max(1, limit or DEFAULT_PAGE_SIZE), MAX_PAGE_SIZE)

    paid = (
        select(
            FeePayment.record_id.label("record_id"),
            func.sum(FeePayment.amount).label("paid"),
        )
        .where(FeePayment.tenant_id == tenant_id)
        .group_by(FeePayment.record_id)
        .subquery()
    )
    total_paid = func.coalesce(paid.c.paid, 0)

    stmt = (
        select(StudentFeeRecord)
        .outerjoin(paid, paid.c.record_id == StudentFeeRecord.id)
        .where(StudentFeeRecord.tenant_id == tenant_id)
    )
    if not roster.is_wildcard(class_name):
        wanted = roster.normalize_class_name(class_name)
        stmt = stmt.where(
            func.lower(func.trim(StudentFeeRecord.student_class)).in_([wanted, f"class {wanted}", f"class{wanted}"])
        )
    if not roster.is_wildcard(section_name):
        stmt = stmt.where(
            func.lower(func.trim(StudentFeeRecord.student_section)) == roster.normalize_section_name(section_name)
        )
    term = (search or "").strip()
    if term:
        stmt = stmt.where(
            or_(
                StudentFeeRecord.student_name.icontains(term, autoescape=True),
                StudentFeeRecord.roll_number.icontains(term, autoescape=True),
                StudentFeeRecord.fee_structure_name.icontains(term, autoescape=True),
            )
        )
    if status == StudentFeeStatus.paid:
        stmt = stmt.where(total_paid >= StudentFeeRecord.total_amount)
    elif status == StudentFeeStatus.partial:
        stmt = stmt.where(and_(total_paid > 0, total_paid < StudentFeeRecord.total_amount))
    elif status == StudentFeeStatus.pending:
        stmt = stmt.where(total_paid == 0)

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
    result = await db.execute(
        stmt.order_by(StudentFeeRecord.created_at.desc(), StudentFeeRecord.id)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    today = _today()
    records = [_to_summary(record, today) for record in result.scalars().all()]
    return StudentFeeRecordPage(
        records=records,
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            pages=(total + limit - 1) // limit,
        ),
    )
