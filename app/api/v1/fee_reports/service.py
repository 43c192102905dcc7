"""
Fee reports: school-wide stats, per-class summaries and outstanding dues.

Read-only. Every figure is recomputed from installment balances on each call, so reports always
agree with the ledger. Installment paid amounts sum to the record's payments, so payments are not
read here.
"""

import io
from collections import Counter, OrderedDict
from datetime import date
from decimal import Decimal
from typing import Dict, List, NamedTuple, Optional
from uuid import UUID

from openpyxl import Workbook
from openpyxl.styles import Font
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.fee_structures import roster
from app.api.v1.fees.status import derive_fee_status, is_installment_overdue, payment_percentage
from app.core.config import settings
from app.core.enums import StudentFeeStatus
from app.core.models import StudentFeeInstallment, StudentFeeRecord

from .schemas import ClassFeeSummary, FeeStats, OutstandingDueItem, OutstandingDuesResponse

OUTSTANDING_SHEET_NAME = "Outstanding dues"
OUTSTANDING_HEADERS = (
    "Student",
    "Roll No",
    "Class",
    "Section",
    "Academic Year",
    "Fee Structure",
    "Installment",
    "Due Date",
    "Amount",
    "Paid",
    "Pending",
    "Overdue Days",
)

# Decimal places of the smallest unit per currency
CURRENCY_EXPONENTS = {"INR": 2, "USD": 2, "EUR": 2, "GBP": 2, "JPY": 0}


class _RecordBalance(NamedTuple):
    student_class: str
    student_section: str
    total_amount: int
    paid: int
    is_overdue: bool


def _today() -> date:
    return date.today()


def _group_indian(digits: str) -> str:
    """12345678 -> 1,23,45,678 (lakh/crore grouping)."""
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    pairs = []
    while len(head) > 2:
        pairs.insert(0, head[-2:])
        head = head[:-2]
    if head:
        pairs.insert(0, head)
    return ",".join(pairs) + "," + tail


def format_amount(amount: int, currency: Optional[str] = None) -> str:
    """Display form of an amount held in the smallest currency unit, e.g. 12345600 -> "INR 1,23,456.00"."""
    currency = (currency or settings.default_currency).upper()
    exponent = CURRENCY_EXPONENTS.get(currency, 2)
    sign = "-" if amount < 0 else ""
    value = Decimal(abs(amount)).scaleb(-exponent)
    whole, _, fraction = f"{value:.{exponent}f}".partition(".")
    grouped = _group_indian(whole) if currency == "INR" else f"{int(whole):,}"
    return f"{currency} {sign}{grouped}" + (f".{fraction}" if fraction else "")


async def _record_balances(
    db: AsyncSession,
    tenant_id: UUID,
    academic_year: Optional[str] = None,
) -> Dict[UUID, _RecordBalance]:
    today = _today()
    stmt = (
        select(
            StudentFeeRecord.id,
            StudentFeeRecord.student_class,
            StudentFeeRecord.student_section,
            StudentFeeRecord.total_amount,
            StudentFeeInstallment.amount,
            StudentFeeInstallment.paid_amount,
            StudentFeeInstallment.due_date,
        )
        .join(StudentFeeInstallment, StudentFeeInstallment.record_id == StudentFeeRecord.id)
        .where(StudentFeeRecord.tenant_id == tenant_id)
        .order_by(StudentFeeRecord.student_class, StudentFeeRecord.student_section, StudentFeeRecord.id)
    )
    if academic_year:
        stmt = stmt.where(StudentFeeRecord.academic_year == academic_year)
    balances: Dict[UUID, _RecordBalance] = OrderedDict()
    for record_id, student_class, student_section, total_amount, amount, paid_amount, due_date in (
        await db.execute(stmt)
    ).all():
        overdue = is_installment_overdue(amount, paid_amount, due_date, today)
        current = balances.get(record_id)
        if current is None:
            balances[record_id] = _RecordBalance(student_class, student_section, total_amount, paid_amount, overdue)
        else:
            balances[record_id] = current._replace(
                paid=current.paid + paid_amount,
                is_overdue=current.is_overdue or overdue,
            )
    return balances


async def get_fee_stats(
    db: AsyncSession,
    tenant_id: UUID,
    academic_year: Optional[str] = None,
) -> FeeStats:
    balances = (await _record_balances(db, tenant_id, academic_year)).values()
    billed = sum(b.total_amount for b in balances)
    collected = sum(b.paid for b in balances)
    statuses = Counter(derive_fee_status(b.total_amount, b.paid) for b in balances)
    return FeeStats(
        total_records=len(balances),
        total_billed=billed,
        total_collected=collected,
        total_outstanding=max(0, billed - collected),
        collection_percentage=payment_percentage(billed, collected) if billed else 0,
        paid_count=statuses[StudentFeeStatus.paid],
        partial_count=statuses[StudentFeeStatus.partial],
        pending_count=statuses[StudentFeeStatus.pending],
        overdue_count=sum(1 for b in balances if b.is_overdue),
    )


async def get_class_summaries(
    db: AsyncSession,
    tenant_id: UUID,
    academic_year: Optional[str] = None,
) -> List[ClassFeeSummary]:
    """One row per (class, section), in class then section order."""
    groups: Dict[tuple, List[_RecordBalance]] = OrderedDict()
    for balance in (await _record_balances(db, tenant_id, academic_year)).values():
        groups.setdefault((balance.student_class, balance.student_section), []).append(balance)

    summaries = []
    for (class_name, section_name), balances in groups.items():
        billed = sum(b.total_amount for b in balances)
        collected = sum(b.paid for b in balances)
        statuses = Counter(derive_fee_status(b.total_amount, b.paid) for b in balances)
        summaries.append(
            ClassFeeSummary(
                class_name=class_name,
                section_name=section_name,
                records=len(balances),
                billed=billed,
                collected=collected,
                outstanding=max(0, billed - collected),
                paid_count=statuses[StudentFeeStatus.paid],
                partial_count=statuses[StudentFeeStatus.partial],
                pending_count=statuses[StudentFeeStatus.pending],
            )
        )
    return summaries


async def get_outstanding_dues(
    db: AsyncSession,
    tenant_id: UUID,
    class_name: Optional[str] = None,
    section_name: Optional[str] = None,
    overdue_only: bool = False,
) -> OutstandingDuesResponse:
    """Unpaid installments, earliest due first."""
    today = _today()
    stmt = (
        select(StudentFeeRecord, StudentFeeInstallment)
        .join(StudentFeeInstallment, StudentFeeInstallment.record_id == StudentFeeRecord.id)
        .where(
            StudentFeeRecord.tenant_id == tenant_id,
            StudentFeeInstallment.paid_amount < StudentFeeInstallment.amount,
        )
        .order_by(
            StudentFeeInstallment.due_date,
            StudentFeeRecord.student_name,
            StudentFeeRecord.id,
            StudentFeeInstallment.position,
        )
    )
    if overdue_only:
        stmt = stmt.where(StudentFeeInstallment.due_date < today)
    if not roster.is_wildcard(section_name):
        stmt = stmt.where(
            func.lower(func.trim(StudentFeeRecord.student_section)) == roster.normalize_section_name(section_name)
        )
    rows = (await db.execute(stmt)).all()

    items = []
    for record, inst in rows:
        if not roster.class_matches(class_name, record.student_class):
            continue
        overdue = is_installment_overdue(inst.amount, inst.paid_amount, inst.due_date, today)
        items.append(
            OutstandingDueItem(
                record_id=record.id,
                student_id=record.student_id,
                student_name=record.student_name,
                student_class=record.student_class,
                student_section=record.student_section,
                roll_number=record.roll_number,
                academic_year=record.academic_year,
                fee_structure_name=record.fee_structure_name,
                installment_name=inst.name,
                amount=inst.amount,
                paid_amount=inst.paid_amount,
                pending_amount=inst.pending_amount,
                due_date=inst.due_date,
                is_overdue=overdue,
                overdue_days=(today - inst.due_date).days if overdue else 0,
            )
        )
    return OutstandingDuesResponse(items=items, total_pending=sum(i.pending_amount for i in items))


def build_outstanding_dues_workbook(dues: OutstandingDuesResponse, currency: Optional[str] = None) -> bytes:
    """Excel export of outstanding dues, amounts formatted for display."""
    wb = Workbook()
    ws = wb.active
    ws.title = OUTSTANDING_SHEET_NAME
    ws.append(list(OUTSTANDING_HEADERS))
    for cell in ws[1]:
        cell.font = Font(bold=True)
    if not dues.items:
        ws.append(["No outstanding dues"])
    for item in dues.items:
        ws.append(
            [
                item.student_name,
                item.roll_number or "",
                item.student_class,
                item.student_section,
                item.academic_year,
                item.fee_structure_name,
                item.installment_name,
                item.due_date.isoformat(),
                format_amount(item.amount, currency),
                format_amount(item.paid_amount, currency),
                format_amount(item.pending_amount, currency),
                item.overdue_days,
            ]
        )
    if dues.items:
        ws.append([])
        ws.append(["Total pending"] + [""] * 9 + [format_amount(dues.total_pending, currency)])
    bio = io.BytesIO()
    wb.save(bio)
    return bio.getvalue()
