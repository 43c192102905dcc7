"""
Derived fee status. Nothing here is stored: every value is recomputed from installment
balances and the payment history each time a record is read.
"""

from datetime import date
from typing import Iterable, List, NamedTuple, Optional

from app.core.enums import InstallmentState, StudentFeeStatus


def derive_fee_status(total_amount: int, total_paid: int) -> StudentFeeStatus:
    if total_paid >= total_amount:
        return StudentFeeStatus.paid
    if total_paid > 0:
        return StudentFeeStatus.partial
    return StudentFeeStatus.pending


def installment_state(amount: int, paid_amount: int) -> InstallmentState:
    if paid_amount >= amount:
        return InstallmentState.PAID
    if paid_amount > 0:
        return InstallmentState.PARTIAL
    return InstallmentState.UNPAID


def is_installment_overdue(amount: int, paid_amount: int, due_date: Optional[date], today: date) -> bool:
    return paid_amount < amount and due_date is not None and due_date < today


def payment_percentage(total_amount: int, total_paid: int) -> int:
    """Percentage paid, rounded half up."""
    if total_amount <= 0:
        return 100
    return (200 * total_paid + total_amount) // (2 * total_amount)


class DueSummary(NamedTuple):
    is_overdue: bool
    overdue_days: int
    next_due_date: Optional[date]


def summarize_dues(installments: Iterable, today: date) -> DueSummary:
    """
    overdue_days counts from the oldest overdue due date; next_due_date is the earliest due date
    among installments that are not fully paid (overdue ones included).
    """
    open_items: List = [i for i in installments if (i.paid_amount or 0) < i.amount]
    overdue = [i for i in open_items if i.due_date is not None and i.due_date < today]
    overdue_days = (today - min(i.due_date for i in overdue)).days if overdue else 0
    due_dates = [i.due_date for i in open_items if i.due_date is not None]
    return DueSummary(
        is_overdue=bool(overdue),
        overdue_days=overdue_days,
        next_due_date=min(due_dates) if due_dates else None,
    )
