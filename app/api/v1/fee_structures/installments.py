"""
Installment generation: split a total fee into N installment amounts.

EVEN            remainder goes one unit at a time to the earliest installments.
CLEAN_HUNDREDS  every installment but the last is a whole multiple of 100; the last
                absorbs the remainder and may be larger than the others.
"""

import calendar
from datetime import date
from typing import List, NamedTuple

from app.core.enums import RoundingPolicy
from app.core.exceptions import InsufficientAmountForRounding, ValidationError

MIN_INSTALLMENTS = 1
MAX_INSTALLMENTS = 12
CLEAN_UNIT = 100


class GeneratedInstallment(NamedTuple):
    name: str
    amount: int
    due_date: date


def _split_even(total: int, count: int) -> List[int]:
    base, remainder = divmod(total, count)
    return [base + 1 if i < remainder else base for i in range(count)]


def _split_clean_hundreds(total: int, count: int) -> List[int]:
    minimum = CLEAN_UNIT * (count - 1)
    if total < minimum:
        raise InsufficientAmountForRounding(total, count, minimum)
    base = (total // count) // CLEAN_UNIT * CLEAN_UNIT
    last = total - base * (count - 1)
    return [base] * (count - 1) + [last]


def generate_installment_amounts(total: int, count: int, policy: RoundingPolicy) -> List[int]:
    """Return `count` amounts summing exactly to `total`, in installment order."""
    if isinstance(total, bool) or not isinstance(total, int) or total <= 0:
        raise ValidationError("Total amount must be a positive integer", {"total": total})
    if isinstance(count, bool) or not isinstance(count, int) or not MIN_INSTALLMENTS <= count <= MAX_INSTALLMENTS:
        raise ValidationError(
            f"Installment count must be between {MIN_INSTALLMENTS} and {MAX_INSTALLMENTS}",
            {"count": count},
        )
    if count == 1:
        return [total]
    policy = RoundingPolicy(policy)
    if policy is RoundingPolicy.EVEN:
        return _split_even(total, count)
    return _split_clean_hundreds(total, count)


def add_months(start: date, months: int) -> date:
    """Shift by calendar months, clamping the day to the target month's last day (Jan 31 + 1 -> Feb 28/29)."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def installment_name(index: int) -> str:
    return f"Installment {index + 1}"


def build_installment_schedule(
    total: int,
    count: int,
    policy: RoundingPolicy,
    first_due_date: date,
    interval_months: int = 1,
) -> List[GeneratedInstallment]:
    """Generate amounts, then name them "Installment 1".."Installment N" with due dates `interval_months` apart."""
    if interval_months < 1:
        raise ValidationError("Interval between installments must be at least one month", {"interval_months": interval_months})
    amounts = generate_installment_amounts(total, count, policy)
    return [
        GeneratedInstallment(
            name=installment_name(i),
            amount=amount,
            due_date=add_months(first_due_date, i * interval_months),
        )
        for i, amount in enumerate(amounts)
    ]
