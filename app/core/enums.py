from enum import Enum
from typing import FrozenSet


class PaymentMethod(str, Enum):
    CASH = "cash"
    CHEQUE = "cheque"
    BANK_TRANSFER = "bank_transfer"
    ONLINE = "online"
    OTHER = "other"

    @property
    def requires_reference(self) -> bool:
        return self in REFERENCE_REQUIRED_METHODS


# Cheque number / transfer id / gateway transaction id must accompany these
REFERENCE_REQUIRED_METHODS: FrozenSet[PaymentMethod] = frozenset(
    {PaymentMethod.CHEQUE, PaymentMethod.BANK_TRANSFER, PaymentMethod.ONLINE}
)


class RoundingPolicy(str, Enum):
    EVEN = "EVEN"
    CLEAN_HUNDREDS = "CLEAN_HUNDREDS"


class StudentFeeStatus(str, Enum):
    pending = "pending"
    partial = "partial"
    paid = "paid"


class InstallmentState(str, Enum):
    UNPAID = "UNPAID"
    PARTIAL = "PARTIAL"
    PAID = "PAID"


class FeeStructureStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"


class EnrollmentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PROMOTED = "PROMOTED"
    LEFT = "LEFT"
