from typing import Any, Dict, Optional

from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    code = "SERVICE_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.context = context or {}

    @property
    def detail(self) -> Dict[str, Any]:
        """Body for HTTPException.detail: machine code, human message and numeric context."""
        return {"code": self.code, "message": self.message, **self.context}


# --- Validation: caller must correct the input; never retried ---
class ValidationError(ServiceError):
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST, context)


class InstallmentSumMismatch(ValidationError):
    code = "INSTALLMENT_SUM_MISMATCH"


class InvalidAmount(ValidationError):
    code = "INVALID_AMOUNT"


class InvalidDate(ValidationError):
    code = "INVALID_DATE"


class ReferenceRequired(ValidationError):
    code = "REFERENCE_REQUIRED"


# --- Invariant violations: surfaced with the numbers needed to fix the request ---
class InvariantViolation(ServiceError):
    code = "INVARIANT_VIOLATION"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, status.HTTP_422_UNPROCESSABLE_ENTITY, context)


class ExceedsPending(InvariantViolation):
    code = "EXCEEDS_PENDING"

    def __init__(self, installment_name: str, pending: int, requested: int) -> None:
        super().__init__(
            f"Payment of {requested} exceeds pending amount {pending} for installment '{installment_name}'",
            {"installment_name": installment_name, "pending": pending, "requested": requested},
        )
        self.pending = pending
        self.requested = requested


class InsufficientAmountForRounding(InvariantViolation):
    code = "INSUFFICIENT_AMOUNT_FOR_ROUNDING"

    def __init__(self, total: int, count: int, minimum: int) -> None:
        super().__init__(
            f"Total {total} is too small to split into {count} installments of whole hundreds (minimum {minimum})",
            {"total": total, "count": count, "minimum": minimum},
        )


# --- Lookups ---
class NotFound(ServiceError):
    code = "NOT_FOUND"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND, context)


class UnknownInstallment(NotFound):
    code = "UNKNOWN_INSTALLMENT"


# --- Concurrency ---
class ConcurrencyConflict(ServiceError):
    code = "CONCURRENCY_CONFLICT"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT, context)
