from app.core.models.academic_year import AcademicYear
from app.core.models.student_academic_record import StudentAcademicRecord
from app.core.models.tenant import Tenant
from app.core.models.fee_structure import FeeStructure, FeeStructureInstallment
from app.core.models.student_fee_record import StudentFeeInstallment, StudentFeeRecord
from app.core.models.fee_payment import FeePayment
from app.core.models.receipt_counter import ReceiptCounter
from app.core.models.fee_audit_log import FeeAuditLog

__all__ = [
    "AcademicYear",
    "StudentAcademicRecord",
    "Tenant",
    "FeeStructure",
    "FeeStructureInstallment",
    "StudentFeeRecord",
    "StudentFeeInstallment",
    "FeePayment",
    "ReceiptCounter",
    "FeeAuditLog",
]
