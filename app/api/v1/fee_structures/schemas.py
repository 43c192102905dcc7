"""Fee structure schemas."""

from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, StrictInt

from app.core.enums import RoundingPolicy


# --- Installment generation ---
class InstallmentGenerateRequest(BaseModel):
    total_amount: StrictInt
    count: StrictInt = Field(..., description="1..12")
    policy: RoundingPolicy = RoundingPolicy.EVEN
    first_due_date: date
    interval_months: StrictInt = Field(1, ge=1, le=12)


class GeneratedInstallmentItem(BaseModel):
    name: str
    amount: int
    due_date: date


class InstallmentGenerateResponse(BaseModel):
    total_amount: int
    policy: RoundingPolicy
    installments: List[GeneratedInstallmentItem]


class InstallmentGenerateOptions(BaseModel):
    """Build the schedule from the total instead of listing installments by hand."""

    count: StrictInt
    policy: RoundingPolicy = RoundingPolicy.EVEN
    first_due_date: date
    interval_months: StrictInt = Field(1, ge=1, le=12)


# --- Fee Structure ---
class InstallmentSpecIn(BaseModel):
    name: str = Field(..., max_length=255)
    amount: StrictInt
    due_date: Optional[date] = None
    description: Optional[str] = None
    is_optional: bool = False
    late_fee_amount: StrictInt = Field(0, ge=0)


class FeeStructureCreate(BaseModel):
    name: str = Field(..., max_length=255)
    description: Optional[str] = None
    class_name: str = Field(..., max_length=50, description='Class name, or "ALL"')
    section_name: str = Field("ALL", max_length=50, description='Section name, or "ALL"')
    total_amount: StrictInt
    installments: List[InstallmentSpecIn] = Field(default_factory=list)
    generate: Optional[InstallmentGenerateOptions] = None
    academic_year: Optional[str] = Field(
        None, description="Used only when the school has no current academic year"
    )
    apply_to_students: bool = False


class InstallmentSpecResponse(BaseModel):
    id: UUID
    position: int
    name: str
    amount: int
    due_date: date
    description: Optional[str] = None
    is_optional: bool
    late_fee_amount: int

    model_config = ConfigDict(from_attributes=True)


class FeeStructureSummary(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    class_name: str
    section_name: str
    academic_year: str
    total_amount: int
    currency: str
    installments_count: int
    applied_to_students: int
    status: str
    created_at: datetime


class FeeStructureResponse(FeeStructureSummary):
    tenant_id: UUID
    created_by: Optional[UUID] = None
    installments: List[InstallmentSpecResponse]


# --- Apply to students ---
class FailedStudent(BaseModel):
    student_id: UUID
    student_name: Optional[str] = None
    reason: str


class ApplyResult(BaseModel):
    fee_structure_id: UUID
    applied: int
    skipped: int
    failed: List[FailedStudent]
    applied_to_students: int  # records that now exist for this structure


class FeeStructureCreateResponse(BaseModel):
    id: UUID
    applied_to_students: Optional[int] = None
    apply_result: Optional[ApplyResult] = None
