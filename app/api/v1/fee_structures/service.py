"""Fee structure service: create/list structures and apply them to the enrolled roster."""

import logging
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.fees.audit_service import log_fee_audit
from app.core.config import settings
from app.core.exceptions import (
    InstallmentSumMismatch,
    InvalidAmount,
    InvalidDate,
    NotFound,
    ValidationError,
)
from app.core.models import AcademicYear, FeeStructure, FeeStructureInstallment, StudentFeeInstallment, StudentFeeRecord

from . import roster
from .installments import build_installment_schedule
from .schemas import (
    ApplyResult,
    FailedStudent,
    FeeStructureCreate,
    FeeStructureCreateResponse,
    FeeStructureResponse,
    FeeStructureSummary,
    GeneratedInstallmentItem,
    InstallmentGenerateRequest,
    InstallmentGenerateResponse,
    InstallmentSpecResponse,
)

logger = logging.getLogger(__name__)


def _is_positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _scope_value(value: Optional[str]) -> str:
    """Normalize a class/section scope: blank or any casing of "all" becomes "ALL"."""
    return roster.ALL if roster.is_wildcard(value) else value.strip()


# --- Installment preview ---
def preview_installments(payload: InstallmentGenerateRequest) -> InstallmentGenerateResponse:
    schedule = build_installment_schedule(
        payload.total_amount,
        payload.count,
        payload.policy,
        payload.first_due_date,
        payload.interval_months,
    )
    return InstallmentGenerateResponse(
        total_amount=payload.total_amount,
        policy=payload.policy,
        installments=[GeneratedInstallmentItem(**item._asdict()) for item in schedule],
    )


# --- Validation ---
def _resolve_installments(payload: FeeStructureCreate) -> List[Dict]:
    if payload.generate is not None:
        if payload.installments:
            raise ValidationError("Provide either installments or generate options, not both")
        opts = payload.generate
        schedule = build_installment_schedule(
            payload.total_amount, opts.count, opts.policy, opts.first_due_date, opts.interval_months
        )
        return [
            {"name": item.name, "amount": item.amount, "due_date": item.due_date}
            for item in schedule
        ]
    return [
        {
            "name": inst.name,
            "amount": inst.amount,
            "due_date": inst.due_date,
            "description": inst.description,
            "is_optional": inst.is_optional,
            "late_fee_amount": inst.late_fee_amount,
        }
        for inst in payload.installments
    ]


def validate_installments(total_amount: int, installments: List[Dict]) -> None:
    """Reject the schedule unless every installment is well formed and the amounts sum exactly to the total."""
    if not installments:
        raise ValidationError("At least one installment is required")
    seen = set()
    for idx, inst in enumerate(installments):
        name = (inst.get("name") or "").strip()
        if not name:
            raise ValidationError("Installment name is required", {"position": idx})
        if name in seen:
            raise ValidationError(f"Installment name '{name}' is used more than once", {"name": name})
        seen.add(name)
        inst["name"] = name
        if not _is_positive_int(inst.get("amount")):
            raise InvalidAmount(
                f"Installment '{name}' must have a positive amount",
                {"name": name, "amount": inst.get("amount")},
            )
        if inst.get("due_date") is None:
            raise InvalidDate(f"Installment '{name}' must have a due date", {"name": name})
    installments_sum = sum(inst["amount"] for inst in installments)
    if installments_sum != total_amount:
        raise InstallmentSumMismatch(
            "Sum of installment amounts must equal total amount",
            {
                "total_amount": total_amount,
                "installments_sum": installments_sum,
                "difference": total_amount - installments_sum,
            },
        )


async def _resolve_academic_year(db: AsyncSession, tenant_id: UUID, fallback: Optional[str]) -> str:
    """School's current academic year wins over the client value; the client value is only a fallback."""
    current = (
        await db.execute(
            select(AcademicYear).where(
                AcademicYear.tenant_id == tenant_id,
                AcademicYear.is_current.is_(True),
            )
        )
    ).scalar_one_or_none()
    if current is not None:
        if current.status != "ACTIVE":
            raise ValidationError("Cannot create fee structure for a CLOSED academic year")
        return current.name
    year = (fallback or "").strip()
    if not year:
        raise ValidationError("Academic year is required (the school has no current academic year)")
    return year


# --- Responses ---
def _to_summary(fs: FeeStructure) -> FeeStructureSummary:
    return FeeStructureSummary(
        id=fs.id,
        name=fs.name,
        description=fs.description,
        class_name=fs.class_name,
        section_name=fs.section_name,
        academic_year=fs.academic_year,
        total_amount=fs.total_amount,
        currency=fs.currency,
        installments_count=len(fs.installments),
        applied_to_students=fs.applied_to_students or 0,
        status=fs.status,
        created_at=fs.created_at,
    )


def _to_response(fs: FeeStructure) -> FeeStructureResponse:
    return FeeStructureResponse(
        **_to_summary(fs).model_dump(),
        tenant_id=fs.tenant_id,
        created_by=fs.created_by,
        installments=[InstallmentSpecResponse.model_validate(inst) for inst in fs.installments],
    )


# --- Create ---
async def create_fee_structure(
    db: AsyncSession,
    tenant_id: UUID,
    payload: FeeStructureCreate,
    created_by: Optional[UUID] = None,
) -> FeeStructureCreateResponse:
    name = (payload.name or "").strip()
    if not name:
        raise ValidationError("Fee structure name is required")
    if not (payload.class_name or "").strip():
        raise ValidationError("Class is required (use \"ALL\" for every class)")
    if not _is_positive_int(payload.total_amount):
        raise InvalidAmount("Total amount must be a positive integer", {"total_amount": payload.total_amount})

    installments = _resolve_installments(payload)
    validate_installments(payload.total_amount, installments)
    academic_year = await _resolve_academic_year(db, tenant_id, payload.academic_year)

    fs = FeeStructure(
        tenant_id=tenant_id,
        created_by=created_by,
        name=name,
        description=(payload.description or "").strip() or None,
        class_name=_scope_value(payload.class_name),
        section_name=_scope_value(payload.section_name),
        academic_year=academic_year,
        total_amount=payload.total_amount,
        currency=settings.default_currency,
        is_active=True,
        applied_to_students=0,
        installments=[
            FeeStructureInstallment(
                position=idx,
                name=inst["name"],
                amount=inst["amount"],
                due_date=inst["due_date"],
                description=(inst.get("description") or "").strip() or None,
                is_optional=bool(inst.get("is_optional", False)),
                late_fee_amount=inst.get("late_fee_amount") or 0,
            )
            for idx, inst in enumerate(installments)
        ],
    )
    db.add(fs)
    await db.flush()
    await log_fee_audit(
        db, tenant_id, "fee_structures", fs.id,
        "CREATE", None,
        {
            "name": fs.name,
            "class_name": fs.class_name,
            "section_name": fs.section_name,
            "academic_year": academic_year,
            "total_amount": fs.total_amount,
            "installments": [{"name": i["name"], "amount": i["amount"]} for i in installments],
        },
        created_by,
    )
    await db.commit()
    logger.info(
        "Created fee structure %s (%s) for class %s section %s, total %s in %d installments",
        fs.id, fs.name, fs.class_name, fs.section_name, fs.total_amount, len(installments),
    )

    response = FeeStructureCreateResponse(id=fs.id)
    if payload.apply_to_students:
        result = await apply_fee_structure(db, tenant_id, fs.id, changed_by=created_by)
        response.applied_to_students = result.applied
        response.apply_result = result
    return response


# --- Apply to students ---
async def _get_structure(db: AsyncSession, tenant_id: UUID, fee_structure_id: UUID) -> FeeStructure:
    fs = (
        await db.execute(
            select(FeeStructure)
            .where(
                FeeStructure.id == fee_structure_id,
                FeeStructure.tenant_id == tenant_id,
            )
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if not fs:
        raise NotFound("Fee structure not found", {"fee_structure_id": str(fee_structure_id)})
    return fs


async def apply_fee_structure(
    db: AsyncSession,
    tenant_id: UUID,
    fee_structure_id: UUID,
    changed_by: Optional[UUID] = None,
) -> ApplyResult:
    """
    Create one StudentFeeRecord per enrolled student in the structure's scope.
    Each student is committed on its own: a failure for one student never rolls back the others,
    and every student is accounted for as applied, skipped (record already exists) or failed.
    """
    fs = await _get_structure(db, tenant_id, fee_structure_id)
    if not fs.is_active:
        raise ValidationError("Cannot apply an inactive fee structure")

    # Plain values only: a rollback below expires ORM instances in this session
    structure_name = fs.name
    academic_year = fs.academic_year
    total_amount = fs.total_amount
    schedule = [(inst.position, inst.name, inst.amount, inst.due_date) for inst in fs.installments]

    students = await roster.list_enrolled_students(db, tenant_id, academic_year, fs.class_name, fs.section_name)
    existing = set(
        (
            await db.execute(
                select(StudentFeeRecord.student_id).where(
                    StudentFeeRecord.tenant_id == tenant_id,
                    StudentFeeRecord.fee_structure_id == fee_structure_id,
                )
            )
        ).scalars().all()
    )

    applied = 0
    skipped = 0
    failed: List[FailedStudent] = []
    for student in students:
        if student.student_id in existing:
            skipped += 1
            continue
        if student.account_status != "ACTIVE":
            failed.append(
                FailedStudent(
                    student_id=student.student_id,
                    student_name=student.student_name,
                    reason=f"Student account is {student.account_status}",
                )
            )
            continue
        record = StudentFeeRecord(
            tenant_id=tenant_id,
            student_id=student.student_id,
            fee_structure_id=fee_structure_id,
            student_name=student.student_name,
            student_class=student.class_name,
            student_section=student.section_name,
            roll_number=student.roll_number,
            fee_structure_name=structure_name,
            academic_year=academic_year,
            total_amount=total_amount,
            installments=[
                StudentFeeInstallment(position=position, name=name, amount=amount, paid_amount=0, due_date=due_date)
                for position, name, amount, due_date in schedule
            ],
        )
        db.add(record)
        try:
            await db.flush()
            await log_fee_audit(
                db, tenant_id, "student_fee_records", record.id,
                "APPLY", None,
                {
                    "student_id": str(student.student_id),
                    "fee_structure_id": str(fee_structure_id),
                    "total_amount": total_amount,
                },
                changed_by,
            )
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.warning(
                "Could not apply fee structure %s to student %s: %s",
                fee_structure_id, student.student_id, getattr(exc, "orig", None) or exc,
            )
            if isinstance(exc, IntegrityError):
                reason = "Fee record could not be created (already exists or student data is inconsistent)"
            else:
                reason = "Fee record could not be saved (student data was rejected by the database)"
            failed.append(
                FailedStudent(
                    student_id=student.student_id,
                    student_name=student.student_name,
                    reason=reason,
                )
            )
            continue
        applied += 1

    record_count = (
        await db.execute(
            select(func.count(StudentFeeRecord.id)).where(StudentFeeRecord.fee_structure_id == fee_structure_id)
        )
    ).scalar_one()
    fs = await _get_structure(db, tenant_id, fee_structure_id)
    fs.applied_to_students = record_count
    await db.commit()

    logger.info(
        "Applied fee structure %s: %d applied, %d skipped, %d failed",
        fee_structure_id, applied, skipped, len(failed),
    )
    return ApplyResult(
        fee_structure_id=fee_structure_id,
        applied=applied,
        skipped=skipped,
        failed=failed,
        applied_to_students=record_count,
    )


# --- Queries ---
async def list_fee_structures(
    db: AsyncSession,
    tenant_id: UUID,
    class_name: Optional[str] = None,
    section_name: Optional[str] = None,
) -> List[FeeStructureSummary]:
    """Active structures of the school, newest first (ties broken by id so pages are stable)."""
    stmt = select(FeeStructure).where(
        FeeStructure.tenant_id == tenant_id,
        FeeStructure.is_active.is_(True),
    )
    if not roster.is_wildcard(section_name):
        stmt = stmt.where(func.lower(FeeStructure.section_name) == roster.normalize_section_name(section_name))
    stmt = stmt.order_by(FeeStructure.created_at.desc(), FeeStructure.id)
    result = await db.execute(stmt)
    structures = result.scalars().all()
    if not roster.is_wildcard(class_name):
        wanted = roster.normalize_class_name(class_name)
        structures = [fs for fs in structures if roster.normalize_class_name(fs.class_name) == wanted]
    return [_to_summary(fs) for fs in structures]


async def get_fee_structure(
    db: AsyncSession,
    tenant_id: UUID,
    fee_structure_id: UUID,
) -> FeeStructureResponse:
    return _to_response(await _get_structure(db, tenant_id, fee_structure_id))
