"""
Enrolled-student roster: which students a fee structure applies to.

Class and section are matched by display name. "Class 10", "class 10" and "10" are the same
class; sections compare case-insensitively. "ALL" on the structure side matches anything.
"""

import re
from typing import List, NamedTuple, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.core.enums import EnrollmentStatus
from app.core.models import AcademicYear, StudentAcademicRecord

ALL = "ALL"

_CLASS_PREFIX = re.compile(r"^class\s*", re.IGNORECASE)


class RosterStudent(NamedTuple):
    student_id: UUID
    student_name: str
    class_name: str
    section_name: str
    roll_number: Optional[str]
    account_status: str


def is_wildcard(value: Optional[str]) -> bool:
    return value is None or not value.strip() or value.strip().upper() == ALL


def normalize_class_name(value: str) -> str:
    cleaned = _CLASS_PREFIX.sub("", value.strip()).strip()
    return (cleaned or value.strip()).lower()


def normalize_section_name(value: str) -> str:
    return value.strip().lower()


def class_matches(scope: Optional[str], class_name: str) -> bool:
    return is_wildcard(scope) or normalize_class_name(scope) == normalize_class_name(class_name)


def section_matches(scope: Optional[str], section_name: str) -> bool:
    return is_wildcard(scope) or normalize_section_name(scope) == normalize_section_name(section_name)


async def list_enrolled_students(
    db: AsyncSession,
    tenant_id: UUID,
    academic_year: str,
    class_name: str,
    section_name: str,
) -> List[RosterStudent]:
    """Students with an ACTIVE enrollment in `academic_year` inside the class/section scope."""
    stmt = (
        select(StudentAcademicRecord, User)
        .join(User, StudentAcademicRecord.student_id == User.id)
        .join(AcademicYear, StudentAcademicRecord.academic_year_id == AcademicYear.id)
        .where(
            StudentAcademicRecord.tenant_id == tenant_id,
            User.tenant_id == tenant_id,
            AcademicYear.tenant_id == tenant_id,
            AcademicYear.name == academic_year,
            StudentAcademicRecord.status == EnrollmentStatus.ACTIVE.value,
        )
        .order_by(StudentAcademicRecord.class_name, StudentAcademicRecord.section_name, User.full_name, User.id)
    )
    rows = (await db.execute(stmt)).all()
    return [
        RosterStudent(
            student_id=user.id,
            student_name=user.full_name,
            class_name=enrollment.class_name,
            section_name=enrollment.section_name,
            roll_number=enrollment.roll_number,
            account_status=user.status,
        )
        for enrollment, user in rows
        if class_matches(class_name, enrollment.class_name)
        and section_matches(section_name, enrollment.section_name)
    ]
