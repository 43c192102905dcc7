"""Seed data and request helpers shared by the test modules."""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.fee_structures.schemas import FeeStructureCreate
from app.auth.models import Role, User
from app.auth.security import create_access_token
from app.core.models import AcademicYear, StudentAcademicRecord, Tenant

ACADEMIC_YEAR = "2024-25"


@dataclass
class School:
    tenant_id: UUID
    code: str
    academic_year_id: UUID
    admin_id: UUID


async def create_school(session: AsyncSession, code: str = "SCH-A3K9", academic_year: Optional[str] = ACADEMIC_YEAR) -> School:
    tenant = Tenant(organization_code=code, organization_name=f"School {code}")
    session.add(tenant)
    await session.flush()
    year_id = None
    if academic_year:
        year = AcademicYear(
            tenant_id=tenant.id,
            name=academic_year,
            start_date=date(2024, 4, 1),
            end_date=date(2025, 3, 31),
            is_current=True,
            status="ACTIVE",
        )
        session.add(year)
        await session.flush()
        year_id = year.id
    admin = User(
        tenant_id=tenant.id,
        full_name="Fee Admin",
        email=f"admin@{code.lower()}.test",
        role="ADMIN",
    )
    session.add(admin)
    await session.commit()
    return School(tenant_id=tenant.id, code=code, academic_year_id=year_id, admin_id=admin.id)


async def add_student(
    session: AsyncSession,
    school: School,
    full_name: str,
    class_name: str = "10",
    section_name: str = "A",
    roll_number: Optional[str] = None,
    account_status: str = "ACTIVE",
    enrollment_status: str = "ACTIVE",
) -> UUID:
    student = User(
        tenant_id=school.tenant_id,
        full_name=full_name,
        email=f"{full_name.lower().replace(' ', '.')}@{school.code.lower()}.test",
        role="STUDENT",
        status=account_status,
    )
    session.add(student)
    await session.flush()
    session.add(
        StudentAcademicRecord(
            tenant_id=school.tenant_id,
            student_id=student.id,
            academic_year_id=school.academic_year_id,
            class_name=class_name,
            section_name=section_name,
            roll_number=roll_number,
            status=enrollment_status,
        )
    )
    await session.commit()
    return student.id


async def add_user(session: AsyncSession, school: School, role: str, permissions: Optional[Dict] = None) -> UUID:
    user = User(
        tenant_id=school.tenant_id,
        full_name=f"{role.title()} User",
        email=f"{role.lower()}@{school.code.lower()}.test",
        role=role,
    )
    session.add(user)
    if permissions is not None:
        session.add(Role(tenant_id=school.tenant_id, name=role, permissions=permissions))
    await session.commit()
    return user.id


def auth_headers(school: School, user_id: Optional[UUID] = None, role: str = "ADMIN") -> Dict[str, str]:
    token = create_access_token(user_id=user_id or school.admin_id, tenant_id=school.tenant_id, role=role)
    return {"Authorization": f"Bearer {token}"}


def structure_payload(
    total_amount: int = 1000,
    installments=None,
    class_name: str = "10",
    section_name: str = "ALL",
    name: str = "Tuition",
    **extra,
) -> FeeStructureCreate:
    if installments is None:
        installments = [(f"Installment {i + 1}", amount) for i, amount in enumerate([400, 300, 300])]
    return FeeStructureCreate(
        name=name,
        class_name=class_name,
        section_name=section_name,
        total_amount=total_amount,
        installments=[
            {"name": inst_name, "amount": amount, "due_date": date.today() + timedelta(days=30 * (i + 1))}
            for i, (inst_name, amount) in enumerate(installments)
        ],
        **extra,
    )
