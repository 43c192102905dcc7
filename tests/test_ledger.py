"""Offline payments against student fee records, and record queries."""

import uuid
from datetime import date, timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.fee_structures import service as fee_structure_service
from app.api.v1.fees import service
from app.api.v1.fees.schemas import OfflinePaymentCreate
from app.core.enums import InstallmentState, StudentFeeStatus
from app.core.exceptions import (
    ExceedsPending,
    InvalidAmount,
    InvalidDate,
    NotFound,
    ReferenceRequired,
    ServiceError,
    UnknownInstallment,
)
from app.core.models import FeeAuditLog, FeePayment, ReceiptCounter

from .helpers import add_student, create_school, structure_payload


def pay(installment_name="Term 1", amount=100, method="cash", payment_date="today", reference=None, remarks=None):
    return OfflinePaymentCreate(
        installment_name=installment_name,
        amount=amount,
        payment_method=method,
        payment_date=date.today() if payment_date == "today" else payment_date,
        payment_reference=reference,
        remarks=remarks,
    )


@pytest.mark.asyncio
async def test_partial_then_exact_payment_then_overpay(db_session: AsyncSession, school, make_record) -> None:
    record_id = await make_record([("Term 1", 500), ("Term 2", 200)])

    first = await service.record_payment(db_session, school.tenant_id, record_id, pay(amount=200))
    assert first.installment_state is InstallmentState.PARTIAL
    assert first.installment_pending_amount == 300
    assert first.status is StudentFeeStatus.partial

    second = await service.record_payment(db_session, school.tenant_id, record_id, pay(amount=300))
    assert second.installment_paid_amount == 500
    assert second.installment_pending_amount == 0
    assert second.installment_state is InstallmentState.PAID
    assert second.total_paid == 500
    assert second.total_pending == 200

    with pytest.raises(ExceedsPending) as exc:
        await service.record_payment(db_session, school.tenant_id, record_id, pay(amount=1))
    assert exc.value.status_code == 422
    assert exc.value.context == {"installment_name": "Term 1", "pending": 0, "requested": 1}
    assert "pending amount 0" in exc.value.message


@pytest.mark.asyncio
async def test_status_follows_payments(db_session: AsyncSession, school, make_record) -> None:
    record_id = await make_record([("Term 1", 600), ("Term 2", 400)])
    detail = await service.get_student_fee_record(db_session, school.tenant_id, record_id)
    assert detail.status is StudentFeeStatus.pending
    assert detail.payment_percentage == 0

    await service.record_payment(db_session, school.tenant_id, record_id, pay("Term 1", 600))
    detail = await service.get_student_fee_record(db_session, school.tenant_id, record_id)
    assert detail.status is StudentFeeStatus.partial
    assert detail.payment_percentage == 60
    assert detail.next_due_date == detail.installments[1].due_date

    await service.record_payment(db_session, school.tenant_id, record_id, pay("Term 2", 400, method="cheque", reference="CHQ-1"))
    detail = await service.get_student_fee_record(db_session, school.tenant_id, record_id)
    assert detail.status is StudentFeeStatus.paid
    assert detail.total_paid == detail.total_amount == 1000
    assert detail.total_pending == 0
    assert detail.next_due_date is None
    # Paid amounts on installments always agree with the payment history
    assert sum(i.paid_amount for i in detail.installments) == sum(p.amount for p in detail.payments)
    assert [p.payment_reference for p in detail.payments] == [None, "CHQ-1"]


@pytest.mark.asyncio
async def test_receipt_numbers_are_sequential_per_school_and_year(db_session: AsyncSession, school, make_record) -> None:
    record_id = await make_record([("Term 1", 500)])
    receipts = [
        (await service.record_payment(db_session, school.tenant_id, record_id, pay(amount=100))).receipt_number
        for _ in range(3)
    ]
    assert receipts == [
        "RCP-SCH-A3K9-2024-25-00001",
        "RCP-SCH-A3K9-2024-25-00002",
        "RCP-SCH-A3K9-2024-25-00003",
    ]


@pytest.mark.asyncio
async def test_payment_is_audited(db_session: AsyncSession, school, make_record) -> None:
    record_id = await make_record([("Term 1", 500)])
    receipt = await service.record_payment(
        db_session, school.tenant_id, record_id, pay(amount=150), received_by=school.admin_id
    )
    entry = (
        await db_session.execute(select(FeeAuditLog).where(FeeAuditLog.action_type == "PAYMENT"))
    ).scalar_one()
    assert entry.reference_id == receipt.payment_id
    assert entry.changed_by == school.admin_id
    assert entry.old_value["paid_amount"] == 0
    assert entry.new_value["paid_amount"] == 150
    assert entry.new_value["receipt_number"] == receipt.receipt_number


@pytest.mark.asyncio
@pytest.mark.parametrize("method", ["cheque", "bank_transfer", "online"])
async def test_reference_required_for_traceable_methods(db_session: AsyncSession, school, make_record, method) -> None:
    record_id = await make_record([("Term 1", 500)])
    with pytest.raises(ReferenceRequired):
        await service.record_payment(db_session, school.tenant_id, record_id, pay(method=method))
    with pytest.raises(ReferenceRequired):
        await service.record_payment(db_session, school.tenant_id, record_id, pay(method=method, reference="   "))
    receipt = await service.record_payment(
        db_session, school.tenant_id, record_id, pay(method=method.upper(), reference=" TXN-42 ")
    )
    assert receipt.payment_reference == "TXN-42"


@pytest.mark.asyncio
async def test_cash_and_other_need_no_reference(db_session: AsyncSession, school, make_record) -> None:
    record_id = await make_record([("Term 1", 500)])
    await service.record_payment(db_session, school.tenant_id, record_id, pay(method="cash"))
    await service.record_payment(db_session, school.tenant_id, record_id, pay(method="other"))


@pytest.mark.asyncio
async def test_payment_date_rules(db_session: AsyncSession, school, make_record) -> None:
    record_id = await make_record([("Term 1", 500)])
    with pytest.raises(InvalidDate):
        await service.record_payment(
            db_session, school.tenant_id, record_id, pay(payment_date=date.today() + timedelta(days=1))
        )
    with pytest.raises(InvalidDate):
        await service.record_payment(db_session, school.tenant_id, record_id, pay(payment_date=None))
    receipt = await service.record_payment(
        db_session, school.tenant_id, record_id, pay(payment_date=date.today() - timedelta(days=3))
    )
    assert receipt.payment_date == date.today() - timedelta(days=3)


@pytest.mark.asyncio
async def test_timestamp_payment_date_is_truncated(db_session: AsyncSession, school, make_record) -> None:
    record_id = await make_record([("Term 1", 500)])
    payload = OfflinePaymentCreate(
        installment_name="Term 1",
        amount=100,
        payment_method="Cash",
        payment_date="2024-06-01T10:15:00.000Z",
    )
    assert payload.payment_method.value == "cash"
    receipt = await service.record_payment(db_session, school.tenant_id, record_id, payload)
    assert receipt.payment_date == date(2024, 6, 1)

    receipt = await service.record_payment(db_session, school.tenant_id, record_id, pay(payment_date="2024-06-02"))
    assert receipt.payment_date == date(2024, 6, 2)


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [True, 100.5, 100.0, "100", None, [100]])
async def test_non_integer_amounts_are_rejected(db_session: AsyncSession, school, make_record, amount) -> None:
    record_id = await make_record([("Term 1", 500)])
    with pytest.raises(InvalidAmount):
        await service.record_payment(db_session, school.tenant_id, record_id, pay(amount=amount))
    assert (await db_session.execute(select(FeePayment))).scalars().all() == []


@pytest.mark.asyncio
@pytest.mark.parametrize("payment_date", ["2024-13-45T00:00:00", "2024-02-30", "yesterday", "", 20240601])
async def test_malformed_payment_dates_are_rejected(
    db_session: AsyncSession, school, make_record, payment_date
) -> None:
    record_id = await make_record([("Term 1", 500)])
    with pytest.raises(InvalidDate):
        await service.record_payment(db_session, school.tenant_id, record_id, pay(payment_date=payment_date))


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kwargs, error",
    [
        # Unknown installment wins over every other problem
        ({"installment_name": "Term 9", "amount": 0, "payment_date": None}, UnknownInstallment),
        # Bad amount before bad date
        ({"amount": 0, "payment_date": None}, InvalidAmount),
        ({"amount": -5, "payment_date": date.today() + timedelta(days=2)}, InvalidAmount),
        # Malformed values still follow the check order
        ({"installment_name": "Term 9", "amount": 100.5, "payment_date": "not-a-date"}, UnknownInstallment),
        ({"amount": True, "payment_date": "2024-13-45"}, InvalidAmount),
        ({"amount": 10_000, "payment_date": "2024-13-45"}, InvalidDate),
        # Bad date before over-payment
        ({"amount": 10_000, "payment_date": date.today() + timedelta(days=2)}, InvalidDate),
        # Over-payment before missing reference
        ({"amount": 10_000, "method": "cheque"}, ExceedsPending),
    ],
)
async def test_checks_run_in_order(db_session: AsyncSession, school, make_record, kwargs, error) -> None:
    record_id = await make_record([("Term 1", 500)])
    with pytest.raises(error):
        await service.record_payment(db_session, school.tenant_id, record_id, pay(**kwargs))


@pytest.mark.asyncio
async def test_rejected_payment_changes_nothing(db_session: AsyncSession, school, make_record) -> None:
    record_id = await make_record([("Term 1", 500), ("Term 2", 500)])
    await service.record_payment(db_session, school.tenant_id, record_id, pay(amount=200))
    before = await service.get_student_fee_record(db_session, school.tenant_id, record_id)

    rejected = [
        pay(amount=301),
        pay(amount=0),
        pay("Term 3"),
        pay(method="online"),
        pay(payment_date=date.today() + timedelta(days=1)),
    ]
    for payload in rejected:
        with pytest.raises(ServiceError):
            await service.record_payment(db_session, school.tenant_id, record_id, payload)

    after = await service.get_student_fee_record(db_session, school.tenant_id, record_id)
    assert after.model_dump() == before.model_dump()
    payments = (await db_session.execute(select(FeePayment))).scalars().all()
    assert len(payments) == 1
    counter = (await db_session.execute(select(ReceiptCounter))).scalar_one()
    assert counter.seq == 1


@pytest.mark.asyncio
async def test_unknown_record_and_other_school(db_session: AsyncSession, school, make_record) -> None:
    record_id = await make_record([("Term 1", 500)])
    with pytest.raises(NotFound):
        await service.record_payment(db_session, school.tenant_id, uuid.uuid4(), pay())
    with pytest.raises(NotFound):
        await service.record_payment(
            db_session, school.tenant_id, uuid.uuid4(), pay(amount=100.5, payment_date="2024-13-45T00:00:00")
        )
    other = await create_school(db_session, code="SCH-OTHR")
    with pytest.raises(NotFound):
        await service.record_payment(db_session, other.tenant_id, record_id, pay())
    with pytest.raises(NotFound):
        await service.get_student_fee_record(db_session, other.tenant_id, record_id)


# --- Listing ---
@pytest.fixture()
async def roster_records(db_session: AsyncSession, school):
    """Three students, one structure for every class; returns record ids by student name."""
    for name, class_name, section_name, roll in [
        ("Asha Rao", "10", "A", "R-1"),
        ("Cara Das", "9", "A", "R-3"),
        ("Ben Paul", "Class 10", "B", "R-2"),
    ]:
        await add_student(db_session, school, name, class_name=class_name, section_name=section_name, roll_number=roll)
    created = await fee_structure_service.create_fee_structure(
        db_session,
        school.tenant_id,
        structure_payload(class_name="ALL", installments=[("Term 1", 400), ("Term 2", 300), ("Term 3", 300)]),
    )
    await fee_structure_service.apply_fee_structure(db_session, school.tenant_id, created.id)
    page = await service.list_student_fee_records(db_session, school.tenant_id)
    return {r.student_name: r.id for r in page.records}


@pytest.mark.asyncio
async def test_list_filters_and_search(db_session: AsyncSession, school, roster_records) -> None:
    async def names(**filters):
        page = await service.list_student_fee_records(db_session, school.tenant_id, **filters)
        return sorted(r.student_name for r in page.records)

    assert await names() == ["Asha Rao", "Ben Paul", "Cara Das"]
    assert await names(class_name="Class 10") == ["Asha Rao", "Ben Paul"]
    assert await names(class_name="10", section_name="b") == ["Ben Paul"]
    assert await names(class_name="ALL", section_name="ALL") == ["Asha Rao", "Ben Paul", "Cara Das"]
    assert await names(search="das") == ["Cara Das"]
    assert await names(search="R-2") == ["Ben Paul"]
    assert await names(search="tuition") == ["Asha Rao", "Ben Paul", "Cara Das"]
    assert await names(search="100%") == []


@pytest.mark.asyncio
async def test_list_status_filter(db_session: AsyncSession, school, roster_records) -> None:
    asha = roster_records["Asha Rao"]
    for name, amount in [("Term 1", 400), ("Term 2", 300), ("Term 3", 300)]:
        await service.record_payment(db_session, school.tenant_id, asha, pay(name, amount))
    await service.record_payment(db_session, school.tenant_id, roster_records["Cara Das"], pay("Term 2", 50))

    async def names(status):
        page = await service.list_student_fee_records(db_session, school.tenant_id, status=status)
        return sorted(r.student_name for r in page.records)

    assert await names(StudentFeeStatus.paid) == ["Asha Rao"]
    assert await names(StudentFeeStatus.partial) == ["Cara Das"]
    assert await names(StudentFeeStatus.pending) == ["Ben Paul"]


@pytest.mark.asyncio
async def test_list_pagination_is_newest_first(db_session: AsyncSession, school, roster_records) -> None:
    first = await service.list_student_fee_records(db_session, school.tenant_id, page=1, limit=2)
    second = await service.list_student_fee_records(db_session, school.tenant_id, page=2, limit=2)
    assert first.pagination.model_dump() == {"page": 1, "limit": 2, "total": 3, "pages": 2}
    assert len(first.records) == 2
    assert len(second.records) == 1
    ids = [r.id for r in first.records + second.records]
    assert len(set(ids)) == 3

    everything = await service.list_student_fee_records(db_session, school.tenant_id, limit=500)
    assert everything.pagination.limit == service.MAX_PAGE_SIZE
    created = [r.id for r in everything.records]
    assert created == ids
