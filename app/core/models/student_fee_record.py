"""Student fee record: per-student materialization of a fee structure. Mutated only by the payment ledger."""

import uuid
from datetime import datetime
from typing import Dict

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from app.db.session import Base


class StudentFeeRecord(Base):
    """
    One per (student, fee structure). Student and structure details are denormalized at apply time.
    total_paid is never stored: it is sum(payments.amount), which equals sum(installments.paid_amount).
    version guards read-check-write races between workers (optimistic concurrency).
    """

    __tablename__ = "student_fee_records"
    __table_args__ = (
        UniqueConstraint("student_id", "fee_structure_id", name="uq_student_fee_record_student_structure"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    fee_structure_id = Column(
        Uuid,
        ForeignKey("fee_structures.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    student_name = Column(String(255), nullable=False)
    student_class = Column(String(50), nullable=False)
    student_section = Column(String(50), nullable=False)
    roll_number = Column(String(50), nullable=True)
    fee_structure_name = Column(String(255), nullable=False)
    academic_year = Column(String(50), nullable=False)

    total_amount = Column(BigInteger, nullable=False)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    fee_structure = relationship("FeeStructure")
    installments = relationship(
        "StudentFeeInstallment",
        back_populates="record",
        order_by="StudentFeeInstallment.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    payments = relationship(
        "FeePayment",
        back_populates="record",
        order_by="FeePayment.created_at",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def installments_by_name(self) -> Dict[str, "StudentFeeInstallment"]:
        return {inst.name: inst for inst in self.installments}

    @property
    def total_paid(self) -> int:
        return sum(p.amount for p in self.payments)


class StudentFeeInstallment(Base):
    """Installment balance. amount is fixed at creation; paid_amount only grows, never past amount."""

    __tablename__ = "student_fee_installments"
    __table_args__ = (
        UniqueConstraint("record_id", "name", name="uq_student_fee_installment_record_name"),
        CheckConstraint(
            "paid_amount >= 0 AND paid_amount <= amount",
            name="chk_student_fee_installment_paid_within_amount",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    record_id = Column(
        Uuid,
        ForeignKey("student_fee_records.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = Column(Integer, nullable=False)
    name = Column(String(255), nullable=False)
    amount = Column(BigInteger, nullable=False)
    paid_amount = Column(BigInteger, nullable=False, default=0)
    due_date = Column(Date, nullable=False)

    record = relationship("StudentFeeRecord", back_populates="installments")

    @property
    def pending_amount(self) -> int:
        return self.amount - (self.paid_amount or 0)
