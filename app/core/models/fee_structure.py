"""Fee structure: total fee and its installment schedule per class/section/academic year."""

import uuid
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from app.core.enums import FeeStructureStatus
from app.db.session import Base


class FeeStructure(Base):
    """
    Fee definition for a class ("ALL" = every class) and section ("ALL" = every section).
    Immutable once created; sum(installments.amount) == total_amount is checked before insert.
    """

    __tablename__ = "fee_structures"
    __table_args__ = (
        CheckConstraint("total_amount > 0", name="chk_fee_structure_total_positive"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    created_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    class_name = Column(String(50), nullable=False)
    section_name = Column(String(50), nullable=False, default="ALL")
    academic_year = Column(String(50), nullable=False)
    total_amount = Column(BigInteger, nullable=False)  # smallest currency unit
    currency = Column(String(3), nullable=False, default="INR")
    status = Column(String(20), nullable=False, default=FeeStructureStatus.ACTIVE.value)
    is_active = Column(Boolean, nullable=False, default=True)
    applied_to_students = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    tenant = relationship("Tenant")
    installments = relationship(
        "FeeStructureInstallment",
        back_populates="fee_structure",
        order_by="FeeStructureInstallment.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class FeeStructureInstallment(Base):
    """One scheduled installment of a fee structure. Name is unique within the structure."""

    __tablename__ = "fee_structure_installments"
    __table_args__ = (
        UniqueConstraint("fee_structure_id", "name", name="uq_fee_structure_installment_name"),
        CheckConstraint("amount > 0", name="chk_fee_structure_installment_amount_positive"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    fee_structure_id = Column(
        Uuid,
        ForeignKey("fee_structures.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = Column(Integer, nullable=False)
    name = Column(String(255), nullable=False)
    amount = Column(BigInteger, nullable=False)
    due_date = Column(Date, nullable=False)
    description = Column(Text, nullable=True)
    is_optional = Column(Boolean, nullable=False, default=False)
    late_fee_amount = Column(BigInteger, nullable=False, default=0)  # informational; never charged by the ledger

    fee_structure = relationship("FeeStructure", back_populates="installments")
