"""Fee payment: append-only record of one accepted offline payment."""

import uuid
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from app.db.session import Base


class FeePayment(Base):
    """Payment against one installment of a student fee record. Never updated or deleted."""

    __tablename__ = "fee_payments"
    __table_args__ = (
        UniqueConstraint("tenant_id", "receipt_number", name="uq_fee_payment_tenant_receipt"),
        CheckConstraint("amount > 0", name="chk_fee_payment_amount_positive"),
        CheckConstraint(
            "payment_method IN ('cash','cheque','bank_transfer','online','other')",
            name="chk_fee_payment_method",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    record_id = Column(
        Uuid,
        ForeignKey("student_fee_records.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    installment_id = Column(
        Uuid,
        ForeignKey("student_fee_installments.id", ondelete="RESTRICT"),
        nullable=False,
    )
    installment_name = Column(String(255), nullable=False)
    amount = Column(BigInteger, nullable=False)
    payment_method = Column(String(30), nullable=False)
    payment_reference = Column(String(100), nullable=True)  # cheque number, transfer id, ...
    payment_date = Column(Date, nullable=False)
    receipt_number = Column(String(80), nullable=False)
    remarks = Column(Text, nullable=True)
    received_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    record = relationship("StudentFeeRecord", back_populates="payments")
    installment = relationship("StudentFeeInstallment")
    received_by_user = relationship("User", foreign_keys=[received_by])
