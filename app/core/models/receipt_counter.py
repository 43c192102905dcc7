"""Receipt counter: per-school, per-academic-year receipt sequence."""

from datetime import datetime

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, String, Uuid

from app.db.session import Base


class ReceiptCounter(Base):
    """Last issued receipt sequence. Only ever incremented with an atomic upsert."""

    __tablename__ = "receipt_counters"

    tenant_id = Column(Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), primary_key=True)
    academic_year = Column(String(50), primary_key=True)
    seq = Column(BigInteger, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
