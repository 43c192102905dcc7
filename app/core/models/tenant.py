import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String, Uuid
from sqlalchemy.orm import relationship

from app.db.session import Base


class Tenant(Base):
    """
    School (tenant) owning every fee structure, ledger record and receipt sequence.

    - tenant_id (id): Internal primary key. Used for all FKs and for scoping every query.
    - organization_code: Human-readable school code (e.g. SCH-A3K9). Embedded in receipt
      numbers; never used as a foreign key.
    """

    __tablename__ = "tenants"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_code = Column(String(20), unique=True, nullable=False, index=True)
    organization_name = Column(String(255), nullable=False)
    timezone = Column(String(100), nullable=False, default="Asia/Kolkata")
    status = Column(String(20), nullable=False, default="ACTIVE")
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    users = relationship("User", back_populates="tenant", cascade="all, delete-orphan")
