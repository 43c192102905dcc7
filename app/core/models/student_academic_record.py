import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import relationship

from app.core.enums import EnrollmentStatus
from app.db.session import Base


class StudentAcademicRecord(Base):
    """
    Student enrollment per academic year: the roster that fee structures are applied to.
    One record per (student, academic_year). Class and section are the school's display names
    ("10", "A"); fee structures match them by name, not by id.
    """

    __tablename__ = "student_academic_records"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    academic_year_id = Column(
        Uuid,
        ForeignKey("academic_years.id", ondelete="RESTRICT"),
        nullable=False,
    )
    class_name = Column(String(50), nullable=False)
    section_name = Column(String(50), nullable=False)
    roll_number = Column(String(50), nullable=True)
    status = Column(String(20), nullable=False, default=EnrollmentStatus.ACTIVE.value)  # ACTIVE | PROMOTED | LEFT
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    student = relationship("User", backref="academic_records")
    academic_year = relationship("AcademicYear", backref="student_records")
