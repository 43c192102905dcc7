"""Fee report schemas."""

from datetime import date
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel


class FeeStats(BaseModel):
    total_records: int
    total_billed: int
    total_collected: int
    total_outstanding: int
    collection_percentage: int
    paid_count: int
    partial_count: int
    pending_count: int
    overdue_count: int


class ClassFeeSummary(BaseModel):
    class_name: str
    section_name: str
    records: int
    billed: int
    collected: int
    outstanding: int
    paid_count: int
    partial_count: int
    pending_count: int


class OutstandingDueItem(BaseModel):
    record_id: UUID
    student_id: UUID
    student_name: str
    student_class: str
    student_section: str
    roll_number: Optional[str] = None
    academic_year: str
    fee_structure_name: str
    installment_name: str
    amount: int
    paid_amount: int
    pending_amount: int
    due_date: date
    is_overdue: bool
    overdue_days: int


class OutstandingDuesResponse(BaseModel):
    items: List[OutstandingDueItem]
    total_pending: int
