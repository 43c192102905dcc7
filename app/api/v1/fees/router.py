"""Fees router: student fee records and offline payments."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import check_permission
from app.auth.schemas import CurrentUser
from app.core.enums import StudentFeeStatus
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import (
    OfflinePaymentCreate,
    PaymentReceipt,
    StudentFeeRecordDetail,
    StudentFeeRecordPage,
)
from . import service

router = APIRouter(prefix="/api/v1/fees", tags=["fees"])


# --- Student Fee Records ---
@router.get(
    "/records",
    response_model=StudentFeeRecordPage,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def list_student_fee_records(
    class_name: Optional[str] = Query(None, description='Class filter, "ALL" for every class'),
    section_name: Optional[str] = Query(None, description='Section filter, "ALL" for every section'),
    search: Optional[str] = Query(None, description="Student name, roll number or fee structure name"),
    status_filter: Optional[StudentFeeStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(service.DEFAULT_PAGE_SIZE, ge=1, le=service.MAX_PAGE_SIZE),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentFeeRecordPage:
    return await service.list_student_fee_records(
        db,
        current_user.tenant_id,
        class_name=class_name,
        section_name=section_name,
        search=search,
        status=status_filter,
        page=page,
        limit=limit,
    )


@router.get(
    "/records/{record_id}",
    response_model=StudentFeeRecordDetail,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_student_fee_record(
    record_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentFeeRecordDetail:
    try:
        return await service.get_student_fee_record(db, current_user.tenant_id, record_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


# --- Payment ---
@router.post(
    "/records/{record_id}/offline-payment",
    response_model=PaymentReceipt,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def record_offline_payment(
    record_id: UUID,
    payload: OfflinePaymentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PaymentReceipt:
    try:
        return await service.record_payment(
            db,
            current_user.tenant_id,
            record_id,
            payload,
            received_by=current_user.id,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
