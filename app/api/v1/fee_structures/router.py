"""Fee structures router: create, list, apply to students, installment preview."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import check_permission
from app.auth.schemas import CurrentUser
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import (
    ApplyResult,
    FeeStructureCreate,
    FeeStructureCreateResponse,
    FeeStructureResponse,
    FeeStructureSummary,
    InstallmentGenerateRequest,
    InstallmentGenerateResponse,
)
from . import service

router = APIRouter(prefix="/api/v1/fee-structures", tags=["fee-structures"])


@router.post(
    "/installments/preview",
    response_model=InstallmentGenerateResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def preview_installments(
    payload: InstallmentGenerateRequest,
) -> InstallmentGenerateResponse:
    try:
        return service.preview_installments(payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.post(
    "",
    response_model=FeeStructureCreateResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def create_fee_structure(
    payload: FeeStructureCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeStructureCreateResponse:
    try:
        return await service.create_fee_structure(
            db, current_user.tenant_id, payload, created_by=current_user.id
        )
    except ServiceError as e:
        await db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get(
    "",
    response_model=List[FeeStructureSummary],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def list_fee_structures(
    class_name: Optional[str] = Query(None, description='Class filter, "ALL" for every class'),
    section_name: Optional[str] = Query(None, description='Section filter, "ALL" for every section'),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[FeeStructureSummary]:
    return await service.list_fee_structures(
        db,
        current_user.tenant_id,
        class_name=class_name,
        section_name=section_name,
    )


@router.get(
    "/{fee_structure_id}",
    response_model=FeeStructureResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_fee_structure(
    fee_structure_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeStructureResponse:
    try:
        return await service.get_fee_structure(db, current_user.tenant_id, fee_structure_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.post(
    "/{fee_structure_id}/apply",
    response_model=ApplyResult,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def apply_fee_structure(
    fee_structure_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ApplyResult:
    try:
        return await service.apply_fee_structure(
            db, current_user.tenant_id, fee_structure_id, changed_by=current_user.id
        )
    except ServiceError as e:
        await db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.detail)
