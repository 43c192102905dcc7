"""Fee reports router: stats, class summaries, outstanding dues and their Excel export."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import check_permission
from app.auth.schemas import CurrentUser
from app.db.session import get_db

from .schemas import ClassFeeSummary, FeeStats, OutstandingDuesResponse
from . import service

router = APIRouter(prefix="/api/v1/fee-reports", tags=["fee-reports"])


@router.get(
    "/stats",
    response_model=FeeStats,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_fee_stats(
    academic_year: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeStats:
    return await service.get_fee_stats(db, current_user.tenant_id, academic_year)


@router.get(
    "/classes",
    response_model=List[ClassFeeSummary],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_class_summaries(
    academic_year: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[ClassFeeSummary]:
    return await service.get_class_summaries(db, current_user.tenant_id, academic_year)


@router.get(
    "/outstanding",
    response_model=OutstandingDuesResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_outstanding_dues(
    class_name: Optional[str] = Query(None),
    section_name: Optional[str] = Query(None),
    overdue_only: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> OutstandingDuesResponse:
    return await service.get_outstanding_dues(
        db, current_user.tenant_id, class_name, section_name, overdue_only
    )


@router.get(
    "/outstanding/export",
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def export_outstanding_dues(
    class_name: Optional[str] = Query(None),
    section_name: Optional[str] = Query(None),
    overdue_only: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> Response:
    """Download outstanding dues as an Excel sheet."""
    dues = await service.get_outstanding_dues(
        db, current_user.tenant_id, class_name, section_name, overdue_only
    )
    return Response(
        content=service.build_outstanding_dues_workbook(dues),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": "attachment; filename=outstanding_dues.xlsx"},
    )
