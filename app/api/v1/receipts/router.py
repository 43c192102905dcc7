"""Receipts router: reprint a payment receipt by number, as JSON or PDF."""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import check_permission
from app.auth.schemas import CurrentUser
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .pdf import build_receipt_pdf
from .schemas import ReceiptResponse
from . import service

router = APIRouter(prefix="/api/v1/receipts", tags=["receipts"])


@router.get(
    "/{receipt_number}",
    response_model=ReceiptResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_receipt(
    receipt_number: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ReceiptResponse:
    try:
        return await service.lookup_receipt(db, current_user.tenant_id, receipt_number)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get(
    "/{receipt_number}/pdf",
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def download_receipt_pdf(
    receipt_number: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> Response:
    """Download a printable receipt."""
    try:
        receipt = await service.lookup_receipt(db, current_user.tenant_id, receipt_number)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return Response(
        content=build_receipt_pdf(receipt),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{receipt.receipt_number}.pdf"'},
    )
