"""Printable receipt: one A4 page per receipt, more when the installment has a long payment history."""

from datetime import date, datetime
from io import BytesIO
from typing import Optional

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from app.api.v1.fee_reports.service import format_amount

from .schemas import ReceiptResponse

MARGIN = 18 * mm
LINE = 6 * mm


def _day(value: date) -> str:
    return f"{value.isoformat()} ({value:%A})"


class _ReceiptPage:
    """Top-down text cursor over a reportlab canvas."""

    def __init__(self, c: canvas.Canvas) -> None:
        self.c = c
        self.width, self.height = A4
        self.y = self.height - MARGIN

    def ensure_room(self, needed: float) -> None:
        if self.y - needed < MARGIN:
            self.c.showPage()
            self.y = self.height - MARGIN

    def text(self, value: str, size: float = 11, bold: bool = False, gap: float = LINE) -> None:
        self.ensure_room(gap)
        self.c.setFont("Helvetica-Bold" if bold else "Helvetica", size)
        self.c.drawString(MARGIN, self.y, value)
        self.y -= gap

    def heading(self, value: str) -> None:
        self.y -= 2 * mm
        self.ensure_room(2 * LINE)
        self.text(value, size=12, bold=True, gap=1.5 * mm)
        self.c.line(MARGIN, self.y, self.width - MARGIN, self.y)
        self.y -= LINE

    def signature_block(self) -> None:
        self.y -= 8 * mm
        self.ensure_room(40 * mm)
        line_y = self.y - 20 * mm
        self.c.line(MARGIN, line_y, MARGIN + 70 * mm, line_y)
        self.c.setFont("Helvetica", 10)
        self.c.drawString(MARGIN, line_y - 5 * mm, "Principal Signature")
        stamp_w, stamp_h = 55 * mm, 32 * mm
        stamp_x = self.width - MARGIN - stamp_w
        self.c.rect(stamp_x, line_y - 8 * mm, stamp_w, stamp_h)
        self.c.drawCentredString(stamp_x + stamp_w / 2, line_y + 6 * mm, "School Stamp")
        self.y = line_y - 16 * mm


def build_receipt_pdf(receipt: ReceiptResponse, currency: Optional[str] = None) -> bytes:
    """Receipt reprint: school header, payment, installment history, overall totals, signature and stamp."""
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    c.setTitle(f"Receipt {receipt.receipt_number}")
    page = _ReceiptPage(c)

    def amount(value: int) -> str:
        return format_amount(value, currency)

    page.text(receipt.school_name or receipt.school_code, size=18, bold=True, gap=8 * mm)
    page.text(f"Receipt: {receipt.receipt_number}", size=14, gap=10 * mm)

    page.text(f"Student: {receipt.student_name}")
    page.text(f"Class/Section: {receipt.student_class}/{receipt.student_section}")
    page.text(f"Academic Year: {receipt.academic_year}")
    if receipt.roll_number:
        page.text(f"Roll No: {receipt.roll_number}")
    page.text(f"Fee Structure: {receipt.fee_structure_name}")

    page.heading("Payment")
    page.text(f"Installment: {receipt.installment_name}")
    page.text(f"Paid on: {_day(receipt.payment_date)}")
    page.text(f"Amount: {amount(receipt.amount)}")
    page.text(f"Method: {receipt.payment_method.value}")
    page.text(f"Reference: {receipt.payment_reference or '-'}")

    page.heading("Installment Summary")
    page.text(f"Installment Total: {amount(receipt.installment_amount)}")
    page.text(f"Paid So Far: {amount(receipt.installment_paid_amount)}")
    page.text(f"Pending in Installment: {amount(receipt.installment_pending_amount)}")

    page.heading("Payments in this Installment")
    if not receipt.installment_payments:
        page.text("- No payments recorded for this installment", size=10)
    for p in receipt.installment_payments:
        page.text(
            f"- {_day(p.payment_date)} | {amount(p.amount)} | {p.payment_method.value}"
            f" | ref: {p.payment_reference or '-'} | receipt: {p.receipt_number}",
            size=10,
            gap=5 * mm,
        )

    page.heading("Overall Fees")
    page.text(f"Total Fees: {amount(receipt.total_amount)}")
    page.text(f"Total Paid: {amount(receipt.total_paid)}")
    page.text(f"Remaining Fees: {amount(receipt.total_pending)}")
    page.text(f"Status: {receipt.status.value}")

    page.signature_block()
    page.text(f"Generated on {datetime.now():%Y-%m-%d %H:%M}", size=9)

    c.save()
    pdf = buf.getvalue()
    buf.close()
    return pdf
