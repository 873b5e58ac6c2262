"""
Invoice PDF renderer.

Rendering happens in two steps: ``layout_invoice`` computes every text item
and rule with absolute page coordinates (origin bottom-left, A4), and
``render_layout`` draws that layout with a ReportLab canvas. Right-aligned
values are placed by measuring the string width and subtracting it from the
right edge of a fixed-width field.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from io import BytesIO
from typing import Sequence

from reportlab.lib.pagesizes import A4
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from invoice_bot.schemas import ClientRecord, InvoiceLineRecord, InvoiceRecord, UserProfile
from invoice_bot.services.totals import compute_totals, net_amount
from invoice_bot.utils.formatters import format_address, format_amount, format_date, format_quantity

logger = logging.getLogger(__name__)

PAGE_WIDTH, PAGE_HEIGHT = A4
TOP = PAGE_HEIGHT - 50
BOTTOM = 80
LEFT = 50
RIGHT = PAGE_WIDTH - 50
LINE_THICKNESS = 0.75
DEFAULT_FIELD_WIDTH = 60
MEDIUM_FIELD_WIDTH = 100
LARGE_FIELD_WIDTH = 180
ROW_HEIGHT = 20

FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"

# Table geometry: header titles sit 5pt above the header rule, rows start 15pt below it.
FIRST_TABLE_TOP = TOP - 225
CONTINUATION_TABLE_TOP = TOP - 25
LOWEST_CONTENT_Y = BOTTOM + 20
# Totals rows after the bottom rule: blank, subtotal, VAT rows..., total, 2 blank, notice.
TOTALS_EXTRA_ROWS = 6

PENALTY_TEXT = "0.05% per day"
PAYMENT_REFERENCE_NOTICE = "PLEASE PROVIDE INVOICE NUMBER IN PAYMENT DETAILS"


@dataclass(frozen=True)
class TextItem:
    page: int
    block: str
    text: str
    x: float
    y: float
    font: str = FONT
    size: float = 12


@dataclass(frozen=True)
class RuleItem:
    page: int
    x1: float
    y1: float
    x2: float
    y2: float
    thickness: float = LINE_THICKNESS


@dataclass
class InvoiceLayout:
    page_count: int = 1
    texts: list[TextItem] = field(default_factory=list)
    rules: list[RuleItem] = field(default_factory=list)

    def block(self, name: str) -> list[TextItem]:
        return [item for item in self.texts if item.block == name]

    def text(self, page: int, block: str, text: str, x: float, y: float, font: str = FONT, size: float = 12) -> None:
        self.texts.append(TextItem(page=page, block=block, text=text, x=x, y=y, font=font, size=size))

    def rule(self, page: int, y: float) -> None:
        self.rules.append(RuleItem(page=page, x1=LEFT, y1=y, x2=RIGHT, y2=y))


def align_right(x: float, text: str, field_width: float, font: str, size: float = 12) -> float:
    """X position that makes ``text`` end exactly at ``x + field_width``."""
    return x + field_width - stringWidth(text, font, size)


def _paginate(line_count: int, vat_rows: int) -> list[int]:
    """Number of table rows per page; the last page also carries the totals."""
    chunks: list[int] = []
    remaining = line_count
    table_top = FIRST_TABLE_TOP
    while True:
        fits_with_totals = max(0, math.floor((table_top - LOWEST_CONTENT_Y) / ROW_HEIGHT) - TOTALS_EXTRA_ROWS - vat_rows)
        if remaining <= fits_with_totals:
            chunks.append(remaining)
            return chunks
        capacity = math.floor((table_top - 15 - LOWEST_CONTENT_Y) / ROW_HEIGHT) + 1
        taken = min(capacity, remaining)
        chunks.append(taken)
        remaining -= taken
        table_top = CONTINUATION_TABLE_TOP


def _layout_header(layout: InvoiceLayout, invoice: InvoiceRecord, user: UserProfile, client: ClientRecord) -> None:
    layout.text(0, "header", user.company_name or "", LEFT, TOP, FONT_BOLD, 24)

    y = TOP - 30
    layout.text(0, "client_heading", "Client:", LEFT, y, FONT, 10)
    y -= 15
    layout.text(0, "client", client.name or "", LEFT, y, FONT_BOLD, 10)
    optional_fields = (
        client.address_line1,
        client.address_line2,
        client.country,
        f"Reg number: {client.reg_number}" if client.reg_number else None,
        f"VAT number: {client.vat_number}" if client.vat_number else None,
    )
    for value in optional_fields:
        if value:
            y -= 15
            layout.text(0, "client", value, LEFT, y, FONT, 10)

    label_x = RIGHT - 2 * MEDIUM_FIELD_WIDTH
    value_x = label_x + MEDIUM_FIELD_WIDTH
    terms_days = (invoice.due_date - invoice.issue_date).days
    metadata = (
        ("Invoice nr:", invoice.invoice_number, FONT_BOLD, 14),
        ("Date:", format_date(invoice.issue_date), FONT, 12),
        ("Terms:", f"{terms_days} days", FONT, 12),
        ("Due date:", format_date(invoice.due_date), FONT_BOLD, 12),
        ("Penalty:", PENALTY_TEXT, FONT, 12),
    )
    y = TOP - 30
    for index, (label, value, font, size) in enumerate(metadata):
        if index:
            y -= 20
        layout.text(0, "metadata", label, label_x, y, font, size)
        layout.text(0, "metadata", value, align_right(value_x, value, MEDIUM_FIELD_WIDTH, font, size), y, font, size)

    y -= 30
    layout.text(0, "bank", user.bank_name or "", label_x, y, FONT_BOLD, 12)
    y -= 15
    layout.text(0, "bank", f"IBAN: {user.iban or ''}", label_x, y, FONT, 12)
    y -= 15
    layout.text(0, "bank", f"SWIFT: {user.swift or ''}", label_x, y, FONT, 12)


def _layout_table_header(layout: InvoiceLayout, page: int, table_top: float) -> None:
    y = table_top + 5
    layout.text(page, "table_header", "Description", LEFT, y, FONT_BOLD, 12)
    x = RIGHT - 4 * DEFAULT_FIELD_WIDTH
    for title in ("Price", "Quantity", "VAT", "Total"):
        layout.text(page, "table_header", title, align_right(x, title, DEFAULT_FIELD_WIDTH, FONT_BOLD), y, FONT_BOLD, 12)
        x += DEFAULT_FIELD_WIDTH
    layout.rule(page, table_top)


def _layout_row(layout: InvoiceLayout, page: int, y: float, line: InvoiceLineRecord) -> None:
    layout.text(page, "lines", line.description, LEFT, y)
    x = RIGHT - 4 * DEFAULT_FIELD_WIDTH
    cells = (
        format_amount(line.unit_price),
        format_quantity(line.quantity),
        f"{line.vat_rate}%",
        format_amount(net_amount(line.quantity, line.unit_price)),
    )
    for cell in cells:
        layout.text(page, "lines", cell, align_right(x, cell, DEFAULT_FIELD_WIDTH, FONT), y)
        x += DEFAULT_FIELD_WIDTH


def _layout_totals(
    layout: InvoiceLayout,
    page: int,
    table_bottom: float,
    invoice: InvoiceRecord,
    lines: Sequence[InvoiceLineRecord],
    currency: str,
) -> None:
    totals = compute_totals(lines)
    label_x = RIGHT - DEFAULT_FIELD_WIDTH - LARGE_FIELD_WIDTH
    value_x = label_x + LARGE_FIELD_WIDTH

    def row(offset: int, label: str, value: str, font: str = FONT, size: float = 12) -> None:
        y = table_bottom - offset * ROW_HEIGHT
        layout.text(page, "totals", label, align_right(label_x, label, LARGE_FIELD_WIDTH, font, size), y, font, size)
        layout.text(page, "totals", value, align_right(value_x, value, DEFAULT_FIELD_WIDTH, font, size), y, font, size)

    row(2, "Subtotal without VAT", format_amount(totals.subtotal))
    for index, entry in enumerate(totals.vat_by_rate):
        row(3 + index, f"Value added tax {entry.rate}%", format_amount(entry.vat_amount))
    vat_rows = len(totals.vat_by_rate)
    row(3 + vat_rows, f"Total to pay ({currency})", format_amount(invoice.total_amount), FONT_BOLD, 14)

    notice_y = table_bottom - (3 + vat_rows + 3) * ROW_HEIGHT
    layout.text(page, "notice", PAYMENT_REFERENCE_NOTICE, LEFT, notice_y, FONT, 10)


def _layout_footer(layout: InvoiceLayout, page: int, user: UserProfile) -> None:
    layout.rule(page, BOTTOM)

    y = BOTTOM - 12
    issuer = (
        user.company_name or "",
        format_address(user.address, user.city, user.zip_code),
        f"Reg number: {user.reg_number or ''}",
        f"VAT number: {user.vat_number or ''}",
    )
    for value in issuer:
        layout.text(page, "footer_issuer", value, LEFT, y, FONT, 10)
        y -= 12

    x = RIGHT - LARGE_FIELD_WIDTH
    y = BOTTOM - 12
    for value in (f"E-mail: {user.email or ''}", f"Phone: {user.phone or ''}"):
        layout.text(page, "footer_contact", value, align_right(x, value, LARGE_FIELD_WIDTH, FONT, 10), y, FONT, 10)
        y -= 12


def layout_invoice(
    invoice: InvoiceRecord,
    user: UserProfile,
    client: ClientRecord,
    lines: Sequence[InvoiceLineRecord],
    currency: str = "EUR",
) -> InvoiceLayout:
    """Compute the fixed layout of an invoice document."""
    layout = InvoiceLayout()
    vat_rows = len({line.vat_rate for line in lines})
    chunks = _paginate(len(lines), vat_rows)
    layout.page_count = len(chunks)
    if len(chunks) > 1:
        logger.info(
            "invoice.render.paginated",
            extra={"event": "invoice.render.paginated", "invoice_number": invoice.invoice_number},
        )

    _layout_header(layout, invoice, user, client)

    start = 0
    table_top = FIRST_TABLE_TOP
    for page, count in enumerate(chunks):
        if page:
            table_top = CONTINUATION_TABLE_TOP
        _layout_table_header(layout, page, table_top)
        for index, line in enumerate(lines[start : start + count]):
            _layout_row(layout, page, table_top - 15 - index * ROW_HEIGHT, line)
        start += count
        table_bottom = table_top - count * ROW_HEIGHT
        layout.rule(page, table_bottom)
        if page == len(chunks) - 1:
            _layout_totals(layout, page, table_bottom, invoice, lines, currency)
        _layout_footer(layout, page, user)
    return layout


def render_layout(layout: InvoiceLayout, title: str = "") -> bytes:
    """Draw a computed layout into PDF bytes."""
    buffer = BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=A4)
    if title:
        pdf.setTitle(title)
    for page in range(layout.page_count):
        for item in layout.texts:
            if item.page == page:
                pdf.setFont(item.font, item.size)
                pdf.drawString(item.x, item.y, item.text)
        for rule in layout.rules:
            if rule.page == page:
                pdf.setLineWidth(rule.thickness)
                pdf.line(rule.x1, rule.y1, rule.x2, rule.y2)
        pdf.showPage()
    pdf.save()
    return buffer.getvalue()


def generate_invoice_pdf(
    invoice: InvoiceRecord,
    user: UserProfile,
    client: ClientRecord,
    lines: Sequence[InvoiceLineRecord],
    currency: str = "EUR",
) -> bytes:
    layout = layout_invoice(invoice, user, client, lines, currency)
    return render_layout(layout, title=f"Invoice {invoice.invoice_number}")
