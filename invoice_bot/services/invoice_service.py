"""Invoice persistence and numbering."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from invoice_bot.database.models import Invoice, InvoiceLine, InvoiceSequence
from invoice_bot.schemas import InvoiceLineRecord, InvoiceRecord
from invoice_bot.services.base_service import BaseService
from invoice_bot.utils.formatters import round_money

logger = logging.getLogger(__name__)

RECENT_INVOICES_LIMIT = 10


def format_invoice_number(year: int, sequence: int) -> str:
    return f"{year}{sequence:03d}"


def parse_invoice_sequence(invoice_number: str, year: int) -> int | None:
    prefix = str(year)
    if not invoice_number.startswith(prefix):
        return None
    tail = invoice_number[len(prefix):]
    return int(tail) if tail.isdigit() else None


class InvoiceService(BaseService):
    """Invoice writes flush only; the caller owns the transaction."""

    def _max_existing_sequence(self, year: int) -> int:
        numbers = (
            self.db.query(Invoice.invoice_number)
            .filter(Invoice.invoice_number.like(f"{year}%"))
            .all()
        )
        sequences = [parse_invoice_sequence(number, year) for (number,) in numbers]
        return max((value for value in sequences if value is not None), default=0)

    def next_invoice_number(self, year: int) -> str:
        """Reserve the next ``{year}NNN`` number inside the current transaction."""
        sequence = (
            self.db.query(InvoiceSequence)
            .filter(InvoiceSequence.year == year)
            .with_for_update()
            .first()
        )
        if sequence is None:
            sequence = InvoiceSequence(year=year, last_value=self._max_existing_sequence(year))
            self.db.add(sequence)
        sequence.last_value += 1
        self.db.flush()
        return format_invoice_number(year, sequence.last_value)

    def create_invoice(
        self,
        *,
        user_id: int,
        client_id: int,
        invoice_number: str,
        issue_date: date,
        due_date: date,
        subtotal: Decimal,
        vat_total: Decimal,
        total_amount: Decimal,
    ) -> InvoiceRecord:
        invoice = Invoice(
            user_id=user_id,
            client_id=client_id,
            invoice_number=invoice_number,
            issue_date=issue_date,
            due_date=due_date,
            subtotal=round_money(subtotal),
            vat_total=round_money(vat_total),
            total_amount=round_money(total_amount),
            pdf_path="",
        )
        self.db.add(invoice)
        self.db.flush()
        return InvoiceRecord.model_validate(invoice)

    def create_invoice_line(
        self,
        *,
        invoice_id: int,
        description: str,
        quantity: Decimal,
        unit_price: Decimal,
        vat_rate: int,
        line_total: Decimal,
    ) -> InvoiceLineRecord:
        line = InvoiceLine(
            invoice_id=invoice_id,
            description=description,
            quantity=quantity,
            unit_price=unit_price,
            vat_rate=vat_rate,
            line_total=round_money(line_total),
        )
        self.db.add(line)
        self.db.flush()
        return InvoiceLineRecord.model_validate(line)

    def get_invoice(self, invoice_id: int, user_id: int) -> InvoiceRecord | None:
        invoice = (
            self.db.query(Invoice)
            .filter(Invoice.id == invoice_id, Invoice.user_id == user_id)
            .first()
        )
        return InvoiceRecord.model_validate(invoice) if invoice else None

    def find_by_number(self, invoice_number: str, user_id: int) -> InvoiceRecord | None:
        invoice = (
            self.db.query(Invoice)
            .filter(Invoice.invoice_number == invoice_number, Invoice.user_id == user_id)
            .first()
        )
        return InvoiceRecord.model_validate(invoice) if invoice else None

    def list_lines(self, invoice_id: int) -> list[InvoiceLineRecord]:
        lines = (
            self.db.query(InvoiceLine)
            .filter(InvoiceLine.invoice_id == invoice_id)
            .order_by(InvoiceLine.id)
            .all()
        )
        return [InvoiceLineRecord.model_validate(line) for line in lines]

    def list_recent(self, user_id: int, limit: int = RECENT_INVOICES_LIMIT) -> list[InvoiceRecord]:
        invoices = (
            self.db.query(Invoice)
            .filter(Invoice.user_id == user_id)
            .order_by(Invoice.created_at.desc(), Invoice.id.desc())
            .limit(limit)
            .all()
        )
        return [InvoiceRecord.model_validate(invoice) for invoice in invoices]

    def set_pdf_path(self, invoice_id: int, pdf_path: str) -> None:
        invoice = self.db.get(Invoice, invoice_id)
        if invoice is None:
            return
        invoice.pdf_path = pdf_path
        self.db.flush()
