"""Turns a paid draft into persisted invoice rows and a stored PDF."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Protocol, Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from invoice_bot.core.config import Config, get_config
from invoice_bot.core.exceptions import CollaboratorError, ComputationError, NotFoundError
from invoice_bot.schemas import InvoiceRecord
from invoice_bot.services.client_service import ClientService
from invoice_bot.services.document_storage import DocumentStorage, invoice_document_key
from invoice_bot.services.invoice_renderer import generate_invoice_pdf
from invoice_bot.services.invoice_service import InvoiceService
from invoice_bot.services.payment_gate import PaymentReceipt
from invoice_bot.services.payment_service import PaymentService
from invoice_bot.services.totals import compute_totals, line_total
from invoice_bot.services.user_service import UserService
from invoice_bot.utils.formatters import add_days

logger = logging.getLogger(__name__)

NUMBERING_ATTEMPTS = 3


class DraftLineLike(Protocol):
    description: str
    quantity: object
    unit_price: object
    vat_rate: int


@dataclass(frozen=True)
class RenderedInvoice:
    invoice: InvoiceRecord
    filename: str
    content: bytes
    storage_path: str


class InvoiceFinalizer:
    """Runs one finalize or regenerate inside a single database transaction.

    Any failure rolls the whole transaction back. Missing user/client data
    surfaces as ``NotFoundError``; everything else is wrapped in
    ``CollaboratorError``.
    """

    def __init__(
        self,
        db: Session,
        storage: DocumentStorage,
        config: Config | None = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        self.db = db
        self.storage = storage
        self.config = config or get_config()
        self.clock = clock
        self.users = UserService(db)
        self.clients = ClientService(db)
        self.invoices = InvoiceService(db)
        self.payments = PaymentService(db)

    def finalize(
        self,
        user_id: int,
        client_id: int,
        lines: Sequence[DraftLineLike],
        receipt: PaymentReceipt,
    ) -> RenderedInvoice:
        for attempt in range(1, NUMBERING_ATTEMPTS + 1):
            try:
                return self._guarded(lambda: self._finalize_once(user_id, client_id, lines, receipt))
            except CollaboratorError as exc:
                if not isinstance(exc.__cause__, IntegrityError) or attempt == NUMBERING_ATTEMPTS:
                    raise
                logger.warning(
                    "invoice.number.conflict",
                    extra={"event": "invoice.number.conflict", "user_id": user_id},
                )
        raise CollaboratorError("Invoice numbering failed")  # pragma: no cover

    def regenerate(self, user_id: int, invoice_id: int, receipt: PaymentReceipt) -> RenderedInvoice:
        return self._guarded(lambda: self._regenerate_once(user_id, invoice_id, receipt))

    def _guarded(self, operation: Callable[[], RenderedInvoice]) -> RenderedInvoice:
        try:
            result = operation()
            self.db.commit()
            return result
        except (NotFoundError, ComputationError, CollaboratorError):
            self.db.rollback()
            raise
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise CollaboratorError("Could not persist invoice") from exc
        except Exception as exc:
            self.db.rollback()
            raise CollaboratorError("Could not render invoice document") from exc

    def _load_parties(self, user_id: int, client_id: int):
        user = self.users.get_profile(user_id)
        if user is None:
            raise NotFoundError("User profile not found. Please run /setup first.")
        client = self.clients.get_client(client_id, user_id)
        if client is None:
            raise NotFoundError("Client not found.")
        return user, client

    def _store(self, invoice: InvoiceRecord, user, client, line_records) -> RenderedInvoice:
        content = generate_invoice_pdf(invoice, user, client, line_records, self.config.INVOICE_CURRENCY)
        key = invoice_document_key(invoice.invoice_number)
        storage_path = self.storage.save(key, content)
        self.invoices.set_pdf_path(invoice.id, storage_path)
        stored = invoice.model_copy(update={"pdf_path": storage_path})
        return RenderedInvoice(invoice=stored, filename=key, content=content, storage_path=storage_path)

    def _record_payment(self, user_id: int, invoice_id: int, receipt: PaymentReceipt) -> None:
        self.payments.create_payment(
            user_id=user_id,
            invoice_id=invoice_id,
            telegram_payment_charge_id=receipt.telegram_payment_charge_id,
            provider_payment_charge_id=receipt.provider_payment_charge_id,
            amount=receipt.total_amount,
            currency=receipt.currency,
            payload=receipt.payload,
            created_at=self.clock(),
        )

    def _finalize_once(
        self,
        user_id: int,
        client_id: int,
        lines: Sequence[DraftLineLike],
        receipt: PaymentReceipt,
    ) -> RenderedInvoice:
        user, client = self._load_parties(user_id, client_id)
        totals = compute_totals(lines)
        issue_date = self.clock().date()

        # Numbers are reserved only now, so cancelled drafts leave no gaps.
        invoice_number = self.invoices.next_invoice_number(issue_date.year)
        invoice = self.invoices.create_invoice(
            user_id=user_id,
            client_id=client.id,
            invoice_number=invoice_number,
            issue_date=issue_date,
            due_date=add_days(issue_date, self.config.PAYMENT_TERMS_DAYS),
            subtotal=totals.subtotal,
            vat_total=totals.vat_total,
            total_amount=totals.total,
        )
        line_records = [
            self.invoices.create_invoice_line(
                invoice_id=invoice.id,
                description=line.description,
                quantity=line.quantity,
                unit_price=line.unit_price,
                vat_rate=line.vat_rate,
                line_total=line_total(line.quantity, line.unit_price, line.vat_rate),
            )
            for line in lines
        ]
        self._record_payment(user_id, invoice.id, receipt)
        rendered = self._store(invoice, user, client, line_records)
        logger.info(
            "invoice.finalized",
            extra={"event": "invoice.finalized", "user_id": user_id, "invoice_number": invoice_number},
        )
        return rendered

    def _regenerate_once(self, user_id: int, invoice_id: int, receipt: PaymentReceipt) -> RenderedInvoice:
        invoice = self.invoices.get_invoice(invoice_id, user_id)
        if invoice is None:
            raise NotFoundError("Invoice not found or you don't have permission to access it.")
        user, client = self._load_parties(user_id, invoice.client_id)
        line_records = self.invoices.list_lines(invoice.id)
        self._record_payment(user_id, invoice.id, receipt)
        rendered = self._store(invoice, user, client, line_records)
        logger.info(
            "invoice.regenerated",
            extra={"event": "invoice.regenerated", "user_id": user_id, "invoice_number": invoice.invoice_number},
        )
        return rendered
