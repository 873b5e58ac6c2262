"""
Event dispatcher between the chat transport and the conversation flows.

Every inbound event (command, text, callback, pre-checkout, payment) is
handled under the user's lock with its own database session and answered
with a list of outbound items for the transport to deliver. Exceptions
never escape a handler: they are logged and answered with a generic notice.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from invoice_bot.conversation import client_flow, invoice_flow, product_flow, setup_flow, views
from invoice_bot.conversation.state import (
    AddMoreRequested,
    CancelRequested,
    ClientPicked,
    ClientState,
    ConversationState,
    CreateClient,
    CreateProduct,
    CustomItemRequested,
    Event,
    InvoiceContext,
    InvoiceState,
    InvoiceStep,
    NewClientRequested,
    PayRequested,
    ProductPicked,
    ProductState,
    Reply,
    RequestPayment,
    ReviewRequested,
    SaveProfile,
    SetupState,
    TextEntered,
    Transition,
    UpdateClient,
    UpdateProduct,
)
from invoice_bot.conversation.store import ConversationStore
from invoice_bot.core.config import Config, get_config
from invoice_bot.core.enums import PaymentPurpose
from invoice_bot.core.exceptions import CollaboratorError, NotFoundError, ValidationError
from invoice_bot.services import payment_gate
from invoice_bot.services.client_service import ClientService
from invoice_bot.services.document_storage import DocumentStorage
from invoice_bot.services.invoice_finalizer import InvoiceFinalizer, RenderedInvoice
from invoice_bot.services.invoice_service import InvoiceService
from invoice_bot.services.payment_gate import PaymentReceipt
from invoice_bot.services.payment_service import PaymentService
from invoice_bot.services.product_service import ProductService
from invoice_bot.services.user_service import UserService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentInvoice:
    title: str
    description: str
    payload: str
    currency: str
    amount: int
    label: str = payment_gate.PRICE_LABEL


@dataclass(frozen=True)
class Document:
    filename: str
    content: bytes
    caption: str


@dataclass(frozen=True)
class StarRefund:
    """Ask the transport to refund a Stars charge, then call ``complete_refund``."""

    charge_id: str


@dataclass(frozen=True)
class PreCheckoutDecision:
    ok: bool
    error_message: str | None = None


Outbound = Union[Reply, PaymentInvoice, Document, StarRefund]

INVOICE_EVENTS: dict[str, Callable[[], Event]] = {
    views.INV_NEW_CLIENT: NewClientRequested,
    views.INV_CUSTOM: CustomItemRequested,
    views.INV_REVIEW: ReviewRequested,
    views.INV_MORE: AddMoreRequested,
    views.INV_PAY: PayRequested,
    views.INV_CANCEL: CancelRequested,
}


def _trailing_id(token: str, prefix: str) -> int | None:
    tail = token[len(prefix):]
    return int(tail) if tail.isdigit() else None


class ConversationDispatcher:
    def __init__(
        self,
        session_factory: sessionmaker,
        store: ConversationStore,
        storage: DocumentStorage,
        config: Config | None = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        self.session_factory = session_factory
        self.store = store
        self.storage = storage
        self.config = config or get_config()
        self.clock = clock

    # Entry points

    def handle_command(self, user_id: int, command: str, args: str = "") -> list[Outbound]:
        return self._safely(user_id, "command", lambda db: self._on_command(db, user_id, command, args.strip()))

    def handle_user_message(self, user_id: int, text: str) -> list[Outbound]:
        return self._safely(user_id, "message", lambda db: self._on_message(db, user_id, text))

    def handle_callback(self, user_id: int, token: str) -> list[Outbound]:
        return self._safely(user_id, "callback", lambda db: self._on_callback(db, user_id, token))

    def handle_pre_checkout(self, user_id: int, payload: str, total_amount: int, currency: str) -> PreCheckoutDecision:
        with self.store.locked(user_id):
            try:
                with self.session_factory() as db:
                    decision = self._pre_checkout(db, user_id, payload, total_amount, currency)
            except Exception:
                logger.exception("payment.precheckout.failed", extra={"event": "payment.precheckout.failed", "user_id": user_id})
                decision = PreCheckoutDecision(False, "Payment is temporarily unavailable. Please try again.")
        if not decision.ok:
            logger.info(
                "payment.precheckout.rejected",
                extra={"event": "payment.precheckout.rejected", "user_id": user_id},
            )
        return decision

    def handle_successful_payment(self, user_id: int, receipt: PaymentReceipt) -> list[Outbound]:
        logger.info("payment.received", extra={"event": "payment.received", "user_id": user_id})
        return self._safely(user_id, "payment", lambda db: self._on_payment(db, user_id, receipt))

    def complete_refund(self, user_id: int, charge_id: str) -> list[Outbound]:
        def run(db: Session) -> list[Outbound]:
            payment = PaymentService(db).mark_refunded(charge_id, refunded_at=self.clock())
            if payment is None:
                return [Reply("❌ Payment not found or you don't have permission to refund it.")]
            return [Reply(views.refund_done_text(payment))]

        return self._safely(user_id, "refund", run)

    # Plumbing

    def _safely(self, user_id: int, kind: str, handler: Callable[[Session], list[Outbound]]) -> list[Outbound]:
        with self.store.locked(user_id):
            try:
                with self.session_factory() as db:
                    return handler(db)
            except Exception:
                logger.exception(
                    "conversation.event.failed",
                    extra={"event": "conversation.event.failed", "user_id": user_id, "step": kind},
                )
                return [Reply(views.GENERIC_FAILURE)]

    def _invoice_context(self, db: Session, user_id: int) -> InvoiceContext:
        return InvoiceContext(
            user_id=user_id,
            clients=ClientService(db).list_clients(user_id),
            products=ProductService(db).list_products(user_id),
            now=self.clock(),
            payment_timeout=timedelta(minutes=self.config.PAYMENT_TIMEOUT_MINUTES),
            stars_price=self.config.TELEGRAM_STARS_PRICE,
            currency=self.config.INVOICE_CURRENCY,
        )

    def _set_state(self, user_id: int, state: ConversationState | None) -> None:
        if state is None:
            self.store.clear(user_id)
            return
        self.store.set(user_id, state)
        logger.debug(
            "conversation.state",
            extra={"event": "conversation.state", "user_id": user_id, "step": state.step.value},
        )

    def _apply(self, db: Session, user_id: int, result: Transition) -> list[Outbound]:
        """Carry out the effects of a transition, then store its state."""
        outbound: list[Outbound] = []
        follow_up: Transition | None = None
        for effect in result.effects:
            if isinstance(effect, Reply):
                outbound.append(effect)
            elif isinstance(effect, RequestPayment):
                outbound.append(
                    PaymentInvoice(
                        title=effect.title,
                        description=effect.description,
                        payload=effect.reference,
                        currency=self.config.PAYMENT_CURRENCY,
                        amount=effect.amount,
                    )
                )
            elif isinstance(effect, SaveProfile):
                UserService(db).save_profile(user_id, effect.fields)
                outbound.append(Reply(views.SETUP_COMPLETED))
            elif isinstance(effect, CreateClient):
                client = ClientService(db).create_client(user_id, effect.fields)
                if effect.resume_invoice is not None:
                    follow_up = invoice_flow.resume_with_client(
                        effect.resume_invoice, client, self._invoice_context(db, user_id)
                    )
                else:
                    outbound.append(Reply("✅ Client added successfully!"))
            elif isinstance(effect, UpdateClient):
                updated = ClientService(db).update_client(effect.client_id, user_id, effect.fields)
                outbound.append(Reply("✅ Client updated successfully!" if updated else "❌ Client not found."))
            elif isinstance(effect, CreateProduct):
                ProductService(db).create_product(user_id, effect.fields)
                outbound.append(Reply("✅ Product added successfully!"))
            elif isinstance(effect, UpdateProduct):
                updated = ProductService(db).update_product(effect.product_id, user_id, effect.fields)
                outbound.append(Reply("✅ Product updated successfully!" if updated else "❌ Product not found."))

        if follow_up is not None:
            return outbound + self._apply(db, user_id, follow_up)
        self._set_state(user_id, result.state)
        return outbound

    def _route(self, db: Session, user_id: int, state: ConversationState, event: Event) -> Transition:
        if isinstance(state, InvoiceState):
            return invoice_flow.transition(state, event, self._invoice_context(db, user_id))
        if isinstance(state, SetupState):
            return setup_flow.transition(state, event)
        if isinstance(state, ClientState):
            return client_flow.transition(state, event)
        if isinstance(state, ProductState):
            return product_flow.transition(state, event)
        raise TypeError(f"Unknown conversation state {type(state).__name__}")

    # Commands

    def _on_command(self, db: Session, user_id: int, command: str, args: str) -> list[Outbound]:
        users = UserService(db)
        clients = ClientService(db)
        products = ProductService(db)
        currency = self.config.INVOICE_CURRENCY

        if command == "start":
            profile, _ = users.ensure_user(user_id)
            return [Reply(views.welcome_text(profile))]
        if command == "help":
            return [Reply(views.HELP_TEXT)]
        if command == "cancel":
            self.store.clear(user_id)
            return [Reply(views.OPERATION_CANCELLED)]
        if command == "setup":
            users.ensure_user(user_id)
            return self._apply(db, user_id, setup_flow.start())
        if command == "profile":
            return [Reply(views.profile_text(users.get_profile(user_id)))]
        if command == "clients":
            return [views.clients_list_reply(clients.list_clients(user_id))]
        if command == "addclient":
            users.ensure_user(user_id)
            return self._apply(db, user_id, client_flow.start_add())
        if command == "editclient":
            return [views.client_picker_reply(clients.list_clients(user_id), "✏️ Select client to edit:", views.CLIENT_EDIT)]
        if command == "deleteclient":
            return [
                views.client_picker_reply(clients.list_clients(user_id), "🗑️ Select client to delete:", views.CLIENT_DELETE)
            ]
        if command == "products":
            return [views.products_list_reply(products.list_products(user_id), currency)]
        if command == "addproduct":
            users.ensure_user(user_id)
            return self._apply(db, user_id, product_flow.start_add())
        if command == "editproduct":
            return [
                views.product_picker_reply(products.list_products(user_id), "✏️ Select product to edit:", views.PRODUCT_EDIT)
            ]
        if command == "deleteproduct":
            return [
                views.product_picker_reply(
                    products.list_products(user_id), "🗑️ Select product to delete:", views.PRODUCT_DELETE
                )
            ]
        if command == "newinvoice":
            profile = users.get_profile(user_id)
            if profile is None or not profile.is_configured:
                return [Reply(views.SETUP_REQUIRED)]
            return self._apply(db, user_id, invoice_flow.start(self._invoice_context(db, user_id)))
        if command == "invoices":
            return [Reply(self._invoices_text(db, user_id))]
        if command == "invoice":
            return self._show_archived(db, user_id, args)
        if command == "paysupport":
            return [Reply(views.paysupport_text(self.config.REFUND_WINDOW_HOURS))]
        if command == "refund":
            return self._prepare_refund(db, user_id, args)
        return [Reply(views.NO_ACTIVE_FLOW)]

    def _invoices_text(self, db: Session, user_id: int) -> str:
        invoices = InvoiceService(db).list_recent(user_id)
        names = {client.id: client.name for client in ClientService(db).list_clients(user_id)}
        return views.invoices_list_text(invoices, names, self.config.INVOICE_CURRENCY)

    def _show_archived(self, db: Session, user_id: int, invoice_number: str) -> list[Outbound]:
        if not invoice_number:
            return [Reply("Usage: /invoice [number]")]
        invoice = InvoiceService(db).find_by_number(invoice_number, user_id)
        if invoice is None:
            return [Reply("❌ Invoice not found or you don't have permission to access it.")]
        return [views.invoice_found_reply(invoice, self.config.TELEGRAM_STARS_PRICE, self.config.INVOICE_CURRENCY)]

    def _prepare_refund(self, db: Session, user_id: int, charge_id: str) -> list[Outbound]:
        if not charge_id:
            return [Reply("Usage: /refund [payment_id]")]
        payment = PaymentService(db).find_by_charge_id(charge_id)
        try:
            payment_gate.check_refund(payment, user_id, self.clock(), self.config.REFUND_WINDOW_HOURS)
        except ValidationError as exc:
            return [Reply(f"❌ {exc}")]
        return [StarRefund(charge_id=charge_id)]

    # Text and callbacks

    def _on_message(self, db: Session, user_id: int, text: str) -> list[Outbound]:
        state = self.store.get(user_id)
        if state is None:
            return [Reply(views.NO_ACTIVE_FLOW)]
        return self._apply(db, user_id, self._route(db, user_id, state, TextEntered(text)))

    def _on_callback(self, db: Session, user_id: int, token: str) -> list[Outbound]:
        if token.startswith("inv:"):
            return self._on_invoice_callback(db, user_id, token)
        if token.startswith(views.ARCHIVE_PAY):
            return self._request_regeneration(db, user_id, _trailing_id(token, views.ARCHIVE_PAY))
        if token.startswith(("client:", "clients:")):
            return self._on_client_callback(db, user_id, token)
        if token.startswith(("product:", "products:")):
            return self._on_product_callback(db, user_id, token)
        return [Reply(views.UNKNOWN_ACTION)]

    def _on_invoice_callback(self, db: Session, user_id: int, token: str) -> list[Outbound]:
        event: Event | None
        if token.startswith(views.INV_CLIENT):
            client_id = _trailing_id(token, views.INV_CLIENT)
            event = ClientPicked(client_id) if client_id is not None else None
        elif token.startswith(views.INV_PRODUCT):
            product_id = _trailing_id(token, views.INV_PRODUCT)
            event = ProductPicked(product_id) if product_id is not None else None
        else:
            factory = INVOICE_EVENTS.get(token)
            event = factory() if factory else None
        if event is None:
            return [Reply(views.UNKNOWN_ACTION)]

        state = self.store.get(user_id)
        if not isinstance(state, InvoiceState):
            return [Reply(views.SESSION_EXPIRED)]
        return self._apply(db, user_id, invoice_flow.transition(state, event, self._invoice_context(db, user_id)))

    def _on_client_callback(self, db: Session, user_id: int, token: str) -> list[Outbound]:
        service = ClientService(db)
        if token == views.CLIENTS_LIST:
            return [views.clients_list_reply(service.list_clients(user_id))]
        if token == views.CLIENT_ADD:
            UserService(db).ensure_user(user_id)
            return self._apply(db, user_id, client_flow.start_add())

        for prefix in (views.CLIENT_VIEW, views.CLIENT_EDIT, views.CLIENT_CONFIRM_DELETE, views.CLIENT_DELETE):
            if token.startswith(prefix):
                client_id = _trailing_id(token, prefix)
                break
        else:
            return [Reply(views.UNKNOWN_ACTION)]

        client = service.get_client(client_id, user_id) if client_id is not None else None
        if client is None:
            return [Reply("❌ Client not found.")]
        if prefix == views.CLIENT_VIEW:
            return [views.client_info_reply(client)]
        if prefix == views.CLIENT_EDIT:
            return self._apply(db, user_id, client_flow.start_edit(client))
        if prefix == views.CLIENT_DELETE:
            return [views.confirm_delete_reply(client.name, f"{views.CLIENT_CONFIRM_DELETE}{client.id}", views.CLIENTS_LIST)]
        if not service.delete_client(client.id, user_id):
            return [Reply("❌ This client is used on invoices and cannot be deleted.")]
        return [Reply("✅ Client deleted successfully!")]

    def _on_product_callback(self, db: Session, user_id: int, token: str) -> list[Outbound]:
        service = ProductService(db)
        currency = self.config.INVOICE_CURRENCY
        if token == views.PRODUCTS_LIST:
            return [views.products_list_reply(service.list_products(user_id), currency)]
        if token == views.PRODUCT_ADD:
            UserService(db).ensure_user(user_id)
            return self._apply(db, user_id, product_flow.start_add())

        for prefix in (views.PRODUCT_VIEW, views.PRODUCT_EDIT, views.PRODUCT_CONFIRM_DELETE, views.PRODUCT_DELETE):
            if token.startswith(prefix):
                product_id = _trailing_id(token, prefix)
                break
        else:
            return [Reply(views.UNKNOWN_ACTION)]

        product = service.get_product(product_id, user_id) if product_id is not None else None
        if product is None:
            return [Reply("❌ Product not found.")]
        if prefix == views.PRODUCT_VIEW:
            return [views.product_info_reply(product, currency)]
        if prefix == views.PRODUCT_EDIT:
            return self._apply(db, user_id, product_flow.start_edit(product))
        if prefix == views.PRODUCT_DELETE:
            return [
                views.confirm_delete_reply(product.name, f"{views.PRODUCT_CONFIRM_DELETE}{product.id}", views.PRODUCTS_LIST)
            ]
        service.delete_product(product.id, user_id)
        return [Reply("✅ Product deleted successfully!")]

    # Payments

    def _request_regeneration(self, db: Session, user_id: int, invoice_id: int | None) -> list[Outbound]:
        invoice = InvoiceService(db).get_invoice(invoice_id, user_id) if invoice_id is not None else None
        if invoice is None:
            return [Reply("❌ Invoice not found or you don't have permission to access it.")]
        reference = payment_gate.build_reference(PaymentPurpose.REGENERATE, invoice.id, self.clock())
        return [
            PaymentInvoice(
                title=payment_gate.REGENERATE_TITLE,
                description=f"Regenerate invoice {invoice.invoice_number} PDF",
                payload=reference,
                currency=self.config.PAYMENT_CURRENCY,
                amount=self.config.TELEGRAM_STARS_PRICE,
            )
        ]

    def _pre_checkout(
        self, db: Session, user_id: int, payload: str, total_amount: int, currency: str
    ) -> PreCheckoutDecision:
        try:
            reference = payment_gate.parse_reference(payload)
        except ValidationError as exc:
            return PreCheckoutDecision(False, str(exc))
        if total_amount != self.config.TELEGRAM_STARS_PRICE or currency != self.config.PAYMENT_CURRENCY:
            return PreCheckoutDecision(False, "Invalid invoice data")

        if reference.purpose is PaymentPurpose.REGENERATE:
            if InvoiceService(db).get_invoice(reference.subject_id, user_id) is None:
                return PreCheckoutDecision(False, "Invoice not found")
            return PreCheckoutDecision(True)

        state = self.store.get(user_id)
        if (
            reference.subject_id != user_id
            or not isinstance(state, InvoiceState)
            or state.step is not InvoiceStep.AWAITING_PAYMENT
            or state.draft.payment_reference != payload
        ):
            return PreCheckoutDecision(False, "This invoice is no longer awaiting payment. Please review it and pay again.")
        timeout = timedelta(minutes=self.config.PAYMENT_TIMEOUT_MINUTES)
        if payment_gate.is_expired(state.draft.payment_requested_at, self.clock(), timeout):
            return PreCheckoutDecision(False, "This payment request has expired. Please review your invoice and pay again.")
        return PreCheckoutDecision(True)

    def _on_payment(self, db: Session, user_id: int, receipt: PaymentReceipt) -> list[Outbound]:
        try:
            reference = payment_gate.parse_reference(receipt.payload)
        except ValidationError:
            logger.error("payment.payload.invalid", extra={"event": "payment.payload.invalid", "user_id": user_id})
            self._keep_payment_record(db, user_id, receipt)
            return [Reply(views.finalize_failure_text(receipt.telegram_payment_charge_id))]
        finalizer = InvoiceFinalizer(db, self.storage, self.config, clock=self.clock)

        if reference.purpose is PaymentPurpose.REGENERATE:
            try:
                rendered = finalizer.regenerate(user_id, reference.subject_id, receipt)
            except (NotFoundError, CollaboratorError):
                logger.exception("invoice.regenerate.failed", extra={"event": "invoice.regenerate.failed", "user_id": user_id})
                self._keep_payment_record(db, user_id, receipt)
                return [Reply(views.finalize_failure_text(receipt.telegram_payment_charge_id))]
            return [self._document(rendered, receipt)]

        state = self.store.get(user_id)
        if not isinstance(state, InvoiceState) or state.draft.client_id is None or not state.draft.lines:
            logger.error("payment.draft.missing", extra={"event": "payment.draft.missing", "user_id": user_id})
            self._keep_payment_record(db, user_id, receipt)
            return [Reply(f"{views.INVOICE_DATA_MISSING}\n\n{views.finalize_failure_text(receipt.telegram_payment_charge_id)}")]
        if state.draft.payment_reference != receipt.payload:
            logger.warning("payment.reference.mismatch", extra={"event": "payment.reference.mismatch", "user_id": user_id})

        draft = state.draft
        try:
            rendered = finalizer.finalize(user_id, draft.client_id, draft.lines, receipt)
        except (NotFoundError, CollaboratorError):
            logger.exception("invoice.finalize.failed", extra={"event": "invoice.finalize.failed", "user_id": user_id})
            self._keep_payment_record(db, user_id, receipt)
            notice = views.finalize_failure_text(receipt.telegram_payment_charge_id)
            return self._apply(db, user_id, invoice_flow.revert_to_review(draft, self._invoice_context(db, user_id), notice))

        self.store.clear(user_id)
        return [
            self._document(rendered, receipt),
            Reply("🎉 Payment successful! Your invoice PDF has been generated and sent above."),
        ]

    def _keep_payment_record(self, db: Session, user_id: int, receipt: PaymentReceipt) -> None:
        """Record a charge that produced no document so it can still be refunded."""
        payments = PaymentService(db)
        try:
            if payments.find_by_charge_id(receipt.telegram_payment_charge_id) is not None:
                return
            payments.create_payment(
                user_id=user_id,
                telegram_payment_charge_id=receipt.telegram_payment_charge_id,
                provider_payment_charge_id=receipt.provider_payment_charge_id,
                amount=receipt.total_amount,
                currency=receipt.currency,
                payload=receipt.payload,
                created_at=self.clock(),
            )
            payments.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception("payment.record.failed", extra={"event": "payment.record.failed", "user_id": user_id})

    def _document(self, rendered: RenderedInvoice, receipt: PaymentReceipt) -> Document:
        caption = views.document_caption(
            rendered.invoice.invoice_number,
            receipt.total_amount,
            receipt.currency,
            receipt.telegram_payment_charge_id,
        )
        return Document(filename=rendered.filename, content=rendered.content, caption=caption)
