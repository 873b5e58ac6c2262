"""
Invoice builder.

Steps: select_client -> choose_item_source -> (enter_description) ->
enter_quantity -> enter_unit_price -> enter_vat_rate -> choose_item_source
... -> review -> awaiting_payment. Every handler is a pure function of the
current state, the event and an ``InvoiceContext`` and answers with exactly
one outbound effect. Rejected input never changes the draft.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from decimal import Decimal
from typing import Any, Callable

from invoice_bot.conversation import client_flow, views
from invoice_bot.conversation.state import (
    AddMoreRequested,
    CancelRequested,
    ClientPicked,
    CustomItemRequested,
    DraftLine,
    Event,
    InvoiceContext,
    InvoiceDraft,
    InvoiceState,
    InvoiceStep,
    NewClientRequested,
    PartialLine,
    PayRequested,
    ProductPicked,
    Reply,
    RequestPayment,
    ReviewRequested,
    TextEntered,
    Transition,
)
from invoice_bot.conversation.state_machine import StateMachine
from invoice_bot.core.enums import PaymentPurpose
from invoice_bot.core.exceptions import ComputationError, ValidationError
from invoice_bot.schemas import ClientRecord
from invoice_bot.services import payment_gate
from invoice_bot.services.totals import MAX_STORED_AMOUNT, compute_totals, line_total
from invoice_bot.utils.formatters import format_currency, format_percent, format_quantity
from invoice_bot.utils.validators import (
    is_skip,
    parse_non_negative_decimal,
    parse_positive_decimal,
    parse_required_text,
    parse_vat_rate,
)

logger = logging.getLogger(__name__)

INVOICE_MACHINE = StateMachine(
    {
        InvoiceStep.SELECT_CLIENT: {InvoiceStep.CHOOSE_ITEM_SOURCE},
        InvoiceStep.CHOOSE_ITEM_SOURCE: {
            InvoiceStep.SELECT_CLIENT,
            InvoiceStep.ENTER_DESCRIPTION,
            InvoiceStep.ENTER_QUANTITY,
            InvoiceStep.REVIEW,
        },
        InvoiceStep.ENTER_DESCRIPTION: {InvoiceStep.ENTER_QUANTITY},
        InvoiceStep.ENTER_QUANTITY: {InvoiceStep.ENTER_UNIT_PRICE},
        InvoiceStep.ENTER_UNIT_PRICE: {InvoiceStep.ENTER_VAT_RATE},
        InvoiceStep.ENTER_VAT_RATE: {InvoiceStep.CHOOSE_ITEM_SOURCE},
        InvoiceStep.REVIEW: {InvoiceStep.SELECT_CLIENT, InvoiceStep.CHOOSE_ITEM_SOURCE, InvoiceStep.AWAITING_PAYMENT},
        InvoiceStep.AWAITING_PAYMENT: {InvoiceStep.SELECT_CLIENT, InvoiceStep.CHOOSE_ITEM_SOURCE, InvoiceStep.REVIEW},
    }
)

CLIENT_MISSING = "⚠️ The selected client no longer exists."
PRODUCT_MISSING = "⚠️ That product/service no longer exists."
PAYMENT_EXPIRED = "⌛ The payment request expired. Review your invoice and pay again when ready."
WAITING_FOR_PAYMENT = "⏳ Waiting for your payment. Complete the Stars payment above, or use /cancel to discard the invoice."


def _reply(state: InvoiceState, text: str, buttons=()) -> Transition:
    return Transition(state, (Reply(text, tuple(buttons)),))


def start(ctx: InvoiceContext) -> Transition:
    """Begin a fresh draft; any unfinished flow of the user is replaced."""
    state = InvoiceState(step=InvoiceStep.SELECT_CLIENT, draft=InvoiceDraft())
    return Transition(state, (views.select_client_reply(ctx.clients),))


def _cancel() -> Transition:
    return Transition(None, (Reply(views.INVOICE_CANCELLED),))


# Prompts


def _select_client(draft: InvoiceDraft, ctx: InvoiceContext, notice: str | None = None) -> Transition:
    state = InvoiceState(step=InvoiceStep.SELECT_CLIENT, draft=replace(draft, client_id=None, client_name=None))
    return Transition(state, (views.select_client_reply(ctx.clients, notice),))


def _choose_item_source(draft: InvoiceDraft, ctx: InvoiceContext, heading: str) -> Transition:
    state = InvoiceState(step=InvoiceStep.CHOOSE_ITEM_SOURCE, draft=replace(draft, current_line=None))
    text = f"{heading}\n\nSelect a product/service or add a custom item:"
    return _reply(state, text, views.item_source_keyboard(ctx.products, ctx.currency))


def _unit_price_prompt(line: PartialLine, currency: str) -> str:
    if line.unit_price is not None:
        return f'💰 Enter unit price (default: {format_currency(line.unit_price, currency)}, or type "skip"):'
    return "💰 Enter unit price:"


def _vat_rate_prompt(line: PartialLine) -> str:
    if line.vat_rate is not None:
        return f'📊 Enter VAT rate (0-100) (default: {format_percent(line.vat_rate)}, or type "skip"):'
    return "📊 Enter VAT rate (0-100):"


def _quantity_prompt(line: PartialLine) -> str:
    if line.quantity is not None:
        return f'🔢 Enter quantity (default: {format_quantity(line.quantity)}, or type "skip"):'
    return "🔢 Enter quantity:"


def _show_review(draft: InvoiceDraft, ctx: InvoiceContext, notice: str | None = None) -> Transition:
    """Totals are always re-derived from the committed lines."""
    try:
        totals = compute_totals(draft.lines)
    except ComputationError as exc:
        return _choose_item_source(draft, ctx, f"⚠️ {exc}")
    client = ctx.client(draft.client_id)
    if client is None:
        return _select_client(draft, ctx, CLIENT_MISSING)

    state = InvoiceState(
        step=InvoiceStep.REVIEW,
        draft=replace(draft, client_name=client.name, payment_reference=None, payment_requested_at=None),
    )
    text = views.review_text(client.name, draft.lines, totals, ctx.stars_price, ctx.currency)
    if notice:
        text = f"{notice}\n\n{text}"
    return _reply(state, text, views.REVIEW_KEYBOARD)


def revert_to_review(draft: InvoiceDraft, ctx: InvoiceContext, notice: str) -> Transition:
    """Back to review with the draft intact, e.g. after an expired or failed payment."""
    return _show_review(draft, ctx, notice)


def resume_with_client(draft: InvoiceDraft, client: ClientRecord, ctx: InvoiceContext) -> Transition:
    """Re-enter the builder after the nested client wizard created ``client``."""
    selected = replace(draft, client_id=client.id, client_name=client.name)
    return _choose_item_source(selected, ctx, f"✅ Client added successfully!\n\n📄 Invoice for: {client.name}")


# Step handlers


def _on_select_client(state: InvoiceState, event: Event, ctx: InvoiceContext) -> Transition:
    if isinstance(event, ClientPicked):
        client = ctx.client(event.client_id)
        if client is None:
            return _select_client(state.draft, ctx, CLIENT_MISSING)
        draft = replace(state.draft, client_id=client.id, client_name=client.name)
        return _choose_item_source(draft, ctx, f"📄 Invoice for: {client.name}")
    if isinstance(event, NewClientRequested):
        return client_flow.start_add(resume_invoice=state.draft)
    return Transition(state, (views.select_client_reply(ctx.clients),))


def _on_choose_item_source(state: InvoiceState, event: Event, ctx: InvoiceContext) -> Transition:
    draft = state.draft
    if isinstance(event, ProductPicked):
        product = ctx.product(event.product_id)
        if product is None:
            return _choose_item_source(draft, ctx, PRODUCT_MISSING)
        line = PartialLine(
            description=product.name,
            quantity=Decimal(1),
            unit_price=product.default_price if product.default_price is not None else Decimal(0),
            vat_rate=product.default_vat_rate if product.default_vat_rate is not None else 0,
        )
        next_state = InvoiceState(step=InvoiceStep.ENTER_QUANTITY, draft=replace(draft, current_line=line))
        return _reply(next_state, f"📦 Adding: {product.name}\n\n{_quantity_prompt(line)}")
    if isinstance(event, CustomItemRequested):
        next_state = InvoiceState(step=InvoiceStep.ENTER_DESCRIPTION, draft=replace(draft, current_line=PartialLine()))
        return _reply(next_state, "✏️ Adding custom item.\n\nEnter item description:")
    if isinstance(event, ReviewRequested):
        return _show_review(draft, ctx)
    if isinstance(event, AddMoreRequested):
        return _choose_item_source(draft, ctx, "📦 Add More Items")
    heading = f"📄 Invoice for: {draft.client_name}" if draft.client_name else "📦 Add Items"
    return _choose_item_source(draft, ctx, heading)


def _read_field(text: str, current: Any, parser: Callable[[str], Any], required_message: str) -> Any:
    """Parse ``text``; "skip" keeps a prefilled value and is refused otherwise."""
    if is_skip(text):
        if current is None:
            raise ValidationError(required_message)
        return current
    return parser(text)


def _line_input(
    state: InvoiceState,
    event: Event,
    prompt: str,
    apply: Callable[[PartialLine, str], Transition],
) -> Transition:
    if not isinstance(event, TextEntered):
        return _reply(state, prompt)
    line = state.draft.current_line or PartialLine()
    try:
        return apply(line, event.text)
    except ValidationError as exc:
        return _reply(state, f"❌ {exc}:")


def _on_enter_description(state: InvoiceState, event: Event, ctx: InvoiceContext) -> Transition:
    def apply(line: PartialLine, text: str) -> Transition:
        if is_skip(text):
            raise ValidationError("Item description is required. Please enter item description")
        description = parse_required_text(text, "item description")
        updated = replace(line, description=description)
        next_state = InvoiceState(step=InvoiceStep.ENTER_QUANTITY, draft=replace(state.draft, current_line=updated))
        return _reply(next_state, _quantity_prompt(updated))

    return _line_input(state, event, "Enter item description:", apply)


def _on_enter_quantity(state: InvoiceState, event: Event, ctx: InvoiceContext) -> Transition:
    line = state.draft.current_line or PartialLine()

    def apply(line: PartialLine, text: str) -> Transition:
        quantity = _read_field(
            text,
            line.quantity,
            lambda value: parse_positive_decimal(value, "quantity"),
            "Invalid quantity. Please enter a positive number",
        )
        updated = replace(line, quantity=quantity)
        next_state = InvoiceState(step=InvoiceStep.ENTER_UNIT_PRICE, draft=replace(state.draft, current_line=updated))
        return _reply(next_state, _unit_price_prompt(updated, ctx.currency))

    return _line_input(state, event, _quantity_prompt(line), apply)


def _on_enter_unit_price(state: InvoiceState, event: Event, ctx: InvoiceContext) -> Transition:
    line = state.draft.current_line or PartialLine()

    def apply(line: PartialLine, text: str) -> Transition:
        unit_price = _read_field(
            text,
            line.unit_price,
            lambda value: parse_non_negative_decimal(value, "price"),
            "Invalid price. Please enter a number of 0 or more (e.g. 99.99)",
        )
        updated = replace(line, unit_price=unit_price)
        next_state = InvoiceState(step=InvoiceStep.ENTER_VAT_RATE, draft=replace(state.draft, current_line=updated))
        return _reply(next_state, _vat_rate_prompt(updated))

    return _line_input(state, event, _unit_price_prompt(line, ctx.currency), apply)


def _on_enter_vat_rate(state: InvoiceState, event: Event, ctx: InvoiceContext) -> Transition:
    line = state.draft.current_line or PartialLine()

    def apply(line: PartialLine, text: str) -> Transition:
        vat_rate = _read_field(
            text,
            line.vat_rate,
            parse_vat_rate,
            "Invalid VAT rate. Please enter a whole number between 0 and 100",
        )
        committed = DraftLine(
            description=line.description,
            quantity=line.quantity,
            unit_price=line.unit_price,
            vat_rate=vat_rate,
            line_total=line_total(line.quantity, line.unit_price, vat_rate),
        )
        draft = replace(state.draft, lines=state.draft.lines + (committed,), current_line=None)
        if compute_totals(draft.lines).total > MAX_STORED_AMOUNT:
            return _choose_item_source(
                replace(state.draft, current_line=None),
                ctx,
                "❌ Invoice total is too large. The item was not added.",
            )
        next_state = InvoiceState(step=InvoiceStep.CHOOSE_ITEM_SOURCE, draft=draft)
        return _reply(next_state, views.item_added_text(committed, ctx.currency), views.ITEM_ADDED_KEYBOARD)

    return _line_input(state, event, _vat_rate_prompt(line), apply)


def _request_payment(draft: InvoiceDraft, ctx: InvoiceContext) -> Transition:
    reference = draft.payment_reference or payment_gate.build_reference(PaymentPurpose.DRAFT, ctx.user_id, ctx.now)
    requested_at = draft.payment_requested_at or ctx.now
    state = InvoiceState(
        step=InvoiceStep.AWAITING_PAYMENT,
        draft=replace(draft, payment_reference=reference, payment_requested_at=requested_at),
    )
    effect = RequestPayment(
        reference=reference,
        title=payment_gate.PAYMENT_TITLE,
        description=payment_gate.PAYMENT_DESCRIPTION,
        amount=ctx.stars_price,
    )
    return Transition(state, (effect,))


def _on_review(state: InvoiceState, event: Event, ctx: InvoiceContext) -> Transition:
    draft = state.draft
    if isinstance(event, AddMoreRequested):
        return _choose_item_source(draft, ctx, "📦 Add More Items")
    if isinstance(event, PayRequested):
        if not draft.lines:
            return _choose_item_source(draft, ctx, "⚠️ No items added to invoice. Please add at least one item.")
        if ctx.client(draft.client_id) is None:
            return _select_client(draft, ctx, CLIENT_MISSING)
        return _request_payment(draft, ctx)
    return _show_review(draft, ctx)


def _on_awaiting_payment(state: InvoiceState, event: Event, ctx: InvoiceContext) -> Transition:
    draft = state.draft
    if payment_gate.is_expired(draft.payment_requested_at, ctx.now, ctx.payment_timeout):
        logger.info(
            "invoice.payment.expired",
            extra={"event": "invoice.payment.expired", "user_id": ctx.user_id},
        )
        return revert_to_review(draft, ctx, PAYMENT_EXPIRED)
    if isinstance(event, PayRequested):
        return _request_payment(draft, ctx)
    return _reply(state, WAITING_FOR_PAYMENT)


_HANDLERS: dict[InvoiceStep, Callable[[InvoiceState, Event, InvoiceContext], Transition]] = {
    InvoiceStep.SELECT_CLIENT: _on_select_client,
    InvoiceStep.CHOOSE_ITEM_SOURCE: _on_choose_item_source,
    InvoiceStep.ENTER_DESCRIPTION: _on_enter_description,
    InvoiceStep.ENTER_QUANTITY: _on_enter_quantity,
    InvoiceStep.ENTER_UNIT_PRICE: _on_enter_unit_price,
    InvoiceStep.ENTER_VAT_RATE: _on_enter_vat_rate,
    InvoiceStep.REVIEW: _on_review,
    InvoiceStep.AWAITING_PAYMENT: _on_awaiting_payment,
}


def transition(state: InvoiceState, event: Event, ctx: InvoiceContext) -> Transition:
    """Apply one event to the builder."""
    if isinstance(event, CancelRequested):
        return _cancel()

    result = _HANDLERS[state.step](state, event, ctx)
    if isinstance(result.state, InvoiceState):
        INVOICE_MACHINE.assert_transition(state.step, result.state.step)
        if result.state.step != state.step:
            logger.debug(
                "invoice.step",
                extra={"event": "invoice.step", "user_id": ctx.user_id, "step": result.state.step.value},
            )
    return result
