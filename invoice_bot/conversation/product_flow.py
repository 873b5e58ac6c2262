"""Product/service add/edit wizard."""

from __future__ import annotations

from functools import partial

from invoice_bot.conversation.field_flow import FieldSpec, apply_input, prompt_for, spec_for
from invoice_bot.conversation.state import (
    CancelRequested,
    CreateProduct,
    EditMode,
    Event,
    ProductState,
    ProductStep,
    Reply,
    TextEntered,
    Transition,
    UpdateProduct,
)
from invoice_bot.schemas import ProductRecord
from invoice_bot.utils.formatters import format_currency, format_percent
from invoice_bot.utils.validators import MONEY_PLACES, parse_non_negative_decimal, parse_required_text, parse_vat_rate, sanitize_input


def _optional_text(value: str) -> str | None:
    return sanitize_input(value) or None


PRODUCT_FIELDS = (
    FieldSpec(ProductStep.NAME, "name", "product/service name", "📦", partial(parse_required_text, field="product name")),
    FieldSpec(ProductStep.DESCRIPTION, "description", "product description", "📝", _optional_text, optional=True),
    FieldSpec(
        ProductStep.DEFAULT_PRICE,
        "default_price",
        "default price",
        "💰",
        partial(parse_non_negative_decimal, field="price", places=MONEY_PLACES),
        optional=True,
        display=format_currency,
    ),
    FieldSpec(
        ProductStep.DEFAULT_VAT_RATE,
        "default_vat_rate",
        "default VAT rate (0-100)",
        "📊",
        parse_vat_rate,
        optional=True,
        display=format_percent,
    ),
)

PRODUCT_CANCELLED = "❌ Product entry cancelled."


def start_add() -> Transition:
    first = PRODUCT_FIELDS[0]
    state = ProductState(step=first.step)
    text = f"📦 Adding new product/service.\n\n{prompt_for(first, EditMode.ADD, state.values)}"
    return Transition(state, (Reply(text),))


def start_edit(product: ProductRecord) -> Transition:
    first = PRODUCT_FIELDS[0]
    values = {spec.name: getattr(product, spec.name) for spec in PRODUCT_FIELDS}
    state = ProductState(step=first.step, mode=EditMode.EDIT, product_id=product.id, values=values)
    text = f"✏️ Editing product: {product.name}\n\n{prompt_for(first, EditMode.EDIT, values)}"
    return Transition(state, (Reply(text),))


def transition(state: ProductState, event: Event) -> Transition:
    if isinstance(event, CancelRequested):
        return Transition(None, (Reply(PRODUCT_CANCELLED),))
    if not isinstance(event, TextEntered):
        return Transition(state, (Reply(prompt_for(spec_for(PRODUCT_FIELDS, state.step), state.mode, state.values)),))

    outcome = apply_input(PRODUCT_FIELDS, state.step, state.mode, state.values, event.text)
    if not outcome.completed:
        next_state = ProductState(
            step=outcome.next_step,
            mode=state.mode,
            product_id=state.product_id,
            values=outcome.values,
        )
        return Transition(next_state, (Reply(outcome.reply),))

    if state.mode is EditMode.EDIT:
        return Transition(None, (UpdateProduct(product_id=state.product_id, fields=outcome.values),))
    return Transition(None, (CreateProduct(fields=outcome.values),))
