"""Company setup wizard (/setup)."""

from __future__ import annotations

from functools import partial

from invoice_bot.conversation.field_flow import FieldSpec, apply_input, prompt_for, spec_for
from invoice_bot.conversation.state import (
    CancelRequested,
    EditMode,
    Event,
    Reply,
    SaveProfile,
    SetupState,
    SetupStep,
    TextEntered,
    Transition,
)
from invoice_bot.utils.validators import parse_email, parse_iban, parse_phone, parse_required_text, sanitize_input


def _optional_text(value: str) -> str | None:
    return sanitize_input(value) or None


def _swift(value: str) -> str | None:
    cleaned = sanitize_input(value).replace(" ", "").upper()
    return cleaned or None


SETUP_FIELDS = (
    FieldSpec(SetupStep.COMPANY_NAME, "company_name", "your company name", "🏢", partial(parse_required_text, field="company name")),
    FieldSpec(SetupStep.REG_NUMBER, "reg_number", "your company registration number", "📋", _optional_text, optional=True),
    FieldSpec(SetupStep.VAT_NUMBER, "vat_number", "your VAT number", "🆔", _optional_text, optional=True),
    FieldSpec(SetupStep.ADDRESS, "address", "your company address", "📍", partial(parse_required_text, field="address")),
    FieldSpec(SetupStep.CITY, "city", "your city", "🏙️", partial(parse_required_text, field="city")),
    FieldSpec(SetupStep.ZIP_CODE, "zip_code", "your zip code", "📮", partial(parse_required_text, field="zip code")),
    FieldSpec(SetupStep.PHONE, "phone", "your phone number", "📞", parse_phone),
    FieldSpec(SetupStep.EMAIL, "email", "your email address", "📧", parse_email),
    FieldSpec(SetupStep.BANK_NAME, "bank_name", "your bank name", "🏦", partial(parse_required_text, field="bank name")),
    FieldSpec(SetupStep.IBAN, "iban", "your IBAN", "💳", parse_iban),
    FieldSpec(SetupStep.SWIFT, "swift", "your SWIFT code", "🏧", _swift, optional=True),
)

SETUP_INTRO = "🏢 Let's set up your company information."
SETUP_CANCELLED = "❌ Setup cancelled."


def start() -> Transition:
    first = SETUP_FIELDS[0]
    state = SetupState(step=first.step)
    text = f"{SETUP_INTRO}\n\n{prompt_for(first, EditMode.ADD, state.values)}"
    return Transition(state, (Reply(text),))


def transition(state: SetupState, event: Event) -> Transition:
    if isinstance(event, CancelRequested):
        return Transition(None, (Reply(SETUP_CANCELLED),))
    if not isinstance(event, TextEntered):
        return Transition(state, (Reply(prompt_for(spec_for(SETUP_FIELDS, state.step), EditMode.ADD, state.values)),))

    outcome = apply_input(SETUP_FIELDS, state.step, EditMode.ADD, state.values, event.text)
    if outcome.completed:
        return Transition(None, (SaveProfile(outcome.values),))
    return Transition(SetupState(step=outcome.next_step, values=outcome.values), (Reply(outcome.reply),))
