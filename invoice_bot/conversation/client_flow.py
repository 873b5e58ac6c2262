"""Client add/edit wizard, also used as a sub-flow of the invoice builder."""

from __future__ import annotations

from functools import partial

from invoice_bot.conversation.field_flow import FieldSpec, apply_input, prompt_for, spec_for
from invoice_bot.conversation.state import (
    CancelRequested,
    ClientState,
    ClientStep,
    CreateClient,
    EditMode,
    Event,
    InvoiceDraft,
    Reply,
    TextEntered,
    Transition,
    UpdateClient,
)
from invoice_bot.schemas import ClientRecord
from invoice_bot.utils.validators import parse_required_text, sanitize_input


def _optional_text(value: str) -> str | None:
    return sanitize_input(value) or None


CLIENT_FIELDS = (
    FieldSpec(ClientStep.NAME, "name", "client name", "👤", partial(parse_required_text, field="client name")),
    FieldSpec(ClientStep.ADDRESS_LINE1, "address_line1", "client address", "📍", _optional_text, optional=True),
    FieldSpec(ClientStep.ADDRESS_LINE2, "address_line2", "second address line", "📍", _optional_text, optional=True),
    FieldSpec(ClientStep.COUNTRY, "country", "country", "🌍", _optional_text, optional=True),
    FieldSpec(ClientStep.REG_NUMBER, "reg_number", "registration number", "📋", _optional_text, optional=True),
    FieldSpec(ClientStep.VAT_NUMBER, "vat_number", "VAT number", "🆔", _optional_text, optional=True),
)

CLIENT_CANCELLED = "❌ Client entry cancelled."


def start_add(resume_invoice: InvoiceDraft | None = None) -> Transition:
    first = CLIENT_FIELDS[0]
    state = ClientState(step=first.step, resume_invoice=resume_invoice)
    intro = "👤 Adding new client for invoice." if resume_invoice is not None else "👤 Adding new client."
    return Transition(state, (Reply(f"{intro}\n\n{prompt_for(first, EditMode.ADD, state.values)}"),))


def start_edit(client: ClientRecord) -> Transition:
    first = CLIENT_FIELDS[0]
    values = {spec.name: getattr(client, spec.name) for spec in CLIENT_FIELDS}
    state = ClientState(step=first.step, mode=EditMode.EDIT, client_id=client.id, values=values)
    text = f"✏️ Editing client: {client.name}\n\n{prompt_for(first, EditMode.EDIT, values)}"
    return Transition(state, (Reply(text),))


def transition(state: ClientState, event: Event) -> Transition:
    if isinstance(event, CancelRequested):
        return Transition(None, (Reply(CLIENT_CANCELLED),))
    if not isinstance(event, TextEntered):
        return Transition(state, (Reply(prompt_for(spec_for(CLIENT_FIELDS, state.step), state.mode, state.values)),))

    outcome = apply_input(CLIENT_FIELDS, state.step, state.mode, state.values, event.text)
    if not outcome.completed:
        next_state = ClientState(
            step=outcome.next_step,
            mode=state.mode,
            client_id=state.client_id,
            values=outcome.values,
            resume_invoice=state.resume_invoice,
        )
        return Transition(next_state, (Reply(outcome.reply),))

    if state.mode is EditMode.EDIT:
        return Transition(None, (UpdateClient(client_id=state.client_id, fields=outcome.values),))
    return Transition(None, (CreateClient(fields=outcome.values, resume_invoice=state.resume_invoice),))
