from __future__ import annotations

from decimal import Decimal

import pytest

from invoice_bot.conversation.state import DraftLine
from invoice_bot.core.exceptions import CollaboratorError, NotFoundError
from invoice_bot.database.models import Invoice, InvoiceLine, InvoiceSequence, Payment
from invoice_bot.services.invoice_finalizer import InvoiceFinalizer
from invoice_bot.services.invoice_renderer import layout_invoice
from invoice_bot.services.invoice_service import InvoiceService
from invoice_bot.services.payment_gate import PaymentReceipt
from invoice_bot.utils.formatters import format_amount
from invoice_bot.utils.validators import parse_non_negative_decimal, parse_positive_decimal

USER_ID = 1001


def _lines() -> tuple[DraftLine, ...]:
    return (
        DraftLine(
            description="Consulting",
            quantity=Decimal("2"),
            unit_price=Decimal("100"),
            vat_rate=20,
            line_total=Decimal("240"),
        ),
    )


def _receipt(charge_id: str = "charge-1") -> PaymentReceipt:
    return PaymentReceipt(
        payload=f"draft:{USER_ID}:1773482400000",
        telegram_payment_charge_id=charge_id,
        total_amount=25,
        currency="XTR",
    )


def test_finalize_persists_invoice_lines_payment_and_document(
    db_session, storage, test_config, clock, configured_user, make_client
):
    client = make_client()
    finalizer = InvoiceFinalizer(db_session, storage, test_config, clock=clock)

    rendered = finalizer.finalize(USER_ID, client.id, _lines(), _receipt())

    assert rendered.invoice.invoice_number == "2026001"
    assert rendered.invoice.total_amount == Decimal("240.00")
    assert rendered.invoice.due_date.isoformat() == "2026-04-13"
    assert rendered.filename == "invoice_2026001.pdf"
    assert rendered.storage_path == "memory://invoice_2026001.pdf"
    assert storage.saved["invoice_2026001.pdf"] == rendered.content

    invoice = db_session.query(Invoice).one()
    assert invoice.pdf_path == rendered.storage_path
    assert invoice.subtotal == Decimal("200.00")
    assert invoice.vat_total == Decimal("40.00")
    assert db_session.query(InvoiceLine).filter(InvoiceLine.invoice_id == invoice.id).count() == 1
    assert db_session.query(Payment).one().invoice_id == invoice.id


def test_consecutive_invoices_get_consecutive_numbers(
    db_session, storage, test_config, clock, configured_user, make_client
):
    client = make_client()
    finalizer = InvoiceFinalizer(db_session, storage, test_config, clock=clock)

    first = finalizer.finalize(USER_ID, client.id, _lines(), _receipt("charge-1"))
    second = finalizer.finalize(USER_ID, client.id, _lines(), _receipt("charge-2"))

    assert [first.invoice.invoice_number, second.invoice.invoice_number] == ["2026001", "2026002"]


def test_storage_failure_rolls_back_everything(
    db_session, failing_storage, test_config, clock, configured_user, make_client
):
    client = make_client()
    finalizer = InvoiceFinalizer(db_session, failing_storage, test_config, clock=clock)

    with pytest.raises(CollaboratorError):
        finalizer.finalize(USER_ID, client.id, _lines(), _receipt())

    assert db_session.query(Invoice).count() == 0
    assert db_session.query(Payment).count() == 0
    assert db_session.query(InvoiceSequence).count() == 0


def test_failed_attempt_does_not_consume_a_number(
    db_session, storage, failing_storage, test_config, clock, configured_user, make_client
):
    client = make_client()
    with pytest.raises(CollaboratorError):
        InvoiceFinalizer(db_session, failing_storage, test_config, clock=clock).finalize(
            USER_ID, client.id, _lines(), _receipt("charge-1")
        )

    rendered = InvoiceFinalizer(db_session, storage, test_config, clock=clock).finalize(
        USER_ID, client.id, _lines(), _receipt("charge-2")
    )

    assert rendered.invoice.invoice_number == "2026001"


def test_finalize_for_missing_client_raises_not_found(db_session, storage, test_config, clock, configured_user):
    finalizer = InvoiceFinalizer(db_session, storage, test_config, clock=clock)

    with pytest.raises(NotFoundError, match="Client not found"):
        finalizer.finalize(USER_ID, 999, _lines(), _receipt())


def test_duplicate_charge_id_is_reported_as_collaborator_error(
    db_session, storage, test_config, clock, configured_user, make_client
):
    client = make_client()
    finalizer = InvoiceFinalizer(db_session, storage, test_config, clock=clock)
    finalizer.finalize(USER_ID, client.id, _lines(), _receipt("charge-1"))

    with pytest.raises(CollaboratorError):
        finalizer.finalize(USER_ID, client.id, _lines(), _receipt("charge-1"))

    assert db_session.query(Invoice).count() == 1


def test_regenerate_renders_stored_invoice_again(
    db_session, storage, test_config, clock, configured_user, make_client
):
    client = make_client()
    finalizer = InvoiceFinalizer(db_session, storage, test_config, clock=clock)
    original = finalizer.finalize(USER_ID, client.id, _lines(), _receipt("charge-1"))
    storage.saved.clear()

    regenerated = finalizer.regenerate(USER_ID, original.invoice.id, _receipt("charge-2"))

    assert regenerated.invoice.invoice_number == "2026001"
    assert "invoice_2026001.pdf" in storage.saved
    assert db_session.query(Invoice).count() == 1
    assert db_session.query(Payment).count() == 2


def test_regenerate_unknown_invoice_raises_not_found(db_session, storage, test_config, clock, configured_user):
    finalizer = InvoiceFinalizer(db_session, storage, test_config, clock=clock)

    with pytest.raises(NotFoundError):
        finalizer.regenerate(USER_ID, 999, _receipt())


def test_stored_lines_reproduce_invoice_totals(
    db_session, storage, test_config, clock, configured_user, make_client
):
    client = make_client()
    line = DraftLine(
        description="Hosting",
        quantity=parse_positive_decimal("1.2345", "quantity"),
        unit_price=parse_non_negative_decimal("99.9999", "price"),
        vat_rate=20,
        line_total=Decimal("148.14"),
    )
    finalizer = InvoiceFinalizer(db_session, storage, test_config, clock=clock)
    invoice = finalizer.finalize(USER_ID, client.id, (line,), _receipt()).invoice

    stored_lines = InvoiceService(db_session).list_lines(invoice.id)
    layout = layout_invoice(invoice, configured_user, client, stored_lines)
    totals = [item.text for item in layout.block("totals")]

    assert stored_lines[0].quantity == Decimal("1.2345")
    assert stored_lines[0].unit_price == Decimal("99.9999")
    assert totals[1] == format_amount(invoice.subtotal) == "123.45"
    assert totals[3] == format_amount(invoice.vat_total) == "24.69"
    assert totals[-1] == format_amount(invoice.total_amount) == "148.14"
