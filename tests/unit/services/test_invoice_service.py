from __future__ import annotations

from datetime import date
from decimal import Decimal

from invoice_bot.database.models import Invoice
from invoice_bot.services.invoice_service import InvoiceService, format_invoice_number, parse_invoice_sequence

USER_ID = 1001
OTHER_USER_ID = 2002


def _create(service: InvoiceService, client_id: int, number: str, user_id: int = USER_ID):
    return service.create_invoice(
        user_id=user_id,
        client_id=client_id,
        invoice_number=number,
        issue_date=date(2026, 3, 1),
        due_date=date(2026, 3, 31),
        subtotal=Decimal("100"),
        vat_total=Decimal("20.005"),
        total_amount=Decimal("120.005"),
    )


def test_invoice_number_format():
    assert format_invoice_number(2026, 1) == "2026001"
    assert format_invoice_number(2026, 1234) == "20261234"
    assert parse_invoice_sequence("2026042", 2026) == 42
    assert parse_invoice_sequence("2025042", 2026) is None


def test_next_invoice_number_increments_per_year(db_session):
    service = InvoiceService(db=db_session)

    assert service.next_invoice_number(2026) == "2026001"
    assert service.next_invoice_number(2026) == "2026002"
    assert service.next_invoice_number(2027) == "2027001"


def test_next_invoice_number_continues_after_existing_invoices(db_session, make_client):
    client = make_client()
    service = InvoiceService(db=db_session)
    _create(service, client.id, "2026007")
    db_session.commit()

    assert service.next_invoice_number(2026) == "2026008"


def test_create_invoice_rounds_amounts_to_cents(db_session, make_client):
    client = make_client()
    service = InvoiceService(db=db_session)

    invoice = _create(service, client.id, "2026001")

    assert invoice.vat_total == Decimal("20.01")
    assert invoice.total_amount == Decimal("120.01")
    assert invoice.pdf_path == ""


def test_archive_lookups_are_scoped_to_owner(db_session, make_client):
    client = make_client()
    service = InvoiceService(db=db_session)
    invoice = _create(service, client.id, "2026001")
    db_session.commit()

    assert service.find_by_number("2026001", USER_ID).id == invoice.id
    assert service.find_by_number("2026001", OTHER_USER_ID) is None
    assert service.get_invoice(invoice.id, OTHER_USER_ID) is None
    assert [item.id for item in service.list_recent(USER_ID)] == [invoice.id]


def test_set_pdf_path_updates_row(db_session, make_client):
    client = make_client()
    service = InvoiceService(db=db_session)
    invoice = _create(service, client.id, "2026001")

    service.set_pdf_path(invoice.id, "memory://invoice_2026001.pdf")
    db_session.commit()

    assert db_session.get(Invoice, invoice.id).pdf_path == "memory://invoice_2026001.pdf"
