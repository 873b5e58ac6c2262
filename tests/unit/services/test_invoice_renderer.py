from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from reportlab.pdfbase.pdfmetrics import stringWidth

from invoice_bot.schemas import ClientRecord, InvoiceLineRecord, InvoiceRecord, UserProfile
from invoice_bot.services.invoice_renderer import (
    DEFAULT_FIELD_WIDTH,
    FONT,
    RIGHT,
    align_right,
    generate_invoice_pdf,
    layout_invoice,
)


def _invoice(**overrides) -> InvoiceRecord:
    fields = dict(
        id=1,
        user_id=1001,
        invoice_number="2025001",
        client_id=7,
        issue_date=date(2025, 1, 1),
        due_date=date(2025, 1, 31),
        subtotal=Decimal("200.00"),
        vat_total=Decimal("40.00"),
        total_amount=Decimal("240.00"),
    )
    fields.update(overrides)
    return InvoiceRecord(**fields)


def _user() -> UserProfile:
    return UserProfile(
        telegram_id=1001,
        company_name="Northwind OÜ",
        address="Narva mnt 5",
        city="Tallinn",
        zip_code="10117",
        email="billing@northwind.ee",
        phone="+372 5555 1234",
        bank_name="LHV Pank",
        iban="EE382200221020145685",
    )


def _line(index: int = 1, vat_rate: int = 20) -> InvoiceLineRecord:
    return InvoiceLineRecord(
        id=index,
        invoice_id=1,
        description=f"Consulting {index}",
        quantity=Decimal("2"),
        unit_price=Decimal("100"),
        vat_rate=vat_rate,
        line_total=Decimal("240.00"),
    )


def _texts(layout, block: str) -> list[str]:
    return [item.text for item in layout.block(block)]


def test_client_block_with_only_a_name_has_one_line():
    client = ClientRecord(id=7, user_id=1001, name="Acme Ltd")

    layout = layout_invoice(_invoice(), _user(), client, [_line()])

    assert _texts(layout, "client") == ["Acme Ltd"]


def test_client_block_prints_optional_fields_in_order():
    client = ClientRecord(
        id=7,
        user_id=1001,
        name="Acme Ltd",
        address_line1="1 Main St",
        country="Estonia",
        vat_number="EE999",
    )

    layout = layout_invoice(_invoice(), _user(), client, [_line()])

    assert _texts(layout, "client") == ["Acme Ltd", "1 Main St", "Estonia", "VAT number: EE999"]


def test_metadata_shows_terms_in_days_and_dates():
    client = ClientRecord(id=7, user_id=1001, name="Acme Ltd")

    texts = _texts(layout_invoice(_invoice(), _user(), client, [_line()]), "metadata")

    assert "30 days" in texts
    assert "01.01.2025" in texts
    assert "31.01.2025" in texts
    assert "2025001" in texts


def test_line_cells_are_right_aligned_to_their_field():
    client = ClientRecord(id=7, user_id=1001, name="Acme Ltd")

    layout = layout_invoice(_invoice(), _user(), client, [_line()])
    total_cell = next(item for item in layout.block("lines") if item.text == "200.00")

    assert total_cell.x + stringWidth("200.00", FONT, 12) == pytest.approx(RIGHT)
    assert align_right(10, "abc", DEFAULT_FIELD_WIDTH, FONT) == pytest.approx(10 + DEFAULT_FIELD_WIDTH - stringWidth("abc", FONT, 12))


def test_totals_print_every_rate_including_zero():
    client = ClientRecord(id=7, user_id=1001, name="Acme Ltd")

    texts = _texts(layout_invoice(_invoice(), _user(), client, [_line(1, 0), _line(2, 20)]), "totals")

    assert "Subtotal without VAT" in texts
    assert "Value added tax 0%" in texts
    assert "Value added tax 20%" in texts
    assert "Total to pay (EUR)" in texts
    assert "240.00" in texts


def test_missing_issuer_fields_render_as_empty_values():
    client = ClientRecord(id=7, user_id=1001, name="Acme Ltd")

    texts = _texts(layout_invoice(_invoice(), _user(), client, [_line()]), "footer_issuer")

    assert "Reg number: " in texts
    assert "Narva mnt 5, 10117 Tallinn" in texts


def test_long_invoices_continue_on_next_page():
    client = ClientRecord(id=7, user_id=1001, name="Acme Ltd")
    lines = [_line(index) for index in range(1, 41)]

    layout = layout_invoice(_invoice(), _user(), client, lines)

    assert layout.page_count > 1
    assert len(layout.block("lines")) == 40 * 5
    assert {item.page for item in layout.block("totals")} == {layout.page_count - 1}
    assert {item.page for item in layout.block("footer_issuer")} == set(range(layout.page_count))


def test_generate_invoice_pdf_returns_pdf_bytes():
    client = ClientRecord(id=7, user_id=1001, name="Acme Ltd")

    content = generate_invoice_pdf(_invoice(), _user(), client, [_line()])

    assert content.startswith(b"%PDF")
