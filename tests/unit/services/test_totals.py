from __future__ import annotations

from decimal import Decimal

import pytest

from invoice_bot.conversation.state import DraftLine
from invoice_bot.core.exceptions import ComputationError
from invoice_bot.services.totals import compute_totals, line_total


def _line(quantity: str, unit_price: str, vat_rate: int, cached_total: str = "0") -> DraftLine:
    return DraftLine(
        description="Item",
        quantity=Decimal(quantity),
        unit_price=Decimal(unit_price),
        vat_rate=vat_rate,
        line_total=Decimal(cached_total),
    )


def test_single_line_totals():
    totals = compute_totals([_line("2", "100", 20)])

    assert totals.subtotal == Decimal("200")
    assert [(entry.rate, entry.vat_amount) for entry in totals.vat_breakdown] == [(20, Decimal("40"))]
    assert totals.total == Decimal("240")


def test_vat_is_grouped_by_rate_in_order_of_first_appearance():
    totals = compute_totals(
        [
            _line("1", "50", 9),
            _line("3", "10", 20),
            _line("2", "25", 9),
        ]
    )

    assert [entry.rate for entry in totals.vat_by_rate] == [9, 20]
    assert totals.vat_by_rate[0].vat_amount == Decimal("9")
    assert totals.vat_by_rate[1].vat_amount == Decimal("6")
    assert totals.subtotal == Decimal("130")
    assert totals.total == totals.subtotal + totals.vat_total


def test_zero_rate_lines_are_hidden_from_breakdown_but_kept_by_rate():
    totals = compute_totals([_line("1", "100", 0), _line("1", "100", 20)])

    assert [entry.rate for entry in totals.vat_breakdown] == [20]
    assert [entry.rate for entry in totals.vat_by_rate] == [0, 20]
    assert totals.vat_total == Decimal("20")
    assert totals.total == Decimal("220")


def test_fractional_amounts_stay_exact():
    totals = compute_totals([_line("0.1", "0.2", 0), _line("0.1", "0.1", 0)])

    assert totals.subtotal == Decimal("0.03")
    assert totals.total == Decimal("0.03")


def test_cached_line_totals_are_ignored():
    totals = compute_totals([_line("2", "100", 20, cached_total="999.99")])

    assert totals.total == Decimal("240")


def test_repeated_computation_gives_identical_totals():
    lines = (_line("1.5", "33.33", 9), _line("3", "19.99", 24), _line("2", "10", 0))

    first = compute_totals(lines)
    second = compute_totals(lines)

    assert first == second
    assert first.vat_total == second.vat_total
    assert lines == (_line("1.5", "33.33", 9), _line("3", "19.99", 24), _line("2", "10", 0))


def test_line_total_includes_vat():
    assert line_total(Decimal("3"), Decimal("19.99"), 24) == Decimal("74.3628")


def test_empty_line_list_is_rejected():
    with pytest.raises(ComputationError, match="No items added"):
        compute_totals([])
