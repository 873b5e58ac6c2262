from __future__ import annotations

from invoice_bot.database.models import Base
import invoice_bot.database.models  # noqa: F401


def test_model_metadata_contains_target_tables():
    expected = {
        "users",
        "clients",
        "products",
        "invoices",
        "invoice_lines",
        "payments",
        "invoice_sequences",
    }
    assert expected == set(Base.metadata.tables.keys())


def test_invoice_number_and_charge_id_are_unique():
    invoices = Base.metadata.tables["invoices"]
    payments = Base.metadata.tables["payments"]

    assert any(
        {column.name for column in constraint.columns} == {"invoice_number"}
        for constraint in invoices.constraints
        if constraint.__class__.__name__ == "UniqueConstraint"
    )
    assert any(
        {column.name for column in constraint.columns} == {"telegram_payment_charge_id"}
        for constraint in payments.constraints
        if constraint.__class__.__name__ == "UniqueConstraint"
    )
