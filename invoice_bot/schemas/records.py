"""Immutable read records returned by the persistence services."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class _Record(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)


class UserProfile(_Record):
    telegram_id: int
    company_name: str | None = None
    reg_number: str | None = None
    vat_number: str | None = None
    address: str | None = None
    city: str | None = None
    zip_code: str | None = None
    phone: str | None = None
    email: str | None = None
    bank_name: str | None = None
    iban: str | None = None
    swift: str | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self.company_name)


class ClientRecord(_Record):
    id: int
    user_id: int
    name: str
    address_line1: str | None = None
    address_line2: str | None = None
    country: str | None = None
    reg_number: str | None = None
    vat_number: str | None = None


class ProductRecord(_Record):
    id: int
    user_id: int
    name: str
    description: str | None = None
    default_price: Decimal | None = None
    default_vat_rate: int | None = Field(default=None, ge=0, le=100)


class InvoiceLineRecord(_Record):
    id: int
    invoice_id: int
    description: str
    quantity: Decimal
    unit_price: Decimal
    vat_rate: int
    line_total: Decimal


class InvoiceRecord(_Record):
    id: int
    user_id: int
    invoice_number: str
    client_id: int
    issue_date: date
    due_date: date
    subtotal: Decimal
    vat_total: Decimal
    total_amount: Decimal
    pdf_path: str = ""
    created_at: datetime | None = None


class PaymentRecord(_Record):
    id: int
    user_id: int
    invoice_id: int | None = None
    telegram_payment_charge_id: str
    provider_payment_charge_id: str | None = None
    amount: int
    currency: str
    payload: str | None = None
    status: str
    refunded: bool = False
    refund_date: datetime | None = None
    created_at: datetime | None = None
