"""
Conversation state, events and effects.

Each flow owns one state type and one step enum, so a step can only ever be
paired with the draft of its own flow. Transitions are pure functions that
take a state and an event and return a ``Transition``: the next state (or
``None`` when the conversation ends) plus the effects the dispatcher must
carry out.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Sequence, Union

from invoice_bot.schemas import ClientRecord, ProductRecord


class InvoiceStep(str, Enum):
    SELECT_CLIENT = "select_client"
    CHOOSE_ITEM_SOURCE = "choose_item_source"
    ENTER_DESCRIPTION = "enter_description"
    ENTER_QUANTITY = "enter_quantity"
    ENTER_UNIT_PRICE = "enter_unit_price"
    ENTER_VAT_RATE = "enter_vat_rate"
    REVIEW = "review"
    AWAITING_PAYMENT = "awaiting_payment"


class SetupStep(str, Enum):
    COMPANY_NAME = "setup_company_name"
    REG_NUMBER = "setup_reg_number"
    VAT_NUMBER = "setup_vat_number"
    ADDRESS = "setup_address"
    CITY = "setup_city"
    ZIP_CODE = "setup_zip_code"
    PHONE = "setup_phone"
    EMAIL = "setup_email"
    BANK_NAME = "setup_bank_name"
    IBAN = "setup_iban"
    SWIFT = "setup_swift"


class ClientStep(str, Enum):
    NAME = "client_name"
    ADDRESS_LINE1 = "client_address_line1"
    ADDRESS_LINE2 = "client_address_line2"
    COUNTRY = "client_country"
    REG_NUMBER = "client_reg_number"
    VAT_NUMBER = "client_vat_number"


class ProductStep(str, Enum):
    NAME = "product_name"
    DESCRIPTION = "product_description"
    DEFAULT_PRICE = "product_default_price"
    DEFAULT_VAT_RATE = "product_default_vat_rate"


class EditMode(str, Enum):
    ADD = "add"
    EDIT = "edit"


# Drafts


@dataclass(frozen=True)
class DraftLine:
    description: str
    quantity: Decimal
    unit_price: Decimal
    vat_rate: int
    line_total: Decimal


@dataclass(frozen=True)
class PartialLine:
    """Scratch buffer for the line being entered; prefilled fields accept "skip"."""

    description: str | None = None
    quantity: Decimal | None = None
    unit_price: Decimal | None = None
    vat_rate: int | None = None


@dataclass(frozen=True)
class InvoiceDraft:
    client_id: int | None = None
    client_name: str | None = None
    lines: tuple[DraftLine, ...] = ()
    current_line: PartialLine | None = None
    payment_reference: str | None = None
    payment_requested_at: datetime | None = None


# States


@dataclass(frozen=True)
class InvoiceState:
    step: InvoiceStep
    draft: InvoiceDraft = field(default_factory=InvoiceDraft)


@dataclass(frozen=True)
class SetupState:
    step: SetupStep
    values: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ClientState:
    step: ClientStep
    mode: EditMode = EditMode.ADD
    client_id: int | None = None
    values: dict[str, Any] = field(default_factory=dict)
    resume_invoice: InvoiceDraft | None = None


@dataclass(frozen=True)
class ProductState:
    step: ProductStep
    mode: EditMode = EditMode.ADD
    product_id: int | None = None
    values: dict[str, Any] = field(default_factory=dict)


ConversationState = Union[SetupState, ClientState, ProductState, InvoiceState]


# Events


@dataclass(frozen=True)
class TextEntered:
    text: str


@dataclass(frozen=True)
class ClientPicked:
    client_id: int


@dataclass(frozen=True)
class NewClientRequested:
    pass


@dataclass(frozen=True)
class ProductPicked:
    product_id: int


@dataclass(frozen=True)
class CustomItemRequested:
    pass


@dataclass(frozen=True)
class ReviewRequested:
    pass


@dataclass(frozen=True)
class AddMoreRequested:
    pass


@dataclass(frozen=True)
class PayRequested:
    pass


@dataclass(frozen=True)
class CancelRequested:
    pass


Event = Union[
    TextEntered,
    ClientPicked,
    NewClientRequested,
    ProductPicked,
    CustomItemRequested,
    ReviewRequested,
    AddMoreRequested,
    PayRequested,
    CancelRequested,
]


# Effects


@dataclass(frozen=True)
class Button:
    label: str
    token: str


@dataclass(frozen=True)
class Reply:
    text: str
    buttons: tuple[tuple[Button, ...], ...] = ()


@dataclass(frozen=True)
class RequestPayment:
    reference: str
    title: str
    description: str
    amount: int


@dataclass(frozen=True)
class SaveProfile:
    fields: dict[str, Any]


@dataclass(frozen=True)
class CreateClient:
    fields: dict[str, Any]
    resume_invoice: InvoiceDraft | None = None


@dataclass(frozen=True)
class UpdateClient:
    client_id: int
    fields: dict[str, Any]


@dataclass(frozen=True)
class CreateProduct:
    fields: dict[str, Any]


@dataclass(frozen=True)
class UpdateProduct:
    product_id: int
    fields: dict[str, Any]


Effect = Union[Reply, RequestPayment, SaveProfile, CreateClient, UpdateClient, CreateProduct, UpdateProduct]


@dataclass(frozen=True)
class Transition:
    state: ConversationState | None
    effects: tuple[Effect, ...] = ()


@dataclass(frozen=True)
class InvoiceContext:
    """Read-only data a builder transition may consult."""

    user_id: int
    clients: Sequence[ClientRecord] = ()
    products: Sequence[ProductRecord] = ()
    now: datetime = field(default_factory=datetime.utcnow)
    payment_timeout: timedelta = timedelta(minutes=30)
    stars_price: int = 25
    currency: str = "EUR"

    def client(self, client_id: int | None) -> ClientRecord | None:
        return next((client for client in self.clients if client.id == client_id), None)

    def product(self, product_id: int | None) -> ProductRecord | None:
        return next((product for product in self.products if product.id == product_id), None)
