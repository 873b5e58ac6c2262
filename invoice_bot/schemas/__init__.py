"""Read models shared between services, flows and the renderer."""

from invoice_bot.schemas.records import (
    ClientRecord,
    InvoiceLineRecord,
    InvoiceRecord,
    PaymentRecord,
    ProductRecord,
    UserProfile,
)

__all__ = [
    "ClientRecord",
    "InvoiceLineRecord",
    "InvoiceRecord",
    "PaymentRecord",
    "ProductRecord",
    "UserProfile",
]
