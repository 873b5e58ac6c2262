"""Chat texts, inline keyboards and callback tokens."""

from __future__ import annotations

from collections.abc import Sequence

from invoice_bot.conversation.state import Button, DraftLine, Reply
from invoice_bot.schemas import ClientRecord, InvoiceRecord, PaymentRecord, ProductRecord, UserProfile
from invoice_bot.services.totals import InvoiceTotals, line_total
from invoice_bot.utils.formatters import (
    format_client_name,
    format_currency,
    format_date,
    format_percent,
    format_product_name,
    format_quantity,
    or_not_set,
    truncate_text,
)

BUTTON_TEXT_LIMIT = 30

# Callback tokens. Ids are appended after the last colon.
INV_CLIENT = "inv:client:"
INV_NEW_CLIENT = "inv:newclient"
INV_PRODUCT = "inv:product:"
INV_CUSTOM = "inv:custom"
INV_REVIEW = "inv:review"
INV_MORE = "inv:more"
INV_PAY = "inv:pay"
INV_CANCEL = "inv:cancel"
CLIENT_VIEW = "client:view:"
CLIENT_EDIT = "client:edit:"
CLIENT_DELETE = "client:delete:"
CLIENT_CONFIRM_DELETE = "client:confirm_delete:"
CLIENT_ADD = "client:add"
CLIENTS_LIST = "clients:list"
PRODUCT_VIEW = "product:view:"
PRODUCT_EDIT = "product:edit:"
PRODUCT_DELETE = "product:delete:"
PRODUCT_CONFIRM_DELETE = "product:confirm_delete:"
PRODUCT_ADD = "product:add"
PRODUCTS_LIST = "products:list"
ARCHIVE_PAY = "archive:pay:"

WELCOME_TEXT = """🎉 Welcome to Invoice Generator Bot!

This bot helps you create professional invoices and get paid through Telegram Stars.

Available commands:
📋 /setup - Configure your company information
👥 /clients - Manage clients
📦 /products - Manage products/services
📄 /newinvoice - Create new invoice
📊 /invoices - View recent invoices
❓ /help - Get help"""

HELP_TEXT = """📖 Invoice Generator Bot Help

Setup Commands:
/setup - Configure company information
/profile - View current company settings

Client Management:
/clients - List all clients
/addclient - Add new client
/editclient - Edit existing client
/deleteclient - Remove client

Product Management:
/products - List all products/services
/addproduct - Add new product/service
/editproduct - Edit existing product
/deleteproduct - Remove product

Invoice Management:
/newinvoice - Create new invoice
/invoices - View recent invoices
/invoice [number] - Regenerate specific invoice

Payment:
/paysupport - Get payment support and refund info
/refund [payment_id] - Request refund for a payment

Other:
/cancel - Cancel current operation
/help - Show this help message"""

SETUP_REQUIRED = "⚠️ Please set up your company information first using /setup"
OPERATION_CANCELLED = "❌ Operation cancelled."
INVOICE_CANCELLED = "❌ Invoice creation cancelled."
GENERIC_FAILURE = "❌ Something went wrong. Please try again."
INVOICE_DATA_MISSING = "❌ Error: Invoice data not found. Please try creating the invoice again."
SETUP_COMPLETED = "✅ Company setup completed successfully! You can now start creating invoices with /newinvoice"
NO_ACTIVE_FLOW = "🤔 Nothing in progress. Use /help to see available commands."
SESSION_EXPIRED = "⚠️ This invoice session has expired. Use /newinvoice to start again."
UNKNOWN_ACTION = "⚠️ Unknown action."


def welcome_text(profile: UserProfile) -> str:
    status = (
        "✅ Your company is set up. You can start creating invoices!"
        if profile.is_configured
        else "⚠️ Please run /setup first to configure your company details."
    )
    return f"{WELCOME_TEXT}\n\n{status}"


def profile_text(profile: UserProfile | None) -> str:
    if profile is None or not profile.is_configured:
        return "⚠️ No company profile found. Please run /setup first."
    return "\n".join(
        (
            "🏢 Company Profile:",
            "",
            f"Company: {profile.company_name}",
            f"Registration: {or_not_set(profile.reg_number)}",
            f"VAT Number: {or_not_set(profile.vat_number)}",
            f"Address: {or_not_set(profile.address)}",
            f"City: {or_not_set(profile.city)}",
            f"Zip Code: {or_not_set(profile.zip_code)}",
            f"Phone: {or_not_set(profile.phone)}",
            f"Email: {or_not_set(profile.email)}",
            "",
            "Banking:",
            f"Bank: {or_not_set(profile.bank_name)}",
            f"IBAN: {or_not_set(profile.iban)}",
            f"SWIFT: {or_not_set(profile.swift)}",
            "",
            "Use /setup to update your information.",
        )
    )


def paysupport_text(refund_window_hours: int) -> str:
    return (
        "🛠️ Payment Support\n\n"
        "If you're experiencing issues with payments or need a refund, please provide:\n\n"
        "• Your payment transaction ID\n"
        "• Invoice number\n"
        "• Description of the issue\n\n"
        "Refund Policy:\n"
        f"- Refunds are available within {refund_window_hours} hours of payment\n"
        "- Technical issues: Full refund\n"
        "- PDF delivery failures: Full refund\n\n"
        "Use /refund [payment_id] with the Payment ID from your invoice message."
    )


def _button(label: str, token: str) -> tuple[Button, ...]:
    return (Button(truncate_text(label, BUTTON_TEXT_LIMIT), token),)


# Invoice builder


def select_client_reply(clients: Sequence[ClientRecord], notice: str | None = None) -> Reply:
    rows = [_button(format_client_name(client.name, client.country), f"{INV_CLIENT}{client.id}") for client in clients]
    rows.append(_button("➕ Add New Client", INV_NEW_CLIENT))
    text = "📄 Creating New Invoice\n\nSelect a client:"
    if notice:
        text = f"{notice}\n\n{text}"
    return Reply(text, tuple(rows))


def item_source_keyboard(products: Sequence[ProductRecord], currency: str) -> tuple[tuple[Button, ...], ...]:
    rows = [
        _button(format_product_name(product.name, product.default_price, currency), f"{INV_PRODUCT}{product.id}")
        for product in products
    ]
    rows.append(_button("✏️ Custom Item", INV_CUSTOM))
    rows.append(_button("📊 Review Invoice", INV_REVIEW))
    return tuple(rows)


def item_added_text(line: DraftLine, currency: str) -> str:
    return (
        f"✅ Item added: {line.description}\n"
        f"Quantity: {format_quantity(line.quantity)} × {format_currency(line.unit_price, currency)}"
        f" = {format_currency(line.line_total, currency)}\n\n"
        "What would you like to do next?"
    )


ITEM_ADDED_KEYBOARD = (
    _button("➕ Add More Items", INV_MORE),
    _button("📊 Review Invoice", INV_REVIEW),
)

REVIEW_KEYBOARD = (
    _button("➕ Add More Items", INV_MORE),
    _button("💰 Pay & Generate PDF", INV_PAY),
    _button("❌ Cancel", INV_CANCEL),
)


def review_text(
    client_name: str,
    lines: Sequence[DraftLine],
    totals: InvoiceTotals,
    stars_price: int,
    currency: str,
) -> str:
    parts = ["📄 Invoice Review", "", f"Client: {client_name}", "", "Items:"]
    for index, line in enumerate(lines, start=1):
        gross = line_total(line.quantity, line.unit_price, line.vat_rate)
        parts.append(f"{index}. {line.description}")
        parts.append(
            f"   {format_quantity(line.quantity)} × {format_currency(line.unit_price, currency)}"
            f" ({format_percent(line.vat_rate)} VAT)"
        )
        parts.append(f"   Total: {format_currency(gross, currency)}")
        parts.append("")
    parts.append(f"Subtotal: {format_currency(totals.subtotal, currency)}")
    if totals.vat_breakdown:
        parts.append("VAT:")
        for entry in totals.vat_breakdown:
            parts.append(f"   {format_percent(entry.rate)}: {format_currency(entry.vat_amount, currency)}")
    parts.append(f"Total: {format_currency(totals.total, currency)}")
    parts.append("")
    parts.append(f"💰 Pay {stars_price} Stars to generate PDF")
    return "\n".join(parts)


# Clients and products


def clients_list_reply(clients: Sequence[ClientRecord]) -> Reply:
    if not clients:
        return Reply("👥 No clients found. Use /addclient to add your first client.")
    rows = [_button(format_client_name(client.name, client.country), f"{CLIENT_VIEW}{client.id}") for client in clients]
    rows.append(_button("➕ Add New Client", CLIENT_ADD))
    return Reply("👥 Your Clients:", tuple(rows))


def client_picker_reply(clients: Sequence[ClientRecord], title: str, token_prefix: str) -> Reply:
    if not clients:
        return Reply("👥 No clients found. Use /addclient to add your first client.")
    rows = [_button(client.name, f"{token_prefix}{client.id}") for client in clients]
    return Reply(title, tuple(rows))


def client_info_reply(client: ClientRecord) -> Reply:
    text = "\n".join(
        (
            f"👤 {client.name}",
            "",
            f"Address: {or_not_set(client.address_line1)}",
            f"Address 2: {or_not_set(client.address_line2)}",
            f"Country: {or_not_set(client.country)}",
            f"Registration: {or_not_set(client.reg_number)}",
            f"VAT Number: {or_not_set(client.vat_number)}",
        )
    )
    rows = (
        (Button("✏️ Edit", f"{CLIENT_EDIT}{client.id}"), Button("🗑️ Delete", f"{CLIENT_DELETE}{client.id}")),
        _button("⬅️ Back to list", CLIENTS_LIST),
    )
    return Reply(text, rows)


def confirm_delete_reply(name: str, confirm_token: str, back_token: str) -> Reply:
    rows = ((Button("✅ Yes, delete", confirm_token), Button("❌ No", back_token)),)
    return Reply(f'🗑️ Are you sure you want to delete "{name}"?', rows)


def products_list_reply(products: Sequence[ProductRecord], currency: str) -> Reply:
    if not products:
        return Reply("📦 No products/services found. Use /addproduct to add your first product.")
    rows = [
        _button(format_product_name(product.name, product.default_price, currency), f"{PRODUCT_VIEW}{product.id}")
        for product in products
    ]
    rows.append(_button("➕ Add New Product", PRODUCT_ADD))
    return Reply("📦 Your Products/Services:", tuple(rows))


def product_picker_reply(products: Sequence[ProductRecord], title: str, token_prefix: str) -> Reply:
    if not products:
        return Reply("📦 No products/services found. Use /addproduct to add your first product.")
    rows = [_button(product.name, f"{token_prefix}{product.id}") for product in products]
    return Reply(title, tuple(rows))


def product_info_reply(product: ProductRecord, currency: str) -> Reply:
    price = format_currency(product.default_price, currency) if product.default_price is not None else or_not_set(None)
    vat = format_percent(product.default_vat_rate) if product.default_vat_rate is not None else or_not_set(None)
    text = "\n".join(
        (
            f"📦 {product.name}",
            "",
            f"Description: {or_not_set(product.description)}",
            f"Default price: {price}",
            f"Default VAT: {vat}",
        )
    )
    rows = (
        (Button("✏️ Edit", f"{PRODUCT_EDIT}{product.id}"), Button("🗑️ Delete", f"{PRODUCT_DELETE}{product.id}")),
        _button("⬅️ Back to list", PRODUCTS_LIST),
    )
    return Reply(text, rows)


# Archive and payments


def invoices_list_text(invoices: Sequence[InvoiceRecord], client_names: dict[int, str], currency: str) -> str:
    if not invoices:
        return "📄 No invoices found. Use /newinvoice to create your first invoice."
    parts = ["📄 Recent Invoices:", ""]
    for invoice in invoices:
        parts.append(f"{invoice.invoice_number} - {client_names.get(invoice.client_id, 'Unknown Client')}")
        parts.append(f"Date: {format_date(invoice.issue_date)}")
        parts.append(f"Amount: {format_currency(invoice.total_amount, currency)}")
        parts.append("")
    return "\n".join(parts).rstrip()


def invoice_found_reply(invoice: InvoiceRecord, stars_price: int, currency: str) -> Reply:
    text = (
        f"📄 Invoice {invoice.invoice_number} found!\n\n"
        f"Total: {format_currency(invoice.total_amount, currency)}\n\n"
        f"Pay {stars_price} Stars to regenerate the PDF."
    )
    return Reply(text, (_button("💰 Pay & Generate PDF", f"{ARCHIVE_PAY}{invoice.id}"),))


def document_caption(invoice_number: str, payment_amount: int, payment_currency: str, charge_id: str) -> str:
    return (
        f"✅ Invoice {invoice_number} generated successfully!\n\n"
        f"Total: {payment_amount} {payment_currency}\n"
        f"Payment ID: {charge_id}\n\n"
        "📝 Save the Payment ID for potential refunds (use /refund [payment_id])"
    )


def refund_done_text(payment: PaymentRecord) -> str:
    return (
        "✅ Refund processed successfully!\n\n"
        f"Refunded: {payment.amount} {payment.currency}\n"
        f"Transaction ID: {payment.telegram_payment_charge_id}"
    )


def finalize_failure_text(charge_id: str) -> str:
    return (
        "❌ Error processing payment. Your invoice draft was kept.\n\n"
        f"Payment ID: {charge_id}\n"
        "Use /paysupport for help or /refund [payment_id] to get your Stars back."
    )
