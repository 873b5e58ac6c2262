"""
python-telegram-bot wiring.

Handlers only translate Telegram updates into dispatcher calls and deliver
the dispatcher's outbound items. The dispatcher is synchronous (database,
rendering, storage), so it runs in a worker thread per update.
"""

from __future__ import annotations

import asyncio
import logging
from io import BytesIO

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, LabeledPrice, Update
from telegram.error import TelegramError
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    PreCheckoutQueryHandler,
    filters,
)

from invoice_bot.conversation.dispatcher import (
    ConversationDispatcher,
    Document,
    Outbound,
    PaymentInvoice,
    StarRefund,
)
from invoice_bot.conversation.state import Reply
from invoice_bot.conversation.store import ConversationStore
from invoice_bot.core.config import Config, get_config
from invoice_bot.database.db import get_session_factory
from invoice_bot.services.document_storage import build_document_storage
from invoice_bot.services.payment_gate import PaymentReceipt

logger = logging.getLogger(__name__)

COMMANDS = (
    "start",
    "help",
    "cancel",
    "setup",
    "profile",
    "clients",
    "addclient",
    "editclient",
    "deleteclient",
    "products",
    "addproduct",
    "editproduct",
    "deleteproduct",
    "newinvoice",
    "invoices",
    "invoice",
    "paysupport",
    "refund",
)

REFUND_FAILED = "❌ Failed to process refund. Please contact support."


def _keyboard(reply: Reply) -> InlineKeyboardMarkup | None:
    if not reply.buttons:
        return None
    return InlineKeyboardMarkup(
        [[InlineKeyboardButton(button.label, callback_data=button.token) for button in row] for row in reply.buttons]
    )


class InvoiceTelegramBot:
    def __init__(self, dispatcher: ConversationDispatcher, config: Config | None = None) -> None:
        self.dispatcher = dispatcher
        self.config = config or get_config()

    def get_application(self) -> Application:
        """Build the application with all handlers registered."""
        application = Application.builder().token(self.config.TELEGRAM_BOT_TOKEN).build()
        for command in COMMANDS:
            application.add_handler(CommandHandler(command, self._command))
        application.add_handler(CallbackQueryHandler(self._callback))
        application.add_handler(PreCheckoutQueryHandler(self._pre_checkout))
        application.add_handler(MessageHandler(filters.SUCCESSFUL_PAYMENT, self._successful_payment))
        application.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, self._text))
        application.add_error_handler(self._error_handler)
        return application

    async def _deliver(self, context: ContextTypes.DEFAULT_TYPE, chat_id: int, user_id: int, items: list[Outbound]) -> None:
        for item in items:
            if isinstance(item, Reply):
                await context.bot.send_message(chat_id=chat_id, text=item.text, reply_markup=_keyboard(item))
            elif isinstance(item, PaymentInvoice):
                await context.bot.send_invoice(
                    chat_id=chat_id,
                    title=item.title,
                    description=item.description,
                    payload=item.payload,
                    provider_token="",
                    currency=item.currency,
                    prices=[LabeledPrice(item.label, item.amount)],
                )
            elif isinstance(item, Document):
                await context.bot.send_document(
                    chat_id=chat_id,
                    document=BytesIO(item.content),
                    filename=item.filename,
                    caption=item.caption,
                )
            elif isinstance(item, StarRefund):
                await self._refund(context, chat_id, user_id, item.charge_id)

    async def _refund(self, context: ContextTypes.DEFAULT_TYPE, chat_id: int, user_id: int, charge_id: str) -> None:
        try:
            await context.bot.refund_star_payment(user_id=user_id, telegram_payment_charge_id=charge_id)
        except TelegramError:
            logger.exception("payment.refund.failed", extra={"event": "payment.refund.failed", "user_id": user_id})
            await context.bot.send_message(chat_id=chat_id, text=REFUND_FAILED)
            return
        items = await asyncio.to_thread(self.dispatcher.complete_refund, user_id, charge_id)
        await self._deliver(context, chat_id, user_id, items)

    async def _command(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        message = update.effective_message
        command = message.text.split()[0].lstrip("/").split("@")[0].lower()
        args = " ".join(context.args or [])
        user_id = update.effective_user.id
        items = await asyncio.to_thread(self.dispatcher.handle_command, user_id, command, args)
        await self._deliver(context, update.effective_chat.id, user_id, items)

    async def _text(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        user_id = update.effective_user.id
        items = await asyncio.to_thread(self.dispatcher.handle_user_message, user_id, update.effective_message.text)
        await self._deliver(context, update.effective_chat.id, user_id, items)

    async def _callback(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        query = update.callback_query
        await query.answer()
        user_id = query.from_user.id
        items = await asyncio.to_thread(self.dispatcher.handle_callback, user_id, query.data or "")
        await self._deliver(context, update.effective_chat.id, user_id, items)

    async def _pre_checkout(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        query = update.pre_checkout_query
        decision = await asyncio.to_thread(
            self.dispatcher.handle_pre_checkout,
            query.from_user.id,
            query.invoice_payload,
            query.total_amount,
            query.currency,
        )
        if decision.ok:
            await query.answer(ok=True)
        else:
            await query.answer(ok=False, error_message=decision.error_message)

    async def _successful_payment(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        payment = update.effective_message.successful_payment
        receipt = PaymentReceipt(
            payload=payment.invoice_payload,
            telegram_payment_charge_id=payment.telegram_payment_charge_id,
            provider_payment_charge_id=payment.provider_payment_charge_id,
            total_amount=payment.total_amount,
            currency=payment.currency,
        )
        user_id = update.effective_user.id
        items = await asyncio.to_thread(self.dispatcher.handle_successful_payment, user_id, receipt)
        await self._deliver(context, update.effective_chat.id, user_id, items)

    async def _error_handler(self, update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
        logger.error(
            "telegram.update.failed",
            exc_info=context.error,
            extra={"event": "telegram.update.failed"},
        )


def build_bot(config: Config | None = None) -> InvoiceTelegramBot:
    cfg = config or get_config()
    dispatcher = ConversationDispatcher(
        session_factory=get_session_factory(),
        store=ConversationStore(),
        storage=build_document_storage(cfg),
        config=cfg,
    )
    return InvoiceTelegramBot(dispatcher, cfg)
