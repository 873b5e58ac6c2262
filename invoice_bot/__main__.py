"""Run the bot with long polling: ``python -m invoice_bot``."""

import logging

from telegram import Update

from invoice_bot.bot.telegram_bot import build_bot
from invoice_bot.core.startup import bootstrap
from invoice_bot.database.init_db import create_schema

logger = logging.getLogger(__name__)


def main() -> None:
    bootstrap(require_bot_token=True)
    create_schema()
    application = build_bot().get_application()
    logger.info("bot.polling.started", extra={"event": "bot.polling.started"})
    application.run_polling(allowed_updates=Update.ALL_TYPES)


if __name__ == "__main__":
    main()
