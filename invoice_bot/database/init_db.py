"""Create or upgrade the database schema (``python -m invoice_bot.database.init_db``)."""

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config as AlembicConfig
from sqlalchemy.engine import make_url

import invoice_bot.database.db as db_module
from invoice_bot.core.startup import bootstrap
from invoice_bot.database.models import Base

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _build_alembic_config(database_url: str) -> AlembicConfig:
    cfg = AlembicConfig(str(PROJECT_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(PROJECT_ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", database_url)
    return cfg


def create_schema() -> None:
    """Upgrade the bound database to the latest revision."""
    active_url = db_module.get_active_database_url()
    command.upgrade(_build_alembic_config(active_url), "head")

    Base.metadata.create_all(bind=db_module.get_engine())
    # Credentials live in the URL; only the backend name is logged.
    logger.info(
        "database.tables.created",
        extra={
            "event": "database.tables.created",
            "database_backend": make_url(active_url).get_backend_name(),
        },
    )


def init_db() -> None:
    bootstrap()
    create_schema()


if __name__ == "__main__":
    init_db()
