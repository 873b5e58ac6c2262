"""Configuration module for the invoice bot."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from urllib.parse import urlparse

from dotenv import load_dotenv

from invoice_bot.core.enums import StorageBackend
from invoice_bot.core.exceptions import ConfigurationError

load_dotenv()


def _as_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Config:
    """Runtime configuration with validation."""

    APP_NAME: str
    APP_VERSION: str
    ENV: str
    DEBUG: bool
    DATABASE_URL: str
    DB_CONNECTIVITY_REQUIRED: bool
    TELEGRAM_BOT_TOKEN: str | None
    TELEGRAM_STARS_PRICE: int
    PAYMENT_CURRENCY: str
    INVOICE_CURRENCY: str
    PAYMENT_TERMS_DAYS: int
    PAYMENT_TIMEOUT_MINUTES: int
    REFUND_WINDOW_HOURS: int
    STORAGE_BACKEND: str
    LOCAL_STORAGE_DIR: str
    S3_BUCKET: str | None
    S3_ENDPOINT: str | None
    S3_ACCESS_KEY: str | None
    S3_SECRET_KEY: str | None
    LOG_LEVEL: str
    LOG_FILE: str

    @property
    def is_production(self) -> bool:
        return self.ENV == "production"


def _build_config(env: str | None = None) -> Config:
    resolved_env = (env or os.getenv("ENV", "development")).strip().lower()
    debug = _as_bool(os.getenv("DEBUG"), default=(resolved_env != "production"))

    config = Config(
        APP_NAME="Invoice Generator Bot",
        APP_VERSION=os.getenv("APP_VERSION", "1.0.0"),
        ENV=resolved_env,
        DEBUG=debug if resolved_env != "production" else False,
        DATABASE_URL=os.getenv("DATABASE_URL", "sqlite:///./invoice_bot.db"),
        DB_CONNECTIVITY_REQUIRED=_as_bool(
            os.getenv("DB_CONNECTIVITY_REQUIRED"), default=(resolved_env == "production")
        ),
        TELEGRAM_BOT_TOKEN=os.getenv("TELEGRAM_BOT_TOKEN"),
        TELEGRAM_STARS_PRICE=int(os.getenv("TELEGRAM_STARS_PRICE", "25")),
        PAYMENT_CURRENCY=os.getenv("PAYMENT_CURRENCY", "XTR").upper(),
        INVOICE_CURRENCY=os.getenv("INVOICE_CURRENCY", "EUR").upper(),
        PAYMENT_TERMS_DAYS=int(os.getenv("PAYMENT_TERMS_DAYS", "30")),
        PAYMENT_TIMEOUT_MINUTES=int(os.getenv("PAYMENT_TIMEOUT_MINUTES", "30")),
        REFUND_WINDOW_HOURS=int(os.getenv("REFUND_WINDOW_HOURS", "24")),
        STORAGE_BACKEND=os.getenv("STORAGE_BACKEND", StorageBackend.LOCAL.value).strip().lower(),
        LOCAL_STORAGE_DIR=os.getenv("LOCAL_STORAGE_DIR", "./invoices"),
        S3_BUCKET=os.getenv("S3_BUCKET") or os.getenv("SUPABASE_STORAGE_BUCKET"),
        S3_ENDPOINT=os.getenv("S3_ENDPOINT"),
        S3_ACCESS_KEY=os.getenv("S3_ACCESS_KEY"),
        S3_SECRET_KEY=os.getenv("S3_SECRET_KEY"),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO").upper(),
        LOG_FILE=os.getenv("LOG_FILE", ""),
    )
    _validate_config(config)
    return config


def _validate_database_url(database_url: str) -> None:
    parsed = urlparse(database_url)
    if parsed.scheme not in {"sqlite", "postgresql", "postgresql+psycopg2"}:
        raise ConfigurationError(
            "DATABASE_URL must use sqlite:// or postgresql:// style URL."
        )
    if parsed.scheme.startswith("postgresql") and not parsed.hostname:
        raise ConfigurationError("PostgreSQL DATABASE_URL is missing hostname.")


def _validate_config(config: Config) -> None:
    _validate_database_url(config.DATABASE_URL)

    if config.TELEGRAM_STARS_PRICE < 1:
        raise ConfigurationError("TELEGRAM_STARS_PRICE must be >= 1.")
    if config.PAYMENT_TERMS_DAYS < 0:
        raise ConfigurationError("PAYMENT_TERMS_DAYS must be >= 0.")
    if config.PAYMENT_TIMEOUT_MINUTES < 1:
        raise ConfigurationError("PAYMENT_TIMEOUT_MINUTES must be >= 1.")
    if config.REFUND_WINDOW_HOURS < 0:
        raise ConfigurationError("REFUND_WINDOW_HOURS must be >= 0.")
    if len(config.INVOICE_CURRENCY) != 3:
        raise ConfigurationError("INVOICE_CURRENCY must be a 3-letter currency code.")
    if config.STORAGE_BACKEND not in {backend.value for backend in StorageBackend}:
        raise ConfigurationError("STORAGE_BACKEND must be one of local/s3.")
    if config.STORAGE_BACKEND == StorageBackend.S3.value and not config.S3_BUCKET:
        raise ConfigurationError("S3_BUCKET is required when STORAGE_BACKEND=s3.")
    if config.LOG_LEVEL not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        raise ConfigurationError("LOG_LEVEL must be one of DEBUG/INFO/WARNING/ERROR/CRITICAL.")


@lru_cache(maxsize=8)
def get_config(env: str | None = None) -> Config:
    """Get validated configuration for the requested environment."""
    return _build_config(env)
