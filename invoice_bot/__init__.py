"""Telegram invoice bot: conversational invoice builder with PDF output."""

__version__ = "1.0.0"
