"""Telegram transport built on python-telegram-bot."""
