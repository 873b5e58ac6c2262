"""User (company profile) service."""

from __future__ import annotations

import logging
from typing import Any

from invoice_bot.database.models import User
from invoice_bot.schemas import UserProfile
from invoice_bot.services.base_service import BaseService

logger = logging.getLogger(__name__)

PROFILE_FIELDS = (
    "company_name",
    "reg_number",
    "vat_number",
    "address",
    "city",
    "zip_code",
    "phone",
    "email",
    "bank_name",
    "iban",
    "swift",
)


class UserService(BaseService):
    """Service for registering Telegram users and storing their company profile."""

    def _get(self, telegram_id: int) -> User | None:
        return self.db.get(User, telegram_id)

    def get_profile(self, telegram_id: int) -> UserProfile | None:
        user = self._get(telegram_id)
        return UserProfile.model_validate(user) if user else None

    def ensure_user(self, telegram_id: int) -> tuple[UserProfile, bool]:
        """Return the user's profile, creating an empty one on first contact."""
        user = self._get(telegram_id)
        created = user is None
        if created:
            user = User(telegram_id=telegram_id)
            self.db.add(user)
            self.commit()
            logger.info("user.registered", extra={"event": "user.registered", "user_id": telegram_id})
        return UserProfile.model_validate(user), created

    def save_profile(self, telegram_id: int, fields: dict[str, Any]) -> UserProfile:
        user = self._get(telegram_id)
        if user is None:
            user = User(telegram_id=telegram_id)
            self.db.add(user)
        for name in PROFILE_FIELDS:
            if name in fields:
                setattr(user, name, fields[name])
        self.commit()
        logger.info("user.profile.saved", extra={"event": "user.profile.saved", "user_id": telegram_id})
        return UserProfile.model_validate(user)
