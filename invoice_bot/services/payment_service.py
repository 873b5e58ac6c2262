"""Payment records for Telegram Stars charges."""

from __future__ import annotations

import logging
from datetime import datetime

from invoice_bot.core.enums import PAYMENT_COMPLETED, PAYMENT_REFUNDED
from invoice_bot.database.models import Payment
from invoice_bot.schemas import PaymentRecord
from invoice_bot.services.base_service import BaseService

logger = logging.getLogger(__name__)


class PaymentService(BaseService):
    def create_payment(
        self,
        *,
        user_id: int,
        telegram_payment_charge_id: str,
        amount: int,
        currency: str,
        payload: str,
        invoice_id: int | None = None,
        provider_payment_charge_id: str | None = None,
        created_at: datetime | None = None,
    ) -> PaymentRecord:
        payment = Payment(
            user_id=user_id,
            invoice_id=invoice_id,
            telegram_payment_charge_id=telegram_payment_charge_id,
            provider_payment_charge_id=provider_payment_charge_id,
            amount=amount,
            currency=currency,
            payload=payload,
            status=PAYMENT_COMPLETED,
            refunded=False,
            created_at=created_at or datetime.utcnow(),
        )
        self.db.add(payment)
        self.db.flush()
        return PaymentRecord.model_validate(payment)

    def find_by_charge_id(self, charge_id: str) -> PaymentRecord | None:
        payment = (
            self.db.query(Payment)
            .filter(Payment.telegram_payment_charge_id == charge_id)
            .first()
        )
        return PaymentRecord.model_validate(payment) if payment else None

    def mark_refunded(self, charge_id: str, refunded_at: datetime | None = None) -> PaymentRecord | None:
        payment = (
            self.db.query(Payment)
            .filter(Payment.telegram_payment_charge_id == charge_id)
            .first()
        )
        if payment is None:
            return None
        payment.refunded = True
        payment.status = PAYMENT_REFUNDED
        payment.refund_date = refunded_at or datetime.utcnow()
        self.commit()
        logger.info("payment.refunded", extra={"event": "payment.refunded", "user_id": payment.user_id})
        return PaymentRecord.model_validate(payment)
