"""Client service for per-user client CRUD."""

from __future__ import annotations

import logging
from typing import Any

from invoice_bot.database.models import Client, Invoice
from invoice_bot.schemas import ClientRecord
from invoice_bot.services.base_service import BaseService

logger = logging.getLogger(__name__)

CLIENT_FIELDS = ("name", "address_line1", "address_line2", "country", "reg_number", "vat_number")


class ClientService(BaseService):
    def _get_owned(self, client_id: int, user_id: int) -> Client | None:
        return (
            self.db.query(Client)
            .filter(Client.id == client_id, Client.user_id == user_id)
            .first()
        )

    def create_client(self, user_id: int, fields: dict[str, Any]) -> ClientRecord:
        client = Client(user_id=user_id, **{name: fields.get(name) for name in CLIENT_FIELDS})
        self.db.add(client)
        self.commit()
        self.db.refresh(client)
        logger.info("client.created", extra={"event": "client.created", "user_id": user_id})
        return ClientRecord.model_validate(client)

    def get_client(self, client_id: int, user_id: int) -> ClientRecord | None:
        client = self._get_owned(client_id, user_id)
        return ClientRecord.model_validate(client) if client else None

    def list_clients(self, user_id: int) -> list[ClientRecord]:
        clients = self.db.query(Client).filter(Client.user_id == user_id).order_by(Client.name).all()
        return [ClientRecord.model_validate(client) for client in clients]

    def update_client(self, client_id: int, user_id: int, fields: dict[str, Any]) -> ClientRecord | None:
        client = self._get_owned(client_id, user_id)
        if client is None:
            return None
        for name in CLIENT_FIELDS:
            if name in fields:
                setattr(client, name, fields[name])
        self.commit()
        return ClientRecord.model_validate(client)

    def has_invoices(self, client_id: int) -> bool:
        return self.db.query(Invoice.id).filter(Invoice.client_id == client_id).first() is not None

    def delete_client(self, client_id: int, user_id: int) -> bool:
        """Delete a client; clients referenced by invoices are kept."""
        client = self._get_owned(client_id, user_id)
        if client is None or self.has_invoices(client_id):
            return False
        self.db.delete(client)
        self.commit()
        logger.info("client.deleted", extra={"event": "client.deleted", "user_id": user_id})
        return True
