from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from invoice_bot.conversation.dispatcher import ConversationDispatcher
from invoice_bot.conversation.store import ConversationStore
from invoice_bot.core.config import get_config
from invoice_bot.core.exceptions import CollaboratorError
from invoice_bot.database.models import Base
from invoice_bot.services.client_service import ClientService
from invoice_bot.services.document_storage import DocumentStorage
from invoice_bot.services.product_service import ProductService
from invoice_bot.services.user_service import UserService

USER_ID = 1001
OTHER_USER_ID = 2002
FIXED_NOW = datetime(2026, 3, 14, 10, 0, 0)

COMPANY_PROFILE = {
    "company_name": "Northwind OÜ",
    "reg_number": "12345678",
    "vat_number": "EE100200300",
    "address": "Narva mnt 5",
    "city": "Tallinn",
    "zip_code": "10117",
    "phone": "+372 5555 1234",
    "email": "billing@northwind.ee",
    "bank_name": "LHV Pank",
    "iban": "EE382200221020145685",
    "swift": "LHVBEE22",
}


class MemoryStorage(DocumentStorage):
    def __init__(self) -> None:
        self.saved: dict[str, bytes] = {}

    def save(self, key: str, content: bytes) -> str:
        self.saved[key] = content
        return f"memory://{key}"


class FailingStorage(DocumentStorage):
    def save(self, key: str, content: bytes) -> str:
        raise CollaboratorError(f"Upload failed for {key}")


class Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'invoice_bot_test.db'}")
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    yield TestingSessionLocal
    engine.dispose()


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def test_config():
    return replace(
        get_config(),
        TELEGRAM_STARS_PRICE=25,
        PAYMENT_CURRENCY="XTR",
        INVOICE_CURRENCY="EUR",
        PAYMENT_TERMS_DAYS=30,
        PAYMENT_TIMEOUT_MINUTES=30,
        REFUND_WINDOW_HOURS=24,
        STORAGE_BACKEND="local",
    )


@pytest.fixture
def clock():
    return Clock(FIXED_NOW)


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def dispatcher(session_factory, storage, test_config, clock):
    return ConversationDispatcher(session_factory, ConversationStore(), storage, test_config, clock=clock)


@pytest.fixture
def configured_user(db_session):
    return UserService(db_session).save_profile(USER_ID, COMPANY_PROFILE)


@pytest.fixture
def make_client(db_session):
    def _make(name: str = "Acme Ltd", user_id: int = USER_ID, **fields):
        return ClientService(db_session).create_client(user_id, {"name": name, **fields})

    return _make


@pytest.fixture
def make_product(db_session):
    def _make(name: str = "Consulting", user_id: int = USER_ID, **fields):
        return ProductService(db_session).create_product(user_id, {"name": name, **fields})

    return _make


@pytest.fixture
def failing_storage():
    return FailingStorage()
