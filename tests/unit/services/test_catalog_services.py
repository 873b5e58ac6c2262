from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from invoice_bot.database.models import Payment
from invoice_bot.services.client_service import ClientService
from invoice_bot.services.invoice_service import InvoiceService
from invoice_bot.services.payment_service import PaymentService
from invoice_bot.services.product_service import ProductService
from invoice_bot.services.user_service import UserService

USER_ID = 1001
OTHER_USER_ID = 2002


def test_ensure_user_registers_once(db_session):
    service = UserService(db=db_session)

    profile, created = service.ensure_user(USER_ID)
    again, created_again = service.ensure_user(USER_ID)

    assert created is True
    assert created_again is False
    assert profile.telegram_id == again.telegram_id == USER_ID
    assert profile.is_configured is False


def test_save_profile_replaces_fields(db_session):
    service = UserService(db=db_session)
    service.save_profile(USER_ID, {"company_name": "Old Name", "city": "Tartu"})

    profile = service.save_profile(USER_ID, {"company_name": "Northwind OÜ", "city": "Tallinn", "swift": None})

    assert profile.is_configured is True
    assert profile.company_name == "Northwind OÜ"
    assert profile.city == "Tallinn"
    assert service.get_profile(OTHER_USER_ID) is None


def test_clients_are_listed_by_name_and_scoped_to_owner(db_session):
    service = ClientService(db=db_session)
    service.create_client(USER_ID, {"name": "Zeta"})
    service.create_client(USER_ID, {"name": "Acme", "country": "Estonia"})
    foreign = service.create_client(OTHER_USER_ID, {"name": "Foreign"})

    assert [client.name for client in service.list_clients(USER_ID)] == ["Acme", "Zeta"]
    assert service.get_client(foreign.id, USER_ID) is None
    assert service.update_client(foreign.id, USER_ID, {"name": "Hijack"}) is None


def test_update_client_changes_given_fields_only(db_session):
    service = ClientService(db=db_session)
    client = service.create_client(USER_ID, {"name": "Acme", "country": "Estonia"})

    updated = service.update_client(client.id, USER_ID, {"vat_number": "EE123"})

    assert updated.name == "Acme"
    assert updated.country == "Estonia"
    assert updated.vat_number == "EE123"


def test_client_with_invoices_cannot_be_deleted(db_session):
    clients = ClientService(db=db_session)
    used = clients.create_client(USER_ID, {"name": "Used"})
    unused = clients.create_client(USER_ID, {"name": "Unused"})
    InvoiceService(db=db_session).create_invoice(
        user_id=USER_ID,
        client_id=used.id,
        invoice_number="2026001",
        issue_date=date(2026, 3, 1),
        due_date=date(2026, 3, 31),
        subtotal=Decimal("10"),
        vat_total=Decimal("0"),
        total_amount=Decimal("10"),
    )
    db_session.commit()

    assert clients.delete_client(used.id, USER_ID) is False
    assert clients.delete_client(unused.id, OTHER_USER_ID) is False
    assert clients.delete_client(unused.id, USER_ID) is True
    assert [client.name for client in clients.list_clients(USER_ID)] == ["Used"]


def test_product_crud(db_session):
    service = ProductService(db=db_session)
    product = service.create_product(
        USER_ID, {"name": "Consulting", "default_price": Decimal("100.00"), "default_vat_rate": 20}
    )

    updated = service.update_product(product.id, USER_ID, {"default_price": Decimal("120.00")})

    assert updated.default_price == Decimal("120.00")
    assert updated.default_vat_rate == 20
    assert service.get_product(product.id, OTHER_USER_ID) is None
    assert service.delete_product(product.id, OTHER_USER_ID) is False
    assert service.delete_product(product.id, USER_ID) is True
    assert service.list_products(USER_ID) == []


def test_mark_refunded_records_refund(db_session):
    service = PaymentService(db=db_session)
    service.create_payment(
        user_id=USER_ID,
        telegram_payment_charge_id="charge-1",
        amount=25,
        currency="XTR",
        payload="draft:1001:1",
    )
    db_session.commit()
    refunded_at = datetime(2026, 3, 14, 12, 0, 0)

    payment = service.mark_refunded("charge-1", refunded_at=refunded_at)

    assert payment.refunded is True
    assert payment.status == "refunded"
    assert payment.refund_date == refunded_at
    assert service.mark_refunded("missing") is None


def test_failed_commit_rolls_back_and_keeps_session_usable(db_session):
    service = PaymentService(db=db_session)
    for _ in range(2):
        db_session.add(Payment(user_id=USER_ID, telegram_payment_charge_id="charge-1", amount=25, currency="XTR"))

    with pytest.raises(IntegrityError):
        service.commit()

    assert db_session.query(Payment).count() == 0
