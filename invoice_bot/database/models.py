from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .db import Base


class User(Base):
    __tablename__ = "users"

    telegram_id = Column(BigInteger, primary_key=True, autoincrement=False)
    company_name = Column(String)
    reg_number = Column(String)
    vat_number = Column(String)
    address = Column(String)
    city = Column(String)
    zip_code = Column(String)
    phone = Column(String)
    email = Column(String)
    bank_name = Column(String)
    iban = Column(String)
    swift = Column(String)
    created_at = Column(DateTime, default=datetime.utcnow)

    clients = relationship("Client", back_populates="user")
    products = relationship("Product", back_populates="user")


class Client(Base):
    __tablename__ = "clients"
    __table_args__ = (Index("idx_clients_user_name", "user_id", "name"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(BigInteger, ForeignKey("users.telegram_id"), nullable=False)
    name = Column(String, nullable=False)
    address_line1 = Column(String)
    address_line2 = Column(String)
    country = Column(String)
    reg_number = Column(String)
    vat_number = Column(String)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="clients")


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (Index("idx_products_user_name", "user_id", "name"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(BigInteger, ForeignKey("users.telegram_id"), nullable=False)
    name = Column(String, nullable=False)
    description = Column(Text)
    default_price = Column(Numeric(12, 2))
    default_vat_rate = Column(Integer)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="products")


class Invoice(Base):
    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_invoices_invoice_number"),
        Index("idx_invoices_user_created", "user_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(BigInteger, ForeignKey("users.telegram_id"), nullable=False)
    invoice_number = Column(String, nullable=False)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False)
    issue_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    subtotal = Column(Numeric(12, 2), nullable=False)
    vat_total = Column(Numeric(12, 2), nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)
    pdf_path = Column(String, nullable=False, default="")
    created_at = Column(DateTime, default=datetime.utcnow)

    client = relationship("Client")
    lines = relationship("InvoiceLine", back_populates="invoice", order_by="InvoiceLine.id")


class InvoiceLine(Base):
    __tablename__ = "invoice_lines"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)
    description = Column(Text, nullable=False)
    quantity = Column(Numeric(12, 4), nullable=False)
    unit_price = Column(Numeric(12, 4), nullable=False)
    vat_rate = Column(Integer, nullable=False, default=0)
    line_total = Column(Numeric(12, 2), nullable=False)

    invoice = relationship("Invoice", back_populates="lines")


class Payment(Base):
    __tablename__ = "payments"
    __table_args__ = (
        UniqueConstraint("telegram_payment_charge_id", name="uq_payments_charge_id"),
        Index("idx_payments_user", "user_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(BigInteger, ForeignKey("users.telegram_id"), nullable=False)
    invoice_id = Column(Integer, ForeignKey("invoices.id"))
    telegram_payment_charge_id = Column(String, nullable=False)
    provider_payment_charge_id = Column(String)
    amount = Column(Integer, nullable=False)
    currency = Column(String, nullable=False)
    payload = Column(String)
    status = Column(String, default="completed")
    refunded = Column(Boolean, default=False, nullable=False)
    refund_date = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)


class InvoiceSequence(Base):
    """Last issued invoice sequence per calendar year."""

    __tablename__ = "invoice_sequences"

    year = Column(Integer, primary_key=True, autoincrement=False)
    last_value = Column(Integer, nullable=False, default=0)
