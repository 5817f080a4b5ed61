"""
Shared fixtures: an in-memory SQLite database per test, a session on it,
factories for customers / invoices / payments, and a TestClient wired to
the same database.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import date, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ledgerbook.api.deps import get_db
from ledgerbook.db.base import Base
from ledgerbook.db.init_db import seed_company_settings
from ledgerbook.main import app
from ledgerbook.schemas.customer import CustomerCreate
from ledgerbook.schemas.invoice import InvoiceCreate, InvoiceItemCreate
from ledgerbook.schemas.payment import InvoiceAllocation, PaymentCreate
from ledgerbook.services import customer_service, invoice_service, payment_service


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    seed_company_settings(session)
    yield session
    session.close()


@pytest.fixture()
def client(session_factory, db):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def today():
    return date.today()


@pytest.fixture()
def make_customer(db, today):
    def _make(company_name="Shah Traders", opening_balance="0", **fields):
        fields.setdefault("as_of_date", today - timedelta(days=60))
        data = CustomerCreate(
            company_name=company_name,
            opening_balance=Decimal(str(opening_balance)),
            **fields,
        )
        return customer_service.create_customer(db, data)
    return _make


@pytest.fixture()
def make_invoice(db, today):
    def _make(customer_id, amount, issue_date=None, due_date=None, send=True, **fields):
        issue_date = issue_date or today - timedelta(days=10)
        data = InvoiceCreate(
            customer_id=customer_id,
            issue_date=issue_date,
            due_date=due_date or issue_date + timedelta(days=30),
            items=[InvoiceItemCreate(description="Banner printing", amount=Decimal(str(amount)))],
            **fields,
        )
        invoice = invoice_service.create_invoice(db, data)
        if send:
            invoice = invoice_service.mark_as_sent(db, invoice.id)
        return invoice
    return _make


@pytest.fixture()
def make_payment(db, today):
    def _make(customer_id, amount, allocations=None, auto_allocate=None, payment_date=None, **fields):
        if auto_allocate is None:
            auto_allocate = allocations is None and "opening_balance_amount" not in fields
        data = PaymentCreate(
            customer_id=customer_id,
            payment_date=payment_date or today,
            total_received=Decimal(str(amount)),
            invoice_allocations=[
                InvoiceAllocation(invoice_id=invoice_id, amount=Decimal(str(value)))
                for invoice_id, value in (allocations or {}).items()
            ],
            auto_allocate=auto_allocate,
            **fields,
        )
        return payment_service.create_customer_payment(db, data)
    return _make
