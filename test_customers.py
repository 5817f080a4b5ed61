"""Customers: opening balance, status, listing and deletion rules."""
from datetime import timedelta
from decimal import Decimal

import pytest

from ledgerbook.core.exceptions import DeletionBlockedError, NotFoundError
from ledgerbook.models.ledger import LedgerEntry
from ledgerbook.schemas.customer import CustomerUpdate
from ledgerbook.services import customer_service

D = Decimal


def _opening_entries(db, customer_id):
    return (
        db.query(LedgerEntry)
        .filter(LedgerEntry.customer_id == customer_id, LedgerEntry.type == "opening_balance")
        .all()
    )


def test_create_posts_opening_balance(db, make_customer):
    customer = make_customer(opening_balance="2500", first_name="  Imran ", last_name="Shah", city="Lahore")

    assert customer.current_balance == D("2500.00")
    assert customer.full_name == "Imran Shah"
    assert customer.country == "Pakistan"
    entries = _opening_entries(db, customer.id)
    assert len(entries) == 1
    assert entries[0].debit == D("2500.00")


def test_negative_opening_balance_is_a_credit(db, make_customer):
    customer = make_customer(opening_balance="-300")

    assert customer.current_balance == D("-300.00")
    assert _opening_entries(db, customer.id)[0].credit == D("300.00")
    assert customer_service.get_opening_balance_status(db, customer.id).remaining_amount == D("0")


def test_zero_opening_balance_posts_nothing(db, make_customer):
    customer = make_customer()
    assert _opening_entries(db, customer.id) == []


def test_opening_balance_status_tracks_payments(db, make_customer, make_payment):
    customer = make_customer(opening_balance="1000")
    make_payment(customer.id, "400")

    state = customer_service.get_opening_balance_status(db, customer.id)
    assert state.paid_amount == D("400.00")
    assert state.remaining_amount == D("600.00")

    db.refresh(customer)
    # The stored opening balance itself is never paid down
    assert customer.opening_balance == D("1000.00")


def test_update_reposts_opening_entry(db, today, make_customer):
    customer = make_customer(opening_balance="1000")
    customer_service.update_customer(
        db, customer.id, CustomerUpdate(opening_balance=D("1200"), as_of_date=today - timedelta(days=5))
    )

    entries = _opening_entries(db, customer.id)
    assert len(entries) == 1
    assert entries[0].debit == D("1200.00")
    assert entries[0].date == today - timedelta(days=5)
    db.refresh(customer)
    assert customer.current_balance == D("1200.00")


def test_update_to_zero_removes_opening_entry(db, make_customer):
    customer = make_customer(opening_balance="1000")
    customer_service.update_customer(db, customer.id, CustomerUpdate(opening_balance=D("0")))

    assert _opening_entries(db, customer.id) == []
    db.refresh(customer)
    assert customer.current_balance == D("0")


def test_list_with_filters_and_summary(db, make_customer):
    make_customer("Alpha Prints", opening_balance="500", city="Lahore")
    make_customer("Beta Signs", opening_balance="-200", city="Karachi")
    make_customer("Gamma Media", city="Lahore")

    result = customer_service.list_customers(db)
    assert [c.company_name for c in result["customers"]] == ["Alpha Prints", "Beta Signs", "Gamma Media"]
    assert result["summary"]["total_receivable"] == D("500.00")
    assert result["summary"]["total_advance"] == D("200.00")

    assert len(customer_service.list_customers(db, city="lahore")["customers"]) == 2
    assert [c.company_name for c in customer_service.list_customers(db, search="sign")["customers"]] == ["Beta Signs"]


def test_status_toggle(db, make_customer):
    customer = make_customer()
    customer_service.set_customer_status(db, customer.id, "inactive")

    assert customer_service.list_customers(db, status="inactive")["summary"]["total_customers"] == 1
    assert customer_service.list_customers(db, status="active")["summary"]["total_customers"] == 0


def test_delete_blocked_by_invoices(db, make_customer, make_invoice):
    customer = make_customer()
    make_invoice(customer.id, "100")

    check = customer_service.can_delete_customer(db, customer.id)
    assert check["can_delete"] is False
    assert check["invoice_count"] == 1
    with pytest.raises(DeletionBlockedError):
        customer_service.delete_customer(db, customer.id)


def test_delete_customer_with_only_opening_balance(db, make_customer):
    customer = make_customer(opening_balance="750")
    customer_service.delete_customer(db, customer.id)

    with pytest.raises(NotFoundError):
        customer_service.get_customer(db, customer.id)
    assert _opening_entries(db, customer.id) == []
