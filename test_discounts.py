"""Discounts: ledger credit, invoice booking capped at pending, edits and removal."""
from decimal import Decimal

import pytest

from ledgerbook.core.exceptions import LedgerbookError
from ledgerbook.models.ledger import LedgerEntry
from ledgerbook.schemas.discount import DiscountCreate, DiscountUpdate
from ledgerbook.services import discount_service, invoice_service

D = Decimal


def _discount_entry(db, discount_id):
    return (
        db.query(LedgerEntry)
        .filter(LedgerEntry.type == "discount", LedgerEntry.reference_id == discount_id)
        .one_or_none()
    )


def test_plain_discount_credits_ledger(db, today, make_customer):
    customer = make_customer(opening_balance="1000")
    discount = discount_service.create_discount(
        db, DiscountCreate(customer_id=customer.id, amount=D("150"), reason="Festival offer", date=today)
    )

    assert discount.reference_number == f"DISC-{today.year}-001"
    entry = _discount_entry(db, discount.id)
    assert entry.credit == D("150.00")
    assert entry.description == "Discount: Festival offer"
    db.refresh(customer)
    assert customer.current_balance == D("850.00")


def test_invoice_booking_capped_at_pending(db, today, make_customer, make_invoice):
    customer = make_customer()
    invoice = make_invoice(customer.id, "1000")
    invoice_service.apply_invoice_payment(db, invoice.id, D("950"))

    discount = discount_service.create_discount(
        db, DiscountCreate(customer_id=customer.id, amount=D("100"), date=today, invoice_id=invoice.id)
    )

    assert discount.invoice_applied_amount == D("50.00")
    db.refresh(invoice)
    assert invoice.discount_amount == D("50.00")
    assert invoice.status == "paid"
    # The ledger still gets the full amount
    assert _discount_entry(db, discount.id).credit == D("100.00")
    assert _discount_entry(db, discount.id).description == f"Discount (Invoice: {invoice.invoice_number})"


def test_update_rebooks_invoice_and_ledger(db, today, make_customer, make_invoice):
    customer = make_customer()
    invoice = make_invoice(customer.id, "1000")
    discount = discount_service.create_discount(
        db, DiscountCreate(customer_id=customer.id, amount=D("100"), date=today, invoice_id=invoice.id)
    )

    discount_service.update_discount(db, discount.id, DiscountUpdate(amount=D("300"), reason="Bulk order"))

    db.refresh(invoice)
    assert discount.invoice_applied_amount == D("300.00")
    assert invoice.discount_amount == D("300.00")
    assert invoice.pending_amount == D("700.00")
    entry = _discount_entry(db, discount.id)
    assert entry.credit == D("300.00")
    assert entry.description.startswith("Discount: Bulk order")
    db.refresh(customer)
    assert customer.current_balance == D("700.00")


def test_delete_reverses_invoice_booking(db, today, make_customer, make_invoice):
    customer = make_customer()
    invoice = make_invoice(customer.id, "1000")
    discount = discount_service.create_discount(
        db, DiscountCreate(customer_id=customer.id, amount=D("1000"), date=today, invoice_id=invoice.id)
    )
    db.refresh(invoice)
    assert invoice.status == "paid"

    discount_id = discount.id
    discount_service.delete_discount(db, discount_id)

    db.refresh(invoice)
    assert invoice.discount_amount == D("0")
    assert invoice.pending_amount == D("1000.00")
    assert invoice.status == "sent"
    assert _discount_entry(db, discount_id) is None
    db.refresh(customer)
    assert customer.current_balance == D("1000.00")


def test_invoice_of_another_customer_rejected(db, today, make_customer, make_invoice):
    owner = make_customer("Alpha Prints")
    other = make_customer("Beta Signs")
    invoice = make_invoice(owner.id, "500")
    with pytest.raises(LedgerbookError):
        discount_service.create_discount(
            db, DiscountCreate(customer_id=other.id, amount=D("10"), date=today, invoice_id=invoice.id)
        )


def test_listing_and_totals(db, today, make_customer, make_invoice):
    customer = make_customer("Alpha Prints")
    invoice = make_invoice(customer.id, "500")
    discount_service.create_discount(db, DiscountCreate(customer_id=customer.id, amount=D("20"), date=today))
    discount_service.create_discount(
        db, DiscountCreate(customer_id=customer.id, amount=D("30"), date=today, invoice_id=invoice.id)
    )

    rows = discount_service.get_customer_discounts(db, customer.id)
    assert len(rows) == 2
    assert rows[0]["customer_name"] == "Alpha Prints"
    assert {row["invoice_number"] for row in rows} == {None, invoice.invoice_number}
    assert discount_service.get_customer_total_discounts(db, customer.id) == D("50.00")
