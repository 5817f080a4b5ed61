"""Running balances, period summaries, hidden entries and rebuilds."""
from datetime import date, timedelta
from decimal import Decimal

import pytest

from ledgerbook.core.exceptions import LedgerbookError, NotFoundError
from ledgerbook.models.ledger import LedgerEntry
from ledgerbook.services import ledger_service

D = Decimal


@pytest.fixture()
def posted(db, today, make_customer, make_invoice, make_payment):
    customer = make_customer(opening_balance="1000")
    invoice = make_invoice(customer.id, "500", issue_date=today - timedelta(days=10))
    payment = make_payment(customer.id, "700", payment_date=today)
    return customer, invoice, payment


def test_running_balance_follows_postings(db, posted):
    customer, invoice, payment = posted
    rows = ledger_service.get_customer_ledger(db, customer.id)

    assert [row["type"] for row in rows] == ["opening_balance", "invoice", "payment"]
    assert [row["balance"] for row in rows] == [D("1000.00"), D("1500.00"), D("800.00")]
    assert rows[1]["reference_number"] == invoice.invoice_number
    assert rows[2]["reference_id"] == payment.id

    db.refresh(customer)
    assert customer.current_balance == D("800.00")


def test_period_summary_carries_balance_in(db, today, posted):
    customer, _, _ = posted
    summary = ledger_service.get_ledger_summary(db, customer.id, start=today - timedelta(days=30))

    assert summary["opening_balance"] == D("1000.00")
    assert summary["total_debits"] == D("500.00")
    assert summary["total_credits"] == D("700.00")
    assert summary["closing_balance"] == D("800.00")
    assert len(summary["entries"]) == 2


def test_period_before_any_activity(db, today, posted):
    customer, _, _ = posted
    summary = ledger_service.get_ledger_summary(
        db, customer.id, start=today - timedelta(days=400), end=today - timedelta(days=300)
    )
    assert summary["entries"] == []
    assert summary["opening_balance"] == D("0")
    assert summary["closing_balance"] == D("0")


def test_hidden_adjustment_never_moves_balance(db, today, posted):
    customer, _, _ = posted
    ledger_service.post_adjustment(
        db, customer.id, today, debit=D("100"), description="Memo: disputed roll", is_hidden=True
    )
    db.refresh(customer)
    assert customer.current_balance == D("800.00")

    assert len(ledger_service.get_customer_ledger(db, customer.id)) == 3
    with_hidden = ledger_service.get_customer_ledger(db, customer.id, include_hidden=True)
    assert len(with_hidden) == 4
    hidden = [row for row in with_hidden if row["is_hidden"]][0]
    assert hidden["balance"] == D("800.00")


def test_visible_adjustment_credits_customer(db, today, posted):
    customer, _, _ = posted
    ledger_service.post_adjustment(db, customer.id, today, credit=D("50"), description="Rounding")
    db.refresh(customer)
    assert customer.current_balance == D("750.00")


def test_adjustment_needs_an_amount(db, today, posted):
    customer, _, _ = posted
    with pytest.raises(LedgerbookError):
        ledger_service.post_adjustment(db, customer.id, today, description="Nothing")


def test_rebuild_repairs_cached_balance(db, posted):
    customer, _, _ = posted
    customer.current_balance = D("999")
    db.commit()

    check = ledger_service.check_balance_consistency(db, customer.id)
    assert check["is_consistent"] is False
    assert check["recomputed_balance"] == D("800.00")

    assert ledger_service.rebuild_customer_ledger(db, customer.id) == D("800.00")
    db.commit()
    assert ledger_service.check_balance_consistency(db, customer.id)["is_consistent"] is True


def test_compute_running_balances_orders_by_date():
    entries = [
        LedgerEntry(date=date(2024, 2, 1), debit=D("0"), credit=D("300"), is_hidden=False),
        LedgerEntry(date=date(2024, 1, 1), debit=D("1000"), credit=D("0"), is_hidden=False),
        LedgerEntry(date=date(2024, 1, 15), debit=D("50"), credit=D("0"), is_hidden=True),
    ]
    rows = ledger_service.compute_running_balances(entries)

    assert [entry.date for entry, _ in rows] == [date(2024, 1, 1), date(2024, 1, 15), date(2024, 2, 1)]
    assert [balance for _, balance in rows] == [D("1000.00"), D("1000.00"), D("700.00")]


def test_unknown_customer(db):
    with pytest.raises(NotFoundError):
        ledger_service.get_customer_ledger(db, 404)


def test_negative_amounts_rejected(db, make_customer):
    customer = make_customer()
    with pytest.raises(LedgerbookError):
        ledger_service.add_ledger_entry(db, customer.id, "adjustment", debit=D("-5"))
