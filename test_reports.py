"""Dashboard numbers, parties balances, payment details and statements."""
from datetime import timedelta
from decimal import Decimal

from ledgerbook.schemas.payment import DistributionCreate
from ledgerbook.services import invoice_service, payment_service, report_service

D = Decimal


def test_dashboard_counts_completed_payments_only(db, today, make_customer, make_invoice, make_payment):
    customer = make_customer()
    make_invoice(customer.id, "1000")
    make_invoice(customer.id, "1000", issue_date=today - timedelta(days=40), due_date=today - timedelta(days=5))
    # Nothing allocated: completed, money stays as credit
    make_payment(customer.id, "400", allocations={})
    make_payment(customer.id, "600", payment_method="cheque", cheque_date=today + timedelta(days=3))
    invoice_service.refresh_overdue_statuses(db, today)

    summary = report_service.dashboard_summary(db, today=today)

    assert summary["total_revenue"] == D("2000.00")
    assert summary["payments_received"] == D("400.00")
    assert summary["collection_efficiency"] == D("20.00")
    assert summary["overdue_invoices"] == 1
    assert summary["total_customers"] == 1
    assert summary["invoice_status_counts"]["overdue"] == 1


def test_dashboard_period_filter(db, today, make_customer, make_invoice):
    customer = make_customer()
    make_invoice(customer.id, "1000", issue_date=today - timedelta(days=100))
    make_invoice(customer.id, "300", issue_date=today - timedelta(days=2))

    summary = report_service.dashboard_summary(db, today=today, start=today - timedelta(days=30))
    assert summary["total_invoices"] == 1
    assert summary["total_revenue"] == D("300.00")
    assert summary["collection_efficiency"] == D("0")


def test_parties_balances(db, today, make_customer, make_invoice, make_payment):
    alpha = make_customer("Alpha Prints", opening_balance="500", city="Lahore")
    beta = make_customer("Beta Signs", city="Karachi")
    make_invoice(alpha.id, "1000")
    make_payment(alpha.id, "500", payment_date=today - timedelta(days=1))
    make_payment(beta.id, "200")

    report = report_service.parties_balances(db)
    rows = {row["company_name"]: row for row in report["rows"]}

    assert rows["Alpha Prints"]["total_debit"] == D("1500.00")
    assert rows["Alpha Prints"]["total_credit"] == D("500.00")
    assert rows["Alpha Prints"]["current_balance"] == D("1000.00")
    assert rows["Alpha Prints"]["last_payment"]["amount"] == D("500.00")
    assert rows["Beta Signs"]["current_balance"] == D("-200.00")
    assert rows["Beta Signs"]["last_invoice"] is None
    assert report["totals"]["receivable"] == D("1000.00")
    assert report["totals"]["advance"] == D("200.00")

    lahore = report_service.parties_balances(db, city="Lahore")
    assert [row["company_name"] for row in lahore["rows"]] == ["Alpha Prints"]

    recent = report_service.parties_balances(db, last_payment_from=today)
    assert [row["company_name"] for row in recent["rows"]] == ["Beta Signs"]


def test_payment_details(db, today, make_customer, make_invoice, make_payment):
    customer = make_customer("Alpha Prints")
    make_invoice(customer.id, "600")
    payment = make_payment(customer.id, "1000")
    payment_service.add_distribution(
        db,
        payment.id,
        DistributionCreate(payee_name="Ink House", payee_type="supplier", amount=D("250"),
                           purpose="Ink", allocation_date=today),
    )

    report = report_service.payment_details(db)
    row = report["rows"][0]
    assert row["customer_name"] == "Alpha Prints"
    assert row["allocated"] == D("600.00")
    assert row["unapplied"] == D("400.00")
    assert row["distributed"] == D("250.00")
    assert row["available"] == D("750.00")
    assert report["totals"]["distributed_percent"] == D("25.0")


def test_recent_activity_newest_first(db, today, make_customer, make_invoice, make_payment):
    customer = make_customer()
    make_invoice(customer.id, "100", issue_date=today - timedelta(days=3))
    make_payment(customer.id, "50", payment_date=today)

    activity = report_service.recent_activity(db)
    assert [item["type"] for item in activity] == ["payment", "invoice"]


def test_customer_statement(db, today, make_customer, make_invoice):
    customer = make_customer("Alpha Prints", opening_balance="200")
    make_invoice(customer.id, "300")

    statement = report_service.customer_statement(db, customer.id)
    assert statement["customer"]["company_name"] == "Alpha Prints"
    assert statement["closing_balance"] == D("500.00")
    assert len(statement["entries"]) == 2


def test_invoice_totals_skip_cancelled(db, make_customer, make_invoice):
    customer = make_customer()
    make_invoice(customer.id, "100")
    cancelled = make_invoice(customer.id, "900")
    invoice_service.cancel_invoice(db, cancelled.id)

    summary = invoice_service.list_invoices(db)["summary"]
    assert summary["count"] == 2
    assert summary["total_amount"] == D("100.00")
