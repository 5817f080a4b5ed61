"""Read-side reports. Nothing here writes."""
import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ledgerbook.models.customer import Customer
from ledgerbook.models.invoice import Invoice
from ledgerbook.models.ledger import LedgerEntry
from ledgerbook.models.payment import Payment
from ledgerbook.schemas.invoice import InvoiceStatus
from ledgerbook.schemas.payment import PaymentMethod, PaymentStatus
from ledgerbook.services import ledger_service
from ledgerbook.services.allocation import ZERO, to_money
from ledgerbook.services.invoice_service import is_overdue

logger = logging.getLogger(__name__)


def parties_balances(
    db: Session,
    city: Optional[str] = None,
    search: Optional[str] = None,
    last_payment_from: Optional[date] = None,
    last_payment_to: Optional[date] = None,
) -> dict:
    """One row per customer: ledger debits/credits, current balance, last payment and invoice."""
    query = db.query(Customer)
    if city:
        query = query.filter(func.lower(Customer.city) == city.strip().lower())
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(
            or_(
                Customer.company_name.ilike(term),
                Customer.first_name.ilike(term),
                Customer.last_name.ilike(term),
                Customer.mobile.ilike(term),
            )
        )
    customers = query.order_by(Customer.company_name, Customer.id).all()

    sums = dict(
        (customer_id, (to_money(debit), to_money(credit)))
        for customer_id, debit, credit in db.query(
            LedgerEntry.customer_id,
            func.coalesce(func.sum(LedgerEntry.debit), 0),
            func.coalesce(func.sum(LedgerEntry.credit), 0),
        )
        .filter(LedgerEntry.is_hidden.is_(False))
        .group_by(LedgerEntry.customer_id)
        .all()
    )

    rows = []
    totals = {"total_debit": ZERO, "total_credit": ZERO, "total_balance": ZERO, "receivable": ZERO, "advance": ZERO}
    for customer in customers:
        last_payment = (
            db.query(Payment)
            .filter(Payment.customer_id == customer.id, Payment.status == PaymentStatus.COMPLETED.value)
            .order_by(Payment.payment_date.desc(), Payment.id.desc())
            .first()
        )
        if last_payment_from or last_payment_to:
            if last_payment is None:
                continue
            if last_payment_from and last_payment.payment_date < last_payment_from:
                continue
            if last_payment_to and last_payment.payment_date > last_payment_to:
                continue
        last_invoice = (
            db.query(Invoice)
            .filter(Invoice.customer_id == customer.id)
            .order_by(Invoice.issue_date.desc(), Invoice.id.desc())
            .first()
        )

        debit, credit = sums.get(customer.id, (ZERO, ZERO))
        balance = to_money(customer.current_balance)
        rows.append({
            "customer_id": customer.id,
            "company_name": customer.company_name,
            "full_name": customer.full_name,
            "city": customer.city,
            "mobile": customer.mobile,
            "total_debit": debit,
            "total_credit": credit,
            "current_balance": balance,
            "last_payment": {
                "date": last_payment.payment_date,
                "amount": to_money(last_payment.total_received),
                "payment_number": last_payment.payment_number,
            } if last_payment else None,
            "last_invoice": {
                "date": last_invoice.issue_date,
                "amount": to_money(last_invoice.total_amount),
                "invoice_number": last_invoice.invoice_number,
            } if last_invoice else None,
        })
        totals["total_debit"] += debit
        totals["total_credit"] += credit
        totals["total_balance"] += balance
        if balance > 0:
            totals["receivable"] += balance
        elif balance < 0:
            totals["advance"] += -balance

    totals["customer_count"] = len(rows)
    return {"as_of_date": date.today(), "rows": rows, "totals": totals}


def payment_details(
    db: Session,
    start: Optional[date] = None,
    end: Optional[date] = None,
    method: Optional[str] = None,
    status: Optional[str] = None,
    customer_id: Optional[int] = None,
) -> dict:
    """Per payment: how much went to obligations, onward payees, and what is left unapplied."""
    query = db.query(Payment)
    if start:
        query = query.filter(Payment.payment_date >= start)
    if end:
        query = query.filter(Payment.payment_date <= end)
    if method:
        query = query.filter(Payment.payment_method == PaymentMethod(method).value)
    if status:
        query = query.filter(Payment.status == PaymentStatus(status).value)
    if customer_id is not None:
        query = query.filter(Payment.customer_id == customer_id)
    payments = query.order_by(Payment.payment_date.desc(), Payment.id.desc()).all()

    names = dict(db.query(Customer.id, Customer.company_name).all())
    rows = []
    totals = {"received": ZERO, "allocated": ZERO, "distributed": ZERO, "unapplied": ZERO}
    for payment in payments:
        received = to_money(payment.total_received)
        allocated = sum((to_money(a.amount) for a in payment.applications), ZERO)
        distributed = sum(
            (to_money(d.amount) for d in payment.distributions if d.status != "cancelled"), ZERO
        )
        unapplied = max(ZERO, received - allocated)
        rows.append({
            "payment_id": payment.id,
            "payment_number": payment.payment_number,
            "payment_date": payment.payment_date,
            "customer_id": payment.customer_id,
            "customer_name": names.get(payment.customer_id, "Unknown"),
            "payment_method": payment.payment_method,
            "status": payment.status,
            "reference_number": payment.reference_number,
            "total_received": received,
            "allocated": allocated,
            "distributed": distributed,
            "unapplied": unapplied,
            "available": received - distributed,
            "distributions": [
                {
                    "payee_name": d.payee_name,
                    "payee_type": d.payee_type,
                    "amount": to_money(d.amount),
                    "purpose": d.purpose,
                    "allocation_date": d.allocation_date,
                    "status": d.status,
                }
                for d in payment.distributions
            ],
        })
        totals["received"] += received
        totals["allocated"] += allocated
        totals["distributed"] += distributed
        totals["unapplied"] += unapplied

    totals["count"] = len(rows)
    totals["distributed_percent"] = (
        (totals["distributed"] / totals["received"] * 100).quantize(Decimal("0.1"))
        if totals["received"] > 0 else ZERO
    )
    return {"rows": rows, "totals": totals}


def dashboard_summary(
    db: Session,
    today: Optional[date] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> dict:
    """Headline numbers. Invoices filter on issue date and payments on payment date."""
    today = today or date.today()

    invoice_query = db.query(Invoice)
    payment_query = db.query(Payment)
    if start:
        invoice_query = invoice_query.filter(Invoice.issue_date >= start)
        payment_query = payment_query.filter(Payment.payment_date >= start)
    if end:
        invoice_query = invoice_query.filter(Invoice.issue_date <= end)
        payment_query = payment_query.filter(Payment.payment_date <= end)
    invoices = invoice_query.all()
    payments = payment_query.all()

    revenue = sum((to_money(inv.total_amount) for inv in invoices), ZERO)
    pending_amount = sum((to_money(inv.pending_amount) for inv in invoices), ZERO)
    pending_count = sum(
        1 for inv in invoices
        if inv.status not in (InvoiceStatus.PAID.value, InvoiceStatus.CANCELLED.value)
    )
    overdue = [inv for inv in invoices if is_overdue(inv, today)]
    received = sum(
        (to_money(p.total_received) for p in payments if p.status == PaymentStatus.COMPLETED.value),
        ZERO,
    )
    efficiency = (received / revenue * 100).quantize(Decimal("0.01")) if revenue > 0 else ZERO

    status_counts = {status.value: 0 for status in InvoiceStatus}
    for inv in invoices:
        status_counts[inv.status] = status_counts.get(inv.status, 0) + 1

    return {
        "today": today,
        "total_customers": db.query(func.count(Customer.id)).scalar() or 0,
        "total_invoices": len(invoices),
        "total_revenue": revenue,
        "pending_invoices": pending_count,
        "pending_amount": pending_amount,
        "overdue_invoices": len(overdue),
        "overdue_amount": sum((to_money(inv.pending_amount) for inv in overdue), ZERO),
        "total_payments": len(payments),
        "payments_received": received,
        "collection_efficiency": efficiency,
        "invoice_status_counts": status_counts,
    }


def recent_activity(db: Session, limit: int = 10) -> list:
    """Latest invoices and payments merged, newest first."""
    names = dict(db.query(Customer.id, Customer.company_name).all())
    items = []
    for inv in db.query(Invoice).order_by(Invoice.issue_date.desc(), Invoice.id.desc()).limit(limit).all():
        items.append({
            "type": "invoice",
            "id": inv.id,
            "number": inv.invoice_number,
            "date": inv.issue_date,
            "amount": to_money(inv.total_amount),
            "status": inv.status,
            "customer_name": names.get(inv.customer_id, "Unknown"),
        })
    for p in db.query(Payment).order_by(Payment.payment_date.desc(), Payment.id.desc()).limit(limit).all():
        items.append({
            "type": "payment",
            "id": p.id,
            "number": p.payment_number,
            "date": p.payment_date,
            "amount": to_money(p.total_received),
            "status": p.status,
            "customer_name": names.get(p.customer_id, "Unknown"),
        })
    items.sort(key=lambda item: (item["date"], item["id"]), reverse=True)
    return items[:limit]


def customer_statement(
    db: Session,
    customer_id: int,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> dict:
    """Ledger summary for a period with the customer header attached."""
    customer = ledger_service.get_customer_or_404(db, customer_id)
    summary = ledger_service.get_ledger_summary(db, customer_id, start, end)
    summary["customer"] = {
        "id": customer.id,
        "company_name": customer.company_name,
        "full_name": customer.full_name,
        "mobile": customer.mobile,
        "email": customer.email,
        "address": customer.address,
        "city": customer.city,
        "current_balance": to_money(customer.current_balance),
    }
    return summary
