"""
Global search over customers, invoices and payments.

Each hit gets a relevance score; results are sorted by score, highest
first. Customers: company name exact 100 / partial 50, full name exact
80 / partial 40, mobile 60, city 20. Invoices and payments: number exact
100 / partial 60, customer company name 40, payment reference 30, exact
amount 30.
"""
import logging
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ledgerbook.models.customer import Customer
from ledgerbook.models.invoice import Invoice
from ledgerbook.models.payment import Payment
from ledgerbook.services.allocation import to_money

logger = logging.getLogger(__name__)

# Candidate rows fetched per entity before scoring
PER_TYPE_LIMIT = 10


def _as_amount(term: str) -> Optional[Decimal]:
    try:
        return to_money(term.replace(",", ""))
    except (InvalidOperation, ValueError):
        return None


def score_customer(customer: Customer, term: str) -> int:
    lower = term.lower()
    score = 0
    company = (customer.company_name or "").lower()
    if company == lower:
        score += 100
    elif lower in company:
        score += 50

    full_name = f"{customer.first_name or ''} {customer.last_name or ''}".strip().lower()
    if full_name == lower:
        score += 80
    elif full_name and lower in full_name:
        score += 40

    if customer.mobile and term in customer.mobile:
        score += 60
    if customer.city and lower in customer.city.lower():
        score += 20
    return score


def _score_document(number: str, company: str, amount, term: str, reference: Optional[str] = None) -> int:
    lower = term.lower()
    score = 0
    number = (number or "").lower()
    if number == lower:
        score += 100
    elif lower in number:
        score += 60
    if company and lower in company.lower():
        score += 40
    if reference and lower in reference.lower():
        score += 30
    value = _as_amount(term)
    if value is not None and amount is not None and to_money(amount) == value:
        score += 30
    return score


def score_invoice(invoice: Invoice, company: str, term: str) -> int:
    return _score_document(invoice.invoice_number, company, invoice.total_amount, term)


def score_payment(payment: Payment, company: str, term: str) -> int:
    return _score_document(payment.payment_number, company, payment.total_received, term, payment.reference_number)


def _customer_hits(db: Session, term: str) -> List[dict]:
    like = f"%{term}%"
    customers = (
        db.query(Customer)
        .filter(
            or_(
                Customer.company_name.ilike(like),
                Customer.first_name.ilike(like),
                Customer.last_name.ilike(like),
                Customer.mobile.ilike(like),
                Customer.city.ilike(like),
            )
        )
        .limit(PER_TYPE_LIMIT)
        .all()
    )
    return [
        {
            "type": "customer",
            "id": c.id,
            "title": c.company_name,
            "description": f"{c.full_name} • {c.mobile} • {c.city or 'No city'}",
            "score": score_customer(c, term),
        }
        for c in customers
    ]


def _invoice_hits(db: Session, term: str, amount: Optional[Decimal]) -> List[dict]:
    like = f"%{term}%"
    conditions = [Invoice.invoice_number.ilike(like), Customer.company_name.ilike(like)]
    if amount is not None:
        conditions.append(Invoice.total_amount == amount)
    rows = (
        db.query(Invoice, Customer.company_name)
        .join(Customer, Customer.id == Invoice.customer_id)
        .filter(or_(*conditions))
        .limit(PER_TYPE_LIMIT)
        .all()
    )
    return [
        {
            "type": "invoice",
            "id": inv.id,
            "title": inv.invoice_number,
            "description": f"{company or 'Unknown'} • {to_money(inv.total_amount)} • {inv.status}",
            "score": score_invoice(inv, company, term),
        }
        for inv, company in rows
    ]


def _payment_hits(db: Session, term: str, amount: Optional[Decimal]) -> List[dict]:
    like = f"%{term}%"
    conditions = [
        Payment.payment_number.ilike(like),
        Payment.reference_number.ilike(like),
        Customer.company_name.ilike(like),
    ]
    if amount is not None:
        conditions.append(Payment.total_received == amount)
    rows = (
        db.query(Payment, Customer.company_name)
        .join(Customer, Customer.id == Payment.customer_id)
        .filter(or_(*conditions))
        .limit(PER_TYPE_LIMIT)
        .all()
    )
    return [
        {
            "type": "payment",
            "id": p.id,
            "title": p.payment_number,
            "description": f"{company or 'Unknown'} • {to_money(p.total_received)} • {p.status}",
            "score": score_payment(p, company, term),
        }
        for p, company in rows
    ]


def global_search(db: Session, query: str, limit: int = 20) -> List[dict]:
    term = (query or "").strip()
    if not term:
        return []

    amount = _as_amount(term)
    results = _customer_hits(db, term) + _invoice_hits(db, term, amount) + _payment_hits(db, term, amount)
    # Stable sort keeps customers before invoices before payments on equal score
    results.sort(key=lambda hit: hit["score"], reverse=True)
    logger.debug(f"Search '{term}': {len(results)} hit(s)")
    return results[:limit]
