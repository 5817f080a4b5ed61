"""Customers, their opening balance and deletion rules."""
import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ledgerbook.core.audit import AuditLog
from ledgerbook.core.config import settings
from ledgerbook.core.exceptions import DeletionBlockedError
from ledgerbook.models.customer import Customer
from ledgerbook.models.invoice import Invoice
from ledgerbook.models.ledger import LedgerEntry
from ledgerbook.models.payment import Payment, PaymentApplication
from ledgerbook.schemas.customer import CustomerCreate, CustomerStatus, CustomerUpdate
from ledgerbook.schemas.ledger import EntryType
from ledgerbook.services import ledger_service
from ledgerbook.services.allocation import ZERO, OpeningBalanceState, to_money

logger = logging.getLogger(__name__)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = " ".join(value.split())
    return value or None


def get_customer(db: Session, customer_id: int) -> Customer:
    return ledger_service.get_customer_or_404(db, customer_id)


def create_customer(db: Session, data: CustomerCreate, auto_commit: bool = True) -> Customer:
    """Create a customer and post the opening balance entry when it is non-zero."""
    opening = to_money(data.opening_balance)
    customer = Customer(
        first_name=_clean(data.first_name) or "",
        last_name=_clean(data.last_name) or "",
        company_name=_clean(data.company_name),
        mobile=_clean(data.mobile) or "",
        phone=_clean(data.phone),
        email=_clean(data.email),
        website=_clean(data.website),
        address=_clean(data.address),
        city=_clean(data.city),
        state=_clean(data.state),
        country=_clean(data.country) or settings.DEFAULT_COUNTRY,
        notes=data.notes,
        opening_balance=opening,
        current_balance=opening,
        as_of_date=data.as_of_date or date.today(),
        status=CustomerStatus.ACTIVE.value,
    )
    try:
        db.add(customer)
        db.flush()
        if opening != ZERO:
            ledger_service.ensure_opening_balance_entry(
                db, customer.id, opening, customer.as_of_date, auto_commit=False
            )
        if auto_commit:
            db.commit()
            db.refresh(customer)
    except Exception:
        if auto_commit:
            db.rollback()
        raise

    logger.info(f"Created customer {customer.id} ({customer.company_name}), opening balance {opening}")
    AuditLog.log_action(
        "create", "customer", customer.id, customer_id=customer.id,
        changes={"company_name": customer.company_name, "opening_balance": opening},
    )
    return customer


def update_customer(db: Session, customer_id: int, data: CustomerUpdate, auto_commit: bool = True) -> Customer:
    """Update contact fields; an opening balance or date change re-posts the opening entry."""
    customer = get_customer(db, customer_id)
    changes = data.model_dump(exclude_unset=True)

    text_fields = (
        "first_name", "last_name", "company_name", "mobile", "phone", "email",
        "website", "address", "city", "state", "country",
    )
    for key in text_fields:
        if key in changes:
            value = _clean(changes[key])
            if key in ("first_name", "last_name", "mobile"):
                value = value or ""
            if key == "company_name" and not value:
                continue
            setattr(customer, key, value)
    if "notes" in changes:
        customer.notes = changes["notes"]

    repost = False
    if changes.get("opening_balance") is not None:
        new_opening = to_money(changes["opening_balance"])
        repost = repost or new_opening != to_money(customer.opening_balance)
        customer.opening_balance = new_opening
    if changes.get("as_of_date") is not None:
        repost = repost or changes["as_of_date"] != customer.as_of_date
        customer.as_of_date = changes["as_of_date"]

    try:
        db.flush()
        if repost:
            ledger_service.ensure_opening_balance_entry(
                db, customer.id, customer.opening_balance, customer.as_of_date, auto_commit=False
            )
        if auto_commit:
            db.commit()
            db.refresh(customer)
    except Exception:
        if auto_commit:
            db.rollback()
        raise

    AuditLog.log_action("update", "customer", customer.id, customer_id=customer.id, changes=changes)
    return customer


def list_customers(
    db: Session,
    search: Optional[str] = None,
    status: Optional[str] = None,
    city: Optional[str] = None,
) -> dict:
    """Customers by company name with receivable / advance totals."""
    query = db.query(Customer)
    if status:
        query = query.filter(Customer.status == status)
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
                Customer.email.ilike(term),
            )
        )
    customers = query.order_by(Customer.company_name, Customer.id).all()

    receivable = ZERO
    advance = ZERO
    for customer in customers:
        balance = to_money(customer.current_balance)
        if balance > 0:
            receivable += balance
        elif balance < 0:
            advance += -balance

    return {
        "customers": customers,
        "summary": {
            "total_customers": len(customers),
            "total_receivable": receivable,
            "total_advance": advance,
        },
    }


def get_opening_balance_paid(db: Session, customer_id: int) -> Decimal:
    total = (
        db.query(func.coalesce(func.sum(PaymentApplication.amount), 0))
        .filter(PaymentApplication.customer_id == customer_id, PaymentApplication.invoice_id.is_(None))
        .scalar()
    )
    return to_money(total)


def get_opening_balance_status(db: Session, customer_id: int) -> OpeningBalanceState:
    """
    Opening balance with what has been paid against it.

    paid_amount sums the payment applications that have no invoice. The
    customer's opening_balance itself is never decremented.
    """
    customer = get_customer(db, customer_id)
    amount = to_money(customer.opening_balance)
    is_positive = amount > 0
    paid = get_opening_balance_paid(db, customer_id)
    remaining = max(ZERO, amount - paid) if is_positive else ZERO
    return OpeningBalanceState(
        amount=amount,
        is_positive=is_positive,
        paid_amount=paid,
        remaining_amount=remaining,
        as_of_date=customer.as_of_date,
    )


def can_delete_customer(db: Session, customer_id: int) -> dict:
    """Advisory check; delete_customer enforces the same rules."""
    get_customer(db, customer_id)
    invoice_count = db.query(func.count(Invoice.id)).filter(Invoice.customer_id == customer_id).scalar() or 0
    payment_count = db.query(func.count(Payment.id)).filter(Payment.customer_id == customer_id).scalar() or 0
    ledger_count = (
        db.query(func.count(LedgerEntry.id))
        .filter(
            LedgerEntry.customer_id == customer_id,
            LedgerEntry.type != EntryType.OPENING_BALANCE.value,
        )
        .scalar()
        or 0
    )

    reasons: List[str] = []
    if invoice_count:
        reasons.append(f"Customer has {invoice_count} invoice(s)")
    if payment_count:
        reasons.append(f"Customer has {payment_count} payment(s)")
    if ledger_count:
        reasons.append(f"Customer has {ledger_count} ledger entr{'y' if ledger_count == 1 else 'ies'}")

    return {
        "can_delete": not reasons,
        "invoice_count": invoice_count,
        "payment_count": payment_count,
        "ledger_entry_count": ledger_count,
        "reasons": reasons,
    }


def delete_customer(db: Session, customer_id: int, auto_commit: bool = True) -> None:
    check = can_delete_customer(db, customer_id)
    if not check["can_delete"]:
        raise DeletionBlockedError(
            "Cannot delete customer: " + "; ".join(check["reasons"]), check["reasons"]
        )

    customer = get_customer(db, customer_id)
    try:
        db.query(LedgerEntry).filter(LedgerEntry.customer_id == customer_id).delete(synchronize_session=False)
        db.delete(customer)
        if auto_commit:
            db.commit()
        else:
            db.flush()
    except Exception:
        if auto_commit:
            db.rollback()
        raise

    logger.info(f"Deleted customer {customer_id}")
    AuditLog.log_action("delete", "customer", customer_id, customer_id=customer_id)


def set_customer_status(db: Session, customer_id: int, status: str, auto_commit: bool = True) -> Customer:
    customer = get_customer(db, customer_id)
    customer.status = CustomerStatus(status).value
    if auto_commit:
        db.commit()
        db.refresh(customer)
    else:
        db.flush()
    AuditLog.log_action("status", "customer", customer_id, customer_id=customer_id, changes={"status": customer.status})
    return customer
