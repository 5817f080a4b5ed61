"""
Discounts: a credit to the customer, optionally booked against one invoice.

The ledger always gets the full discount as a credit. On the invoice the
discount is capped at what is still pending; invoice_applied_amount
remembers that part so it can be reversed exactly.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ledgerbook.core.audit import AuditLog
from ledgerbook.core.exceptions import LedgerbookError, NotFoundError
from ledgerbook.models.customer import Customer
from ledgerbook.models.discount import Discount
from ledgerbook.models.invoice import Invoice
from ledgerbook.schemas.discount import DiscountCreate, DiscountUpdate
from ledgerbook.schemas.ledger import EntryType
from ledgerbook.services import invoice_service, ledger_service
from ledgerbook.services.allocation import ZERO, to_money
from ledgerbook.services.numbering import next_document_number
from ledgerbook.services.settings_service import get_prefix

logger = logging.getLogger(__name__)


def generate_discount_number(db: Session, year: Optional[int] = None) -> str:
    return next_document_number(db, Discount.reference_number, get_prefix(db, "discount"), year)


def get_discount(db: Session, discount_id: int) -> Discount:
    discount = db.query(Discount).filter(Discount.id == discount_id).first()
    if not discount:
        raise NotFoundError("Discount", discount_id)
    return discount


def _description(reason: Optional[str], invoice: Optional[Invoice]) -> str:
    text = f"Discount: {reason}" if reason else "Discount"
    if invoice is not None:
        text += f" (Invoice: {invoice.invoice_number})"
    return text


def create_discount(db: Session, data: DiscountCreate, auto_commit: bool = True) -> Discount:
    """Record a discount, book it on the invoice (if any) and credit the ledger."""
    amount = to_money(data.amount)
    if amount <= 0:
        raise LedgerbookError("Discount amount must be greater than zero")
    ledger_service.get_customer_or_404(db, data.customer_id)

    invoice = None
    if data.invoice_id is not None:
        invoice = invoice_service.get_invoice(db, data.invoice_id)
        if invoice.customer_id != data.customer_id:
            raise LedgerbookError(f"Invoice {invoice.invoice_number} belongs to another customer")

    reason = data.reason.strip() if data.reason and data.reason.strip() else None
    try:
        discount = Discount(
            reference_number=generate_discount_number(db),
            customer_id=data.customer_id,
            invoice_id=invoice.id if invoice is not None else None,
            payment_id=data.payment_id,
            date=data.date,
            amount=amount,
            invoice_applied_amount=ZERO,
            reason=reason,
        )
        db.add(discount)
        db.flush()

        if invoice is not None and to_money(invoice.pending_amount) > 0:
            discount.invoice_applied_amount = invoice_service.apply_invoice_discount(
                db, invoice.id, amount, auto_commit=False
            )

        ledger_service.add_ledger_entry(
            db,
            data.customer_id,
            EntryType.DISCOUNT.value,
            credit=amount,
            description=_description(reason, invoice),
            entry_date=data.date,
            reference_id=discount.id,
            reference_number=discount.reference_number,
            auto_commit=False,
        )
        if auto_commit:
            db.commit()
            db.refresh(discount)
    except Exception:
        if auto_commit:
            db.rollback()
        raise

    logger.info(f"Created discount {discount.reference_number} of {amount} for customer {data.customer_id}")
    AuditLog.log_action(
        "create", "discount", discount.id, customer_id=data.customer_id,
        changes={"amount": amount, "invoice_id": discount.invoice_id, "payment_id": discount.payment_id},
    )
    return discount


def _discount_rows(query) -> List[dict]:
    rows = []
    for discount, company_name, invoice_number in query.all():
        rows.append({
            "id": discount.id,
            "reference_number": discount.reference_number,
            "customer_id": discount.customer_id,
            "customer_name": company_name or "Unknown",
            "invoice_id": discount.invoice_id,
            "invoice_number": invoice_number,
            "payment_id": discount.payment_id,
            "date": discount.date,
            "amount": to_money(discount.amount),
            "invoice_applied_amount": to_money(discount.invoice_applied_amount),
            "reason": discount.reason,
        })
    return rows


def list_discounts(
    db: Session,
    start: Optional[date] = None,
    end: Optional[date] = None,
    customer_id: Optional[int] = None,
) -> List[dict]:
    """Discounts newest first with customer and invoice names resolved."""
    query = (
        db.query(Discount, Customer.company_name, Invoice.invoice_number)
        .join(Customer, Customer.id == Discount.customer_id)
        .outerjoin(Invoice, Invoice.id == Discount.invoice_id)
    )
    if customer_id is not None:
        query = query.filter(Discount.customer_id == customer_id)
    if start:
        query = query.filter(Discount.date >= start)
    if end:
        query = query.filter(Discount.date <= end)
    return _discount_rows(query.order_by(Discount.date.desc(), Discount.id.desc()))


def get_customer_discounts(db: Session, customer_id: int) -> List[dict]:
    ledger_service.get_customer_or_404(db, customer_id)
    return list_discounts(db, customer_id=customer_id)


def get_customer_total_discounts(db: Session, customer_id: int) -> Decimal:
    total = (
        db.query(func.coalesce(func.sum(Discount.amount), 0))
        .filter(Discount.customer_id == customer_id)
        .scalar()
    )
    return to_money(total)


def update_discount(db: Session, discount_id: int, data: DiscountUpdate, auto_commit: bool = True) -> Discount:
    """Change amount, reason or date; the invoice booking and ledger credit are re-posted."""
    discount = get_discount(db, discount_id)
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    invoice = invoice_service.get_invoice(db, discount.invoice_id) if discount.invoice_id else None

    try:
        if "amount" in changes:
            new_amount = to_money(changes["amount"])
            if invoice is not None:
                if to_money(discount.invoice_applied_amount) > 0:
                    invoice_service.reverse_invoice_discount(
                        db, invoice.id, discount.invoice_applied_amount, auto_commit=False
                    )
                discount.invoice_applied_amount = ZERO
                if to_money(invoice.pending_amount) > 0:
                    discount.invoice_applied_amount = invoice_service.apply_invoice_discount(
                        db, invoice.id, new_amount, auto_commit=False
                    )
            discount.amount = new_amount
        if "reason" in changes:
            discount.reason = changes["reason"].strip() or None
        if "date" in changes:
            discount.date = changes["date"]
        db.flush()

        ledger_service.update_ledger_entry(
            db,
            discount.id,
            EntryType.DISCOUNT.value,
            auto_commit=False,
            credit=discount.amount,
            entry_date=discount.date,
            description=_description(discount.reason, invoice),
        )
        if auto_commit:
            db.commit()
            db.refresh(discount)
    except Exception:
        if auto_commit:
            db.rollback()
        raise

    AuditLog.log_action("update", "discount", discount.id, customer_id=discount.customer_id, changes=changes)
    return discount


def _remove(db: Session, discount: Discount) -> None:
    if discount.invoice_id and to_money(discount.invoice_applied_amount) > 0:
        invoice_service.reverse_invoice_discount(
            db, discount.invoice_id, discount.invoice_applied_amount, auto_commit=False
        )
    ledger_service.remove_ledger_entries(
        db, discount.id, EntryType.DISCOUNT.value, customer_id=discount.customer_id, auto_commit=False
    )
    db.delete(discount)
    db.flush()


def delete_discount(db: Session, discount_id: int, auto_commit: bool = True) -> None:
    discount = get_discount(db, discount_id)
    customer_id = discount.customer_id
    try:
        _remove(db, discount)
        ledger_service.rebuild_customer_ledger(db, customer_id)
        if auto_commit:
            db.commit()
    except Exception:
        if auto_commit:
            db.rollback()
        raise

    logger.info(f"Deleted discount {discount_id} for customer {customer_id}")
    AuditLog.log_action("delete", "discount", discount_id, customer_id=customer_id)


def reverse_payment_discounts(db: Session, payment_id: int, auto_commit: bool = False) -> int:
    """Remove every discount posted with a payment. Used when the payment is deleted."""
    discounts = db.query(Discount).filter(Discount.payment_id == payment_id).all()
    customers = set()
    for discount in discounts:
        customers.add(discount.customer_id)
        _remove(db, discount)
    for customer_id in customers:
        ledger_service.rebuild_customer_ledger(db, customer_id)
    if auto_commit:
        db.commit()
    if discounts:
        logger.info(f"Reversed {len(discounts)} discount(s) of payment {payment_id}")
    return len(discounts)
