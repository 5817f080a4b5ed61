"""
Invoices: numbering, line items, ledger posting and money movements.

Every change to paid_amount or discount_amount goes through
_refresh_amounts so that pending_amount = max(0, total - paid - discount)
and the status always agree with the money.
"""
import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ledgerbook.core.audit import AuditLog
from ledgerbook.core.exceptions import (
    DeletionBlockedError,
    InvalidStateError,
    LedgerbookError,
    NotFoundError,
)
from ledgerbook.models.customer import Customer
from ledgerbook.models.discount import Discount
from ledgerbook.models.invoice import Invoice, InvoiceItem
from ledgerbook.models.payment import PaymentApplication
from ledgerbook.schemas.invoice import (
    TERM_DAYS,
    InvoiceCreate,
    InvoiceItemCreate,
    InvoiceStatus,
    InvoiceTerm,
    InvoiceUpdate,
)
from ledgerbook.schemas.ledger import EntryType
from ledgerbook.services import ledger_service
from ledgerbook.services.allocation import ZERO, OpenInvoice, to_money
from ledgerbook.services.numbering import next_document_number
from ledgerbook.services.settings_service import get_prefix

logger = logging.getLogger(__name__)


def get_invoice(db: Session, invoice_id: int) -> Invoice:
    invoice = db.query(Invoice).filter(Invoice.id == invoice_id).first()
    if not invoice:
        raise NotFoundError("Invoice", invoice_id)
    return invoice


def generate_invoice_number(db: Session, year: Optional[int] = None) -> str:
    return next_document_number(db, Invoice.invoice_number, get_prefix(db, "invoice"), year)


def due_date_for_term(issue_date: date, term: Optional[str]) -> date:
    if not term:
        return issue_date
    return issue_date + timedelta(days=TERM_DAYS[InvoiceTerm(term)])


def line_amount(item: InvoiceItemCreate) -> Decimal:
    """quantity x inches x rate, unless the caller gave an explicit amount."""
    if item.amount is not None:
        return to_money(item.amount)
    return to_money(Decimal(str(item.quantity)) * Decimal(str(item.inches)) * Decimal(str(item.rate)))


def _build_items(items: List[InvoiceItemCreate]) -> List[InvoiceItem]:
    return [
        InvoiceItem(
            description=item.description.strip(),
            quantity=to_money(item.quantity),
            inches=to_money(item.inches),
            rate=to_money(item.rate),
            amount=line_amount(item),
        )
        for item in items
    ]


def _refresh_amounts(invoice: Invoice, today: Optional[date] = None) -> None:
    """Recompute pending_amount and derive status from the money."""
    today = today or date.today()
    total = to_money(invoice.total_amount)
    paid = to_money(invoice.paid_amount)
    discount = to_money(invoice.discount_amount)
    pending = max(ZERO, total - paid - discount)
    invoice.pending_amount = pending

    if invoice.status == InvoiceStatus.CANCELLED.value:
        return
    if pending == ZERO:
        invoice.status = InvoiceStatus.PAID.value
    elif paid > 0:
        invoice.status = (
            InvoiceStatus.OVERDUE.value if invoice.due_date < today else InvoiceStatus.PARTIAL.value
        )
    else:
        invoice.status = InvoiceStatus.SENT.value if invoice.sent_at else InvoiceStatus.DRAFT.value


def _ledger_description(invoice: Invoice) -> str:
    return f"Invoice {invoice.invoice_number} issued"


def create_invoice(db: Session, data: InvoiceCreate, auto_commit: bool = True) -> Invoice:
    """Create a draft invoice and post its debit to the customer's ledger."""
    customer = db.query(Customer).filter(Customer.id == data.customer_id).first()
    if not customer:
        raise NotFoundError("Customer", data.customer_id)

    due_date = data.due_date or due_date_for_term(data.issue_date, data.term)
    if due_date < data.issue_date:
        raise LedgerbookError("Due date cannot be before the issue date")

    items = _build_items(data.items)
    total = sum((item.amount for item in items), ZERO)
    if total <= 0:
        raise LedgerbookError("Invoice total must be greater than zero")

    try:
        number = data.invoice_number.strip() if data.invoice_number else generate_invoice_number(db)
        if db.query(Invoice.id).filter(Invoice.invoice_number == number).first():
            raise LedgerbookError(f"Invoice number {number} already exists")

        invoice = Invoice(
            invoice_number=number,
            customer_id=customer.id,
            issue_date=data.issue_date,
            term=data.term.value if data.term else None,
            due_date=due_date,
            total_amount=total,
            paid_amount=ZERO,
            discount_amount=ZERO,
            pending_amount=total,
            status=InvoiceStatus.DRAFT.value,
            notes=data.notes,
            payment_terms=data.payment_terms,
            items=items,
        )
        db.add(invoice)
        db.flush()  # Get ID without committing

        ledger_service.add_ledger_entry(
            db,
            customer.id,
            EntryType.INVOICE.value,
            debit=total,
            description=_ledger_description(invoice),
            entry_date=invoice.issue_date,
            reference_id=invoice.id,
            reference_number=invoice.invoice_number,
            auto_commit=False,
        )
        if auto_commit:
            db.commit()
            db.refresh(invoice)
    except Exception:
        if auto_commit:
            db.rollback()
        raise

    logger.info(f"Created invoice {invoice.invoice_number} for customer {customer.id}, total {total}")
    AuditLog.log_action(
        "create", "invoice", invoice.id, customer_id=customer.id,
        changes={"invoice_number": invoice.invoice_number, "total_amount": total},
    )
    return invoice


def update_invoice(db: Session, invoice_id: int, data: InvoiceUpdate, auto_commit: bool = True) -> Invoice:
    """Edit dates, notes or line items. Paid and discounted amounts are kept."""
    invoice = get_invoice(db, invoice_id)
    if invoice.status == InvoiceStatus.CANCELLED.value:
        raise InvalidStateError("Cancelled invoices cannot be edited")

    changes = data.model_dump(exclude_unset=True)
    issue_date = changes.get("issue_date") or invoice.issue_date
    term = (data.term.value if data.term else None) if "term" in changes else invoice.term
    due_date = changes.get("due_date") or invoice.due_date
    if not changes.get("due_date") and term and ("term" in changes or "issue_date" in changes):
        due_date = due_date_for_term(issue_date, term)
    if due_date < issue_date:
        raise LedgerbookError("Due date cannot be before the issue date")

    items = None
    if data.items is not None:
        if not data.items:
            raise LedgerbookError("Invoice needs at least one line item")
        items = _build_items(data.items)
        total = sum((item.amount for item in items), ZERO)
        settled = to_money(invoice.paid_amount) + to_money(invoice.discount_amount)
        if total < settled:
            raise InvalidStateError(
                f"New total {total} is less than the {settled} already paid or discounted"
            )

    try:
        invoice.issue_date = issue_date
        invoice.term = term
        invoice.due_date = due_date
        for key in ("notes", "payment_terms"):
            if key in changes:
                setattr(invoice, key, changes[key])
        if items is not None:
            invoice.items = items
            invoice.total_amount = total
        _refresh_amounts(invoice)
        db.flush()
        ledger_service.update_ledger_entry(
            db,
            invoice.id,
            EntryType.INVOICE.value,
            auto_commit=False,
            debit=invoice.total_amount,
            entry_date=invoice.issue_date,
            description=_ledger_description(invoice),
        )
        if auto_commit:
            db.commit()
            db.refresh(invoice)
    except Exception:
        if auto_commit:
            db.rollback()
        raise

    AuditLog.log_action("update", "invoice", invoice.id, customer_id=invoice.customer_id, changes=changes)
    return invoice


def delete_invoice(db: Session, invoice_id: int, auto_commit: bool = True) -> None:
    """Delete an invoice that has no payments applied, with its ledger entry."""
    invoice = get_invoice(db, invoice_id)
    applied = (
        db.query(func.count(PaymentApplication.id))
        .filter(PaymentApplication.invoice_id == invoice.id)
        .scalar()
        or 0
    )
    if applied or to_money(invoice.paid_amount) > 0:
        raise DeletionBlockedError(
            f"Invoice {invoice.invoice_number} has payments applied; delete the payments first",
            [f"{applied} payment application(s)"],
        )

    customer_id = invoice.customer_id
    number = invoice.invoice_number
    try:
        # Discounts booked against this invoice stay as plain customer credits
        for discount in db.query(Discount).filter(Discount.invoice_id == invoice.id).all():
            discount.invoice_id = None
            discount.invoice_applied_amount = ZERO
        ledger_service.remove_ledger_entries(
            db, invoice.id, EntryType.INVOICE.value, customer_id=customer_id, auto_commit=False
        )
        db.delete(invoice)
        db.flush()
        ledger_service.rebuild_customer_ledger(db, customer_id)
        if auto_commit:
            db.commit()
    except Exception:
        if auto_commit:
            db.rollback()
        raise

    logger.info(f"Deleted invoice {number} for customer {customer_id}")
    AuditLog.log_action("delete", "invoice", invoice_id, customer_id=customer_id, changes={"invoice_number": number})


def mark_as_sent(db: Session, invoice_id: int) -> Invoice:
    invoice = get_invoice(db, invoice_id)
    if invoice.status != InvoiceStatus.DRAFT.value:
        raise InvalidStateError(f"Only draft invoices can be marked as sent (status is {invoice.status})")
    invoice.status = InvoiceStatus.SENT.value
    invoice.sent_at = datetime.utcnow()
    _refresh_amounts(invoice)
    db.commit()
    db.refresh(invoice)
    AuditLog.log_action("status", "invoice", invoice.id, customer_id=invoice.customer_id, changes={"status": invoice.status})
    return invoice


def cancel_invoice(db: Session, invoice_id: int, auto_commit: bool = True) -> Invoice:
    """Void an invoice nothing has been paid on. Its ledger debit is removed."""
    invoice = get_invoice(db, invoice_id)
    if invoice.status == InvoiceStatus.CANCELLED.value:
        return invoice
    if to_money(invoice.paid_amount) > 0:
        raise InvalidStateError("Invoices with payments cannot be cancelled")
    if to_money(invoice.discount_amount) > 0:
        raise InvalidStateError("Invoices with discounts applied cannot be cancelled")

    try:
        invoice.status = InvoiceStatus.CANCELLED.value
        invoice.pending_amount = ZERO
        db.flush()
        ledger_service.remove_ledger_entries(
            db, invoice.id, EntryType.INVOICE.value, customer_id=invoice.customer_id, auto_commit=False
        )
        if auto_commit:
            db.commit()
            db.refresh(invoice)
    except Exception:
        if auto_commit:
            db.rollback()
        raise

    AuditLog.log_action("cancel", "invoice", invoice.id, customer_id=invoice.customer_id)
    return invoice


def get_customer_pending_invoices(db: Session, customer_id: int) -> List[Invoice]:
    """Invoices with money still owed, oldest due date first. Drafts included."""
    return (
        db.query(Invoice)
        .filter(
            Invoice.customer_id == customer_id,
            Invoice.pending_amount > 0,
            Invoice.status != InvoiceStatus.CANCELLED.value,
        )
        .order_by(Invoice.due_date, Invoice.id)
        .all()
    )


def open_invoices_for_allocation(db: Session, customer_id: int) -> List[OpenInvoice]:
    return [
        OpenInvoice(
            invoice_id=inv.id,
            invoice_number=inv.invoice_number,
            due_date=inv.due_date,
            pending_amount=to_money(inv.pending_amount),
            sequence=index,
        )
        for index, inv in enumerate(get_customer_pending_invoices(db, customer_id))
    ]


def _get_open_invoice(db: Session, invoice_id: int) -> Invoice:
    invoice = get_invoice(db, invoice_id)
    if invoice.status == InvoiceStatus.CANCELLED.value:
        raise InvalidStateError(f"Invoice {invoice.invoice_number} is cancelled")
    return invoice


def apply_invoice_payment(db: Session, invoice_id: int, amount, auto_commit: bool = True) -> Invoice:
    """Add to paid_amount. No ledger entry; the payment posts one credit for its total."""
    amount = to_money(amount)
    if amount <= 0:
        raise LedgerbookError("Payment amount must be greater than zero")
    invoice = _get_open_invoice(db, invoice_id)
    invoice.paid_amount = to_money(invoice.paid_amount) + amount
    _refresh_amounts(invoice)
    if auto_commit:
        db.commit()
        db.refresh(invoice)
    else:
        db.flush()
    logger.debug(f"Applied {amount} to invoice {invoice.invoice_number}: pending {invoice.pending_amount}, {invoice.status}")
    return invoice


def reverse_invoice_payment(db: Session, invoice_id: int, amount, auto_commit: bool = True) -> Invoice:
    amount = to_money(amount)
    invoice = get_invoice(db, invoice_id)
    invoice.paid_amount = max(ZERO, to_money(invoice.paid_amount) - amount)
    _refresh_amounts(invoice)
    if auto_commit:
        db.commit()
        db.refresh(invoice)
    else:
        db.flush()
    logger.debug(f"Reversed {amount} from invoice {invoice.invoice_number}: pending {invoice.pending_amount}, {invoice.status}")
    return invoice


def apply_invoice_discount(db: Session, invoice_id: int, amount, auto_commit: bool = True) -> Decimal:
    """Book a discount on the invoice, capped at its pending amount. Returns the part booked."""
    amount = to_money(amount)
    if amount <= 0:
        raise LedgerbookError("Discount amount must be greater than zero")
    invoice = _get_open_invoice(db, invoice_id)
    applied = min(amount, to_money(invoice.pending_amount))
    invoice.discount_amount = to_money(invoice.discount_amount) + applied
    _refresh_amounts(invoice)
    if auto_commit:
        db.commit()
        db.refresh(invoice)
    else:
        db.flush()
    return applied


def reverse_invoice_discount(db: Session, invoice_id: int, amount, auto_commit: bool = True) -> Invoice:
    amount = to_money(amount)
    invoice = get_invoice(db, invoice_id)
    invoice.discount_amount = max(ZERO, to_money(invoice.discount_amount) - amount)
    _refresh_amounts(invoice)
    if auto_commit:
        db.commit()
        db.refresh(invoice)
    else:
        db.flush()
    return invoice


def refresh_overdue_statuses(db: Session, today: Optional[date] = None) -> int:
    """Flip sent/partial invoices past their due date to overdue (and back when no longer due)."""
    today = today or date.today()
    changed = 0
    candidates = (
        db.query(Invoice)
        .filter(
            Invoice.pending_amount > 0,
            Invoice.status.in_(
                [InvoiceStatus.SENT.value, InvoiceStatus.PARTIAL.value, InvoiceStatus.OVERDUE.value]
            ),
        )
        .all()
    )
    for invoice in candidates:
        if invoice.due_date < today:
            new_status = InvoiceStatus.OVERDUE.value
        elif to_money(invoice.paid_amount) > 0:
            new_status = InvoiceStatus.PARTIAL.value
        else:
            new_status = InvoiceStatus.SENT.value if invoice.sent_at else InvoiceStatus.DRAFT.value
        if new_status != invoice.status:
            invoice.status = new_status
            changed += 1
    if changed:
        db.commit()
        logger.info(f"Refreshed overdue statuses: {changed} invoice(s) changed")
    return changed


def list_invoices(
    db: Session,
    customer_id: Optional[int] = None,
    status: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    search: Optional[str] = None,
    today: Optional[date] = None,
) -> dict:
    """Invoices newest first with totals over the filtered set."""
    today = today or date.today()
    query = db.query(Invoice)
    if customer_id is not None:
        query = query.filter(Invoice.customer_id == customer_id)
    if status:
        query = query.filter(Invoice.status == InvoiceStatus(status).value)
    if start:
        query = query.filter(Invoice.issue_date >= start)
    if end:
        query = query.filter(Invoice.issue_date <= end)
    if search:
        term = f"%{search.strip()}%"
        query = query.join(Customer, Customer.id == Invoice.customer_id).filter(
            or_(Invoice.invoice_number.ilike(term), Customer.company_name.ilike(term))
        )
    invoices = query.order_by(Invoice.issue_date.desc(), Invoice.id.desc()).all()

    active = [inv for inv in invoices if inv.status != InvoiceStatus.CANCELLED.value]
    summary = {
        "count": len(invoices),
        "total_amount": sum((to_money(inv.total_amount) for inv in active), ZERO),
        "paid_amount": sum((to_money(inv.paid_amount) for inv in active), ZERO),
        "pending_amount": sum((to_money(inv.pending_amount) for inv in active), ZERO),
        "overdue_count": sum(1 for inv in active if is_overdue(inv, today)),
    }
    return {"invoices": invoices, "summary": summary}


def is_overdue(invoice: Invoice, today: date) -> bool:
    return (
        invoice.due_date < today
        and to_money(invoice.pending_amount) > 0
        and invoice.status not in (InvoiceStatus.DRAFT.value, InvoiceStatus.PAID.value, InvoiceStatus.CANCELLED.value)
    )
