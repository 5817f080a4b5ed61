"""
Received payments.

A payment posts ONE ledger credit for its total_received. How that money
settles the customer's obligations is recorded separately as payment
applications (invoice or opening balance), and invoices are updated from
them. Whatever is not applied stays on the ledger as customer credit.

Creation and deletion touch several tables; each runs in one transaction.
"""
import logging
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from ledgerbook.core.audit import AuditLog
from ledgerbook.core.config import settings
from ledgerbook.core.exceptions import AllocationError, InvalidStateError, LedgerbookError, NotFoundError
from ledgerbook.models.invoice import Invoice
from ledgerbook.models.payment import Payment, PaymentApplication, PaymentDistribution
from ledgerbook.schemas.discount import DiscountCreate
from ledgerbook.schemas.ledger import EntryType
from ledgerbook.schemas.payment import (
    DEFERRED_METHODS,
    DistributionCreate,
    PaymentCreate,
    PaymentMethod,
    PaymentStatus,
    PaymentUpdate,
)
from ledgerbook.services import customer_service, discount_service, invoice_service, ledger_service
from ledgerbook.services.allocation import (
    ZERO,
    AllocationPlan,
    fifo_allocate,
    fifo_order,
    to_money,
    total_outstanding,
    validate_allocations,
)
from ledgerbook.services.numbering import next_document_number
from ledgerbook.services.settings_service import get_prefix

logger = logging.getLogger(__name__)


def generate_payment_number(db: Session, year: Optional[int] = None) -> str:
    return next_document_number(db, Payment.payment_number, get_prefix(db, "payment"), year)


def get_payment(db: Session, payment_id: int) -> Payment:
    payment = db.query(Payment).filter(Payment.id == payment_id).first()
    if not payment:
        raise NotFoundError("Payment", payment_id)
    return payment


def _ledger_description(payment: Payment) -> str:
    text = f"Payment {payment.payment_number}"
    if payment.status == PaymentStatus.PARTIAL.value:
        text += " (Partial)"
    elif payment.status == PaymentStatus.PENDING.value:
        text += " (Pending)"
    return text


def _applied_total(payment: Payment) -> Decimal:
    return sum((to_money(app.amount) for app in payment.applications), ZERO)


def _distributed_total(payment: Payment) -> Decimal:
    return sum(
        (to_money(d.amount) for d in payment.distributions if d.status != "cancelled"),
        ZERO,
    )


def _check_future_cheque(status: Optional[str], method: str, cheque_date: Optional[date], today: date) -> None:
    if status != PaymentStatus.COMPLETED.value:
        return
    if method in (m.value for m in DEFERRED_METHODS) and cheque_date is not None and cheque_date > today:
        raise InvalidStateError(
            f"Cannot mark as completed: cheque is dated {cheque_date.isoformat()}, which is in the future"
        )


def determine_status(method: str, plan: AllocationPlan, pending: Dict[int, Decimal], discounts: Dict[int, Decimal]) -> str:
    """
    Cheque and parchi payments start pending. Otherwise the payment is
    completed when every invoice it touches is fully settled by it
    (allocation plus any discount booked with it), else partial.
    """
    if method in (m.value for m in DEFERRED_METHODS):
        return PaymentStatus.PENDING.value
    tolerance = settings.MONEY_TOLERANCE
    for invoice_id, amount in plan.invoice_amounts.items():
        covered = amount + discounts.get(invoice_id, ZERO)
        if covered + tolerance < pending.get(invoice_id, ZERO):
            return PaymentStatus.PARTIAL.value
    return PaymentStatus.COMPLETED.value


def build_allocation_preview(db: Session, customer_id: int, amount, discount=ZERO) -> dict:
    """FIFO plan for a prospective payment; money beyond the outstanding shows as unallocated."""
    ledger_service.get_customer_or_404(db, customer_id)
    opening = customer_service.get_opening_balance_status(db, customer_id)
    invoices = invoice_service.open_invoices_for_allocation(db, customer_id)
    plan = fifo_allocate(amount, opening, invoices, discount=discount, allow_unallocated=True)
    result = plan.as_dict()
    result["total_outstanding"] = total_outstanding(opening, invoices)
    return result


def _plan_for(data: PaymentCreate, opening, invoices, discount: Decimal) -> AllocationPlan:
    if data.auto_allocate:
        return fifo_allocate(data.total_received, opening, invoices, discount=discount, allow_unallocated=True)

    requested: Dict[int, Decimal] = {}
    for alloc in data.invoice_allocations:
        if alloc.invoice_id in requested:
            raise AllocationError(f"Invoice {alloc.invoice_id} is allocated more than once")
        requested[alloc.invoice_id] = alloc.amount
    return validate_allocations(
        data.total_received, data.opening_balance_amount, requested, opening, invoices
    )


def create_customer_payment(db: Session, data: PaymentCreate, auto_commit: bool = True) -> Payment:
    """
    Record a payment, apply it, and post it to the ledger.

    With auto_allocate the money is spread FIFO (opening balance, then
    invoices by due date); any excess stays as customer credit. Otherwise
    the explicit allocations are validated and applied as given.
    """
    customer = ledger_service.get_customer_or_404(db, data.customer_id)
    total_received = to_money(data.total_received)
    if total_received <= 0:
        raise LedgerbookError("Payment amount must be greater than zero")

    opening = customer_service.get_opening_balance_status(db, customer.id)
    invoices = invoice_service.open_invoices_for_allocation(db, customer.id)
    pending = {inv.invoice_id: inv.pending_amount for inv in invoices}
    discount = to_money(data.discount_amount)

    discount_invoice_id = data.discount_invoice_id
    if discount > 0 and discount_invoice_id is None and data.auto_allocate and invoices:
        # FIFO reserves the discount on the last invoice in due-date order
        discount_invoice_id = fifo_order(invoices)[-1].invoice_id
    if discount_invoice_id is not None and discount_invoice_id not in pending:
        raise AllocationError(f"Invoice {discount_invoice_id} is not open for this customer")

    plan = _plan_for(data, opening, invoices, discount)
    booked_discounts = {discount_invoice_id: discount} if discount > 0 and discount_invoice_id else {}
    status = determine_status(data.payment_method.value, plan, pending, booked_discounts)

    try:
        payment = Payment(
            payment_number=generate_payment_number(db),
            customer_id=customer.id,
            payment_date=data.payment_date,
            total_received=total_received,
            payment_method=data.payment_method.value,
            reference_number=data.reference_number,
            bank_name=data.bank_name,
            cheque_date=data.cheque_date,
            status=status,
            notes=data.notes,
            discount_amount=discount,
            discount_invoice_id=discount_invoice_id if discount > 0 else None,
            discount_reason=data.discount_reason if discount > 0 else None,
        )
        db.add(payment)
        db.flush()  # Get ID without committing

        if plan.opening_balance_amount > 0:
            payment.applications.append(PaymentApplication(
                customer_id=customer.id,
                invoice_id=None,
                amount=plan.opening_balance_amount,
                application_date=data.payment_date,
                notes="Payment against opening balance",
            ))
        for invoice_id, amount in plan.invoice_amounts.items():
            if amount <= 0:
                continue
            invoice = invoice_service.apply_invoice_payment(db, invoice_id, amount, auto_commit=False)
            payment.applications.append(PaymentApplication(
                customer_id=customer.id,
                invoice_id=invoice_id,
                amount=amount,
                application_date=data.payment_date,
                notes=f"Payment for invoice {invoice.invoice_number}",
            ))
        db.flush()

        ledger_service.add_ledger_entry(
            db,
            customer.id,
            EntryType.PAYMENT.value,
            credit=total_received,
            description=_ledger_description(payment),
            entry_date=data.payment_date,
            reference_id=payment.id,
            reference_number=payment.payment_number,
            auto_commit=False,
        )

        if discount > 0:
            discount_service.create_discount(
                db,
                DiscountCreate(
                    customer_id=customer.id,
                    amount=discount,
                    reason=data.discount_reason or f"Discount with payment {payment.payment_number}",
                    date=data.payment_date,
                    invoice_id=discount_invoice_id,
                    payment_id=payment.id,
                ),
                auto_commit=False,
            )

        if auto_commit:
            db.commit()
            db.refresh(payment)
    except Exception:
        if auto_commit:
            db.rollback()
        raise

    logger.info(
        f"Created payment {payment.payment_number} for customer {customer.id}: "
        f"received {total_received}, applied {plan.total}, unapplied {plan.unallocated}, status {status}"
    )
    AuditLog.log_action(
        "create", "payment", payment.id, customer_id=customer.id,
        changes={
            "payment_number": payment.payment_number,
            "total_received": total_received,
            "opening_balance": plan.opening_balance_amount,
            "invoices": plan.invoice_amounts,
            "unapplied": plan.unallocated,
            "discount": discount,
            "status": status,
        },
    )
    return payment


def update_payment(db: Session, payment_id: int, data: PaymentUpdate, auto_commit: bool = True, today: Optional[date] = None) -> Payment:
    """Edit a payment's details. Allocations are not redistributed."""
    today = today or date.today()
    payment = get_payment(db, payment_id)
    changes = data.model_dump(exclude_unset=True)

    method = changes.get("payment_method") or payment.payment_method
    method = PaymentMethod(method).value
    status = changes.get("status")
    if status is None and "payment_method" in changes and method in (m.value for m in DEFERRED_METHODS):
        status = PaymentStatus.PENDING.value
    elif status is not None:
        status = PaymentStatus(status).value
    cheque_date = changes["cheque_date"] if "cheque_date" in changes else payment.cheque_date
    _check_future_cheque(status, method, cheque_date, today)

    new_total = payment.total_received
    if changes.get("total_received") is not None:
        new_total = to_money(changes["total_received"])
        applied = _applied_total(payment)
        if new_total < applied:
            raise InvalidStateError(
                f"Amount {new_total} is less than the {applied} already applied; delete and re-enter the payment"
            )
        distributed = _distributed_total(payment)
        if new_total < distributed:
            raise InvalidStateError(f"Amount {new_total} is less than the {distributed} already distributed")

    repost = (
        to_money(new_total) != to_money(payment.total_received)
        or ("payment_date" in changes and changes["payment_date"] != payment.payment_date)
        or (status is not None and status != payment.status)
    )

    try:
        payment.payment_method = method
        payment.total_received = new_total
        if changes.get("payment_date"):
            payment.payment_date = changes["payment_date"]
        for key in ("reference_number", "bank_name", "notes"):
            if key in changes:
                setattr(payment, key, changes[key])
        if "cheque_date" in changes:
            payment.cheque_date = changes["cheque_date"]
        if status is not None:
            payment.status = status
        db.flush()

        if repost:
            ledger_service.update_ledger_entry(
                db,
                payment.id,
                EntryType.PAYMENT.value,
                auto_commit=False,
                credit=payment.total_received,
                entry_date=payment.payment_date,
                description=_ledger_description(payment),
            )
        if auto_commit:
            db.commit()
            db.refresh(payment)
    except Exception:
        if auto_commit:
            db.rollback()
        raise

    AuditLog.log_action("update", "payment", payment.id, customer_id=payment.customer_id, changes=changes)
    return payment


def update_payment_status(
    db: Session,
    payment_id: int,
    status: str,
    cheque_date: Optional[date] = None,
    today: Optional[date] = None,
) -> Payment:
    today = today or date.today()
    payment = get_payment(db, payment_id)
    status = PaymentStatus(status).value
    effective_cheque_date = cheque_date or payment.cheque_date
    _check_future_cheque(status, payment.payment_method, effective_cheque_date, today)

    previous = payment.status
    try:
        payment.status = status
        if cheque_date is not None:
            payment.cheque_date = cheque_date
        db.flush()
        ledger_service.update_ledger_entry(
            db, payment.id, EntryType.PAYMENT.value, auto_commit=False,
            description=_ledger_description(payment),
        )
        db.commit()
        db.refresh(payment)
    except Exception:
        db.rollback()
        raise

    logger.info(f"Payment {payment.payment_number} status {previous} -> {status}")
    AuditLog.log_action(
        "status", "payment", payment.id, customer_id=payment.customer_id,
        changes={"from": previous, "to": status},
    )
    return payment


def add_distribution(db: Session, payment_id: int, data: DistributionCreate) -> PaymentDistribution:
    """Record where received money went onward. Cannot exceed what is still available."""
    payment = get_payment(db, payment_id)
    amount = to_money(data.amount)
    available = to_money(payment.total_received) - _distributed_total(payment)
    if amount > available + settings.MONEY_TOLERANCE:
        raise AllocationError(f"Distribution {amount} exceeds the available {available} on payment {payment.payment_number}")

    distribution = PaymentDistribution(
        payment_id=payment.id,
        payee_name=data.payee_name.strip(),
        payee_type=data.payee_type.value,
        amount=amount,
        purpose=data.purpose.strip(),
        allocation_date=data.allocation_date,
        status="allocated",
        notes=data.notes,
    )
    db.add(distribution)
    db.commit()
    db.refresh(distribution)
    AuditLog.log_action(
        "create", "distribution", distribution.id, customer_id=payment.customer_id,
        changes={"payment_id": payment.id, "amount": amount, "payee": distribution.payee_name},
    )
    return distribution


def delete_payment(db: Session, payment_id: int, auto_commit: bool = True) -> None:
    """
    Undo a payment completely: invoice applications, the opening balance
    application, discounts posted with it, and its ledger entry.
    """
    payment = get_payment(db, payment_id)
    customer_id = payment.customer_id
    number = payment.payment_number

    try:
        for app in list(payment.applications):
            if app.invoice_id is not None:
                invoice_service.reverse_invoice_payment(db, app.invoice_id, app.amount, auto_commit=False)
        discount_service.reverse_payment_discounts(db, payment.id, auto_commit=False)
        ledger_service.remove_ledger_entries(
            db, payment.id, EntryType.PAYMENT.value, customer_id=customer_id, auto_commit=False
        )
        db.delete(payment)  # applications and distributions cascade
        db.flush()
        ledger_service.rebuild_customer_ledger(db, customer_id)
        if auto_commit:
            db.commit()
    except Exception:
        if auto_commit:
            db.rollback()
        logger.error(f"Failed to delete payment {number}", exc_info=True)
        raise

    logger.info(f"Deleted payment {number} for customer {customer_id}")
    AuditLog.log_action("delete", "payment", payment_id, customer_id=customer_id, changes={"payment_number": number})


def _payment_filters(query, start, end, customer_id, method, status):
    if start:
        query = query.filter(Payment.payment_date >= start)
    if end:
        query = query.filter(Payment.payment_date <= end)
    if customer_id is not None:
        query = query.filter(Payment.customer_id == customer_id)
    if method:
        query = query.filter(Payment.payment_method == PaymentMethod(method).value)
    if status:
        query = query.filter(Payment.status == PaymentStatus(status).value)
    return query


def list_payments(
    db: Session,
    start: Optional[date] = None,
    end: Optional[date] = None,
    customer_id: Optional[int] = None,
    method: Optional[str] = None,
    status: Optional[str] = None,
) -> dict:
    query = _payment_filters(db.query(Payment), start, end, customer_id, method, status)
    payments = query.order_by(Payment.payment_date.desc(), Payment.id.desc()).all()

    received = sum((to_money(p.total_received) for p in payments), ZERO)
    distributed = sum((_distributed_total(p) for p in payments), ZERO)
    return {
        "payments": payments,
        "summary": {
            "count": len(payments),
            "total_received": received,
            "total_distributed": distributed,
            "available": received - distributed,
        },
    }


def get_customer_payments(db: Session, customer_id: int) -> List[Payment]:
    ledger_service.get_customer_or_404(db, customer_id)
    return (
        db.query(Payment)
        .filter(Payment.customer_id == customer_id)
        .order_by(Payment.payment_date.desc(), Payment.id.desc())
        .all()
    )


def get_invoices_paid_by_payment(db: Session, payment_id: int) -> dict:
    """Where a payment went: opening balance share, each invoice, and what was left unapplied."""
    payment = get_payment(db, payment_id)
    invoices = []
    opening_amount = ZERO
    for app in payment.applications:
        if app.invoice_id is None:
            opening_amount += to_money(app.amount)
            continue
        invoice = db.query(Invoice).filter(Invoice.id == app.invoice_id).first()
        invoices.append({
            "invoice_id": app.invoice_id,
            "invoice_number": invoice.invoice_number if invoice else None,
            "amount": to_money(app.amount),
            "invoice_total": to_money(invoice.total_amount) if invoice else None,
            "invoice_pending": to_money(invoice.pending_amount) if invoice else None,
            "invoice_status": invoice.status if invoice else None,
        })
    applied = _applied_total(payment)
    return {
        "payment_id": payment.id,
        "payment_number": payment.payment_number,
        "total_received": to_money(payment.total_received),
        "opening_balance_amount": opening_amount,
        "invoices": invoices,
        "unapplied": max(ZERO, to_money(payment.total_received) - applied),
        "is_full_for_invoices": all(row["invoice_pending"] == ZERO for row in invoices if row["invoice_pending"] is not None),
    }


def get_payment_analytics(db: Session, start: Optional[date] = None, end: Optional[date] = None) -> dict:
    """Totals by method, status counts and a per-day series for the period."""
    payments = _payment_filters(db.query(Payment), start, end, None, None, None).all()

    by_method: Dict[str, Decimal] = defaultdict(lambda: ZERO)
    daily: Dict[date, Decimal] = defaultdict(lambda: ZERO)
    for p in payments:
        amount = to_money(p.total_received)
        by_method[p.payment_method] += amount
        daily[p.payment_date] += amount

    total = sum(by_method.values(), ZERO)
    return {
        "start_date": start,
        "end_date": end,
        "total_payments": len(payments),
        "total_amount": total,
        "average_amount": (total / len(payments)).quantize(Decimal("0.01")) if payments else ZERO,
        "by_method": dict(by_method),
        "completed_count": sum(1 for p in payments if p.status == PaymentStatus.COMPLETED.value),
        "pending_count": sum(1 for p in payments if p.status == PaymentStatus.PENDING.value),
        "partial_count": sum(1 for p in payments if p.status == PaymentStatus.PARTIAL.value),
        "daily_totals": [{"date": d, "amount": daily[d]} for d in sorted(daily)],
    }

