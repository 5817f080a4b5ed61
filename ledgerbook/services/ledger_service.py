"""
Per-customer running ledger.

Invoices debit the customer, payments and discounts credit them. The
stored `balance` on each entry and `customer.current_balance` are caches:
every posting rewrites them from the full list of entries, never by
incrementing, so a rebuild always repairs them.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from ledgerbook.core.audit import AuditLog
from ledgerbook.core.config import settings
from ledgerbook.core.exceptions import LedgerbookError, NotFoundError
from ledgerbook.models.customer import Customer
from ledgerbook.models.ledger import LedgerEntry
from ledgerbook.schemas.ledger import EntryType
from ledgerbook.services.allocation import ZERO, to_money

logger = logging.getLogger(__name__)


def _sort_key(entry: LedgerEntry):
    # created_at is NULL only for rows not yet reloaded after insert
    created = entry.created_at
    return (entry.date, created is None, created if created is not None else 0, entry.id or 0)


def compute_running_balances(
    entries: Iterable[LedgerEntry], starting_balance: Decimal = ZERO
) -> List[Tuple[LedgerEntry, Decimal]]:
    """Order entries by (date, created_at, id) and pair each with its running balance.

    Hidden entries carry the previous balance and do not move it.
    """
    balance = to_money(starting_balance)
    result = []
    for entry in sorted(entries, key=_sort_key):
        if not entry.is_hidden:
            balance = balance + to_money(entry.debit) - to_money(entry.credit)
        result.append((entry, balance))
    return result


def get_customer_or_404(db: Session, customer_id: int) -> Customer:
    customer = db.query(Customer).filter(Customer.id == customer_id).first()
    if not customer:
        raise NotFoundError("Customer", customer_id)
    return customer


def rebuild_customer_ledger(db: Session, customer_id: int) -> Decimal:
    """Rewrite every stored running balance and the customer's current balance."""
    customer = get_customer_or_404(db, customer_id)
    db.flush()
    entries = db.query(LedgerEntry).filter(LedgerEntry.customer_id == customer_id).all()

    current = ZERO
    for entry, balance in compute_running_balances(entries):
        if to_money(entry.balance) != balance:
            entry.balance = balance
        if not entry.is_hidden:
            current = balance

    customer.current_balance = current
    db.flush()
    logger.debug(f"Rebuilt ledger for customer {customer_id}: {len(entries)} entries, balance {current}")
    return current


def add_ledger_entry(
    db: Session,
    customer_id: int,
    entry_type: str,
    debit: Decimal | float = Decimal("0"),
    credit: Decimal | float = Decimal("0"),
    description: str | None = None,
    entry_date: date | None = None,
    reference_id: int | None = None,
    reference_number: str | None = None,
    is_hidden: bool = False,
    auto_commit: bool = True,
) -> LedgerEntry:
    """Insert an entry and rebuild the customer's balances."""
    debit = to_money(debit)
    credit = to_money(credit)
    if debit < 0 or credit < 0:
        raise LedgerbookError("Debit and credit cannot be negative")

    get_customer_or_404(db, customer_id)
    entry = LedgerEntry(
        customer_id=customer_id,
        date=entry_date or date.today(),
        type=EntryType(entry_type).value,
        reference_id=reference_id,
        reference_number=reference_number,
        debit=debit,
        credit=credit,
        balance=ZERO,
        description=description,
        is_hidden=is_hidden,
    )
    db.add(entry)
    db.flush()
    rebuild_customer_ledger(db, customer_id)

    if auto_commit:
        db.commit()
        db.refresh(entry)
    return entry


def remove_ledger_entries(
    db: Session,
    reference_id: int,
    entry_type: str,
    customer_id: int | None = None,
    auto_commit: bool = True,
) -> int:
    """Delete entries posted for one document (invoice, payment, discount) and rebuild."""
    query = db.query(LedgerEntry).filter(
        LedgerEntry.reference_id == reference_id,
        LedgerEntry.type == EntryType(entry_type).value,
    )
    if customer_id is not None:
        query = query.filter(LedgerEntry.customer_id == customer_id)
    entries = query.all()

    affected = {entry.customer_id for entry in entries}
    for entry in entries:
        db.delete(entry)
    db.flush()
    for cid in affected:
        rebuild_customer_ledger(db, cid)

    if auto_commit:
        db.commit()
    return len(entries)


def update_ledger_entry(
    db: Session,
    reference_id: int,
    entry_type: str,
    auto_commit: bool = True,
    **fields,
) -> Optional[LedgerEntry]:
    """Re-post the entry of a document in place (amount, date, description) and rebuild."""
    entry = (
        db.query(LedgerEntry)
        .filter(LedgerEntry.reference_id == reference_id, LedgerEntry.type == EntryType(entry_type).value)
        .first()
    )
    if not entry:
        return None
    for key in ("debit", "credit"):
        if key in fields:
            fields[key] = to_money(fields[key])
    if "entry_date" in fields:
        fields["date"] = fields.pop("entry_date")
    for key, value in fields.items():
        setattr(entry, key, value)
    db.flush()
    rebuild_customer_ledger(db, entry.customer_id)

    if auto_commit:
        db.commit()
        db.refresh(entry)
    return entry


def _entry_row(entry: LedgerEntry, balance: Decimal) -> dict:
    return {
        "id": entry.id,
        "customer_id": entry.customer_id,
        "date": entry.date,
        "type": entry.type,
        "reference_id": entry.reference_id,
        "reference_number": entry.reference_number,
        "debit": to_money(entry.debit),
        "credit": to_money(entry.credit),
        "balance": balance,
        "description": entry.description,
        "is_hidden": bool(entry.is_hidden),
        "created_at": entry.created_at,
    }


def _split_period(rows, start: date | None, end: date | None):
    """Carried-in balance (last visible balance before start) and the rows inside [start, end]."""
    carried = ZERO
    inside = []
    for entry, balance in rows:
        if start is not None and entry.date < start:
            if not entry.is_hidden:
                carried = balance
            continue
        if end is not None and entry.date > end:
            continue
        inside.append((entry, balance))
    return carried, inside


def get_customer_ledger(
    db: Session,
    customer_id: int,
    start: date | None = None,
    end: date | None = None,
    include_hidden: bool = False,
) -> List[dict]:
    """Entries in posting order with running balances computed from the full history."""
    get_customer_or_404(db, customer_id)
    entries = db.query(LedgerEntry).filter(LedgerEntry.customer_id == customer_id).all()
    _, inside = _split_period(compute_running_balances(entries), start, end)
    return [_entry_row(e, b) for e, b in inside if include_hidden or not e.is_hidden]


def get_ledger_summary(
    db: Session,
    customer_id: int,
    start: date | None = None,
    end: date | None = None,
    include_hidden: bool = False,
) -> dict:
    get_customer_or_404(db, customer_id)
    entries = db.query(LedgerEntry).filter(LedgerEntry.customer_id == customer_id).all()
    carried, inside = _split_period(compute_running_balances(entries), start, end)

    visible = [(e, b) for e, b in inside if not e.is_hidden]
    total_debits = sum((to_money(e.debit) for e, _ in visible), ZERO)
    total_credits = sum((to_money(e.credit) for e, _ in visible), ZERO)
    closing = visible[-1][1] if visible else carried

    return {
        "customer_id": customer_id,
        "start_date": start,
        "end_date": end,
        "opening_balance": carried,
        "closing_balance": closing,
        "total_debits": total_debits,
        "total_credits": total_credits,
        "entries": [_entry_row(e, b) for e, b in inside if include_hidden or not e.is_hidden],
    }


def ensure_opening_balance_entry(
    db: Session,
    customer_id: int,
    amount,
    as_of_date: date,
    auto_commit: bool = True,
) -> Optional[LedgerEntry]:
    """Keep exactly one opening-balance entry: debit when positive, credit when negative, none at zero."""
    amount = to_money(amount)
    existing = (
        db.query(LedgerEntry)
        .filter(LedgerEntry.customer_id == customer_id, LedgerEntry.type == EntryType.OPENING_BALANCE.value)
        .all()
    )
    for entry in existing:
        db.delete(entry)
    db.flush()

    entry = None
    if amount != ZERO:
        entry = add_ledger_entry(
            db,
            customer_id,
            EntryType.OPENING_BALANCE.value,
            debit=amount if amount > 0 else ZERO,
            credit=-amount if amount < 0 else ZERO,
            description="Opening balance",
            entry_date=as_of_date,
            reference_id=customer_id,
            auto_commit=False,
        )
    else:
        rebuild_customer_ledger(db, customer_id)

    if auto_commit:
        db.commit()
    return entry


def post_adjustment(
    db: Session,
    customer_id: int,
    entry_date: date,
    debit=ZERO,
    credit=ZERO,
    description: str = "Adjustment",
    is_hidden: bool = False,
    auto_commit: bool = True,
) -> LedgerEntry:
    """Manual correction line. Hidden adjustments are memo lines that never move the balance."""
    debit = to_money(debit)
    credit = to_money(credit)
    if debit == ZERO and credit == ZERO and not is_hidden:
        raise LedgerbookError("Adjustment needs a debit or a credit amount")

    entry = add_ledger_entry(
        db,
        customer_id,
        EntryType.ADJUSTMENT.value,
        debit=debit,
        credit=credit,
        description=description,
        entry_date=entry_date,
        is_hidden=is_hidden,
        auto_commit=auto_commit,
    )
    AuditLog.log_action(
        "create", "adjustment", entry.id, customer_id=customer_id,
        changes={"debit": debit, "credit": credit, "hidden": is_hidden},
    )
    return entry


def check_balance_consistency(db: Session, customer_id: int) -> dict:
    """Compare the stored current balance with one recomputed from the entries."""
    customer = get_customer_or_404(db, customer_id)
    entries = db.query(LedgerEntry).filter(LedgerEntry.customer_id == customer_id).all()
    rows = compute_running_balances(entries)

    visible = [(e, b) for e, b in rows if not e.is_hidden]
    recomputed = visible[-1][1] if visible else ZERO
    last_stored = to_money(visible[-1][0].balance) if visible else None
    stored = to_money(customer.current_balance)

    tolerance = settings.MONEY_TOLERANCE
    consistent = abs(stored - recomputed) <= tolerance and (
        last_stored is None or abs(last_stored - recomputed) <= tolerance
    )
    if not consistent:
        AuditLog.log_balance_drift(customer_id, stored, recomputed)

    return {
        "customer_id": customer_id,
        "stored_balance": stored,
        "recomputed_balance": recomputed,
        "last_entry_balance": last_stored,
        "entry_count": len(rows),
        "visible_entry_count": len(visible),
        "is_consistent": consistent,
    }
