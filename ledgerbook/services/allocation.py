"""
FIFO allocation of a received payment across a customer's obligations.

Pure functions, no database access. The positive opening balance is
settled first, then invoices oldest due date first; invoices that share a
due date keep the order they were given in.

    opening = OpeningBalanceState(amount=1000, is_positive=True, remaining_amount=1000)
    plan = fifo_allocate(Decimal("4500"), opening, [inv_a, inv_b])
    plan.opening_balance_amount   # 1000
    plan.invoice_amounts          # {a: 2000, b: 1500}

A plan is also what the payment form edits by hand: set_invoice_amount and
set_opening_amount change one line and leave the others alone.
"""
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from ledgerbook.core.config import settings
from ledgerbook.core.exceptions import AllocationError, OverAllocationError

ZERO = Decimal("0")
CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Decimal rounded to cents. Accepts Decimal, int, float or str."""
    if value is None:
        return ZERO
    return Decimal(str(value)).quantize(CENT)


class OpeningBalanceState(BaseModel):
    amount: Decimal = ZERO
    is_positive: bool = False
    paid_amount: Decimal = ZERO
    remaining_amount: Decimal = Field(ZERO, ge=0)
    as_of_date: Optional[date] = None

    @property
    def outstanding(self) -> Decimal:
        # A negative opening balance is an advance, nothing to collect
        return self.remaining_amount if self.is_positive else ZERO


class OpenInvoice(BaseModel):
    invoice_id: int
    invoice_number: str = ""
    due_date: date
    pending_amount: Decimal
    sequence: int = 0


class AllocationPlan(BaseModel):
    opening_balance_amount: Decimal = ZERO
    invoice_amounts: Dict[int, Decimal] = Field(default_factory=dict)
    unallocated: Decimal = ZERO
    # Caps for manual edits, filled in by fifo_allocate / validate_allocations
    opening_outstanding: Decimal = ZERO
    invoice_outstanding: Dict[int, Decimal] = Field(default_factory=dict)

    @property
    def total(self) -> Decimal:
        return self.opening_balance_amount + sum(self.invoice_amounts.values(), ZERO)

    def set_invoice_amount(self, invoice_id: int, amount) -> Decimal:
        """Set one invoice line, clamped to [0, its outstanding]. Zero removes it."""
        if invoice_id not in self.invoice_outstanding:
            raise AllocationError(f"Invoice {invoice_id} is not open for this customer")
        value = min(max(to_money(amount), ZERO), self.invoice_outstanding[invoice_id])
        if value == ZERO:
            self.invoice_amounts.pop(invoice_id, None)
        else:
            self.invoice_amounts[invoice_id] = value
        return value

    def set_opening_amount(self, amount) -> Decimal:
        """Set the opening balance line, clamped to [0, remaining opening balance]."""
        value = min(max(to_money(amount), ZERO), self.opening_outstanding)
        self.opening_balance_amount = value
        return value

    def as_dict(self) -> dict:
        return {
            "opening_balance_amount": self.opening_balance_amount,
            "invoice_amounts": dict(self.invoice_amounts),
            "unallocated": self.unallocated,
            "total": self.total,
        }


def fifo_order(invoices: Iterable[OpenInvoice]) -> List[OpenInvoice]:
    # sorted() is stable, sequence breaks remaining ties explicitly
    return sorted(invoices, key=lambda inv: (inv.due_date, inv.sequence))


def total_outstanding(opening: Optional[OpeningBalanceState], invoices: Iterable[OpenInvoice]) -> Decimal:
    total = opening.outstanding if opening is not None else ZERO
    for inv in invoices:
        if inv.pending_amount > 0:
            total += inv.pending_amount
    return total


def fifo_allocate(
    amount,
    opening: Optional[OpeningBalanceState],
    invoices: Iterable[OpenInvoice],
    discount=ZERO,
    allow_unallocated: bool = False,
) -> AllocationPlan:
    """
    Spread `amount` over the opening balance and open invoices, oldest first.

    A discount reduces what the last invoice in FIFO order needs. Money left
    over after every target is settled raises OverAllocationError unless
    allow_unallocated is set, in which case it is returned as plan.unallocated.
    """
    amount = to_money(amount)
    discount = to_money(discount)
    if amount < 0:
        raise AllocationError("Payment amount cannot be negative")
    if discount < 0:
        raise AllocationError("Discount cannot be negative")

    ordered = fifo_order(invoices)
    opening_cap = opening.outstanding if opening is not None else ZERO

    needs: Dict[int, Decimal] = {}
    for inv in ordered:
        needs[inv.invoice_id] = max(ZERO, inv.pending_amount)
    if discount > 0 and ordered:
        last_id = ordered[-1].invoice_id
        needs[last_id] = max(ZERO, needs[last_id] - discount)

    plan = AllocationPlan(opening_outstanding=opening_cap, invoice_outstanding=dict(needs))
    remaining = amount

    if opening_cap > 0 and remaining > 0:
        applied = min(opening_cap, remaining)
        plan.opening_balance_amount = applied
        remaining -= applied

    for inv in ordered:
        if remaining <= 0:
            break
        need = needs[inv.invoice_id]
        if need <= 0:
            continue
        applied = min(need, remaining)
        plan.invoice_amounts[inv.invoice_id] = applied
        remaining -= applied

    if remaining > 0:
        if not allow_unallocated:
            raise OverAllocationError(amount, amount - remaining)
        plan.unallocated = remaining
    return plan


def reset_to_fifo(
    plan: AllocationPlan,
    amount,
    opening: Optional[OpeningBalanceState],
    invoices: Iterable[OpenInvoice],
    discount=ZERO,
    allow_unallocated: bool = False,
) -> AllocationPlan:
    """Discard manual edits on `plan` and refill it from a fresh FIFO run."""
    fresh = fifo_allocate(amount, opening, invoices, discount=discount, allow_unallocated=allow_unallocated)
    plan.opening_balance_amount = fresh.opening_balance_amount
    plan.invoice_amounts = fresh.invoice_amounts
    plan.unallocated = fresh.unallocated
    plan.opening_outstanding = fresh.opening_outstanding
    plan.invoice_outstanding = fresh.invoice_outstanding
    return plan


def validate_allocations(
    amount,
    opening_amount,
    invoice_amounts: Dict[int, Decimal],
    opening: Optional[OpeningBalanceState],
    invoices: Iterable[OpenInvoice],
) -> AllocationPlan:
    """
    Check hand-entered allocations and return them as a plan.

    Each line must be >= 0 and no larger than its target's outstanding;
    the lines together may not exceed the payment or the total outstanding.
    """
    tolerance = settings.MONEY_TOLERANCE
    amount = to_money(amount)
    opening_amount = to_money(opening_amount)
    invoices = list(invoices)
    by_id = {inv.invoice_id: inv for inv in invoices}
    opening_cap = opening.outstanding if opening is not None else ZERO

    if amount < 0:
        raise AllocationError("Payment amount cannot be negative")
    if opening_amount < 0:
        raise AllocationError("Opening balance allocation cannot be negative")
    if opening_amount > opening_cap + tolerance:
        raise AllocationError(
            f"Opening balance allocation {opening_amount} exceeds remaining opening balance {opening_cap}"
        )

    plan = AllocationPlan(
        opening_outstanding=opening_cap,
        invoice_outstanding={inv.invoice_id: max(ZERO, inv.pending_amount) for inv in invoices},
    )
    plan.opening_balance_amount = min(opening_amount, opening_cap)

    for invoice_id, raw in invoice_amounts.items():
        value = to_money(raw)
        if invoice_id not in by_id:
            raise AllocationError(f"Invoice {invoice_id} is not open for this customer")
        if value < 0:
            raise AllocationError(f"Allocation for invoice {by_id[invoice_id].invoice_number or invoice_id} cannot be negative")
        pending = max(ZERO, by_id[invoice_id].pending_amount)
        if value > pending + tolerance:
            raise AllocationError(
                f"Allocation {value} exceeds pending amount {pending} "
                f"of invoice {by_id[invoice_id].invoice_number or invoice_id}"
            )
        if value > 0:
            plan.invoice_amounts[invoice_id] = min(value, pending)

    allocated = plan.total
    if allocated > amount:
        raise AllocationError(f"Allocated {allocated} is more than the payment amount {amount}")
    outstanding = total_outstanding(opening, invoices)
    if allocated > outstanding + tolerance:
        raise OverAllocationError(allocated, outstanding)

    plan.unallocated = max(ZERO, amount - allocated)
    return plan
