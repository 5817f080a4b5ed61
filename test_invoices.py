"""Invoice lifecycle: numbering, totals, status derivation, edit/cancel/delete rules."""
from datetime import timedelta
from decimal import Decimal

import pytest

from ledgerbook.core.exceptions import DeletionBlockedError, InvalidStateError, LedgerbookError
from ledgerbook.models.discount import Discount
from ledgerbook.models.ledger import LedgerEntry
from ledgerbook.schemas.discount import DiscountCreate
from ledgerbook.schemas.invoice import InvoiceCreate, InvoiceItemCreate, InvoiceUpdate
from ledgerbook.services import discount_service, invoice_service

D = Decimal


def _invoice_entries(db, invoice_id):
    return db.query(LedgerEntry).filter(LedgerEntry.type == "invoice", LedgerEntry.reference_id == invoice_id).all()


def test_create_computes_lines_and_posts_debit(db, today, make_customer):
    customer = make_customer()
    invoice = invoice_service.create_invoice(
        db,
        InvoiceCreate(
            customer_id=customer.id,
            issue_date=today,
            term="net_15",
            items=[
                InvoiceItemCreate(description="Flex print", quantity=D("2"), inches=D("36"), rate=D("5")),
                InvoiceItemCreate(description="Fitting", amount=D("140")),
            ],
        ),
    )

    assert invoice.invoice_number == f"INV-{today.year}-001"
    assert invoice.status == "draft"
    assert invoice.due_date == today + timedelta(days=15)
    assert [item.amount for item in invoice.items] == [D("360.00"), D("140.00")]
    assert invoice.total_amount == D("500.00")
    assert invoice.pending_amount == D("500.00")

    entries = _invoice_entries(db, invoice.id)
    assert len(entries) == 1 and entries[0].debit == D("500.00")
    db.refresh(customer)
    assert customer.current_balance == D("500.00")


def test_numbers_are_sequential(make_customer, make_invoice, today):
    customer = make_customer()
    first = make_invoice(customer.id, "100")
    second = make_invoice(customer.id, "100")
    assert first.invoice_number == f"INV-{today.year}-001"
    assert second.invoice_number == f"INV-{today.year}-002"


def test_duplicate_number_rejected(db, today, make_customer, make_invoice):
    customer = make_customer()
    make_invoice(customer.id, "100", invoice_number="CUSTOM-1")
    with pytest.raises(LedgerbookError):
        make_invoice(customer.id, "100", invoice_number="CUSTOM-1")


def test_due_date_before_issue_date_rejected(db, today, make_customer):
    customer = make_customer()
    with pytest.raises(LedgerbookError):
        invoice_service.create_invoice(
            db,
            InvoiceCreate(
                customer_id=customer.id,
                issue_date=today,
                due_date=today - timedelta(days=1),
                items=[InvoiceItemCreate(description="x", amount=D("10"))],
            ),
        )


def test_zero_total_rejected(db, today, make_customer):
    customer = make_customer()
    with pytest.raises(LedgerbookError):
        invoice_service.create_invoice(
            db,
            InvoiceCreate(
                customer_id=customer.id,
                issue_date=today,
                items=[InvoiceItemCreate(description="Free sample")],
            ),
        )


def test_status_follows_payments(db, make_customer, make_invoice):
    customer = make_customer()
    invoice = make_invoice(customer.id, "1000")
    assert invoice.status == "sent"

    invoice_service.apply_invoice_payment(db, invoice.id, D("400"))
    assert invoice.status == "partial"
    assert invoice.pending_amount == D("600.00")

    invoice_service.apply_invoice_payment(db, invoice.id, D("600"))
    assert invoice.status == "paid"
    assert invoice.pending_amount == D("0")

    invoice_service.reverse_invoice_payment(db, invoice.id, D("1000"))
    assert invoice.status == "sent"
    assert invoice.pending_amount == D("1000.00")


def test_partial_payment_past_due_is_overdue(db, today, make_customer, make_invoice):
    customer = make_customer()
    invoice = make_invoice(
        customer.id, "1000", issue_date=today - timedelta(days=40), due_date=today - timedelta(days=10)
    )
    invoice_service.apply_invoice_payment(db, invoice.id, D("100"))
    assert invoice.status == "overdue"


def test_refresh_overdue_statuses(db, today, make_customer, make_invoice):
    customer = make_customer()
    late = make_invoice(customer.id, "100", issue_date=today - timedelta(days=40), due_date=today - timedelta(days=1))
    current = make_invoice(customer.id, "100")
    draft = make_invoice(customer.id, "100", issue_date=today - timedelta(days=40),
                         due_date=today - timedelta(days=1), send=False)

    assert invoice_service.refresh_overdue_statuses(db, today) == 1
    db.refresh(late)
    db.refresh(current)
    db.refresh(draft)
    assert late.status == "overdue"
    assert current.status == "sent"
    assert draft.status == "draft"

    summary = invoice_service.list_invoices(db, today=today)["summary"]
    assert summary["overdue_count"] == 1


def test_mark_as_sent_only_from_draft(db, make_customer, make_invoice):
    customer = make_customer()
    invoice = make_invoice(customer.id, "100")
    with pytest.raises(InvalidStateError):
        invoice_service.mark_as_sent(db, invoice.id)


def test_draft_returns_to_draft_when_payment_reversed(db, make_customer, make_invoice):
    customer = make_customer()
    draft = make_invoice(customer.id, "500", send=False)
    assert draft.sent_at is None

    invoice_service.apply_invoice_payment(db, draft.id, D("200"))
    assert draft.status == "partial"
    invoice_service.reverse_invoice_payment(db, draft.id, D("200"))
    assert draft.status == "draft"

    sent = make_invoice(customer.id, "500")
    assert sent.sent_at is not None
    invoice_service.apply_invoice_payment(db, sent.id, D("500"))
    assert sent.status == "paid"
    invoice_service.reverse_invoice_payment(db, sent.id, D("500"))
    assert sent.status == "sent"


def test_update_items_reposts_ledger(db, make_customer, make_invoice):
    customer = make_customer()
    invoice = make_invoice(customer.id, "1000")
    invoice_service.apply_invoice_payment(db, invoice.id, D("300"))

    invoice_service.update_invoice(
        db, invoice.id, InvoiceUpdate(items=[InvoiceItemCreate(description="Revised", amount=D("800"))])
    )
    assert invoice.total_amount == D("800.00")
    assert invoice.paid_amount == D("300.00")
    assert invoice.pending_amount == D("500.00")
    assert _invoice_entries(db, invoice.id)[0].debit == D("800.00")
    db.refresh(customer)
    assert customer.current_balance == D("800.00")


def test_update_below_paid_rejected_without_changes(db, make_customer, make_invoice):
    customer = make_customer()
    invoice = make_invoice(customer.id, "1000")
    invoice_service.apply_invoice_payment(db, invoice.id, D("600"))

    with pytest.raises(InvalidStateError):
        invoice_service.update_invoice(
            db, invoice.id, InvoiceUpdate(items=[InvoiceItemCreate(description="Too small", amount=D("500"))])
        )
    db.refresh(invoice)
    assert invoice.total_amount == D("1000.00")


def test_cancel_removes_ledger_debit(db, make_customer, make_invoice):
    customer = make_customer()
    invoice = make_invoice(customer.id, "1000")
    invoice_service.cancel_invoice(db, invoice.id)

    assert invoice.status == "cancelled"
    assert invoice.pending_amount == D("0")
    assert _invoice_entries(db, invoice.id) == []
    db.refresh(customer)
    assert customer.current_balance == D("0")
    assert invoice_service.get_customer_pending_invoices(db, customer.id) == []


def test_cancel_blocked_by_payment(db, make_customer, make_invoice):
    customer = make_customer()
    invoice = make_invoice(customer.id, "1000")
    invoice_service.apply_invoice_payment(db, invoice.id, D("10"))
    with pytest.raises(InvalidStateError):
        invoice_service.cancel_invoice(db, invoice.id)


def test_delete_blocked_by_payment_application(db, make_customer, make_invoice, make_payment):
    customer = make_customer()
    invoice = make_invoice(customer.id, "1000")
    make_payment(customer.id, "200")
    with pytest.raises(DeletionBlockedError):
        invoice_service.delete_invoice(db, invoice.id)


def test_delete_detaches_discounts(db, today, make_customer, make_invoice):
    customer = make_customer()
    invoice = make_invoice(customer.id, "1000")
    discount = discount_service.create_discount(
        db, DiscountCreate(customer_id=customer.id, amount=D("100"), date=today, invoice_id=invoice.id)
    )
    invoice_id = invoice.id

    invoice_service.delete_invoice(db, invoice_id)

    db.refresh(discount)
    assert discount.invoice_id is None
    assert discount.invoice_applied_amount == D("0")
    assert _invoice_entries(db, invoice_id) == []
    db.refresh(customer)
    # Only the discount credit remains
    assert customer.current_balance == D("-100.00")
    assert db.query(Discount).count() == 1


def test_pending_invoices_oldest_due_first(db, today, make_customer, make_invoice):
    customer = make_customer()
    later = make_invoice(customer.id, "100", due_date=today + timedelta(days=40))
    sooner = make_invoice(customer.id, "100", due_date=today + timedelta(days=5))
    paid = make_invoice(customer.id, "100")
    invoice_service.apply_invoice_payment(db, paid.id, D("100"))

    pending = invoice_service.get_customer_pending_invoices(db, customer.id)
    assert [inv.id for inv in pending] == [sooner.id, later.id]


def test_list_search_by_company(db, make_customer, make_invoice):
    alpha = make_customer("Alpha Prints")
    beta = make_customer("Beta Signs")
    make_invoice(alpha.id, "100")
    make_invoice(beta.id, "250")

    result = invoice_service.list_invoices(db, search="beta")
    assert len(result["invoices"]) == 1
    assert result["summary"]["total_amount"] == D("250.00")
