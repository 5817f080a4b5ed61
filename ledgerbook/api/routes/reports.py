"""
Reports API: dashboard cards and the two business reports.

- Dashboard summary (revenue, pending, overdue, collection efficiency)
- Parties balances (per-customer debit/credit/balance)
- Payment details (allocated / distributed / unapplied per payment)
- Customer statement (ledger for a period)
"""
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ledgerbook.api.deps import get_db
from ledgerbook.core.exceptions import BusinessError, LedgerbookError
from ledgerbook.schemas.payment import PaymentMethod, PaymentStatus
from ledgerbook.services import report_service

router = APIRouter()


@router.get("/dashboard")
def dashboard(
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    db: Session = Depends(get_db),
):
    summary = report_service.dashboard_summary(db, start=start_date, end=end_date)
    summary["recent_activity"] = report_service.recent_activity(db)
    return summary


@router.get("/parties-balances")
def parties_balances(
    city: str | None = Query(None),
    search: str | None = Query(None),
    last_payment_from: date | None = Query(None),
    last_payment_to: date | None = Query(None),
    db: Session = Depends(get_db),
):
    return report_service.parties_balances(db, city, search, last_payment_from, last_payment_to)


@router.get("/payment-details")
def payment_details(
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    method: PaymentMethod | None = Query(None),
    status: PaymentStatus | None = Query(None),
    customer_id: int | None = Query(None),
    db: Session = Depends(get_db),
):
    return report_service.payment_details(
        db,
        start=start_date,
        end=end_date,
        method=method.value if method else None,
        status=status.value if status else None,
        customer_id=customer_id,
    )


@router.get("/customer-statement/{customer_id}")
def customer_statement(
    customer_id: int,
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    db: Session = Depends(get_db),
):
    try:
        return report_service.customer_statement(db, customer_id, start_date, end_date)
    except LedgerbookError as e:
        raise BusinessError.from_domain(e)
