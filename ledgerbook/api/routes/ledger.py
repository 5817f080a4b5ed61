"""Customer ledger: entries, period summary, adjustments, consistency check."""
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ledgerbook.api.deps import get_db
from ledgerbook.core.exceptions import BusinessError, LedgerbookError
from ledgerbook.schemas.ledger import (
    AdjustmentCreate,
    BalanceConsistency,
    LedgerEntryResponse,
    LedgerSummaryResponse,
)
from ledgerbook.services import ledger_service

router = APIRouter()


@router.get("/{customer_id}", response_model=list[LedgerEntryResponse])
def get_customer_ledger(
    customer_id: int,
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    include_hidden: bool = Query(False),
    db: Session = Depends(get_db),
):
    try:
        return ledger_service.get_customer_ledger(db, customer_id, start_date, end_date, include_hidden)
    except LedgerbookError as e:
        raise BusinessError.from_domain(e)


@router.get("/{customer_id}/summary", response_model=LedgerSummaryResponse)
def get_ledger_summary(
    customer_id: int,
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    db: Session = Depends(get_db),
):
    try:
        return ledger_service.get_ledger_summary(db, customer_id, start_date, end_date)
    except LedgerbookError as e:
        raise BusinessError.from_domain(e)


@router.post("/{customer_id}/adjustments", response_model=LedgerEntryResponse, status_code=201)
def post_adjustment(customer_id: int, data: AdjustmentCreate, db: Session = Depends(get_db)):
    try:
        return ledger_service.post_adjustment(
            db,
            customer_id,
            data.date,
            debit=data.debit,
            credit=data.credit,
            description=data.description,
            is_hidden=data.is_hidden,
        )
    except LedgerbookError as e:
        raise BusinessError.from_domain(e)


@router.post("/{customer_id}/rebuild", response_model=dict)
def rebuild_ledger(customer_id: int, db: Session = Depends(get_db)):
    """Recompute stored running balances from the entries."""
    try:
        balance = ledger_service.rebuild_customer_ledger(db, customer_id)
        db.commit()
    except LedgerbookError as e:
        raise BusinessError.from_domain(e)
    return {"customer_id": customer_id, "current_balance": balance}


@router.get("/{customer_id}/consistency", response_model=BalanceConsistency)
def check_consistency(customer_id: int, db: Session = Depends(get_db)):
    try:
        return ledger_service.check_balance_consistency(db, customer_id)
    except LedgerbookError as e:
        raise BusinessError.from_domain(e)
