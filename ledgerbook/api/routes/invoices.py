"""Invoices: CRUD, status transitions, listing with totals."""
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ledgerbook.api.deps import get_db
from ledgerbook.core.exceptions import BusinessError, LedgerbookError
from ledgerbook.schemas.invoice import (
    InvoiceCreate,
    InvoiceListResponse,
    InvoiceResponse,
    InvoiceStatus,
    InvoiceUpdate,
)
from ledgerbook.services import invoice_service

router = APIRouter()


@router.get("", response_model=InvoiceListResponse)
def list_invoices(
    customer_id: int | None = Query(None),
    status: InvoiceStatus | None = Query(None),
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    search: str | None = Query(None),
    db: Session = Depends(get_db),
):
    return invoice_service.list_invoices(
        db,
        customer_id=customer_id,
        status=status.value if status else None,
        start=start_date,
        end=end_date,
        search=search,
    )


@router.get("/next-number", response_model=dict)
def next_invoice_number(db: Session = Depends(get_db)):
    return {"invoice_number": invoice_service.generate_invoice_number(db)}


@router.post("/refresh-overdue", response_model=dict)
def refresh_overdue(db: Session = Depends(get_db)):
    changed = invoice_service.refresh_overdue_statuses(db)
    return {"updated": changed}


@router.post("", response_model=InvoiceResponse, status_code=201)
def create_invoice(data: InvoiceCreate, db: Session = Depends(get_db)):
    try:
        return invoice_service.create_invoice(db, data)
    except LedgerbookError as e:
        raise BusinessError.from_domain(e)


@router.get("/{invoice_id}", response_model=InvoiceResponse)
def get_invoice(invoice_id: int, db: Session = Depends(get_db)):
    try:
        return invoice_service.get_invoice(db, invoice_id)
    except LedgerbookError as e:
        raise BusinessError.from_domain(e)


@router.patch("/{invoice_id}", response_model=InvoiceResponse)
def update_invoice(invoice_id: int, data: InvoiceUpdate, db: Session = Depends(get_db)):
    try:
        return invoice_service.update_invoice(db, invoice_id, data)
    except LedgerbookError as e:
        raise BusinessError.from_domain(e)


@router.post("/{invoice_id}/send", response_model=InvoiceResponse)
def mark_as_sent(invoice_id: int, db: Session = Depends(get_db)):
    try:
        return invoice_service.mark_as_sent(db, invoice_id)
    except LedgerbookError as e:
        raise BusinessError.from_domain(e)


@router.post("/{invoice_id}/cancel", response_model=InvoiceResponse)
def cancel_invoice(invoice_id: int, db: Session = Depends(get_db)):
    try:
        return invoice_service.cancel_invoice(db, invoice_id)
    except LedgerbookError as e:
        raise BusinessError.from_domain(e)


@router.delete("/{invoice_id}", response_model=dict)
def delete_invoice(invoice_id: int, db: Session = Depends(get_db)):
    try:
        invoice_service.delete_invoice(db, invoice_id)
    except LedgerbookError as e:
        raise BusinessError.from_domain(e)
    return {"message": "Invoice deleted", "id": invoice_id}
