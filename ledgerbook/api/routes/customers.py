"""Customers: CRUD, opening balance status, deletion check."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ledgerbook.api.deps import get_db
from ledgerbook.core.exceptions import BusinessError, LedgerbookError
from ledgerbook.schemas.customer import (
    CustomerCreate,
    CustomerDeletionCheck,
    CustomerListResponse,
    CustomerResponse,
    CustomerStatusUpdate,
    CustomerUpdate,
    OpeningBalanceStatusResponse,
)
from ledgerbook.services import customer_service, invoice_service, payment_service
from ledgerbook.schemas.invoice import InvoiceResponse
from ledgerbook.schemas.payment import PaymentResponse

router = APIRouter()


@router.get("", response_model=CustomerListResponse)
def list_customers(
    search: str | None = Query(None),
    status: str | None = Query(None, pattern="^(active|inactive)$"),
    city: str | None = Query(None),
    db: Session = Depends(get_db),
):
    return customer_service.list_customers(db, search=search, status=status, city=city)


@router.post("", response_model=CustomerResponse, status_code=201)
def create_customer(data: CustomerCreate, db: Session = Depends(get_db)):
    try:
        return customer_service.create_customer(db, data)
    except LedgerbookError as e:
        raise BusinessError.from_domain(e)


@router.get("/{customer_id}", response_model=CustomerResponse)
def get_customer(customer_id: int, db: Session = Depends(get_db)):
    try:
        return customer_service.get_customer(db, customer_id)
    except LedgerbookError as e:
        raise BusinessError.from_domain(e)


@router.patch("/{customer_id}", response_model=CustomerResponse)
def update_customer(customer_id: int, data: CustomerUpdate, db: Session = Depends(get_db)):
    try:
        return customer_service.update_customer(db, customer_id, data)
    except LedgerbookError as e:
        raise BusinessError.from_domain(e)


@router.patch("/{customer_id}/status", response_model=CustomerResponse)
def set_customer_status(customer_id: int, data: CustomerStatusUpdate, db: Session = Depends(get_db)):
    try:
        return customer_service.set_customer_status(db, customer_id, data.status.value)
    except LedgerbookError as e:
        raise BusinessError.from_domain(e)


@router.get("/{customer_id}/opening-balance", response_model=OpeningBalanceStatusResponse)
def get_opening_balance_status(customer_id: int, db: Session = Depends(get_db)):
    try:
        state = customer_service.get_opening_balance_status(db, customer_id)
    except LedgerbookError as e:
        raise BusinessError.from_domain(e)
    return OpeningBalanceStatusResponse(
        amount=state.amount,
        date=state.as_of_date,
        is_positive=state.is_positive,
        paid_amount=state.paid_amount,
        remaining_amount=state.remaining_amount,
    )


@router.get("/{customer_id}/can-delete", response_model=CustomerDeletionCheck)
def can_delete_customer(customer_id: int, db: Session = Depends(get_db)):
    try:
        return customer_service.can_delete_customer(db, customer_id)
    except LedgerbookError as e:
        raise BusinessError.from_domain(e)


@router.delete("/{customer_id}", response_model=dict)
def delete_customer(customer_id: int, db: Session = Depends(get_db)):
    try:
        customer_service.delete_customer(db, customer_id)
    except LedgerbookError as e:
        raise BusinessError.from_domain(e)
    return {"message": "Customer deleted", "id": customer_id}


@router.get("/{customer_id}/pending-invoices", response_model=list[InvoiceResponse])
def get_pending_invoices(customer_id: int, db: Session = Depends(get_db)):
    try:
        customer_service.get_customer(db, customer_id)
    except LedgerbookError as e:
        raise BusinessError.from_domain(e)
    return invoice_service.get_customer_pending_invoices(db, customer_id)


@router.get("/{customer_id}/payments", response_model=list[PaymentResponse])
def get_customer_payments(customer_id: int, db: Session = Depends(get_db)):
    try:
        return payment_service.get_customer_payments(db, customer_id)
    except LedgerbookError as e:
        raise BusinessError.from_domain(e)
