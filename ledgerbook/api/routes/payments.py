"""Payments: receive, allocate, edit, distribute, delete."""
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ledgerbook.api.deps import get_db
from ledgerbook.core.exceptions import BusinessError, LedgerbookError
from ledgerbook.schemas.payment import (
    AllocationPreviewRequest,
    AllocationPreviewResponse,
    DistributionCreate,
    DistributionResponse,
    PaymentCreate,
    PaymentListResponse,
    PaymentMethod,
    PaymentResponse,
    PaymentStatus,
    PaymentStatusUpdate,
    PaymentUpdate,
)
from ledgerbook.services import payment_service

router = APIRouter()


@router.get("", response_model=PaymentListResponse)
def list_payments(
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    customer_id: int | None = Query(None),
    method: PaymentMethod | None = Query(None),
    status: PaymentStatus | None = Query(None),
    db: Session = Depends(get_db),
):
    return payment_service.list_payments(
        db,
        start=start_date,
        end=end_date,
        customer_id=customer_id,
        method=method.value if method else None,
        status=status.value if status else None,
    )


@router.get("/analytics", response_model=dict)
def payment_analytics(
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    db: Session = Depends(get_db),
):
    return payment_service.get_payment_analytics(db, start_date, end_date)


@router.post("/allocation-preview", response_model=AllocationPreviewResponse)
def allocation_preview(data: AllocationPreviewRequest, db: Session = Depends(get_db)):
    """FIFO suggestion for the receive-payment form."""
    try:
        return payment_service.build_allocation_preview(db, data.customer_id, data.amount, data.discount)
    except LedgerbookError as e:
        raise BusinessError.from_domain(e)


@router.post("", response_model=PaymentResponse, status_code=201)
def create_payment(data: PaymentCreate, db: Session = Depends(get_db)):
    try:
        return payment_service.create_customer_payment(db, data)
    except LedgerbookError as e:
        raise BusinessError.from_domain(e)


@router.get("/{payment_id}", response_model=PaymentResponse)
def get_payment(payment_id: int, db: Session = Depends(get_db)):
    try:
        return payment_service.get_payment(db, payment_id)
    except LedgerbookError as e:
        raise BusinessError.from_domain(e)


@router.get("/{payment_id}/invoices", response_model=dict)
def invoices_paid_by_payment(payment_id: int, db: Session = Depends(get_db)):
    try:
        return payment_service.get_invoices_paid_by_payment(db, payment_id)
    except LedgerbookError as e:
        raise BusinessError.from_domain(e)


@router.patch("/{payment_id}", response_model=PaymentResponse)
def update_payment(payment_id: int, data: PaymentUpdate, db: Session = Depends(get_db)):
    try:
        return payment_service.update_payment(db, payment_id, data)
    except LedgerbookError as e:
        raise BusinessError.from_domain(e)


@router.patch("/{payment_id}/status", response_model=PaymentResponse)
def update_payment_status(payment_id: int, data: PaymentStatusUpdate, db: Session = Depends(get_db)):
    try:
        return payment_service.update_payment_status(db, payment_id, data.status.value, data.cheque_date)
    except LedgerbookError as e:
        raise BusinessError.from_domain(e)


@router.post("/{payment_id}/distributions", response_model=DistributionResponse, status_code=201)
def add_distribution(payment_id: int, data: DistributionCreate, db: Session = Depends(get_db)):
    try:
        return payment_service.add_distribution(db, payment_id, data)
    except LedgerbookError as e:
        raise BusinessError.from_domain(e)


@router.delete("/{payment_id}", response_model=dict)
def delete_payment(payment_id: int, db: Session = Depends(get_db)):
    try:
        payment_service.delete_payment(db, payment_id)
    except LedgerbookError as e:
        raise BusinessError.from_domain(e)
    return {"message": "Payment deleted", "id": payment_id}
