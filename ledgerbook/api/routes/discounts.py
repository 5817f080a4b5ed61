"""Discounts."""
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ledgerbook.api.deps import get_db
from ledgerbook.core.exceptions import BusinessError, LedgerbookError
from ledgerbook.schemas.discount import DiscountCreate, DiscountResponse, DiscountUpdate
from ledgerbook.services import discount_service

router = APIRouter()


@router.get("", response_model=list)
def list_discounts(
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    customer_id: int | None = Query(None),
    db: Session = Depends(get_db),
):
    return discount_service.list_discounts(db, start=start_date, end=end_date, customer_id=customer_id)


@router.get("/customer/{customer_id}", response_model=dict)
def customer_discounts(customer_id: int, db: Session = Depends(get_db)):
    try:
        discounts = discount_service.get_customer_discounts(db, customer_id)
    except LedgerbookError as e:
        raise BusinessError.from_domain(e)
    return {
        "discounts": discounts,
        "total": discount_service.get_customer_total_discounts(db, customer_id),
    }


@router.post("", response_model=DiscountResponse, status_code=201)
def create_discount(data: DiscountCreate, db: Session = Depends(get_db)):
    try:
        return discount_service.create_discount(db, data)
    except LedgerbookError as e:
        raise BusinessError.from_domain(e)


@router.patch("/{discount_id}", response_model=DiscountResponse)
def update_discount(discount_id: int, data: DiscountUpdate, db: Session = Depends(get_db)):
    try:
        return discount_service.update_discount(db, discount_id, data)
    except LedgerbookError as e:
        raise BusinessError.from_domain(e)


@router.delete("/{discount_id}", response_model=dict)
def delete_discount(discount_id: int, db: Session = Depends(get_db)):
    try:
        discount_service.delete_discount(db, discount_id)
    except LedgerbookError as e:
        raise BusinessError.from_domain(e)
    return {"message": "Discount deleted", "id": discount_id}
