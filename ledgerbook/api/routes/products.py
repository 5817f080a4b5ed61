"""Products used on invoice line items."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ledgerbook.api.deps import get_db
from ledgerbook.core.exceptions import BusinessError, LedgerbookError
from ledgerbook.schemas.product import ProductCreate, ProductResponse, ProductUpdate
from ledgerbook.services import product_service

router = APIRouter()


@router.get("", response_model=list[ProductResponse])
def list_products(active_only: bool = Query(False), db: Session = Depends(get_db)):
    if active_only:
        return product_service.list_active_products(db)
    return product_service.list_products(db)


@router.post("", response_model=ProductResponse, status_code=201)
def create_product(data: ProductCreate, db: Session = Depends(get_db)):
    try:
        return product_service.create_product(db, data)
    except LedgerbookError as e:
        raise BusinessError.from_domain(e)


@router.patch("/{product_id}", response_model=ProductResponse)
def update_product(product_id: int, data: ProductUpdate, db: Session = Depends(get_db)):
    try:
        return product_service.update_product(db, product_id, data)
    except LedgerbookError as e:
        raise BusinessError.from_domain(e)


@router.delete("/{product_id}", response_model=dict)
def delete_product(product_id: int, db: Session = Depends(get_db)):
    try:
        product_service.delete_product(db, product_id)
    except LedgerbookError as e:
        raise BusinessError.from_domain(e)
    return {"message": "Product deleted", "id": product_id}
