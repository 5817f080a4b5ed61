"""Product catalogue used to prefill invoice line items."""
import logging
from typing import List

from sqlalchemy import func
from sqlalchemy.orm import Session

from ledgerbook.core.exceptions import LedgerbookError, NotFoundError
from ledgerbook.models.product import Product
from ledgerbook.schemas.product import ProductCreate, ProductUpdate
from ledgerbook.services.allocation import to_money

logger = logging.getLogger(__name__)


def get_product(db: Session, product_id: int) -> Product:
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise NotFoundError("Product", product_id)
    return product


def _ensure_unique_name(db: Session, name: str, exclude_id: int | None = None) -> None:
    query = db.query(Product.id).filter(func.lower(Product.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise LedgerbookError(f"Product '{name}' already exists")


def list_products(db: Session) -> List[Product]:
    return db.query(Product).order_by(Product.name).all()


def list_active_products(db: Session) -> List[Product]:
    return db.query(Product).filter(Product.status == "active").order_by(Product.name).all()


def create_product(db: Session, data: ProductCreate) -> Product:
    name = data.name.strip()
    _ensure_unique_name(db, name)
    product = Product(
        name=name,
        description=data.description,
        default_rate=to_money(data.default_rate) if data.default_rate is not None else None,
        status="active",
    )
    db.add(product)
    db.commit()
    db.refresh(product)
    logger.info(f"Created product {product.id} ({product.name})")
    return product


def update_product(db: Session, product_id: int, data: ProductUpdate) -> Product:
    product = get_product(db, product_id)
    changes = data.model_dump(exclude_unset=True)
    if changes.get("name"):
        name = changes["name"].strip()
        _ensure_unique_name(db, name, exclude_id=product.id)
        product.name = name
    if "description" in changes:
        product.description = changes["description"]
    if "default_rate" in changes:
        rate = changes["default_rate"]
        product.default_rate = to_money(rate) if rate is not None else None
    if changes.get("status"):
        product.status = changes["status"]
    db.commit()
    db.refresh(product)
    return product


def delete_product(db: Session, product_id: int) -> None:
    product = get_product(db, product_id)
    db.delete(product)
    db.commit()
    logger.info(f"Deleted product {product_id}")
