"""Create all tables and seed the company settings row. Run on app startup."""
import logging

from ledgerbook.core.config import settings
from ledgerbook.db.base import Base
from ledgerbook.db.session import engine, SessionLocal
from ledgerbook import models  # noqa: F401 - register models
from ledgerbook.models.company_settings import CompanySettings

logger = logging.getLogger(__name__)


def seed_company_settings(db, commit: bool = True) -> CompanySettings:
    """Insert the single settings row (id=1) from config defaults if missing."""
    row = db.query(CompanySettings).filter(CompanySettings.id == 1).first()
    if row:
        return row
    row = CompanySettings(
        id=1,
        company_name=settings.DEFAULT_COMPANY_NAME,
        currency=settings.DEFAULT_CURRENCY,
        date_format=settings.DEFAULT_DATE_FORMAT,
        invoice_prefix=settings.INVOICE_PREFIX,
        payment_prefix=settings.PAYMENT_PREFIX,
        discount_prefix=settings.DISCOUNT_PREFIX,
    )
    db.add(row)
    if commit:
        db.commit()
        db.refresh(row)
    else:
        db.flush()
    logger.info(f"Seeded company settings for {row.company_name}")
    return row


def init_db(bind=None):
    Base.metadata.create_all(bind=bind or engine)

    db = SessionLocal(bind=bind) if bind is not None else SessionLocal()
    try:
        seed_company_settings(db)
    finally:
        db.close()
