from sqlalchemy import Column, Integer, String, Numeric, DateTime
from sqlalchemy.sql import func
from ledgerbook.db.base import Base


class CompanySettings(Base):
    """Single-row table (id=1) seeded by init_db."""
    __tablename__ = "company_settings"

    id = Column(Integer, primary_key=True)
    company_name = Column(String(255), nullable=False)
    address = Column(String(512), nullable=True)
    phone = Column(String(64), nullable=True)
    email = Column(String(255), nullable=True)
    currency = Column(String(8), nullable=False, default="PKR")
    date_format = Column(String(32), nullable=False, default="DD/MM/YYYY")
    tax_rate = Column(Numeric(5, 4), nullable=True)
    invoice_prefix = Column(String(16), nullable=False, default="INV")
    payment_prefix = Column(String(16), nullable=False, default="PAY")
    discount_prefix = Column(String(16), nullable=False, default="DISC")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
