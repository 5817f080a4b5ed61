from sqlalchemy import Column, Integer, String, Numeric, Date, DateTime, Text
from sqlalchemy.sql import func
from ledgerbook.db.base import Base


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(128), nullable=False, default="")
    last_name = Column(String(128), nullable=False, default="")
    company_name = Column(String(255), nullable=False, index=True)
    mobile = Column(String(64), nullable=False, default="")
    phone = Column(String(64), nullable=True)
    email = Column(String(255), nullable=True)
    website = Column(String(255), nullable=True)
    address = Column(String(512), nullable=True)
    city = Column(String(128), nullable=True, index=True)
    state = Column(String(128), nullable=True)
    country = Column(String(128), nullable=False)
    notes = Column(Text, nullable=True)
    # Signed: positive = customer owes us, negative = we owe the customer
    opening_balance = Column(Numeric(12, 2), nullable=False, default=0)
    # Last non-hidden running balance of the ledger; never edited directly
    current_balance = Column(Numeric(12, 2), nullable=False, default=0)
    as_of_date = Column(Date, nullable=False)
    status = Column(String(16), nullable=False, default="active")  # active | inactive
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
