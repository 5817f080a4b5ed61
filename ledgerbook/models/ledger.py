from sqlalchemy import Column, Integer, ForeignKey, Numeric, Date, DateTime, String, Boolean
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ledgerbook.db.base import Base


class LedgerEntry(Base):
    __tablename__ = "ledger_entries"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    type = Column(String(32), nullable=False)  # opening_balance, invoice, payment, adjustment, discount
    reference_id = Column(Integer, nullable=True, index=True)
    reference_number = Column(String(64), nullable=True)
    debit = Column(Numeric(12, 2), nullable=False, default=0)
    credit = Column(Numeric(12, 2), nullable=False, default=0)
    # Running balance after this entry; rewritten by ledger_service on every post
    balance = Column(Numeric(12, 2), nullable=False, default=0)
    description = Column(String(512), nullable=True)
    # Hidden entries are memo lines: they carry the previous balance forward
    is_hidden = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    customer = relationship("Customer", backref="ledger_entries")
