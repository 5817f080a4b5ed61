"""
Received payments and what they were applied to.

PaymentApplication rows say which obligation a payment settled: an
invoice, or the customer's opening balance when invoice_id is NULL.
PaymentDistribution rows are onward payouts of received money
(supplier, expense, owner, other) and never touch the customer ledger.
"""
from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, Date, DateTime, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ledgerbook.db.base import Base


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    payment_number = Column(String(64), nullable=False, unique=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True)
    payment_date = Column(Date, nullable=False)
    total_received = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(String(32), nullable=False, default="cash")
    reference_number = Column(String(128), nullable=True)
    bank_name = Column(String(128), nullable=True)
    cheque_date = Column(Date, nullable=True)
    status = Column(String(16), nullable=False, default="completed")  # pending, completed, partial, cancelled
    notes = Column(Text, nullable=True)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    discount_invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True)
    discount_reason = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    customer = relationship("Customer", backref="payments")
    applications = relationship(
        "PaymentApplication",
        back_populates="payment",
        cascade="all, delete-orphan",
        order_by="PaymentApplication.id",
    )
    distributions = relationship(
        "PaymentDistribution",
        back_populates="payment",
        cascade="all, delete-orphan",
        order_by="PaymentDistribution.id",
    )


class PaymentApplication(Base):
    __tablename__ = "payment_applications"

    id = Column(Integer, primary_key=True, index=True)
    payment_id = Column(Integer, ForeignKey("payments.id", ondelete="CASCADE"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=True, index=True)  # NULL = opening balance
    amount = Column(Numeric(12, 2), nullable=False)
    application_date = Column(Date, nullable=False)
    notes = Column(String(512), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    payment = relationship("Payment", back_populates="applications")
    invoice = relationship("Invoice", backref="applications")


class PaymentDistribution(Base):
    __tablename__ = "payment_distributions"

    id = Column(Integer, primary_key=True, index=True)
    payment_id = Column(Integer, ForeignKey("payments.id", ondelete="CASCADE"), nullable=False, index=True)
    payee_name = Column(String(255), nullable=False)
    payee_type = Column(String(32), nullable=False)  # supplier, expense, owner, other
    amount = Column(Numeric(12, 2), nullable=False)
    purpose = Column(String(512), nullable=False)
    allocation_date = Column(Date, nullable=False)
    status = Column(String(16), nullable=False, default="allocated")  # allocated | cancelled
    notes = Column(String(512), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    payment = relationship("Payment", back_populates="distributions")
