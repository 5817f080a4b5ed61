from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal
from enum import Enum


class InvoiceTerm(str, Enum):
    DUE_ON_RECEIPT = "due_on_receipt"
    NET_15 = "net_15"
    NET_30 = "net_30"
    NET_60 = "net_60"


TERM_DAYS = {
    InvoiceTerm.DUE_ON_RECEIPT: 0,
    InvoiceTerm.NET_15: 15,
    InvoiceTerm.NET_30: 30,
    InvoiceTerm.NET_60: 60,
}


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class InvoiceItemCreate(BaseModel):
    description: str = Field(..., min_length=1)
    quantity: Decimal = Field(Decimal("1"), ge=0)
    inches: Decimal = Field(Decimal("0"), ge=0)
    rate: Decimal = Field(Decimal("0"), ge=0)
    amount: Optional[Decimal] = Field(None, ge=0)  # quantity * inches * rate when omitted


class InvoiceItemResponse(BaseModel):
    id: int
    description: str
    quantity: Decimal
    inches: Decimal
    rate: Decimal
    amount: Decimal

    class Config:
        from_attributes = True


class InvoiceCreate(BaseModel):
    customer_id: int
    issue_date: date
    term: Optional[InvoiceTerm] = None
    due_date: Optional[date] = None  # derived from term when omitted
    items: List[InvoiceItemCreate] = Field(..., min_length=1)
    invoice_number: Optional[str] = None
    notes: Optional[str] = None
    payment_terms: Optional[str] = None


class InvoiceUpdate(BaseModel):
    issue_date: Optional[date] = None
    term: Optional[InvoiceTerm] = None
    due_date: Optional[date] = None
    items: Optional[List[InvoiceItemCreate]] = None
    notes: Optional[str] = None
    payment_terms: Optional[str] = None


class InvoiceResponse(BaseModel):
    id: int
    invoice_number: str
    customer_id: int
    issue_date: date
    term: Optional[str] = None
    due_date: date
    total_amount: Decimal
    paid_amount: Decimal
    discount_amount: Decimal
    pending_amount: Decimal
    status: InvoiceStatus
    notes: Optional[str] = None
    payment_terms: Optional[str] = None
    items: List[InvoiceItemResponse] = []
    sent_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class InvoiceSummary(BaseModel):
    count: int
    total_amount: Decimal
    paid_amount: Decimal
    pending_amount: Decimal
    overdue_count: int


class InvoiceListResponse(BaseModel):
    invoices: List[InvoiceResponse]
    summary: InvoiceSummary
