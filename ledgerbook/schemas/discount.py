from pydantic import BaseModel, Field
from typing import Optional
import datetime as dt
from decimal import Decimal


class DiscountCreate(BaseModel):
    customer_id: int
    amount: Decimal = Field(..., gt=0)
    reason: Optional[str] = None
    date: dt.date
    invoice_id: Optional[int] = None
    payment_id: Optional[int] = None


class DiscountUpdate(BaseModel):
    amount: Optional[Decimal] = Field(None, gt=0)
    reason: Optional[str] = None
    date: Optional[dt.date] = None


class DiscountResponse(BaseModel):
    id: int
    reference_number: str
    customer_id: int
    invoice_id: Optional[int] = None
    payment_id: Optional[int] = None
    date: dt.date
    amount: Decimal
    invoice_applied_amount: Decimal
    reason: Optional[str] = None
    created_at: Optional[dt.datetime] = None

    class Config:
        from_attributes = True
