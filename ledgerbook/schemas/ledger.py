from pydantic import BaseModel, Field
from typing import List, Optional
import datetime as dt
from decimal import Decimal
from enum import Enum


class EntryType(str, Enum):
    OPENING_BALANCE = "opening_balance"
    INVOICE = "invoice"
    PAYMENT = "payment"
    ADJUSTMENT = "adjustment"
    DISCOUNT = "discount"


class LedgerEntryResponse(BaseModel):
    id: int
    customer_id: int
    date: dt.date
    type: EntryType
    reference_id: Optional[int] = None
    reference_number: Optional[str] = None
    debit: Decimal
    credit: Decimal
    balance: Decimal
    description: Optional[str] = None
    is_hidden: bool = False
    created_at: Optional[dt.datetime] = None

    class Config:
        from_attributes = True


class LedgerSummaryResponse(BaseModel):
    customer_id: int
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    opening_balance: Decimal
    closing_balance: Decimal
    total_debits: Decimal
    total_credits: Decimal
    entries: List[LedgerEntryResponse]


class AdjustmentCreate(BaseModel):
    date: dt.date
    debit: Decimal = Field(Decimal("0"), ge=0)
    credit: Decimal = Field(Decimal("0"), ge=0)
    description: str = Field(..., min_length=1)
    is_hidden: bool = False


class BalanceConsistency(BaseModel):
    customer_id: int
    stored_balance: Decimal
    recomputed_balance: Decimal
    last_entry_balance: Optional[Decimal] = None
    entry_count: int
    visible_entry_count: int
    is_consistent: bool
