from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal
from enum import Enum


class CustomerStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class CustomerCreate(BaseModel):
    first_name: str = ""
    last_name: str = ""
    company_name: str = Field(..., min_length=1)
    mobile: str = ""
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None  # defaults to settings.DEFAULT_COUNTRY
    notes: Optional[str] = None
    opening_balance: Decimal = Decimal("0")
    as_of_date: Optional[date] = None  # defaults to today


class CustomerUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company_name: Optional[str] = Field(None, min_length=1)
    mobile: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    notes: Optional[str] = None
    opening_balance: Optional[Decimal] = None
    as_of_date: Optional[date] = None


class CustomerStatusUpdate(BaseModel):
    status: CustomerStatus


class CustomerResponse(BaseModel):
    id: int
    first_name: str
    last_name: str
    company_name: str
    mobile: str
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: str
    notes: Optional[str] = None
    opening_balance: Decimal
    current_balance: Decimal
    as_of_date: date
    status: CustomerStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CustomerSummary(BaseModel):
    total_customers: int
    total_receivable: Decimal  # sum of positive current balances
    total_advance: Decimal  # sum of negative current balances, as a positive number


class CustomerListResponse(BaseModel):
    customers: List[CustomerResponse]
    summary: CustomerSummary


class OpeningBalanceStatusResponse(BaseModel):
    amount: Decimal
    date: date
    is_positive: bool
    paid_amount: Decimal
    remaining_amount: Decimal


class CustomerDeletionCheck(BaseModel):
    can_delete: bool
    invoice_count: int
    payment_count: int
    ledger_entry_count: int
    reasons: List[str] = []
