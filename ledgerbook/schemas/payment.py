from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal
from enum import Enum


class PaymentMethod(str, Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    CHEQUE = "cheque"
    PARCHI = "parchi"
    JAZZCASH = "jazzcash"
    EASYPAISA = "easypaisa"


# Post-dated instruments: pending until cleared
DEFERRED_METHODS = (PaymentMethod.CHEQUE, PaymentMethod.PARCHI)


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    PARTIAL = "partial"
    CANCELLED = "cancelled"


class PayeeType(str, Enum):
    SUPPLIER = "supplier"
    EXPENSE = "expense"
    OWNER = "owner"
    OTHER = "other"


class InvoiceAllocation(BaseModel):
    invoice_id: int
    amount: Decimal = Field(..., ge=0)


class PaymentCreate(BaseModel):
    customer_id: int
    payment_date: date
    total_received: Decimal = Field(..., gt=0)
    payment_method: PaymentMethod = PaymentMethod.CASH
    reference_number: Optional[str] = None
    bank_name: Optional[str] = None
    cheque_date: Optional[date] = None
    notes: Optional[str] = None
    # Explicit allocations; ignored when auto_allocate is set
    invoice_allocations: List[InvoiceAllocation] = []
    opening_balance_amount: Decimal = Field(Decimal("0"), ge=0)
    auto_allocate: bool = False
    discount_amount: Decimal = Field(Decimal("0"), ge=0)
    discount_invoice_id: Optional[int] = None
    discount_reason: Optional[str] = None


class PaymentUpdate(BaseModel):
    payment_date: Optional[date] = None
    total_received: Optional[Decimal] = Field(None, gt=0)
    payment_method: Optional[PaymentMethod] = None
    reference_number: Optional[str] = None
    bank_name: Optional[str] = None
    cheque_date: Optional[date] = None
    status: Optional[PaymentStatus] = None
    notes: Optional[str] = None


class PaymentStatusUpdate(BaseModel):
    status: PaymentStatus
    cheque_date: Optional[date] = None


class DistributionCreate(BaseModel):
    payee_name: str = Field(..., min_length=1)
    payee_type: PayeeType
    amount: Decimal = Field(..., gt=0)
    purpose: str = Field(..., min_length=1)
    allocation_date: date
    notes: Optional[str] = None


class PaymentApplicationResponse(BaseModel):
    id: int
    invoice_id: Optional[int] = None
    amount: Decimal
    application_date: date
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class DistributionResponse(BaseModel):
    id: int
    payment_id: int
    payee_name: str
    payee_type: str
    amount: Decimal
    purpose: str
    allocation_date: date
    status: str
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class PaymentResponse(BaseModel):
    id: int
    payment_number: str
    customer_id: int
    payment_date: date
    total_received: Decimal
    payment_method: PaymentMethod
    reference_number: Optional[str] = None
    bank_name: Optional[str] = None
    cheque_date: Optional[date] = None
    status: PaymentStatus
    notes: Optional[str] = None
    discount_amount: Decimal
    discount_invoice_id: Optional[int] = None
    discount_reason: Optional[str] = None
    applications: List[PaymentApplicationResponse] = []
    distributions: List[DistributionResponse] = []
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PaymentSummary(BaseModel):
    count: int
    total_received: Decimal
    total_distributed: Decimal
    available: Decimal


class PaymentListResponse(BaseModel):
    payments: List[PaymentResponse]
    summary: PaymentSummary


class AllocationPreviewRequest(BaseModel):
    customer_id: int
    amount: Decimal = Field(..., ge=0)
    discount: Decimal = Field(Decimal("0"), ge=0)


class AllocationPreviewResponse(BaseModel):
    opening_balance_amount: Decimal
    invoice_amounts: dict
    unallocated: Decimal
    total: Decimal
    total_outstanding: Decimal
