from pydantic import BaseModel, Field
from typing import Optional
from decimal import Decimal


class CompanySettingsResponse(BaseModel):
    company_name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    currency: str
    date_format: str
    tax_rate: Optional[Decimal] = None
    invoice_prefix: str
    payment_prefix: str
    discount_prefix: str

    class Config:
        from_attributes = True


class CompanySettingsUpdate(BaseModel):
    company_name: Optional[str] = Field(None, min_length=1)
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    currency: Optional[str] = None
    date_format: Optional[str] = None
    tax_rate: Optional[Decimal] = Field(None, ge=0, le=1)
    invoice_prefix: Optional[str] = Field(None, min_length=1, pattern=r"^[A-Za-z0-9]+$")
    payment_prefix: Optional[str] = Field(None, min_length=1, pattern=r"^[A-Za-z0-9]+$")
    discount_prefix: Optional[str] = Field(None, min_length=1, pattern=r"^[A-Za-z0-9]+$")
