from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    default_rate: Optional[Decimal] = Field(None, ge=0)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    default_rate: Optional[Decimal] = Field(None, ge=0)
    status: Optional[str] = Field(None, pattern=r"^(active|inactive)$")


class ProductResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    default_rate: Optional[Decimal] = None
    status: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
