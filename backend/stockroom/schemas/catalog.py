from pydantic import BaseModel, Field
from typing import Optional
from decimal import Decimal


class CategoryCreate(BaseModel):
    name: str
    description: Optional[str] = None


class CategoryResponse(BaseModel):
    id: int
    organization_id: int
    name: str
    description: Optional[str] = None

    class Config:
        from_attributes = True


class ProductCreate(BaseModel):
    name: str
    sku: Optional[str] = Field(None, max_length=64)
    description: Optional[str] = None
    category_id: Optional[int] = None
    base_price: Optional[Decimal] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None


class ProductResponse(BaseModel):
    id: int
    organization_id: int
    category_id: Optional[int] = None
    name: str
    sku: Optional[str] = None
    description: Optional[str] = None
    base_price: Optional[Decimal] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None

    class Config:
        from_attributes = True
