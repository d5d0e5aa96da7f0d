"""Menu, category and customization schemas."""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from app.models.menu import CustomizationKind


class MenuItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    price: Decimal = Field(..., gt=0)
    category_id: int
    image: Optional[str] = Field(default=None, max_length=500)
    is_veg: bool = True
    is_available: bool = True


class MenuItemUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    price: Optional[Decimal] = Field(default=None, gt=0)
    category_id: Optional[int] = None
    image: Optional[str] = Field(default=None, max_length=500)
    is_veg: Optional[bool] = None
    is_available: Optional[bool] = None


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)


class CategoryAvailabilityUpdate(BaseModel):
    category_id: int
    is_available: bool


class CustomizationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    price: Decimal = Field(default=Decimal("0"), ge=0)
    kind: CustomizationKind = CustomizationKind.EXTRA
    category_id: Optional[int] = None
    is_active: bool = True


class CustomizationUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    price: Optional[Decimal] = Field(default=None, ge=0)
    kind: Optional[CustomizationKind] = None
    category_id: Optional[int] = None
    is_active: Optional[bool] = None
