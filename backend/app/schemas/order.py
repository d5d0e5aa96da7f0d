"""Storefront cart, order and payment schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.models.order import OrderStatus, PaymentStatus


class CartItemRequest(BaseModel):
    """One requested cart line. Prices are resolved server-side."""

    item_id: int
    quantity: int = Field(..., ge=1, le=50)
    customization_ids: List[int] = []


class DeliveryDetailsRequest(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=255)
    phone: str = Field(..., pattern=r"^\d{10}$")
    email: Optional[EmailStr] = None
    address_line1: str = Field(..., min_length=1, max_length=500)
    address_line2: Optional[str] = Field(default=None, max_length=500)
    landmark: Optional[str] = Field(default=None, max_length=255)
    pincode: str = Field(..., pattern=r"^\d{6}$")
    city: Optional[str] = Field(default=None, max_length=100)

    @field_validator("full_name", "address_line1")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v


class CartQuoteRequest(BaseModel):
    items: List[CartItemRequest] = Field(..., min_length=1)
    coupon_code: Optional[str] = Field(default=None, max_length=50)


class OrderCreate(BaseModel):
    """Checkout request.

    Client-side totals are optional and only used to detect a stale cart;
    the stored totals are always recomputed.
    """

    items: List[CartItemRequest] = Field(..., min_length=1)
    delivery_details: DeliveryDetailsRequest
    coupon_code: Optional[str] = Field(default=None, max_length=50)
    notes: Optional[str] = Field(default=None, max_length=1000)
    subtotal: Optional[Decimal] = None
    delivery_fee: Optional[Decimal] = None
    tax: Optional[Decimal] = None
    discount_amount: Optional[Decimal] = None
    total: Optional[Decimal] = None


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class OrderItemResponse(BaseModel):
    id: int
    menu_item_id: Optional[int] = None
    item_name: str
    unit_price: float
    quantity: int
    line_subtotal: float
    customizations: Optional[list] = None

    model_config = {"from_attributes": True}


class OrderResponse(BaseModel):
    id: int
    order_number: str
    status: OrderStatus
    payment_status: PaymentStatus
    delivery_name: str
    delivery_phone: str
    delivery_email: Optional[str] = None
    address_line1: str
    address_line2: Optional[str] = None
    landmark: Optional[str] = None
    pincode: str
    city: str
    subtotal: float
    delivery_fee: float
    tax: float
    discount_amount: float
    coupon_code: Optional[str] = None
    total: float
    gateway_order_ref: Optional[str] = None
    gateway_payment_ref: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: List[OrderItemResponse] = []

    model_config = {"from_attributes": True}


class GatewayOrderRequest(BaseModel):
    order_id: int


class VerifyPaymentRequest(BaseModel):
    order_id: int
    gateway_order_ref: str = Field(..., min_length=1, max_length=100)
    gateway_payment_ref: str = Field(..., min_length=1, max_length=100)
    signature: str = Field(..., min_length=1, max_length=255)
