"""SQLAlchemy models."""

from app.models.admin import Admin
from app.models.coupon import Coupon, DiscountType
from app.models.customer import Customer
from app.models.menu import Category, Customization, CustomizationKind, MenuItem
from app.models.order import Order, OrderItem, OrderStatus, PaymentStatus, ProcessedPayment

__all__ = [
    "Admin",
    "Category",
    "Coupon",
    "Customer",
    "Customization",
    "CustomizationKind",
    "DiscountType",
    "MenuItem",
    "Order",
    "OrderItem",
    "OrderStatus",
    "PaymentStatus",
    "ProcessedPayment",
]
