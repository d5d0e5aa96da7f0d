"""Menu models - categories, items and their customizations."""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, Enum as SQLEnum, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from app.db.base import Base, TimestampMixin
from app.models.validators import non_negative, positive


class CustomizationKind(str, Enum):
    """How a customization affects a line item."""

    EXTRA = "extra"
    REMOVAL = "removal"
    CHOICE = "choice"


class Category(Base, TimestampMixin):
    """A menu section (Burgers, Sandwiches, Shakes...)."""

    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(200), unique=True, index=True, nullable=False)

    items: Mapped[list["MenuItem"]] = relationship("MenuItem", back_populates="category")
    customizations: Mapped[list["Customization"]] = relationship(
        "Customization", back_populates="category", cascade="all, delete-orphan"
    )


class MenuItem(Base, TimestampMixin):
    """Menu item for ordering."""

    __tablename__ = "menu_items"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(250), unique=True, index=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    category_id: Mapped[int] = mapped_column(
        ForeignKey("categories.id"), nullable=False, index=True
    )
    image: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    is_veg: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    category: Mapped["Category"] = relationship("Category", back_populates="items")

    @validates("price")
    def _validate_price(self, key, value):
        return positive(key, value)


class Customization(Base, TimestampMixin):
    """A priced or free modifier offered for every item in a category."""

    __tablename__ = "customizations"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    kind: Mapped[CustomizationKind] = mapped_column(
        SQLEnum(CustomizationKind), default=CustomizationKind.EXTRA, nullable=False
    )
    category_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("categories.id", ondelete="CASCADE"), nullable=True, index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    category: Mapped[Optional["Category"]] = relationship("Category", back_populates="customizations")

    @validates("price")
    def _validate_price(self, key, value):
        return non_negative(key, value)
