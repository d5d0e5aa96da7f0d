"""Menu catalogue: public grouped menu and back-office CRUD."""

import logging
import secrets
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from app.core.exceptions import NotFound, ValidationFailed
from app.core.sanitize import sanitize_text, slugify
from app.models.menu import Category, Customization, CustomizationKind, MenuItem

logger = logging.getLogger(__name__)


def _fallback_item(slug: str, name: str, description: str, price: int, category: str) -> dict:
    return {
        "id": slug,
        "name": name,
        "description": description,
        "price": price,
        "category": category,
        "image": None,
        "is_veg": True,
        "is_available": True,
    }


# Served when the catalogue cannot be read so the storefront still renders
FALLBACK_MENU: Dict[str, List[dict]] = {
    "burger": [
        _fallback_item("regular-burger", "Regular Tummy Tikki Burger",
                       "Our signature homemade tikki burger with fresh veggies", 89, "burger"),
        _fallback_item("cheesy-burger", "Cheesy Tummy Tikki Burger",
                       "Loaded with cheese for cheese lovers", 109, "burger"),
        _fallback_item("paneer-burger", "Paneer with Cheese Fully Loaded Burger",
                       "Premium paneer patty with extra cheese", 143, "burger"),
    ],
    "sandwich": [
        _fallback_item("grilled-sandwich", "Butter Grilled Sandwich",
                       "Classic grilled sandwich with butter", 35, "sandwich"),
        _fallback_item("jumbo-sandwich", "Jumbo Wheat Bread Sandwich",
                       "Healthy option with fresh veggies and melted cheese", 120, "sandwich"),
    ],
    "sides": [
        _fallback_item("french-fries", "French Fries", "Crispy golden french fries", 60, "sides"),
        _fallback_item("cheese-fries", "Cheese Fries", "French fries loaded with melted cheese", 80, "sides"),
    ],
    "beverage": [
        _fallback_item("cold-coffee", "Cold Coffee", "Refreshing cold coffee", 70, "beverage"),
        _fallback_item("lime-soda", "Fresh Lime Soda", "Fresh and tangy lime soda", 50, "beverage"),
        _fallback_item("masala-chaas", "Masala Chaas", "Traditional spiced buttermilk", 40, "beverage"),
    ],
}


def serialize_menu_item(item: MenuItem, category_slug: Optional[str] = None) -> dict:
    return {
        "id": item.id,
        "name": item.name,
        "slug": item.slug,
        "description": item.description,
        "price": float(item.price),
        "category_id": item.category_id,
        "category": category_slug or (item.category.slug if item.category else "other"),
        "image": item.image,
        "is_veg": item.is_veg,
        "is_available": item.is_available,
    }


def serialize_category(category: Category, item_count: Optional[int] = None) -> dict:
    data = {"id": category.id, "name": category.name, "slug": category.slug}
    if item_count is not None:
        data["item_count"] = item_count
    return data


def serialize_customization(custom: Customization) -> dict:
    return {
        "id": custom.id,
        "name": custom.name,
        "price": float(custom.price),
        "kind": custom.kind.value,
        "category_id": custom.category_id,
        "category_name": custom.category.name if custom.category else None,
        "is_active": custom.is_active,
    }


def get_public_menu(db: Session) -> Dict[str, Any]:
    """Available items grouped by category slug, alphabetical within a group.

    Returns ``{"menu": {...}, "fallback": bool}``; ``fallback`` is True when
    the database could not be read and the built-in snapshot was served.
    """
    try:
        items = db.execute(
            select(MenuItem)
            .where(MenuItem.is_available.is_(True))
            .options(selectinload(MenuItem.category))
            .order_by(MenuItem.name)
        ).scalars().all()
    except SQLAlchemyError as e:
        logger.error(f"Failed to load menu, serving fallback snapshot: {e}")
        return {"menu": FALLBACK_MENU, "fallback": True}

    grouped: Dict[str, List[dict]] = {}
    for item in items:
        slug = item.category.slug if item.category else "other"
        grouped.setdefault(slug, []).append(serialize_menu_item(item, slug))
    return {"menu": grouped, "fallback": False}


# ---------------------------------------------------------------------------
# Menu items
# ---------------------------------------------------------------------------

def list_menu_items(db: Session) -> List[MenuItem]:
    stmt = (
        select(MenuItem)
        .options(selectinload(MenuItem.category))
        .order_by(MenuItem.created_at.desc(), MenuItem.id.desc())
    )
    return list(db.execute(stmt).scalars())


def _get_category(db: Session, category_id: int) -> Category:
    category = db.get(Category, category_id)
    if category is None:
        raise NotFound("Category not found")
    return category


def create_menu_item(db: Session, data: dict) -> MenuItem:
    _get_category(db, data["category_id"])
    name = data["name"].strip()
    item = MenuItem(
        name=sanitize_text(name),
        # Suffix keeps slugs unique when two items share a name
        slug=f"{slugify(name) or 'item'}-{secrets.randbelow(1000)}",
        description=sanitize_text(data.get("description")),
        price=Decimal(str(data["price"])),
        category_id=data["category_id"],
        image=data.get("image"),
        is_veg=data.get("is_veg", True),
        is_available=data.get("is_available", True),
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    logger.info(f"Created menu item {item.id} {item.slug}")
    return item


def update_menu_item(db: Session, item_id: int, data: dict) -> MenuItem:
    item = db.get(MenuItem, item_id)
    if item is None:
        raise NotFound("Menu item not found")
    if data.get("category_id") is not None:
        _get_category(db, data["category_id"])

    for key in ("name", "description"):
        if key in data and data[key] is not None:
            setattr(item, key, sanitize_text(data[key].strip()))
    if data.get("price") is not None:
        item.price = Decimal(str(data["price"]))
    for key in ("category_id", "image", "is_veg", "is_available"):
        if key in data and (data[key] is not None or key == "image"):
            setattr(item, key, data[key])
    db.commit()
    db.refresh(item)
    return item


def delete_menu_item(db: Session, item_id: int) -> None:
    item = db.get(MenuItem, item_id)
    if item is None:
        raise NotFound("Menu item not found")
    db.delete(item)
    db.commit()
    logger.info(f"Deleted menu item {item_id}")


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

def list_categories(db: Session) -> List[dict]:
    counts = dict(
        db.execute(
            select(MenuItem.category_id, func.count(MenuItem.id)).group_by(MenuItem.category_id)
        ).all()
    )
    categories = db.execute(select(Category).order_by(Category.name)).scalars()
    return [serialize_category(c, counts.get(c.id, 0)) for c in categories]


def _unique_category_slug(db: Session, name: str, exclude_id: Optional[int] = None) -> str:
    slug = slugify(name)
    if not slug:
        raise ValidationFailed("name must contain letters or digits")
    stmt = select(Category.id).where(Category.slug == slug)
    if exclude_id is not None:
        stmt = stmt.where(Category.id != exclude_id)
    if db.execute(stmt).first() is not None:
        raise ValidationFailed(f"A category with slug '{slug}' already exists")
    return slug


def create_category(db: Session, name: str) -> Category:
    name = name.strip()
    category = Category(name=sanitize_text(name), slug=_unique_category_slug(db, name))
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


def update_category(db: Session, category_id: int, name: str) -> Category:
    category = _get_category(db, category_id)
    name = name.strip()
    category.slug = _unique_category_slug(db, name, exclude_id=category.id)
    category.name = sanitize_text(name)
    db.commit()
    db.refresh(category)
    return category


def delete_category(db: Session, category_id: int) -> None:
    category = _get_category(db, category_id)
    item_count = db.execute(
        select(func.count(MenuItem.id)).where(MenuItem.category_id == category_id)
    ).scalar_one()
    if item_count:
        raise ValidationFailed(
            "Cannot delete category with associated menu items. Reassign items first."
        )
    db.delete(category)
    db.commit()
    logger.info(f"Deleted category {category_id}")


def set_category_availability(db: Session, category_id: int, is_available: bool) -> int:
    """Toggle every item in a category at once. Returns the number of items touched."""
    _get_category(db, category_id)
    result = db.execute(
        update(MenuItem)
        .where(MenuItem.category_id == category_id)
        .values(is_available=is_available)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount


# ---------------------------------------------------------------------------
# Customizations
# ---------------------------------------------------------------------------

def list_customizations(db: Session, category_id: Optional[int] = None) -> List[Customization]:
    stmt = select(Customization).options(selectinload(Customization.category))
    if category_id is not None:
        stmt = stmt.where(Customization.category_id == category_id)
    return list(db.execute(stmt.order_by(Customization.name)).scalars())


def create_customization(db: Session, data: dict) -> Customization:
    if data.get("category_id") is not None:
        _get_category(db, data["category_id"])
    custom = Customization(
        name=sanitize_text(data["name"].strip()),
        price=Decimal(str(data.get("price") or 0)),
        kind=CustomizationKind(data.get("kind") or CustomizationKind.EXTRA),
        category_id=data.get("category_id"),
        is_active=data.get("is_active", True),
    )
    db.add(custom)
    db.commit()
    db.refresh(custom)
    return custom


def update_customization(db: Session, customization_id: int, data: dict) -> Customization:
    custom = db.get(Customization, customization_id)
    if custom is None:
        raise NotFound("Customization not found")
    if data.get("category_id") is not None:
        _get_category(db, data["category_id"])
    if data.get("name") is not None:
        custom.name = sanitize_text(data["name"].strip())
    if data.get("price") is not None:
        custom.price = Decimal(str(data["price"]))
    if data.get("kind") is not None:
        custom.kind = CustomizationKind(data["kind"])
    for key in ("category_id", "is_active"):
        if data.get(key) is not None:
            setattr(custom, key, data[key])
    db.commit()
    db.refresh(custom)
    return custom


def delete_customization(db: Session, customization_id: int) -> None:
    custom = db.get(Customization, customization_id)
    if custom is None:
        raise NotFound("Customization not found")
    db.delete(custom)
    db.commit()
