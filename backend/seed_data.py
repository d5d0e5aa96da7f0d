"""Seed the storefront database with the starter menu and an admin account.

Safe to re-run: categories, items and the admin are matched by slug/email
and only inserted when missing.

Usage:
    cd backend
    python seed_data.py
"""

import sys
import os
from decimal import Decimal

# Ensure the backend app is importable
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from sqlalchemy import select

from app.core.config import settings
from app.core.security import get_password_hash
from app.db.base import Base
from app.db.session import SessionLocal, engine
from app.models import Admin, Category, Customization, CustomizationKind, MenuItem

CATEGORIES = {
    "burger": "Burgers",
    "sandwich": "Sandwiches",
    "sides": "Sides",
    "beverage": "Beverages",
}

# (slug, name, description, price, category slug)
MENU_ITEMS = [
    ("regular-burger", "Regular Tummy Tikki Burger",
     "Our signature homemade tikki burger with fresh veggies", "89", "burger"),
    ("cheesy-burger", "Cheesy Tummy Tikki Burger", "Loaded with cheese for cheese lovers", "109", "burger"),
    ("paneer-burger", "Paneer with Cheese Fully Loaded Burger",
     "Premium paneer patty with extra cheese", "143", "burger"),
    ("grilled-sandwich", "Butter Grilled Sandwich", "Classic grilled sandwich with butter", "35", "sandwich"),
    ("jumbo-sandwich", "Jumbo Wheat Bread Sandwich",
     "Healthy option with fresh veggies and melted cheese", "120", "sandwich"),
    ("corn-garlic-bread", "Sweet Corn Garlic Bread", "Garlic bread topped with sweet corn", "150", "sides"),
    ("paneer-garlic-bread", "Paneer Garlic Bread", "Spicy paneer topping on garlic bread", "160", "sides"),
    ("french-fries", "French Fries", "Crispy golden french fries", "60", "sides"),
    ("cheese-fries", "Cheese Fries", "French fries loaded with melted cheese", "80", "sides"),
    ("cold-coffee", "Cold Coffee", "Refreshing cold coffee", "70", "beverage"),
    ("lime-soda", "Fresh Lime Soda", "Fresh and tangy lime soda", "50", "beverage"),
    ("masala-chaas", "Masala Chaas", "Traditional spiced buttermilk", "40", "beverage"),
]

# (name, price, kind, category slug)
CUSTOMIZATIONS = [
    ("Extra Cheese", "20", CustomizationKind.EXTRA, "burger"),
    ("Extra Tikki", "35", CustomizationKind.EXTRA, "burger"),
    ("No Onion", "0", CustomizationKind.REMOVAL, "burger"),
    ("Brown Bread", "10", CustomizationKind.CHOICE, "sandwich"),
]


def seed():
    """Insert seed data, committing once at the end."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        _seed_all(db)
        db.commit()
        print("Seed data committed successfully.")
    except Exception as e:
        db.rollback()
        print(f"Error seeding data: {e}")
        raise
    finally:
        db.close()


def _seed_all(db):
    # ---------------------------------------------------------------
    # 1. Admin account
    # ---------------------------------------------------------------
    email = (settings.admin_email or "admin@tummytikki.com").lower()
    if db.execute(select(Admin).where(Admin.email == email)).scalar_one_or_none() is None:
        db.add(Admin(
            email=email,
            password_hash=get_password_hash(settings.admin_password or "admin123"),
            name="Admin User",
        ))
        print(f"  + Admin {email}")

    # ---------------------------------------------------------------
    # 2. Categories
    # ---------------------------------------------------------------
    categories = {c.slug: c for c in db.execute(select(Category)).scalars()}
    for slug, name in CATEGORIES.items():
        if slug not in categories:
            categories[slug] = Category(name=name, slug=slug)
            db.add(categories[slug])
    db.flush()
    print(f"  + Categories ({len(categories)})")

    # ---------------------------------------------------------------
    # 3. Menu items
    # ---------------------------------------------------------------
    existing = set(db.execute(select(MenuItem.slug)).scalars())
    added = 0
    for slug, name, description, price, category in MENU_ITEMS:
        if slug in existing:
            continue
        db.add(MenuItem(
            slug=slug,
            name=name,
            description=description,
            price=Decimal(price),
            category_id=categories[category].id,
            image=f"/images/{slug}.jpg",
        ))
        added += 1
    print(f"  + Menu items ({added})")

    # ---------------------------------------------------------------
    # 4. Customizations
    # ---------------------------------------------------------------
    existing = {
        (c.name, c.category_id) for c in db.execute(select(Customization)).scalars()
    }
    for name, price, kind, category in CUSTOMIZATIONS:
        category_id = categories[category].id
        if (name, category_id) not in existing:
            db.add(Customization(name=name, price=Decimal(price), kind=kind, category_id=category_id))
    print(f"  + Customizations ({len(CUSTOMIZATIONS)})")


if __name__ == "__main__":
    seed()
