"""Back-office catalogue routes: menu items, categories, customizations, images."""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile, status

from app.core.rate_limit import limiter
from app.core.rbac import RequireAdmin
from app.core.responses import list_response
from app.db.session import DbSession
from app.schemas.menu import (
    CategoryAvailabilityUpdate,
    CategoryCreate,
    CustomizationCreate,
    CustomizationUpdate,
    MenuItemCreate,
    MenuItemUpdate,
)
from app.services import menu_service
from app.services.storage_service import StorageService, get_storage_service

logger = logging.getLogger(__name__)

router = APIRouter()

Storage = Annotated[StorageService, Depends(get_storage_service)]


# ---- Menu items ----

@router.get("/menu")
def list_menu_items(db: DbSession, current_user: RequireAdmin, storage: Storage):
    items = []
    for item in menu_service.list_menu_items(db):
        data = menu_service.serialize_menu_item(item)
        if data["image"] and storage.is_configured:
            data["image"] = storage.public_url(data["image"])
        items.append(data)
    return list_response(items)


@router.post("/menu", status_code=status.HTTP_201_CREATED)
def create_menu_item(body: MenuItemCreate, db: DbSession, current_user: RequireAdmin):
    item = menu_service.create_menu_item(db, body.model_dump())
    return menu_service.serialize_menu_item(item)


@router.patch("/menu/{item_id}")
def update_menu_item(item_id: int, body: MenuItemUpdate, db: DbSession, current_user: RequireAdmin):
    item = menu_service.update_menu_item(db, item_id, body.model_dump(exclude_unset=True))
    return menu_service.serialize_menu_item(item)


@router.delete("/menu/{item_id}")
def delete_menu_item(item_id: int, db: DbSession, current_user: RequireAdmin):
    menu_service.delete_menu_item(db, item_id)
    return {"success": True}


# ---- Categories ----

@router.get("/categories")
def list_categories(db: DbSession, current_user: RequireAdmin):
    return list_response(menu_service.list_categories(db))


@router.post("/categories", status_code=status.HTTP_201_CREATED)
def create_category(body: CategoryCreate, db: DbSession, current_user: RequireAdmin):
    return menu_service.serialize_category(menu_service.create_category(db, body.name))


# Registered before /categories/{category_id} so the literal path wins
@router.patch("/categories/bulk-availability")
def bulk_category_availability(
    body: CategoryAvailabilityUpdate,
    db: DbSession,
    current_user: RequireAdmin,
):
    """Mark every item in a category available or sold out."""
    updated = menu_service.set_category_availability(db, body.category_id, body.is_available)
    logger.info(
        f"Category {body.category_id} availability set to {body.is_available} "
        f"({updated} items) by {current_user.email}"
    )
    return {"success": True, "is_available": body.is_available, "updated": updated}


@router.patch("/categories/{category_id}")
def update_category(category_id: int, body: CategoryCreate, db: DbSession, current_user: RequireAdmin):
    return menu_service.serialize_category(menu_service.update_category(db, category_id, body.name))


@router.delete("/categories/{category_id}")
def delete_category(category_id: int, db: DbSession, current_user: RequireAdmin):
    menu_service.delete_category(db, category_id)
    return {"success": True}


# ---- Customizations ----

@router.get("/customizations")
def list_customizations(
    db: DbSession,
    current_user: RequireAdmin,
    category_id: Optional[int] = Query(default=None),
):
    customizations = menu_service.list_customizations(db, category_id)
    return list_response([menu_service.serialize_customization(c) for c in customizations])


@router.post("/customizations", status_code=status.HTTP_201_CREATED)
def create_customization(body: CustomizationCreate, db: DbSession, current_user: RequireAdmin):
    custom = menu_service.create_customization(db, body.model_dump())
    return menu_service.serialize_customization(custom)


@router.patch("/customizations/{customization_id}")
def update_customization(
    customization_id: int,
    body: CustomizationUpdate,
    db: DbSession,
    current_user: RequireAdmin,
):
    custom = menu_service.update_customization(db, customization_id, body.model_dump(exclude_unset=True))
    return menu_service.serialize_customization(custom)


@router.delete("/customizations/{customization_id}")
def delete_customization(customization_id: int, db: DbSession, current_user: RequireAdmin):
    menu_service.delete_customization(db, customization_id)
    return {"success": True}


# ---- Images ----

@router.post("/upload")
@limiter.limit("30/minute")
async def upload_image(
    request: Request,
    current_user: RequireAdmin,
    storage: Storage,
    file: UploadFile = File(..., description="Menu image (JPEG, PNG, WEBP)"),
):
    """Upload a menu image to object storage and return its public URL."""
    content = await file.read()
    url = storage.upload_image(file.filename or "image.jpg", content, file.content_type)
    return {"url": url}
