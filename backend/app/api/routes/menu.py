"""Public menu routes."""

from fastapi import APIRouter, Response

from app.db.session import DbSession
from app.services.menu_service import get_public_menu

router = APIRouter()


@router.get("/menu")
def public_menu(db: DbSession, response: Response):
    """Available menu items grouped by category slug.

    Falls back to a built-in snapshot when the catalogue cannot be read;
    the ``X-Menu-Fallback`` header tells the storefront which one it got.
    """
    result = get_public_menu(db)
    response.headers["X-Menu-Fallback"] = "true" if result["fallback"] else "false"
    return result["menu"]
