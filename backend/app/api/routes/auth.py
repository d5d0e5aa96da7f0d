"""Authentication routes."""

import logging

from fastapi import APIRouter, HTTPException, Request, status
from sqlalchemy import select

from app.core.rate_limit import limiter
from app.core.rbac import CurrentUser
from app.core.security import create_access_token, verify_password
from app.db.session import DbSession
from app.models.admin import Admin
from app.schemas.auth import LoginRequest, Token

logger = logging.getLogger("auth")

router = APIRouter()


@router.post("/login", response_model=Token)
@limiter.limit("5/minute")
def login(request: Request, login_request: LoginRequest, db: DbSession):
    """Authenticate a back-office user and return a JWT."""
    client_ip = request.client.host if request.client else "unknown"
    admin = db.execute(
        select(Admin).where(Admin.email == login_request.email.lower())
    ).scalar_one_or_none()

    if not admin or not verify_password(login_request.password, admin.password_hash):
        logger.warning(f"Failed login attempt for email: {login_request.email} from IP: {client_ip}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )
    if not admin.is_active:
        logger.warning(f"Login attempt for inactive account: {admin.email} (ID: {admin.id}) from IP: {client_ip}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is inactive",
        )

    logger.info(f"Successful login: {admin.email} (ID: {admin.id}, role: {admin.role.value}) from IP: {client_ip}")
    token = create_access_token(
        data={"sub": str(admin.id), "email": admin.email, "role": admin.role.value}
    )
    return Token(access_token=token)


@router.get("/me")
def me(current_user: CurrentUser):
    return {
        "id": current_user.user_id,
        "email": current_user.email,
        "role": current_user.role.value,
    }
