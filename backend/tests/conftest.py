"""Pytest configuration and fixtures."""

import json
import pytest
from decimal import Decimal
from typing import Generator
from unittest.mock import MagicMock

import httpx
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.email import EmailService, get_email_service
from app.core.rbac import UserRole
from app.core.security import create_access_token, get_password_hash, hmac_sha256_hex
from app.db.base import Base
from app.db.session import get_db
from app.main import app
# Import all models to ensure they're registered with Base.metadata
from app.models import *
from app.services.payment_gateway_service import PaymentGatewayService, get_payment_gateway

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite:///:memory:"

GATEWAY_KEY_ID = "rzp_test_key"
GATEWAY_KEY_SECRET = "test_key_secret"
GATEWAY_WEBHOOK_SECRET = "test_webhook_secret"


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Create a test database session."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def gateway_requests() -> list:
    """Requests the fake gateway API received."""
    return []


@pytest.fixture
def gateway(gateway_requests) -> PaymentGatewayService:
    """Gateway client with test credentials and a fake orders API."""
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        gateway_requests.append(body)
        return httpx.Response(
            200,
            json={
                "id": f"order_{body['receipt']}",
                "amount": body["amount"],
                "currency": body["currency"],
                "receipt": body["receipt"],
                "status": "created",
            },
        )

    return PaymentGatewayService(
        key_id=GATEWAY_KEY_ID,
        key_secret=GATEWAY_KEY_SECRET,
        webhook_secret=GATEWAY_WEBHOOK_SECRET,
        transport=httpx.MockTransport(handler),
    )


@pytest.fixture
def mailer() -> MagicMock:
    """Email service double that records sends."""
    service = MagicMock(spec=EmailService)
    service.send.return_value = True
    return service


@pytest.fixture(scope="function")
def client(db_session: Session, gateway, mailer) -> Generator[TestClient, None, None]:
    """Create a test client with database, gateway and email overrides."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_email_service] = lambda: mailer
    # Disable rate limiters during tests to avoid flaky failures
    from app.core.rate_limit import limiter as global_limiter
    global_limiter.enabled = False
    # Don't raise server exceptions so we can test error status codes
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    global_limiter.enabled = True
    app.dependency_overrides.clear()


@pytest.fixture
def test_admin(db_session: Session) -> Admin:
    """Create a back-office admin."""
    admin = Admin(
        email="admin@example.com",
        password_hash=get_password_hash("testpass123"),
        role=UserRole.ADMIN,
        name="Test Admin",
        is_active=True,
    )
    db_session.add(admin)
    db_session.commit()
    db_session.refresh(admin)
    return admin


@pytest.fixture
def auth_token(test_admin: Admin) -> str:
    """Get an authentication token for the test admin."""
    return create_access_token(
        data={"sub": str(test_admin.id), "email": test_admin.email, "role": test_admin.role.value}
    )


@pytest.fixture
def auth_headers(auth_token: str) -> dict:
    """Get authentication headers."""
    return {"Authorization": f"Bearer {auth_token}"}


@pytest.fixture
def staff_headers(db_session: Session) -> dict:
    """Headers for a staff account, below the admin role."""
    staff = Admin(
        email="staff@example.com",
        password_hash=get_password_hash("staffpass123"),
        role=UserRole.STAFF,
        is_active=True,
    )
    db_session.add(staff)
    db_session.commit()
    token = create_access_token(
        data={"sub": str(staff.id), "email": staff.email, "role": staff.role.value}
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def burger_category(db_session: Session) -> Category:
    category = Category(name="Burgers", slug="burger")
    db_session.add(category)
    db_session.commit()
    db_session.refresh(category)
    return category


@pytest.fixture
def menu_items(db_session: Session, burger_category: Category) -> dict:
    """Two burgers priced 75 and 100."""
    regular = MenuItem(
        name="Regular Tummy Tikki Burger",
        slug="regular-burger",
        price=Decimal("75.00"),
        category_id=burger_category.id,
    )
    cheesy = MenuItem(
        name="Cheesy Tummy Tikki Burger",
        slug="cheesy-burger",
        price=Decimal("100.00"),
        category_id=burger_category.id,
    )
    db_session.add_all([regular, cheesy])
    db_session.commit()
    return {"regular": regular, "cheesy": cheesy}


@pytest.fixture
def extra_cheese(db_session: Session, burger_category: Category) -> Customization:
    custom = Customization(
        name="Extra Cheese",
        price=Decimal("20.00"),
        kind=CustomizationKind.EXTRA,
        category_id=burger_category.id,
    )
    db_session.add(custom)
    db_session.commit()
    db_session.refresh(custom)
    return custom


@pytest.fixture
def percent_coupon(db_session: Session) -> Coupon:
    """20% off, no cap, no minimum."""
    coupon = Coupon(
        code="SAVE20",
        discount_type=DiscountType.PERCENTAGE,
        discount_value=Decimal("20"),
        min_order_amount=Decimal("0"),
        usage_limit=10,
        usage_count=0,
    )
    db_session.add(coupon)
    db_session.commit()
    db_session.refresh(coupon)
    return coupon


@pytest.fixture
def delivery_details() -> dict:
    return {
        "full_name": "Asha Patel",
        "phone": "9876543210",
        "email": "asha@example.com",
        "address_line1": "12 CG Road",
        "pincode": "380009",
    }


@pytest.fixture
def sign_payment():
    """Signature the gateway attaches to a checkout callback."""
    def _sign(gateway_order_ref: str, gateway_payment_ref: str) -> str:
        return hmac_sha256_hex(f"{gateway_order_ref}|{gateway_payment_ref}", GATEWAY_KEY_SECRET)
    return _sign


@pytest.fixture
def sign_webhook():
    """Signature the gateway attaches to a webhook delivery."""
    def _sign(body: bytes) -> str:
        return hmac_sha256_hex(body, GATEWAY_WEBHOOK_SECRET)
    return _sign
