"""Order lifecycle: checkout, payment confirmation and status changes.

Every mutation of ``(status, payment_status)`` goes through ``apply_event``,
which consults ``TRANSITIONS`` and raises ``InvalidTransitionError`` for any
pair not listed there. Routes never assign the two fields directly.
"""

from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.core.config import settings
from app.core.exceptions import InvalidTransitionError, NotFound, ValidationFailed
from app.models.customer import Customer
from app.models.menu import Customization, MenuItem
from app.models.order import Order, OrderItem, OrderStatus, PaymentStatus, ProcessedPayment
from app.services import coupon_service
from app.services.payment_gateway_service import (
    CAPTURED_EVENTS,
    FAILED_EVENTS,
    PaymentGatewayService,
)
from app.services.pricing import (
    CartLine,
    SelectedCustomization,
    Totals,
    compute_totals,
    merge_cart_lines,
)

logger = logging.getLogger(__name__)


class OrderEvent(str, Enum):
    PAYMENT_VERIFIED = "payment_verified"
    PAYMENT_VERIFICATION_FAILED = "payment_verification_failed"
    WEBHOOK_CAPTURED = "webhook_captured"
    WEBHOOK_FAILED = "webhook_failed"
    ADMIN_ADVANCE = "admin_advance"
    ADMIN_CANCEL = "admin_cancel"


INITIAL_STATE = (OrderStatus.PENDING, PaymentStatus.PENDING)

# (event, current status) -> (new status, new payment status or None to keep it)
TRANSITIONS: Dict[Tuple[OrderEvent, OrderStatus], Tuple[OrderStatus, Optional[PaymentStatus]]] = {
    (OrderEvent.PAYMENT_VERIFIED, OrderStatus.PENDING): (OrderStatus.CONFIRMED, PaymentStatus.PAID),
    (OrderEvent.PAYMENT_VERIFICATION_FAILED, OrderStatus.PENDING): (OrderStatus.PENDING, PaymentStatus.FAILED),
    (OrderEvent.WEBHOOK_CAPTURED, OrderStatus.PENDING): (OrderStatus.CONFIRMED, PaymentStatus.PAID),
    (OrderEvent.WEBHOOK_FAILED, OrderStatus.PENDING): (OrderStatus.CANCELLED, PaymentStatus.FAILED),
    (OrderEvent.ADMIN_ADVANCE, OrderStatus.PENDING): (OrderStatus.PREPARING, None),
    (OrderEvent.ADMIN_ADVANCE, OrderStatus.CONFIRMED): (OrderStatus.PREPARING, None),
    (OrderEvent.ADMIN_ADVANCE, OrderStatus.PREPARING): (OrderStatus.OUT_FOR_DELIVERY, None),
    # Cash on delivery is reconciled on handover
    (OrderEvent.ADMIN_ADVANCE, OrderStatus.OUT_FOR_DELIVERY): (OrderStatus.DELIVERED, PaymentStatus.PAID),
    (OrderEvent.ADMIN_CANCEL, OrderStatus.PENDING): (OrderStatus.CANCELLED, None),
}


def next_state(
    status: OrderStatus,
    payment_status: PaymentStatus,
    event: OrderEvent,
) -> Tuple[OrderStatus, PaymentStatus]:
    """Pure lookup of the state an event leads to."""
    target = TRANSITIONS.get((event, status))
    if target is None:
        raise InvalidTransitionError(event.value, status.value, payment_status.value)
    new_status, new_payment = target
    return new_status, new_payment or payment_status


def apply_event(order: Order, event: OrderEvent) -> Order:
    new_status, new_payment = next_state(order.status, order.payment_status, event)
    logger.info(
        f"Order {order.order_number}: {event.value} "
        f"{order.status.value}/{order.payment_status.value} -> {new_status.value}/{new_payment.value}"
    )
    order.status = new_status
    order.payment_status = new_payment
    return order


def event_for_target_status(current: OrderStatus, target: OrderStatus) -> OrderEvent:
    """Map an admin's requested status onto the event that would produce it."""
    if target == OrderStatus.CANCELLED:
        return OrderEvent.ADMIN_CANCEL
    allowed = TRANSITIONS.get((OrderEvent.ADMIN_ADVANCE, current))
    if allowed is None or allowed[0] != target:
        raise InvalidTransitionError(
            f"{OrderEvent.ADMIN_ADVANCE.value} to {target.value}", current.value, "-"
        )
    return OrderEvent.ADMIN_ADVANCE


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------

@dataclass
class DeliveryDetails:
    full_name: str
    phone: str
    address_line1: str
    pincode: str
    email: Optional[str] = None
    address_line2: Optional[str] = None
    landmark: Optional[str] = None
    city: Optional[str] = None

    def validate(self) -> None:
        if not (self.full_name or "").strip():
            raise ValidationFailed("delivery_details.full_name is required")
        if not (self.phone or "").isdigit() or len(self.phone) != 10:
            raise ValidationFailed("delivery_details.phone must be a 10-digit number")
        if not (self.address_line1 or "").strip():
            raise ValidationFailed("delivery_details.address_line1 is required")
        if not (self.pincode or "").isdigit() or len(self.pincode) != 6:
            raise ValidationFailed("delivery_details.pincode must be a 6-digit number")


@dataclass
class RequestedLine:
    item_id: int
    quantity: int
    customization_ids: Sequence[int] = ()


def generate_order_number() -> str:
    return f"TTB{int(time.time() * 1000)}{secrets.randbelow(10000):04d}"


def build_cart_lines(db: Session, requested: Sequence[RequestedLine]) -> List[CartLine]:
    """Price requested lines from the current menu.

    Client-sent prices are never trusted: the unit price is the item's
    price plus the price of every selected customization.
    """
    if not requested:
        raise ValidationFailed("Cart is empty")

    item_ids = {line.item_id for line in requested}
    items = {
        item.id: item
        for item in db.execute(select(MenuItem).where(MenuItem.id.in_(item_ids))).scalars()
    }
    customization_ids = {cid for line in requested for cid in line.customization_ids}
    customizations = {}
    if customization_ids:
        customizations = {
            c.id: c
            for c in db.execute(
                select(Customization).where(Customization.id.in_(customization_ids))
            ).scalars()
        }

    lines = []
    for index, line in enumerate(requested):
        if line.quantity < 1:
            raise ValidationFailed(f"items[{index}].quantity must be at least 1")
        item = items.get(line.item_id)
        if item is None or not item.is_available:
            raise ValidationFailed(f"items[{index}]: menu item {line.item_id} is not available")

        selected = []
        for cid in dict.fromkeys(line.customization_ids):
            custom = customizations.get(cid)
            if custom is None or not custom.is_active:
                raise ValidationFailed(f"items[{index}]: customization {cid} is not available")
            if custom.category_id is not None and custom.category_id != item.category_id:
                raise ValidationFailed(
                    f"items[{index}]: customization {custom.name} does not apply to {item.name}"
                )
            selected.append(
                SelectedCustomization(
                    id=str(custom.id),
                    name=custom.name,
                    price_delta=custom.price,
                    kind=custom.kind.value,
                )
            )

        unit_price = item.price + sum((c.price_delta for c in selected), 0)
        lines.append(
            CartLine(
                item_id=item.id,
                unit_price=unit_price,
                quantity=line.quantity,
                customizations=tuple(selected),
                name=item.name,
            )
        )
    return merge_cart_lines(lines)


def normalize_coupon_code(code: Optional[str]) -> Optional[str]:
    """Upper-cased code, or None for a missing or blank one."""
    return code.strip().upper() if code and code.strip() else None


def quote_cart(
    db: Session,
    requested: Sequence[RequestedLine],
    coupon_code: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Tuple[List[CartLine], Totals]:
    coupon_code = normalize_coupon_code(coupon_code)
    lines = build_cart_lines(db, requested)
    coupon = coupon_service.get_coupon_by_code(db, coupon_code) if coupon_code else None
    totals = compute_totals(lines, coupon, coupon_code=coupon_code, now=now)
    return lines, totals


def _upsert_customer(db: Session, delivery: DeliveryDetails) -> Customer:
    customer = db.execute(
        select(Customer).where(Customer.phone == delivery.phone)
    ).scalar_one_or_none()
    if customer is None:
        customer = Customer(name=delivery.full_name.strip(), phone=delivery.phone, email=delivery.email)
        db.add(customer)
    else:
        customer.name = delivery.full_name.strip()
        if delivery.email:
            customer.email = delivery.email
    return customer


def create_order(
    db: Session,
    requested: Sequence[RequestedLine],
    delivery: DeliveryDetails,
    coupon_code: Optional[str] = None,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Order:
    """Create an order in state PENDING/PENDING.

    The customer upsert, the order row and its item snapshots are written in
    a single transaction; any failure rolls all of them back.
    """
    delivery.validate()
    now = now or datetime.now(timezone.utc)
    coupon_code = normalize_coupon_code(coupon_code)

    lines, totals = quote_cart(db, requested, coupon_code, now=now)
    if coupon_code and not totals.coupon.valid:
        raise ValidationFailed(totals.coupon.message)

    status, payment_status = INITIAL_STATE
    try:
        customer = _upsert_customer(db, delivery)
        db.flush()

        order = Order(
            order_number=generate_order_number(),
            customer_id=customer.id,
            status=status,
            payment_status=payment_status,
            delivery_name=delivery.full_name.strip(),
            delivery_phone=delivery.phone,
            delivery_email=delivery.email,
            address_line1=delivery.address_line1.strip(),
            address_line2=delivery.address_line2,
            landmark=delivery.landmark,
            pincode=delivery.pincode,
            city=(delivery.city or "").strip() or settings.default_city,
            subtotal=totals.subtotal,
            delivery_fee=totals.delivery_fee,
            tax=totals.tax,
            discount_amount=totals.discount,
            coupon_code=coupon_code,
            total=totals.grand_total,
            estimated_delivery=now + timedelta(minutes=settings.estimated_delivery_minutes),
            notes=notes,
        )
        db.add(order)
        db.flush()

        for line in lines:
            db.add(
                OrderItem(
                    order_id=order.id,
                    menu_item_id=line.item_id,
                    item_name=line.name,
                    unit_price=line.unit_price,
                    quantity=line.quantity,
                    line_subtotal=line.line_subtotal,
                    customizations=[c.as_dict() for c in line.customizations],
                )
            )
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Order creation failed, transaction rolled back")
        raise

    db.refresh(order)
    logger.info(f"Created order {order.order_number} total={order.total}")
    return order


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def get_order(db: Session, order_id: int, for_update: bool = False) -> Order:
    stmt = select(Order).where(Order.id == order_id).options(selectinload(Order.items))
    if for_update:
        stmt = stmt.with_for_update()
    order = db.execute(stmt).scalar_one_or_none()
    if order is None:
        raise NotFound("Order not found")
    return order


def list_orders_by_phone(db: Session, phone: str) -> List[Order]:
    stmt = (
        select(Order)
        .join(Customer, Order.customer_id == Customer.id)
        .where(Customer.phone == phone)
        .options(selectinload(Order.items))
        .order_by(Order.created_at.desc(), Order.id.desc())
    )
    return list(db.execute(stmt).scalars())


def list_orders(
    db: Session,
    status: Optional[OrderStatus] = None,
    limit: int = 50,
    offset: int = 0,
) -> Tuple[List[Order], int]:
    stmt = select(Order)
    count_stmt = select(func.count(Order.id))
    if status is not None:
        stmt = stmt.where(Order.status == status)
        count_stmt = count_stmt.where(Order.status == status)
    total = db.execute(count_stmt).scalar_one()
    stmt = (
        stmt.options(selectinload(Order.items))
        .order_by(Order.created_at.desc(), Order.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(db.execute(stmt).scalars()), total


def confirmation_snapshot(order: Order) -> Dict[str, Any]:
    """Plain-dict copy of what the confirmation email needs."""
    address = ", ".join(
        part for part in (
            order.address_line1,
            order.address_line2,
            order.landmark,
            f"{order.city} - {order.pincode}",
        ) if part
    )
    return {
        "id": order.id,
        "order_number": order.order_number,
        "delivery_name": order.delivery_name,
        "delivery_email": order.delivery_email,
        "total": str(order.total),
        "address": address,
        "items": [
            {
                "item_name": item.item_name,
                "quantity": item.quantity,
                "line_subtotal": str(item.line_subtotal),
            }
            for item in order.items
        ],
    }


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------

@dataclass
class PaymentOutcome:
    """Result of applying a payment event.

    ``applied`` is False when the event was a duplicate or out of order.
    ``verified`` is False when a checkout signature did not match.
    ``email`` carries the confirmation snapshot to send after commit.
    """

    order_id: Optional[int]
    applied: bool
    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    email: Optional[Dict[str, Any]] = None
    verified: bool = True


def _already_processed(db: Session, gateway_payment_ref: str) -> bool:
    stmt = select(ProcessedPayment.id).where(
        ProcessedPayment.gateway_payment_ref == gateway_payment_ref
    )
    return db.execute(stmt).first() is not None


def _confirm_payment(
    db: Session,
    order: Order,
    event: OrderEvent,
    gateway_order_ref: Optional[str],
    gateway_payment_ref: str,
    signature: Optional[str],
    source: str,
) -> bool:
    """Apply a captured payment exactly once per payment reference.

    Returns False when the reference was already recorded. The ledger row,
    the state change and the coupon increment commit together.
    """
    if _already_processed(db, gateway_payment_ref):
        logger.info(f"Payment {gateway_payment_ref} already processed, skipping")
        return False

    apply_event(order, event)
    if gateway_order_ref:
        order.gateway_order_ref = gateway_order_ref
    order.gateway_payment_ref = gateway_payment_ref
    order.gateway_signature = signature
    db.add(ProcessedPayment(gateway_payment_ref=gateway_payment_ref, order_id=order.id, source=source))
    try:
        db.flush()
        if order.coupon_code:
            coupon_service.increment_usage(db, order.coupon_code)
        db.commit()
    except IntegrityError:
        db.rollback()
        # Only a concurrent delivery of the same payment is a no-op
        if not _already_processed(db, gateway_payment_ref):
            raise
        logger.info(f"Payment {gateway_payment_ref} recorded concurrently, skipping")
        return False
    return True


def verify_payment(
    db: Session,
    gateway: PaymentGatewayService,
    order_id: int,
    gateway_order_ref: str,
    gateway_payment_ref: str,
    signature: Optional[str],
) -> PaymentOutcome:
    """Verify the checkout callback for an order.

    On a signature match the order becomes CONFIRMED/PAID. On a mismatch a
    PENDING order is marked payment FAILED and the result has
    ``applied=False``; it never reaches PAID.
    """
    order = get_order(db, order_id, for_update=True)

    verified = gateway.verify_payment_signature(gateway_order_ref, gateway_payment_ref, signature)
    # The signed gateway order must be the one opened for this order
    if verified and order.gateway_order_ref != gateway_order_ref:
        logger.warning(
            f"Order {order.order_number}: payment for gateway order {gateway_order_ref} "
            f"does not belong to {order.gateway_order_ref}"
        )
        verified = False

    if not verified:
        logger.warning(f"Payment signature mismatch for order {order.order_number}")
        if order.status == OrderStatus.PENDING:
            apply_event(order, OrderEvent.PAYMENT_VERIFICATION_FAILED)
            db.commit()
        return PaymentOutcome(order.id, False, order.status, order.payment_status, verified=False)

    applied = _confirm_payment(
        db, order, OrderEvent.PAYMENT_VERIFIED,
        gateway_order_ref, gateway_payment_ref, signature, "verify",
    )
    order = get_order(db, order_id)
    return PaymentOutcome(
        order.id,
        applied,
        order.status,
        order.payment_status,
        email=confirmation_snapshot(order) if applied else None,
    )


def handle_webhook_event(
    db: Session,
    event_type: Optional[str],
    gateway_order_ref: Optional[str],
    gateway_payment_ref: Optional[str],
    signature: Optional[str] = None,
) -> PaymentOutcome:
    """Apply an already-authenticated webhook event.

    Unknown event types, duplicates and events that arrive after the order
    has moved on are acknowledged without changing anything, so gateway
    retries stay harmless.
    """
    if event_type not in CAPTURED_EVENTS + FAILED_EVENTS:
        logger.info(f"Ignoring webhook event {event_type}")
        return PaymentOutcome(None, False)
    if not gateway_order_ref:
        raise ValidationFailed("No order_id in payment entity")

    order = db.execute(
        select(Order)
        .where(Order.gateway_order_ref == gateway_order_ref)
        .options(selectinload(Order.items))
        .with_for_update()
    ).scalar_one_or_none()
    if order is None:
        raise NotFound("Order not found")

    if event_type in CAPTURED_EVENTS:
        if not gateway_payment_ref:
            raise ValidationFailed("No payment id in payment entity")
        if _already_processed(db, gateway_payment_ref):
            logger.info(f"Duplicate webhook for payment {gateway_payment_ref}")
            return PaymentOutcome(order.id, False, order.status, order.payment_status)
        try:
            applied = _confirm_payment(
                db, order, OrderEvent.WEBHOOK_CAPTURED,
                None, gateway_payment_ref, signature, "webhook",
            )
        except InvalidTransitionError as e:
            logger.warning(f"Webhook {event_type} for order {order.order_number} ignored: {e.message}")
            db.rollback()
            applied = False
        order = get_order(db, order.id)
        return PaymentOutcome(
            order.id,
            applied,
            order.status,
            order.payment_status,
            email=confirmation_snapshot(order) if applied else None,
        )

    try:
        apply_event(order, OrderEvent.WEBHOOK_FAILED)
    except InvalidTransitionError as e:
        logger.warning(f"Webhook {event_type} for order {order.order_number} ignored: {e.message}")
        return PaymentOutcome(order.id, False, order.status, order.payment_status)
    db.commit()
    return PaymentOutcome(order.id, True, order.status, order.payment_status)


def start_payment(db: Session, gateway: PaymentGatewayService, order_id: int) -> Dict[str, Any]:
    """Create the gateway order a PENDING order is paid against."""
    order = get_order(db, order_id)
    if order.status != OrderStatus.PENDING or order.payment_status == PaymentStatus.PAID:
        raise InvalidTransitionError(
            "start_payment", order.status.value, order.payment_status.value
        )

    gateway_order = gateway.create_gateway_order(
        amount=order.total,
        receipt=order.order_number,
        notes={"order_id": str(order.id)},
    )
    order.gateway_order_ref = gateway_order["id"]
    db.commit()
    return {
        "order_id": order.id,
        "gateway_order_ref": order.gateway_order_ref,
        "amount": gateway_order.get("amount"),
        "currency": gateway_order.get("currency", gateway.currency),
        "key_id": gateway.key_id,
    }


def change_status(db: Session, order_id: int, target: OrderStatus) -> Order:
    """Admin status change, forward only (or cancel while PENDING)."""
    order = get_order(db, order_id, for_update=True)
    event = event_for_target_status(order.status, target)
    apply_event(order, event)
    db.commit()
    db.refresh(order)
    return order
