"""Payment routes: gateway order creation, checkout verification and webhooks."""

import logging
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from fastapi.responses import JSONResponse

from app.core.email import EmailService, get_email_service, send_order_confirmation
from app.core.rate_limit import limiter
from app.db.session import DbSession
from app.schemas.order import GatewayOrderRequest, VerifyPaymentRequest
from app.services import order_lifecycle
from app.services.payment_gateway_service import (
    SIGNATURE_HEADER,
    PaymentGatewayService,
    get_payment_gateway,
)

logger = logging.getLogger(__name__)

router = APIRouter()

Gateway = Annotated[PaymentGatewayService, Depends(get_payment_gateway)]
Mailer = Annotated[EmailService, Depends(get_email_service)]


@router.post("/payments/gateway-order")
@limiter.limit("10/minute")
def create_gateway_order(request: Request, body: GatewayOrderRequest, db: DbSession, gateway: Gateway):
    """Create the gateway order the hosted checkout is opened against."""
    return order_lifecycle.start_payment(db, gateway, body.order_id)


@router.post("/verify-payment")
@limiter.limit("20/minute")
def verify_payment(
    request: Request,
    body: VerifyPaymentRequest,
    db: DbSession,
    gateway: Gateway,
    mailer: Mailer,
    background_tasks: BackgroundTasks,
):
    """Verify the checkout callback signature and confirm the order."""
    outcome = order_lifecycle.verify_payment(
        db,
        gateway,
        body.order_id,
        body.gateway_order_ref,
        body.gateway_payment_ref,
        body.signature,
    )
    if not outcome.verified:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"verified": False, "error": "Payment verification failed"},
        )

    if outcome.email:
        background_tasks.add_task(send_order_confirmation, mailer, outcome.email)
    return {
        "verified": True,
        "order_id": outcome.order_id,
        "status": outcome.status.value,
        "payment_status": outcome.payment_status.value,
    }


@router.post("/webhooks/payment-gateway")
@limiter.limit("120/minute")
async def payment_webhook(
    request: Request,
    db: DbSession,
    gateway: Gateway,
    mailer: Mailer,
    background_tasks: BackgroundTasks,
):
    """Signed server-to-server payment notification.

    The raw body is authenticated before anything is parsed. Replays of an
    already processed payment are acknowledged without side effects.
    """
    payload = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)
    event = gateway.handle_webhook(payload, signature)
    logger.info(f"Received webhook event: {event['event_type']}")

    outcome = order_lifecycle.handle_webhook_event(
        db,
        event["event_type"],
        event["gateway_order_ref"],
        event["gateway_payment_ref"],
        signature,
    )
    if outcome.email:
        background_tasks.add_task(send_order_confirmation, mailer, outcome.email)

    response = {"received": True, "applied": outcome.applied}
    if outcome.order_id is not None:
        response["order_id"] = outcome.order_id
        response["status"] = outcome.status.value
    return response
