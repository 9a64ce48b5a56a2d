"""Checkout, webhook and status endpoints for subscription billing."""

import logging
import sqlite3

from fastapi import APIRouter, Depends, HTTPException, Request, status
from starlette.concurrency import run_in_threadpool

from ....core.dependencies import (
    get_checkout_issuer,
    get_entitlement_gate,
    get_persistence_gateway,
    get_webhook_processor,
)
from ....domain.errors import BillingError, NotFoundError
from ....domain.models import User
from ....domain.ports.persistence import PersistenceGateway
from ....services.checkout_service import CheckoutSessionIssuer
from ....services.entitlement_gate import EntitlementGate
from ....services.webhook_processor import WebhookProcessor
from ...api.dependencies import require_active_user
from ...api.schemas.subscription_schemas import (
    CreateCheckoutSessionResponse,
    SubscriptionResponse,
    SubscriptionStatusResponse,
    WebhookAckResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/subscription", tags=["Subscription"])


@router.post("/create-checkout-session", response_model=CreateCheckoutSessionResponse)
async def create_checkout_session(
    user: User = Depends(require_active_user),
    issuer: CheckoutSessionIssuer = Depends(get_checkout_issuer),
) -> CreateCheckoutSessionResponse:
    """Create a hosted checkout session for the current user."""
    try:
        checkout_url = await run_in_threadpool(issuer.create_checkout_session, user.id)
    except BillingError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.to_dict()) from exc
    return CreateCheckoutSessionResponse(checkout_url=checkout_url)


@router.get("/status", response_model=SubscriptionStatusResponse)
async def get_subscription_status(
    user: User = Depends(require_active_user),
    persistence: PersistenceGateway = Depends(get_persistence_gateway),
    gate: EntitlementGate = Depends(get_entitlement_gate),
) -> SubscriptionStatusResponse:
    """Current entitlement state plus the latest local subscription record."""
    subscription = persistence.get_current_subscription(user.id)
    return SubscriptionStatusResponse(
        subscription_status=user.subscription_status.value,
        entitled=gate.check(user.id).allowed,
        has_billing_customer=bool(user.stripe_customer_id),
        subscription=None
        if subscription is None
        else SubscriptionResponse(
            stripe_subscription_id=subscription.stripe_subscription_id,
            status=subscription.status.value,
            current_period_start=subscription.current_period_start,
            current_period_end=subscription.current_period_end,
            cancel_at_period_end=subscription.cancel_at_period_end,
        ),
    )


@router.post("/webhook", response_model=WebhookAckResponse, include_in_schema=False)
async def stripe_webhook(
    request: Request,
    processor: WebhookProcessor = Depends(get_webhook_processor),
) -> WebhookAckResponse:
    """Handle provider webhook events.

    2xx acknowledges the event (including types deliberately ignored). 400
    means it can never be processed. 5xx asks the provider to redeliver.
    """
    payload = await request.body()
    signature = request.headers.get("stripe-signature")

    try:
        result = await run_in_threadpool(processor.process, payload, signature)
    except NotFoundError as exc:
        # The customer ref may not have been committed yet; let the provider retry.
        logger.warning("Webhook references an unknown customer: %s", exc.message)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.to_dict()) from exc
    except BillingError as exc:
        if exc.status_code < 500:
            logger.warning("Rejected webhook: %s", exc.message)
        else:
            logger.error("Webhook processing failed: %s", exc.message)
        raise HTTPException(status_code=exc.status_code, detail=exc.to_dict()) from exc
    except sqlite3.Error as exc:
        logger.exception("Store write failed while processing webhook")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"code": "store_unavailable", "message": "Temporary storage failure."},
        ) from exc

    return WebhookAckResponse(
        status="processed" if result.handled else "ignored",
        event_id=result.event_id,
        event_type=result.event_type,
    )
