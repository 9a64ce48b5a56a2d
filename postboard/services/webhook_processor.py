"""Applies signed provider webhook events to the entitlement store."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Union

import stripe

from ..domain.errors import AuthenticationError, ConfigurationError, NotFoundError
from ..domain.events import (
    CheckoutSessionPayload,
    EventType,
    InvoicePayload,
    SubscriptionPayload,
    WebhookEvent,
    decode_event,
)
from ..domain.models import SubscriptionStatus, User
from ..domain.ports.persistence import PersistenceGateway
from ..domain.status_mapping import StatusSignal, map_provider_status

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class WebhookResult:
    event_id: str
    event_type: str
    handled: bool
    user_id: Optional[int] = None


class WebhookProcessor:
    """Verifies, decodes and applies provider events.

    Every write is an upsert keyed by the provider subscription id or a
    last-write-wins status update keyed by user id, so redelivered or
    concurrently delivered events converge without locking.
    """

    def __init__(
        self,
        persistence: PersistenceGateway,
        webhook_secret: Optional[str],
        *,
        tolerance_seconds: int = stripe.Webhook.DEFAULT_TOLERANCE,
    ) -> None:
        self._persistence = persistence
        self._webhook_secret = webhook_secret
        self._tolerance = tolerance_seconds

    def process(self, payload: Union[bytes, str], signature: Optional[str]) -> WebhookResult:
        body = self._verify(payload, signature)
        event = decode_event(body)

        if event.event_type is None:
            logger.debug("Ignoring webhook event %s of type %s", event.id, event.raw_type)
            return WebhookResult(event_id=event.id, event_type=event.raw_type, handled=False)

        logger.info("Processing webhook event %s (%s)", event.id, event.raw_type)
        user_id = self._dispatch(event)
        return WebhookResult(
            event_id=event.id,
            event_type=event.raw_type,
            handled=True,
            user_id=user_id,
        )

    # ------------------------------------------------------------------
    def _verify(self, payload: Union[bytes, str], signature: Optional[str]) -> str:
        if not self._webhook_secret:
            raise ConfigurationError("Stripe webhook secret not configured.")
        if not signature:
            raise AuthenticationError("Missing Stripe-Signature header.")
        try:
            body = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        except UnicodeDecodeError as exc:
            raise AuthenticationError("Webhook payload is not valid UTF-8.") from exc
        try:
            stripe.WebhookSignature.verify_header(body, signature, self._webhook_secret, self._tolerance)
        except stripe.SignatureVerificationError as exc:
            logger.warning("Rejected webhook with invalid signature: %s", exc)
            raise AuthenticationError("Invalid webhook signature.") from exc
        return body

    def _dispatch(self, event: WebhookEvent) -> Optional[int]:
        handlers: Dict[EventType, Callable[[Any], Optional[int]]] = {
            EventType.CHECKOUT_COMPLETED: self._handle_checkout_completed,
            EventType.SUBSCRIPTION_CREATED: self._handle_subscription_changed,
            EventType.SUBSCRIPTION_UPDATED: self._handle_subscription_changed,
            EventType.SUBSCRIPTION_DELETED: self._handle_subscription_deleted,
            EventType.PAYMENT_FAILED: self._handle_payment_failed,
        }
        return handlers[event.event_type](event.payload)

    def _handle_checkout_completed(self, session: CheckoutSessionPayload) -> Optional[int]:
        if not session.customer:
            logger.info("Checkout session %s completed without a customer; nothing to record", session.id)
            return None

        owner = self._persistence.get_user_by_customer_ref(session.customer)
        if owner is not None:
            return owner.id

        # The local issuer was bypassed or its write has not landed; backfill from metadata.
        user_id = session.referenced_user_id()
        user = self._persistence.get_user_by_id(user_id) if user_id is not None else None
        if user is None:
            raise NotFoundError(
                f"No user owns customer {session.customer}",
                details={"customer": session.customer, "session": session.id},
            )
        if self._persistence.set_customer_ref_if_absent(user.id, session.customer):
            logger.info("Backfilled billing customer %s for user %s", session.customer, user.id)
        else:
            logger.warning(
                "Checkout session %s names user %s who already owns a different customer; keeping the existing one",
                session.id,
                user.id,
            )
        return user.id

    def _handle_subscription_deleted(self, subscription: SubscriptionPayload) -> int:
        return self._handle_subscription_changed(subscription, deleted=True)

    def _handle_subscription_changed(self, subscription: SubscriptionPayload, *, deleted: bool = False) -> int:
        user = self._resolve_user(subscription.customer)
        if deleted:
            status = SubscriptionStatus.CANCELED
        else:
            status = map_provider_status(subscription.status, StatusSignal.SUBSCRIPTION_EVENT)
        self._persistence.apply_subscription_state(
            user_id=user.id,
            stripe_customer_id=subscription.customer,
            stripe_subscription_id=subscription.id,
            status=status,
            current_period_start=subscription.current_period_start,
            current_period_end=subscription.current_period_end,
            cancel_at_period_end=subscription.cancel_at_period_end,
        )
        logger.info(
            "Subscription %s for user %s is now %s (provider status %s)",
            subscription.id,
            user.id,
            status.value,
            subscription.status,
        )
        return user.id

    def _handle_payment_failed(self, invoice: InvoicePayload) -> int:
        user = self._resolve_user(invoice.customer)
        status = map_provider_status(None, StatusSignal.PAYMENT_FAILURE)
        self._persistence.set_subscription_status(user.id, status)
        logger.info("Payment failed on invoice %s; user %s is now %s", invoice.id, user.id, status.value)
        return user.id

    def _resolve_user(self, customer_ref: str) -> User:
        user = self._persistence.get_user_by_customer_ref(customer_ref)
        if user is None:
            raise NotFoundError(
                f"No user owns customer {customer_ref}",
                details={"customer": customer_ref},
            )
        return user
