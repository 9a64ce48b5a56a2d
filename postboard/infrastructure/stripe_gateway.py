"""Stripe implementation of the billing provider port."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import stripe
from pydantic import ValidationError as PydanticValidationError

from ..domain.errors import ConfigurationError, TransientProviderError
from ..domain.events import SubscriptionPayload
from ..domain.ports.billing import BillingProvider

logger = logging.getLogger(__name__)


class StripeGateway(BillingProvider):
    """Talks to Stripe through a dedicated client carrying its own key and timeout."""

    def __init__(
        self,
        secret_key: Optional[str],
        *,
        timeout_seconds: int = 10,
        max_network_retries: int = 2,
    ) -> None:
        self._client: Optional[stripe.StripeClient] = None
        if secret_key:
            self._client = stripe.StripeClient(
                secret_key,
                http_client=stripe.RequestsClient(timeout=timeout_seconds),
                max_network_retries=max_network_retries,
            )
        else:
            logger.warning("STRIPE_SECRET_KEY not configured; billing provider calls will fail.")

    @property
    def client(self) -> stripe.StripeClient:
        if self._client is None:
            raise ConfigurationError("Stripe not configured. Please set STRIPE_SECRET_KEY.")
        return self._client

    def create_customer(self, email: str, name: str, user_id: int) -> str:
        try:
            customer = self.client.customers.create(
                params={
                    "email": email,
                    "name": name,
                    "metadata": {"user_id": str(user_id)},
                }
            )
        except stripe.StripeError as exc:
            logger.error("Failed to create Stripe customer for user %s: %s", user_id, exc)
            raise TransientProviderError(f"Failed to create customer: {exc}") from exc
        return customer.id

    def create_checkout_session(
        self,
        customer_ref: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        user_id: int,
    ) -> str:
        try:
            session = self.client.checkout.sessions.create(
                params={
                    "customer": customer_ref,
                    "mode": "subscription",
                    "line_items": [{"price": price_id, "quantity": 1}],
                    "success_url": success_url,
                    "cancel_url": cancel_url,
                    "client_reference_id": str(user_id),
                    "metadata": {"user_id": str(user_id)},
                }
            )
        except stripe.StripeError as exc:
            logger.error("Failed to create checkout session for user %s: %s", user_id, exc)
            raise TransientProviderError(f"Failed to create checkout session: {exc}") from exc
        if not session.url:
            raise TransientProviderError("Checkout session was created without a redirect URL.")
        return session.url

    def list_subscriptions(self, customer_ref: str) -> List[SubscriptionPayload]:
        try:
            page = self.client.subscriptions.list(
                params={"customer": customer_ref, "status": "all", "limit": 100}
            )
            raw_items = [_as_dict(item) for item in page.auto_paging_iter()]
        except stripe.StripeError as exc:
            logger.error("Failed to list subscriptions for customer %s: %s", customer_ref, exc)
            raise TransientProviderError(f"Failed to list subscriptions: {exc}") from exc

        result: List[SubscriptionPayload] = []
        for item in raw_items:
            try:
                result.append(SubscriptionPayload.model_validate(item))
            except PydanticValidationError as exc:
                raise TransientProviderError(
                    f"Unexpected subscription shape from provider for customer {customer_ref}"
                ) from exc
        return result


def _as_dict(obj: Any) -> Dict[str, Any]:
    if isinstance(obj, dict) and not hasattr(obj, "to_dict"):
        return obj
    return obj.to_dict()
