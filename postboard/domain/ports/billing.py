from __future__ import annotations

from typing import List, Protocol

from ..events import SubscriptionPayload


class BillingProvider(Protocol):
    """Calls made against the external billing provider.

    Implementations bound every call with a timeout and raise
    ``TransientProviderError`` on any provider or network failure.
    """

    def create_customer(self, email: str, name: str, user_id: int) -> str:
        """Create a provider customer and return its reference."""
        ...

    def create_checkout_session(
        self,
        customer_ref: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        user_id: int,
    ) -> str:
        """Create a hosted checkout session and return its redirect URL."""
        ...

    def list_subscriptions(self, customer_ref: str) -> List[SubscriptionPayload]:
        """Every subscription the provider knows for ``customer_ref``, in any status."""
        ...
