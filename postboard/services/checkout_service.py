"""Issues hosted checkout sessions for subscription purchases."""

from __future__ import annotations

import logging
from typing import Optional

from ..domain.errors import AccountDisabledError, ConfigurationError, NotFoundError
from ..domain.models import User
from ..domain.ports.billing import BillingProvider
from ..domain.ports.persistence import UserRepository

logger = logging.getLogger(__name__)


class CheckoutSessionIssuer:
    """Creates (or reuses) the provider customer for a user and opens a checkout session."""

    def __init__(
        self,
        users: UserRepository,
        provider: BillingProvider,
        *,
        price_id: Optional[str],
        success_url: str,
        cancel_url: str,
    ) -> None:
        self._users = users
        self._provider = provider
        self._price_id = price_id
        self._success_url = success_url
        self._cancel_url = cancel_url

    def create_checkout_session(self, user_id: int) -> str:
        """
        Create a checkout session for ``user_id``.

        Args:
            user_id: Local user ID

        Returns:
            Redirect URL of the hosted checkout page

        Raises:
            NotFoundError: If the user does not exist
            AccountDisabledError: If the account has been deactivated
            ConfigurationError: If no price is configured
            TransientProviderError: If a provider call fails
        """
        if not self._price_id:
            raise ConfigurationError("Stripe price ID not configured.")

        user = self._users.get_user_by_id(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found.")
        if not user.is_active:
            raise AccountDisabledError("Account is deactivated.")

        customer_ref = self._ensure_customer(user)
        url = self._provider.create_checkout_session(
            customer_ref=customer_ref,
            price_id=self._price_id,
            success_url=self._success_url,
            cancel_url=self._cancel_url,
            user_id=user.id,
        )
        logger.info("Checkout session issued for user %s (customer %s)", user.id, customer_ref)
        return url

    def _ensure_customer(self, user: User) -> str:
        if user.stripe_customer_id:
            return user.stripe_customer_id

        # Persisted only after the provider answered, so a failure leaves no partial state.
        customer_ref = self._provider.create_customer(
            email=user.email,
            name=user.username,
            user_id=user.id,
        )
        if self._users.set_customer_ref_if_absent(user.id, customer_ref):
            logger.info("Created billing customer %s for user %s", customer_ref, user.id)
            return customer_ref

        # A concurrent request stored its customer first; that one stays authoritative.
        refreshed = self._users.get_user_by_id(user.id)
        if refreshed is None or not refreshed.stripe_customer_id:
            raise NotFoundError(f"User {user.id} not found.")
        logger.warning(
            "Discarding duplicate billing customer %s for user %s; keeping %s",
            customer_ref,
            user.id,
            refreshed.stripe_customer_id,
        )
        return refreshed.stripe_customer_id
