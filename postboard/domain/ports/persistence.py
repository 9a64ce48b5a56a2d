from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Protocol

from ..models import Post, Reply, Subscription, SubscriptionStatus, User


class UserRepository(Protocol):
    """Persistence functions for user accounts and their entitlement fields."""

    def create_user(self, email: str, username: str) -> User:
        ...

    def get_user_by_id(self, user_id: int) -> Optional[User]:
        ...

    def get_user_by_email(self, email: str) -> Optional[User]:
        ...

    def get_user_by_customer_ref(self, customer_ref: str) -> Optional[User]:
        """Indexed lookup; at most one user owns a given provider customer."""
        ...

    def list_users_with_customer_ref(self) -> List[User]:
        ...

    def set_customer_ref_if_absent(self, user_id: int, customer_ref: str) -> bool:
        """Store ``customer_ref`` only if the user has none. Returns whether it was written."""
        ...

    def set_subscription_status(self, user_id: int, status: SubscriptionStatus) -> None:
        ...

    def deactivate_user(self, user_id: int) -> None:
        ...


class SubscriptionRepository(Protocol):
    """Persistence functions for local subscription records."""

    def upsert_subscription(
        self,
        user_id: int,
        stripe_customer_id: str,
        stripe_subscription_id: str,
        status: SubscriptionStatus,
        current_period_start: datetime,
        current_period_end: datetime,
        cancel_at_period_end: bool = False,
    ) -> Subscription:
        ...

    def apply_subscription_state(
        self,
        user_id: int,
        stripe_customer_id: str,
        stripe_subscription_id: str,
        status: SubscriptionStatus,
        current_period_start: datetime,
        current_period_end: datetime,
        cancel_at_period_end: bool = False,
    ) -> Subscription:
        """Upsert the record and write ``status`` onto the user in one transaction."""
        ...

    def get_subscription_by_provider_ref(self, stripe_subscription_id: str) -> Optional[Subscription]:
        ...

    def get_current_subscription(self, user_id: int) -> Optional[Subscription]:
        ...

    def list_subscriptions_for_user(self, user_id: int) -> List[Subscription]:
        ...


class ContentRepository(Protocol):
    """Storage for posts and replies written by gated operations."""

    def create_post(self, user_id: int, title: str, content: str) -> Post:
        ...

    def get_post(self, post_id: int) -> Optional[Post]:
        ...

    def create_reply(self, post_id: int, user_id: Optional[int], content: str, is_anonymous: bool) -> Reply:
        ...


class PersistenceGateway(
    UserRepository,
    SubscriptionRepository,
    ContentRepository,
    Protocol,
):
    """Composite gateway combining every persistence concern used by the app."""

    pass
