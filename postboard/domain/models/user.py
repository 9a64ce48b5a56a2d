"""User domain model carrying the entitlement fields."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .subscription import SubscriptionStatus


@dataclass(slots=True)
class User:
    """
    User account as seen by the billing services.

    Attributes:
        id: Unique identifier
        email: User email address (unique)
        username: Display name sent to the provider when creating a customer
        is_active: False once the account has been deactivated
        subscription_status: Authoritative entitlement state read by the gate
        stripe_customer_id: Provider customer reference, set once and never replaced
        created_at: Account creation timestamp
        updated_at: Last update timestamp
    """

    id: int
    email: str
    username: str
    is_active: bool
    subscription_status: SubscriptionStatus
    stripe_customer_id: Optional[str]
    created_at: datetime
    updated_at: datetime
