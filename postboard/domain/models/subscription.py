"""Subscription domain model linking users to provider subscriptions."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class SubscriptionStatus(str, Enum):
    """Internal entitlement states. Only ``ACTIVE`` grants access."""

    INACTIVE = "inactive"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"

    @classmethod
    def parse(cls, value: str) -> "SubscriptionStatus":
        try:
            return cls(value)
        except ValueError:
            return cls.INACTIVE


@dataclass(slots=True)
class Subscription:
    """
    Local record of one provider subscription instance.

    Attributes:
        id: Unique identifier
        user_id: Reference to User
        stripe_customer_id: Provider customer that owns the subscription
        stripe_subscription_id: Provider subscription ID (unique)
        status: Internal status derived from the provider status
        current_period_start: Start of the paid-for interval
        current_period_end: End of the paid-for interval
        cancel_at_period_end: Whether the provider will cancel at period end
        created_at: Record creation timestamp
        updated_at: Last update timestamp
    """

    id: int
    user_id: int
    stripe_customer_id: str
    stripe_subscription_id: str
    status: SubscriptionStatus
    current_period_start: datetime
    current_period_end: datetime
    cancel_at_period_end: bool
    created_at: datetime
    updated_at: datetime
