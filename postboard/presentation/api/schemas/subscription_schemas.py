"""Pydantic schemas for subscription API endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class CreateCheckoutSessionResponse(BaseModel):
    """Response schema for creating a checkout session."""

    checkout_url: str


class SubscriptionResponse(BaseModel):
    """Local record of the user's current provider subscription."""

    stripe_subscription_id: str
    status: str
    current_period_start: datetime
    current_period_end: datetime
    cancel_at_period_end: bool


class SubscriptionStatusResponse(BaseModel):
    """Entitlement state of the current user."""

    subscription_status: str
    entitled: bool
    has_billing_customer: bool
    subscription: Optional[SubscriptionResponse] = None


class WebhookAckResponse(BaseModel):
    status: str
    event_id: str
    event_type: str
