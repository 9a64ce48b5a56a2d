"""Translation of provider subscription statuses into entitlement states.

Both the webhook processor and the reconciliation sweep call
:func:`map_provider_status`; no other module interprets provider statuses.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from .models import SubscriptionStatus


class StatusSignal(str, Enum):
    """Kind of provider notification a status was observed on."""

    SUBSCRIPTION_EVENT = "subscription_event"
    PAYMENT_FAILURE = "payment_failure"


CANCELED_PROVIDER_STATUSES = frozenset({"canceled", "incomplete_expired", "unpaid"})


def map_provider_status(
    provider_status: Optional[str],
    signal: StatusSignal = StatusSignal.SUBSCRIPTION_EVENT,
) -> SubscriptionStatus:
    """Return the internal status for ``provider_status``.

    Total over all inputs: unknown or missing statuses map to ``INACTIVE`` so
    they never grant entitlement. A payment failure downgrades to
    ``PAST_DUE`` unless the provider also reports the subscription as ended.
    """
    normalized = (provider_status or "").strip().lower()
    if normalized in CANCELED_PROVIDER_STATUSES:
        return SubscriptionStatus.CANCELED
    if signal is StatusSignal.PAYMENT_FAILURE:
        return SubscriptionStatus.PAST_DUE
    if normalized == "active":
        return SubscriptionStatus.ACTIVE
    if normalized == "past_due":
        return SubscriptionStatus.PAST_DUE
    return SubscriptionStatus.INACTIVE
