"""Periodic sweep that forces local entitlement state to match the provider."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from ..domain.events import SubscriptionPayload
from ..domain.models import SubscriptionStatus, User
from ..domain.ports.billing import BillingProvider
from ..domain.ports.persistence import PersistenceGateway
from ..domain.status_mapping import StatusSignal, map_provider_status

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(slots=True)
class SweepFailure:
    user_id: int
    error: str


@dataclass(slots=True)
class SweepReport:
    checked: int = 0
    updated: int = 0
    failed: int = 0
    cancelled: bool = False
    failures: List[SweepFailure] = field(default_factory=list)


def select_authoritative(subscriptions: Sequence[SubscriptionPayload]) -> Optional[SubscriptionPayload]:
    """Most recently created subscription; the provider id breaks exact timestamp ties."""
    if not subscriptions:
        return None
    return max(subscriptions, key=lambda item: (item.created or _EPOCH, item.id))


class ReconciliationSweep:
    """Re-derives every billed user's status from the provider's current records.

    Users are processed one at a time to keep provider API usage bounded. A
    failure for one user is logged and recorded in the report; only failing
    to load the user list aborts the sweep.
    """

    def __init__(self, persistence: PersistenceGateway, provider: BillingProvider) -> None:
        self._persistence = persistence
        self._provider = provider

    def run(self, stop_event: Optional[threading.Event] = None) -> SweepReport:
        users = self._persistence.list_users_with_customer_ref()
        logger.info("Starting subscription reconciliation for %s users", len(users))
        report = SweepReport()

        for user in users:
            if stop_event is not None and stop_event.is_set():
                report.cancelled = True
                logger.info("Reconciliation cancelled after %s users", report.checked)
                break
            report.checked += 1
            try:
                if self.reconcile_user(user):
                    report.updated += 1
            except Exception as exc:
                report.failed += 1
                report.failures.append(SweepFailure(user_id=user.id, error=str(exc)))
                logger.exception("Error reconciling subscription for user %s", user.id)

        logger.info(
            "Subscription reconciliation finished: checked=%s updated=%s failed=%s cancelled=%s",
            report.checked,
            report.updated,
            report.failed,
            report.cancelled,
        )
        return report

    def reconcile_user(self, user: User) -> bool:
        """Overwrite ``user``'s state with the provider's. Returns whether the status changed."""
        customer_ref = user.stripe_customer_id
        if not customer_ref:
            return False

        subscriptions = self._provider.list_subscriptions(customer_ref)
        current = select_authoritative(subscriptions)

        if current is None:
            status = SubscriptionStatus.INACTIVE
            self._persistence.set_subscription_status(user.id, status)
        else:
            status = map_provider_status(current.status, StatusSignal.SUBSCRIPTION_EVENT)
            self._persistence.apply_subscription_state(
                user_id=user.id,
                stripe_customer_id=customer_ref,
                stripe_subscription_id=current.id,
                status=status,
                current_period_start=current.current_period_start,
                current_period_end=current.current_period_end,
                cancel_at_period_end=current.cancel_at_period_end,
            )

        changed = status is not user.subscription_status
        if changed:
            logger.info(
                "Reconciled user %s subscription status %s -> %s",
                user.id,
                user.subscription_status.value,
                status.value,
            )
        return changed
