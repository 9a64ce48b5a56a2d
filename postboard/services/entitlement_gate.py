from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..domain.errors import EntitlementDenied
from ..domain.models import SubscriptionStatus
from ..domain.ports.persistence import UserRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EntitlementDecision:
    allowed: bool
    reason: Optional[str] = None


class EntitlementGate:
    """Guards subscription-only operations.

    Reads the user's stored status on every call and never caches it. Only
    ``active`` is entitled; ``past_due`` gets no grace period.
    """

    def __init__(self, users: UserRepository) -> None:
        self._users = users

    def check(self, user_id: int) -> EntitlementDecision:
        user = self._users.get_user_by_id(user_id)
        if user is None:
            return EntitlementDecision(allowed=False, reason="user not found")
        if user.subscription_status is SubscriptionStatus.ACTIVE:
            return EntitlementDecision(allowed=True)
        return EntitlementDecision(
            allowed=False,
            reason=f"subscription status is {user.subscription_status.value}",
        )

    def require(self, user_id: int) -> None:
        decision = self.check(user_id)
        if not decision.allowed:
            logger.debug("Entitlement denied for user %s: %s", user_id, decision.reason)
            raise EntitlementDenied(
                "An active subscription is required.",
                details={"reason": decision.reason},
            )
