import hashlib
import hmac
import itertools
import json
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from postboard.domain.errors import TransientProviderError
from postboard.domain.events import SubscriptionPayload
from postboard.infrastructure.persistence.sqlite import SQLitePersistence

WEBHOOK_SECRET = "whsec_test_secret"
PRICE_ID = "price_test_monthly"


class FakeBillingProvider:
    """In-memory stand-in for the provider port used across the test suite."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.customers: Dict[str, Dict[str, Any]] = {}
        self.sessions: List[Dict[str, Any]] = []
        self.subscriptions: Dict[str, List[Dict[str, Any]]] = {}
        self.fail_customer_creation = False
        self.fail_checkout = False
        self.failing_customers: set = set()
        self.list_calls: List[str] = []

    def create_customer(self, email: str, name: str, user_id: int) -> str:
        if self.fail_customer_creation:
            raise TransientProviderError("provider unavailable")
        ref = f"cus_{next(self._ids)}"
        self.customers[ref] = {"email": email, "name": name, "user_id": user_id}
        return ref

    def create_checkout_session(
        self,
        customer_ref: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        user_id: int,
    ) -> str:
        if self.fail_checkout:
            raise TransientProviderError("provider unavailable")
        session_id = f"cs_{next(self._ids)}"
        self.sessions.append(
            {
                "id": session_id,
                "customer": customer_ref,
                "price": price_id,
                "success_url": success_url,
                "cancel_url": cancel_url,
                "user_id": user_id,
            }
        )
        return f"https://checkout.example.test/{session_id}"

    def list_subscriptions(self, customer_ref: str) -> List[SubscriptionPayload]:
        self.list_calls.append(customer_ref)
        if customer_ref in self.failing_customers:
            raise TransientProviderError("timeout listing subscriptions")
        return [SubscriptionPayload.model_validate(item) for item in self.subscriptions.get(customer_ref, [])]

    def add_subscription(self, customer_ref: str, **overrides: Any) -> Dict[str, Any]:
        item = subscription_object(customer=customer_ref, **overrides)
        self.subscriptions.setdefault(customer_ref, []).append(item)
        return item


def _ts(value: datetime) -> int:
    return int(value.timestamp())


def subscription_object(
    *,
    sub_id: str = "sub_1",
    customer: str = "cus_1",
    status: str = "active",
    period_start: Optional[datetime] = None,
    period_end: Optional[datetime] = None,
    created: Optional[datetime] = None,
    cancel_at_period_end: bool = False,
) -> Dict[str, Any]:
    now = datetime.now(timezone.utc).replace(microsecond=0)
    start = period_start or now
    end = period_end or (start + timedelta(days=30))
    return {
        "id": sub_id,
        "object": "subscription",
        "customer": customer,
        "status": status,
        "current_period_start": _ts(start),
        "current_period_end": _ts(end),
        "created": _ts(created or start),
        "cancel_at_period_end": cancel_at_period_end,
    }


def make_event(event_type: str, obj: Dict[str, Any], event_id: str = "evt_1") -> str:
    return json.dumps(
        {
            "id": event_id,
            "object": "event",
            "type": event_type,
            "data": {"object": obj},
        }
    )


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


@pytest.fixture
def persistence(tmp_path):
    store = SQLitePersistence(tmp_path / "test.db")
    yield store
    store.close()


@pytest.fixture
def provider():
    return FakeBillingProvider()


@pytest.fixture
def user(persistence):
    return persistence.create_user("alice@example.com", "alice")
