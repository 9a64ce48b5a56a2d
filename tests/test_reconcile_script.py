import pytest

from postboard.domain.models import SubscriptionStatus
from postboard.infrastructure.persistence.sqlite import SQLitePersistence
from scripts import reconcile_subscriptions

from .conftest import FakeBillingProvider


@pytest.fixture(autouse=True)
def keep_signal_handlers(monkeypatch):
    monkeypatch.setattr(reconcile_subscriptions.signal, "signal", lambda *args: None)


@pytest.fixture
def db_path(monkeypatch, tmp_path):
    path = tmp_path / "batch.db"
    monkeypatch.setenv("DATABASE_PATH", str(path))
    return path


def test_exits_with_error_without_secret_key(monkeypatch, db_path):
    monkeypatch.setenv("STRIPE_SECRET_KEY", "")

    assert reconcile_subscriptions.main() == 1


def test_partial_failures_still_exit_cleanly(monkeypatch, db_path):
    store = SQLitePersistence(db_path)
    ok = store.create_user("ok@example.com", "ok")
    broken = store.create_user("broken@example.com", "broken")
    store.set_customer_ref_if_absent(ok.id, "cus_ok")
    store.set_customer_ref_if_absent(broken.id, "cus_broken")
    store.close()

    provider = FakeBillingProvider()
    provider.add_subscription("cus_ok", sub_id="sub_ok", status="active")
    provider.failing_customers.add("cus_broken")
    monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_dummy")
    monkeypatch.setattr(reconcile_subscriptions, "StripeGateway", lambda *args, **kwargs: provider)

    assert reconcile_subscriptions.main() == 0

    reopened = SQLitePersistence(db_path)
    try:
        assert reopened.get_user_by_id(ok.id).subscription_status is SubscriptionStatus.ACTIVE
        assert reopened.get_user_by_id(broken.id).subscription_status is SubscriptionStatus.INACTIVE
    finally:
        reopened.close()


def test_store_failure_exits_with_error(monkeypatch, db_path):
    monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_dummy")
    monkeypatch.setattr(reconcile_subscriptions, "StripeGateway", lambda *args, **kwargs: FakeBillingProvider())

    def broken_listing(self):
        raise RuntimeError("database is locked")

    monkeypatch.setattr(SQLitePersistence, "list_users_with_customer_ref", broken_listing)

    assert reconcile_subscriptions.main() == 1
