from datetime import datetime, timedelta, timezone

from postboard.domain.models import SubscriptionStatus
from postboard.services.checkout_service import CheckoutSessionIssuer
from postboard.services.entitlement_gate import EntitlementGate
from postboard.services.reconciliation import ReconciliationSweep
from postboard.services.webhook_processor import WebhookProcessor

from .conftest import PRICE_ID, WEBHOOK_SECRET, make_event, sign_payload, subscription_object


def _deliver(processor, event_type, obj, event_id):
    body = make_event(event_type, obj, event_id=event_id)
    return processor.process(body, sign_payload(body))


def test_full_subscription_lifecycle(persistence, provider, user):
    issuer = CheckoutSessionIssuer(
        persistence,
        provider,
        price_id=PRICE_ID,
        success_url="https://app.example.test/success",
        cancel_url="https://app.example.test/cancel",
    )
    processor = WebhookProcessor(persistence, WEBHOOK_SECRET)
    sweep = ReconciliationSweep(persistence, provider)
    gate = EntitlementGate(persistence)

    issuer.create_checkout_session(user.id)
    customer_ref = persistence.get_user_by_id(user.id).stripe_customer_id
    assert customer_ref is not None

    now = datetime.now(timezone.utc).replace(microsecond=0)
    period_end = now + timedelta(days=30)
    provider_sub = provider.add_subscription(
        customer_ref, sub_id="sub_life", status="active", period_start=now, period_end=period_end
    )
    _deliver(processor, "customer.subscription.created", provider_sub, "evt_created")

    assert persistence.get_user_by_id(user.id).subscription_status is SubscriptionStatus.ACTIVE
    assert persistence.get_subscription_by_provider_ref("sub_life").current_period_end == period_end
    assert gate.check(user.id).allowed is True

    provider_sub["status"] = "past_due"
    _deliver(
        processor,
        "invoice.payment_failed",
        {"id": "in_1", "customer": customer_ref, "subscription": "sub_life"},
        "evt_failed",
    )

    assert persistence.get_user_by_id(user.id).subscription_status is SubscriptionStatus.PAST_DUE
    assert gate.check(user.id).allowed is False

    report = sweep.run()
    assert report.updated == 0
    assert persistence.get_user_by_id(user.id).subscription_status is SubscriptionStatus.PAST_DUE

    provider_sub["status"] = "canceled"
    _deliver(processor, "customer.subscription.deleted", provider_sub, "evt_deleted")
    assert persistence.get_user_by_id(user.id).subscription_status is SubscriptionStatus.CANCELED

    report = sweep.run()
    assert report.updated == 0
    assert report.failed == 0
    assert persistence.get_user_by_id(user.id).subscription_status is SubscriptionStatus.CANCELED
