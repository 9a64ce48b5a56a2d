import pytest

from postboard.domain.errors import EntitlementDenied, NotFoundError
from postboard.domain.models import SubscriptionStatus
from postboard.services.entitlement_gate import EntitlementGate
from postboard.services.post_service import PostService


@pytest.fixture
def gate(persistence):
    return EntitlementGate(persistence)


@pytest.fixture
def posts(persistence, gate):
    return PostService(persistence, gate)


@pytest.mark.parametrize(
    "status, allowed",
    [
        (SubscriptionStatus.ACTIVE, True),
        (SubscriptionStatus.INACTIVE, False),
        (SubscriptionStatus.PAST_DUE, False),
        (SubscriptionStatus.CANCELED, False),
    ],
)
def test_only_active_is_entitled(persistence, gate, user, status, allowed):
    persistence.set_subscription_status(user.id, status)

    decision = gate.check(user.id)

    assert decision.allowed is allowed
    if not allowed:
        assert status.value in decision.reason


def test_unknown_user_is_denied(gate):
    decision = gate.check(12345)

    assert decision.allowed is False
    assert decision.reason == "user not found"


def test_gate_reads_fresh_status(persistence, gate, user):
    persistence.set_subscription_status(user.id, SubscriptionStatus.ACTIVE)
    gate.require(user.id)

    persistence.set_subscription_status(user.id, SubscriptionStatus.CANCELED)

    with pytest.raises(EntitlementDenied) as excinfo:
        gate.require(user.id)
    assert excinfo.value.to_dict()["code"] == "subscription_required"


def test_inactive_user_cannot_post(posts, persistence, user):
    with pytest.raises(EntitlementDenied):
        posts.create_post(user.id, "Hello", "World")

    post = persistence.create_post(user.id, "Seed", "Seed body")
    with pytest.raises(EntitlementDenied):
        posts.create_reply(user.id, post.id, "Reply")


def test_active_user_posts_and_replies(posts, persistence, user):
    persistence.set_subscription_status(user.id, SubscriptionStatus.ACTIVE)

    post = posts.create_post(user.id, "  Hello  ", "World")
    reply = posts.create_reply(user.id, post.id, "Nice", is_anonymous=True)
    named = posts.create_reply(user.id, post.id, "Signed")

    assert post.title == "Hello"
    assert reply.user_id is None
    assert named.user_id == user.id


def test_reply_to_missing_post(posts, persistence, user):
    persistence.set_subscription_status(user.id, SubscriptionStatus.ACTIVE)

    with pytest.raises(NotFoundError):
        posts.create_reply(user.id, 999, "Hello?")


def test_blank_content_is_rejected_before_gate(posts, user):
    with pytest.raises(ValueError):
        posts.create_post(user.id, " ", "Body")
