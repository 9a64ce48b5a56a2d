from unittest.mock import MagicMock

import pytest
import stripe

from postboard.domain.errors import ConfigurationError, TransientProviderError
from postboard.infrastructure.stripe_gateway import StripeGateway

from .conftest import subscription_object


@pytest.fixture
def gateway():
    instance = StripeGateway("sk_test_dummy", timeout_seconds=5, max_network_retries=0)
    instance._client = MagicMock()
    return instance


def test_missing_secret_key_fails_on_use():
    gateway = StripeGateway(None)

    with pytest.raises(ConfigurationError):
        gateway.create_customer("a@example.com", "a", 1)


def test_create_customer_tags_user(gateway):
    gateway._client.customers.create.return_value = MagicMock(id="cus_123")

    assert gateway.create_customer("a@example.com", "alice", 7) == "cus_123"
    params = gateway._client.customers.create.call_args.kwargs["params"]
    assert params["metadata"] == {"user_id": "7"}


def test_checkout_session_carries_user_reference(gateway):
    gateway._client.checkout.sessions.create.return_value = MagicMock(url="https://checkout.stripe.test/cs_1")

    url = gateway.create_checkout_session("cus_1", "price_1", "https://ok", "https://cancel", 7)

    assert url == "https://checkout.stripe.test/cs_1"
    params = gateway._client.checkout.sessions.create.call_args.kwargs["params"]
    assert params["customer"] == "cus_1"
    assert params["mode"] == "subscription"
    assert params["line_items"] == [{"price": "price_1", "quantity": 1}]
    assert params["client_reference_id"] == "7"
    assert params["metadata"] == {"user_id": "7"}


def test_stripe_errors_become_transient(gateway):
    gateway._client.checkout.sessions.create.side_effect = stripe.APIConnectionError("timed out")

    with pytest.raises(TransientProviderError):
        gateway.create_checkout_session("cus_1", "price_1", "https://ok", "https://cancel", 7)


def test_list_subscriptions_decodes_every_page(gateway):
    page = MagicMock()
    page.auto_paging_iter.return_value = iter(
        [subscription_object(sub_id="sub_1"), subscription_object(sub_id="sub_2", status="canceled")]
    )
    gateway._client.subscriptions.list.return_value = page

    result = gateway.list_subscriptions("cus_1")

    assert [item.id for item in result] == ["sub_1", "sub_2"]
    params = gateway._client.subscriptions.list.call_args.kwargs["params"]
    assert params == {"customer": "cus_1", "status": "all", "limit": 100}


def test_list_subscriptions_rejects_unexpected_shape(gateway):
    page = MagicMock()
    page.auto_paging_iter.return_value = iter([{"id": "sub_1"}])
    gateway._client.subscriptions.list.return_value = page

    with pytest.raises(TransientProviderError):
        gateway.list_subscriptions("cus_1")
