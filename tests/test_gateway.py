"""RazorpayGateway error mapping and timeouts (SDK replaced by a stub client)."""

import time
from types import SimpleNamespace

import pytest
import requests
from razorpay.errors import BadRequestError, ServerError

from app.core.exceptions import ProviderError, ProviderTimeoutError, ValidationError
from app.services.gateway import RazorpayGateway


def _client(**resources):
    return SimpleNamespace(**{name: SimpleNamespace(**methods) for name, methods in resources.items()})


async def test_create_order_passes_server_pricing():
    seen = {}

    def create(data):
        seen.update(data)
        return {"id": "order_abc", **data}

    gw = RazorpayGateway(_client(order={"create": create}), "rzp_test_key")
    out = await gw.create_order(250000, "INR", "order_u1_1700000000000")
    assert out["id"] == "order_abc"
    assert seen == {"amount": 250000, "currency": "INR", "receipt": "order_u1_1700000000000", "payment_capture": 1}


async def test_provider_error_passes_description_through():
    def cancel(subscription_id):
        raise BadRequestError("Subscription cannot be cancelled since no billing cycle is going on")

    gw = RazorpayGateway(_client(subscription={"cancel": cancel}), "rzp_test_key")
    with pytest.raises(ProviderError) as exc:
        await gw.cancel_subscription("sub_xyz")
    assert exc.value.message == "Subscription cannot be cancelled since no billing cycle is going on"
    assert exc.value.provider_status == 400
    assert exc.value.status_code == 502


async def test_server_error_maps_to_provider_error():
    def refund(payment_id, data):
        raise ServerError("The server encountered an error")

    gw = RazorpayGateway(_client(payment={"refund": refund}), "rzp_test_key")
    with pytest.raises(ProviderError) as exc:
        await gw.refund("pay_1")
    assert exc.value.provider_status == 500


async def test_slow_provider_times_out():
    def create(data):
        time.sleep(0.5)
        return {"id": "order_late"}

    gw = RazorpayGateway(_client(order={"create": create}), "rzp_test_key", timeout_seconds=0.05)
    with pytest.raises(ProviderTimeoutError) as exc:
        await gw.create_order(100, "INR", "r")
    assert exc.value.status_code == 504


async def test_requests_timeout_is_provider_timeout():
    def all_(data):
        raise requests.exceptions.ReadTimeout("read timed out")

    gw = RazorpayGateway(_client(subscription={"all": all_}), "rzp_test_key")
    with pytest.raises(ProviderTimeoutError):
        await gw.list_subscriptions(10, 0)


async def test_connection_error_is_provider_error():
    def all_(data):
        raise requests.exceptions.ConnectionError("refused")

    gw = RazorpayGateway(_client(subscription={"all": all_}), "rzp_test_key")
    with pytest.raises(ProviderError):
        await gw.list_subscriptions(10, 0)


async def test_unconfigured_gateway():
    gw = RazorpayGateway(_client(order={"create": lambda data: {}}), "")
    with pytest.raises(ValidationError):
        await gw.create_order(100, "INR", "r")
