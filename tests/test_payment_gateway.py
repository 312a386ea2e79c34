"""Tests for the Razorpay client."""
import base64

import httpx
import pytest

from turfbook.core.errors import PaymentGatewayError
from turfbook.services import payment_gateway
from turfbook.services.payment_gateway import RazorpayClient, is_successful


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    async def instant(_seconds):
        return None

    monkeypatch.setattr(payment_gateway.asyncio, "sleep", instant)


def make_client(handler, max_retries=3):
    return RazorpayClient(
        key_id="rzp_test_key",
        key_secret="secret",
        base_url="https://api.razorpay.test/v1/",
        max_retries=max_retries,
        transport=httpx.MockTransport(handler),
    )


async def test_fetch_payment_uses_basic_auth():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"id": "pay_1", "status": "captured"})

    payment = await make_client(handler).fetch_payment("pay_1")

    assert payment["status"] == "captured"
    assert str(seen[0].url) == "https://api.razorpay.test/v1/payments/pay_1"
    expected = base64.b64encode(b"rzp_test_key:secret").decode()
    assert seen[0].headers["Authorization"] == f"Basic {expected}"


async def test_fetch_order_payments_returns_items():
    def handler(request):
        assert request.url.path == "/v1/orders/order_1/payments"
        return httpx.Response(200, json={"count": 1, "items": [{"id": "pay_1", "status": "captured"}]})

    payments = await make_client(handler).fetch_order_payments("order_1")

    assert payments == [{"id": "pay_1", "status": "captured"}]


async def test_client_errors_are_not_retried():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(404, json={"error": {"description": "not found"}})

    with pytest.raises(PaymentGatewayError):
        await make_client(handler).fetch_order("order_missing")

    assert len(calls) == 1


async def test_server_errors_are_retried():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) < 3:
            return httpx.Response(502)
        return httpx.Response(200, json={"id": "order_1", "status": "paid"})

    order = await make_client(handler).fetch_order("order_1")

    assert order["status"] == "paid"
    assert len(calls) == 3


async def test_gives_up_after_max_retries():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(PaymentGatewayError):
        await make_client(handler, max_retries=2).fetch_payment("pay_1")


async def test_missing_credentials():
    client = make_client(lambda request: httpx.Response(200, json={}))
    client.key_secret = None

    with pytest.raises(PaymentGatewayError) as excinfo:
        await client.fetch_payment("pay_1")

    assert excinfo.value.details == "Missing Razorpay credentials"


def test_successful_statuses():
    assert is_successful({"status": "captured"})
    assert is_successful({"status": "authorized"})
    assert not is_successful({"status": "failed"})
    assert not is_successful({})
