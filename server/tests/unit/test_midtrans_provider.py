"""Unit tests for the Midtrans HTTP client, with the transport stubbed out."""

import base64
import json

import httpx
import pytest

from booking_core.core.exceptions import UpstreamUnavailableError
from booking_core.services.payment_provider import CustomerDetails, ItemDetails, MidtransProvider

SERVER_KEY = "SB-Mid-server-test"


def _provider(handler) -> MidtransProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return MidtransProvider(
        server_key=SERVER_KEY,
        api_base_url="https://api.sandbox.midtrans.test",
        snap_base_url="https://app.sandbox.midtrans.test/",
        timeout=2.0,
        client=client,
    )


async def _create(provider):
    return await provider.create_transaction(
        order_id="MNG-MGABC123-1",
        amount=700_000,
        customer=CustomerDetails(first_name="Siti", email="siti@example.com"),
        item=ItemDetails(id="dep-1", name="Bromo Sunrise Open Trip " * 4, price=700_000),
        callback_url="https://meetgo.test/dashboard/bookings/1",
    )


@pytest.mark.asyncio
async def test_create_transaction_posts_snap_payload():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"token": "snap-token", "redirect_url": "https://pay/snap-token"})

    result = await _create(_provider(handler))

    assert result.token == "snap-token"
    assert result.redirect_url == "https://pay/snap-token"
    assert seen["url"] == "https://app.sandbox.midtrans.test/snap/v1/transactions"
    assert seen["auth"] == "Basic " + base64.b64encode(f"{SERVER_KEY}:".encode()).decode()
    assert seen["body"]["transaction_details"] == {"order_id": "MNG-MGABC123-1", "gross_amount": 700_000}
    assert seen["body"]["customer_details"] == {"first_name": "Siti", "email": "siti@example.com"}
    assert len(seen["body"]["item_details"][0]["name"]) <= 50
    assert seen["body"]["callbacks"] == {"finish": "https://meetgo.test/dashboard/bookings/1"}


@pytest.mark.asyncio
async def test_create_transaction_error_status():
    provider = _provider(lambda request: httpx.Response(500, json={"error_messages": ["boom"]}))

    with pytest.raises(UpstreamUnavailableError):
        await _create(provider)


@pytest.mark.asyncio
async def test_create_transaction_missing_token():
    provider = _provider(lambda request: httpx.Response(201, json={"redirect_url": "https://pay/x"}))

    with pytest.raises(UpstreamUnavailableError):
        await _create(provider)


@pytest.mark.asyncio
async def test_timeout_is_upstream_unavailable():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(UpstreamUnavailableError) as exc_info:
        await _create(_provider(handler))

    assert exc_info.value.problem_details["retryable"] is True


@pytest.mark.asyncio
async def test_malformed_response_is_upstream_unavailable():
    provider = _provider(lambda request: httpx.Response(200, content=b"<html>gateway</html>"))

    with pytest.raises(UpstreamUnavailableError):
        await provider.get_status("MNG-MGABC123-1")


@pytest.mark.asyncio
async def test_get_status_settlement():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        return httpx.Response(200, json={
            "status_code": "200",
            "order_id": "MNG-MGABC123-1",
            "transaction_status": "settlement",
            "fraud_status": "accept",
            "gross_amount": "700000.00",
            "payment_type": "bank_transfer",
        })

    status = await _provider(handler).get_status("MNG-MGABC123-1")

    assert seen["url"] == "https://api.sandbox.midtrans.test/v2/MNG-MGABC123-1/status"
    assert status.transaction_status == "settlement"
    assert status.fraud_status == "accept"
    assert status.payment_type == "bank_transfer"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(404, json={"status_code": "404"}),
        httpx.Response(200, json={"status_code": "404", "status_message": "Transaction doesn't exist."}),
    ],
)
async def test_get_status_unknown_order(response):
    assert await _provider(lambda request: response).get_status("MNG-MGABC123-9") is None
