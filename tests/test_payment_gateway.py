import json

import httpx
import pytest

from tradie_market.core.config import PaymentSettings
from tradie_market.infrastructure.payments import HttpPaymentGateway
from tradie_market.modules.topups.exceptions import PaymentGatewayError
from tradie_market.modules.topups.models import CREDIT_PACKAGES

SETTINGS = PaymentSettings(gateway_url="https://payments.test/charges", api_key="sk_test")


def _gateway(handler) -> HttpPaymentGateway:
    return HttpPaymentGateway(SETTINGS, transport=httpx.MockTransport(handler))


async def _charge(gateway: HttpPaymentGateway, payment_method_id: str | None = "pm_card_visa"):
    try:
        return await gateway.charge_for_credits(
            user_id="tradie-1",
            package=CREDIT_PACKAGES["standard"],
            credits=20,
            payment_method_id=payment_method_id,
        )
    finally:
        await gateway.aclose()


@pytest.mark.asyncio
async def test_successful_charge_returns_payment_details():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"payment_id": "pay_123", "status": "succeeded", "amount_cents": 1999})

    result = await _charge(_gateway(handler))

    assert result.payment_id == "pay_123"
    assert result.amount_cents == 1999
    assert result.currency == "AUD"
    assert seen["auth"] == "Bearer sk_test"
    assert seen["body"]["credits"] == 20
    assert seen["body"]["package_type"] == "standard"
    assert seen["body"]["payment_method_id"] == "pm_card_visa"


@pytest.mark.asyncio
async def test_declined_charge_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(402, json={"error": "card_declined"})

    with pytest.raises(PaymentGatewayError) as exc_info:
        await _charge(_gateway(handler))

    assert "402" in exc_info.value.message


@pytest.mark.asyncio
async def test_pending_payment_is_not_accepted():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"id": "pay_9", "status": "requires_action"})

    with pytest.raises(PaymentGatewayError):
        await _charge(_gateway(handler))


@pytest.mark.asyncio
async def test_missing_payment_method_fails_without_a_request():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={"payment_id": "pay_1"})

    with pytest.raises(PaymentGatewayError):
        await _charge(_gateway(handler), payment_method_id=None)

    assert calls == []


@pytest.mark.asyncio
async def test_transport_errors_become_gateway_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(PaymentGatewayError):
        await _charge(_gateway(handler))


@pytest.mark.asyncio
async def test_malformed_amount_becomes_gateway_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"payment_id": "p1", "amount_cents": "n/a"})

    with pytest.raises(PaymentGatewayError) as exc_info:
        await _charge(_gateway(handler))

    assert "invalid amount" in exc_info.value.message
