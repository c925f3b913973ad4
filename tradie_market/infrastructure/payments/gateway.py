"""Outbound payment gateway used to charge for auto-topup credits."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from tradie_market.core.config import PaymentSettings
from tradie_market.modules.topups.exceptions import PaymentGatewayError
from tradie_market.modules.topups.models import CreditPackage

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PaymentResult:
    payment_id: str
    amount_cents: int
    currency: str


class PaymentGateway(Protocol):
    async def charge_for_credits(
        self,
        *,
        user_id: str,
        package: CreditPackage,
        credits: int,
        payment_method_id: str | None,
    ) -> PaymentResult:
        """Charge the user's saved payment method; raise ``PaymentGatewayError`` on decline."""
        ...


class HttpPaymentGateway:
    def __init__(self, settings: PaymentSettings, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._endpoint = settings.gateway_url.strip()
        self._api_key = (settings.api_key or "").strip()
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(settings.timeout_seconds), transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def charge_for_credits(
        self,
        *,
        user_id: str,
        package: CreditPackage,
        credits: int,
        payment_method_id: str | None,
    ) -> PaymentResult:
        if not self._endpoint:
            raise PaymentGatewayError("Payment gateway URL is not configured")
        if not payment_method_id:
            raise PaymentGatewayError("No saved payment method for auto-topup")

        payload: dict[str, Any] = {
            "user_id": user_id,
            "package_type": package.package_type,
            "credits": credits,
            "amount_cents": package.price_cents,
            "currency": package.currency,
            "payment_method_id": payment_method_id,
            "purpose": "auto_topup",
        }
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        try:
            resp = await self._client.post(self._endpoint, headers=headers, json=payload)
        except httpx.HTTPError as exc:
            raise PaymentGatewayError(f"Payment gateway request failed: {exc}") from exc

        if resp.status_code >= 400:
            raise PaymentGatewayError(f"Payment gateway error {resp.status_code}: {resp.text[:500]}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise PaymentGatewayError(f"Payment gateway returned invalid JSON: {exc}") from exc

        if not isinstance(data, dict):
            raise PaymentGatewayError("Payment gateway returned an unexpected response")
        payment_id = data.get("payment_id") or data.get("id")
        if not payment_id:
            raise PaymentGatewayError("Payment gateway response did not include a payment id")
        if data.get("status") not in (None, "succeeded", "completed"):
            raise PaymentGatewayError(f"Payment {payment_id} was {data.get('status')}")

        try:
            amount_cents = int(data.get("amount_cents", package.price_cents))
        except (TypeError, ValueError) as exc:
            raise PaymentGatewayError(f"Payment {payment_id} returned an invalid amount: {exc}") from exc

        logger.debug("Charged %s for %s credits (payment %s)", user_id, credits, payment_id)
        return PaymentResult(
            payment_id=str(payment_id),
            amount_cents=amount_cents,
            currency=str(data.get("currency", package.currency)),
        )
