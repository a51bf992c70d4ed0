"""
Payment gateway client.

POSTs ``{user_id, amount_cents, currency}`` to the configured charge
endpoint and maps the reply, or any transport error, onto a
``ChargeResult``.  Never raises.
"""

from __future__ import annotations

import logging

import httpx

from rental.domain.ports import ChargeResult

logger = logging.getLogger(__name__)


class HttpPaymentGateway:
    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        api_key: str = "",
        currency: str = "HKD",
    ):
        self.client = client
        self.url = url
        self.api_key = api_key
        self.currency = currency

    async def charge(self, user_id: str, amount_cents: int) -> ChargeResult:
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        try:
            response = await self.client.post(
                self.url,
                json={
                    "user_id": user_id,
                    "amount_cents": amount_cents,
                    "currency": self.currency.lower(),
                },
                headers=headers,
            )
        except httpx.RequestError as exc:
            logger.warning("Network error charging %s: %s", user_id, exc)
            return ChargeResult(success=False, error="Payment service unreachable")

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code >= 400 or not data.get("success", False):
            error = data.get("error") or f"Payment declined ({response.status_code})"
            logger.info("Charge of %d cents for %s failed: %s", amount_cents, user_id, error)
            return ChargeResult(success=False, error=error)

        logger.info(
            "Charged %d cents to %s (%s)",
            amount_cents, user_id, data.get("transaction_id", "N/A"),
        )
        return ChargeResult(
            success=True,
            transaction_id=data.get("transaction_id"),
            card_last4=data.get("card_last4"),
        )
