"""
Stall Service — Mobile payment gateway client

A payment callback only says "look at payment X". What X's status actually
is comes from asking the gateway, never from the callback body.
"""
import logging
from typing import Protocol

import httpx

from stall.core.config import Settings
from stall.core.errors import PaymentGatewayError

logger = logging.getLogger(__name__)


class PaymentGateway(Protocol):
    async def get_payment_status(self, merchant_payment_id: str) -> str:
        """Return the gateway's status for the payment, e.g. ``COMPLETED``."""
        ...


class HttpPaymentGateway:
    """Queries the gateway's payment-details endpoint over HTTP."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        merchant_id: str,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.merchant_id = merchant_id
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_settings(cls, cfg: Settings) -> "HttpPaymentGateway":
        return cls(
            base_url=cfg.PAYMENT_GATEWAY_URL,
            api_key=cfg.PAYMENT_GATEWAY_API_KEY,
            merchant_id=cfg.PAYMENT_GATEWAY_MERCHANT_ID,
            timeout=cfg.HTTP_TIMEOUT_SECONDS,
        )

    async def get_payment_status(self, merchant_payment_id: str) -> str:
        url = f"{self.base_url}/v2/codes/payments/{merchant_payment_id}"
        headers = {"X-API-KEY": self.api_key, "X-ASSUME-MERCHANT": self.merchant_id}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(url, headers=headers)
        except httpx.TimeoutException:
            raise PaymentGatewayError("Payment gateway did not respond in time.")
        except httpx.RequestError as exc:
            raise PaymentGatewayError(f"Payment gateway unreachable: {exc}")

        if not response.is_success:
            logger.warning(
                "Payment lookup for %s returned HTTP %d", merchant_payment_id, response.status_code
            )
            raise PaymentGatewayError(f"Payment lookup failed with HTTP {response.status_code}.")

        try:
            return str(response.json()["data"]["status"])
        except (ValueError, KeyError, TypeError):
            raise PaymentGatewayError("Payment gateway returned an unexpected body.")
