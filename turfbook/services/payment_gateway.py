"""Razorpay API client.

Only the read-side lookups needed to reconcile pending payments live here:
fetching a payment, an order, and an order's payments. Order creation and
signature verification belong to the checkout flow.
"""
import asyncio
import logging
from typing import List, Dict, Any, Optional
import httpx
from turfbook.core.config import settings
from turfbook.core.errors import PaymentGatewayError

logger = logging.getLogger(__name__)

SUCCESSFUL_PAYMENT_STATUSES = ("captured", "authorized")


class RazorpayClient:
    """Client for Razorpay's REST API."""

    def __init__(
        self,
        key_id: Optional[str] = None,
        key_secret: Optional[str] = None,
        base_url: Optional[str] = None,
        max_retries: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the Razorpay client."""
        default_id, default_secret = settings.razorpay_credentials
        self.key_id = key_id or default_id
        self.key_secret = key_secret or default_secret
        self.base_url = (base_url or settings.RAZORPAY_API_BASE_URL).rstrip("/")
        self.max_retries = max_retries or settings.MAX_RETRIES
        self._transport = transport

    async def _make_request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Make an authenticated request with retry logic.

        Client errors (4xx) are not retried.

        Args:
            method: HTTP method
            path: Path below the API base URL
            params: Query parameters

        Returns:
            Response JSON data

        Raises:
            PaymentGatewayError: If credentials are missing or the request fails after retries
        """
        if not self.key_id or not self.key_secret:
            raise PaymentGatewayError("Missing Razorpay credentials")

        url = f"{self.base_url}{path}"

        async with httpx.AsyncClient(
            auth=(self.key_id, self.key_secret),
            transport=self._transport,
            timeout=30.0,
        ) as client:
            for attempt in range(self.max_retries):
                try:
                    logger.info(f"Making {method} request to {url} (attempt {attempt + 1}/{self.max_retries})")

                    response = await client.request(method=method, url=url, params=params)
                    response.raise_for_status()

                    return response.json()

                except httpx.HTTPStatusError as e:
                    if e.response.status_code < 500:
                        raise PaymentGatewayError(
                            f"Razorpay returned {e.response.status_code} for {path}"
                        ) from e
                    logger.warning(f"Request failed (attempt {attempt + 1}/{self.max_retries}): {e}")
                    if attempt == self.max_retries - 1:
                        raise PaymentGatewayError(f"Razorpay request failed: {e}") from e

                except httpx.HTTPError as e:
                    logger.warning(f"Request failed (attempt {attempt + 1}/{self.max_retries}): {e}")
                    if attempt == self.max_retries - 1:
                        raise PaymentGatewayError(f"Razorpay request failed: {e}") from e

                # Exponential backoff
                await asyncio.sleep(2 ** attempt)

            raise PaymentGatewayError("Max retries exceeded")

    async def fetch_payment(self, payment_id: str) -> Dict[str, Any]:
        """Get a payment, e.g. ``{"id": "pay_...", "status": "captured", ...}``."""
        logger.info(f"Fetching Razorpay payment: {payment_id}")
        return await self._make_request("GET", f"/payments/{payment_id}")

    async def fetch_order(self, order_id: str) -> Dict[str, Any]:
        """Get an order, e.g. ``{"id": "order_...", "status": "paid", ...}``."""
        logger.info(f"Fetching Razorpay order: {order_id}")
        return await self._make_request("GET", f"/orders/{order_id}")

    async def fetch_order_payments(self, order_id: str) -> List[Dict[str, Any]]:
        """List the payments attempted against an order."""
        logger.info(f"Fetching payments for Razorpay order: {order_id}")
        data = await self._make_request("GET", f"/orders/{order_id}/payments")
        return data.get("items", [])


def is_successful(payment: Dict[str, Any]) -> bool:
    return payment.get("status") in SUCCESSFUL_PAYMENT_STATUSES


# Singleton instance
razorpay_client = RazorpayClient()
