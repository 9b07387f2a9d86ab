"""
HTTP client for upstream SMM provider APIs (``action=status`` et al.).
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)

_STATUS_MAP = {
    "pending": "pending",
    "in progress": "processing",
    "processing": "processing",
    "partial": "partial",
    "completed": "completed",
    "canceled": "cancelled",
    "cancelled": "cancelled",
    "refunded": "refunded",
}


class ProviderError(RuntimeError):
    """Raised when a provider answers with an error or an unusable payload."""


def map_provider_status(provider_status: str) -> str:
    """Translate a provider order status into the panel's vocabulary."""
    normalized = provider_status.strip().lower()
    return _STATUS_MAP.get(normalized, normalized)


class ProviderClient:
    """
    Talks to one provider's API endpoint with its API key.

    Status lookups POST form data first and retry with GET query parameters
    when the endpoint answers 404 or refuses the connection. One pooled
    ``httpx.AsyncClient`` is opened lazily and kept until ``aclose()``.
    """

    def __init__(
        self,
        api_endpoint: str,
        api_key: str,
        *,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not api_endpoint:
            raise ValueError("ProviderClient requires an api_endpoint.")
        self.api_endpoint = api_endpoint
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "ProviderClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._http_client is not None:
            client, self._http_client = self._http_client, None
            await client.aclose()

    @property
    def closed(self) -> bool:
        return self._http_client is None

    def _client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)
        return self._http_client

    async def get_order_status(self, order_id: str) -> Dict[str, Any]:
        params = {"key": self._api_key, "action": "status", "order": order_id}
        return await self._status_with(self._client(), order_id, params)

    async def _status_with(
        self,
        client: httpx.AsyncClient,
        order_id: str,
        params: Dict[str, str],
    ) -> Dict[str, Any]:
        logger.debug("Checking provider order status order=%s endpoint=%s", order_id, self.api_endpoint)
        try:
            response = await client.post(self.api_endpoint, data=params)
        except httpx.ConnectError as exc:
            logger.info("Provider POST refused for order %s (%s); retrying with GET", order_id, exc)
        except httpx.HTTPError as exc:
            raise ProviderError(f"Failed to check order status: {exc}") from exc
        else:
            if response.status_code != 404:
                return self._parse_status(order_id, response)
            logger.info("Provider POST returned 404 for order %s; retrying with GET", order_id)

        try:
            response = await client.get(self.api_endpoint, params=params)
        except httpx.HTTPError as exc:
            raise ProviderError(f"Failed to check order status: {exc}") from exc
        return self._parse_status(order_id, response)

    @staticmethod
    def _parse_status(order_id: str, response: httpx.Response) -> Dict[str, Any]:
        if response.status_code >= 400:
            raise ProviderError(f"HTTP {response.status_code}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderError(f"Invalid JSON from provider for order {order_id}") from exc
        if not isinstance(payload, dict):
            raise ProviderError("Invalid response data")
        if payload.get("error"):
            raise ProviderError(str(payload["error"]))
        if not payload.get("status"):
            raise ProviderError("Invalid response data")
        return payload
