"""Monitored bulk synchronization of order statuses with upstream providers."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from ..infra.monitoring import ThreadingMonitor
from ..orchestrator.guard import monitored_operation
from ..schema import OrderSyncOutcome, OrderSyncResult, ProviderConfig, SmmOrder
from ..transports.provider import ProviderClient, map_provider_status

logger = logging.getLogger(__name__)

FINAL_STATUSES = frozenset({"completed", "cancelled", "refunded"})

ClientFactory = Callable[[ProviderConfig], ProviderClient]


def _to_int(value: Any) -> Optional[int]:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


class OrderSyncService:
    """Refreshes open orders from their providers under one monitored operation."""

    def __init__(
        self,
        monitor: ThreadingMonitor,
        *,
        client_factory: Optional[ClientFactory] = None,
        batch_size: int = 10,
        provider_timeout: float = 5.0,
    ) -> None:
        self._monitor = monitor
        self._client_factory = client_factory or (
            lambda provider: ProviderClient(provider.api_endpoint, provider.api_key, timeout=provider_timeout)
        )
        self.batch_size = max(batch_size, 1)

    @staticmethod
    def needs_sync(order: SmmOrder) -> bool:
        if order.status in FINAL_STATUSES:
            return False
        return bool(order.provider_order_id and order.provider_order_id.strip())

    async def sync_orders(
        self,
        orders: Sequence[SmmOrder],
        providers: Mapping[str, ProviderConfig],
        *,
        user_id: str,
    ) -> OrderSyncResult:
        """
        Sync every open order, ``batch_size`` at a time.

        Raises AdmissionRejected when the monitor is saturated. Per-order
        provider failures are counted in ``error_count`` and do not fail the
        operation.
        """
        pending = [order for order in orders if self.needs_sync(order)]
        if not pending:
            return OrderSyncResult()

        operation_id = f"sync_orders_{int(time.time() * 1000)}_{user_id}"
        result = OrderSyncResult(operation_id=operation_id, orders=list(pending))
        clients: Dict[str, ProviderClient] = {}

        try:
            async with monitored_operation(self._monitor, operation_id, "order_sync", len(pending)) as handle:
                logger.info("Starting order sync for %d orders (op=%s)", len(pending), operation_id)
                for start in range(0, len(pending), self.batch_size):
                    batch = pending[start : start + self.batch_size]
                    outcomes = await asyncio.gather(
                        *[self._sync_one(order, providers, clients) for order in batch],
                        return_exceptions=True,
                    )
                    for order, outcome in zip(batch, outcomes):
                        if isinstance(outcome, BaseException):
                            logger.error("Unexpected sync failure for order %s: %s", order.id, outcome)
                            result.error_count += 1
                            continue
                        if not outcome.success:
                            result.error_count += 1
                            continue
                        result.synced_count += 1
                        if outcome.updated:
                            result.updated_count += 1
                            logger.info(
                                "Updated order %s: %s -> %s",
                                outcome.order_id,
                                outcome.old_status,
                                outcome.new_status,
                            )
                handle.items_processed = result.updated_count
                logger.info(
                    "Order sync finished: %d checked, %d updated, %d errors",
                    result.synced_count,
                    result.updated_count,
                    result.error_count,
                )
        finally:
            for client in clients.values():
                await client.aclose()
        return result

    async def _sync_one(
        self,
        order: SmmOrder,
        providers: Mapping[str, ProviderConfig],
        clients: Dict[str, ProviderClient],
    ) -> OrderSyncOutcome:
        provider = providers.get(order.provider_id)
        if provider is None:
            logger.warning("Provider %s not found for order %s", order.provider_id, order.id)
            return OrderSyncOutcome(order_id=order.id, success=False, error="Provider not found")

        try:
            client = clients.get(provider.provider_id)
            if client is None:
                client = clients[provider.provider_id] = self._client_factory(provider)
            payload = await client.get_order_status(order.provider_order_id or "")
        except Exception as exc:
            logger.warning("Status check failed for order %s: %s", order.id, exc)
            return OrderSyncOutcome(order_id=order.id, success=False, error=str(exc))

        new_status = map_provider_status(str(payload["status"]))
        if new_status == order.status:
            return OrderSyncOutcome(order_id=order.id, success=True)

        old_status = order.status
        order.status = new_status
        start_count = _to_int(payload.get("start_count"))
        if start_count is not None:
            order.start_count = start_count
        remains = _to_int(payload.get("remains"))
        if remains is not None:
            order.remains = remains
        return OrderSyncOutcome(
            order_id=order.id,
            success=True,
            updated=True,
            old_status=old_status,
            new_status=new_status,
        )


def parse_sync_request(body: Mapping[str, Any]) -> Tuple[List[SmmOrder], Dict[str, ProviderConfig]]:
    """Build orders and providers from a JSON request body."""
    raw_orders = body.get("orders")
    raw_providers = body.get("providers") or {}
    if not isinstance(raw_orders, list):
        raise ValueError("'orders' must be a list")
    if not isinstance(raw_providers, dict):
        raise ValueError("'providers' must be an object keyed by provider id")

    providers: Dict[str, ProviderConfig] = {}
    for provider_id, entry in raw_providers.items():
        if not isinstance(entry, dict) or not entry.get("apiEndpoint"):
            raise ValueError(f"Provider {provider_id} requires 'apiEndpoint'")
        providers[str(provider_id)] = ProviderConfig(
            provider_id=str(provider_id),
            api_endpoint=str(entry["apiEndpoint"]),
            api_key=str(entry.get("apiKey", "")),
        )

    orders: List[SmmOrder] = []
    for entry in raw_orders:
        if not isinstance(entry, dict) or "id" not in entry or "providerId" not in entry:
            raise ValueError("Each order requires 'id' and 'providerId'")
        provider_order_id = entry.get("providerOrderId")
        orders.append(
            SmmOrder(
                id=str(entry["id"]),
                provider_id=str(entry["providerId"]),
                status=str(entry.get("status", "pending")),
                provider_order_id=str(provider_order_id) if provider_order_id is not None else None,
                start_count=_to_int(entry.get("startCount")),
                remains=_to_int(entry.get("remains")),
            )
        )
    return orders, providers
