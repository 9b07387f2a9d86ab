"""Service layer exports."""

from __future__ import annotations

from typing import Any

__all__ = [
    "OrderSyncService",
    "parse_sync_request",
]


def __getattr__(name: str) -> Any:  # pragma: no cover
    if name == "OrderSyncService":
        from .order_sync import OrderSyncService

        return OrderSyncService
    if name == "parse_sync_request":
        from .order_sync import parse_sync_request

        return parse_sync_request
    raise AttributeError(name)
