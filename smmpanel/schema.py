"""
Shared data structures for the operation monitor and its collaborators.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

HEALTHY = "healthy"
WARNING = "warning"
CRITICAL = "critical"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class OperationRecord:
    """One in-flight operation tracked by the ledger. Times are epoch milliseconds."""

    type: str
    start_time: float
    count: int = 1


@dataclass
class MemoryUsage:
    used: int = 0
    total: int = 0

    @property
    def ratio(self) -> float:
        if self.total <= 0:
            return 0.0
        return self.used / self.total

    def to_dict(self) -> Dict[str, Any]:
        return {"used": self.used, "total": self.total}


@dataclass
class PerformanceMetrics:
    """
    Process-wide counters aggregated by the monitor.

    Attributes:
        total_operations: Admitted operations (rejections are not counted).
        successful_operations: Operations that completed.
        failed_operations: Operations failed by the caller or by the janitor.
        average_response_time: Running mean duration in milliseconds over
            every terminal transition.
        peak_concurrency: High-water mark of ``current_concurrency``.
        current_concurrency: Operations currently in the ledger.
        memory_usage: Last memory sample taken by a health query.
        last_error: Most recent failure description, if any.
    """

    total_operations: int = 0
    successful_operations: int = 0
    failed_operations: int = 0
    average_response_time: float = 0.0
    peak_concurrency: int = 0
    current_concurrency: int = 0
    memory_usage: MemoryUsage = field(default_factory=MemoryUsage)
    last_error: Optional[str] = None
    last_updated: datetime = field(default_factory=_utcnow)

    @property
    def error_rate(self) -> float:
        return self.failed_operations / max(self.total_operations, 1)

    def copy(self) -> "PerformanceMetrics":
        return PerformanceMetrics(
            total_operations=self.total_operations,
            successful_operations=self.successful_operations,
            failed_operations=self.failed_operations,
            average_response_time=self.average_response_time,
            peak_concurrency=self.peak_concurrency,
            current_concurrency=self.current_concurrency,
            memory_usage=MemoryUsage(self.memory_usage.used, self.memory_usage.total),
            last_error=self.last_error,
            last_updated=self.last_updated,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "totalOperations": self.total_operations,
            "successfulOperations": self.successful_operations,
            "failedOperations": self.failed_operations,
            "averageResponseTime": self.average_response_time,
            "peakConcurrency": self.peak_concurrency,
            "currentConcurrency": self.current_concurrency,
            "memoryUsage": self.memory_usage.to_dict(),
            "lastUpdated": self.last_updated.isoformat(),
        }
        if self.last_error:
            payload["lastError"] = self.last_error
        return payload


@dataclass
class ActiveOperation:
    id: str
    type: str
    duration: float
    count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "type": self.type, "duration": self.duration, "count": self.count}


@dataclass
class SystemHealth:
    """Snapshot returned by a health query."""

    status: str
    metrics: PerformanceMetrics
    active_operations: List[ActiveOperation] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "metrics": self.metrics.to_dict(),
            "activeOperations": [op.to_dict() for op in self.active_operations],
            "recommendations": list(self.recommendations),
        }


@dataclass
class OperationEvent:
    """
    Notification published on every terminal transition.

    ``kind`` is ``operation_complete`` or ``operation_failed``; exactly one of
    ``items_processed`` and ``error`` is meaningful for a given kind.
    """

    kind: str
    operation_id: str
    type: str
    duration: float
    items_processed: Optional[int] = None
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=_utcnow)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "kind": self.kind,
            "operationId": self.operation_id,
            "type": self.type,
            "duration": self.duration,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.items_processed is not None:
            payload["itemsProcessed"] = self.items_processed
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass
class ProviderConfig:
    """Credentials for one upstream SMM provider."""

    provider_id: str
    api_endpoint: str
    api_key: str


@dataclass
class SmmOrder:
    """
    Panel-side view of an order placed with an upstream provider.
    """

    id: str
    provider_id: str
    status: str = "pending"
    provider_order_id: Optional[str] = None
    start_count: Optional[int] = None
    remains: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "providerId": self.provider_id,
            "status": self.status,
            "providerOrderId": self.provider_order_id,
            "startCount": self.start_count,
            "remains": self.remains,
        }


@dataclass
class OrderSyncOutcome:
    order_id: str
    success: bool
    updated: bool = False
    old_status: Optional[str] = None
    new_status: Optional[str] = None
    error: Optional[str] = None


@dataclass
class OrderSyncResult:
    operation_id: Optional[str] = None
    synced_count: int = 0
    updated_count: int = 0
    error_count: int = 0
    orders: List[SmmOrder] = field(default_factory=list)

    @property
    def message(self) -> str:
        if self.operation_id is None:
            return "No orders to synchronize"
        text = f"Synchronized {self.synced_count} orders, {self.updated_count} updated"
        if self.error_count > 0:
            text += f", {self.error_count} errors"
        return text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "message": self.message,
            "syncedCount": self.synced_count,
            "updatedCount": self.updated_count,
            "errorCount": self.error_count,
            "orders": [order.to_dict() for order in self.orders],
        }
