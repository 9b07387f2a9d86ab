"""Operation admission and health monitoring for concurrent panel work."""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

import psutil

from ..schema import (
    CRITICAL,
    HEALTHY,
    WARNING,
    ActiveOperation,
    MemoryUsage,
    OperationEvent,
    OperationRecord,
    PerformanceMetrics,
    SystemHealth,
)
from .events import OPERATION_COMPLETE, OPERATION_FAILED, OperationListener

logger = logging.getLogger(__name__)

MemorySampler = Callable[[], Tuple[int, int]]
Clock = Callable[[], float]

CLEANUP_ERROR = "Operation timeout - auto cleanup"
CONCURRENCY_WARNING_RATIO = 0.8
ERROR_RATE_WARNING = 0.1


def sample_system_memory() -> Tuple[int, int]:
    """Return ``(used, total)`` bytes of system memory."""
    memory = psutil.virtual_memory()
    return memory.total - memory.available, memory.total


def _epoch_ms() -> float:
    return time.time() * 1000.0


class ThreadingMonitor:
    """
    Tracks in-flight operations, gates new ones and reports system health.

    Every public method returns synchronously and never raises for its own
    bookkeeping: unknown ids are ignored and listener failures are logged.
    Mutations are serialized with a re-entrant lock so the monitor can be
    shared between the event loop and worker threads.
    """

    def __init__(
        self,
        *,
        max_concurrency: int = 50,
        response_time_threshold: float = 10_000.0,
        memory_threshold: float = 0.85,
        memory_sampler: Optional[MemorySampler] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.max_concurrency = max_concurrency
        self.response_time_threshold = response_time_threshold
        self.memory_threshold = memory_threshold
        self._memory_sampler = memory_sampler or sample_system_memory
        self._clock = clock or _epoch_ms
        self._lock = threading.RLock()
        self._active: Dict[str, OperationRecord] = {}
        self._metrics = PerformanceMetrics()
        self._listeners: List[OperationListener] = []

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "ThreadingMonitor":
        return cls(
            max_concurrency=settings.max_concurrency,
            response_time_threshold=settings.response_time_threshold_ms,
            memory_threshold=settings.memory_threshold,
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, listener: OperationListener) -> Callable[[], None]:
        """Register ``listener`` for terminal events; returns an unsubscribe callable."""
        with self._lock:
            self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: OperationListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    # ------------------------------------------------------------------
    # Admission and terminal transitions
    # ------------------------------------------------------------------

    def start_operation(self, operation_id: str, operation_type: str, count: int = 1) -> bool:
        """Admit an operation; returns False without side effects when refused."""
        with self._lock:
            current = self._metrics.current_concurrency
            if current >= self.max_concurrency:
                logger.warning(
                    "Concurrency limit: rejecting operation %s (current=%d max=%d)",
                    operation_id,
                    current,
                    self.max_concurrency,
                )
                return False

            memory = self._sample_memory()
            if memory.ratio > self.memory_threshold:
                logger.warning(
                    "Memory pressure: rejecting operation %s (memory=%.1f%% threshold=%.1f%%)",
                    operation_id,
                    memory.ratio * 100,
                    self.memory_threshold * 100,
                )
                return False

            if operation_id in self._active:
                logger.warning("Duplicate operation: %s is already in flight", operation_id)
                return False

            self._active[operation_id] = OperationRecord(type=operation_type, start_time=self._clock(), count=count)
            self._metrics.current_concurrency += 1
            self._metrics.total_operations += 1
            if self._metrics.current_concurrency > self._metrics.peak_concurrency:
                self._metrics.peak_concurrency = self._metrics.current_concurrency

            logger.info(
                "Operation started id=%s type=%s current=%d/%d",
                operation_id,
                operation_type,
                self._metrics.current_concurrency,
                self.max_concurrency,
            )
            return True

    def complete_operation(self, operation_id: str, items_processed: int = 0) -> None:
        with self._lock:
            event = self._finish(operation_id, items_processed=items_processed)
        if event is not None:
            self._notify(event)

    def fail_operation(self, operation_id: str, error: str) -> None:
        with self._lock:
            event = self._finish(operation_id, error=error)
        if event is not None:
            self._notify(event)

    def _finish(
        self,
        operation_id: str,
        *,
        items_processed: Optional[int] = None,
        error: Optional[str] = None,
    ) -> Optional[OperationEvent]:
        operation = self._active.pop(operation_id, None)
        if operation is None:
            return None

        duration = self._clock() - operation.start_time
        metrics = self._metrics
        metrics.current_concurrency -= 1
        failed = error is not None
        if failed:
            metrics.failed_operations += 1
            metrics.last_error = error
        else:
            metrics.successful_operations += 1
        self._update_average_response_time(duration)

        if failed:
            logger.error(
                "Operation failed id=%s after %.0fms error=%s current=%d",
                operation_id,
                duration,
                error,
                metrics.current_concurrency,
            )
            return OperationEvent(
                kind=OPERATION_FAILED,
                operation_id=operation_id,
                type=operation.type,
                duration=duration,
                error=error,
            )

        logger.info(
            "Operation completed id=%s in %.0fms items=%d current=%d",
            operation_id,
            duration,
            items_processed,
            metrics.current_concurrency,
        )
        if duration > self.response_time_threshold:
            logger.warning(
                "Slow operation: %s took %.0fms (threshold=%.0fms)",
                operation_id,
                duration,
                self.response_time_threshold,
            )
        return OperationEvent(
            kind=OPERATION_COMPLETE,
            operation_id=operation_id,
            type=operation.type,
            duration=duration,
            items_processed=items_processed,
        )

    def _update_average_response_time(self, duration: float) -> None:
        metrics = self._metrics
        finished = metrics.successful_operations + metrics.failed_operations
        metrics.average_response_time = (metrics.average_response_time * (finished - 1) + duration) / finished

    # ------------------------------------------------------------------
    # Health and housekeeping
    # ------------------------------------------------------------------

    def get_system_health(self) -> SystemHealth:
        with self._lock:
            now = self._clock()
            active = [
                ActiveOperation(id=op_id, type=op.type, duration=now - op.start_time, count=op.count)
                for op_id, op in self._active.items()
            ]
            memory = self._sample_memory()
            metrics = self._metrics
            metrics.memory_usage = memory
            metrics.last_updated = datetime.now(timezone.utc)

            status = HEALTHY
            recommendations: List[str] = []

            if metrics.current_concurrency / max(self.max_concurrency, 1) > CONCURRENCY_WARNING_RATIO:
                status = WARNING
                recommendations.append("High concurrency detected. Consider reducing batch sizes.")

            if memory.ratio > self.memory_threshold:
                status = CRITICAL
                recommendations.append("High memory usage. Reduce concurrent operations immediately.")

            if metrics.error_rate > ERROR_RATE_WARNING:
                if status != CRITICAL:
                    status = WARNING
                recommendations.append("High error rate detected. Check external service connectivity.")

            stuck = [op for op in active if op.duration > self.response_time_threshold]
            if stuck:
                if status != CRITICAL:
                    status = WARNING
                recommendations.append(f"{len(stuck)} operations are running longer than expected.")

            return SystemHealth(
                status=status,
                metrics=metrics.copy(),
                active_operations=active,
                recommendations=recommendations,
            )

    def cleanup_stuck_operations(self) -> int:
        """Force-fail operations running longer than twice the response threshold."""
        events: List[OperationEvent] = []
        with self._lock:
            now = self._clock()
            limit = self.response_time_threshold * 2
            for op_id, operation in list(self._active.items()):
                duration = now - operation.start_time
                if duration <= limit:
                    continue
                logger.warning("Cleanup: removing stuck operation %s (%.0fms)", op_id, duration)
                event = self._finish(op_id, error=CLEANUP_ERROR)
                if event is not None:
                    events.append(event)
        for event in events:
            self._notify(event)
        return len(events)

    def reset_metrics(self) -> None:
        """Zero cumulative counters; in-flight operations keep their concurrency slot."""
        with self._lock:
            self._metrics = PerformanceMetrics(current_concurrency=self._metrics.current_concurrency)
        logger.info("Monitor metrics reset")

    def get_performance_summary(self) -> str:
        health = self.get_system_health()
        metrics = health.metrics
        memory_percent = metrics.memory_usage.ratio * 100
        error_percent = metrics.error_rate * 100

        lines = [
            "THREADING MONITOR SUMMARY",
            "-" * 40,
            f"Status: {health.status.upper()}",
            f"Current Operations: {metrics.current_concurrency}/{self.max_concurrency}",
            f"Peak Concurrency: {metrics.peak_concurrency}",
            f"Total Operations: {metrics.total_operations}",
            f"Success Rate: {100 - error_percent:.1f}%",
            f"Avg Response: {metrics.average_response_time:.0f}ms",
            f"Memory Usage: {memory_percent:.1f}%",
            "-" * 40,
        ]
        if health.recommendations:
            lines.append("RECOMMENDATIONS:")
            lines.extend(f"- {item}" for item in health.recommendations)
        else:
            lines.append("All systems optimal")
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def metrics(self) -> PerformanceMetrics:
        with self._lock:
            return self._metrics.copy()

    def active_operation_ids(self) -> List[str]:
        with self._lock:
            return list(self._active.keys())

    def is_active(self, operation_id: str) -> bool:
        with self._lock:
            return operation_id in self._active

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _sample_memory(self) -> MemoryUsage:
        try:
            used, total = self._memory_sampler()
        except Exception:
            logger.exception("Memory sampling failed; assuming no memory pressure")
            return MemoryUsage()
        return MemoryUsage(used=int(used), total=int(total))

    def _notify(self, event: OperationEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Monitor listener failed for %s event on %s", event.kind, event.operation_id)
