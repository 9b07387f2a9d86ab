"""Helpers that wrap caller work in a monitored operation."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

from ..infra.monitoring import ThreadingMonitor

logger = logging.getLogger(__name__)


class AdmissionRejected(RuntimeError):
    """Raised when the monitor refuses to admit an operation."""

    def __init__(self, operation_id: str, current_concurrency: int) -> None:
        super().__init__(f"Operation {operation_id} rejected; system is busy")
        self.operation_id = operation_id
        self.current_concurrency = current_concurrency


@dataclass
class OperationHandle:
    """Mutable handle yielded to the guarded block."""

    operation_id: str
    items_processed: int = 0


@asynccontextmanager
async def monitored_operation(
    monitor: ThreadingMonitor,
    operation_id: str,
    operation_type: str,
    count: int = 1,
) -> AsyncIterator[OperationHandle]:
    """
    Admit ``operation_id`` and report its outcome when the block exits.

    The block completes the operation with ``handle.items_processed`` on a
    clean exit; any exception fails it with the exception text and is
    re-raised.
    """
    if not monitor.start_operation(operation_id, operation_type, count):
        raise AdmissionRejected(operation_id, monitor.metrics.current_concurrency)

    handle = OperationHandle(operation_id=operation_id)
    try:
        yield handle
    except BaseException as exc:
        monitor.fail_operation(operation_id, str(exc) or type(exc).__name__)
        raise
    monitor.complete_operation(operation_id, handle.items_processed)
