"""
Monitoring primitives shared by the panel's request handlers.
"""

from .events import OPERATION_COMPLETE, OPERATION_FAILED, EventLog, OperationListener
from .monitoring import CLEANUP_ERROR, ThreadingMonitor, sample_system_memory

__all__ = [
    "CLEANUP_ERROR",
    "EventLog",
    "OPERATION_COMPLETE",
    "OPERATION_FAILED",
    "OperationListener",
    "ThreadingMonitor",
    "sample_system_memory",
]
