"""
Orchestration helpers (guards, scheduling) around the operation monitor.
"""

from .guard import AdmissionRejected, OperationHandle, monitored_operation
from .scheduler import MonitorScheduler

__all__ = ["AdmissionRejected", "MonitorScheduler", "OperationHandle", "monitored_operation"]
