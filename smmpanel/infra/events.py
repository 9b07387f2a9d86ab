"""
Operation event subscription helpers for dashboards and logs.
"""

from __future__ import annotations

from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional

from ..schema import OperationEvent

OPERATION_COMPLETE = "operation_complete"
OPERATION_FAILED = "operation_failed"

OperationListener = Callable[[OperationEvent], None]


class EventLog:
    """
    Bounded in-memory record of monitor events, subscribed as a listener.
    """

    def __init__(self, maxlen: int = 200) -> None:
        self._events: Deque[OperationEvent] = deque(maxlen=maxlen if maxlen > 0 else None)

    def __call__(self, event: OperationEvent) -> None:
        self._events.append(event)

    @property
    def events(self) -> List[OperationEvent]:
        return list(self._events)

    def recent(self, limit: Optional[int] = None, *, kind: Optional[str] = None) -> List[Dict[str, Any]]:
        events = [event for event in self._events if kind is None or event.kind == kind]
        if limit is not None and limit >= 0:
            events = events[-limit:] if limit else []
        return [event.to_payload() for event in reversed(events)]

    def clear(self) -> None:
        self._events.clear()
