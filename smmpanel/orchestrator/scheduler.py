"""Background timers driving the monitor's janitor sweep and summary log."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional

from ..infra.monitoring import ThreadingMonitor

logger = logging.getLogger(__name__)


class MonitorScheduler:
    """Runs periodic stuck-operation cleanup and performance summaries for a monitor."""

    def __init__(
        self,
        monitor: ThreadingMonitor,
        *,
        cleanup_interval: float = 5 * 60.0,
        summary_interval: float = 10 * 60.0,
    ) -> None:
        self._monitor = monitor
        self.cleanup_interval = cleanup_interval
        self.summary_interval = summary_interval
        self._tasks: List[asyncio.Task[None]] = []
        self._stop_event = asyncio.Event()

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    async def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._tasks = [
            asyncio.create_task(self._loop("cleanup", self.cleanup_interval, self.run_cleanup)),
            asyncio.create_task(self._loop("summary", self.summary_interval, self.log_summary)),
        ]

    async def stop(self) -> None:
        self._stop_event.set()
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []

    def run_cleanup(self) -> int:
        cleaned = self._monitor.cleanup_stuck_operations()
        if cleaned > 0:
            logger.info("Auto-cleanup removed %d stuck operations", cleaned)
        return cleaned

    def log_summary(self) -> None:
        logger.info("%s", self._monitor.get_performance_summary())

    async def _loop(self, name: str, interval: float, action: Callable[[], Optional[object]]) -> None:
        logger.info("Monitor %s timer started (every %.0fs)", name, interval)
        try:
            while not self._stop_event.is_set():
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
                except asyncio.TimeoutError:
                    pass
                else:
                    break
                try:
                    action()
                except Exception as exc:  # pragma: no cover - defensive
                    logger.exception("Monitor %s tick failed: %s", name, exc)
        except asyncio.CancelledError:
            logger.info("Monitor %s timer cancelled", name)
            raise
