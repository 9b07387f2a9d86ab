"""SMM panel application context for shared monitoring resources."""

from __future__ import annotations

import logging
from typing import Optional

from ..config import Settings, get_settings
from ..infra.events import EventLog
from ..infra.monitoring import MemorySampler, ThreadingMonitor
from ..orchestrator.scheduler import MonitorScheduler
from ..services.order_sync import ClientFactory, OrderSyncService

logger = logging.getLogger(__name__)


class SmmPanelApplication:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        memory_sampler: Optional[MemorySampler] = None,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self.settings = settings or get_settings()

        self.monitor = ThreadingMonitor.from_settings(self.settings, memory_sampler=memory_sampler)
        self.event_log = EventLog(self.settings.event_history)
        self._unsubscribe = self.monitor.subscribe(self.event_log)

        self.scheduler = MonitorScheduler(
            self.monitor,
            cleanup_interval=self.settings.cleanup_interval,
            summary_interval=self.settings.summary_interval,
        )
        self.order_sync = OrderSyncService(
            self.monitor,
            client_factory=client_factory,
            batch_size=self.settings.sync_batch_size,
            provider_timeout=self.settings.provider_timeout,
        )

        self._scheduler_started = False

    async def startup(self) -> None:
        if self.settings.scheduler_enabled and not self._scheduler_started:
            await self.scheduler.start()
            self._scheduler_started = True
            logger.info(
                "Monitor scheduler running (cleanup every %.0fs, summary every %.0fs)",
                self.settings.cleanup_interval,
                self.settings.summary_interval,
            )

    async def shutdown(self) -> None:
        if self._scheduler_started:
            await self.scheduler.stop()
            self._scheduler_started = False

    def health(self):
        return self.monitor.get_system_health()
