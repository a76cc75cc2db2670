"""
Tracker service wiring the scan and notification pipeline together.

This module provides:
- Construction of the scanner, detector and notifier around one bounded queue
- Start/stop lifecycle for the long-running tasks
- A single-pass mode that scans once and waits for every notification
"""

import asyncio
from typing import Optional

import structlog

from scheduler.models import ScanResult, UpdateEvent
from scheduler.notification_fanout import Messenger, NotificationFanout
from scheduler.scan_scheduler import ScanScheduler
from scheduler.update_detector import UpdateDetector
from tracker.database import TrackingStore
from tracker.mangadex_client import MangaDexClient
from utilities.config import BotConfig

logger = structlog.get_logger(__name__)


class TrackerService:
    """Owns the scanner and notifier tasks and the queue between them."""

    def __init__(
        self,
        config: BotConfig,
        store: TrackingStore,
        client: MangaDexClient,
        messenger: Messenger
    ):
        """
        Initialize tracker service.

        Args:
            config: Bot configuration
            store: Tracking store instance
            client: MangaDex API client
            messenger: Delivery surface for notifications
        """
        self.config = config
        self.store = store
        self.client = client
        self.logger = logger.bind(component="tracker_service")

        self.events: "asyncio.Queue[UpdateEvent]" = asyncio.Queue(maxsize=config.event_queue_size)
        self.detector = UpdateDetector(store, client)
        self.scan_scheduler = ScanScheduler(
            store,
            self.detector,
            self.events,
            period_seconds=config.scan_period,
            scan_delay_seconds=config.scan_delay_seconds,
            timezone_name=config.timezone
        )
        self.fanout = NotificationFanout(messenger, self.events, site_root=config.site_root)
        self._fanout_task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        """Start the notifier task and the periodic scanner."""
        try:
            self.logger.info("Starting tracker service")

            self._fanout_task = asyncio.create_task(self.fanout.run(), name="notification_fanout")
            self.scan_scheduler.start()

            self.logger.info(
                "Tracker service started",
                scan_period=self.config.scan_period,
                event_queue_size=self.config.event_queue_size
            )

        except Exception as e:
            self.logger.error("Failed to start tracker service", error=str(e))
            await self.stop()
            raise

    async def stop(self) -> None:
        """Stop the scanner and the notifier. Queued events are dropped."""
        self.logger.info("Stopping tracker service")

        self.scan_scheduler.stop()

        if self._fanout_task is not None:
            self._fanout_task.cancel()
            try:
                await self._fanout_task
            except asyncio.CancelledError:
                pass
            self._fanout_task = None

        if not self.events.empty():
            self.logger.warning("Dropping undelivered update events", pending=self.events.qsize())

        self.logger.info("Tracker service stopped")

    async def run_once(self) -> ScanResult:
        """Run one scan cycle and wait until every detected update has been delivered."""
        self.logger.info("Running a single scan cycle")

        self._fanout_task = asyncio.create_task(self.fanout.run(), name="notification_fanout")
        try:
            result = await self.scan_scheduler.scan_once()
            await self.events.join()
            return result
        finally:
            self._fanout_task.cancel()
            try:
                await self._fanout_task
            except asyncio.CancelledError:
                pass
            self._fanout_task = None
