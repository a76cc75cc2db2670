"""
Periodic scan scheduler for tracked manga.

This module provides:
- A fixed-period scan loop driven by APScheduler
- Sequential, paced update detection over every tracked manga
- Hand-off of detected updates to the notification queue
"""

import asyncio
import uuid
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import structlog
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from scheduler.models import DetectionStatus, ScanResult, UpdateEvent
from scheduler.update_detector import UpdateDetector
from tracker.database import TrackingStore
from tracker.errors import StoreUnavailable
from tracker.models import TrackedManga
from utilities.logger import ScanLogger

logger = structlog.get_logger(__name__)

SCAN_JOB_ID = "manga_scan"


class ScanScheduler:
    """
    Runs a scan cycle every period, measured from the start of one cycle to
    the start of the next. A cycle that overruns the period is followed
    immediately by the next one; no cycle is skipped.
    """

    def __init__(
        self,
        store: TrackingStore,
        detector: UpdateDetector,
        events: "asyncio.Queue[UpdateEvent]",
        period_seconds: float,
        scan_delay_seconds: float = 0.25,
        timezone_name: str = "UTC",
        scheduler: Optional[AsyncIOScheduler] = None
    ):
        """
        Initialize the scan scheduler.

        Args:
            store: Tracking store to enumerate
            detector: Update detector run on every manga
            events: Bounded queue receiving update events
            period_seconds: Seconds between the starts of two cycles
            scan_delay_seconds: Pause after each manga to pace upstream requests
            timezone_name: Timezone of the underlying APScheduler instance
            scheduler: Optional pre-built APScheduler instance
        """
        self.store = store
        self.detector = detector
        self.events = events
        self.period = timedelta(seconds=period_seconds)
        self.scan_delay_seconds = scan_delay_seconds
        self.scheduler = scheduler or AsyncIOScheduler(timezone=timezone_name)
        self.logger = logger.bind(component="scan_scheduler")

        self._cycle_started_at: Optional[datetime] = None

        self._setup_scheduler_listeners()

    def _setup_scheduler_listeners(self) -> None:
        """Reschedule the scan once the current cycle has finished."""
        self.scheduler.add_listener(self._on_job_event, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)

    def _on_job_event(self, event) -> None:
        if event.job_id != SCAN_JOB_ID:
            return

        if event.exception is not None:
            self.logger.error("Scan job failed", job_id=event.job_id, error=str(event.exception))

        started_at = self._cycle_started_at or self._now()
        self._schedule_next(started_at + self.period)

    def start(self) -> None:
        """Start the scheduler and run the first cycle immediately."""
        self.scheduler.start()
        self._schedule_next(self._now())
        self.logger.info(
            "Scan scheduler started",
            period_seconds=self.period.total_seconds(),
            scan_delay_seconds=self.scan_delay_seconds
        )

    def stop(self) -> None:
        """Stop the scheduler without waiting for a running cycle."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        self.logger.info("Scan scheduler stopped")

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def _schedule_next(self, run_date: datetime) -> None:
        run_date = max(run_date, self._now())
        self.scheduler.add_job(
            func=self._scan_job,
            trigger=DateTrigger(run_date=run_date),
            id=SCAN_JOB_ID,
            name='Manga Scan',
            misfire_grace_time=None,
            replace_existing=True
        )
        self.logger.debug("Scheduled next scan", run_date=run_date.isoformat())

    async def _scan_job(self) -> ScanResult:
        self._cycle_started_at = self._now()
        return await self.scan_once()

    async def scan_once(self) -> ScanResult:
        """
        Run a single scan cycle over a snapshot of every tracked manga.

        Each manga is checked in turn, followed by the pacing delay whatever
        the outcome. Errors for one manga are logged and the cycle moves on.

        Returns:
            ScanResult summarising the cycle
        """
        scan_id = str(uuid.uuid4())
        start_time = datetime.utcnow()
        scan_logger = ScanLogger("scan_scheduler").bind_context(scan_id=scan_id)
        scan_logger.log_scan_start()

        result = ScanResult(scan_id=scan_id, started_at=start_time)

        try:
            mangas: List[TrackedManga] = [manga async for manga in self.store.list_all()]
        except StoreUnavailable as e:
            error_msg = f"Failed to list tracked manga: {e}"
            result.errors.append(error_msg)
            scan_logger.log_error(error_msg)
            mangas = []

        for manga in mangas:
            try:
                detection = await self.detector.detect(manga)
                scan_logger.log_manga_checked(manga.id, detection.status.value)

                if detection.status == DetectionStatus.BASELINE_RECORDED:
                    result.baselines_recorded += 1
                elif detection.status == DetectionStatus.UPSTREAM_FAILED:
                    result.upstream_failures += 1

                if detection.event is not None:
                    result.updates_detected += 1
                    # Waits here when the notifier falls behind
                    await self.events.put(detection.event)

            except Exception as e:
                error_msg = f"Failed to check manga {manga.id}: {e}"
                result.errors.append(error_msg)
                scan_logger.log_error(error_msg, manga_id=manga.id)

            result.mangas_checked += 1
            await asyncio.sleep(self.scan_delay_seconds)

        result.duration_seconds = (datetime.utcnow() - start_time).total_seconds()
        result.success = len(result.errors) == 0

        scan_logger.log_scan_complete(
            result.mangas_checked,
            result.updates_detected,
            result.duration_seconds,
            len(result.errors)
        )

        return result
