"""
Update detection for tracked manga.

This module provides:
- Comparison of the latest upstream chapter against the stored one
- Silent baseline recording on the first successful scan
- Persistence of the new latest chapter before an update event is produced
"""

import structlog

from scheduler.models import DetectionResult, DetectionStatus, UpdateEvent
from tracker.database import TrackingStore
from tracker.errors import UpstreamRejected, UpstreamUnavailable
from tracker.mangadex_client import MangaDexClient
from tracker.models import TrackedManga

logger = structlog.get_logger(__name__)


class UpdateDetector:
    """Detects new chapters for one tracked manga at a time."""

    def __init__(self, store: TrackingStore, client: MangaDexClient):
        """
        Initialize update detector.

        Args:
            store: Tracking store instance
            client: MangaDex API client
        """
        self.store = store
        self.client = client
        self.logger = logger.bind(component="update_detector")

    async def detect(self, manga: TrackedManga) -> DetectionResult:
        """
        Check a manga for a chapter newer than the one subscribers last saw.

        Upstream failures are logged and reported as UPSTREAM_FAILED, leaving
        the record untouched so the next cycle retries. Store failures
        propagate to the caller.

        Args:
            manga: The tracked manga as read at the start of the scan

        Returns:
            DetectionResult, carrying an UpdateEvent when status is UPDATED
        """
        try:
            chapter = await self.client.fetch_latest_chapter(manga.id)
        except (UpstreamUnavailable, UpstreamRejected) as e:
            self.logger.warning(
                "Failed to fetch latest chapter",
                manga_id=manga.id,
                error=str(e)
            )
            return DetectionResult(
                manga_id=manga.id,
                status=DetectionStatus.UPSTREAM_FAILED,
                error=str(e)
            )

        chapter_id = chapter.id if chapter is not None else None

        if not manga.baseline_established:
            # Whatever is published now predates tracking, so it is recorded without notifying
            await self.store.set_latest_chapter_id(manga.id, chapter_id)
            self.logger.info(
                "Recorded baseline chapter",
                manga_id=manga.id,
                chapter_id=chapter_id
            )
            return DetectionResult(manga_id=manga.id, status=DetectionStatus.BASELINE_RECORDED)

        if chapter is None:
            return DetectionResult(manga_id=manga.id, status=DetectionStatus.NO_CHAPTERS)

        if chapter_id == manga.latest_chapter_id:
            return DetectionResult(manga_id=manga.id, status=DetectionStatus.UNCHANGED)

        await self.store.set_latest_chapter_id(manga.id, chapter_id)

        event = UpdateEvent(
            manga_id=manga.id,
            manga_title=manga.title,
            chapter=chapter,
            channels=frozenset(manga.channels)
        )

        self.logger.info(
            "New chapter detected",
            manga_id=manga.id,
            previous_chapter_id=manga.latest_chapter_id,
            chapter_id=chapter_id,
            channels=len(event.channels)
        )

        return DetectionResult(manga_id=manga.id, status=DetectionStatus.UPDATED, event=event)
