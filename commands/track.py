"""
The track command: start notifying a channel about a manga's new chapters.

Given a manga id or, more commonly, the URL of the manga's MangaDex page, the
requesting channel is added to the manga's subscribers. The first channel to
track a manga creates its record, with the currently published chapter as the
baseline so only later chapters are announced.
"""

import uuid
from enum import Enum
from typing import Optional
from urllib.parse import urlparse

import structlog
from pydantic import BaseModel

from tracker.database import TrackingStore
from tracker.errors import (
    ConflictError, InvalidReference, StoreUnavailable, UpstreamRejected, UpstreamUnavailable
)
from tracker.mangadex_client import MangaDexClient
from tracker.models import TrackedManga

logger = structlog.get_logger(__name__)

MANGADEX_HOST = "mangadex.org"

INVALID_REFERENCE_REPLY = "Please specify a valid manga id or url."
ALREADY_TRACKED_REPLY = "This manga is already tracked by this channel."
GENERIC_FAILURE_REPLY = "Something went wrong while tracking this manga. Please try again later."


class TrackStatus(str, Enum):
    TRACKED = "tracked"
    ALREADY_TRACKED = "already_tracked"
    INVALID_REFERENCE = "invalid_reference"
    FAILED = "failed"


class TrackReply(BaseModel):
    """Outcome of a track request and the text to send back."""
    status: TrackStatus
    message: str
    manga_id: Optional[str] = None


def _parse_uuid(value: str) -> Optional[str]:
    try:
        return str(uuid.UUID(value))
    except ValueError:
        return None


def manga_id_from_url(url: str) -> Optional[str]:
    """Extract the manga id from a https://mangadex.org/title/{id}/... URL."""
    parsed = urlparse(url)
    if parsed.hostname != MANGADEX_HOST:
        return None

    segments = parsed.path.lstrip("/").split("/")
    if len(segments) < 2 or segments[0] != "title":
        return None

    return _parse_uuid(segments[1])


def resolve_manga_id(reference: str) -> str:
    """
    Resolve a raw manga id or a MangaDex title URL to a canonical manga id.

    Raises:
        InvalidReference: The reference is neither
    """
    reference = reference.strip()

    manga_id = _parse_uuid(reference) or manga_id_from_url(reference)
    if manga_id is None:
        raise InvalidReference(reference)
    return manga_id


class TrackRequestHandler:
    """Registers channels against tracked manga."""

    def __init__(self, store: TrackingStore, client: MangaDexClient):
        self.store = store
        self.client = client
        self.logger = logger.bind(component="track_handler")

    async def handle(self, reference: str, channel_id: int) -> TrackReply:
        """
        Track the referenced manga for a channel.

        Args:
            reference: Manga id or MangaDex URL as typed by the user
            channel_id: Channel the request was made in

        Returns:
            TrackReply with the message to show the user
        """
        self.logger.info("Handling track request", reference=reference, channel_id=channel_id)

        try:
            manga_id = resolve_manga_id(reference)
        except InvalidReference as e:
            self.logger.info("Invalid manga reference", reference=reference, error=str(e))
            return TrackReply(status=TrackStatus.INVALID_REFERENCE, message=INVALID_REFERENCE_REPLY)

        try:
            return await self._track(manga_id, channel_id)

        except UpstreamRejected as e:
            self.logger.warning("MangaDex rejected track request", manga_id=manga_id, error=str(e))
            return TrackReply(status=TrackStatus.FAILED, message=str(e), manga_id=manga_id)

        except (UpstreamUnavailable, StoreUnavailable) as e:
            self.logger.error("Track request failed", manga_id=manga_id, error=str(e))
            return TrackReply(status=TrackStatus.FAILED, message=GENERIC_FAILURE_REPLY, manga_id=manga_id)

    async def _track(self, manga_id: str, channel_id: int) -> TrackReply:
        manga = await self.store.get(manga_id)
        if manga is not None:
            return await self._subscribe(manga, channel_id)

        # Resolve everything upstream first so a failure leaves no record behind
        title = await self.client.fetch_title(manga_id) or manga_id
        latest_chapter = await self.client.fetch_latest_chapter(manga_id)

        manga = TrackedManga(
            id=manga_id,
            title=title,
            latest_chapter_id=latest_chapter.id if latest_chapter else None,
            baseline_established=True,
            channels={channel_id}
        )

        try:
            await self.store.create(manga)
        except ConflictError:
            # Another request created it first; subscribe to that record instead
            existing = await self.store.get(manga_id)
            if existing is None:
                raise StoreUnavailable(f"Manga {manga_id} vanished after a create conflict")
            return await self._subscribe(existing, channel_id)

        self.logger.info(
            "Started tracking new manga",
            manga_id=manga_id,
            title=title,
            channel_id=channel_id,
            baseline_chapter_id=manga.latest_chapter_id
        )
        return TrackReply(status=TrackStatus.TRACKED, message=f"Now tracking {title}.", manga_id=manga_id)

    async def _subscribe(self, manga: TrackedManga, channel_id: int) -> TrackReply:
        if manga.is_tracked_by(channel_id):
            self.logger.info("Channel already tracks this manga", manga_id=manga.id, channel_id=channel_id)
            return TrackReply(status=TrackStatus.ALREADY_TRACKED, message=ALREADY_TRACKED_REPLY, manga_id=manga.id)

        if not await self.store.add_subscriber(manga.id, channel_id):
            raise StoreUnavailable(f"Manga {manga.id} disappeared while subscribing")

        self.logger.info("Added channel to tracked manga", manga_id=manga.id, channel_id=channel_id)
        return TrackReply(status=TrackStatus.TRACKED, message=f"Now tracking {manga.title}.", manga_id=manga.id)
