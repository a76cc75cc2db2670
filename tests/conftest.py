"""
Pytest configuration and shared fixtures.
"""

import asyncio
from typing import Dict, List, Optional, Tuple

import pytest
from unittest.mock import AsyncMock

from tracker.database import TrackingStore
from tracker.errors import ConflictError
from tracker.mangadex_client import MangaDexClient
from tracker.models import ChapterAttributes, ChapterEntity, TrackedManga

MANGA_ID = "a1c7c817-4e59-43b7-9365-09675a149a6f"
OTHER_MANGA_ID = "32d76d19-8a05-4db0-9fc2-e0b0648fe9d0"


class InMemoryTrackingStore:
    """Dict-backed stand-in for TrackingStore with the same single-record semantics."""

    def __init__(self):
        self.records: Dict[str, TrackedManga] = {}
        self.latest_chapter_writes: List[Tuple[str, Optional[str]]] = []

    async def create(self, manga: TrackedManga) -> None:
        if manga.id in self.records:
            raise ConflictError(manga.id)
        self.records[manga.id] = manga.model_copy(deep=True)

    async def get(self, manga_id: str) -> Optional[TrackedManga]:
        manga = self.records.get(manga_id)
        return manga.model_copy(deep=True) if manga else None

    async def list_all(self):
        for manga in list(self.records.values()):
            yield manga.model_copy(deep=True)

    async def add_subscriber(self, manga_id: str, channel_id: int) -> bool:
        manga = self.records.get(manga_id)
        if manga is None:
            return False
        manga.channels.add(channel_id)
        return True

    async def set_latest_chapter_id(self, manga_id: str, chapter_id: Optional[str]) -> bool:
        manga = self.records.get(manga_id)
        if manga is None:
            return False
        self.latest_chapter_writes.append((manga_id, chapter_id))
        manga.latest_chapter_id = chapter_id
        manga.baseline_established = True
        return True


class RecordingMessenger:
    """Messenger that records every send and can fail for chosen channels."""

    def __init__(self, failing_channels=()):
        self.failing_channels = set(failing_channels)
        self.sent: List[Tuple[int, str]] = []
        self.attempts: List[int] = []

    async def send_message(self, channel_id: int, content: str) -> None:
        self.attempts.append(channel_id)
        if channel_id in self.failing_channels:
            raise RuntimeError(f"Unknown channel {channel_id}")
        self.sent.append((channel_id, content))


def make_chapter(chapter_id: str = "chapter-1", chapter: Optional[str] = "12", title: Optional[str] = "The Return") -> ChapterEntity:
    return ChapterEntity(
        id=chapter_id,
        attributes=ChapterAttributes(chapter=chapter, title=title, volume="2", pages=20, translated_language="en")
    )


@pytest.fixture
def memory_store():
    """Create an in-memory tracking store."""
    return InMemoryTrackingStore()


@pytest.fixture
def messenger():
    """Create a messenger that records deliveries."""
    return RecordingMessenger()


@pytest.fixture
def mock_store():
    """Create a mock tracking store."""
    store = AsyncMock(spec=TrackingStore)
    store.get.return_value = None
    store.add_subscriber.return_value = True
    store.set_latest_chapter_id.return_value = True
    return store


@pytest.fixture
def mock_client():
    """Create a mock MangaDex client."""
    client = AsyncMock(spec=MangaDexClient)
    client.fetch_title.return_value = "Test Manga"
    client.fetch_latest_chapter.return_value = None
    return client


@pytest.fixture
def sample_manga():
    """Create a tracked manga with an established baseline."""
    return TrackedManga(
        id=MANGA_ID,
        title="Test Manga",
        latest_chapter_id="chapter-0",
        baseline_established=True,
        channels={111, 222}
    )


@pytest.fixture
def sample_chapter():
    """Create a chapter with every descriptive field present."""
    return make_chapter()


@pytest.fixture
def event_queue():
    """Create a bounded update event queue."""
    return asyncio.Queue(maxsize=10)
