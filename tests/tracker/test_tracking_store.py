"""
Unit tests for the MongoDB tracking store.
The motor collection is replaced by mocks.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from pymongo.errors import DuplicateKeyError, ServerSelectionTimeoutError

from tracker.database import TrackingStore
from tracker.errors import ConflictError, StoreUnavailable
from tracker.models import TrackedManga


class FakeCursor:
    """Async iterable standing in for a motor cursor."""

    def __init__(self, documents, error=None):
        self.documents = documents
        self.error = error

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for document in self.documents:
            yield document
        if self.error is not None:
            raise self.error


@pytest.fixture
def store():
    """Create a tracking store with a mocked collection."""
    store = TrackingStore("mongodb://localhost:27017", "test_db", "mangas")
    store.collection = MagicMock()
    return store


class TestTrackingStore:
    """Test cases for TrackingStore."""

    @pytest.mark.asyncio
    async def test_create(self, store):
        """Test inserting a new record."""
        store.collection.insert_one = AsyncMock()
        manga = TrackedManga(id="manga-1", title="Test Manga", channels={5})

        await store.create(manga)

        store.collection.insert_one.assert_awaited_once_with({
            "_id": "manga-1",
            "title": "Test Manga",
            "latest_chapter_id": None,
            "baseline_established": False,
            "channels": [5]
        })

    @pytest.mark.asyncio
    async def test_create_duplicate(self, store):
        """Test that a duplicate id raises ConflictError."""
        store.collection.insert_one = AsyncMock(side_effect=DuplicateKeyError("duplicate key"))

        with pytest.raises(ConflictError) as exc_info:
            await store.create(TrackedManga(id="manga-1", title="Test Manga"))

        assert exc_info.value.manga_id == "manga-1"

    @pytest.mark.asyncio
    async def test_create_store_failure(self, store):
        store.collection.insert_one = AsyncMock(side_effect=ServerSelectionTimeoutError("no servers"))

        with pytest.raises(StoreUnavailable):
            await store.create(TrackedManga(id="manga-1", title="Test Manga"))

    @pytest.mark.asyncio
    async def test_get(self, store):
        store.collection.find_one = AsyncMock(return_value={
            "_id": "manga-1",
            "title": "Test Manga",
            "latest_chapter_id": "chapter-3",
            "baseline_established": True,
            "channels": [1, 2]
        })

        manga = await store.get("manga-1")

        store.collection.find_one.assert_awaited_once_with({"_id": "manga-1"})
        assert manga.title == "Test Manga"
        assert manga.channels == {1, 2}

    @pytest.mark.asyncio
    async def test_get_missing(self, store):
        store.collection.find_one = AsyncMock(return_value=None)

        assert await store.get("manga-1") is None

    @pytest.mark.asyncio
    async def test_get_store_failure(self, store):
        store.collection.find_one = AsyncMock(side_effect=ServerSelectionTimeoutError("no servers"))

        with pytest.raises(StoreUnavailable):
            await store.get("manga-1")

    @pytest.mark.asyncio
    async def test_get_malformed_document(self, store):
        """Test that a document failing validation is reported as a store failure."""
        store.collection.find_one = AsyncMock(return_value={"_id": "manga-1", "channels": ["not-a-channel"]})

        with pytest.raises(StoreUnavailable):
            await store.get("manga-1")

    @pytest.mark.asyncio
    async def test_list_all_skips_malformed(self, store):
        """Test that documents failing validation are skipped."""
        store.collection.find = MagicMock(return_value=FakeCursor([
            {"_id": "manga-1", "title": "One", "channels": [1]},
            {"_id": "manga-2"},
            {"_id": "manga-3", "title": "Three", "channels": []}
        ]))

        mangas = [manga async for manga in store.list_all()]

        assert [manga.id for manga in mangas] == ["manga-1", "manga-3"]

    @pytest.mark.asyncio
    async def test_list_all_store_failure(self, store):
        store.collection.find = MagicMock(return_value=FakeCursor(
            [], error=ServerSelectionTimeoutError("no servers")
        ))

        with pytest.raises(StoreUnavailable):
            [manga async for manga in store.list_all()]

    @pytest.mark.asyncio
    async def test_add_subscriber(self, store):
        """Test that subscribing uses a set union update."""
        store.collection.update_one = AsyncMock(return_value=MagicMock(matched_count=1))

        assert await store.add_subscriber("manga-1", 42) is True

        store.collection.update_one.assert_awaited_once_with(
            {"_id": "manga-1"},
            {"$addToSet": {"channels": 42}}
        )

    @pytest.mark.asyncio
    async def test_add_subscriber_missing(self, store):
        store.collection.update_one = AsyncMock(return_value=MagicMock(matched_count=0))

        assert await store.add_subscriber("manga-1", 42) is False

    @pytest.mark.asyncio
    async def test_set_latest_chapter_id(self, store):
        store.collection.update_one = AsyncMock(return_value=MagicMock(matched_count=1))

        assert await store.set_latest_chapter_id("manga-1", "chapter-4") is True

        store.collection.update_one.assert_awaited_once_with(
            {"_id": "manga-1"},
            {"$set": {"latest_chapter_id": "chapter-4", "baseline_established": True}}
        )

    @pytest.mark.asyncio
    async def test_set_latest_chapter_id_store_failure(self, store):
        store.collection.update_one = AsyncMock(side_effect=ServerSelectionTimeoutError("no servers"))

        with pytest.raises(StoreUnavailable):
            await store.set_latest_chapter_id("manga-1", "chapter-4")

    @pytest.mark.asyncio
    async def test_count(self, store):
        store.collection.count_documents = AsyncMock(return_value=3)

        assert await store.count() == 3


class TestTrackingStoreConnection:
    """Test cases for connecting to MongoDB."""

    @pytest.mark.asyncio
    async def test_connect(self):
        """Test that connecting pings the server and indexes channels."""
        motor_client = MagicMock()
        motor_client.admin.command = AsyncMock()
        collection = motor_client.__getitem__.return_value.__getitem__.return_value
        collection.create_index = AsyncMock()

        store = TrackingStore("mongodb://localhost:27017", "test_db", "mangas")
        with patch("tracker.database.AsyncIOMotorClient", return_value=motor_client):
            await store.connect()

        motor_client.admin.command.assert_awaited_once_with("ping")
        collection.create_index.assert_awaited_once_with("channels")
        assert store.collection is collection

    @pytest.mark.asyncio
    async def test_connect_failure(self):
        motor_client = MagicMock()
        motor_client.admin.command = AsyncMock(side_effect=ServerSelectionTimeoutError("no servers"))

        store = TrackingStore("mongodb://localhost:27017", "test_db", "mangas")
        with patch("tracker.database.AsyncIOMotorClient", return_value=motor_client):
            with pytest.raises(StoreUnavailable):
                await store.connect()
