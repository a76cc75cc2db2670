"""
MongoDB tracking store for async operations.
Handles connection and the single-document operations on tracked manga.
"""

from typing import AsyncIterator, Optional
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase, AsyncIOMotorCollection
from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError, PyMongoError
import structlog

from .errors import ConflictError, StoreUnavailable
from .models import TrackedManga

logger = structlog.get_logger(__name__)


class TrackingStore:
    """
    Async MongoDB store for tracked manga, keyed by MangaDex id.
    Every operation touches a single document and is atomic at that granularity.
    """

    def __init__(self, connection_url: str, database_name: str, collection_name: str):
        """
        Initialize the tracking store.

        Args:
            connection_url: MongoDB connection URL
            database_name: Name of the database
            collection_name: Name of the collection
        """
        self.connection_url = connection_url
        self.database_name = database_name
        self.collection_name = collection_name
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None
        self.collection: Optional[AsyncIOMotorCollection] = None

    async def connect(self) -> None:
        """Establish connection to MongoDB."""
        try:
            self.client = AsyncIOMotorClient(self.connection_url)
            self.database = self.client[self.database_name]
            self.collection = self.database[self.collection_name]

            # Test connection
            await self.client.admin.command('ping')
            logger.info("Successfully connected to MongoDB",
                        database=self.database_name,
                        collection=self.collection_name)

            # Channel lookups are the only secondary query pattern
            await self.collection.create_index("channels")

        except PyMongoError as e:
            logger.error("Failed to connect to MongoDB", error=str(e))
            raise StoreUnavailable(f"Failed to connect to MongoDB: {e}") from e

    async def disconnect(self) -> None:
        """Close MongoDB connection."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

    async def create(self, manga: TrackedManga) -> None:
        """
        Insert a new tracked manga.

        Raises:
            ConflictError: A record with the same id already exists
            StoreUnavailable: The insert failed
        """
        try:
            await self.collection.insert_one(manga.to_document())
            logger.debug("Created tracked manga", manga_id=manga.id, title=manga.title)

        except DuplicateKeyError as e:
            logger.warning("Manga already exists", manga_id=manga.id)
            raise ConflictError(manga.id) from e

        except PyMongoError as e:
            logger.error("Failed to create tracked manga", manga_id=manga.id, error=str(e))
            raise StoreUnavailable(str(e)) from e

    async def get(self, manga_id: str) -> Optional[TrackedManga]:
        """
        Retrieve a tracked manga by id.

        Returns:
            TrackedManga instance or None if not tracked
        """
        try:
            document = await self.collection.find_one({"_id": manga_id})
        except PyMongoError as e:
            logger.error("Failed to retrieve tracked manga", manga_id=manga_id, error=str(e))
            raise StoreUnavailable(str(e)) from e

        if document is None:
            return None

        try:
            return TrackedManga.from_document(document)
        except ValidationError as e:
            logger.error("Malformed manga document", manga_id=manga_id, error=str(e))
            raise StoreUnavailable(f"Malformed document for manga {manga_id}") from e

    async def list_all(self) -> AsyncIterator[TrackedManga]:
        """
        Iterate over every tracked manga.

        The cursor is lazy and does not reflect writes made during iteration
        beyond what MongoDB itself returns. Malformed documents are skipped.
        """
        try:
            async for document in self.collection.find({}):
                try:
                    yield TrackedManga.from_document(document)
                except ValidationError as e:
                    logger.warning("Skipping malformed manga document",
                                   manga_id=document.get("_id"),
                                   error=str(e))

        except PyMongoError as e:
            logger.error("Failed to list tracked manga", error=str(e))
            raise StoreUnavailable(str(e)) from e

    async def add_subscriber(self, manga_id: str, channel_id: int) -> bool:
        """
        Add a channel to a manga's subscribers. Adding an existing channel is a no-op.

        Returns:
            bool: True if the manga exists, False if not found
        """
        try:
            result = await self.collection.update_one(
                {"_id": manga_id},
                {"$addToSet": {"channels": channel_id}}
            )
        except PyMongoError as e:
            logger.error("Failed to add subscriber", manga_id=manga_id, channel_id=channel_id, error=str(e))
            raise StoreUnavailable(str(e)) from e

        if result.matched_count == 0:
            logger.warning("Manga not found for subscription", manga_id=manga_id)
            return False

        logger.debug("Added subscriber", manga_id=manga_id, channel_id=channel_id)
        return True

    async def set_latest_chapter_id(self, manga_id: str, chapter_id: Optional[str]) -> bool:
        """
        Overwrite the latest chapter id and mark the baseline as established.
        Callers are responsible for only moving the id forward.

        Returns:
            bool: True if the manga exists, False if not found
        """
        try:
            result = await self.collection.update_one(
                {"_id": manga_id},
                {"$set": {"latest_chapter_id": chapter_id, "baseline_established": True}}
            )
        except PyMongoError as e:
            logger.error("Failed to update latest chapter", manga_id=manga_id, error=str(e))
            raise StoreUnavailable(str(e)) from e

        if result.matched_count == 0:
            logger.warning("Manga not found for update", manga_id=manga_id)
            return False
        return True

    async def count(self) -> int:
        """Get total number of tracked manga."""
        try:
            return await self.collection.count_documents({})
        except PyMongoError as e:
            logger.error("Failed to count tracked manga", error=str(e))
            raise StoreUnavailable(str(e)) from e
