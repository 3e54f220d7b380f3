import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase

from .config import Settings

logger = logging.getLogger("jobboard.database")


class Mongo:
    """Owns the motor client; opened in the app lifespan and closed on shutdown."""

    def __init__(self, uri: str, db_name: str):
        self.uri = uri
        self.db_name = db_name
        self._client: Optional[AsyncIOMotorClient] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "Mongo":
        return cls(settings.mongo_uri, settings.db_name)

    def connect(self) -> AsyncIOMotorClient:
        if self._client is None:
            # tz_aware keeps reset expiry comparisons in UTC
            self._client = AsyncIOMotorClient(self.uri, tz_aware=True)
            logger.info("MongoDB client created for database %s", self.db_name)
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
            logger.info("MongoDB client closed")

    @property
    def db(self) -> AsyncIOMotorDatabase:
        return self.connect()[self.db_name]

    # collection helpers
    def users_collection(self) -> AsyncIOMotorCollection:
        return self.db["users"]
