"""MongoDB-backed store for shop tax settings, one document per shop."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pymongo import MongoClient, ReturnDocument
from pymongo.errors import PyMongoError

from ..utils.logging import get_logger
from ..utils.config import Config

logger = get_logger(__name__)


class SettingsStoreError(RuntimeError):
    """The settings store could not be read or written."""


class TaxSettingsRepository:
    def __init__(
        self,
        url: Optional[str] = None,
        db_name: Optional[str] = None,
        collection: Optional[str] = None,
        config: Optional[Config] = None,
    ) -> None:
        config = config or Config(".env")
        self._url = url or config.get("mongo_url")
        self._db = db_name or config.get("mongo_db")
        self._collection = collection or config.get("settings_collection")
        if not self._url:
            raise ValueError("DB_CONNECTION_URL is required")
        self._client: Optional[MongoClient] = None

    def __enter__(self) -> "TaxSettingsRepository":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.disconnect()

    def connect(self) -> None:
        if self._client is None:
            self._client = MongoClient(self._url, serverSelectionTimeoutMS=5000)

    def disconnect(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def _coll(self):
        if self._client is None:
            self.connect()
        return self._client[self._db][self._collection]

    def find_by_shop_id(self, shop_id: str) -> Optional[Dict[str, Any]]:
        try:
            return self._coll().find_one({"shop_id": shop_id}, {"_id": 0})
        except PyMongoError as e:
            raise SettingsStoreError(f"Failed to load tax settings for shop {shop_id}: {e}") from e

    def insert(self, document: Dict[str, Any]) -> Dict[str, Any]:
        try:
            self._coll().insert_one(dict(document))
        except PyMongoError as e:
            raise SettingsStoreError(
                f"Failed to create tax settings for shop {document.get('shop_id')}: {e}"
            ) from e
        logger.info(f"Created default tax settings for shop {document.get('shop_id')}")
        return document

    def update_fields(self, shop_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        """Apply a partial update and return the stored document after the write."""
        try:
            updated = self._coll().find_one_and_update(
                {"shop_id": shop_id},
                {"$set": dict(changes)},
                projection={"_id": 0},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            raise SettingsStoreError(f"Failed to save tax settings for shop {shop_id}: {e}") from e
        if updated is None:
            raise SettingsStoreError(f"Tax settings for shop {shop_id} vanished during update")
        return updated
