"""
Key/Value Store Adapter

A string key maps to an arbitrary JSON value. Two backends share the same
three-call surface (get / set / delete):
- MongoKVStore: one MongoDB collection, one document per key
- MemoryKVStore: a process-local dict, used when no DATABASE_URL is configured
  and in tests

Writes replace the whole value; there is no partial update and no
compare-and-swap.
"""

import copy
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from config import Settings

logger = logging.getLogger(__name__)


class KVStore:
    backend = "abstract"

    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def status(self) -> Dict[str, Any]:
        return {"backend": self.backend, "connection_status": "Connected"}


class MemoryKVStore(KVStore):
    backend = "memory"

    def __init__(self):
        self._data: Dict[str, Any] = {}

    def get(self, key: str) -> Optional[Any]:
        # hand out copies so callers can't mutate stored state in place
        return copy.deepcopy(self._data.get(key))

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def status(self) -> Dict[str, Any]:
        return {"backend": self.backend, "connection_status": "Connected", "keys": len(self._data)}


class MongoKVStore(KVStore):
    backend = "mongodb"

    def __init__(self, client: MongoClient, database_name: str, collection_name: str = "kv_store"):
        self.client = client
        self.db = client[database_name]
        self.collection = self.db[collection_name]

    def get(self, key: str) -> Optional[Any]:
        doc = self.collection.find_one({"_id": key})
        return doc.get("value") if doc else None

    def set(self, key: str, value: Any) -> None:
        self.collection.replace_one(
            {"_id": key},
            {"_id": key, "value": value, "updated_at": datetime.now(timezone.utc)},
            upsert=True,
        )

    def delete(self, key: str) -> None:
        self.collection.delete_one({"_id": key})

    def status(self) -> Dict[str, Any]:
        response = {
            "backend": self.backend,
            "database_name": self.db.name,
            "connection_status": "Not Connected",
            "collections": [],
        }
        try:
            self.client.admin.command("ping")
            response["connection_status"] = "Connected"
            response["collections"] = self.db.list_collection_names()[:10]
        except PyMongoError as e:
            logger.error(f"Key/value store ping failed: {e}")
            response["connection_status"] = f"Error: {str(e)[:50]}"
        return response


def create_kv_store(settings: Settings) -> KVStore:
    """Build the store named by the settings; called once at process start."""
    if not settings.database_url:
        logger.warning("DATABASE_URL not set, using in-memory key/value store (data is lost on restart)")
        return MemoryKVStore()
    client = MongoClient(settings.database_url)
    logger.info(f"Using MongoDB key/value store {settings.database_name}.{settings.kv_collection}")
    return MongoKVStore(client, settings.database_name, settings.kv_collection)
