# FILE: messboard/services/mongo_store.py
"""
MongoDB record store (Motor)

Documents keep the persisted JSON shape; Mongo's _id is exposed as id.
Connection and socket timeouts bound every call; failures surface as
StoreUnavailableError and are not retried here.
"""
import logging
from typing import Any, Dict, List, Optional

import motor.motor_asyncio as motor_async
from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from messboard.exceptions import StoreUnavailableError
from messboard.services.record_store import ExpiryFilter, RecordStore

logger = logging.getLogger(__name__)

SOCKET_TIMEOUT_MS = 45000


def _to_record_doc(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Mongo document -> persisted JSON shape"""
    out = {k: v for k, v in doc.items() if k != "_id"}
    out["id"] = str(doc["_id"])
    return out


def _to_object_id(record_id: str) -> Optional[ObjectId]:
    try:
        return ObjectId(str(record_id))
    except (InvalidId, TypeError):
        return None


class MongoRecordStore(RecordStore):
    """Async MongoDB-backed record store"""

    def __init__(self, collection, client=None):
        self.collection = collection
        self.client = client

    @classmethod
    def from_settings(cls, settings) -> "MongoRecordStore":
        client = motor_async.AsyncIOMotorClient(
            settings.mongodb_uri,
            serverSelectionTimeoutMS=settings.mongodb_timeout_ms,
            socketTimeoutMS=SOCKET_TIMEOUT_MS,
            retryWrites=True,
            w="majority",
        )
        collection = client[settings.mongodb_db][settings.mongodb_collection]
        logger.info(f"Mongo store: db={settings.mongodb_db} collection={settings.mongodb_collection}")
        return cls(collection, client=client)

    async def start(self) -> None:
        try:
            await self.collection.create_index([("expiresAt", ASCENDING)])
            await self.collection.create_index([("createdAt", DESCENDING)])
            logger.info("Mongo indexes ensured")
        except PyMongoError as e:
            logger.error(f"Mongo index setup failed: {e}")

    async def close(self) -> None:
        if self.client is not None:
            self.client.close()

    async def insert(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        stored = {k: v for k, v in doc.items() if k != "id"}
        try:
            result = await self.collection.insert_one(stored)
        except PyMongoError as e:
            logger.error(f"Mongo insert failed: {e}")
            raise StoreUnavailableError("Record store insert failed") from e
        stored["_id"] = result.inserted_id
        return _to_record_doc(stored)

    async def find(self, predicate: ExpiryFilter, newest_first: bool = True) -> List[Dict[str, Any]]:
        order = DESCENDING if newest_first else ASCENDING
        try:
            cursor = self.collection.find(predicate.to_mongo()).sort("createdAt", order)
            docs = await cursor.to_list(length=None)
        except PyMongoError as e:
            logger.error(f"Mongo find failed: {e}")
            raise StoreUnavailableError("Record store find failed") from e
        return [_to_record_doc(d) for d in docs]

    async def get(self, record_id: str) -> Optional[Dict[str, Any]]:
        oid = _to_object_id(record_id)
        if oid is None:
            return None
        try:
            doc = await self.collection.find_one({"_id": oid})
        except PyMongoError as e:
            logger.error(f"Mongo get failed: {e}")
            raise StoreUnavailableError("Record store get failed") from e
        return _to_record_doc(doc) if doc else None

    async def delete(self, record_id: str) -> bool:
        oid = _to_object_id(record_id)
        if oid is None:
            return False
        try:
            result = await self.collection.delete_one({"_id": oid})
        except PyMongoError as e:
            logger.error(f"Mongo delete failed: {e}")
            raise StoreUnavailableError("Record store delete failed") from e
        return result.deleted_count > 0

    async def delete_many(self, predicate: ExpiryFilter) -> int:
        try:
            result = await self.collection.delete_many(predicate.to_mongo())
        except PyMongoError as e:
            logger.error(f"Mongo delete_many failed: {e}")
            raise StoreUnavailableError("Record store delete_many failed") from e
        return result.deleted_count

    async def ping(self) -> bool:
        if self.client is None:
            return True
        try:
            await self.client.admin.command("ping")
            return True
        except PyMongoError as e:
            logger.error(f"Mongo ping failed: {e}")
            return False
