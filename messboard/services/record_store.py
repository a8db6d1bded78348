# FILE: messboard/services/record_store.py
"""
Record stores keyed by opaque id, queried by expiry predicate
"""
import asyncio
import json
import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import uuid4

from messboard.exceptions import StoreUnavailableError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExpiryFilter:
    """Predicate over a record's expiresAt"""
    after: Optional[int] = None      # expiresAt > after
    not_after: Optional[int] = None  # expiresAt <= not_after

    @classmethod
    def active_at(cls, now: int) -> "ExpiryFilter":
        return cls(after=now)

    @classmethod
    def expired_at(cls, now: int) -> "ExpiryFilter":
        return cls(not_after=now)

    def matches(self, doc: Dict[str, Any]) -> bool:
        expires_at = doc["expiresAt"]
        if self.after is not None and not expires_at > self.after:
            return False
        if self.not_after is not None and not expires_at <= self.not_after:
            return False
        return True

    def to_mongo(self) -> Dict[str, Any]:
        """Mongo query document"""
        cond: Dict[str, int] = {}
        if self.after is not None:
            cond["$gt"] = self.after
        if self.not_after is not None:
            cond["$lte"] = self.not_after
        return {"expiresAt": cond} if cond else {}


class RecordStore:
    """Base record store; documents use the persisted JSON shape"""

    async def start(self) -> None:
        """Prepare backend resources"""

    async def close(self) -> None:
        """Release backend resources"""

    async def insert(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        """Persist a new document and return it with its assigned id"""
        raise NotImplementedError

    async def find(self, predicate: ExpiryFilter, newest_first: bool = True) -> List[Dict[str, Any]]:
        """Documents matching predicate, ordered by createdAt"""
        raise NotImplementedError

    async def get(self, record_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    async def delete(self, record_id: str) -> bool:
        """Delete one document; False if it was absent"""
        raise NotImplementedError

    async def delete_many(self, predicate: ExpiryFilter) -> int:
        """Delete all matching documents in one operation; returns the count"""
        raise NotImplementedError

    async def ping(self) -> bool:
        return True


def _sorted(docs: List[Dict[str, Any]], newest_first: bool) -> List[Dict[str, Any]]:
    return sorted(docs, key=lambda d: d["createdAt"], reverse=newest_first)


class InMemoryRecordStore(RecordStore):
    """Process-local store"""

    def __init__(self):
        self._docs: Dict[str, Dict[str, Any]] = {}

    async def insert(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        stored = dict(doc)
        stored["id"] = uuid4().hex
        self._docs[stored["id"]] = stored
        return dict(stored)

    async def find(self, predicate: ExpiryFilter, newest_first: bool = True) -> List[Dict[str, Any]]:
        matched = [dict(d) for d in self._docs.values() if predicate.matches(d)]
        return _sorted(matched, newest_first)

    async def get(self, record_id: str) -> Optional[Dict[str, Any]]:
        doc = self._docs.get(record_id)
        return dict(doc) if doc else None

    async def delete(self, record_id: str) -> bool:
        return self._docs.pop(record_id, None) is not None

    async def delete_many(self, predicate: ExpiryFilter) -> int:
        doomed = [rid for rid, d in self._docs.items() if predicate.matches(d)]
        for rid in doomed:
            del self._docs[rid]
        return len(doomed)

    def __len__(self) -> int:
        return len(self._docs)


class JsonRecordStore(RecordStore):
    """
    Store backed by a single JSON file.

    Every operation loads, mutates and atomically replaces the file under a
    lock, so a batch delete is all-or-nothing from a reader's point of view.
    """

    def __init__(self, data_dir: str, filename: str = "records.json"):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.path = self.data_dir / filename
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, Dict[str, Any]]:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            docs = json.load(f)
        return {d["id"]: d for d in docs}

    def _save(self, docs: Dict[str, Dict[str, Any]]) -> None:
        tmp_path = self.path.with_suffix(".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(list(docs.values()), f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, self.path)

    async def _run(self, op: str, fn, *args):
        try:
            return await asyncio.to_thread(fn, *args)
        except (OSError, ValueError) as e:
            logger.error(f"Record store {op} failed: {e}")
            raise StoreUnavailableError(f"Record store {op} failed", {"path": str(self.path)}) from e

    def _insert_sync(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            docs = self._load()
            stored = dict(doc)
            stored["id"] = uuid4().hex
            docs[stored["id"]] = stored
            self._save(docs)
        return stored

    def _find_sync(self, predicate: ExpiryFilter, newest_first: bool) -> List[Dict[str, Any]]:
        with self._lock:
            docs = self._load()
        return _sorted([d for d in docs.values() if predicate.matches(d)], newest_first)

    def _get_sync(self, record_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._load().get(record_id)

    def _delete_sync(self, record_id: str) -> bool:
        with self._lock:
            docs = self._load()
            if record_id not in docs:
                return False
            del docs[record_id]
            self._save(docs)
        return True

    def _delete_many_sync(self, predicate: ExpiryFilter) -> int:
        with self._lock:
            docs = self._load()
            kept = {rid: d for rid, d in docs.items() if not predicate.matches(d)}
            deleted = len(docs) - len(kept)
            if deleted:
                self._save(kept)
        return deleted

    async def insert(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        return await self._run("insert", self._insert_sync, doc)

    async def find(self, predicate: ExpiryFilter, newest_first: bool = True) -> List[Dict[str, Any]]:
        return await self._run("find", self._find_sync, predicate, newest_first)

    async def get(self, record_id: str) -> Optional[Dict[str, Any]]:
        return await self._run("get", self._get_sync, record_id)

    async def delete(self, record_id: str) -> bool:
        return await self._run("delete", self._delete_sync, record_id)

    async def delete_many(self, predicate: ExpiryFilter) -> int:
        return await self._run("delete_many", self._delete_many_sync, predicate)

    async def ping(self) -> bool:
        return os.access(self.data_dir, os.W_OK)


def build_record_store(settings) -> RecordStore:
    """Create the record store selected by STORE_BACKEND"""
    backend = settings.store_backend
    logger.info(f"Record store backend: {backend}")

    if backend == "memory":
        return InMemoryRecordStore()
    if backend == "mongo":
        from messboard.services.mongo_store import MongoRecordStore
        return MongoRecordStore.from_settings(settings)
    return JsonRecordStore(settings.data_dir)
