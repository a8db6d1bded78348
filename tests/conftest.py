# FILE: tests/conftest.py

import os
import sys
import tempfile
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Keep test runs away from ./data and ./logs
_scratch = Path(tempfile.mkdtemp(prefix="messboard-tests-"))
os.environ["DATA_DIR"] = str(_scratch / "data")
os.environ["MEDIA_DIR"] = str(_scratch / "data" / "media")
os.environ["LOGS_DIR"] = str(_scratch / "logs")
os.environ["STORE_BACKEND"] = "memory"
os.environ["TELEMETRY_ENABLED"] = "false"
os.environ["SWEEP_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient

from messboard.app import create_app
from messboard.config import Settings, get_settings
from messboard.exceptions import BlobStoreError, StoreUnavailableError
from messboard.services.blob_store import BlobStore, StoredBlob
from messboard.services.clock import ManualClock
from messboard.services.expiry import MS_PER_HOUR
from messboard.services.lifecycle import LifecycleEngine
from messboard.services.notifier import NotificationChannel
from messboard.services.record_store import InMemoryRecordStore

# Scenario epoch: 2025-01-01T00:00:00Z
T0 = 1_735_689_600_000
TTL = 5 * MS_PER_HOUR


class RecordingChannel(NotificationChannel):
    """Notification channel that remembers what was published"""

    def __init__(self, fail: bool = False):
        self.events = []
        self.fail = fail

    def publish(self, event, payload):
        if self.fail:
            raise RuntimeError("channel down")
        self.events.append((event, payload))

    def names(self):
        return [name for name, _ in self.events]


class FakeBlobStore(BlobStore):
    """Blob store that records calls and can be told to fail deletes"""

    def __init__(self, fail_delete: bool = False):
        self.stored = {}
        self.deleted = []
        self.fail_delete = fail_delete

    async def store(self, data, filename=None, content_type=None):
        blob_id = f"blob{len(self.stored) + 1}"
        self.stored[blob_id] = data
        return StoredBlob(url=f"/media/{blob_id}", id=blob_id)

    async def delete(self, blob_id):
        self.deleted.append(blob_id)
        if self.fail_delete:
            raise BlobStoreError("blob store down", {"blob_id": blob_id})
        self.stored.pop(blob_id, None)


class BrokenStore(InMemoryRecordStore):
    """Store whose every call fails as if the database were unreachable"""

    async def insert(self, doc):
        raise StoreUnavailableError("Record store insert failed")

    async def find(self, predicate, newest_first=True):
        raise StoreUnavailableError("Record store find failed")

    async def get(self, record_id):
        raise StoreUnavailableError("Record store get failed")

    async def delete_many(self, predicate):
        raise StoreUnavailableError("Record store delete_many failed")

    async def ping(self):
        return False


@pytest.fixture(scope="session")
def settings():
    """Provide settings for tests"""
    return get_settings()


@pytest.fixture
def clock():
    return ManualClock(T0)


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def blobs():
    return FakeBlobStore()


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def engine(store, blobs, channel, clock):
    return LifecycleEngine(store, blobs, channel, clock=clock, ttl_ms=TTL)


@pytest.fixture
def sample_menu():
    """Sample submission as the board's form sends it"""
    return {
        "name": "Annapurna Mess",
        "location": "FC Road, Pune",
        "phone": "9876543210",
        "menuType": "veg",
        "menuText": "Dal, rice, 3 chapati, sabzi, salad",
        "price": "₹50-80 per meal",
        "date": "2025-01-01",
    }


@pytest.fixture
def app_settings(tmp_path):
    return Settings(
        DATA_DIR=str(tmp_path / "data"),
        MEDIA_DIR=str(tmp_path / "media"),
        LOGS_DIR=str(tmp_path / "logs"),
        STORE_BACKEND="memory",
        SWEEP_ENABLED=False,
        TELEMETRY_ENABLED=False,
    )


@pytest.fixture
def app(app_settings, store, blobs, clock):
    return create_app(app_settings, store=store, blob_store=blobs, clock=clock)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
