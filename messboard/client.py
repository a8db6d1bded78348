# FILE: messboard/client.py
"""
HTTP client for the board with a locally cached projection

The cache is always derived from the server: it is filled by refresh() and
patched by lifecycle events (created/deleted/swept). A swept event triggers a
full reload rather than guessing which records went away.
"""
import json
import logging
from typing import Any, Dict, Iterator, List, Optional

import httpx

logger = logging.getLogger(__name__)


class BoardClientError(Exception):
    """Non-success response from the board"""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"{status_code}: {message}")


class BoardClient:
    """Board API client"""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None
    ):
        self.base_url = base_url.rstrip("/")
        self._http = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)
        self._records: List[Dict[str, Any]] = []

    def close(self) -> None:
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    @property
    def records(self) -> List[Dict[str, Any]]:
        """Cached active records, newest first"""
        return list(self._records)

    def _check(self, response: httpx.Response) -> Any:
        if response.is_success:
            return response.json()
        try:
            message = response.json().get("error", response.text)
        except ValueError:
            message = response.text
        raise BoardClientError(response.status_code, message)

    def refresh(self) -> List[Dict[str, Any]]:
        """Full reload of active records"""
        self._records = self._check(self._http.get("/records"))
        logger.debug(f"Refreshed cache: {len(self._records)} records")
        return self.records

    def post(self, **fields: Any) -> Dict[str, Any]:
        """Create a record and put it at the front of the cache"""
        record = self._check(self._http.post("/records", json=fields))
        self._insert(record)
        return record

    def delete(self, record_id: str) -> None:
        self._check(self._http.delete(f"/records/{record_id}"))
        self._remove(record_id)

    def sweep(self) -> int:
        """Trigger a server-side sweep; reloads the cache if anything went"""
        deleted = self._check(self._http.delete("/records/expired"))["deletedCount"]
        if deleted:
            self.refresh()
        return deleted

    def upload(self, data: bytes, filename: str = "menu.jpg", content_type: str = "image/jpeg") -> Dict[str, Any]:
        """Upload an image; returns {url, id} for use as a record's image"""
        files = {"image": (filename, data, content_type)}
        return self._check(self._http.post("/upload", files=files))

    def _insert(self, record: Dict[str, Any]) -> None:
        if any(r["id"] == record["id"] for r in self._records):
            return
        self._records.insert(0, record)

    def _remove(self, record_id: str) -> None:
        self._records = [r for r in self._records if r["id"] != record_id]

    def apply_event(self, envelope: Dict[str, Any]) -> None:
        """Patch the cache from one lifecycle event envelope"""
        event = envelope.get("event")
        data = envelope.get("data") or {}

        if event == "created":
            self._insert(data)
        elif event == "deleted":
            self._remove(data.get("id"))
        elif event == "swept":
            if data.get("deletedCount", 0) > 0:
                self.refresh()
        else:
            logger.debug(f"Ignoring unknown event: {event}")

    def iter_events(self) -> Iterator[Dict[str, Any]]:
        """Envelopes from the server's SSE stream"""
        with self._http.stream("GET", "/events", timeout=None) as response:
            if not response.is_success:
                response.read()
                self._check(response)
            for line in response.iter_lines():
                if line.startswith("data:"):
                    try:
                        yield json.loads(line[len("data:"):].strip())
                    except ValueError:
                        logger.warning(f"Skipping malformed event line: {line!r}")

    def follow(self, max_events: Optional[int] = None) -> int:
        """Apply streamed events to the cache; returns how many were applied"""
        applied = 0
        for envelope in self.iter_events():
            self.apply_event(envelope)
            applied += 1
            if max_events is not None and applied >= max_events:
                break
        return applied
