# FILE: messboard/services/lifecycle.py
"""
Lifecycle engine for expiring menu records

A record is active while now < expiresAt and expired otherwise; there is no
stored state beyond the two timestamps. Records leave the store exactly once,
through delete_one or sweep. Reads degrade to an empty list on store failure;
writes propagate their errors. Blob deletion and notification are best effort
and never fail the record operation.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError as ModelValidationError
from pydantic.alias_generators import to_camel

from messboard.exceptions import NotFoundError, ValidationError
from messboard.models.records import DecoratedRecord, MenuType, Record, RecordCreate
from messboard.services.blob_store import BlobStore
from messboard.services.clock import Clock, SystemClock
from messboard.services.expiry import DEFAULT_TTL_MS, compute_expiration, remaining
from messboard.services.notifier import (
    EVENT_CREATED, EVENT_DELETED, EVENT_SWEPT, NotificationChannel
)
from messboard.services.record_store import ExpiryFilter, RecordStore
from messboard.services.telemetry import record_event

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("name", "location", "phone", "menu_text")


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class LifecycleEngine:
    """Create, list, delete and sweep expiring records"""

    def __init__(
        self,
        store: RecordStore,
        blob_store: BlobStore,
        notifier: NotificationChannel,
        clock: Optional[Clock] = None,
        ttl_ms: int = DEFAULT_TTL_MS
    ):
        self.store = store
        self.blob_store = blob_store
        self.notifier = notifier
        self.clock = clock or SystemClock()
        self.ttl_ms = ttl_ms

    def _now(self, now: Optional[int]) -> int:
        return self.clock.now_ms() if now is None else now

    def decorate(self, record: Record, now: int) -> DecoratedRecord:
        """Attach remaining-time text to a record"""
        return DecoratedRecord(
            **record.model_dump(),
            remaining=remaining(now, record.expires_at)
        )

    def _build(self, data: RecordCreate, now: int) -> Dict[str, Any]:
        missing = [
            field for field in REQUIRED_FIELDS
            if not _clean(getattr(data, field))
        ]
        if missing:
            names = [to_camel(f) for f in missing]
            raise ValidationError(
                f"Missing required field(s): {', '.join(names)}",
                {"fields": names}
            )

        menu_type = _clean(data.menu_type)
        if menu_type is not None:
            try:
                menu_type = MenuType(menu_type.lower()).value
            except ValueError:
                allowed = ", ".join(m.value for m in MenuType)
                raise ValidationError(f"menuType must be one of: {allowed}", {"menuType": menu_type})

        image = None
        if data.image is not None and (_clean(data.image.url) or _clean(data.image.id)):
            image = {"url": data.image.url, "id": _clean(data.image.id)}

        date_label = _clean(data.date)
        if date_label is None:
            date_label = datetime.fromtimestamp(now / 1000, tz=timezone.utc).date().isoformat()

        return {
            "name": _clean(data.name),
            "location": _clean(data.location),
            "phone": _clean(data.phone),
            "menuType": menu_type,
            "menuText": _clean(data.menu_text),
            "price": _clean(data.price),
            "image": image,
            "date": date_label,
            "createdAt": now,
            "expiresAt": compute_expiration(now, self.ttl_ms),
        }

    def _parse(self, doc: Dict[str, Any]) -> Optional[Record]:
        """Stored document -> Record, or None if it does not conform"""
        try:
            return Record.model_validate(doc)
        except ModelValidationError as e:
            logger.warning(f"Skipping malformed record {doc.get('id')}: {e.error_count()} validation error(s)")
            return None

    def _publish(self, event: str, payload: Dict[str, Any]) -> None:
        try:
            self.notifier.publish(event, payload)
        except Exception as e:
            logger.warning(f"Failed to publish '{event}' event: {e}")

    async def _delete_blob(self, record: Record) -> bool:
        """Best-effort image removal; True when a delete was attempted and succeeded"""
        if record.image is None or not record.image.id:
            return False
        try:
            await self.blob_store.delete(record.image.id)
            return True
        except Exception as e:
            logger.error(f"Error deleting image {record.image.id} for record {record.id}: {e}")
            return False

    async def create(self, data: Union[RecordCreate, Dict[str, Any]], now: Optional[int] = None) -> DecoratedRecord:
        """Validate, stamp and persist a new record; publishes 'created'"""
        if not isinstance(data, RecordCreate):
            try:
                data = RecordCreate.model_validate(data)
            except ModelValidationError as e:
                names = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
                raise ValidationError(
                    f"Invalid field(s): {', '.join(names) or 'body'}",
                    {"fields": names}
                ) from e
        now = self._now(now)

        doc = self._build(data, now)
        stored = await self.store.insert(doc)
        record = Record.model_validate(stored)

        decorated = self.decorate(record, now)
        logger.info(f"Created record {record.id} ({record.name}), expires at {record.expires_at}")
        self._publish(EVENT_CREATED, decorated.model_dump(by_alias=True, mode="json"))
        record_event(EVENT_CREATED, record_id=record.id, expires_at=record.expires_at)
        return decorated

    async def list_active(
        self,
        now: Optional[int] = None,
        menu_type: Optional[str] = None,
        query: Optional[str] = None
    ) -> List[DecoratedRecord]:
        """Active records, newest first; empty list if the store fails"""
        now = self._now(now)
        try:
            docs = await self.store.find(ExpiryFilter.active_at(now), newest_first=True)
        except Exception as e:
            logger.error(f"Error fetching active records: {e}")
            return []

        records = [r for r in (self._parse(d) for d in docs) if r is not None]

        if menu_type:
            wanted = menu_type.strip().lower()
            records = [r for r in records if r.menu_type is not None and r.menu_type.value == wanted]
        if query:
            needle = query.strip().lower()
            records = [
                r for r in records
                if needle in r.name.lower()
                or needle in r.location.lower()
                or needle in r.menu_text.lower()
            ]

        return [self.decorate(r, now) for r in records]

    async def delete_one(self, record_id: str) -> None:
        """Delete a single record and its image; publishes 'deleted'"""
        doc = await self.store.get(record_id)
        if doc is None:
            raise NotFoundError("Record not found", {"id": record_id})

        record = self._parse(doc)
        if record is not None:
            await self._delete_blob(record)

        if not await self.store.delete(record_id):
            raise NotFoundError("Record not found", {"id": record_id})

        logger.info(f"Deleted record {record_id}")
        self._publish(EVENT_DELETED, {"id": record_id})
        record_event(EVENT_DELETED, record_id=record_id)

    async def sweep(self, now: Optional[int] = None) -> int:
        """
        Purge every record with expiresAt <= now.

        Images go first, one best-effort delete each; the records are then
        removed with a single batch delete. Publishes 'swept' only when
        something was deleted.
        """
        now = self._now(now)
        predicate = ExpiryFilter.expired_at(now)

        expired = await self.store.find(predicate, newest_first=False)
        for doc in expired:
            record = self._parse(doc)
            if record is not None:
                await self._delete_blob(record)

        deleted_count = await self.store.delete_many(predicate)

        if deleted_count > 0:
            logger.info(f"Swept {deleted_count} expired record(s)")
            self._publish(EVENT_SWEPT, {"deletedCount": deleted_count})
            record_event(EVENT_SWEPT, deleted_count=deleted_count)
        else:
            logger.debug("Sweep found nothing to delete")

        return deleted_count
