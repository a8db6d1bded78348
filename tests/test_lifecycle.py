# FILE: tests/test_lifecycle.py

import pytest

from conftest import T0, TTL, BrokenStore, FakeBlobStore, RecordingChannel
from messboard.config import reload_settings
from messboard.exceptions import NotFoundError, StoreUnavailableError, ValidationError
from messboard.services import telemetry
from messboard.services.expiry import MS_PER_HOUR, MS_PER_MINUTE
from messboard.services.lifecycle import LifecycleEngine
from messboard.services.record_store import ExpiryFilter


@pytest.mark.asyncio
async def test_create_stamps_timestamps(engine, sample_menu, channel):
    """createdAt comes from the clock and expiresAt = createdAt + TTL"""
    record = await engine.create(sample_menu)

    assert record.created_at == T0
    assert record.expires_at == T0 + TTL
    assert record.id
    assert record.menu_type.value == "veg"
    assert record.remaining.text == "5h 0m left"

    assert channel.names() == ["created"]
    name, payload = channel.events[0]
    assert payload["id"] == record.id
    assert payload["createdAt"] == T0
    assert payload["expiresAt"] == T0 + TTL
    assert payload["remaining"] == {"text": "5h 0m left", "urgent": False}


@pytest.mark.asyncio
async def test_create_uses_explicit_now(engine, sample_menu):
    record = await engine.create(sample_menu, now=42)
    assert record.created_at == 42
    assert record.expires_at == 42 + TTL


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["name", "location", "phone", "menuText"])
async def test_create_requires_fields(engine, sample_menu, store, channel, field):
    sample_menu[field] = "   "
    with pytest.raises(ValidationError) as exc_info:
        await engine.create(sample_menu)

    assert field in exc_info.value.message
    assert len(store) == 0
    assert channel.events == []


@pytest.mark.asyncio
async def test_create_rejects_unknown_menu_type(engine, sample_menu):
    sample_menu["menuType"] = "vegan"
    with pytest.raises(ValidationError):
        await engine.create(sample_menu)


@pytest.mark.asyncio
async def test_create_normalises_optional_fields(engine, sample_menu):
    """Empty optional strings are stored as null; date defaults to the creation day"""
    sample_menu.update({"menuType": "", "price": "", "date": None})
    record = await engine.create(sample_menu)

    assert record.menu_type is None
    assert record.price is None
    assert record.date == "2025-01-01"


@pytest.mark.asyncio
async def test_create_accepts_legacy_public_id(engine, sample_menu):
    sample_menu["image"] = {"url": "https://img.example/menu.jpg", "publicId": "pune-mess-menus/abc"}
    record = await engine.create(sample_menu)
    assert record.image.id == "pune-mess-menus/abc"


@pytest.mark.asyncio
async def test_create_propagates_store_failure(blobs, channel, clock, sample_menu):
    engine = LifecycleEngine(BrokenStore(), blobs, channel, clock=clock, ttl_ms=TTL)
    with pytest.raises(StoreUnavailableError):
        await engine.create(sample_menu)
    assert channel.events == []


@pytest.mark.asyncio
async def test_publish_failure_does_not_fail_create(store, blobs, clock, sample_menu):
    engine = LifecycleEngine(store, blobs, RecordingChannel(fail=True), clock=clock, ttl_ms=TTL)
    record = await engine.create(sample_menu)
    assert await store.get(record.id) is not None


@pytest.mark.asyncio
async def test_scenario_a_remaining_text(engine, sample_menu, clock):
    record = await engine.create(sample_menu)

    clock.advance(hours=4)
    [listed] = await engine.list_active()
    assert listed.id == record.id
    assert listed.remaining.text == "1h 0m left"
    assert listed.remaining.urgent is False

    clock.advance(minutes=59)
    [listed] = await engine.list_active()
    assert listed.remaining.text == "1m left"
    assert listed.remaining.urgent is True


@pytest.mark.asyncio
async def test_scenario_b_boundary_is_expired(engine, sample_menu):
    await engine.create(sample_menu, now=T0)

    assert len(await engine.list_active(now=T0 + TTL - 1)) == 1
    assert await engine.list_active(now=T0 + TTL) == []


@pytest.mark.asyncio
async def test_scenario_c_sweep_removes_only_expired(engine, sample_menu, store, channel):
    first = await engine.create(sample_menu, now=T0)
    second = await engine.create(dict(sample_menu, name="Second Mess"), now=T0 + MS_PER_HOUR)

    deleted = await engine.sweep(now=T0 + 5 * MS_PER_HOUR)

    assert deleted == 1
    assert await store.get(first.id) is None
    assert await store.get(second.id) is not None

    active = await engine.list_active(now=T0 + 5 * MS_PER_HOUR)
    assert [r.id for r in active] == [second.id]
    assert channel.events[-1] == ("swept", {"deletedCount": 1})


@pytest.mark.asyncio
async def test_scenario_d_delete_missing(engine, sample_menu, store, channel):
    await engine.create(sample_menu)
    before = len(store)

    with pytest.raises(NotFoundError):
        await engine.delete_one("does-not-exist")

    assert len(store) == before
    assert channel.names() == ["created"]


@pytest.mark.asyncio
async def test_list_active_newest_first(engine, sample_menu):
    for i in range(3):
        await engine.create(dict(sample_menu, name=f"Mess {i}"), now=T0 + i * MS_PER_MINUTE)

    names = [r.name for r in await engine.list_active(now=T0 + 10 * MS_PER_MINUTE)]
    assert names == ["Mess 2", "Mess 1", "Mess 0"]


@pytest.mark.asyncio
async def test_list_active_filters(engine, sample_menu):
    await engine.create(sample_menu)
    await engine.create(dict(sample_menu, name="Shivneri Non-Veg", menuType="non-veg",
                             menuText="Chicken thali"))
    await engine.create(dict(sample_menu, name="Student Tiffin", menuType="budget",
                             location="Kothrud"))

    assert [r.name for r in await engine.list_active(menu_type="non-veg")] == ["Shivneri Non-Veg"]
    assert [r.name for r in await engine.list_active(query="KOTHRUD")] == ["Student Tiffin"]
    assert [r.name for r in await engine.list_active(query="chicken")] == ["Shivneri Non-Veg"]
    assert await engine.list_active(menu_type="veg", query="chicken") == []


@pytest.mark.asyncio
async def test_list_active_degrades_to_empty(blobs, channel, clock):
    engine = LifecycleEngine(BrokenStore(), blobs, channel, clock=clock, ttl_ms=TTL)
    assert await engine.list_active() == []


@pytest.mark.asyncio
async def test_list_active_does_not_mutate(engine, sample_menu, store, clock):
    await engine.create(sample_menu)
    clock.advance(hours=6)

    assert await engine.list_active() == []
    assert len(store) == 1


@pytest.mark.asyncio
async def test_delete_one_with_image(engine, sample_menu, blobs, store, channel):
    blob = await blobs.store(b"jpeg-bytes")
    record = await engine.create(dict(sample_menu, image=blob.model_dump()))

    await engine.delete_one(record.id)

    assert blobs.deleted == [blob.id]
    assert await store.get(record.id) is None
    assert channel.events[-1] == ("deleted", {"id": record.id})


@pytest.mark.asyncio
async def test_delete_one_without_image_skips_blob_store(engine, sample_menu, blobs):
    record = await engine.create(sample_menu)
    await engine.delete_one(record.id)
    assert blobs.deleted == []


@pytest.mark.asyncio
async def test_delete_one_image_without_blob_id(engine, sample_menu, blobs, store):
    record = await engine.create(dict(sample_menu, image={"url": "https://img.example/a.jpg"}))
    await engine.delete_one(record.id)

    assert blobs.deleted == []
    assert await store.get(record.id) is None


@pytest.mark.asyncio
async def test_delete_one_survives_blob_failure(store, channel, clock, sample_menu):
    blobs = FakeBlobStore(fail_delete=True)
    engine = LifecycleEngine(store, blobs, channel, clock=clock, ttl_ms=TTL)
    record = await engine.create(dict(sample_menu, image={"url": "/media/x", "id": "x"}))

    await engine.delete_one(record.id)

    assert blobs.deleted == ["x"]
    assert await store.get(record.id) is None
    assert channel.names() == ["created", "deleted"]


@pytest.mark.asyncio
async def test_sweep_is_idempotent(engine, sample_menu, channel):
    await engine.create(sample_menu, now=T0)
    now = T0 + TTL

    assert await engine.sweep(now=now) == 1
    assert await engine.sweep(now=now) == 0
    assert channel.names() == ["created", "swept"]


@pytest.mark.asyncio
async def test_sweep_with_nothing_expired_emits_nothing(engine, sample_menu, channel):
    await engine.create(sample_menu, now=T0)
    assert await engine.sweep(now=T0 + TTL - 1) == 0
    assert channel.names() == ["created"]


@pytest.mark.asyncio
async def test_sweep_deletes_blobs_best_effort(store, channel, clock, sample_menu):
    blobs = FakeBlobStore(fail_delete=True)
    engine = LifecycleEngine(store, blobs, channel, clock=clock, ttl_ms=TTL)
    await engine.create(dict(sample_menu, image={"url": "/media/a", "id": "a"}), now=T0)
    await engine.create(dict(sample_menu, image={"url": "/media/b", "id": "b"}), now=T0 + 1)
    await engine.create(sample_menu, now=T0 + 2)

    deleted = await engine.sweep(now=T0 + TTL + 2)

    assert deleted == 3
    assert sorted(blobs.deleted) == ["a", "b"]
    assert len(store) == 0


@pytest.mark.asyncio
async def test_sweep_exact_expired_set(engine, sample_menu, store):
    """Sweep removes exactly the records with expiresAt <= now"""
    created = []
    for offset in range(0, 10):
        created.append(await engine.create(sample_menu, now=T0 + offset * 10 * MS_PER_MINUTE))

    now = T0 + TTL + 45 * MS_PER_MINUTE
    expected_gone = {r.id for r in created if r.expires_at <= now}
    deleted = await engine.sweep(now=now)

    assert deleted == len(expected_gone)
    remaining_ids = {d["id"] for d in await store.find(ExpiryFilter())}
    assert remaining_ids == {r.id for r in created} - expected_gone


@pytest.mark.asyncio
async def test_sweep_propagates_store_failure(blobs, channel, clock):
    engine = LifecycleEngine(BrokenStore(), blobs, channel, clock=clock, ttl_ms=TTL)
    with pytest.raises(StoreUnavailableError):
        await engine.sweep()


@pytest.mark.asyncio
async def test_create_rejects_badly_typed_fields(engine, sample_menu, store):
    sample_menu["name"] = 123
    with pytest.raises(ValidationError) as exc_info:
        await engine.create(sample_menu)

    assert "name" in exc_info.value.message
    assert len(store) == 0


def _legacy_doc(name, created_at, image):
    """Document in the shape older deployments wrote"""
    return {
        "name": name,
        "location": "Shivajinagar",
        "phone": "9000000000",
        "menuType": "veg",
        "menuText": "Poha, chai",
        "price": None,
        "image": image,
        "date": "2025-01-01",
        "createdAt": created_at,
        "expiresAt": created_at + TTL,
    }


@pytest.mark.asyncio
async def test_legacy_empty_image_is_treated_as_no_image(engine, store, blobs):
    await store.insert(_legacy_doc("Legacy Mess", T0, {"url": None, "publicId": None}))

    [listed] = await engine.list_active(now=T0 + 1)
    assert listed.name == "Legacy Mess"
    assert listed.image is None

    assert await engine.sweep(now=T0 + TTL) == 1
    assert blobs.deleted == []
    assert len(store) == 0


@pytest.mark.asyncio
async def test_malformed_documents_do_not_block_sweep_or_listing(engine, sample_menu, store):
    good = await engine.create(sample_menu, now=T0 + MS_PER_HOUR)
    broken = _legacy_doc("Broken", T0, {"url": None, "publicId": None})
    del broken["name"]
    await store.insert(broken)

    # The broken record is active here but must not hide the good one
    listed = await engine.list_active(now=T0 + MS_PER_HOUR)
    assert [r.id for r in listed] == [good.id]

    assert await engine.sweep(now=T0 + TTL) == 1
    assert [d["id"] for d in await store.find(ExpiryFilter())] == [good.id]


@pytest.fixture
def unwritable_telemetry(tmp_path, monkeypatch):
    """Telemetry enabled, with its directory path occupied by a plain file"""
    (tmp_path / "telemetry").write_text("not a directory", encoding="utf-8")
    monkeypatch.setenv("TELEMETRY_ENABLED", "true")
    monkeypatch.setenv("LOGS_DIR", str(tmp_path))
    reload_settings()
    telemetry.reset_telemetry()
    yield
    telemetry.reset_telemetry()
    monkeypatch.undo()
    reload_settings()


@pytest.mark.asyncio
async def test_telemetry_failure_does_not_fail_writes(unwritable_telemetry, engine, sample_menu, store, channel):
    record = await engine.create(sample_menu, now=T0)
    assert len(store) == 1

    await engine.delete_one(record.id)
    await engine.create(sample_menu, now=T0)
    assert await engine.sweep(now=T0 + TTL) == 1

    assert channel.names() == ["created", "deleted", "created", "swept"]
