# FILE: tests/test_notifier.py

import asyncio

import pytest

from messboard.services.notifier import BroadcastHub, make_envelope


def test_envelope_shape():
    envelope = make_envelope("deleted", {"id": "abc"})
    assert envelope["event"] == "deleted"
    assert envelope["data"] == {"id": "abc"}
    assert isinstance(envelope["ts"], int)


@pytest.mark.asyncio
async def test_publish_fans_out_to_every_subscriber():
    hub = BroadcastHub()
    first, second = hub.subscribe(), hub.subscribe()

    hub.publish("created", {"id": "1"})

    for sub in (first, second):
        envelope = await asyncio.wait_for(sub.get(), timeout=1)
        assert envelope["event"] == "created"
        assert envelope["data"] == {"id": "1"}
    assert hub.published == 1


@pytest.mark.asyncio
async def test_publish_without_subscribers_is_noop():
    hub = BroadcastHub()
    hub.publish("swept", {"deletedCount": 2})
    assert hub.subscriber_count == 0


@pytest.mark.asyncio
async def test_full_queue_drops_for_slow_subscriber_only():
    hub = BroadcastHub(queue_size=1)
    slow, fast = hub.subscribe(), hub.subscribe()

    hub.publish("created", {"id": "1"})
    assert (await fast.get())["data"] == {"id": "1"}
    hub.publish("created", {"id": "2"})

    assert slow.dropped == 1
    assert fast.dropped == 0
    assert (await slow.get())["data"] == {"id": "1"}
    assert (await fast.get())["data"] == {"id": "2"}


@pytest.mark.asyncio
async def test_unsubscribed_feed_gets_nothing():
    hub = BroadcastHub()
    sub = hub.subscribe()
    sub.close()

    hub.publish("created", {"id": "1"})

    assert hub.subscriber_count == 0
    assert sub.queue.empty()


@pytest.mark.asyncio
async def test_close_ends_iteration():
    hub = BroadcastHub(queue_size=1)
    sub = hub.subscribe()
    hub.publish("created", {"id": "1"})

    hub.close()

    received = [envelope async for envelope in sub]
    assert received == []
    assert sub.closed
    assert await sub.get() is None
    assert hub.subscriber_count == 0
