import json

import pytest

from fieldroute.client.offline_queue import OfflineCaptureQueue
from fieldroute.client.offline_store import OfflineStore
from fieldroute.exceptions import RemoteUnavailable, ValidationFailed

RECORD = {"appointment_id": 7, "service_date": "2024-06-01", "service_type": "Pool cleaning"}


def test_queue_survives_restart(offline_path):
    first = OfflineCaptureQueue(OfflineStore(offline_path))
    entry_id = first.enqueue(RECORD, photos=[{"name": "filter.jpg", "size": 2048, "type": "image/jpeg"}])

    reopened = OfflineCaptureQueue(OfflineStore(offline_path))

    [entry] = reopened.entries()
    assert entry.id == entry_id
    assert entry.record == RECORD
    assert entry.photos[0]["name"] == "filter.jpg"
    assert entry.attempts == 0


def test_enqueue_same_id_twice_keeps_one_entry(offline_path):
    queue = OfflineCaptureQueue(OfflineStore(offline_path))
    queue.enqueue(RECORD, entry_id="entry-1")
    queue.enqueue(RECORD, entry_id="entry-1")
    assert queue.pending_count() == 1


def test_corrupt_store_is_set_aside(offline_path):
    offline_path.write_text("{not json")
    store = OfflineStore(offline_path)

    assert OfflineCaptureQueue(store).pending_count() == 0
    assert offline_path.with_name(offline_path.name + ".corrupt").exists()


def test_store_with_invalid_utf8_is_set_aside(offline_path):
    offline_path.write_bytes(b'{"capture_queue": "\xff\xfe"}')
    queue = OfflineCaptureQueue(OfflineStore(offline_path))

    assert queue.pending_count() == 0
    assert offline_path.with_name(offline_path.name + ".corrupt").exists()
    assert queue.enqueue(RECORD)
    assert queue.pending_count() == 1


@pytest.mark.asyncio
async def test_successful_drain_removes_entries_in_order(offline_path):
    queue = OfflineCaptureQueue(OfflineStore(offline_path))
    first = queue.enqueue(dict(RECORD, appointment_id=1), photos=[{"name": "a.jpg"}])
    second = queue.enqueue(dict(RECORD, appointment_id=2))
    sent = []

    async def send(payload):
        sent.append(payload)
        return payload

    results = await queue.drain(send)

    assert [p["client_entry_id"] for p in sent] == [first, second]
    assert [p["appointment_id"] for p in sent] == [1, 2]
    assert all(r.ok for r in results)
    assert [p.name for p in results[0].photos] == ["a.jpg"]
    assert queue.pending_count() == 0


@pytest.mark.asyncio
async def test_failed_replay_keeps_entry_unchanged(offline_path):
    store = OfflineStore(offline_path)
    queue = OfflineCaptureQueue(store)
    bad = queue.enqueue(dict(RECORD, appointment_id=1))
    good = queue.enqueue(dict(RECORD, appointment_id=2))
    stored_before = json.dumps(store.get("capture_queue")[0], sort_keys=True)

    async def send(payload):
        if payload["appointment_id"] == 1:
            raise ValidationFailed("Appointment 1 needs a date and time")
        return payload

    results = await queue.drain(send)
    await queue.drain(send)

    assert [(r.entry_id, r.ok) for r in results] == [(bad, False), (good, True)]
    [stored] = store.get("capture_queue")
    assert json.dumps(stored, sort_keys=True) == stored_before
    tries = queue.attempts(bad)
    assert tries.attempts == 2
    assert "needs a date" in tries.last_error
    assert tries.last_attempt_at is not None
    assert queue.attempts(good).attempts == 0


@pytest.mark.asyncio
async def test_drain_stops_when_remote_is_unavailable(offline_path):
    queue = OfflineCaptureQueue(OfflineStore(offline_path))
    queue.enqueue(dict(RECORD, appointment_id=1))
    queue.enqueue(dict(RECORD, appointment_id=2))
    calls = []

    async def send(payload):
        calls.append(payload["appointment_id"])
        raise RemoteUnavailable("connection refused")

    results = await queue.drain(send)

    assert calls == [1]
    assert len(results) == 1
    attempts = [e.attempts for e in queue.entries()]
    assert attempts == [1, 0]


@pytest.mark.asyncio
async def test_concurrent_drain_is_a_no_op(offline_path):
    queue = OfflineCaptureQueue(OfflineStore(offline_path))
    queue.enqueue(RECORD)
    nested = []

    async def send(payload):
        nested.append(await queue.drain(send))
        return payload

    results = await queue.drain(send)

    assert nested == [[]]
    assert len(results) == 1
    assert queue.pending_count() == 0


def test_store_writes_are_whole_file(offline_path):
    store = OfflineStore(offline_path)
    store.set("a", 1)
    store.set("b", {"x": [1, 2]})
    store.delete("a")

    assert json.loads(offline_path.read_text()) == {"b": {"x": [1, 2]}}
    assert not list(offline_path.parent.glob("*.tmp"))
