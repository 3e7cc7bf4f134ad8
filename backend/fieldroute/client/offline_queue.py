"""Offline capture queue.

Service records captured without connectivity are kept in the local store
and replayed in queued order once the API is reachable again. An entry is
removed only after the server confirmed it; the entry id travels as
``client_entry_id`` so a replay the server already applied is acknowledged
rather than duplicated.
"""

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from fieldroute.client.offline_store import OfflineStore
from fieldroute.exceptions import RemoteUnavailable
from fieldroute.utils.logging import get_logger

logger = get_logger("client.offline_queue")

QUEUE_KEY = "capture_queue"
ATTEMPTS_KEY = "capture_queue_attempts"

Sender = Callable[[Dict[str, Any]], Awaitable[Any]]


@dataclass
class PhotoReminder:
    name: str
    size: Optional[int] = None
    type: Optional[str] = None


@dataclass
class QueueEntry:
    id: str
    queued_at: str
    record: Dict[str, Any]
    photos: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QueueEntry":
        return cls(**data)


@dataclass
class ReplayAttempts:
    """Failed replays of one entry, stored apart from the entry itself."""

    attempts: int = 0
    last_error: Optional[str] = None
    last_attempt_at: Optional[str] = None


@dataclass
class DrainResult:
    entry_id: str
    ok: bool
    error: Optional[str] = None
    # Photos the technician still has to upload for this record.
    photos: List[PhotoReminder] = field(default_factory=list)


class OfflineCaptureQueue:
    def __init__(self, store: OfflineStore):
        self.store = store
        self._draining = False

    def _entries(self) -> List[QueueEntry]:
        return [QueueEntry.from_dict(item) for item in self.store.get(QUEUE_KEY, [])]

    def _save(self, entries: List[QueueEntry]) -> None:
        self.store.set(QUEUE_KEY, [asdict(e) for e in entries])

    def enqueue(
        self,
        record: Dict[str, Any],
        photos: Optional[List[Dict[str, Any]]] = None,
        entry_id: Optional[str] = None,
    ) -> str:
        """Store a capture locally and return its entry id. No network access."""
        entry = QueueEntry(
            id=entry_id or str(uuid.uuid4()),
            queued_at=datetime.now(timezone.utc).isoformat(),
            record=dict(record),
            photos=[asdict(PhotoReminder(**p)) for p in (photos or [])],
        )
        entries = self._entries()
        if any(e.id == entry.id for e in entries):
            logger.info("capture_already_queued", entry_id=entry.id)
            return entry.id
        entries.append(entry)
        self._save(entries)
        logger.info("capture_queued", entry_id=entry.id, pending=len(entries))
        return entry.id

    def entries(self) -> List[QueueEntry]:
        return self._entries()

    def pending_count(self) -> int:
        return len(self.store.get(QUEUE_KEY, []))

    def attempts(self, entry_id: str) -> ReplayAttempts:
        return ReplayAttempts(**self.store.get(ATTEMPTS_KEY, {}).get(entry_id, {}))

    def clear(self) -> None:
        self.store.delete(QUEUE_KEY)
        self.store.delete(ATTEMPTS_KEY)
        logger.warning("capture_queue_cleared")

    async def drain(self, send: Sender) -> List[DrainResult]:
        """Replay queued captures through ``send`` in queued order.

        Stops at the first ``RemoteUnavailable``; entries after it are left
        untouched. Other failures are counted beside the entry and the drain
        moves on.
        """
        if self._draining:
            logger.info("capture_drain_already_running")
            return []
        self._draining = True
        try:
            return await self._drain(send)
        finally:
            self._draining = False

    async def _drain(self, send: Sender) -> List[DrainResult]:
        results: List[DrainResult] = []
        for entry in self._entries():
            payload = dict(entry.record, client_entry_id=entry.id)
            try:
                await send(payload)
            except Exception as e:
                tries = self._mark_failed(entry.id, str(e))
                results.append(DrainResult(entry_id=entry.id, ok=False, error=str(e)))
                logger.warning(
                    "capture_replay_failed",
                    entry_id=entry.id,
                    attempts=tries.attempts,
                    error=str(e),
                )
                if isinstance(e, RemoteUnavailable):
                    break
                continue

            self._remove(entry.id)
            results.append(
                DrainResult(
                    entry_id=entry.id,
                    ok=True,
                    photos=[PhotoReminder(**p) for p in entry.photos],
                )
            )
            logger.info("capture_replayed", entry_id=entry.id)

        logger.info(
            "capture_drain_finished",
            synced=sum(1 for r in results if r.ok),
            failed=sum(1 for r in results if not r.ok),
            pending=self.pending_count(),
        )
        return results

    # Entries are re-read before each update so an enqueue during a drain is kept.
    def _remove(self, entry_id: str) -> None:
        self._save([e for e in self._entries() if e.id != entry_id])
        bookkeeping = self.store.get(ATTEMPTS_KEY, {})
        if bookkeeping.pop(entry_id, None) is not None:
            self.store.set(ATTEMPTS_KEY, bookkeeping)

    def _mark_failed(self, entry_id: str, error: str) -> ReplayAttempts:
        bookkeeping = self.store.get(ATTEMPTS_KEY, {})
        tries = ReplayAttempts(**bookkeeping.get(entry_id, {}))
        tries.attempts += 1
        tries.last_error = error
        tries.last_attempt_at = datetime.now(timezone.utc).isoformat()
        bookkeeping[entry_id] = asdict(tries)
        self.store.set(ATTEMPTS_KEY, bookkeeping)
        return tries
