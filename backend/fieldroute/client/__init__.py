"""Technician device side: API client, itinerary cache and capture queue."""

from fieldroute.client.field_client import FieldApiError, FieldClient, SubmitOutcome
from fieldroute.client.offline_queue import (
    DrainResult,
    OfflineCaptureQueue,
    PhotoReminder,
    QueueEntry,
    ReplayAttempts,
)
from fieldroute.client.offline_store import OfflineStore

__all__ = [
    "FieldApiError",
    "FieldClient",
    "SubmitOutcome",
    "DrainResult",
    "OfflineCaptureQueue",
    "PhotoReminder",
    "QueueEntry",
    "ReplayAttempts",
    "OfflineStore",
]
