"""HTTP client used on the technician device.

Reads fall back to the local itinerary cache and capture submissions fall
back to the offline queue whenever the API cannot be reached.
"""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx

from fieldroute.client.offline_queue import DrainResult, OfflineCaptureQueue
from fieldroute.client.offline_store import OfflineStore
from fieldroute.config import settings
from fieldroute.exceptions import RemoteUnavailable, SchedulingError
from fieldroute.schemas.route import ItineraryResponse
from fieldroute.schemas.service_record import ServiceRecordCreate, ServiceRecordIntakeResponse
from fieldroute.utils.logging import get_logger
from fieldroute.utils.utils import business_today

logger = get_logger("client.field_client")

UNAVAILABLE_STATUSES = frozenset({502, 503, 504})


class FieldApiError(SchedulingError):
    """Error response from the API that is not a connectivity problem."""

    def __init__(self, status_code: int, code: str, detail: str, body: Optional[Dict[str, Any]] = None):
        super().__init__(detail)
        self.status_code = status_code
        self.code = code
        self.body = body or {}


@dataclass
class SubmitOutcome:
    entry_id: str
    queued: bool
    record: Optional[ServiceRecordIntakeResponse] = None
    photos: List[Dict[str, Any]] = field(default_factory=list)


def itinerary_cache_key(technician_id: int, on_date: date) -> str:
    return f"itinerary:{technician_id}:{on_date.isoformat()}"


class FieldClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        store: Optional[OfflineStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._http = httpx.AsyncClient(
            base_url=base_url or settings.field_api_base_url,
            headers=headers,
            timeout=settings.http_timeout_seconds,
            transport=transport,
        )
        self.store = store or OfflineStore(settings.offline_store_path)
        self.queue = OfflineCaptureQueue(self.store)

    async def __aenter__(self) -> "FieldClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    def today(self) -> date:
        return business_today()

    def tomorrow(self) -> date:
        return self.today() + timedelta(days=1)

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = await self._http.request(method, url, **kwargs)
        except httpx.TransportError as e:
            raise RemoteUnavailable(f"{method} {url} failed: {e}") from e

        if resp.status_code in UNAVAILABLE_STATUSES:
            raise RemoteUnavailable(f"{method} {url} returned {resp.status_code}")
        if resp.status_code >= 400:
            try:
                body = resp.json()
            except ValueError:
                body = {}
            if not isinstance(body, dict):
                body = {}
            raise FieldApiError(
                resp.status_code,
                body.get("error", "http_error"),
                str(body.get("detail", resp.text)),
                body,
            )
        return resp

    async def login(self, email: str, password: str) -> str:
        resp = await self._request("POST", "/auth/login", json={"email": email, "password": password})
        token = resp.json()["access_token"]
        self._http.headers["Authorization"] = f"Bearer {token}"
        return token

    async def get_itinerary(self, technician_id: int, on_date: Optional[date] = None) -> ItineraryResponse:
        """Fetch the itinerary, falling back to the last cached copy when offline."""
        on_date = on_date or self.today()
        key = itinerary_cache_key(technician_id, on_date)
        try:
            resp = await self._request(
                "GET",
                f"/technicians/{technician_id}/itinerary",
                params={"date": on_date.isoformat()},
            )
        except RemoteUnavailable:
            cached = self.store.get(key)
            if cached is None:
                raise
            logger.info("itinerary_served_from_cache", technician_id=technician_id, date=on_date.isoformat())
            itinerary = ItineraryResponse.model_validate(cached["itinerary"])
            return itinerary.model_copy(
                update={"source": "cache", "cached_at": datetime.fromisoformat(cached["cached_at"])}
            )

        itinerary = ItineraryResponse.model_validate(resp.json())
        self.store.set(
            key,
            {
                "cached_at": datetime.now(timezone.utc).isoformat(),
                "itinerary": itinerary.model_dump(mode="json"),
            },
        )
        return itinerary

    async def get_today(self, technician_id: int) -> ItineraryResponse:
        return await self.get_itinerary(technician_id, self.today())

    async def get_tomorrow(self, technician_id: int) -> ItineraryResponse:
        return await self.get_itinerary(technician_id, self.tomorrow())

    async def _post_service_record(self, payload: Dict[str, Any]) -> ServiceRecordIntakeResponse:
        resp = await self._request("POST", "/service-records/", json=payload)
        return ServiceRecordIntakeResponse.model_validate(resp.json())

    async def submit_service_record(
        self,
        record: ServiceRecordCreate,
        photos: Optional[List[Dict[str, Any]]] = None,
    ) -> SubmitOutcome:
        """Send a capture now, or queue it when the API is unreachable.

        The capture keeps one ``client_entry_id`` whichever path it takes.
        """
        entry_id = record.client_entry_id or str(uuid.uuid4())
        payload = record.model_dump(mode="json", exclude={"client_entry_id"})
        try:
            result = await self._post_service_record(dict(payload, client_entry_id=entry_id))
        except RemoteUnavailable as e:
            logger.warning("capture_submit_offline", entry_id=entry_id, error=e.detail)
            self.queue.enqueue(payload, photos, entry_id=entry_id)
            return SubmitOutcome(entry_id=entry_id, queued=True, photos=list(photos or []))
        return SubmitOutcome(entry_id=entry_id, queued=False, record=result, photos=list(photos or []))

    async def drain(self) -> List[DrainResult]:
        return await self.queue.drain(self._post_service_record)

    def pending_count(self) -> int:
        return self.queue.pending_count()
