from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

import httpx

from fieldroute.config import settings
from fieldroute.utils.logging import get_logger

logger = get_logger("adapters.geocode")


@dataclass
class Coordinates:
    lat: float
    lng: float


class MapboxGeocoder:
    """``resolve(address) -> Coordinates | None`` backed by Mapbox forward geocoding."""

    def __init__(
        self,
        token: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token if token is not None else settings.mapbox_token
        self.base_url = base_url or settings.mapbox_base_url
        self.transport = transport

    async def resolve(self, address: str) -> Optional[Coordinates]:
        if not address or not address.strip():
            return None
        if not self.token:
            logger.warning("geocode_skipped", reason="mapbox_token_missing")
            return None

        path = f"/geocoding/v5/mapbox.places/{quote(address.strip())}.json"
        params = {"access_token": self.token, "country": "US", "limit": 1}
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=settings.http_timeout_seconds,
                transport=self.transport,
            ) as client:
                resp = await client.get(path, params=params)
        except httpx.HTTPError as e:
            logger.error("geocode_request_failed", error=str(e))
            return None

        if resp.status_code != 200:
            logger.error("geocode_bad_status", status_code=resp.status_code)
            return None

        try:
            features = resp.json().get("features") or []
            if not features:
                logger.info("geocode_no_match")
                return None
            lng, lat = features[0]["center"][:2]
            return Coordinates(lat=float(lat), lng=float(lng))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error("geocode_unreadable_response", error=str(e))
            return None
