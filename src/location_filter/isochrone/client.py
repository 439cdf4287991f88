from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from location_filter.config import get_settings
from location_filter.errors import ServiceError
from location_filter.geometry.geojson import outer_ring
from location_filter.geometry.primitives import IsochroneSettings


logger = logging.getLogger("lf.isochrone")

USER_AGENT = "location-filter/0.1 (+isochrone)"


class MapboxIsochroneClient:
    """Travel-time polygon client for the Mapbox Isochrone API (or a compatible server).

    One GET per call, no retries. Every failure surfaces as ServiceError so
    the engine can turn it into a typed result.
    """

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        access_token: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        settings = get_settings()
        self.base_url = (base_url or settings.isochrone_url).rstrip("/")
        self.access_token = settings.mapbox_token if access_token is None else access_token
        self.timeout = settings.http_timeout if timeout is None else timeout
        self._client = client
        self._owns_client = client is None

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def build_url(self, settings: IsochroneSettings) -> str:
        c = settings.center
        return f"{self.base_url}/{settings.profile}/{c.lng},{c.lat}"

    def build_params(self, settings: IsochroneSettings) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "contours_minutes": settings.minutes,
            "polygons": "true",
            "denoise": 1,
        }

    async def fetch_ring(self, settings: IsochroneSettings) -> List[List[float]]:
        """Return the outer ring of the first isochrone polygon."""

        client = await self._ensure_client()
        url = self.build_url(settings)
        try:
            resp = await client.get(url, params=self.build_params(settings))
        except httpx.HTTPError as e:
            raise ServiceError("transport", f"isochrone request failed: {e}") from e

        if resp.status_code >= 400:
            raise ServiceError(
                "http_status",
                f"isochrone service returned HTTP {resp.status_code}",
                status=resp.status_code,
            )
        try:
            data = resp.json()
        except ValueError as e:
            raise ServiceError("malformed", "isochrone response is not JSON") from e

        features = data.get("features") if isinstance(data, dict) else None
        if features is not None and not isinstance(features, list):
            raise ServiceError("malformed", "isochrone features is not a list")
        if not features:
            raise ServiceError("empty", "isochrone response has no features")

        ring = outer_ring(features[0])
        if not ring or len(ring) < 4:
            raise ServiceError("malformed", "isochrone feature has no polygon ring")
        if not all(isinstance(pos, (list, tuple)) and len(pos) >= 2 for pos in ring):
            raise ServiceError("malformed", "isochrone ring has a malformed position")
        logger.debug(
            "isochrone fetched profile=%s minutes=%s vertices=%s",
            settings.profile,
            settings.minutes,
            len(ring),
        )
        return ring
