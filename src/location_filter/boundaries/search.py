from __future__ import annotations

import logging
from typing import Any, List, Optional

import requests

from location_filter.boundaries.helpers import search_result_to_item
from location_filter.config import get_settings
from location_filter.errors import GeometryValidationError, ServiceError
from location_filter.geometry.primitives import BoundaryItem


logger = logging.getLogger("lf.boundaries")

MIN_QUERY_LENGTH = 2
_DEFAULT_UA = "location-filter/0.1 (+boundaries)"


class BoundarySearchClient:
    """Name search against the boundaries microservice.

    GET {base}/api/v1/boundaries/search?q=&lang= returning either
    {"results": [...]} or a bare list.
    """

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        settings = get_settings()
        self.base_url = (base_url or settings.boundaries_service_url).rstrip("/")
        self.timeout = settings.http_timeout if timeout is None else timeout
        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": _DEFAULT_UA, "Accept": "application/json"})

    @property
    def search_url(self) -> str:
        return f"{self.base_url}/api/v1/boundaries/search"

    def close(self) -> None:
        self._session.close()

    def search(self, query: str, lang: str = "en") -> List[BoundaryItem]:
        q = (query or "").strip()
        if len(q) < MIN_QUERY_LENGTH:
            raise GeometryValidationError(
                f'Query parameter "q" is required and must be at least {MIN_QUERY_LENGTH} characters',
                field="q",
            )
        try:
            resp = self._session.get(
                self.search_url,
                params={"q": q, "lang": lang or "en"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ServiceError("transport", f"boundary search failed: {e}") from e

        if resp.status_code != 200:
            logger.error("boundary search failed: HTTP %s", resp.status_code)
            raise ServiceError(
                "http_status",
                f"boundary search returned HTTP {resp.status_code}",
                status=resp.status_code,
            )
        try:
            data: Any = resp.json()
        except ValueError as e:
            raise ServiceError("malformed", "boundary search response is not JSON") from e

        if isinstance(data, dict) and isinstance(data.get("results"), list):
            rows = data["results"]
        elif isinstance(data, list):
            rows = data
        else:
            # Unknown shape: treated as no matches.
            logger.warning("unknown boundary search response format: %s", type(data).__name__)
            return []

        items = [search_result_to_item(r) for r in rows if isinstance(r, dict)]
        out = [i for i in items if i is not None]
        logger.info("boundary search q=%r lang=%s results=%s", q, lang, len(out))
        return out
