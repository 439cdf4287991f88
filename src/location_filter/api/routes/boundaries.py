from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException

from location_filter.api.schemas import BoundaryOut
from location_filter.boundaries.search import BoundarySearchClient
from location_filter.errors import GeometryValidationError, ServiceError

router = APIRouter(tags=["boundaries"])
logger = logging.getLogger("lf.api")


def _make_client() -> BoundarySearchClient:
    return BoundarySearchClient()


@router.get("/boundaries/search", response_model=List[BoundaryOut])
def search_boundaries(q: Optional[str] = None, lang: str = "en") -> List[Dict[str, Any]]:
    client = _make_client()
    try:
        items = client.search(q or "", lang or "en")
    except GeometryValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ServiceError as e:
        logger.error("boundary search upstream failure: %s", e)
        raise HTTPException(
            status_code=502,
            detail={
                "error": "Failed to fetch boundaries from backend",
                "reason": e.reason,
                "status": e.status,
            },
        )
    finally:
        client.close()
    return [i.to_dict() for i in items]
