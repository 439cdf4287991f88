from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException

from location_filter.api.schemas import CreateGeometryBody, GeometryCreatedOut, GeometryListOut
from location_filter.config import get_settings
from location_filter.errors import GeometryNotFoundError, GeometryValidationError
from location_filter.storage import MAX_GEOMETRY_ID, GeometrySQLite

router = APIRouter(tags=["geometries"])
logger = logging.getLogger("lf.api")


def _get_db_path() -> str:
    return get_settings().geometry_db


@router.get("/geometries", response_model=GeometryListOut)
def list_geometries() -> Dict[str, Any]:
    store = GeometrySQLite(_get_db_path())
    try:
        rows = [g.to_dict() for g in store.list()]
        return {"data": rows, "total": len(rows)}
    finally:
        store.close()


@router.post("/geometries", status_code=201, response_model=GeometryCreatedOut)
def create_geometry(body: CreateGeometryBody) -> Dict[str, Any]:
    store = GeometrySQLite(_get_db_path())
    try:
        stored = store.create(
            body.type or "",
            body.geometry or {},
            name=body.name,
            metadata=body.metadata,
        )
        return {"data": stored.to_dict()}
    except GeometryValidationError as e:
        logger.info("geometry rejected: %s", e)
        raise HTTPException(status_code=400, detail=str(e))
    finally:
        store.close()


def _parse_id(raw: Optional[str]) -> Optional[int]:
    try:
        value = int(raw) if raw is not None else None
    except ValueError:
        return None
    if value is None or not 0 < value <= MAX_GEOMETRY_ID:
        return None
    return value


def _delete(geometry_id: Optional[int]) -> Dict[str, Any]:
    if not geometry_id:
        raise HTTPException(status_code=404, detail="Geometry not found")
    store = GeometrySQLite(_get_db_path())
    try:
        store.delete(geometry_id)
        return {"success": True}
    except GeometryNotFoundError:
        raise HTTPException(status_code=404, detail="Geometry not found")
    finally:
        store.close()


@router.delete("/geometries/{geometry_id}")
def delete_geometry(geometry_id: str) -> Dict[str, Any]:
    return _delete(_parse_id(geometry_id))


@router.delete("/geometries")
def delete_geometry_by_query(id: Optional[str] = None) -> Dict[str, Any]:
    return _delete(_parse_id(id))
