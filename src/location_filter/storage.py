from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from location_filter.config import get_settings
from location_filter.errors import GeometryNotFoundError, GeometryValidationError
from location_filter.geometry.geojson import outer_ring
from location_filter.geometry.primitives import (
    MAX_RADIUS_KM,
    MIN_POLYGON_POINTS,
    MIN_RADIUS_KM,
    coerce_point,
    is_valid_radius_km,
)


logger = logging.getLogger("lf.storage")

GEOMETRY_TYPES = ("polygon", "isochrone", "radius")
# SQLite INTEGER PRIMARY KEY is a signed 64-bit value.
MAX_GEOMETRY_ID = 2**63 - 1


@dataclass(frozen=True)
class StoredGeometry:
    id: int
    type: str
    geometry: Dict[str, Any]
    name: str
    metadata: Dict[str, Any]
    created_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "geometry": self.geometry,
            "name": self.name,
            "metadata": dict(self.metadata),
            "createdAt": self.created_at,
        }


def validate_geometry(geometry_type: Any, geometry: Any) -> Dict[str, Any]:
    """Server-side re-validation of a geometry about to be stored."""

    if not geometry_type or not geometry:
        raise GeometryValidationError("type and geometry are required", field="type")
    if geometry_type not in GEOMETRY_TYPES:
        raise GeometryValidationError(
            "type must be polygon, isochrone, or radius", field="type"
        )
    if not isinstance(geometry, dict):
        raise GeometryValidationError("geometry must be an object", field="geometry")

    if geometry_type == "radius":
        center = geometry.get("center")
        radius_km = geometry.get("radiusKm")
        if center is None or radius_km is None:
            raise GeometryValidationError(
                "radius geometry requires center and radiusKm", field="geometry"
            )
        if not is_valid_radius_km(radius_km):
            raise GeometryValidationError(
                f"radiusKm must be between {MIN_RADIUS_KM} and {MAX_RADIUS_KM:g}",
                field="radiusKm",
            )
        coerce_point(center, field_name="center")
        return geometry

    ring = outer_ring(geometry)
    if ring is None:
        raise GeometryValidationError(
            f"{geometry_type} geometry must be a GeoJSON Polygon", field="geometry"
        )
    distinct = set()
    for pos in ring:
        if not isinstance(pos, (list, tuple)) or len(pos) < 2:
            raise GeometryValidationError("polygon ring has a malformed position", field="geometry")
        p = coerce_point(list(pos[:2]), field_name="coordinates")
        distinct.add((p.lng, p.lat))
    if len(distinct) < MIN_POLYGON_POINTS:
        raise GeometryValidationError(
            f"polygon needs at least {MIN_POLYGON_POINTS} distinct points", field="geometry"
        )
    return geometry


class GeometrySQLite:
    """SQLite persistence for committed filter geometries.

    Append-only from the client side: rows are created and deleted, never
    updated.
    """

    def __init__(self, path: str) -> None:
        self.path = Path(path)
        if str(path) != ":memory:":
            self.path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(path))
        self.conn.row_factory = sqlite3.Row
        self._init_schema()

    def close(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None

    def _init_schema(self) -> None:
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS geometries (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                type TEXT NOT NULL,
                geometry_json TEXT NOT NULL,
                name TEXT NOT NULL DEFAULT '',
                metadata_json TEXT NOT NULL DEFAULT '{}',
                created_at TEXT NOT NULL
            )
            """
        )
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_geometries_type ON geometries(type)")
        self.conn.commit()

    @staticmethod
    def _row_to_geometry(row: sqlite3.Row) -> StoredGeometry:
        try:
            metadata = json.loads(row["metadata_json"]) if row["metadata_json"] else {}
        except ValueError:
            metadata = {}
        return StoredGeometry(
            id=int(row["id"]),
            type=str(row["type"]),
            geometry=json.loads(row["geometry_json"]),
            name=str(row["name"] or ""),
            metadata=metadata if isinstance(metadata, dict) else {},
            created_at=str(row["created_at"]),
        )

    def create(
        self,
        geometry_type: str,
        geometry: Dict[str, Any],
        *,
        name: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> StoredGeometry:
        validate_geometry(geometry_type, geometry)
        created_at = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        with self.conn:
            cur = self.conn.execute(
                "INSERT INTO geometries (type, geometry_json, name, metadata_json, created_at) VALUES (?, ?, ?, ?, ?)",
                (
                    geometry_type,
                    json.dumps(geometry, sort_keys=True),
                    (name or "").strip(),
                    json.dumps(metadata or {}, sort_keys=True),
                    created_at,
                ),
            )
            geometry_id = int(cur.lastrowid)
            if not (name or "").strip():
                self.conn.execute(
                    "UPDATE geometries SET name=? WHERE id=?",
                    (f"{geometry_type}_{geometry_id}", geometry_id),
                )
        logger.info("stored %s geometry id=%s", geometry_type, geometry_id)
        stored = self.get(geometry_id)
        assert stored is not None
        return stored

    def get(self, geometry_id: int) -> Optional[StoredGeometry]:
        if not 0 < int(geometry_id) <= MAX_GEOMETRY_ID:
            return None
        row = self.conn.execute(
            "SELECT id, type, geometry_json, name, metadata_json, created_at FROM geometries WHERE id=?",
            (int(geometry_id),),
        ).fetchone()
        if not row:
            return None
        return self._row_to_geometry(row)

    def list(self) -> List[StoredGeometry]:
        rows = self.conn.execute(
            "SELECT id, type, geometry_json, name, metadata_json, created_at FROM geometries ORDER BY id"
        ).fetchall()
        return [self._row_to_geometry(r) for r in rows]

    def delete(self, geometry_id: int) -> None:
        if not 0 < int(geometry_id) <= MAX_GEOMETRY_ID:
            raise GeometryNotFoundError(geometry_id)
        with self.conn:
            cur = self.conn.execute("DELETE FROM geometries WHERE id=?", (int(geometry_id),))
        if cur.rowcount == 0:
            raise GeometryNotFoundError(geometry_id)
        logger.info("deleted geometry id=%s", geometry_id)

    def count(self) -> int:
        row = self.conn.execute("SELECT COUNT(*) AS n FROM geometries").fetchone()
        return int(row["n"])


def open_store(path: Optional[str] = None) -> GeometrySQLite:
    return GeometrySQLite(path or get_settings().geometry_db)
