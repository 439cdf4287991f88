from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class CreateGeometryBody(BaseModel):
    # Optional so missing fields surface as the store's own 400, not a 422.
    type: Optional[str] = None
    geometry: Optional[Dict[str, Any]] = None
    name: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class GeometryOut(BaseModel):
    id: int
    type: str
    geometry: Dict[str, Any]
    name: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    createdAt: str


class GeometryListOut(BaseModel):
    data: List[GeometryOut] = Field(default_factory=list)
    total: int = 0


class GeometryCreatedOut(BaseModel):
    data: GeometryOut


class BoundaryOut(BaseModel):
    id: int
    name: str
    type: str
    adminLevel: Optional[int] = None
    centerLat: Optional[float] = None
    centerLon: Optional[float] = None
    areaSqKm: Optional[float] = None
    stableKey: Optional[str] = None
