from __future__ import annotations

from fastapi import FastAPI

from location_filter.api.routes.boundaries import router as boundaries_router
from location_filter.api.routes.geometries import router as geometries_router


def health():
    return {"status": "ok"}


app = FastAPI(title="location-filter")

app.include_router(geometries_router, prefix="/api")
app.include_router(boundaries_router, prefix="/api")


@app.get("/health")
def health_route():
    return health()
