from .surface import InMemoryMapSurface, MapSurface
from .synchronizer import MapLayerSynchronizer

__all__ = ["InMemoryMapSurface", "MapLayerSynchronizer", "MapSurface"]
