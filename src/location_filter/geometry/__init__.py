from .primitives import (
    BoundaryItem,
    IsochroneSettings,
    Point,
    Polygon,
    RadiusSettings,
)

__all__ = ["BoundaryItem", "IsochroneSettings", "Point", "Polygon", "RadiusSettings"]
