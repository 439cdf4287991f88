from .search import BoundarySearchClient
from .selection import BoundarySelectionEngine

__all__ = ["BoundarySearchClient", "BoundarySelectionEngine"]
