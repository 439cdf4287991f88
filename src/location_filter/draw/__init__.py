from .engine import DRAWING, EDITING, IDLE, DrawEngine, DrawSessionState

__all__ = ["DRAWING", "EDITING", "IDLE", "DrawEngine", "DrawSessionState"]
