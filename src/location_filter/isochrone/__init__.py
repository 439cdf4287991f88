from .engine import TIME_STEPS, IsochroneEngine, IsochroneFailure

__all__ = ["TIME_STEPS", "IsochroneEngine", "IsochroneFailure"]
