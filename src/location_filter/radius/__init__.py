from .engine import RADIUS_STEPS, RadiusEngine, compute

__all__ = ["RADIUS_STEPS", "RadiusEngine", "compute"]
