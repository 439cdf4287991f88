"""Interactive spatial filter constructor: draw, isochrone, radius and boundary modes."""

__version__ = "0.1.0"
