"""
Baseline Shapes Package

The stock shape set. Every class is a direct factory taking
(x, y, size, color, name). Serves as a benchmark and example.
"""

from .shapes import Circle, Ellipse, Kite, Octagon, Pentagon, Shapeless, Square, Star, Triangle

__all__ = ["Circle", "Square", "Triangle", "Pentagon", "Octagon", "Ellipse", "Kite", "Star", "Shapeless"]
