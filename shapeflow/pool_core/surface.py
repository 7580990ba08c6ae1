"""
Off-screen Surface
==================

Fast numpy-based drawing target. Shapes draw onto it during verification and
in headless tools; the real game hands shapes its own surface instead.
"""

from __future__ import annotations

from typing import Sequence, Tuple, Union

import numpy as np

Color = Union[str, Sequence[int]]


def parse_color(color: Color) -> Tuple[int, int, int, int]:
    """
    Parse a color into an RGBA tuple.

    Accepts "#RGB", "#RRGGBB", "#RRGGBBAA" strings or 3/4 int sequences.
    """
    if isinstance(color, str):
        hex_str = color.lstrip("#")
        if len(hex_str) == 3:
            hex_str = "".join(c * 2 for c in hex_str)
        if len(hex_str) == 6:
            hex_str += "FF"
        if len(hex_str) != 8:
            raise ValueError(f"Color must be #RGB, #RRGGBB or #RRGGBBAA, got '{color}'")
        try:
            return tuple(int(hex_str[i:i + 2], 16) for i in range(0, 8, 2))  # type: ignore[return-value]
        except ValueError as e:
            raise ValueError(f"Invalid hex color '{color}'") from e

    values = [int(v) for v in color]
    if len(values) == 3:
        values.append(255)
    if len(values) != 4:
        raise ValueError(f"Color must have 3 or 4 values, got {color}")
    return (values[0], values[1], values[2], values[3])


class OffscreenSurface:
    """
    RGBA canvas backed by a (height, width, 4) uint8 array.

    Drawing is clipped to the canvas; shapes may draw partially or entirely
    outside without error.
    """

    def __init__(self, width: int = 512, height: int = 512, background: Color = (0, 0, 0, 0)):
        """
        Initialize surface.

        Args:
            width: Canvas width in pixels.
            height: Canvas height in pixels.
            background: Initial fill color.
        """
        if width <= 0 or height <= 0:
            raise ValueError(f"Surface size must be positive, got {width}x{height}")
        self.width = int(width)
        self.height = int(height)
        self.pixels = np.zeros((self.height, self.width, 4), dtype=np.uint8)
        self.draw_calls = 0
        self.clear(background)

    def clear(self, color: Color = (0, 0, 0, 0)) -> None:
        self.pixels[:] = np.array(parse_color(color), dtype=np.uint8)

    def _bbox(self, x0: float, y0: float, x1: float, y1: float) -> Tuple[int, int, int, int]:
        return (
            max(0, int(np.floor(x0))),
            max(0, int(np.floor(y0))),
            min(self.width, int(np.ceil(x1)) + 1),
            min(self.height, int(np.ceil(y1)) + 1),
        )

    def fill_rect(self, x: float, y: float, w: float, h: float, color: Color) -> None:
        """Fill an axis-aligned rectangle."""
        self.draw_calls += 1
        x_min, y_min, x_max, y_max = self._bbox(x, y, x + w - 1, y + h - 1)
        if x_min >= x_max or y_min >= y_max:
            return
        self.pixels[y_min:y_max, x_min:x_max] = np.array(parse_color(color), dtype=np.uint8)

    def fill_circle(self, cx: float, cy: float, radius: float, color: Color) -> None:
        """Fill a circle."""
        self.fill_ellipse(cx, cy, radius, radius, color)

    def fill_ellipse(self, cx: float, cy: float, rx: float, ry: float, color: Color) -> None:
        """Fill an axis-aligned ellipse."""
        self.draw_calls += 1
        if rx <= 0 or ry <= 0:
            return
        x_min, y_min, x_max, y_max = self._bbox(cx - rx, cy - ry, cx + rx, cy + ry)
        if x_min >= x_max or y_min >= y_max:
            return

        yy, xx = np.meshgrid(np.arange(y_min, y_max), np.arange(x_min, x_max), indexing='ij')
        mask = ((xx - cx) / rx) ** 2 + ((yy - cy) / ry) ** 2 <= 1.0
        self.pixels[y_min:y_max, x_min:x_max][mask] = np.array(parse_color(color), dtype=np.uint8)

    def fill_polygon(self, points: Sequence[Tuple[float, float]], color: Color) -> None:
        """Fill a simple polygon using an even-odd crossing test."""
        self.draw_calls += 1
        if len(points) < 3:
            return
        pts = np.asarray(points, dtype=np.float64)
        x_min, y_min, x_max, y_max = self._bbox(
            pts[:, 0].min(), pts[:, 1].min(), pts[:, 0].max(), pts[:, 1].max()
        )
        if x_min >= x_max or y_min >= y_max:
            return

        yy, xx = np.meshgrid(
            np.arange(y_min, y_max) + 0.5, np.arange(x_min, x_max) + 0.5, indexing='ij'
        )
        inside = np.zeros(xx.shape, dtype=bool)
        x_prev, y_prev = pts[-1]
        for x_cur, y_cur in pts:
            crosses = (y_cur > yy) != (y_prev > yy)
            if y_prev != y_cur:
                x_at = x_cur + (yy - y_cur) * (x_prev - x_cur) / (y_prev - y_cur)
                inside ^= crosses & (xx < x_at)
            x_prev, y_prev = x_cur, y_cur

        self.pixels[y_min:y_max, x_min:x_max][inside] = np.array(parse_color(color), dtype=np.uint8)

    def coverage(self) -> float:
        """Fraction of pixels with non-zero alpha."""
        return float(np.count_nonzero(self.pixels[:, :, 3])) / (self.width * self.height)
