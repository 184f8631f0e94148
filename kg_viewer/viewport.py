"""
Viewport transform: world coordinates -> screen pixels.

    screen = world * zoom + pan

Zoom is clamped to [min_zoom, max_zoom]. Zooming about a screen point
keeps that point fixed; fitting scales so a world-space box (plus screen
padding) fills the canvas and centres it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

Point = Tuple[float, float]
Bounds = Tuple[float, float, float, float]  # x_min, y_min, x_max, y_max


@dataclass
class Viewport:
    width: float = 800.0
    height: float = 600.0
    zoom: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0
    min_zoom: float = 0.05
    max_zoom: float = 10.0

    @property
    def center(self) -> Point:
        return self.width / 2.0, self.height / 2.0

    @property
    def zoom_percent(self) -> int:
        return int(round(self.zoom * 100))

    def clamp(self, level: float) -> float:
        return min(self.max_zoom, max(self.min_zoom, level))

    # ------------------------------------------------------------------ #
    def to_screen(self, point: Point) -> Point:
        x, y = point
        return x * self.zoom + self.pan_x, y * self.zoom + self.pan_y

    def to_world(self, point: Point) -> Point:
        x, y = point
        return (x - self.pan_x) / self.zoom, (y - self.pan_y) / self.zoom

    def visible_world_bounds(self) -> Bounds:
        x0, y0 = self.to_world((0.0, 0.0))
        x1, y1 = self.to_world((self.width, self.height))
        return x0, y0, x1, y1

    # ------------------------------------------------------------------ #
    def zoom_to(self, level: float, anchor: Optional[Point] = None) -> bool:
        """Set zoom keeping ``anchor`` (screen coords, default centre) fixed. Returns True if changed."""
        new = self.clamp(level)
        if new == self.zoom:
            return False
        ax, ay = anchor if anchor is not None else self.center
        ratio = new / self.zoom
        self.pan_x = ax - (ax - self.pan_x) * ratio
        self.pan_y = ay - (ay - self.pan_y) * ratio
        self.zoom = new
        return True

    def zoom_by(self, factor: float, anchor: Optional[Point] = None) -> bool:
        return self.zoom_to(self.zoom * factor, anchor)

    def pan_by(self, dx: float, dy: float) -> bool:
        if dx == 0 and dy == 0:
            return False
        self.pan_x += dx
        self.pan_y += dy
        return True

    def center_on(self, bounds: Bounds) -> None:
        x_min, y_min, x_max, y_max = bounds
        cx = (x_min + x_max) / 2.0
        cy = (y_min + y_max) / 2.0
        sx, sy = self.center
        self.pan_x = sx - cx * self.zoom
        self.pan_y = sy - cy * self.zoom

    def fit(self, bounds: Bounds, padding: float = 0.0) -> None:
        x_min, y_min, x_max, y_max = bounds
        bw = max(x_max - x_min, 1e-9)
        bh = max(y_max - y_min, 1e-9)
        avail_w = max(self.width - 2.0 * padding, 1.0)
        avail_h = max(self.height - 2.0 * padding, 1.0)
        self.zoom = self.clamp(min(avail_w / bw, avail_h / bh))
        self.center_on(bounds)


__all__ = ["Point", "Bounds", "Viewport"]
