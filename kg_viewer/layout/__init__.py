# kg_viewer/layout/__init__.py

"""
Layout subpackage for the knowledge-graph viewer.

Provides:
  - force-directed, circle, grid, breadthfirst and concentric 2D layouts
  - world-space scaling of normalised positions
"""

from __future__ import annotations

from .layout2d import (
    Positions,
    compute_layout_2d,
    random_positions,
    to_world,
)

__all__ = [
    "Positions",
    "compute_layout_2d",
    "random_positions",
    "to_world",
]
