# render2d.py

"""
Raster export of the interactive knowledge-graph view.

Draws exactly what the viewport shows: visible edges, then visible nodes
grouped by shape, then labels. The figure is the canvas size times the
export scale, capped at the configured pixel ceiling, on an opaque
background. Selection and hover borders are drawn so the export matches
what the user was looking at.
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.collections import LineCollection
from matplotlib.colors import to_rgba

from .errors import ExportFailure
from .presets import ExportSettings, VisualStyle
from .styling import DIAMOND, ELLIPSE, RECTANGLE, RenderEdge, RenderNode
from .viewport import Viewport

MARKERS: Dict[str, str] = {
    ELLIPSE: "o",
    DIAMOND: "D",
    RECTANGLE: "s",
}

BASE_LABEL_SIZE = 10.0  # screen px at zoom 1


@dataclass
class RenderFrame:
    nodes: List[RenderNode]
    edges: List[RenderEdge]
    positions: Dict[str, Tuple[float, float]]
    viewport: Viewport
    style: VisualStyle
    selected: Optional[Tuple[str, str]] = None  # (kind, id)
    hovered: Optional[str] = None


# =============================================================================
# Utilities
# =============================================================================

def output_size(viewport: Viewport, settings: ExportSettings) -> Tuple[int, int, float]:
    """Pixel size of the export and the effective scale after the ceiling."""
    scale = max(float(settings.scale), 1e-6)
    w = viewport.width * scale
    h = viewport.height * scale
    shrink = min(1.0, settings.max_width / w, settings.max_height / h)
    scale *= shrink
    return max(1, int(round(w * shrink))), max(1, int(round(h * shrink))), scale


def _screen_positions(frame: RenderFrame) -> Dict[str, Tuple[float, float]]:
    vp = frame.viewport
    return {n: vp.to_screen(p) for n, p in frame.positions.items()}


# =============================================================================
# Main renderer
# =============================================================================

def _draw_edges(ax, frame: RenderFrame, spos, scale: float, px_to_pt: float) -> None:
    style = frame.style
    sel_edge = frame.selected[1] if frame.selected and frame.selected[0] == "edge" else None

    segs, colors, widths = [], [], []
    for e in frame.edges:
        if not e.visible or e.source not in spos or e.target not in spos:
            continue
        segs.append([spos[e.source], spos[e.target]])
        if e.id == sel_edge:
            colors.append(to_rgba(style.selected_edge_color, 1.0))
            widths.append(e.width * 2.0 * frame.viewport.zoom * scale * px_to_pt)
        else:
            colors.append(to_rgba(style.edge_color, style.edge_alpha))
            widths.append(e.width * frame.viewport.zoom * scale * px_to_pt)

    if segs:
        ax.add_collection(
            LineCollection(segs, colors=colors, linewidths=widths, capstyle="round", zorder=1)
        )

    for e in frame.edges:
        if not e.visible or not e.label or e.source not in spos or e.target not in spos:
            continue
        (x0, y0), (x1, y1) = spos[e.source], spos[e.target]
        ax.text(
            (x0 + x1) / 2.0,
            (y0 + y1) / 2.0,
            e.label,
            fontsize=max(style.label_min_font_size, BASE_LABEL_SIZE * 0.8) * scale * px_to_pt,
            color=style.edge_label_color,
            ha="center",
            va="center",
            zorder=2,
        )


def _draw_nodes(ax, frame: RenderFrame, spos, scale: float, px_to_pt: float) -> None:
    style = frame.style
    zoom = frame.viewport.zoom
    sel_node = frame.selected[1] if frame.selected and frame.selected[0] == "node" else None

    by_shape: Dict[str, List[RenderNode]] = {}
    for n in frame.nodes:
        if n.visible and n.id in spos:
            by_shape.setdefault(n.shape, []).append(n)

    for shape, group in by_shape.items():
        xs, ys, sizes, faces, edges, lws = [], [], [], [], [], []
        for n in group:
            factor, border, lw = 1.0, style.node_border_color, style.node_border_width
            if n.id == sel_node:
                factor, border, lw = style.selected_scale, style.selected_border_color, style.selected_border_width
            elif n.id == frame.hovered:
                factor, border, lw = style.hover_scale, style.hover_border_color, style.hover_border_width

            diameter_pt = n.display_size * factor * zoom * scale * px_to_pt
            x, y = spos[n.id]
            xs.append(x)
            ys.append(y)
            sizes.append(diameter_pt ** 2)
            faces.append(to_rgba(n.color, n.opacity))
            edges.append(to_rgba(border, 1.0))
            lws.append(lw * scale * px_to_pt)

        ax.scatter(
            xs,
            ys,
            s=np.array(sizes, float),
            c=np.array(faces, float),
            edgecolors=np.array(edges, float),
            linewidths=lws,
            marker=MARKERS.get(shape, "o"),
            zorder=3,
        )


def _draw_labels(ax, frame: RenderFrame, spos, scale: float, px_to_pt: float) -> None:
    style = frame.style
    zoom = frame.viewport.zoom
    font_px = max(style.label_min_font_size, BASE_LABEL_SIZE * min(zoom, 2.0))
    for n in frame.nodes:
        if not n.visible or not n.label or n.id not in spos:
            continue
        x, y = spos[n.id]
        ax.text(
            x,
            y + n.display_size * zoom / 2.0 + 2.0,
            n.label,
            fontsize=font_px * scale * px_to_pt,
            color=style.label_color,
            ha="center",
            va="top",
            zorder=4,
        )


def render_png(frame: RenderFrame, settings: ExportSettings) -> bytes:
    """Rasterise the frame to PNG bytes."""
    vp = frame.viewport
    if vp.width <= 0 or vp.height <= 0:
        raise ExportFailure(f"viewport has no area ({vp.width}x{vp.height})")

    width_px, height_px, scale = output_size(vp, settings)
    dpi = float(settings.dpi)
    px_to_pt = 72.0 / dpi
    spos = _screen_positions(frame)

    fig, ax = plt.subplots(
        figsize=(width_px / dpi, height_px / dpi),
        dpi=dpi,
        facecolor=settings.background_color,
    )
    try:
        ax.set_position([0.0, 0.0, 1.0, 1.0])
        ax.set_facecolor(settings.background_color)
        ax.set_xlim(0.0, vp.width)
        ax.set_ylim(vp.height, 0.0)  # screen y grows downwards
        ax.set_xticks([])
        ax.set_yticks([])
        ax.set_axis_off()

        _draw_edges(ax, frame, spos, scale, px_to_pt)
        _draw_nodes(ax, frame, spos, scale, px_to_pt)
        _draw_labels(ax, frame, spos, scale, px_to_pt)

        buf = io.BytesIO()
        fig.savefig(
            buf,
            format="png",
            dpi=dpi,
            facecolor=settings.background_color,
        )
    finally:
        plt.close(fig)

    return buf.getvalue()


__all__ = [
    "MARKERS",
    "RenderFrame",
    "output_size",
    "render_png",
]
