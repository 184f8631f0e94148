"""
Encoding pipeline for knowledge graphs.

Turns backend entities into render-ready elements:

  - size:     degree-normalised, nodeSizeBase * (0.3 + 1.7 * degree / maxDegree)
  - opacity:  confidence, 0.4 + 0.6 * confidence (never fully transparent)
  - shape:    fixed table by semantic type (ellipse / diamond / rectangle)
  - colour:   by type (default), by confidence tier, or uniform
  - labels:   node names shortened for display, edge labels suppressed
              unless requested (the raw label stays on the raw edge)

Edges whose endpoints are not both present are dropped here, silently.
Everything in this module is a pure function of its inputs; the only
field it does not own on the output is ``visible``, which belongs to the
visibility filter.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
from matplotlib.colors import to_rgb

from .analytics import confidence_band
from .models import RawEdge, RawNode


# =============================================================================
# Tables
# =============================================================================

ELLIPSE = "ellipse"
DIAMOND = "diamond"
RECTANGLE = "rectangle"

SHAPES = (ELLIPSE, DIAMOND, RECTANGLE)

TYPE_SHAPES: Dict[str, str] = {
    "entity": ELLIPSE,
    "person": ELLIPSE,
    "place": ELLIPSE,
    "concept": DIAMOND,
    "topic": DIAMOND,
    "event": DIAMOND,
    "organization": RECTANGLE,
    "document": RECTANGLE,
}

TYPE_COLORS: Dict[str, str] = {
    "entity": "#3b82f6",
    "concept": "#8b5cf6",
    "person": "#ef4444",
    "place": "#10b981",
    "organization": "#f59e0b",
    "event": "#ec4899",
    "document": "#6366f1",
    "topic": "#14b8a6",
}
DEFAULT_TYPE_COLOR = "#64748b"

CONFIDENCE_COLORS: Dict[str, str] = {
    "high": "#10b981",
    "medium": "#f59e0b",
    "low": "#ef4444",
}

UNIFORM_COLOR = "#3b82f6"

MIN_SIZE_FRACTION = 0.3
SIZE_RANGE = 1.7
MIN_OPACITY = 0.4
OPACITY_RANGE = 0.6

LABEL_MAX_CHARS = 15
LABEL_SHORT_CHARS = 10


# =============================================================================
# Render-side data classes
# =============================================================================

@dataclass
class EncodingOptions:
    node_size_base: float = 25.0
    show_edge_labels: bool = False
    show_labels: bool = True
    color_scheme: str = "semantic"
    edge_width: float = 2.0


@dataclass
class RenderNode:
    id: str
    name: str
    type: str
    confidence: float
    degree: int
    display_size: float
    opacity: float
    shape: str
    color: str
    label: str
    raw: RawNode = field(repr=False)
    visible: bool = True

    @property
    def rgb(self) -> Tuple[float, float, float]:
        return to_rgb(self.color)


@dataclass
class RenderEdge:
    id: str
    source: str
    target: str
    label: str
    type: str
    confidence: Optional[float]
    width: float
    raw: RawEdge = field(repr=False)
    visible: bool = True


@dataclass(frozen=True)
class LegendEntry:
    label: str
    color: str
    shape: str = ELLIPSE


# =============================================================================
# Per-attribute encodings
# =============================================================================

def shape_for_type(node_type: str) -> str:
    return TYPE_SHAPES.get((node_type or "").lower(), ELLIPSE)


def color_for(node_type: str, confidence: float, scheme: str = "semantic") -> str:
    if scheme == "confidence":
        return CONFIDENCE_COLORS[confidence_band(confidence)]
    if scheme == "uniform":
        return UNIFORM_COLOR
    return TYPE_COLORS.get((node_type or "").lower(), DEFAULT_TYPE_COLOR)


def opacity_for(confidence: float) -> float:
    c = min(1.0, max(0.0, float(confidence)))
    return MIN_OPACITY + OPACITY_RANGE * c


def display_label(name: str, show_labels: bool = True) -> str:
    """Shorten long names so labels do not swamp the canvas."""
    if not show_labels:
        return ""
    if len(name) <= LABEL_MAX_CHARS:
        return name
    words = name.split(" ")
    if len(words) > 1 and len(words[0]) <= LABEL_SHORT_CHARS:
        return words[0] + "..."
    return name[:LABEL_SHORT_CHARS] + "..."


def compute_degrees(
    nodes: Sequence[RawNode],
    edges: Iterable[RawEdge],
) -> Tuple[Dict[str, int], List[RawEdge]]:
    """
    One pass over the edges: keeps the valid ones and counts one per
    endpoint. Returns (degree by node id, valid edges).
    """
    ids = {n.id for n in nodes}
    counts: Counter = Counter()
    valid: List[RawEdge] = []
    for e in edges:
        if e.source not in ids or e.target not in ids:
            continue
        valid.append(e)
        counts[e.source] += 1
        counts[e.target] += 1
    return {n.id: int(counts.get(n.id, 0)) for n in nodes}, valid


def compute_sizes(degrees: Sequence[int], node_size_base: float) -> np.ndarray:
    deg = np.asarray(degrees, dtype=float)
    if deg.size == 0:
        return deg
    # Floor of 1 keeps edgeless graphs well defined.
    max_degree = max(1.0, float(deg.max()))
    ratio = np.minimum(deg / max_degree, 1.0)
    return node_size_base * (MIN_SIZE_FRACTION + SIZE_RANGE * ratio)


# =============================================================================
# Pipeline
# =============================================================================

def _edge_ids(edges: Sequence[RawEdge]) -> List[str]:
    out: List[str] = []
    seen: set = set()
    for i, e in enumerate(edges):
        base = e.id or f"{e.source}->{e.target}#{i}"
        eid, n = base, 0
        while eid in seen:
            n += 1
            eid = f"{base}#{i}" if n == 1 else f"{base}#{i}.{n}"
        seen.add(eid)
        out.append(eid)
    return out


def encode(
    raw_nodes: Sequence[RawNode],
    raw_edges: Sequence[RawEdge],
    options: Optional[EncodingOptions] = None,
) -> Tuple[List[RenderNode], List[RenderEdge]]:
    """
    Transform raw entities into render-ready nodes and edges.

    Output ordering follows the input; ids are the join key downstream.
    """
    opts = options or EncodingOptions()
    if not raw_nodes:
        return [], []

    degrees, valid = compute_degrees(raw_nodes, raw_edges)
    sizes = compute_sizes([degrees[n.id] for n in raw_nodes], opts.node_size_base)

    render_nodes = [
        RenderNode(
            id=n.id,
            name=n.name,
            type=n.type,
            confidence=n.confidence,
            degree=degrees[n.id],
            display_size=float(sizes[i]),
            opacity=opacity_for(n.confidence),
            shape=shape_for_type(n.type),
            color=color_for(n.type, n.confidence, opts.color_scheme),
            label=display_label(n.name, opts.show_labels),
            raw=n,
        )
        for i, n in enumerate(raw_nodes)
    ]

    render_edges = [
        RenderEdge(
            id=eid,
            source=e.source,
            target=e.target,
            label=e.label if opts.show_edge_labels else "",
            type=e.type,
            confidence=e.confidence,
            width=float(opts.edge_width),
            raw=e,
        )
        for eid, e in zip(_edge_ids(valid), valid)
    ]

    return render_nodes, render_edges


def legend_entries(nodes: Iterable[RenderNode], scheme: str = "semantic") -> List[LegendEntry]:
    """Legend rows for the colour scheme in use, limited to what is present."""
    if scheme == "confidence":
        return [
            LegendEntry("High confidence", CONFIDENCE_COLORS["high"]),
            LegendEntry("Medium confidence", CONFIDENCE_COLORS["medium"]),
            LegendEntry("Low confidence", CONFIDENCE_COLORS["low"]),
        ]
    if scheme == "uniform":
        return [LegendEntry("Node", UNIFORM_COLOR)]

    entries: Dict[str, LegendEntry] = {}
    for n in nodes:
        key = (n.type or "").lower()
        if key not in entries:
            entries[key] = LegendEntry(
                n.type,
                color_for(n.type, n.confidence, "semantic"),
                shape_for_type(n.type),
            )
    return list(entries.values())


__all__ = [
    "ELLIPSE",
    "DIAMOND",
    "RECTANGLE",
    "SHAPES",
    "TYPE_SHAPES",
    "TYPE_COLORS",
    "DEFAULT_TYPE_COLOR",
    "CONFIDENCE_COLORS",
    "UNIFORM_COLOR",
    "EncodingOptions",
    "RenderNode",
    "RenderEdge",
    "LegendEntry",
    "shape_for_type",
    "color_for",
    "opacity_for",
    "display_label",
    "compute_degrees",
    "compute_sizes",
    "encode",
    "legend_entries",
]
