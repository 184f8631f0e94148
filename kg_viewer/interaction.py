"""
Interaction controller: selection, hover tooltip and the host callbacks.

Everything here is local UI state. Nothing in this module asks the layout
adapter to rebuild; it only reads elements and positions from it.

Host callbacks are held in ``CallbackSlot`` objects. The view overwrites
the slot on every render, so event handlers always call the latest
callback while the rebuild trigger never depends on callback identity.
Callbacks receive the raw backend entity, not the render element.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from .models import RawEdge, RawNode
from .presets import VisualStyle
from .session import DEFAULT_EMIT, LayoutEngineAdapter
from .viewport import Point

logger = logging.getLogger(__name__)


def _log(msg: str, emit: Callable[[str, Dict[str, Any]], None] | None, level: int = logging.INFO) -> None:
    logger.log(level, msg)
    if emit:
        try:
            emit("log", {"message": msg})
        except Exception:
            pass


class CallbackSlot:
    """Mutable holder for the latest host callback."""

    def __init__(self, name: str, callback: Optional[Callable[..., Any]] = None) -> None:
        self.name = name
        self.callback = callback

    def set(self, callback: Optional[Callable[..., Any]]) -> None:
        self.callback = callback

    def __call__(self, *args: Any) -> bool:
        """Invoke the callback if one is set. Returns True if it ran without raising."""
        cb = self.callback
        if cb is None:
            return False
        try:
            cb(*args)
        except Exception:
            logger.exception("%s callback raised", self.name)
            return False
        return True


@dataclass
class Tooltip:
    visible: bool = False
    position: Point = (0.0, 0.0)
    name: str = ""
    type: str = ""
    color: str = ""

    @classmethod
    def hidden(cls) -> "Tooltip":
        return cls()


@dataclass(frozen=True)
class Selection:
    kind: str  # "node" | "edge"
    id: str

    def as_tuple(self) -> Tuple[str, str]:
        return self.kind, self.id


@dataclass
class ElementDetails:
    """Rows for the details panel of the selected element."""

    kind: str
    title: str
    rows: List[Tuple[str, str]] = field(default_factory=list)
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "title": self.title,
            "rows": [list(r) for r in self.rows],
            "description": self.description,
        }


def _percent(confidence: Optional[float]) -> Optional[str]:
    if confidence is None:
        return None
    return f"{int(round(float(confidence) * 100))}%"


class InteractionController:
    def __init__(
        self,
        adapter: LayoutEngineAdapter,
        style: VisualStyle | None = None,
        emit: Callable[[str, Dict[str, Any]], None] = DEFAULT_EMIT,
    ) -> None:
        self.adapter = adapter
        self.style = style or VisualStyle()
        self.emit = emit

        self.on_node_select = CallbackSlot("on_node_select")
        self.on_edge_select = CallbackSlot("on_edge_select")

        self.selection: Optional[Selection] = None
        self.hovered: Optional[str] = None
        self.tooltip: Tooltip = Tooltip.hidden()

    # ------------------------------------------------------------------ #
    # Taps
    # ------------------------------------------------------------------ #

    def tap_node(self, node_id: str) -> bool:
        node = self.adapter.node(node_id)
        if node is None or not node.visible:
            return False
        self.selection = Selection("node", node_id)
        self.on_node_select(node.raw)
        return True

    def tap_edge(self, edge_id: str) -> bool:
        edge = self.adapter.edge(edge_id)
        if edge is None or not edge.visible:
            return False
        self.selection = Selection("edge", edge_id)
        self.on_edge_select(edge.raw)
        return True

    def tap_background(self) -> None:
        self.selection = None

    # ------------------------------------------------------------------ #
    # Hover
    # ------------------------------------------------------------------ #

    def hover_node(self, node_id: str) -> bool:
        node = self.adapter.node(node_id)
        if node is None or not node.visible:
            return False
        pos = self.adapter.rendered_position(node_id)
        if pos is None:
            return False

        top = pos[1] - self.adapter.rendered_radius(node_id)
        self.hovered = node_id
        self.tooltip = Tooltip(
            visible=True,
            position=(pos[0], top - self.style.tooltip_offset),
            name=node.name,
            type=node.type,
            color=node.color,
        )
        return True

    def mouseout_node(self, node_id: Optional[str] = None) -> None:
        if node_id is not None and node_id != self.hovered:
            return
        self.hovered = None
        self.tooltip = Tooltip.hidden()

    def viewport_changed(self) -> None:
        # The anchor is stale once zoom or pan moves.
        if self.tooltip.visible:
            self.tooltip = Tooltip.hidden()

    # ------------------------------------------------------------------ #
    # State housekeeping
    # ------------------------------------------------------------------ #

    def reset(self) -> None:
        self.selection = None
        self.hovered = None
        self.tooltip = Tooltip.hidden()

    def prune(self) -> None:
        """Drop selection / hover that refer to elements no longer in the session."""
        sel = self.selection
        if sel is not None:
            exists = self.adapter.node(sel.id) if sel.kind == "node" else self.adapter.edge(sel.id)
            if exists is None:
                _log(f"[interaction] selected {sel.kind} {sel.id!r} left the graph", self.emit, logging.DEBUG)
                self.selection = None
        if self.hovered is not None:
            node = self.adapter.node(self.hovered)
            if node is None or not node.visible:
                self.mouseout_node()

    # ------------------------------------------------------------------ #
    # Details panel
    # ------------------------------------------------------------------ #

    def details(self) -> Optional[ElementDetails]:
        sel = self.selection
        if sel is None:
            return None

        if sel.kind == "node":
            node = self.adapter.node(sel.id)
            if node is None:
                return None
            raw: RawNode = node.raw
            rows = [("Type", raw.type)]
            pct = _percent(raw.confidence)
            if pct is not None:
                rows.append(("Confidence", pct))
            # Backend count is advisory; fall back to the live degree.
            rows.append(("Connections", str(raw.connections or node.degree)))
            return ElementDetails("node", raw.name, rows, raw.description)

        edge = self.adapter.edge(sel.id)
        if edge is None:
            return None
        raw_e: RawEdge = edge.raw
        rows = [
            ("Connection", f"{raw_e.source} → {raw_e.target}"),
            ("Type", raw_e.type),
        ]
        pct = _percent(raw_e.confidence)
        if pct is not None:
            rows.append(("Confidence", pct))
        return ElementDetails("edge", raw_e.label or raw_e.type, rows)


__all__ = [
    "CallbackSlot",
    "Tooltip",
    "Selection",
    "ElementDetails",
    "InteractionController",
]
