"""
Visibility filter.

Owns exactly one field on the render elements: ``visible``. Sizes,
colours and positions belong to the encoding pipeline and the layout
session; this module never touches them.

Edge visibility is always derived from its endpoints and recomputed on
every application.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, Sequence, Tuple

from .styling import RenderEdge, RenderNode


@dataclass(frozen=True)
class FilterState:
    search_text: str = ""
    excluded_types: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def is_active(self) -> bool:
        return bool(self.search_text) or bool(self.excluded_types)

    def with_search(self, text: str) -> "FilterState":
        return FilterState(search_text=text or "", excluded_types=self.excluded_types)

    def toggle_type(self, node_type: str) -> "FilterState":
        excluded = set(self.excluded_types)
        if node_type in excluded:
            excluded.discard(node_type)
        else:
            excluded.add(node_type)
        return FilterState(search_text=self.search_text, excluded_types=frozenset(excluded))

    def to_dict(self) -> Dict[str, object]:
        return {
            "search_text": self.search_text,
            "excluded_types": sorted(self.excluded_types),
        }


def node_matches(node: RenderNode, state: FilterState) -> bool:
    if node.type in state.excluded_types:
        return False
    needle = state.search_text.lower()
    if not needle:
        return True
    return needle in node.name.lower()


def apply_filter(
    nodes: Sequence[RenderNode],
    edges: Iterable[RenderEdge],
    state: FilterState,
) -> Tuple[int, int]:
    """
    Set ``visible`` on every node and edge. Returns (visible nodes, visible edges).
    """
    visible_ids = set()
    for n in nodes:
        n.visible = node_matches(n, state)
        if n.visible:
            visible_ids.add(n.id)

    n_edges = 0
    for e in edges:
        e.visible = e.source in visible_ids and e.target in visible_ids
        n_edges += int(e.visible)

    return len(visible_ids), n_edges


__all__ = [
    "FilterState",
    "node_matches",
    "apply_filter",
]
