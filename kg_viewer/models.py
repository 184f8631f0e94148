"""
Input data model for the knowledge-graph viewer.

These are the backend-supplied entities. The viewer treats them as
immutable for the duration of a render cycle; every derived visual
attribute lives on the render-side types in ``styling``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


DEFAULT_CONFIDENCE = 0.8
DEFAULT_NODE_TYPE = "entity"
DEFAULT_EDGE_TYPE = "relationship"


@dataclass(frozen=True)
class RawNode:
    id: str
    name: str
    type: str = DEFAULT_NODE_TYPE
    confidence: float = DEFAULT_CONFIDENCE
    # Advisory only; often stale. Degree is recomputed from edges.
    connections: int = 0
    description: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)


@dataclass(frozen=True)
class RawEdge:
    source: str
    target: str
    id: Optional[str] = None
    label: str = ""
    type: str = DEFAULT_EDGE_TYPE
    confidence: Optional[float] = None
    weight: float = 1.0
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)


@dataclass
class GraphStatistics:
    """
    Summary statistics, either passed through from the backend or computed
    locally by ``analytics.compute_graph_statistics``.
    """

    node_count: int = 0
    edge_count: int = 0
    triple_count: int = 0
    density: float = 0.0
    average_connections: float = 0.0
    clusters: int = 0
    confidence_average: float = 0.0
    confidence_min: float = 0.0
    confidence_max: float = 0.0
    confidence_distribution: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodeCount": self.node_count,
            "edgeCount": self.edge_count,
            "tripleCount": self.triple_count,
            "density": self.density,
            "averageConnections": self.average_connections,
            "clusters": self.clusters,
            "confidence": {
                "average": self.confidence_average,
                "min": self.confidence_min,
                "max": self.confidence_max,
                "distribution": dict(self.confidence_distribution),
            },
        }


@dataclass
class GraphPayload:
    nodes: List[RawNode] = field(default_factory=list)
    edges: List[RawEdge] = field(default_factory=list)
    statistics: Optional[GraphStatistics] = None
    # Backend hint carried in the response metadata (e.g. degraded service).
    warning: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.nodes

    def node_types(self) -> List[str]:
        """Unique node types in first-seen order (feeds the filter checklist)."""
        seen: Dict[str, None] = {}
        for n in self.nodes:
            seen.setdefault(n.type, None)
        return list(seen)

    def node_index(self) -> Dict[str, RawNode]:
        return {n.id: n for n in self.nodes}


__all__ = [
    "DEFAULT_CONFIDENCE",
    "DEFAULT_NODE_TYPE",
    "DEFAULT_EDGE_TYPE",
    "RawNode",
    "RawEdge",
    "GraphStatistics",
    "GraphPayload",
]
