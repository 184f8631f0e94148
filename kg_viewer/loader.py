"""
Payload loader for knowledge graphs.

Responsibilities:
  - Accept the backend response (bare ``{nodes, edges, statistics}`` or the
    ``{success, data, metadata, error}`` envelope) as a mapping or JSON file
  - Normalise nodes and edges into RawNode / RawEdge with safe defaults
  - Construct a NetworkX graph over the valid edges for analytics
"""

from __future__ import annotations

import json
import logging
import math
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import networkx as nx

from .errors import PayloadError
from .models import (
    DEFAULT_CONFIDENCE,
    DEFAULT_EDGE_TYPE,
    DEFAULT_NODE_TYPE,
    GraphPayload,
    GraphStatistics,
    RawEdge,
    RawNode,
)

logger = logging.getLogger(__name__)

_NODE_KEYS = {"id", "name", "type", "confidence", "connections", "description"}
_EDGE_KEYS = {"id", "from", "to", "source", "target", "label", "type", "confidence", "weight"}


# ============================================================================ #
# Coercion helpers
# ============================================================================ #

def _safe_float(x: Any, default: Optional[float]) -> Optional[float]:
    if x is None or isinstance(x, bool):
        return default
    try:
        v = float(x)
    except (TypeError, ValueError):
        return default
    return v if math.isfinite(v) else default


def _safe_int(x: Any, default: int = 0) -> int:
    v = _safe_float(x, None)
    if v is None:
        return default
    return int(v)


def _clamp01(v: float) -> float:
    return min(1.0, max(0.0, v))


def _text(x: Any, default: str = "") -> str:
    if x is None:
        return default
    s = str(x)
    return s if s else default


# ============================================================================ #
# Node / edge normalisation
# ============================================================================ #

def normalise_node(raw: Mapping[str, Any], index: int) -> RawNode:
    node_id = _text(raw.get("id"), f"node_{index}")
    name = _text(raw.get("name"), node_id)
    conf = _safe_float(raw.get("confidence"), DEFAULT_CONFIDENCE)
    return RawNode(
        id=node_id,
        name=name,
        type=_text(raw.get("type"), DEFAULT_NODE_TYPE),
        confidence=_clamp01(conf),
        connections=max(0, _safe_int(raw.get("connections"), 0)),
        description=_text(raw.get("description"), name),
        metadata={k: v for k, v in raw.items() if k not in _NODE_KEYS},
    )


def normalise_edge(raw: Mapping[str, Any], index: int) -> RawEdge:
    source = raw.get("from", raw.get("source"))
    target = raw.get("to", raw.get("target"))
    conf = _safe_float(raw.get("confidence"), None)
    return RawEdge(
        source=_text(source),
        target=_text(target),
        id=_text(raw.get("id"), f"edge_{index}"),
        label=_text(raw.get("label")),
        type=_text(raw.get("type"), DEFAULT_EDGE_TYPE),
        confidence=None if conf is None else _clamp01(conf),
        weight=_safe_float(raw.get("weight"), 1.0),
        metadata={k: v for k, v in raw.items() if k not in _EDGE_KEYS},
    )


def _normalise_statistics(raw: Any) -> Optional[GraphStatistics]:
    if not isinstance(raw, Mapping):
        return None
    conf = raw.get("confidence") if isinstance(raw.get("confidence"), Mapping) else {}
    dist = conf.get("distribution") if isinstance(conf.get("distribution"), Mapping) else {}
    return GraphStatistics(
        node_count=_safe_int(raw.get("nodeCount")),
        edge_count=_safe_int(raw.get("edgeCount")),
        triple_count=_safe_int(raw.get("tripleCount")),
        density=_safe_float(raw.get("density"), 0.0),
        average_connections=_safe_float(raw.get("averageConnections"), 0.0),
        clusters=_safe_int(raw.get("clusters")),
        confidence_average=_safe_float(conf.get("average"), 0.0),
        confidence_min=_safe_float(conf.get("min"), 0.0),
        confidence_max=_safe_float(conf.get("max"), 0.0),
        confidence_distribution={str(k): _safe_int(v) for k, v in dist.items()},
    )


def _as_list(value: Any, what: str) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    raise PayloadError(f"'{what}' must be a list, got {type(value).__name__}")


# ============================================================================ #
# Public API
# ============================================================================ #

def load_graph_payload(data: Mapping[str, Any]) -> GraphPayload:
    """
    Normalise a backend graph response into a GraphPayload.

    Enforces:
      - string ids (fallback ``node_<i>`` / ``edge_<i>``)
      - confidence in [0, 1], defaulting to 0.8 only when absent
      - unique node ids (first occurrence wins)
    Dangling edges are kept here; the encoding pipeline drops them.
    """
    if not isinstance(data, Mapping):
        raise PayloadError(f"graph payload must be a mapping, got {type(data).__name__}")

    warning: Optional[str] = None
    meta = data.get("metadata")
    if isinstance(meta, Mapping) and meta.get("warning"):
        warning = str(meta["warning"])

    body = data.get("data") if isinstance(data.get("data"), Mapping) else data

    nodes: List[RawNode] = []
    seen: set = set()
    for i, raw in enumerate(_as_list(body.get("nodes"), "nodes")):
        if not isinstance(raw, Mapping):
            logger.warning("[loader] skipping non-mapping node at index %d", i)
            continue
        node = normalise_node(raw, i)
        if node.id in seen:
            logger.warning("[loader] duplicate node id %r dropped", node.id)
            continue
        seen.add(node.id)
        nodes.append(node)

    edges: List[RawEdge] = []
    for i, raw in enumerate(_as_list(body.get("edges"), "edges")):
        if not isinstance(raw, Mapping):
            logger.warning("[loader] skipping non-mapping edge at index %d", i)
            continue
        edges.append(normalise_edge(raw, i))

    return GraphPayload(
        nodes=nodes,
        edges=edges,
        statistics=_normalise_statistics(body.get("statistics")),
        warning=warning,
    )


def load_graph_file(path: Union[str, Path]) -> GraphPayload:
    """Read a JSON graph response from disk."""
    p = Path(path)
    try:
        with open(p, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as exc:
        raise PayloadError(f"{p}: invalid JSON ({exc})") from exc
    return load_graph_payload(data)


def valid_edges(nodes: Iterable[RawNode], edges: Iterable[RawEdge]) -> List[RawEdge]:
    """Edges whose endpoints both exist in ``nodes``."""
    ids = {n.id for n in nodes}
    return [e for e in edges if e.source in ids and e.target in ids]


def build_graph(nodes: List[RawNode], edges: List[RawEdge]) -> nx.MultiGraph:
    """
    Construct an undirected multigraph over the valid edges. Parallel edges
    are kept so degrees agree with the encoding pipeline.
    """
    G = nx.MultiGraph()
    for n in nodes:
        G.add_node(n.id, name=n.name, type=n.type, confidence=n.confidence)
    for e in valid_edges(nodes, edges):
        G.add_edge(e.source, e.target, id=e.id, label=e.label, type=e.type, weight=e.weight)
    return G


__all__ = [
    "normalise_node",
    "normalise_edge",
    "load_graph_payload",
    "load_graph_file",
    "valid_edges",
    "build_graph",
]
