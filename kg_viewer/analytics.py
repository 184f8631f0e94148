"""
Analytic summaries for knowledge graphs.

Produces the statistics shown alongside the graph view:
  - node / edge / triple counts (edges counted after dropping dangling ones)
  - density and average connections
  - cluster count (connected components)
  - confidence average / min / max and a high / medium / low distribution
"""

from __future__ import annotations

from typing import Dict, List

import networkx as nx
import numpy as np

from .loader import build_graph
from .models import GraphPayload, GraphStatistics, RawNode


HIGH_CONFIDENCE = 0.8
MEDIUM_CONFIDENCE = 0.6


def confidence_band(confidence: float) -> str:
    if confidence >= HIGH_CONFIDENCE:
        return "high"
    if confidence >= MEDIUM_CONFIDENCE:
        return "medium"
    return "low"


def confidence_distribution(nodes: List[RawNode]) -> Dict[str, int]:
    dist = {"high": 0, "medium": 0, "low": 0}
    for n in nodes:
        dist[confidence_band(n.confidence)] += 1
    return dist


def compute_graph_statistics(payload: GraphPayload) -> GraphStatistics:
    if not payload.nodes:
        return GraphStatistics(confidence_distribution={"high": 0, "medium": 0, "low": 0})

    G = build_graph(payload.nodes, payload.edges)
    n = G.number_of_nodes()
    e = G.number_of_edges()

    # Density over the simple graph; parallel edges would push it above 1.
    density = float(nx.density(nx.Graph(G))) if n > 1 else 0.0
    avg_degree = float(np.mean([d for _, d in G.degree()]))
    clusters = nx.number_connected_components(G)

    conf = np.array([node.confidence for node in payload.nodes], float)

    return GraphStatistics(
        node_count=n,
        edge_count=e,
        triple_count=e,
        density=density,
        average_connections=avg_degree,
        clusters=int(clusters),
        confidence_average=float(conf.mean()),
        confidence_min=float(conf.min()),
        confidence_max=float(conf.max()),
        confidence_distribution=confidence_distribution(payload.nodes),
    )


__all__ = [
    "HIGH_CONFIDENCE",
    "MEDIUM_CONFIDENCE",
    "confidence_band",
    "confidence_distribution",
    "compute_graph_statistics",
]
