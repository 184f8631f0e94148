"""
2D layout engines for the interactive knowledge-graph view.

Implements:
  - cose:         force-directed (spring) layout from random initial positions
  - circle:       all nodes on one circle
  - grid:         row-major grid, sqrt(n) columns
  - breadthfirst: BFS layers from the highest-degree node of each component
  - concentric:   degree shells, hubs at the centre

Every engine returns positions normalised to [-1,1]^2; ``to_world`` then
scales them to world units so node sizes and edge lengths stay readable
whatever the graph size.

Exports:
    - random_positions
    - compute_layout_2d
    - to_world
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import networkx as nx

from ..presets import LAYOUT_NAMES, LayoutParams


Positions = Dict[str, Tuple[float, float]]


# ============================================================================ #
# Helpers
# ============================================================================ #

def _center_positions(pos: Positions) -> Positions:
    if not pos:
        return {}
    xs = np.array([p[0] for p in pos.values()])
    ys = np.array([p[1] for p in pos.values()])
    cx, cy = xs.mean(), ys.mean()
    return {n: (float(x - cx), float(y - cy)) for n, (x, y) in pos.items()}


def _normalise_positions(pos: Positions) -> Positions:
    """Normalise to [-1,1]^2, centering first."""
    if not pos:
        return {}
    pos = _center_positions(pos)
    xs = np.array([p[0] for p in pos.values()])
    ys = np.array([p[1] for p in pos.values()])
    extent = max(1e-9, float(np.abs(xs).max()), float(np.abs(ys).max()))
    return {n: (float(x / extent), float(y / extent)) for n, (x, y) in pos.items()}


def _simple_graph(node_ids: Sequence[str], edges: Sequence[Tuple[str, str]]) -> nx.Graph:
    G = nx.Graph()
    G.add_nodes_from(node_ids)
    for u, v in edges:
        if u == v:
            continue
        if G.has_edge(u, v):
            G[u][v]["weight"] += 1.0
        else:
            G.add_edge(u, v, weight=1.0)
    return G


def random_positions(node_ids: Sequence[str], seed: Optional[int] = None) -> Positions:
    """Uniform random positions in [-1,1]^2; ``seed=None`` draws fresh entropy."""
    rng = np.random.default_rng(seed)
    coords = rng.uniform(-1.0, 1.0, size=(len(node_ids), 2))
    return {n: (float(x), float(y)) for n, (x, y) in zip(node_ids, coords)}


# ============================================================================ #
# Engines
# ============================================================================ #

def _layout_cose(G: nx.Graph, params: LayoutParams, pos0: Positions, seed: Optional[int]) -> Positions:
    n = G.number_of_nodes()
    if n == 1:
        return {next(iter(G.nodes())): (0.0, 0.0)}

    avg_deg = float(np.mean([d for _, d in G.degree()])) if n else 0.0
    if avg_deg < 2:
        k = 3.2 / np.sqrt(n)
    elif avg_deg < 5:
        k = 2.2 / np.sqrt(n)
    else:
        k = 1.4 / np.sqrt(n)
    k *= params.repulsion

    return nx.spring_layout(
        G,
        dim=2,
        pos=pos0,
        k=k,
        weight="weight",
        iterations=max(1, int(params.iterations)),
        seed=seed,
    )


def _layout_grid(nodes: List[str]) -> Positions:
    cols = int(np.ceil(np.sqrt(len(nodes))))
    return {n: (float(i % cols), -float(i // cols)) for i, n in enumerate(nodes)}


def _bfs_roots(G: nx.Graph) -> List[str]:
    roots = []
    for comp in nx.connected_components(G):
        roots.append(max(sorted(comp), key=lambda n: G.degree(n)))
    return roots


def _layout_breadthfirst(G: nx.Graph) -> Positions:
    """Stack components left to right; each one fans out downwards by BFS depth."""
    pos: Positions = {}
    x_offset = 0.0
    for root in _bfs_roots(G):
        layers = list(nx.bfs_layers(G, [root]))
        width = max(len(layer) for layer in layers)
        for depth, layer in enumerate(layers):
            for i, n in enumerate(sorted(layer)):
                x = x_offset + (i - (len(layer) - 1) / 2.0) + (width - 1) / 2.0
                pos[n] = (float(x), -float(depth))
        x_offset += width + 1.0
    return pos


def _layout_concentric(G: nx.Graph) -> Positions:
    degrees = sorted({d for _, d in G.degree()}, reverse=True)
    shells = [[n for n, d in G.degree() if d == level] for level in degrees]
    shells = [sorted(s) for s in shells if s]
    if len(shells) == 1:
        return nx.circular_layout(G)
    return nx.shell_layout(G, nlist=shells)


def compute_layout_2d(
    node_ids: Sequence[str],
    edges: Sequence[Tuple[str, str]],
    params: LayoutParams,
    *,
    seed: Optional[int] = None,
    initial: Optional[Positions] = None,
) -> Positions:
    """
    Run the layout named by ``params.name`` and return normalised positions.

    ``initial`` seeds the force-directed engine; when omitted it is drawn
    with ``random_positions(node_ids, seed)``.
    """
    if params.name not in LAYOUT_NAMES:
        raise ValueError(f"unknown layout {params.name!r}")
    if not node_ids:
        return {}

    G = _simple_graph(node_ids, edges)
    nodes = list(node_ids)

    if params.name == "cose":
        pos0 = initial if initial is not None else random_positions(nodes, seed)
        pos = _layout_cose(G, params, pos0, seed)
    elif params.name == "circle":
        pos = nx.circular_layout(G)
    elif params.name == "grid":
        pos = _layout_grid(nodes)
    elif params.name == "breadthfirst":
        pos = _layout_breadthfirst(G)
    else:
        pos = _layout_concentric(G)

    if len(nodes) == 1:
        return {nodes[0]: (0.0, 0.0)}
    return _normalise_positions({str(n): (float(p[0]), float(p[1])) for n, p in pos.items()})


def to_world(pos: Positions, params: LayoutParams) -> Positions:
    """Scale normalised positions so the mean edge spans about ideal_edge_length."""
    scale = params.ideal_edge_length * max(1.0, float(np.sqrt(len(pos))))
    return {n: (x * scale, y * scale) for n, (x, y) in pos.items()}


__all__ = [
    "Positions",
    "random_positions",
    "compute_layout_2d",
    "to_world",
]
