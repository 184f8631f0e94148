"""
Structural fingerprint of a graph.

The fingerprint decides whether the layout session must be rebuilt. It
covers node count, edge count and the ordered node-id list only, so two
payloads differing just in confidence, labels or types share a
fingerprint and keep their layout.
"""

from __future__ import annotations

import hashlib
from typing import Iterable, Sequence

from .models import RawEdge, RawNode


def _hash_ids(ids: Iterable[str], algo: str = "sha256") -> str:
    h = hashlib.new(algo)
    for node_id in ids:
        h.update(node_id.encode("utf-8", "ignore"))
        # Separator keeps ["ab", "c"] distinct from ["a", "bc"].
        h.update(b"\x00")
    return h.hexdigest()


def compute_graph_fingerprint(
    nodes: Sequence[RawNode],
    edges: Sequence[RawEdge],
    algo: str = "sha256",
) -> str:
    """
    Returns ``"<n_nodes>:<n_edges>:<digest of ordered node ids>"``.
    """
    digest = _hash_ids((n.id for n in nodes), algo=algo)
    return f"{len(nodes)}:{len(edges)}:{digest[:16]}"


__all__ = ["compute_graph_fingerprint"]
