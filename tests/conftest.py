"""Pytest configuration and fixtures."""

from typing import Any, Dict, List

import matplotlib

matplotlib.use("Agg")

import pytest

from kg_viewer.loader import load_graph_payload
from kg_viewer.models import GraphPayload, RawEdge, RawNode
from kg_viewer.presets import ViewerConfig
from kg_viewer.scheduling import ManualScheduler
from kg_viewer.session import LayoutEngineAdapter
from kg_viewer.view import KnowledgeGraphView


def make_payload(n_nodes: int, chain: bool = True) -> GraphPayload:
    """Synthetic graph of ``n_nodes`` nodes, optionally linked in a chain."""
    nodes = [RawNode(id=f"n{i}", name=f"Node {i}") for i in range(n_nodes)]
    edges = []
    if chain:
        edges = [RawEdge(source=f"n{i}", target=f"n{i + 1}", id=f"e{i}") for i in range(n_nodes - 1)]
    return GraphPayload(nodes=nodes, edges=edges)


@pytest.fixture
def small_graph_data() -> Dict[str, Any]:
    """Backend-shaped response with a person, a concept and an organization."""
    return {
        "nodes": [
            {"id": "a", "name": "Alpha", "type": "person", "confidence": 1.0},
            {"id": "b", "name": "Beta", "type": "concept", "confidence": 0.5},
            {"id": "c", "name": "Gamma Corporation", "type": "organization", "confidence": 0.7},
        ],
        "edges": [
            {"id": "ab", "from": "a", "to": "b", "label": "knows", "type": "relates", "confidence": 0.9},
            {"id": "ac", "from": "a", "to": "c", "label": "works at"},
        ],
    }


@pytest.fixture
def small_payload(small_graph_data: Dict[str, Any]) -> GraphPayload:
    return load_graph_payload(small_graph_data)


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def fast_config() -> ViewerConfig:
    """Grid layout: deterministic and quick."""
    return ViewerConfig(layout="grid")


@pytest.fixture
def adapter(fast_config: ViewerConfig) -> LayoutEngineAdapter:
    return LayoutEngineAdapter(fast_config)


@pytest.fixture
def view(fast_config: ViewerConfig):
    v = KnowledgeGraphView(fast_config)
    yield v
    v.close()


@pytest.fixture
def events() -> List[tuple]:
    return []


@pytest.fixture
def emit(events: List[tuple]):
    def _emit(kind: str, payload: Dict[str, Any]) -> None:
        events.append((kind, payload))

    return _emit


@pytest.fixture
def payload_factory():
    return make_payload
