"""Unit tests for the encoding pipeline."""

import numpy as np
import pytest

from kg_viewer.models import RawEdge, RawNode
from kg_viewer.styling import (
    CONFIDENCE_COLORS,
    DEFAULT_TYPE_COLOR,
    DIAMOND,
    ELLIPSE,
    RECTANGLE,
    UNIFORM_COLOR,
    EncodingOptions,
    color_for,
    compute_degrees,
    display_label,
    encode,
    legend_entries,
    opacity_for,
    shape_for_type,
)


class TestSizing:
    """Tests for degree-driven node sizes."""

    def test_edgeless_graph_uses_degree_floor(self) -> None:
        """Test every node gets the minimum size when there are no edges."""
        nodes = [RawNode(id=x, name=x) for x in "abc"]
        render_nodes, render_edges = encode(nodes, [], EncodingOptions(node_size_base=25.0))
        assert render_edges == []
        for n in render_nodes:
            assert n.display_size == pytest.approx(0.3 * 25.0)

    def test_size_is_monotonic_in_degree(self) -> None:
        """Test higher degree never yields a smaller node."""
        nodes = [RawNode(id=x, name=x) for x in "hxyzw"]
        edges = [RawEdge(source="h", target=t) for t in "xyz"] + [RawEdge(source="x", target="y")]
        render_nodes, _ = encode(nodes, edges)
        by_degree = sorted(render_nodes, key=lambda n: n.degree)
        sizes = [n.display_size for n in by_degree]
        assert sizes == sorted(sizes)

    def test_hub_gets_twice_base(self) -> None:
        """Test the highest-degree node is sized at 2x base."""
        nodes = [RawNode(id=x, name=x) for x in "hab"]
        edges = [RawEdge(source="h", target="a"), RawEdge(source="h", target="b")]
        render_nodes, _ = encode(nodes, edges, EncodingOptions(node_size_base=20.0))
        hub = next(n for n in render_nodes if n.id == "h")
        assert hub.display_size == pytest.approx(40.0)


class TestOpacity:
    """Tests for confidence-driven opacity."""

    def test_bounds(self) -> None:
        assert opacity_for(0.0) == pytest.approx(0.4)
        assert opacity_for(1.0) == pytest.approx(1.0)

    def test_monotonic_and_in_range(self) -> None:
        values = [opacity_for(c) for c in np.linspace(0.0, 1.0, 21)]
        assert values == sorted(values)
        assert all(0.4 <= v <= 1.0 for v in values)


class TestShapesAndColours:
    """Tests for the type, shape and colour tables."""

    def test_shape_table(self) -> None:
        assert shape_for_type("person") == ELLIPSE
        assert shape_for_type("concept") == DIAMOND
        assert shape_for_type("organization") == RECTANGLE
        assert shape_for_type("mystery") == ELLIPSE

    def test_lookups_are_case_insensitive(self) -> None:
        assert shape_for_type("Topic") == DIAMOND
        assert color_for("PERSON", 0.9) == "#ef4444"

    def test_unknown_type_uses_default_colour(self) -> None:
        assert color_for("mystery", 0.9) == DEFAULT_TYPE_COLOR

    def test_confidence_scheme(self) -> None:
        assert color_for("person", 0.9, "confidence") == CONFIDENCE_COLORS["high"]
        assert color_for("person", 0.7, "confidence") == CONFIDENCE_COLORS["medium"]
        assert color_for("person", 0.2, "confidence") == CONFIDENCE_COLORS["low"]

    def test_uniform_scheme(self) -> None:
        assert color_for("concept", 0.1, "uniform") == UNIFORM_COLOR


class TestLabels:
    """Tests for display-label shortening."""

    def test_short_name_unchanged(self) -> None:
        assert display_label("Alpha") == "Alpha"
        assert display_label("x" * 15) == "x" * 15

    def test_long_name_keeps_first_word(self) -> None:
        assert display_label("Gamma Corporation Ltd") == "Gamma..."

    def test_long_first_word_is_cut(self) -> None:
        assert display_label("International Business Machines") == "Internatio..."

    def test_labels_hidden(self) -> None:
        assert display_label("Alpha", show_labels=False) == ""


class TestEncode:
    """Tests for the full pipeline."""

    def test_single_person_node(self) -> None:
        """Test a lone, fully confident person node."""
        nodes = [RawNode(id="a", name="Alpha", type="person", confidence=1.0)]
        render_nodes, render_edges = encode(nodes, [], EncodingOptions(node_size_base=25.0))
        assert len(render_nodes) == 1
        node = render_nodes[0]
        assert node.display_size == pytest.approx(7.5)
        assert node.opacity == pytest.approx(1.0)
        assert node.shape == ELLIPSE
        assert render_edges == []

    def test_dangling_edge_dropped(self) -> None:
        """Test an edge to a missing node is dropped and adds no degree."""
        nodes = [RawNode(id="a", name="a"), RawNode(id="b", name="b")]
        edges = [RawEdge(source="a", target="z")]
        render_nodes, render_edges = encode(nodes, edges)
        assert render_edges == []
        assert [n.degree for n in render_nodes] == [0, 0]

    def test_compute_degrees_counts_each_endpoint(self) -> None:
        nodes = [RawNode(id="a", name="a"), RawNode(id="b", name="b")]
        degrees, valid = compute_degrees(nodes, [RawEdge(source="a", target="b")] * 2)
        assert degrees == {"a": 2, "b": 2}
        assert len(valid) == 2

    def test_edge_labels_suppressed_by_default(self, small_payload) -> None:
        """Test edge labels are empty unless requested, raw label preserved."""
        _, edges = encode(small_payload.nodes, small_payload.edges)
        ab = next(e for e in edges if e.id == "ab")
        assert ab.label == ""
        assert ab.raw.label == "knows"

    def test_edge_labels_shown_when_requested(self, small_payload) -> None:
        _, edges = encode(small_payload.nodes, small_payload.edges, EncodingOptions(show_edge_labels=True))
        assert {e.label for e in edges} == {"knows", "works at"}

    def test_edge_ids_unique(self) -> None:
        """Test duplicate or missing edge ids still produce unique ids."""
        nodes = [RawNode(id="a", name="a"), RawNode(id="b", name="b")]
        edges = [RawEdge(source="a", target="b", id="x"), RawEdge(source="b", target="a", id="x"), RawEdge(source="a", target="b")]
        _, render_edges = encode(nodes, edges)
        ids = [e.id for e in render_edges]
        assert len(set(ids)) == 3

    def test_suffixed_edge_ids_do_not_collide(self) -> None:
        """Test a generated suffix never reuses an id already taken."""
        nodes = [RawNode(id="a", name="a"), RawNode(id="b", name="b")]
        edges = [
            RawEdge(source="a", target="b", id="x"),
            RawEdge(source="a", target="b", id="x#2"),
            RawEdge(source="b", target="a", id="x"),
        ]
        render_nodes, render_edges = encode(nodes, edges)
        ids = [e.id for e in render_edges]
        assert len(set(ids)) == 3
        assert ids[:2] == ["x", "x#2"]
        assert sum(n.degree for n in render_nodes) == 2 * len(set(ids))

    def test_elements_start_visible(self, small_payload) -> None:
        nodes, edges = encode(small_payload.nodes, small_payload.edges)
        assert all(n.visible for n in nodes)
        assert all(e.visible for e in edges)

    def test_rgb(self, small_payload) -> None:
        nodes, _ = encode(small_payload.nodes, small_payload.edges)
        r, g, b = nodes[0].rgb
        assert 0.0 <= r <= 1.0 and 0.0 <= g <= 1.0 and 0.0 <= b <= 1.0


class TestLegend:
    """Tests for legend rows."""

    def test_semantic_legend_follows_types_present(self, small_payload) -> None:
        nodes, _ = encode(small_payload.nodes, small_payload.edges)
        entries = legend_entries(nodes)
        assert [e.label for e in entries] == ["person", "concept", "organization"]
        assert entries[1].shape == DIAMOND

    def test_legend_merges_type_case(self) -> None:
        """Test type spellings differing only in case share one legend row."""
        nodes = [RawNode(id="a", name="a", type="Person"), RawNode(id="b", name="b", type="person")]
        render_nodes, _ = encode(nodes, [])
        entries = legend_entries(render_nodes)
        assert len(entries) == 1
        assert entries[0].color == "#ef4444"

    def test_confidence_legend(self, small_payload) -> None:
        nodes, _ = encode(small_payload.nodes, small_payload.edges)
        assert len(legend_entries(nodes, "confidence")) == 3
