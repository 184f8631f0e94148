"""Unit tests for the knowledge-graph view."""

import json
import os

import pytest

import kg_viewer.render2d as render2d
from kg_viewer.filtering import FilterState, apply_filter
from kg_viewer.models import GraphPayload, RawNode
from kg_viewer.presets import ExportSettings, ViewerConfig
from kg_viewer.render2d import output_size
from kg_viewer.styling import UNIFORM_COLOR, encode
from kg_viewer.view import KnowledgeGraphView, ViewState, is_unavailable
from kg_viewer.viewport import Viewport


class TestVisibilityFilter:
    """Tests for the visibility filter."""

    def test_search_hides_non_matching_and_their_edges(self, small_payload) -> None:
        nodes, edges = encode(small_payload.nodes, small_payload.edges)
        assert apply_filter(nodes, edges, FilterState(search_text="alp")) == (1, 0)
        assert [n.id for n in nodes if n.visible] == ["a"]
        assert not any(e.visible for e in edges)

    def test_edge_hidden_when_one_end_hidden(self, small_payload) -> None:
        nodes, edges = encode(small_payload.nodes, small_payload.edges)
        apply_filter(nodes, edges, FilterState(excluded_types=frozenset({"concept"})))
        visible = {e.id: e.visible for e in edges}
        assert visible == {"ab": False, "ac": True}

    def test_idempotent(self, small_payload) -> None:
        nodes, edges = encode(small_payload.nodes, small_payload.edges)
        state = FilterState(search_text="a")
        first = apply_filter(nodes, edges, state)
        assert apply_filter(nodes, edges, state) == first

    def test_filter_does_not_touch_encoding(self, small_payload) -> None:
        nodes, edges = encode(small_payload.nodes, small_payload.edges)
        sizes = [n.display_size for n in nodes]
        apply_filter(nodes, edges, FilterState(search_text="zzz"))
        assert [n.display_size for n in nodes] == sizes

    def test_trailing_space_is_part_of_query(self, small_payload) -> None:
        """Test the query is matched as typed, without trimming."""
        nodes, edges = encode(small_payload.nodes, small_payload.edges)
        apply_filter(nodes, edges, FilterState(search_text="alp "))
        assert [n.id for n in nodes if n.visible] == []

    def test_whitespace_only_query_filters(self, small_payload) -> None:
        """Test a blank query only keeps names containing the blank."""
        nodes, edges = encode(small_payload.nodes, small_payload.edges)
        assert FilterState(search_text="   ").is_active
        apply_filter(nodes, edges, FilterState(search_text="   "))
        assert [n.id for n in nodes if n.visible] == []
        apply_filter(nodes, edges, FilterState(search_text=" "))
        assert [n.id for n in nodes if n.visible] == ["c"]

    def test_toggle_type(self) -> None:
        state = FilterState().toggle_type("person")
        assert state.excluded_types == {"person"}
        assert state.toggle_type("person").excluded_types == frozenset()


class TestViewStates:
    """Tests for placeholder selection."""

    def test_empty_graph(self, view) -> None:
        vm = view.render({"nodes": [], "edges": []})
        assert vm.state is ViewState.EMPTY
        assert vm.placeholder.title == "No Knowledge Graph Data"
        assert view.adapter.build_count == 0

    def test_empty_with_project(self, view) -> None:
        vm = view.render(GraphPayload(), selected_project="Research")
        assert vm.placeholder.message == 'No knowledge has been added to the "Research" project yet.'

    def test_loading(self, view, small_payload) -> None:
        view.render(small_payload)
        vm = view.render(small_payload, is_loading=True, selected_project="Research")
        assert vm.state is ViewState.LOADING
        assert vm.placeholder.message == "Analyzing Research knowledge structure..."
        assert not view.adapter.has_session

    def test_error_is_distinct_from_empty(self, view) -> None:
        vm = view.render(None, error="Invalid project id")
        assert vm.state is ViewState.ERROR
        assert vm.placeholder.message == "Invalid project id"

    def test_unavailable_error(self, view) -> None:
        vm = view.render(None, error="Request failed: 503 Service Unavailable")
        assert vm.state is ViewState.UNAVAILABLE
        assert vm.placeholder.action == "refresh"

    def test_unavailable_warning_on_empty_payload(self, view) -> None:
        vm = view.render({"data": {"nodes": []}, "metadata": {"warning": "RAG service temporarily unavailable"}})
        assert vm.state is ViewState.UNAVAILABLE

    def test_is_unavailable(self) -> None:
        sigs = ("timeout",)
        assert is_unavailable("Gateway TIMEOUT", sigs)
        assert not is_unavailable("bad input", sigs)
        assert not is_unavailable(None, sigs)

    def test_graph_state_and_status(self, view, small_payload) -> None:
        vm = view.render(small_payload)
        assert vm.state is ViewState.GRAPH
        assert vm.placeholder is None
        assert vm.status.nodes_total == 3
        assert vm.status.edges_total == 2
        assert vm.status.nodes_visible == 3
        assert vm.status.zoom_percent == round(view.adapter.zoom_level * 100)
        assert vm.node_types == ["person", "concept", "organization"]
        assert vm.statistics.node_count == 3

    def test_construction_failure_is_not_rendered(self, fast_config, small_payload) -> None:
        def broken(*args, **kwargs):
            raise RuntimeError("no canvas")

        refreshed = []
        view = KnowledgeGraphView(fast_config, layout_fn=broken)
        vm = view.render(small_payload, on_refresh=lambda: refreshed.append(1))
        assert vm.state is ViewState.NOT_RENDERED
        assert vm.placeholder.action == "refresh"

        view.render(small_payload, on_refresh=lambda: refreshed.append(1))
        assert view.adapter.build_count == 1

        view.refresh()
        assert refreshed == [1]
        view.render(small_payload)
        assert view.adapter.build_count == 2


class TestRenderCycle:
    """Tests for rebuild behaviour across render ticks."""

    def test_callback_identity_does_not_rebuild(self, view, small_payload) -> None:
        view.render(small_payload, on_node_select=lambda n: None)
        view.render(small_payload, on_node_select=lambda n: None)
        assert view.adapter.build_count == 1

    def test_confidence_change_keeps_layout(self, view, small_payload) -> None:
        view.render(small_payload)
        positions = view.adapter.positions()
        opacity = view.adapter.node("b").opacity

        dimmer = GraphPayload(
            nodes=[RawNode(id=n.id, name=n.name, type=n.type, confidence=0.0) for n in small_payload.nodes],
            edges=small_payload.edges,
        )
        view.render(dimmer)
        assert view.adapter.build_count == 1
        assert view.adapter.positions() == positions
        assert view.adapter.node("b").opacity == opacity

    def test_refresh_encoding_on_tick(self, small_payload) -> None:
        view = KnowledgeGraphView(ViewerConfig(layout="grid", refresh_encoding_on_tick=True))
        view.render(small_payload)
        dimmer = GraphPayload(
            nodes=[RawNode(id=n.id, name=n.name, type=n.type, confidence=0.0) for n in small_payload.nodes],
            edges=small_payload.edges,
        )
        view.render(dimmer)
        assert view.adapter.build_count == 1
        assert view.adapter.node("b").opacity == pytest.approx(0.4)

    @pytest.mark.parametrize("count, base", [(499, 25.0), (501, 20.0)])
    def test_size_tiering(self, payload_factory, count, base) -> None:
        view = KnowledgeGraphView(ViewerConfig(layout="grid"))
        view.render(payload_factory(count))
        assert view.adapter.params.node_size_base == base
        assert max(n.display_size for n in view.adapter.nodes) == pytest.approx(2.0 * base)

    def test_search_filter_via_view(self, view, small_payload) -> None:
        view.render(small_payload)
        view.set_search_text("alp")
        vm = view.view_model()
        assert vm.status.nodes_visible == 1
        assert vm.status.edges_visible == 0
        view.reset_filters()
        assert view.view_model().status.nodes_visible == 3

    def test_filter_waits_for_ready(self, fast_config, scheduler, small_payload) -> None:
        view = KnowledgeGraphView(fast_config, scheduler=scheduler)
        view.render(small_payload)
        view.set_search_text("alp")
        assert view.adapter.node("b").visible is True
        scheduler.run_all()
        assert view.adapter.node("b").visible is False

    def test_toggle_type(self, view, small_payload) -> None:
        view.render(small_payload)
        view.toggle_type("organization")
        assert view.adapter.node("c").visible is False
        assert view.adapter.edge("ac").visible is False

    def test_panel_toggles(self, view, small_payload) -> None:
        view.render(small_payload)
        assert view.toggle_legend() is False
        assert view.toggle_filter_panel() is True
        vm = view.view_model()
        assert vm.legend_visible is False
        assert vm.filter_panel_visible is True
        assert view.adapter.build_count == 1

    def test_close(self, view, small_payload) -> None:
        view.render(small_payload)
        view.close()
        assert not view.adapter.has_session


class TestInteraction:
    """Tests for taps, hover and details."""

    def test_tap_node_passes_raw_entity(self, view, small_payload) -> None:
        received = []
        view.render(small_payload, on_node_select=received.append)
        assert view.tap_node("a")
        assert received == [small_payload.nodes[0]]
        assert isinstance(received[0], RawNode)
        assert view.view_model().selection.id == "a"

    def test_latest_callback_is_used(self, view, small_payload) -> None:
        first, second = [], []
        view.render(small_payload, on_node_select=first.append)
        view.render(small_payload, on_node_select=second.append)
        view.tap_node("a")
        assert first == []
        assert len(second) == 1

    def test_tap_edge(self, view, small_payload) -> None:
        received = []
        view.render(small_payload, on_edge_select=received.append)
        assert view.tap_edge("ab")
        assert received[0].label == "knows"
        details = view.view_model().details
        assert details.title == "knows"
        assert ("Connection", "a → b") in details.rows
        assert ("Confidence", "90%") in details.rows

    def test_hidden_element_ignored(self, view, small_payload) -> None:
        received = []
        view.render(small_payload, on_node_select=received.append)
        view.set_search_text("alp")
        assert not view.tap_node("b")
        assert not view.hover_node("b")
        assert received == []

    def test_callback_error_is_contained(self, view, small_payload) -> None:
        def boom(node):
            raise ValueError("host bug")

        view.render(small_payload, on_node_select=boom)
        assert view.tap_node("a")
        assert view.interaction.selection.id == "a"

    def test_background_tap_clears_selection(self, view, small_payload) -> None:
        view.render(small_payload)
        view.tap_node("a")
        view.tap_background()
        assert view.view_model().selection is None

    def test_node_details(self, view, small_payload) -> None:
        view.render(small_payload)
        view.tap_node("a")
        details = view.view_model().details
        assert details.title == "Alpha"
        assert ("Confidence", "100%") in details.rows
        assert ("Connections", "2") in details.rows

    def test_hover_tooltip_anchored_above(self, view, small_payload) -> None:
        view.render(small_payload)
        assert view.hover_node("a")
        tip = view.view_model().tooltip
        x, y = view.adapter.rendered_position("a")
        assert tip.visible
        assert tip.name == "Alpha"
        assert tip.type == "person"
        assert tip.position[0] == pytest.approx(x)
        assert tip.position[1] < y

    def test_mouseout_clears_tooltip(self, view, small_payload) -> None:
        view.render(small_payload)
        view.hover_node("a")
        view.mouseout_node("a")
        assert not view.view_model().tooltip.visible

    @pytest.mark.parametrize("action", ["zoom_in", "zoom_out", "pan"])
    def test_viewport_change_clears_tooltip(self, view, small_payload, action) -> None:
        view.render(small_payload)
        view.hover_node("a")
        if action == "pan":
            view.pan(10, 5)
        else:
            getattr(view, action)()
        assert not view.view_model().tooltip.visible

    def test_pick(self, view, small_payload) -> None:
        view.render(small_payload)
        x, y = view.adapter.rendered_position("b")
        assert view.pick(x, y) == "b"


class TestSettings:
    """Tests for display-setting changes."""

    def test_visual_change_updates_in_place(self, view, small_payload) -> None:
        view.render(small_payload)
        positions = view.adapter.positions()
        view.update_settings(color_scheme="uniform")
        assert {n.color for n in view.adapter.nodes} == {UNIFORM_COLOR}
        assert view.adapter.positions() == positions
        assert view.adapter.build_count == 1

    def test_labels_off(self, view, small_payload) -> None:
        view.render(small_payload)
        view.update_settings(show_labels=False)
        assert all(n.label == "" for n in view.adapter.nodes)

    def test_layout_change_reruns(self, view, small_payload) -> None:
        view.render(small_payload)
        view.update_settings(layout="circle")
        assert view.adapter.layout_runs == 2
        assert view.adapter.params.name == "circle"
        assert view.adapter.build_count == 1

    def test_unknown_setting(self, view) -> None:
        with pytest.raises(ValueError):
            view.update_settings(colour="red")

    def test_run_layout(self, view, small_payload) -> None:
        view.render(small_payload)
        assert view.run_layout()
        assert view.adapter.layout_runs == 2

    def test_reset_view(self, view, small_payload) -> None:
        view.render(small_payload)
        view.zoom_in()
        assert view.reset_view()


class TestExport:
    """Tests for image export."""

    def test_writes_png_and_sidecar(self, view, small_payload, tmp_path) -> None:
        view.render(small_payload, selected_project="My Project")
        path = view.export_image(str(tmp_path))
        assert os.path.basename(path) == "knowledge-graph-My-Project.png"
        with open(path, "rb") as f:
            data = f.read()
        assert data[:8] == b"\x89PNG\r\n\x1a\n"
        width = int.from_bytes(data[16:20], "big")
        height = int.from_bytes(data[20:24], "big")
        assert (width, height) == (1600, 1200)

        with open(path + ".meta.json", encoding="utf-8") as f:
            meta = json.load(f)
        assert meta["nodes_total"] == 3
        assert meta["project"] == "My Project"

    def test_default_name(self, view, small_payload, tmp_path) -> None:
        view.render(small_payload)
        assert os.path.basename(view.export_image(str(tmp_path))) == "knowledge-graph-default.png"

    def test_pixel_ceiling(self) -> None:
        w, h, scale = output_size(Viewport(width=800, height=600), ExportSettings(scale=4))
        assert (w, h) == (2000, 1500)
        assert scale == pytest.approx(2.5)

    def test_failure_writes_nothing(self, view, small_payload, tmp_path, monkeypatch) -> None:
        def broken(frame, settings):
            raise RuntimeError("no raster backend")

        monkeypatch.setattr(render2d, "render_png", broken)
        view.render(small_payload)
        assert view.export_image(str(tmp_path)) is None
        assert os.listdir(tmp_path) == []

    def test_nothing_to_export(self, view, tmp_path) -> None:
        view.render(GraphPayload())
        assert view.export_image(str(tmp_path)) is None

    def test_export_logs_reach_emit(self, fast_config, emit, events, tmp_path) -> None:
        """Test export log lines are forwarded on the emit channel."""
        view = KnowledgeGraphView(fast_config, emit=emit)
        try:
            view.render(GraphPayload())
            assert view.export_image(str(tmp_path)) is None
        finally:
            view.close()
        assert ("log", {"message": "[export] nothing to export"}) in events
