"""
Headless knowledge-graph view.

``KnowledgeGraphView.render`` is one render tick of the host UI. It picks
the view state (loading / error / unavailable / empty / graph), keeps the
layout session in step with the graph fingerprint, and returns a
``ViewModel`` describing everything the host needs to draw: placeholder,
status strip, legend, filter checklist, tooltip and details panel.

Pointer events and control-surface buttons are plain method calls.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from .analytics import compute_graph_statistics
from .errors import ExportFailure
from .filtering import FilterState, apply_filter
from .fingerprint import compute_graph_fingerprint
from .interaction import CallbackSlot, ElementDetails, InteractionController, Selection, Tooltip
from .loader import load_graph_payload
from .metadata import build_export_meta, export_filename, write_export, write_export_metadata
from .models import GraphPayload, GraphStatistics
from .presets import DEFAULT_CONFIG, ViewerConfig
from .render2d import output_size
from .scheduling import Scheduler
from .session import DEFAULT_EMIT, LayoutEngineAdapter, LayoutFn
from .styling import EncodingOptions, LegendEntry, encode, legend_entries
from .viewport import Point, Viewport

logger = logging.getLogger(__name__)


def _log(msg: str, emit: Callable[[str, Dict[str, Any]], None] | None, level: int = logging.INFO) -> None:
    logger.log(level, msg)
    if emit:
        try:
            emit("log", {"message": msg})
        except Exception:
            pass


SETTINGS_KEYS = (
    "layout",
    "color_scheme",
    "show_labels",
    "show_edge_labels",
    "physics",
    "node_size",
    "edge_width",
)
_RELAYOUT_KEYS = {"layout", "physics"}


# ====================================================================== #
# View model
# ====================================================================== #

class ViewState(str, Enum):
    LOADING = "loading"
    ERROR = "error"
    UNAVAILABLE = "unavailable"
    EMPTY = "empty"
    NOT_RENDERED = "not_rendered"
    GRAPH = "graph"


@dataclass(frozen=True)
class Placeholder:
    state: ViewState
    title: str
    message: str
    hint: Optional[str] = None
    action: Optional[str] = None  # "refresh" when a manual retry is offered


@dataclass(frozen=True)
class StatusStrip:
    nodes_total: int
    edges_total: int
    nodes_visible: int
    edges_visible: int
    zoom_percent: int

    def text(self) -> str:
        return (
            f"Nodes: {self.nodes_visible}/{self.nodes_total}  "
            f"Edges: {self.edges_visible}/{self.edges_total}  "
            f"Zoom: {self.zoom_percent}%"
        )


@dataclass
class ViewModel:
    state: ViewState
    project: Optional[str] = None
    placeholder: Optional[Placeholder] = None
    status: Optional[StatusStrip] = None
    legend: List[LegendEntry] = field(default_factory=list)
    legend_visible: bool = True
    filter_panel_visible: bool = False
    filter: FilterState = field(default_factory=FilterState)
    node_types: List[str] = field(default_factory=list)
    tooltip: Tooltip = field(default_factory=Tooltip)
    selection: Optional[Selection] = None
    details: Optional[ElementDetails] = None
    statistics: Optional[GraphStatistics] = None


def is_unavailable(message: Optional[str], signatures: Sequence[str]) -> bool:
    """True when a message matches a known backend-unavailability signature."""
    if not message:
        return False
    text = message.lower()
    return any(sig.lower() in text for sig in signatures)


# ====================================================================== #
# View
# ====================================================================== #

class KnowledgeGraphView:
    """
    Owns one LayoutEngineAdapter, one InteractionController and the local
    UI state (filter, legend and panel toggles).
    """

    def __init__(
        self,
        config: ViewerConfig | None = None,
        *,
        scheduler: Scheduler | None = None,
        layout_fn: LayoutFn | None = None,
        emit: Callable[[str, Dict[str, Any]], None] = DEFAULT_EMIT,
    ) -> None:
        self.config = config or DEFAULT_CONFIG
        self.emit = emit
        if self.config.enable_logging:
            logging.basicConfig(level=logging.INFO)
            logger.info("Initializing KnowledgeGraphView with config: %s", self.config.to_dict())

        self.adapter = LayoutEngineAdapter(
            self.config,
            scheduler=scheduler,
            layout_fn=layout_fn,
            on_ready=self._on_ready,
            on_viewport_change=self._on_viewport_change,
            emit=emit,
        )
        self.interaction = InteractionController(self.adapter, self.config.style, emit)
        self.on_refresh = CallbackSlot("on_refresh")

        self.filter = FilterState()
        self.legend_visible = True
        self.filter_panel_visible = False

        self.payload: Optional[GraphPayload] = None
        self.project: Optional[str] = None
        self.state = ViewState.EMPTY
        self.placeholder: Optional[Placeholder] = None

        self._failed_fingerprint: Optional[str] = None
        self._force_rebuild = False
        self._stats_for: Optional[GraphPayload] = None
        self._stats: Optional[GraphStatistics] = None

    # ------------------------------------------------------------------ #
    # Render tick
    # ------------------------------------------------------------------ #

    def render(
        self,
        payload: Union[GraphPayload, Mapping[str, Any], None] = None,
        *,
        selected_project: Optional[str] = None,
        is_loading: bool = False,
        error: Optional[str] = None,
        on_node_select: Optional[Callable[[Any], None]] = None,
        on_edge_select: Optional[Callable[[Any], None]] = None,
        on_refresh: Optional[Callable[[], None]] = None,
    ) -> ViewModel:
        # Latest callbacks; swapping them never triggers a rebuild.
        self.interaction.on_node_select.set(on_node_select)
        self.interaction.on_edge_select.set(on_edge_select)
        self.on_refresh.set(on_refresh)

        if payload is not None and not isinstance(payload, GraphPayload):
            payload = load_graph_payload(payload)

        self.project = selected_project
        self.payload = payload
        signatures = self.config.unavailable_signatures

        if is_loading:
            self._show_placeholder(self._loading_placeholder())
        elif error:
            if is_unavailable(error, signatures):
                self._show_placeholder(self._unavailable_placeholder(error))
            else:
                self._show_placeholder(Placeholder(ViewState.ERROR, "Error Loading Graph", error))
        elif payload is None or payload.is_empty:
            warning = payload.warning if payload is not None else None
            if is_unavailable(warning, signatures):
                self._show_placeholder(self._unavailable_placeholder(warning))
            else:
                self._show_placeholder(self._empty_placeholder())
        else:
            self._render_graph(payload)

        return self.view_model()

    def _render_graph(self, payload: GraphPayload) -> None:
        fp = compute_graph_fingerprint(payload.nodes, payload.edges)

        if self._force_rebuild:
            self.adapter.destroy()
            self._force_rebuild = False

        if self.adapter.has_session and self.adapter.fingerprint == fp:
            if self.config.refresh_encoding_on_tick:
                nodes, edges = encode(payload.nodes, payload.edges, self._encoding_options())
                self.adapter.update_attributes(nodes, edges)
        elif fp == self._failed_fingerprint:
            # Wait for an explicit refresh before trying the same graph again.
            pass
        else:
            nodes, edges = encode(payload.nodes, payload.edges, self._encoding_options())
            if self.adapter.ensure_session(nodes, edges, fp):
                self._failed_fingerprint = None
                self.interaction.mouseout_node()
                self.interaction.prune()
                try:
                    self.emit("pipeline", {"stage": "session", "fingerprint": fp, "nodes": len(nodes)})
                except Exception:
                    pass
            elif not self.adapter.has_session:
                self._failed_fingerprint = fp

        if self.adapter.has_session:
            self.state = ViewState.GRAPH
            self.placeholder = None
        else:
            self.state = ViewState.NOT_RENDERED
            self.placeholder = Placeholder(
                ViewState.NOT_RENDERED,
                "Graph Not Rendered",
                "The graph layout could not be built.",
                hint="Refresh to try again.",
                action="refresh",
            )

    def _show_placeholder(self, placeholder: Placeholder) -> None:
        # No simulation may outlive the graph it was drawing.
        if self.adapter.has_session:
            self.adapter.destroy()
        self.interaction.reset()
        self.state = placeholder.state
        self.placeholder = placeholder

    # Placeholder texts --------------------------------------------------

    def _loading_placeholder(self) -> Placeholder:
        return Placeholder(
            ViewState.LOADING,
            "Loading Knowledge Graph",
            f"Analyzing {self.project or 'your'} knowledge structure...",
        )

    def _unavailable_placeholder(self, message: Optional[str]) -> Placeholder:
        return Placeholder(
            ViewState.UNAVAILABLE,
            "Knowledge Graph Temporarily Unavailable",
            message or "The knowledge service is not responding.",
            hint="Try again in a moment.",
            action="refresh",
        )

    def _empty_placeholder(self) -> Placeholder:
        if self.project:
            message = f'No knowledge has been added to the "{self.project}" project yet.'
        else:
            message = "Start by inserting knowledge to build your graph visualization."
        return Placeholder(ViewState.EMPTY, "No Knowledge Graph Data", message)

    # ------------------------------------------------------------------ #
    # View model
    # ------------------------------------------------------------------ #

    def statistics(self) -> Optional[GraphStatistics]:
        payload = self.payload
        if payload is None or payload.is_empty:
            return None
        if payload.statistics is not None:
            return payload.statistics
        if self._stats_for is not payload:
            self._stats = compute_graph_statistics(payload)
            self._stats_for = payload
        return self._stats

    def status(self) -> StatusStrip:
        nodes = self.adapter.nodes
        edges = self.adapter.edges
        vp = self.adapter.viewport()
        return StatusStrip(
            nodes_total=len(nodes),
            edges_total=len(edges),
            nodes_visible=sum(1 for n in nodes if n.visible),
            edges_visible=sum(1 for e in edges if e.visible),
            zoom_percent=vp.zoom_percent if vp is not None else 100,
        )

    def view_model(self) -> ViewModel:
        vm = ViewModel(
            state=self.state,
            project=self.project,
            placeholder=self.placeholder,
            legend_visible=self.legend_visible,
            filter_panel_visible=self.filter_panel_visible,
            filter=self.filter,
        )
        if self.state is ViewState.GRAPH:
            vm.status = self.status()
            vm.legend = legend_entries(self.adapter.nodes, self.config.color_scheme)
            vm.node_types = self.payload.node_types() if self.payload else []
            vm.tooltip = self.interaction.tooltip
            vm.selection = self.interaction.selection
            vm.details = self.interaction.details()
            vm.statistics = self.statistics()
        return vm

    # ------------------------------------------------------------------ #
    # Adapter hooks
    # ------------------------------------------------------------------ #

    def _on_ready(self) -> None:
        # Fresh elements start visible; bring them in line with the filter.
        apply_filter(self.adapter.nodes, self.adapter.edges, self.filter)
        self.interaction.prune()

    def _on_viewport_change(self, viewport: Viewport) -> None:
        self.interaction.viewport_changed()

    def _encoding_options(self) -> EncodingOptions:
        n = len(self.payload.nodes) if self.payload else 0
        params = self.config.layout_params(n)
        return EncodingOptions(
            node_size_base=params.node_size_base,
            show_edge_labels=self.config.show_edge_labels,
            show_labels=self.config.show_labels,
            color_scheme=self.config.color_scheme,
            edge_width=params.edge_width,
        )

    # ------------------------------------------------------------------ #
    # Pointer events
    # ------------------------------------------------------------------ #

    def tap_node(self, node_id: str) -> bool:
        return self.interaction.tap_node(node_id)

    def tap_edge(self, edge_id: str) -> bool:
        return self.interaction.tap_edge(edge_id)

    def tap_background(self) -> None:
        self.interaction.tap_background()

    def hover_node(self, node_id: str) -> bool:
        return self.interaction.hover_node(node_id)

    def mouseout_node(self, node_id: Optional[str] = None) -> None:
        self.interaction.mouseout_node(node_id)

    def pick(self, x: float, y: float) -> Optional[str]:
        """Id of the visible node under a screen point, if any."""
        return self.adapter.element_at((x, y))

    def pan(self, dx: float, dy: float) -> bool:
        return self.adapter.pan(dx, dy)

    # ------------------------------------------------------------------ #
    # Control surface
    # ------------------------------------------------------------------ #

    def zoom_in(self) -> bool:
        return self.adapter.zoom(self.config.zoom_in_factor)

    def zoom_out(self) -> bool:
        return self.adapter.zoom(self.config.zoom_out_factor)

    def zoom(self, factor: float, center_point: Optional[Point] = None) -> bool:
        return self.adapter.zoom(factor, center_point)

    def reset_view(self) -> bool:
        return self.adapter.fit()

    def run_layout(self) -> bool:
        if not self.adapter.has_session:
            return False
        params = self.config.layout_params(len(self.adapter.nodes))
        return self.adapter.rerun(params, seed=None)

    def toggle_legend(self) -> bool:
        self.legend_visible = not self.legend_visible
        return self.legend_visible

    def toggle_filter_panel(self) -> bool:
        self.filter_panel_visible = not self.filter_panel_visible
        return self.filter_panel_visible

    def set_search_text(self, text: str) -> None:
        self.filter = self.filter.with_search(text)
        self._apply_filter()

    def toggle_type(self, node_type: str) -> None:
        self.filter = self.filter.toggle_type(node_type)
        self._apply_filter()

    def reset_filters(self) -> None:
        self.filter = FilterState()
        self._apply_filter()

    def _apply_filter(self) -> None:
        # Before Ready, on_ready picks up the current filter.
        if self.adapter.is_ready:
            apply_filter(self.adapter.nodes, self.adapter.edges, self.filter)
            self.interaction.prune()

    def update_settings(self, **changes: Any) -> ViewerConfig:
        """
        Change display settings. Visual changes are re-encoded onto the live
        elements; layout or physics changes re-run the layout.
        """
        unknown = set(changes) - set(SETTINGS_KEYS)
        if unknown:
            raise ValueError(f"unknown settings: {sorted(unknown)}")

        previous = self.config
        self.config = replace(previous, **changes)
        self.adapter.config = self.config
        changed = {k for k in changes if getattr(previous, k) != getattr(self.config, k)}
        if not changed or not self.adapter.has_session or self.payload is None:
            return self.config

        nodes, edges = encode(self.payload.nodes, self.payload.edges, self._encoding_options())
        self.adapter.update_attributes(nodes, edges)
        if changed & _RELAYOUT_KEYS:
            self.adapter.rerun(self.config.layout_params(len(self.adapter.nodes)))
        return self.config

    def refresh(self) -> None:
        """User-triggered retry: rebuild on the next render and ask the host for data."""
        self._failed_fingerprint = None
        self._force_rebuild = True
        self.on_refresh()

    def export_image(self, directory: str = ".") -> Optional[str]:
        """
        Write the current view as PNG (plus its metadata sidecar) into
        ``directory``. Returns the image path, or None if nothing was written.
        """
        if self.state is not ViewState.GRAPH or not self.adapter.has_session:
            _log("[export] nothing to export", self.emit, logging.WARNING)
            return None

        settings = self.config.export
        filename = export_filename(self.project, settings.filename_prefix)
        sel = self.interaction.selection
        written: List[str] = []
        try:
            png = self.adapter.export_image(
                settings,
                selected=sel.as_tuple() if sel else None,
                hovered=self.interaction.hovered,
            )
            path = write_export(directory, filename, png)
            written.append(path)

            if settings.write_metadata:
                status = self.status()
                w, h, _ = output_size(self.adapter.viewport(), settings)
                params = self.adapter.params
                meta = build_export_meta(
                    filename,
                    project=self.project,
                    fingerprint=self.adapter.fingerprint,
                    size=(w, h),
                    totals=(status.nodes_total, status.edges_total),
                    visible=(status.nodes_visible, status.edges_visible),
                    zoom=self.adapter.zoom_level,
                    layout_info=params.to_dict() if params else None,
                    filter_info=self.filter.to_dict(),
                )
                written.append(write_export_metadata(directory, meta))
        except (ExportFailure, OSError) as exc:
            _log(f"[export] export failed: {exc}", self.emit, logging.ERROR)
            for p in written:
                try:
                    os.remove(p)
                except OSError:
                    logger.warning("could not remove partial export %s", p)
            return None

        try:
            self.emit("artifact", {"kind": "graph-export", "path": path})
        except Exception:
            pass
        _log(f"[export] wrote {path}", self.emit)
        return path

    def close(self) -> None:
        """Unmount: tear down the session and local interaction state."""
        self.adapter.destroy()
        self.interaction.reset()


__all__ = [
    "ViewState",
    "Placeholder",
    "StatusStrip",
    "ViewModel",
    "KnowledgeGraphView",
    "is_unavailable",
]
