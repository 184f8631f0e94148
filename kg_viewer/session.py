"""
Layout engine adapter: owns the one live layout session for a view.

State machine:

    UNINITIALIZED --ensure_session--> BUILDING --layout stop--> READY
    READY --fingerprint change--> (destroy) BUILDING
    READY --rerun--> BUILDING
    any   --destroy--> DESTROYED

``ensure_session`` is keyed by the structural fingerprint: calling it again
with the same fingerprint while a session exists is a no-op, whatever the
confidence or labels did. Attribute-only refreshes go through
``update_attributes`` and never change state or positions.

The animation loop is a chain of callbacks on the host scheduler. Every
pending callback is tracked on the session and cancelled by ``destroy``;
callbacks that still fire for a superseded session are ignored.

Nothing outside this module touches a LayoutSession directly. Callers see
elements (for the visibility filter and interaction), positions, and the
control surface (zoom / pan / fit / center / rerun / export).
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, Tuple

import numpy as np

from .errors import ConstructionFailure, ExportFailure
from .layout.layout2d import Positions, compute_layout_2d, random_positions, to_world
from .presets import DEFAULT_CONFIG, ExportSettings, LayoutParams, ViewerConfig
from .scheduling import Handle, ImmediateScheduler, Scheduler
from .styling import RenderEdge, RenderNode
from .viewport import Bounds, Point, Viewport

logger = logging.getLogger(__name__)

DEFAULT_EMIT: Callable[[str, Dict[str, Any]], None] = lambda *_: None

LayoutFn = Callable[..., Positions]


def _log(msg: str, emit: Callable[[str, Dict[str, Any]], None] | None, level: int = logging.INFO) -> None:
    logger.log(level, msg)
    if emit:
        try:
            emit("log", {"message": msg})
        except Exception:
            pass


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    BUILDING = "building"
    READY = "ready"
    DESTROYED = "destroyed"


class _Pending:
    __slots__ = ("handle", "done")

    def __init__(self) -> None:
        self.handle: Optional[Handle] = None
        self.done = False


@dataclass
class LayoutSession:
    """
    The live layout for one view.

    Positions are held as (n, 2) arrays aligned with ``ids``; ``start`` and
    ``target`` bound the running animation.
    """

    fingerprint: str
    params: LayoutParams
    ids: List[str]
    nodes: Dict[str, RenderNode]
    edges: Dict[str, RenderEdge]
    start: np.ndarray
    target: np.ndarray
    current: np.ndarray
    viewport: Viewport
    seed: Optional[int] = None
    frame: int = 0
    frames: int = 0
    pending: Set[_Pending] = field(default_factory=set)
    meta: Dict[str, Any] = field(default_factory=dict)

    def positions(self) -> Positions:
        return {n: (float(x), float(y)) for n, (x, y) in zip(self.ids, self.current)}


def _as_array(ids: Sequence[str], pos: Positions) -> np.ndarray:
    if not ids:
        return np.zeros((0, 2), float)
    return np.array([pos[n] for n in ids], float)


class LayoutEngineAdapter:
    """
    Create / destroy lifecycle and control surface for the layout session.

    ``layout_fn`` defaults to ``compute_layout_2d`` and may be swapped for
    tests or alternative engines; it receives
    ``(node_ids, edge_pairs, params, seed=..., initial=...)``.
    """

    def __init__(
        self,
        config: ViewerConfig | None = None,
        *,
        scheduler: Scheduler | None = None,
        layout_fn: LayoutFn | None = None,
        on_ready: Callable[[], None] | None = None,
        on_viewport_change: Callable[[Viewport], None] | None = None,
        emit: Callable[[str, Dict[str, Any]], None] = DEFAULT_EMIT,
    ) -> None:
        self.config = config or DEFAULT_CONFIG
        self.scheduler: Scheduler = scheduler or ImmediateScheduler()
        self.layout_fn: LayoutFn = layout_fn or compute_layout_2d
        self.on_ready = on_ready
        self.on_viewport_change = on_viewport_change
        self.emit = emit

        self._session: Optional[LayoutSession] = None
        self._state = SessionState.UNINITIALIZED

        # Sessions constructed, and Building phases entered (rebuilds + reruns).
        self.build_count = 0
        self.layout_runs = 0

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is SessionState.READY

    @property
    def has_session(self) -> bool:
        return self._session is not None

    @property
    def fingerprint(self) -> Optional[str]:
        return self._session.fingerprint if self._session else None

    @property
    def params(self) -> Optional[LayoutParams]:
        return self._session.params if self._session else None

    @property
    def zoom_level(self) -> float:
        return self._session.viewport.zoom if self._session else 1.0

    @property
    def nodes(self) -> List[RenderNode]:
        return list(self._session.nodes.values()) if self._session else []

    @property
    def edges(self) -> List[RenderEdge]:
        return list(self._session.edges.values()) if self._session else []

    def node(self, node_id: str) -> Optional[RenderNode]:
        return self._session.nodes.get(node_id) if self._session else None

    def edge(self, edge_id: str) -> Optional[RenderEdge]:
        return self._session.edges.get(edge_id) if self._session else None

    def positions(self) -> Positions:
        return self._session.positions() if self._session else {}

    def viewport(self) -> Optional[Viewport]:
        """A copy of the current viewport."""
        return replace(self._session.viewport) if self._session else None

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def ensure_session(
        self,
        render_nodes: Sequence[RenderNode],
        render_edges: Sequence[RenderEdge],
        fingerprint: str,
        params: LayoutParams | None = None,
    ) -> bool:
        """
        Build a session for this graph unless one with the same fingerprint
        already exists. Returns True when a new session was built.
        """
        if self._session is not None and self._session.fingerprint == fingerprint:
            return False

        self.destroy()
        params = params or self.config.layout_params(len(render_nodes))
        return self._build(render_nodes, render_edges, fingerprint, params, self.config.layout_seed)

    def _build(
        self,
        render_nodes: Sequence[RenderNode],
        render_edges: Sequence[RenderEdge],
        fingerprint: str,
        params: LayoutParams,
        seed: Optional[int],
    ) -> bool:
        self._state = SessionState.BUILDING
        self.build_count += 1
        self.layout_runs += 1
        try:
            session = self._construct(render_nodes, render_edges, fingerprint, params, seed)
        except Exception as exc:
            _log(f"[session] layout session construction failed: {exc}", self.emit, logging.ERROR)
            logger.debug("construction traceback", exc_info=True)
            self._session = None
            self._state = SessionState.UNINITIALIZED
            return False

        self._session = session
        _log(
            f"[session] built {len(session.ids)} nodes / {len(session.edges)} edges "
            f"({params.name}, {'large' if self.config.tiers.is_large(len(session.ids)) else 'normal'} tier)",
            self.emit,
        )
        self._start_animation(session)
        return True

    def _construct(
        self,
        render_nodes: Sequence[RenderNode],
        render_edges: Sequence[RenderEdge],
        fingerprint: str,
        params: LayoutParams,
        seed: Optional[int],
    ) -> LayoutSession:
        cfg = self.config
        if cfg.canvas_width <= 0 or cfg.canvas_height <= 0:
            raise ConstructionFailure(
                f"canvas has no area ({cfg.canvas_width}x{cfg.canvas_height})"
            )

        ids = [n.id for n in render_nodes]
        initial = random_positions(ids, seed)
        target = self.layout_fn(
            ids,
            [(e.source, e.target) for e in render_edges],
            params,
            seed=seed,
            initial=initial,
        )
        missing = [n for n in ids if n not in target]
        if missing:
            raise ConstructionFailure(f"layout returned no position for {len(missing)} node(s)")

        start = _as_array(ids, to_world(initial, params))
        viewport = Viewport(
            width=cfg.canvas_width,
            height=cfg.canvas_height,
            pan_x=cfg.canvas_width / 2.0,
            pan_y=cfg.canvas_height / 2.0,
            min_zoom=cfg.min_zoom,
            max_zoom=cfg.max_zoom,
        )
        return LayoutSession(
            fingerprint=fingerprint,
            params=params,
            ids=ids,
            nodes={n.id: n for n in render_nodes},
            edges={e.id: e for e in render_edges},
            start=start,
            target=_as_array(ids, to_world(target, params)),
            current=start.copy(),
            viewport=viewport,
            seed=seed,
        )

    def destroy(self) -> None:
        """Tear down the session and cancel its timers. Safe to call at any time."""
        session = self._session
        if session is None:
            if self._state is not SessionState.UNINITIALIZED:
                self._state = SessionState.DESTROYED
            return

        self._session = None
        for entry in list(session.pending):
            if entry.handle is None:
                continue
            try:
                entry.handle.cancel()
            except Exception as exc:
                _log(f"[session] failed to cancel pending callback: {exc}", self.emit, logging.WARNING)
        session.pending.clear()
        self._state = SessionState.DESTROYED

    # ------------------------------------------------------------------ #
    # Animation loop
    # ------------------------------------------------------------------ #

    def _schedule(self, session: LayoutSession, delay: float, fn: Callable[[], None]) -> None:
        entry = _Pending()

        def run() -> None:
            entry.done = True
            session.pending.discard(entry)
            if self._session is session:
                fn()

        session.pending.add(entry)
        entry.handle = self.scheduler.call_later(delay, run)

    def _start_animation(self, session: LayoutSession) -> None:
        p = session.params
        if not p.animate or p.animation_duration <= 0 or not session.ids:
            session.current = session.target.copy()
            self._finish_layout(session)
            return

        interval = max(p.frame_interval, 1e-3)
        session.frame = 0
        session.frames = max(1, int(math.ceil(p.animation_duration / interval)))
        self._schedule(session, interval, lambda: self._step(session))

    def _step(self, session: LayoutSession) -> None:
        session.frame += 1
        t = min(1.0, session.frame / session.frames)
        eased = t * t * (3.0 - 2.0 * t)
        session.current = session.start + (session.target - session.start) * eased
        if t >= 1.0:
            session.current = session.target.copy()
            self._finish_layout(session)
        else:
            self._schedule(session, session.params.frame_interval, lambda: self._step(session))

    def _finish_layout(self, session: LayoutSession) -> None:
        self._state = SessionState.READY
        try:
            self.emit("layout", {"event": "stop", "fingerprint": session.fingerprint})
        except Exception:
            pass
        if self.on_ready is not None:
            try:
                self.on_ready()
            except Exception as exc:
                _log(f"[session] on_ready hook failed: {exc}", self.emit, logging.ERROR)
        # Fit only after the settle delay, so it sees the filter applied on ready.
        self._schedule(session, self.config.settle_delay, lambda: self._settle(session))

    def _settle(self, session: LayoutSession) -> None:
        self.fit()
        self.center()

    # ------------------------------------------------------------------ #
    # Attribute-only refresh
    # ------------------------------------------------------------------ #

    def update_attributes(
        self,
        render_nodes: Sequence[RenderNode],
        render_edges: Sequence[RenderEdge] = (),
    ) -> int:
        """
        Copy freshly encoded visual attributes onto the live elements.
        Positions and ``visible`` flags are left alone. Returns the number
        of elements updated.
        """
        session = self._session
        if session is None:
            return 0

        updated = 0
        for fresh in render_nodes:
            cur = session.nodes.get(fresh.id)
            if cur is None:
                continue
            cur.name = fresh.name
            cur.type = fresh.type
            cur.confidence = fresh.confidence
            cur.degree = fresh.degree
            cur.display_size = fresh.display_size
            cur.opacity = fresh.opacity
            cur.shape = fresh.shape
            cur.color = fresh.color
            cur.label = fresh.label
            cur.raw = fresh.raw
            updated += 1

        for fresh in render_edges:
            cur = session.edges.get(fresh.id)
            if cur is None:
                continue
            cur.label = fresh.label
            cur.type = fresh.type
            cur.confidence = fresh.confidence
            cur.width = fresh.width
            cur.raw = fresh.raw
            updated += 1

        return updated

    # ------------------------------------------------------------------ #
    # Geometry
    # ------------------------------------------------------------------ #

    def visible_bounds(self) -> Optional[Bounds]:
        """World bounds of visible nodes (including their size); all nodes if none visible."""
        session = self._session
        if session is None or not session.ids:
            return None

        mask = np.array([session.nodes[n].visible for n in session.ids], bool)
        if not mask.any():
            mask[:] = True
        half = np.array([session.nodes[n].display_size / 2.0 for n in session.ids], float)[mask]
        pts = session.current[mask]
        return (
            float((pts[:, 0] - half).min()),
            float((pts[:, 1] - half).min()),
            float((pts[:, 0] + half).max()),
            float((pts[:, 1] + half).max()),
        )

    def rendered_position(self, node_id: str) -> Optional[Point]:
        session = self._session
        if session is None or node_id not in session.nodes:
            return None
        i = session.ids.index(node_id)
        return session.viewport.to_screen((float(session.current[i, 0]), float(session.current[i, 1])))

    def rendered_radius(self, node_id: str) -> float:
        node = self.node(node_id)
        if node is None:
            return 0.0
        return node.display_size * self.zoom_level / 2.0

    def element_at(self, point: Point) -> Optional[str]:
        """Topmost visible node under a screen point."""
        session = self._session
        if session is None:
            return None
        vp = session.viewport
        px, py = point
        for i in range(len(session.ids) - 1, -1, -1):
            node = session.nodes[session.ids[i]]
            if not node.visible:
                continue
            sx, sy = vp.to_screen((float(session.current[i, 0]), float(session.current[i, 1])))
            r = node.display_size * vp.zoom / 2.0
            if (sx - px) ** 2 + (sy - py) ** 2 <= r * r:
                return node.id
        return None

    # ------------------------------------------------------------------ #
    # Viewport control
    # ------------------------------------------------------------------ #

    def _viewport_changed(self) -> None:
        if self.on_viewport_change is None or self._session is None:
            return
        try:
            self.on_viewport_change(replace(self._session.viewport))
        except Exception as exc:
            _log(f"[session] viewport listener failed: {exc}", self.emit, logging.ERROR)

    def zoom(self, factor: float, center_point: Optional[Point] = None) -> bool:
        if self._session is None:
            return False
        changed = self._session.viewport.zoom_by(factor, center_point)
        if changed:
            self._viewport_changed()
        return changed

    def pan(self, dx: float, dy: float) -> bool:
        if self._session is None:
            return False
        changed = self._session.viewport.pan_by(dx, dy)
        if changed:
            self._viewport_changed()
        return changed

    def fit(self) -> bool:
        bounds = self.visible_bounds()
        if bounds is None:
            return False
        self._session.viewport.fit(bounds, padding=self._session.params.padding)
        self._viewport_changed()
        return True

    def center(self) -> bool:
        bounds = self.visible_bounds()
        if bounds is None:
            return False
        self._session.viewport.center_on(bounds)
        self._viewport_changed()
        return True

    def rerun(self, params: LayoutParams | None = None, *, seed: Optional[int] = None) -> bool:
        """
        Re-run the layout from fresh random positions on the existing
        elements (visibility is preserved). Returns False when there is no
        session or the layout failed, in which case the old positions stay.
        """
        session = self._session
        if session is None:
            return False

        params = params or session.params
        for entry in list(session.pending):
            if entry.handle is not None:
                entry.handle.cancel()
        session.pending.clear()

        previous = self._state
        self._state = SessionState.BUILDING
        self.layout_runs += 1
        try:
            initial = random_positions(session.ids, seed)
            target = self.layout_fn(
                session.ids,
                [(e.source, e.target) for e in session.edges.values()],
                params,
                seed=seed,
                initial=initial,
            )
            new_start = _as_array(session.ids, to_world(initial, params))
            new_target = _as_array(session.ids, to_world(target, params))
        except Exception as exc:
            _log(f"[session] re-layout failed: {exc}", self.emit, logging.ERROR)
            self._state = previous if previous is not SessionState.BUILDING else SessionState.READY
            return False

        session.params = params
        session.seed = seed
        session.start = new_start
        session.target = new_target
        session.current = new_start.copy()
        self._start_animation(session)
        return True

    # ------------------------------------------------------------------ #
    # Export
    # ------------------------------------------------------------------ #

    def export_image(
        self,
        settings: ExportSettings | None = None,
        *,
        selected: Optional[Tuple[str, str]] = None,
        hovered: Optional[str] = None,
    ) -> bytes:
        """
        Rasterise the current view to PNG bytes.

        Raises ExportFailure when there is nothing to export or the
        renderer fails.
        """
        from .render2d import RenderFrame, render_png

        session = self._session
        if session is None:
            raise ExportFailure("no layout session to export")

        frame = RenderFrame(
            nodes=[session.nodes[n] for n in session.ids],
            edges=list(session.edges.values()),
            positions=session.positions(),
            viewport=replace(session.viewport),
            style=self.config.style,
            selected=selected,
            hovered=hovered,
        )
        try:
            return render_png(frame, settings or self.config.export)
        except ExportFailure:
            raise
        except Exception as exc:
            raise ExportFailure(f"rasterisation failed: {exc}") from exc


__all__ = [
    "SessionState",
    "LayoutSession",
    "LayoutEngineAdapter",
    "DEFAULT_EMIT",
]
