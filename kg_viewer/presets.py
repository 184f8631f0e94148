"""
Preset configuration for the knowledge-graph viewer.

These are deliberately conservative, with a bias toward:
  - stable layouts (rebuild only on structural change)
  - readable styling at a glance
  - interactive latency on graphs of a few thousand nodes
"""

from __future__ import annotations

import os
from dataclasses import dataclass, asdict, field, replace
from typing import Any, Dict, Optional, Tuple


LAYOUT_NAMES = ("cose", "circle", "grid", "breadthfirst", "concentric")
COLOR_SCHEMES = ("semantic", "confidence", "uniform")


# --------------------------------------------------------------------------- #
# Layout parameters (one set per size tier)
# --------------------------------------------------------------------------- #

@dataclass(frozen=True)
class LayoutParams:
    name: str = "cose"
    animate: bool = True
    animation_duration: float = 1.0   # seconds
    frame_interval: float = 1.0 / 30.0
    iterations: int = 300
    repulsion: float = 1.0            # multiplier on the spring-layout k
    ideal_edge_length: float = 100.0  # world units per normalised unit / sqrt(n)
    padding: float = 50.0             # screen pixels kept free on fit
    node_size_base: float = 25.0
    edge_width: float = 2.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


NORMAL_LAYOUT = LayoutParams()

LARGE_LAYOUT = LayoutParams(
    animation_duration=0.3,
    iterations=80,
    repulsion=0.6,
    padding=30.0,
    node_size_base=20.0,
    edge_width=1.0,
)


@dataclass(frozen=True)
class TierPolicy:
    """
    Size-tiering: graphs with more than ``large_graph_threshold`` nodes use
    the cheaper ``large`` parameters.
    """

    large_graph_threshold: int = 500
    normal: LayoutParams = NORMAL_LAYOUT
    large: LayoutParams = LARGE_LAYOUT

    def is_large(self, node_count: int) -> bool:
        return node_count > self.large_graph_threshold

    def select(self, node_count: int, *, layout_name: Optional[str] = None) -> LayoutParams:
        params = self.large if self.is_large(node_count) else self.normal
        if layout_name and layout_name != params.name:
            params = replace(params, name=layout_name)
        return params


# --------------------------------------------------------------------------- #
# Visual style
# --------------------------------------------------------------------------- #

@dataclass
class VisualStyle:
    background_color: str = "#f8fafc"
    node_border_color: str = "#ffffff"
    node_border_width: float = 2.0

    # Hover and selection must stay visually distinct.
    hover_border_color: str = "#06b6d4"
    hover_border_width: float = 3.0
    hover_scale: float = 1.2
    selected_border_color: str = "#0e7490"
    selected_border_width: float = 4.0
    selected_scale: float = 1.3

    edge_color: str = "#cbd5e1"
    edge_alpha: float = 0.7
    selected_edge_color: str = "#06b6d4"

    label_color: str = "#1e293b"
    edge_label_color: str = "#475569"
    label_min_font_size: float = 8.0

    tooltip_offset: float = 10.0  # pixels above the node's rendered top

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# --------------------------------------------------------------------------- #
# Export
# --------------------------------------------------------------------------- #

@dataclass
class ExportSettings:
    scale: float = 2.0
    max_width: int = 2000
    max_height: int = 2000
    background_color: str = "#ffffff"
    dpi: int = 100
    filename_prefix: str = "knowledge-graph"
    write_metadata: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# --------------------------------------------------------------------------- #
# Viewer configuration
# --------------------------------------------------------------------------- #

DEFAULT_UNAVAILABLE_SIGNATURES: Tuple[str, ...] = (
    "temporarily unavailable",
    "service unavailable",
    "503",
    "502",
    "bad gateway",
    "timed out",
    "timeout",
    "econnrefused",
    "connection refused",
)


@dataclass
class ViewerConfig:
    """
    High-level configuration for a ``KnowledgeGraphView`` and the layout
    adapter it owns.
    """

    layout: str = "cose"
    color_scheme: str = "semantic"
    show_labels: bool = True
    show_edge_labels: bool = False
    physics: bool = True
    # None means "take it from the size tier".
    node_size: Optional[float] = None
    edge_width: Optional[float] = None

    tiers: TierPolicy = field(default_factory=TierPolicy)
    style: VisualStyle = field(default_factory=VisualStyle)
    export: ExportSettings = field(default_factory=ExportSettings)

    canvas_width: float = 800.0
    canvas_height: float = 600.0
    zoom_in_factor: float = 1.25
    zoom_out_factor: float = 0.8
    min_zoom: float = 0.05
    max_zoom: float = 10.0
    settle_delay: float = 0.1

    layout_seed: int = 42
    refresh_encoding_on_tick: bool = False
    unavailable_signatures: Tuple[str, ...] = DEFAULT_UNAVAILABLE_SIGNATURES

    enable_logging: bool = False
    version: str = "kg_viewer.config.v1"

    def __post_init__(self):
        # Callers occasionally pass None explicitly for nested sections.
        if self.tiers is None:
            self.tiers = TierPolicy()
        if self.style is None:
            self.style = VisualStyle()
        if self.export is None:
            self.export = ExportSettings()
        if self.layout not in LAYOUT_NAMES:
            raise ValueError(f"unknown layout {self.layout!r}; expected one of {LAYOUT_NAMES}")
        if self.color_scheme not in COLOR_SCHEMES:
            raise ValueError(
                f"unknown color scheme {self.color_scheme!r}; expected one of {COLOR_SCHEMES}"
            )

    def layout_params(self, node_count: int) -> LayoutParams:
        """Tier parameters for a graph of this size, with overrides applied."""
        params = self.tiers.select(node_count, layout_name=self.layout)
        overrides: Dict[str, Any] = {}
        if not self.physics:
            overrides["animate"] = False
        if self.node_size is not None:
            overrides["node_size_base"] = float(self.node_size)
        if self.edge_width is not None:
            overrides["edge_width"] = float(self.edge_width)
        return replace(params, **overrides) if overrides else params

    def to_dict(self) -> Dict[str, Any]:
        return {
            "layout": self.layout,
            "color_scheme": self.color_scheme,
            "show_labels": self.show_labels,
            "show_edge_labels": self.show_edge_labels,
            "physics": self.physics,
            "node_size": self.node_size,
            "edge_width": self.edge_width,
            "tiers": {
                "large_graph_threshold": self.tiers.large_graph_threshold,
                "normal": self.tiers.normal.to_dict(),
                "large": self.tiers.large.to_dict(),
            },
            "style": self.style.to_dict(),
            "export": self.export.to_dict(),
            "canvas": [self.canvas_width, self.canvas_height],
            "zoom": {
                "in": self.zoom_in_factor,
                "out": self.zoom_out_factor,
                "min": self.min_zoom,
                "max": self.max_zoom,
            },
            "settle_delay": self.settle_delay,
            "layout_seed": self.layout_seed,
            "refresh_encoding_on_tick": self.refresh_encoding_on_tick,
            "unavailable_signatures": list(self.unavailable_signatures),
            "version": self.version,
        }


def load_config() -> ViewerConfig:
    """
    Load ViewerConfig from environment variables, falling back to defaults.

    Recognized variables:
        KG_VIEWER_LARGE_GRAPH_THRESHOLD  (int, default 500)
        KG_VIEWER_LAYOUT                 (cose|circle|grid|breadthfirst|concentric)
        KG_VIEWER_LAYOUT_SEED            (int)
        KG_VIEWER_EXPORT_SCALE           (float)
        KG_VIEWER_EXPORT_MAX_PX          (int, applied to width and height)
        KG_VIEWER_REFRESH_ENCODING       ("true" / "false" / "1" / "0")
        KG_VIEWER_ENABLE_LOGGING         ("true" / "false" / "1" / "0")
    """

    def _env_flag(name: str, default: bool) -> bool:
        val = os.getenv(name)
        if val is None:
            return default
        return val.strip().lower() in ("1", "true", "yes", "on")

    def _env_int(name: str, default: int) -> int:
        val = os.getenv(name)
        if val is None or not val.strip():
            return default
        return int(val)

    def _env_float(name: str, default: float) -> float:
        val = os.getenv(name)
        if val is None or not val.strip():
            return default
        return float(val)

    max_px = _env_int("KG_VIEWER_EXPORT_MAX_PX", 2000)

    return ViewerConfig(
        layout=os.getenv("KG_VIEWER_LAYOUT", "cose"),
        layout_seed=_env_int("KG_VIEWER_LAYOUT_SEED", 42),
        tiers=TierPolicy(
            large_graph_threshold=_env_int("KG_VIEWER_LARGE_GRAPH_THRESHOLD", 500),
        ),
        export=ExportSettings(
            scale=_env_float("KG_VIEWER_EXPORT_SCALE", 2.0),
            max_width=max_px,
            max_height=max_px,
        ),
        refresh_encoding_on_tick=_env_flag("KG_VIEWER_REFRESH_ENCODING", False),
        enable_logging=_env_flag("KG_VIEWER_ENABLE_LOGGING", False),
    )


# Singleton default config used by the viewer
DEFAULT_CONFIG = ViewerConfig()
