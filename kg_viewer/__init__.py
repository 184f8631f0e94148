"""
Knowledge-graph viewer package.

Interactive graph view core: payload loading, encoding, size-tiered
layout sessions, visibility filtering, interaction and raster export.
"""

# ---------------------------------------------------------------------------
# High-level view
# ---------------------------------------------------------------------------
from .view import (
    KnowledgeGraphView,
    ViewModel,
    ViewState,
    Placeholder,
    StatusStrip,
    is_unavailable,
)

# ---------------------------------------------------------------------------
# Configuration and presets
# ---------------------------------------------------------------------------
from .presets import (
    ViewerConfig,
    LayoutParams,
    TierPolicy,
    VisualStyle,
    ExportSettings,
    DEFAULT_CONFIG,
    load_config,
)

# ---------------------------------------------------------------------------
# Data model and loading
# ---------------------------------------------------------------------------
from .models import (
    RawNode,
    RawEdge,
    GraphPayload,
    GraphStatistics,
)
from .loader import (
    load_graph_payload,
    load_graph_file,
    build_graph,
)

# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------
from .analytics import (
    compute_graph_statistics,
    confidence_band,
)
from .fingerprint import compute_graph_fingerprint

# ---------------------------------------------------------------------------
# Encoding, layout session, filtering, interaction
# ---------------------------------------------------------------------------
from .styling import (
    encode,
    legend_entries,
    EncodingOptions,
    RenderNode,
    RenderEdge,
    LegendEntry,
)
from .session import (
    LayoutEngineAdapter,
    LayoutSession,
    SessionState,
)
from .scheduling import (
    ImmediateScheduler,
    ManualScheduler,
)
from .viewport import Viewport
from .filtering import FilterState, apply_filter
from .interaction import (
    InteractionController,
    CallbackSlot,
    Tooltip,
    Selection,
    ElementDetails,
)

# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------
from .render2d import render_png
from .metadata import export_filename, write_export_metadata

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------
from .errors import (
    GraphViewerError,
    PayloadError,
    ConstructionFailure,
    ExportFailure,
)

__all__ = [
    # View
    "KnowledgeGraphView",
    "ViewModel",
    "ViewState",
    "Placeholder",
    "StatusStrip",
    "is_unavailable",
    # Config
    "ViewerConfig",
    "LayoutParams",
    "TierPolicy",
    "VisualStyle",
    "ExportSettings",
    "DEFAULT_CONFIG",
    "load_config",
    # Data
    "RawNode",
    "RawEdge",
    "GraphPayload",
    "GraphStatistics",
    "load_graph_payload",
    "load_graph_file",
    "build_graph",
    # Analytics
    "compute_graph_statistics",
    "confidence_band",
    "compute_graph_fingerprint",
    # Encoding / session / filter / interaction
    "encode",
    "legend_entries",
    "EncodingOptions",
    "RenderNode",
    "RenderEdge",
    "LegendEntry",
    "LayoutEngineAdapter",
    "LayoutSession",
    "SessionState",
    "ImmediateScheduler",
    "ManualScheduler",
    "Viewport",
    "FilterState",
    "apply_filter",
    "InteractionController",
    "CallbackSlot",
    "Tooltip",
    "Selection",
    "ElementDetails",
    # Export
    "render_png",
    "export_filename",
    "write_export_metadata",
    # Errors
    "GraphViewerError",
    "PayloadError",
    "ConstructionFailure",
    "ExportFailure",
]
