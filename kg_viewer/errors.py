"""
Exception types for the knowledge-graph viewer.

Only PayloadError escapes the package (raised by the loader to whoever
hands it malformed input). ConstructionFailure and ExportFailure are
raised internally and caught at the adapter / view boundary, where they
are logged and turned into a visible placeholder or a ``None`` result.
"""

from __future__ import annotations


class GraphViewerError(Exception):
    """Base class for all viewer errors."""


class PayloadError(GraphViewerError):
    """The top-level graph payload has the wrong shape."""


class ConstructionFailure(GraphViewerError):
    """A layout session could not be built."""


class ExportFailure(GraphViewerError):
    """Rasterising or writing an exported image failed."""


__all__ = [
    "GraphViewerError",
    "PayloadError",
    "ConstructionFailure",
    "ExportFailure",
]
