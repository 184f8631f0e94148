"""
Export artifact naming and metadata sidecars.

Each exported image ``<name>.png`` gets a ``<name>.png.meta.json`` next
to it describing what was on screen: graph fingerprint, totals, visible
counts, zoom, filter state and layout.
"""

from __future__ import annotations

import json
import os
import re
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

EXPORT_META_VERSION = "kg_viewer.export.v1"

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


# --------------------------------------------------------------------------- #
# Naming
# --------------------------------------------------------------------------- #

def safe_label(label: Optional[str]) -> str:
    """Reduce a project label to filesystem-safe characters."""
    cleaned = _UNSAFE.sub("-", (label or "").strip()).strip("-.")
    return cleaned or "default"


def export_filename(project: Optional[str], prefix: str = "knowledge-graph") -> str:
    return f"{prefix}-{safe_label(project)}.png"


# --------------------------------------------------------------------------- #
# Sidecar
# --------------------------------------------------------------------------- #

@dataclass
class ExportMeta:
    """
    Per-export metadata written to <image>.meta.json.
    """
    version: str
    timestamp: float
    image: str
    project: Optional[str]
    fingerprint: Optional[str]
    width: int
    height: int
    nodes_total: int
    edges_total: int
    nodes_visible: int
    edges_visible: int
    zoom: float
    layout: Dict[str, Any] = field(default_factory=dict)
    filter: Dict[str, Any] = field(default_factory=dict)


def build_export_meta(
    image: str,
    *,
    project: Optional[str],
    fingerprint: Optional[str],
    size: tuple,
    totals: tuple,
    visible: tuple,
    zoom: float,
    layout_info: Optional[Dict[str, Any]] = None,
    filter_info: Optional[Dict[str, Any]] = None,
) -> ExportMeta:
    return ExportMeta(
        version=EXPORT_META_VERSION,
        timestamp=time.time(),
        image=image,
        project=project,
        fingerprint=fingerprint,
        width=int(size[0]),
        height=int(size[1]),
        nodes_total=int(totals[0]),
        edges_total=int(totals[1]),
        nodes_visible=int(visible[0]),
        edges_visible=int(visible[1]),
        zoom=float(zoom),
        layout=dict(layout_info or {}),
        filter=dict(filter_info or {}),
    )


def write_export_metadata(out_dir: str, meta: ExportMeta) -> str:
    """Write the sidecar and return its path."""
    path = os.path.join(out_dir, f"{meta.image}.meta.json")
    with open(path, "w", encoding="utf-8") as f:
        json.dump(asdict(meta), f, indent=2)
    return path


def write_export(out_dir: str, filename: str, png: bytes) -> str:
    """Write the image bytes and return the path."""
    os.makedirs(out_dir, exist_ok=True)
    path = os.path.join(out_dir, filename)
    with open(path, "wb") as f:
        f.write(png)
    return path


__all__ = [
    "EXPORT_META_VERSION",
    "safe_label",
    "export_filename",
    "ExportMeta",
    "build_export_meta",
    "write_export_metadata",
    "write_export",
]
