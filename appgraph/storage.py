"""Local JSON snapshot of the analysed graph (``<root>/.appgraph/graph.json``)."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .config import GRAPH_DIR, GRAPH_FILE
from .models import AnalysisResult

logger = logging.getLogger(__name__)


def graph_file_path(root: Path) -> Path:
    return root / GRAPH_DIR / GRAPH_FILE


def write_local_graph(root: Path, result: AnalysisResult, output: Optional[Path] = None) -> Path:
    """Write the snapshot and return its path."""
    path = output or graph_file_path(root)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        **result.to_dict(),
        "generatedAt": datetime.now(timezone.utc).isoformat(),
    }
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    logger.info("Wrote %d nodes and %d edges to %s", len(result.nodes), len(result.edges), path)
    return path


def read_local_graph(root: Path, path: Optional[Path] = None) -> Optional[AnalysisResult]:
    """Load a snapshot; None when it is missing or invalid."""
    path = path or graph_file_path(root)
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.debug("No usable graph snapshot at %s: %s", path, exc)
        return None
    if not isinstance(payload, dict):
        return None
    if not isinstance(payload.get("nodes"), list) or not isinstance(payload.get("edges"), list):
        return None
    try:
        return AnalysisResult.from_dict(payload)
    except (KeyError, TypeError, ValueError) as exc:
        logger.warning("Graph snapshot %s is malformed: %s", path, exc)
        return None
