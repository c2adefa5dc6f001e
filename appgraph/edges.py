"""Cross-file edge inference from import bindings and usage sites."""

from __future__ import annotations

import logging
import posixpath
import re
from pathlib import Path, PurePosixPath
from typing import Dict, List, Optional, Sequence

from .config import LANGUAGE_MAP
from .fs import LocalFileSystemReader
from .models import AnalysisStats, Edge, EdgeType, Node, NodeType
from .recognizers import FileContext

logger = logging.getLogger(__name__)

_KEBAB_RE = re.compile(r"(?<!^)(?=[A-Z])")


def kebab_case(name: str) -> str:
    return _KEBAB_RE.sub("-", name).lower()


def usage_patterns(name: str) -> List[re.Pattern[str]]:
    """Opening tag, self-closing tag, then call expression, in that order."""
    escaped = re.escape(name)
    patterns = [
        re.compile(rf"<{escaped}[\s/>]"),
        re.compile(rf"<{escaped}\s*/>"),
        re.compile(rf"(?<![\w$.]){escaped}\s*\("),
    ]
    if name[:1].isupper():
        kebab = kebab_case(name)
        # single-word names would collide with plain HTML tags
        if "-" in kebab:
            patterns.append(re.compile(rf"<{re.escape(kebab)}[\s/>]"))
    return patterns


def references(window: str, name: str) -> bool:
    return any(p.search(window) for p in usage_patterns(name))


def edge_type_for(source: NodeType, target: NodeType) -> EdgeType:
    """Fixed precedence table; the first matching rule wins."""
    if source is NodeType.COMPONENT and target is NodeType.COMPONENT:
        return EdgeType.USES
    if target is NodeType.HOOK:
        return EdgeType.USES
    if source is NodeType.CLASS and target is NodeType.CLASS:
        return EdgeType.EXTENDS
    if target is NodeType.ENDPOINT:
        return EdgeType.CALLS
    return EdgeType.USES


def usage_window(node: Node, text: str) -> str:
    """Code searched for references made by *node*.

    Whole-file components use the entire file, since their markup lives
    outside the script block.
    """
    if node.metadata.get("whole_file"):
        return text
    lines = text.split("\n")
    return "\n".join(lines[node.start_line - 1: node.end_line])


def _strip_source_ext(path: str) -> str:
    suffix = PurePosixPath(path).suffix
    if suffix in LANGUAGE_MAP:
        return path[: -len(suffix)]
    return path


def import_targets_file(importer: str, source: str, target_file: str) -> bool:
    """Best-effort check that import specifier *source* in *importer* names *target_file*."""
    target = _strip_source_ext(target_file)
    if source.startswith("."):
        resolved = posixpath.normpath(posixpath.join(posixpath.dirname(importer), source))
        resolved = _strip_source_ext(resolved)
        return target in (resolved, f"{resolved}/index")
    # workspace alias such as "@/components/Button"
    rest = _strip_source_ext(source[2:])
    for candidate in (rest, f"{rest}/index"):
        if target == candidate or target.endswith(f"/{candidate}"):
            return True
    return False


class EdgeHeuristicsEngine:
    """Infer edges by rereading each node's file and scanning its usage window.

    Only names bound by local imports are eligible targets, so a same-named
    symbol that is not imported never produces an edge.
    """

    def __init__(self, root: Path, reader: Optional[LocalFileSystemReader] = None) -> None:
        self.root = root
        self.reader = reader or LocalFileSystemReader()

    def infer(self, nodes: Sequence[Node], stats: Optional[AnalysisStats] = None) -> List[Edge]:
        by_name: Dict[str, List[Node]] = {}
        for node in nodes:
            by_name.setdefault(node.name, []).append(node)

        logger.info("Analyzing relationships for %d nodes", len(nodes))
        edges: List[Edge] = []
        for node in nodes:
            try:
                text = self.reader.read_file(self.root, node.file_path)
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("Skipping edges for %s: %s", node.stable_id, exc)
                continue
            found = self.edges_for_node(node, text, by_name)
            if found:
                logger.debug("%s (%s) uses %d node(s)", node.name, node.node_type.value, len(found))
            edges.extend(found)

        if stats is not None:
            stats.heuristic_edges = len(edges)
        logger.info("Heuristic edges found: %d", len(edges))
        return edges

    def edges_for_node(
        self,
        node: Node,
        text: str,
        by_name: Dict[str, List[Node]],
    ) -> List[Edge]:
        imports = FileContext.from_source(text, node.file_path).imports
        window = usage_window(node, text)
        edges: List[Edge] = []

        for name, source in imports.items():
            candidates = [c for c in by_name.get(name, []) if c.stable_id != node.stable_id]
            if not candidates or not references(window, name):
                continue
            resolved = [c for c in candidates if import_targets_file(node.file_path, source, c.file_path)]
            for target in resolved or candidates:
                edge_type = edge_type_for(node.node_type, target.node_type)
                logger.debug("  -> %s (%s) [%s]", target.name, target.node_type.value, edge_type.value)
                edges.append(Edge(
                    source_stable_id=node.stable_id,
                    target_stable_id=target.stable_id,
                    edge_type=edge_type,
                    metadata={"detection": "import_usage", "import": source},
                ))
        return edges
