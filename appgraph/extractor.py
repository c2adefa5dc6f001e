"""Per-file node extraction and the run-scoped node store."""

from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from .models import AnalysisStats, Edge, Node
from .recognizers import RECOGNIZERS, FileContext, Recognizer

logger = logging.getLogger(__name__)


class NodeStore:
    """Deduplicating node table keyed by ``stable_id``.

    The first node inserted under an id wins; later ones are discarded.
    Two same-named declarations in one file therefore collapse into the first.
    """

    def __init__(self) -> None:
        self._nodes: Dict[str, Node] = {}
        self.duplicates = 0

    def add(self, node: Node) -> bool:
        if node.stable_id in self._nodes:
            self.duplicates += 1
            logger.debug("Duplicate node id %s dropped (first declaration kept)", node.stable_id)
            return False
        self._nodes[node.stable_id] = node
        return True

    def get(self, stable_id: str) -> Optional[Node]:
        return self._nodes.get(stable_id)

    def clear(self) -> None:
        self._nodes.clear()
        self.duplicates = 0

    def nodes(self) -> List[Node]:
        return list(self._nodes.values())

    def __contains__(self, stable_id: object) -> bool:
        return stable_id in self._nodes

    def __iter__(self) -> Iterator[Node]:
        return iter(list(self._nodes.values()))

    def __len__(self) -> int:
        return len(self._nodes)


class FileExtractor:
    """Run every recognizer over one file in a fixed order.

    A recognizer that fails on a file is logged and skipped; the others still
    contribute their nodes.
    """

    def __init__(self, recognizers: Optional[Sequence[Recognizer]] = None) -> None:
        self.recognizers = list(recognizers or RECOGNIZERS)

    def extract(
        self,
        text: str,
        file_path: str,
        stats: Optional[AnalysisStats] = None,
    ) -> Tuple[List[Node], List[Edge]]:
        """Return the candidate nodes and declaration edges found in *text*."""
        ctx = FileContext.from_source(text, file_path)
        nodes: List[Node] = []
        edges: List[Edge] = []
        for recognizer in self.recognizers:
            try:
                found = recognizer(ctx)
            except (ValueError, IndexError, KeyError) as exc:
                logger.warning(
                    "Recognizer %s failed on %s: %s", getattr(recognizer, "__name__", recognizer), file_path, exc,
                )
                continue
            nodes.extend(found.nodes)
            edges.extend(found.edges)
            if stats is not None:
                stats.skipped += found.skipped

        for node in nodes:
            logger.debug(
                "  %s: %s @ %s:%d", node.node_type.value, node.name, file_path, node.start_line,
            )
        return nodes, edges
