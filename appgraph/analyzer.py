"""Workspace analysis pipeline.

Order of work for one run:

1. list source files and run every recognizer over each one,
2. infer import-gated usage edges between the collected nodes,
3. detect frontend-to-backend ``calls`` edges (heuristics, or a model when
   enrichment is enabled),
4. assemble the graph, dropping edges that do not resolve to a node,
5. with enrichment enabled, ask the model for a one-line summary per node.

Everything is sequential; a :class:`GraphBuilder` belongs to one run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from . import config
from .edges import EdgeHeuristicsEngine
from .enrichment import ApiEnrichmentStage, CompletionClient
from .extractor import FileExtractor, NodeStore
from .fs import GlobSpec, LocalFileSystemReader
from .github import github_link
from .llm import create_llm_client
from .models import AnalysisResult, AnalysisStats, Edge, GitHubInfo, make_stable_id
from .summarizer import NodeSummarizer

logger = logging.getLogger(__name__)


@dataclass
class AnalysisOptions:
    enable_llm: bool = False
    api_heuristics: bool = True
    # node summaries; only used when enable_llm is set and a client is available
    summarize: bool = True


class GraphBuilder:
    """Run-scoped accumulator for nodes, edges and counters."""

    def __init__(
        self,
        extractor: Optional[FileExtractor] = None,
        github_info: Optional[GitHubInfo] = None,
    ) -> None:
        self.extractor = extractor or FileExtractor()
        self.github_info = github_info
        self.store = NodeStore()
        self.recognizer_edges: List[Edge] = []
        self.heuristic_edges: List[Edge] = []
        self.api_edges: List[Edge] = []
        self.stats = AnalysisStats()

    def reset(self) -> None:
        self.store.clear()
        self.recognizer_edges = []
        self.heuristic_edges = []
        self.api_edges = []
        self.stats = AnalysisStats()

    def add_file(self, file_path: str, text: str) -> int:
        """Extract *text* into the store; returns the number of nodes kept."""
        nodes, edges = self.extractor.extract(text, file_path, self.stats)
        kept = 0
        for node in nodes:
            if self.github_info is not None:
                node.github_link = github_link(
                    self.github_info, node.file_path, node.start_line, node.end_line
                )
            if self.store.add(node):
                self.stats.count_node(node.node_type)
                kept += 1
        self.recognizer_edges.extend(edges)
        self.stats.files_analyzed += 1
        return kept

    def _resolve_target(self, edge: Edge) -> Optional[str]:
        if edge.target_stable_id in self.store:
            return edge.target_stable_id
        source = self.store.get(edge.source_stable_id)
        if source is None:
            return None
        # bare names resolve only within the source's own file
        local = make_stable_id(source.file_path, edge.target_stable_id)
        return local if local in self.store else None

    def build(self) -> AnalysisResult:
        """Assemble the final graph from everything collected so far."""
        self.stats.duplicates = self.store.duplicates
        self.stats.recognizer_edges = len(self.recognizer_edges)

        edges: List[Edge] = []
        dropped = 0
        for edge in [*self.recognizer_edges, *self.heuristic_edges, *self.api_edges]:
            if edge.source_stable_id not in self.store:
                dropped += 1
                continue
            target = self._resolve_target(edge)
            if target is None or target == edge.source_stable_id:
                logger.debug(
                    "Dropping edge %s -> %s (%s)",
                    edge.source_stable_id, edge.target_stable_id, edge.edge_type.value,
                )
                dropped += 1
                continue
            if target != edge.target_stable_id:
                edge = Edge(edge.source_stable_id, target, edge.edge_type, dict(edge.metadata))
            edges.append(edge)

        self.stats.dropped_edges = dropped
        return AnalysisResult(nodes=self.store.nodes(), edges=edges, stats=self.stats)


def analyze_workspace(
    root: Path,
    include: Optional[GlobSpec] = None,
    exclude: Optional[GlobSpec] = None,
    options: Optional[AnalysisOptions] = None,
    reader: Optional[LocalFileSystemReader] = None,
    llm_client: Optional[CompletionClient] = None,
    github_info: Optional[GitHubInfo] = None,
) -> AnalysisResult:
    """Build the dependency graph of the web application under *root*.

    Per-file and per-node failures are logged and skipped, and a failing
    model only costs the frontend-to-backend edges, so the call returns a
    result for any readable workspace.
    """
    options = options or AnalysisOptions()
    reader = reader or LocalFileSystemReader()
    include = include if include is not None else config.DEFAULT_INCLUDE
    exclude = exclude if exclude is not None else config.DEFAULT_EXCLUDE

    builder = GraphBuilder(github_info=github_info)
    files = reader.list_files(root, include, exclude)
    logger.info("Found %d source files under %s", len(files), root)

    for rel_path in files:
        try:
            text = reader.read_file(root, rel_path)
            kept = builder.add_file(rel_path, text)
        except (OSError, UnicodeDecodeError, ValueError) as exc:
            logger.warning("Failed to analyze %s: %s", rel_path, exc)
            builder.stats.files_failed += 1
            continue
        if kept:
            logger.debug("%s: %d node(s)", rel_path, kept)

    nodes = builder.store.nodes()
    logger.info("Extracted %d nodes from %d files", len(nodes), builder.stats.files_analyzed)

    builder.heuristic_edges = EdgeHeuristicsEngine(root, reader).infer(nodes, builder.stats)

    if options.enable_llm and llm_client is None:
        llm_client = create_llm_client()
    stage = ApiEnrichmentStage(root, reader, llm_client)
    if options.enable_llm and llm_client is not None:
        builder.api_edges = stage.enrich(nodes, builder.stats)
    elif options.api_heuristics:
        if options.enable_llm:
            logger.warning("LLM enrichment requested but no provider is configured; using heuristics")
        builder.api_edges = stage.heuristic_edges(nodes, builder.stats)

    result = builder.build()
    stats = result.stats
    if options.enable_llm and options.summarize and llm_client is not None:
        NodeSummarizer(llm_client).summarize(result.nodes, stats)

    logger.info(
        "Analysis complete: %d components, %d hooks, %d endpoints, %d classes, %d functions",
        stats.components, stats.hooks, stats.endpoints, stats.classes, stats.functions,
    )
    logger.info(
        "Edges: %d kept, %d dropped (%d declaration, %d usage, %d API)",
        len(result.edges), stats.dropped_edges,
        stats.recognizer_edges, stats.heuristic_edges, stats.api_edges,
    )
    if stats.files_failed:
        logger.warning("%d file(s) could not be analyzed", stats.files_failed)
    return result
