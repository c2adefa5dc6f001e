"""Core data models shared by extraction, edge inference and enrichment."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class NodeType(str, Enum):
    COMPONENT = "component"
    HOOK = "hook"
    ENDPOINT = "endpoint"
    CLASS = "class"
    FUNCTION = "function"
    # Reserved for adjacent producers; never emitted by the recognizers.
    METHOD = "method"
    HANDLER = "handler"
    MIDDLEWARE = "middleware"
    MODULE = "module"
    VARIABLE = "variable"
    TYPE = "type"
    INTERFACE = "interface"
    CONSTANT = "constant"
    TEST = "test"
    OTHER = "other"


class EdgeType(str, Enum):
    USES = "uses"
    EXTENDS = "extends"
    CALLS = "calls"
    IMPORTS = "imports"
    EXPORTS = "exports"
    IMPLEMENTS = "implements"
    ROUTES_TO = "routes_to"
    DEPENDS_ON = "depends_on"
    DEFINES = "defines"
    REFERENCES = "references"
    OTHER = "other"


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def make_stable_id(file_path: str, name: str) -> str:
    return f"{file_path}::{name}"


@dataclass
class Node:
    stable_id: str
    name: str
    node_type: NodeType
    file_path: str
    start_line: int
    end_line: int
    signature: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)
    qualified_name: str = ""
    language: str = "typescript"
    snippet: str = ""
    github_link: Optional[str] = None
    summary: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["node_type"] = self.node_type.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Node":
        payload = dict(data)
        payload["node_type"] = NodeType(payload["node_type"])
        return cls(**payload)


@dataclass
class Edge:
    source_stable_id: str
    target_stable_id: str
    edge_type: EdgeType
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["edge_type"] = self.edge_type.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Edge":
        payload = dict(data)
        payload["edge_type"] = EdgeType(payload["edge_type"])
        return cls(**payload)


@dataclass(frozen=True)
class Span:
    """1-based inclusive line range of a declaration.

    ``truncated`` is set when no balanced body was found and the range was
    capped instead.
    """

    start_line: int
    end_line: int
    truncated: bool = False


@dataclass(frozen=True)
class ApiPath:
    path: str
    method: str


@dataclass
class ApiCallGuess:
    caller_name: str
    caller_stable_id: str
    endpoint: str
    endpoint_stable_id: str
    method: str
    matched_path: str
    confidence: Confidence


@dataclass
class GitHubInfo:
    owner: str
    repo: str
    branch: str


@dataclass
class AnalysisStats:
    files_analyzed: int = 0
    files_failed: int = 0
    components: int = 0
    hooks: int = 0
    endpoints: int = 0
    classes: int = 0
    functions: int = 0
    skipped: int = 0
    duplicates: int = 0
    recognizer_edges: int = 0
    heuristic_edges: int = 0
    api_edges: int = 0
    summaries: int = 0
    dropped_edges: int = 0

    def count_node(self, node_type: NodeType) -> None:
        attr = _STAT_FIELDS.get(node_type)
        if attr:
            setattr(self, attr, getattr(self, attr) + 1)


_STAT_FIELDS = {
    NodeType.COMPONENT: "components",
    NodeType.HOOK: "hooks",
    NodeType.ENDPOINT: "endpoints",
    NodeType.CLASS: "classes",
    NodeType.FUNCTION: "functions",
}


@dataclass
class AnalysisResult:
    nodes: List[Node] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)
    stats: AnalysisStats = field(default_factory=AnalysisStats)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisResult":
        return cls(
            nodes=[Node.from_dict(n) for n in data.get("nodes", [])],
            edges=[Edge.from_dict(e) for e in data.get("edges", [])],
        )
