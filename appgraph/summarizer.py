"""One-line natural-language summaries of graph nodes.

Runs after graph assembly when LLM enrichment is enabled. Each node with a
snippet gets one prompt; a failed or empty reply leaves that node without a
summary and the pass moves on to the next node.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Sequence

from .enrichment import CompletionClient
from .models import AnalysisStats, Node, NodeType

logger = logging.getLogger(__name__)

SUMMARY_SNIPPET_CHARS = 2000

TYPE_DESCRIPTIONS: Dict[NodeType, str] = {
    NodeType.FUNCTION: "function",
    NodeType.CLASS: "class",
    NodeType.METHOD: "method",
    NodeType.ENDPOINT: "API endpoint",
    NodeType.HANDLER: "request handler",
    NodeType.MIDDLEWARE: "middleware",
    NodeType.HOOK: "React hook",
    NodeType.COMPONENT: "React component",
    NodeType.MODULE: "module",
    NodeType.VARIABLE: "variable",
    NodeType.TYPE: "type definition",
    NodeType.INTERFACE: "interface",
    NodeType.CONSTANT: "constant",
    NodeType.TEST: "test",
}


def describe_type(node_type: NodeType) -> str:
    return TYPE_DESCRIPTIONS.get(node_type, "code element")


def build_summary_prompt(node: Node) -> str:
    description = describe_type(node.node_type)
    signature = f"Signature: {node.signature}" if node.signature else ""
    return f"""You are a code documentation assistant. Generate a brief, clear summary (1-2 sentences max) describing what this {description} does.

{description}: {node.name}
File: {node.file_path}
{signature}

Code:
```
{node.snippet[:SUMMARY_SNIPPET_CHARS]}
```

Write ONLY the summary, no explanations or markdown. Be concise and focus on the purpose and main functionality."""


def clean_summary(text: str) -> str:
    """Trim whitespace and one pair of wrapping quotes."""
    text = text.strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'":
        text = text[1:-1].strip()
    return text


class NodeSummarizer:
    """Fill ``Node.summary`` from a completion client, one prompt per node."""

    def __init__(self, client: CompletionClient):
        self.client = client

    def summarize_node(self, node: Node) -> Optional[str]:
        if not node.snippet:
            return None
        try:
            reply = self.client.complete(build_summary_prompt(node))
        except MemoryError:
            raise
        except Exception as exc:
            logger.warning("Failed to summarize %s: %s", node.stable_id, exc)
            return None
        if not isinstance(reply, str):
            return None
        return clean_summary(reply) or None

    def summarize(self, nodes: Sequence[Node], stats: Optional[AnalysisStats] = None) -> int:
        """Summarize *nodes* in place and return how many received a summary."""
        logger.info("Generating summaries for %d nodes", len(nodes))
        count = 0
        for node in nodes:
            summary = self.summarize_node(node)
            if summary:
                node.summary = summary
                count += 1
        if stats is not None:
            stats.summaries = count
        logger.info("Generated %d/%d summaries", count, len(nodes))
        return count
