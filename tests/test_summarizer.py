"""Tests for per-node summaries."""

from pathlib import Path

import pytest

from appgraph.analyzer import AnalysisOptions, analyze_workspace
from appgraph.errors import LLMError
from appgraph.models import AnalysisStats, Node, NodeType
from appgraph.summarizer import NodeSummarizer, build_summary_prompt, clean_summary


def _node(name: str, snippet: str, node_type: NodeType = NodeType.COMPONENT, signature: str = "") -> Node:
    return Node(
        stable_id=f"src/{name}.tsx::{name}",
        name=name,
        node_type=node_type,
        file_path=f"src/{name}.tsx",
        start_line=1,
        end_line=3,
        signature=signature,
        snippet=snippet,
    )


class RoutingClient:
    """Answers call-detection prompts with no calls and summary prompts by node name."""

    def __init__(self, fail_for: str = ""):
        self.fail_for = fail_for
        self.summary_prompts = []

    def complete(self, prompt: str) -> str:
        if prompt.startswith("Analyze this"):
            return '{"apiCalls": []}'
        self.summary_prompts.append(prompt)
        name = prompt.split(": ", 1)[1].split("\n", 1)[0] if ": " in prompt else ""
        if self.fail_for and f": {self.fail_for}\n" in prompt:
            raise LLMError("gemini", "HTTP 500")
        return f'"Summary of {name}."'


class TestPrompt:
    """Tests for prompt construction and reply cleanup."""

    def test_prompt_contents(self):
        prompt = build_summary_prompt(
            _node("Button", "x" * 2500, signature="export function Button()"),
        )

        assert "React component: Button" in prompt
        assert "File: src/Button.tsx" in prompt
        assert "Signature: export function Button()" in prompt
        assert "x" * 2000 in prompt
        assert "x" * 2001 not in prompt

    def test_type_descriptions(self):
        assert "API endpoint: GET /api/users" in build_summary_prompt(
            _node("GET /api/users", "code", NodeType.ENDPOINT)
        )
        assert "React hook: useCart" in build_summary_prompt(_node("useCart", "code", NodeType.HOOK))

    @pytest.mark.parametrize("reply,expected", [
        ('"Renders a button."', "Renders a button."),
        ("  'Fetches users.'\n", "Fetches users."),
        ("Plain text.", "Plain text."),
        ('""', ""),
    ])
    def test_clean_summary(self, reply: str, expected: str):
        assert clean_summary(reply) == expected


class TestNodeSummarizer:
    """Tests for NodeSummarizer."""

    def test_summaries_are_written_to_nodes(self, fake_llm):
        nodes = [_node("Button", "export function Button() {}"), _node("Card", "export function Card() {}")]
        client = fake_llm('"Renders a button."', "A card container.")
        stats = AnalysisStats()

        assert NodeSummarizer(client).summarize(nodes, stats) == 2
        assert [n.summary for n in nodes] == ["Renders a button.", "A card container."]
        assert stats.summaries == 2

    def test_failure_skips_only_that_node(self, fake_llm):
        nodes = [_node("Button", "a"), _node("Card", "b"), _node("Tile", "c")]
        client = fake_llm("First.", RuntimeError("timeout"), "Third.")

        assert NodeSummarizer(client).summarize(nodes) == 2
        assert [n.summary for n in nodes] == ["First.", None, "Third."]
        assert len(client.prompts) == 3

    def test_nodes_without_snippet_are_not_sent(self, fake_llm):
        nodes = [_node("Empty", "")]
        client = fake_llm()

        assert NodeSummarizer(client).summarize(nodes) == 0
        assert client.prompts == []
        assert nodes[0].summary is None

    def test_blank_reply_leaves_no_summary(self, fake_llm):
        node = _node("Button", "code")
        NodeSummarizer(fake_llm("   ")).summarize([node])
        assert node.summary is None


class TestPipeline:
    """Summaries as part of analyze_workspace."""

    def test_summaries_with_enrichment(self, sample_app_path: Path):
        client = RoutingClient()
        result = analyze_workspace(sample_app_path, options=AnalysisOptions(enable_llm=True), llm_client=client)
        by_name = {n.name: n for n in result.nodes}

        assert by_name["Button"].summary == "Summary of Button."
        assert by_name["GET /api/users"].summary == "Summary of GET /api/users."
        assert result.stats.summaries == len(result.nodes)
        assert len(client.summary_prompts) == len(result.nodes)

    def test_one_failing_node_keeps_the_rest(self, sample_app_path: Path):
        client = RoutingClient(fail_for="Card")
        result = analyze_workspace(sample_app_path, options=AnalysisOptions(enable_llm=True), llm_client=client)
        by_name = {n.name: n for n in result.nodes}

        assert by_name["Card"].summary is None
        assert by_name["Button"].summary == "Summary of Button."
        assert result.stats.summaries == len(result.nodes) - 1

    def test_disabled_summaries(self, sample_app_path: Path):
        client = RoutingClient()
        result = analyze_workspace(
            sample_app_path, options=AnalysisOptions(enable_llm=True, summarize=False), llm_client=client,
        )

        assert client.summary_prompts == []
        assert all(n.summary is None for n in result.nodes)

    def test_no_summaries_without_enrichment(self, sample_app_path: Path):
        client = RoutingClient()
        result = analyze_workspace(sample_app_path, llm_client=client)

        assert client.summary_prompts == []
        assert all(n.summary is None for n in result.nodes)
