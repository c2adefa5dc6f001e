"""Tests for frontend-to-backend call detection."""

import json
from pathlib import Path
from typing import List

import pytest

from appgraph.enrichment import (
    ApiEnrichmentStage,
    build_prompt,
    determine_confidence,
    extract_api_paths,
    fuzzy_path_match,
    infer_method,
    match_endpoints,
    parse_api_calls,
)
from appgraph.errors import LLMError
from appgraph.extractor import FileExtractor
from appgraph.fs import LocalFileSystemReader
from appgraph.models import AnalysisStats, ApiPath, Confidence, EdgeType, Node, NodeType


def _endpoint(name: str) -> Node:
    return Node(
        stable_id=f"api.ts::{name}",
        name=name,
        node_type=NodeType.ENDPOINT,
        file_path="api.ts",
        start_line=1,
        end_line=1,
    )


def _extract_all(root: Path) -> List[Node]:
    reader = LocalFileSystemReader()
    nodes: List[Node] = []
    for rel_path in reader.list_files(root, "**/*.{ts,tsx}"):
        found, _ = FileExtractor().extract(reader.read_file(root, rel_path), rel_path)
        nodes.extend(found)
    return nodes


def _llm_reply(*calls) -> str:
    return "Here is the analysis:\n```json\n" + json.dumps({"apiCalls": list(calls)}) + "\n```"


class TestApiPathExtraction:
    """Tests for call-site path extraction."""

    def test_fetch_and_method_inference(self):
        assert extract_api_paths("fetch('/api/users');") == [ApiPath("/api/users", "GET")]
        code = 'fetch("/api/contact", { method: \'POST\', body });'
        assert extract_api_paths(code) == [ApiPath("/api/contact", "POST")]

    def test_method_option_is_looked_up_nearby(self):
        spacer = "\n" + "// ..." * 30 + "\n"
        code = "fetch('/api/users');" + spacer + "fetch('/api/orders', { method: 'DELETE' });"
        assert extract_api_paths(code) == [
            ApiPath("/api/users", "GET"),
            ApiPath("/api/orders", "DELETE"),
        ]

    def test_template_literal_interpolation(self):
        code = "const r = await fetch(`/api/users/${id}/posts`);"
        assert extract_api_paths(code) == [ApiPath("/api/users/[id]/posts", "GET")]

    def test_axios_and_data_hooks(self):
        code = """
axios.delete('/api/sessions/1');
const { data } = useSWR('/api/stats', fetcher);
useQuery(`/api/feed`);
"""
        assert extract_api_paths(code) == [
            ApiPath("/api/sessions/1", "DELETE"),
            ApiPath("/api/stats", "GET"),
            ApiPath("/api/feed", "GET"),
        ]

    def test_non_api_paths_are_ignored(self):
        assert extract_api_paths("fetch('https://example.com/data'); fetch('/static/logo.png');") == []

    def test_infer_method_defaults_to_get(self):
        assert infer_method("fetch('/api/x')") == "GET"
        assert infer_method("fetch('/api/x', { method: \"patch\" })") == "PATCH"


class TestEndpointMatching:
    """Tests for matching call paths to endpoint nodes."""

    def test_exact_match_and_method_filter(self):
        endpoints = [_endpoint("GET /api/users"), _endpoint("POST /api/users")]
        matched = match_endpoints(ApiPath("/api/users", "POST"), endpoints)
        assert [e.name for e in matched] == ["POST /api/users"]

    def test_numeric_and_uuid_segments_match_dynamic_routes(self):
        endpoints = [_endpoint("GET /api/users/[id]")]
        assert match_endpoints(ApiPath("/api/users/42", "GET"), endpoints)
        uuid = "/api/users/123e4567-e89b-12d3-a456-426614174000"
        assert match_endpoints(ApiPath(uuid, "GET"), endpoints)

    def test_prefix_match(self):
        endpoints = [_endpoint("GET /api/users")]
        assert match_endpoints(ApiPath("/api/users/42", "GET"), endpoints)
        assert not match_endpoints(ApiPath("/api/usersettings", "GET"), endpoints)

    def test_root_route_is_not_a_prefix_of_everything(self):
        endpoints = [_endpoint("GET /")]
        assert match_endpoints(ApiPath("/", "GET"), endpoints)
        assert not match_endpoints(ApiPath("/api/orders", "GET"), endpoints)

    def test_query_string_is_ignored(self):
        endpoints = [_endpoint("GET /api/users")]
        assert match_endpoints(ApiPath("/api/users?page=2", "GET"), endpoints)

    def test_all_matches_any_method(self):
        endpoints = [_endpoint("ALL /api/proxy")]
        assert match_endpoints(ApiPath("/api/proxy", "DELETE"), endpoints)

    def test_non_endpoint_names_are_skipped(self):
        assert match_endpoints(ApiPath("/api/users", "GET"), [_endpoint("users")]) == []

    def test_fuzzy_match(self):
        assert fuzzy_path_match("/api/users/[id]", "/api/users/:userId")
        assert fuzzy_path_match("/api/users/${id}", "/api/users/[slug]/route")
        assert not fuzzy_path_match("/api/users/[id]/posts", "/api/users/[id]")
        assert not fuzzy_path_match("/api/orders/[id]", "/api/users/[id]")

    def test_confidence(self):
        assert determine_confidence("/api/users", "GET /api/users") == Confidence.HIGH
        assert determine_confidence("/api/users/[id]", "GET /api/users") == Confidence.MEDIUM
        assert determine_confidence("/api/users/7", "GET /api/users") == Confidence.LOW


class TestResponseParsing:
    """Tests for model response handling."""

    def test_parses_fenced_json(self):
        calls = parse_api_calls(_llm_reply({"endpoint": "GET /api/users", "confirmed": True}))
        assert calls == [{"endpoint": "GET /api/users", "confirmed": True}]

    @pytest.mark.parametrize("response", [
        "",
        "I could not find any calls.",
        '{"apiCalls": [oops]}',
        '{"apiCalls": "none"}',
    ])
    def test_unusable_responses_yield_nothing(self, response: str):
        assert parse_api_calls(response) == []

    def test_prompt_contents(self):
        caller = Node("a.tsx::List", "List", NodeType.COMPONENT, "a.tsx", 1, 3)
        prompt = build_prompt(caller, "x" * 6000, [], [_endpoint("GET /api/users")])

        assert 'Component "List" from a.tsx' in prompt
        assert "- GET /api/users" in prompt
        assert "did not detect any API calls" in prompt
        assert "x" * 5000 in prompt
        assert "x" * 5001 not in prompt


FRONTEND_FILES = {
    "app/api/users/route.ts": """export async function GET() {
  return Response.json([]);
}

export async function POST(request: Request) {
  return Response.json(await request.json());
}
""",
    "src/UserList.tsx": """import { useEffect, useState } from 'react';

export function UserList() {
  const [users, setUsers] = useState([]);
  useEffect(() => {
    fetch('/api/users').then((r) => r.json()).then(setUsers);
    fetch('/api/users').then((r) => r.json());
  }, []);
  return <ul className="users">{users.length}</ul>;
}
""",
    "src/useSignup.ts": """export function useSignup() {
  const submit = async (form) => {
    const res = await fetch('/api/users', { method: 'POST', body: JSON.stringify(form) });
    return res.json();
  };
  return { submit };
}
""",
}


class TestHeuristicEdges:
    """Tests for heuristic-only call edges."""

    def test_one_edge_per_caller_endpoint_pair(self, make_workspace):
        root = make_workspace(FRONTEND_FILES)
        stats = AnalysisStats()
        edges = ApiEnrichmentStage(root).heuristic_edges(_extract_all(root), stats)

        pairs = {(e.source_stable_id, e.target_stable_id) for e in edges}
        assert pairs == {
            ("src/UserList.tsx::UserList", "app/api/users/route.ts::GET /api/users"),
            ("src/useSignup.ts::useSignup", "app/api/users/route.ts::POST /api/users"),
        }
        assert len(edges) == 2
        assert all(e.edge_type == EdgeType.CALLS for e in edges)
        assert all(e.metadata["detection"] == "heuristic" for e in edges)
        assert stats.api_edges == 2

    def test_no_endpoints_short_circuits(self, make_workspace):
        root = make_workspace({"src/UserList.tsx": FRONTEND_FILES["src/UserList.tsx"]})
        assert ApiEnrichmentStage(root).heuristic_edges(_extract_all(root)) == []

    def test_guess_confidence(self, make_workspace):
        root = make_workspace(FRONTEND_FILES)
        stage = ApiEnrichmentStage(root)
        callers, endpoints = stage.split_nodes(_extract_all(root))
        guesses = stage.generate_guesses(callers, endpoints)

        assert guesses
        assert all(g.confidence == Confidence.HIGH for g in guesses)


class TestModelEnrichment:
    """Tests for model validation and discovery."""

    def test_validated_and_discovered_edges(self, make_workspace, fake_llm):
        root = make_workspace(FRONTEND_FILES)
        nodes = _extract_all(root)
        client = fake_llm(
            _llm_reply(
                {"endpoint": "GET /api/users", "confirmed": True, "source": "heuristic", "reason": "fetch in effect"},
                {"endpoint": "POST /api/users", "confirmed": True, "source": "discovered", "reason": "refresh"},
                {"endpoint": "DELETE /api/ghost", "confirmed": True, "source": "discovered", "reason": "made up"},
            ),
            _llm_reply(
                {"endpoint": "POST /api/users", "confirmed": False, "source": "heuristic", "reason": "dead code"},
            ),
        )
        edges = ApiEnrichmentStage(root, client=client).enrich(nodes)

        tags = {(e.source_stable_id.split("::")[1], e.target_stable_id.split("::")[1]): e.metadata for e in edges}
        assert set(tags) == {("UserList", "GET /api/users"), ("UserList", "POST /api/users")}
        assert tags[("UserList", "GET /api/users")]["detection"] == "llm_validated"
        assert tags[("UserList", "POST /api/users")]["detection"] == "llm_discovered"
        assert tags[("UserList", "GET /api/users")]["llm_reason"] == "fetch in effect"
        assert len(client.prompts) == 2

    def test_failure_discards_edges_from_earlier_candidates(self, make_workspace, fake_llm):
        root = make_workspace(FRONTEND_FILES)
        client = fake_llm(
            _llm_reply({"endpoint": "GET /api/users", "confirmed": True}),
            LLMError("gemini", "HTTP 503"),
        )
        stats = AnalysisStats()
        edges = ApiEnrichmentStage(root, client=client).enrich(_extract_all(root), stats)

        assert edges == []
        assert stats.api_edges == 0
        assert len(client.prompts) == 2

    def test_any_exception_type_is_isolated(self, make_workspace, fake_llm):
        root = make_workspace(FRONTEND_FILES)
        client = fake_llm(RuntimeError("boom"))
        assert ApiEnrichmentStage(root, client=client).enrich(_extract_all(root)) == []

    def test_unparsable_reply_yields_no_edges_but_continues(self, make_workspace, fake_llm):
        root = make_workspace(FRONTEND_FILES)
        client = fake_llm(
            "not json at all",
            _llm_reply({"endpoint": "POST /api/users", "confirmed": True}),
        )
        edges = ApiEnrichmentStage(root, client=client).enrich(_extract_all(root))

        assert [e.source_stable_id for e in edges] == ["src/useSignup.ts::useSignup"]
        assert edges[0].metadata["detection"] == "llm_validated"

    def test_short_or_quiet_callers_are_not_sent(self, make_workspace, fake_llm):
        root = make_workspace({
            "app/api/users/route.ts": FRONTEND_FILES["app/api/users/route.ts"],
            "src/Badge.tsx": "export function Badge() { return <span>hi</span>; }\n",
        })
        client = fake_llm()
        ApiEnrichmentStage(root, client=client).enrich(_extract_all(root))
        assert client.prompts == []

    def test_requires_client(self, make_workspace):
        root = make_workspace(FRONTEND_FILES)
        with pytest.raises(ValueError):
            ApiEnrichmentStage(root).enrich(_extract_all(root))
