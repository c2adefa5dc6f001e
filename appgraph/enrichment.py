"""Frontend-to-backend call detection.

Strategy:

1. Heuristics scan each call site (component, hook or exported function)
   for ``fetch``/``axios``/``useSWR``/``useQuery`` calls to ``/api/...`` paths
   and match them against known endpoint nodes.
2. When a model is available, every call site that looks like it talks to
   the network is sent to it with the guesses and the endpoint list. The
   model confirms guesses and reports calls the heuristics missed.
3. If any model request fails the stage returns no edges at all, so every
   frontend-to-backend edge of a run has a single provenance.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence, Set, Tuple

from .edges import usage_window
from .fs import LocalFileSystemReader
from .models import (
    AnalysisStats,
    ApiCallGuess,
    ApiPath,
    Confidence,
    Edge,
    EdgeType,
    Node,
    NodeType,
)

logger = logging.getLogger(__name__)

CALLER_TYPES = (NodeType.COMPONENT, NodeType.HOOK, NodeType.FUNCTION)
NETWORK_SIGNALS = ("fetch", "axios", "/api", "useSWR", "useQuery")
MIN_CODE_LENGTH = 100
PROMPT_CODE_CHARS = 5000
METHOD_CONTEXT_CHARS = 100


class CompletionClient(Protocol):
    def complete(self, prompt: str) -> str:
        ...


# ===================================================================
# Call-site path extraction
# ===================================================================

_FETCH_RE = re.compile(r"\bfetch\s*\(\s*['\"](/api/[^'\"]*)['\"]")
_FETCH_TEMPLATE_RE = re.compile(r"\bfetch\s*\(\s*`(/api/[^`]*)`")
_AXIOS_RE = re.compile(r"\baxios\.(get|post|put|patch|delete)\s*\(\s*[`'\"](/api/[^`'\"]*)[`'\"]", re.IGNORECASE)
_DATA_HOOK_RE = re.compile(r"\b(?:useSWR|useQuery)\s*\(\s*[`'\"](/api/[^`'\"]*)[`'\"]")
_INTERPOLATION_RE = re.compile(r"\$\{[^}]+\}")
_METHOD_OPTION_RE = re.compile(r"method\s*:\s*['\"`](POST|PUT|PATCH|DELETE|GET)['\"`]", re.IGNORECASE)


def infer_method(context: str) -> str:
    match = _METHOD_OPTION_RE.search(context)
    return match.group(1).upper() if match else "GET"


def _context(code: str, match: "re.Match[str]") -> str:
    start = max(0, match.start() - METHOD_CONTEXT_CHARS)
    return code[start: match.end() + METHOD_CONTEXT_CHARS]


def extract_api_paths(code: str) -> List[ApiPath]:
    paths: List[ApiPath] = []
    for match in _FETCH_RE.finditer(code):
        paths.append(ApiPath(match.group(1), infer_method(_context(code, match))))
    for match in _FETCH_TEMPLATE_RE.finditer(code):
        normalized = _INTERPOLATION_RE.sub("[id]", match.group(1))
        paths.append(ApiPath(normalized, infer_method(_context(code, match))))
    for match in _AXIOS_RE.finditer(code):
        paths.append(ApiPath(match.group(2), match.group(1).upper()))
    for match in _DATA_HOOK_RE.finditer(code):
        paths.append(ApiPath(match.group(1), "GET"))
    return paths


# ===================================================================
# Endpoint matching
# ===================================================================

_ENDPOINT_NAME_RE = re.compile(r"^(GET|POST|PUT|PATCH|DELETE|HEAD|OPTIONS|ALL)\s+(.+)$")
_ROUTE_SUFFIX_RE = re.compile(r"/route$")
_NUMERIC_SEGMENT_RE = re.compile(r"/\d+(?=/|$)")
_UUID_SEGMENT_RE = re.compile(r"/[a-f0-9-]{36}(?=/|$)", re.IGNORECASE)
_DYNAMIC_SEGMENT_RE = re.compile(r"\[[^\]/]+\]|\$\{[^}]+\}|(?<=/):[\w$]+")


def parse_endpoint_name(name: str) -> Optional[Tuple[str, str]]:
    match = _ENDPOINT_NAME_RE.match(name)
    if not match:
        return None
    return match.group(1), _ROUTE_SUFFIX_RE.sub("", match.group(2))


def normalize_call_path(path: str) -> str:
    path = path.split("?", 1)[0].split("#", 1)[0]
    path = _NUMERIC_SEGMENT_RE.sub("/[id]", path)
    return _UUID_SEGMENT_RE.sub("/[id]", path)


def _wildcard(path: str) -> str:
    return _DYNAMIC_SEGMENT_RE.sub("*", _ROUTE_SUFFIX_RE.sub("", path))


def fuzzy_path_match(api_path: str, endpoint_path: str) -> bool:
    """Positional segment comparison with dynamic segments as wildcards."""
    api = _wildcard(api_path)
    endpoint = _wildcard(endpoint_path)
    if api == endpoint:
        return True
    api_parts = [p for p in api.split("/") if p]
    endpoint_parts = [p for p in endpoint.split("/") if p]
    if len(api_parts) != len(endpoint_parts):
        return False
    return all(a == e or a == "*" or e == "*" for a, e in zip(api_parts, endpoint_parts))


def path_matches(api_path: str, endpoint_path: str) -> bool:
    normalized = normalize_call_path(api_path)
    return (
        normalized == endpoint_path
        # a root route ("/") never prefix-matches
        or normalized.startswith(endpoint_path + "/")
        or fuzzy_path_match(normalized, endpoint_path)
    )


def match_endpoints(api_path: ApiPath, endpoints: Sequence[Node]) -> List[Node]:
    matched: List[Node] = []
    for endpoint in endpoints:
        parsed = parse_endpoint_name(endpoint.name)
        if parsed is None:
            continue
        method, path = parsed
        if method != "ALL" and method != api_path.method:
            continue
        if path_matches(api_path.path, path):
            matched.append(endpoint)
    return matched


def determine_confidence(api_path: str, endpoint_name: str) -> Confidence:
    parsed = parse_endpoint_name(endpoint_name)
    endpoint_path = parsed[1] if parsed else endpoint_name
    if api_path == endpoint_path:
        return Confidence.HIGH
    if "[" in api_path or "${" in api_path:
        return Confidence.MEDIUM
    return Confidence.LOW


# ===================================================================
# Model prompt / response
# ===================================================================

def build_prompt(caller: Node, code: str, guesses: Sequence[ApiCallGuess], endpoints: Sequence[Node]) -> str:
    if guesses:
        guessed = "Our heuristics detected these potential calls:\n" + "\n".join(
            f"- {g.endpoint} (path: {g.matched_path})" for g in guesses
        )
    else:
        guessed = "Our heuristics did not detect any API calls in this code."
    endpoint_list = "\n".join(f"- {e.name}" for e in endpoints)
    return f"""Analyze this {caller.node_type.value} and identify ALL API endpoint calls it makes.

{caller.node_type.value.capitalize()} "{caller.name}" from {caller.file_path}:
```javascript
{code[:PROMPT_CODE_CHARS]}
```

{guessed}

Available API endpoints in this codebase:
{endpoint_list}

TASK:
1. Validate any heuristic guesses (confirm or reject)
2. Find ANY ADDITIONAL API calls to the listed endpoints that heuristics might have missed
3. Look for fetch(), axios, useSWR, useQuery, or any HTTP calls

Respond with JSON only:
{{
  "apiCalls": [
    {{ "endpoint": "GET /api/dashboard/stats", "confirmed": true, "source": "heuristic", "reason": "fetch call in useEffect" }},
    {{ "endpoint": "POST /api/contact", "confirmed": true, "source": "discovered", "reason": "form submission handler" }}
  ]
}}

Only include endpoints from the available list above. Use "source": "heuristic" for validating guesses, "source": "discovered" for new finds."""


_RESPONSE_JSON_RE = re.compile(r"\{[\s\S]*\"apiCalls\"[\s\S]*\}")


def parse_api_calls(response: str) -> List[Dict[str, Any]]:
    """Extract the ``apiCalls`` list; malformed responses yield an empty list."""
    match = _RESPONSE_JSON_RE.search(response or "")
    if not match:
        return []
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        return []
    calls = parsed.get("apiCalls") if isinstance(parsed, dict) else None
    if not isinstance(calls, list):
        return []
    return [c for c in calls if isinstance(c, dict)]


def has_network_signal(code: str) -> bool:
    return any(signal in code for signal in NETWORK_SIGNALS)


# ===================================================================
# Stage
# ===================================================================

class ApiEnrichmentStage:
    """Detect calls from frontend nodes to endpoint nodes."""

    def __init__(
        self,
        root: Path,
        reader: Optional[LocalFileSystemReader] = None,
        client: Optional[CompletionClient] = None,
    ) -> None:
        self.root = root
        self.reader = reader or LocalFileSystemReader()
        self.client = client
        self._code: Dict[str, Optional[str]] = {}

    @staticmethod
    def split_nodes(nodes: Sequence[Node]) -> Tuple[List[Node], List[Node]]:
        callers = [n for n in nodes if n.node_type in CALLER_TYPES]
        endpoints = [n for n in nodes if n.node_type is NodeType.ENDPOINT]
        return callers, endpoints

    def _caller_code(self, node: Node) -> Optional[str]:
        if node.stable_id not in self._code:
            try:
                text = self.reader.read_file(self.root, node.file_path)
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("Cannot read %s for API analysis: %s", node.file_path, exc)
                self._code[node.stable_id] = None
            else:
                self._code[node.stable_id] = usage_window(node, text)
        return self._code[node.stable_id]

    def generate_guesses(self, callers: Sequence[Node], endpoints: Sequence[Node]) -> List[ApiCallGuess]:
        guesses: List[ApiCallGuess] = []
        for caller in callers:
            code = self._caller_code(caller)
            if code is None:
                continue
            for api_path in extract_api_paths(code):
                for endpoint in match_endpoints(api_path, endpoints):
                    guesses.append(ApiCallGuess(
                        caller_name=caller.name,
                        caller_stable_id=caller.stable_id,
                        endpoint=endpoint.name,
                        endpoint_stable_id=endpoint.stable_id,
                        method=api_path.method,
                        matched_path=api_path.path,
                        confidence=determine_confidence(api_path.path, endpoint.name),
                    ))
        for guess in guesses:
            logger.info(
                "  guess: %s -> %s (%s, path: %s)",
                guess.caller_name, guess.endpoint, guess.confidence.value, guess.matched_path,
            )
        return guesses

    def heuristic_edges(self, nodes: Sequence[Node], stats: Optional[AnalysisStats] = None) -> List[Edge]:
        """Turn heuristic guesses straight into ``calls`` edges (no model)."""
        callers, endpoints = self.split_nodes(nodes)
        if not endpoints:
            logger.info("No API endpoints found - skipping frontend-backend analysis")
            return []
        edges: List[Edge] = []
        seen: Set[Tuple[str, str]] = set()
        for guess in self.generate_guesses(callers, endpoints):
            key = (guess.caller_stable_id, guess.endpoint_stable_id)
            if key in seen:
                continue
            seen.add(key)
            edges.append(Edge(
                source_stable_id=guess.caller_stable_id,
                target_stable_id=guess.endpoint_stable_id,
                edge_type=EdgeType.CALLS,
                metadata={"detection": "heuristic", "matched_path": guess.matched_path},
            ))
        if stats is not None:
            stats.api_edges = len(edges)
        return edges

    def enrich(self, nodes: Sequence[Node], stats: Optional[AnalysisStats] = None) -> List[Edge]:
        """Validate and discover calls with the model; no edges at all on failure."""
        if self.client is None:
            raise ValueError("enrich() requires an LLM client")

        callers, endpoints = self.split_nodes(nodes)
        if not endpoints:
            logger.info("No API endpoints found - skipping frontend-backend analysis")
            return []

        logger.info(
            "Analyzing frontend -> backend relationships: %d call sites, %d endpoints",
            len(callers), len(endpoints),
        )
        guesses = self.generate_guesses(callers, endpoints)
        logger.info("Heuristics produced %d potential API calls", len(guesses))

        try:
            edges = self._validate_with_model(callers, endpoints, guesses)
        except MemoryError:
            raise
        except Exception as exc:
            logger.warning("LLM analysis failed: %s", exc)
            logger.warning("All frontend -> backend edges skipped for this run")
            edges = []

        if stats is not None:
            stats.api_edges = len(edges)
        logger.info("Frontend -> backend edges found: %d", len(edges))
        return edges

    def _validate_with_model(
        self,
        callers: Sequence[Node],
        endpoints: Sequence[Node],
        guesses: Sequence[ApiCallGuess],
    ) -> List[Edge]:
        endpoint_by_name = {e.name: e for e in endpoints}
        guesses_by_caller: Dict[str, List[ApiCallGuess]] = {}
        for guess in guesses:
            guesses_by_caller.setdefault(guess.caller_stable_id, []).append(guess)

        edges: List[Edge] = []
        for caller in callers:
            code = self._caller_code(caller)
            if code is None or len(code) < MIN_CODE_LENGTH or not has_network_signal(code):
                continue

            caller_guesses = guesses_by_caller.get(caller.stable_id, [])
            prompt = build_prompt(caller, code, caller_guesses, endpoints)
            response = self.client.complete(prompt)

            calls = parse_api_calls(response)
            if not calls and response:
                logger.debug("No usable apiCalls in LLM response for %s", caller.name)

            guessed = {g.endpoint for g in caller_guesses}
            linked: Set[str] = set()
            for call in calls:
                name = call.get("endpoint")
                if call.get("confirmed") is not True or not isinstance(name, str):
                    continue
                endpoint = endpoint_by_name.get(name)
                if endpoint is None or endpoint.stable_id in linked:
                    continue
                linked.add(endpoint.stable_id)
                detection = "llm_validated" if name in guessed else "llm_discovered"
                logger.info("  %s -> %s (%s: %s)", caller.name, name, detection, call.get("reason", ""))
                edges.append(Edge(
                    source_stable_id=caller.stable_id,
                    target_stable_id=endpoint.stable_id,
                    edge_type=EdgeType.CALLS,
                    metadata={"detection": detection, "llm_reason": call.get("reason", "")},
                ))
        return edges
