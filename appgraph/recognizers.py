"""Pattern-based recognizers for web-application source files.

Each recognizer is a plain function over a :class:`FileContext` and returns a
:class:`Recognition`. Recognizers never look at each other's output; the
only interaction between them is the first-write-wins rule of the node store.

What counts as a node:

- UI components (capitalised functions/consts whose body renders markup, or
  a whole single-file component)
- Hooks / composables (``useXxx``) that are exported
- Route endpoints (``app.get('/x', ...)`` registrations and file-based
  ``export function GET`` handlers)
- Exported classes
- Significant exported functions

Internal helpers, types, interfaces and individual methods are not extracted.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Callable, Dict, List, Optional, Set

from .config import LANGUAGE_MAP, SFC_EXTENSIONS
from .models import Edge, EdgeType, Node, NodeType, Span, make_stable_id

# Bounded lookahead for block-span resolution, in lines
BLOCK_SCAN_LINES = 2000
# Span length used when no balanced body is found
TRUNCATED_SPAN_LINES = 50
# Snippet length stored on nodes
SNIPPET_LINES = 30

HTTP_VERBS = ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS")
TRIVIAL_PREFIXES = ("get", "set", "is", "has", "can", "should", "will", "did")
TRIVIAL_NAME_MAX_LEN = 8

LOCAL_IMPORT_PREFIXES = (".", "@/", "~/")


# ===================================================================
# Derived file facts
# ===================================================================

_DIRECT_EXPORT_RE = re.compile(
    r"\bexport\s+(?:default\s+)?(?:async\s+)?(?:abstract\s+)?"
    r"(?:function\*?|const|let|var|class)\s+([A-Za-z_$][\w$]*)"
)
_NAMED_EXPORT_RE = re.compile(r"\bexport\s*\{([^}]+)\}")
_DEFAULT_EXPORT_RE = re.compile(r"\bexport\s+default\s+([A-Za-z_$][\w$]*)")

_IMPORT_RE = re.compile(
    r"\bimport\s+(?:type\s+)?"
    r"(?:([A-Za-z_$][\w$]*)\s*,?\s*)?"
    r"(?:\{([^}]*)\}|\*\s*as\s+([A-Za-z_$][\w$]*))?"
    r"\s*from\s*['\"]([^'\"]+)['\"]"
)

_SCRIPT_BLOCK_RE = re.compile(r"<script\b[^>]*>(.*?)</script>", re.DOTALL | re.IGNORECASE)
_TOP_LEVEL_BINDING_RE = re.compile(
    r"^(?:export\s+)?(?:default\s+)?(?:async\s+)?"
    r"(?:function\*?|const|let|var|class)\s+([A-Za-z_$][\w$]*)",
    re.MULTILINE,
)

# Name directives inside single-file component scripts, in priority order
_SFC_NAME_PATTERNS = [
    re.compile(r"defineOptions\s*\(\s*\{[^}]*?\bname\s*:\s*['\"`]([^'\"`]+)['\"`]"),
    re.compile(r"export\s+default\s*\{[^}]*?\bname\s*:\s*['\"`]([^'\"`]+)['\"`]"),
    re.compile(r"defineComponent\s*\(\s*\{[^}]*?\bname\s*:\s*['\"`]([^'\"`]+)['\"`]"),
]

_CUSTOM_TAG_RE = re.compile(r"(?<![\w$.])<[A-Z][\w$.]*[\s/>]")
_HTML_OPEN_RE = re.compile(r"(?<![\w$.])<[a-z][\w-]*[\s/>]")
_HTML_CLOSE_RE = re.compile(r"</[a-z][\w-]*\s*>")


def get_exported_names(text: str) -> Set[str]:
    """Names exported from a module: direct, ``export { ... }`` and default exports."""
    exported: Set[str] = set()
    for match in _DIRECT_EXPORT_RE.finditer(text):
        exported.add(match.group(1))
    for match in _NAMED_EXPORT_RE.finditer(text):
        for entry in match.group(1).split(","):
            name = re.split(r"\s+as\s+", entry.strip())[0].strip()
            name = re.sub(r"^type\s+", "", name)
            if name:
                exported.add(name)
    for match in _DEFAULT_EXPORT_RE.finditer(text):
        if match.group(1) not in ("function", "class", "async", "abstract"):
            exported.add(match.group(1))
    return exported


def is_local_import(source: str) -> bool:
    """True for relative and workspace-alias imports; bare packages are excluded."""
    return source.startswith(LOCAL_IMPORT_PREFIXES)


def extract_imports(text: str) -> Dict[str, str]:
    """Map each locally-resolvable import binding to its source specifier.

    Aliased named imports (``A as B``) are recorded under the local name.
    """
    imports: Dict[str, str] = {}
    for match in _IMPORT_RE.finditer(text):
        default_name, named, namespace, source = match.groups()
        if not is_local_import(source):
            continue
        if default_name:
            imports[default_name] = source
        if namespace:
            imports[namespace] = source
        if named:
            for entry in named.split(","):
                entry = re.sub(r"^type\s+", "", entry.strip())
                local = re.split(r"\s+as\s+", entry)[-1].strip()
                if local:
                    imports[local] = source
    return imports


def contains_markup(text: str) -> bool:
    """Tag-like output: a capitalised custom tag, or a lowercase tag that is also closed."""
    if _CUSTOM_TAG_RE.search(text):
        return True
    if "<>" in text and "</>" in text:
        return True
    return bool(_HTML_OPEN_RE.search(text) and _HTML_CLOSE_RE.search(text))


def extract_sfc_script(text: str) -> str:
    """Concatenated bodies of every ``<script>`` block in a single-file component."""
    return "\n".join(m.group(1) for m in _SCRIPT_BLOCK_RE.finditer(text))


def sfc_component_name(file_path: str, script: str) -> str:
    """Declared component name from the script, falling back to the file stem."""
    for pattern in _SFC_NAME_PATTERNS:
        match = pattern.search(script)
        if match:
            return match.group(1)
    return PurePosixPath(file_path).stem


def script_bindings(script: str) -> Set[str]:
    """Top-level function, variable and class names declared in an SFC script."""
    return {m.group(1) for m in _TOP_LEVEL_BINDING_RE.finditer(script)}


def is_sfc_path(file_path: str) -> bool:
    """True for ``.vue`` and ``.svelte`` files."""
    return PurePosixPath(file_path).suffix.lower() in SFC_EXTENSIONS


def language_for(file_path: str) -> str:
    """Language label for a path, from its extension."""
    return LANGUAGE_MAP.get(PurePosixPath(file_path).suffix.lower(), "typescript")


@dataclass
class FileContext:
    """One source file plus the cheap facts every recognizer shares."""

    text: str
    file_path: str
    lines: List[str] = field(default_factory=list)
    exported_names: Set[str] = field(default_factory=set)
    imports: Dict[str, str] = field(default_factory=dict)
    is_sfc: bool = False
    script: str = ""
    language: str = "typescript"

    @classmethod
    def from_source(cls, text: str, file_path: str) -> "FileContext":
        sfc = is_sfc_path(file_path)
        script = extract_sfc_script(text) if sfc else text
        exported = get_exported_names(script)
        if sfc:
            # every top-level binding of a component script is reachable from its template
            exported |= script_bindings(script)
        return cls(
            text=text,
            file_path=file_path,
            lines=text.split("\n"),
            exported_names=exported,
            imports=extract_imports(script),
            is_sfc=sfc,
            script=script,
            language=language_for(file_path),
        )

    def line_of(self, offset: int) -> int:
        return self.text.count("\n", 0, offset) + 1

    def body(self, span: Span) -> str:
        return "\n".join(self.lines[span.start_line - 1: span.end_line])


@dataclass
class Recognition:
    nodes: List[Node] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)
    skipped: int = 0


Recognizer = Callable[[FileContext], Recognition]


# ===================================================================
# Block-span resolution
# ===================================================================

def resolve_block_span(text: str, start_offset: int, scan_offset: Optional[int] = None) -> Span:
    """Find the line range of the declaration starting at *start_offset*.

    Phase 1 balances ``(``/``)`` through the parameter list so destructuring
    braces inside parameters are not mistaken for the body. Phase 2 balances
    ``{``/``}`` from the first opening brace. An expression body wrapped in
    parentheses, or a statement ending in ``;`` before any body, closes the
    span as well. Scanning stops after :data:`BLOCK_SCAN_LINES` lines and the
    span is capped at :data:`TRUNCATED_SPAN_LINES`.
    """
    start_line = text.count("\n", 0, start_offset) + 1
    pos = start_offset if scan_offset is None else scan_offset
    line = text.count("\n", 0, pos) + 1
    limit_line = start_line + BLOCK_SCAN_LINES

    paren = 0
    params_open = False
    params_closed = False
    expr_paren = 0
    brace = 0
    in_body = False

    for ch in text[pos:]:
        if ch == "\n":
            line += 1
            if line > limit_line:
                break
            continue

        if not params_closed:
            if ch == "(":
                paren += 1
                params_open = True
            elif ch == ")":
                if paren == 0:
                    # closing an enclosing call: the declaration has no body of its own
                    return Span(start_line, line)
                paren -= 1
                if paren == 0:
                    params_closed = True
            elif paren == 0 and not params_open:
                if ch == "{":
                    params_closed = True
                    brace = 1
                    in_body = True
                elif ch == ";":
                    return Span(start_line, line)
            continue

        if in_body:
            if ch == "{":
                brace += 1
            elif ch == "}":
                brace -= 1
                if brace == 0:
                    return Span(start_line, line)
            continue

        if expr_paren:
            if ch == "(":
                expr_paren += 1
            elif ch == ")":
                expr_paren -= 1
                if expr_paren == 0:
                    return Span(start_line, line)
        elif ch == "(":
            expr_paren = 1
        elif ch == "{":
            brace = 1
            in_body = True
        elif ch == ";":
            return Span(start_line, line)

    total_lines = text.count("\n") + 1
    return Span(start_line, min(start_line + TRUNCATED_SPAN_LINES - 1, total_lines), truncated=True)


# ===================================================================
# Node construction
# ===================================================================

def _make_node(
    ctx: FileContext,
    name: str,
    node_type: NodeType,
    span: Span,
    signature: str,
    metadata: Dict[str, object],
) -> Node:
    stable_id = make_stable_id(ctx.file_path, name)
    if span.truncated:
        metadata = {**metadata, "span_truncated": True}
    snippet_end = min(span.start_line + SNIPPET_LINES - 1, span.end_line)
    return Node(
        stable_id=stable_id,
        name=name,
        node_type=node_type,
        file_path=ctx.file_path,
        start_line=span.start_line,
        end_line=span.end_line,
        signature=signature.strip().split("\n")[0],
        metadata=metadata,
        qualified_name=stable_id,
        language=ctx.language,
        snippet="\n".join(ctx.lines[span.start_line - 1: snippet_end]),
    )


# ===================================================================
# Component recognizer
# ===================================================================

_COMPONENT_PATTERNS = [
    # export default function Name(
    (re.compile(
        r"(?:\bexport\s+)?(?:default\s+)?(?:async\s+)?\bfunction\s+([A-Z]\w*)\s*(?:<[^>()]*>\s*)?\("
    ), False),
    # const Name = (props) => / const Name: React.FC<P> = (props) =>
    (re.compile(
        r"(?:\bexport\s+)?\bconst\s+([A-Z]\w*)\s*"
        r"(?::\s*(?:React\.)?(?:FC|VFC|FunctionComponent|Component)\b[^=]*)?"
        r"=\s*(?:async\s+)?(?:\([^)]*\)|[a-z_$][\w$]*)\s*=>"
    ), False),
    # const Name = function
    (re.compile(r"(?:\bexport\s+)?\bconst\s+([A-Z]\w*)\s*=\s*(?:async\s+)?function\b"), False),
    # const Name = memo(... / React.forwardRef(...
    (re.compile(
        r"(?:\bexport\s+)?\bconst\s+([A-Z]\w*)\s*=\s*(?:React\.)?(?:memo|forwardRef)\s*(?:<[^>()]*>\s*)?\("
    ), True),
]


def recognize_components(ctx: FileContext) -> Recognition:
    if ctx.is_sfc:
        return _recognize_sfc_component(ctx)

    result = Recognition()
    for pattern, wrapped in _COMPONENT_PATTERNS:
        for match in pattern.finditer(ctx.text):
            name = match.group(1)
            # wrapped components scan from inside the wrapper call
            span = resolve_block_span(ctx.text, match.start(), match.end() if wrapped else None)
            if not contains_markup(ctx.body(span)):
                result.skipped += 1
                continue
            metadata: Dict[str, object] = {"exported": name in ctx.exported_names}
            if wrapped:
                metadata["wrapped"] = True
            result.nodes.append(
                _make_node(ctx, name, NodeType.COMPONENT, span, match.group(0), metadata)
            )
    return result


def _recognize_sfc_component(ctx: FileContext) -> Recognition:
    name = sfc_component_name(ctx.file_path, ctx.script)
    span = Span(1, ctx.line_of(len(ctx.text.rstrip("\n"))))
    node = _make_node(
        ctx,
        name,
        NodeType.COMPONENT,
        span,
        ctx.lines[0] if ctx.lines else name,
        {"exported": True, "sfc": True, "whole_file": True},
    )
    return Recognition(nodes=[node])


# ===================================================================
# Hook / composable recognizer
# ===================================================================

_HOOK_PATTERNS = [
    re.compile(r"(?:\bexport\s+)?(?:default\s+)?(?:async\s+)?\bfunction\s+(use[A-Z]\w*)\s*(?:<[^>()]*>\s*)?\("),
    re.compile(
        r"(?:\bexport\s+)?\bconst\s+(use[A-Z]\w*)\s*(?::[^=]*)?=\s*(?:async\s+)?"
        r"(?:\([^)]*\)|[a-z_$][\w$]*)\s*(?::\s*[^=]*)?=>"
    ),
]


def recognize_hooks(ctx: FileContext) -> Recognition:
    result = Recognition()
    for pattern in _HOOK_PATTERNS:
        for match in pattern.finditer(ctx.text):
            name = match.group(1)
            if name not in ctx.exported_names:
                result.skipped += 1
                continue
            span = resolve_block_span(ctx.text, match.start())
            result.nodes.append(
                _make_node(ctx, name, NodeType.HOOK, span, match.group(0), {"exported": True})
            )
    return result


# ===================================================================
# Endpoint recognizer
# ===================================================================

_ROUTE_CALL_RE = re.compile(
    r"\b(app|router)\.(get|post|put|patch|delete|all)\s*\(\s*['\"`]([^'\"`]+)['\"`]"
)
_FILE_ROUTE_RE = re.compile(
    r"\bexport\s+(?:async\s+)?function\s+(" + "|".join(HTTP_VERBS) + r")\s*\("
    r"|\bexport\s+const\s+(" + "|".join(HTTP_VERBS) + r")\s*=\s*(?:async\s+)?(?:\([^)]*\)|\w+)\s*=>"
)
_API_SEGMENT_RE = re.compile(r"(?:^|/)(api(?:/|$).*)$")
_ROUTE_SUFFIX_RE = re.compile(r"/(?:route|index)$")


def route_from_file_path(file_path: str) -> str:
    """Derive the URL path served by a file-based API route handler.

    ``app/api/users/route.ts`` and ``pages/api/users/index.ts`` both map to
    ``/api/users``.
    """
    posix = PurePosixPath(file_path.replace("\\", "/"))
    without_ext = str(posix.with_suffix(""))
    match = _API_SEGMENT_RE.search(without_ext)
    route = "/" + (match.group(1) if match else without_ext.lstrip("/"))
    route = _ROUTE_SUFFIX_RE.sub("", route)
    if route in ("/route", "/index"):
        return "/"
    return route


def recognize_endpoints(ctx: FileContext) -> Recognition:
    result = Recognition()

    for match in _ROUTE_CALL_RE.finditer(ctx.text):
        receiver, verb, route = match.groups()
        method = verb.upper()
        span = resolve_block_span(ctx.text, match.start(), match.end())
        result.nodes.append(_make_node(
            ctx,
            f"{method} {route}",
            NodeType.ENDPOINT,
            span,
            match.group(0),
            {"method": method, "route": route, "registrar": receiver},
        ))

    for match in _FILE_ROUTE_RE.finditer(ctx.text):
        method = match.group(1) or match.group(2)
        route = route_from_file_path(ctx.file_path)
        span = resolve_block_span(ctx.text, match.start())
        result.nodes.append(_make_node(
            ctx,
            f"{method} {route}",
            NodeType.ENDPOINT,
            span,
            match.group(0),
            {"method": method, "route": route, "file_based": True},
        ))
    return result


# ===================================================================
# Class recognizer
# ===================================================================

_CLASS_RE = re.compile(
    r"(?:\bexport\s+)?(?:default\s+)?(?:abstract\s+)?\bclass\s+(?!extends\b)([A-Za-z_$][\w$]*)"
    r"(?:\s*<[^>{]*>)?(?:\s+extends\s+([\w$.]+))?"
)


def recognize_classes(ctx: FileContext) -> Recognition:
    result = Recognition()
    for match in _CLASS_RE.finditer(ctx.text):
        name, base = match.group(1), match.group(2)
        if name not in ctx.exported_names:
            result.skipped += 1
            continue
        span = resolve_block_span(ctx.text, match.start())
        node = _make_node(
            ctx, name, NodeType.CLASS, span, match.group(0),
            {"extends": base, "exported": True},
        )
        result.nodes.append(node)
        if base:
            # target is the bare base-class name; assembly resolves or drops it
            result.edges.append(Edge(
                source_stable_id=node.stable_id,
                target_stable_id=base,
                edge_type=EdgeType.EXTENDS,
                metadata={"detection": "declaration"},
            ))
    return result


# ===================================================================
# Exported-function recognizer
# ===================================================================

_EXPORTED_FUNCTION_PATTERNS = [
    re.compile(r"\bexport\s+(?:default\s+)?(?:async\s+)?function\s+([a-z]\w*)\s*(?:<[^>()]*>\s*)?\("),
    re.compile(r"\bexport\s+const\s+([a-z]\w*)\s*(?::[^=]*)?=\s*(?:async\s+)?(?:\([^)]*\)|[a-z_$][\w$]*)\s*(?::\s*[^=]*)?=>"),
]


def is_trivial_name(name: str) -> bool:
    return len(name) < TRIVIAL_NAME_MAX_LEN and name.startswith(TRIVIAL_PREFIXES)


def recognize_exported_functions(ctx: FileContext) -> Recognition:
    result = Recognition()
    for pattern in _EXPORTED_FUNCTION_PATTERNS:
        for match in pattern.finditer(ctx.text):
            name = match.group(1)
            if name.startswith("use"):
                continue
            if is_trivial_name(name):
                result.skipped += 1
                continue
            span = resolve_block_span(ctx.text, match.start())
            if contains_markup(ctx.body(span)):
                continue
            result.nodes.append(
                _make_node(ctx, name, NodeType.FUNCTION, span, match.group(0), {"exported": True})
            )
    return result


# Fixed order used by the file extractor
RECOGNIZERS: List[Recognizer] = [
    recognize_components,
    recognize_hooks,
    recognize_endpoints,
    recognize_classes,
    recognize_exported_functions,
]
