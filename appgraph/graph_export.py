"""Graph export helpers for DOT and standalone HTML outputs."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, List

from .models import AnalysisResult, Edge, Node, NodeType

NODE_COLORS: Dict[NodeType, str] = {
    NodeType.COMPONENT: "#4f9dde",
    NodeType.HOOK: "#9b59b6",
    NodeType.ENDPOINT: "#e67e22",
    NodeType.CLASS: "#27ae60",
    NodeType.FUNCTION: "#95a5a6",
}


def export_dot(result: AnalysisResult, output_file: Path, focus: str = "") -> None:
    nodes, edges = _focused_subgraph(result, focus)

    lines = ["digraph AppGraph {"]
    lines.append("  rankdir=LR;")
    lines.append("  node [shape=box, style=filled, fontname=Helvetica];")

    for node in nodes:
        label = f"{node.node_type.value}\\n{_esc(node.name)}"
        color = NODE_COLORS.get(node.node_type, "#dddddd")
        lines.append(f'  "{_esc(node.stable_id)}" [label="{label}", fillcolor="{color}"];')

    for edge in edges:
        lines.append(
            f'  "{_esc(edge.source_stable_id)}" -> "{_esc(edge.target_stable_id)}" '
            f'[label="{edge.edge_type.value}"];'
        )

    lines.append("}")
    output_file.write_text("\n".join(lines), encoding="utf-8")


def export_html(result: AnalysisResult, output_file: Path, focus: str = "") -> None:
    """Export graph to an interactive HTML page rendered with vis-network."""
    nodes, edges = _focused_subgraph(result, focus)
    graph_payload = {
        "nodes": [
            {
                "id": node.stable_id,
                "label": node.name,
                "group": node.node_type.value,
                "color": NODE_COLORS.get(node.node_type, "#dddddd"),
                "title": _node_title(node),
                "url": node.github_link or "",
            }
            for node in nodes
        ],
        "edges": [
            {
                "from": edge.source_stable_id,
                "to": edge.target_stable_id,
                "label": edge.edge_type.value,
                "title": edge.metadata.get("detection", ""),
            }
            for edge in edges
        ],
    }
    output_file.write_text(_html_document(graph_payload), encoding="utf-8")


def _html_document(graph_payload: dict) -> str:
    # "</" would end the script block early
    data = json.dumps(graph_payload, indent=2).replace("</", "<\\/")
    return f"""<!doctype html>
<html>
<head>
  <meta charset="utf-8" />
  <title>AppGraph Export</title>
  <script src="https://unpkg.com/vis-network/standalone/umd/vis-network.min.js"></script>
  <style>
    body {{ font-family: ui-monospace, SFMono-Regular, Menlo, monospace; margin: 0; }}
    header {{ padding: 10px 20px; border-bottom: 1px solid #ddd; }}
    #graph {{ width: 100vw; height: calc(100vh - 60px); }}
  </style>
</head>
<body>
  <header><strong>AppGraph</strong> <span id="counts"></span></header>
  <div id="graph"></div>
  <script>
    const graph = {data};
    document.getElementById('counts').textContent =
      `${{graph.nodes.length}} nodes, ${{graph.edges.length}} edges`;
    const network = new vis.Network(
      document.getElementById('graph'),
      {{ nodes: new vis.DataSet(graph.nodes), edges: new vis.DataSet(graph.edges) }},
      {{
        edges: {{ arrows: 'to', font: {{ size: 10, align: 'middle' }} }},
        nodes: {{ shape: 'box', font: {{ color: '#ffffff' }} }},
        physics: {{ stabilization: true }},
      }}
    );
    network.on('doubleClick', params => {{
      const node = graph.nodes.find(n => n.id === params.nodes[0]);
      if (node && node.url) {{ window.open(node.url, '_blank'); }}
    }});
  </script>
</body>
</html>
"""


def _node_title(node: Node) -> str:
    title = f"{node.node_type.value} @ {node.file_path}:{node.start_line}"
    if node.summary:
        title += f"\n{node.summary}"
    return title


def _focused_subgraph(result: AnalysisResult, focus: str):
    """Nodes matching *focus* plus their direct neighbours (everything if no match)."""
    by_id: Dict[str, Node] = {n.stable_id: n for n in result.nodes}
    edges: List[Edge] = [
        e for e in result.edges
        if e.source_stable_id in by_id and e.target_stable_id in by_id
    ]
    if not focus:
        return list(by_id.values()), edges

    focus_ids = {
        stable_id
        for stable_id, node in by_id.items()
        if focus in stable_id or focus in node.name
    }
    if not focus_ids:
        return list(by_id.values()), edges

    edge_subset = [e for e in edges if e.source_stable_id in focus_ids or e.target_stable_id in focus_ids]
    node_ids = set(focus_ids)
    for e in edge_subset:
        node_ids.add(e.source_stable_id)
        node_ids.add(e.target_stable_id)
    return [by_id[i] for i in sorted(node_ids)], edge_subset


def _esc(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')
