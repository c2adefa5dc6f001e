"""Typer-based CLI for AppGraph."""

from __future__ import annotations

import logging
from collections import Counter
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from . import __version__, config, config_manager
from .analyzer import AnalysisOptions, analyze_workspace
from .errors import ConfigError
from .github import detect_github_info
from .graph_export import export_dot, export_html
from .models import AnalysisResult, NodeType
from .storage import graph_file_path, read_local_graph, write_local_graph

console = Console()

app = typer.Typer(
    help="🧭 AppGraph: semantic dependency graphs for web-application code.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

EXPORT_FORMATS = ("dot", "html")


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"AppGraph v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    )
):
    """AppGraph: components, hooks, endpoints and how they connect."""
    pass


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load_snapshot(path: Path, graph: Optional[Path]) -> AnalysisResult:
    result = read_local_graph(path, graph)
    if result is None:
        location = graph or graph_file_path(path)
        console.print(f"[red]No graph snapshot at {location}.[/red] Run [bold]appgraph analyze {path}[/bold] first.")
        raise typer.Exit(code=1)
    return result


def _summary_table(result: AnalysisResult) -> Table:
    table = Table(title="Graph summary", show_header=True, header_style="bold cyan")
    table.add_column("Kind")
    table.add_column("Type")
    table.add_column("Count", justify="right")

    node_counts = Counter(n.node_type.value for n in result.nodes)
    for node_type in NodeType:
        if node_counts.get(node_type.value):
            table.add_row("node", node_type.value, str(node_counts[node_type.value]))
    edge_counts = Counter(e.edge_type.value for e in result.edges)
    for edge_type, count in sorted(edge_counts.items()):
        table.add_row("edge", edge_type, str(count))
    table.add_row("[bold]total[/bold]", "nodes / edges", f"{len(result.nodes)} / {len(result.edges)}")
    return table


@app.command("analyze")
def analyze(
    path: Path = typer.Argument(..., exists=True, file_okay=False, resolve_path=True, help="Workspace root to analyze."),
    include: Optional[List[str]] = typer.Option(None, "--include", "-i", help="Glob of files to scan (repeatable)."),
    exclude: Optional[List[str]] = typer.Option(None, "--exclude", "-x", help="Glob of files to skip (repeatable)."),
    llm: Optional[bool] = typer.Option(None, "--llm/--no-llm", help="Validate API calls with the configured LLM."),
    api_heuristics: bool = typer.Option(
        True, "--api-heuristics/--no-api-heuristics", help="Link fetch/axios calls to endpoints without an LLM.",
    ),
    summaries: bool = typer.Option(
        True, "--summaries/--no-summaries", help="With --llm, ask the model for a one-line summary of each node.",
    ),
    github: bool = typer.Option(True, "--github/--no-github", help="Attach GitHub permalinks when origin is on GitHub."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Snapshot file (default: PATH/.appgraph/graph.json)."),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
):
    """Scan a workspace and write its dependency graph snapshot."""
    _setup_logging(verbose)
    settings = config_manager.load_analysis_config()
    options = AnalysisOptions(
        enable_llm=settings["enable_llm"] if llm is None else llm,
        api_heuristics=api_heuristics,
        summarize=summaries,
    )

    try:
        with console.status(f"Analyzing {path} ..."):
            result = analyze_workspace(
                path,
                include=include or settings["include"],
                exclude=exclude or settings["exclude"],
                options=options,
                github_info=detect_github_info(path) if github else None,
            )
    except ConfigError as exc:
        console.print(f"[red]Invalid analysis settings: {exc}[/red]")
        raise typer.Exit(code=1)
    snapshot = write_local_graph(path, result, output)

    stats = result.stats
    console.print(_summary_table(result))
    console.print(
        f"Files: {stats.files_analyzed} analyzed, {stats.files_failed} failed | "
        f"duplicates dropped: {stats.duplicates} | edges dropped: {stats.dropped_edges}"
    )
    if stats.summaries:
        console.print(f"Summaries: {stats.summaries} node(s)")
    console.print(f"[green]✅ Graph written to {snapshot}[/green]")


@app.command("nodes")
def list_nodes(
    path: Path = typer.Argument(Path("."), exists=True, file_okay=False, resolve_path=True, help="Analyzed workspace root."),
    node_type: Optional[str] = typer.Option(None, "--type", "-t", help="Only show nodes of this type."),
    graph: Optional[Path] = typer.Option(None, "--graph", "-g", help="Snapshot file to read."),
):
    """List nodes from the graph snapshot."""
    if node_type is not None and node_type not in {t.value for t in NodeType}:
        console.print(f"[red]Unknown node type '{node_type}'.[/red]")
        raise typer.Exit(code=1)

    result = _load_snapshot(path, graph)
    nodes = [n for n in result.nodes if node_type is None or n.node_type.value == node_type]
    if not nodes:
        console.print("No nodes found.")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Type")
    table.add_column("Name", overflow="fold")
    table.add_column("Location", overflow="fold")
    for node in nodes:
        table.add_row(node.node_type.value, node.name, f"{node.file_path}:{node.start_line}-{node.end_line}")
    console.print(table)
    console.print(f"{len(nodes)} node(s)")


@app.command("export")
def export_graph(
    path: Path = typer.Argument(Path("."), exists=True, file_okay=False, resolve_path=True, help="Analyzed workspace root."),
    fmt: str = typer.Option("html", "--format", "-f", help="Output format: dot or html."),
    output: Path = typer.Option(..., "--output", "-o", help="File to write."),
    focus: str = typer.Option("", "--focus", help="Only nodes whose id or name contains this text, plus neighbours."),
    graph: Optional[Path] = typer.Option(None, "--graph", "-g", help="Snapshot file to read."),
):
    """Export the graph snapshot as Graphviz DOT or interactive HTML."""
    fmt = fmt.lower()
    if fmt not in EXPORT_FORMATS:
        console.print(f"[red]Unsupported format '{fmt}'. Choose from: {', '.join(EXPORT_FORMATS)}[/red]")
        raise typer.Exit(code=1)

    result = _load_snapshot(path, graph)
    output.parent.mkdir(parents=True, exist_ok=True)
    if fmt == "dot":
        export_dot(result, output, focus=focus)
    else:
        export_html(result, output, focus=focus)
    console.print(f"[green]✅ Exported {fmt.upper()} to {output}[/green]")


@app.command("set-llm")
def set_llm(
    provider: str = typer.Option(..., "--provider", "-p", help="LLM provider: gemini, openai, anthropic, groq, ollama."),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model name (uses provider default if not set)."),
    api_key: Optional[str] = typer.Option(None, "--api-key", "-k", help="API key for cloud providers."),
    endpoint: Optional[str] = typer.Option(None, "--endpoint", "-e", help="Custom endpoint URL."),
):
    """Save the LLM provider used for API-call enrichment."""
    provider = provider.lower().strip()
    if provider not in config_manager.DEFAULT_CONFIGS:
        console.print(
            f"[red]Unknown provider '{provider}'. Choose from: {', '.join(config_manager.DEFAULT_CONFIGS)}[/red]"
        )
        raise typer.Exit(code=1)

    defaults = config_manager.get_provider_config(provider)
    resolved_model = model or defaults.get("model", "")
    resolved_endpoint = endpoint or defaults.get("endpoint", "")
    if not config_manager.save_config(provider, resolved_model, api_key or "", resolved_endpoint):
        console.print("[red]Failed to save configuration.[/red]")
        raise typer.Exit(code=1)

    console.print(f"[green]✅ LLM set to {provider} ({resolved_model})[/green]")
    if provider != "ollama" and not api_key:
        console.print("[yellow]No API key saved; set one with --api-key or APPGRAPH_LLM_API_KEY.[/yellow]")


@app.command("show-llm")
def show_llm():
    """Show current LLM provider configuration."""
    cfg = config_manager.load_config()
    api_key = cfg.get("api_key", "")
    if api_key:
        masked = api_key[:4] + "•" * min(max(len(api_key) - 4, 0), 16)
    else:
        masked = "[dim](not set)[/dim]"

    table = Table(show_header=False, box=None)
    table.add_row("Provider", f"[bold]{cfg.get('provider', config_manager.DEFAULT_PROVIDER)}[/bold]")
    table.add_row("Model", cfg.get("model", ""))
    if cfg.get("endpoint"):
        table.add_row("Endpoint", f"[dim]{cfg['endpoint']}[/dim]")
    table.add_row("API Key", masked)
    table.add_row("Config", f"[dim]{config.CONFIG_FILE}[/dim]")
    console.print(Panel(table, title="🔍 LLM Configuration", expand=False))


if __name__ == "__main__":
    app()
