"""Typer-based CLI for depslice."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from . import __version__, config_manager
from .graph_builder import EmptySeedSetError, build_full_graph, build_seeded_graph
from .graph_export import context_pack, summarize_exclusions, to_dot, to_mermaid
from .indexer import get_index
from .models import ContextSlice, DepGraph, FileRecord, ModelProfile
from .reader import DiskFileReader
from .resolver import AliasConfig
from .slicer import (
    MODEL_PROFILES,
    derive_budget,
    find_route_seeds,
    normalize_route,
    slice_feature,
    slice_route,
)
from .storage import OutputStore
from .utils import format_bytes, get_git_commit

console = Console()

app = typer.Typer(
    help="✂️  depslice — bounded, deterministic dependency slices for LLM context.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"depslice v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log resolution and slicing decisions."),
):
    """depslice: module graphs and budgeted context slices for JS/TS repositories."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


def _aliases_for(reader: DiskFileReader) -> AliasConfig:
    return AliasConfig.from_tsconfig(reader).merged(config_manager.load_alias_config())


def _load_records(repo_root: Path, reader: DiskFileReader, store: OutputStore, refresh: bool) -> List[FileRecord]:
    return get_index(repo_root, reader, store, refresh=refresh).files


@app.command("scan")
def scan_command(
    refresh: bool = typer.Option(False, "--refresh", help="Rescan even if a saved index exists."),
    exclude: Optional[List[str]] = typer.Option(None, "--exclude", "-x", help="Glob to leave out of the index (repeatable)."),
    root: Path = typer.Option(Path("."), "--root", "-r", exists=True, file_okay=False, help="Repository root."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output directory (default: <root>/.depslice)."),
):
    """Index the repository and save it for later graph and slice runs."""
    repo_root = root.resolve()
    reader = DiskFileReader(repo_root)
    store = OutputStore(repo_root, output)

    index = get_index(repo_root, reader, store, refresh=refresh, exclude=exclude or [])
    path = store.save_index(index)

    console.print("\n[bold cyan]📊 REPOSITORY INDEX[/bold cyan]")
    if index.git_commit:
        typer.echo(f"  Git:        {index.git_commit[:8]}")
    typer.echo(f"  Files:      {len(index.files)}")
    routes = sorted({r.route_path for r in index.files if r.route_path is not None})
    typer.echo(f"  Routes:     {len(routes)}")
    typer.echo("  Files by Type:")
    for file_type, count in index.by_type().items():
        typer.echo(f"    {file_type:<12} {count}")
    typer.echo(f"Generated: {path}")


def _print_graph_stats(graph: DepGraph) -> None:
    stats = graph.stats
    typer.echo("Dependency Graph Stats:")
    if graph.is_seeded:
        typer.echo(f"  Seeds:      {len(graph.seeds)} (depth <= {graph.max_depth})")
    typer.echo(f"  Nodes:      {stats.total_nodes}")
    typer.echo(f"  Edges:      {stats.total_edges}")
    typer.echo(f"  External:   {stats.external_deps}")
    typer.echo(f"  Circular:   {stats.circular_deps}")
    typer.echo(f"  Unresolved: {stats.unresolved_imports}")
    if stats.max_deps_file:
        typer.echo(f"  Most deps:  {stats.max_deps_file} ({stats.max_deps_count})")


@app.command("graph")
def graph_command(
    seeds: Optional[List[str]] = typer.Option(None, "--seed", "-s", help="Seed file (repeatable). Omit for the full graph."),
    depth: int = typer.Option(10, "--depth", "-d", min=0, help="Maximum hops from the seeds."),
    fmt: str = typer.Option("json", "--format", "-f", help="json, mermaid, dot, or all."),
    root: Path = typer.Option(Path("."), "--root", "-r", exists=True, file_okay=False, help="Repository root."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output directory (default: <root>/.depslice)."),
    max_nodes: int = typer.Option(50, "--max-nodes", help="Node cap for diagram output."),
    refresh: bool = typer.Option(False, "--refresh", help="Ignore the saved index and rescan."),
):
    """Build the module dependency graph, whole-repo or from seed files."""
    if fmt not in ("json", "mermaid", "dot", "all"):
        raise typer.BadParameter(f"Unknown format '{fmt}'. Use json, mermaid, dot, or all.")

    repo_root = root.resolve()
    reader = DiskFileReader(repo_root)
    store = OutputStore(repo_root, output)
    aliases = _aliases_for(reader)
    records = _load_records(repo_root, reader, store, refresh)

    try:
        if seeds:
            graph = build_seeded_graph(seeds, records, reader, aliases, max_depth=depth, repo_root=str(repo_root))
        else:
            graph = build_full_graph(records, reader, aliases, repo_root=str(repo_root))
    except EmptySeedSetError as exc:
        console.print(f"[red]✗[/red] {exc}")
        raise typer.Exit(1)
    graph.git_commit = get_git_commit(repo_root)

    outputs: List[Path] = []
    if fmt in ("json", "all"):
        outputs.append(store.save_graph(graph))
    if fmt in ("mermaid", "all"):
        outputs.append(store.save_text("graphs/deps.mmd", to_mermaid(graph, max_nodes=max_nodes)))
    if fmt in ("dot", "all"):
        outputs.append(store.save_text("graphs/deps.dot", to_dot(graph, max_nodes=max_nodes)))

    _print_graph_stats(graph)
    for path in outputs:
        typer.echo(f"Generated: {path}")


def _print_slice_summary(result: ContextSlice) -> None:
    console.print(f"\n[bold cyan]📦 CONTEXT SLICE: {result.name}[/bold cyan]")
    summary = result.summary
    typer.echo(f"  Type:       {result.slice_type}")
    typer.echo(f"  Files:      {summary.total_files}")
    typer.echo(f"  Size:       {format_bytes(summary.total_bytes)}")
    typer.echo(f"  Tokens:     ~{summary.total_tokens}")
    typer.echo(f"  Max Depth:  {summary.max_depth}")

    report = result.token_budget
    if report is not None:
        typer.echo(f"  Token Budget ({report.model}):")
        typer.echo(f"    Available: {report.available_for_input}")
        typer.echo(f"    Used:      {report.used}")
        typer.echo(f"    Remaining: {report.remaining}")
        if report.estimated_cost is not None:
            typer.echo(f"    Est. Cost: ${report.estimated_cost:.4f}")

    if result.excluded:
        typer.echo("  Excluded:")
        for reason, count in summarize_exclusions(result):
            typer.echo(f"    {reason:<12} {count}")


def _route_stem(route: str) -> str:
    return normalize_route(route).strip("/").replace("/", "_") or "root"


@app.command("slice")
def slice_command(
    seeds: Optional[List[str]] = typer.Option(None, "--seed", "-s", help="Seed file (repeatable)."),
    route: Optional[str] = typer.Option(None, "--route", help="Route path, e.g. /dashboard. Its page and layouts are found from the index unless --seed/--layout are given."),
    layouts: Optional[List[str]] = typer.Option(None, "--layout", help="Ancestor layout file of the route (repeatable)."),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Slice name for feature slices."),
    depth: Optional[int] = typer.Option(None, "--depth", "-d", min=0, help="Maximum hops from the seeds."),
    max_bytes: Optional[int] = typer.Option(None, "--max-bytes", min=0, help="Byte budget."),
    max_file_bytes: Optional[int] = typer.Option(None, "--max-file-bytes", min=1, help="Per-file size cap."),
    max_tokens: Optional[int] = typer.Option(None, "--max-tokens", min=0, help="Token budget (overrides the model's)."),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model profile for token budgeting."),
    exclude: Optional[List[str]] = typer.Option(None, "--exclude", "-x", help="Glob to exclude (repeatable)."),
    fmt: str = typer.Option("both", "--format", "-f", help="json, markdown, or both."),
    root: Path = typer.Option(Path("."), "--root", "-r", exists=True, file_okay=False, help="Repository root."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output directory (default: <root>/.depslice)."),
    refresh: bool = typer.Option(False, "--refresh", help="Ignore the saved index and rescan."),
):
    """Build a budgeted context slice around seed files or a route."""
    if not seeds and not layouts and not route:
        raise typer.BadParameter("Must specify --seed or --route.")
    if fmt not in ("json", "markdown", "both"):
        raise typer.BadParameter(f"Unknown format '{fmt}'. Use json, markdown, or both.")

    settings = config_manager.load_slice_settings()
    if model is None and max_tokens is None and max_bytes is None:
        max_bytes = settings["max_bytes"]
    try:
        budget = derive_budget(
            model=model,
            max_tokens=max_tokens,
            max_bytes=max_bytes,
            profiles=config_manager.load_model_profiles(),
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc))

    repo_root = root.resolve()
    reader = DiskFileReader(repo_root)
    store = OutputStore(repo_root, output)
    records = _load_records(repo_root, reader, store, refresh)
    options = dict(
        aliases=_aliases_for(reader),
        depth=depth if depth is not None else settings["depth"],
        budget=budget,
        exclude=list(exclude or []) + settings["exclude"],
        max_file_bytes=max_file_bytes or settings["max_file_bytes"],
        repo_root=str(repo_root),
    )

    try:
        if route or layouts:
            route = normalize_route(route or "/")
            seed_files, layout_files = list(seeds or []), list(layouts or [])
            if not seed_files and not layout_files:
                seed_files, layout_files = find_route_seeds(records, route)
                if not seed_files and not layout_files:
                    console.print(f"[red]✗[/red] No files found for route: {route}")
                    raise typer.Exit(1)
            stem = _route_stem(route)
            result = slice_route(route, seed_files, layout_files, records, reader, **options)
        else:
            stem = name or "feature"
            result = slice_feature(seeds or [], stem, records, reader, **options)
    except EmptySeedSetError as exc:
        console.print(f"[red]✗[/red] {exc}")
        raise typer.Exit(1)
    result.git_commit = get_git_commit(repo_root)

    outputs: List[Path] = []
    if fmt in ("json", "both"):
        outputs.append(store.save_slice(result, stem))
    if fmt in ("markdown", "both"):
        outputs.append(store.save_text(f"slices/{stem}.md", context_pack(result, reader)))

    _print_slice_summary(result)
    for path in outputs:
        typer.echo(f"Generated: {path}")


@app.command("show")
def show_command(
    slice_name: Optional[str] = typer.Argument(None, help="Saved slice to show; omit to list saved outputs."),
    root: Path = typer.Option(Path("."), "--root", "-r", exists=True, file_okay=False, help="Repository root."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output directory (default: <root>/.depslice)."),
):
    """Show a saved slice, or list saved slices and the saved graph."""
    store = OutputStore(root.resolve(), output)

    if slice_name:
        result = store.load_slice(slice_name)
        if result is None:
            console.print(f"[red]✗[/red] No saved slice named '{slice_name}'")
            raise typer.Exit(1)
        _print_slice_summary(result)
        return

    graph = store.load_graph()
    if graph is not None:
        _print_graph_stats(graph)
    slices = store.list_slices()
    if not slices and graph is None:
        typer.echo("No saved outputs. Run 'ds graph' or 'ds slice' first.")
        return
    if slices:
        typer.echo("Saved slices:")
        for stem in slices:
            typer.echo(f"  {stem}")


@app.command("models")
def models_command():
    """List model profiles available for token budgeting."""
    profiles = dict(MODEL_PROFILES)
    profiles.update(config_manager.load_model_profiles())

    table = Table(title="Model Profiles")
    table.add_column("Name", style="cyan")
    table.add_column("Context", justify="right")
    table.add_column("Reserved", justify="right")
    table.add_column("Available", justify="right", style="green")
    for name in sorted(profiles):
        p = profiles[name]
        table.add_row(name, str(p.context_window), str(p.reserve_for_output), str(p.available_for_input))
    console.print(table)


@app.command("add-model")
def add_model_command(
    name: str = typer.Argument(..., help="Profile name, used with --model."),
    context_window: int = typer.Option(..., "--context-window", "-c", min=1, help="Total context window in tokens."),
    reserve: int = typer.Option(4000, "--reserve", min=0, help="Tokens reserved for the model's output."),
    max_output: int = typer.Option(4096, "--max-output", min=0, help="Maximum output tokens."),
    cost_in: Optional[float] = typer.Option(None, "--cost-in", help="USD per 1K input tokens."),
    cost_out: Optional[float] = typer.Option(None, "--cost-out", help="USD per 1K output tokens."),
):
    """Save a custom model profile to the user config.

    Examples:
        ds add-model local-llm -c 32000 --reserve 2000
    """
    if reserve >= context_window:
        raise typer.BadParameter("--reserve must be smaller than --context-window.")

    profile = ModelProfile(name, context_window, max_output, reserve, cost_in, cost_out)
    if not config_manager.save_model_profile(profile):
        console.print("[red]✗[/red] Could not write the config file")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Saved model profile '{name}' ({profile.available_for_input} tokens for input)")


if __name__ == "__main__":
    app()
