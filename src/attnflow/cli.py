"""Command-line interface for attention-flow."""

from __future__ import annotations

import json
import logging
import sys
from contextlib import nullcontext
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from attnflow.analytics.calibration import ThresholdCalibrator
from attnflow.analytics.embedding import EmbeddingBackend, HashingEncoder
from attnflow.analytics.shortlist import find_similar_visits
from attnflow.analytics.similarity import FallbackBackend, SimilarityBackend, SimilarityEstimator
from attnflow.analytics.temporal import render_hourly_strip
from attnflow.config import Config, get_config, load_config
from attnflow.models import AnalysisResult, VisitEvent
from attnflow.pipeline import analyze_history, prepare_events
from attnflow.storage import Database, DatabaseError, EmbeddingCache, InMemoryThresholdStore, ThresholdStore

console = Console()
error_console = Console(stderr=True)

KIND_STYLES = {
    "related": "green",
    "topic_shift": "yellow",
    "context_switch": "red",
}


def setup_logging(verbose: bool) -> None:
    """Route library logs through rich when --verbose is given."""
    if not verbose:
        return
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=error_console, show_path=False)],
        force=True,
    )


def read_history(path: Path) -> list[Any]:
    """Load a JSON list of history records.

    Accepts either a bare list or an object with a ``history`` list.

    Raises:
        click.ClickException: If the file is not readable JSON of that shape.
    """
    try:
        with path.open(encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise click.ClickException(f"Could not read {path}: {e}") from e

    if isinstance(data, dict):
        data = data.get("history")
    if not isinstance(data, list):
        raise click.ClickException(f"{path} does not contain a list of history records")
    return data


def resolve_config(config_path: Path | None) -> Config:
    return load_config(config_path) if config_path is not None else get_config()


def format_minutes(minutes: float) -> str:
    """Format a duration in minutes for display.

    Examples:
        >>> format_minutes(0.5)
        '30s'
        >>> format_minutes(75)
        '1h 15m'
    """
    if minutes < 1:
        return f"{int(round(minutes * 60))}s"
    if minutes < 60:
        return f"{minutes:.1f}m"
    hours, rem = divmod(int(round(minutes)), 60)
    return f"{hours}h {rem}m"


def print_report(result: AnalysisResult) -> None:
    """Print a rich summary of an analysis result."""
    report = result.report
    console.print(
        f"\n[bold]Attention flow[/bold] over [cyan]{report.event_count}[/cyan] visits, "
        f"[cyan]{len(result.graph.nodes)}[/cyan] domains "
        f"[dim](backend: {report.backend})[/dim]\n"
    )

    stats = report.transition_stats
    transitions = Table(title="Transitions", show_header=True, header_style="bold")
    transitions.add_column("Kind")
    transitions.add_column("Edges", justify="right")
    for kind, count in (
        ("related", stats.related),
        ("topic_shift", stats.topic_shift),
        ("context_switch", stats.context_switch),
    ):
        style = KIND_STYLES[kind]
        transitions.add_row(f"[{style}]{kind}[/{style}]", str(count))
    transitions.add_row("[bold]total[/bold]", str(stats.total))
    console.print(transitions)

    if report.graph.hubs:
        hubs = Table(title="Hub Domains", show_header=True, header_style="bold")
        hubs.add_column("Domain", style="cyan")
        hubs.add_column("Score", justify="right")
        for domain, score in report.graph.hubs:
            hubs.add_row(domain, str(score))
        console.print(hubs)

    if report.chains:
        chains = Table(title="Information Chains", show_header=True, header_style="bold")
        chains.add_column("#", style="dim", width=4)
        chains.add_column("Pages", justify="right")
        chains.add_column("Duration", justify="right")
        chains.add_column("Complexity", justify="right")
        chains.add_column("Scent", justify="right")
        for i, chain in enumerate(report.chains[:20], 1):
            chains.add_row(
                str(i),
                str(chain.length),
                format_minutes(chain.duration_minutes),
                f"{chain.avg_complexity:.2f}",
                f"{chain.scent_strength:.2f}",
            )
        console.print(chains)

    temporal = report.temporal
    strip_lines = [
        "[bold]Activity by hour[/bold]",
        render_hourly_strip(temporal.hourly_activity, legend=False),
        "[bold]Complexity by hour[/bold]",
        render_hourly_strip(temporal.hourly_complexity),
    ]
    peaks = ", ".join(str(h) for h in temporal.peak_hours) or "None"
    rhythm = f"{temporal.rhythm_period_minutes}m" if temporal.rhythm_period_minutes else "None"
    strip_lines.append(f"\n  Peak hours: {peaks}    Rhythm: {rhythm}")
    console.print(Panel("\n".join(strip_lines), title="Daily Rhythm", border_style="green"))

    insights = report.insights
    lines = [
        f"Focus sessions: {len(report.focus_sessions)}",
        f"Avg focus duration: {format_minutes(insights.avg_focus_minutes)}",
        f"Topic switch rate: {insights.topic_switch_rate:.0%}",
        f"Information diversity: {insights.information_diversity:.3f} bits",
        f"Peak complexity hours: {', '.join(str(h) for h in insights.peak_complexity_hours) or 'None'}",
    ]
    if insights.recommendations:
        lines.append("")
        lines.extend(f"[yellow]•[/yellow] {r}" for r in insights.recommendations)
    console.print(Panel("\n".join(lines), title="Insights", border_style="blue"))

    console.print(
        f"[dim]Thresholds: related={result.thresholds.related:.3f} "
        f"topic_shift={result.thresholds.topic_shift:.3f}[/dim]"
    )


@click.group()
@click.version_option(package_name="attention-flow")
def cli() -> None:
    """Attention Flow - analyze how attention moves through your browsing history."""
    pass


@cli.command()
@click.argument("history_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Output raw JSON")
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path), help="Config file")
@click.option("--db", "db_path", type=click.Path(dir_okay=False, path_type=Path), help="SQLite database path")
@click.option("--no-persist", is_flag=True, help="Do not load or save calibrated thresholds")
@click.option("--embeddings", is_flag=True, help="Score with hashed passage embeddings")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
def analyze(
    history_file: Path,
    as_json: bool,
    config_path: Path | None,
    db_path: Path | None,
    no_persist: bool,
    embeddings: bool,
    verbose: bool,
) -> None:
    """Analyze a browser history export.

    HISTORY_FILE is a JSON list of {url, title, lastVisitTime} records.

    Examples:
        attnflow analyze history.json
        attnflow analyze history.json --json --no-persist
    """
    setup_logging(verbose)
    config = resolve_config(config_path)
    records = read_history(history_file)

    db: Database | None = None
    if not no_persist:
        db = Database(db_path or config.storage.get_db_path())

    try:
        store: ThresholdStore | InMemoryThresholdStore
        store = ThresholdStore(db=db) if db is not None else InMemoryThresholdStore()
        calibrator = ThresholdCalibrator.from_config(config.analysis, store)

        backend: SimilarityBackend | None = None
        if embeddings:
            cache = EmbeddingCache(db=db, lru_size=config.analysis.lru_size) if db is not None else None
            backend = FallbackBackend(EmbeddingBackend(HashingEncoder(), cache, model_name="hashing"))

        with console.status("Analyzing history...", spinner="dots") if not as_json else nullcontext():
            result = analyze_history(records, config.analysis, backend=backend, calibrator=calibrator)
    except DatabaseError as e:
        error_console.print(f"[red]Error opening database:[/red] {e}")
        sys.exit(1)
    finally:
        if db is not None:
            db.close()

    if as_json:
        click.echo(result.model_dump_json(by_alias=True, indent=2))
        return

    print_report(result)


@cli.command()
@click.option("--reset", is_flag=True, help="Clear persisted thresholds")
@click.option("--db", "db_path", type=click.Path(dir_okay=False, path_type=Path), help="SQLite database path")
def thresholds(reset: bool, db_path: Path | None) -> None:
    """Show or reset the calibrated similarity thresholds."""
    config = get_config()
    try:
        store = ThresholdStore(db_path or config.storage.get_db_path())
    except Exception as e:
        error_console.print(f"[red]Error initializing store:[/red] {e}")
        sys.exit(1)

    try:
        if reset:
            store.clear()
            console.print("[green]✓[/green] Cleared persisted thresholds")
            return

        state = store.load()
        if state is None:
            console.print(
                f"[dim]No persisted thresholds; defaults are related="
                f"{config.analysis.related_threshold:.3f} "
                f"topic_shift={config.analysis.topic_shift_threshold:.3f}[/dim]"
            )
            return

        table = Table(show_header=True, header_style="bold")
        table.add_column("Threshold")
        table.add_column("Value", justify="right")
        table.add_row("related", f"{state.related:.3f}")
        table.add_row("topic_shift", f"{state.topic_shift:.3f}")
        console.print(table)
    finally:
        store.close()


@cli.command()
@click.argument("history_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("url")
@click.option("--top", "-n", type=int, default=5, help="Number of results to show")
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path), help="Config file")
def similar(history_file: Path, url: str, top: int, config_path: Path | None) -> None:
    """Find visits related to URL.

    Candidates are shortlisted by BM25 over titles and URLs, then re-ranked
    by similarity.

    Examples:
        attnflow similar history.json https://docs.python.org/3/library/asyncio.html
    """
    config = resolve_config(config_path)
    events = prepare_events(read_history(history_file), config.analysis)

    matches = [e for e in events if e.url == url]
    current = matches[-1] if matches else VisitEvent.from_url(url, timestamp=0)

    shortlist_size = max(top, config.analysis.shortlist_size)
    results = find_similar_visits(current, events, SimilarityEstimator(), shortlist_size)[:top]

    if not results:
        console.print(f"[dim]No similar visits found for '{url}'[/dim]")
        return

    console.print(f"\n[bold]Visits similar to {current.title or current.domain}[/bold]\n")
    table = Table(show_header=False, box=None, padding=(0, 1), collapse_padding=True)
    table.add_column("Rank", style="dim", width=4)
    table.add_column("Details", style="white")

    for i, result in enumerate(results, 1):
        similarity_pct = int(result.score * 100)
        if similarity_pct >= 70:
            score_style = "green"
        elif similarity_pct >= 40:
            score_style = "yellow"
        else:
            score_style = "dim"
        title = result.event.title or result.event.url
        details = (
            f"[bold]{title}[/bold] ([{score_style}]{similarity_pct}% similar[/{score_style}])\n"
            f"[cyan]{result.event.domain}[/cyan] [dim]{result.event.url}[/dim]"
        )
        table.add_row(f"{i}.", details)

    console.print(table)


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
