"""
Rich console utilities for dual-mode CLI output.

Human-readable Rich output by default, structured JSON for scripts and
agents, and a minimal tab-separated quiet mode. Every output function checks
the global output_mode, so command code never branches on the format itself.

This module provides:
- OutputMode: Output format state (text/json, quiet)
- Context managers: spinner(), create_progress_bar()
- Messages: success(), error(), warning(), info()
- Tables: print_sections_table(), print_outcomes_table(), print_packs_table(),
  print_download_table()
- Panels: print_banner(), print_final_summary()

Examples:
    >>> output_mode.format = "text"
    >>> with spinner("Loading query pack..."):
    ...     catalog = load_query_catalog("2019", source)
    >>> success(f"Loaded {len(catalog)} queries")

    >>> output_mode.format = "json"
    >>> success("Loaded")          # buffered
    >>> output_mode.flush_json()   # printed as one JSON object
"""

from __future__ import annotations

import json
import sys
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

if TYPE_CHECKING:
    from ..engine.models import ExecutionOutcome
    from ..packs.downloader import DownloadResult
    from ..parser.models import SectionSummary


OUTPUT_FORMATS = ("text", "json")


class OutputMode:
    """
    Where command output goes.

    "text" renders Rich output for people, "json" buffers key/value pairs
    and prints them as one document at the end of the command. `quiet`
    reduces text mode to the tab-separated essentials.
    """

    def __init__(self, format_type: str = "text", quiet: bool = False):
        self.configure(format_type, quiet)
        self._json_buffer: dict[str, Any] = {}

    def configure(self, format_type: str, quiet: bool = False) -> None:
        """Apply CLI flags. Raises ValueError for an unknown format."""
        if format_type not in OUTPUT_FORMATS:
            raise ValueError(f"Invalid format: {format_type}. Must be 'text' or 'json'")
        self.format = format_type
        self.quiet = quiet

    def is_human(self) -> bool:
        return self.format == "text"

    def is_agent(self) -> bool:
        return self.format == "json"

    @property
    def rich_enabled(self) -> bool:
        """True when decorative Rich output (spinners, tables, panels) is shown."""
        return self.is_human() and not self.quiet

    def add_json(self, key: str, value: Any) -> None:
        self._json_buffer[key] = value

    def flush_json(self) -> None:
        """Print the buffered document to stdout (agent mode only) and reset it."""
        if not self.is_agent() or not self._json_buffer:
            return
        sys.stdout.write(json.dumps(self._json_buffer, indent=2) + "\n")
        sys.stdout.flush()
        self._json_buffer.clear()


output_mode = OutputMode()

console = Console()
console_err = Console(stderr=True)


@contextmanager
def spinner(message: str):
    """Rich status spinner while the block runs; silent unless rich_enabled."""
    if not output_mode.rich_enabled:
        yield None
        return
    with console.status(f"[bold blue]{message}", spinner="dots") as status:
        yield status


def create_progress_bar() -> Progress | NoOpProgress:
    """
    Progress display for a query batch.

    Columns: spinner, current query name, bar, percentage, elapsed time. The
    bar is transient so the outcomes table replaces it when the batch ends.

    Examples:
        >>> progress = create_progress_bar()
        >>> with progress:
        ...     task = progress.add_task("Starting...", total=len(records))
        ...     progress.update(task, completed=3, description="Wait Statistics")
    """
    if not output_mode.rich_enabled:
        return NoOpProgress()
    return Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )


class NoOpProgress:
    """Progress stand-in for agent and quiet modes."""

    def __enter__(self):
        return self

    def __exit__(self, *args):
        return None

    def add_task(self, _description: str, total: float | None = None) -> int:
        return 0

    def update(self, _task_id: int, **_kwargs: Any) -> None:
        return None

    def advance(self, _task_id: int, _advance: float = 1.0) -> None:
        return None


def success(message: str) -> None:
    if output_mode.is_agent():
        output_mode.add_json("status", "success")
        output_mode.add_json("message", message)
    elif output_mode.rich_enabled:
        console.print(f"[green]✓[/green] {message}")


def error(message: str) -> None:
    """Errors reach stderr even in quiet mode; agent mode records status "error"."""
    if output_mode.is_agent():
        output_mode.add_json("status", "error")
        output_mode.add_json("error", message)
    else:
        console_err.print(f"[red]✗[/red] {message}", style="red")


def warning(message: str) -> None:
    if output_mode.is_agent():
        output_mode.add_json("warning", message)
    elif output_mode.rich_enabled:
        console.print(f"[yellow]⚠[/yellow] {message}", style="yellow")


def info(message: str) -> None:
    if output_mode.rich_enabled:
        console.print(f"[blue]ℹ[/blue] {message}")


def _format_ms(ms: int) -> str:
    if ms >= 1000:
        return f"{ms / 1000:.1f}s"
    return f"{ms}ms"


def print_sections_table(summaries: list[SectionSummary]) -> None:
    """
    Print section summaries (name, query count, estimated duration).

    Human mode: Rich table with a totals row
    Agent mode: Buffered as "sections"
    Quiet mode: One tab-separated line per section
    """
    if output_mode.is_agent():
        output_mode.add_json(
            "sections",
            [
                {
                    "name": s.name,
                    "query_count": s.query_count,
                    "estimated_duration_ms": s.estimated_duration_ms,
                }
                for s in summaries
            ],
        )
        return

    if output_mode.quiet:
        for s in summaries:
            print(f"{s.name}\t{s.query_count}\t{s.estimated_duration_ms}")
        return

    table = Table(title="Query Sections", box=box.ROUNDED)
    table.add_column("Section", style="cyan", no_wrap=True)
    table.add_column("Queries", justify="right")
    table.add_column("Est. Duration", justify="right", style="green")

    for s in summaries:
        table.add_row(s.name, str(s.query_count), _format_ms(s.estimated_duration_ms))

    table.add_section()
    table.add_row(
        "[bold]Total[/bold]",
        str(sum(s.query_count for s in summaries)),
        _format_ms(sum(s.estimated_duration_ms for s in summaries)),
    )

    console.print(table)


def print_outcomes_table(outcomes: list[ExecutionOutcome] | tuple[ExecutionOutcome, ...]) -> None:
    """
    Print per-query execution outcomes.

    Human mode: Rich table with colored status
    Agent mode: Buffered as "outcomes" (rows omitted)
    Quiet mode: Silent
    """
    if output_mode.is_agent():
        output_mode.add_json(
            "outcomes", [o.to_dict(include_rows=False) for o in outcomes]
        )
        return

    if output_mode.quiet:
        return

    table = Table(title="Execution Results", box=box.ROUNDED)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Query", style="cyan")
    table.add_column("Section", style="magenta")
    table.add_column("Rows", justify="right")
    table.add_column("Time", justify="right", style="green")
    table.add_column("Status", justify="center")

    for o in outcomes:
        if o.success:
            status_str = "[green]success[/green]"
        else:
            status_str = f"[red]error[/red] [dim]{o.error_message}[/dim]"
        table.add_row(
            o.query_id, o.name, o.section, str(o.row_count), _format_ms(o.elapsed_ms), status_str
        )

    console.print(table)


def print_packs_table(packs: list[dict]) -> None:
    """
    Print local pack availability.

    Expected dict keys: version_key, filename, present (bool), size (int),
    downloaded_at (str | None).
    """
    if output_mode.is_agent():
        output_mode.add_json("packs", packs)
        return

    if output_mode.quiet:
        for p in packs:
            print(f"{p['version_key']}\t{'present' if p['present'] else 'missing'}\t{p['size']}")
        return

    table = Table(title="Query Packs", box=box.ROUNDED)
    table.add_column("Version", style="cyan", no_wrap=True)
    table.add_column("File", style="dim")
    table.add_column("Local", justify="center")
    table.add_column("Size", justify="right")
    table.add_column("Downloaded", style="green")

    for p in packs:
        present = "[green]✓[/green]" if p["present"] else "[red]✗[/red]"
        size = f"{p['size'] // 1024}KB" if p["present"] else "-"
        table.add_row(
            p["version_key"], p["filename"], present, size, p.get("downloaded_at") or "-"
        )

    console.print(table)


def print_download_table(results: list[DownloadResult]) -> None:
    """Print per-pack download results."""
    if output_mode.is_agent():
        output_mode.add_json(
            "downloads",
            [
                {
                    "version_key": r.version_key,
                    "filename": r.filename,
                    "success": r.success,
                    "size": r.size,
                    "error": r.error_message,
                }
                for r in results
            ],
        )
        return

    if output_mode.quiet:
        return

    table = Table(title="Pack Downloads", box=box.ROUNDED)
    table.add_column("Version", style="cyan", no_wrap=True)
    table.add_column("File", style="dim")
    table.add_column("Size", justify="right")
    table.add_column("Status", justify="center")

    for r in results:
        status_str = "[green]ok[/green]" if r.success else f"[red]{r.error_message}[/red]"
        size = f"{r.size // 1024}KB" if r.success else "-"
        table.add_row(r.version_key, r.filename, size, status_str)

    console.print(table)


def print_banner(version: str) -> None:
    """Startup banner in human mode; silent otherwise."""
    if not output_mode.rich_enabled:
        return

    banner = f"""
[bold cyan]╔{"═" * 39}╗
║   SQL Diagnostic Tool v{version:<14} ║
║   SQL Server diagnostic query runner  ║
╚{"═" * 39}╝[/bold cyan]
"""

    console.print(banner)


def print_final_summary(
    run_id: str,
    output_dir: str,
    version_key: str,
    origin: str,
    successful: int,
    total: int,
    elapsed_ms: int,
) -> None:
    """
    Print final summary with run statistics.

    Human mode: Rich panel, green if all succeeded, yellow if partial, red if none
    Agent mode: Flush all buffered JSON including these final stats
    Quiet mode: Tab-separated values
    """
    if output_mode.is_agent():
        output_mode.add_json("run_id", run_id)
        output_mode.add_json("output_dir", output_dir)
        output_mode.add_json("version_key", version_key)
        output_mode.add_json("origin", origin)
        output_mode.add_json("successful_queries", successful)
        output_mode.add_json("total_queries", total)
        output_mode.add_json("total_elapsed_ms", elapsed_ms)
        output_mode.flush_json()
        return

    if output_mode.quiet:
        print(f"{run_id}\t{output_dir}\t{version_key}\t{successful}\t{total}\t{elapsed_ms}")
        return

    success_rate = (successful / total * 100) if total > 0 else 0.0

    summary_text = f"""
[bold]Run ID:[/bold] {run_id}
[bold]Output Directory:[/bold] {output_dir}
[bold]SQL Server Version:[/bold] {version_key} ({origin})
[bold]Queries:[/bold] {successful}/{total} successful ({success_rate:.1f}%)
[bold]Elapsed:[/bold] {_format_ms(elapsed_ms)}
"""

    if successful == total:
        border_style = "green"
        title = "[bold green]✓ Diagnostics Completed Successfully[/bold green]"
    elif successful > 0:
        border_style = "yellow"
        title = "[bold yellow]⚠ Diagnostics Completed with Failures[/bold yellow]"
    else:
        border_style = "red"
        title = "[bold red]✗ Diagnostics Failed[/bold red]"

    panel = Panel(
        summary_text.strip(),
        title=title,
        border_style=border_style,
        box=box.ROUNDED,
    )

    console.print(panel)
