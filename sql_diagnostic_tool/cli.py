"""
CLI entrypoint for SQL Diagnostic Tool.

Provides a dual-mode command-line interface with:
- Human-friendly output: Rich spinners, tables, progress bars, colored text
- Agent-friendly output: Structured JSON for automation
- Quiet mode: Tab-separated minimal output for shell scripts

Commands:
    packs list: Show which query packs are available locally
    packs download: Download query packs and write the pack manifest
    sections: Show the section breakdown of the catalog for a version
    demo: Run the catalog against the dry-run executor and write artifacts
    validate: Validate configuration without running anything

Exit codes:
    0: Success - all queries (or downloads) successful
    1: Configuration error (invalid YAML, failed validation)
    2: Storage error (cannot write pack files or run artifacts)
    3: Partial failure (some queries failed, but run completed)
    4: Complete failure (no queries succeeded, or the batch was aborted
       before anything succeeded)

Examples:
    # Download every pack once, then work offline
    sql-diagnostic-tool packs download

    # What would run against a SQL Server 2019 instance?
    sql-diagnostic-tool sections --version 15.0.2000.5

    # Exercise the whole pipeline without a database
    sql-diagnostic-tool demo --version 2019 --format json
"""

import asyncio
import logging
from importlib.metadata import PackageNotFoundError
from pathlib import Path

import typer
from rich.traceback import install as install_rich_traceback

from sql_diagnostic_tool.config.loader import load_config
from sql_diagnostic_tool.config.schema import DiagnosticConfig
from sql_diagnostic_tool.engine.executor import DryRunExecutor
from sql_diagnostic_tool.engine.models import ProgressEvent
from sql_diagnostic_tool.engine.runner import run_batch
from sql_diagnostic_tool.exceptions import (
    BatchAbortedError,
    ConfigFileNotFoundError,
    ConfigValidationError,
    StorageError,
)
from sql_diagnostic_tool.packs.downloader import download_packs
from sql_diagnostic_tool.packs.manifest import read_manifest
from sql_diagnostic_tool.packs.source import (
    PACK_URLS,
    FallbackPackSource,
    LocalPackSource,
    RemotePackSource,
    pack_filename,
)
from sql_diagnostic_tool.packs.versions import KNOWN_KEYS, resolve
from sql_diagnostic_tool.parser.catalog import QueryCatalog, load_query_catalog
from sql_diagnostic_tool.storage.writer import (
    create_run_directory,
    write_queries,
    write_results,
    write_run_meta,
)
from sql_diagnostic_tool.utils.console import (
    create_progress_bar,
    error,
    info,
    output_mode,
    print_banner,
    print_download_table,
    print_final_summary,
    print_outcomes_table,
    print_packs_table,
    print_sections_table,
    spinner,
    success,
    warning,
)
from sql_diagnostic_tool.utils.logging import log_with_context, setup_logging
from sql_diagnostic_tool.utils.time import run_id_from_timestamp, utc_timestamp

# Install Rich tracebacks for better error messages
install_rich_traceback(show_locals=False)

logger = logging.getLogger(__name__)

# Exit codes
EXIT_SUCCESS = 0  # All queries successful
EXIT_CONFIG_ERROR = 1  # Config validation failed
EXIT_STORAGE_ERROR = 2  # Pack files or artifacts could not be written
EXIT_PARTIAL_FAILURE = 3  # Some queries failed
EXIT_COMPLETE_FAILURE = 4  # All queries failed

# Create Typer app
app = typer.Typer(
    name="sql-diagnostic-tool",
    help="Run SQL Server diagnostic query packs with retries and progress reporting",
    add_completion=False,
)

packs_app = typer.Typer(help="Manage local query packs")
app.add_typer(packs_app, name="packs")


CONFIG_OPTION = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to YAML configuration file (defaults are used when omitted)",
    exists=True,
    file_okay=True,
    dir_okay=False,
)

FORMAT_OPTION = typer.Option(
    "text",
    "--format",
    "-f",
    help="Output format: 'text' (human-friendly) or 'json' (machine-readable)",
)


def _prepare(config_path: Path | None, format: str, quiet: bool, verbose: bool) -> DiagnosticConfig:
    """
    Apply output flags, configure logging and load configuration.

    Raises:
        typer.Exit: With EXIT_CONFIG_ERROR when the configuration is unusable
    """
    try:
        output_mode.configure(format, quiet)
    except ValueError as e:
        error(str(e))
        raise typer.Exit(EXIT_CONFIG_ERROR)

    # Suppress JSON logs in human mode (unless verbose=True)
    quiet_logs = output_mode.is_human()
    setup_logging(verbose=verbose, quiet_logs=quiet_logs)

    try:
        config = load_config(config_path)
    except ConfigFileNotFoundError as e:
        error(f"Configuration file not found: {e}")
        output_mode.flush_json()
        raise typer.Exit(EXIT_CONFIG_ERROR)
    except ConfigValidationError as e:
        error(f"Configuration validation failed: {e}")
        output_mode.flush_json()
        raise typer.Exit(EXIT_CONFIG_ERROR)

    setup_logging(verbose=verbose, quiet_logs=quiet_logs, level_name=config.logging.level)
    return config


def _remote_source(config: DiagnosticConfig) -> RemotePackSource:
    return RemotePackSource(
        urls={**PACK_URLS, **config.packs.urls},
        timeout=config.packs.remote_timeout_seconds,
        user_agent=config.packs.user_agent,
    )


def build_pack_source(config: DiagnosticConfig, offline: bool = False) -> FallbackPackSource:
    """Fallback chain for the configured pack directory; remote only when enabled."""
    local = LocalPackSource(config.packs.pack_dir)
    remote = None
    if config.packs.remote_enabled and not offline:
        remote = _remote_source(config)
    return FallbackPackSource(local, remote)


def _load_catalog(version: str, config: DiagnosticConfig, offline: bool) -> QueryCatalog:
    source = build_pack_source(config, offline=offline)
    with spinner(f"Loading query pack for SQL Server {resolve(version)}..."):
        catalog = load_query_catalog(version, source)

    if catalog.used_sample:
        warning(
            f"No query pack available for SQL Server {catalog.version_key}; "
            f"using {len(catalog)} built-in sample queries"
        )
    elif catalog.pack_key != catalog.version_key:
        warning(
            f"Using closest available pack {catalog.pack_key} "
            f"for SQL Server {catalog.version_key}"
        )
        success(f"Loaded {len(catalog)} queries ({catalog.origin})")
    else:
        success(f"Loaded {len(catalog)} queries from {catalog.origin} pack {catalog.pack_key}")
    return catalog


def _simulated_failures(catalog: QueryCatalog, selectors: list[str]) -> frozenset[str]:
    """Query texts of the records named by --fail-query (id or name, case-insensitive)."""
    wanted = {selector.strip().lower() for selector in selectors}
    matched: set[str] = set()
    failures = set()
    for record in catalog.records:
        for key in (record.id.lower(), record.name.lower()):
            if key in wanted:
                matched.add(key)
                failures.add(record.query_text)

    unknown = sorted(wanted - matched)
    if unknown:
        warning(f"--fail-query matched no query: {', '.join(unknown)}")
    return frozenset(failures)


@packs_app.command("list")
def packs_list(
    config: Path = CONFIG_OPTION,
    format: str = FORMAT_OPTION,
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Minimal output"),
):
    """
    Show every known pack and whether it is present locally.

    Examples:
      sql-diagnostic-tool packs list
      sql-diagnostic-tool packs list --format json
    """
    diagnostic_config = _prepare(config, format, quiet, verbose=False)
    pack_dir = diagnostic_config.packs.pack_dir

    manifest = read_manifest(pack_dir)
    entries = manifest.packs if manifest is not None else {}

    rows = []
    for key in KNOWN_KEYS:
        path = pack_dir / pack_filename(key)
        present = path.is_file()
        entry = entries.get(key)
        rows.append(
            {
                "version_key": key,
                "filename": path.name,
                "present": present,
                "size": path.stat().st_size if present else 0,
                "downloaded_at": entry.downloaded_at if entry is not None else None,
            }
        )

    present_count = sum(1 for row in rows if row["present"])
    info(f"Pack directory: {pack_dir}")
    print_packs_table(rows)
    info(f"{present_count}/{len(rows)} packs available locally")
    output_mode.flush_json()
    raise typer.Exit(EXIT_SUCCESS)


@packs_app.command("download")
def packs_download(
    version: list[str] = typer.Option(
        None,
        "--version",
        "-v",
        help="Pack key to download (repeatable); all known packs when omitted",
    ),
    config: Path = CONFIG_OPTION,
    format: str = FORMAT_OPTION,
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Minimal output"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
):
    """
    Download query packs into the pack directory and write manifest.json.

    Exit codes:
      0: Every requested pack downloaded
      1: Unknown pack key
      2: Pack directory not writable
      3: Some downloads failed
      4: Every download failed

    Examples:
      sql-diagnostic-tool packs download
      sql-diagnostic-tool packs download --version 2019 --version 2022
    """
    diagnostic_config = _prepare(config, format, quiet, verbose)

    keys = list(version) if version else list(KNOWN_KEYS)
    unknown = [key for key in keys if key not in KNOWN_KEYS]
    if unknown:
        error(f"Unknown pack key(s): {', '.join(unknown)}. Known: {', '.join(KNOWN_KEYS)}")
        output_mode.flush_json()
        raise typer.Exit(EXIT_CONFIG_ERROR)

    pack_dir = diagnostic_config.packs.pack_dir
    info(f"Downloading {len(keys)} pack(s) into {pack_dir}")

    try:
        with spinner("Downloading query packs..."):
            results = download_packs(pack_dir, _remote_source(diagnostic_config), keys)
    except OSError as e:
        error(f"Cannot write to pack directory {pack_dir}: {e}")
        output_mode.flush_json()
        raise typer.Exit(EXIT_STORAGE_ERROR)

    print_download_table(results)

    succeeded = sum(1 for r in results if r.success)
    if succeeded == len(results):
        success(f"Downloaded {succeeded} pack(s)")
        output_mode.flush_json()
        raise typer.Exit(EXIT_SUCCESS)

    if succeeded == 0:
        error("No packs could be downloaded")
        output_mode.flush_json()
        raise typer.Exit(EXIT_COMPLETE_FAILURE)

    warning(f"Downloaded {succeeded}/{len(results)} pack(s)")
    output_mode.flush_json()
    raise typer.Exit(EXIT_PARTIAL_FAILURE)


@app.command()
def sections(
    version: str = typer.Option(
        ...,
        "--version",
        "-v",
        help="SQL Server version: release year, major version or product version",
    ),
    config: Path = CONFIG_OPTION,
    format: str = FORMAT_OPTION,
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Minimal output"),
    offline: bool = typer.Option(False, "--offline", help="Never download packs"),
):
    """
    Show how the queries for a version are grouped into sections.

    Examples:
      sql-diagnostic-tool sections --version 2019
      sql-diagnostic-tool sections --version 16.0.1000.6 --format json
    """
    diagnostic_config = _prepare(config, format, quiet, verbose=False)
    catalog = _load_catalog(version, diagnostic_config, offline)

    if output_mode.is_agent():
        output_mode.add_json("version_key", catalog.version_key)
        output_mode.add_json("pack_key", catalog.pack_key)
        output_mode.add_json("origin", catalog.origin)
        output_mode.add_json("total_queries", len(catalog))

    print_sections_table(catalog.section_summaries)
    output_mode.flush_json()
    raise typer.Exit(EXIT_SUCCESS)


@app.command()
def demo(
    version: str = typer.Option(
        "2019",
        "--version",
        "-v",
        help="SQL Server version to load the query catalog for",
    ),
    config: Path = CONFIG_OPTION,
    format: str = FORMAT_OPTION,
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Minimal output"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
    offline: bool = typer.Option(False, "--offline", help="Never download packs"),
    fail_query: list[str] | None = typer.Option(
        None,
        "--fail-query",
        help="Make the query with this id or name fail (repeatable)",
    ),
):
    """
    Run the full pipeline against a dry-run executor (no database needed).

    Loads the catalog, executes every query through the execution engine with
    the configured timeout and retry policy, and writes queries.json,
    results.json and run_meta.json to a new run directory.

    Exit codes:
      0: All queries succeeded
      1: Configuration error
      2: Artifacts could not be written
      3: Partial failure
      4: Complete failure

    Examples:
      sql-diagnostic-tool demo
      sql-diagnostic-tool demo --version 2022 --offline --format json
      sql-diagnostic-tool demo --fail-query query-3 --fail-query "Top Waits"
    """
    diagnostic_config = _prepare(config, format, quiet, verbose)
    print_banner(_read_version())

    catalog = _load_catalog(version, diagnostic_config, offline)
    options = diagnostic_config.queries.to_execution_options()
    run_id = run_id_from_timestamp()
    started_at = utc_timestamp()

    executor = DryRunExecutor(failures=_simulated_failures(catalog, fail_query or []))
    info(f"Executing {len(catalog)} queries (dry run)")

    progress = create_progress_bar()
    aborted: BatchAbortedError | None = None
    result = None

    with progress:
        task = progress.add_task("Starting...", total=len(catalog))

        def on_progress(event: ProgressEvent) -> None:
            progress.update(task, completed=event.completed, description=event.current_query)

        try:
            result = asyncio.run(
                run_batch(catalog.records, executor, options, on_progress)
            )
        except BatchAbortedError as e:
            aborted = e

    if aborted is not None:
        outcomes = aborted.outcomes
        error(f"Run aborted at {aborted}")
    else:
        outcomes = result.outcomes

    successful = sum(1 for o in outcomes if o.success)
    failed = len(outcomes) - successful
    elapsed_ms = result.total_elapsed_ms if result is not None else 0
    log_with_context(
        logger,
        logging.INFO,
        "Diagnostic run finished",
        context={"successful": successful, "failed": failed, "aborted": aborted is not None},
        run_id=run_id,
    )

    try:
        run_dir = create_run_directory(diagnostic_config.output.directory, run_id)
        write_queries(run_dir, catalog.records)
        if result is not None:
            write_results(run_dir, result, include_rows=diagnostic_config.output.include_raw_data)
        write_run_meta(
            run_dir,
            {
                "run_id": run_id,
                "started_at": started_at,
                "version_key": catalog.version_key,
                "pack_key": catalog.pack_key,
                "origin": catalog.origin,
                "used_sample": catalog.used_sample,
                "total_queries": len(catalog),
                "successful": successful,
                "failed": failed,
                "aborted": aborted is not None,
                "total_elapsed_ms": elapsed_ms,
            },
        )
    except StorageError as e:
        error(f"Failed to write run artifacts: {e}")
        output_mode.flush_json()
        raise typer.Exit(EXIT_STORAGE_ERROR)

    print_outcomes_table(outcomes)
    print_final_summary(
        run_id=run_id,
        output_dir=run_dir,
        version_key=catalog.version_key,
        origin=catalog.origin,
        successful=successful,
        total=len(catalog),
        elapsed_ms=elapsed_ms,
    )

    if successful == len(catalog):
        raise typer.Exit(EXIT_SUCCESS)
    if successful == 0:
        raise typer.Exit(EXIT_COMPLETE_FAILURE)
    raise typer.Exit(EXIT_PARTIAL_FAILURE)


@app.command()
def validate(
    config: Path = typer.Option(
        ...,
        "--config",
        "-c",
        help="Path to YAML configuration file",
        exists=True,
        file_okay=True,
        dir_okay=False,
    ),
    format: str = FORMAT_OPTION,
):
    """
    Validate configuration file without loading packs or running queries.

    Exit codes:
      0: Configuration is valid
      1: Configuration is invalid

    Examples:
      sql-diagnostic-tool validate --config diagnostic.config.yaml
      sql-diagnostic-tool validate --config diagnostic.config.yaml --format json
    """
    try:
        output_mode.configure(format)
    except ValueError as e:
        error(str(e))
        raise typer.Exit(EXIT_CONFIG_ERROR)

    try:
        diagnostic_config = load_config(config)
    except (ConfigFileNotFoundError, ConfigValidationError) as e:
        error(f"Validation failed: {e}")
        if output_mode.is_agent():
            output_mode.add_json("valid", False)
        output_mode.flush_json()
        raise typer.Exit(EXIT_CONFIG_ERROR)

    success("Configuration is valid")
    info(f"Pack directory: {diagnostic_config.packs.pack_dir}")
    info(f"Remote downloads: {'enabled' if diagnostic_config.packs.remote_enabled else 'disabled'}")
    info(
        f"Queries: timeout {diagnostic_config.queries.timeout_ms}ms, "
        f"{diagnostic_config.queries.max_retries} retries, "
        f"continue_on_error={diagnostic_config.queries.continue_on_error}"
    )
    info(f"Output directory: {diagnostic_config.output.directory}")

    if output_mode.is_agent():
        output_mode.add_json("valid", True)
        output_mode.add_json("config", diagnostic_config.model_dump(mode="json"))
    output_mode.flush_json()
    raise typer.Exit(EXIT_SUCCESS)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
    ),
):
    """
    SQL Diagnostic Tool - run SQL Server diagnostic query packs.

    Exit codes:
      0: Success
      1: Configuration error
      2: Storage error
      3: Partial failure (some queries failed)
      4: Complete failure (all queries failed)

    Use 'sql-diagnostic-tool COMMAND --help' for detailed command documentation.
    """
    if version:
        from rich.console import Console

        console = Console()
        console.print(f"[bold cyan]sql-diagnostic-tool[/bold cyan] version {_read_version()}")
        raise typer.Exit(EXIT_SUCCESS)

    if ctx.invoked_subcommand is None:
        from rich.console import Console

        console = Console()
        console.print("[yellow]Use --help to see available commands[/yellow]")
        console.print()
        console.print("Commands:")
        console.print("  packs     List and download query packs")
        console.print("  sections  Show section breakdown for a SQL Server version")
        console.print("  demo      Run the pipeline with a dry-run executor")
        console.print("  validate  Validate configuration without running")


def _read_version() -> str:
    """Read version from package metadata (pyproject.toml)."""
    from importlib.metadata import version

    try:
        return version("sql-diagnostic-tool")
    except PackageNotFoundError:
        return "0.1.0"


if __name__ == "__main__":
    app()
