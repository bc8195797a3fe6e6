"""
Tests for CLI module.

This module tests the Typer CLI application end to end with real
configuration files in tmp_path:

Commands:
    - packs list / packs download
    - sections
    - demo: full pipeline with the dry-run executor, artifacts and exit codes
    - validate
    - main callback: --version

Exit Codes:
    - 0: Success
    - 1: Configuration error
    - 2: Storage error
    - 3: Partial failure (some queries failed)
    - 4: Complete failure (no query succeeded)
"""

import json
import logging
from pathlib import Path

import pytest
import yaml
from typer.testing import CliRunner

from sql_diagnostic_tool import cli
from sql_diagnostic_tool.cli import (
    EXIT_COMPLETE_FAILURE,
    EXIT_CONFIG_ERROR,
    EXIT_PARTIAL_FAILURE,
    EXIT_STORAGE_ERROR,
    EXIT_SUCCESS,
    app,
)
from sql_diagnostic_tool.exceptions import QueryExecutionError
from sql_diagnostic_tool.packs.downloader import DownloadResult
from sql_diagnostic_tool.packs.source import pack_filename

PACK_TEXT = """-- SQL and OS Version information for current instance  (Query 1) (Version Info)
SELECT @@SERVERNAME AS [Server Name], @@VERSION AS [SQL Server and OS Version Info];
------
-- Isolate top waits for server instance since last restart  (Query 2) (Top Waits)
SELECT TOP(10) wait_type, wait_time_ms FROM sys.dm_os_wait_stats ORDER BY wait_time_ms DESC;
------
"""

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def reset_cli_state():
    """Reset global output_mode and root logging after each test."""
    from sql_diagnostic_tool.utils.console import output_mode

    original_format = output_mode.format
    original_quiet = output_mode.quiet
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    output_mode._json_buffer.clear()

    yield

    output_mode.format = original_format
    output_mode.quiet = original_quiet
    output_mode._json_buffer.clear()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def config_dict(tmp_path):
    return {
        "packs": {"data_dir": str(tmp_path / "data"), "remote_enabled": False},
        "queries": {"max_retries": 0, "retry_delay_ms": 0},
        "output": {"directory": str(tmp_path / "reports")},
    }


@pytest.fixture
def write_config(tmp_path, config_dict):
    def _write(overrides=None) -> Path:
        data = {key: dict(value) for key, value in config_dict.items()}
        for section, values in (overrides or {}).items():
            data.setdefault(section, {}).update(values)
        path = tmp_path / "diagnostic.config.yaml"
        path.write_text(yaml.safe_dump(data), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def config_file(write_config):
    return write_config()


@pytest.fixture
def pack_dir(tmp_path):
    """Pack directory holding a small 2019 pack."""
    directory = tmp_path / "data" / "query-packs"
    directory.mkdir(parents=True)
    (directory / pack_filename("2019")).write_text(PACK_TEXT, encoding="utf-8")
    return directory


def json_output(result) -> dict:
    """Parse the pretty-printed JSON document from command output."""
    text = result.stdout
    start = text.index("{\n")
    data, _ = json.JSONDecoder().raw_decode(text[start:])
    return data


def run_dirs(tmp_path) -> list[Path]:
    reports = tmp_path / "reports"
    return sorted(p for p in reports.iterdir() if p.is_dir()) if reports.exists() else []


class WaitStatsFailingExecutor:
    """Fails every statement touching wait stats."""

    def __init__(self, failures=frozenset()):
        self.failures = failures

    async def execute(self, query_text, timeout_ms):
        if "dm_os_wait_stats" in query_text:
            raise QueryExecutionError("Invalid object name 'sys.dm_os_wait_stats'")
        return [{"value": 1}]


# ============================================================================
# validate
# ============================================================================


class TestValidateCommand:
    """Test validate command."""

    def test_valid_config(self, cli_runner, config_file):
        result = cli_runner.invoke(app, ["validate", "--config", str(config_file)])
        assert result.exit_code == EXIT_SUCCESS

    def test_valid_config_json(self, cli_runner, config_file):
        result = cli_runner.invoke(
            app, ["validate", "--config", str(config_file), "--format", "json"]
        )

        assert result.exit_code == EXIT_SUCCESS
        data = json_output(result)
        assert data["valid"] is True
        assert data["config"]["queries"]["max_retries"] == 0

    def test_invalid_config(self, cli_runner, write_config):
        path = write_config({"queries": {"timeout_ms": 10}})

        result = cli_runner.invoke(app, ["validate", "--config", str(path), "--format", "json"])

        assert result.exit_code == EXIT_CONFIG_ERROR
        data = json_output(result)
        assert data["valid"] is False
        assert "timeout_ms" in data["error"]

    def test_missing_config_rejected_by_typer(self, cli_runner, tmp_path):
        result = cli_runner.invoke(app, ["validate", "--config", str(tmp_path / "none.yaml")])
        assert result.exit_code != EXIT_SUCCESS


# ============================================================================
# sections
# ============================================================================


class TestSectionsCommand:
    """Test sections command."""

    def test_sections_from_local_pack(self, cli_runner, config_file, pack_dir):
        result = cli_runner.invoke(
            app,
            ["sections", "--version", "15.0.2000.5", "--config", str(config_file), "--format", "json"],
        )

        assert result.exit_code == EXIT_SUCCESS
        data = json_output(result)
        assert data["version_key"] == "2019"
        assert data["pack_key"] == "2019"
        assert data["origin"] == "local"
        assert data["total_queries"] == 2
        assert [s["name"] for s in data["sections"]] == ["Instance Information", "Performance"]

    def test_sections_fall_back_to_samples(self, cli_runner, config_file):
        result = cli_runner.invoke(
            app,
            ["sections", "--version", "2022", "--config", str(config_file), "--offline", "--format", "json"],
        )

        assert result.exit_code == EXIT_SUCCESS
        data = json_output(result)
        assert data["origin"] == "sample"
        assert data["total_queries"] == 8
        assert "warning" in data

    def test_sections_human_mode(self, cli_runner, config_file, pack_dir):
        result = cli_runner.invoke(
            app, ["sections", "--version", "2019", "--config", str(config_file)]
        )

        assert result.exit_code == EXIT_SUCCESS
        assert "Performance" in result.stdout

    def test_invalid_format(self, cli_runner, config_file):
        result = cli_runner.invoke(
            app, ["sections", "--version", "2019", "--config", str(config_file), "--format", "xml"]
        )
        assert result.exit_code == EXIT_CONFIG_ERROR


# ============================================================================
# demo
# ============================================================================


class TestDemoCommand:
    """Test demo command: pipeline, artifacts and exit codes."""

    def test_all_succeed(self, cli_runner, config_file, pack_dir, tmp_path):
        result = cli_runner.invoke(
            app, ["demo", "--version", "2019", "--config", str(config_file), "--format", "json"]
        )

        assert result.exit_code == EXIT_SUCCESS
        data = json_output(result)
        assert data["successful_queries"] == 2
        assert data["total_queries"] == 2
        assert data["origin"] == "local"

        [run_dir] = run_dirs(tmp_path)
        assert {p.name for p in run_dir.iterdir()} == {
            "queries.json",
            "results.json",
            "run_meta.json",
        }
        meta = json.loads((run_dir / "run_meta.json").read_text(encoding="utf-8"))
        assert meta["run_id"] == run_dir.name
        assert meta["successful"] == 2
        assert meta["aborted"] is False
        results = json.loads((run_dir / "results.json").read_text(encoding="utf-8"))
        assert len(results["outcomes"]) == 2

    def test_partial_failure(self, cli_runner, config_file, pack_dir, tmp_path):
        result = cli_runner.invoke(
            app,
            [
                "demo",
                "--config",
                str(config_file),
                "--format",
                "json",
                "--fail-query",
                "top waits",
            ],
        )

        assert result.exit_code == EXIT_PARTIAL_FAILURE
        [run_dir] = run_dirs(tmp_path)
        results = json.loads((run_dir / "results.json").read_text(encoding="utf-8"))
        assert results["successful"] == 1
        assert results["failed"] == 1
        assert results["outcomes"][1]["name"] == "Top Waits"
        assert "simulated execution failure" in results["outcomes"][1]["error_message"]

    def test_raw_rows_excluded(self, cli_runner, write_config, pack_dir, tmp_path, monkeypatch):
        monkeypatch.setattr(cli, "DryRunExecutor", WaitStatsFailingExecutor)
        path = write_config({"output": {"include_raw_data": False}})

        cli_runner.invoke(app, ["demo", "--config", str(path), "--format", "json"])

        [run_dir] = run_dirs(tmp_path)
        results = json.loads((run_dir / "results.json").read_text(encoding="utf-8"))
        assert results["outcomes"][0]["row_count"] == 1
        assert results["outcomes"][0]["rows"] == []

    def test_abort_on_first_failure(self, cli_runner, write_config, pack_dir, tmp_path):
        path = write_config({"queries": {"continue_on_error": False}})

        result = cli_runner.invoke(
            app,
            ["demo", "--config", str(path), "--format", "json", "--fail-query", "query-1"],
        )

        assert result.exit_code == EXIT_COMPLETE_FAILURE
        assert "Run aborted at Version Info" in json_output(result)["error"]
        [run_dir] = run_dirs(tmp_path)
        assert not (run_dir / "results.json").exists()
        meta = json.loads((run_dir / "run_meta.json").read_text(encoding="utf-8"))
        assert meta["aborted"] is True
        assert meta["successful"] == 0

    def test_fail_query_without_match_warns(self, cli_runner, config_file, pack_dir):
        result = cli_runner.invoke(
            app,
            ["demo", "--config", str(config_file), "--format", "json", "--fail-query", "query-9"],
        )

        assert result.exit_code == EXIT_SUCCESS
        assert json_output(result)["warning"] == "--fail-query matched no query: query-9"

    def test_storage_error(self, cli_runner, write_config, pack_dir, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        path = write_config({"output": {"directory": str(blocker / "reports")}})

        result = cli_runner.invoke(app, ["demo", "--config", str(path), "--format", "json"])

        assert result.exit_code == EXIT_STORAGE_ERROR

    def test_quiet_mode_prints_tab_separated_summary(self, cli_runner, config_file, pack_dir):
        result = cli_runner.invoke(app, ["demo", "--config", str(config_file), "--quiet"])

        assert result.exit_code == EXIT_SUCCESS
        summary = [line for line in result.stdout.splitlines() if "\t" in line][-1]
        fields = summary.split("\t")
        assert fields[2:5] == ["2019", "2", "2"]

    def test_missing_config_file(self, cli_runner, tmp_path):
        result = cli_runner.invoke(app, ["demo", "--config", str(tmp_path / "missing.yaml")])
        assert result.exit_code != EXIT_SUCCESS


# ============================================================================
# packs
# ============================================================================


class TestPacksCommands:
    """Test packs list and packs download."""

    def test_list(self, cli_runner, config_file, pack_dir):
        result = cli_runner.invoke(
            app, ["packs", "list", "--config", str(config_file), "--format", "json"]
        )

        assert result.exit_code == EXIT_SUCCESS
        packs = {p["version_key"]: p for p in json_output(result)["packs"]}
        assert packs["2019"]["present"] is True
        assert packs["2019"]["size"] == len(PACK_TEXT.encode("utf-8"))
        assert packs["2022"]["present"] is False

    def test_download_unknown_key(self, cli_runner, config_file):
        result = cli_runner.invoke(
            app, ["packs", "download", "--version", "2001", "--config", str(config_file)]
        )
        assert result.exit_code == EXIT_CONFIG_ERROR

    @pytest.mark.parametrize(
        "outcomes,expected",
        [
            ([True, True], EXIT_SUCCESS),
            ([True, False], EXIT_PARTIAL_FAILURE),
            ([False, False], EXIT_COMPLETE_FAILURE),
        ],
    )
    def test_download_exit_codes(self, cli_runner, config_file, monkeypatch, outcomes, expected):
        def fake_download(pack_dir, remote, keys):
            return [
                DownloadResult(
                    version_key=key,
                    filename=pack_filename(key),
                    success=ok,
                    size=10 if ok else 0,
                    error_message=None if ok else "HTTP 503",
                )
                for key, ok in zip(keys, outcomes, strict=True)
            ]

        monkeypatch.setattr(cli, "download_packs", fake_download)

        result = cli_runner.invoke(
            app,
            [
                "packs",
                "download",
                "--version",
                "2019",
                "--version",
                "2022",
                "--config",
                str(config_file),
                "--format",
                "json",
            ],
        )

        assert result.exit_code == expected
        assert len(json_output(result)["downloads"]) == 2

    def test_download_unwritable_directory(self, cli_runner, config_file, monkeypatch):
        def failing_download(pack_dir, remote, keys):
            raise PermissionError("read-only file system")

        monkeypatch.setattr(cli, "download_packs", failing_download)

        result = cli_runner.invoke(
            app, ["packs", "download", "--version", "2019", "--config", str(config_file)]
        )

        assert result.exit_code == EXIT_STORAGE_ERROR


# ============================================================================
# main callback
# ============================================================================


class TestMainCallback:
    """Test --version and bare invocation."""

    def test_version_flag(self, cli_runner):
        result = cli_runner.invoke(app, ["--version"])

        assert result.exit_code == EXIT_SUCCESS
        assert "sql-diagnostic-tool" in result.stdout

    def test_no_command_shows_hint(self, cli_runner):
        result = cli_runner.invoke(app, [])

        assert result.exit_code == EXIT_SUCCESS
        assert "--help" in result.stdout
