"""
File writing utilities for diagnostic run artifacts.

This module handles all file I/O for run output: the run directory and the
three JSON artifacts named in storage.layout. Filesystem and serialization
failures are logged and re-raised as ArtifactWriteError so the CLI can map
them to the storage exit code.

Example:
    >>> run_dir = create_run_directory("./reports", "2025-11-02T08-00-00Z")
    >>> write_queries(run_dir, catalog.records)
    >>> write_results(run_dir, result, include_rows=False)
    >>> write_run_meta(run_dir, {"run_id": "...", "successful": 8})
"""

import json
import logging
from collections.abc import Iterable
from pathlib import Path

from ..engine.models import BatchResult
from ..exceptions import ArtifactWriteError
from ..parser.models import QueryRecord
from ..utils.time import utc_timestamp
from .layout import (
    get_queries_filename,
    get_results_filename,
    get_run_directory,
    get_run_meta_filename,
)

logger = logging.getLogger(__name__)


def create_run_directory(output_dir: str, run_id: str) -> str:
    """
    Create run output directory.

    Parent directories are created if needed; an existing directory is
    reused.

    Returns:
        Full path to the run directory

    Raises:
        ArtifactWriteError: If the directory cannot be created
    """
    run_dir = get_run_directory(output_dir, run_id)

    try:
        Path(run_dir).mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error(f"Failed to create directory: {run_dir}", exc_info=True)
        raise ArtifactWriteError(
            f"Cannot create run directory '{run_dir}': {e}. "
            f"Check disk space and permissions."
        ) from e

    logger.info(f"Created run directory: {run_dir}")
    return run_dir


def write_json(filepath: str | Path, data: dict | list) -> None:
    """
    Write data to a UTF-8 JSON file, pretty-printed with a trailing newline.

    Raises:
        ArtifactWriteError: If data is not JSON-serializable or the file
            cannot be written
    """
    try:
        payload = json.dumps(data, indent=2, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        logger.error(f"Cannot serialize data to JSON: {e}", exc_info=True)
        raise ArtifactWriteError(
            f"Cannot write JSON to '{filepath}': Data is not JSON-serializable. {e}"
        ) from e

    try:
        with open(filepath, "w", encoding="utf-8") as f:
            f.write(payload)
            f.write("\n")
    except OSError as e:
        logger.error(f"Failed to write JSON file: {filepath}", exc_info=True)
        raise ArtifactWriteError(
            f"Cannot write JSON file '{filepath}': {e}. "
            f"Check disk space and permissions."
        ) from e

    logger.debug(f"Wrote JSON file: {filepath}")


def write_queries(run_dir: str, records: Iterable[QueryRecord]) -> str:
    """Write the executed query records in execution order. Returns the path."""
    filepath = str(Path(run_dir) / get_queries_filename())
    write_json(filepath, [record.to_dict() for record in records])
    return filepath


def write_results(run_dir: str, result: BatchResult, include_rows: bool = True) -> str:
    """
    Write a BatchResult.

    Args:
        run_dir: Run directory from create_run_directory()
        result: Batch result to serialize
        include_rows: Keep the returned rows; when False every outcome is
            written with an empty row list

    Returns:
        Path of the written file
    """
    filepath = str(Path(run_dir) / get_results_filename())
    write_json(filepath, result.to_dict(include_rows=include_rows))
    return filepath


def write_run_meta(run_dir: str, meta: dict) -> str:
    """
    Write run metadata.

    A `written_at` timestamp is added when the caller did not provide one.
    """
    filepath = str(Path(run_dir) / get_run_meta_filename())
    payload = dict(meta)
    payload.setdefault("written_at", utc_timestamp())
    write_json(filepath, payload)
    return filepath
