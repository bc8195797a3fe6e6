"""
File naming conventions for diagnostic run artifacts.

Output structure:
    reports/
        {run_id}/
            queries.json
            results.json
            run_meta.json

File names are fixed; only the run directory varies, and run IDs come from
utils.time.run_id_from_timestamp() so directories sort chronologically.

Example:
    >>> get_run_directory("./reports", "2025-11-02T08-00-00Z")
    './reports/2025-11-02T08-00-00Z'
"""

import os

QUERIES_FILENAME = "queries.json"
RESULTS_FILENAME = "results.json"
RUN_META_FILENAME = "run_meta.json"


def get_run_directory(output_dir: str, run_id: str) -> str:
    """
    Get path to run output directory.

    Note:
        Does NOT create the directory - use storage.writer.create_run_directory()
        for that.
    """
    return os.path.join(output_dir, run_id)


def get_queries_filename() -> str:
    """Filename for the executed query records."""
    return QUERIES_FILENAME


def get_results_filename() -> str:
    """Filename for the serialized BatchResult."""
    return RESULTS_FILENAME


def get_run_meta_filename() -> str:
    """
    Filename for run metadata JSON.

    Run metadata summarizes the whole run: run_id, version key, pack origin,
    success/failure counts and elapsed time.
    """
    return RUN_META_FILENAME
