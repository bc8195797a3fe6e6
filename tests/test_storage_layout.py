"""
Tests for storage.layout module.

Tests file naming conventions for run artifacts.
"""

import os

from sql_diagnostic_tool.storage.layout import (
    get_queries_filename,
    get_results_filename,
    get_run_directory,
    get_run_meta_filename,
)


class TestGetRunDirectory:
    """Tests for get_run_directory function."""

    def test_joins_output_dir_and_run_id(self):
        result = get_run_directory("./reports", "2025-11-02T08-00-00Z")
        assert result == os.path.join("./reports", "2025-11-02T08-00-00Z")

    def test_does_not_create_directory(self, tmp_path):
        result = get_run_directory(str(tmp_path), "run")
        assert not os.path.exists(result)


class TestFilenames:
    """Tests for fixed artifact filenames."""

    def test_artifact_names(self):
        assert get_queries_filename() == "queries.json"
        assert get_results_filename() == "results.json"
        assert get_run_meta_filename() == "run_meta.json"

    def test_names_are_distinct(self):
        names = {get_queries_filename(), get_results_filename(), get_run_meta_filename()}
        assert len(names) == 3
