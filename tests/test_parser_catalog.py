"""
Tests for parser.catalog and parser.samples modules.

Tests cover:
- Version resolution before loading
- Pack parsing through the fallback chain
- Sample-set fallback for missing and empty packs
- Built-in sample query invariants
"""

import logging

from sql_diagnostic_tool.packs.source import FallbackPackSource, LocalPackSource, pack_filename
from sql_diagnostic_tool.parser.catalog import load_query_catalog, sample_catalog
from sql_diagnostic_tool.parser.samples import SAMPLE_QUERIES, sample_queries

PACK_TEXT = """-- SQL and OS Version information for current instance  (Query 1) (Version Info)
SELECT @@SERVERNAME AS [Server Name], @@VERSION AS [SQL Server and OS Version Info];
------
-- Isolate top waits for server instance since last restart  (Query 2) (Top Waits)
SELECT TOP(10) wait_type, wait_time_ms FROM sys.dm_os_wait_stats ORDER BY wait_time_ms DESC;
------
"""


def local_chain(tmp_path, packs=None):
    for key, text in (packs or {}).items():
        (tmp_path / pack_filename(key)).write_text(text, encoding="utf-8")
    return FallbackPackSource(LocalPackSource(tmp_path))


class TestLoadQueryCatalog:
    """Test suite for load_query_catalog()."""

    def test_parses_local_pack(self, tmp_path):
        catalog = load_query_catalog("2019", local_chain(tmp_path, {"2019": PACK_TEXT}))

        assert catalog.version_key == "2019"
        assert catalog.pack_key == "2019"
        assert catalog.origin == "local"
        assert catalog.used_sample is False
        assert len(catalog) == 2
        assert list(catalog.sections) == ["Instance Information", "Performance"]

    def test_resolves_product_version(self, tmp_path):
        catalog = load_query_catalog("15.0.2000.5", local_chain(tmp_path, {"2019": PACK_TEXT}))
        assert catalog.version_key == "2019"
        assert catalog.pack_key == "2019"

    def test_uses_closest_older_pack(self, tmp_path):
        catalog = load_query_catalog(2017, local_chain(tmp_path, {"2016": PACK_TEXT}))

        assert catalog.version_key == "2017"
        assert catalog.pack_key == "2016"
        assert catalog.used_sample is False

    def test_missing_pack_falls_back_to_samples(self, tmp_path, caplog):
        with caplog.at_level(logging.WARNING):
            catalog = load_query_catalog("2019", local_chain(tmp_path))

        assert catalog.used_sample is True
        assert catalog.origin == "sample"
        assert catalog.pack_key is None
        assert catalog.records == SAMPLE_QUERIES
        assert "sample queries" in caplog.text

    def test_empty_pack_falls_back_to_samples(self, tmp_path):
        chain = local_chain(tmp_path, {"2019": "-- nothing useful here\n------\n"})

        catalog = load_query_catalog("2019", chain)

        assert catalog.used_sample is True
        assert len(catalog) == len(SAMPLE_QUERIES)

    def test_section_summaries_and_total_duration(self, tmp_path):
        catalog = load_query_catalog("2019", local_chain(tmp_path, {"2019": PACK_TEXT}))

        summaries = catalog.section_summaries

        assert [(s.name, s.query_count) for s in summaries] == [
            ("Instance Information", 1),
            ("Performance", 1),
        ]
        assert catalog.estimated_duration_ms == 2500


class TestSampleQueries:
    """Test suite for the built-in sample set."""

    def test_eight_samples_numbered_contiguously(self):
        assert [r.sequence_number for r in SAMPLE_QUERIES] == list(range(1, 9))

    def test_ids_unique(self):
        ids = [r.id for r in SAMPLE_QUERIES]
        assert len(set(ids)) == len(ids)
        assert ids[0] == "version-info"

    def test_every_sample_is_valid(self):
        for record in SAMPLE_QUERIES:
            assert record.section
            assert len(record.query_text) >= 10
            assert record.estimated_duration_ms > 0

    def test_fresh_tuple_equal(self):
        assert sample_queries() == SAMPLE_QUERIES

    def test_sample_catalog(self):
        catalog = sample_catalog("2022")
        assert catalog.version_key == "2022"
        assert catalog.used_sample is True
        assert "Instance Information" in catalog.sections
