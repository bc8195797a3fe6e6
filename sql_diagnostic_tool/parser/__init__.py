"""
Query pack parsing: block segmentation, classification and the query catalog.

Public API:
    - parse_pack: Raw pack text -> ordered QueryRecord tuple
    - classify_section / estimate_duration: Ordered rule tables
    - build_section_index / summarize_sections: Section grouping
    - load_query_catalog: Resolve, load, parse, fall back to samples
    - SAMPLE_QUERIES: Built-in fallback query set
"""

from sql_diagnostic_tool.parser.catalog import QueryCatalog, load_query_catalog
from sql_diagnostic_tool.parser.classifier import (
    CLASSIFIER_RULES_VERSION,
    classify_section,
    estimate_duration,
)
from sql_diagnostic_tool.parser.models import (
    QueryRecord,
    SectionSummary,
    build_section_index,
    summarize_sections,
)
from sql_diagnostic_tool.parser.pack_parser import parse_pack
from sql_diagnostic_tool.parser.samples import SAMPLE_QUERIES

__all__ = [
    "CLASSIFIER_RULES_VERSION",
    "QueryCatalog",
    "QueryRecord",
    "SAMPLE_QUERIES",
    "SectionSummary",
    "build_section_index",
    "classify_section",
    "estimate_duration",
    "load_query_catalog",
    "parse_pack",
    "summarize_sections",
]
