"""
Query catalog: the ordered query set for one SQL Server version.

load_query_catalog() glues the pack pipeline together:

    version indicator -> resolve() -> FallbackPackSource.require()
        -> parse_pack() -> QueryCatalog

When no source has a pack, or the pack that was found yields no records, the
built-in sample queries are used instead so that a diagnostic run always has
something to execute. Pack problems are therefore never fatal here; they are
logged as warnings and reflected in QueryCatalog.used_sample.
"""

import logging
from dataclasses import dataclass, field

from ..exceptions import PackError
from ..packs.source import FallbackPackSource
from ..packs.versions import resolve
from .models import QueryRecord, SectionSummary, build_section_index, summarize_sections
from .pack_parser import parse_pack
from .samples import SAMPLE_QUERIES

logger = logging.getLogger(__name__)

SAMPLE_ORIGIN = "sample"


@dataclass(frozen=True)
class QueryCatalog:
    """
    Ordered query records plus where they came from.

    Attributes:
        version_key: Key resolved from the caller's version indicator
        pack_key: Key of the pack actually parsed (None for the sample set)
        origin: "local", "remote" or "sample"
        records: Records ordered by sequence_number
        used_sample: True when the built-in sample set was used
        sections: Section index, recomputed from records
    """

    version_key: str
    pack_key: str | None
    origin: str
    records: tuple[QueryRecord, ...]
    used_sample: bool = False
    sections: dict[str, tuple[QueryRecord, ...]] = field(init=False, compare=False)

    def __post_init__(self):
        # Frozen dataclass: derived field must be set through object.__setattr__
        object.__setattr__(self, "sections", build_section_index(self.records))

    @property
    def section_summaries(self) -> list[SectionSummary]:
        return summarize_sections(self.sections)

    @property
    def estimated_duration_ms(self) -> int:
        return sum(record.estimated_duration_ms for record in self.records)

    def __len__(self) -> int:
        return len(self.records)


def sample_catalog(version_key: str) -> QueryCatalog:
    """Catalog made of the built-in sample queries."""
    return QueryCatalog(
        version_key=version_key,
        pack_key=None,
        origin=SAMPLE_ORIGIN,
        records=SAMPLE_QUERIES,
        used_sample=True,
    )


def load_query_catalog(indicator: int | str | None, source: FallbackPackSource) -> QueryCatalog:
    """
    Build the query catalog for a version indicator.

    Args:
        indicator: Release year, engine major version, product version string
            or exact pack key; unrecognized values resolve to the baseline
        source: Fallback chain used to obtain pack text

    Returns:
        QueryCatalog, never empty

    Example:
        >>> catalog = load_query_catalog("15.0.2000.5", source)
        >>> catalog.version_key, catalog.origin
        ('2019', 'local')
    """
    version_key = resolve(indicator)
    logger.debug(f"Resolved version indicator {indicator!r} to {version_key}")

    try:
        pack = source.require(version_key)
        records = parse_pack(pack.text, pack.key)
    except PackError as e:
        logger.warning(f"Using sample queries for SQL Server {version_key}: {e}")
        return sample_catalog(version_key)

    return QueryCatalog(
        version_key=version_key,
        pack_key=pack.key,
        origin=pack.origin,
        records=records,
    )
