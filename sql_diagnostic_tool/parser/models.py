"""
Query record data model and section index.

A QueryRecord is one diagnostic query extracted from a pack. Records are
created once per parse, never mutated, and grouped into sections with
build_section_index(), which is recomputed from scratch whenever the record
set changes.
"""

from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class QueryRecord:
    """
    One parsed, classified diagnostic query.

    Attributes:
        sequence_number: 1-based position among accepted blocks of one parse
        id: Identifier derived from sequence_number ("query-<n>")
        name: Short display name (the description when one was annotated)
        description: Annotated description or a generic placeholder
        section: Section label assigned by the classifier, never empty
        query_text: Verbatim SQL body
        estimated_duration_ms: Cost-tier label from the duration heuristic.
            This is NOT a measurement; use it only for rough weighting such
            as progress bars or section totals.
    """

    sequence_number: int
    id: str
    name: str
    description: str
    section: str
    query_text: str
    estimated_duration_ms: int

    def __post_init__(self):
        if self.sequence_number < 1:
            raise ValueError(
                f"sequence_number must be positive, got: {self.sequence_number}"
            )
        if not self.section:
            raise ValueError("section cannot be empty")
        if not self.query_text.strip():
            raise ValueError("query_text cannot be empty")
        if self.estimated_duration_ms <= 0:
            raise ValueError(
                f"estimated_duration_ms must be positive, got: {self.estimated_duration_ms}"
            )

    def to_dict(self) -> dict:
        return asdict(self)


def record_id(sequence_number: int) -> str:
    """
    Identifier for the record with this sequence number.

    Example:
        >>> record_id(7)
        'query-7'
    """
    return f"query-{sequence_number}"


@dataclass(frozen=True)
class SectionSummary:
    """Per-section totals for display and progress weighting."""

    name: str
    query_count: int
    estimated_duration_ms: int


def build_section_index(
    records: Iterable[QueryRecord],
) -> dict[str, tuple[QueryRecord, ...]]:
    """
    Group records by section.

    Sections appear in order of their first record; records keep their input
    order inside each section. Returns a fresh mapping on every call.

    Example:
        >>> index = build_section_index(records)
        >>> list(index)
        ['Instance Information', 'Hardware & OS', 'Performance']
    """
    grouped: dict[str, list[QueryRecord]] = {}
    for record in records:
        grouped.setdefault(record.section, []).append(record)
    return {section: tuple(items) for section, items in grouped.items()}


def summarize_sections(
    index: Mapping[str, Iterable[QueryRecord]],
) -> list[SectionSummary]:
    """Summaries for every section of an index, in index order."""
    summaries = []
    for name, records in index.items():
        records = tuple(records)
        summaries.append(
            SectionSummary(
                name=name,
                query_count=len(records),
                estimated_duration_ms=sum(r.estimated_duration_ms for r in records),
            )
        )
    return summaries
