"""
Parser for annotated diagnostic query packs.

A pack is one large SQL script in which queries are separated by lines of
six dashes and annotated with a leading comment such as:

    -- SQL and OS Version information for current instance  (Query 1) (Version Info)
    SELECT @@SERVERNAME AS [Server Name], @@VERSION AS [SQL Server and OS Version Info];
    ------

parse_pack() turns such text into an ordered tuple of QueryRecord objects:

1. Split on delimiter lines; the text after the last delimiter is not a query
2. Skip blocks shorter than MIN_BLOCK_LENGTH (headers, stray comments)
3. Read name/description from the "(Query N) (Description)" annotation
4. The body starts at the first line that is neither blank nor a comment
5. Skip blocks whose body is shorter than MIN_QUERY_LENGTH
6. Classify the section and estimate the duration tier
7. Number accepted blocks 1..N

Malformed blocks are dropped without raising. A pack that yields no records
at all raises EmptyPackError so the caller can pick the sample set instead.
"""

import logging
import re
from dataclasses import dataclass

from ..exceptions import EmptyPackError
from .classifier import DEFAULT_SECTION, classify_section, estimate_duration
from .models import QueryRecord, record_id

logger = logging.getLogger(__name__)

# Blocks shorter than this (after trimming) are noise
MIN_BLOCK_LENGTH = 50

# Bodies shorter than this are not real queries
MIN_QUERY_LENGTH = 10

DEFAULT_DESCRIPTION = "SQL Server diagnostic query"

BLOCK_DELIMITER = re.compile(r"^------[ \t]*$", re.MULTILINE)

QUERY_ANNOTATION = re.compile(r"--.*?\(Query\s+\d+\)\s*\(([^)]+)\)", re.IGNORECASE)


@dataclass(frozen=True)
class BlockInfo:
    """Metadata and body extracted from one pack block."""

    name: str
    description: str
    body: str
    annotated: bool


def split_blocks(raw_text: str) -> list[str]:
    """
    Split pack text into candidate blocks.

    The remainder after the last delimiter is discarded, so text without any
    delimiter produces no blocks.
    """
    text = raw_text.replace("\r\n", "\n").replace("\r", "\n")
    return BLOCK_DELIMITER.split(text)[:-1]


def extract_body(block: str) -> str:
    """
    Return the SQL body of a block.

    Leading blank and "--" comment lines are skipped; from the first other
    line onwards everything is kept verbatim, blank lines and inline
    comments included.
    """
    lines = block.split("\n")
    for index, line in enumerate(lines):
        stripped = line.strip()
        if stripped and not stripped.startswith("--"):
            return "\n".join(lines[index:]).strip()
    return ""


def extract_block_info(block: str, sequence_number: int) -> BlockInfo | None:
    """
    Extract metadata and body from a block.

    Args:
        block: Trimmed block text
        sequence_number: Number the block would receive if accepted, used
            for the placeholder name of unannotated blocks

    Returns:
        BlockInfo, or None when the body is empty or too short
    """
    body = extract_body(block)
    if len(body) < MIN_QUERY_LENGTH:
        return None

    match = QUERY_ANNOTATION.search(block)
    if match:
        description = match.group(1).strip()
        return BlockInfo(
            name=description,
            description=description,
            body=body,
            annotated=True,
        )

    return BlockInfo(
        name=f"Query {sequence_number}",
        description=DEFAULT_DESCRIPTION,
        body=body,
        annotated=False,
    )


def parse_pack(raw_text: str, version_key: str) -> tuple[QueryRecord, ...]:
    """
    Parse raw pack text into ordered query records.

    Parsing is deterministic: the same text always yields the same
    sequence_number -> content mapping.

    Args:
        raw_text: Full pack text
        version_key: Key of the pack, used for logging and errors

    Returns:
        Tuple of QueryRecord ordered by sequence_number (1..N, contiguous)

    Raises:
        EmptyPackError: If no block produced a valid record
    """
    records: list[QueryRecord] = []
    skipped = 0

    for block in split_blocks(raw_text):
        block = block.strip()
        if len(block) < MIN_BLOCK_LENGTH:
            skipped += 1
            continue

        sequence_number = len(records) + 1
        info = extract_block_info(block, sequence_number)
        if info is None:
            skipped += 1
            logger.debug(f"Skipping block without a usable query body ({len(block)} chars)")
            continue

        section = (
            classify_section(info.description, info.body)
            if info.annotated
            else DEFAULT_SECTION
        )

        records.append(
            QueryRecord(
                sequence_number=sequence_number,
                id=record_id(sequence_number),
                name=info.name,
                description=info.description,
                section=section,
                query_text=info.body,
                estimated_duration_ms=estimate_duration(info.body),
            )
        )

    if not records:
        raise EmptyPackError(
            f"Query pack {version_key} contains no valid queries", version_key=version_key
        )

    logger.info(
        f"Parsed {len(records)} queries from pack {version_key} "
        f"({skipped} blocks skipped)"
    )
    return tuple(records)
