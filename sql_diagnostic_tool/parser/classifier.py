"""
Section classification and duration estimation for diagnostic queries.

Both functions are driven by ordered rule tables evaluated top to bottom;
the first matching rule wins. Rules overlap on purpose (a description such as
"Index fragmentation" mentions both maintenance and index terms), so the
table order decides the outcome and is part of the output contract: any
reordering must bump CLASSIFIER_RULES_VERSION.

All matching is case-insensitive substring matching.

Example:
    >>> classify_section("Get wait statistics since restart", "SELECT ...")
    'Performance'
    >>> estimate_duration("SELECT @@VERSION;")
    500
"""

from dataclasses import dataclass

CLASSIFIER_RULES_VERSION = "1"

DEFAULT_SECTION = "General"

# Applied when no duration tier matches
DEFAULT_DURATION_MS = 3000


@dataclass(frozen=True)
class SectionRule:
    """Assigns `label` when any keyword occurs in the inspected text."""

    label: str
    keywords: tuple[str, ...]

    def matches(self, text: str) -> bool:
        return any(keyword in text for keyword in self.keywords)


@dataclass(frozen=True)
class DurationTier:
    """
    Assigns `duration_ms` to a query body.

    The tier matches when any of `any_of` occurs, or, for tiers defined with
    `all_of`, when every one of those keywords occurs.
    """

    duration_ms: int
    any_of: tuple[str, ...] = ()
    all_of: tuple[str, ...] = ()

    def matches(self, text: str) -> bool:
        if self.all_of:
            return all(keyword in text for keyword in self.all_of)
        return any(keyword in text for keyword in self.any_of)


# Matched against the annotated description
DESCRIPTION_RULES: tuple[SectionRule, ...] = (
    SectionRule("Instance Information", ("version", "server properties", "configuration")),
    SectionRule("Hardware & OS", ("memory", "hardware", "cpu", "numa")),
    SectionRule("Maintenance", ("backup", "maintenance", "statistics", "fragmentation")),
    SectionRule("Performance", ("wait", "performance", "execution", "expensive")),
    SectionRule("Database Objects", ("database", "file", "table", "index")),
    SectionRule("Security", ("security", "login", "permission")),
    SectionRule("High Availability", ("alwayson", "cluster", "availability")),
    SectionRule("SQL Server Agent", ("job", "agent", "alert")),
)

# Matched against the query body when no description rule applied
CONTENT_RULES: tuple[SectionRule, ...] = (
    SectionRule("Performance", ("sys.dm_os_wait_stats", "sys.dm_exec_query_stats")),
    SectionRule("Database Objects", ("sys.databases", "sys.master_files")),
    SectionRule("Maintenance", ("msdb.dbo.backupset", "dbcc")),
)

DURATION_TIERS: tuple[DurationTier, ...] = (
    DurationTier(500, any_of=("@@version", "serverproperty", "sys.configurations")),
    DurationTier(
        2000,
        any_of=(
            "sys.dm_os_wait_stats",
            "sys.dm_exec_query_stats",
            "sys.dm_db_index_usage_stats",
        ),
    ),
    DurationTier(
        5000, any_of=("sys.dm_db_index_physical_stats", "sys.dm_os_buffer_descriptors")
    ),
    DurationTier(10000, all_of=("cross apply", "sys.dm_exec_sql_text")),
)


def _first_match(rules: tuple[SectionRule, ...], text: str) -> str | None:
    for rule in rules:
        if rule.matches(text):
            return rule.label
    return None


def classify_section(
    description: str,
    body: str,
    description_rules: tuple[SectionRule, ...] = DESCRIPTION_RULES,
    content_rules: tuple[SectionRule, ...] = CONTENT_RULES,
) -> str:
    """
    Assign a section label to a query.

    The description is tested against description_rules first; only when
    none matches is the body tested against content_rules. Falls back to
    DEFAULT_SECTION.

    Args:
        description: Annotated description of the query
        body: SQL body of the query
        description_rules: Ordered rules for the description
        content_rules: Ordered rules for the body

    Returns:
        Section label, never empty
    """
    label = _first_match(description_rules, description.lower())
    if label is None:
        label = _first_match(content_rules, body.lower())
    return label or DEFAULT_SECTION


def estimate_duration(
    body: str, tiers: tuple[DurationTier, ...] = DURATION_TIERS
) -> int:
    """
    Heuristic cost tier for a query body, in milliseconds.

    Not a prediction of actual runtime: the value only ranks queries into
    quick (500), medium (2000), expensive physical-stats (5000) and
    text-lookup (10000) buckets, with 3000 for everything else.
    """
    text = body.lower()
    for tier in tiers:
        if tier.matches(text):
            return tier.duration_ms
    return DEFAULT_DURATION_MS
