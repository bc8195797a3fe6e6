"""
Execution result records for diagnostic batches.

- ExecutionOutcome: what happened to one query record
- BatchResult: ordered outcomes plus aggregate counters
- ProgressEvent: payload delivered to the progress observer

All three are immutable; a BatchResult is built once, after the last record,
and handed to the caller.
"""

from dataclasses import asdict, dataclass, field

# current_query of the final progress event
COMPLETE_MARKER = "Complete"


@dataclass(frozen=True)
class ExecutionOutcome:
    """
    Result of executing one query record.

    Attributes:
        query_id: Identifier of the record ("query-<n>")
        name: Display name of the record
        section: Section label of the record
        description: Description of the record
        success: True if an attempt returned rows
        row_count: Number of rows returned (0 on failure)
        elapsed_ms: Duration of the successful attempt (0 on failure)
        error_message: Final error message, present only when success is False
        timestamp: ISO 8601 UTC timestamp with 'Z' suffix, taken on completion
        rows: Returned rows (empty on failure)
        attempts: Number of executor calls made for this record

    Example:
        >>> outcome.success, outcome.row_count, outcome.error_message
        (True, 12, None)
    """

    query_id: str
    name: str
    section: str
    description: str
    success: bool
    row_count: int
    elapsed_ms: int
    timestamp: str
    error_message: str | None = None
    rows: tuple[dict, ...] = ()
    attempts: int = 1

    def __post_init__(self):
        if self.success and self.error_message is not None:
            raise ValueError("Successful outcome cannot carry an error_message")
        if not self.success and not self.error_message:
            raise ValueError("Failed outcome requires an error_message")

    def to_dict(self, include_rows: bool = True) -> dict:
        data = asdict(self)
        data["rows"] = list(self.rows) if include_rows else []
        return data


@dataclass(frozen=True)
class BatchResult:
    """
    Outcome of one batch run.

    Attributes:
        outcomes: One outcome per record, in input order
        successful: Number of successful outcomes
        failed: Number of failed outcomes
        total_elapsed_ms: Wall-clock time from first dispatch to last completion
    """

    outcomes: tuple[ExecutionOutcome, ...] = field(default_factory=tuple)
    successful: int = 0
    failed: int = 0
    total_elapsed_ms: int = 0

    @property
    def total(self) -> int:
        return self.successful + self.failed

    @property
    def all_succeeded(self) -> bool:
        return self.failed == 0

    def to_dict(self, include_rows: bool = True) -> dict:
        return {
            "outcomes": [o.to_dict(include_rows=include_rows) for o in self.outcomes],
            "successful": self.successful,
            "failed": self.failed,
            "total": self.total,
            "total_elapsed_ms": self.total_elapsed_ms,
        }


@dataclass(frozen=True)
class ProgressEvent:
    """
    Progress notification.

    completed counts records finished so far; current_query is the name of
    the record about to run, or COMPLETE_MARKER on the final event.
    """

    completed: int
    total: int
    current_query: str

    @property
    def is_final(self) -> bool:
        return self.completed == self.total and self.current_query == COMPLETE_MARKER
