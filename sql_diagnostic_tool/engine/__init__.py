"""
Resilient sequential execution of diagnostic query batches.

Public API:
    - run_batch: Execute records in order with retries, timeouts, progress
    - ExecutionOptions: Timeout, retry and abort policy
    - next_retry_step: Pure retry scheduler (RetryAfter | GiveUp)
    - QueryExecutor: Protocol for the database capability
    - DryRunExecutor: Executor returning canned rows
    - ExecutionOutcome / BatchResult / ProgressEvent: Result records
"""

from sql_diagnostic_tool.engine.executor import DryRunExecutor, QueryExecutor
from sql_diagnostic_tool.engine.models import BatchResult, ExecutionOutcome, ProgressEvent
from sql_diagnostic_tool.engine.retry import (
    ExecutionOptions,
    GiveUp,
    RetryAfter,
    next_retry_step,
)
from sql_diagnostic_tool.engine.runner import run_batch

__all__ = [
    "BatchResult",
    "DryRunExecutor",
    "ExecutionOptions",
    "ExecutionOutcome",
    "GiveUp",
    "ProgressEvent",
    "QueryExecutor",
    "RetryAfter",
    "next_retry_step",
    "run_batch",
]
