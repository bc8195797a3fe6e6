"""
Query executor capability.

The engine never opens database connections. It is handed an object that
satisfies QueryExecutor and calls it once per attempt. Connection pooling,
authentication and driver choice belong to whoever builds the executor.

DryRunExecutor is the built-in implementation used by the `demo` command and
by tests: it runs nothing and returns canned rows, so a whole diagnostic
workflow can be exercised without a server.

Example:
    >>> executor = DryRunExecutor(rows={"SELECT @@VERSION;": [{"v": "16.0"}]})
    >>> await executor.execute("SELECT @@VERSION;", timeout_ms=30000)
    [{'v': '16.0'}]
"""

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Protocol

from ..exceptions import QueryExecutionError

logger = logging.getLogger(__name__)


class QueryExecutor(Protocol):
    """
    Anything that can run one SQL statement and return its rows.

    Implementations raise any exception to signal a failed attempt; the
    engine decides whether to retry. They must not retry on their own.
    """

    async def execute(self, query_text: str, timeout_ms: int) -> list[dict]:
        """
        Run query_text and return its result rows.

        Args:
            query_text: Verbatim SQL statement
            timeout_ms: Time budget for this attempt; the engine enforces it
                independently, so honoring it is optional

        Returns:
            Result rows as dicts (column name -> value)
        """
        ...


@dataclass
class DryRunExecutor:
    """
    Executor that returns canned rows without touching a database.

    Attributes:
        rows: Rows to return per exact query text
        default_rows: Rows for queries not in `rows`
        failures: Query texts that always fail with QueryExecutionError
        delay_ms: Simulated latency per call
        calls: Query texts received, in call order
    """

    rows: Mapping[str, list[dict]] = field(default_factory=dict)
    default_rows: list[dict] = field(default_factory=list)
    failures: frozenset[str] = field(default_factory=frozenset)
    delay_ms: int = 0
    calls: list[str] = field(default_factory=list)

    async def execute(self, query_text: str, timeout_ms: int) -> list[dict]:
        self.calls.append(query_text)

        if self.delay_ms > 0:
            await asyncio.sleep(self.delay_ms / 1000)

        if query_text in self.failures:
            raise QueryExecutionError("Dry run: simulated execution failure")

        result = self.rows.get(query_text, self.default_rows)
        logger.debug(f"Dry run returned {len(result)} rows")
        return [dict(row) for row in result]
