#!/usr/bin/env python3
"""
Run a diagnostic query catalog with your own database executor.

This script demonstrates how to:
- Resolve a SQL Server version and load its query catalog
- Plug any async database client in as a QueryExecutor
- Stream progress events and inspect the BatchResult

The executor below only echoes the statement length; replace its body with
a call into your driver of choice.

Usage:
    python examples/code-examples/custom_executor.py 15.0.2000.5
"""

import asyncio
import sys

from sql_diagnostic_tool.engine import ExecutionOptions, ProgressEvent, run_batch
from sql_diagnostic_tool.packs import FallbackPackSource, LocalPackSource
from sql_diagnostic_tool.parser import load_query_catalog


class EchoExecutor:
    """Pretends to run each statement and returns a single row."""

    async def execute(self, query_text: str, timeout_ms: int) -> list[dict]:
        await asyncio.sleep(0.01)
        return [{"statement_length": len(query_text)}]


def print_progress(event: ProgressEvent) -> None:
    print(f"[{event.completed}/{event.total}] {event.current_query}")


async def main(version: str) -> int:
    source = FallbackPackSource(LocalPackSource("./data/query-packs"))
    catalog = load_query_catalog(version, source)
    print(f"SQL Server {catalog.version_key}: {len(catalog)} queries ({catalog.origin})")

    options = ExecutionOptions(timeout_ms=5000, max_retries=1, retry_delay_ms=200)
    result = await run_batch(catalog.records, EchoExecutor(), options, print_progress)

    print(f"\n{result.successful}/{result.total} succeeded in {result.total_elapsed_ms}ms")
    for outcome in result.outcomes:
        if not outcome.success:
            print(f"  FAILED {outcome.name}: {outcome.error_message}")

    return 0 if result.all_succeeded else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else "2019")))
