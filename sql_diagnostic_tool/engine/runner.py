"""
Sequential batch execution of diagnostic queries.

run_batch() executes query records one at a time, in input order, against a
QueryExecutor. Each record goes through:

    Pending -> Executing -> Success
                         -> Retrying -> Executing -> ...
                         -> Failed

Every attempt is bounded by asyncio.timeout(); an attempt cut off by that
deadline counts as a failure with QueryTimeoutError. Errors the executor
raises itself, TimeoutError included, propagate unchanged.

After a failed attempt next_retry_step() decides between another attempt
(after retry_delay_ms) and giving up.

A record that gives up either becomes a failed ExecutionOutcome
(continue_on_error=True) or aborts the whole batch with BatchAbortedError
(continue_on_error=False). An abort emits no further progress events.

Progress is reported before each record and once more after the last one
with current_query="Complete", so a batch of N records produces N+1 events.
Observer exceptions are logged and never affect the batch.

Sleep and clock are injectable so tests run instantly and deterministically:

    >>> sleeps = []
    >>> async def fake_sleep(seconds):
    ...     sleeps.append(seconds)
    >>> result = await run_batch(records, executor, options, sleep=fake_sleep)
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence

from ..exceptions import BatchAbortedError, QueryTimeoutError
from ..parser.models import QueryRecord
from ..utils.time import monotonic_ms, utc_timestamp
from .executor import QueryExecutor
from .models import COMPLETE_MARKER, BatchResult, ExecutionOutcome, ProgressEvent
from .retry import ExecutionOptions, RetryAfter, next_retry_step

logger = logging.getLogger(__name__)

ProgressObserver = Callable[[ProgressEvent], None]


def _notify(on_progress: ProgressObserver | None, event: ProgressEvent) -> None:
    if on_progress is None:
        return
    try:
        on_progress(event)
    except Exception as e:
        logger.warning(f"Progress observer failed: {e}", exc_info=True)


async def _attempt(
    executor: QueryExecutor, record: QueryRecord, timeout_ms: int
) -> list[dict]:
    """Run one attempt, converting an expired deadline into QueryTimeoutError."""
    deadline = asyncio.timeout(timeout_ms / 1000)
    try:
        async with deadline:
            rows = await executor.execute(record.query_text, timeout_ms)
    except TimeoutError as e:
        # A driver-side timeout keeps its own message
        if not deadline.expired():
            raise
        raise QueryTimeoutError(f"Query exceeded timeout of {timeout_ms}ms") from e
    return list(rows or [])


async def execute_record(
    record: QueryRecord,
    executor: QueryExecutor,
    options: ExecutionOptions,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    clock: Callable[[], int] = monotonic_ms,
) -> tuple[ExecutionOutcome, Exception | None]:
    """
    Execute one record with retries.

    Returns:
        (outcome, error): error is the final exception when the record
        failed, None on success
    """
    attempts = 0
    while True:
        attempts += 1
        started = clock()
        try:
            rows = await _attempt(executor, record, options.timeout_ms)
        except Exception as e:
            step = next_retry_step(attempts, options)
            if isinstance(step, RetryAfter):
                logger.warning(
                    f"Query {record.id} ({record.name}) attempt {attempts} failed: {e}; "
                    f"retrying in {step.delay_ms}ms"
                )
                if step.delay_ms > 0:
                    await sleep(step.delay_ms / 1000)
                continue

            logger.error(
                f"Query {record.id} ({record.name}) failed after {attempts} attempt(s): {e}"
            )
            outcome = ExecutionOutcome(
                query_id=record.id,
                name=record.name,
                section=record.section,
                description=record.description,
                success=False,
                row_count=0,
                elapsed_ms=0,
                timestamp=utc_timestamp(),
                error_message=str(e) or type(e).__name__,
                attempts=attempts,
            )
            return outcome, e

        elapsed_ms = max(0, clock() - started)
        logger.debug(
            f"Query {record.id} returned {len(rows)} rows in {elapsed_ms}ms "
            f"(attempt {attempts})"
        )
        outcome = ExecutionOutcome(
            query_id=record.id,
            name=record.name,
            section=record.section,
            description=record.description,
            success=True,
            row_count=len(rows),
            elapsed_ms=elapsed_ms,
            timestamp=utc_timestamp(),
            rows=tuple(rows),
            attempts=attempts,
        )
        return outcome, None


async def run_batch(
    records: Sequence[QueryRecord],
    executor: QueryExecutor,
    options: ExecutionOptions | None = None,
    on_progress: ProgressObserver | None = None,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    clock: Callable[[], int] = monotonic_ms,
) -> BatchResult:
    """
    Execute records sequentially and collect their outcomes.

    Args:
        records: Records in execution order
        executor: Capability used to run each statement
        options: Timeout, retry and abort policy (defaults if None)
        on_progress: Optional observer called with ProgressEvent
        sleep: Awaitable sleep taking seconds, used between retries
        clock: Monotonic clock in milliseconds

    Returns:
        BatchResult with one outcome per record, in input order

    Raises:
        BatchAbortedError: A record failed terminally and
            options.continue_on_error is False. Carries the outcomes
            completed before the failing record.
    """
    options = options or ExecutionOptions()
    total = len(records)
    outcomes: list[ExecutionOutcome] = []
    successful = 0
    failed = 0

    logger.info(
        f"Executing {total} queries (timeout={options.timeout_ms}ms, "
        f"max_retries={options.max_retries}, continue_on_error={options.continue_on_error})"
    )

    batch_started = clock()

    for index, record in enumerate(records):
        _notify(on_progress, ProgressEvent(completed=index, total=total, current_query=record.name))

        outcome, error = await execute_record(
            record, executor, options, sleep=sleep, clock=clock
        )

        if error is not None and not options.continue_on_error:
            logger.error(f"Aborting batch at {record.id} ({record.name})")
            raise BatchAbortedError(
                query_id=record.id,
                query_name=record.name,
                error=error,
                outcomes=tuple(outcomes),
            ) from error

        outcomes.append(outcome)
        if outcome.success:
            successful += 1
        else:
            failed += 1

    total_elapsed_ms = max(0, clock() - batch_started)

    _notify(
        on_progress,
        ProgressEvent(completed=total, total=total, current_query=COMPLETE_MARKER),
    )

    logger.info(
        f"Batch complete: {successful}/{total} successful, {failed} failed, "
        f"{total_elapsed_ms}ms"
    )

    return BatchResult(
        outcomes=tuple(outcomes),
        successful=successful,
        failed=failed,
        total_elapsed_ms=total_elapsed_ms,
    )
