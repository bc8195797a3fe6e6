"""
Retry scheduling for query execution.

The engine does not loop on a timer itself. After every failed attempt it
asks next_retry_step() what to do, and the answer is either RetryAfter (wait
this many milliseconds, then try again) or GiveUp. The step function is pure,
so retry behavior is tested without an event loop, a clock or a database.

Policy:
- max_retries counts retries, not attempts: max_retries=0 means exactly one
  attempt, max_retries=3 means up to four
- the delay between attempts is constant (retry_delay_ms)

Example:
    >>> policy = ExecutionOptions(max_retries=1, retry_delay_ms=250)
    >>> next_retry_step(1, policy)
    RetryAfter(delay_ms=250)
    >>> next_retry_step(2, policy)
    GiveUp()
"""

from dataclasses import dataclass

# Defaults shared with the configuration schema
DEFAULT_TIMEOUT_MS = 30000
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY_MS = 1000
MIN_TIMEOUT_MS = 1000


@dataclass(frozen=True)
class ExecutionOptions:
    """
    Per-batch execution options.

    Attributes:
        timeout_ms: Upper bound for a single attempt, in milliseconds
        max_retries: Retries after the first failed attempt (>= 0)
        retry_delay_ms: Constant delay between attempts (>= 0)
        continue_on_error: Record failures and keep going when True;
            abort the batch on the first terminal failure when False
    """

    timeout_ms: int = DEFAULT_TIMEOUT_MS
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_delay_ms: int = DEFAULT_RETRY_DELAY_MS
    continue_on_error: bool = True

    def __post_init__(self):
        if self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive, got: {self.timeout_ms}")
        if self.max_retries < 0:
            raise ValueError(f"max_retries cannot be negative, got: {self.max_retries}")
        if self.retry_delay_ms < 0:
            raise ValueError(
                f"retry_delay_ms cannot be negative, got: {self.retry_delay_ms}"
            )

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1


@dataclass(frozen=True)
class RetryAfter:
    """Try again after delay_ms milliseconds."""

    delay_ms: int


@dataclass(frozen=True)
class GiveUp:
    """No attempts left; the record has failed."""


RetryStep = RetryAfter | GiveUp


def next_retry_step(attempts: int, options: ExecutionOptions) -> RetryStep:
    """
    Decide what follows a failed attempt.

    Args:
        attempts: Number of attempts made so far for this record (>= 1)
        options: Execution options carrying the retry policy

    Returns:
        RetryAfter while attempts < options.max_attempts, else GiveUp
    """
    if attempts < options.max_attempts:
        return RetryAfter(delay_ms=options.retry_delay_ms)
    return GiveUp()
