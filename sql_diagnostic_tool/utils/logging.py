"""
Structured JSON logging for SQL Diagnostic Tool.

Every log record is written to stderr as one JSON object, so stdout stays
free for command output (Rich tables or the buffered JSON document).

Records carry:
- timestamp: UTC, "Z" suffixed
- level and component (the logger name, e.g. "sql_diagnostic_tool.engine.runner")
- message
- context / run_id / query_id when passed via `extra`

Database credentials have a habit of leaking into driver error messages, so
a filter masks connection-string passwords and bearer tokens before any
record is formatted.

Examples:
    >>> setup_logging(level_name="info")
    >>> logger = logging.getLogger("sql_diagnostic_tool.packs.source")
    >>> log_with_context(logger, logging.INFO, "Pack loaded", context={"key": "2019"})
"""

import json
import logging
import re
import sys
from typing import Any

from sql_diagnostic_tool.utils.time import utc_timestamp

# Optional attributes copied from `extra` into the JSON entry
_EXTRA_FIELDS = ("run_id", "query_id")

_REDACTIONS = (
    # Password=...; / Pwd=... inside ADO/ODBC connection strings
    (
        re.compile(r"\b(password|pwd)\s*=\s*[^;\s]+", re.IGNORECASE),
        lambda m: f"{m.group(1)}=***",
    ),
    # Bearer tokens keep their last 4 characters for correlation
    (
        re.compile(r"\bBearer\s+[a-zA-Z0-9_.-]{20,}\b"),
        lambda m: f"Bearer ***{m.group(0)[-4:]}",
    ),
)


def redact(text: str) -> str:
    """Mask credentials in a piece of text."""
    for pattern, replacement in _REDACTIONS:
        text = pattern.sub(replacement, text)
    return text


def _redact_value(value: Any) -> Any:
    if isinstance(value, str):
        return redact(value)
    if isinstance(value, dict):
        return {key: _redact_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(_redact_value(item) for item in value)
    return value


class JSONFormatter(logging.Formatter):
    """Render a LogRecord as a single-line JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": utc_timestamp(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if isinstance(context, dict):
            entry["context"] = context

        for field in _EXTRA_FIELDS:
            if hasattr(record, field):
                entry[field] = getattr(record, field)

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class SecretRedactingFilter(logging.Filter):
    """
    Mask credentials in the message, its %-style args and the context dict.

    "Server=db1;User Id=sa;Password=hunter2;" is logged as
    "Server=db1;User Id=sa;Password=***;".
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = redact(str(record.msg))

        if isinstance(record.args, dict):
            record.args = {key: redact(str(arg)) for key, arg in record.args.items()}
        elif record.args:
            record.args = tuple(redact(str(arg)) for arg in record.args)

        context = getattr(record, "context", None)
        if isinstance(context, dict):
            record.context = _redact_value(context)

        return True


def _resolve_level(verbose: bool, quiet_logs: bool, level_name: str | None) -> int:
    if verbose:
        return logging.DEBUG
    if quiet_logs:
        return logging.WARNING
    if level_name:
        return logging.getLevelName(level_name.upper())
    return logging.INFO


def setup_logging(
    verbose: bool = False, quiet_logs: bool = False, level_name: str | None = None
) -> None:
    """
    Install the JSON stderr handler on the root logger.

    Safe to call more than once: previous handlers are replaced, which the
    CLI relies on to re-apply the level after the configuration is loaded.

    Args:
        verbose: DEBUG, overriding everything else
        quiet_logs: WARNING and above only; used in human mode where Rich
            output already narrates progress
        level_name: Configured level ("debug", "info", "warning", "error"),
            used when neither flag is set
    """
    level = _resolve_level(verbose, quiet_logs, level_name)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter())
    handler.addFilter(SecretRedactingFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)
    root.addHandler(handler)


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    context: dict[str, Any] | None = None,
    run_id: str | None = None,
) -> None:
    """
    Log `message` with a structured context dict and the run it belongs to.

    Example:
        >>> log_with_context(
        ...     logger,
        ...     logging.INFO,
        ...     "Diagnostic run finished",
        ...     context={"successful": 40, "failed": 2},
        ...     run_id="2025-11-02T08-30-00Z",
        ... )
    """
    extra: dict[str, Any] = {}
    if context is not None:
        extra["context"] = context
    if run_id is not None:
        extra["run_id"] = run_id

    logger.log(level, message, extra=extra or None)
