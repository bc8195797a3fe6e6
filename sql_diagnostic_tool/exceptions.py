"""
Custom exceptions for SQL Diagnostic Tool.

This module provides a hierarchy of exceptions that enable type-safe error
handling throughout the application. All exceptions inherit from the base
SqlDiagnosticError for consistent catching.

Exception Hierarchy:
    SqlDiagnosticError (base)
    ├── ConfigurationError
    │   ├── ConfigFileNotFoundError
    │   └── ConfigValidationError
    ├── PackError
    │   ├── PackNotFoundError
    │   ├── PackFetchError
    │   └── EmptyPackError
    ├── ExecutionError
    │   ├── QueryTimeoutError
    │   ├── QueryExecutionError
    │   └── BatchAbortedError
    └── StorageError
        └── ArtifactWriteError

Usage:
    from sql_diagnostic_tool.exceptions import BatchAbortedError

    try:
        result = await run_batch(records, executor, options)
    except BatchAbortedError as e:
        logger.error(f"Diagnostic run aborted at {e.query_name}: {e.error_message}")
        sys.exit(4)
"""


class SqlDiagnosticError(Exception):
    """
    Base exception for all SQL Diagnostic Tool errors.

    All custom exceptions in this application inherit from this class so that
    callers can catch every application-specific error with one except clause.
    """

    pass


# ============================================================================
# Configuration Errors
# ============================================================================


class ConfigurationError(SqlDiagnosticError):
    """
    Base class for configuration-related errors.

    Should be caught and result in exit code 1 (configuration error).
    """

    pass


class ConfigFileNotFoundError(ConfigurationError):
    """
    Configuration file does not exist at the specified path.

    Example:
        raise ConfigFileNotFoundError("/path/to/diagnostic.config.yaml")
    """

    pass


class ConfigValidationError(ConfigurationError):
    """
    Configuration file is invalid (YAML syntax or schema validation failed).

    Example:
        raise ConfigValidationError("queries.timeout_ms: must be at least 1000")
    """

    pass


# ============================================================================
# Query Pack Errors
# ============================================================================


class PackError(SqlDiagnosticError):
    """
    Base class for query pack loading and parsing errors.

    These are absorbed by the query catalog, which falls back to the built-in
    sample set instead of failing the run.
    """

    pass


class PackNotFoundError(PackError):
    """
    No pack text could be obtained for a version key from any source.

    Attributes:
        version_key: The version key that was requested
    """

    def __init__(self, message: str, version_key: str | None = None):
        super().__init__(message)
        self.version_key = version_key


class PackFetchError(PackError):
    """
    Remote pack download failed (network error, timeout or non-2xx status).

    Example:
        raise PackFetchError("HTTP 404 fetching pack 2019")
    """

    pass


class EmptyPackError(PackError):
    """
    Pack text was obtained but produced zero valid query records.

    Distinct from a malformed block: individual bad blocks are skipped
    silently, this error means the whole pack is unusable.
    """

    def __init__(self, message: str, version_key: str | None = None):
        super().__init__(message)
        self.version_key = version_key


# ============================================================================
# Execution Errors
# ============================================================================


class ExecutionError(SqlDiagnosticError):
    """
    Base class for query execution errors.

    Per-query failures are retried and then recorded as failed outcomes
    unless the batch is configured to stop on the first error.
    """

    pass


class QueryTimeoutError(ExecutionError):
    """
    A single query attempt exceeded its timeout.

    Example:
        raise QueryTimeoutError("Query exceeded timeout of 30000ms")
    """

    pass


class QueryExecutionError(ExecutionError):
    """
    The executor reported a failure for a query (connection fault, SQL error).

    Executors may raise this or any other exception; the engine treats every
    exception from an executor call as a failed attempt.
    """

    pass


class BatchAbortedError(ExecutionError):
    """
    A query failed terminally while continue_on_error was disabled.

    The message is "<query name>: <underlying error message>" so operators
    can correlate the abort with a specific diagnostic query. The underlying
    exception is available as `error` and as `__cause__`.

    Attributes:
        query_id: Identifier of the failing query record
        query_name: Human-readable name of the failing query record
        error_message: Underlying error message, undecorated
        error: The original exception raised by the executor
        outcomes: Outcomes of the records completed before the abort
    """

    def __init__(
        self,
        query_id: str,
        query_name: str,
        error: BaseException,
        outcomes: tuple = (),
    ):
        self.query_id = query_id
        self.query_name = query_name
        self.error = error
        self.error_message = str(error)
        self.outcomes = outcomes
        super().__init__(f"{query_name}: {self.error_message}")


# ============================================================================
# Storage Errors
# ============================================================================


class StorageError(SqlDiagnosticError):
    """
    Base class for artifact storage errors.

    Should be caught and result in exit code 2 (storage error).
    """

    pass


class ArtifactWriteError(StorageError):
    """
    A run artifact (JSON file, run directory) could not be written.

    Example:
        raise ArtifactWriteError("Cannot write results.json: disk full")
    """

    pass
