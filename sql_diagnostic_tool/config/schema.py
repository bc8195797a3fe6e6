"""
Configuration schema models for SQL Diagnostic Tool.

This module defines Pydantic models for validating and parsing the
diagnostic.config.yaml file. Every section is optional; omitted sections and
fields take the defaults below, so an empty mapping is a valid configuration.

Models:
    PacksConfig: Where query packs live and how to download missing ones
    QueryConfig: Per-query timeout, retry and abort policy
    OutputConfig: Where run artifacts are written
    LoggingConfig: Log verbosity
    DiagnosticConfig: Root configuration model (validates entire YAML)

Example YAML:
    packs:
      data_dir: ./data
      remote_enabled: true
    queries:
      timeout_ms: 30000
      max_retries: 3
      retry_delay_ms: 1000
      continue_on_error: true
    output:
      directory: ./reports
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, field_validator

from ..engine.retry import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY_MS,
    DEFAULT_TIMEOUT_MS,
    MIN_TIMEOUT_MS,
    ExecutionOptions,
)
from ..packs.retry_config import REQUEST_TIMEOUT, USER_AGENT
from ..packs.versions import KNOWN_KEYS

# Subdirectory of data_dir that holds the pack files and manifest
PACKS_SUBDIR = "query-packs"


class PacksConfig(BaseModel):
    """
    Query pack location settings.

    Attributes:
        data_dir: Base data directory; packs live in <data_dir>/query-packs
        remote_enabled: Download a pack when it is not available locally
        remote_timeout_seconds: Per-request download timeout
        user_agent: User-Agent header sent to the pack host
        urls: Per-key download URL overrides (merged over the built-in table)
    """

    data_dir: str = "./data"
    remote_enabled: bool = True
    remote_timeout_seconds: float = REQUEST_TIMEOUT
    user_agent: str = USER_AGENT
    urls: dict[str, str] = {}

    @field_validator("data_dir")
    @classmethod
    def validate_data_dir(cls, v: str) -> str:
        """Validate data_dir is non-empty."""
        if not v or v.isspace():
            raise ValueError("data_dir cannot be empty")
        return v

    @field_validator("remote_timeout_seconds")
    @classmethod
    def validate_remote_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"remote_timeout_seconds must be positive, got: {v}")
        return v

    @field_validator("urls")
    @classmethod
    def validate_urls(cls, v: dict[str, str]) -> dict[str, str]:
        """Only known pack keys can be overridden, and only with http(s) URLs."""
        for key, url in v.items():
            if key not in KNOWN_KEYS:
                raise ValueError(
                    f"Unknown pack key '{key}'. Known keys: {', '.join(KNOWN_KEYS)}"
                )
            if not url.startswith(("http://", "https://")):
                raise ValueError(f"URL for pack '{key}' must start with http:// or https://")
        return v

    @property
    def pack_dir(self) -> Path:
        return Path(self.data_dir) / PACKS_SUBDIR


class QueryConfig(BaseModel):
    """
    Query execution policy.

    Attributes:
        timeout_ms: Upper bound for one attempt (at least 1000)
        max_retries: Retries after the first failed attempt (0 disables retries)
        retry_delay_ms: Constant delay between attempts
        continue_on_error: Keep going after a query fails terminally
    """

    timeout_ms: int = DEFAULT_TIMEOUT_MS
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_delay_ms: int = DEFAULT_RETRY_DELAY_MS
    continue_on_error: bool = True

    @field_validator("timeout_ms")
    @classmethod
    def validate_timeout_ms(cls, v: int) -> int:
        if v < MIN_TIMEOUT_MS:
            raise ValueError(f"timeout_ms must be at least {MIN_TIMEOUT_MS}, got: {v}")
        return v

    @field_validator("max_retries")
    @classmethod
    def validate_max_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"max_retries cannot be negative, got: {v}")
        return v

    @field_validator("retry_delay_ms")
    @classmethod
    def validate_retry_delay_ms(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"retry_delay_ms cannot be negative, got: {v}")
        return v

    def to_execution_options(self) -> ExecutionOptions:
        return ExecutionOptions(
            timeout_ms=self.timeout_ms,
            max_retries=self.max_retries,
            retry_delay_ms=self.retry_delay_ms,
            continue_on_error=self.continue_on_error,
        )


class OutputConfig(BaseModel):
    """
    Artifact output settings.

    Attributes:
        directory: Parent directory for per-run artifact directories
        include_raw_data: Write returned rows into results.json
    """

    directory: str = "./reports"
    include_raw_data: bool = True

    @field_validator("directory")
    @classmethod
    def validate_directory(cls, v: str) -> str:
        """Validate directory is non-empty."""
        if not v or v.isspace():
            raise ValueError("directory cannot be empty")
        return v


class LoggingConfig(BaseModel):
    level: Literal["debug", "info", "warning", "error"] = "info"


class DiagnosticConfig(BaseModel):
    """
    Root configuration model for diagnostic.config.yaml.

    Attributes:
        packs: Query pack settings
        queries: Execution policy
        output: Artifact settings
        logging: Log verbosity
    """

    packs: PacksConfig = PacksConfig()
    queries: QueryConfig = QueryConfig()
    output: OutputConfig = OutputConfig()
    logging: LoggingConfig = LoggingConfig()
