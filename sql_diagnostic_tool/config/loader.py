"""
Configuration loader for SQL Diagnostic Tool.

This module loads YAML configuration files, expands ${ENV_VAR} references
from the environment and validates the result with the Pydantic models in
config.schema.

Functions:
    load_config: Main entrypoint to load and validate diagnostic.config.yaml
    default_config: Configuration with every default applied
    expand_env_vars: Recursive ${ENV_VAR} expansion for parsed YAML
"""

import logging
import os
import re
from pathlib import Path

import yaml
from pydantic import ValidationError

from ..exceptions import ConfigFileNotFoundError, ConfigValidationError
from .schema import DiagnosticConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = "diagnostic.config.yaml"

_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def default_config() -> DiagnosticConfig:
    """Return the configuration used when no file is given."""
    return DiagnosticConfig()


def expand_env_vars(obj):
    """
    Recursively replace ${ENV_VAR} references in nested dicts/lists.

    A string that is exactly one reference becomes the variable's value;
    references embedded in longer strings are substituted in place.

    Raises:
        ConfigValidationError: If a referenced variable is not set
    """
    if isinstance(obj, dict):
        return {key: expand_env_vars(value) for key, value in obj.items()}

    if isinstance(obj, list):
        return [expand_env_vars(item) for item in obj]

    if isinstance(obj, str):

        def _lookup(match: re.Match) -> str:
            name = match.group(1)
            value = os.environ.get(name)
            if value is None:
                raise ConfigValidationError(
                    f"Environment variable ${{{name}}} not set. "
                    f"Please set it in your environment."
                )
            return value

        return _ENV_VAR_PATTERN.sub(_lookup, obj)

    return obj


def format_validation_error(error: ValidationError) -> str:
    """Render a Pydantic ValidationError as one "  - loc: msg" line per problem."""
    lines = []
    for item in error.errors():
        loc = ".".join(str(x) for x in item["loc"])
        lines.append(f"  - {loc}: {item['msg']}")
    return "\n".join(lines)


def load_config(config_path: str | Path | None = None) -> DiagnosticConfig:
    """
    Load and validate diagnostic.config.yaml.

    Args:
        config_path: Path to the YAML file; None returns default_config()

    Returns:
        Validated DiagnosticConfig

    Raises:
        ConfigFileNotFoundError: If config file doesn't exist at the specified path
        ConfigValidationError: If YAML is invalid, an environment variable is
            missing, or schema validation fails

    Example:
        >>> config = load_config("diagnostic.config.yaml")
        >>> config.queries.max_retries
        3

    Security:
        - Uses yaml.safe_load() to prevent code injection
        - Connection secrets should be referenced as ${VAR}, never inlined
    """
    if config_path is None:
        logger.debug("No configuration file given, using defaults")
        return default_config()

    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigFileNotFoundError(f"Configuration file not found: {config_path}")

    try:
        with config_path.open(encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigValidationError(f"Invalid YAML syntax in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigValidationError(
            f"Failed to read configuration file {config_path}: {e}"
        ) from e

    # An empty file means "all defaults"
    if raw_config is None:
        raw_config = {}

    if not isinstance(raw_config, dict):
        raise ConfigValidationError(
            f"Configuration root must be a mapping in {config_path}, "
            f"got {type(raw_config).__name__}"
        )

    raw_config = expand_env_vars(raw_config)

    try:
        config = DiagnosticConfig.model_validate(raw_config)
    except ValidationError as e:
        raise ConfigValidationError(
            f"Configuration validation failed in {config_path}:\n"
            + format_validation_error(e)
        ) from e

    logger.info(f"Loaded configuration from {config_path}")
    return config
