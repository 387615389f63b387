"""Configuration loader and validator."""

import logging
from pathlib import Path
from typing import Any, Optional

import yaml

from competitions.models import DistributionMethod
from competitions.paths import get_default_db_path

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(Exception):
    """Configuration validation error."""

    pass


def load_config(path: str) -> dict[str, Any]:
    """Load configuration from YAML file.

    Args:
        path: Path to YAML config file

    Returns:
        Dictionary with configuration values

    Raises:
        ConfigError: If file not found or invalid YAML
    """
    config_file = Path(path)

    if not config_file.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file: {e}")

    if config is None:
        raise ConfigError("Config file is empty")

    if not isinstance(config, dict):
        raise ConfigError("Config file must contain a mapping")

    return config


def validate_config(config: dict[str, Any]) -> dict[str, Any]:
    """Validate configuration values and fill in defaults.

    Args:
        config: Configuration dictionary

    Returns:
        Validated and normalized configuration

    Raises:
        ConfigError: If validation fails
    """
    validated = {}

    # Database path (optional, default in data dir)
    db_path = config.get("database_path")
    if db_path is not None and not isinstance(db_path, str):
        raise ConfigError("database_path must be a string")
    validated["database_path"] = db_path or str(get_default_db_path())

    # Distribution method (optional, default ranked)
    method = config.get("distribution_method", DistributionMethod.RANKED.value)
    try:
        validated["distribution_method"] = DistributionMethod(method)
    except ValueError:
        raise ConfigError(f"distribution_method must be 'ranked' or 'unranked', got '{method}'")

    # Winners per group (optional, default 2)
    winners = config.get("winners_per_group", 2)
    if isinstance(winners, bool) or not isinstance(winners, int) or winners < 1:
        raise ConfigError("winners_per_group must be a positive integer")
    validated["winners_per_group"] = winners

    # Generate pending round robin matches with the groups
    create_fixtures = config.get("create_fixtures", False)
    if not isinstance(create_fixtures, bool):
        raise ConfigError("create_fixtures must be true or false")
    validated["create_fixtures"] = create_fixtures

    level = str(config.get("log_level", "INFO")).upper()
    if level not in LOG_LEVELS:
        raise ConfigError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got '{level}'")
    validated["log_level"] = level

    return validated


def load_and_validate_config(path: Optional[str] = None) -> dict[str, Any]:
    """Load and validate configuration in one step.

    Args:
        path: Path to YAML config file; defaults only when None

    Returns:
        Validated configuration dictionary

    Raises:
        ConfigError: If loading or validation fails
    """
    config = load_config(path) if path else {}
    validated = validate_config(config)
    logging.getLogger(__name__).debug("Loaded config: %s", validated)
    return validated
