"""Load harness configuration from YAML files."""

import asyncio
import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from mcp_test_harness.models.definition import TestConfig

log = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when a configuration file cannot be read or is invalid."""


async def load_test_config(config_path: Path) -> TestConfig:
    """Read and validate a harness configuration file.

    Args:
        config_path: Path to the YAML configuration

    Returns:
        The validated configuration

    Raises:
        ConfigurationError: If the file is missing, not YAML, or fails validation

    """
    log.debug("Loading configuration from %s", config_path)
    try:
        content = await asyncio.to_thread(config_path.read_text)
    except OSError as e:
        raise ConfigurationError(f"Cannot read {config_path}: {e}") from e

    return parse_test_config(content, source=str(config_path))


def parse_test_config(content: str, source: str = "<string>") -> TestConfig:
    """Parse YAML text into a validated configuration."""
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {source}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Expected a mapping at the top of {source}")

    try:
        config = TestConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {source}: {e}") from e

    for suite in config.test_suites:
        ids = [case.id for case in suite.test_cases]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ConfigurationError(
                f"Duplicate case ids in suite '{suite.name}': {', '.join(duplicates)}"
            )

    log.info(
        "Loaded %d suite(s) with %d case(s) from %s",
        len(config.test_suites),
        sum(len(s.test_cases) for s in config.test_suites),
        source,
    )
    return config
