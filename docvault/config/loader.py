"""YAML configuration loader with environment variable overrides.

Configuration is resolved in layers (later layers win):

    1. ``config/docvault.yaml`` -- the ``content:`` section holds defaults
    2. ``.env`` file / ``DOCVAULT_*`` environment variables
    3. Keyword overrides passed to :func:`load_settings`

Pydantic validation failures are re-raised as :class:`ConfigurationError`
so callers handle a single error type for bad configuration.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import ValidationError

from docvault.config.settings import ContentSettings
from docvault.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)


def load_settings(path: str | Path = "config/docvault.yaml", **overrides: Any) -> ContentSettings:
    """Build :class:`ContentSettings` from YAML, environment and *overrides*.

    Args:
        path: YAML file to read; a missing file is treated as empty.
        **overrides: Field values that take precedence over everything else.

    Returns:
        Validated settings.
    """
    config_path = Path(path)
    yaml_config: dict[str, Any] = {}
    if config_path.exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Could not parse {config_path}: {exc}") from exc
        if not isinstance(yaml_config, dict):
            raise ConfigurationError(f"{config_path} must contain a mapping at the top level")

    merged: dict[str, Any] = dict(yaml_config.get("content") or {})

    try:
        # Only values actually present in the environment / .env override YAML.
        env_values = ContentSettings().model_dump(exclude_unset=True)
        _deep_merge(merged, env_values)
        _deep_merge(merged, overrides)
        settings = ContentSettings(**merged)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid content settings: {exc}") from exc

    logger.debug(
        "settings_loaded",
        config_file=str(config_path) if config_path.exists() else None,
        content_dir=str(settings.content_dir),
    )
    return settings


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
