"""
Policy file loading.

Reads a YAML (or JSON) policy file into a validated ``PolicyConfig``.
Any problem (missing file, unreadable file, syntax error, unknown key,
wrong type) raises ``ConfigurationError``: the gate must refuse to start
rather than fall back to a permissive default.

A policy file may hold the fields at the top level or under a
``policy:`` key, so the section can live inside a larger config file::

    policy:
      deny_network: true
      path_denylist: [".env", "secrets/"]
      command_allowlist: [pytest, npm]
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from toolgate.core.models import PolicyConfig
from toolgate.exceptions import ConfigurationError
from toolgate.logging import get_logger

logger = get_logger("toolgate.policy")


def parse_policy(raw: str, *, source: str = "<string>", format: str = "yaml") -> PolicyConfig:
    """Parse raw text into a PolicyConfig.

    Args:
        raw: File contents.
        source: Name used in error messages.
        format: ``"yaml"`` (default) or ``"json"``.
    """
    try:
        data: Any = json.loads(raw) if format == "json" else yaml.safe_load(raw)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationError(source, f"cannot parse {format}: {exc}") from exc

    if data is None:
        raise ConfigurationError(source, "file is empty")
    if not isinstance(data, dict):
        raise ConfigurationError(source, f"expected a mapping, got {type(data).__name__}")

    section = data.get("policy", data)
    if not isinstance(section, dict):
        raise ConfigurationError(source, "'policy' must be a mapping")

    try:
        return PolicyConfig.model_validate(section)
    except ValidationError as exc:
        raise ConfigurationError(
            source,
            f"{exc.error_count()} validation error(s)",
            details={"errors": exc.errors(include_url=False)},
        ) from exc


def load_policy(path: str | Path) -> PolicyConfig:
    """Load and validate a policy file; the format follows the suffix."""
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(str(path), f"cannot read file: {exc}") from exc

    fmt = "json" if path.suffix.lower() == ".json" else "yaml"
    config = parse_policy(raw, source=str(path), format=fmt)
    logger.info("Loaded policy from %s", path)
    return config
