"""Load and merge configuration from .svnpilot.toml and env vars."""

from __future__ import annotations

import dataclasses
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from svnpilot.config.schema import (
    LOG_LIMIT_MAX,
    TIMEOUT_MAX_SECONDS,
    TIMEOUT_MIN_SECONDS,
    LogConfig,
    OutputConfig,
    SvnConfig,
    SvnPilotConfig,
    clamp,
)

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".svnpilot.toml"


class ConfigError(Exception):
    """Raised when config is malformed or unreadable."""


def find_config_file(wc_root: Path, override: Optional[str] = None) -> Optional[Path]:
    """Locate the config file. *override* takes precedence."""
    if override:
        p = Path(override)
        if not p.is_file():
            raise ConfigError(f"Config file not found: {override}")
        return p
    candidate = wc_root / CONFIG_FILENAME
    return candidate if candidate.is_file() else None


def _parse_toml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Failed to parse {path}: {exc}") from exc


def _merge_env_overrides(cfg: SvnPilotConfig) -> None:
    """Apply SVNPILOT_* environment variable overrides."""
    if val := os.environ.get("SVNPILOT_SVN_PATH"):
        cfg.svn.executable = val
    if val := os.environ.get("SVNPILOT_TIMEOUT"):
        try:
            cfg.svn.timeout_seconds = clamp(int(val), TIMEOUT_MIN_SECONDS, TIMEOUT_MAX_SECONDS)
        except ValueError:
            logger.debug("Ignoring invalid SVNPILOT_TIMEOUT=%r", val)
    if val := os.environ.get("SVNPILOT_FORMAT"):
        if val in ("terminal", "json"):
            cfg.output.format = val  # type: ignore[assignment]
    if val := os.environ.get("SVNPILOT_LOG_LIMIT"):
        try:
            cfg.log.limit = clamp(int(val), 1, LOG_LIMIT_MAX)
        except ValueError:
            logger.debug("Ignoring invalid SVNPILOT_LOG_LIMIT=%r", val)


def _build_section(data: Dict[str, Any], cls: type, section: str):
    """Build a dataclass from a TOML section dict, ignoring unknown keys."""
    table = data.get(section, {})
    if not isinstance(table, dict):
        raise ConfigError(f"[{section}] must be a table")
    valid_fields = {f.name for f in dataclasses.fields(cls)}
    filtered = {k: v for k, v in table.items() if k in valid_fields}
    try:
        return cls(**filtered)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid value in [{section}]: {exc}") from exc


def load_config(
    wc_root: Path,
    config_override: Optional[str] = None,
) -> SvnPilotConfig:
    """Load, validate, and return a SvnPilotConfig."""
    config_path = find_config_file(wc_root, config_override)

    if config_path is None:
        cfg = SvnPilotConfig()
    else:
        raw = _parse_toml(config_path)
        cfg = SvnPilotConfig(
            version=str(raw.get("version", "1.0")),
            svn=_build_section(raw, SvnConfig, "svn"),
            log=_build_section(raw, LogConfig, "log"),
            output=_build_section(raw, OutputConfig, "output"),
        )
        logger.debug("Loaded configuration from %s", config_path)

    _merge_env_overrides(cfg)
    return cfg
