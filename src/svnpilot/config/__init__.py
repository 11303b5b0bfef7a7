"""Configuration loading, schema, and defaults."""

from svnpilot.config.loader import ConfigError, load_config
from svnpilot.config.schema import LogConfig, OutputConfig, SvnConfig, SvnPilotConfig

__all__ = [
    "ConfigError",
    "LogConfig",
    "OutputConfig",
    "SvnConfig",
    "SvnPilotConfig",
    "load_config",
]
