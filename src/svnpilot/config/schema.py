"""Configuration schema: one dataclass per config section."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

OutputFormat = Literal["terminal", "json"]

TIMEOUT_MIN_SECONDS = 10
TIMEOUT_MAX_SECONDS = 3600
LOG_LIMIT_MAX = 10000


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


@dataclass
class SvnConfig:
    executable: str = "svn"  # bare name resolves through PATH
    timeout_seconds: int = 300  # clamped to 10..3600
    poll_interval: float = 0.1
    non_interactive: bool = True
    english_messages: bool = True  # LC_MESSAGES=C so text parsers see English

    def __post_init__(self) -> None:
        self.timeout_seconds = clamp(int(self.timeout_seconds), TIMEOUT_MIN_SECONDS, TIMEOUT_MAX_SECONDS)
        if self.poll_interval <= 0:
            self.poll_interval = 0.1


@dataclass
class LogConfig:
    limit: int = 100  # clamped to 1..10000
    verbose: bool = True

    def __post_init__(self) -> None:
        self.limit = clamp(int(self.limit), 1, LOG_LIMIT_MAX)


@dataclass
class OutputConfig:
    format: OutputFormat = "terminal"
    show_summary: bool = True


@dataclass
class SvnPilotConfig:
    version: str = "1.0"
    svn: SvnConfig = field(default_factory=SvnConfig)
    log: LogConfig = field(default_factory=LogConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
