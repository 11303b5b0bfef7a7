"""Error taxonomy for the svn layer.

Non-zero exit codes are not errors: they come back as a failed
ExecutionResult. Everything here is a setup fault, a builder misuse,
or an interrupted run.
"""

from __future__ import annotations

from typing import Optional, Sequence


class SvnError(Exception):
    """Base class for every error raised by the svn layer."""


class CommandError(SvnError, ValueError):
    """Raised when a command factory is given arguments svn would reject."""


class SvnLaunchError(SvnError):
    """Raised when the svn process could not be started."""

    def __init__(self, message: str, args: Sequence[str] = (), cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.argv = list(args)
        self.cause = cause


class SvnNotFoundError(SvnLaunchError):
    """Raised when the svn executable is not installed or not on PATH."""


class WorkingCopyNotFoundError(SvnLaunchError):
    """Raised when the working directory for a run does not exist."""

    def __init__(self, path: str, args: Sequence[str] = ()) -> None:
        super().__init__(f"Working copy not found at: {path}", args)
        self.path = path


class SvnCanceledError(SvnError):
    """Raised when a run was canceled; the process tree is already gone."""

    def __init__(self, args: Sequence[str] = ()) -> None:
        super().__init__("svn operation was canceled")
        self.argv = list(args)


class SvnTimeoutError(SvnError):
    """Raised when a run exceeded its timeout; the process tree is already gone."""

    def __init__(self, timeout: float, args: Sequence[str] = ()) -> None:
        super().__init__(f"svn command timed out after {timeout:g}s: svn {' '.join(args)}")
        self.timeout = timeout
        self.argv = list(args)
