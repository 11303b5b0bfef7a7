"""svn interface layer: command builders, the process runner and output parsers."""

from svnpilot.svn.command import Command
from svnpilot.svn.diff_parser import DiffParser, create_unified_diff, parse_diff_in_worker
from svnpilot.svn.errors import (
    CommandError,
    SvnCanceledError,
    SvnError,
    SvnLaunchError,
    SvnNotFoundError,
    SvnTimeoutError,
    WorkingCopyNotFoundError,
)
from svnpilot.svn.executor import ExecutionResult, SvnExecutor, parse_xml
from svnpilot.svn.models import DiffDocument, DiffLine, FileDiff, LineType, Unrecognized
from svnpilot.svn.working_copy import WorkingCopyService

__all__ = [
    "Command",
    "CommandError",
    "DiffDocument",
    "DiffLine",
    "DiffParser",
    "ExecutionResult",
    "FileDiff",
    "LineType",
    "SvnCanceledError",
    "SvnError",
    "SvnExecutor",
    "SvnLaunchError",
    "SvnNotFoundError",
    "SvnTimeoutError",
    "Unrecognized",
    "WorkingCopyNotFoundError",
    "WorkingCopyService",
    "create_unified_diff",
    "parse_diff_in_worker",
    "parse_xml",
]
