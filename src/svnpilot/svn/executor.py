"""svn subprocess runner: concurrent stream drains, polling, cancellation.

Host exceptions (launch and I/O errors) are converted to the
:mod:`svnpilot.svn.errors` vocabulary here and nowhere else.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import os
import re
import signal
import subprocess
import sys
import time
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, List, Optional, Sequence, Tuple

from svnpilot.svn.command import Command, version as version_command
from svnpilot.svn.errors import (
    SvnCanceledError,
    SvnError,
    SvnLaunchError,
    SvnNotFoundError,
    SvnTimeoutError,
    WorkingCopyNotFoundError,
)

if TYPE_CHECKING:
    from svnpilot.config.schema import SvnPilotConfig

logger = logging.getLogger(__name__)

LineObserver = Callable[[str], None]

_CHUNK_SIZE = 64 * 1024
_SVN_ERROR_RE = re.compile(r"^svn: E\d+:")


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one finished svn process. ``success`` follows the exit code."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""
    args: Tuple[str, ...] = ()
    duration: float = 0.0

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    @property
    def error(self) -> Optional[str]:
        """First ``svn: E...`` line of stderr, or all of stderr; None on success."""
        if self.success:
            return None
        for line in self.stderr.splitlines():
            if _SVN_ERROR_RE.match(line):
                return line.strip()
        return self.stderr.strip() or f"svn exited with code {self.exit_code}"

    @property
    def output(self) -> str:
        return self.stdout if self.success else self.stderr


def parse_xml(text: Optional[str]) -> Optional[ET.Element]:
    """Parse an ``--xml`` payload; malformed or empty input gives None."""
    if not text or not text.strip():
        return None
    try:
        return ET.fromstring(text)
    except ET.ParseError as exc:
        logger.debug("Discarding malformed XML output: %s", exc)
        return None


class _Drain:
    """Reads one pipe chunk-wise and splits it into lines of any length."""

    def __init__(self, observer: Optional[LineObserver]) -> None:
        self.lines: List[str] = []
        self._observer = observer
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    def _emit(self, line: str) -> None:
        if line.endswith("\r"):
            line = line[:-1]
        self.lines.append(line)
        if self._observer is not None:
            self._observer(line)

    def feed(self, chunk: bytes, final: bool = False) -> None:
        self._pending += self._decoder.decode(chunk, final=final)
        *complete, self._pending = self._pending.split("\n")
        for line in complete:
            self._emit(line)
        if final and self._pending:
            self._emit(self._pending)
            self._pending = ""

    async def run(self, stream: asyncio.StreamReader) -> None:
        while True:
            chunk = await stream.read(_CHUNK_SIZE)
            if not chunk:
                break
            self.feed(chunk)
        self.feed(b"", final=True)

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


class _Canceled(Exception):
    pass


class _TimedOut(Exception):
    pass


def _spawn_options() -> dict:
    if sys.platform == "win32":
        return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}
    return {"start_new_session": True}


async def _kill_tree(proc: asyncio.subprocess.Process) -> None:
    """Kill *proc* and every descendant, then reap it."""
    if sys.platform == "win32":
        try:
            killer = await asyncio.create_subprocess_exec(
                "taskkill", "/F", "/T", "/PID", str(proc.pid),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
            await killer.wait()
        except OSError:
            logger.warning("taskkill unavailable, killing pid %d only", proc.pid)
        if proc.returncode is None:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
    else:
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
        except PermissionError:
            if proc.returncode is None:
                proc.kill()
    await proc.wait()


class SvnExecutor:
    """Runs svn commands asynchronously.

    Each call owns its process and buffers; one executor can serve
    concurrent invocations.
    """

    def __init__(
        self,
        executable: str = "svn",
        timeout: Optional[float] = None,
        poll_interval: float = 0.1,
        non_interactive: bool = True,
        english_messages: bool = True,
    ) -> None:
        self.executable = executable
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.non_interactive = non_interactive
        self.english_messages = english_messages

    @classmethod
    def from_config(cls, cfg: "SvnPilotConfig") -> "SvnExecutor":
        svn = cfg.svn
        return cls(
            executable=svn.executable,
            timeout=svn.timeout_seconds,
            poll_interval=svn.poll_interval,
            non_interactive=svn.non_interactive,
            english_messages=svn.english_messages,
        )

    # ── public API ───────────────────────────────────────────────────────────

    async def run(
        self,
        command: Command,
        cwd: Optional[str] = None,
        cancel: Optional[asyncio.Event] = None,
        on_stdout: Optional[LineObserver] = None,
        on_stderr: Optional[LineObserver] = None,
        timeout: Optional[float] = None,
    ) -> ExecutionResult:
        """Run *command* and return its result.

        Raises SvnCanceledError when *cancel* is set before the process
        finishes, SvnTimeoutError on timeout and SvnLaunchError (or a
        subclass) when the process cannot be started.
        """
        argv = command.build_args()
        if self.non_interactive and not command.verb.startswith("-"):
            argv.append("--non-interactive")
        return await self.run_args(
            argv,
            cwd=cwd or command.working_directory,
            cancel=cancel,
            on_stdout=on_stdout,
            on_stderr=on_stderr,
            timeout=timeout,
        )

    async def run_args(
        self,
        args: Sequence[str],
        cwd: Optional[str] = None,
        cancel: Optional[asyncio.Event] = None,
        on_stdout: Optional[LineObserver] = None,
        on_stderr: Optional[LineObserver] = None,
        timeout: Optional[float] = None,
    ) -> ExecutionResult:
        """Run a raw argument vector (everything after the executable)."""
        argv = tuple(args)
        if cwd is not None and not os.path.isdir(cwd):
            raise WorkingCopyNotFoundError(cwd, argv)
        limit = timeout if timeout is not None else self.timeout

        logger.debug("Running %s %s (cwd=%s)", self.executable, " ".join(argv), cwd or os.getcwd())
        started = time.monotonic()
        try:
            proc = await asyncio.create_subprocess_exec(
                self.executable,
                *argv,
                cwd=cwd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=self._environment(),
                **_spawn_options(),
            )
        except FileNotFoundError as exc:
            raise SvnNotFoundError(
                f"svn executable not found: {self.executable}", argv, exc
            ) from exc
        except OSError as exc:
            raise SvnLaunchError(
                f"Failed to start {self.executable}: {exc}", argv, exc
            ) from exc

        out, err = _Drain(on_stdout), _Drain(on_stderr)
        assert proc.stdout is not None and proc.stderr is not None
        tasks = [
            asyncio.create_task(proc.wait()),
            asyncio.create_task(out.run(proc.stdout)),
            asyncio.create_task(err.run(proc.stderr)),
        ]
        try:
            await self._poll(tasks, cancel, None if limit is None else started + limit)
        except _Canceled:
            logger.info("Canceling svn %s (pid %d)", argv[0] if argv else "", proc.pid)
            await self._abort(proc, tasks)
            raise SvnCanceledError(argv) from None
        except _TimedOut:
            logger.info("svn %s timed out after %ss (pid %d)", argv[0] if argv else "", limit, proc.pid)
            await self._abort(proc, tasks)
            raise SvnTimeoutError(limit, argv) from None
        except BaseException:
            # includes asyncio.CancelledError of the awaiting task
            await self._abort(proc, tasks)
            raise

        duration = time.monotonic() - started
        exit_code = proc.returncode if proc.returncode is not None else -1
        logger.debug("svn %s exited with %d in %.2fs", argv[0] if argv else "", exit_code, duration)
        return ExecutionResult(
            exit_code=exit_code,
            stdout=out.text,
            stderr=err.text,
            args=argv,
            duration=duration,
        )

    async def run_xml(
        self,
        command: Command,
        cwd: Optional[str] = None,
        cancel: Optional[asyncio.Event] = None,
        on_stdout: Optional[LineObserver] = None,
        on_stderr: Optional[LineObserver] = None,
        timeout: Optional[float] = None,
    ) -> Optional[ET.Element]:
        """Run the ``--xml`` variant of *command* and parse its stdout.

        Returns None when svn fails or the payload is not well-formed XML;
        callers fall back to the text parsers.
        """
        result = await self.run(
            command.with_xml(),
            cwd=cwd,
            cancel=cancel,
            on_stdout=on_stdout,
            on_stderr=on_stderr,
            timeout=timeout,
        )
        if not result.success:
            logger.debug("XML %s failed: %s", command.verb, result.error)
            return None
        return parse_xml(result.stdout)

    async def version(self) -> Optional[str]:
        """``svn --version --quiet``, or None if svn cannot be run."""
        try:
            result = await self.run(version_command(quiet=True))
        except SvnError as exc:
            logger.debug("svn --version failed: %s", exc)
            return None
        if not result.success:
            return None
        first = result.stdout.strip().splitlines()
        return first[0].strip() if first else None

    async def is_available(self) -> bool:
        return await self.version() is not None

    # ── internals ────────────────────────────────────────────────────────────

    def _environment(self) -> dict:
        env = dict(os.environ)
        if self.english_messages:
            if "LC_ALL" in env:
                env.setdefault("LC_CTYPE", env.pop("LC_ALL"))
            env.pop("LANGUAGE", None)
            env["LC_MESSAGES"] = "C"
        return env

    async def _poll(
        self,
        tasks: List["asyncio.Task"],
        cancel: Optional[asyncio.Event],
        deadline: Optional[float],
    ) -> None:
        pending = set(tasks)
        while pending:
            done, pending = await asyncio.wait(pending, timeout=self.poll_interval)
            for task in done:
                # surface drain/observer failures immediately
                if task.exception() is not None:
                    raise task.exception()
            if not pending:
                break
            if cancel is not None and cancel.is_set():
                raise _Canceled()
            if deadline is not None and time.monotonic() >= deadline:
                raise _TimedOut()

    async def _abort(self, proc: asyncio.subprocess.Process, tasks: List["asyncio.Task"]) -> None:
        await _kill_tree(proc)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
