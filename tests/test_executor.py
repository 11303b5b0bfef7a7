"""Tests for the svn process runner.

The Python interpreter stands in for svn so the stream, exit-code and
termination handling can be driven from small inline scripts.
"""

from __future__ import annotations

import asyncio
import json
import os
import sys
import textwrap
import time

import pytest

from svnpilot.config.schema import SvnPilotConfig
from svnpilot.svn.command import Command
from svnpilot.svn.errors import (
    SvnCanceledError,
    SvnLaunchError,
    SvnNotFoundError,
    SvnTimeoutError,
    WorkingCopyNotFoundError,
)
from svnpilot.svn.executor import ExecutionResult, SvnExecutor, parse_xml


@pytest.fixture
def executor() -> SvnExecutor:
    return SvnExecutor(executable=sys.executable, poll_interval=0.05)


@pytest.fixture
def echo_args(tmp_path):
    """Script that prints its argv (minus the script name) as JSON."""
    script = tmp_path / "echo_args.py"
    script.write_text("import json, sys\nprint(json.dumps(sys.argv[1:]))\n")
    return str(script)


def _process_gone(pid: int) -> bool:
    try:
        with open(f"/proc/{pid}/stat") as f:
            state = f.read().rsplit(")", 1)[1].split()[0]
    except FileNotFoundError:
        return True
    return state in ("Z", "X")


class TestExecutionResult:
    def test_success(self):
        result = ExecutionResult(exit_code=0, stdout="ok")
        assert result.success
        assert result.error is None
        assert result.output == "ok"

    def test_error_prefers_svn_error_line(self):
        result = ExecutionResult(
            exit_code=1,
            stderr="svn: warning: W155007: something\nsvn: E155007: '/x' is not a working copy\n",
        )
        assert not result.success
        assert result.error == "svn: E155007: '/x' is not a working copy"

    def test_error_falls_back_to_stderr_then_code(self):
        assert ExecutionResult(exit_code=2, stderr="boom\n").error == "boom"
        assert ExecutionResult(exit_code=3).error == "svn exited with code 3"

    def test_output_on_failure_is_stderr(self):
        assert ExecutionResult(exit_code=1, stdout="o", stderr="e").output == "e"


class TestParseXml:
    def test_well_formed(self):
        root = parse_xml("<status><target path='.'/></status>")
        assert root.tag == "status"

    @pytest.mark.parametrize("text", [None, "", "   ", "<status><target>", "not xml"])
    def test_unusable(self, text):
        assert parse_xml(text) is None


class TestRun:
    @pytest.mark.asyncio
    async def test_captures_stdout_and_exit_code(self, executor):
        result = await executor.run_args(["-c", "print('one'); print('two')"])
        assert result.success
        assert result.exit_code == 0
        assert result.stdout == "one\ntwo"
        assert result.stderr == ""
        assert result.args == ("-c", "print('one'); print('two')")
        assert result.duration >= 0

    @pytest.mark.asyncio
    async def test_non_zero_exit_is_a_result(self, executor):
        script = "import sys; sys.stderr.write('svn: E155007: not a working copy\\n'); sys.exit(1)"
        result = await executor.run_args(["-c", script])
        assert not result.success
        assert result.exit_code == 1
        assert result.error == "svn: E155007: not a working copy"

    @pytest.mark.asyncio
    async def test_observers_see_lines_in_order(self, executor):
        seen_out, seen_err = [], []
        script = textwrap.dedent("""\
            import sys
            for i in range(200):
                print(f"out {i}")
                sys.stderr.write(f"err {i}\\n")
        """)
        result = await executor.run_args(
            ["-c", script], on_stdout=seen_out.append, on_stderr=seen_err.append
        )
        assert seen_out == [f"out {i}" for i in range(200)]
        assert seen_err == [f"err {i}" for i in range(200)]
        assert result.stdout.splitlines() == seen_out

    @pytest.mark.asyncio
    async def test_large_output_on_both_streams(self, executor):
        script = textwrap.dedent("""\
            import sys
            chunk = "x" * 1000 + "\\n"
            for _ in range(500):
                sys.stdout.write(chunk)
                sys.stderr.write(chunk)
        """)
        result = await executor.run_args(["-c", script])
        assert len(result.stdout.splitlines()) == 500
        assert len(result.stderr.splitlines()) == 500

    @pytest.mark.asyncio
    async def test_very_long_line(self, executor):
        result = await executor.run_args(["-c", "print('y' * 300000)"])
        assert len(result.stdout) == 300000

    @pytest.mark.asyncio
    async def test_invalid_utf8_is_replaced(self, executor):
        script = "import sys; sys.stdout.buffer.write(b'caf\\xe9\\n')"
        result = await executor.run_args(["-c", script])
        assert result.stdout == "caf\ufffd"

    @pytest.mark.asyncio
    async def test_crlf_lines(self, executor):
        script = "import sys; sys.stdout.buffer.write(b'a\\r\\nb\\r\\n')"
        result = await executor.run_args(["-c", script])
        assert result.stdout == "a\nb"

    @pytest.mark.asyncio
    async def test_runs_in_working_directory(self, executor, tmp_path):
        result = await executor.run_args(["-c", "import os; print(os.getcwd())"], cwd=str(tmp_path))
        assert os.path.realpath(result.stdout) == os.path.realpath(str(tmp_path))

    @pytest.mark.asyncio
    async def test_stdin_is_closed(self, executor):
        result = await executor.run_args(["-c", "import sys; print(repr(sys.stdin.read()))"])
        assert result.stdout == "''"

    @pytest.mark.asyncio
    async def test_english_messages_environment(self, executor, monkeypatch):
        monkeypatch.setenv("LANGUAGE", "de")
        script = "import os, json; print(json.dumps([os.environ.get('LC_MESSAGES'), os.environ.get('LANGUAGE')]))"
        result = await executor.run_args(["-c", script])
        assert json.loads(result.stdout) == ["C", None]

    @pytest.mark.asyncio
    async def test_concurrent_runs_are_independent(self, executor):
        first, second = await asyncio.gather(
            executor.run_args(["-c", "print('first')"]),
            executor.run_args(["-c", "print('second')"]),
        )
        assert first.stdout == "first"
        assert second.stdout == "second"

    @pytest.mark.asyncio
    async def test_observer_failure_propagates(self, executor):
        def explode(line):
            raise RuntimeError("observer failed")

        with pytest.raises(RuntimeError, match="observer failed"):
            await executor.run_args(["-c", "print('x')"], on_stdout=explode)


class TestCommandRun:
    @pytest.mark.asyncio
    async def test_appends_non_interactive(self, executor, echo_args):
        result = await executor.run(Command(verb=echo_args, args=("status", "wc")))
        assert json.loads(result.stdout) == ["status", "wc", "--non-interactive"]

    @pytest.mark.asyncio
    async def test_interactive_when_disabled(self, echo_args):
        executor = SvnExecutor(executable=sys.executable, non_interactive=False)
        result = await executor.run(Command(verb=echo_args, args=("x",)))
        assert json.loads(result.stdout) == ["x"]

    @pytest.mark.asyncio
    async def test_xml_flag(self, executor, echo_args):
        result = await executor.run(Command(verb=echo_args, args=("a",), xml=True))
        assert json.loads(result.stdout) == ["--xml", "a", "--non-interactive"]

    @pytest.mark.asyncio
    async def test_command_working_directory(self, executor, tmp_path):
        script = tmp_path / "cwd.py"
        script.write_text("import os\nprint(os.getcwd())\n")
        result = await executor.run(Command(verb=str(script)).in_directory(str(tmp_path)))
        assert os.path.realpath(result.stdout) == os.path.realpath(str(tmp_path))


class TestRunXml:
    @pytest.mark.asyncio
    async def test_parses_payload(self, executor, tmp_path):
        script = tmp_path / "xml.py"
        script.write_text("print('<info><entry path=\"a\"/></info>')\n")
        root = await executor.run_xml(Command(verb=str(script)))
        assert root.find("entry").get("path") == "a"

    @pytest.mark.asyncio
    async def test_malformed_payload_is_none(self, executor, tmp_path):
        script = tmp_path / "bad.py"
        script.write_text("print('<info><entry>')\n")
        assert await executor.run_xml(Command(verb=str(script))) is None

    @pytest.mark.asyncio
    async def test_failure_is_none(self, executor, tmp_path):
        script = tmp_path / "fail.py"
        script.write_text("import sys\nprint('<info/>')\nsys.exit(1)\n")
        assert await executor.run_xml(Command(verb=str(script))) is None


class TestLaunchErrors:
    @pytest.mark.asyncio
    async def test_missing_executable(self, tmp_path):
        executor = SvnExecutor(executable=str(tmp_path / "no-such-svn"))
        with pytest.raises(SvnNotFoundError) as excinfo:
            await executor.run_args(["status"])
        assert isinstance(excinfo.value, SvnLaunchError)
        assert excinfo.value.argv == ["status"]

    @pytest.mark.asyncio
    async def test_missing_working_directory(self, executor, tmp_path):
        missing = str(tmp_path / "gone")
        with pytest.raises(WorkingCopyNotFoundError) as excinfo:
            await executor.run_args(["-c", "pass"], cwd=missing)
        assert excinfo.value.path == missing

    @pytest.mark.asyncio
    async def test_version_unavailable(self, tmp_path):
        executor = SvnExecutor(executable=str(tmp_path / "no-such-svn"))
        assert await executor.version() is None
        assert not await executor.is_available()

    @pytest.mark.asyncio
    async def test_version_from_fake_svn(self, fake_svn):
        executor = SvnExecutor(executable=str(fake_svn.path))
        assert await executor.version() == "1.14.2"
        assert fake_svn.calls == ["--version --quiet"]
        assert await executor.is_available()
        assert fake_svn.calls == ["--version --quiet"] * 2


class TestTermination:
    @pytest.mark.asyncio
    async def test_timeout(self, executor):
        started = time.monotonic()
        with pytest.raises(SvnTimeoutError) as excinfo:
            await executor.run_args(["-c", "import time; time.sleep(30)"], timeout=0.5)
        assert time.monotonic() - started < 10
        assert excinfo.value.timeout == 0.5

    @pytest.mark.asyncio
    async def test_cancel_before_start_of_output(self, executor):
        cancel = asyncio.Event()
        cancel.set()
        with pytest.raises(SvnCanceledError):
            await executor.run_args(["-c", "import time; time.sleep(30)"], cancel=cancel)

    @pytest.mark.asyncio
    @pytest.mark.skipif(not sys.platform.startswith("linux"), reason="inspects /proc")
    async def test_cancel_kills_process_tree(self, executor):
        cancel = asyncio.Event()
        pids = []

        def on_line(line):
            pids.append(int(line))
            cancel.set()

        script = textwrap.dedent("""\
            import subprocess, sys, time
            child = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(60)"])
            print(child.pid, flush=True)
            time.sleep(60)
        """)
        started = time.monotonic()
        with pytest.raises(SvnCanceledError):
            await executor.run_args(["-c", script], cancel=cancel, on_stdout=on_line)
        assert time.monotonic() - started < 30

        child = pids[0]
        deadline = time.monotonic() + 5
        while not _process_gone(child) and time.monotonic() < deadline:
            await asyncio.sleep(0.05)
        assert _process_gone(child)

    @pytest.mark.asyncio
    async def test_task_cancellation_kills_process(self, executor):
        pids = []
        script = "import os, time; print(os.getpid(), flush=True); time.sleep(60)"
        task = asyncio.create_task(
            executor.run_args(["-c", script], on_stdout=lambda line: pids.append(int(line)))
        )
        while not pids:
            await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        if sys.platform.startswith("linux"):
            assert _process_gone(pids[0])


class TestFromConfig:
    def test_uses_svn_section(self):
        cfg = SvnPilotConfig()
        cfg.svn.executable = "/opt/svn/bin/svn"
        cfg.svn.timeout_seconds = 42
        executor = SvnExecutor.from_config(cfg)
        assert executor.executable == "/opt/svn/bin/svn"
        assert executor.timeout == 42
        assert executor.non_interactive
