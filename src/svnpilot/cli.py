"""svnpilot command-line interface over the svn runner and parsers."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable, Optional, Tuple, TypeVar

import typer
from rich.console import Console
from rich.markup import escape

from svnpilot import __version__
from svnpilot.config.schema import SvnPilotConfig
from svnpilot.svn.command import Command
from svnpilot.svn.executor import ExecutionResult, SvnExecutor
from svnpilot.svn.models import StatusFilter, filter_statuses

app = typer.Typer(
    name="svnpilot",
    help="Run svn and read its output as structured data.",
    add_completion=False,
    no_args_is_help=True,
)

console = Console(stderr=True)
out = Console(highlight=False)

T = TypeVar("T")

_CONFIG_HELP = "Path to .svnpilot.toml"
_FORMAT_HELP = "Output format: terminal | json"


def _configure_logging(verbose: bool) -> None:
    if not verbose:
        return
    from rich.logging import RichHandler

    logging.basicConfig(
        level=logging.DEBUG,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _setup(config: Optional[str], format: Optional[str], verbose: bool) -> Tuple[SvnPilotConfig, SvnExecutor]:
    """Load config, apply CLI overrides, build the executor. Exit 2 on error."""
    from svnpilot.config.loader import ConfigError, load_config

    _configure_logging(verbose)
    try:
        cfg = load_config(Path.cwd(), config)
    except ConfigError as exc:
        console.print(f"[bold red]Config error:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=2) from exc

    if format:
        if format not in ("terminal", "json"):
            console.print(f"[bold red]Invalid format:[/bold red] {escape(format)}")
            raise typer.Exit(code=2)
        cfg.output.format = format  # type: ignore[assignment]

    return cfg, SvnExecutor.from_config(cfg)


def _execute(executor: SvnExecutor, command: Command) -> ExecutionResult:
    """Run *command*; exit 2 on setup errors, 1 (with stderr) on svn failure."""
    from svnpilot.output import terminal
    from svnpilot.svn.errors import SvnError

    try:
        result = asyncio.run(executor.run(command))
    except SvnError as exc:
        console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=2) from exc
    if not result.success:
        terminal.render_failure(result, console)
        raise typer.Exit(code=1)
    return result


def _structured(
    executor: SvnExecutor,
    command: Command,
    from_xml: Callable[..., T],
    from_text: Callable[[str], T],
) -> T:
    """XML first; text form when svn gives no usable XML."""
    from svnpilot.svn.errors import SvnError
    from svnpilot.svn.executor import parse_xml

    try:
        xml_result = asyncio.run(executor.run(command.with_xml()))
    except SvnError as exc:
        console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=2) from exc
    if xml_result.success:
        root = parse_xml(xml_result.stdout)
        if root is not None:
            return from_xml(root)
    return from_text(_execute(executor, command).stdout)


def _revision_range(value: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    if not value:
        return None, None
    start, _, end = value.partition(":")
    return start or None, end or None


def _build(factory: Callable[..., T], *args, **kwargs) -> T:
    from svnpilot.svn.errors import CommandError

    try:
        return factory(*args, **kwargs)
    except CommandError as exc:
        console.print(f"[bold red]Invalid arguments:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=2) from exc


# ── status ────────────────────────────────────────────────────────────────────


@app.command()
def status(
    path: str = typer.Argument(".", help="Working-copy path"),
    show_updates: bool = typer.Option(False, "--show-updates", "-u", help="Check the repository for newer revisions"),
    all_entries: bool = typer.Option(False, "--all", "-a", help="Show every item, not only changed ones"),
    status_filter: StatusFilter = typer.Option(StatusFilter.ALL, "--filter", help="Only show entries of this kind"),
    match: str = typer.Option("", "--match", "-m", help="Only show paths containing this text"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help=_CONFIG_HELP),
    format: Optional[str] = typer.Option(None, "--format", "-f", help=_FORMAT_HELP),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
) -> None:
    """Show working-copy status."""
    from svnpilot.output import json_report, terminal
    from svnpilot.svn import command as cmd
    from svnpilot.svn.parsers import StatusParser

    cfg, executor = _setup(config, format, verbose)
    command = _build(cmd.status, path, verbose=all_entries, show_updates=show_updates)
    entries = _structured(executor, command, StatusParser.parse_xml, StatusParser.parse)
    entries = filter_statuses(entries, status_filter, match)

    if cfg.output.format == "json":
        print(json_report.render(entries))
    else:
        terminal.render_status(entries, out, show_summary=cfg.output.show_summary)


# ── diff ──────────────────────────────────────────────────────────────────────


@app.command()
def diff(
    path: str = typer.Argument(".", help="Working-copy path or URL"),
    revision: Optional[str] = typer.Option(None, "--revision", "-r", help="REV or START:END"),
    change: Optional[int] = typer.Option(None, "--change", help="Show the changes made in this revision"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help=_CONFIG_HELP),
    format: Optional[str] = typer.Option(None, "--format", "-f", help=_FORMAT_HELP),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
) -> None:
    """Show a parsed, coloured diff with addition/deletion counts."""
    from svnpilot.output import json_report, terminal
    from svnpilot.svn import command as cmd
    from svnpilot.svn.diff_parser import parse_diff_in_worker

    cfg, executor = _setup(config, format, verbose)
    start, end = _revision_range(revision)
    command = _build(cmd.diff, path, start=start, end=end, change=change)
    result = _execute(executor, command)
    document = asyncio.run(parse_diff_in_worker(result.stdout))

    if cfg.output.format == "json":
        print(json_report.render(document))
    else:
        terminal.render_diff(document, out, show_summary=cfg.output.show_summary)


# ── log ───────────────────────────────────────────────────────────────────────


@app.command()
def log(
    path: str = typer.Argument(".", help="Working-copy path or URL"),
    limit: Optional[int] = typer.Option(None, "--limit", "-l", help="Maximum number of entries"),
    revision: Optional[str] = typer.Option(None, "--revision", "-r", help="REV or START:END"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help=_CONFIG_HELP),
    format: Optional[str] = typer.Option(None, "--format", "-f", help=_FORMAT_HELP),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
) -> None:
    """Show revision history."""
    from svnpilot.config.schema import LOG_LIMIT_MAX, clamp
    from svnpilot.output import json_report, terminal
    from svnpilot.svn import command as cmd
    from svnpilot.svn.parsers import LogParser

    cfg, executor = _setup(config, format, verbose)
    start, end = _revision_range(revision)
    command = _build(
        cmd.log,
        path,
        limit=clamp(limit, 1, LOG_LIMIT_MAX) if limit is not None else cfg.log.limit,
        verbose=cfg.log.verbose,
        start=start,
        end=end,
    )
    entries = _structured(executor, command, LogParser.parse_xml, LogParser.parse)

    if cfg.output.format == "json":
        print(json_report.render(entries))
    else:
        terminal.render_log(entries, out)


# ── info ──────────────────────────────────────────────────────────────────────


@app.command()
def info(
    path: str = typer.Argument(".", help="Working-copy path or URL"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help=_CONFIG_HELP),
    format: Optional[str] = typer.Option(None, "--format", "-f", help=_FORMAT_HELP),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
) -> None:
    """Show working-copy or repository information."""
    from svnpilot.output import json_report, terminal
    from svnpilot.svn import command as cmd
    from svnpilot.svn.parsers import InfoParser

    cfg, executor = _setup(config, format, verbose)
    entries = _structured(executor, _build(cmd.info, path), InfoParser.parse_xml, InfoParser.parse)

    if cfg.output.format == "json":
        print(json_report.render(entries))
    else:
        terminal.render_info(entries, out)


# ── blame ─────────────────────────────────────────────────────────────────────


@app.command()
def blame(
    path: str = typer.Argument(..., help="File path or URL"),
    revision: Optional[str] = typer.Option(None, "--revision", "-r", help="Revision to blame"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help=_CONFIG_HELP),
    format: Optional[str] = typer.Option(None, "--format", "-f", help=_FORMAT_HELP),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
) -> None:
    """Show per-line revision and author."""
    from svnpilot.output import json_report, terminal
    from svnpilot.svn import command as cmd
    from svnpilot.svn.parsers import BlameParser

    cfg, executor = _setup(config, format, verbose)
    command = _build(cmd.blame, path, revision=revision)
    result = BlameParser.parse(_execute(executor, command).stdout, path=path)

    if cfg.output.format == "json":
        print(json_report.render(result))
    else:
        terminal.render_blame(result, out)


# ── ls ────────────────────────────────────────────────────────────────────────


@app.command("ls")
def ls(
    path: str = typer.Argument(".", help="Working-copy path or URL"),
    revision: Optional[str] = typer.Option(None, "--revision", "-r", help="Revision to list"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help=_CONFIG_HELP),
    format: Optional[str] = typer.Option(None, "--format", "-f", help=_FORMAT_HELP),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
) -> None:
    """List directory entries in the repository."""
    from svnpilot.output import json_report, terminal
    from svnpilot.svn import command as cmd
    from svnpilot.svn.parsers import ListParser

    cfg, executor = _setup(config, format, verbose)
    command = _build(cmd.list_, path, revision=revision)
    entries = _structured(executor, command, ListParser.parse_xml, ListParser.parse)

    if cfg.output.format == "json":
        print(json_report.render(entries))
    else:
        terminal.render_list(entries, out)


# ── check ─────────────────────────────────────────────────────────────────────


@app.command()
def check(
    config: Optional[str] = typer.Option(None, "--config", "-c", help=_CONFIG_HELP),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
) -> None:
    """Check that the svn executable can be run."""
    _, executor = _setup(config, None, verbose)
    found = asyncio.run(executor.version())
    if found is None:
        console.print(f"[red]✗[/red] svn not available ({escape(executor.executable)})")
        raise typer.Exit(code=1)
    console.print(f"[green]✓[/green] svn {found} ({escape(executor.executable)})")


# ── init ──────────────────────────────────────────────────────────────────────


@app.command()
def init(
    directory: str = typer.Argument(".", help="Where to write .svnpilot.toml"),
) -> None:
    """Generate a starter .svnpilot.toml."""
    from svnpilot.config.defaults import DEFAULT_TOML
    from svnpilot.config.loader import CONFIG_FILENAME

    config_path = Path(directory) / CONFIG_FILENAME

    if config_path.exists():
        console.print(f"[yellow]⚠[/yellow]  {CONFIG_FILENAME} already exists at {escape(str(config_path))}")
        raise typer.Exit(code=1)

    config_path.write_text(DEFAULT_TOML, encoding="utf-8")
    console.print(f"[green]✓[/green] Created {escape(str(config_path))}")


# ── version ───────────────────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        print(f"svnpilot {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V", callback=_version_callback,
        is_eager=True, help="Show version and exit",
    ),
) -> None:
    """svnpilot: run svn and read its output as structured data."""
