"""Rich terminal rendering for tables and coloured diffs."""

from __future__ import annotations

from typing import Iterable, List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from svnpilot.svn.executor import ExecutionResult
from svnpilot.svn.models import (
    BlameResult,
    DiffDocument,
    InfoEntry,
    LineType,
    ListEntry,
    LogEntry,
    StatusEntry,
    StatusKind,
)

_STATUS_STYLE = {
    StatusKind.MODIFIED: "yellow",
    StatusKind.ADDED: "green",
    StatusKind.DELETED: "red",
    StatusKind.REPLACED: "magenta",
    StatusKind.CONFLICTED: "bold white on red",
    StatusKind.MISSING: "bold red",
    StatusKind.OBSTRUCTED: "bold red",
    StatusKind.UNVERSIONED: "dim",
    StatusKind.IGNORED: "dim",
    StatusKind.EXTERNAL: "cyan",
}

_LINE_STYLE = {
    LineType.ADDED: "green",
    LineType.REMOVED: "red",
    LineType.HEADER: "cyan",
    LineType.FILE_HEADER: "bold",
}


def _date(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "-"


def _num(value: Optional[int]) -> str:
    return str(value) if value is not None else "-"


def render_status(entries: List[StatusEntry], console: Console, *, show_summary: bool = True) -> None:
    if not entries:
        console.print("[bold green]✅ Working copy is clean.[/bold green]")
        return

    table = Table(title="Status", title_style="bold", border_style="dim")
    table.add_column("Status", min_width=10)
    table.add_column("Path", style="magenta")
    table.add_column("Rev", justify="right", style="green")
    table.add_column("Flags")

    for entry in entries:
        flags = []
        if entry.copied:
            flags.append("copied")
        if entry.switched:
            flags.append("switched")
        if entry.is_locked:
            flags.append("locked")
        if entry.tree_conflicted:
            flags.append("tree-conflict")
        if entry.changelist:
            flags.append(f"cl:{entry.changelist}")
        style = _STATUS_STYLE.get(entry.item, "")
        table.add_row(
            Text(entry.display_status, style=style),
            Text(entry.path),
            _num(entry.revision),
            Text(" ".join(flags)),
        )

    console.print(table)

    if show_summary:
        modified = sum(1 for e in entries if e.has_local_modifications)
        conflicts = sum(1 for e in entries if e.has_conflict)
        console.print()
        console.print(f"[dim]Entries:[/dim]    {len(entries)}")
        console.print(f"[dim]Modified:[/dim]   {modified}")
        console.print(f"[dim]Conflicts:[/dim]  {conflicts}")


def render_log(entries: List[LogEntry], console: Console) -> None:
    if not entries:
        console.print("[dim]No log entries.[/dim]")
        return
    for entry in entries:
        console.print(
            f"[bold yellow]{entry.display_revision}[/bold yellow]  "
            f"[cyan]{escape(entry.author or '(no author)')}[/cyan]  [dim]{_date(entry.date)}[/dim]"
        )
        for changed in entry.changed_paths:
            source = ""
            if changed.copy_from_path:
                source = f" (from {changed.copy_from_path}:{changed.copy_from_revision})"
            console.print(Text(f"    {changed.action.value} {changed.path}{source}"))
        if entry.message:
            console.print(Text("  " + entry.message.replace("\n", "\n  ")))
        console.print()


def render_info(entries: Iterable[InfoEntry], console: Console) -> None:
    for entry in entries:
        table = Table(show_header=False, border_style="dim", title=escape(entry.path or "."), title_style="bold")
        table.add_column("Key", style="dim")
        table.add_column("Value")
        rows = [
            ("URL", entry.url),
            ("Relative URL", entry.relative_url),
            ("Repository Root", entry.repository_root),
            ("Repository UUID", entry.repository_uuid),
            ("Revision", _num(entry.revision)),
            ("Node Kind", entry.kind.value if entry.kind is not None else "-"),
            ("Schedule", entry.schedule),
            ("Depth", entry.depth.value if entry.depth is not None else "-"),
            ("Working Copy Root", entry.working_copy_root),
            ("Last Changed Rev", _num(entry.last_changed_revision)),
            ("Last Changed Author", entry.last_changed_author or "-"),
            ("Last Changed Date", _date(entry.last_changed_date)),
        ]
        if entry.lock is not None:
            rows.append(("Lock Owner", entry.lock.owner or "-"))
        for conflict in entry.conflicts:
            rows.append((f"Conflict ({conflict.kind.value})", conflict.description or conflict.their_file or ""))
        for key, value in rows:
            if value:
                table.add_row(key, Text(value))
        console.print(table)


def render_diff(document: DiffDocument, console: Console, *, show_summary: bool = True) -> None:
    if document.is_empty:
        console.print("[dim]No differences.[/dim]")
        return
    for file_diff in document.files:
        if file_diff.is_binary:
            console.print(f"[bold]{escape(file_diff.path)}[/bold] [dim](binary)[/dim]")
            continue
        for line in file_diff.lines:
            console.print(Text(line.text, style=_LINE_STYLE.get(line.line_type, "")))
    if show_summary:
        console.print()
        console.print(
            f"[dim]{len(document.files)} file(s),[/dim] "
            f"[green]+{document.addition_count}[/green] [red]-{document.deletion_count}[/red]"
        )


def render_blame(result: BlameResult, console: Console) -> None:
    table = Table(title=escape(result.path), title_style="bold", border_style="dim", show_lines=False)
    table.add_column("Line", justify="right", style="dim")
    table.add_column("Rev", justify="right", style="green")
    table.add_column("Author", style="cyan")
    table.add_column("Content", overflow="fold")
    for line in result.lines:
        table.add_row(str(line.line_number), _num(line.revision), Text(line.author or "-"), Text(line.content))
    console.print(table)


def render_list(entries: List[ListEntry], console: Console) -> None:
    table = Table(border_style="dim")
    table.add_column("Name", style="magenta")
    table.add_column("Size", justify="right")
    table.add_column("Rev", justify="right", style="green")
    table.add_column("Author", style="cyan")
    table.add_column("Date", style="dim")
    for entry in entries:
        name = entry.display_name + ("/" if entry.is_directory else "")
        table.add_row(Text(name), _num(entry.size), _num(entry.revision), Text(entry.author or "-"), _date(entry.date))
    console.print(table)


def render_failure(result: ExecutionResult, console: Console) -> None:
    """Print svn's stderr verbatim followed by the exit code."""
    if result.stderr:
        console.print(Text(result.stderr))
    console.print(f"[bold red]svn exited with code {result.exit_code}[/bold red]")
