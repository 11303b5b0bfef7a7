"""svn argument-vector builders.

Every factory returns a frozen :class:`Command`. Tokens are handed to the
process layer as discrete argv entries, so nothing here quotes or escapes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from svnpilot.svn.errors import CommandError
from svnpilot.svn.models import Depth, MergeAccept
from svnpilot.svn.paths import is_url

Revision = Union[int, str]

_REVISION_KEYWORDS = frozenset({"HEAD", "BASE", "COMMITTED", "PREV"})
_DATE_REVISION_RE = re.compile(r"^\{[^{}]+\}$")


@dataclass(frozen=True)
class Command:
    """One svn invocation: verb, ordered tokens and target directory."""

    verb: str
    args: Tuple[str, ...] = ()
    working_directory: Optional[str] = None
    xml: bool = False

    def build_args(self) -> List[str]:
        """Return ``[verb, "--xml"?, *args]``."""
        argv = [self.verb]
        if self.xml:
            argv.append("--xml")
        argv.extend(self.args)
        return argv

    def with_xml(self) -> "Command":
        return replace(self, xml=True)

    def in_directory(self, path: Optional[str]) -> "Command":
        return replace(self, working_directory=path or None)


# ── token helpers ────────────────────────────────────────────────────────────


def _render_revision(rev: Revision) -> str:
    if isinstance(rev, bool):
        raise CommandError(f"Invalid revision: {rev!r}")
    if isinstance(rev, int):
        if rev < 0:
            raise CommandError(f"Revision must be non-negative, got {rev}")
        return str(rev)
    text = str(rev).strip()
    if text.isdigit():
        return text
    if text.upper() in _REVISION_KEYWORDS:
        return text.upper()
    if _DATE_REVISION_RE.match(text):
        return text
    raise CommandError(f"Invalid revision: {rev!r}")


def revision_token(rev: Revision, end: Optional[Revision] = None) -> str:
    """Render ``-r<rev>`` or ``-r<rev>:<end>``."""
    if end is None:
        return f"-r{_render_revision(rev)}"
    return f"-r{_render_revision(rev)}:{_render_revision(end)}"


def _required(value: Optional[str], name: str) -> str:
    if value is None or not str(value).strip():
        raise CommandError(f"{name} is required")
    return str(value)


def _optional(value: Optional[str]) -> List[str]:
    return [str(value)] if value else []


def _depth(depth: Optional[Union[Depth, str]]) -> List[str]:
    if depth is None:
        return []
    try:
        value = Depth(depth).value
    except ValueError:
        raise CommandError(f"Invalid depth: {depth!r}")
    return [f"--depth={value}"]


def _accept(accept: Optional[Union[MergeAccept, str]]) -> List[str]:
    if not accept:
        return []
    try:
        value = MergeAccept(accept).value
    except ValueError:
        raise CommandError(f"Invalid accept value: {accept!r}")
    return [f"--accept={value}"]


def _flag(enabled: bool, token: str) -> List[str]:
    return [token] if enabled else []


def _make(verb: str, *parts: Iterable[str]) -> Command:
    tokens: List[str] = []
    for part in parts:
        tokens.extend(part)
    return Command(verb=verb, args=tuple(tokens))


# ── factories ────────────────────────────────────────────────────────────────


def status(
    path: Optional[str] = None,
    verbose: bool = False,
    show_updates: bool = False,
    depth: Optional[Union[Depth, str]] = None,
    no_ignore: bool = False,
    quiet: bool = False,
) -> Command:
    return _make(
        "status",
        _optional(path),
        _flag(verbose, "-v"),
        _flag(show_updates, "-u"),
        _flag(no_ignore, "--no-ignore"),
        _flag(quiet, "--quiet"),
        _depth(depth),
    )


def update(
    path: Optional[str] = None,
    revision: Optional[Revision] = None,
    accept: Optional[Union[MergeAccept, str]] = None,
    depth: Optional[Union[Depth, str]] = None,
) -> Command:
    return _make(
        "update",
        _optional(path),
        [revision_token(revision)] if revision is not None else [],
        _accept(accept),
        _depth(depth),
    )


def commit(message: str, paths: Sequence[str]) -> Command:
    """``commit -m <message> <paths...>``. At least one path is required."""
    targets = [p for p in (paths or ()) if p]
    if not targets:
        raise CommandError("commit needs at least one path")
    if message is None:
        raise CommandError("commit message is required")
    return _make("commit", ["-m", message], targets)


def add(path: str, force: bool = False, parents: bool = False, no_ignore: bool = False) -> Command:
    return _make(
        "add",
        _flag(force, "--force"),
        _flag(parents, "--parents"),
        _flag(no_ignore, "--no-ignore"),
        [_required(path, "path")],
    )


def delete(path: str, force: bool = False, keep_local: bool = False) -> Command:
    return _make(
        "delete",
        _flag(force, "--force"),
        _flag(keep_local, "--keep-local"),
        [_required(path, "path")],
    )


def revert(path: str, recursive: bool = False) -> Command:
    return _make("revert", _flag(recursive, "-R"), [_required(path, "path")])


def diff(
    path: Optional[str] = None,
    start: Optional[Revision] = None,
    end: Optional[Revision] = None,
    change: Optional[int] = None,
    summarize: bool = False,
) -> Command:
    """Diff of *path*; ``start``/``end`` render as ``-rA`` or ``-rA:B``.

    ``change`` renders ``-c N`` and excludes a revision range.
    """
    if change is not None and start is not None:
        raise CommandError("diff accepts either a revision range or a change, not both")
    if end is not None and start is None:
        raise CommandError("diff end revision needs a start revision")
    rev: List[str] = []
    if start is not None:
        rev.append(revision_token(start, end))
    elif change is not None:
        rev.extend(["-c", _render_revision(change)])
    return _make("diff", rev, _flag(summarize, "--summarize"), _optional(path))


def log(
    path: Optional[str] = None,
    limit: Optional[int] = None,
    verbose: bool = False,
    start: Optional[Revision] = None,
    end: Optional[Revision] = None,
    stop_on_copy: bool = False,
) -> Command:
    if limit is not None and limit < 1:
        raise CommandError(f"log limit must be positive, got {limit}")
    return _make(
        "log",
        _optional(path),
        [f"-l{limit}"] if limit is not None else [],
        _flag(verbose, "-v"),
        [revision_token(start, end)] if start is not None else [],
        _flag(stop_on_copy, "--stop-on-copy"),
    )


def info(path: Optional[str] = None, revision: Optional[Revision] = None) -> Command:
    return _make(
        "info",
        [revision_token(revision)] if revision is not None else [],
        _optional(path),
    )


def cleanup(
    path: Optional[str] = None,
    remove_unversioned: bool = False,
    remove_ignored: bool = False,
) -> Command:
    return _make(
        "cleanup",
        _flag(remove_unversioned, "--remove-unversioned"),
        _flag(remove_ignored, "--remove-ignored"),
        _optional(path),
    )


def copy(source_url: str, destination_url: str, message: str) -> Command:
    """Repository-side copy used for branching and tagging.

    ``-m`` is only valid for URL-to-URL copies, so both operands must be
    repository URLs and are passed through untouched, ``file://`` included.
    """
    source = _required(source_url, "source URL")
    destination = _required(destination_url, "destination URL")
    for label, value in (("source", source), ("destination", destination)):
        if not is_url(value):
            raise CommandError(f"copy {label} must be a repository URL, got {value!r}")
    if message is None:
        raise CommandError("copy message is required")
    return _make("copy", [source, destination, "-m", message])


def switch(path: str, url: str, revision: Optional[Revision] = None, ignore_ancestry: bool = False) -> Command:
    return _make(
        "switch",
        [revision_token(revision)] if revision is not None else [],
        _flag(ignore_ancestry, "--ignore-ancestry"),
        [_required(path, "path"), _required(url, "url")],
    )


def merge(
    source: str,
    start: Revision,
    end: Revision,
    target: str,
    dry_run: bool = False,
    accept: Optional[Union[MergeAccept, str]] = None,
) -> Command:
    return _make(
        "merge",
        _flag(dry_run, "--dry-run"),
        _accept(accept),
        [_required(source, "source"), revision_token(start, end), _required(target, "target")],
    )


def blame(path: str, revision: Optional[Revision] = None, use_merge_history: bool = False) -> Command:
    return _make(
        "blame",
        [revision_token(revision)] if revision is not None else [],
        _flag(use_merge_history, "-g"),
        [_required(path, "path")],
    )


def list_(
    path: str,
    revision: Optional[Revision] = None,
    verbose: bool = False,
    recursive: bool = False,
) -> Command:
    return _make(
        "list",
        [revision_token(revision)] if revision is not None else [],
        _flag(verbose, "-v"),
        _flag(recursive, "-R"),
        [_required(path, "path")],
    )


def checkout(url: str, path: str, revision: Optional[Revision] = None, depth: Optional[Union[Depth, str]] = None) -> Command:
    return _make(
        "checkout",
        [revision_token(revision)] if revision is not None else [],
        _depth(depth),
        [_required(url, "url"), _required(path, "path")],
    )


def proplist(path: str, recursive: bool = False, verbose: bool = False) -> Command:
    return _make(
        "proplist",
        _flag(recursive, "-R"),
        _flag(verbose, "-v"),
        [_required(path, "path")],
    )


def propget(name: str, path: str) -> Command:
    return _make("propget", [_required(name, "property name"), _required(path, "path")])


def propset(name: str, value: str, path: str, recursive: bool = False) -> Command:
    if value is None:
        raise CommandError("property value is required")
    return _make(
        "propset",
        _flag(recursive, "-R"),
        [_required(name, "property name"), value, _required(path, "path")],
    )


def propdel(name: str, path: str, recursive: bool = False) -> Command:
    return _make(
        "propdel",
        _flag(recursive, "-R"),
        [_required(name, "property name"), _required(path, "path")],
    )


def move(source: str, destination: str, parents: bool = False) -> Command:
    return _make(
        "move",
        _flag(parents, "--parents"),
        [_required(source, "source"), _required(destination, "destination")],
    )


def lock(path: str, message: Optional[str] = None, force: bool = False) -> Command:
    return _make(
        "lock",
        _flag(force, "--force"),
        [_required(path, "path")],
        ["-m", message] if message else [],
    )


def unlock(path: str, force: bool = False) -> Command:
    return _make("unlock", _flag(force, "--force"), [_required(path, "path")])


def resolve(path: str, accept: Union[MergeAccept, str] = MergeAccept.WORKING) -> Command:
    return _make("resolve", _accept(accept), [_required(path, "path")])


def mkdir(path: str, message: Optional[str] = None, parents: bool = False) -> Command:
    return _make(
        "mkdir",
        _flag(parents, "--parents"),
        ["-m", message] if message else [],
        [_required(path, "path")],
    )


def cat(path: str, revision: Optional[Revision] = None) -> Command:
    return _make(
        "cat",
        [revision_token(revision)] if revision is not None else [],
        [_required(path, "path")],
    )


def import_(local_path: str, repository_url: str, message: str, no_ignore: bool = False) -> Command:
    url = _required(repository_url, "repository URL")
    if not is_url(url):
        raise CommandError(f"import target must be a repository URL, got {url!r}")
    if message is None:
        raise CommandError("import message is required")
    return _make(
        "import",
        _flag(no_ignore, "--no-ignore"),
        [_required(local_path, "local path"), url, "-m", message],
    )


def relocate(from_url: str, to_url: str, path: Optional[str] = None) -> Command:
    return _make(
        "relocate",
        [_required(from_url, "from URL"), _required(to_url, "to URL")],
        _optional(path),
    )


def export(
    source: str,
    destination: str,
    revision: Optional[Revision] = None,
    force: bool = False,
) -> Command:
    return _make(
        "export",
        [revision_token(revision)] if revision is not None else [],
        _flag(force, "--force"),
        [_required(source, "source"), _required(destination, "destination")],
    )


def version(quiet: bool = True) -> Command:
    """``svn --version [--quiet]``; the verb slot carries the option."""
    return _make("--version", _flag(quiet, "--quiet"))
