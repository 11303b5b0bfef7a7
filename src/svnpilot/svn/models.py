"""Data models for parsed svn output."""

from __future__ import annotations

import posixpath
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple, Type, TypeVar, Union


@dataclass(frozen=True)
class Unrecognized:
    """A kind/status token that none of the known enumerations cover.

    Keeps the raw token so newer svn vocabulary is not lost.
    """

    raw: str

    @property
    def value(self) -> str:
        return self.raw


class StatusKind(str, Enum):
    NONE = "none"
    NORMAL = "normal"
    ADDED = "added"
    CONFLICTED = "conflicted"
    DELETED = "deleted"
    EXTERNAL = "external"
    IGNORED = "ignored"
    INCOMPLETE = "incomplete"
    MERGED = "merged"
    MISSING = "missing"
    MODIFIED = "modified"
    OBSTRUCTED = "obstructed"
    REPLACED = "replaced"
    UNVERSIONED = "unversioned"


class NodeKind(str, Enum):
    FILE = "file"
    DIR = "dir"
    SYMLINK = "symlink"
    NONE = "none"


class Depth(str, Enum):
    EXCLUDE = "exclude"
    EMPTY = "empty"
    FILES = "files"
    IMMEDIATES = "immediates"
    INFINITY = "infinity"


class PathAction(str, Enum):
    ADDED = "A"
    DELETED = "D"
    MODIFIED = "M"
    REPLACED = "R"


class ConflictKind(str, Enum):
    TEXT = "text"
    PROPERTY = "property"
    TREE = "tree"


class MergeAccept(str, Enum):
    """Values for ``--accept`` on merge, update and resolve."""

    POSTPONE = "postpone"
    BASE = "base"
    WORKING = "working"
    MINE_CONFLICT = "mine-conflict"
    THEIRS_CONFLICT = "theirs-conflict"
    MINE_FULL = "mine-full"
    THEIRS_FULL = "theirs-full"
    EDIT = "edit"
    LAUNCH = "launch"

    @property
    def description(self) -> str:
        return _ACCEPT_DESCRIPTIONS[self]


_ACCEPT_DESCRIPTIONS = {
    MergeAccept.POSTPONE: "Postpone (resolve later)",
    MergeAccept.BASE: "Base (discard all changes)",
    MergeAccept.WORKING: "Working (keep the file as it is now)",
    MergeAccept.MINE_CONFLICT: "Mine (keep my changes for conflicts)",
    MergeAccept.THEIRS_CONFLICT: "Theirs (keep their changes for conflicts)",
    MergeAccept.MINE_FULL: "Mine Full (keep all my changes)",
    MergeAccept.THEIRS_FULL: "Theirs Full (keep all their changes)",
    MergeAccept.EDIT: "Edit (manual edit)",
    MergeAccept.LAUNCH: "Launch (external tool)",
}

E = TypeVar("E", bound=Enum)

Status = Union[StatusKind, Unrecognized]
Kind = Union[NodeKind, Unrecognized]
Action = Union[PathAction, Unrecognized]


def parse_kind(enum_cls: Type[E], token: Optional[str]) -> Union[E, Unrecognized]:
    """Map *token* onto *enum_cls*, falling back to ``Unrecognized``.

    Matching is case-insensitive; an empty or missing token is
    ``Unrecognized("")``.
    """
    raw = (token or "").strip()
    for member in enum_cls:
        if member.value.lower() == raw.lower():
            return member
    return Unrecognized(raw)


# ── diff ─────────────────────────────────────────────────────────────────────


class LineType(str, Enum):
    CONTEXT = "context"
    ADDED = "added"
    REMOVED = "removed"
    HEADER = "header"
    FILE_HEADER = "file-header"


@dataclass(frozen=True, slots=True)
class DiffLine:
    """A single classified line of a diff body."""

    line_type: LineType
    content: str
    old_line_no: Optional[int] = None
    new_line_no: Optional[int] = None

    @property
    def text(self) -> str:
        """The line as it appears in unified-diff form."""
        if self.line_type == LineType.ADDED:
            return "+" + self.content
        if self.line_type == LineType.REMOVED:
            return "-" + self.content
        if self.line_type == LineType.CONTEXT and self.old_line_no is not None:
            return " " + self.content
        return self.content


def _count(lines: Tuple[DiffLine, ...], line_type: LineType) -> int:
    return sum(1 for line in lines if line.line_type == line_type)


@dataclass(frozen=True)
class FileDiff:
    """Diff of one file. Counts are derived from ``lines``."""

    path: str = ""
    original_path: str = ""
    modified_path: str = ""
    diff_type: str = "unified"  # 'unified' | 'binary' | 'other'
    is_binary: bool = False
    binary_message: Optional[str] = None
    start_revision: Optional[int] = None
    end_revision: Optional[int] = None
    lines: Tuple[DiffLine, ...] = ()

    @property
    def addition_count(self) -> int:
        return _count(self.lines, LineType.ADDED)

    @property
    def deletion_count(self) -> int:
        return _count(self.lines, LineType.REMOVED)

    @property
    def file_extension(self) -> Optional[str]:
        name = self.path.rsplit("/", 1)[-1]
        dot = name.rfind(".")
        return name[dot:] if dot > 0 else None


@dataclass(frozen=True)
class DiffDocument:
    """One or more file diffs."""

    files: Tuple[FileDiff, ...] = ()

    @property
    def lines(self) -> Tuple[DiffLine, ...]:
        return tuple(line for f in self.files for line in f.lines)

    @property
    def addition_count(self) -> int:
        return sum(f.addition_count for f in self.files)

    @property
    def deletion_count(self) -> int:
        return sum(f.deletion_count for f in self.files)

    @property
    def is_empty(self) -> bool:
        return not self.files

    @property
    def is_binary(self) -> bool:
        return any(f.is_binary for f in self.files)


# ── status ───────────────────────────────────────────────────────────────────

_LOCAL_CHANGE_KINDS = frozenset({
    StatusKind.MODIFIED,
    StatusKind.ADDED,
    StatusKind.DELETED,
    StatusKind.REPLACED,
    StatusKind.CONFLICTED,
    StatusKind.MISSING,
    StatusKind.OBSTRUCTED,
})


@dataclass(frozen=True)
class LockInfo:
    token: Optional[str] = None
    owner: Optional[str] = None
    comment: Optional[str] = None
    created: Optional[datetime] = None
    expires: Optional[datetime] = None


@dataclass(frozen=True)
class StatusEntry:
    """One item from ``svn status``."""

    path: str
    item: Status = StatusKind.NORMAL
    props: Status = StatusKind.NONE
    repos_item: Status = StatusKind.NONE
    revision: Optional[int] = None
    last_changed_revision: Optional[int] = None
    last_changed_author: Optional[str] = None
    last_changed_date: Optional[datetime] = None
    kind: Optional[Kind] = None
    copied: bool = False
    switched: bool = False
    wc_locked: bool = False
    tree_conflicted: bool = False
    out_of_date: bool = False
    changelist: Optional[str] = None
    lock: Optional[LockInfo] = None

    @property
    def name(self) -> str:
        return self.path.replace("\\", "/").rstrip("/").rsplit("/", 1)[-1]

    @property
    def has_local_modifications(self) -> bool:
        return self.item in _LOCAL_CHANGE_KINDS or self.props == StatusKind.MODIFIED

    @property
    def has_conflict(self) -> bool:
        return (
            self.item == StatusKind.CONFLICTED
            or self.props == StatusKind.CONFLICTED
            or self.tree_conflicted
        )

    @property
    def is_locked(self) -> bool:
        return self.lock is not None

    @property
    def display_status(self) -> str:
        local = self.item.value
        if self.item in (StatusKind.NONE, StatusKind.NORMAL):
            local = "normal"
            if self.props == StatusKind.MODIFIED:
                local = "modified (properties)"
        if self.out_of_date:
            return f"{local} (out of date)"
        return local


# ── file actions ─────────────────────────────────────────────────────────────


class FileAction(str, Enum):
    ADD = "add"
    DELETE = "delete"
    REVERT = "revert"
    COMMIT = "commit"
    UPDATE = "update"
    MODIFY = "modify"
    REPLACE = "replace"
    RESOLVE = "resolve"
    MARK_RESOLVED = "mark-resolved"
    IGNORE = "ignore"
    UNIGNORE = "unignore"


# status -> action -> resulting status; an absent pair is not a valid move
_TRANSITIONS: Dict[StatusKind, Dict[FileAction, StatusKind]] = {
    StatusKind.NORMAL: {
        FileAction.MODIFY: StatusKind.MODIFIED,
        FileAction.DELETE: StatusKind.DELETED,
        FileAction.REPLACE: StatusKind.REPLACED,
    },
    StatusKind.MODIFIED: {
        FileAction.COMMIT: StatusKind.NORMAL,
        FileAction.REVERT: StatusKind.NORMAL,
        FileAction.DELETE: StatusKind.DELETED,
        FileAction.UPDATE: StatusKind.CONFLICTED,
    },
    StatusKind.ADDED: {
        FileAction.COMMIT: StatusKind.NORMAL,
        FileAction.REVERT: StatusKind.UNVERSIONED,
        FileAction.DELETE: StatusKind.UNVERSIONED,
        FileAction.MODIFY: StatusKind.ADDED,
    },
    StatusKind.DELETED: {
        FileAction.COMMIT: StatusKind.NORMAL,
        FileAction.REVERT: StatusKind.NORMAL,
        FileAction.MODIFY: StatusKind.DELETED,
    },
    StatusKind.REPLACED: {
        FileAction.COMMIT: StatusKind.NORMAL,
        FileAction.REVERT: StatusKind.NORMAL,
    },
    StatusKind.CONFLICTED: {
        FileAction.RESOLVE: StatusKind.MODIFIED,
        FileAction.MARK_RESOLVED: StatusKind.MODIFIED,
        FileAction.REVERT: StatusKind.NORMAL,
        FileAction.DELETE: StatusKind.DELETED,
    },
    StatusKind.UNVERSIONED: {
        FileAction.ADD: StatusKind.ADDED,
        FileAction.IGNORE: StatusKind.IGNORED,
    },
    StatusKind.IGNORED: {
        FileAction.UNIGNORE: StatusKind.UNVERSIONED,
    },
    StatusKind.MISSING: {
        FileAction.REVERT: StatusKind.NORMAL,
        FileAction.DELETE: StatusKind.DELETED,
        FileAction.UPDATE: StatusKind.NORMAL,
    },
    StatusKind.OBSTRUCTED: {
        FileAction.REVERT: StatusKind.NORMAL,
    },
    StatusKind.INCOMPLETE: {
        FileAction.UPDATE: StatusKind.NORMAL,
    },
}

_RECOMMENDED = {
    StatusKind.UNVERSIONED: FileAction.ADD,
    StatusKind.MODIFIED: FileAction.COMMIT,
    StatusKind.ADDED: FileAction.COMMIT,
    StatusKind.DELETED: FileAction.COMMIT,
    StatusKind.REPLACED: FileAction.COMMIT,
    StatusKind.CONFLICTED: FileAction.RESOLVE,
    StatusKind.MISSING: FileAction.REVERT,
    StatusKind.OBSTRUCTED: FileAction.REVERT,
    StatusKind.INCOMPLETE: FileAction.UPDATE,
}

_COMMITTABLE = frozenset({StatusKind.MODIFIED, StatusKind.ADDED, StatusKind.DELETED, StatusKind.REPLACED})
_REVERTIBLE = _COMMITTABLE | {StatusKind.CONFLICTED, StatusKind.MISSING, StatusKind.OBSTRUCTED}
# unversioned and ignored files are removed from disk directly
_DELETABLE = _REVERTIBLE - {StatusKind.DELETED} | {
    StatusKind.NORMAL,
    StatusKind.UNVERSIONED,
    StatusKind.IGNORED,
}

_ACTION_DESCRIPTIONS = {
    (StatusKind.UNVERSIONED, FileAction.ADD): "Schedule file for addition to version control",
    (StatusKind.MODIFIED, FileAction.COMMIT): "Commit modifications to repository",
    (StatusKind.MODIFIED, FileAction.REVERT): "Discard local modifications",
    (StatusKind.MODIFIED, FileAction.DELETE): "Schedule file for deletion",
    (StatusKind.ADDED, FileAction.COMMIT): "Commit new file to repository",
    (StatusKind.ADDED, FileAction.REVERT): "Cancel addition (file will become unversioned)",
    (StatusKind.DELETED, FileAction.COMMIT): "Commit file deletion to repository",
    (StatusKind.DELETED, FileAction.REVERT): "Restore deleted file",
    (StatusKind.CONFLICTED, FileAction.RESOLVE): "Mark conflict as resolved",
    (StatusKind.CONFLICTED, FileAction.REVERT): "Discard changes and restore original",
    (StatusKind.MISSING, FileAction.REVERT): "Restore missing file from repository",
    (StatusKind.MISSING, FileAction.DELETE): "Confirm deletion of missing file",
    (StatusKind.NORMAL, FileAction.DELETE): "Schedule file for deletion",
}


def next_state(status: Status, action: FileAction) -> Optional[StatusKind]:
    """Status a file ends up in after *action*, or None when the move is invalid."""
    return _TRANSITIONS.get(status, {}).get(action)


def is_valid_transition(status: Status, action: FileAction) -> bool:
    return next_state(status, action) is not None


def valid_actions(status: Status) -> List[FileAction]:
    return list(_TRANSITIONS.get(status, {}))


def recommended_action(status: Status) -> Optional[FileAction]:
    return _RECOMMENDED.get(status)


def can_commit(status: Status) -> bool:
    """Conflicted files must be resolved first."""
    return status in _COMMITTABLE


def can_revert(status: Status) -> bool:
    return status in _REVERTIBLE


def can_delete(status: Status) -> bool:
    return status in _DELETABLE


def action_description(action: FileAction, status: Status) -> str:
    description = _ACTION_DESCRIPTIONS.get((status, action))
    if description is not None:
        return description
    return f"Perform {action.value} on {status.value}"


# ── status filtering and trees ───────────────────────────────────────────────


class StatusFilter(str, Enum):
    ALL = "all"
    MODIFIED = "modified"
    ADDED = "added"
    DELETED = "deleted"
    CONFLICTED = "conflicted"
    UNVERSIONED = "unversioned"
    LOCAL_CHANGES = "local-changes"

    def matches(self, entry: StatusEntry) -> bool:
        if self is StatusFilter.ALL:
            return True
        if self is StatusFilter.LOCAL_CHANGES:
            return entry.has_local_modifications
        return entry.item == StatusKind(self.value)


def filter_statuses(
    entries: List[StatusEntry],
    status_filter: StatusFilter = StatusFilter.ALL,
    text: str = "",
) -> List[StatusEntry]:
    """Entries matching *status_filter* whose name or path contains *text* (case-insensitive)."""
    needle = text.strip().lower()
    return [
        entry for entry in entries
        if status_filter.matches(entry)
        and (not needle or needle in entry.name.lower() or needle in entry.path.lower())
    ]


@dataclass
class StatusNode:
    """A status entry with the entries nested below it."""

    entry: StatusEntry
    children: List["StatusNode"] = field(default_factory=list)

    @property
    def path(self) -> str:
        return self.entry.path


def _tree_key(path: str) -> str:
    return posixpath.normpath(path.replace("\\", "/")) if path else "."


def build_status_tree(entries: List[StatusEntry], root: str = ".") -> List[StatusNode]:
    """Nest flat status entries under their parent directories.

    Returns the top-level nodes below *root*. The entry for *root* itself
    is not a node. Entries whose parent directory was not reported stay at
    the top level. Order follows the input.
    """
    root_key = _tree_key(root)
    nodes: Dict[str, StatusNode] = {}
    for entry in entries:
        key = _tree_key(entry.path)
        if key != root_key and key not in nodes:
            nodes[key] = StatusNode(entry)

    top: List[StatusNode] = []
    for key, node in nodes.items():
        parent = nodes.get(posixpath.dirname(key) or ".")
        if parent is not None and parent is not node:
            parent.children.append(node)
        else:
            top.append(node)
    return top


# ── log ──────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ChangedPath:
    path: str
    action: Action
    kind: Optional[Kind] = None
    copy_from_path: Optional[str] = None
    copy_from_revision: Optional[int] = None

    @property
    def name(self) -> str:
        return self.path.rstrip("/").rsplit("/", 1)[-1]


@dataclass(frozen=True)
class LogEntry:
    revision: int
    author: str = ""
    date: Optional[datetime] = None
    message: str = ""
    changed_paths: Tuple[ChangedPath, ...] = ()

    @property
    def display_revision(self) -> str:
        return f"r{self.revision}"


# ── info / conflicts ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ConflictInfo:
    path: str
    kind: Union[ConflictKind, Unrecognized] = ConflictKind.TEXT
    operation: Optional[str] = None
    base_file: Optional[str] = None
    their_file: Optional[str] = None
    my_file: Optional[str] = None
    merged_file: Optional[str] = None
    property_name: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class ConflictFiles:
    """Paths of the artifacts svn leaves next to a conflicted file."""

    mine: Optional[str] = None
    base: Optional[str] = None
    theirs: Optional[str] = None


@dataclass(frozen=True)
class InfoEntry:
    path: str = ""
    url: str = ""
    relative_url: str = ""
    repository_root: str = ""
    repository_uuid: str = ""
    revision: Optional[int] = None
    kind: Optional[Kind] = None
    schedule: str = ""
    depth: Optional[Union[Depth, Unrecognized]] = None
    working_copy_root: str = ""
    last_changed_revision: Optional[int] = None
    last_changed_author: Optional[str] = None
    last_changed_date: Optional[datetime] = None
    copy_from_url: Optional[str] = None
    copy_from_revision: Optional[int] = None
    lock: Optional[LockInfo] = None
    conflicts: Tuple[ConflictInfo, ...] = ()

    @property
    def is_file(self) -> bool:
        return self.kind == NodeKind.FILE

    @property
    def is_directory(self) -> bool:
        return self.kind == NodeKind.DIR

    @property
    def has_conflict(self) -> bool:
        return bool(self.conflicts)


# ── list / blame / properties ────────────────────────────────────────────────


@dataclass(frozen=True)
class ListEntry:
    name: str
    kind: Kind = NodeKind.FILE
    size: Optional[int] = None
    revision: Optional[int] = None
    author: Optional[str] = None
    date: Optional[datetime] = None
    lock: Optional[LockInfo] = None

    @property
    def is_directory(self) -> bool:
        return self.kind == NodeKind.DIR

    @property
    def display_name(self) -> str:
        return self.name.rstrip("/\\")


@dataclass(frozen=True)
class BlameLine:
    line_number: int
    revision: Optional[int]
    author: Optional[str]
    content: str
    date: Optional[datetime] = None
    is_merged: bool = False


@dataclass(frozen=True)
class BlameResult:
    path: str
    lines: Tuple[BlameLine, ...] = ()

    @property
    def unique_revisions(self) -> List[int]:
        return sorted({line.revision for line in self.lines if line.revision is not None})

    @property
    def unique_authors(self) -> List[str]:
        return sorted({line.author for line in self.lines if line.author})

    @property
    def author_line_count(self) -> Dict[str, int]:
        return dict(Counter(line.author for line in self.lines if line.author))


@dataclass(frozen=True)
class Property:
    path: str
    name: str
    value: Optional[str] = None

    @property
    def is_svn_property(self) -> bool:
        return self.name.lower().startswith("svn:")


# ── working copy ─────────────────────────────────────────────────────────────


@dataclass
class WorkingCopySummary:
    path: str
    url: str = ""
    repository_root: str = ""
    repository_uuid: str = ""
    revision: Optional[int] = None
    last_changed_revision: Optional[int] = None
    last_changed_author: Optional[str] = None
    last_changed_date: Optional[datetime] = None
    relative_url: str = ""
    depth: Optional[Union[Depth, Unrecognized]] = None
    modified: int = 0
    added: int = 0
    deleted: int = 0
    conflicted: int = 0
    has_uncommitted_changes: bool = False
    changed_paths: List[str] = field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return self.conflicted > 0

    @property
    def changes_summary(self) -> str:
        if not self.has_uncommitted_changes:
            return "No uncommitted changes"
        parts = []
        if self.modified:
            parts.append(f"{self.modified} modified")
        if self.added:
            parts.append(f"{self.added} added")
        if self.deleted:
            parts.append(f"{self.deleted} deleted")
        if self.conflicted:
            parts.append(f"{self.conflicted} conflicted")
        return ", ".join(parts)

    @property
    def branch_name(self) -> Optional[str]:
        segments = [s for s in self.url.split("/") if s]
        return segments[-1] if segments else None
