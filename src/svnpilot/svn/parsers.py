"""Parsers for svn status, log, info, list, blame and proplist output.

Every parser reads both the plain-text form and the ``--xml`` form.
Malformed items are skipped and unknown tokens become ``Unrecognized``;
nothing here raises on bad input.
"""

from __future__ import annotations

import logging
import os
import re
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional

from svnpilot.svn.models import (
    BlameLine,
    BlameResult,
    ChangedPath,
    ConflictInfo,
    ConflictKind,
    Depth,
    InfoEntry,
    ListEntry,
    LockInfo,
    LogEntry,
    NodeKind,
    PathAction,
    Property,
    StatusEntry,
    StatusKind,
    Unrecognized,
    parse_kind,
)

logger = logging.getLogger(__name__)

_STATUS_CHARS: Dict[str, StatusKind] = {
    " ": StatusKind.NORMAL,
    "A": StatusKind.ADDED,
    "C": StatusKind.CONFLICTED,
    "D": StatusKind.DELETED,
    "I": StatusKind.IGNORED,
    "M": StatusKind.MODIFIED,
    "R": StatusKind.REPLACED,
    "X": StatusKind.EXTERNAL,
    "?": StatusKind.UNVERSIONED,
    "!": StatusKind.MISSING,
    "~": StatusKind.OBSTRUCTED,
}
_PROP_CHARS: Dict[str, StatusKind] = {
    " ": StatusKind.NONE,
    "M": StatusKind.MODIFIED,
    "C": StatusKind.CONFLICTED,
}
_KIND_ALIASES = {"directory": "dir"}

_STATUS_REST_RE = re.compile(
    r"^(?P<ood>\*)?\s*"
    r"(?:(?P<rev>\d+|-|\?)\s+(?:(?P<changed>\d+|-|\?)\s+(?P<author>\S+)\s+)?)?"
    r"(?P<path>\S.*)$"
)
_CHANGELIST_RE = re.compile(r"^--- Changelist '(.*)':\s*$")
_STATUS_SKIP_PREFIXES = (
    "Status against revision",
    "Performing status on external item",
    "      >",
)

_LOG_SEPARATOR_RE = re.compile(r"^-{72}$")
_LOG_HEADER_RE = re.compile(
    r"^r(?P<rev>\d+) \| (?P<author>.*?) \| (?P<date>.*?)(?: \| (?P<count>\d+) lines?)?$"
)
_CHANGED_PATH_RE = re.compile(
    r"^\s+(?P<action>\S) (?P<path>.+?)(?: \(from (?P<from>.+):(?P<rev>\d+)\))?$"
)

_INFO_LINE_RE = re.compile(r"^(?P<key>[^:]+?):\s?(?P<value>.*)$")
_LOCK_COMMENT_RE = re.compile(r"^Lock Comment \((?P<count>\d+) lines?\):$")

_LIST_VERBOSE_RE = re.compile(
    r"^\s*(?P<rev>\d+)\s+(?P<author>\S+)\s+(?:O\s+)?(?P<size>\d+)?\s*"
    r"(?P<date>\w{3}\s+\d{1,2}\s+(?:\d{2}:\d{2}|\d{4}))\s+(?P<name>.+)$"
)

_BLAME_RE = re.compile(r"^\s*(?P<rev>\d+|-)\s+(?P<author>\S+)(?: (?P<content>.*))?$")

_PROPERTIES_ON_RE = re.compile(r"^Properties on '(?P<path>.*)':$")


# ── shared helpers ───────────────────────────────────────────────────────────


def parse_svn_date(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 ``--xml`` date or svn's text form.

    ``2024-01-10T12:34:56.000000Z`` and
    ``2024-01-10 12:34:56 +0000 (Wed, 10 Jan 2024)`` both work; anything
    else gives None.
    """
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass
    text = text.split(" (", 1)[0].strip()
    try:
        return datetime.strptime(text, "%Y-%m-%d %H:%M:%S %z")
    except ValueError:
        logger.debug("Unparseable svn date %r", value)
        return None


def _int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def _text(node: Optional[ET.Element], path: str) -> Optional[str]:
    if node is None:
        return None
    found = node.find(path)
    if found is None:
        return None
    return found.text or ""


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() == "true"


def _kind(token: Optional[str]):
    raw = (token or "").strip()
    return parse_kind(NodeKind, _KIND_ALIASES.get(raw.lower(), raw))


def _entries(root: Optional[ET.Element], tag: str) -> Iterator[ET.Element]:
    if root is None:
        return iter(())
    if root.tag == tag:
        return iter((root,))
    return root.iter(tag)


def _lock_from_xml(node: Optional[ET.Element]) -> Optional[LockInfo]:
    if node is None:
        return None
    return LockInfo(
        token=_text(node, "token"),
        owner=_text(node, "owner"),
        comment=_text(node, "comment"),
        created=parse_svn_date(_text(node, "created")),
        expires=parse_svn_date(_text(node, "expires")),
    )


# ── status ───────────────────────────────────────────────────────────────────


class StatusParser:
    """``svn status`` output, with or without ``-v``/``-u``."""

    @staticmethod
    def parse(text: str) -> List[StatusEntry]:
        entries: List[StatusEntry] = []
        changelist: Optional[str] = None
        for line in (text or "").splitlines():
            if not line.strip() or line.startswith(_STATUS_SKIP_PREFIXES):
                continue
            m = _CHANGELIST_RE.match(line)
            if m:
                changelist = m.group(1)
                continue
            entry = StatusParser._parse_line(line, changelist)
            if entry is not None:
                entries.append(entry)
        return entries

    @staticmethod
    def _parse_line(line: str, changelist: Optional[str]) -> Optional[StatusEntry]:
        if len(line) < 9:
            return None
        cols = line[:7]
        rest = line[8:]
        if rest[:1] not in (" ", "*"):
            path, ood, rev, changed, author = rest, False, None, None, None
        else:
            m = _STATUS_REST_RE.match(rest)
            if not m:
                logger.debug("Skipping status line %r", line)
                return None
            path = m.group("path")
            ood = m.group("ood") is not None
            rev, changed, author = _int(m.group("rev")), _int(m.group("changed")), m.group("author")
        item = _STATUS_CHARS.get(cols[0]) or Unrecognized(cols[0])
        props = _PROP_CHARS.get(cols[1]) or Unrecognized(cols[1])
        return StatusEntry(
            path=path.rstrip(),
            item=item,
            props=props,
            revision=rev,
            last_changed_revision=changed,
            last_changed_author=author,
            copied=cols[3] == "+",
            switched=cols[4] == "S",
            wc_locked=cols[2] == "L",
            lock=LockInfo() if cols[5] in ("K", "O") else None,
            tree_conflicted=cols[6] == "C",
            out_of_date=ood,
            changelist=changelist,
        )

    @staticmethod
    def parse_xml(root: Optional[ET.Element]) -> List[StatusEntry]:
        entries: List[StatusEntry] = []
        if root is None:
            return entries
        changelists = {
            id(entry): cl.get("name")
            for cl in root.iter("changelist")
            for entry in cl.iter("entry")
        }
        for node in root.iter("entry"):
            path = node.get("path")
            if path is None:
                continue
            wc = node.find("wc-status")
            repos = node.find("repos-status")
            commit = wc.find("commit") if wc is not None else None
            repos_item = parse_kind(StatusKind, repos.get("item")) if repos is not None else StatusKind.NONE
            lock_node = wc.find("lock") if wc is not None else None
            entries.append(StatusEntry(
                path=path,
                item=parse_kind(StatusKind, wc.get("item")) if wc is not None else StatusKind.NONE,
                props=parse_kind(StatusKind, wc.get("props")) if wc is not None else StatusKind.NONE,
                repos_item=repos_item,
                revision=_int(wc.get("revision")) if wc is not None else None,
                last_changed_revision=_int(commit.get("revision")) if commit is not None else None,
                last_changed_author=_text(commit, "author"),
                last_changed_date=parse_svn_date(_text(commit, "date")),
                copied=_flag(wc.get("copied")) if wc is not None else False,
                switched=_flag(wc.get("switched")) if wc is not None else False,
                wc_locked=_flag(wc.get("wc-locked")) if wc is not None else False,
                tree_conflicted=_flag(wc.get("tree-conflicted")) if wc is not None else False,
                out_of_date=repos_item not in (StatusKind.NONE, StatusKind.NORMAL),
                changelist=changelists.get(id(node)),
                lock=_lock_from_xml(lock_node),
            ))
        return entries


# ── log ──────────────────────────────────────────────────────────────────────


class LogParser:
    """``svn log`` output, with or without ``-v``."""

    @staticmethod
    def parse(text: str) -> List[LogEntry]:
        lines = (text or "").splitlines()
        entries: List[LogEntry] = []
        idx, total = 0, len(lines)
        while idx < total:
            m = _LOG_HEADER_RE.match(lines[idx])
            if not m:
                idx += 1
                continue
            idx += 1
            changed: List[ChangedPath] = []
            if idx < total and lines[idx] == "Changed paths:":
                idx += 1
                while idx < total and lines[idx].strip():
                    cm = _CHANGED_PATH_RE.match(lines[idx])
                    if cm:
                        changed.append(ChangedPath(
                            path=cm.group("path"),
                            action=parse_kind(PathAction, cm.group("action")),
                            copy_from_path=cm.group("from"),
                            copy_from_revision=_int(cm.group("rev")),
                        ))
                    idx += 1
            # blank line between header and message
            if idx < total and not lines[idx].strip():
                idx += 1
            count = _int(m.group("count"))
            message: List[str] = []
            if count is not None:
                message = lines[idx:idx + count]
                idx += count
            else:
                while idx < total and not _LOG_SEPARATOR_RE.match(lines[idx]):
                    message.append(lines[idx])
                    idx += 1
            author = m.group("author")
            entries.append(LogEntry(
                revision=int(m.group("rev")),
                author="" if author == "(no author)" else author,
                date=parse_svn_date(m.group("date")),
                message="\n".join(message).strip("\n"),
                changed_paths=tuple(changed),
            ))
        return entries

    @staticmethod
    def parse_xml(root: Optional[ET.Element]) -> List[LogEntry]:
        entries: List[LogEntry] = []
        if root is None:
            return entries
        nodes = root.findall("logentry") if root.tag == "log" else list(_entries(root, "logentry"))
        for node in nodes:
            revision = _int(node.get("revision"))
            if revision is None:
                continue
            changed = tuple(
                ChangedPath(
                    path=(p.text or "").strip(),
                    action=parse_kind(PathAction, p.get("action")),
                    kind=_kind(p.get("kind")) if p.get("kind") else None,
                    copy_from_path=p.get("copyfrom-path"),
                    copy_from_revision=_int(p.get("copyfrom-rev")),
                )
                for p in node.iterfind("paths/path")
            )
            entries.append(LogEntry(
                revision=revision,
                author=_text(node, "author") or "",
                date=parse_svn_date(_text(node, "date")),
                message=(_text(node, "msg") or "").strip("\n"),
                changed_paths=changed,
            ))
        return entries


# ── info ─────────────────────────────────────────────────────────────────────


def _conflict_path(entry_path: str, name: Optional[str]) -> Optional[str]:
    if not name:
        return None
    if os.path.isabs(name):
        return name
    return os.path.join(os.path.dirname(entry_path), name)


class InfoParser:
    """``svn info`` output. Both forms may describe several targets."""

    @staticmethod
    def parse(text: str) -> List[InfoEntry]:
        entries: List[InfoEntry] = []
        block: Dict[str, str] = {}
        conflict_lines: List[str] = []
        lines = (text or "").splitlines()
        idx = 0
        while idx < len(lines):
            line = lines[idx]
            idx += 1
            if not line.strip():
                if block:
                    entries.append(InfoParser._from_block(block, conflict_lines))
                block, conflict_lines = {}, []
                continue
            cm = _LOCK_COMMENT_RE.match(line)
            if cm:
                count = int(cm.group("count"))
                block["Lock Comment"] = "\n".join(lines[idx:idx + count])
                idx += count
                continue
            if line.startswith("  ") and conflict_lines:
                conflict_lines.append(line.strip())
                continue
            m = _INFO_LINE_RE.match(line)
            if not m:
                continue
            key, value = m.group("key"), m.group("value").strip()
            if key == "Tree conflict":
                conflict_lines.append(value)
            block[key] = value
        if block:
            entries.append(InfoParser._from_block(block, conflict_lines))
        return entries

    @staticmethod
    def _from_block(block: Dict[str, str], tree_lines: List[str]) -> InfoEntry:
        path = block.get("Path", "")
        conflicts: List[ConflictInfo] = []
        if any(k.startswith("Conflict Previous") or k == "Conflict Current Base File" for k in block):
            conflicts.append(ConflictInfo(
                path=path,
                kind=ConflictKind.TEXT,
                base_file=_conflict_path(path, block.get("Conflict Previous Base File")),
                my_file=_conflict_path(path, block.get("Conflict Previous Working File")),
                their_file=_conflict_path(path, block.get("Conflict Current Base File")),
                merged_file=path,
            ))
        if "Conflict Properties File" in block:
            conflicts.append(ConflictInfo(
                path=path,
                kind=ConflictKind.PROPERTY,
                merged_file=_conflict_path(path, block["Conflict Properties File"]),
            ))
        if tree_lines:
            conflicts.append(ConflictInfo(
                path=path,
                kind=ConflictKind.TREE,
                description="\n".join(tree_lines),
            ))
        lock = None
        if "Lock Token" in block or "Lock Owner" in block:
            lock = LockInfo(
                token=block.get("Lock Token"),
                owner=block.get("Lock Owner"),
                comment=block.get("Lock Comment"),
                created=parse_svn_date(block.get("Lock Created")),
                expires=parse_svn_date(block.get("Lock Expires")),
            )
        depth = block.get("Depth")
        return InfoEntry(
            path=path,
            url=block.get("URL", ""),
            relative_url=block.get("Relative URL", ""),
            repository_root=block.get("Repository Root", ""),
            repository_uuid=block.get("Repository UUID", ""),
            revision=_int(block.get("Revision")),
            kind=_kind(block["Node Kind"]) if "Node Kind" in block else None,
            schedule=block.get("Schedule", ""),
            depth=parse_kind(Depth, depth) if depth else None,
            working_copy_root=block.get("Working Copy Root Path", ""),
            last_changed_revision=_int(block.get("Last Changed Rev")),
            last_changed_author=block.get("Last Changed Author"),
            last_changed_date=parse_svn_date(block.get("Last Changed Date")),
            copy_from_url=block.get("Copied From URL"),
            copy_from_revision=_int(block.get("Copied From Rev")),
            lock=lock,
            conflicts=tuple(conflicts),
        )

    @staticmethod
    def parse_xml(root: Optional[ET.Element]) -> List[InfoEntry]:
        entries: List[InfoEntry] = []
        for node in _entries(root, "entry"):
            path = node.get("path", "")
            wc = node.find("wc-info")
            commit = node.find("commit")
            depth = _text(wc, "depth")
            conflict_nodes = list(node.findall("conflict"))
            if wc is not None:
                conflict_nodes.extend(wc.findall("conflict"))
            conflicts = [InfoParser._conflict_from_xml(path, c) for c in conflict_nodes]
            for tree in node.iter("tree-conflict"):
                conflicts.append(ConflictInfo(
                    path=os.path.join(os.path.dirname(path), tree.get("victim", "")) if tree.get("victim") else path,
                    kind=ConflictKind.TREE,
                    operation=tree.get("operation"),
                    description=(
                        f"local {tree.get('reason', 'unknown')}, "
                        f"incoming {tree.get('action', 'unknown')} "
                        f"upon {tree.get('operation', 'unknown')}"
                    ),
                ))
            entries.append(InfoEntry(
                path=path,
                url=_text(node, "url") or "",
                relative_url=_text(node, "relative-url") or "",
                repository_root=_text(node, "repository/root") or "",
                repository_uuid=_text(node, "repository/uuid") or "",
                revision=_int(node.get("revision")),
                kind=_kind(node.get("kind")) if node.get("kind") else None,
                schedule=_text(wc, "schedule") or "",
                depth=parse_kind(Depth, depth) if depth else None,
                working_copy_root=_text(wc, "wcroot-abspath") or "",
                last_changed_revision=_int(commit.get("revision")) if commit is not None else None,
                last_changed_author=_text(commit, "author"),
                last_changed_date=parse_svn_date(_text(commit, "date")),
                copy_from_url=_text(wc, "copy-from-url"),
                copy_from_revision=_int(_text(wc, "copy-from-rev")),
                lock=_lock_from_xml(node.find("lock")),
                conflicts=tuple(conflicts),
            ))
        return entries

    @staticmethod
    def _conflict_from_xml(path: str, node: ET.Element) -> ConflictInfo:
        kind_token = node.get("type") or "text"
        kind = parse_kind(ConflictKind, kind_token)
        if kind == ConflictKind.PROPERTY:
            return ConflictInfo(
                path=path,
                kind=kind,
                operation=node.get("operation"),
                merged_file=_conflict_path(path, _text(node, "prop-file")),
                property_name=node.get("propname"),
            )
        return ConflictInfo(
            path=path,
            kind=kind,
            operation=node.get("operation"),
            base_file=_conflict_path(path, _text(node, "prev-base-file") or _text(node, "prev-file")),
            my_file=_conflict_path(path, _text(node, "prev-wc-file") or _text(node, "working-file")),
            their_file=_conflict_path(path, _text(node, "cur-base-file") or _text(node, "next-file")),
            merged_file=path,
        )


# ── list ─────────────────────────────────────────────────────────────────────


def _list_date(text: str) -> Optional[datetime]:
    """``Jan 10 12:34`` (this year) or ``May 12  2020``."""
    parts = text.split()
    try:
        if ":" in parts[-1]:
            year = datetime.now(timezone.utc).year
            return datetime.strptime(f"{parts[0]} {parts[1]} {year} {parts[2]}", "%b %d %Y %H:%M")
        return datetime.strptime(" ".join(parts), "%b %d %Y")
    except (ValueError, IndexError):
        return None


class ListParser:
    """``svn list`` output, plain names or ``-v`` rows."""

    @staticmethod
    def parse(text: str) -> List[ListEntry]:
        entries: List[ListEntry] = []
        for line in (text or "").splitlines():
            if not line.strip():
                continue
            m = _LIST_VERBOSE_RE.match(line)
            if m:
                name = m.group("name").strip()
                entries.append(ListEntry(
                    name=name.rstrip("/"),
                    kind=NodeKind.DIR if name.endswith("/") else NodeKind.FILE,
                    size=_int(m.group("size")),
                    revision=_int(m.group("rev")),
                    author=m.group("author"),
                    date=_list_date(m.group("date")),
                ))
                continue
            name = line.strip()
            entries.append(ListEntry(
                name=name.rstrip("/"),
                kind=NodeKind.DIR if name.endswith("/") else NodeKind.FILE,
            ))
        return entries

    @staticmethod
    def parse_xml(root: Optional[ET.Element]) -> List[ListEntry]:
        entries: List[ListEntry] = []
        for node in _entries(root, "entry"):
            name = _text(node, "name")
            if not name:
                continue
            commit = node.find("commit")
            entries.append(ListEntry(
                name=name,
                kind=_kind(node.get("kind")),
                size=_int(_text(node, "size")),
                revision=_int(commit.get("revision")) if commit is not None else None,
                author=_text(commit, "author"),
                date=parse_svn_date(_text(commit, "date")),
                lock=_lock_from_xml(node.find("lock")),
            ))
        return entries


# ── blame ────────────────────────────────────────────────────────────────────


class BlameParser:
    """``svn blame`` output. The XML form carries no line content."""

    @staticmethod
    def parse(text: str, path: str = "") -> BlameResult:
        lines: List[BlameLine] = []
        for raw in (text or "").splitlines():
            m = _BLAME_RE.match(raw)
            if not m:
                continue
            author = m.group("author")
            lines.append(BlameLine(
                line_number=len(lines) + 1,
                revision=_int(m.group("rev")),
                author=None if author == "-" else author,
                content=m.group("content") or "",
            ))
        return BlameResult(path=path, lines=tuple(lines))

    @staticmethod
    def parse_xml(root: Optional[ET.Element]) -> Optional[BlameResult]:
        if root is None:
            return None
        target = root if root.tag == "target" else root.find("target")
        if target is None:
            return None
        lines: List[BlameLine] = []
        for entry in target.findall("entry"):
            number = _int(entry.get("line-number"))
            if number is None:
                continue
            commit = entry.find("commit")
            merged = entry.find("merged/commit")
            source = merged if merged is not None else commit
            lines.append(BlameLine(
                line_number=number,
                revision=_int(source.get("revision")) if source is not None else None,
                author=_text(source, "author"),
                content="",
                date=parse_svn_date(_text(source, "date")),
                is_merged=merged is not None,
            ))
        return BlameResult(path=target.get("path", ""), lines=tuple(lines))


def merge_blame(xml_result: Optional[BlameResult], text_result: BlameResult) -> BlameResult:
    """Combine XML metadata (dates, merge flags) with text-form content."""
    if xml_result is None or not xml_result.lines:
        return text_result
    content = {line.line_number: line.content for line in text_result.lines}
    merged = tuple(
        BlameLine(
            line_number=line.line_number,
            revision=line.revision,
            author=line.author,
            content=content.get(line.line_number, ""),
            date=line.date,
            is_merged=line.is_merged,
        )
        for line in xml_result.lines
    )
    return BlameResult(path=xml_result.path or text_result.path, lines=merged)


# ── properties ───────────────────────────────────────────────────────────────


class PropertyParser:
    """``svn proplist`` output; ``-v`` adds the values."""

    @staticmethod
    def parse(text: str) -> List[Property]:
        props: List[Property] = []
        path = ""
        name: Optional[str] = None
        value: List[str] = []

        def flush() -> None:
            if name is not None:
                props.append(Property(path=path, name=name, value="\n".join(value) if value else None))

        for line in (text or "").splitlines():
            m = _PROPERTIES_ON_RE.match(line)
            if m:
                flush()
                path, name, value = m.group("path"), None, []
                continue
            if line.startswith("    ") and name is not None:
                value.append(line[4:])
            elif line.startswith("  ") and line.strip():
                flush()
                name, value = line.strip(), []
        flush()
        return props

    @staticmethod
    def parse_xml(root: Optional[ET.Element]) -> List[Property]:
        props: List[Property] = []
        for target in _entries(root, "target"):
            path = target.get("path", "")
            for node in target.findall("property"):
                name = node.get("name")
                if name:
                    props.append(Property(path=path, name=name, value=node.text))
        return props
