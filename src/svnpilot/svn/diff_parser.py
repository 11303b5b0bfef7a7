"""Unified diff parser and in-memory diff synthesis.

Handles svn's ``Index:``/``====`` framing, ``--git`` style headers,
binary markers, property-change sections and ``\\ No newline`` markers.
Counts are never tracked separately: they are derived from the lines.
"""

from __future__ import annotations

import asyncio
import re
from typing import List, Optional, Sequence, Tuple

from svnpilot.svn.models import DiffDocument, DiffLine, FileDiff, LineType

# --- Regex patterns for diff parsing ---

_INDEX_RE = re.compile(r"^Index: (.*)$")
_SEPARATOR_RE = re.compile(r"^={10,}\s*$")
_GIT_HEADER_RE = re.compile(r"^diff --git a/(.*) b/(.*)$")
_HUNK_HEADER_RE = re.compile(
    r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@"
)
_OLD_FILE_RE = re.compile(r"^--- (.*)$")
_NEW_FILE_RE = re.compile(r"^\+\+\+ (.*)$")
_REVISION_RE = re.compile(r"\(revision (\d+)\)")
_PROPERTY_SECTION_RE = re.compile(r"^Property changes on: (.*)$")
_BINARY_MARKERS = (
    re.compile(r"^Cannot display: file marked as a binary type\.?$"),
    re.compile(r"^Binary files .* and .* differ$"),
    re.compile(r"^GIT binary patch$"),
)
_LINE_BREAK_RE = re.compile(r"\r\n|\r|\n")


def _split_lines(text: str) -> List[str]:
    """Split on ``\\r\\n``, ``\\r`` or ``\\n``; a final line break adds no empty line."""
    if not text:
        return []
    parts = _LINE_BREAK_RE.split(text)
    if parts and parts[-1] == "":
        parts.pop()
    return parts


def _header_path(value: str) -> Tuple[str, Optional[int]]:
    """Split ``path\\t(revision N)`` into the path and revision."""
    path, _, meta = value.partition("\t")
    m = _REVISION_RE.search(meta)
    return path.strip(), int(m.group(1)) if m else None


def _strip_git_prefix(path: str, prefix: str) -> str:
    return path[len(prefix):] if path.startswith(prefix) else path


class _FileState:
    """Mutable accumulator for one file while the parser walks the text."""

    def __init__(self, path: str = "") -> None:
        self.path = path
        self.original_path = ""
        self.modified_path = ""
        self.start_revision: Optional[int] = None
        self.end_revision: Optional[int] = None
        self.is_binary = False
        self.binary_message: Optional[str] = None
        self.git = False
        self.saw_old_header = False
        self.saw_new_header = False
        self.saw_hunk = False
        self.saw_body = False
        self.in_properties = False
        self.lines: List[DiffLine] = []

    def add(self, line_type: LineType, content: str, old: Optional[int] = None, new: Optional[int] = None) -> None:
        self.lines.append(DiffLine(line_type, content, old, new))

    def build(self) -> FileDiff:
        if self.is_binary:
            diff_type = "binary"
        elif self.saw_hunk or self.saw_body:
            diff_type = "unified"
        else:
            diff_type = "other"
        path = self.path or self.modified_path or self.original_path
        return FileDiff(
            path=path,
            original_path=self.original_path or path,
            modified_path=self.modified_path or path,
            diff_type=diff_type,
            is_binary=self.is_binary,
            binary_message=self.binary_message,
            start_revision=self.start_revision,
            end_revision=self.end_revision,
            lines=() if self.is_binary else tuple(self.lines),
        )


class DiffParser:
    """Parse unified diff text into a :class:`DiffDocument`.

    Usage::

        document = DiffParser(diff_text).parse()
        print(document.addition_count, document.deletion_count)
    """

    def __init__(self, diff_text: str) -> None:
        self._lines = _split_lines(diff_text or "")

    def parse(self) -> DiffDocument:
        return DiffDocument(files=tuple(self._parse_files()))

    def parse_multiple(self) -> List[DiffDocument]:
        """One single-file document per file; empty input gives ``[]``."""
        return [DiffDocument(files=(f,)) for f in self._parse_files()]

    def _next_is_new_header(self, index: int) -> bool:
        return index + 1 < len(self._lines) and bool(_NEW_FILE_RE.match(self._lines[index + 1]))

    def _parse_files(self) -> List[FileDiff]:
        files: List[FileDiff] = []
        current: Optional[_FileState] = None
        old_no = new_no = 0
        old_left = new_left = 0  # lines remaining in the current hunk

        def start(path: str = "") -> _FileState:
            nonlocal old_left, new_left
            if current is not None:
                files.append(current.build())
            old_left = new_left = 0
            return _FileState(path)

        for index, raw_line in enumerate(self._lines):
            in_hunk = old_left > 0 or new_left > 0

            # --- Body lines inside a hunk take priority over header look-alikes ---
            if in_hunk and current is not None and not current.in_properties:
                if raw_line.startswith("-") and old_left > 0:
                    current.add(LineType.REMOVED, raw_line[1:], old_no, None)
                    old_no += 1
                    old_left -= 1
                    continue
                if raw_line.startswith("+") and new_left > 0:
                    current.add(LineType.ADDED, raw_line[1:], None, new_no)
                    new_no += 1
                    new_left -= 1
                    continue
                if (raw_line.startswith(" ") or raw_line == "") and old_left > 0 and new_left > 0:
                    current.add(LineType.CONTEXT, raw_line[1:], old_no, new_no)
                    old_no += 1
                    new_no += 1
                    old_left -= 1
                    new_left -= 1
                    continue

            # --- Index: <path> opens a new file ---
            m = _INDEX_RE.match(raw_line)
            if m:
                current = start(m.group(1).strip())
                current.add(LineType.FILE_HEADER, raw_line)
                continue

            # --- diff --git a/x b/y ---
            m = _GIT_HEADER_RE.match(raw_line)
            if m:
                if current is None or current.git or current.saw_hunk or current.saw_body:
                    current = start(m.group(2))
                current.in_properties = False
                current.git = True
                current.original_path = current.original_path or m.group(1)
                current.modified_path = current.modified_path or m.group(2)
                current.path = current.path or m.group(2)
                current.add(LineType.FILE_HEADER, raw_line)
                continue

            if current is not None and _SEPARATOR_RE.match(raw_line):
                current.add(LineType.FILE_HEADER, raw_line)
                continue

            # --- Property section: header lines until the next file ---
            m = _PROPERTY_SECTION_RE.match(raw_line)
            if m:
                if current is None:
                    current = start(m.group(1).strip())
                current.in_properties = True
                old_left = new_left = 0
                current.add(LineType.HEADER, raw_line)
                continue
            if current is not None and current.in_properties:
                current.add(LineType.HEADER, raw_line)
                continue

            # --- File headers ---
            # a "---" after body lines is a removed "-- ..." line unless "+++" follows
            m = _OLD_FILE_RE.match(raw_line)
            if m and (
                current is None
                or not (current.saw_body or current.saw_hunk)
                or self._next_is_new_header(index)
            ):
                if current is None or current.saw_hunk or current.saw_body or current.saw_old_header:
                    current = start()
                path, rev = _header_path(m.group(1))
                if current.git:
                    path = _strip_git_prefix(path, "a/")
                current.original_path = path
                current.start_revision = rev
                current.saw_old_header = True
                current.add(LineType.FILE_HEADER, raw_line)
                continue
            m = _NEW_FILE_RE.match(raw_line)
            if m and current is not None and current.saw_old_header and not current.saw_new_header:
                path, rev = _header_path(m.group(1))
                if current.git:
                    path = _strip_git_prefix(path, "b/")
                current.modified_path = path
                current.end_revision = rev
                current.saw_new_header = True
                if not current.path:
                    current.path = path if path != "/dev/null" else current.original_path
                current.add(LineType.FILE_HEADER, raw_line)
                continue

            # --- Hunk header ---
            m = _HUNK_HEADER_RE.match(raw_line)
            if m:
                if current is None:
                    current = start()
                old_no = int(m.group(1))
                old_left = int(m.group(2)) if m.group(2) is not None else 1
                new_no = int(m.group(3))
                new_left = int(m.group(4)) if m.group(4) is not None else 1
                current.saw_hunk = True
                current.add(LineType.HEADER, raw_line)
                continue

            # --- Binary markers drop the file's lines ---
            if any(p.match(raw_line) for p in _BINARY_MARKERS):
                if current is None:
                    current = start()
                current.is_binary = True
                current.binary_message = raw_line
                continue

            # --- Loose body lines (outside any counted hunk) ---
            if raw_line == "":
                continue
            if current is None:
                current = start()
            numbered = current.saw_hunk
            if raw_line.startswith("+"):
                current.add(LineType.ADDED, raw_line[1:], None, new_no if numbered else None)
                new_no += 1
                current.saw_body = True
            elif raw_line.startswith("-"):
                current.add(LineType.REMOVED, raw_line[1:], old_no if numbered else None, None)
                old_no += 1
                current.saw_body = True
            elif raw_line.startswith(" "):
                current.add(
                    LineType.CONTEXT,
                    raw_line[1:],
                    old_no if numbered else None,
                    new_no if numbered else None,
                )
                old_no += 1
                new_no += 1
                current.saw_body = True
            else:
                # "\ No newline at end of file" and other unknown markers
                current.add(LineType.CONTEXT, raw_line)

        if current is not None:
            files.append(current.build())
        return files


def parse_diff(diff_text: str) -> DiffDocument:
    return DiffParser(diff_text).parse()


async def parse_diff_in_worker(diff_text: str) -> DiffDocument:
    """Parse on a worker thread so large diffs don't stall the event loop."""
    return await asyncio.to_thread(parse_diff, diff_text)


# ── synthesis ────────────────────────────────────────────────────────────────


def _middle_split(
    a: Sequence[str], a_lo: int, a_hi: int,
    b: Sequence[str], b_lo: int, b_hi: int,
) -> Optional[Tuple[int, int]]:
    """Linear-space Myers bisection.

    Runs the forward and reverse searches until they overlap and returns
    the absolute ``(i, j)`` where the shortest edit path can be split.
    Ranges must be non-empty and differ in their first and last lines.
    """
    n, m = a_hi - a_lo, b_hi - b_lo
    max_d = (n + m + 1) // 2
    offset = max_d
    size = 2 * max_d + 2
    forward = [-1] * size
    backward = [-1] * size
    forward[offset + 1] = 0
    backward[offset + 1] = 0
    delta = n - m
    odd = delta % 2 != 0
    # diagonals trimmed off each end once a search leaves the grid
    f_start = f_end = b_start = b_end = 0

    for d in range(max_d):
        for k in range(-d + f_start, d + 1 - f_end, 2):
            idx = offset + k
            if k == -d or (k != d and forward[idx - 1] < forward[idx + 1]):
                x = forward[idx + 1]
            else:
                x = forward[idx - 1] + 1
            y = x - k
            while x < n and y < m and a[a_lo + x] == b[b_lo + y]:
                x += 1
                y += 1
            forward[idx] = x
            if x > n:
                f_end += 2
            elif y > m:
                f_start += 2
            elif odd:
                other = offset + delta - k
                if 0 <= other < size and backward[other] != -1 and x >= n - backward[other]:
                    return a_lo + x, b_lo + y

        for k in range(-d + b_start, d + 1 - b_end, 2):
            idx = offset + k
            if k == -d or (k != d and backward[idx - 1] < backward[idx + 1]):
                x = backward[idx + 1]
            else:
                x = backward[idx - 1] + 1
            y = x - k
            while x < n and y < m and a[a_hi - 1 - x] == b[b_hi - 1 - y]:
                x += 1
                y += 1
            backward[idx] = x
            if x > n:
                b_end += 2
            elif y > m:
                b_start += 2
            elif not odd:
                other = offset + delta - k
                if 0 <= other < size and forward[other] != -1:
                    fx = forward[other]
                    fy = fx - (delta - k)
                    if fx >= n - x and 0 <= fy <= m and fx <= n:
                        return a_lo + fx, b_lo + fy
    return None


def _diff_range(
    a: Sequence[str], a_lo: int, a_hi: int,
    b: Sequence[str], b_lo: int, b_hi: int,
    ops: List[Tuple[str, int, int]],
) -> None:
    while a_lo < a_hi and b_lo < b_hi and a[a_lo] == b[b_lo]:
        ops.append(("=", a_lo, b_lo))
        a_lo += 1
        b_lo += 1
    tail: List[Tuple[str, int, int]] = []
    while a_hi > a_lo and b_hi > b_lo and a[a_hi - 1] == b[b_hi - 1]:
        a_hi -= 1
        b_hi -= 1
        tail.append(("=", a_hi, b_hi))

    split = None
    if a_lo < a_hi and b_lo < b_hi and not set(a[a_lo:a_hi]).isdisjoint(b[b_lo:b_hi]):
        split = _middle_split(a, a_lo, a_hi, b, b_lo, b_hi)
    if split is None:
        ops.extend(("-", i, b_lo) for i in range(a_lo, a_hi))
        ops.extend(("+", a_hi, j) for j in range(b_lo, b_hi))
    else:
        x, y = split
        _diff_range(a, a_lo, x, b, b_lo, y, ops)
        _diff_range(a, x, a_hi, b, y, b_hi, ops)
    ops.extend(reversed(tail))


def _edit_script(a: Sequence[str], b: Sequence[str]) -> List[Tuple[str, int, int]]:
    """Ops ``("=", i, j)``, ``("-", i, j)``, ``("+", i, j)`` from start to end.

    Memory stays linear in the input size.
    """
    ops: List[Tuple[str, int, int]] = []
    _diff_range(a, 0, len(a), b, 0, len(b), ops)
    return ops


def create_unified_diff(
    original: str,
    modified: str,
    original_path: str = "original",
    modified_path: str = "modified",
) -> DiffDocument:
    """Diff two texts in memory, with every unchanged line as context.

    Inside each change block removals come before additions; a changed
    line is a removal followed by an addition. Output is deterministic.
    """
    a = _split_lines(original or "")
    b = _split_lines(modified or "")

    prefix = 0
    while prefix < len(a) and prefix < len(b) and a[prefix] == b[prefix]:
        prefix += 1
    suffix = 0
    while (
        suffix < len(a) - prefix
        and suffix < len(b) - prefix
        and a[len(a) - 1 - suffix] == b[len(b) - 1 - suffix]
    ):
        suffix += 1

    lines: List[DiffLine] = [
        DiffLine(LineType.CONTEXT, a[i], i + 1, i + 1) for i in range(prefix)
    ]
    removed: List[DiffLine] = []
    added: List[DiffLine] = []

    def flush() -> None:
        lines.extend(removed)
        lines.extend(added)
        removed.clear()
        added.clear()

    middle_a = a[prefix:len(a) - suffix]
    middle_b = b[prefix:len(b) - suffix]
    for op, i, j in _edit_script(middle_a, middle_b):
        old_idx, new_idx = prefix + i, prefix + j
        if op == "=":
            flush()
            lines.append(DiffLine(LineType.CONTEXT, a[old_idx], old_idx + 1, new_idx + 1))
        elif op == "-":
            removed.append(DiffLine(LineType.REMOVED, a[old_idx], old_idx + 1, None))
        else:
            added.append(DiffLine(LineType.ADDED, b[new_idx], None, new_idx + 1))
    flush()

    for s in range(suffix, 0, -1):
        old_idx, new_idx = len(a) - s, len(b) - s
        lines.append(DiffLine(LineType.CONTEXT, a[old_idx], old_idx + 1, new_idx + 1))

    file_diff = FileDiff(
        path=modified_path,
        original_path=original_path,
        modified_path=modified_path,
        diff_type="unified",
        lines=tuple(lines),
    )
    return DiffDocument(files=(file_diff,))
