"""Local path and repository URL helpers.

All helpers are pure and advisory: on malformed input they hand back the
original string (or a negative answer) instead of raising.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Iterable, Optional
from urllib.parse import quote

from svnpilot.svn.models import ConflictFiles

logger = logging.getLogger(__name__)

ADMIN_DIR = ".svn"

_URL_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")
_SEP_RE = re.compile(r"[\\/]")
_CONFLICT_ARTIFACT_RE = re.compile(
    r"\.(?:mine|working|r\d+|merge-left\.r\d+|merge-right\.r\d+)$"
)


# ── local paths ──────────────────────────────────────────────────────────────


def normalize_path(path: str) -> str:
    """Absolute, separator-normalized path without a trailing separator.

    The filesystem root keeps its separator. Normalizing a normalized path
    returns it unchanged.
    """
    if not path:
        return path
    try:
        return os.path.abspath(path)
    except (TypeError, ValueError, OSError):
        logger.debug("Could not normalize path %r", path)
        return path


def relative_path(path: str, root: str) -> str:
    """*path* relative to *root*, or *path* itself when that is impossible."""
    if not path or not root:
        return path
    try:
        return os.path.relpath(normalize_path(path), normalize_path(root))
    except ValueError:
        return path


def is_inside(path: str, root: str) -> bool:
    """True if *path* is *root* or lies beneath it.

    Relative paths are taken relative to *root*; one that starts with a
    ``..`` component is never inside.
    """
    if not path or not root:
        return False
    try:
        if not os.path.isabs(path):
            if _SEP_RE.split(path, maxsplit=1)[0] == "..":
                return False
            path = os.path.join(root, path)
        child = os.path.normcase(normalize_path(path))
        parent = os.path.normcase(normalize_path(root))
        return os.path.commonpath([child, parent]) == parent
    except (TypeError, ValueError):
        return False


def common_path(paths: Iterable[str]) -> str:
    """Deepest directory shared by *paths*; ``""`` if there is none."""
    normalized = [normalize_path(p) for p in paths if p]
    if not normalized:
        return ""
    try:
        return os.path.commonpath(normalized)
    except ValueError:
        return ""


def shorten_path(path: str, max_length: int = 50) -> str:
    """Elide the middle of a long path, keeping the file name visible."""
    if not path or len(path) <= max_length:
        return path
    directory, name = os.path.split(path)
    available = max_length - len(name) - 4
    if name and directory and available > 0:
        return directory[:available] + "..." + os.sep + name
    return path[: max(max_length - 3, 0)] + "..."


def display_path(path: str, root: Optional[str] = None) -> str:
    """Forward-slash form of *path*, relative to *root* when inside it."""
    if not path:
        return path
    if root and is_inside(path, root):
        rel = relative_path(path, root)
        path = "." if rel == os.curdir else rel
    return path.replace("\\", "/")


def is_admin_dir(path: str) -> bool:
    if not path:
        return False
    name = os.path.basename(path.rstrip("\\/"))
    return name.lower() == ADMIN_DIR


def repo_path_to_local(repo_path: str, working_copy_root: str) -> str:
    """Map a repository-relative path (``/trunk/a.txt``) under a local root."""
    if not repo_path:
        return ""
    parts = [p for p in repo_path.strip("/\\").split("/") if p]
    return os.path.join(working_copy_root, *parts)


# ── conflicts ────────────────────────────────────────────────────────────────


def is_conflict_artifact(path: str) -> bool:
    """True for the ``.mine`` / ``.rN`` / ``.merge-*`` / ``.working`` files svn leaves."""
    if not path:
        return False
    return bool(_CONFLICT_ARTIFACT_RE.search(os.path.basename(path)))


def conflict_files(
    path: str,
    base_revision: Optional[int] = None,
    their_revision: Optional[int] = None,
    merge: bool = False,
) -> ConflictFiles:
    """Names of the artifacts svn writes next to a conflicted *path*.

    An update conflict leaves ``<file>.mine``, ``<file>.r<OLD>`` (base) and
    ``<file>.r<NEW>`` (theirs). A merge conflict leaves
    ``<file>.working``, ``<file>.merge-left.r<N>`` (base) and
    ``<file>.merge-right.r<N>`` (theirs). Unknown revisions give ``None``
    for that role; base and theirs never share a name.
    """
    if not path:
        return ConflictFiles()
    if merge:
        return ConflictFiles(
            mine=f"{path}.working",
            base=f"{path}.merge-left.r{base_revision}" if base_revision is not None else None,
            theirs=f"{path}.merge-right.r{their_revision}" if their_revision is not None else None,
        )
    base = f"{path}.r{base_revision}" if base_revision is not None else None
    theirs = f"{path}.r{their_revision}" if their_revision is not None else None
    if base is not None and base == theirs:
        theirs = None
    return ConflictFiles(mine=f"{path}.mine", base=base, theirs=theirs)


# ── URLs ─────────────────────────────────────────────────────────────────────


def is_url(value: str) -> bool:
    """True for anything carrying a URL scheme (``svn://``, ``file://``, ...)."""
    return bool(value) and bool(_URL_RE.match(value))


def normalize_url(url: str) -> str:
    if not url:
        return url
    stripped = url.rstrip("/")
    # keep "file://" intact
    return stripped if not stripped.endswith(":") else url


def urls_equal(a: Optional[str], b: Optional[str]) -> bool:
    """Case-insensitive comparison ignoring trailing slashes."""
    if not a and not b:
        return True
    if not a or not b:
        return False
    return normalize_url(a).casefold() == normalize_url(b).casefold()


def path_to_file_url(path: str) -> str:
    """``file://`` URL for a local path; *path* unchanged if it is already a URL."""
    if not path or is_url(path):
        return path
    try:
        return Path(normalize_path(path)).as_uri()
    except ValueError:
        return path


def local_path_to_url(local_path: str, repository_root: str, working_copy_root: str) -> str:
    """Repository URL of a working-copy path, given the root URL and root path."""
    if not local_path or not repository_root:
        return ""
    rel = relative_path(local_path, working_copy_root)
    if rel == os.curdir:
        return normalize_url(repository_root)
    segments = [s for s in _SEP_RE.split(rel) if s]
    return normalize_url(repository_root) + "/" + "/".join(quote(s) for s in segments)


def branch_root_url(url: str, repository_root: str) -> str:
    """Repository root plus the first path segment of *url* (trunk, a branch dir...)."""
    if not url or not repository_root:
        return ""
    root = normalize_url(repository_root) + "/"
    target = normalize_url(url) + "/"
    if not target.lower().startswith(root.lower()):
        return url
    segments = [s for s in target[len(root):].split("/") if s]
    if segments:
        return root + segments[0]
    return root.rstrip("/")
