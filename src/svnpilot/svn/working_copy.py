"""Working-copy operations composed from commands, the executor and parsers.

Query methods return parsed models and degrade to empty/None when svn
exits non-zero. Mutating methods hand back the ExecutionResult. Launch
errors, cancellation and timeouts propagate unchanged.
"""

from __future__ import annotations

import logging
import os
import re
from collections import Counter
from typing import Any, List, Optional, Sequence

from svnpilot.svn import command as cmd
from svnpilot.svn.command import Command, Revision
from svnpilot.svn.diff_parser import parse_diff_in_worker
from svnpilot.svn.executor import ExecutionResult, SvnExecutor
from svnpilot.svn.models import (
    BlameResult,
    ConflictFiles,
    Depth,
    DiffDocument,
    InfoEntry,
    ListEntry,
    LogEntry,
    MergeAccept,
    Property,
    StatusEntry,
    StatusFilter,
    StatusKind,
    StatusNode,
    WorkingCopySummary,
    build_status_tree,
    filter_statuses,
)
from svnpilot.svn.parsers import (
    BlameParser,
    InfoParser,
    ListParser,
    LogParser,
    PropertyParser,
    StatusParser,
    merge_blame,
)
from svnpilot.svn.paths import ADMIN_DIR, is_url, normalize_path

logger = logging.getLogger(__name__)


def _run_directory(*paths: Optional[str]) -> Optional[str]:
    """Directory to run in for local targets.

    None for URLs and whenever a local operand is relative, so relative
    paths resolve against the caller's working directory. ``^/`` operands
    are repository-relative and do not count as local.
    """
    local = [p for p in paths if p and not is_url(p) and not p.startswith("^/")]
    if not local or not all(os.path.isabs(p) for p in local):
        return None
    path = normalize_path(local[0])
    if os.path.isdir(path):
        return path
    return os.path.dirname(path)


def find_conflict_files(path: str) -> ConflictFiles:
    """Locate the conflict artifacts svn left next to *path* on disk.

    Merge artifacts win over update artifacts. With two ``.rN`` files the
    lower revision is the base and the higher one is theirs.
    """
    directory, name = os.path.split(path)
    try:
        siblings = os.listdir(directory or ".")
    except OSError:
        return ConflictFiles()

    def existing(candidate: str) -> Optional[str]:
        return os.path.join(directory, candidate) if candidate in siblings else None

    escaped = re.escape(name)
    left = sorted(s for s in siblings if re.fullmatch(escaped + r"\.merge-left\.r\d+", s))
    right = sorted(s for s in siblings if re.fullmatch(escaped + r"\.merge-right\.r\d+", s))
    if left or right:
        return ConflictFiles(
            mine=existing(f"{name}.working"),
            base=os.path.join(directory, left[-1]) if left else None,
            theirs=os.path.join(directory, right[-1]) if right else None,
        )

    revisions = sorted(
        int(m.group(1))
        for m in (re.fullmatch(escaped + r"\.r(\d+)", s) for s in siblings)
        if m
    )
    base = theirs = None
    if revisions:
        base = os.path.join(directory, f"{name}.r{revisions[0]}")
        if len(revisions) > 1:
            theirs = os.path.join(directory, f"{name}.r{revisions[-1]}")
    return ConflictFiles(mine=existing(f"{name}.mine"), base=base, theirs=theirs)


class WorkingCopyService:
    """High-level svn operations against one executor.

    ``options`` on the mutating methods are forwarded to
    :meth:`SvnExecutor.run` (``cancel``, ``on_stdout``, ``on_stderr``,
    ``timeout``).
    """

    def __init__(self, executor: SvnExecutor, log_limit: int = 100) -> None:
        self.executor = executor
        self.log_limit = log_limit

    async def _run(self, command: Command, *targets: Optional[str], **options: Any) -> ExecutionResult:
        return await self.executor.run(command, cwd=_run_directory(*targets), **options)

    async def _query(self, command: Command, *targets: Optional[str], **options: Any) -> Optional[str]:
        result = await self._run(command, *targets, **options)
        if not result.success:
            logger.warning("svn %s failed (exit %d): %s", command.verb, result.exit_code, result.error)
            return None
        return result.stdout

    # ── queries ──────────────────────────────────────────────────────────────

    async def is_working_copy(self, path: str) -> bool:
        if not path or not os.path.isdir(os.path.join(path, ADMIN_DIR)):
            return False
        result = await self._run(cmd.info(path), path)
        return result.success

    async def find_root(self, path: str) -> Optional[str]:
        """Walk up from *path* to the first directory svn accepts as a working copy."""
        if not path:
            return None
        current = normalize_path(path)
        if not os.path.isdir(current):
            current = os.path.dirname(current)
        while current:
            if await self.is_working_copy(current):
                return current
            parent = os.path.dirname(current)
            if parent == current:
                break
            current = parent
        return None

    async def status(
        self,
        path: str,
        verbose: bool = False,
        show_updates: bool = False,
        depth: Optional[Depth] = None,
        **options: Any,
    ) -> List[StatusEntry]:
        """Status via ``--xml``, falling back to the text form."""
        command = cmd.status(path, verbose=verbose, show_updates=show_updates, depth=depth)
        root = await self.executor.run_xml(command, cwd=_run_directory(path), **options)
        if root is not None:
            return StatusParser.parse_xml(root)
        text = await self._query(command, path, **options)
        return StatusParser.parse(text) if text is not None else []

    async def conflicted(self, path: str) -> List[StatusEntry]:
        return [entry for entry in await self.status(path) if entry.has_conflict]

    async def file_status(self, path: str, **options: Any) -> Optional[StatusEntry]:
        """Status of *path* alone, including an unmodified item."""
        entries = await self.status(path, verbose=True, depth=Depth.EMPTY, **options)
        return entries[0] if entries else None

    async def status_tree(self, path: str, **options: Any) -> List[StatusNode]:
        """Every item under *path* nested by directory."""
        if not path:
            return []
        return build_status_tree(await self.status(path, verbose=True, **options), path)

    async def filtered_status(
        self,
        path: str,
        status_filter: StatusFilter = StatusFilter.ALL,
        text: str = "",
        **options: Any,
    ) -> List[StatusEntry]:
        return filter_statuses(await self.status(path, **options), status_filter, text)

    async def info(self, path: str) -> Optional[InfoEntry]:
        command = cmd.info(path)
        root = await self.executor.run_xml(command, cwd=_run_directory(path))
        entries = InfoParser.parse_xml(root)
        if not entries:
            text = await self._query(command, path)
            entries = InfoParser.parse(text) if text is not None else []
        return entries[0] if entries else None

    async def summary(self, path: str) -> Optional[WorkingCopySummary]:
        """Info of the working-copy root plus local change counts."""
        root = await self.find_root(path)
        if root is None:
            return None
        info = await self.info(root)
        if info is None:
            return None
        statuses = await self.status(root)
        counts = Counter(s.item for s in statuses)
        return WorkingCopySummary(
            path=root,
            url=info.url,
            repository_root=info.repository_root,
            repository_uuid=info.repository_uuid,
            revision=info.revision,
            last_changed_revision=info.last_changed_revision,
            last_changed_author=info.last_changed_author,
            last_changed_date=info.last_changed_date,
            relative_url=info.relative_url,
            depth=info.depth,
            modified=counts[StatusKind.MODIFIED],
            added=counts[StatusKind.ADDED],
            deleted=counts[StatusKind.DELETED],
            conflicted=sum(1 for s in statuses if s.has_conflict),
            has_uncommitted_changes=any(s.has_local_modifications for s in statuses),
            changed_paths=[s.path for s in statuses if s.has_local_modifications],
        )

    async def log(
        self,
        path: str,
        limit: Optional[int] = None,
        verbose: bool = True,
        start: Optional[Revision] = None,
        end: Optional[Revision] = None,
    ) -> List[LogEntry]:
        command = cmd.log(path, limit=limit or self.log_limit, verbose=verbose, start=start, end=end)
        root = await self.executor.run_xml(command, cwd=_run_directory(path))
        if root is not None:
            return LogParser.parse_xml(root)
        text = await self._query(command, path)
        return LogParser.parse(text) if text is not None else []

    async def diff(
        self,
        path: str,
        start: Optional[Revision] = None,
        end: Optional[Revision] = None,
        change: Optional[int] = None,
        **options: Any,
    ) -> DiffDocument:
        text = await self._query(cmd.diff(path, start=start, end=end, change=change), path, **options)
        if not text:
            return DiffDocument()
        return await parse_diff_in_worker(text)

    async def blame(self, path: str, revision: Optional[Revision] = None) -> BlameResult:
        """Text blame for content, XML blame for dates and merge flags."""
        command = cmd.blame(path, revision=revision)
        text = await self._query(command, path)
        text_result = BlameParser.parse(text or "", path=path)
        root = await self.executor.run_xml(command, cwd=_run_directory(path))
        return merge_blame(BlameParser.parse_xml(root), text_result)

    async def list(self, path: str, revision: Optional[Revision] = None) -> List[ListEntry]:
        command = cmd.list_(path, revision=revision)
        root = await self.executor.run_xml(command, cwd=_run_directory(path))
        if root is not None:
            return ListParser.parse_xml(root)
        text = await self._query(cmd.list_(path, revision=revision, verbose=True), path)
        return ListParser.parse(text) if text is not None else []

    async def properties(self, path: str, recursive: bool = False) -> List[Property]:
        command = cmd.proplist(path, recursive=recursive, verbose=True)
        root = await self.executor.run_xml(command, cwd=_run_directory(path))
        if root is not None:
            return PropertyParser.parse_xml(root)
        text = await self._query(command, path)
        return PropertyParser.parse(text) if text is not None else []

    async def get_property(self, name: str, path: str) -> Optional[str]:
        text = await self._query(cmd.propget(name, path), path)
        return text.rstrip("\n") if text is not None else None

    async def cat(self, path: str, revision: Optional[Revision] = None) -> Optional[str]:
        return await self._query(cmd.cat(path, revision=revision), path)

    def find_conflict_files(self, path: str) -> ConflictFiles:
        return find_conflict_files(path)

    # ── mutations ────────────────────────────────────────────────────────────

    async def update(self, path: str, revision: Optional[Revision] = None,
                     accept: Optional[MergeAccept] = None, **options: Any) -> ExecutionResult:
        return await self._run(cmd.update(path, revision=revision, accept=accept), path, **options)

    async def commit(self, message: str, paths: Sequence[str], **options: Any) -> ExecutionResult:
        targets = list(paths)
        return await self._run(cmd.commit(message, targets), *targets, **options)

    async def commit_all(self, path: str, message: str, **options: Any) -> ExecutionResult:
        """Commit every local change under *path*."""
        return await self._run(cmd.commit(message, [path]), path, **options)

    async def add(self, path: str, force: bool = False, **options: Any) -> ExecutionResult:
        return await self._run(cmd.add(path, force=force), path, **options)

    async def delete(self, path: str, force: bool = False, **options: Any) -> ExecutionResult:
        return await self._run(cmd.delete(path, force=force), path, **options)

    async def revert(self, path: str, recursive: bool = False, **options: Any) -> ExecutionResult:
        return await self._run(cmd.revert(path, recursive=recursive), path, **options)

    async def cleanup(self, path: str, remove_unversioned: bool = False,
                      remove_ignored: bool = False, **options: Any) -> ExecutionResult:
        command = cmd.cleanup(path, remove_unversioned=remove_unversioned, remove_ignored=remove_ignored)
        return await self._run(command, path, **options)

    async def branch(self, source_url: str, destination_url: str, message: str, **options: Any) -> ExecutionResult:
        """Branch or tag with a repository-side copy. Local paths are rejected."""
        return await self._run(cmd.copy(source_url, destination_url, message), **options)

    async def switch(self, path: str, url: str, revision: Optional[Revision] = None, **options: Any) -> ExecutionResult:
        return await self._run(cmd.switch(path, url, revision=revision), path, **options)

    async def merge(self, source: str, start: Revision, end: Revision, target: str,
                    dry_run: bool = False, accept: Optional[MergeAccept] = None,
                    **options: Any) -> ExecutionResult:
        command = cmd.merge(source, start, end, target, dry_run=dry_run, accept=accept)
        return await self._run(command, source, target, **options)

    async def checkout(self, url: str, path: str, revision: Optional[Revision] = None, **options: Any) -> ExecutionResult:
        # target may not exist yet; an absolute one runs from its parent
        return await self._run(cmd.checkout(url, path, revision=revision), path, **options)

    async def export(self, source: str, destination: str, revision: Optional[Revision] = None,
                     force: bool = False, **options: Any) -> ExecutionResult:
        return await self._run(cmd.export(source, destination, revision=revision, force=force), source, destination, **options)

    async def lock(self, path: str, message: Optional[str] = None, force: bool = False, **options: Any) -> ExecutionResult:
        return await self._run(cmd.lock(path, message=message, force=force), path, **options)

    async def unlock(self, path: str, force: bool = False, **options: Any) -> ExecutionResult:
        return await self._run(cmd.unlock(path, force=force), path, **options)

    async def resolve(self, path: str, accept: MergeAccept = MergeAccept.WORKING, **options: Any) -> ExecutionResult:
        return await self._run(cmd.resolve(path, accept=accept), path, **options)

    async def mkdir(self, path: str, message: Optional[str] = None, parents: bool = False, **options: Any) -> ExecutionResult:
        return await self._run(cmd.mkdir(path, message=message, parents=parents), path, **options)

    async def move(self, source: str, destination: str, **options: Any) -> ExecutionResult:
        return await self._run(cmd.move(source, destination), source, destination, **options)

    async def import_(self, local_path: str, repository_url: str, message: str,
                      no_ignore: bool = False, **options: Any) -> ExecutionResult:
        command = cmd.import_(local_path, repository_url, message, no_ignore=no_ignore)
        return await self._run(command, local_path, **options)

    async def relocate(self, from_url: str, to_url: str, path: Optional[str] = None, **options: Any) -> ExecutionResult:
        return await self._run(cmd.relocate(from_url, to_url, path), path, **options)

    async def set_property(self, name: str, value: str, path: str, **options: Any) -> ExecutionResult:
        return await self._run(cmd.propset(name, value, path), path, **options)

    async def delete_property(self, name: str, path: str, **options: Any) -> ExecutionResult:
        return await self._run(cmd.propdel(name, path), path, **options)
