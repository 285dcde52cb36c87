"""
Mirrors a folder tree from the object store into the configured destinations.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

from rich.markup import escape

from plexsync.exceptions import BlobNotFoundError, FetchError, FileIntegrityError
from plexsync.media import FileIntegrityChecker
from plexsync.models.outcome import DownloadResult
from plexsync.models.stats import JobStats
from plexsync.models.tree import FileLeaf, FolderNode
from plexsync.utils.path import create_dir, join_key, local_folder_for
from plexsync.utils.structured_logger import JobLogger

from .interfaces import ObjectFetcher
from .resolver import CategoryResolver

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class FolderStep:
    """One folder as visited by the traversal."""

    node: FolderNode
    path: str
    local_folder: Optional[Path] = None
    skip_reason: Optional[str] = None
    # Whether the traversal continues into this folder's subfolders
    descend: bool = True

    @property
    def skipped(self) -> bool:
        return self.local_folder is None


@dataclass(frozen=True)
class PlannedFile:
    """A file the traversal would fetch, and where it would be written."""

    key: str
    local_path: Path
    size: int


class TreeDownloader:
    """
    Walks a folder tree depth-first and fetches every file into the local
    directory derived from its category.

    Files within a folder are fetched one at a time in declared order, and the
    first failing fetch ends the whole download. Folders whose category cannot
    be determined or has no destination are skipped without failing the job.
    """

    def __init__(
        self,
        resolver: CategoryResolver,
        fetcher: ObjectFetcher,
        verify_size: bool = False,
        job_logger: Optional[JobLogger] = None,
    ):
        self.resolver = resolver
        self.fetcher = fetcher
        self.verify_size = verify_size
        self.job_logger = job_logger

    def walk(self, node: FolderNode, ancestor_path: str = "") -> Iterator[FolderStep]:
        """
        Yields each folder of the tree in depth-first, declared order.

        A folder without a category (the root) is skipped but its subfolders are
        still visited; a folder with an unmapped category is skipped together
        with everything below it. Children are only scheduled once the caller
        resumes the iterator, so abandoning it stops the walk.
        """
        pending = [(node, ancestor_path)]
        while pending:
            current, parent_path = pending.pop()
            step = self._resolve_folder(current, join_key(parent_path, current.name))
            yield step
            if step.descend:
                pending.extend(
                    (child, step.path) for child in reversed(current.subfolders)
                )

    def _resolve_folder(self, node: FolderNode, path: str) -> FolderStep:
        category = self.resolver.resolve_category(path)
        if category is None:
            return FolderStep(
                node, path, skip_reason="media type could not be determined"
            )

        root = self.resolver.destination_root(category)
        if root is None:
            return FolderStep(
                node,
                path,
                skip_reason=f"no download directory mapped for '{category}'",
                descend=False,
            )

        return FolderStep(node, path, local_folder=local_folder_for(root, path))

    def plan(self, node: FolderNode) -> tuple[list[PlannedFile], list[FolderStep]]:
        """
        Computes every key -> local path pair without touching the network or
        the filesystem.

        Returns:
            The files that would be fetched and the folders that would be skipped.
        """
        files, skipped = [], []
        for step in self.walk(node):
            if step.skipped:
                skipped.append(step)
                continue
            files.extend(
                PlannedFile(
                    join_key(step.path, leaf.name),
                    step.local_folder / leaf.name,
                    leaf.size,
                )
                for leaf in step.node.files
            )
        return files, skipped

    async def download(
        self,
        node: FolderNode,
        ancestor_path: str = "",
        stats: Optional[JobStats] = None,
        message_id: str = "",
    ) -> DownloadResult:
        """
        Materializes one subtree into local storage.

        Args:
            node: The folder to mirror.
            ancestor_path: Slash-joined names of the folders above `node`.
            stats: Counters updated as files are fetched.
            message_id: Identifier used in job event logs.

        Returns:
            A completed result when every visited file was fetched, a skipped
            result when no folder of the tree is mapped, and a failed result
            (with the reason) at the first fetch that did not succeed.
        """
        stats = stats if stats is not None else JobStats()
        visited = 0

        for step in self.walk(node, ancestor_path):
            if step.skipped:
                stats.branches_skipped += 1
                log.info(
                    f"[yellow]○ Skipping {escape(step.path)}:[/yellow] "
                    f"{escape(step.skip_reason or '')}"
                )
                if self.job_logger:
                    self.job_logger.branch_skipped(
                        message_id, step.path, step.skip_reason
                    )
                continue

            visited += 1
            stats.folders_visited += 1
            await asyncio.to_thread(create_dir, step.local_folder)

            for leaf in step.node.files:
                key = join_key(step.path, leaf.name)
                destination = step.local_folder / leaf.name
                error = await self._fetch_file(
                    key, destination, leaf, stats, message_id
                )
                if error:
                    return DownloadResult.failed(error)

        if not visited:
            return DownloadResult.skipped("no folder of the tree is mapped")
        return DownloadResult.completed()

    async def _fetch_file(
        self,
        key: str,
        destination: Path,
        leaf: FileLeaf,
        stats: JobStats,
        message_id: str,
    ) -> Optional[str]:
        """Fetches one file. Returns None on success, the failure reason otherwise."""
        try:
            if not await self.fetcher.exists(key):
                raise BlobNotFoundError(key)

            log.debug(f"Downloading {escape(key)} to {escape(str(destination))}...")
            written = await self.fetcher.fetch(key, destination)

            if self.verify_size and not FileIntegrityChecker.check_size(
                str(destination), leaf.size
            ):
                raise FileIntegrityError(key, f"expected {leaf.size} bytes")
        except Exception as e:
            error = (
                e
                if isinstance(e, FetchError)
                else FetchError(key, str(e) or type(e).__name__)
            )
            log.error(f"[red]  ✗ {escape(str(error))}[/red]")
            if self.job_logger:
                self.job_logger.file_failed(message_id, key, error.reason)
            return str(error)

        stats.record_file(written if written is not None else leaf.size)
        log.info(f"  [green]✓[/green] {escape(key)}")
        if self.job_logger:
            self.job_logger.file_fetched(message_id, key, written)
        return None
