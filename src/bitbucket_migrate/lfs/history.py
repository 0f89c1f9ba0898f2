"""Detection of oversized objects in recent repository history."""

from typing import List

from loguru import logger

from ..config.config import LFSConfig
from ..git.exceptions import GitCommandError
from ..git.executor import GitExecutor
from .size import format_size


class HistoryScanner:
    """Scans a bounded window of recent revisions for oversized objects.

    Only the ``history_depth`` most recent revisions reachable from any ref
    are inspected, which catches the common case of a large file committed
    and later deleted without paying for a full history walk.
    """

    def __init__(self, executor: GitExecutor, config: LFSConfig):
        """Initialize history scanner.

        Args:
            executor: Git command executor
            config: LFS detection settings
        """
        self.executor = executor
        self.config = config
        self.logger = logger.bind(component='HistoryScanner')

    async def scan(self, repo_path: str) -> List[str]:
        """Return paths whose recorded size exceeds the threshold.

        Unreadable revisions are skipped. If revisions cannot be listed at
        all the scan degrades to an empty result.

        Args:
            repo_path: Repository root

        Returns:
            Sorted, deduplicated historical paths above the threshold
        """
        threshold = self.config.threshold_bytes
        large_files = set()

        try:
            revisions = await self.executor.list_revisions(repo_path)
        except GitCommandError as e:
            self.logger.warning(f'History scan skipped, cannot list revisions: {e}')
            return []

        window = revisions[: self.config.history_depth]
        self.logger.info(
            f'Scanning {len(window)} of {len(revisions)} revisions for objects '
            f'above {self.config.threshold}'
        )

        for revision in window:
            try:
                objects = await self.executor.list_tree_objects(repo_path, revision)
            except GitCommandError as e:
                self.logger.debug(f'Skipping unreadable revision {revision}: {e}')
                continue

            for obj in objects:
                if obj.object_type != 'blob' or obj.size <= threshold:
                    continue
                if obj.path not in large_files:
                    self.logger.info(
                        f'Found large object in history: {obj.path} '
                        f'({format_size(obj.size)})'
                    )
                    large_files.add(obj.path)

        return sorted(large_files)

    async def path_in_history(self, repo_path: str, path: str) -> bool:
        """Check whether a path was ever committed, treating errors as unknown."""
        try:
            return await self.executor.path_in_history(repo_path, path)
        except GitCommandError as e:
            self.logger.debug(f'Could not verify {path} in history: {e}')
            return False
