"""Git LFS (Large File Storage) preparation of a cloned repository."""

from dataclasses import dataclass, field
from typing import List, Optional

from loguru import logger

from ..git.exceptions import GitCommandError
from ..git.executor import GitExecutor
from .exceptions import StrategyExecutionError
from .resolver import DetectionResult, LFSConfigurationResolver
from .strategy import MigrationPlan, RewriteStrategy, StrategySelector

SOURCE_EXISTING = 'existing'


@dataclass
class LFSResult:
    """Result of preparing a repository for LFS."""

    has_lfs: bool
    source: str
    files: List[str] = field(default_factory=list)
    plan: Optional[MigrationPlan] = None
    detection: Optional[DetectionResult] = None


class LFSHandler:
    """Detects large files and rewrites history so they live in LFS."""

    def __init__(
        self,
        executor: GitExecutor,
        resolver: LFSConfigurationResolver,
        selector: StrategySelector,
    ):
        """Initialize LFS handler.

        Args:
            executor: Git command executor
            resolver: Detection resolver
            selector: Strategy selector
        """
        self.executor = executor
        self.resolver = resolver
        self.selector = selector
        self.logger = logger.bind(component='LFSHandler')

    async def prepare(self, name: str, repo_path: str) -> LFSResult:
        """Prepare a cloned repository for pushing with LFS.

        Repositories that already store LFS pointers only need their objects
        fetched. All others go through detection, strategy selection and, if
        needed, a history rewrite.

        Args:
            name: Repository name
            repo_path: Working copy root

        Returns:
            LFS result

        Raises:
            StrategyExecutionError: If writing tracking rules or the rewrite fails
        """
        existing = await self._existing_objects(repo_path)
        if existing:
            self.logger.info(f'{name}: found {len(existing)} existing LFS files')
            try:
                await self.executor.fetch_large_objects(repo_path)
            except GitCommandError as e:
                self.logger.warning(f'{name}: fetching LFS objects failed: {e}')
            return LFSResult(has_lfs=True, source=SOURCE_EXISTING, files=existing)

        detection = await self.resolver.resolve(name, repo_path)
        plan = self.selector.select(detection)

        if not plan.requires_rewrite:
            return LFSResult(
                has_lfs=False,
                source=detection.mode.value,
                plan=plan,
                detection=detection,
            )

        tracked = await self.apply(name, repo_path, plan)
        return LFSResult(
            has_lfs=bool(tracked),
            source=detection.mode.value,
            files=tracked,
            plan=plan,
            detection=detection,
        )

    async def apply(self, name: str, repo_path: str, plan: MigrationPlan) -> List[str]:
        """Write tracking rules and rewrite history according to a plan.

        Returns:
            Paths stored as LFS pointers after the rewrite
        """
        try:
            await self.executor.install_lfs(repo_path)
            await self.executor.commit_tracking_rules(repo_path, plan.tracking_rules)

            if plan.strategy == RewriteStrategy.SIZE_THRESHOLD:
                await self.executor.rewrite_history_by_size(
                    repo_path, plan.threshold_bytes
                )
            elif plan.strategy == RewriteStrategy.FILE_LIST:
                await self.executor.rewrite_history_by_file_list(repo_path, plan.files)

            tracked = await self.executor.list_tracked_large_objects(repo_path)
        except GitCommandError as e:
            raise StrategyExecutionError(
                f'LFS rewrite failed for {name}: {e}', strategy=plan.strategy.value
            ) from e

        if tracked:
            self.logger.info(f'{name}: {len(tracked)} files now stored in LFS')
        else:
            self.logger.warning(f'{name}: rewrite finished but no files are in LFS')
        return tracked

    async def _existing_objects(self, repo_path: str) -> List[str]:
        try:
            return await self.executor.list_tracked_large_objects(repo_path)
        except GitCommandError:
            return []
