"""Migration engine - main entry point for migration operations."""

import asyncio
import signal
from typing import Dict, List, Optional, Tuple

from loguru import logger

from ..api.bitbucket import BitbucketClient
from ..api.github import GitHubClient
from ..config.config import Config
from ..config.lfs_settings import LFSSettings
from ..git.executor import GitExecutor
from ..lfs.handler import LFSHandler
from ..lfs.history import HistoryScanner
from ..lfs.resolver import DetectionResult, LFSConfigurationResolver
from ..lfs.scanner import WorkingTreeScanner
from ..lfs.strategy import MigrationPlan, StrategySelector
from ..models.repository import RepositoryStatistics
from ..state.exceptions import MaxRetriesExceededError
from ..state.store import RepositoryStateStore
from .orchestrator import MigrationOrchestrator, ProgressCallback, RunSummary


class MigrationEngine:
    """Main migration engine that coordinates the entire migration process."""

    def __init__(self, config: Config):
        """Initialize migration engine.

        Args:
            config: Migration configuration
        """
        self.config = config
        self.logger = logger.bind(component='MigrationEngine')

        self.store = RepositoryStateStore(config.migration.state_file)
        self.executor = GitExecutor(config.git)
        self.source_client = BitbucketClient(config.source)
        self.destination_client = GitHubClient(config.destination)

        settings = LFSSettings.load(config.lfs.settings_file)
        self.resolver = LFSConfigurationResolver(
            settings,
            config.lfs,
            WorkingTreeScanner(config.lfs),
            HistoryScanner(self.executor, config.lfs),
        )
        self.selector = StrategySelector(config.lfs)
        self.lfs_handler = LFSHandler(self.executor, self.resolver, self.selector)

        self.orchestrator = MigrationOrchestrator(
            config,
            self.store,
            self.destination_client,
            self.executor,
            self.lfs_handler,
        )

    def list_repositories(self, force: bool = False) -> int:
        """Build the state table from the Bitbucket workspace listing.

        Args:
            force: Overwrite an existing state table

        Returns:
            Number of repositories written
        """
        records = self.source_client.list_repositories()
        return self.store.initialize(records, force=force)

    async def migrate(
        self,
        names: Optional[List[str]] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> RunSummary:
        """Migrate pending repositories, or only the named ones.

        Args:
            names: Repository names to migrate instead of the pending queue
            progress_callback: Called with (done, total, description)

        Returns:
            Run summary

        Raises:
            MaxRetriesExceededError: If a named repository has no retries left
            RuntimeError: If git or git-lfs is missing
            ConnectionError: If GitHub is unreachable
        """
        records = None
        if names:
            records = [self.store.get(name) for name in names]
            for record in records:
                if record.is_exhausted:
                    raise MaxRetriesExceededError(record.name, record.retry_count)

        self.logger.info('Starting Bitbucket to GitHub migration')

        if not await self.executor.check_dependencies():
            raise RuntimeError('git and git-lfs must be installed')
        if not self.destination_client.test_connection():
            raise ConnectionError('Cannot connect to GitHub')

        loop = asyncio.get_running_loop()
        task = asyncio.current_task()
        handles_sigterm = self._install_signal_handler(loop, task)

        try:
            summary = await self.orchestrator.run(records, progress_callback)
            self.logger.info('Migration run finished')
            return summary
        except Exception as e:
            self.logger.error(f'Migration failed: {e}')
            raise
        finally:
            if handles_sigterm:
                loop.remove_signal_handler(signal.SIGTERM)

    async def retry_failed(
        self, progress_callback: Optional[ProgressCallback] = None
    ) -> RunSummary:
        """Reset failed repositories and migrate them again."""
        failed = self.store.failed_repositories()
        for record in failed:
            self.store.clear_error(record.name)
        self.logger.info(f'Reset {len(failed)} failed repositories for retry')
        return await self.migrate(progress_callback=progress_callback)

    def statistics(self) -> RepositoryStatistics:
        return self.store.statistics()

    async def detect(self, repo_path: str, name: str) -> Tuple[DetectionResult, MigrationPlan]:
        """Run LFS detection on a local working copy without changing it.

        Args:
            repo_path: Working copy root
            name: Repository name used to look up LFS settings

        Returns:
            Detection result and the plan that would be applied
        """
        detection = await self.resolver.resolve(name, repo_path)
        return detection, self.selector.select(detection)

    async def validate(self) -> Dict[str, bool]:
        """Check tools and connectivity needed for a migration.

        Returns:
            Mapping of check name to result
        """
        self.logger.info('Validating environment')
        return {
            'git': await self.executor.check_dependencies(),
            'bitbucket': self.source_client.test_connection(),
            'github': self.destination_client.test_connection(),
        }

    def close(self) -> None:
        self.source_client.close()
        self.destination_client.close()

    def _install_signal_handler(self, loop, task) -> bool:
        if task is None:
            return False
        try:
            loop.add_signal_handler(signal.SIGTERM, task.cancel)
        except (NotImplementedError, RuntimeError):
            # not supported on this platform or outside the main thread
            return False
        return True
