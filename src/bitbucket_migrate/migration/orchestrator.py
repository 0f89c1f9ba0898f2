"""Migration orchestrator driving repositories through their migration states."""

import asyncio
import shutil
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

from loguru import logger
from pydantic import BaseModel, Field

from ..api.exceptions import (
    DestinationNotEmptyError,
    GitHubAPIError,
    GitHubRateLimitError,
    GitHubValidationError,
)
from ..api.github import GitHubClient
from ..config.config import Config
from ..git.exceptions import GitCommandError
from ..git.executor import GitExecutor
from ..lfs.exceptions import StrategyExecutionError
from ..lfs.handler import LFSHandler
from ..models.repository import RepositoryRecord
from ..state.exceptions import MaxRetriesExceededError, StoreUnavailableError
from ..state.store import RepositoryStateStore
from ..utils.helpers import estimate_time_remaining, retry_async, sanitize_for_log

DESTINATION_REMOTE = 'github'

ProgressCallback = Callable[[int, int, str], None]


class RepositoryState(str, Enum):
    """Final state of a repository within one run."""

    COMPLETED = 'completed'
    FAILED = 'failed'
    SKIPPED = 'skipped'


class RepositoryResult(BaseModel):
    """Outcome of migrating one repository."""

    name: str = Field(..., description='Repository name')
    state: RepositoryState = Field(..., description='Final state in this run')
    error: Optional[str] = Field(default=None, description='Failure message')
    lfs: bool = Field(default=False, description='Pushed with LFS objects')
    lfs_files: List[str] = Field(
        default_factory=list, description='Paths stored in LFS'
    )
    rate_limited: bool = Field(
        default=False, description='Hit the API quota during this run'
    )


class RunSummary(BaseModel):
    """Summary of a migration run."""

    total: int = Field(default=0, description='Repositories queued for the run')
    started_at: datetime = Field(..., description='Run start time')
    completed_at: Optional[datetime] = Field(
        default=None, description='Run completion time'
    )
    results: List[RepositoryResult] = Field(
        default_factory=list, description='Per repository results'
    )
    interrupted: bool = Field(default=False, description='Run was cancelled')

    def count(self, state: RepositoryState) -> int:
        return sum(1 for result in self.results if result.state == state)

    @property
    def completed(self) -> int:
        return self.count(RepositoryState.COMPLETED)

    @property
    def failed(self) -> int:
        return self.count(RepositoryState.FAILED)

    @property
    def skipped(self) -> int:
        return self.count(RepositoryState.SKIPPED)

    @property
    def lfs_repositories(self) -> int:
        return sum(1 for result in self.results if result.lfs)

    @property
    def rate_limit_hits(self) -> int:
        return sum(1 for result in self.results if result.rate_limited)


class DestinationResult(BaseModel):
    """Destination repository prepared for a push."""

    created: bool = Field(..., description='Created during this attempt')
    created_at: Optional[datetime] = Field(
        default=None, description='Creation time reported by GitHub'
    )


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            pass
    return datetime.now(timezone.utc)


class MigrationOrchestrator:
    """Migrates pending repositories one at a time.

    Each repository moves processing -> completed or processing -> failed.
    An exhausted API quota suspends the whole run until the quota resets,
    then the same repository is attempted once more without consuming one
    of its retries.
    """

    def __init__(
        self,
        config: Config,
        store: RepositoryStateStore,
        github: GitHubClient,
        executor: GitExecutor,
        lfs_handler: LFSHandler,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize migration orchestrator.

        Args:
            config: Full tool configuration
            store: Repository state table
            github: Destination API client
            executor: Git command executor
            lfs_handler: LFS preparation handler
            sleep: Sleep coroutine, injectable for tests
        """
        self.config = config
        self.store = store
        self.github = github
        self.executor = executor
        self.lfs_handler = lfs_handler
        self._sleep = sleep
        self.temp_dir = Path(config.git.temp_dir)
        self.logger = logger.bind(component='MigrationOrchestrator')

    def working_copy(self, name: str) -> Path:
        return self.temp_dir / name

    async def ensure_destination(self, name: str) -> DestinationResult:
        """Make sure an empty destination repository exists.

        An existing empty repository is reused. Creation is retried on
        transient errors but never on quota or validation errors.

        Raises:
            DestinationNotEmptyError: If the repository exists with content
            GitHubRateLimitError: If the API quota is exhausted
        """
        if self.github.repository_exists(name):
            if not self.github.is_repository_empty(name):
                raise DestinationNotEmptyError(
                    f'GitHub repository {name} already exists and is not empty'
                )
            self.logger.info(f'{name}: reusing existing empty GitHub repository')
            return DestinationResult(created=False)

        async def create() -> Dict[str, Any]:
            return self.github.create_repository(name)

        data = await retry_async(
            create,
            attempts=self.config.migration.create_retries,
            delay=self.config.migration.create_retry_delay,
            no_retry=(GitHubRateLimitError, GitHubValidationError),
            sleep=self._sleep,
        )
        return DestinationResult(
            created=True, created_at=_parse_timestamp(data.get('created_at'))
        )

    async def migrate_repository(self, record: RepositoryRecord) -> RepositoryResult:
        """Run one migration attempt for a repository.

        Failures other than quota exhaustion are recorded on the state table
        and returned as a failed result.

        Raises:
            MaxRetriesExceededError: If the record has no retries left
            GitHubRateLimitError: If the quota ran out; the record is released
                without consuming a retry
        """
        name = record.name
        if record.is_exhausted:
            raise MaxRetriesExceededError(name, record.retry_count)

        self.logger.info(f'Migrating {name} (branch {record.branch})')
        self.store.mark_processing(name)
        repo_path = self.working_copy(name)
        destination: Optional[DestinationResult] = None

        try:
            self._remove_working_copy(repo_path)
            destination = await self.ensure_destination(name)

            await self.executor.clone_single_branch(
                self.config.source.clone_url(name), record.branch, str(repo_path)
            )
            lfs_result = await self.lfs_handler.prepare(name, str(repo_path))

            if lfs_result.has_lfs:
                self.store.update(name, lfs=True)
                self._enable_lfs(name)

            await self.executor.add_remote(
                str(repo_path),
                DESTINATION_REMOTE,
                self.config.destination.push_url(name),
            )
            await self.executor.push(str(repo_path), DESTINATION_REMOTE, record.branch)
            if lfs_result.has_lfs:
                await self.executor.push_large_objects(
                    str(repo_path), DESTINATION_REMOTE
                )

            self.store.mark_completed(
                name, created_at=destination.created_at, lfs=lfs_result.has_lfs
            )
            self.logger.info(f'{name}: migration completed')
            return RepositoryResult(
                name=name,
                state=RepositoryState.COMPLETED,
                lfs=lfs_result.has_lfs,
                lfs_files=lfs_result.files,
            )

        except GitHubRateLimitError as e:
            self._rollback(name, destination)
            self.store.release(name, sanitize_for_log(str(e)))
            raise

        except (
            GitHubAPIError,
            GitCommandError,
            StrategyExecutionError,
            OSError,
        ) as e:
            message = sanitize_for_log(str(e))
            self.logger.error(f'{name}: migration failed: {message}')
            self._rollback(name, destination)
            self.store.mark_failed(name, message)
            return RepositoryResult(
                name=name, state=RepositoryState.FAILED, error=message
            )

        finally:
            if self.config.git.cleanup_temp:
                self._remove_working_copy(repo_path)

    async def run(
        self,
        records: Optional[List[RepositoryRecord]] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> RunSummary:
        """Migrate repositories until the queue is drained.

        Args:
            records: Records to migrate, defaults to every pending record
            progress_callback: Called with (done, total, description)

        Returns:
            Run summary
        """
        self.store.reset_stale_processing()
        self.store.snapshot()

        queue = list(records) if records is not None else self.store.pending_repositories()
        summary = RunSummary(total=len(queue), started_at=datetime.now(timezone.utc))
        self.logger.info(f'Starting migration of {len(queue)} repositories')

        index = 0
        quota_retried = set()

        def report(description: str) -> None:
            if progress_callback:
                progress_callback(index, len(queue), description)

        try:
            while index < len(queue):
                record = queue[index]
                report(f'Migrating {record.name}')

                if record.transferred:
                    result = RepositoryResult(
                        name=record.name, state=RepositoryState.SKIPPED
                    )
                else:
                    try:
                        result = await self.migrate_repository(record)
                    except GitHubRateLimitError as e:
                        if record.name not in quota_retried:
                            quota_retried.add(record.name)
                            await self._suspend(e)
                            continue

                        message = sanitize_for_log(str(e))
                        self.store.mark_failed(record.name, message)
                        result = RepositoryResult(
                            name=record.name,
                            state=RepositoryState.FAILED,
                            error=message,
                        )

                if record.name in quota_retried:
                    result.rate_limited = True
                summary.results.append(result)
                index += 1
                report(f'{record.name}: {result.state.value}')
                elapsed = (datetime.now(timezone.utc) - summary.started_at).total_seconds()
                self.logger.info(
                    f'Progress {index}/{len(queue)}, '
                    f'remaining: {estimate_time_remaining(index, len(queue), elapsed)}'
                )

                if self._cooldown_due(index, len(queue)):
                    await self._cooldown()

        except asyncio.CancelledError:
            summary.interrupted = True
            self.logger.warning('Migration interrupted, cleaning up')
            raise

        finally:
            self.cleanup()
            summary.completed_at = datetime.now(timezone.utc)

        self.logger.info(
            f'Migration finished: {summary.completed} completed, '
            f'{summary.failed} failed, {summary.skipped} skipped'
        )
        return summary

    def cleanup(self) -> None:
        """Reset processing flags and remove local working copies."""
        try:
            reset = self.store.reset_stale_processing()
            if reset:
                self.logger.info(f'Released {reset} repositories still processing')
        except StoreUnavailableError as e:
            self.logger.error(f'Could not reset processing flags: {e}')

        if self.config.git.cleanup_temp and self.temp_dir.exists():
            shutil.rmtree(self.temp_dir, ignore_errors=True)
            self.logger.debug(f'Removed temp directory {self.temp_dir}')

    def _enable_lfs(self, name: str) -> None:
        try:
            self.github.enable_lfs(name)
        except GitHubRateLimitError:
            raise
        except GitHubAPIError as e:
            self.logger.warning(f'{name}: could not enable LFS on GitHub: {e}')

    def _rollback(self, name: str, destination: Optional[DestinationResult]) -> None:
        """Delete the destination if this attempt created it."""
        if destination is None or not destination.created:
            return
        try:
            self.github.delete_repository(name)
            self.logger.info(f'{name}: removed GitHub repository after failure')
        except GitHubAPIError as e:
            self.logger.warning(f'{name}: could not remove GitHub repository: {e}')

    def _remove_working_copy(self, repo_path: Path) -> None:
        if repo_path.exists():
            shutil.rmtree(repo_path)

    def _cooldown_due(self, done: int, total: int) -> bool:
        every = self.config.migration.batch_pause_every
        return done < total and done % every == 0

    async def _cooldown(self) -> None:
        seconds = self.config.migration.batch_pause_seconds
        self.logger.info(f'Pausing {seconds}s between batches')
        await self._sleep(seconds)

    async def _suspend(self, error: GitHubRateLimitError) -> None:
        wait = error.wait_seconds + self.config.migration.rate_limit_buffer_seconds
        self.logger.warning(
            f'GitHub rate limit reached, waiting {wait:.0f}s until '
            f'{error.reset_at.isoformat()}'
        )
        await self._sleep(wait)
