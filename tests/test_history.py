"""Tests for history scanning."""

import pytest
from unittest.mock import AsyncMock, Mock

from bitbucket_migrate.config.config import GitConfig, LFSConfig
from bitbucket_migrate.git.exceptions import GitCommandError
from bitbucket_migrate.config.lfs_settings import LFSSettings
from bitbucket_migrate.git.executor import GitExecutor, TreeObject
from bitbucket_migrate.lfs.history import HistoryScanner
from bitbucket_migrate.lfs.resolver import LFSConfigurationResolver
from bitbucket_migrate.lfs.scanner import WorkingTreeScanner
from bitbucket_migrate.lfs.strategy import RewriteStrategy, StrategySelector

from conftest import git, make_file, requires_git


def make_executor(trees, revisions=None):
    """Build an executor double serving fixed trees per revision."""
    executor = Mock(spec=GitExecutor)
    executor.list_revisions = AsyncMock(
        return_value=revisions if revisions is not None else list(trees)
    )

    async def list_tree_objects(repo_path, revision):
        tree = trees[revision]
        if isinstance(tree, Exception):
            raise tree
        return tree

    executor.list_tree_objects = AsyncMock(side_effect=list_tree_objects)
    executor.path_in_history = AsyncMock(return_value=True)
    return executor


class TestHistoryScanner:
    """Test history scanner with a fake executor."""

    def setup_method(self):
        """Set up test fixtures."""
        self.config = LFSConfig(threshold='1KB', settings_file=None)

    @pytest.mark.asyncio
    async def test_finds_deleted_large_file(self):
        """Test a large file present only in older revisions is found."""
        trees = {
            'c2': [TreeObject('README.md', 100)],
            'c1': [TreeObject('README.md', 100), TreeObject('old/video.mp4', 5000)],
        }
        scanner = HistoryScanner(make_executor(trees), self.config)

        assert await scanner.scan('/repo') == ['old/video.mp4']

    @pytest.mark.asyncio
    async def test_threshold_is_strict_and_blobs_only(self):
        """Test objects at the threshold and non-blobs are ignored."""
        trees = {
            'c1': [
                TreeObject('exact.bin', 1024),
                TreeObject('above.bin', 1025),
                TreeObject('vendor/lib', 99999, object_type='commit'),
            ]
        }
        scanner = HistoryScanner(make_executor(trees), self.config)

        assert await scanner.scan('/repo') == ['above.bin']

    @pytest.mark.asyncio
    async def test_results_are_deduplicated_and_sorted(self):
        """Test a path seen in many revisions is reported once."""
        trees = {
            'c3': [TreeObject('z.bin', 4096)],
            'c2': [TreeObject('z.bin', 4096), TreeObject('a.bin', 4096)],
            'c1': [TreeObject('a.bin', 4096)],
        }
        scanner = HistoryScanner(make_executor(trees), self.config)

        assert await scanner.scan('/repo') == ['a.bin', 'z.bin']

    @pytest.mark.asyncio
    async def test_scan_window_is_bounded(self):
        """Test only the most recent history_depth revisions are read."""
        config = LFSConfig(threshold='1KB', history_depth=2, settings_file=None)
        trees = {
            'c3': [],
            'c2': [],
            'c1': [TreeObject('ancient.bin', 4096)],
        }
        executor = make_executor(trees)
        scanner = HistoryScanner(executor, config)

        assert await scanner.scan('/repo') == []
        assert executor.list_tree_objects.await_count == 2

    @pytest.mark.asyncio
    async def test_unreadable_revision_is_skipped(self):
        """Test a failing revision does not abort the scan."""
        trees = {
            'c2': GitCommandError('bad object'),
            'c1': [TreeObject('big.bin', 4096)],
        }
        scanner = HistoryScanner(make_executor(trees), self.config)

        assert await scanner.scan('/repo') == ['big.bin']

    @pytest.mark.asyncio
    async def test_revision_listing_failure_degrades_to_empty(self):
        """Test an unreadable repository yields no historical files."""
        executor = make_executor({})
        executor.list_revisions.side_effect = GitCommandError('not a git repository')
        scanner = HistoryScanner(executor, self.config)

        assert await scanner.scan('/repo') == []

    @pytest.mark.asyncio
    async def test_path_in_history_error_is_false(self):
        """Test verification errors count as not found."""
        executor = make_executor({})
        executor.path_in_history.side_effect = GitCommandError('boom')
        scanner = HistoryScanner(executor, self.config)

        assert await scanner.path_in_history('/repo', 'a.bin') is False


@requires_git
class TestHistoryScannerWithGit:
    """Test history scanner against a real repository."""

    @pytest.mark.asyncio
    async def test_deleted_file_found_in_history(self, tmp_path):
        """Test a committed then deleted large file is detected."""
        repo = tmp_path / 'repo'
        repo.mkdir()
        git(repo, 'init', '-q')
        make_file(repo, 'README.md', 10)
        make_file(repo, 'assets/big.bin', 4096)
        git(repo, 'add', '.')
        git(repo, 'commit', '-q', '-m', 'add files')
        git(repo, 'rm', '-q', 'assets/big.bin')
        git(repo, 'commit', '-q', '-m', 'remove big file')

        executor = GitExecutor(GitConfig(timeout=60))
        scanner = HistoryScanner(executor, LFSConfig(threshold='1KB', settings_file=None))

        assert await scanner.scan(str(repo)) == ['assets/big.bin']
        assert await scanner.path_in_history(str(repo), 'assets/big.bin') is True
        assert await scanner.path_in_history(str(repo), 'assets/typo.bin') is False


@requires_git
class TestDetectionWithGit:
    """Test resolution and strategy selection on real repositories."""

    def setup_method(self):
        """Set up test fixtures."""
        self.config = LFSConfig(threshold='4KB', settings_file=None)
        self.executor = GitExecutor(GitConfig(timeout=60))

    def make_resolver(self, repositories=None):
        return LFSConfigurationResolver(
            LFSSettings(repositories=repositories or {}),
            self.config,
            WorkingTreeScanner(self.config),
            HistoryScanner(self.executor, self.config),
        )

    @pytest.mark.asyncio
    async def test_committed_file_in_working_tree_uses_file_list(self, tmp_path):
        """Test a large file still present is not reported as historical."""
        repo = tmp_path / 'with-config'
        repo.mkdir()
        git(repo, 'init', '-q')
        make_file(repo, 'big.bin', 8192)
        git(repo, 'add', '.')
        git(repo, 'commit', '-q', '-m', 'add big file')
        resolver = self.make_resolver({'with-config': {'files': ['big.bin']}})

        detection = await resolver.resolve('with-config', str(repo))
        plan = StrategySelector(self.config).select(detection)

        assert detection.current_files == ['big.bin']
        assert detection.history_files == []
        assert plan.strategy == RewriteStrategy.FILE_LIST
        assert plan.files == ['big.bin']

    @pytest.mark.asyncio
    async def test_deleted_file_uses_size_threshold(self, tmp_path):
        """Test a large file removed from the working tree forces a full rewrite."""
        repo = tmp_path / 'ghost-file'
        repo.mkdir()
        git(repo, 'init', '-q')
        make_file(repo, 'README.md', 10)
        make_file(repo, 'old-asset.bin', 8192)
        git(repo, 'add', '.')
        git(repo, 'commit', '-q', '-m', 'add asset')
        git(repo, 'rm', '-q', 'old-asset.bin')
        git(repo, 'commit', '-q', '-m', 'remove asset')

        detection = await self.make_resolver().resolve('ghost-file', str(repo))
        plan = StrategySelector(self.config).select(detection)

        assert detection.current_files == []
        assert detection.history_files == ['old-asset.bin']
        assert plan.strategy == RewriteStrategy.SIZE_THRESHOLD
        assert plan.threshold_bytes == 4096
