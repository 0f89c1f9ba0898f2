"""Git and Git LFS command execution.

Every command runs with an explicit working directory; the process-wide
current directory is never changed.
"""

import asyncio
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from loguru import logger

from ..config.config import GitConfig
from ..utils.helpers import sanitize_for_log
from .exceptions import GitCommandError

TRACKING_RULES_FILE = '.gitattributes'


@dataclass
class TreeObject:
    """A blob listed by ``git ls-tree -r -l``."""

    path: str
    size: int
    object_type: str = 'blob'


def parse_ls_tree(output: str) -> List[TreeObject]:
    """Parse NUL separated ``git ls-tree -r -l -z`` output.

    Each entry reads ``<mode> <type> <object> <size>\\t<path>``. Entries
    without a numeric size (submodule commits) are skipped.
    """
    objects = []
    for entry in output.split('\0'):
        if not entry.strip():
            continue
        meta, sep, path = entry.partition('\t')
        if not sep:
            continue
        parts = meta.split()
        if len(parts) < 4 or not parts[3].isdigit():
            continue
        objects.append(TreeObject(path=path, size=int(parts[3]), object_type=parts[1]))
    return objects


class GitExecutor:
    """Runs git and git-lfs commands for repository migration."""

    def __init__(self, config: Optional[GitConfig] = None):
        """Initialize git executor.

        Args:
            config: Git configuration
        """
        self.config = config or GitConfig()
        self.logger = logger.bind(component='GitExecutor')

    async def run(
        self, args: List[str], cwd: Optional[str] = None, check: bool = True
    ) -> str:
        """Run a git command and return its standard output.

        Args:
            args: Command arguments after ``git``
            cwd: Working directory for the command
            check: Raise on non-zero exit status

        Returns:
            Decoded standard output

        Raises:
            GitCommandError: If the command fails or times out
        """
        cmd = ['git', *args]
        masked = [sanitize_for_log(part) for part in cmd]
        self.logger.debug(f'Executing: {" ".join(masked)} (cwd={cwd})')

        env = dict(os.environ, GIT_TERMINAL_PROMPT='0')

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env=env,
            )
        except OSError as e:
            raise GitCommandError(f'Could not start git: {e}', command=masked) from e

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.config.timeout
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise GitCommandError(
                f'Command timed out after {self.config.timeout} seconds: '
                f'{" ".join(masked)}',
                command=masked,
            )

        error_output = sanitize_for_log(stderr.decode('utf-8', errors='replace'))
        if check and process.returncode != 0:
            raise GitCommandError(
                f'Command failed ({process.returncode}): {" ".join(masked)}: '
                f'{error_output.strip()}',
                command=masked,
                returncode=process.returncode,
                stderr=error_output,
            )

        return stdout.decode('utf-8', errors='replace')

    async def check_dependencies(self) -> bool:
        """Check that git and git-lfs are installed.

        Returns:
            True if both are available
        """
        try:
            await self.run(['--version'])
            await self.run(['lfs', 'version'])
            return True
        except GitCommandError as e:
            self.logger.error(f'Git dependency check failed: {e}')
            return False

    async def clone_single_branch(
        self, remote_url: str, branch: str, dest_path: str
    ) -> str:
        """Clone a single branch into ``dest_path``.

        Returns:
            Path of the new working copy
        """
        parent = Path(dest_path).parent
        parent.mkdir(parents=True, exist_ok=True)
        await self.run(
            [
                'clone',
                '--single-branch',
                '--branch',
                branch,
                remote_url,
                str(dest_path),
            ],
            cwd=str(parent),
        )
        return str(dest_path)

    async def list_revisions(self, repo_path: str) -> List[str]:
        """List every revision reachable from any ref, newest first."""
        output = await self.run(['rev-list', '--all'], cwd=repo_path)
        return [line.strip() for line in output.splitlines() if line.strip()]

    async def list_tree_objects(
        self, repo_path: str, revision: str
    ) -> List[TreeObject]:
        """List every tracked object at a revision together with its size."""
        output = await self.run(['ls-tree', '-r', '-l', '-z', revision], cwd=repo_path)
        return parse_ls_tree(output)

    async def path_in_history(self, repo_path: str, path: str) -> bool:
        """Check whether a path was committed in any reachable revision."""
        output = await self.run(
            ['rev-list', '--all', '-n', '1', '--', path], cwd=repo_path
        )
        return bool(output.strip())

    async def install_lfs(self, repo_path: str) -> None:
        await self.run(['lfs', 'install', '--local'], cwd=repo_path)

    async def commit_tracking_rules(self, repo_path: str, content: str) -> bool:
        """Write and commit the tracking rules file.

        Args:
            repo_path: Working copy path
            content: Tracking rules file content

        Returns:
            True if a commit was created, False if there was nothing to commit
        """
        rules_path = Path(repo_path) / TRACKING_RULES_FILE
        rules_path.write_text(content, encoding='utf-8')

        await self.run(['add', TRACKING_RULES_FILE], cwd=repo_path)
        status = await self.run(
            ['status', '--porcelain', '--', TRACKING_RULES_FILE], cwd=repo_path
        )
        if not status.strip():
            self.logger.debug('Tracking rules unchanged, nothing to commit')
            return False

        await self.run(
            [
                '-c',
                f'user.name={self.config.user_name}',
                '-c',
                f'user.email={self.config.user_email}',
                'commit',
                '-m',
                'Add .gitattributes for LFS',
            ],
            cwd=repo_path,
        )
        return True

    async def rewrite_history_by_size(self, repo_path: str, threshold_bytes: int) -> None:
        """Convert every object above the threshold in all refs to LFS."""
        await self.run(
            [
                'lfs',
                'migrate',
                'import',
                f'--above={threshold_bytes}b',
                '--everything',
                '--yes',
            ],
            cwd=repo_path,
        )

    async def rewrite_history_by_file_list(
        self, repo_path: str, paths: List[str]
    ) -> None:
        """Convert the listed paths in all refs to LFS."""
        if not paths:
            raise ValueError('No paths given for file list rewrite')
        if any(',' in path for path in paths):
            raise ValueError('Paths containing commas cannot be passed to --include')
        await self.run(
            [
                'lfs',
                'migrate',
                'import',
                f'--include={",".join(paths)}',
                '--everything',
                '--yes',
            ],
            cwd=repo_path,
        )

    async def list_tracked_large_objects(self, repo_path: str) -> List[str]:
        """List paths currently stored as LFS pointers."""
        output = await self.run(['lfs', 'ls-files', '--name-only'], cwd=repo_path)
        return [line.strip() for line in output.splitlines() if line.strip()]

    async def fetch_large_objects(self, repo_path: str) -> None:
        await self.run(['lfs', 'fetch', '--all'], cwd=repo_path)

    async def add_remote(self, repo_path: str, name: str, url: str) -> None:
        """Add a remote, replacing the URL if it already exists."""
        remotes = await self.run(['remote'], cwd=repo_path)
        if name in remotes.split():
            await self.run(['remote', 'set-url', name, url], cwd=repo_path)
        else:
            await self.run(['remote', 'add', name, url], cwd=repo_path)

    async def push(self, repo_path: str, remote: str, branch: str) -> None:
        await self.run(['push', remote, branch], cwd=repo_path)

    async def push_large_objects(self, repo_path: str, remote: str) -> None:
        await self.run(['lfs', 'push', remote, '--all'], cwd=repo_path)
