"""Working tree scanning for oversized files."""

import fnmatch
import os
from pathlib import Path, PurePosixPath
from typing import Iterable, List

from loguru import logger

from ..config.config import LFSConfig
from .exceptions import ScanFailure
from .size import format_size

VCS_DIR = '.git'


def is_ignored(relative_path: str, patterns: Iterable[str]) -> bool:
    """Check a POSIX relative path against ignore globs.

    Patterns without a slash also match the file's basename, so ``*.log``
    ignores log files at any depth.
    """
    name = relative_path.rsplit('/', 1)[-1]
    for pattern in patterns:
        if fnmatch.fnmatchcase(relative_path, pattern):
            return True
        if '/' not in pattern and fnmatch.fnmatchcase(name, pattern):
            return True
    return False


class WorkingTreeScanner:
    """Finds files in the current working tree that exceed the threshold."""

    def __init__(self, config: LFSConfig):
        """Initialize working tree scanner.

        Args:
            config: LFS detection settings
        """
        self.config = config
        self.logger = logger.bind(component='WorkingTreeScanner')

    def iter_files(self, repo_path: str) -> Iterable[str]:
        """Yield every regular file as a POSIX path relative to the root.

        The version control directory is never entered and symbolic links
        are not followed.
        """
        root = Path(repo_path)
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = [
                d
                for d in dirnames
                if d != VCS_DIR and not os.path.islink(os.path.join(dirpath, d))
            ]
            for filename in filenames:
                full_path = Path(dirpath) / filename
                if full_path.is_symlink():
                    continue
                yield full_path.relative_to(root).as_posix()

    def scan(self, repo_path: str) -> List[str]:
        """Return working tree files strictly larger than the threshold.

        Args:
            repo_path: Repository root

        Returns:
            Sorted relative paths of oversized files
        """
        threshold = self.config.threshold_bytes
        oversized = []

        for relative_path in self.iter_files(repo_path):
            if is_ignored(relative_path, self.config.ignore):
                continue
            try:
                size = self._file_size(repo_path, relative_path)
            except ScanFailure as e:
                self.logger.warning(str(e))
                continue
            if size > threshold:
                self.logger.debug(f'Oversized file: {relative_path} ({format_size(size)})')
                oversized.append(relative_path)

        if oversized:
            self.logger.info(
                f'Detected {len(oversized)} files above {self.config.threshold}'
            )
        return sorted(oversized)

    def expand_patterns(self, repo_path: str, patterns: Iterable[str]) -> List[str]:
        """Expand glob patterns against the working tree.

        Args:
            repo_path: Repository root
            patterns: Glob patterns relative to the root, ``**`` allowed

        Returns:
            Sorted relative paths of matching files
        """
        root = Path(repo_path)
        matches = set()
        for pattern in patterns:
            parts = PurePosixPath(pattern)
            if parts.is_absolute() or '..' in parts.parts:
                self.logger.warning(f'Ignoring pattern outside the repository: {pattern}')
                continue
            try:
                found = list(root.glob(pattern))
            except (OSError, ValueError, NotImplementedError) as e:
                self.logger.warning(f'Pattern expansion failed for {pattern}: {e}')
                continue

            for match in found:
                try:
                    relative = match.relative_to(root).as_posix()
                except ValueError:
                    continue
                if relative.split('/', 1)[0] == VCS_DIR:
                    continue
                if match.is_file() and not match.is_symlink():
                    matches.add(relative)
        return sorted(matches)

    def _file_size(self, repo_path: str, relative_path: str) -> int:
        try:
            return (Path(repo_path) / relative_path).stat().st_size
        except OSError as e:
            raise ScanFailure(
                f'Could not stat {relative_path}: {e}', target=relative_path
            ) from e
