"""Hybrid LFS detection: user configuration combined with size scanning."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List

from loguru import logger

from ..config.config import LFSConfig
from ..config.lfs_settings import LFSRepositoryRule, LFSSettings
from .history import HistoryScanner
from .scanner import WorkingTreeScanner


class DetectionMode(str, Enum):
    """How the working tree files were chosen."""

    CONFIGURED = 'configured'
    AUTO_DETECT = 'auto-detect'


@dataclass
class DetectionResult:
    """Files that must be stored in LFS for one repository."""

    mode: DetectionMode
    current_files: List[str] = field(default_factory=list)
    history_files: List[str] = field(default_factory=list)
    unverified_files: List[str] = field(default_factory=list)

    @property
    def all_files(self) -> List[str]:
        """Union of current and historical files."""
        return sorted(set(self.current_files) | set(self.history_files))

    @property
    def has_large_files(self) -> bool:
        return bool(self.current_files or self.history_files)


class LFSConfigurationResolver:
    """Resolves the detection result for a repository.

    Repositories with an entry in the settings table use their configured
    files and patterns (plus size detection when they opt in). Repositories
    without an entry are scanned by size. The history scan always runs.
    """

    def __init__(
        self,
        settings: LFSSettings,
        config: LFSConfig,
        tree_scanner: WorkingTreeScanner,
        history_scanner: HistoryScanner,
    ):
        """Initialize configuration resolver.

        Args:
            settings: Per-repository LFS rules
            config: LFS detection settings
            tree_scanner: Working tree scanner
            history_scanner: History scanner
        """
        self.settings = settings
        self.config = config
        self.tree_scanner = tree_scanner
        self.history_scanner = history_scanner
        self.logger = logger.bind(component='LFSConfigurationResolver')

    def mode_for(self, name: str) -> DetectionMode:
        if self.settings.has_rule(name):
            return DetectionMode.CONFIGURED
        return DetectionMode.AUTO_DETECT

    async def resolve(self, name: str, repo_path: str) -> DetectionResult:
        """Build the detection result for a cloned repository.

        Args:
            name: Repository name used to look up configuration
            repo_path: Working copy root

        Returns:
            Detection result
        """
        rule = self.settings.lookup(name)
        current = set()
        history = set()
        missing: List[str] = []

        if rule is not None:
            mode = DetectionMode.CONFIGURED
            shapes = ', '.join(sorted(s.value for s in rule.shapes)) or 'empty'
            self.logger.info(f'{name}: using configured LFS rule ({shapes})')
            existing, missing = self._split_configured_files(repo_path, rule)
            current.update(existing)
            history.update(missing)
            current.update(self.tree_scanner.expand_patterns(repo_path, rule.patterns))
            if rule.auto_detect:
                current.update(self.tree_scanner.scan(repo_path))
        else:
            mode = DetectionMode.AUTO_DETECT
            self.logger.info(f'{name}: no LFS rule, detecting by size')
            current.update(self.tree_scanner.scan(repo_path))

        # Files still in the working tree are handled by the current file list.
        historical = await self.history_scanner.scan(repo_path)
        history.update(p for p in historical if not (Path(repo_path) / p).is_file())

        unverified = await self._verify_missing(repo_path, missing)

        result = DetectionResult(
            mode=mode,
            current_files=sorted(current),
            history_files=sorted(history),
            unverified_files=unverified,
        )
        self.logger.info(
            f'{name}: {len(result.current_files)} current, '
            f'{len(result.history_files)} historical large files ({mode.value})'
        )
        return result

    def _split_configured_files(self, repo_path: str, rule: LFSRepositoryRule):
        """Split configured files into present and missing paths.

        Missing files are usually ones that were removed from the working
        tree but still live in history.
        """
        existing, missing = [], []
        for path in rule.files:
            if (Path(repo_path) / path).is_file():
                existing.append(path)
            else:
                self.logger.warning(
                    f'Configured LFS file not in working tree, treating as '
                    f'historical: {path}'
                )
                missing.append(path)
        return existing, missing

    async def _verify_missing(self, repo_path: str, missing: List[str]) -> List[str]:
        if not self.config.verify_missing_files:
            return []
        unverified = []
        for path in missing:
            if not await self.history_scanner.path_in_history(repo_path, path):
                self.logger.warning(
                    f'Configured LFS file never appears in history, check for a '
                    f'typo: {path}'
                )
                unverified.append(path)
        return unverified
