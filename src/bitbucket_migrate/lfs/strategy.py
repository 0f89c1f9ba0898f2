"""History rewrite strategy selection and tracking rule generation."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional

from loguru import logger

from ..config.config import LFSConfig
from .resolver import DetectionResult

LFS_ATTRIBUTES = 'filter=lfs diff=lfs merge=lfs -text'

RULES_HEADER = [
    '# Git LFS configuration',
    '# Generated by bitbucket-migrate',
    '',
]

# git-lfs splits --include on commas and reads the rest as gitignore patterns.
INCLUDE_SPECIAL_CHARS = set(',*?[]!\\')


class RewriteStrategy(str, Enum):
    """History rewrite strategies."""

    SIZE_THRESHOLD = 'size-threshold'
    FILE_LIST = 'file-list'
    NONE = 'none'


@dataclass
class MigrationPlan:
    """Strategy and manifest handed to the history rewrite."""

    strategy: RewriteStrategy
    threshold_bytes: Optional[int] = None
    files: List[str] = field(default_factory=list)
    tracking_rules: str = ''

    @property
    def requires_rewrite(self) -> bool:
        return self.strategy != RewriteStrategy.NONE


def escape_rule_path(path: str) -> str:
    """Escape a path for use as a ``.gitattributes`` pattern."""
    return path.replace(' ', '[[:space:]]')


def build_tracking_rules(paths: Iterable[str]) -> str:
    """Generate ``.gitattributes`` content tracking each path with LFS.

    Duplicate paths collapse to a single rule.

    Args:
        paths: Repository relative paths

    Returns:
        File content, or an empty string when there are no paths
    """
    rules = {}
    for path in paths:
        rules[path] = f'{escape_rule_path(path)} {LFS_ATTRIBUTES}'
    if not rules:
        return ''
    return '\n'.join(RULES_HEADER + list(rules.values())) + '\n'


def _literal_include_paths(paths: Iterable[str]) -> bool:
    return not any(INCLUDE_SPECIAL_CHARS.intersection(path) for path in paths)


class StrategySelector:
    """Chooses how repository history is rewritten for LFS."""

    def __init__(self, config: LFSConfig):
        """Initialize strategy selector.

        Args:
            config: LFS detection settings
        """
        self.config = config
        self.logger = logger.bind(component='StrategySelector')

    def select(self, detection: DetectionResult) -> MigrationPlan:
        """Select a rewrite strategy for a detection result.

        Historical files force a size based rewrite over every ref: a path
        based rewrite cannot reach objects that no longer have a working
        tree path. Otherwise current files are rewritten by explicit list.

        Args:
            detection: Detection result for the repository

        Returns:
            Migration plan
        """
        rules = build_tracking_rules(detection.current_files + detection.history_files)

        if detection.history_files:
            self.logger.info(
                f'Historical large files found, rewriting by size '
                f'(>{self.config.threshold})'
            )
            return MigrationPlan(
                strategy=RewriteStrategy.SIZE_THRESHOLD,
                threshold_bytes=self.config.threshold_bytes,
                tracking_rules=rules,
            )

        if detection.current_files and not _literal_include_paths(
            detection.current_files
        ):
            self.logger.info(
                'File names cannot be passed to git-lfs literally, rewriting by '
                f'size (>{self.config.threshold})'
            )
            return MigrationPlan(
                strategy=RewriteStrategy.SIZE_THRESHOLD,
                threshold_bytes=self.config.threshold_bytes,
                tracking_rules=rules,
            )

        if detection.current_files:
            self.logger.info(
                f'Rewriting by file list ({len(detection.current_files)} files)'
            )
            return MigrationPlan(
                strategy=RewriteStrategy.FILE_LIST,
                files=list(detection.current_files),
                tracking_rules=rules,
            )

        self.logger.info('No large files, history rewrite not needed')
        return MigrationPlan(strategy=RewriteStrategy.NONE)
