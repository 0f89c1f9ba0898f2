"""Optional per-repository LFS rules authored by the user."""

from enum import Enum
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional

import yaml
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError


class RuleShape(str, Enum):
    """Kinds of information a repository rule can carry."""

    EXPLICIT_FILES = 'explicit-files'
    PATTERN_BASED = 'pattern-based'
    AUTO_DETECT_OPT_IN = 'auto-detect-opt-in'


class LFSRepositoryRule(BaseModel):
    """LFS rule for a single repository."""

    model_config = ConfigDict(populate_by_name=True, extra='forbid')

    files: List[str] = Field(default_factory=list, description='Explicit paths')
    patterns: List[str] = Field(default_factory=list, description='Glob patterns')
    auto_detect: bool = Field(
        default=False,
        alias='autoDetect',
        description='Also run size based detection',
    )

    @property
    def shapes(self) -> FrozenSet[RuleShape]:
        """Rule shapes present in this entry."""
        shapes = set()
        if self.files:
            shapes.add(RuleShape.EXPLICIT_FILES)
        if self.patterns:
            shapes.add(RuleShape.PATTERN_BASED)
        if self.auto_detect:
            shapes.add(RuleShape.AUTO_DETECT_OPT_IN)
        return frozenset(shapes)


class LFSSettings(BaseModel):
    """Table of LFS rules keyed by repository name."""

    repositories: Dict[str, LFSRepositoryRule] = Field(default_factory=dict)

    def lookup(self, name: str) -> Optional[LFSRepositoryRule]:
        """Return the rule for a repository, or None when it has no entry.

        An entry that exists but is empty still counts as configured.
        """
        return self.repositories.get(name)

    def has_rule(self, name: str) -> bool:
        return name in self.repositories

    @classmethod
    def load(cls, path: Optional[str]) -> 'LFSSettings':
        """Load rules from a JSON or YAML file.

        A missing file is not an error: it yields an empty table and every
        repository falls back to auto-detection.

        Args:
            path: Settings file path, or None for no settings

        Returns:
            Loaded settings

        Raises:
            ValueError: If the file exists but is malformed
        """
        if not path or not Path(path).exists():
            logger.info('No LFS settings file found, using pure auto-detection')
            return cls()

        with open(path, 'r', encoding='utf-8') as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ValueError(f'Invalid LFS settings file {path}: {e}') from e

        try:
            settings = cls(**data)
        except (TypeError, ValidationError) as e:
            raise ValueError(f'Invalid LFS settings file {path}: {e}') from e

        logger.info(
            f'Loaded LFS settings for {len(settings.repositories)} repositories'
        )
        return settings
