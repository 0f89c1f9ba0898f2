"""Migration engine and orchestration."""

from .orchestrator import (
    MigrationOrchestrator,
    RepositoryResult,
    RepositoryState,
    RunSummary,
)
from .engine import MigrationEngine

__all__ = [
    'MigrationOrchestrator',
    'RepositoryResult',
    'RepositoryState',
    'RunSummary',
    'MigrationEngine',
]
