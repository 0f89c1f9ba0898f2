"""Repository state models."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

MAX_RETRIES = 3


class RepositoryRecord(BaseModel):
    """Migration state of a single repository."""

    model_config = ConfigDict(validate_assignment=True)

    name: str = Field(..., description='Repository slug, unique across runs')
    branch: str = Field(..., description='Branch being migrated')
    transferred: bool = Field(default=False, description='Migration finished')
    processing: bool = Field(
        default=False, description='Being worked on by the current run'
    )
    created_at: Optional[datetime] = Field(
        default=None, description='Destination repository creation time'
    )
    pushed_at: Optional[datetime] = Field(
        default=None, description='Push completion time'
    )
    error: Optional[str] = Field(default=None, description='Last failure message')
    retry_count: int = Field(default=0, ge=0, description='Failed attempts so far')
    lfs: bool = Field(default=False, description='Large files were detected')

    @property
    def is_pending(self) -> bool:
        """Eligible for the next run."""
        return (
            not self.transferred
            and not self.processing
            and self.retry_count < MAX_RETRIES
        )

    @property
    def is_failed(self) -> bool:
        return self.error is not None and not self.transferred

    @property
    def is_exhausted(self) -> bool:
        """Retry budget used up; needs an explicit reset."""
        return not self.transferred and self.retry_count >= MAX_RETRIES


class RepositoryStatistics(BaseModel):
    """Aggregate migration progress."""

    total: int = 0
    transferred: int = 0
    processing: int = 0
    failed: int = 0
    pending: int = 0
    exhausted: int = 0
    lfs_repositories: int = 0
    lfs_transferred: int = 0

    @property
    def progress(self) -> float:
        """Percentage of repositories transferred, one decimal."""
        if self.total == 0:
            return 0.0
        return round(self.transferred / self.total * 100, 1)
