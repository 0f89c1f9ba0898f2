"""File backed repository state table."""

import json
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, List, Optional

from loguru import logger
from pydantic import ValidationError

from ..models.repository import RepositoryRecord, RepositoryStatistics
from .exceptions import RepositoryNotFoundError, StoreUnavailableError


def _now() -> datetime:
    return datetime.now(timezone.utc)


class RepositoryStateStore:
    """Persistent table of per-repository migration status.

    Every mutating operation reads the whole table, applies the change and
    writes it back, so the file is always the single source of truth. Only
    one orchestrator may use a state file at a time.
    """

    def __init__(self, path: str):
        """Initialize state store.

        Args:
            path: Path of the JSON state file
        """
        self.path = Path(path)
        self.logger = logger.bind(component='RepositoryStateStore')

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> List[RepositoryRecord]:
        """Read the full ordered table.

        Raises:
            StoreUnavailableError: If the file is missing or unparseable
        """
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError as e:
            raise StoreUnavailableError(f'State file not found: {self.path}') from e
        except (OSError, json.JSONDecodeError) as e:
            raise StoreUnavailableError(
                f'Cannot read state file {self.path}: {e}'
            ) from e

        if not isinstance(data, list):
            raise StoreUnavailableError(
                f'State file {self.path} must contain a list of repositories'
            )

        try:
            return [RepositoryRecord(**item) for item in data]
        except (TypeError, ValidationError) as e:
            raise StoreUnavailableError(
                f'Invalid repository record in {self.path}: {e}'
            ) from e

    def save(self, records: Iterable[RepositoryRecord]) -> None:
        """Persist the full table, replacing the file atomically."""
        payload = [record.model_dump(mode='json') for record in records]
        self.path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(
            dir=str(self.path.parent), prefix='.repos-', suffix='.tmp'
        )
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
                f.write('\n')
            os.replace(tmp_path, self.path)
        except OSError as e:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise StoreUnavailableError(
                f'Cannot write state file {self.path}: {e}'
            ) from e

    def initialize(self, records: Iterable[RepositoryRecord], force: bool = False) -> int:
        """Write a fresh table from a repository listing.

        Args:
            records: Records to store
            force: Overwrite an existing table

        Returns:
            Number of records written

        Raises:
            FileExistsError: If the table exists and ``force`` is not set
        """
        if self.exists() and not force:
            raise FileExistsError(
                f'State file already exists: {self.path} (use force to overwrite)'
            )
        records = list(records)
        self.save(records)
        self.logger.info(f'Initialized state table with {len(records)} repositories')
        return len(records)

    def get(self, name: str) -> RepositoryRecord:
        for record in self.load():
            if record.name == name:
                return record
        raise RepositoryNotFoundError(name)

    def pending_repositories(self) -> List[RepositoryRecord]:
        """Records eligible for processing, in table order."""
        return [record for record in self.load() if record.is_pending]

    def failed_repositories(self) -> List[RepositoryRecord]:
        return [record for record in self.load() if record.is_failed]

    def update(self, name: str, **patch: Any) -> RepositoryRecord:
        """Merge field values into a record and persist the table.

        Setting ``transferred=True`` also clears ``processing`` and ``error``
        and stamps ``pushed_at``.

        Args:
            name: Repository name
            **patch: Field values to set

        Returns:
            Updated record

        Raises:
            RepositoryNotFoundError: If no record has this name
            ValueError: If the patch names an unknown field
        """
        unknown = set(patch) - set(RepositoryRecord.model_fields)
        if unknown:
            raise ValueError(f'Unknown repository fields: {sorted(unknown)}')

        records = self.load()
        for index, record in enumerate(records):
            if record.name != name:
                continue

            values = record.model_dump()
            values.update(patch)
            if patch.get('transferred') is True:
                values['processing'] = False
                values['error'] = None
                values['pushed_at'] = patch.get('pushed_at') or _now()

            updated = RepositoryRecord(**values)
            records[index] = updated
            self.save(records)
            return updated

        raise RepositoryNotFoundError(name)

    def mark_processing(self, name: str) -> RepositoryRecord:
        return self.update(name, processing=True, error=None)

    def mark_completed(
        self, name: str, created_at: Optional[datetime] = None, lfs: bool = False
    ) -> RepositoryRecord:
        patch = {'transferred': True, 'processing': False, 'error': None, 'lfs': lfs}
        if created_at is not None:
            patch['created_at'] = created_at
        return self.update(name, **patch)

    def mark_failed(self, name: str, message: str) -> RepositoryRecord:
        """Record a failed attempt, consuming one retry."""
        record = self.get(name)
        return self.update(
            name,
            processing=False,
            error=message,
            retry_count=record.retry_count + 1,
        )

    def release(self, name: str, message: Optional[str] = None) -> RepositoryRecord:
        """Drop the processing flag without consuming a retry."""
        return self.update(name, processing=False, error=message)

    def clear_error(self, name: str) -> RepositoryRecord:
        """Reset the error and retry counter so the record is retried."""
        return self.update(name, error=None, retry_count=0)

    def reset_stale_processing(self) -> int:
        """Clear processing flags left behind by an interrupted run.

        Returns:
            Number of records reset
        """
        records = self.load()
        reset_count = 0
        for index, record in enumerate(records):
            if record.processing:
                records[index] = record.model_copy(update={'processing': False})
                reset_count += 1

        if reset_count:
            self.save(records)
            self.logger.info(f'Reset {reset_count} repositories left in processing')
        return reset_count

    def statistics(self) -> RepositoryStatistics:
        records = self.load()
        return RepositoryStatistics(
            total=len(records),
            transferred=sum(1 for r in records if r.transferred),
            processing=sum(1 for r in records if r.processing),
            failed=sum(1 for r in records if r.is_failed),
            pending=sum(1 for r in records if r.is_pending),
            exhausted=sum(1 for r in records if r.is_exhausted),
            lfs_repositories=sum(1 for r in records if r.lfs),
            lfs_transferred=sum(1 for r in records if r.lfs and r.transferred),
        )

    def snapshot(self) -> Path:
        """Write a timestamped copy of the table next to it.

        Returns:
            Path of the backup file
        """
        records = self.load()
        timestamp = _now().strftime('%Y-%m-%dT%H-%M-%S-%f')
        backup_path = self.path.with_name(f'{self.path.stem}-backup-{timestamp}.json')
        with open(backup_path, 'w', encoding='utf-8') as f:
            json.dump(
                [record.model_dump(mode='json') for record in records],
                f,
                indent=2,
                ensure_ascii=False,
            )
            f.write('\n')
        self.logger.info(f'State backed up to {backup_path}')
        return backup_path

