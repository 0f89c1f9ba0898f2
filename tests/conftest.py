"""Shared test fixtures."""

import shutil
import subprocess
import sys
from pathlib import Path

import pytest
from loguru import logger

from bitbucket_migrate.config.config import Config, LFSConfig


def make_file(root: Path, relative_path: str, size: int) -> Path:
    """Create a sparse file of the given size below ``root``."""
    path = root / relative_path
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'wb') as f:
        f.truncate(size)
    return path


def git(repo: Path, *args: str) -> str:
    """Run a git command in ``repo`` for test setup."""
    result = subprocess.run(
        [
            'git',
            '-c',
            'user.name=Test',
            '-c',
            'user.email=test@example.com',
            '-c',
            'commit.gpgsign=false',
            *args,
        ],
        cwd=repo,
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout


requires_git = pytest.mark.skipif(
    shutil.which('git') is None, reason='git is not installed'
)


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop sinks bound to streams that a test may have closed."""
    yield
    logger.remove()
    logger.configure(extra={'component': 'test'})
    logger.add(sys.stderr, level='WARNING')


@pytest.fixture
def lfs_config():
    """LFS settings with a 1KB threshold so test files stay small."""
    return LFSConfig(threshold='1KB', settings_file=None)


@pytest.fixture
def config(tmp_path):
    """Full configuration writing all state below ``tmp_path``."""
    return Config(
        source={
            'workspace': 'acme',
            'user': 'bb-user',
            'app_password': 'bb-secret',
        },
        destination={'owner': 'acme-gh', 'token': 'gh-token'},
        lfs={'threshold': '1KB', 'settings_file': None},
        git={'temp_dir': str(tmp_path / 'temp')},
        migration={'state_file': str(tmp_path / 'data' / 'repos.json')},
    )
