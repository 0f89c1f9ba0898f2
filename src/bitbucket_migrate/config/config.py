"""Configuration management for Bitbucket Migration Tool."""

from typing import Optional, Dict, Any, List
from pathlib import Path
import os

from pydantic import BaseModel, ConfigDict, Field, field_validator
import yaml
from dotenv import load_dotenv

from ..lfs.size import parse_size

DEFAULT_IGNORE = [
    '.git/**',
    'node_modules/**',
    '.DS_Store',
    'Thumbs.db',
    '*.log',
    '.env*',
]


def _api_url(value: str) -> str:
    if not value.startswith(('http://', 'https://')):
        raise ValueError('URL must start with http:// or https://')
    return value.rstrip('/')


class BitbucketConfig(BaseModel):
    """Configuration for the Bitbucket source workspace."""

    workspace: str = Field(..., description='Bitbucket workspace slug')
    user: str = Field(..., description='Bitbucket username')
    app_password: str = Field(..., description='Bitbucket app password')
    api_url: str = Field(
        default='https://api.bitbucket.org/2.0', description='Bitbucket API URL'
    )
    clone_host: str = Field(default='bitbucket.org', description='Git clone host')
    timeout: int = Field(default=30, description='Request timeout in seconds')

    @field_validator('api_url')
    @classmethod
    def validate_url(cls, v):
        """Validate API URL format."""
        return _api_url(v)

    def clone_url(self, repository: str) -> str:
        """Build an authenticated HTTPS clone URL for a repository."""
        return (
            f'https://{self.user}:{self.app_password}@{self.clone_host}/'
            f'{self.workspace}/{repository}.git'
        )


class GitHubConfig(BaseModel):
    """Configuration for the GitHub destination."""

    owner: str = Field(..., description='User or organization owning new repos')
    token: str = Field(..., description='Personal access token')
    api_url: str = Field(default='https://api.github.com', description='API URL')
    push_host: str = Field(default='github.com', description='Git push host')
    organization: bool = Field(
        default=False, description='Create repositories under an organization'
    )
    private: bool = Field(default=True, description='Create private repositories')
    timeout: int = Field(default=30, description='Request timeout in seconds')
    rate_limit_per_second: float = Field(
        default=5.0, description='API requests per second limit'
    )

    @field_validator('api_url')
    @classmethod
    def validate_url(cls, v):
        """Validate API URL format."""
        return _api_url(v)

    @field_validator('token')
    @classmethod
    def validate_token(cls, v):
        """Validate that a token is provided."""
        if not v:
            raise ValueError('GitHub token must be provided')
        return v

    @field_validator('rate_limit_per_second')
    @classmethod
    def validate_rate_limit(cls, v):
        """Validate rate limit is positive."""
        if v <= 0:
            raise ValueError('Rate limit must be positive')
        return v

    def push_url(self, repository: str) -> str:
        """Build an authenticated HTTPS push URL for a repository."""
        return f'https://{self.token}@{self.push_host}/{self.owner}/{repository}.git'


class LFSConfig(BaseModel):
    """Large file detection settings, shared by every scanner."""

    threshold: str = Field(default='50MB', description='Size threshold for LFS')
    ignore: List[str] = Field(
        default_factory=lambda: list(DEFAULT_IGNORE),
        description='Glob patterns skipped by working tree detection',
    )
    history_depth: int = Field(
        default=50, description='Number of recent revisions scanned in history'
    )
    settings_file: Optional[str] = Field(
        default='data/lfs-settings.json',
        description='Optional per-repository LFS rules (JSON or YAML)',
    )
    verify_missing_files: bool = Field(
        default=True,
        description='Check that configured files absent on disk exist in history',
    )

    @field_validator('threshold')
    @classmethod
    def validate_threshold(cls, v):
        """Validate the threshold parses to a byte count."""
        parse_size(v)
        return v.strip()

    @field_validator('history_depth')
    @classmethod
    def validate_history_depth(cls, v):
        """Validate history depth is positive."""
        if v <= 0:
            raise ValueError('History depth must be positive')
        return v

    @property
    def threshold_bytes(self) -> int:
        """Threshold converted to bytes."""
        return parse_size(self.threshold)


class GitConfig(BaseModel):
    """Git operations configuration."""

    temp_dir: str = Field(
        default='temp', description='Directory holding local working copies'
    )
    user_name: str = Field(
        default='Bitbucket Migration Tool', description='Git user name for commits'
    )
    user_email: str = Field(
        default='migration@localhost', description='Git user email for commits'
    )
    timeout: int = Field(
        default=3600, description='Git operation timeout in seconds (default: 1 hour)'
    )
    cleanup_temp: bool = Field(
        default=True,
        description='Whether to cleanup working copies after each repository',
    )

    @field_validator('timeout')
    @classmethod
    def validate_timeout(cls, v):
        """Validate timeout is positive."""
        if v <= 0:
            raise ValueError('Git timeout must be positive')
        return v


class MigrationConfig(BaseModel):
    """Migration run configuration."""

    state_file: str = Field(
        default='data/repos.json', description='Repository state table'
    )
    batch_pause_every: int = Field(
        default=5, description='Pause after this many repositories'
    )
    batch_pause_seconds: float = Field(
        default=3.0, description='Length of the inter-batch pause'
    )
    rate_limit_buffer_seconds: float = Field(
        default=5.0, description='Extra wait added after a quota reset'
    )
    create_retries: int = Field(
        default=3, description='Attempts for creating the destination repository'
    )
    create_retry_delay: float = Field(
        default=2.0, description='Delay between destination creation attempts'
    )

    @field_validator('batch_pause_every', 'create_retries')
    @classmethod
    def validate_positive(cls, v):
        """Validate counters are positive."""
        if v <= 0:
            raise ValueError('Value must be positive')
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default='INFO', description='Log level')
    file: Optional[str] = Field(default=None, description='Log file path')
    format: Optional[str] = Field(default=None, description='Log format')

    @field_validator('level')
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'Log level must be one of: {valid_levels}')
        return v.upper()


class Config(BaseModel):
    """Main configuration class for Bitbucket Migration Tool."""

    model_config = ConfigDict(extra='forbid')

    source: BitbucketConfig = Field(..., description='Source Bitbucket workspace')
    destination: GitHubConfig = Field(..., description='Destination GitHub owner')
    lfs: LFSConfig = Field(default_factory=LFSConfig, description='LFS settings')
    git: GitConfig = Field(
        default_factory=GitConfig, description='Git operations settings'
    )
    migration: MigrationConfig = Field(
        default_factory=MigrationConfig, description='Migration settings'
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description='Logging settings'
    )

    @classmethod
    def from_file(cls, config_path: str) -> 'Config':
        """Load configuration from YAML file."""
        config_file = Path(config_path)

        if not config_file.exists():
            raise FileNotFoundError(f'Configuration file not found: {config_path}')

        with open(config_file, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f)

        if not isinstance(config_data, dict):
            raise ValueError(f'Configuration file is not a mapping: {config_path}')

        return cls(**config_data)

    @classmethod
    def from_env(cls) -> 'Config':
        """Load configuration from environment variables."""
        # Load .env file if it exists
        load_dotenv()

        config_data = {
            'source': {
                'workspace': os.getenv('BB_WORKSPACE'),
                'user': os.getenv('BB_USER'),
                'app_password': os.getenv('BB_APP_PASSWORD'),
            },
            'destination': {
                'owner': os.getenv('GH_OWNER'),
                'token': os.getenv('GH_TOKEN'),
                'organization': os.getenv('GH_ORGANIZATION', 'false').lower()
                == 'true',
            },
            'lfs': {
                'threshold': os.getenv('LFS_THRESHOLD', '50MB'),
                'settings_file': os.getenv('LFS_SETTINGS_FILE'),
            },
            'git': {
                'temp_dir': os.getenv('GIT_TEMP_DIR'),
                'timeout': int(os.getenv('GIT_TIMEOUT', 3600)),
                'cleanup_temp': os.getenv('GIT_CLEANUP_TEMP', 'true').lower() == 'true',
            },
            'migration': {
                'state_file': os.getenv('STATE_FILE'),
            },
            'logging': {
                'level': os.getenv('LOG_LEVEL', 'INFO'),
                'file': os.getenv('LOG_FILE'),
            },
        }

        # Remove None values
        config_data = cls._remove_none_values(config_data)

        return cls(**config_data)

    @staticmethod
    def _remove_none_values(data: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively remove None values from dictionary."""
        if isinstance(data, dict):
            return {
                k: Config._remove_none_values(v)
                for k, v in data.items()
                if v is not None
            }
        return data

    def to_file(self, config_path: str) -> None:
        """Save configuration to YAML file."""
        config_file = Path(config_path)
        config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(config_file, 'w', encoding='utf-8') as f:
            yaml.dump(
                self.model_dump(),
                f,
                default_flow_style=False,
                indent=2,
                sort_keys=False,
            )

    @staticmethod
    def create_template(output_path: str) -> None:
        """Create a configuration template file."""
        template_config = {
            'source': {
                'workspace': 'your-bitbucket-workspace',
                'user': 'your-bitbucket-username',
                'app_password': 'your-bitbucket-app-password',
            },
            'destination': {
                'owner': 'your-github-user-or-org',
                'token': 'your-github-personal-access-token',
                'organization': False,
                'private': True,
            },
            'lfs': {
                'threshold': '50MB',
                'ignore': list(DEFAULT_IGNORE),
                'history_depth': 50,
                'settings_file': 'data/lfs-settings.json',
            },
            'git': {
                'temp_dir': 'temp',
                'timeout': 3600,
                'cleanup_temp': True,
            },
            'migration': {
                'state_file': 'data/repos.json',
                'batch_pause_every': 5,
                'batch_pause_seconds': 3,
                'rate_limit_buffer_seconds': 5,
            },
            'logging': {
                'level': 'INFO',
                'file': 'migration.log',
            },
        }

        config_file = Path(output_path)
        config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(config_file, 'w', encoding='utf-8') as f:
            yaml.dump(
                template_config, f, default_flow_style=False, indent=2, sort_keys=False
            )
