#!/usr/bin/env python3
"""
Configuration for the snapshot migrator.

Priority (highest to lowest):
1. Environment variables (SNAPSHOT_*)
2. .env file next to the config file (loaded into os.environ first)
3. YAML config file
4. Dataclass defaults for optional settings

Required settings that are still missing after all sources are applied are a
fatal ConfigError.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from core.errors import ConfigError

ENV_OVERRIDES = {
    'SNAPSHOT_DB_HOST': ('database', 'host'),
    'SNAPSHOT_DB_PORT': ('database', 'port'),
    'SNAPSHOT_DB_USER': ('database', 'user'),
    'SNAPSHOT_DB_PASSWORD': ('database', 'password'),
    'SNAPSHOT_DB_NAME': ('database', 'name'),
    'SNAPSHOT_SOURCE_DIR': (None, 'snapshotDir'),
    'SNAPSHOT_LOG_LEVEL': (None, 'logLevel'),
}

REQUIRED_DATABASE_KEYS = ('host', 'port', 'user', 'password', 'name')


@dataclass
class DatabaseConfig:
    """Warehouse connection parameters"""
    host: str
    port: int
    user: str
    password: str
    name: str
    pool_size: int = 10


@dataclass
class MigratorConfig:
    """Snapshot migrator settings"""
    database: DatabaseConfig
    snapshot_dir: Path
    snapshot_pattern: str = "*.sqlite"
    log_level: str = "INFO"
    max_workers: int = 4
    batch_size: int = 5000
    source_path: Optional[Path] = field(default=None, compare=False)

    def get_safe_dict(self) -> Dict[str, Any]:
        """Configuration without sensitive values"""
        return {
            'db_host': self.database.host,
            'db_port': self.database.port,
            'db_name': self.database.name,
            'db_user': self.database.user,
            'pool_size': self.database.pool_size,
            'snapshot_dir': str(self.snapshot_dir),
            'snapshot_pattern': self.snapshot_pattern,
            'log_level': self.log_level,
            'max_workers': self.max_workers,
            'batch_size': self.batch_size,
        }


def _load_env_file(env_file: Path):
    """Load variables from a .env file without overriding exported ones."""
    with open(env_file, 'r') as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith('#') and '=' in line:
                key, value = line.split('=', 1)
                key = key.strip()
                if key not in os.environ:
                    os.environ[key] = value.strip().strip('"').strip("'")


def _as_int(value: Any, key: str, minimum: int = 1) -> int:
    try:
        result = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{key} must be an integer, got {value!r}", {'key': key})
    if result < minimum:
        raise ConfigError(f"{key} must be at least {minimum}, got {result}", {'key': key})
    return result


def load_config(path: Union[str, Path] = "config.yaml",
                snapshot_dir: Optional[Union[str, Path]] = None) -> MigratorConfig:
    """
    Read the YAML config file, apply environment overrides and validate.

    A missing file is accepted when the environment provides every required
    value. ``snapshot_dir`` (the command line value) wins over both the file
    and the environment.

    Raises:
        ConfigError: unreadable file, invalid YAML or missing required values
    """
    path = Path(path)
    data: Dict[str, Any] = {}

    env_file = path.parent / '.env'
    if env_file.exists():
        _load_env_file(env_file)

    if path.exists():
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"failed to read config file {path}: {e}", {'path': str(path)}) from e
        if not isinstance(data, dict):
            raise ConfigError(f"config file {path} must contain a mapping", {'path': str(path)})

    database = dict(data.get('database') or {})
    for env_key, (section, key) in ENV_OVERRIDES.items():
        if env_key in os.environ:
            if section == 'database':
                database[key] = os.environ[env_key]
            else:
                data[key] = os.environ[env_key]
    if snapshot_dir:
        data['snapshotDir'] = str(snapshot_dir)

    missing = [f"database.{k}" for k in REQUIRED_DATABASE_KEYS if database.get(k) is None]
    if not data.get('snapshotDir'):
        missing.append('snapshotDir')
    if missing:
        source = str(path) if path.exists() else f"{path} (not found) or environment"
        raise ConfigError(f"missing required configuration in {source}: {', '.join(missing)}",
                          {'missing': missing})

    db_config = DatabaseConfig(
        host=str(database['host']),
        port=_as_int(database['port'], 'database.port'),
        user=str(database['user']),
        password=str(database['password']),
        name=str(database['name']),
        pool_size=_as_int(database.get('poolSize', 10), 'database.poolSize'),
    )

    return MigratorConfig(
        database=db_config,
        snapshot_dir=Path(data['snapshotDir']),
        snapshot_pattern=str(data.get('snapshotPattern', '*.sqlite')),
        log_level=str(data.get('logLevel', 'INFO')).upper(),
        max_workers=_as_int(data.get('maxWorkers', 4), 'maxWorkers'),
        batch_size=_as_int(data.get('batchSize', 5000), 'batchSize'),
        source_path=path if path.exists() else None,
    )
