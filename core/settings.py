"""Centralized engine configuration."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional
import os
import sys


def get_default_data_dir(
    app_name: str,
    *,
    platform: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> Path:
    """Return an OS-specific user data directory for ``app_name``.

    ``OFFLINE_SYNC_DATA_DIR`` wins over the platform defaults.
    """

    platform_id = (platform or sys.platform).lower()
    environ = dict(env if env is not None else os.environ)
    override = environ.get("OFFLINE_SYNC_DATA_DIR")
    if override:
        return Path(override).expanduser()

    home_dir = Path(home or Path.home())
    sanitized = app_name.strip() or "app"
    sanitized = sanitized.replace("/", "-").replace("\\", "-")

    if platform_id.startswith("win"):
        base = Path(environ.get("APPDATA") or home_dir / "AppData" / "Roaming")
    elif platform_id == "darwin":
        base = Path(environ.get("APPDATA") or home_dir / "Library" / "Application Support")
    else:
        base = Path(environ.get("XDG_DATA_HOME") or home_dir / ".local" / "share")

    return base.expanduser() / sanitized


APP_NAME = "OfflineSync"


DATA_DIR = get_default_data_dir(APP_NAME)
LOG_DIR = DATA_DIR / "logs"

DB_PATH = DATA_DIR / "offline.db"
CONFIG_PATH = DATA_DIR / "config.json"
SYNC_LOG_PATH = LOG_DIR / "sync.log"


@dataclass(frozen=True)
class SyncSettings:
    max_retries: int = 5
    fallback_interval_sec: float = 60
    sync_on_enqueue: bool = True


@dataclass(frozen=True)
class CacheSettings:
    # 0 disables the bound
    max_entries: int = 500


@dataclass(frozen=True)
class StorageSettings:
    operations_key: str = "offline-operations"
    cache_key: str = "offline-cache"
    schema_version: int = 1
    strict_reads: bool = False
    db_path: Path = DB_PATH


@dataclass(frozen=True)
class LogSettings:
    logger_name: str = "offline_sync"
    file_enabled: bool = True
    path: Path = SYNC_LOG_PATH
    max_bytes: int = 1_000_000
    backup_count: int = 3
    level: str = "INFO"


SYNC = SyncSettings()
CACHE = CacheSettings()
STORAGE = StorageSettings()
LOGGING = LogSettings()


__all__ = [
    "APP_NAME",
    "DATA_DIR",
    "LOG_DIR",
    "DB_PATH",
    "CONFIG_PATH",
    "SYNC_LOG_PATH",
    "SyncSettings",
    "CacheSettings",
    "StorageSettings",
    "LogSettings",
    "SYNC",
    "CACHE",
    "STORAGE",
    "LOGGING",
    "get_default_data_dir",
]
