"""Where parcelaudit keeps its local files.

Without ``DATABASE_URI`` records, import runs and the registry HTTP cache live in
SQLite files under one data directory: ``PARCELAUDIT_DATA_DIR`` when set, else
``$XDG_DATA_HOME/parcelaudit`` (``~/.local/share/parcelaudit``).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

APP_DIR_NAME: Final[str] = "parcelaudit"
DEFAULT_DB_FILENAME: Final[str] = "parcelaudit.db"
HTTP_CACHE_FILENAME: Final[str] = "http_cache.db"


def sqlite_uri(path: Path) -> str:
    return f"sqlite+pysqlite:///{path}"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path

    def ensure_data_dir(self) -> Path:
        """Resolved data directory, created on first use."""

        directory = self.data_dir.expanduser().resolve()
        directory.mkdir(parents=True, exist_ok=True)
        return directory

    def file(self, filename: str) -> Path:
        return self.ensure_data_dir() / filename

    def database_path(self) -> Path:
        return self.file(DEFAULT_DB_FILENAME)

    def http_cache_path(self) -> Path:
        return self.file(HTTP_CACHE_FILENAME)


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str

    @property
    def is_sqlite(self) -> bool:
        return self.uri.startswith("sqlite")


def get_storage_config() -> StorageConfig:
    explicit = os.getenv("PARCELAUDIT_DATA_DIR")
    if explicit:
        return StorageConfig(data_dir=Path(explicit))
    xdg_data_home = os.getenv("XDG_DATA_HOME")
    base = Path(xdg_data_home) if xdg_data_home else Path.home() / ".local" / "share"
    return StorageConfig(data_dir=base / APP_DIR_NAME)


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    uri = os.getenv("DATABASE_URI")
    if uri:
        return DatabaseConfig(uri=uri)
    return DatabaseConfig(uri=sqlite_uri((storage or get_storage_config()).database_path()))
