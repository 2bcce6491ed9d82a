"""Filesystem locations derived from the storage configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING

from parcelaudit.config.storage import get_database_config, get_storage_config

if TYPE_CHECKING:
    from pathlib import Path


def get_data_dir() -> Path:
    """Return the directory holding the local database and HTTP cache."""

    return get_storage_config().ensure_data_dir()


def get_database_uri() -> str:
    """Compute the database URI, respecting ``DATABASE_URI``."""

    return get_database_config().uri


def get_http_cache_path() -> Path:
    return get_storage_config().http_cache_path()
