"""Application configuration helpers."""

from __future__ import annotations

from .agencebio import AgenceBioConfig, get_agencebio_config
from .env import optional_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy
from .reconciliation import ReconciliationConfig, get_reconciliation_config
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "AgenceBioConfig",
    "CacheConfig",
    "ConfigurationError",
    "DatabaseConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ReconciliationConfig",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "get_agencebio_config",
    "get_database_config",
    "get_reconciliation_config",
    "get_storage_config",
    "optional_env_var",
    "require_env_vars",
]
