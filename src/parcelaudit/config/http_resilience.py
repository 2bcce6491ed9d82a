"""Transport settings for outbound HTTP calls (retries, throttling, caching)."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field, replace
from typing import Final, Literal

import httpx
from httpx_retries import Retry

from .env import float_env_var, optional_env_var
from .errors import ConfigurationError

ResponseHook = Callable[[httpx.Response], Awaitable[None] | None]
ShouldCacheHook = Callable[[object], bool]

# registry lookups are read-only; nothing else is ever replayed
RETRYABLE_METHODS: Final[frozenset[str]] = frozenset({"GET", "HEAD"})
RETRYABLE_STATUSES: Final[frozenset[int]] = frozenset({429, 502, 503, 504})

type CacheBackend = Literal["sqlite", "memory"]
_CACHE_BACKENDS: Final[dict[str, CacheBackend]] = {"memory": "memory", "sqlite": "sqlite"}


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    total: int = 3
    backoff_factor: float = 0.5
    backoff_jitter: float = 1.0
    max_backoff_wait: float = 30.0
    status_forcelist: frozenset[int] = RETRYABLE_STATUSES

    def build(self) -> Retry:
        return Retry(
            total=self.total,
            backoff_factor=self.backoff_factor,
            backoff_jitter=self.backoff_jitter,
            max_backoff_wait=self.max_backoff_wait,
            respect_retry_after_header=True,
            allowed_methods=tuple(RETRYABLE_METHODS),
            status_forcelist=tuple(self.status_forcelist),
            retry_on_exceptions=(httpx.TimeoutException, httpx.NetworkError),
        )


@dataclass(slots=True, frozen=True)
class RateLimit:
    max_calls: int
    per_seconds: float


@dataclass(slots=True, frozen=True)
class CacheConfig:
    """Response cache; ``should_cache`` sees the decoded JSON body."""

    enabled: bool = True
    backend: CacheBackend = "memory"
    sqlite_path: str | None = None
    default_ttl_seconds: float | None = None
    refresh_ttl_on_access: bool = False
    should_cache: ShouldCacheHook | None = None


@dataclass(slots=True, frozen=True)
class ResilienceConfig:
    name: str
    base_url: str | None = None
    timeout_seconds: float = 15.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    ratelimit: RateLimit | None = None
    cache: CacheConfig | None = field(default_factory=CacheConfig)
    response_hooks: tuple[ResponseHook, ...] = ()
    default_headers: Mapping[str, str] | None = None


def with_env_overrides(config: ResilienceConfig, prefix: str) -> ResilienceConfig:
    """Apply ``<PREFIX>_HTTP_TIMEOUT``, ``_HTTP_RETRIES`` and ``_HTTP_CACHE`` overrides.

    ``_HTTP_CACHE`` accepts ``memory``, ``sqlite`` or ``off``.
    """

    timeout = float_env_var(f"{prefix}_HTTP_TIMEOUT", config.timeout_seconds)

    retry = config.retry
    raw_retries = optional_env_var(f"{prefix}_HTTP_RETRIES")
    if raw_retries is not None:
        if not raw_retries.isdigit():
            raise ConfigurationError(
                f"{prefix}_HTTP_RETRIES must be a non-negative integer, got {raw_retries!r}",
                variables=[f"{prefix}_HTTP_RETRIES"],
            )
        retry = replace(retry, total=int(raw_retries))

    cache = config.cache
    backend = optional_env_var(f"{prefix}_HTTP_CACHE")
    if backend is not None:
        backend = backend.lower()
        if backend == "off":
            cache = None
        elif backend in _CACHE_BACKENDS:
            cache = replace(cache or CacheConfig(), backend=_CACHE_BACKENDS[backend])
        else:
            raise ConfigurationError(
                f"{prefix}_HTTP_CACHE must be memory, sqlite or off, got {backend!r}",
                variables=[f"{prefix}_HTTP_CACHE"],
            )

    return replace(config, timeout_seconds=timeout, retry=retry, cache=cache)
