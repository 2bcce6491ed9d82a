"""Shared async transport for registry lookups.

A :class:`ResilientClient` wraps one ``httpx.AsyncClient`` configured from a
:class:`~parcelaudit.config.http_resilience.ResilienceConfig`: failed idempotent
calls are retried by ``httpx-retries``, calls are throttled by an
``aiolimiter`` token bucket, and responses may be kept in a ``hishel`` cache
whose admission is decided from the decoded JSON payload.
"""

from __future__ import annotations

import json
from logging import getLogger
from typing import TYPE_CHECKING, Any

import httpx
from aiolimiter import AsyncLimiter
from hishel import AsyncSqliteStorage, FilterPolicy
from hishel import Response as CachedResponse
from hishel._policies import BaseFilter
from hishel.httpx import AsyncCacheClient
from httpx_retries import RetryTransport

from parcelaudit.common.storage import get_http_cache_path

if TYPE_CHECKING:
    from collections.abc import Mapping
    from types import TracebackType

    from parcelaudit.config.http_resilience import CacheConfig, ResilienceConfig, ShouldCacheHook

log = getLogger(__name__)


class _PayloadFilter(BaseFilter[CachedResponse]):
    """Admit a response to the cache when ``predicate`` accepts its JSON body.

    Bodies that are not JSON are left to the default cache policy.
    """

    def __init__(self, predicate: ShouldCacheHook) -> None:
        self._predicate = predicate

    def needs_body(self) -> bool:
        return True

    def apply(self, item: CachedResponse, body: bytes | None) -> bool:  # noqa: ARG002
        if body is None:
            return True
        try:
            payload = json.loads(body)
        except (UnicodeDecodeError, json.JSONDecodeError):
            return True
        return bool(self._predicate(payload))


def _cache_storage(cache: CacheConfig) -> AsyncSqliteStorage:
    if cache.backend == "sqlite":
        database_path = cache.sqlite_path or str(get_http_cache_path())
    elif cache.backend == "memory":
        database_path = ":memory:"
    else:
        raise ValueError(f"Unsupported cache backend: {cache.backend}")
    return AsyncSqliteStorage(
        database_path=database_path,
        default_ttl=cache.default_ttl_seconds,
        refresh_ttl_on_access=cache.refresh_ttl_on_access,
    )


def _client_options(config: ResilienceConfig) -> dict[str, Any]:
    options: dict[str, Any] = {
        "timeout": config.timeout_seconds,
        "transport": RetryTransport(retry=config.retry.build()),
    }
    if config.base_url is not None:
        options["base_url"] = config.base_url
    if config.default_headers:
        options["headers"] = dict(config.default_headers)
    if config.response_hooks:
        options["event_hooks"] = {"response": list(config.response_hooks)}
    return options


def build_async_client(config: ResilienceConfig) -> httpx.AsyncClient:
    """Plain or caching ``AsyncClient`` with the retrying transport mounted."""

    options = _client_options(config)
    cache = config.cache
    if cache is None or not cache.enabled:
        return httpx.AsyncClient(**options)
    policy = (
        FilterPolicy(response_filters=[_PayloadFilter(cache.should_cache)])
        if cache.should_cache is not None
        else None
    )
    return AsyncCacheClient(**options, storage=_cache_storage(cache), policy=policy)


class ResilientClient:
    """Throttled GET access to one upstream service; use as ``async with``."""

    def __init__(self, config: ResilienceConfig) -> None:
        self.config = config
        self._limiter = (
            AsyncLimiter(config.ratelimit.max_calls, config.ratelimit.per_seconds)
            if config.ratelimit is not None
            else None
        )
        self._client = build_async_client(config)

    async def __aenter__(self) -> ResilientClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get(
        self,
        url: str,
        *,
        params: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        if self._limiter is None:
            return await self._client.get(url, params=params, headers=headers)
        if not self._limiter.has_capacity():
            log.debug("%s: rate limit reached, waiting before GET %s", self.config.name, url)
        async with self._limiter:
            return await self._client.get(url, params=params, headers=headers)
