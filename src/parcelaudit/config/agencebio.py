"""Operator registry (Agence Bio notifications portal) configuration."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_var, require_env_vars
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, with_env_overrides

DEFAULT_AGENCEBIO_ENDPOINT = "https://back.agencebio.org"
DEFAULT_AGENCEBIO_ORIGIN = "https://cartobio.agencebio.org"
AGENCEBIO_TIMEOUT_SECONDS = 10.0
# one cached lookup per operator and per import window
AGENCEBIO_CACHE_TTL_SECONDS = 15 * 60.0


@dataclass(frozen=True, slots=True)
class AgenceBioConfig:
    """Holds credentials and transport settings for registry lookups."""

    service_token: str
    origin: str
    resilience: ResilienceConfig


def _cache_successful_operators(payload: object) -> bool:
    return isinstance(payload, dict) and "numeroBio" in payload


def get_agencebio_config(*, resilience: ResilienceConfig | None = None) -> AgenceBioConfig:
    values = require_env_vars(("AGENCEBIO_SERVICE_TOKEN",))
    endpoint = optional_env_var("AGENCEBIO_ENDPOINT") or DEFAULT_AGENCEBIO_ENDPOINT
    origin = optional_env_var("AGENCEBIO_ORIGIN") or DEFAULT_AGENCEBIO_ORIGIN
    if resilience is None:
        resilience = with_env_overrides(
            ResilienceConfig(
                name="agencebio",
                base_url=endpoint.rstrip("/"),
                timeout_seconds=AGENCEBIO_TIMEOUT_SECONDS,
                ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
                cache=CacheConfig(
                    backend="memory",
                    default_ttl_seconds=AGENCEBIO_CACHE_TTL_SECONDS,
                    should_cache=_cache_successful_operators,
                ),
            ),
            "AGENCEBIO",
        )
    return AgenceBioConfig(
        service_token=values["AGENCEBIO_SERVICE_TOKEN"],
        origin=origin,
        resilience=resilience,
    )
