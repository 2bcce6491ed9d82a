"""Agence Bio notifications portal client (operator registry)."""

from __future__ import annotations

import asyncio
from logging import getLogger
from typing import TYPE_CHECKING

import httpx

from parcelaudit.adapters.http_resilience import ResilientClient

from .schema import AgenceBioOperateur

if TYPE_CHECKING:
    from collections.abc import Callable

    from parcelaudit.config.agencebio import AgenceBioConfig
    from parcelaudit.config.http_resilience import ResilienceConfig
    from parcelaudit.domain.ports.registry import RegisteredOperator

log = getLogger(__name__)


class AgenceBioAPIError(RuntimeError):
    """Raised when the notifications portal returns an unexpected response."""


class AgenceBioClient:
    """Operator lookups against the notifications portal.

    Implements the ``OperatorRegistry`` port: any lookup failure is reported as
    an unknown operator.
    """

    def __init__(
        self,
        *,
        config: AgenceBioConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._config = config
        self._resilience = config.resilience
        self._client_factory = client_factory or ResilientClient

    def fetch_operator(self, numero_bio: str) -> AgenceBioOperateur | None:
        return asyncio.run(self._fetch_operator_async(numero_bio))

    def resolve_operator(self, numero_bio: str) -> RegisteredOperator | None:
        try:
            operator = self.fetch_operator(numero_bio)
        except (httpx.HTTPError, ValueError, AgenceBioAPIError) as exc:
            log.warning("Operator lookup failed for %s: %s", numero_bio, exc)
            return None
        if operator is None:
            log.info("Operator %s is unknown to the registry", numero_bio)
            return None
        return operator.to_registered_operator()

    async def _fetch_operator_async(self, numero_bio: str) -> AgenceBioOperateur | None:
        if self._resilience.base_url is None:
            raise AgenceBioAPIError("Missing Agence Bio base_url in resilience configuration")
        headers = {
            "Authorization": self._config.service_token,
            "Origin": self._config.origin,
        }
        async with self._client_factory(self._resilience) as client:
            response = await client.get(f"/api/operateur/{numero_bio}", headers=headers)
            if response.status_code == httpx.codes.NOT_FOUND:
                return None
            response.raise_for_status()
            payload = response.json()

        if not isinstance(payload, dict):
            raise AgenceBioAPIError("Unexpected Agence Bio response payload")
        return AgenceBioOperateur.model_validate(payload)
