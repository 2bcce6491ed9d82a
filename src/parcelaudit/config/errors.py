"""Errors raised while reading parcelaudit settings from the environment.

Settings come from ``PARCELAUDIT_*`` variables (storage, record key policy,
overlap tolerance, log level) and ``AGENCEBIO_*`` variables (registry endpoint,
service token, HTTP resilience overrides). Each error names the variables at
fault so a deployment can be fixed without reading a traceback.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable


class ConfigurationError(RuntimeError):
    """A ``PARCELAUDIT_*`` or ``AGENCEBIO_*`` variable holds an unusable value."""

    def __init__(self, message: str, *, variables: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.variables: tuple[str, ...] = tuple(variables)


class MissingConfigurationError(ConfigurationError):
    """Required variables, such as ``AGENCEBIO_SERVICE_TOKEN``, are unset or blank."""

    def __init__(self, variables: Iterable[str]) -> None:
        names = tuple(sorted(variables))
        super().__init__(f"Missing configuration for: {', '.join(names)}", variables=names)
