"""Ports to reference data owned by other systems."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from shapely.geometry.base import BaseGeometry


@dataclass(frozen=True, slots=True, kw_only=True)
class CertifyingBody:
    id: int
    nom: str
    numero_client: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class RegisteredOperator:
    numero_bio: str
    is_production: bool
    organisme_certificateur: CertifyingBody | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class CultureCode:
    code: str
    label: str | None = None


@runtime_checkable
class OperatorRegistry(Protocol):
    def resolve_operator(self, numero_bio: str) -> RegisteredOperator | None:
        """Return the registered operator, or ``None`` when it is unknown."""
        ...


@runtime_checkable
class CultureNomenclature(Protocol):
    def resolve_culture_code(self, cpf: str) -> CultureCode | None: ...


@runtime_checkable
class RegionBoundaries(Protocol):
    def locate(self, geometry: BaseGeometry) -> str | None:
        """Return the name of a region intersecting ``geometry``, if any."""
        ...
