"""Parcels and the crops declared on them."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from parcelaudit.domain.model._internal import isoformat, parse_optional_date, utcnow

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import date, datetime
    from uuid import UUID

    from parcelaudit.domain.model.enums import ConversionNiveau

type GeoJSONGeometry = dict[str, Any]


def _new_culture_id() -> str:
    return str(uuid4())


@dataclass(frozen=True, slots=True, kw_only=True)
class Culture:
    """One crop line of a parcel, identified by its CPF code."""

    cpf: str
    id: str = field(default_factory=_new_culture_id)
    surface: float | None = None
    unit: str | None = None
    variete: str | None = None
    date_semis: date | None = None

    def filled_from(self, previous: Culture) -> Culture:
        """Return a copy whose missing details are taken from ``previous``."""

        return replace(
            self,
            surface=self.surface if self.surface is not None else previous.surface,
            unit=self.unit or previous.unit,
            variete=self.variete or previous.variete,
            date_semis=self.date_semis or previous.date_semis,
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "CPF": self.cpf,
            "surface": self.surface,
            "unit": self.unit,
            "variete": self.variete,
            "date_semis": isoformat(self.date_semis),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> Culture:
        cpf = payload.get("CPF")
        if not isinstance(cpf, str) or not cpf.strip():
            raise ValueError("culture without CPF code")
        surface = payload.get("surface")
        culture_id = payload.get("id")
        return cls(
            id=str(culture_id) if culture_id else _new_culture_id(),
            cpf=cpf.strip(),
            surface=float(surface) if surface not in (None, "") else None,
            unit=payload.get("unit") or None,
            variete=payload.get("variete") or None,
            date_semis=parse_optional_date(payload.get("date_semis")),
        )


@dataclass(eq=False, kw_only=True)
class Parcelle:
    """A parcel of an operator record.

    Identity is ``(record_id, id)``; ``record_id`` is filled in when the parcel is
    attached to a record.
    """

    id: str
    record_id: UUID | None = None
    geometry: GeoJSONGeometry | None = None
    cultures: tuple[Culture, ...] = ()
    conversion_niveau: ConversionNiveau | None = None
    engagement_date: date | None = None
    commentaire: str | None = None
    annotations: list[dict[str, Any]] | None = None
    name: str | None = None
    commune: str | None = None
    numero_pacage: str | None = None
    numero_ilot_pac: str | None = None
    numero_parcelle_pac: str | None = None
    reference_cadastre: tuple[str, ...] | None = None
    from_parcelles: UUID | None = None
    created: datetime = field(default_factory=utcnow)
    updated: datetime = field(default_factory=utcnow)
    deleted_at: datetime | None = None
    deletion_reason: dict[str, Any] | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def soft_delete(self, *, reason: Mapping[str, Any] | None = None) -> None:
        now = utcnow()
        self.deleted_at = now
        self.updated = now
        self.deletion_reason = dict(reason) if reason is not None else None

    def revive(self) -> None:
        self.deleted_at = None
        self.deletion_reason = None
        self.updated = utcnow()
