"""Operator records: the aggregate root of parcels and audit history."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Final
from uuid import uuid4

from parcelaudit.domain.model._internal import isoformat, parse_datetime, utcnow
from parcelaudit.domain.model.enums import CertificationState

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import date, datetime
    from uuid import UUID

    from parcelaudit.domain.model.history import HistoryEntry
    from parcelaudit.domain.model.parcel import Parcelle

_SOURCE_KEY: Final = "source"
_SOURCE_LAST_UPDATE_KEY: Final = "sourceLastUpdate"
_CAMPAIGN_KEY: Final = "anneeAssolement"
_PROVENANCE_KEY: Final = "importProvenance"
_KNOWN_KEYS: Final = frozenset(
    {_SOURCE_KEY, _SOURCE_LAST_UPDATE_KEY, _CAMPAIGN_KEY, _PROVENANCE_KEY}
)


@dataclass(frozen=True, slots=True, kw_only=True)
class RecordMetadata:
    """Known record metadata plus an ``extra`` map for keys we do not model."""

    source: str | None = None
    source_last_update: datetime | None = None
    campaign: str | None = None
    import_provenance: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict[str, Any])

    def merged_with(self, other: RecordMetadata) -> RecordMetadata:
        """Coalesce field by field; values set on ``other`` win."""

        return RecordMetadata(
            source=other.source if other.source is not None else self.source,
            source_last_update=(
                other.source_last_update
                if other.source_last_update is not None
                else self.source_last_update
            ),
            campaign=other.campaign if other.campaign is not None else self.campaign,
            import_provenance=(
                other.import_provenance
                if other.import_provenance is not None
                else self.import_provenance
            ),
            extra={**self.extra, **other.extra},
        )

    def to_dict(self) -> dict[str, Any]:
        document: dict[str, Any] = dict(self.extra)
        known = {
            _SOURCE_KEY: self.source,
            _SOURCE_LAST_UPDATE_KEY: isoformat(self.source_last_update),
            _CAMPAIGN_KEY: self.campaign,
            _PROVENANCE_KEY: self.import_provenance,
        }
        document.update({key: value for key, value in known.items() if value is not None})
        return document

    @classmethod
    def from_dict(cls, document: Mapping[str, Any] | None) -> RecordMetadata:
        if not document:
            return cls()
        last_update = document.get(_SOURCE_LAST_UPDATE_KEY)
        campaign = document.get(_CAMPAIGN_KEY)
        return cls(
            source=document.get(_SOURCE_KEY),
            source_last_update=parse_datetime(last_update) if last_update else None,
            campaign=str(campaign) if campaign is not None else None,
            import_provenance=document.get(_PROVENANCE_KEY),
            extra={key: value for key, value in document.items() if key not in _KNOWN_KEYS},
        )


@dataclass(eq=False, kw_only=True)
class OperatorRecord:
    numerobio: str
    record_id: UUID = field(default_factory=uuid4)
    oc_id: int | None = None
    oc_label: str | None = None
    certification_state: CertificationState = CertificationState.OPERATOR_DRAFT
    certification_date_debut: date | None = None
    certification_date_fin: date | None = None
    audit_date: date | None = None
    audit_notes: str | None = None
    audit_demandes: str | None = None
    annee_reference_controle: int | None = None
    record_metadata: RecordMetadata = field(default_factory=RecordMetadata)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    deleted_at: datetime | None = None

    _parcelles: list[Parcelle] = field(default_factory=list["Parcelle"], repr=False)
    _audit_history: list[HistoryEntry] = field(default_factory=list["HistoryEntry"], repr=False)

    @property
    def parcelles(self) -> tuple[Parcelle, ...]:
        """Active parcels, in insertion order."""
        return tuple(parcel for parcel in self._parcelles if not parcel.is_deleted)

    @property
    def all_parcelles(self) -> tuple[Parcelle, ...]:
        return tuple(self._parcelles)

    @property
    def audit_history(self) -> tuple[HistoryEntry, ...]:
        return tuple(self._audit_history)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def parcel(self, parcel_id: str, *, include_deleted: bool = False) -> Parcelle | None:
        for parcel in self._parcelles:
            if parcel.id == parcel_id and (include_deleted or not parcel.is_deleted):
                return parcel
        return None

    def add_parcel(self, parcel: Parcelle) -> None:
        if self.parcel(parcel.id, include_deleted=True) is not None:
            raise ValueError(f"Parcel {parcel.id} already belongs to record {self.record_id}")
        parcel.record_id = self.record_id
        self._parcelles.append(parcel)

    def remove_parcel(self, parcel: Parcelle) -> None:
        """Detach a parcel; storage deletes detached parcels."""
        self._parcelles.remove(parcel)

    def append_history(self, entry: HistoryEntry) -> None:
        self._audit_history.append(entry)

    def touch(self) -> None:
        self.updated_at = utcnow()
