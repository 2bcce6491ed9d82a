"""Audit trail entries."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from parcelaudit.domain.model.enums import CertificationState, EventType


@dataclass(frozen=True, slots=True, kw_only=True)
class HistoryActor:
    """Snapshot of who acted, taken when the event happened."""

    id: str
    name: str | None = None
    oc_id: int | None = None
    oc_label: str | None = None
    main_group: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "organismeCertificateur": (
                {"id": self.oc_id, "nom": self.oc_label} if self.oc_id is not None else None
            ),
            "mainGroup": self.main_group,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> HistoryActor:
        oc = payload.get("organismeCertificateur") or {}
        return cls(
            id=str(payload["id"]),
            name=payload.get("name"),
            oc_id=oc.get("id"),
            oc_label=oc.get("nom"),
            main_group=payload.get("mainGroup"),
        )


@dataclass(eq=False, kw_only=True)
class HistoryEntry:
    """One permanent audit-trail event.

    Entries are only ever built by ``parcelaudit.domain.history`` and appended to a
    record; nothing updates or removes them afterwards. ``position`` is assigned by
    storage and orders the trail.
    """

    type: EventType
    date: datetime
    state: CertificationState | None = None
    description: str | None = None
    event_metadata: dict[str, Any] | None = None
    user: HistoryActor | None = None
    feature_ids: tuple[str, ...] | None = None
    position: int | None = None
