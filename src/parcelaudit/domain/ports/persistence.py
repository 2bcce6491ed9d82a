"""Ports for persisting domain aggregates."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from parcelaudit.domain.model import ImportJob, ImportRun, OperatorRecord

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from datetime import date
    from uuid import UUID


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...


@runtime_checkable
class OperatorRecordRepository(Repository[OperatorRecord], Protocol):
    """Persistence contract for operator records (parcels and history included)."""

    def get(self, record_id: UUID) -> OperatorRecord | None: ...

    def find_active(
        self,
        numerobio: str,
        *,
        audit_date: date | None = None,
        any_campaign: bool = False,
    ) -> OperatorRecord | None:
        """Return the non-deleted record for a business key.

        With ``any_campaign`` the audit date is ignored and the most recently
        updated active record of the operator is returned.
        """
        ...


@runtime_checkable
class ParcelRepository(Protocol):
    """Read access to stored parcel boundaries."""

    def list_geometries(
        self,
        record_id: UUID,
        *,
        exclude_parcel_id: str | None = None,
    ) -> Sequence[tuple[str, Mapping[str, Any]]]:
        """Return ``(parcel id, GeoJSON geometry)`` of the record's active parcels."""
        ...


@runtime_checkable
class ImportJobRepository(Repository[ImportJob], Protocol):
    def get(self, job_id: UUID) -> ImportJob | None: ...


@runtime_checkable
class ImportRunRepository(Repository[ImportRun], Protocol):
    def get(self, run_id: UUID) -> ImportRun | None: ...

    def latest(self, *, limit: int = 20) -> Sequence[ImportRun]: ...
