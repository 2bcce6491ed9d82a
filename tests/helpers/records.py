"""Builders and in-memory fakes for record reconciliation tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, Any, Literal

from parcelaudit.domain.errors import StorageConstraintError
from parcelaudit.domain.model import CertificationState, HistoryActor, OperatorRecord
from parcelaudit.domain.ports.unit_of_work import RecordRepositories
from parcelaudit.domain.reconciliation import RecordIdentity

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from types import TracebackType
    from uuid import UUID

# lon/lat of a point in the Loire valley
ORIGIN: tuple[float, float] = (0.5, 47.0)


def square(
    x: float = ORIGIN[0],
    y: float = ORIGIN[1],
    size: float = 0.001,
) -> dict[str, Any]:
    """GeoJSON polygon of an axis-aligned square with its lower-left corner at (x, y)."""

    return {
        "type": "Polygon",
        "coordinates": [
            [[x, y], [x + size, y], [x + size, y + size], [x, y + size], [x, y]],
        ],
    }


def make_feature(
    feature_id: str | int,
    *,
    geometry: dict[str, Any] | None = None,
    cpf: str | None = "01.11.12",
    **properties: Any,
) -> dict[str, Any]:
    props: dict[str, Any] = {"id": str(feature_id), **properties}
    if cpf is not None:
        props.setdefault("cultures", [{"CPF": cpf}])
    return {
        "type": "Feature",
        "id": str(feature_id),
        "geometry": geometry if geometry is not None else square(),
        "properties": props,
    }


def make_collection(*features: dict[str, Any]) -> dict[str, Any]:
    return {"type": "FeatureCollection", "features": list(features)}


def make_identity(
    numerobio: str = "12345",
    *,
    audit_date: date | None = date(2024, 5, 2),
    **overrides: Any,
) -> RecordIdentity:
    return RecordIdentity(numerobio=numerobio, audit_date=audit_date, **overrides)


def make_actor(actor_id: str = "auditor-1") -> HistoryActor:
    return HistoryActor(id=actor_id, name="Camille Auditor", oc_id=1, oc_label="Ecocert")


def make_record(
    numerobio: str = "12345",
    *,
    state: CertificationState = CertificationState.OPERATOR_DRAFT,
    audit_date: date | None = date(2024, 5, 2),
) -> OperatorRecord:
    return OperatorRecord(numerobio=numerobio, certification_state=state, audit_date=audit_date)


@dataclass
class FakeOperatorRecordRepository:
    records: list[OperatorRecord] = field(default_factory=list[OperatorRecord])

    def add(self, entity: OperatorRecord) -> None:
        self.records.append(entity)

    def get(self, record_id: UUID) -> OperatorRecord | None:
        return next((record for record in self.records if record.record_id == record_id), None)

    def find_active(
        self,
        numerobio: str,
        *,
        audit_date: date | None = None,
        any_campaign: bool = False,
    ) -> OperatorRecord | None:
        candidates = [
            record
            for record in self.records
            if record.numerobio == numerobio
            and not record.is_deleted
            and (any_campaign or record.audit_date == audit_date)
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda record: record.updated_at)


@dataclass
class FakeParcelRepository:
    records: FakeOperatorRecordRepository

    def list_geometries(
        self,
        record_id: UUID,
        *,
        exclude_parcel_id: str | None = None,
    ) -> Sequence[tuple[str, Mapping[str, Any]]]:
        record = self.records.get(record_id)
        if record is None:
            return []
        return [
            (parcel.id, parcel.geometry)
            for parcel in record.parcelles
            if parcel.id != exclude_parcel_id and parcel.geometry is not None
        ]


class FakeRecordUnitOfWork:
    """In-memory unit of work; ``flush`` enforces the parcel geometry column."""

    def __init__(self, records: FakeOperatorRecordRepository | None = None) -> None:
        self.records = records or FakeOperatorRecordRepository()
        self._repositories = RecordRepositories(
            records=self.records,
            parcels=FakeParcelRepository(self.records),
        )
        self.flushes = 0
        self.committed = False
        self.rollback_called = False

    @property
    def repositories(self) -> RecordRepositories:
        return self._repositories

    def __enter__(self) -> FakeRecordUnitOfWork:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        if exc_type is not None:
            self.rollback()
        return False

    def flush(self) -> None:
        self.flushes += 1
        for record in self.records.records:
            if any(parcel.geometry is None for parcel in record.all_parcelles):
                raise StorageConstraintError

    def commit(self) -> None:
        self.flush()
        self.committed = True

    def rollback(self) -> None:
        self.rollback_called = True


if TYPE_CHECKING:
    from parcelaudit.domain.ports.persistence import OperatorRecordRepository, ParcelRepository
    from parcelaudit.domain.ports.unit_of_work import RecordUnitOfWork

    _record_repo_check: OperatorRecordRepository = FakeOperatorRecordRepository()
    _parcel_repo_check: ParcelRepository = FakeParcelRepository(FakeOperatorRecordRepository())
    _uow_check: RecordUnitOfWork = FakeRecordUnitOfWork()
