"""Record reconciliation and the narrower record edits.

Every function here runs inside a caller-owned unit of work and never commits:
the caller decides the transaction boundary (one record for interactive edits,
a whole batch for bulk imports). Each function parses and validates its input
before touching the session, asks the history engine exactly once whether the
change is audit-worthy, and ends with a flush so that storage constraint
violations surface at the edit that caused them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any

from parcelaudit.domain.errors import GeometryConflictError, NotFoundError, ValidationError
from parcelaudit.domain.geometry import NEGLIGIBLE_OVERLAP_AREA, check_geometry
from parcelaudit.domain.history import HistoryContext, HistoryPayload, decide
from parcelaudit.domain.model import (
    CertificationState,
    DeletionReasonCode,
    EventType,
    OperatorRecord,
    RecordKeyPolicy,
    RecordMetadata,
)
from parcelaudit.domain.model._internal import utcnow
from parcelaudit.domain.reconciliation.features import (
    parse_feature,
    parse_feature_collection,
    random_feature_id,
)
from parcelaudit.domain.reconciliation.patch import apply_patch, copy_parcel_data, new_parcel

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import date, datetime
    from uuid import UUID

    from parcelaudit.domain.model import HistoryActor, Parcelle
    from parcelaudit.domain.ports.unit_of_work import RecordUnitOfWork
    from parcelaudit.domain.reconciliation.features import Feature, ParcelPatch

log = getLogger(__name__)


@dataclass(frozen=True, slots=True, kw_only=True)
class RecordIdentity:
    """Business identity and record-level fields of an incoming declaration."""

    numerobio: str
    oc_id: int | None = None
    oc_label: str | None = None
    metadata: RecordMetadata = field(default_factory=RecordMetadata)
    certification_state: CertificationState | None = None
    certification_date_debut: date | None = None
    certification_date_fin: date | None = None
    audit_date: date | None = None
    audit_notes: str | None = None
    audit_demandes: str | None = None
    annee_reference_controle: int | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class ReconcileContext:
    actor: HistoryActor | None = None
    prior_record: OperatorRecord | None = None
    as_of: datetime | None = None
    copy_parcel_data: bool = False


@dataclass(frozen=True, slots=True, kw_only=True)
class RecordPatch:
    """Record-level edit; ``None`` leaves the stored value untouched."""

    certification_state: CertificationState | None = None
    certification_date_debut: date | None = None
    certification_date_fin: date | None = None
    audit_date: date | None = None
    audit_notes: str | None = None
    audit_demandes: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class DeletionReason:
    code: DeletionReasonCode
    details: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code.value, "details": self.details}


_IDENTITY_FIELDS = (
    "oc_id",
    "oc_label",
    "certification_state",
    "certification_date_debut",
    "certification_date_fin",
    "audit_date",
    "audit_notes",
    "audit_demandes",
    "annee_reference_controle",
)

_RECORD_PATCH_FIELDS = (
    "certification_date_debut",
    "certification_date_fin",
    "audit_date",
    "audit_notes",
    "audit_demandes",
)


def _append_history(
    record: OperatorRecord,
    event_type: EventType,
    payload: HistoryPayload,
    context: HistoryContext,
) -> None:
    entry = decide(event_type, payload, context)
    if entry is None:
        log.debug("No history entry for %s on record %s", event_type, record.record_id)
        return
    record.append_history(entry)


def find_existing_record(
    uow: RecordUnitOfWork,
    identity: RecordIdentity,
    *,
    key_policy: RecordKeyPolicy = RecordKeyPolicy.OPERATOR_CAMPAIGN,
) -> OperatorRecord | None:
    records = uow.repositories.records
    if key_policy is RecordKeyPolicy.OPERATOR:
        return records.find_active(identity.numerobio, any_campaign=True)
    return records.find_active(identity.numerobio, audit_date=identity.audit_date)


def get_record(uow: RecordUnitOfWork, record_id: UUID) -> OperatorRecord:
    record = uow.repositories.records.get(record_id)
    if record is None or record.is_deleted:
        raise NotFoundError(f"Record {record_id} not found")
    return record


def _reconcile_parcels(record: OperatorRecord, patches: Iterable[ParcelPatch]) -> None:
    candidate_ids: set[str] = set()
    for patch in patches:
        candidate_ids.add(patch.id)
        parcel = record.parcel(patch.id, include_deleted=True)
        if parcel is None:
            record.add_parcel(new_parcel(patch))
            continue
        if parcel.is_deleted:
            parcel.revive()
        apply_patch(parcel, patch)

    for parcel in record.all_parcelles:
        if parcel.id not in candidate_ids:
            record.remove_parcel(parcel)


def reconcile_record(
    uow: RecordUnitOfWork,
    identity: RecordIdentity,
    candidate_parcels: object,
    context: ReconcileContext | None = None,
    *,
    key_policy: RecordKeyPolicy = RecordKeyPolicy.OPERATOR_CAMPAIGN,
) -> OperatorRecord:
    """Upsert a record and make its parcel set equal to ``candidate_parcels``.

    Parcels present in the candidates are patched (or created, or revived when
    soft-deleted); stored parcels absent from them are deleted.
    """

    context = context or ReconcileContext()
    patches = parse_feature_collection(candidate_parcels)

    existing = find_existing_record(uow, identity, key_policy=key_policy)
    prior = context.prior_record or existing
    history_context = HistoryContext.for_record(prior, context.actor)
    if context.copy_parcel_data and context.prior_record is not None:
        source = context.prior_record
        patches = tuple(copy_parcel_data(patch, source) for patch in patches)

    if existing is None:
        record = OperatorRecord(
            numerobio=identity.numerobio,
            record_metadata=identity.metadata,
        )
        event_type = EventType.FEATURE_COLLECTION_CREATE
        uow.repositories.records.add(record)
        log.info("Creating record %s for operator %s", record.record_id, identity.numerobio)
    else:
        record = existing
        record.record_metadata = record.record_metadata.merged_with(identity.metadata)
        event_type = EventType.FEATURE_COLLECTION_UPDATE

    for name in _IDENTITY_FIELDS:
        value = getattr(identity, name)
        if value is not None:
            setattr(record, name, value)

    _reconcile_parcels(record, patches)
    _append_history(
        record,
        event_type,
        HistoryPayload(
            features=candidate_parcels,
            state=identity.certification_state,
            date=context.as_of,
        ),
        history_context,
    )
    record.touch()
    uow.flush()
    return record


def patch_feature_collection(
    uow: RecordUnitOfWork,
    record_id: UUID,
    features: object,
    context: ReconcileContext | None = None,
) -> OperatorRecord:
    """Patch the listed parcels only; parcels not listed are left alone."""

    context = context or ReconcileContext()
    patches = parse_feature_collection(features)
    record = get_record(uow, record_id)
    targets: list[tuple[Parcelle, ParcelPatch]] = []
    missing: list[str] = []
    for patch in patches:
        parcel = record.parcel(patch.id)
        if parcel is None:
            missing.append(patch.id)
        else:
            targets.append((parcel, patch))
    if missing:
        raise NotFoundError(f"Parcels not found on record {record_id}: {', '.join(missing)}")

    history_context = HistoryContext.for_record(record, context.actor)
    for parcel, patch in targets:
        apply_patch(parcel, patch)

    _append_history(
        record,
        EventType.FEATURE_COLLECTION_UPDATE,
        HistoryPayload(features=features, date=context.as_of),
        history_context,
    )
    record.touch()
    uow.flush()
    return record


def update_feature(
    uow: RecordUnitOfWork,
    record_id: UUID,
    feature_id: str,
    feature: Feature,
    context: ReconcileContext | None = None,
    *,
    overlap_epsilon: float = NEGLIGIBLE_OVERLAP_AREA,
) -> OperatorRecord:
    context = context or ReconcileContext()
    patch = parse_feature({**feature, "id": feature_id})
    record = get_record(uow, record_id)
    parcel = record.parcel(feature_id)
    if parcel is None:
        raise NotFoundError(f"Parcel {feature_id} not found on record {record_id}")

    if patch.geometry is not None:
        result = check_geometry(
            patch.geometry,
            record_id,
            feature_id,
            parcels=uow.repositories.parcels,
            epsilon=overlap_epsilon,
        )
        if not result.valid:
            raise GeometryConflictError(feature_id, result)

    history_context = HistoryContext.for_record(record, context.actor)
    apply_patch(parcel, patch)
    _append_history(
        record,
        EventType.FEATURE_UPDATE,
        HistoryPayload(features=[{"id": feature_id}], date=context.as_of),
        history_context,
    )
    record.touch()
    uow.flush()
    return record


def add_feature(
    uow: RecordUnitOfWork,
    record_id: UUID,
    feature: Feature,
    context: ReconcileContext | None = None,
    *,
    overlap_epsilon: float = NEGLIGIBLE_OVERLAP_AREA,
) -> OperatorRecord:
    context = context or ReconcileContext()
    patch = parse_feature(feature, fallback_id=random_feature_id())
    if patch.geometry is None:
        raise ValidationError(f"Parcel {patch.id}: geometry is required")
    record = get_record(uow, record_id)
    if record.parcel(patch.id, include_deleted=True) is not None:
        raise ValidationError(f"Parcel {patch.id} already exists on record {record_id}")

    result = check_geometry(
        patch.geometry,
        record_id,
        parcels=uow.repositories.parcels,
        epsilon=overlap_epsilon,
    )
    if not result.valid:
        raise GeometryConflictError(None, result)

    history_context = HistoryContext.for_record(record, context.actor)
    record.add_parcel(new_parcel(patch))
    _append_history(
        record,
        EventType.FEATURE_CREATE,
        HistoryPayload(features=[{"id": patch.id}], date=context.as_of),
        history_context,
    )
    record.touch()
    uow.flush()
    return record


def delete_feature(
    uow: RecordUnitOfWork,
    record_id: UUID,
    feature_id: str,
    reason: DeletionReason,
    context: ReconcileContext | None = None,
) -> OperatorRecord:
    """Soft-delete one parcel, keeping the reason with the parcel and the event."""

    context = context or ReconcileContext()
    record = get_record(uow, record_id)
    parcel = record.parcel(feature_id)
    if parcel is None:
        raise NotFoundError(f"Parcel {feature_id} not found on record {record_id}")

    history_context = HistoryContext.for_record(record, context.actor)
    parcel.soft_delete(reason=reason.to_dict())
    _append_history(
        record,
        EventType.FEATURE_DELETE,
        HistoryPayload(
            features=[{"id": feature_id}],
            metadata={"reason": reason.to_dict()},
            date=context.as_of,
        ),
        history_context,
    )
    record.touch()
    uow.flush()
    return record


def update_certification_state(
    uow: RecordUnitOfWork,
    record_id: UUID,
    patch: RecordPatch,
    context: ReconcileContext | None = None,
) -> OperatorRecord:
    """Patch record-level audit fields; a state change is always audited."""

    context = context or ReconcileContext()
    record = get_record(uow, record_id)
    history_context = HistoryContext.for_record(record, context.actor)

    for name in _RECORD_PATCH_FIELDS:
        value = getattr(patch, name)
        if value is not None:
            setattr(record, name, value)

    new_state = patch.certification_state
    if new_state is not None and new_state != record.certification_state:
        record.certification_state = new_state
        _append_history(
            record,
            EventType.CERTIFICATION_STATE_CHANGE,
            HistoryPayload(state=new_state, date=context.as_of),
            history_context,
        )
    record.touch()
    uow.flush()
    return record


def delete_record(
    uow: RecordUnitOfWork,
    record_id: UUID,
    context: ReconcileContext | None = None,
) -> OperatorRecord:
    """Soft-delete a record: certification fields and parcels are cleared."""

    context = context or ReconcileContext()
    record = get_record(uow, record_id)
    history_context = HistoryContext.for_record(record, context.actor)
    removed = [{"id": parcel.id} for parcel in record.all_parcelles]

    for parcel in record.all_parcelles:
        record.remove_parcel(parcel)
    record.certification_state = CertificationState.OPERATOR_DRAFT
    record.certification_date_debut = None
    record.certification_date_fin = None
    record.audit_notes = None
    record.audit_demandes = None
    record.deleted_at = utcnow()

    _append_history(
        record,
        EventType.FEATURE_COLLECTION_DELETE,
        HistoryPayload(features=removed, date=context.as_of),
        history_context,
    )
    record.touch()
    uow.flush()
    log.info("Deleted record %s of operator %s", record.record_id, record.numerobio)
    return record
