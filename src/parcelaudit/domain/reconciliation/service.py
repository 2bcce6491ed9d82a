"""Transactional entry points: one unit of work and one commit per call."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from parcelaudit.domain.geometry import NEGLIGIBLE_OVERLAP_AREA
from parcelaudit.domain.model import RecordKeyPolicy
from parcelaudit.domain.reconciliation import reconciler

if TYPE_CHECKING:
    from collections.abc import Callable
    from uuid import UUID

    from parcelaudit.domain.model import OperatorRecord
    from parcelaudit.domain.ports.unit_of_work import RecordUnitOfWork
    from parcelaudit.domain.reconciliation.features import Feature
    from parcelaudit.domain.reconciliation.reconciler import (
        DeletionReason,
        ReconcileContext,
        RecordIdentity,
        RecordPatch,
    )

log = getLogger(__name__)


class RecordReconciler:
    """Runs record edits in their own transaction.

    Any exception rolls the whole edit back (record upsert, parcel upserts,
    deletions and history) and propagates unchanged.
    """

    def __init__(
        self,
        *,
        unit_of_work_factory: Callable[[], RecordUnitOfWork],
        key_policy: RecordKeyPolicy = RecordKeyPolicy.OPERATOR_CAMPAIGN,
        overlap_epsilon: float = NEGLIGIBLE_OVERLAP_AREA,
    ) -> None:
        self._unit_of_work_factory = unit_of_work_factory
        self.key_policy = key_policy
        self.overlap_epsilon = overlap_epsilon

    def _run[T](self, operation: Callable[[RecordUnitOfWork], T]) -> T:
        with self._unit_of_work_factory() as uow:
            result = operation(uow)
            uow.commit()
        return result

    def get(self, record_id: UUID) -> OperatorRecord:
        with self._unit_of_work_factory() as uow:
            return reconciler.get_record(uow, record_id)

    def reconcile(
        self,
        identity: RecordIdentity,
        candidate_parcels: object,
        context: ReconcileContext | None = None,
    ) -> OperatorRecord:
        return self._run(
            lambda uow: reconciler.reconcile_record(
                uow,
                identity,
                candidate_parcels,
                context,
                key_policy=self.key_policy,
            )
        )

    def patch_feature_collection(
        self,
        record_id: UUID,
        features: object,
        context: ReconcileContext | None = None,
    ) -> OperatorRecord:
        return self._run(
            lambda uow: reconciler.patch_feature_collection(uow, record_id, features, context)
        )

    def update_feature(
        self,
        record_id: UUID,
        feature_id: str,
        feature: Feature,
        context: ReconcileContext | None = None,
    ) -> OperatorRecord:
        return self._run(
            lambda uow: reconciler.update_feature(
                uow,
                record_id,
                feature_id,
                feature,
                context,
                overlap_epsilon=self.overlap_epsilon,
            )
        )

    def add_feature(
        self,
        record_id: UUID,
        feature: Feature,
        context: ReconcileContext | None = None,
    ) -> OperatorRecord:
        return self._run(
            lambda uow: reconciler.add_feature(
                uow,
                record_id,
                feature,
                context,
                overlap_epsilon=self.overlap_epsilon,
            )
        )

    def delete_feature(
        self,
        record_id: UUID,
        feature_id: str,
        reason: DeletionReason,
        context: ReconcileContext | None = None,
    ) -> OperatorRecord:
        return self._run(
            lambda uow: reconciler.delete_feature(uow, record_id, feature_id, reason, context)
        )

    def update_certification_state(
        self,
        record_id: UUID,
        patch: RecordPatch,
        context: ReconcileContext | None = None,
    ) -> OperatorRecord:
        return self._run(
            lambda uow: reconciler.update_certification_state(uow, record_id, patch, context)
        )

    def delete_record(
        self,
        record_id: UUID,
        context: ReconcileContext | None = None,
    ) -> OperatorRecord:
        return self._run(lambda uow: reconciler.delete_record(uow, record_id, context))
