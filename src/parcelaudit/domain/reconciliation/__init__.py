"""Operator record reconciliation: parcel set upserts, patches and record edits."""

from __future__ import annotations

from .features import (
    Feature,
    ParcelPatch,
    parcel_to_feature,
    parse_feature,
    parse_feature_collection,
    random_feature_id,
    record_to_feature_collection,
)
from .patch import apply_patch, copy_culture_details, copy_parcel_data, new_parcel
from .reconciler import (
    DeletionReason,
    ReconcileContext,
    RecordIdentity,
    RecordPatch,
    add_feature,
    delete_feature,
    delete_record,
    find_existing_record,
    get_record,
    patch_feature_collection,
    reconcile_record,
    update_certification_state,
    update_feature,
)
from .service import RecordReconciler

__all__ = [
    "DeletionReason",
    "Feature",
    "ParcelPatch",
    "ReconcileContext",
    "RecordIdentity",
    "RecordPatch",
    "RecordReconciler",
    "add_feature",
    "apply_patch",
    "copy_culture_details",
    "copy_parcel_data",
    "delete_feature",
    "delete_record",
    "find_existing_record",
    "get_record",
    "new_parcel",
    "parcel_to_feature",
    "parse_feature",
    "parse_feature_collection",
    "patch_feature_collection",
    "random_feature_id",
    "reconcile_record",
    "record_to_feature_collection",
    "update_certification_state",
    "update_feature",
]
