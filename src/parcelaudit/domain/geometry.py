"""Spatial guard for parcel boundary edits.

A candidate boundary is compared with every other active parcel of the same
record:

* inclusion (the candidate contains, or lies within, a stored parcel) is refused
  outright;
* an overlap whose area exceeds ``NEGLIGIBLE_OVERLAP_AREA`` is refused and, for
  each overlapping parcel, the two symmetric corrections are proposed, plus
  the candidate minus the union of all overlapping parcels when there are
  several;
* anything else is accepted.

The check never writes; applying a correction is a separate parcel update.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Any, Final

import shapely
from shapely.errors import ShapelyError
from shapely.geometry import mapping, shape

from parcelaudit.domain.errors import ValidationError

if TYPE_CHECKING:
    from collections.abc import Mapping
    from uuid import UUID

    from shapely.geometry.base import BaseGeometry

    from parcelaudit.domain.ports.persistence import ParcelRepository

log = getLogger(__name__)

# Square degrees (WGS84), roughly one square metre at metropolitan latitudes.
NEGLIGIBLE_OVERLAP_AREA: Final[float] = 1e-10


class GeometryConflict(StrEnum):
    INCLUSION = "inclusion"
    OVERLAP = "overlap"


@dataclass(frozen=True, slots=True)
class GeometryCorrection:
    parcel_id: str
    candidate_minus_existing: dict[str, Any]
    existing_minus_candidate: dict[str, Any]


@dataclass(frozen=True, slots=True)
class GeometryCheckResult:
    valid: bool
    conflict: GeometryConflict | None = None
    conflicting_parcel_ids: tuple[str, ...] = ()
    corrections: tuple[GeometryCorrection, ...] = ()
    candidate_minus_overlaps: dict[str, Any] | None = None


def to_shape(geometry: Mapping[str, Any]) -> BaseGeometry:
    """Build a shapely geometry from GeoJSON, raising ``ValidationError`` if unusable."""

    try:
        built = shape(geometry)
    except (ShapelyError, AttributeError, IndexError, KeyError, TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid geometry: {exc}") from exc
    if built.is_empty:
        raise ValidationError("Invalid geometry: empty")
    if not built.is_valid:
        raise ValidationError(f"Invalid geometry: {shapely.is_valid_reason(built)}")
    return built


def _stored_shape(parcel_id: str, geometry: Mapping[str, Any]) -> BaseGeometry | None:
    try:
        built = shape(geometry)
    except (ShapelyError, AttributeError, IndexError, KeyError, TypeError, ValueError):
        log.warning("Skipping parcel %s: stored geometry is unreadable", parcel_id)
        return None
    return built if built.is_valid else shapely.make_valid(built)


def classify(
    candidate: BaseGeometry,
    stored: Mapping[str, BaseGeometry],
    *,
    epsilon: float = NEGLIGIBLE_OVERLAP_AREA,
) -> GeometryCheckResult:
    """Classify ``candidate`` against already built parcel shapes keyed by id."""

    included = tuple(
        parcel_id
        for parcel_id, existing in stored.items()
        if candidate.contains(existing) or candidate.within(existing)
    )
    if included:
        return GeometryCheckResult(
            valid=False,
            conflict=GeometryConflict.INCLUSION,
            conflicting_parcel_ids=included,
        )

    corrections: list[GeometryCorrection] = []
    for parcel_id, existing in stored.items():
        if not candidate.intersects(existing):
            continue
        if candidate.intersection(existing).area <= epsilon:
            continue
        corrections.append(
            GeometryCorrection(
                parcel_id=parcel_id,
                candidate_minus_existing=dict(mapping(candidate.difference(existing))),
                existing_minus_candidate=dict(mapping(existing.difference(candidate))),
            )
        )

    if not corrections:
        return GeometryCheckResult(valid=True)

    candidate_minus_overlaps: dict[str, Any] | None = None
    if len(corrections) > 1:
        overlapping = shapely.union_all(
            [stored[correction.parcel_id] for correction in corrections]
        )
        candidate_minus_overlaps = dict(mapping(candidate.difference(overlapping)))
    return GeometryCheckResult(
        valid=False,
        conflict=GeometryConflict.OVERLAP,
        conflicting_parcel_ids=tuple(correction.parcel_id for correction in corrections),
        corrections=tuple(corrections),
        candidate_minus_overlaps=candidate_minus_overlaps,
    )


def check_geometry(
    candidate: Mapping[str, Any],
    record_id: UUID,
    exclude_parcel_id: str | None = None,
    *,
    parcels: ParcelRepository,
    epsilon: float = NEGLIGIBLE_OVERLAP_AREA,
) -> GeometryCheckResult:
    candidate_shape = to_shape(candidate)
    stored: dict[str, BaseGeometry] = {}
    for parcel_id, geometry in parcels.list_geometries(
        record_id, exclude_parcel_id=exclude_parcel_id
    ):
        built = _stored_shape(parcel_id, geometry)
        if built is not None:
            stored[parcel_id] = built
    return classify(candidate_shape, stored, epsilon=epsilon)
