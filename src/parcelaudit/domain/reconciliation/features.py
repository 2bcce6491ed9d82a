"""GeoJSON features in and out of the parcel model.

Incoming features become :class:`ParcelPatch` values where ``None`` always means
"not supplied": applying a patch never erases a stored value.
"""

from __future__ import annotations

import secrets
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final, cast
from uuid import UUID

from parcelaudit.domain.errors import ValidationError
from parcelaudit.domain.model import ConversionNiveau, Culture
from parcelaudit.domain.model._internal import isoformat, parse_optional_date

if TYPE_CHECKING:
    from datetime import date

    from parcelaudit.domain.model import GeoJSONGeometry, OperatorRecord, Parcelle

type Feature = Mapping[str, Any]

MAX_FEATURE_ID: Final[int] = 2**53 - 1

# property name in GeoJSON -> Parcelle attribute
TEXT_PROPERTIES: Final[dict[str, str]] = {
    "auditeur_notes": "commentaire",
    "NOM": "name",
    "COMMUNE": "commune",
    "PACAGE": "numero_pacage",
    "NUMERO_I": "numero_ilot_pac",
    "NUMERO_P": "numero_parcelle_pac",
}


def random_feature_id() -> str:
    """Numeric id for features declared without one."""
    return str(secrets.randbelow(MAX_FEATURE_ID) + 1)


@dataclass(frozen=True, slots=True, kw_only=True)
class ParcelPatch:
    id: str
    geometry: GeoJSONGeometry | None = None
    cultures: tuple[Culture, ...] | None = None
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


def _feature_id(feature: Feature, properties: Mapping[str, Any]) -> str | None:
    raw = feature.get("id")
    if raw is None:
        raw = properties.get("id")
    if raw is None or raw == "":
        return None
    return str(raw)


def _text(value: object) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _parse_cultures(parcel_id: str, raw: object) -> tuple[Culture, ...] | None:
    if raw is None:
        return None
    if not isinstance(raw, Sequence) or isinstance(raw, str):
        raise ValidationError(f"Parcel {parcel_id}: cultures must be a list")
    cultures: list[Culture] = []
    for item in cast(Sequence[object], raw):
        if not isinstance(item, Mapping):
            raise ValidationError(f"Parcel {parcel_id}: invalid culture entry")
        try:
            cultures.append(Culture.from_dict(cast(Mapping[str, Any], item)))
        except ValueError as exc:
            raise ValidationError(f"Parcel {parcel_id}: invalid culture ({exc})") from exc
    return tuple(cultures)


def parse_feature(feature: Feature, *, fallback_id: str | None = None) -> ParcelPatch:
    """Turn one GeoJSON feature into a patch.

    ``fallback_id`` is used when the feature carries no id of its own (single
    feature updates addressed by URL, new features).
    """

    if not isinstance(feature, Mapping):
        raise ValidationError("Feature must be an object")
    properties = cast(Mapping[str, Any], feature.get("properties") or {})
    parcel_id = _feature_id(feature, properties) or fallback_id
    if parcel_id is None:
        raise ValidationError("Feature without id")

    geometry = feature.get("geometry")
    if geometry is not None and not isinstance(geometry, Mapping):
        raise ValidationError(f"Parcel {parcel_id}: geometry must be a GeoJSON object")

    raw_level = properties.get("conversion_niveau")
    try:
        conversion_niveau = ConversionNiveau.parse(str(raw_level)) if raw_level else None
    except ValueError as exc:
        msg = f"Parcel {parcel_id}: unknown conversion_niveau {raw_level!r}"
        raise ValidationError(msg) from exc

    try:
        engagement_date = parse_optional_date(properties.get("engagement_date"))
    except ValueError as exc:
        raise ValidationError(f"Parcel {parcel_id}: invalid engagement_date") from exc

    cadastre = properties.get("cadastre")
    if isinstance(cadastre, str):
        cadastre = cadastre.split()
    annotations = properties.get("annotations")
    raw_origin = properties.get("from_parcelles")
    try:
        from_parcelles = UUID(str(raw_origin)) if raw_origin else None
    except ValueError as exc:
        raise ValidationError(f"Parcel {parcel_id}: invalid from_parcelles") from exc

    texts = {attribute: _text(properties.get(key)) for key, attribute in TEXT_PROPERTIES.items()}
    return ParcelPatch(
        id=parcel_id,
        geometry=dict(cast(Mapping[str, Any], geometry)) if geometry is not None else None,
        cultures=_parse_cultures(parcel_id, properties.get("cultures")),
        conversion_niveau=conversion_niveau,
        engagement_date=engagement_date,
        annotations=list(annotations) if isinstance(annotations, list) else None,
        reference_cadastre=(
            tuple(str(ref) for ref in cast(list[object], cadastre))
            if isinstance(cadastre, list)
            else None
        ),
        from_parcelles=from_parcelles,
        **texts,
    )


def feature_list(collection: object) -> list[Feature]:
    """Accept a FeatureCollection mapping or a bare list of features."""

    if isinstance(collection, Mapping):
        collection = cast(Mapping[str, Any], collection).get("features")
    if collection is None:
        return []
    if not isinstance(collection, Sequence) or isinstance(collection, str):
        raise ValidationError("Expected a FeatureCollection or a list of features")
    return list(cast(Sequence[Feature], collection))


def parse_feature_collection(collection: object) -> tuple[ParcelPatch, ...]:
    patches: list[ParcelPatch] = []
    seen: set[str] = set()
    for feature in feature_list(collection):
        patch = parse_feature(feature)
        if patch.id in seen:
            raise ValidationError(f"Duplicate parcel id {patch.id}")
        seen.add(patch.id)
        patches.append(patch)
    return tuple(patches)


def parcel_to_feature(parcel: Parcelle) -> dict[str, Any]:
    properties: dict[str, Any] = {
        "id": parcel.id,
        "cultures": [culture.to_dict() for culture in parcel.cultures],
        "conversion_niveau": parcel.conversion_niveau.value if parcel.conversion_niveau else None,
        "engagement_date": isoformat(parcel.engagement_date),
        "annotations": parcel.annotations or [],
        "cadastre": list(parcel.reference_cadastre or ()),
        "createdAt": isoformat(parcel.created),
        "updatedAt": isoformat(parcel.updated),
    }
    for key, attribute in TEXT_PROPERTIES.items():
        properties[key] = getattr(parcel, attribute)
    return {
        "type": "Feature",
        "id": parcel.id,
        "geometry": parcel.geometry,
        "properties": properties,
    }


def record_to_feature_collection(record: OperatorRecord) -> dict[str, Any]:
    return {
        "type": "FeatureCollection",
        "features": [parcel_to_feature(parcel) for parcel in record.parcelles],
    }
