"""Field-by-field validation of certification declarations.

:func:`parse_declarations` is a lazy, single-pass generator: each input element
is looked up in the operator registry when it is reached, and yields its outcome
before the next element is read. A failing element never stops the stream.

A declaration whose client number differs from the registry yields a non-fatal
rejection first and is then validated as usual, so the same operator may appear
both among errors and among accepted records.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Any, Final, cast

import pydantic
from shapely.errors import ShapelyError
from shapely.geometry import Polygon

from parcelaudit.domain.errors import ValidationError
from parcelaudit.domain.model import CertificationState, ConversionNiveau, RecordMetadata
from parcelaudit.domain.model._internal import parse_date, utcnow
from parcelaudit.domain.reconciliation import RecordIdentity, random_feature_id

from .declarations import (
    CultureDeclaration,
    ParcelleDeclaration,
    RecordDeclaration,
    load_declarations,
)

if TYPE_CHECKING:
    from datetime import date

    from parcelaudit.domain.ports.registry import (
        CertifyingBody,
        CultureNomenclature,
        OperatorRegistry,
        RegionBoundaries,
    )

log = getLogger(__name__)

IMPORT_SOURCE: Final[str] = "API Parcellaire"

_LEADING_INTEGER = re.compile(r"^\s*([+-]?\d+)")
_PAC_PATTERNS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"ilot\s+(?P<ilot>\d+)\s+parcelle\s+(?P<parcelle>\d+)", re.IGNORECASE),
    re.compile(r"parcelle\s+(?P<parcelle>\d+)\s+ilot\s+(?P<ilot>\d+)", re.IGNORECASE),
    re.compile(r"ilot-(?P<ilot>\d+)-(?P<parcelle>\d+)", re.IGNORECASE),
)
_MISSING_GEOMETRY: Final[frozenset[str]] = frozenset({"", "null"})


@dataclass(frozen=True, slots=True, kw_only=True)
class ImportCollaborators:
    registry: OperatorRegistry
    nomenclature: CultureNomenclature
    regions: RegionBoundaries


@dataclass(frozen=True, slots=True, kw_only=True)
class AcceptedDeclaration:
    numero_bio: str
    identity: RecordIdentity
    features: dict[str, Any]
    warnings: tuple[str, ...] = ()

    @property
    def parcel_count(self) -> int:
        return len(self.features["features"])


@dataclass(frozen=True, slots=True, kw_only=True)
class RejectedDeclaration:
    numero_bio: str | None
    error: str
    fatal: bool = True


type DeclarationOutcome = AcceptedDeclaration | RejectedDeclaration


class _ParcelRejected(ValidationError):
    pass


def parse_leading_int(value: object) -> int | None:
    """Integer prefix of ``value`` ("12b" -> 12), or ``None``."""

    if value is None:
        return None
    match = _LEADING_INTEGER.match(str(value))
    return int(match.group(1)) if match else None


def parse_pac_details(comment: str | None) -> tuple[str | None, str | None]:
    """Extract ``(ilot, parcelle)`` PAC numbers written in a free-text comment."""

    result: tuple[str | None, str | None] = (None, None)
    if not comment:
        return result
    for pattern in _PAC_PATTERNS:
        match = pattern.search(comment)
        if match:
            result = (match.group("ilot"), match.group("parcelle"))
    return result


def _is_date(value: str | None) -> bool:
    try:
        parse_date(value)
    except ValueError:
        return False
    return True


def _parse_surface(quantite: str | None) -> float | None:
    """Read a declared quantity, accepting a decimal comma ("12,5")."""

    if quantite is None or not quantite.strip():
        return None
    try:
        return float(quantite.strip().replace(",", "."))
    except ValueError:
        return None


def _culture_properties(
    culture: CultureDeclaration,
    parcel_id: str,
    warnings: list[str],
) -> dict[str, Any]:
    surface = _parse_surface(culture.quantite)
    if surface is None and culture.quantite and culture.quantite.strip():
        warnings.append(f"Parcel {parcel_id}: quantite {culture.quantite!r} is not a number")
    date_semis = culture.date_semis or None
    if date_semis is not None and not _is_date(date_semis):
        warnings.append(f"Parcel {parcel_id}: dateSemis {date_semis!r} is not a date, ignored")
        date_semis = None
    return {
        "CPF": culture.code_cpf,
        "surface": surface,
        "unit": culture.unite,
        "variete": culture.variete or None,
        "date_semis": date_semis,
    }


def _geometry_coordinates(geom: str | list[Any]) -> list[Any]:
    if isinstance(geom, list):
        return geom
    try:
        coordinates = json.loads(geom.removesuffix("}"))
    except json.JSONDecodeError as exc:
        raise _ParcelRejected(f"geom field is invalid: {exc.msg}") from exc
    if not isinstance(coordinates, list):
        raise _ParcelRejected("geom field is invalid: expected a list of rings")
    return cast(list[Any], coordinates)


def _check_ring_positions(coordinates: list[Any]) -> None:
    for ring in coordinates:
        if not isinstance(ring, list):
            raise _ParcelRejected("geom field is invalid: a ring must be a list of positions")
        for position in cast(list[Any], ring):
            if not isinstance(position, list) or len(cast(list[Any], position)) < 2:  # noqa: PLR2004
                raise _ParcelRejected("geom field is invalid: malformed position")
            x, y = cast(list[Any], position)[:2]
            if not isinstance(x, (int, float)) or not isinstance(y, (int, float)):
                raise _ParcelRejected("geom field is invalid: coordinates must be numbers")
            if y > 90 or y < -90:  # noqa: PLR2004
                raise _ParcelRejected("geom field is invalid: latitude must be between -90 and 90")
            if x > 180 or x < -180:  # noqa: PLR2004
                raise _ParcelRejected(
                    "geom field is invalid: longitude must be between -180 and 180"
                )


def _build_polygon(coordinates: list[Any]) -> Polygon:
    if not coordinates:
        raise _ParcelRejected("geom field is invalid: polygon without rings")
    for ring in coordinates:
        if len(ring) < 4 or list(ring[0]) != list(ring[-1]):  # noqa: PLR2004
            raise _ParcelRejected(
                "geom field is invalid: each ring needs at least 4 positions "
                "and must be closed"
            )
    try:
        return Polygon(coordinates[0], coordinates[1:])
    except (ShapelyError, ValueError) as exc:
        raise _ParcelRejected(f"geom field is invalid: {exc}") from exc


def _parcel_feature(
    parcelle: ParcelleDeclaration,
    declaration: RecordDeclaration,
    collaborators: ImportCollaborators,
    warnings: list[str],
) -> dict[str, Any]:
    declared_id = parse_leading_int(parcelle.id)
    parcel_id = str(declared_id) if declared_id is not None else random_feature_id()
    pac_ilot, pac_parcelle = parse_pac_details(parcelle.commentaire)
    numero_ilot = parse_leading_int(parcelle.numero_ilot)
    numero_parcelle = parse_leading_int(parcelle.numero_parcelle)

    conversion_niveau: ConversionNiveau | None = None
    if parcelle.etat_production:
        try:
            conversion_niveau = ConversionNiveau.parse(parcelle.etat_production)
        except ValueError as exc:
            raise _ParcelRejected("etatProduction field is invalid") from exc
        if conversion_niveau.requires_engagement_date and not _is_date(parcelle.date_engagement):
            raise _ParcelRejected("engagement date is mandatory for parcels in conversion")

    engagement_date: date | None = None
    if parcelle.date_engagement:
        try:
            engagement_date = parse_date(parcelle.date_engagement)
        except ValueError as exc:
            raise _ParcelRejected("dateEngagement field is invalid") from exc

    cultures = parcelle.declared_cultures
    if not cultures:
        raise _ParcelRejected("cultures missing")
    unknown = [
        culture.code_cpf
        for culture in cultures
        if collaborators.nomenclature.resolve_culture_code(culture.code_cpf) is None
    ]
    if unknown:
        raise _ParcelRejected(f"unknown cultures: {', '.join(unknown)}")

    properties: dict[str, Any] = {
        "id": parcel_id,
        "cultures": [_culture_properties(culture, parcel_id, warnings) for culture in cultures],
        "NUMERO_I": str(numero_ilot) if numero_ilot is not None else pac_ilot,
        "NUMERO_P": str(numero_parcelle) if numero_parcelle is not None else pac_parcelle,
        "PACAGE": declaration.numero_pacage or None,
        "conversion_niveau": conversion_niveau.value if conversion_niveau else None,
        "engagement_date": engagement_date.isoformat() if engagement_date else None,
        "auditeur_notes": parcelle.commentaire,
        "TYPE": parcelle.code_culture,
        "CODE_VAR": parcelle.code_precision,
    }
    feature: dict[str, Any] = {
        "type": "Feature",
        "id": parcel_id,
        "geometry": None,
        "properties": properties,
    }

    geom = parcelle.geom
    if geom is None or (isinstance(geom, str) and geom.strip() in _MISSING_GEOMETRY):
        warnings.append(f"Parcel {parcel_id} has no geometry")
        return feature

    coordinates = _geometry_coordinates(geom)
    _check_ring_positions(coordinates)
    polygon = _build_polygon(coordinates)
    feature["geometry"] = {"type": "Polygon", "coordinates": coordinates}

    if collaborators.regions.locate(polygon) is None:
        warnings.append(f"Parcel {parcel_id} is outside the supported regions")
    return feature


def _validate_declaration(
    declaration: RecordDeclaration,
    certifying_body: CertifyingBody,
    collaborators: ImportCollaborators,
) -> Iterator[DeclarationOutcome]:
    numero_bio = declaration.numero_bio
    operator = collaborators.registry.resolve_operator(numero_bio)
    if operator is None:
        yield RejectedDeclaration(numero_bio=numero_bio, error="unknown numeroBio in the registry")
        return
    if not operator.is_production:
        yield RejectedDeclaration(
            numero_bio=numero_bio,
            error="numeroBio has no notification for a production activity",
        )
        return

    expected_client = (
        operator.organisme_certificateur.numero_client
        if operator.organisme_certificateur is not None
        else None
    )
    if expected_client != declaration.numero_client:
        yield RejectedDeclaration(
            numero_bio=numero_bio,
            error=f"numeroClient mismatch, expected: {expected_client}",
            fatal=False,
        )

    for label, value in (
        ("dateCertificationDebut", declaration.date_certification_debut),
        ("dateCertificationFin", declaration.date_certification_fin),
    ):
        if value and not _is_date(value):
            yield RejectedDeclaration(numero_bio=numero_bio, error=f"{label} field is invalid")
            return
    if not _is_date(declaration.date_audit):
        yield RejectedDeclaration(numero_bio=numero_bio, error="dateAudit field is invalid")
        return

    warnings: list[str] = []
    features: list[dict[str, Any]] = []
    for parcelle in declaration.parcelles:
        try:
            features.append(_parcel_feature(parcelle, declaration, collaborators, warnings))
        except _ParcelRejected as exc:
            parcel_ref = parcelle.id if parcelle.id is not None else "?"
            yield RejectedDeclaration(numero_bio=numero_bio, error=f"parcel {parcel_ref}: {exc}")
            return

    yield AcceptedDeclaration(
        numero_bio=numero_bio,
        identity=_identity(declaration, certifying_body),
        features={"type": "FeatureCollection", "features": features},
        warnings=tuple(warnings),
    )


def _identity(declaration: RecordDeclaration, certifying_body: CertifyingBody) -> RecordIdentity:
    def optional_date(value: str | None) -> date | None:
        return parse_date(value) if value else None

    return RecordIdentity(
        numerobio=declaration.numero_bio,
        oc_id=certifying_body.id,
        oc_label=certifying_body.nom,
        certification_state=CertificationState.CERTIFIED,
        certification_date_debut=optional_date(declaration.date_certification_debut),
        certification_date_fin=optional_date(declaration.date_certification_fin),
        audit_date=optional_date(declaration.date_audit),
        audit_notes=declaration.commentaire,
        annee_reference_controle=declaration.annee_reference_controle,
        metadata=RecordMetadata(
            source=IMPORT_SOURCE,
            source_last_update=utcnow(),
            campaign=declaration.annee_assolement,
        ),
    )


def _numero_bio_of(raw: object) -> str | None:
    if isinstance(raw, Mapping):
        value = cast(Mapping[str, Any], raw).get("numeroBio")
        return str(value) if value is not None else None
    return None


def parse_declarations(
    declarations: Iterable[object],
    certifying_body: CertifyingBody,
    *,
    collaborators: ImportCollaborators,
) -> Iterator[DeclarationOutcome]:
    for raw in declarations:
        try:
            declaration = RecordDeclaration.model_validate(raw)
        except pydantic.ValidationError as exc:
            first = exc.errors()[0]
            location = ".".join(str(part) for part in first["loc"]) or "declaration"
            yield RejectedDeclaration(
                numero_bio=_numero_bio_of(raw),
                error=f"invalid declaration: {location}: {first['msg']}",
            )
            continue
        yield from _validate_declaration(declaration, certifying_body, collaborators)


def preparse_declarations(
    declarations: Iterable[object],
    *,
    registry: OperatorRegistry,
) -> Iterator[RejectedDeclaration | str]:
    """Cheap pre-check of a whole file: registry membership and client numbers.

    Yields the numeroBio of each declaration that passes, or its rejection.
    """

    for raw in declarations:
        numero_bio = _numero_bio_of(raw)
        if numero_bio is None:
            yield RejectedDeclaration(numero_bio=None, error="numeroBio missing")
            continue
        operator = registry.resolve_operator(numero_bio)
        if operator is None:
            yield RejectedDeclaration(numero_bio=numero_bio, error="unknown numeroBio in the registry")
            continue
        declared_client = cast(Mapping[str, Any], raw).get("numeroClient")
        expected = (
            operator.organisme_certificateur.numero_client
            if operator.organisme_certificateur is not None
            else None
        )
        if expected != (str(declared_client) if declared_client is not None else None):
            yield RejectedDeclaration(
                numero_bio=numero_bio,
                error=f"numeroClient mismatch, expected: {expected}",
            )
            continue
        yield numero_bio


def collect_preparse_results(
    raw: str | bytes,
    *,
    registry: OperatorRegistry,
) -> list[RejectedDeclaration | str]:
    return list(preparse_declarations(load_declarations(raw), registry=registry))
