from __future__ import annotations

import json
from datetime import date
from typing import Any

import pytest

from parcelaudit.domain.bulk_import import (
    AcceptedDeclaration,
    RejectedDeclaration,
    collect_preparse_results,
    load_declarations,
    parse_declarations,
    parse_leading_int,
    parse_pac_details,
)
from parcelaudit.domain.errors import ValidationError
from parcelaudit.domain.model import CertificationState
from parcelaudit.domain.ports.registry import CertifyingBody, RegisteredOperator
from tests.helpers.imports import (
    CERTIFYING_BODY,
    FakeRegistry,
    geom_string,
    make_collaborators,
    make_declaration,
    make_parcelle,
    production_operator,
    ring,
)


def _outcomes(*declarations: Any, registry: FakeRegistry | None = None) -> list[Any]:
    return list(
        parse_declarations(
            declarations,
            CERTIFYING_BODY,
            collaborators=make_collaborators(registry),
        )
    )


def _single_error(*declarations: Any, registry: FakeRegistry | None = None) -> str:
    (outcome,) = _outcomes(*declarations, registry=registry)
    assert isinstance(outcome, RejectedDeclaration)
    assert outcome.fatal
    return outcome.error


@pytest.mark.parametrize(
    ("value", "expected"),
    [("12", 12), ("12b", 12), (" 7 ", 7), ("-3", -3), ("b12", None), (None, None), (45, 45)],
)
def test_parse_leading_int(value: object, expected: int | None) -> None:
    assert parse_leading_int(value) == expected


@pytest.mark.parametrize(
    ("comment", "expected"),
    [
        ("ilot 4 parcelle 2", ("4", "2")),
        ("Parcelle 3 Ilot 9", ("9", "3")),
        ("voir ilot-12-5 sur le RPG", ("12", "5")),
        ("ilot 1 parcelle 1, corrigé ilot-2-3", ("2", "3")),
        ("pas de référence", (None, None)),
        (None, (None, None)),
    ],
)
def test_parse_pac_details(comment: str | None, expected: tuple[str | None, str | None]) -> None:
    assert parse_pac_details(comment) == expected


def test_valid_declaration_is_accepted() -> None:
    (outcome,) = _outcomes(make_declaration(commentaire="visite complète"))

    assert isinstance(outcome, AcceptedDeclaration)
    assert outcome.numero_bio == "12345"
    assert outcome.parcel_count == 1
    assert outcome.warnings == ()
    identity = outcome.identity
    assert identity.oc_id == 1
    assert identity.oc_label == "Ecocert"
    assert identity.certification_state is CertificationState.CERTIFIED
    assert identity.audit_date == date(2024, 5, 2)
    assert identity.certification_date_fin == date(2025, 12, 31)
    assert identity.annee_reference_controle == 2024
    assert identity.audit_notes == "visite complète"
    assert identity.metadata.source == "API Parcellaire"
    assert identity.metadata.campaign == "2024"
    (feature,) = outcome.features["features"]
    assert feature["id"] == "1"
    assert feature["geometry"] == {"type": "Polygon", "coordinates": [ring()]}
    assert feature["properties"]["conversion_niveau"] == "AB"
    assert feature["properties"]["cultures"] == [
        {
            "CPF": "01.11.12",
            "surface": 1.5,
            "unit": "ha",
            "variete": None,
            "date_semis": None,
        }
    ]


def test_parcel_properties_are_normalized() -> None:
    parcelle = make_parcelle(
        "17bis",
        numeroIlot="4a",
        commentaire="ilot 9 parcelle 8",
        codeCulture="BTH",
        codePrecision="001",
    )

    (outcome,) = _outcomes(make_declaration(numeroPacage="037000001", parcelles=[parcelle]))

    assert isinstance(outcome, AcceptedDeclaration)
    (feature,) = outcome.features["features"]
    properties = feature["properties"]
    assert feature["id"] == "17"
    assert properties["NUMERO_I"] == "4"
    assert properties["NUMERO_P"] == "8"
    assert properties["PACAGE"] == "037000001"
    assert properties["auditeur_notes"] == "ilot 9 parcelle 8"
    assert properties["TYPE"] == "BTH"
    assert properties["CODE_VAR"] == "001"


def test_parcel_without_id_gets_a_numeric_one() -> None:
    parcelle = make_parcelle()
    del parcelle["id"]

    (outcome,) = _outcomes(make_declaration(parcelles=[parcelle]))

    assert isinstance(outcome, AcceptedDeclaration)
    assert outcome.features["features"][0]["id"].isdigit()


def test_singular_culture_key_is_accepted() -> None:
    parcelle = make_parcelle()
    parcelle["culture"] = parcelle.pop("cultures")

    (outcome,) = _outcomes(make_declaration(parcelles=[parcelle]))

    assert isinstance(outcome, AcceptedDeclaration)


def _culture_outcome(culture: dict[str, Any]) -> Any:
    parcelle = make_parcelle(cultures=[{"codeCPF": "01.11.12", **culture}])
    (outcome,) = _outcomes(make_declaration(parcelles=[parcelle]))
    assert isinstance(outcome, AcceptedDeclaration)
    return outcome


@pytest.mark.parametrize(
    ("quantite", "expected"),
    [("12,5", 12.5), (" 3.25 ", 3.25), ("7", 7.0)],
)
def test_quantite_accepts_a_decimal_comma(quantite: str, expected: float) -> None:
    outcome = _culture_outcome({"quantite": quantite})

    (culture,) = outcome.features["features"][0]["properties"]["cultures"]
    assert culture["surface"] == expected
    assert outcome.warnings == ()


def test_unreadable_quantite_is_dropped_with_a_warning() -> None:
    outcome = _culture_outcome({"quantite": "1 ha 20"})

    (culture,) = outcome.features["features"][0]["properties"]["cultures"]
    assert culture["surface"] is None
    assert outcome.warnings == ("Parcel 1: quantite '1 ha 20' is not a number",)


def test_iso_sowing_date_is_kept() -> None:
    outcome = _culture_outcome({"dateSemis": "2024-03-15"})

    (culture,) = outcome.features["features"][0]["properties"]["cultures"]
    assert culture["date_semis"] == "2024-03-15"
    assert outcome.warnings == ()


def test_unreadable_sowing_date_is_dropped_with_a_warning() -> None:
    outcome = _culture_outcome({"dateSemis": "15/03/2024"})

    (culture,) = outcome.features["features"][0]["properties"]["cultures"]
    assert culture["date_semis"] is None
    assert outcome.warnings == ("Parcel 1: dateSemis '15/03/2024' is not a date, ignored",)


def test_geometry_given_as_coordinate_list_is_accepted() -> None:
    (outcome,) = _outcomes(make_declaration(parcelles=[make_parcelle(geom=[ring()])]))

    assert isinstance(outcome, AcceptedDeclaration)


def test_geometry_string_with_trailing_brace_is_accepted() -> None:
    parcelle = make_parcelle(geom=geom_string() + "}")

    (outcome,) = _outcomes(make_declaration(parcelles=[parcelle]))

    assert isinstance(outcome, AcceptedDeclaration)


def test_unknown_operator_is_rejected() -> None:
    error = _single_error(make_declaration("99999"))

    assert error == "unknown numeroBio in the registry"


def test_operator_without_production_activity_is_rejected() -> None:
    registry = FakeRegistry(
        {"12345": RegisteredOperator(numero_bio="12345", is_production=False)}
    )

    error = _single_error(make_declaration(), registry=registry)

    assert error == "numeroBio has no notification for a production activity"


def test_client_number_mismatch_is_reported_but_not_fatal() -> None:
    registry = FakeRegistry({"12345": production_operator("12345", numero_client="C-999")})

    outcomes = _outcomes(make_declaration(), registry=registry)

    first, second = outcomes
    assert isinstance(first, RejectedDeclaration)
    assert not first.fatal
    assert first.error == "numeroClient mismatch, expected: C-999"
    assert isinstance(second, AcceptedDeclaration)


def test_operator_without_certifying_body_expects_no_client_number() -> None:
    registry = FakeRegistry(
        {"12345": RegisteredOperator(numero_bio="12345", is_production=True)}
    )

    outcomes = _outcomes(make_declaration(numeroClient=None), registry=registry)

    assert [type(outcome) for outcome in outcomes] == [AcceptedDeclaration]


@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"dateCertificationDebut": "2024-13-01"}, "dateCertificationDebut field is invalid"),
        ({"dateCertificationFin": "demain"}, "dateCertificationFin field is invalid"),
        ({"dateAudit": "02/05/2024"}, "dateAudit field is invalid"),
        ({"dateAudit": None}, "dateAudit field is invalid"),
    ],
)
def test_invalid_record_dates_are_rejected(overrides: dict[str, Any], message: str) -> None:
    assert _single_error(make_declaration(**overrides)) == message


def test_missing_certification_dates_are_allowed() -> None:
    (outcome,) = _outcomes(
        make_declaration(dateCertificationDebut=None, dateCertificationFin="")
    )

    assert isinstance(outcome, AcceptedDeclaration)
    assert outcome.identity.certification_date_debut is None


@pytest.mark.parametrize(
    ("parcelle", "message"),
    [
        (make_parcelle(etatProduction="BIO"), "parcel 1: etatProduction field is invalid"),
        (
            make_parcelle(etatProduction="C1"),
            "parcel 1: engagement date is mandatory for parcels in conversion",
        ),
        (
            make_parcelle(etatProduction="C2", dateEngagement="2022-02-30"),
            "parcel 1: engagement date is mandatory for parcels in conversion",
        ),
        (make_parcelle(dateEngagement="hier"), "parcel 1: dateEngagement field is invalid"),
        (make_parcelle(cultures=[]), "parcel 1: cultures missing"),
        (
            make_parcelle(cultures=[{"codeCPF": "99.99"}, {"codeCPF": "01.21.12"}]),
            "parcel 1: unknown cultures: 99.99",
        ),
    ],
)
def test_invalid_parcel_properties_reject_the_declaration(
    parcelle: dict[str, Any],
    message: str,
) -> None:
    assert _single_error(make_declaration(parcelles=[parcelle])) == message


def test_conversion_parcel_with_engagement_date_is_accepted() -> None:
    parcelle = make_parcelle(etatProduction="C1", dateEngagement="2023-04-01")

    (outcome,) = _outcomes(make_declaration(parcelles=[parcelle]))

    assert isinstance(outcome, AcceptedDeclaration)
    properties = outcome.features["features"][0]["properties"]
    assert properties["conversion_niveau"] == "C1"
    assert properties["engagement_date"] == "2023-04-01"


@pytest.mark.parametrize(
    ("geom", "message"),
    [
        ("[[[0.5, 47.0], [0.6, 47.0]", "geom field is invalid"),
        ('{"type": "Polygon"', "geom field is invalid"),
        (geom_string([[0.5, 95.0], [0.6, 95.0], [0.6, 95.1], [0.5, 95.0]]), "latitude"),
        (geom_string([[190.0, 47.0], [191.0, 47.0], [191.0, 48.0], [190.0, 47.0]]), "longitude"),
        (geom_string([[0.5, 47.0], [0.6, 47.0], [0.6, 47.1]]), "at least 4 positions"),
        (geom_string([[0.5, 47.0], [0.6, 47.0], [0.6, 47.1], [0.5, 47.1]]), "must be closed"),
        (json.dumps([[["a", "b"], [0, 1], [1, 1], ["a", "b"]]]), "coordinates must be numbers"),
        (json.dumps([[[0.5], [0.6, 47.0], [0.6, 47.1], [0.5]]]), "malformed position"),
        (json.dumps([]), "polygon without rings"),
    ],
)
def test_malformed_geometry_rejects_the_declaration(geom: str, message: str) -> None:
    error = _single_error(make_declaration(parcelles=[make_parcelle(geom=geom)]))

    assert error.startswith("parcel 1: geom field is invalid")
    assert message in error


@pytest.mark.parametrize("geom", [None, "", "null"])
def test_missing_geometry_is_a_warning(geom: str | None) -> None:
    (outcome,) = _outcomes(make_declaration(parcelles=[make_parcelle(geom=geom)]))

    assert isinstance(outcome, AcceptedDeclaration)
    assert outcome.warnings == ("Parcel 1 has no geometry",)
    assert outcome.features["features"][0]["geometry"] is None


def test_geometry_outside_supported_regions_is_a_warning() -> None:
    parcelle = make_parcelle(geom=geom_string(ring(x=20.0, y=60.0)))

    (outcome,) = _outcomes(make_declaration(parcelles=[parcelle]))

    assert isinstance(outcome, AcceptedDeclaration)
    assert outcome.warnings == ("Parcel 1 is outside the supported regions",)


def test_geometry_in_overseas_region_is_accepted_without_warning() -> None:
    parcelle = make_parcelle(geom=geom_string(ring(x=55.5, y=-21.1)))

    (outcome,) = _outcomes(make_declaration(parcelles=[parcelle]))

    assert isinstance(outcome, AcceptedDeclaration)
    assert outcome.warnings == ()


def test_first_failing_parcel_rejects_the_whole_declaration() -> None:
    declaration = make_declaration(
        parcelles=[make_parcelle(1), make_parcelle(2, cultures=[]), make_parcelle(3, geom="[")]
    )

    assert _single_error(declaration) == "parcel 2: cultures missing"


def test_schema_errors_are_rejections() -> None:
    error = _single_error({"numeroBio": "12345", "parcelles": "none"})

    assert error.startswith("invalid declaration: parcelles:")


def test_declaration_without_numero_bio_is_rejected() -> None:
    (outcome,) = _outcomes({"parcelles": []})

    assert isinstance(outcome, RejectedDeclaration)
    assert outcome.numero_bio is None
    assert outcome.error.startswith("invalid declaration: numeroBio:")


def test_numeric_identifiers_are_coerced_to_text() -> None:
    registry = FakeRegistry.of("4242")

    (outcome,) = _outcomes(
        make_declaration(4242, parcelles=[make_parcelle(8)]),  # type: ignore[arg-type]
        registry=registry,
    )

    assert isinstance(outcome, AcceptedDeclaration)
    assert outcome.numero_bio == "4242"


def test_parse_declarations_is_lazy() -> None:
    registry = FakeRegistry.of("1", "2")
    stream = parse_declarations(
        [make_declaration("1"), make_declaration("2")],
        CERTIFYING_BODY,
        collaborators=make_collaborators(registry),
    )

    first = next(stream)

    assert isinstance(first, AcceptedDeclaration)
    assert registry.lookups == ["1"]
    assert [outcome.numero_bio for outcome in stream] == ["2"]
    assert registry.lookups == ["1", "2"]


def test_one_bad_declaration_does_not_stop_the_stream() -> None:
    outcomes = _outcomes(
        make_declaration("12345", dateAudit="x"),
        make_declaration("12345"),
    )

    assert [type(outcome) for outcome in outcomes] == [RejectedDeclaration, AcceptedDeclaration]


def test_load_declarations_requires_a_json_array() -> None:
    assert load_declarations(b'[{"numeroBio": "1"}]') == [{"numeroBio": "1"}]
    with pytest.raises(ValidationError, match="invalid JSON file"):
        load_declarations("{not json")
    with pytest.raises(ValidationError, match="invalid JSON file"):
        load_declarations('{"numeroBio": "1"}')


def test_preparse_checks_registry_and_client_numbers() -> None:
    registry = FakeRegistry(
        {
            "1": production_operator("1"),
            "2": production_operator("2", numero_client="C-200"),
        }
    )
    raw = json.dumps(
        [
            {"numeroBio": "1", "numeroClient": "C-100"},
            {"numeroBio": "2", "numeroClient": "C-100"},
            {"numeroBio": "3"},
            {"numeroClient": "C-100"},
        ]
    )

    results = collect_preparse_results(raw, registry=registry)

    assert results == [
        "1",
        RejectedDeclaration(numero_bio="2", error="numeroClient mismatch, expected: C-200"),
        RejectedDeclaration(numero_bio="3", error="unknown numeroBio in the registry"),
        RejectedDeclaration(numero_bio=None, error="numeroBio missing"),
    ]


def test_certifying_body_of_the_batch_is_used_for_identity() -> None:
    body = CertifyingBody(id=7, nom="Bureau Veritas")

    (outcome,) = parse_declarations(
        [make_declaration()],
        body,
        collaborators=make_collaborators(),
    )

    assert isinstance(outcome, AcceptedDeclaration)
    assert outcome.identity.oc_id == 7
    assert outcome.identity.oc_label == "Bureau Veritas"
