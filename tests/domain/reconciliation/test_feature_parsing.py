from __future__ import annotations

from datetime import date
from uuid import uuid4

import pytest

from parcelaudit.domain.errors import ValidationError
from parcelaudit.domain.model import ConversionNiveau, Culture, OperatorRecord
from parcelaudit.domain.reconciliation import (
    copy_culture_details,
    copy_parcel_data,
    new_parcel,
    parcel_to_feature,
    parse_feature,
    parse_feature_collection,
    random_feature_id,
    record_to_feature_collection,
)
from tests.helpers.records import make_feature, square


def test_parse_feature_maps_known_properties() -> None:
    origin = uuid4()
    feature = make_feature(
        12,
        conversion_niveau="C2",
        engagement_date="2022-05-15",
        auditeur_notes="haie au nord",
        NOM="Les Hauts",
        COMMUNE="37261",
        PACAGE="037123456",
        NUMERO_I="4",
        NUMERO_P="2",
        cadastre="37261000AB0012 37261000AB0013",
        annotations=[{"code": "bordure"}],
        from_parcelles=str(origin),
    )

    patch = parse_feature(feature)

    assert patch.id == "12"
    assert patch.geometry == square()
    assert patch.conversion_niveau is ConversionNiveau.C2
    assert patch.engagement_date == date(2022, 5, 15)
    assert patch.commentaire == "haie au nord"
    assert patch.name == "Les Hauts"
    assert patch.numero_ilot_pac == "4"
    assert patch.numero_parcelle_pac == "2"
    assert patch.reference_cadastre == ("37261000AB0012", "37261000AB0013")
    assert patch.annotations == [{"code": "bordure"}]
    assert patch.from_parcelles == origin
    assert [culture.cpf for culture in patch.cultures or ()] == ["01.11.12"]


def test_parse_feature_leaves_absent_properties_unset() -> None:
    patch = parse_feature({"id": 3, "properties": {}})

    assert patch.geometry is None
    assert patch.cultures is None
    assert patch.commentaire is None
    assert patch.reference_cadastre is None


def test_parse_feature_takes_id_from_properties_or_fallback() -> None:
    assert parse_feature({"properties": {"id": "7"}}).id == "7"
    assert parse_feature({"properties": {}}, fallback_id="99").id == "99"
    with pytest.raises(ValidationError, match="without id"):
        parse_feature({"properties": {}})


@pytest.mark.parametrize(
    ("properties", "message"),
    [
        ({"conversion_niveau": "C9"}, "unknown conversion_niveau"),
        ({"engagement_date": "15/05/2022"}, "invalid engagement_date"),
        ({"from_parcelles": "not-a-uuid"}, "invalid from_parcelles"),
        ({"cultures": "01.11.12"}, "cultures must be a list"),
        ({"cultures": [{"surface": 2}]}, "invalid culture"),
    ],
)
def test_parse_feature_rejects_malformed_properties(
    properties: dict[str, object],
    message: str,
) -> None:
    with pytest.raises(ValidationError, match=message):
        parse_feature({"id": "1", "properties": properties})


def test_parse_feature_rejects_non_object_geometry() -> None:
    with pytest.raises(ValidationError, match="geometry must be a GeoJSON object"):
        parse_feature({"id": "1", "geometry": "POLYGON((0 0))"})


def test_parse_feature_collection_accepts_lists_and_collections() -> None:
    features = [make_feature(1), make_feature(2)]

    assert [patch.id for patch in parse_feature_collection(features)] == ["1", "2"]
    assert [
        patch.id for patch in parse_feature_collection({"features": features})
    ] == ["1", "2"]
    assert parse_feature_collection({"type": "FeatureCollection"}) == ()


def test_parse_feature_collection_rejects_other_shapes() -> None:
    with pytest.raises(ValidationError, match="FeatureCollection"):
        parse_feature_collection("features")


def test_random_feature_id_is_numeric() -> None:
    feature_id = random_feature_id()

    assert feature_id.isdigit()
    assert 0 < int(feature_id) < 2**53


def test_parcel_to_feature_round_trips_through_parse() -> None:
    parcel = new_parcel(parse_feature(make_feature(5, NOM="Bas", conversion_niveau="AB")))
    record = OperatorRecord(numerobio="12345")
    record.add_parcel(parcel)

    collection = record_to_feature_collection(record)
    (feature,) = collection["features"]
    reparsed = parse_feature(feature)

    assert feature == parcel_to_feature(parcel)
    assert feature["properties"]["NOM"] == "Bas"
    assert reparsed.conversion_niveau is ConversionNiveau.AB
    assert reparsed.cultures == parcel.cultures


def test_copy_culture_details_matches_each_previous_culture_once() -> None:
    previous = (
        Culture(cpf="01.11.12", surface=1.0),
        Culture(cpf="01.11.12", surface=2.0),
    )
    current = (
        Culture(cpf="01.11.12"),
        Culture(cpf="01.11.12"),
        Culture(cpf="01.11.12"),
        Culture(cpf="01.21.12"),
    )

    copied = copy_culture_details(current, previous)

    assert [culture.surface for culture in copied] == [1.0, 2.0, None, None]


def test_copy_parcel_data_ignores_parcels_unknown_to_source() -> None:
    source = OperatorRecord(numerobio="12345")
    patch = parse_feature(make_feature(1))

    assert copy_parcel_data(patch, source) is patch
