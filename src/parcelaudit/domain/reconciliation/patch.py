"""Field-level parcel patching: coalesce on ``None``, overwrite otherwise."""

from __future__ import annotations

from dataclasses import fields, replace
from typing import TYPE_CHECKING, Final

from parcelaudit.domain.model import Culture, Parcelle
from parcelaudit.domain.model._internal import utcnow
from parcelaudit.domain.reconciliation.features import ParcelPatch

if TYPE_CHECKING:
    from collections.abc import Sequence

    from parcelaudit.domain.model import OperatorRecord

PATCHABLE_FIELDS: Final[tuple[str, ...]] = tuple(
    field.name for field in fields(ParcelPatch) if field.name != "id"
)


def apply_patch(parcel: Parcelle, patch: ParcelPatch) -> None:
    for name in PATCHABLE_FIELDS:
        value = getattr(patch, name)
        if value is not None:
            setattr(parcel, name, value)
    parcel.updated = utcnow()


def new_parcel(patch: ParcelPatch) -> Parcelle:
    values = {name: getattr(patch, name) for name in PATCHABLE_FIELDS}
    if values["cultures"] is None:
        values["cultures"] = ()
    return Parcelle(id=patch.id, **values)


def copy_culture_details(
    cultures: Sequence[Culture],
    previous: Sequence[Culture],
) -> tuple[Culture, ...]:
    """Fill missing culture details from the previous declaration of the parcel.

    Cultures are matched by CPF code in order; each previous culture is used once.
    """

    remaining = list(previous)
    copied: list[Culture] = []
    for culture in cultures:
        match = next((item for item in remaining if item.cpf == culture.cpf), None)
        if match is None:
            copied.append(culture)
            continue
        remaining.remove(match)
        copied.append(culture.filled_from(match))
    return tuple(copied)


def copy_parcel_data(patch: ParcelPatch, source: OperatorRecord) -> ParcelPatch:
    """Carry culture details over from the same parcel of ``source``."""

    previous = source.parcel(patch.id)
    if previous is None or patch.cultures is None:
        return patch
    return replace(
        patch,
        cultures=copy_culture_details(patch.cultures, previous.cultures),
        from_parcelles=patch.from_parcelles or source.record_id,
    )
