"""Shapes of certification declarations as certifying bodies send them."""

from __future__ import annotations

import json
from logging import getLogger
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field

from parcelaudit.domain.errors import ValidationError

log = getLogger(__name__)

INVALID_JSON_MESSAGE = "invalid JSON file"


class DeclarationBaseModel(BaseModel):
    model_config = ConfigDict(
        extra="allow",
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )
    _logged_extra_keys: ClassVar[set[str]] = set()

    def model_post_init(self, _context: object, /) -> None:
        extras = self.__pydantic_extra__
        if not extras:
            return
        new_keys = set(extras).difference(self._logged_extra_keys)
        if not new_keys:
            return
        self._logged_extra_keys.update(new_keys)
        log.debug("%s: unmodeled keys: %s", type(self).__name__, ", ".join(sorted(new_keys)))


class CultureDeclaration(DeclarationBaseModel):
    code_cpf: str = Field(alias="codeCPF")
    quantite: str | None = None
    unite: str | None = None
    variete: str | None = None
    date_semis: str | None = Field(default=None, alias="dateSemis")


class ParcelleDeclaration(DeclarationBaseModel):
    id: str | None = None
    etat_production: str | None = Field(default=None, alias="etatProduction")
    date_engagement: str | None = Field(default=None, alias="dateEngagement")
    commentaire: str | None = None
    numero_ilot: str | None = Field(default=None, alias="numeroIlot")
    numero_parcelle: str | None = Field(default=None, alias="numeroParcelle")
    code_culture: str | None = Field(default=None, alias="codeCulture")
    code_precision: str | None = Field(default=None, alias="codePrecision")
    cultures: list[CultureDeclaration] | None = None
    culture: list[CultureDeclaration] | None = None
    geom: str | list[Any] | None = None

    @property
    def declared_cultures(self) -> list[CultureDeclaration]:
        return self.culture or self.cultures or []


class RecordDeclaration(DeclarationBaseModel):
    numero_bio: str = Field(alias="numeroBio")
    numero_client: str | None = Field(default=None, alias="numeroClient")
    numero_pacage: str | None = Field(default=None, alias="numeroPacage")
    date_audit: str | None = Field(default=None, alias="dateAudit")
    date_certification_debut: str | None = Field(default=None, alias="dateCertificationDebut")
    date_certification_fin: str | None = Field(default=None, alias="dateCertificationFin")
    annee_reference_controle: int | None = Field(default=None, alias="anneeReferenceControle")
    annee_assolement: str | None = Field(default=None, alias="anneeAssolement")
    commentaire: str | None = None
    parcelles: list[ParcelleDeclaration] = Field(default_factory=list[ParcelleDeclaration])


def load_declarations(raw: str | bytes) -> list[Any]:
    """Decode an uploaded declaration file (a JSON array)."""

    try:
        document = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValidationError(INVALID_JSON_MESSAGE) from exc
    if not isinstance(document, list):
        raise ValidationError(INVALID_JSON_MESSAGE)
    return document  # pyright: ignore[reportUnknownVariableType]
