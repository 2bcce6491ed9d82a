"""Agence Bio notifications portal response schemas."""

from __future__ import annotations

import logging
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field

from parcelaudit.domain.ports.registry import CertifyingBody, RegisteredOperator

log = logging.getLogger(__name__)

PRODUCTION_ACTIVITY = "production"


class AgenceBioBaseModel(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)
    _logged_extra_keys: ClassVar[set[str]] = set()

    def model_post_init(self, _context: object, /) -> None:
        extras = self.__pydantic_extra__
        if not extras:
            return
        new_keys = set(extras).difference(self._logged_extra_keys)
        if not new_keys:
            return
        self._logged_extra_keys.update(new_keys)
        log.debug(
            "Agence Bio %s: unmodeled keys: %s",
            type(self).__name__,
            ", ".join(sorted(new_keys)),
        )


class AgenceBioActivite(AgenceBioBaseModel):
    id: int | None = None
    nom: str | None = None
    active: bool | None = None


class AgenceBioOrganismeCertificateur(AgenceBioBaseModel):
    id: int
    nom: str
    numero_client: str | None = Field(default=None, alias="numeroClient")


class AgenceBioCertificat(AgenceBioBaseModel):
    organisme: str | None = None
    numero_client: str | None = Field(default=None, alias="numeroClient")
    organisme_certificateur_id: int | None = Field(default=None, alias="organismeCertificateurId")
    etat_certification: str | None = Field(default=None, alias="etatCertification")
    status: str | None = None


class AgenceBioOperateur(AgenceBioBaseModel):
    numero_bio: str = Field(alias="numeroBio")
    numero_pacage: str | None = Field(default=None, alias="numeroPacage")
    is_production: bool | None = Field(default=None, alias="isProduction")
    organisme_certificateur: AgenceBioOrganismeCertificateur | None = Field(
        default=None,
        alias="organismeCertificateur",
    )
    activites: list[AgenceBioActivite] = Field(default_factory=list[AgenceBioActivite])
    certificats: list[AgenceBioCertificat] = Field(default_factory=list[AgenceBioCertificat])

    def has_production_activity(self) -> bool:
        if self.is_production is not None:
            return self.is_production
        return any(
            activite.active is not False
            and (activite.nom or "").strip().lower() == PRODUCTION_ACTIVITY
            for activite in self.activites
        )

    def certifying_body(self) -> CertifyingBody | None:
        if self.organisme_certificateur is not None:
            oc = self.organisme_certificateur
            return CertifyingBody(id=oc.id, nom=oc.nom, numero_client=oc.numero_client)
        for certificat in self.certificats:
            if certificat.organisme_certificateur_id is None:
                continue
            return CertifyingBody(
                id=certificat.organisme_certificateur_id,
                nom=certificat.organisme or "",
                numero_client=certificat.numero_client,
            )
        return None

    def to_registered_operator(self) -> RegisteredOperator:
        return RegisteredOperator(
            numero_bio=self.numero_bio,
            is_production=self.has_production_activity(),
            organisme_certificateur=self.certifying_body(),
        )
