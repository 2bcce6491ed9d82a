"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum
from typing import Final


class CertificationState(StrEnum):
    """Certification lifecycle of an operator record.

    Declaration order is the lifecycle order. String comparison between members is
    meaningless; compare through ``rank`` or ``is_at_least``.
    """

    OPERATOR_DRAFT = "OPERATOR_DRAFT"
    AUDITED = "AUDITED"
    PENDING_CERTIFICATION = "PENDING_CERTIFICATION"
    CERTIFIED = "CERTIFIED"

    @property
    def rank(self) -> int:
        return tuple(CertificationState).index(self)

    def is_at_least(self, other: CertificationState) -> bool:
        return self.rank >= other.rank


class EventType(StrEnum):
    CERTIFICATION_STATE_CHANGE = "CertificationStateChange"
    FEATURE_COLLECTION_CREATE = "FeatureCollectionCreation"
    FEATURE_COLLECTION_DELETE = "FeatureCollectionDeletion"
    FEATURE_COLLECTION_UPDATE = "FeatureCollectionUpdate"
    FEATURE_CREATE = "FeatureCreation"
    FEATURE_DELETE = "FeatureDeletion"
    FEATURE_UPDATE = "FeatureUpdate"


_CONVERSION_ALIASES: Final[dict[str, str]] = {
    "C0": "CONV",
    "NB": "CONV",
}


class ConversionNiveau(StrEnum):
    CONV = "CONV"
    C1 = "C1"
    C2 = "C2"
    C3 = "C3"
    AB = "AB"

    @classmethod
    def parse(cls, value: str) -> ConversionNiveau:
        """Resolve a declared production state, accepting the legacy aliases.

        Raises ``ValueError`` for anything else.
        """

        normalized = value.strip().upper()
        return cls(_CONVERSION_ALIASES.get(normalized, normalized))

    @property
    def requires_engagement_date(self) -> bool:
        return self in {ConversionNiveau.C1, ConversionNiveau.C2, ConversionNiveau.C3}


class ImportJobStatus(StrEnum):
    CREATE = "CREATE"
    PENDING = "PENDING"
    DONE = "DONE"
    ERROR = "ERROR"

    @property
    def is_terminal(self) -> bool:
        return self in {ImportJobStatus.DONE, ImportJobStatus.ERROR}


class ImportLogLevel(StrEnum):
    ERROR = "error"
    WARNING = "warning"


class DeletionReasonCode(StrEnum):
    LIFECYCLE = "lifecycle"
    OTHER = "other"
    ERROR = "error"


class RecordKeyPolicy(StrEnum):
    """Which business key identifies the active record of an operator."""

    OPERATOR = "operator"  # one active record per numerobio
    OPERATOR_CAMPAIGN = "operator_campaign"  # one active record per (numerobio, audit_date)


class Area(StrEnum):
    METROPOLE = "metropole"
    ANTILLES = "antilles"
    GUYANE = "guyane"
    REUNION = "reunion"
    MAYOTTE = "mayotte"
