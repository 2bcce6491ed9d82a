"""Public domain model surface."""

from __future__ import annotations

from parcelaudit.domain.model.enums import (
    Area,
    CertificationState,
    ConversionNiveau,
    DeletionReasonCode,
    EventType,
    ImportJobStatus,
    ImportLogLevel,
    RecordKeyPolicy,
)
from parcelaudit.domain.model.history import HistoryActor, HistoryEntry
from parcelaudit.domain.model.imports import ImportJob, ImportLog, ImportRun
from parcelaudit.domain.model.parcel import Culture, GeoJSONGeometry, Parcelle
from parcelaudit.domain.model.record import OperatorRecord, RecordMetadata

__all__ = [  # noqa: RUF022
    # records
    "OperatorRecord",
    "RecordMetadata",
    "Parcelle",
    "Culture",
    "GeoJSONGeometry",
    # history
    "HistoryActor",
    "HistoryEntry",
    # imports
    "ImportJob",
    "ImportRun",
    "ImportLog",
    # enums
    "Area",
    "CertificationState",
    "ConversionNiveau",
    "DeletionReasonCode",
    "EventType",
    "ImportJobStatus",
    "ImportLogLevel",
    "RecordKeyPolicy",
]
