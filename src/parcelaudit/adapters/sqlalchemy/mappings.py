"""SQLAlchemy mapping metadata for the parcelaudit domain model."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from functools import cache
from typing import Any, cast

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Dialect,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    Uuid,
    orm,
)
from sqlalchemy.orm import configure_mappers, relationship

from parcelaudit.domain.model import (
    CertificationState,
    ConversionNiveau,
    Culture,
    EventType,
    HistoryActor,
    HistoryEntry,
    ImportJob,
    ImportJobStatus,
    ImportLog,
    ImportLogLevel,
    ImportRun,
    OperatorRecord,
    Parcelle,
    RecordMetadata,
)

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class RecordMetadataType(TypeDecorator[RecordMetadata]):
    impl = JSON
    cache_ok = True

    def process_bind_param(
        self, value: RecordMetadata | None, dialect: Dialect
    ) -> dict[str, Any] | None:
        _ = dialect
        return value.to_dict() if value is not None else None

    def process_result_value(self, value: Any, dialect: Dialect) -> RecordMetadata:
        _ = dialect
        return RecordMetadata.from_dict(value if isinstance(value, dict) else None)


class CulturesType(TypeDecorator[tuple[Culture, ...]]):
    impl = JSON
    cache_ok = True

    def process_bind_param(
        self, value: tuple[Culture, ...] | None, dialect: Dialect
    ) -> list[dict[str, object]]:
        _ = dialect
        return [culture.to_dict() for culture in value or ()]

    def process_result_value(self, value: Any, dialect: Dialect) -> tuple[Culture, ...]:
        _ = dialect
        if not isinstance(value, list):
            return ()
        return tuple(Culture.from_dict(item) for item in cast(list[dict[str, Any]], value))


class StringTupleType(TypeDecorator[tuple[str, ...]]):
    impl = JSON(none_as_null=True)
    cache_ok = True

    def process_bind_param(
        self, value: tuple[str, ...] | None, dialect: Dialect
    ) -> list[str] | None:
        _ = dialect
        return list(value) if value is not None else None

    def process_result_value(self, value: Any, dialect: Dialect) -> tuple[str, ...] | None:
        _ = dialect
        if not isinstance(value, list):
            return None
        return tuple(str(item) for item in cast(list[object], value))


class HistoryActorType(TypeDecorator[HistoryActor]):
    impl = JSON(none_as_null=True)
    cache_ok = True

    def process_bind_param(
        self, value: HistoryActor | None, dialect: Dialect
    ) -> dict[str, object] | None:
        _ = dialect
        return value.to_dict() if value is not None else None

    def process_result_value(self, value: Any, dialect: Dialect) -> HistoryActor | None:
        _ = dialect
        if not isinstance(value, dict):
            return None
        return HistoryActor.from_dict(cast(dict[str, Any], value))


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Operator records ------------------------------------------------------------

operator_record_table = Table(
    "operator_record",
    mapper_registry.metadata,
    Column("record_id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("numerobio", String, nullable=False, index=True),
    Column("oc_id", Integer, nullable=True),
    Column("oc_label", String, nullable=True),
    Column(
        "certification_state",
        Enum(CertificationState, native_enum=False),
        nullable=False,
    ),
    Column("certification_date_debut", Date, nullable=True),
    Column("certification_date_fin", Date, nullable=True),
    Column("audit_date", Date, nullable=True),
    Column("audit_notes", Text, nullable=True),
    Column("audit_demandes", Text, nullable=True),
    Column("annee_reference_controle", Integer, nullable=True),
    Column("metadata", RecordMetadataType(), key="record_metadata", nullable=False),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("updated_at", UTCDateTime(), nullable=False),
    Column("deleted_at", UTCDateTime(), nullable=True),
)

# one active record per operator and campaign
Index(
    "uq_operator_record_active_key",
    operator_record_table.c.numerobio,
    operator_record_table.c.audit_date,
    unique=True,
    sqlite_where=operator_record_table.c.deleted_at.is_(None),
    postgresql_where=operator_record_table.c.deleted_at.is_(None),
)

parcelle_table = Table(
    "parcelle",
    mapper_registry.metadata,
    Column(
        "record_id",
        UUIDColumnType,
        ForeignKey("operator_record.record_id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("id", String, primary_key=True),
    Column("geometry", JSON(none_as_null=True), nullable=False),
    Column("cultures", CulturesType(), nullable=False),
    Column("conversion_niveau", Enum(ConversionNiveau, native_enum=False), nullable=True),
    Column("engagement_date", Date, nullable=True),
    Column("commentaire", Text, nullable=True),
    Column("annotations", JSON(none_as_null=True), nullable=True),
    Column("name", String, nullable=True),
    Column("commune", String, nullable=True),
    Column("numero_pacage", String, nullable=True),
    Column("numero_ilot_pac", String, nullable=True),
    Column("numero_parcelle_pac", String, nullable=True),
    Column("reference_cadastre", StringTupleType(), nullable=True),
    Column("from_parcelles", UUIDColumnType, nullable=True),
    Column("created", UTCDateTime(), nullable=False),
    Column("updated", UTCDateTime(), nullable=False),
    Column("deleted_at", UTCDateTime(), nullable=True),
    Column("deletion_reason", JSON(none_as_null=True), nullable=True),
)

history_entry_table = Table(
    "history_entry",
    mapper_registry.metadata,
    Column("position", Integer, primary_key=True, autoincrement=True),
    Column(
        "record_id",
        UUIDColumnType,
        ForeignKey("operator_record.record_id", ondelete="CASCADE"),
        key="_record_id",
        nullable=False,
        index=True,
    ),
    Column("type", Enum(EventType, native_enum=False), nullable=False),
    Column("date", UTCDateTime(), nullable=False),
    Column("state", Enum(CertificationState, native_enum=False), nullable=True),
    Column("description", Text, nullable=True),
    Column("metadata", JSON(none_as_null=True), key="event_metadata", nullable=True),
    Column("user", HistoryActorType(), nullable=True),
    Column("feature_ids", StringTupleType(), nullable=True),
)

# Imports ---------------------------------------------------------------------

import_job_table = Table(
    "import_job",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("status", Enum(ImportJobStatus, native_enum=False), nullable=False),
    Column("payload", JSON(none_as_null=True), nullable=True),
    Column("result", JSON(none_as_null=True), nullable=True),
    Column("created", UTCDateTime(), nullable=False),
    Column("ended", UTCDateTime(), nullable=True),
)

import_run_table = Table(
    "import_run",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("oc_id", Integer, nullable=True),
    Column("oc_label", String, nullable=True),
    Column("accepted", JSON, nullable=False),
    Column("refused", JSON, nullable=False),
    Column("committed", Boolean, nullable=False),
    Column("created", UTCDateTime(), nullable=False),
)

import_log_table = Table(
    "import_log",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "run_id",
        UUIDColumnType,
        ForeignKey("import_run.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("numero_bio", String, nullable=True),
    Column("level", Enum(ImportLogLevel, native_enum=False), nullable=False),
    Column("message", Text, nullable=False),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(
        OperatorRecord,
        operator_record_table,
        properties={
            "_parcelles": relationship(
                Parcelle,
                cascade="all, delete-orphan",
                lazy="selectin",
                order_by=[parcelle_table.c.created, parcelle_table.c.id],
            ),
            "_audit_history": relationship(
                HistoryEntry,
                cascade="all, delete-orphan",
                lazy="selectin",
                order_by=history_entry_table.c.position,
            ),
        },
    )

    mapper_registry.map_imperatively(Parcelle, parcelle_table)
    mapper_registry.map_imperatively(HistoryEntry, history_entry_table)

    mapper_registry.map_imperatively(ImportJob, import_job_table)

    mapper_registry.map_imperatively(
        ImportRun,
        import_run_table,
        properties={
            "_logs": relationship(
                ImportLog,
                cascade="all, delete-orphan",
                lazy="selectin",
                order_by=import_log_table.c.id,
            ),
        },
    )
    mapper_registry.map_imperatively(ImportLog, import_log_table)

    configure_mappers()
    return mapper_registry
