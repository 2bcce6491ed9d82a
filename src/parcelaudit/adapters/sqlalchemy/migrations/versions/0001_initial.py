"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-09-14 10:12:31.402118
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_CERTIFICATION_STATES = ("OPERATOR_DRAFT", "AUDITED", "PENDING_CERTIFICATION", "CERTIFIED")
_EVENT_TYPES = (
    "CERTIFICATION_STATE_CHANGE",
    "FEATURE_COLLECTION_CREATE",
    "FEATURE_COLLECTION_DELETE",
    "FEATURE_COLLECTION_UPDATE",
    "FEATURE_CREATE",
    "FEATURE_DELETE",
    "FEATURE_UPDATE",
)
_CONVERSION_NIVEAUX = ("CONV", "C1", "C2", "C3", "AB")
_JOB_STATUSES = ("CREATE", "PENDING", "DONE", "ERROR")
_LOG_LEVELS = ("ERROR", "WARNING")


def upgrade() -> None:
    op.create_table(
        "operator_record",
        sa.Column("record_id", sa.Uuid(), nullable=False),
        sa.Column("numerobio", sa.String(), nullable=False),
        sa.Column("oc_id", sa.Integer(), nullable=True),
        sa.Column("oc_label", sa.String(), nullable=True),
        sa.Column(
            "certification_state",
            sa.Enum(*_CERTIFICATION_STATES, name="certificationstate", native_enum=False),
            nullable=False,
        ),
        sa.Column("certification_date_debut", sa.Date(), nullable=True),
        sa.Column("certification_date_fin", sa.Date(), nullable=True),
        sa.Column("audit_date", sa.Date(), nullable=True),
        sa.Column("audit_notes", sa.Text(), nullable=True),
        sa.Column("audit_demandes", sa.Text(), nullable=True),
        sa.Column("annee_reference_controle", sa.Integer(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("record_id", name=op.f("pk_operator_record")),
    )
    op.create_index(
        op.f("ix_operator_record_numerobio"),
        "operator_record",
        ["numerobio"],
        unique=False,
    )
    op.create_index(
        "uq_operator_record_active_key",
        "operator_record",
        ["numerobio", "audit_date"],
        unique=True,
        sqlite_where=sa.text("deleted_at IS NULL"),
        postgresql_where=sa.text("deleted_at IS NULL"),
    )

    op.create_table(
        "parcelle",
        sa.Column("record_id", sa.Uuid(), nullable=False),
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("geometry", sa.JSON(), nullable=False),
        sa.Column("cultures", sa.JSON(), nullable=False),
        sa.Column(
            "conversion_niveau",
            sa.Enum(*_CONVERSION_NIVEAUX, name="conversionniveau", native_enum=False),
            nullable=True,
        ),
        sa.Column("engagement_date", sa.Date(), nullable=True),
        sa.Column("commentaire", sa.Text(), nullable=True),
        sa.Column("annotations", sa.JSON(), nullable=True),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("commune", sa.String(), nullable=True),
        sa.Column("numero_pacage", sa.String(), nullable=True),
        sa.Column("numero_ilot_pac", sa.String(), nullable=True),
        sa.Column("numero_parcelle_pac", sa.String(), nullable=True),
        sa.Column("reference_cadastre", sa.JSON(), nullable=True),
        sa.Column("from_parcelles", sa.Uuid(), nullable=True),
        sa.Column("created", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deletion_reason", sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(
            ["record_id"],
            ["operator_record.record_id"],
            name=op.f("fk_parcelle_parcelle_record_id_operator_record"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("record_id", "id", name=op.f("pk_parcelle")),
    )

    op.create_table(
        "history_entry",
        sa.Column("position", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("record_id", sa.Uuid(), nullable=False),
        sa.Column(
            "type",
            sa.Enum(*_EVENT_TYPES, name="eventtype", native_enum=False),
            nullable=False,
        ),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "state",
            sa.Enum(*_CERTIFICATION_STATES, name="certificationstate", native_enum=False),
            nullable=True,
        ),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("user", sa.JSON(), nullable=True),
        sa.Column("feature_ids", sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(
            ["record_id"],
            ["operator_record.record_id"],
            name=op.f("fk_history_entry_history_entry_record_id_operator_record"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("position", name=op.f("pk_history_entry")),
    )
    op.create_index(
        op.f("ix_history_entry_record_id"),
        "history_entry",
        ["record_id"],
        unique=False,
    )

    op.create_table(
        "import_job",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "status",
            sa.Enum(*_JOB_STATUSES, name="importjobstatus", native_enum=False),
            nullable=False,
        ),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("result", sa.JSON(), nullable=True),
        sa.Column("created", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ended", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_import_job")),
    )

    op.create_table(
        "import_run",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("oc_id", sa.Integer(), nullable=True),
        sa.Column("oc_label", sa.String(), nullable=True),
        sa.Column("accepted", sa.JSON(), nullable=False),
        sa.Column("refused", sa.JSON(), nullable=False),
        sa.Column("committed", sa.Boolean(), nullable=False),
        sa.Column("created", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_import_run")),
    )

    op.create_table(
        "import_log",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("run_id", sa.Uuid(), nullable=False),
        sa.Column("numero_bio", sa.String(), nullable=True),
        sa.Column(
            "level",
            sa.Enum(*_LOG_LEVELS, name="importloglevel", native_enum=False),
            nullable=False,
        ),
        sa.Column("message", sa.Text(), nullable=False),
        sa.ForeignKeyConstraint(
            ["run_id"],
            ["import_run.id"],
            name=op.f("fk_import_log_import_log_run_id_import_run"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_import_log")),
    )
    op.create_index(op.f("ix_import_log_run_id"), "import_log", ["run_id"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_import_log_run_id"), table_name="import_log")
    op.drop_table("import_log")
    op.drop_table("import_run")
    op.drop_table("import_job")
    op.drop_index(op.f("ix_history_entry_record_id"), table_name="history_entry")
    op.drop_table("history_entry")
    op.drop_table("parcelle")
    op.drop_index("uq_operator_record_active_key", table_name="operator_record")
    op.drop_index(op.f("ix_operator_record_numerobio"), table_name="operator_record")
    op.drop_table("operator_record")
