"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import select

from parcelaudit.adapters.sqlalchemy.mappings import (
    import_run_table,
    operator_record_table,
    parcelle_table,
)
from parcelaudit.domain.model import ImportJob, ImportRun, OperatorRecord

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from datetime import date
    from uuid import UUID

    from sqlalchemy.orm import Session


class SqlAlchemyOperatorRecordRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: OperatorRecord) -> None:
        self.session.add(entity)

    def get(self, record_id: UUID) -> OperatorRecord | None:
        return self.session.get(OperatorRecord, record_id)

    def find_active(
        self,
        numerobio: str,
        *,
        audit_date: date | None = None,
        any_campaign: bool = False,
    ) -> OperatorRecord | None:
        columns = operator_record_table.c
        stmt = (
            select(OperatorRecord)
            .where(columns.numerobio == numerobio)
            .where(columns.deleted_at.is_(None))
        )
        if not any_campaign and audit_date is None:
            stmt = stmt.where(columns.audit_date.is_(None))
        elif not any_campaign:
            stmt = stmt.where(columns.audit_date == audit_date)
        stmt = stmt.order_by(columns.updated_at.desc()).limit(1)
        return self.session.execute(stmt).scalars().first()


class SqlAlchemyParcelRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list_geometries(
        self,
        record_id: UUID,
        *,
        exclude_parcel_id: str | None = None,
    ) -> Sequence[tuple[str, Mapping[str, Any]]]:
        columns = parcelle_table.c
        stmt = (
            select(columns.id, columns.geometry)
            .where(columns.record_id == record_id)
            .where(columns.deleted_at.is_(None))
            .order_by(columns.id)
        )
        if exclude_parcel_id is not None:
            stmt = stmt.where(columns.id != exclude_parcel_id)
        rows = self.session.execute(stmt).all()
        return [
            (str(parcel_id), cast("Mapping[str, Any]", geometry))
            for parcel_id, geometry in rows
            if geometry is not None
        ]


class SqlAlchemyImportJobRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: ImportJob) -> None:
        self.session.add(entity)

    def get(self, job_id: UUID) -> ImportJob | None:
        return self.session.get(ImportJob, job_id)


class SqlAlchemyImportRunRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: ImportRun) -> None:
        self.session.add(entity)

    def get(self, run_id: UUID) -> ImportRun | None:
        return self.session.get(ImportRun, run_id)

    def latest(self, *, limit: int = 20) -> Sequence[ImportRun]:
        stmt = select(ImportRun).order_by(import_run_table.c.created.desc()).limit(limit)
        return list(self.session.execute(stmt).scalars())
