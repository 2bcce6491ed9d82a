"""SQLAlchemy adapter package for parcelaudit."""

from __future__ import annotations

from .mappings import mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyImportJobRepository,
    SqlAlchemyImportRunRepository,
    SqlAlchemyOperatorRecordRepository,
    SqlAlchemyParcelRepository,
)
from .unit_of_work import (
    SqlAlchemyImportUnitOfWork,
    SqlAlchemyRecordUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyImportJobRepository",
    "SqlAlchemyImportRunRepository",
    "SqlAlchemyImportUnitOfWork",
    "SqlAlchemyOperatorRecordRepository",
    "SqlAlchemyParcelRepository",
    "SqlAlchemyRecordUnitOfWork",
    "StartupError",
    "configured_engine",
    "is_started",
    "mapper_registry",
    "shutdown",
    "start_mappers",
    "startup",
]
