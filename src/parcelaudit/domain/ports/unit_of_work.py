"""Unit-of-work abstractions for coordinating repositories."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from types import TracebackType

    from parcelaudit.domain.ports.persistence import (
        ImportJobRepository,
        ImportRunRepository,
        OperatorRecordRepository,
        ParcelRepository,
    )


@runtime_checkable
class RepositoryCollection(Protocol):
    """Marker protocol for groups of repositories managed together."""


@runtime_checkable
class UnitOfWork[TRepositories: RepositoryCollection](Protocol):
    """Generic unit-of-work boundary around a repository collection.

    ``flush`` pushes pending writes without committing; structural storage
    failures surface there as ``StorageConstraintError``.
    """

    @property
    def repositories(self) -> TRepositories: ...

    def __enter__(self) -> UnitOfWork[TRepositories]: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def flush(self) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


@dataclass(slots=True)
class RecordRepositories(RepositoryCollection):
    """Repositories required to reconcile operator records."""

    records: OperatorRecordRepository
    parcels: ParcelRepository


@dataclass(slots=True)
class ImportRepositories(RepositoryCollection):
    """Repositories for import jobs and import run logs."""

    jobs: ImportJobRepository
    runs: ImportRunRepository


type RecordUnitOfWork = UnitOfWork[RecordRepositories]
type ImportUnitOfWork = UnitOfWork[ImportRepositories]
