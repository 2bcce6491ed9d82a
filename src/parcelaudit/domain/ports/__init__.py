"""Domain port definitions for adapters."""

from __future__ import annotations

from .persistence import (
    ImportJobRepository,
    ImportRunRepository,
    OperatorRecordRepository,
    ParcelRepository,
    Repository,
)
from .registry import (
    CertifyingBody,
    CultureCode,
    CultureNomenclature,
    OperatorRegistry,
    RegionBoundaries,
    RegisteredOperator,
)
from .unit_of_work import (
    ImportRepositories,
    ImportUnitOfWork,
    RecordRepositories,
    RecordUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "CertifyingBody",
    "CultureCode",
    "CultureNomenclature",
    "ImportJobRepository",
    "ImportRepositories",
    "ImportRunRepository",
    "ImportUnitOfWork",
    "OperatorRecordRepository",
    "OperatorRegistry",
    "ParcelRepository",
    "RecordRepositories",
    "RecordUnitOfWork",
    "RegionBoundaries",
    "RegisteredOperator",
    "Repository",
    "RepositoryCollection",
    "UnitOfWork",
]
