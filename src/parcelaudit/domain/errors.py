"""Domain error taxonomy."""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from parcelaudit.domain.bulk_import.pipeline import ImportSummary
    from parcelaudit.domain.geometry import GeometryCheckResult

GEOGRAPHIC_DATA_MESSAGE: Final[str] = "missing or invalid geographic data"


class DomainError(Exception):
    """Base class for errors raised by the domain layer."""


class ValidationError(DomainError):
    """Client or data caused failure; the offending unit is skipped."""


class NotFoundError(DomainError):
    """A referenced record or parcel does not exist (or is soft-deleted)."""


class StorageConstraintError(ValidationError):
    """Storage rejected a row for structural reasons (NOT NULL, FK, ...).

    The storage engine's own message is deliberately not exposed.
    """

    def __init__(self, message: str = GEOGRAPHIC_DATA_MESSAGE) -> None:
        super().__init__(message)


class GeometryConflictError(ValidationError):
    """A parcel boundary overlaps or includes another parcel of the same record."""

    def __init__(self, parcel_id: str | None, result: GeometryCheckResult) -> None:
        kind = result.conflict.value if result.conflict is not None else "conflict"
        target = f"parcel {parcel_id}" if parcel_id is not None else "new parcel"
        super().__init__(f"Geometry of {target} is rejected: {kind}")
        self.parcel_id = parcel_id
        self.result = result


class InvalidJobTransitionError(DomainError):
    """An import job was asked to move to a status its lifecycle forbids."""


class ImportAbortedError(DomainError):
    """A bulk import was rolled back as a whole; ``summary`` describes the batch."""

    def __init__(self, summary: ImportSummary, *, reason: str) -> None:
        super().__init__(f"Import aborted and rolled back: {reason}")
        self.summary = summary
        self.reason = reason
