"""Import bookkeeping: asynchronous jobs, runs and their per-record logs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Final
from uuid import uuid4

from parcelaudit.domain.errors import InvalidJobTransitionError
from parcelaudit.domain.model._internal import utcnow
from parcelaudit.domain.model.enums import ImportJobStatus, ImportLogLevel

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

_ALLOWED_TRANSITIONS: Final[dict[ImportJobStatus, frozenset[ImportJobStatus]]] = {
    ImportJobStatus.CREATE: frozenset({ImportJobStatus.PENDING, ImportJobStatus.ERROR}),
    ImportJobStatus.PENDING: frozenset({ImportJobStatus.DONE, ImportJobStatus.ERROR}),
    ImportJobStatus.DONE: frozenset(),
    ImportJobStatus.ERROR: frozenset(),
}


@dataclass(eq=False, kw_only=True)
class ImportJob:
    id: UUID = field(default_factory=uuid4)
    status: ImportJobStatus = ImportJobStatus.CREATE
    payload: Any = None
    result: Any = None
    created: datetime = field(default_factory=utcnow)
    ended: datetime | None = None

    def transition_to(self, status: ImportJobStatus, *, result: Any = None) -> None:
        if status not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidJobTransitionError(
                f"Import job {self.id} cannot move from {self.status} to {status}"
            )
        self.status = status
        if result is not None:
            self.result = result
        if status.is_terminal:
            self.ended = utcnow()


@dataclass(eq=False, kw_only=True)
class ImportLog:
    numero_bio: str | None
    level: ImportLogLevel
    message: str
    id: int | None = None
    run_id: UUID | None = None


@dataclass(eq=False, kw_only=True)
class ImportRun:
    """Header of one bulk import, kept whatever the batch outcome."""

    id: UUID = field(default_factory=uuid4)
    oc_id: int | None = None
    oc_label: str | None = None
    accepted: list[dict[str, Any]] = field(default_factory=list[dict[str, Any]])
    refused: list[str] = field(default_factory=list[str])
    committed: bool = False
    created: datetime = field(default_factory=utcnow)

    _logs: list[ImportLog] = field(default_factory=list["ImportLog"], repr=False)

    @property
    def logs(self) -> tuple[ImportLog, ...]:
        return tuple(self._logs)

    def add_log(self, numero_bio: str | None, level: ImportLogLevel, message: str) -> ImportLog:
        log_entry = ImportLog(numero_bio=numero_bio, level=level, message=message, run_id=self.id)
        self._logs.append(log_entry)
        return log_entry
