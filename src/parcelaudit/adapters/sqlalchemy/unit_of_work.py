"""Transactions over operator records and import bookkeeping.

One process-wide engine is configured by :func:`startup` (mappers, Alembic
migrations, session factory). Each unit of work opens one session on it; leaving
the ``with`` block on an exception rolls the session back, and nothing is
committed unless :meth:`commit` is called.

The database is the last guard on parcel geometry: a parcel stored without a
usable boundary violates a column constraint. Such violations surface as
:class:`~parcelaudit.domain.errors.StorageConstraintError` so import batches can
abort on them; every other integrity error is re-raised unchanged.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
from logging import getLogger
from typing import TYPE_CHECKING, Final, Literal

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from parcelaudit.adapters.sqlalchemy.mappings import start_mappers
from parcelaudit.adapters.sqlalchemy.migrations import upgrade_head
from parcelaudit.adapters.sqlalchemy.repositories import (
    SqlAlchemyImportJobRepository,
    SqlAlchemyImportRunRepository,
    SqlAlchemyOperatorRecordRepository,
    SqlAlchemyParcelRepository,
)
from parcelaudit.common.storage import get_database_uri
from parcelaudit.domain.errors import StorageConstraintError
from parcelaudit.domain.ports.unit_of_work import (
    ImportRepositories,
    RecordRepositories,
    RepositoryCollection,
)

if TYPE_CHECKING:
    from collections.abc import Iterator
    from types import TracebackType

    from sqlalchemy.engine import Engine

log = getLogger(__name__)

# sqlite and postgresql spellings of a constraint failure on parcelle.geometry
GEOMETRY_COLUMNS: Final[tuple[str, ...]] = ("parcelle.geometry", 'column "geometry"')


class StartupError(RuntimeError):
    """Raised when storage is used before :func:`startup` or configured twice."""


_engine: Engine | None = None
_sessions: sessionmaker[Session] | None = None


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Bind storage to ``engine`` (or a new one), map the domain and migrate the schema."""

    global _engine, _sessions  # noqa: PLW0603
    if _engine is not None and not force:
        raise StartupError("Storage already started; pass force=True to rebind it.")

    bound = engine or create_engine(database_uri or get_database_uri(), future=True)
    start_mappers()
    upgrade_head(engine=bound)
    _engine = bound
    _sessions = sessionmaker(bind=bound, expire_on_commit=False)
    log.debug("Storage started on %s", bound.url)


def shutdown() -> None:
    """Dispose the engine and forget it."""

    global _engine, _sessions  # noqa: PLW0603
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _sessions = None


def configured_engine() -> Engine | None:
    return _engine


def is_started() -> bool:
    return _engine is not None


def is_geometry_violation(exc: IntegrityError) -> bool:
    message = str(exc.orig).lower()
    return any(column in message for column in GEOMETRY_COLUMNS)


@contextmanager
def storage_constraints() -> Iterator[None]:
    """Translate geometry integrity violations raised inside the block."""

    try:
        yield
    except IntegrityError as exc:
        if not is_geometry_violation(exc):
            raise
        log.warning("Storage refused a parcel geometry: %s", exc.orig)
        raise StorageConstraintError from exc


class BaseSqlAlchemyUnitOfWork[TRepositories: RepositoryCollection](ABC):
    """A session plus the repositories built on it, for one ``with`` block."""

    def __init__(self) -> None:
        if _sessions is None:
            raise StartupError(
                "Storage not started. Call parcelaudit.adapters.sqlalchemy.startup() "
                "before opening a unit of work."
            )
        self._session_factory: sessionmaker[Session] = _sessions
        self._session: Session | None = None
        self._repositories: TRepositories | None = None

    @abstractmethod
    def _build_repositories(self, session: Session) -> TRepositories: ...

    def __enter__(self) -> BaseSqlAlchemyUnitOfWork[TRepositories]:
        if self._session is not None:
            raise StartupError("Unit of work already entered")
        self._session = self._session_factory()
        self._repositories = self._build_repositories(self._session)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        session = self.session
        try:
            if exc_type is not None:
                session.rollback()
        finally:
            session.close()
            self._session = None
            self._repositories = None
        return False

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work used outside its with block")
        return self._session

    @property
    def repositories(self) -> TRepositories:
        if self._repositories is None:
            raise StartupError("Unit of work used outside its with block")
        return self._repositories

    def flush(self) -> None:
        with storage_constraints():
            self.session.flush()

    def commit(self) -> None:
        with storage_constraints():
            self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


class SqlAlchemyRecordUnitOfWork(BaseSqlAlchemyUnitOfWork[RecordRepositories]):
    """Operator records with their parcels and audit history."""

    def _build_repositories(self, session: Session) -> RecordRepositories:
        return RecordRepositories(
            records=SqlAlchemyOperatorRecordRepository(session),
            parcels=SqlAlchemyParcelRepository(session),
        )


class SqlAlchemyImportUnitOfWork(BaseSqlAlchemyUnitOfWork[ImportRepositories]):
    """Import jobs and the persisted runs with their logs."""

    def _build_repositories(self, session: Session) -> ImportRepositories:
        return ImportRepositories(
            jobs=SqlAlchemyImportJobRepository(session),
            runs=SqlAlchemyImportRunRepository(session),
        )


if TYPE_CHECKING:
    from parcelaudit.domain.ports.unit_of_work import ImportUnitOfWork, RecordUnitOfWork

    _record_uow_check: RecordUnitOfWork = SqlAlchemyRecordUnitOfWork()
    _import_uow_check: ImportUnitOfWork = SqlAlchemyImportUnitOfWork()
