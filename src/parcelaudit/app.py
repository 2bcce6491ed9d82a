"""Application orchestration entry points."""

from __future__ import annotations

from collections.abc import Callable
from functools import partial
from logging import getLogger
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from parcelaudit.adapters.agencebio import AgenceBioClient
from parcelaudit.adapters.regions import BoundingBoxRegions
from parcelaudit.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyImportUnitOfWork,
    SqlAlchemyRecordUnitOfWork,
    is_started,
    startup,
)
from parcelaudit.common import configure_logging
from parcelaudit.config import get_agencebio_config, get_reconciliation_config
from parcelaudit.domain.bulk_import import (
    ImportCollaborators,
    create_import_job,
    dispatch_import_job,
    import_declarations,
)
from parcelaudit.domain.ports.unit_of_work import ImportUnitOfWork, RecordUnitOfWork
from parcelaudit.domain.reconciliation import RecordReconciler

if TYPE_CHECKING:
    from collections.abc import Iterable
    from concurrent.futures import Executor, Future

    from sqlalchemy.engine import Engine

    from parcelaudit.config import ReconciliationConfig
    from parcelaudit.domain.bulk_import import ImportSummary
    from parcelaudit.domain.model import ImportJob
    from parcelaudit.domain.ports.registry import (
        CertifyingBody,
        CultureNomenclature,
        OperatorRegistry,
        RegionBoundaries,
    )

RecordUnitOfWorkFactory = Callable[[], RecordUnitOfWork]
ImportUnitOfWorkFactory = Callable[[], ImportUnitOfWork]

log = getLogger(__name__)


def bootstrap(*, engine: Engine | None = None, database_uri: str | None = None) -> None:
    """Load ``.env``, set up logging and start the storage adapter unless it already runs."""

    load_dotenv()
    configure_logging()
    if is_started():
        return
    startup(engine=engine, database_uri=database_uri)


def build_record_reconciler(
    *,
    unit_of_work_factory: RecordUnitOfWorkFactory | None = None,
    config: ReconciliationConfig | None = None,
) -> RecordReconciler:
    bootstrap()
    effective_config = config or get_reconciliation_config()
    return RecordReconciler(
        unit_of_work_factory=unit_of_work_factory or SqlAlchemyRecordUnitOfWork,
        key_policy=effective_config.key_policy,
        overlap_epsilon=effective_config.overlap_epsilon,
    )


def build_import_collaborators(
    *,
    nomenclature: CultureNomenclature,
    registry: OperatorRegistry | None = None,
    regions: RegionBoundaries | None = None,
) -> ImportCollaborators:
    """Bind the registry (Agence Bio by default) and region lookups for imports."""

    return ImportCollaborators(
        registry=registry or AgenceBioClient(config=get_agencebio_config()),
        nomenclature=nomenclature,
        regions=regions or BoundingBoxRegions(),
    )


def run_import(
    declarations: Iterable[object],
    certifying_body: CertifyingBody,
    *,
    collaborators: ImportCollaborators,
    unit_of_work_factory: RecordUnitOfWorkFactory | None = None,
    import_unit_of_work_factory: ImportUnitOfWorkFactory | None = None,
    config: ReconciliationConfig | None = None,
) -> ImportSummary:
    """Import a batch of declarations synchronously."""

    bootstrap()
    effective_config = config or get_reconciliation_config()
    log.info("Importing declarations for certifying body %s", certifying_body.nom)
    return import_declarations(
        declarations,
        certifying_body,
        unit_of_work_factory=unit_of_work_factory or SqlAlchemyRecordUnitOfWork,
        import_unit_of_work_factory=import_unit_of_work_factory or SqlAlchemyImportUnitOfWork,
        collaborators=collaborators,
        key_policy=effective_config.key_policy,
    )


def start_import_job(
    declarations: list[object],
    certifying_body: CertifyingBody,
    *,
    executor: Executor,
    collaborators: ImportCollaborators,
    unit_of_work_factory: RecordUnitOfWorkFactory | None = None,
    import_unit_of_work_factory: ImportUnitOfWorkFactory | None = None,
    config: ReconciliationConfig | None = None,
) -> tuple[ImportJob, Future[ImportJob]]:
    """Record a new import job and run it on ``executor``."""

    bootstrap()
    effective_import_uow = import_unit_of_work_factory or SqlAlchemyImportUnitOfWork
    job = create_import_job(declarations, unit_of_work_factory=effective_import_uow)
    run = partial(
        run_import,
        collaborators=collaborators,
        unit_of_work_factory=unit_of_work_factory,
        import_unit_of_work_factory=effective_import_uow,
        config=config,
    )
    future = dispatch_import_job(
        executor,
        job.id,
        certifying_body,
        declarations,
        run_import=run,
        unit_of_work_factory=effective_import_uow,
    )
    return job, future
