"""Detached bulk imports tracked as import jobs.

A job moves CREATE -> PENDING when processing starts, then to DONE with the
batch summary or to ERROR with the captured failure. Failures of the import
itself end up on the job; they are not raised to whoever started it.
"""

from __future__ import annotations

import traceback
from logging import getLogger
from typing import TYPE_CHECKING, Any

from parcelaudit.domain.errors import ImportAbortedError, NotFoundError
from parcelaudit.domain.model import ImportJob, ImportJobStatus

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from concurrent.futures import Executor, Future
    from uuid import UUID

    from parcelaudit.domain.ports.registry import CertifyingBody
    from parcelaudit.domain.ports.unit_of_work import ImportUnitOfWork

    from .pipeline import ImportSummary

    type ImportRunner = Callable[[Iterable[object], CertifyingBody], ImportSummary]

log = getLogger(__name__)


def create_import_job(
    payload: Any,
    *,
    unit_of_work_factory: Callable[[], ImportUnitOfWork],
) -> ImportJob:
    job = ImportJob(payload=payload)
    with unit_of_work_factory() as uow:
        uow.repositories.jobs.add(job)
        uow.commit()
    log.info("Created import job %s", job.id)
    return job


def get_import_job_status(
    job_id: UUID,
    *,
    unit_of_work_factory: Callable[[], ImportUnitOfWork],
) -> ImportJob:
    with unit_of_work_factory() as uow:
        job = uow.repositories.jobs.get(job_id)
    if job is None:
        raise NotFoundError(f"Import job {job_id} not found")
    return job


def update_import_job_status(
    job_id: UUID,
    status: ImportJobStatus,
    result: Any = None,
    *,
    unit_of_work_factory: Callable[[], ImportUnitOfWork],
) -> ImportJob:
    with unit_of_work_factory() as uow:
        job = uow.repositories.jobs.get(job_id)
        if job is None:
            raise NotFoundError(f"Import job {job_id} not found")
        job.transition_to(status, result=result)
        uow.commit()
    return job


def _error_result(exc: Exception) -> dict[str, Any]:
    result: dict[str, Any] = {
        "name": type(exc).__name__,
        "message": str(exc),
        "stack": "".join(traceback.format_exception(exc)),
    }
    if isinstance(exc, ImportAbortedError):
        result["summary"] = exc.summary.to_dict()
    return result


def process_full_job(
    job_id: UUID,
    certifying_body: CertifyingBody,
    payload: Iterable[object],
    *,
    run_import: ImportRunner,
    unit_of_work_factory: Callable[[], ImportUnitOfWork],
) -> ImportJob:
    """Run one import for an existing job and record its outcome on the job."""

    update_import_job_status(
        job_id,
        ImportJobStatus.PENDING,
        unit_of_work_factory=unit_of_work_factory,
    )
    try:
        summary = run_import(payload, certifying_body)
    except Exception as exc:  # noqa: BLE001
        log.exception("Import job %s failed", job_id)
        return update_import_job_status(
            job_id,
            ImportJobStatus.ERROR,
            _error_result(exc),
            unit_of_work_factory=unit_of_work_factory,
        )
    return update_import_job_status(
        job_id,
        ImportJobStatus.DONE,
        summary.to_dict(),
        unit_of_work_factory=unit_of_work_factory,
    )


def dispatch_import_job(
    executor: Executor,
    job_id: UUID,
    certifying_body: CertifyingBody,
    payload: Iterable[object],
    *,
    run_import: ImportRunner,
    unit_of_work_factory: Callable[[], ImportUnitOfWork],
) -> Future[ImportJob]:
    """Submit :func:`process_full_job` to ``executor`` and return its future."""

    log.debug("Dispatching import job %s", job_id)
    return executor.submit(
        process_full_job,
        job_id,
        certifying_body,
        payload,
        run_import=run_import,
        unit_of_work_factory=unit_of_work_factory,
    )
