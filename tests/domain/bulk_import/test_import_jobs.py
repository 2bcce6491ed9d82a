from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING
from uuid import uuid4

import pytest

from parcelaudit.domain.bulk_import import (
    ImportSummary,
    create_import_job,
    dispatch_import_job,
    get_import_job_status,
    process_full_job,
    update_import_job_status,
)
from parcelaudit.domain.errors import (
    ImportAbortedError,
    InvalidJobTransitionError,
    NotFoundError,
)
from parcelaudit.domain.model import ImportJobStatus
from tests.helpers.imports import CERTIFYING_BODY, FakeImportUnitOfWork

if TYPE_CHECKING:
    from collections.abc import Iterable

    from parcelaudit.domain.ports.registry import CertifyingBody


def _summary_runner(
    payload: Iterable[object],
    certifying_body: CertifyingBody,
) -> ImportSummary:
    _ = certifying_body
    summary = ImportSummary(count=len(list(payload)))
    summary.committed = True
    return summary


def _failing_runner(payload: Iterable[object], certifying_body: CertifyingBody) -> ImportSummary:
    _ = (payload, certifying_body)
    raise RuntimeError("registry unreachable")


def _aborting_runner(payload: Iterable[object], certifying_body: CertifyingBody) -> ImportSummary:
    _ = (payload, certifying_body)
    summary = ImportSummary()
    summary.refuse("4", "missing or invalid geographic data")
    raise ImportAbortedError(summary, reason="missing or invalid geographic data")


def test_create_import_job_stores_payload() -> None:
    uow = FakeImportUnitOfWork()

    job = create_import_job([{"numeroBio": "1"}], unit_of_work_factory=lambda: uow)

    assert job.status is ImportJobStatus.CREATE
    assert uow.jobs.get(job.id) is job
    assert uow.commits == 1


def test_get_import_job_status_unknown_job() -> None:
    uow = FakeImportUnitOfWork()

    with pytest.raises(NotFoundError):
        get_import_job_status(uuid4(), unit_of_work_factory=lambda: uow)


def test_update_import_job_status_unknown_job() -> None:
    uow = FakeImportUnitOfWork()

    with pytest.raises(NotFoundError):
        update_import_job_status(uuid4(), ImportJobStatus.PENDING, unit_of_work_factory=lambda: uow)


def test_process_full_job_records_summary() -> None:
    uow = FakeImportUnitOfWork()
    job = create_import_job([{}, {}], unit_of_work_factory=lambda: uow)

    processed = process_full_job(
        job.id,
        CERTIFYING_BODY,
        [{}, {}],
        run_import=_summary_runner,
        unit_of_work_factory=lambda: uow,
    )

    assert processed.status is ImportJobStatus.DONE
    assert processed.result["count"] == 2
    assert processed.result["committed"] is True
    assert processed.ended is not None


def test_process_full_job_captures_failures() -> None:
    uow = FakeImportUnitOfWork()
    job = create_import_job([], unit_of_work_factory=lambda: uow)

    processed = process_full_job(
        job.id,
        CERTIFYING_BODY,
        [],
        run_import=_failing_runner,
        unit_of_work_factory=lambda: uow,
    )

    assert processed.status is ImportJobStatus.ERROR
    assert processed.result["name"] == "RuntimeError"
    assert processed.result["message"] == "registry unreachable"
    assert "Traceback" in processed.result["stack"]
    assert "summary" not in processed.result


def test_process_full_job_keeps_summary_of_aborted_imports() -> None:
    uow = FakeImportUnitOfWork()
    job = create_import_job([], unit_of_work_factory=lambda: uow)

    processed = process_full_job(
        job.id,
        CERTIFYING_BODY,
        [],
        run_import=_aborting_runner,
        unit_of_work_factory=lambda: uow,
    )

    assert processed.status is ImportJobStatus.ERROR
    assert processed.result["name"] == "ImportAbortedError"
    assert processed.result["summary"]["numeroBioError"] == ["4"]
    assert processed.result["summary"]["committed"] is False


def test_finished_job_cannot_be_processed_again() -> None:
    uow = FakeImportUnitOfWork()
    job = create_import_job([], unit_of_work_factory=lambda: uow)
    process_full_job(
        job.id,
        CERTIFYING_BODY,
        [],
        run_import=_summary_runner,
        unit_of_work_factory=lambda: uow,
    )

    with pytest.raises(InvalidJobTransitionError):
        process_full_job(
            job.id,
            CERTIFYING_BODY,
            [],
            run_import=_summary_runner,
            unit_of_work_factory=lambda: uow,
        )


def test_dispatch_import_job_runs_on_executor() -> None:
    uow = FakeImportUnitOfWork()
    job = create_import_job([{}], unit_of_work_factory=lambda: uow)

    with ThreadPoolExecutor(max_workers=1) as executor:
        future = dispatch_import_job(
            executor,
            job.id,
            CERTIFYING_BODY,
            [{}],
            run_import=_summary_runner,
            unit_of_work_factory=lambda: uow,
        )
        finished = future.result(timeout=10)

    assert finished.status is ImportJobStatus.DONE
    status = get_import_job_status(job.id, unit_of_work_factory=lambda: uow)
    assert status.result == finished.result
