from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import TYPE_CHECKING

import pytest

from parcelaudit.domain.bulk_import import (
    create_import_job,
    dispatch_import_job,
    get_import_job_status,
    import_declarations,
)
from parcelaudit.domain.errors import ImportAbortedError
from parcelaudit.domain.model import ImportJobStatus, ImportLogLevel
from tests.helpers.imports import (
    CERTIFYING_BODY,
    FakeRegistry,
    make_collaborators,
    make_declaration,
    make_parcelle,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from parcelaudit.adapters.sqlalchemy import (
        SqlAlchemyImportUnitOfWork,
        SqlAlchemyRecordUnitOfWork,
    )

type RecordUowFactory = Callable[[], SqlAlchemyRecordUnitOfWork]
type ImportUowFactory = Callable[[], SqlAlchemyImportUnitOfWork]


def _four_declarations() -> list[dict[str, object]]:
    return [
        make_declaration("1001"),
        make_declaration("1002", dateAudit="2024-31-12"),
        make_declaration("1003", parcelles=[make_parcelle(1, geom="[[[0.5, 47.0], [0.6")]),
        make_declaration("1004", parcelles=[make_parcelle(1, geom=None)]),
    ]


@pytest.mark.integration
def test_missing_geometry_rolls_back_the_whole_batch(
    sqlite_unit_of_work: RecordUowFactory,
    sqlite_import_unit_of_work: ImportUowFactory,
) -> None:
    registry = FakeRegistry.of("1001", "1002", "1003", "1004")

    with pytest.raises(ImportAbortedError) as exc:
        import_declarations(
            _four_declarations(),
            CERTIFYING_BODY,
            unit_of_work_factory=sqlite_unit_of_work,
            import_unit_of_work_factory=sqlite_import_unit_of_work,
            collaborators=make_collaborators(registry),
        )

    summary = exc.value.summary
    assert summary.count == 4
    assert summary.numero_bio_valid == [("1001", 1)]
    assert summary.numero_bio_error == ["1002", "1003", "1004"]
    assert summary.errors[-1].message == "missing or invalid geographic data"
    assert not summary.committed

    with sqlite_unit_of_work() as uow:
        assert uow.repositories.records.find_active("1001", any_campaign=True) is None

    with sqlite_import_unit_of_work() as uow:
        (run,) = uow.repositories.runs.latest()
        assert not run.committed
        assert run.accepted == [{"numeroBio": "1001", "nbParcelles": 1}]
        assert run.refused == ["1002", "1003", "1004"]
        levels = [(entry.numero_bio, entry.level) for entry in run.logs]
        assert levels == [
            ("1002", ImportLogLevel.ERROR),
            ("1003", ImportLogLevel.ERROR),
            ("1004", ImportLogLevel.ERROR),
            ("1004", ImportLogLevel.WARNING),
        ]


@pytest.mark.integration
def test_successful_batch_is_committed(
    sqlite_unit_of_work: RecordUowFactory,
    sqlite_import_unit_of_work: ImportUowFactory,
) -> None:
    registry = FakeRegistry.of("1001", "1002")

    summary = import_declarations(
        [
            make_declaration("1001", parcelles=[make_parcelle(1), make_parcelle(2)]),
            make_declaration("1002", dateAudit="2024-31-12"),
        ],
        CERTIFYING_BODY,
        unit_of_work_factory=sqlite_unit_of_work,
        import_unit_of_work_factory=sqlite_import_unit_of_work,
        collaborators=make_collaborators(registry),
    )

    assert summary.committed
    with sqlite_unit_of_work() as uow:
        record = uow.repositories.records.find_active("1001", any_campaign=True)
        assert record is not None
        assert record.oc_label == CERTIFYING_BODY.nom
        assert record.record_metadata.source == "API Parcellaire"
        assert sorted(parcel.id for parcel in record.parcelles) == ["1", "2"]
        assert len(record.audit_history) == 1


@pytest.mark.integration
def test_reimport_updates_the_same_record(
    sqlite_unit_of_work: RecordUowFactory,
    sqlite_import_unit_of_work: ImportUowFactory,
) -> None:
    run = partial(
        import_declarations,
        certifying_body=CERTIFYING_BODY,
        unit_of_work_factory=sqlite_unit_of_work,
        import_unit_of_work_factory=sqlite_import_unit_of_work,
        collaborators=make_collaborators(FakeRegistry.of("1001")),
    )

    run([make_declaration("1001", parcelles=[make_parcelle(1), make_parcelle(2)])])
    run([make_declaration("1001", parcelles=[make_parcelle(2)])])

    with sqlite_unit_of_work() as uow:
        record = uow.repositories.records.find_active("1001", any_campaign=True)
        assert record is not None
        assert [parcel.id for parcel in record.all_parcelles] == ["2"]
    with sqlite_import_unit_of_work() as uow:
        assert len(uow.repositories.runs.latest()) == 2


@pytest.mark.integration
def test_import_job_runs_in_a_worker_thread(
    sqlite_unit_of_work: RecordUowFactory,
    sqlite_import_unit_of_work: ImportUowFactory,
) -> None:
    declarations = _four_declarations()
    job = create_import_job(declarations, unit_of_work_factory=sqlite_import_unit_of_work)
    runner = partial(
        import_declarations,
        unit_of_work_factory=sqlite_unit_of_work,
        import_unit_of_work_factory=sqlite_import_unit_of_work,
        collaborators=make_collaborators(FakeRegistry.of("1001", "1002", "1003", "1004")),
    )

    with ThreadPoolExecutor(max_workers=1) as executor:
        future = dispatch_import_job(
            executor,
            job.id,
            CERTIFYING_BODY,
            declarations,
            run_import=runner,
            unit_of_work_factory=sqlite_import_unit_of_work,
        )
        future.result(timeout=30)

    stored = get_import_job_status(job.id, unit_of_work_factory=sqlite_import_unit_of_work)
    assert stored.status is ImportJobStatus.ERROR
    assert stored.ended is not None
    assert stored.payload == declarations
    assert stored.result["name"] == "ImportAbortedError"
    assert stored.result["summary"]["count"] == 4
    assert stored.result["summary"]["numeroBioError"] == ["1002", "1003", "1004"]
