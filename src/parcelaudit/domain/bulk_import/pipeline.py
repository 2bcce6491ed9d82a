"""Synchronous bulk import of certification declarations."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any

from parcelaudit.domain.errors import ImportAbortedError, StorageConstraintError, ValidationError
from parcelaudit.domain.model import ImportLogLevel, ImportRun, RecordKeyPolicy
from parcelaudit.domain.reconciliation import reconcile_record

from .validation import AcceptedDeclaration, RejectedDeclaration, parse_declarations

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from parcelaudit.domain.ports.registry import CertifyingBody
    from parcelaudit.domain.ports.unit_of_work import ImportUnitOfWork, RecordUnitOfWork

    from .validation import ImportCollaborators

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ImportIssue:
    numero_bio: str | None
    message: str


@dataclass(slots=True, kw_only=True)
class ImportSummary:
    """Outcome of one batch.

    ``count`` is the number of outcomes: one per accepted or refused
    declaration, plus one per non-fatal error (a client number mismatch) on a
    declaration that is then processed as usual. A declaration that
    passed validation but was rolled back with the batch still appears in
    ``numero_bio_valid``; ``committed`` tells whether anything was kept.
    """

    count: int = 0
    numero_bio_valid: list[tuple[str, int]] = field(default_factory=list[tuple[str, int]])
    numero_bio_error: list[str | None] = field(default_factory=list[str | None])
    errors: list[ImportIssue] = field(default_factory=list[ImportIssue])
    warnings: list[ImportIssue] = field(default_factory=list[ImportIssue])
    committed: bool = False

    def refuse(self, numero_bio: str | None, message: str) -> None:
        self.count += 1
        self.numero_bio_error.append(numero_bio)
        self.errors.append(ImportIssue(numero_bio, message))

    def accept(self, declaration: AcceptedDeclaration) -> None:
        self.count += 1
        self.numero_bio_valid.append((declaration.numero_bio, declaration.parcel_count))

    def to_dict(self) -> dict[str, Any]:
        return {
            "count": self.count,
            "numeroBioValid": [
                {"numeroBio": numero_bio, "nbParcelles": nb_parcelles}
                for numero_bio, nb_parcelles in self.numero_bio_valid
            ],
            "numeroBioError": list(self.numero_bio_error),
            "errors": [[issue.numero_bio, issue.message] for issue in self.errors],
            "warnings": [[issue.numero_bio, issue.message] for issue in self.warnings],
            "committed": self.committed,
        }


def record_import_run(
    summary: ImportSummary,
    certifying_body: CertifyingBody,
    *,
    unit_of_work_factory: Callable[[], ImportUnitOfWork],
) -> ImportRun:
    """Persist the run header and one log row per error and warning."""

    run = ImportRun(
        oc_id=certifying_body.id,
        oc_label=certifying_body.nom,
        accepted=[
            {"numeroBio": numero_bio, "nbParcelles": nb_parcelles}
            for numero_bio, nb_parcelles in summary.numero_bio_valid
        ],
        refused=[numero_bio for numero_bio in summary.numero_bio_error if numero_bio],
        committed=summary.committed,
    )
    for issue in summary.errors:
        run.add_log(issue.numero_bio, ImportLogLevel.ERROR, issue.message)
    for issue in summary.warnings:
        run.add_log(issue.numero_bio, ImportLogLevel.WARNING, issue.message)

    with unit_of_work_factory() as uow:
        uow.repositories.runs.add(run)
        uow.commit()
    return run


def import_declarations(
    declarations: Iterable[object],
    certifying_body: CertifyingBody,
    *,
    unit_of_work_factory: Callable[[], RecordUnitOfWork],
    import_unit_of_work_factory: Callable[[], ImportUnitOfWork],
    collaborators: ImportCollaborators,
    key_policy: RecordKeyPolicy = RecordKeyPolicy.OPERATOR_CAMPAIGN,
) -> ImportSummary:
    """Validate and reconcile a stream of declarations in one transaction.

    Rejected declarations and records refused by the reconciler are skipped.
    A storage constraint violation rolls back the whole batch and raises
    :class:`ImportAbortedError`. The run and its logs are persisted in every
    case, in their own transaction.
    """

    summary = ImportSummary()
    log.info("Starting import for certifying body %s (%s)", certifying_body.id, certifying_body.nom)
    try:
        with unit_of_work_factory() as uow:
            for outcome in parse_declarations(
                declarations,
                certifying_body,
                collaborators=collaborators,
            ):
                if isinstance(outcome, RejectedDeclaration):
                    # non-fatal rejections are counted too; the declaration follows
                    log.info("Refused %s: %s", outcome.numero_bio, outcome.error)
                    summary.refuse(outcome.numero_bio, outcome.error)
                    continue

                summary.warnings.extend(
                    ImportIssue(outcome.numero_bio, warning) for warning in outcome.warnings
                )
                try:
                    reconcile_record(
                        uow,
                        outcome.identity,
                        outcome.features,
                        key_policy=key_policy,
                    )
                except StorageConstraintError as exc:
                    summary.refuse(outcome.numero_bio, str(exc))
                    log.error(  # noqa: TRY400
                        "Import aborted at %s, rolling back the batch: %s",
                        outcome.numero_bio,
                        exc,
                    )
                    raise ImportAbortedError(summary, reason=str(exc)) from exc
                except ValidationError as exc:
                    log.info("Refused %s: %s", outcome.numero_bio, exc)
                    summary.refuse(outcome.numero_bio, str(exc))
                    continue
                summary.accept(outcome)

            uow.commit()
            summary.committed = True
    finally:
        record_import_run(
            summary,
            certifying_body,
            unit_of_work_factory=import_unit_of_work_factory,
        )

    log.info(
        "Import finished: %d processed, %d accepted, %d refused",
        summary.count,
        len(summary.numero_bio_valid),
        len(summary.numero_bio_error),
    )
    return summary
