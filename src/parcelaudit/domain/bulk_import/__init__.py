"""Bulk import of certification declarations sent by certifying bodies."""

from __future__ import annotations

from .declarations import (
    CultureDeclaration,
    ParcelleDeclaration,
    RecordDeclaration,
    load_declarations,
)
from .jobs import (
    create_import_job,
    dispatch_import_job,
    get_import_job_status,
    process_full_job,
    update_import_job_status,
)
from .pipeline import ImportIssue, ImportSummary, import_declarations, record_import_run
from .validation import (
    AcceptedDeclaration,
    DeclarationOutcome,
    ImportCollaborators,
    RejectedDeclaration,
    collect_preparse_results,
    parse_declarations,
    parse_leading_int,
    parse_pac_details,
    preparse_declarations,
)

__all__ = [
    "AcceptedDeclaration",
    "CultureDeclaration",
    "DeclarationOutcome",
    "ImportCollaborators",
    "ImportIssue",
    "ImportSummary",
    "ParcelleDeclaration",
    "RecordDeclaration",
    "RejectedDeclaration",
    "collect_preparse_results",
    "create_import_job",
    "dispatch_import_job",
    "get_import_job_status",
    "import_declarations",
    "load_declarations",
    "parse_declarations",
    "parse_leading_int",
    "parse_pac_details",
    "preparse_declarations",
    "process_full_job",
    "record_import_run",
    "update_import_job_status",
]
