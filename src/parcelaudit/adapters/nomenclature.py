"""CPF crop code nomenclature backed by an in-memory table."""

from __future__ import annotations

import csv
import json
from collections.abc import Mapping
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING, Any, cast

from parcelaudit.domain.ports.registry import CultureCode

if TYPE_CHECKING:
    from collections.abc import Iterable

log = getLogger(__name__)

CODE_COLUMN = "code_cpf"
LABEL_COLUMN = "libelle"


class TableCultureNomenclature:
    """Resolve CPF codes against a fixed code -> label table."""

    def __init__(self, codes: Mapping[str, str | None] | Iterable[str]) -> None:
        if isinstance(codes, Mapping):
            table = cast("Mapping[str, str | None]", codes)
            self._codes = {code.strip(): label for code, label in table.items()}
        else:
            self._codes = {code.strip(): None for code in codes}

    def __len__(self) -> int:
        return len(self._codes)

    def resolve_culture_code(self, cpf: str) -> CultureCode | None:
        code = cpf.strip()
        if code not in self._codes:
            return None
        return CultureCode(code=code, label=self._codes[code])

    @classmethod
    def from_csv(cls, path: Path | str, *, delimiter: str = ";") -> TableCultureNomenclature:
        with Path(path).open(encoding="utf-8", newline="") as handle:
            rows = list(csv.DictReader(handle, delimiter=delimiter))
        codes = {
            row[CODE_COLUMN]: row.get(LABEL_COLUMN) or None
            for row in rows
            if row.get(CODE_COLUMN)
        }
        log.info("Loaded %d CPF codes from %s", len(codes), path)
        return cls(codes)

    @classmethod
    def from_json(cls, path: Path | str) -> TableCultureNomenclature:
        """Load a JSON object ``{code: label}`` or a list of ``{code_cpf, libelle}``."""

        document: Any = json.loads(Path(path).read_text(encoding="utf-8"))
        if isinstance(document, dict):
            nomenclature = cls(cast("dict[str, str | None]", document))
        elif isinstance(document, list):
            nomenclature = cls(
                {
                    str(item[CODE_COLUMN]): item.get(LABEL_COLUMN)
                    for item in cast("list[dict[str, Any]]", document)
                    if item.get(CODE_COLUMN)
                }
            )
        else:
            raise ValueError(f"Unsupported nomenclature document in {path}")
        log.info("Loaded %d CPF codes from %s", len(nomenclature), path)
        return nomenclature
