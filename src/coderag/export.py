"""CSV export of extracted code units."""
from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Iterable

from coderag.parsing.models import CodeUnit, UnitKind

CSV_COLUMNS = ("Type", "Name", "Code", "Filepath", "Embedding")


def write_units_csv(units: Iterable[CodeUnit], output_path: str | Path) -> int:
    """Write functions first, then classes; return the number of rows written.

    Embeddings are serialised as JSON arrays; a unit without one gets an empty cell.
    """

    ordered = sorted(units, key=lambda unit: 0 if unit.kind is UnitKind.FUNCTION else 1)
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.writer(handle)
        writer.writerow(CSV_COLUMNS)
        for unit in ordered:
            writer.writerow(
                [
                    unit.kind.value,
                    unit.id,
                    unit.source_text,
                    unit.file_path,
                    json.dumps(unit.embedding) if unit.embedding is not None else "",
                ]
            )
    return len(ordered)


__all__ = ["CSV_COLUMNS", "write_units_csv"]
