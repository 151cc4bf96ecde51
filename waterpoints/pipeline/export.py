"""Flat-record table export with an inferred column set."""

from __future__ import annotations

import io
from pathlib import Path
from typing import Any, Iterable, Sequence

from waterpoints.common.fs import write_csv_rows, write_text
from waterpoints.common.models import FlatRecord


def collect_columns(records: Iterable[FlatRecord]) -> list[str]:
    """Keys holding a truthy value somewhere, in first-seen order.

    Columns that are only ever ``0``, ``False``, empty or null are left out on
    purpose; they carry no information in the report.
    """
    seen: dict[str, None] = {}
    for record in records:
        for key, value in record.items():
            if value and key not in seen:
                seen[key] = None
    return list(seen)


def _serialize_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        # whole-number floats print like integers, e.g. 35.0 -> "35"
        return str(int(value))
    return str(value)


def to_rows(records: Sequence[FlatRecord], columns: list[str]) -> list[list[str]]:
    rows = [list(columns)]
    for record in records:
        rows.append([_serialize_cell(record.get(key)) for key in columns])
    return rows


def to_table(records: Sequence[FlatRecord]) -> str:
    """Render records as CSV text: header first, every cell quoted, ``\\n`` line ends.

    One row per record is kept even when no column survives, giving an empty
    header followed by empty rows.
    """
    if not records:
        return ""
    columns = collect_columns(records)
    buffer = io.StringIO()
    write_csv_rows(buffer, to_rows(records, columns))
    return buffer.getvalue()


def write_table(path: Path, records: Sequence[FlatRecord]) -> Path:
    write_text(path, to_table(records))
    return path
