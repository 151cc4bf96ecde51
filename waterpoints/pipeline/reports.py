"""Run report aggregation."""

from __future__ import annotations

from pathlib import Path

from waterpoints.common.fs import write_json
from waterpoints.common.models import UnitOutcome


def write_run_summary(
    path: Path,
    *,
    run_id: str,
    started_at: str,
    finished_at: str,
    years: range,
    counts: dict[str, int],
    failures: list[UnitOutcome],
) -> Path:
    payload = {
        "run_id": run_id,
        "started_at": started_at,
        "finished_at": finished_at,
        "years": {"start": years.start, "end": years.stop - 1},
        "status": "partial" if failures else "success",
        "counts": counts,
        "failure_count": len(failures),
        "failures": [failure.failure_summary() for failure in failures],
    }
    write_json(path, payload)
    return path
