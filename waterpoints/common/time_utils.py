"""UTC-focused helpers for run metadata and report date ranges."""

from __future__ import annotations

from datetime import datetime, timezone


def utc_timestamp_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat(timespec="milliseconds")


def year_bounds_utc(year: int) -> tuple[str, str]:
    """Inclusive UTC range covering a calendar year, in the report API's format."""
    start = datetime(year, 1, 1, tzinfo=timezone.utc)
    end = datetime(year, 12, 31, 23, 59, 59, 999000, tzinfo=timezone.utc)
    return _api_timestamp(start), _api_timestamp(end)


def _api_timestamp(value: datetime) -> str:
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"
