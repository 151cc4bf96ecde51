"""Data models used across the pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

FlatRecord = dict[str, Any]


@dataclass(frozen=True)
class Agency:
    agency_id: int
    name: str
    agency_code: str | None = None
    address: str | None = None
    phone: str | None = None
    comment: str | None = None
    pinpoints: tuple[dict[str, Any], ...] = ()
    water_sources: tuple[dict[str, Any], ...] = ()

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "Agency":
        return cls(
            agency_id=payload["Id"],
            name=str(payload["name"]),
            agency_code=payload.get("agencyCode"),
            address=payload.get("address"),
            phone=payload.get("phone"),
            comment=payload.get("comment"),
            pinpoints=tuple(payload.get("agencyAdditionalPinpoints") or ()),
            water_sources=tuple(payload.get("agencyWaterSources") or ()),
        )


@dataclass(frozen=True)
class PartitionKey:
    year: int
    agency_id: int
    agency_name: str

    @property
    def label(self) -> str:
        return f"{self.year}/{self.agency_name}"


@dataclass(frozen=True)
class UnitOutcome:
    """Settled result of one scheduled unit: a value or the error it raised."""

    label: str
    value: Any = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def failure_summary(self) -> dict[str, str]:
        return {
            "label": self.label,
            "error_code": getattr(self.error, "error_code", "UNEXPECTED_ERROR"),
            "message": str(self.error),
        }


@dataclass
class PartitionResult:
    key: PartitionKey
    records: list[FlatRecord]
    cached: bool
    failures: list[UnitOutcome] = field(default_factory=list)
