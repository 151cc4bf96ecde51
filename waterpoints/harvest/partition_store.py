"""On-disk cache of enriched records, one JSON file per (year, agency)."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable

from waterpoints.common.fs import read_json, write_json
from waterpoints.common.models import Agency, FlatRecord, PartitionKey

_UNSAFE_NAME_CHARS = re.compile(r"[/\\]")


def sanitise_agency_name(name: str) -> str:
    cleaned = _UNSAFE_NAME_CHARS.sub("-", name).strip()
    if cleaned in {"", ".", ".."}:
        return cleaned.replace(".", "-") or "-"
    return cleaned


class PartitionStore:
    """Presence of a partition file is the only cache-hit signal.

    Files are never invalidated; delete one to force a refetch. Writes go
    through a temp file and a rename, so a killed run leaves either the old
    state or a complete file.
    """

    def __init__(self, data_dir: Path) -> None:
        self.data_dir = data_dir
        self._suffixed_ids: set[int] = set()

    def disambiguate(self, agencies: Iterable[Agency]) -> list[str]:
        """Give agencies whose sanitised names collide an id-suffixed file name.

        Returns the colliding file stems.
        """
        ids_by_stem: dict[str, set[int]] = {}
        for agency in agencies:
            ids_by_stem.setdefault(sanitise_agency_name(agency.name), set()).add(agency.agency_id)
        colliding = sorted(stem for stem, ids in ids_by_stem.items() if len(ids) > 1)
        for stem in colliding:
            self._suffixed_ids.update(ids_by_stem[stem])
        return colliding

    def path_for(self, key: PartitionKey) -> Path:
        stem = sanitise_agency_name(key.agency_name)
        if key.agency_id in self._suffixed_ids:
            stem = f"{stem} ({key.agency_id})"
        return self.data_dir / str(key.year) / f"{stem}.json"

    def has(self, key: PartitionKey) -> bool:
        return self.path_for(key).is_file()

    def load(self, key: PartitionKey) -> list[FlatRecord]:
        return read_json(self.path_for(key))

    def save(self, key: PartitionKey, records: list[FlatRecord]) -> list[FlatRecord]:
        path = self.path_for(key)
        payload = [{**record, "agencyId": key.agency_id, "agencyName": key.agency_name} for record in records]
        # key order is preserved: it drives first-seen column order in the table
        write_json(path, payload, sort_keys=False)
        return payload

    def cached_paths(self, years: range) -> list[Path]:
        paths: list[Path] = []
        for year in years:
            year_dir = self.data_dir / str(year)
            if year_dir.is_dir():
                paths.extend(sorted(year_dir.glob("*.json")))
        return paths
