"""Single-flight memo of water point coordinates keyed by new-source code."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

SourceFetcher = Callable[[str], Awaitable[Any]]


class SourceLocationCache:
    """Maps a new-source code to the ``sourceLatLng`` value of its detail record.

    The first caller for a code starts the fetch; everyone else awaits the same
    task, so the fetch function runs at most once per code. A failed fetch is
    remembered too and re-raised to every caller for that code.
    """

    def __init__(self) -> None:
        self._entries: dict[str, asyncio.Future] = {}
        self.fetch_count = 0

    def __contains__(self, code: object) -> bool:
        return code in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    async def resolve(self, code: str, fetch: SourceFetcher) -> Any:
        entry = self._entries.get(code)
        if entry is None:
            entry = asyncio.ensure_future(self._fetch_lat_lng(code, fetch))
            self._entries[code] = entry
        # shield: one cancelled waiter must not cancel the shared fetch
        return await asyncio.shield(entry)

    async def _fetch_lat_lng(self, code: str, fetch: SourceFetcher) -> Any:
        self.fetch_count += 1
        payload = await fetch(code)
        if isinstance(payload, dict):
            return payload.get("sourceLatLng")
        return payload
