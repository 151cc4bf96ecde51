"""Bounded-concurrency execution of independent async units."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Iterable, Sequence

from waterpoints.common.logging import log_event
from waterpoints.common.models import UnitOutcome

logger = logging.getLogger(__name__)

UnitFactory = Callable[[], Awaitable[Any]]


class BoundedScheduler:
    """Runs unit factories with at most ``max_concurrency`` in flight.

    Units start in submission order as slots free up. Every unit settles into a
    ``UnitOutcome``; an exception in one unit is logged and recorded but never
    cancels its siblings. ``run`` returns outcomes in submission order.
    """

    def __init__(self, max_concurrency: int, *, name: str = "units") -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.max_concurrency = max_concurrency
        self.name = name
        self.active = 0
        self.peak_active = 0

    async def run(
        self,
        units: Iterable[UnitFactory],
        labels: Sequence[str] | None = None,
    ) -> list[UnitOutcome]:
        factories = list(units)
        if labels is not None and len(labels) != len(factories):
            raise ValueError("labels must match units one to one")
        outcomes: list[UnitOutcome | None] = [None] * len(factories)
        pending = iter(enumerate(factories))

        async def worker() -> None:
            # all workers share one iterator, so each index is claimed exactly once
            for index, factory in pending:
                label = labels[index] if labels is not None else f"{self.name}[{index}]"
                outcomes[index] = await self._run_one(label, factory)

        worker_count = min(self.max_concurrency, len(factories))
        await asyncio.gather(*(worker() for _ in range(worker_count)))
        return [outcome for outcome in outcomes if outcome is not None]

    async def _run_one(self, label: str, factory: UnitFactory) -> UnitOutcome:
        self.active += 1
        self.peak_active = max(self.peak_active, self.active)
        started = time.monotonic()
        try:
            value = await factory()
        except Exception as exc:
            log_event(
                logger,
                f"{self.name} unit {label} failed: {exc}",
                level=logging.ERROR,
                stage=self.name,
                event="UNIT_FAIL",
                status="error",
                error_code=getattr(exc, "error_code", "UNEXPECTED_ERROR"),
                duration_ms=int((time.monotonic() - started) * 1000),
            )
            return UnitOutcome(label=label, error=exc)
        finally:
            self.active -= 1
        return UnitOutcome(label=label, value=value)


def failed(outcomes: Iterable[UnitOutcome]) -> list[UnitOutcome]:
    return [outcome for outcome in outcomes if not outcome.ok]
