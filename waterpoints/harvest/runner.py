"""Partitioned harvest orchestration with fail-soft semantics."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import partial

from waterpoints.common.errors import StageError
from waterpoints.common.fs import read_json
from waterpoints.common.logging import log_event
from waterpoints.common.models import Agency, FlatRecord, PartitionKey, PartitionResult, UnitOutcome
from waterpoints.harvest.client import ApiClient
from waterpoints.harvest.enricher import enrich_record
from waterpoints.harvest.partition_store import PartitionStore
from waterpoints.harvest.scheduler import BoundedScheduler, failed
from waterpoints.harvest.source_cache import SourceLocationCache

logger = logging.getLogger(__name__)


@dataclass
class HarvestRun:
    keys: list[PartitionKey]
    partitions: list[PartitionResult] = field(default_factory=list)
    failures: list[UnitOutcome] = field(default_factory=list)
    source_lookups: int = 0

    @property
    def records(self) -> list[FlatRecord]:
        out: list[FlatRecord] = []
        for partition in self.partitions:
            out.extend(partition.records)
        return out

    @property
    def cached_count(self) -> int:
        return sum(1 for partition in self.partitions if partition.cached)

    @property
    def fetched_count(self) -> int:
        return sum(1 for partition in self.partitions if not partition.cached)

    @property
    def failed_partition_count(self) -> int:
        return len(self.keys) - len(self.partitions)

    @property
    def enrichment_failure_count(self) -> int:
        return sum(len(partition.failures) for partition in self.partitions)

    @property
    def all_failures(self) -> list[UnitOutcome]:
        out = list(self.failures)
        for partition in self.partitions:
            out.extend(partition.failures)
        return out


def partition_keys(years: range, agencies: list[Agency]) -> list[PartitionKey]:
    return [
        PartitionKey(year=year, agency_id=agency.agency_id, agency_name=agency.name)
        for year in years
        for agency in agencies
    ]


async def harvest_partition(
    key: PartitionKey,
    *,
    client: ApiClient,
    store: PartitionStore,
    source_cache: SourceLocationCache,
    enrichment_concurrency: int,
) -> PartitionResult:
    if store.has(key):
        log_event(
            logger,
            f"reading cached partition {store.path_for(key)}",
            stage="harvest",
            year=key.year,
            agency=key.agency_name,
            event="PARTITION_CACHE_HIT",
            status="ok",
        )
        return PartitionResult(key=key, records=store.load(key), cached=True)

    log_event(
        logger,
        f"fetching partition for year {key.year}, agency {key.agency_name}",
        stage="harvest",
        year=key.year,
        agency=key.agency_name,
        event="PARTITION_FETCH",
        status="ok",
    )
    locations = await client.list_partition_records(key.year, key.agency_id)

    scheduler = BoundedScheduler(enrichment_concurrency, name="enrich")
    outcomes = await scheduler.run(
        [partial(enrich_record, location, client, source_cache) for location in locations],
        labels=[f"{key.label}#{location.get('answerId')}" for location in locations],
    )
    enriched = [outcome.value for outcome in outcomes if outcome.ok]
    records = store.save(key, enriched)

    log_event(
        logger,
        f"saved partition {store.path_for(key)}",
        stage="harvest",
        year=key.year,
        agency=key.agency_name,
        event="PARTITION_SAVED",
        status="ok" if len(enriched) == len(locations) else "partial",
        rows_in=len(locations),
        rows_out=len(records),
    )
    return PartitionResult(key=key, records=records, cached=False, failures=failed(outcomes))


async def run_harvest(
    client: ApiClient,
    store: PartitionStore,
    years: range,
    *,
    partition_concurrency: int = 5,
    enrichment_concurrency: int = 25,
    source_cache: SourceLocationCache | None = None,
) -> HarvestRun:
    """Harvest every (year, agency) partition and return them in partition order.

    A failed agency listing propagates; any failure inside a partition only
    removes that partition (or record) from the result.
    """
    agencies = await client.list_agencies()
    for stem in store.disambiguate(agencies):
        log_event(
            logger,
            f"agency names collide on cache file {stem!r}; using id-suffixed file names",
            level=logging.WARNING,
            stage="harvest",
            agency=stem,
            event="PARTITION_PATH_COLLISION",
            status="warning",
        )
    keys = partition_keys(years, agencies)
    cache = source_cache if source_cache is not None else SourceLocationCache()

    scheduler = BoundedScheduler(partition_concurrency, name="partition")
    outcomes = await scheduler.run(
        [
            partial(
                harvest_partition,
                key,
                client=client,
                store=store,
                source_cache=cache,
                enrichment_concurrency=enrichment_concurrency,
            )
            for key in keys
        ],
        labels=[key.label for key in keys],
    )

    return HarvestRun(
        keys=keys,
        partitions=[outcome.value for outcome in outcomes if outcome.ok],
        failures=failed(outcomes),
        source_lookups=cache.fetch_count,
    )


def load_cached_records(store: PartitionStore, years: range) -> tuple[list[FlatRecord], list[UnitOutcome]]:
    """Concatenate every cached partition file for ``years`` without touching the network.

    Unreadable or non-array files are logged, skipped and returned as failures.
    """
    records: list[FlatRecord] = []
    failures: list[UnitOutcome] = []
    for path in store.cached_paths(years):
        label = path.relative_to(store.data_dir).as_posix()
        try:
            payload = read_json(path)
            if not isinstance(payload, list):
                raise StageError(f"cached partition {path} is not a JSON array")
        except (ValueError, OSError, StageError) as exc:
            error = exc if isinstance(exc, StageError) else StageError(f"unreadable cached partition {path}: {exc}")
            log_event(
                logger,
                f"skipping cached partition {label}: {error}",
                level=logging.ERROR,
                stage="export",
                event="UNIT_FAIL",
                status="error",
                error_code=error.error_code,
            )
            failures.append(UnitOutcome(label=label, error=error))
            continue
        log_event(
            logger,
            f"read {len(payload)} records from {path}",
            stage="export",
            event="PARTITION_CACHE_HIT",
            status="ok",
            rows_out=len(payload),
        )
        records.extend(payload)
    return records, failures
