from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from waterpoints.common.http import HttpRequestError
from waterpoints.common.models import Agency, PartitionKey
from waterpoints.harvest.partition_store import PartitionStore
from waterpoints.harvest.runner import load_cached_records, run_harvest
from waterpoints.pipeline.export import to_table


class FakeApiClient:
    """In-memory stand-in for ApiClient that records every call."""

    def __init__(
        self,
        agencies: list[Agency],
        listings: dict[tuple[int, int], list[dict]],
        *,
        failing_listings: set[tuple[int, int]] = frozenset(),
        failing_details: set[int] = frozenset(),
        failing_sources: set[str] = frozenset(),
    ):
        self.agencies = agencies
        self.listings = listings
        self.failing_listings = failing_listings
        self.failing_details = failing_details
        self.failing_sources = failing_sources
        self.listing_calls: list[tuple[int, int]] = []
        self.detail_calls: list[int] = []
        self.source_calls: list[str] = []

    async def list_agencies(self):
        return list(self.agencies)

    async def list_partition_records(self, year, agency_id):
        self.listing_calls.append((year, agency_id))
        await asyncio.sleep(0)
        if (year, agency_id) in self.failing_listings:
            raise HttpRequestError(f"listing failed for {year}/{agency_id}")
        return [dict(row) for row in self.listings.get((year, agency_id), [])]

    async def get_record_detail(self, answer_id):
        self.detail_calls.append(answer_id)
        await asyncio.sleep(0.001)
        if answer_id in self.failing_details:
            raise HttpRequestError(f"detail failed for {answer_id}")
        return {
            "answerId": answer_id,
            "newSourceCode": f"SRC-{answer_id % 2}",
            "newSourceName": f"source {answer_id}",
            "informationSection": [{"questionId": 1, "questionText": "Depth", "answerText": str(answer_id)}],
            "activitySection": [],
            "comment": None,
            "partUsed": [],
            "imageAnswers": [],
            "visitStaff": [],
        }

    async def get_secondary_source(self, code):
        self.source_calls.append(code)
        await asyncio.sleep(0.001)
        if code in self.failing_sources:
            raise HttpRequestError(f"source failed for {code}")
        return {"code": code, "sourceLatLng": [-15.0, 35.0]}

    async def close(self):
        return None


AGENCIES = [Agency(agency_id=1, name="North/Team"), Agency(agency_id=2, name="South")]


def _listings():
    return {
        (2020, 1): [{"answerId": 10, "newSourceName": "listing"}, {"answerId": 11}],
        (2020, 2): [{"answerId": 20}],
        (2021, 1): [{"answerId": 30}],
        (2021, 2): [],
    }


@pytest.mark.integration
def test_harvest_enriches_saves_and_orders_partitions(tmp_path: Path):
    client = FakeApiClient(AGENCIES, _listings())
    store = PartitionStore(tmp_path)

    run = asyncio.run(run_harvest(client, store, range(2020, 2022), partition_concurrency=2, enrichment_concurrency=3))

    assert [r["answerId"] for r in run.records] == [10, 11, 20, 30]
    assert run.records[0]["newSourceName"] == "source 10"
    assert run.records[0]["agencyName"] == "North/Team"
    assert run.records[0]["latitude"] == -15.0
    assert (tmp_path / "2020" / "North-Team.json").exists()
    assert (tmp_path / "2021" / "South.json").exists()
    assert sorted(client.source_calls) == ["SRC-0", "SRC-1"]
    assert run.source_lookups == 2
    assert run.fetched_count == 4
    assert run.all_failures == []


@pytest.mark.integration
def test_rerun_reads_cache_without_partition_calls(tmp_path: Path):
    store = PartitionStore(tmp_path)
    first = FakeApiClient(AGENCIES, _listings())
    first_run = asyncio.run(run_harvest(first, store, range(2020, 2022)))

    second = FakeApiClient(AGENCIES, _listings())
    second_run = asyncio.run(run_harvest(second, store, range(2020, 2022)))

    assert second.listing_calls == []
    assert second.detail_calls == []
    assert second.source_calls == []
    assert second_run.cached_count == 4
    assert to_table(second_run.records) == to_table(first_run.records)


@pytest.mark.integration
def test_failed_listing_does_not_abort_sibling_partitions(tmp_path: Path):
    client = FakeApiClient(AGENCIES, _listings(), failing_listings={(2020, 2)})
    store = PartitionStore(tmp_path)

    run = asyncio.run(run_harvest(client, store, range(2020, 2022)))

    assert [r["answerId"] for r in run.records] == [10, 11, 30]
    assert run.failed_partition_count == 1
    assert [f.label for f in run.failures] == ["2020/South"]
    assert not store.has(PartitionKey(2020, 2, "South"))


@pytest.mark.integration
def test_failed_detail_leaves_partial_partition_saved(tmp_path: Path):
    client = FakeApiClient(AGENCIES, _listings(), failing_details={11})
    store = PartitionStore(tmp_path)

    run = asyncio.run(run_harvest(client, store, range(2020, 2021)))

    key = PartitionKey(2020, 1, "North/Team")
    assert [r["answerId"] for r in store.load(key)] == [10]
    assert run.enrichment_failure_count == 1
    assert run.all_failures[0].failure_summary()["error_code"] == "HTTP_ERROR"
    assert run.all_failures[0].label == "2020/North/Team#11"


@pytest.mark.integration
def test_shared_failed_source_lookup_is_fetched_once(tmp_path: Path):
    listings = {(2020, 1): [{"answerId": 2}, {"answerId": 4}, {"answerId": 6}]}
    client = FakeApiClient(AGENCIES[:1], listings, failing_sources={"SRC-0"})

    run = asyncio.run(run_harvest(client, PartitionStore(tmp_path), range(2020, 2021)))

    assert client.source_calls == ["SRC-0"]
    assert len(run.records) == 3
    assert all("latitude" not in record for record in run.records)
    assert run.all_failures == []


@pytest.mark.integration
def test_source_lookups_memoized_across_partitions(tmp_path: Path):
    listings = {(year, 1): [{"answerId": year * 2}] for year in range(2001, 2011)}
    client = FakeApiClient(AGENCIES[:1], listings)

    asyncio.run(run_harvest(client, PartitionStore(tmp_path), range(2001, 2011), partition_concurrency=5))

    assert client.source_calls == ["SRC-0"]


@pytest.mark.integration
def test_load_cached_records_concatenates_years(tmp_path: Path):
    store = PartitionStore(tmp_path)
    store.save(PartitionKey(2020, 1, "A"), [{"answerId": 1}])
    store.save(PartitionKey(2021, 1, "A"), [{"answerId": 2}])

    records, failures = load_cached_records(store, range(2020, 2022))

    assert [r["answerId"] for r in records] == [1, 2]
    assert failures == []


@pytest.mark.integration
def test_colliding_agency_names_do_not_share_a_cache_hit(tmp_path: Path):
    agencies = [Agency(agency_id=1, name="A/B"), Agency(agency_id=2, name="A-B")]
    listings = {(2020, 1): [{"answerId": 10}], (2020, 2): [{"answerId": 20}]}
    client = FakeApiClient(agencies, listings)

    run = asyncio.run(run_harvest(client, PartitionStore(tmp_path), range(2020, 2021)))

    assert sorted(client.listing_calls) == [(2020, 1), (2020, 2)]
    assert [(r["agencyId"], r["answerId"]) for r in run.records] == [(1, 10), (2, 20)]
    assert sorted(p.name for p in (tmp_path / "2020").glob("*.json")) == ["A-B (1).json", "A-B (2).json"]
