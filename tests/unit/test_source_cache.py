from __future__ import annotations

import asyncio

import pytest

from waterpoints.common.http import HttpRequestError
from waterpoints.harvest.source_cache import SourceLocationCache


class CountingFetcher:
    def __init__(self, payloads: dict[str, object] | None = None, fail: bool = False):
        self.payloads = payloads or {}
        self.fail = fail
        self.calls: list[str] = []

    async def __call__(self, code: str):
        self.calls.append(code)
        await asyncio.sleep(0.01)
        if self.fail:
            raise HttpRequestError(f"lookup failed for {code}")
        return self.payloads.get(code, {"sourceLatLng": [-16.0, 34.8]})


def test_concurrent_resolves_for_one_code_fetch_once():
    cache = SourceLocationCache()
    fetch = CountingFetcher()

    async def scenario():
        return await asyncio.gather(*(cache.resolve("ABC", fetch) for _ in range(100)))

    results = asyncio.run(scenario())

    assert fetch.calls == ["ABC"]
    assert cache.fetch_count == 1
    assert all(result == [-16.0, 34.8] for result in results)


def test_each_distinct_code_fetched_exactly_once():
    cache = SourceLocationCache()
    fetch = CountingFetcher({"A": {"sourceLatLng": [1.0, 2.0]}, "B": {"sourceLatLng": [3.0, 4.0]}})

    async def scenario():
        codes = ["A", "B", "A", "B", "A"]
        first = await asyncio.gather(*(cache.resolve(code, fetch) for code in codes))
        second = await cache.resolve("A", fetch)
        return first, second

    first, second = asyncio.run(scenario())

    assert sorted(fetch.calls) == ["A", "B"]
    assert first == [[1.0, 2.0], [3.0, 4.0], [1.0, 2.0], [3.0, 4.0], [1.0, 2.0]]
    assert second == [1.0, 2.0]
    assert len(cache) == 2
    assert "A" in cache


def test_failed_lookup_is_memoized_and_reraised_to_every_caller():
    cache = SourceLocationCache()
    fetch = CountingFetcher(fail=True)

    async def scenario():
        return await asyncio.gather(
            cache.resolve("BAD", fetch),
            cache.resolve("BAD", fetch),
            return_exceptions=True,
        )

    results = asyncio.run(scenario())

    assert fetch.calls == ["BAD"]
    assert all(isinstance(result, HttpRequestError) for result in results)


def test_missing_lat_lng_resolves_to_none():
    cache = SourceLocationCache()
    fetch = CountingFetcher({"X": {"code": "X"}})

    assert asyncio.run(cache.resolve("X", fetch)) is None


def test_sequential_resolves_after_failure_do_not_refetch():
    cache = SourceLocationCache()
    fetch = CountingFetcher(fail=True)

    async def scenario():
        with pytest.raises(HttpRequestError):
            await cache.resolve("BAD", fetch)
        with pytest.raises(HttpRequestError):
            await cache.resolve("BAD", fetch)

    asyncio.run(scenario())
    assert fetch.calls == ["BAD"]
