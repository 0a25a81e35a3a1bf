from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List

import httpx
import pytest

from skihaus.models import ConditionRecord, RecordFields, Status
from skihaus.normalization import RESORT_STATS_NORMALIZER, TREMBLANT_NORMALIZER
from skihaus.pipeline import AdapterEvent, aggregate, collect, run_pipeline
from skihaus.resolver import NameResolver
from skihaus.scrapers import snocountry
from skihaus.scrapers.base import Classification, Provider, ProviderOutcome, Source, load_json_object

FIXTURES = Path(__file__).parent / "fixtures"
RUN_START = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


def _stats(body: str) -> RecordFields:
    return RESORT_STATS_NORMALIZER.normalize(load_json_object(body))


def _client(handler: Callable[[httpx.Request], object]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _outcome(provider: str, record: ConditionRecord) -> ProviderOutcome:
    return ProviderOutcome(provider=provider, record=record, classification=Classification.OK, duration=0.0)


def _record(name: str, base: float | None = None) -> ConditionRecord:
    return ConditionRecord(name=name, updated_at=RUN_START, source=f"https://{name.lower()}.example", base=base)


@pytest.fixture
def resolver() -> NameResolver:
    return NameResolver()


@pytest.mark.asyncio
async def test_mixed_success_timeout_and_malformed_json(resolver: NameResolver) -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "a.example":
            return httpx.Response(200, text='{"base_depth": "58\\""}')
        if request.url.host == "b.example":
            await asyncio.sleep(5)
            return httpx.Response(200, text="{}")
        return httpx.Response(200, text='{"base_depth": ')

    providers = [
        Provider("KILLINGTON", Source("https://a.example/stats", _stats)),
        Provider("STOWE", Source("https://b.example/stats", _stats), timeout=0.05),
        Provider("OKEMO", Source("https://c.example/stats", _stats)),
    ]
    events: List[AdapterEvent] = []

    async with _client(handler) as client:
        snapshot = await run_pipeline(
            providers, resolver, client=client, hook=events.append, clock=lambda: RUN_START
        )

    assert snapshot.total_count == 3
    assert snapshot.success_count == 1
    assert snapshot.scraped_at == RUN_START

    by_name = {record.name: record for record in snapshot.mountains}
    assert by_name["KILLINGTON"].base == 58
    for name in ("STOWE", "OKEMO"):
        assert by_name[name].base is None
        assert by_name[name].status is Status.OPEN

    assert [event.classification for event in events] == [
        Classification.OK,
        Classification.NETWORK_ERROR,
        Classification.PARSE_ERROR,
    ]


@pytest.mark.asyncio
async def test_centimetre_provider_reports_inches(resolver: NameResolver) -> None:
    def parse(body: str) -> RecordFields:
        return TREMBLANT_NORMALIZER.normalize(load_json_object(body))

    providers = [Provider("MONT-TREMBLANT", Source("https://tremblant.example/api", parse))]

    async with _client(lambda request: httpx.Response(200, text='{"baseDepthCm": 142}')) as client:
        snapshot = await run_pipeline(providers, resolver, client=client, hook=lambda event: None)

    assert snapshot.mountains[0].name == "MONT-TREMBLANT"
    assert snapshot.mountains[0].base == 56


@pytest.mark.asyncio
async def test_raw_upstream_name_is_trimmed_and_resolved(resolver: NameResolver) -> None:
    feed = (FIXTURES / "snocountry_vt.json").read_text()
    providers = [snocountry.SnoCountryProvider("KILLINGTON", "VT", resolver, api_key="k")]

    async with _client(lambda request: httpx.Response(200, text=feed)) as client:
        outcomes = await collect(providers, client, hook=lambda event: None)

    assert outcomes[0].record.name == "  Killington Resort  "

    snapshot = aggregate(outcomes, resolver, scraped_at=RUN_START)
    assert [record.name for record in snapshot.mountains] == ["KILLINGTON"]
    assert snapshot.mountains[0].base == 40


@pytest.mark.asyncio
async def test_snocountry_provider_missing_from_feed_degrades(resolver: NameResolver) -> None:
    feed = (FIXTURES / "snocountry_vt.json").read_text()
    providers = [snocountry.SnoCountryProvider("JAY PEAK", "VT", resolver, api_key="k")]

    async with _client(lambda request: httpx.Response(200, text=feed)) as client:
        snapshot = await run_pipeline(providers, resolver, client=client, hook=lambda event: None)

    assert snapshot.total_count == 1
    assert snapshot.success_count == 0
    assert snapshot.mountains[0].name == "JAY PEAK"


@pytest.mark.asyncio
async def test_outcomes_follow_registration_order_not_completion_order(resolver: NameResolver) -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "slow.example":
            await asyncio.sleep(0.05)
        return httpx.Response(200, text='{"baseDepth": 10}')

    providers = [
        Provider("STOWE", Source("https://slow.example/", _stats)),
        Provider("OKEMO", Source("https://fast.example/", _stats)),
    ]

    async with _client(handler) as client:
        outcomes = await collect(providers, client, hook=lambda event: None)

    assert [outcome.provider for outcome in outcomes] == ["STOWE", "OKEMO"]


@pytest.mark.asyncio
async def test_escaped_provider_exception_becomes_degraded_outcome(resolver: NameResolver) -> None:
    class Exploding(Provider):
        async def run(self, client: httpx.AsyncClient) -> ProviderOutcome:
            raise RuntimeError("bug in adapter")

    providers = [
        Exploding("STOWE", Source("https://stowe.example/", _stats)),
        Provider("OKEMO", Source("https://okemo.example/", _stats)),
    ]
    events: List[AdapterEvent] = []

    async with _client(lambda request: httpx.Response(200, text='{"baseDepth": 10}')) as client:
        snapshot = await run_pipeline(providers, resolver, client=client, hook=events.append)

    assert snapshot.total_count == 2
    assert snapshot.success_count == 1
    assert snapshot.mountains[0].name == "STOWE"
    assert events[0].classification is Classification.PARSE_ERROR
    assert "bug in adapter" in events[0].error


def test_duplicates_keep_the_first_outcome(resolver: NameResolver) -> None:
    outcomes = [
        _outcome("killington-api", _record("Killington Resort", base=58)),
        _outcome("stowe", _record("STOWE", base=36)),
        _outcome("killington-feed", _record("KILLINGTON", base=12)),
    ]

    snapshot = aggregate(outcomes, resolver, scraped_at=RUN_START)

    assert [record.name for record in snapshot.mountains] == ["KILLINGTON", "STOWE"]
    assert snapshot.mountains[0].base == 58
    assert snapshot.total_count == 2


def test_unmapped_names_are_dropped(resolver: NameResolver) -> None:
    outcomes = [
        _outcome("smuggs", _record("Smugglers' Notch", base=30)),
        _outcome("stowe", _record("stowe", base=None)),
    ]

    snapshot = aggregate(outcomes, resolver, scraped_at=RUN_START)

    assert [record.name for record in snapshot.mountains] == ["STOWE"]
    assert snapshot.total_count == 1
    assert snapshot.success_count == 0


def test_success_count_matches_records_with_base(resolver: NameResolver) -> None:
    outcomes = [
        _outcome("a", _record("KILLINGTON", base=0.0)),
        _outcome("b", _record("STOWE")),
        _outcome("c", _record("OKEMO", base=20)),
    ]

    snapshot = aggregate(outcomes, resolver, scraped_at=RUN_START)

    assert snapshot.success_count == sum(1 for record in snapshot.mountains if record.base is not None) == 2
    assert snapshot.success_count <= snapshot.total_count <= len(outcomes)


@pytest.mark.asyncio
async def test_identical_upstream_data_gives_identical_snapshots(resolver: NameResolver) -> None:
    providers = [
        Provider("KILLINGTON", Source("https://k.example/", _stats)),
        Provider("STOWE", Source("https://s.example/", _stats)),
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text='{"baseDepth": "40", "openTrails": "90"}')

    async with _client(handler) as client:
        first = await run_pipeline(providers, resolver, client=client, hook=lambda event: None)
        second = await run_pipeline(providers, resolver, client=client, hook=lambda event: None)

    def strip_times(snapshot):
        return [
            {key: value for key, value in record.to_dict().items() if key != "updatedAt"}
            for record in snapshot.mountains
        ]

    assert strip_times(first) == strip_times(second)
    assert (first.success_count, first.total_count) == (second.success_count, second.total_count)


@pytest.mark.asyncio
async def test_broken_hook_does_not_fail_the_run(resolver: NameResolver) -> None:
    def hook(event: AdapterEvent) -> None:
        raise RuntimeError("sink offline")

    providers = [Provider("STOWE", Source("https://s.example/", _stats))]
    async with _client(lambda request: httpx.Response(200, text='{"baseDepth": 1}')) as client:
        snapshot = await run_pipeline(providers, resolver, client=client, hook=hook)

    assert snapshot.success_count == 1


@pytest.mark.asyncio
async def test_unmapped_page_title_keeps_the_provider_slot(resolver: NameResolver) -> None:
    def parse(body: str) -> RecordFields:
        return RecordFields(name="Stowe Mountain Resort - Conditions", base=12.0)

    providers = [
        Provider("STOWE", Source("https://stowe.example/", parse)),
        Provider("OKEMO", Source("https://okemo.example/", parse)),
    ]

    async with _client(lambda request: httpx.Response(200, text="<h1>ignored</h1>")) as client:
        snapshot = await run_pipeline(providers, resolver, client=client, hook=lambda event: None)

    assert snapshot.total_count == 2
    assert [record.name for record in snapshot.mountains] == ["STOWE", "OKEMO"]
    assert snapshot.success_count == 2
