from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Callable, Dict

import httpx
import pytest

from skihaus.exceptions import ParseError
from skihaus.models import RecordFields, Status
from skihaus.resolver import NameResolver
from skihaus.scrapers import jay_peak, killington, mountain_report, resort_page, snocountry, tremblant
from skihaus.scrapers.base import Classification, Provider, Source

FIXTURES = Path(__file__).parent / "fixtures"

PRIMARY = "https://primary.example.com/conditions"
FALLBACK = "https://fallback.example.com/conditions"


def _fixture_text(name: str) -> str:
    return (FIXTURES / name).read_text()


def _client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _routes(responses: Dict[str, httpx.Response]) -> Callable[[httpx.Request], httpx.Response]:
    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if url not in responses:
            raise httpx.ConnectError("connection refused", request=request)
        return responses[url]

    return handler


def test_killington_stats_parsing() -> None:
    fields = killington.parse_stats(_fixture_text("killington_stats.json"))

    assert fields.base == 58
    assert fields.summit == 72
    assert fields.new_snow_24 == 8
    assert fields.new_snow_48 == 12
    assert fields.trails_open == 116
    assert fields.trails_total == 142
    assert fields.lifts_open == 18
    assert fields.lifts_total == 22
    assert fields.surface == "Packed Powder"
    assert fields.season == 198
    assert fields.status is Status.OPEN


def test_killington_stats_accepts_snake_case_root_object() -> None:
    fields = killington.parse_stats('{"base_depth": "30", "trails_open": "12"}')

    assert fields.base == 30
    assert fields.trails_open == 12


def test_killington_snow_report_parsing() -> None:
    fields = killington.parse_snow_report(_fixture_text("killington_snow_report.html"))

    assert fields.base == 44
    assert fields.new_snow_24 == 3
    assert fields.trails_open == 97
    assert fields.surface == "Machine Groomed"


def test_tremblant_converts_centimetres() -> None:
    fields = tremblant.parse_conditions(_fixture_text("tremblant_conditions.json"))

    assert fields.base == 56
    assert fields.summit == 71
    assert fields.new_snow_24 == 4
    assert fields.season == 138
    assert fields.trails_open == 88
    assert fields.trails_total == 102
    assert fields.lifts_open == 12
    assert fields.status is Status.OPENING_SOON


def test_mountain_report_parsing() -> None:
    fields = mountain_report.parse_conditions(_fixture_text("stowe_mountain_report.html"))

    assert fields.base == 36
    assert fields.summit == 52
    assert fields.new_snow_24 == 4
    assert fields.new_snow_48 == 7
    assert fields.trails_open == 88
    assert fields.trails_total == 116
    assert fields.lifts_open == 10
    assert fields.lifts_total is None
    assert fields.surface == "Powder"
    assert fields.season == 187


def test_jay_peak_fills_gaps_from_report_table() -> None:
    fields = jay_peak.parse_conditions(_fixture_text("jay_peak_report.html"))

    # Widget values win; the table supplies what the widget lacks.
    assert fields.base == 48
    assert fields.trails_open == 70
    assert fields.trails_total == 81
    assert fields.new_snow_24 == 6
    assert fields.new_snow_48 == 11
    assert fields.season == 301
    assert fields.surface == "Packed Powder"


def test_resort_page_uses_configured_selectors() -> None:
    parser = resort_page.make_parser(
        {
            "base": ".base-depth",
            "new_snow_24": '[class*="24hour"]',
            "trails_open": ".trails-open",
            "trails_total": ".trails-total",
            "lifts_open": ".lifts-open",
            "surface": ".surface",
        }
    )
    fields = parser(_fixture_text("sugarbush.html"))

    assert fields == RecordFields(
        base=40,
        new_snow_24=2,
        trails_open=61,
        trails_total=111,
        lifts_open=9,
        surface="Loose Granular",
    )


def test_resort_page_converts_declared_centimetre_unit() -> None:
    parser = resort_page.make_parser({"base": ".base"}, unit="cm")
    assert parser('<div class="base">142 cm</div>').base == 56


def test_resort_page_rejects_unknown_selector_fields() -> None:
    with pytest.raises(ValueError):
        resort_page.make_parser({"snow_depth": ".base"})


def test_resort_page_name_comes_from_the_provider_label() -> None:
    with pytest.raises(ValueError, match="name"):
        resort_page.make_parser({"base": ".base", "name": "h1"})


def test_snocountry_feed_keeps_raw_name_and_ignores_report_time() -> None:
    entries = snocountry.parse_feed(_fixture_text("snocountry_vt.json"))
    assert len(entries) == 3

    killington_fields = snocountry.extract_record(entries[0])
    assert killington_fields.name == "  Killington Resort  "
    assert killington_fields.base == 40
    assert killington_fields.new_snow_24 == 5
    assert killington_fields.trails_open == 101
    assert killington_fields.lifts_total == 22
    assert killington_fields.status is Status.OPEN

    stowe_fields = snocountry.extract_record(entries[1])
    assert stowe_fields.base is None
    assert stowe_fields.summit is None
    assert stowe_fields.new_snow_24 == 2
    assert stowe_fields.status is Status.CLOSED


def test_snocountry_feed_accepts_bare_array_and_data_key() -> None:
    assert snocountry.parse_feed('[{"resort_name": "Stowe"}]') == [{"resort_name": "Stowe"}]
    assert snocountry.parse_feed('{"data": [{"resortName": "Stowe"}]}') == [{"resortName": "Stowe"}]
    with pytest.raises(ParseError):
        snocountry.parse_feed("<html>rate limited</html>")


def test_snocountry_feed_url_hides_the_key_in_published_source() -> None:
    provider = snocountry.SnoCountryProvider("STOWE", "vt", NameResolver(), api_key="secret-key")

    assert "apiKey=secret-key" in provider.url
    assert "states=VT" in provider.url
    assert "secret-key" not in provider.degraded_record().source


@pytest.mark.asyncio
async def test_provider_uses_primary_when_it_answers() -> None:
    provider = Provider("KILLINGTON", Source(PRIMARY, killington.parse_stats, json=True))
    handler = _routes({PRIMARY: httpx.Response(200, text=_fixture_text("killington_stats.json"))})

    async with _client(handler) as client:
        outcome = await provider.run(client)

    assert outcome.classification is Classification.OK
    assert not outcome.used_fallback
    assert outcome.record.source == PRIMARY
    assert outcome.record.base == 58


@pytest.mark.asyncio
async def test_provider_falls_back_on_network_failure() -> None:
    provider = Provider(
        "KILLINGTON",
        Source(PRIMARY, killington.parse_stats, json=True),
        Source(FALLBACK, killington.parse_snow_report),
    )
    handler = _routes(
        {
            PRIMARY: httpx.Response(503, text="maintenance"),
            FALLBACK: httpx.Response(200, text=_fixture_text("killington_snow_report.html")),
        }
    )

    async with _client(handler) as client:
        outcome = await provider.run(client)

    assert outcome.classification is Classification.OK
    assert outcome.used_fallback
    assert outcome.record.source == FALLBACK
    assert outcome.record.base == 44


@pytest.mark.asyncio
async def test_provider_degrades_when_both_sources_fail() -> None:
    provider = Provider(
        "KILLINGTON",
        Source(PRIMARY, killington.parse_stats),
        Source(FALLBACK, killington.parse_snow_report),
    )

    async with _client(_routes({})) as client:
        outcome = await provider.run(client)

    assert outcome.classification is Classification.NETWORK_ERROR
    assert outcome.used_fallback
    assert outcome.error
    assert outcome.record.source == FALLBACK
    assert outcome.record.base is None
    assert outcome.record.status is Status.OPEN
    assert outcome.record.name == "KILLINGTON"


@pytest.mark.asyncio
async def test_provider_times_out_without_fallback() -> None:
    async def slow(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return httpx.Response(200, text="{}")

    provider = Provider("STOWE", Source(PRIMARY, killington.parse_stats), timeout=0.05)

    async with _client(slow) as client:
        outcome = await provider.run(client)

    assert outcome.classification is Classification.NETWORK_ERROR
    assert outcome.duration < 5
    assert "Timed out" in outcome.error


@pytest.mark.asyncio
async def test_parse_failure_does_not_trigger_fallback() -> None:
    requested = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(str(request.url))
        return httpx.Response(200, text="not json")

    provider = Provider(
        "MONT-TREMBLANT",
        Source(PRIMARY, tremblant.parse_conditions, json=True),
        Source(FALLBACK, tremblant.parse_fallback),
    )

    async with _client(handler) as client:
        outcome = await provider.run(client)

    assert requested == [PRIMARY]
    assert outcome.classification is Classification.PARSE_ERROR
    assert outcome.record.source == PRIMARY
    assert outcome.record.base is None


@pytest.mark.asyncio
async def test_empty_extraction_degrades() -> None:
    provider = Provider("STOWE", Source(PRIMARY, mountain_report.parse_conditions))
    handler = _routes({PRIMARY: httpx.Response(200, text="<html><body>Maintenance</body></html>")})

    async with _client(handler) as client:
        outcome = await provider.run(client)

    assert outcome.classification is Classification.PARSE_ERROR
    assert "No condition fields" in outcome.error


@pytest.mark.asyncio
async def test_json_sources_send_json_accept_header() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["accept"] = request.headers.get("accept")
        return httpx.Response(200, text=_fixture_text("killington_stats.json"))

    provider = Provider("KILLINGTON", Source(PRIMARY, killington.parse_stats, json=True))
    async with _client(handler) as client:
        await provider.run(client)

    assert seen["accept"] == "application/json"
