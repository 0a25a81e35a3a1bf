"""SnoCountry aggregator feed.

Source: https://feeds.snocountry.net/conditions.json?apiKey=...&states=VT

One request returns every reporting resort in a state. Each
:class:`SnoCountryProvider` covers a single resort and picks its own entry out
of the state feed by resolving the feed's resort names.
"""
from __future__ import annotations

from dataclasses import replace
from typing import Any, List, Mapping, Optional
from urllib.parse import urlencode

from ..exceptions import ParseError
from ..http_client import DEFAULT_TIMEOUT
from ..models import RecordFields
from ..normalization import SNOCOUNTRY_NORMALIZER
from ..resolver import NameResolver
from .base import Parser, Provider, Source, load_json

SNOCOUNTRY_URL = "https://feeds.snocountry.net/conditions.json"
STATES = ("NJ", "VT", "NY", "PA", "NH", "ME", "QC")


def feed_url(state: str, api_key: str) -> str:
    return f"{SNOCOUNTRY_URL}?{urlencode({'apiKey': api_key, 'states': state.upper()})}"


def public_url(state: str) -> str:
    return f"{SNOCOUNTRY_URL}?{urlencode({'states': state.upper()})}"


def parse_feed(text: str) -> List[Mapping[str, Any]]:
    """Raw resort entries from a feed body: a bare array, or ``resorts``/``data``."""
    data = load_json(text)
    if isinstance(data, Mapping):
        data = data.get("resorts") or data.get("data") or []
    if not isinstance(data, list):
        raise ParseError(f"Unexpected SnoCountry payload: {type(data).__name__}")
    return [entry for entry in data if isinstance(entry, Mapping)]


def entry_name(entry: Mapping[str, Any]) -> Optional[str]:
    name = entry.get("resort_name") or entry.get("resortName")
    return name if isinstance(name, str) else None


def extract_record(entry: Mapping[str, Any]) -> RecordFields:
    """Normalize one feed entry.

    The resort name is kept as the feed spells it so the resolver sees the
    upstream string. ``report_date_time`` is ignored: fetch time is the record
    timestamp.
    """
    fields = SNOCOUNTRY_NORMALIZER.normalize(entry)
    raw_name = entry_name(entry)
    if raw_name is None:
        return fields
    return replace(fields, name=raw_name)


def feed_parser(canonical: str, resolver: NameResolver) -> Parser:
    def parse(text: str) -> RecordFields:
        for entry in parse_feed(text):
            if resolver.resolve(entry_name(entry)) == canonical:
                return extract_record(entry)
        raise ParseError(f"{canonical} is missing from the SnoCountry feed")

    return parse


class SnoCountryProvider(Provider):
    """Conditions for one resort, read from its state's SnoCountry feed."""

    def __init__(
        self,
        label: str,
        state: str,
        resolver: NameResolver,
        *,
        api_key: str,
        timeout: float = DEFAULT_TIMEOUT,
        region: Optional[str] = None,
    ) -> None:
        self.state = state.upper()
        canonical = resolver.require(label)
        primary = Source(
            feed_url(self.state, api_key),
            feed_parser(canonical, resolver),
            json=True,
            display=public_url(self.state),
        )
        super().__init__(label, primary, timeout=timeout, region=region)
