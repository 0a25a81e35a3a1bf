"""Scraper for Killington Resort, VT.

Source: https://www.killington.com/api/resort-stats (JSON widget feed)
Fallback: https://www.killington.com/the-mountain/snow-report
"""
from __future__ import annotations

from typing import Any, Mapping, MutableMapping

from ..models import RecordFields
from ..normalization import RESORT_STATS_NORMALIZER
from . import resort_page
from .base import load_json_object

DEFAULT_REPORT_URL = "https://www.killington.com/api/resort-stats"
DEFAULT_FALLBACK_URL = "https://www.killington.com/the-mountain/snow-report"

FALLBACK_SELECTORS: MutableMapping[str, str] = {
    "base": '.snow-report__base, [data-value="base"]',
    "new_snow_24": '[data-period="24h"], .snow-24',
    "trails_open": '.trails-open, [data-label="Trails Open"]',
    "surface": ".surface-condition, .primary-surface",
}


def snow_report(payload: Mapping[str, Any]) -> Mapping[str, Any]:
    """The stats object lives under ``snowReport``, ``snow_report`` or the root."""
    for key in ("snowReport", "snow_report"):
        nested = payload.get(key)
        if isinstance(nested, Mapping):
            return nested
    return payload


def parse_stats(body: str) -> RecordFields:
    """Parse the resort-stats JSON feed."""
    return RESORT_STATS_NORMALIZER.normalize(snow_report(load_json_object(body)))


def parse_snow_report(html: str, *, selectors: Mapping[str, str] | None = None) -> RecordFields:
    """Parse the HTML snow report page used when the JSON feed is unreachable."""
    return resort_page.parse_conditions(html, selectors={**FALLBACK_SELECTORS, **(selectors or {})})
