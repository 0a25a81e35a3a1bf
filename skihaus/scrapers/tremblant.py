"""Scraper for Mont-Tremblant, QC.

Source: https://www.tremblant.ca/api/mountain-conditions (JSON, depths in cm)
Fallback: https://www.tremblant.ca/en/ski/conditions
"""
from __future__ import annotations

from typing import Any, Mapping, MutableMapping

from ..models import RecordFields
from ..normalization import TREMBLANT_NORMALIZER
from . import resort_page
from .base import load_json_object

DEFAULT_REPORT_URL = "https://www.tremblant.ca/api/mountain-conditions"
DEFAULT_FALLBACK_URL = "https://www.tremblant.ca/en/ski/conditions"

# The fallback page labels its figures in inches on the English site.
FALLBACK_SELECTORS: MutableMapping[str, str] = {
    "base": '[class*="base"], [class*="neige"]',
    "new_snow_24": '[class*="24h"], [class*="overnight"]',
    "trails_open": '[class*="open"], [class*="ouvert"]',
}


def conditions(payload: Mapping[str, Any]) -> Mapping[str, Any]:
    nested = payload.get("conditions")
    return nested if isinstance(nested, Mapping) else payload


def parse_conditions(body: str) -> RecordFields:
    """Parse the mountain-conditions JSON feed, converting centimetres to inches."""
    return TREMBLANT_NORMALIZER.normalize(conditions(load_json_object(body)))


def parse_fallback(html: str, *, selectors: Mapping[str, str] | None = None) -> RecordFields:
    return resort_page.parse_conditions(html, selectors={**FALLBACK_SELECTORS, **(selectors or {})})
