"""Scraper for Vail-family mountain report pages.

Source: https://www.stowe.com/the-mountain/mountain-report.aspx (and the
matching pages for Stratton, Okemo, Mount Snow, Hunter, Sunday River,
Sugarloaf, Loon, Attitash and Wildcat). The report widget tags every metric
with a ``data-field`` attribute.
"""
from __future__ import annotations

from typing import Mapping, MutableMapping

from ..models import RecordFields
from ..normalization import Unit
from . import resort_page
from .base import Parser

DEFAULT_SELECTORS: MutableMapping[str, str] = {
    "base": '[data-field="base-depth"], .conditions__base',
    "summit": '[data-field="summit-depth"], .conditions__summit',
    "new_snow_24": '[data-field="overnight-snowfall"], [data-hours="24"]',
    "new_snow_48": '[data-field="48hr-snowfall"], [data-hours="48"]',
    "trails_open": '[data-field="open-trails"], .trails__open',
    "trails_total": '[data-field="total-trails"], .trails__total',
    "lifts_open": '[data-field="open-lifts"]',
    "lifts_total": '[data-field="total-lifts"]',
    "surface": '[data-field="surface-conditions"]',
    "season": '[data-field="season-total"]',
}


def parse_conditions(html: str, *, selectors: Mapping[str, str] | None = None) -> RecordFields:
    """Parse a mountain-report.aspx page into record fields."""
    return resort_page.parse_conditions(html, selectors={**DEFAULT_SELECTORS, **(selectors or {})})


def make_parser(selectors: Mapping[str, str] | None = None, *, unit: Unit | str = Unit.INCHES) -> Parser:
    return resort_page.make_parser(selectors or {}, unit=unit, defaults=DEFAULT_SELECTORS)
