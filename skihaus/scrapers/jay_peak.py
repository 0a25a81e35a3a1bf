"""Scraper for Jay Peak Resort, VT.

Source: https://jaypeakresort.com/mountain-report

The report widget uses descriptive class names; the same figures are also
rendered as a label/value table, which fills any gaps the widget leaves.
"""
from __future__ import annotations

from typing import Dict, Mapping, MutableMapping, Optional

from bs4 import BeautifulSoup

from ..models import RecordFields
from ..normalization import parse_count, parse_depth, parse_text
from .base import create_soup, select_text

DEFAULT_REPORT_URL = "https://jaypeakresort.com/mountain-report"

DEFAULT_SELECTORS: MutableMapping[str, str] = {
    "base": '[class*="snow-depth"], [class*="base-depth"]',
    "new_snow_24": '[class*="new-snow"], [class*="overnight"]',
    "season": '[class*="season-total"]',
    "trails_open": '[class*="trails-open"]',
    "trails_total": '[class*="trails-total"]',
    "surface": '[class*="surface"]',
    "rows": "table tr, .report-row",
    "row_label": "td:first-child, .label",
    "row_value": "td:last-child, .value",
}


def _table_field(label: str) -> Optional[str]:
    if "base" in label:
        return "base"
    if "24" in label:
        return "new_snow_24"
    if "48" in label:
        return "new_snow_48"
    if "season" in label:
        return "season"
    if "open" in label and "trail" in label:
        return "trails_open"
    return None


def parse_report_table(soup: BeautifulSoup, selectors: Mapping[str, str]) -> Dict[str, str]:
    """Collect label/value rows keyed by record field; later rows win."""
    table: Dict[str, str] = {}
    for row in soup.select(selectors["rows"]):
        label = select_text(row, selectors["row_label"])
        value = select_text(row, selectors["row_value"])
        if not label or not value:
            continue
        field_name = _table_field(label.lower())
        if field_name:
            table[field_name] = value
    return table


def parse_conditions(html: str, *, selectors: Mapping[str, str] | None = None) -> RecordFields:
    """Parse the Jay Peak mountain report HTML into record fields."""
    active: Dict[str, str] = {**DEFAULT_SELECTORS, **(selectors or {})}
    soup = create_soup(html)
    table = parse_report_table(soup, active)

    def widget_or_table(field_name: str) -> Optional[str]:
        return select_text(soup, active.get(field_name)) or table.get(field_name)

    return RecordFields(
        base=parse_depth(widget_or_table("base")),
        new_snow_24=parse_depth(widget_or_table("new_snow_24")),
        new_snow_48=parse_depth(table.get("new_snow_48")),
        season=parse_depth(widget_or_table("season")),
        trails_open=parse_count(widget_or_table("trails_open")),
        trails_total=parse_count(select_text(soup, active.get("trails_total"))),
        surface=parse_text(select_text(soup, active.get("surface"))),
    )
