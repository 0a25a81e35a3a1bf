"""Configurable scraper for resort condition pages.

Each resort supplies CSS selectors in config keyed by record field name
(``base``, ``new_snow_24``, ``trails_open`` ...). The first node matching a
selector provides the text for that field.
"""
from __future__ import annotations

from functools import partial
from typing import Any, Callable, Dict, Mapping, Optional

from bs4 import BeautifulSoup

from ..models import RecordFields
from ..normalization import Unit, convert_depth, parse_count, parse_depth, parse_text, status_from_text
from .base import Parser, create_soup, select_text

DEPTH_FIELDS = ("base", "summit", "new_snow_24", "new_snow_48", "new_snow_7d", "season")
COUNT_FIELDS = ("trails_open", "trails_total", "lifts_open", "lifts_total")
TEXT_FIELDS = ("surface",)
SELECTOR_FIELDS = frozenset(DEPTH_FIELDS + COUNT_FIELDS + TEXT_FIELDS + ("status",))


def validate_selectors(selectors: Mapping[str, str]) -> Dict[str, str]:
    unknown = set(selectors) - SELECTOR_FIELDS
    if unknown:
        raise ValueError(f"Unknown selector fields: {sorted(unknown)}")
    return {key: value for key, value in selectors.items() if value}


def extract(
    soup: BeautifulSoup,
    selectors: Mapping[str, str],
    *,
    unit: Unit | str = Unit.INCHES,
) -> RecordFields:
    """Pull every configured field out of ``soup``.

    Depths are converted from the page's declared ``unit`` to inches. A status
    selector that matches nothing leaves the status unset (reported as open).
    """
    values: Dict[str, Any] = {}
    for field_name in DEPTH_FIELDS:
        values[field_name] = convert_depth(parse_depth(select_text(soup, selectors.get(field_name))), unit)
    for field_name in COUNT_FIELDS:
        values[field_name] = parse_count(select_text(soup, selectors.get(field_name)))
    for field_name in TEXT_FIELDS:
        values[field_name] = parse_text(select_text(soup, selectors.get(field_name)))

    status_text = select_text(soup, selectors.get("status"))
    values["status"] = status_from_text(status_text) if status_text else None
    return RecordFields(**values)


def parse_conditions(
    html: str,
    *,
    selectors: Mapping[str, str],
    unit: Unit | str = Unit.INCHES,
) -> RecordFields:
    """Parse a resort condition page using configured selectors."""
    return extract(create_soup(html), selectors, unit=unit)


def make_parser(
    selectors: Mapping[str, str],
    *,
    unit: Unit | str = Unit.INCHES,
    defaults: Optional[Mapping[str, str]] = None,
) -> Parser:
    active = validate_selectors({**(defaults or {}), **selectors})
    parser: Callable[[str], RecordFields] = partial(parse_conditions, selectors=active, unit=Unit(unit))
    return parser
