from __future__ import annotations

import enum
import math
import re
from dataclasses import dataclass, fields
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple

from .models import RecordFields, Status

Converter = Callable[[Any], Any]

CM_PER_INCH = 2.54
OPEN_STATUS_THRESHOLD = 3

_NON_DECIMAL = re.compile(r"[^0-9.]")
_LEADING_DECIMAL = re.compile(r"\d*\.?\d+")
_NON_DIGIT = re.compile(r"[^0-9]")
_WHITESPACE = re.compile(r"\s+")


class Unit(str, enum.Enum):
    """Depth unit an upstream reports in. Declared per provider, never sniffed."""

    INCHES = "in"
    CM = "cm"


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_depth(value: Any) -> Optional[float]:
    """Strip everything but digits and dots, then parse the leading number.

    Trailing dots from abbreviations (``"1.5 ft."``) are ignored.
    """
    if _is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) and value >= 0 else None
    match = _LEADING_DECIMAL.match(_NON_DECIMAL.sub("", str(value)))
    if match is None:
        return None
    return float(match.group())


def parse_count(value: Any) -> Optional[int]:
    """Strip everything but digits, then parse as an integer."""
    if _is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float):
        return int(value) if math.isfinite(value) and value >= 0 else None
    digits = _NON_DIGIT.sub("", str(value))
    if not digits:
        return None
    return int(digits)


def parse_text(value: Any) -> Optional[str]:
    if _is_blank(value):
        return None
    return _WHITESPACE.sub(" ", str(value)).strip()


def cm_to_inches(value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    # Half-up rounding to whole inches.
    return float(math.floor(value / CM_PER_INCH + 0.5))


def convert_depth(value: Optional[float], unit: Unit | str) -> Optional[float]:
    if Unit(unit) is Unit.CM:
        return cm_to_inches(value)
    return value


def first_present(payload: Mapping[str, Any], aliases: Sequence[str]) -> Any:
    """Return the first alias value that is present and non-empty."""
    for alias in aliases:
        value = payload.get(alias)
        if not _is_blank(value):
            return value
    return None


def status_from_code(value: Any, *, threshold: int = OPEN_STATUS_THRESHOLD) -> Status:
    """Numeric feed status: codes at or below ``threshold`` mean open."""
    code = parse_count(value)
    if code is None:
        return Status.OPEN
    return Status.OPEN if code <= threshold else Status.CLOSED


def status_from_text(value: Any) -> Status:
    return Status.coerce(value) or Status.OPEN


@dataclass(frozen=True)
class FieldMapping:
    """Describes how to pull and transform a raw metric into a normalized field."""

    aliases: Tuple[str, ...]
    converter: Converter = parse_depth
    unit: Unit = Unit.INCHES

    def extract(self, payload: Mapping[str, Any]) -> Any:
        value = first_present(payload, self.aliases)
        if value is None:
            return None
        value = self.converter(value)
        if self.converter is parse_depth:
            value = convert_depth(value, self.unit)
        return value


class RecordNormalizer:
    """Applies an alias table to a JSON object to build :class:`RecordFields`.

    Each field maps to one or more :class:`FieldMapping` entries; the first
    entry that yields a value wins.
    """

    def __init__(self, mappings: Mapping[str, Sequence[FieldMapping]]) -> None:
        known = {item.name for item in fields(RecordFields)}
        unknown = set(mappings) - known
        if unknown:
            raise ValueError(f"Unknown record fields in mapping: {sorted(unknown)}")
        self._mappings: Dict[str, Tuple[FieldMapping, ...]] = {
            key: tuple(value) for key, value in mappings.items()
        }

    def normalize(self, payload: Mapping[str, Any]) -> RecordFields:
        values: Dict[str, Any] = {}
        for field_name, candidates in self._mappings.items():
            for mapping in candidates:
                value = mapping.extract(payload)
                if value is not None:
                    values[field_name] = value
                    break
        return RecordFields(**values)


def _depth(*aliases: str, unit: Unit = Unit.INCHES) -> FieldMapping:
    return FieldMapping(tuple(aliases), parse_depth, unit)


def _count(*aliases: str) -> FieldMapping:
    return FieldMapping(tuple(aliases), parse_count)


def _text(*aliases: str) -> FieldMapping:
    return FieldMapping(tuple(aliases), parse_text)


# SnoCountry has shipped both snake_case and camelCase payloads.
SNOCOUNTRY_FIELDS: Mapping[str, Sequence[FieldMapping]] = {
    "name": (_text("resort_name", "resortName"),),
    "base": (_depth("base_depth", "baseDepth"),),
    "summit": (_depth("summit_depth", "summitDepth"),),
    "new_snow_24": (_depth("fresh_snow", "freshSnow", "snow_last_24h", "snowLast24Hours"),),
    "new_snow_48": (_depth("snow_last_48h", "snowLast48Hours"),),
    "new_snow_7d": (_depth("snow_last_7d", "snowLast7Days"),),
    "season": (_depth("season_total", "seasonTotal"),),
    "trails_open": (_count("open_runs", "openRuns", "open_trails", "openTrails"),),
    "trails_total": (_count("total_runs", "totalRuns", "total_trails", "totalTrails"),),
    "lifts_open": (_count("open_lifts", "openLifts"),),
    "lifts_total": (_count("total_lifts", "totalLifts"),),
    "surface": (_text("primary_surface_condition", "primarySurfaceCondition"),),
    "status": (FieldMapping(("resort_status", "resortStatus"), status_from_code),),
}

RESORT_STATS_FIELDS: Mapping[str, Sequence[FieldMapping]] = {
    "base": (_depth("baseDepth", "base_depth", "base"),),
    "summit": (_depth("summitDepth", "summit_depth", "summit"),),
    "new_snow_24": (_depth("last24Hours", "new_snow_24", "snowfall24"),),
    "new_snow_48": (_depth("last48Hours", "new_snow_48", "snowfall48"),),
    "trails_open": (_count("openTrails", "trails_open"),),
    "trails_total": (_count("totalTrails", "trails_total"),),
    "lifts_open": (_count("openLifts", "lifts_open"),),
    "lifts_total": (_count("totalLifts", "lifts_total"),),
    "surface": (_text("primarySurface", "surface_conditions"),),
    "season": (_depth("seasonTotal", "season_total"),),
    "status": (FieldMapping(("status", "resortStatus"), status_from_text),),
}

TREMBLANT_FIELDS: Mapping[str, Sequence[FieldMapping]] = {
    "base": (_depth("baseDepthCm", unit=Unit.CM), _depth("baseDepth")),
    "summit": (_depth("summitDepthCm", unit=Unit.CM),),
    "new_snow_24": (_depth("newSnow24hCm", unit=Unit.CM), _depth("newSnow24h")),
    "season": (_depth("seasonTotalCm", unit=Unit.CM), _depth("seasonTotal")),
    "trails_open": (_count("openTrails", "openRuns"),),
    "trails_total": (_count("totalTrails", "totalRuns"),),
    "lifts_open": (_count("openLifts"),),
    "surface": (_text("surfaceConditions", "surface"),),
    "status": (FieldMapping(("status",), status_from_text),),
}

SNOCOUNTRY_NORMALIZER = RecordNormalizer(SNOCOUNTRY_FIELDS)
RESORT_STATS_NORMALIZER = RecordNormalizer(RESORT_STATS_FIELDS)
TREMBLANT_NORMALIZER = RecordNormalizer(TREMBLANT_FIELDS)
