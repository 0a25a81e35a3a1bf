from __future__ import annotations

import enum
from dataclasses import dataclass, fields, replace
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Tuple


class Status(str, enum.Enum):
    OPEN = "Open"
    CLOSED = "Closed"
    OPENING_SOON = "OpeningSoon"

    @classmethod
    def coerce(cls, value: Any) -> Optional["Status"]:
        """Map free-text status strings onto a member, or ``None`` if unknown."""
        if isinstance(value, Status):
            return value
        if not isinstance(value, str):
            return None
        key = "".join(ch for ch in value.lower() if ch.isalpha())
        return _STATUS_TEXT.get(key)


_STATUS_TEXT = {
    "open": Status.OPEN,
    "opened": Status.OPEN,
    "closed": Status.CLOSED,
    "close": Status.CLOSED,
    "openingsoon": Status.OPENING_SOON,
    "comingsoon": Status.OPENING_SOON,
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    raise TypeError("timestamp must be a datetime or ISO-8601 string")


def isoformat(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class RecordFields:
    """Partial record produced by a single provider's extraction function.

    Depths are already in inches; counts are non-negative integers. ``name``
    carries the upstream's own spelling of the resort when the payload has one.
    """

    name: Optional[str] = None
    base: Optional[float] = None
    summit: Optional[float] = None
    new_snow_24: Optional[float] = None
    new_snow_48: Optional[float] = None
    new_snow_7d: Optional[float] = None
    season: Optional[float] = None
    trails_open: Optional[int] = None
    trails_total: Optional[int] = None
    lifts_open: Optional[int] = None
    lifts_total: Optional[int] = None
    surface: Optional[str] = None
    status: Optional[Status] = None

    def is_empty(self) -> bool:
        return all(
            getattr(self, item.name) is None
            for item in fields(self)
            if item.name not in {"name", "status"}
        )


# Canonical JSON keys, in output order.
_JSON_KEYS: Tuple[Tuple[str, str], ...] = (
    ("name", "name"),
    ("base", "base"),
    ("summit", "summit"),
    ("new_snow_24", "newSnow24"),
    ("new_snow_48", "newSnow48"),
    ("new_snow_7d", "newSnow7d"),
    ("trails_open", "trailsOpen"),
    ("trails_total", "trailsTotal"),
    ("lifts_open", "liftsOpen"),
    ("lifts_total", "liftsTotal"),
    ("surface", "surface"),
    ("season", "season"),
)


@dataclass(frozen=True)
class ConditionRecord:
    """Canonical conditions for one ski area from one run.

    Absent values mean "unavailable this run"; consumers keep their last known
    good value rather than treating ``None`` as zero.
    """

    name: str
    updated_at: datetime
    source: str
    status: Status = Status.OPEN
    base: Optional[float] = None
    summit: Optional[float] = None
    new_snow_24: Optional[float] = None
    new_snow_48: Optional[float] = None
    new_snow_7d: Optional[float] = None
    season: Optional[float] = None
    trails_open: Optional[int] = None
    trails_total: Optional[int] = None
    lifts_open: Optional[int] = None
    lifts_total: Optional[int] = None
    surface: Optional[str] = None

    @classmethod
    def from_fields(
        cls,
        name: str,
        extracted: RecordFields,
        *,
        source: str,
        updated_at: Optional[datetime] = None,
    ) -> "ConditionRecord":
        return cls(
            name=extracted.name or name,
            updated_at=updated_at or utcnow(),
            source=source,
            status=extracted.status or Status.OPEN,
            base=extracted.base,
            summit=extracted.summit,
            new_snow_24=extracted.new_snow_24,
            new_snow_48=extracted.new_snow_48,
            new_snow_7d=extracted.new_snow_7d,
            season=extracted.season,
            trails_open=extracted.trails_open,
            trails_total=extracted.trails_total,
            lifts_open=extracted.lifts_open,
            lifts_total=extracted.lifts_total,
            surface=extracted.surface,
        )

    @classmethod
    def degraded(cls, name: str, *, source: str, updated_at: Optional[datetime] = None) -> "ConditionRecord":
        return cls(name=name, updated_at=updated_at or utcnow(), source=source)

    @property
    def ok(self) -> bool:
        return self.base is not None

    def with_name(self, name: str) -> "ConditionRecord":
        return replace(self, name=name)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {key: getattr(self, attr) for attr, key in _JSON_KEYS}
        data["status"] = self.status.value
        data["updatedAt"] = isoformat(self.updated_at)
        data["source"] = self.source
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ConditionRecord":
        if not isinstance(data, Mapping):
            raise ValueError(f"Expected a record object, got {type(data).__name__}")
        values = {attr: data.get(key) for attr, key in _JSON_KEYS}
        return cls(
            updated_at=parse_timestamp(data.get("updatedAt")),
            source=data.get("source") or "",
            status=Status.coerce(data.get("status")) or Status.OPEN,
            **values,
        )


@dataclass(frozen=True)
class Snapshot:
    """Result of one pipeline run: deduplicated records plus run metrics."""

    mountains: Tuple[ConditionRecord, ...]
    scraped_at: datetime
    success_count: int
    total_count: int
    stored_at: Optional[datetime] = None

    def stored(self, at: datetime) -> "Snapshot":
        return replace(self, stored_at=at)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "mountains": [record.to_dict() for record in self.mountains],
            "scrapedAt": isoformat(self.scraped_at),
            "successCount": self.success_count,
            "totalCount": self.total_count,
        }
        if self.stored_at is not None:
            data["storedAt"] = isoformat(self.stored_at)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Snapshot":
        if not isinstance(data, Mapping):
            raise ValueError(f"Expected a snapshot object, got {type(data).__name__}")
        stored_at = data.get("storedAt")
        return cls(
            mountains=tuple(ConditionRecord.from_dict(item) for item in data.get("mountains") or []),
            scraped_at=parse_timestamp(data.get("scrapedAt")),
            success_count=int(data.get("successCount") or 0),
            total_count=int(data.get("totalCount") or 0),
            stored_at=parse_timestamp(stored_at) if stored_at else None,
        )
