"""Provider adapter plumbing shared by every upstream source."""
from __future__ import annotations

import enum
import json
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

import httpx
from bs4 import BeautifulSoup

from ..exceptions import NetworkError, ParseError
from ..http_client import DEFAULT_TIMEOUT, HttpFetcher
from ..logging import get_logger
from ..models import ConditionRecord, RecordFields, utcnow

logger = get_logger(__name__)

Parser = Callable[[str], RecordFields]


def create_soup(html: str) -> BeautifulSoup:
    """Create a BeautifulSoup parser from HTML content."""
    return BeautifulSoup(html, "lxml")


def select_text(soup: BeautifulSoup, selector: Optional[str]) -> Optional[str]:
    """Text of the first node matching ``selector``, or ``None``."""
    if not selector:
        return None
    node = soup.select_one(selector)
    if node is None:
        return None
    text = node.get_text(" ", strip=True)
    return text or None


def load_json(text: str) -> Any:
    """Decode a JSON body, raising :class:`ParseError` when it is malformed."""
    try:
        return json.loads(text)
    except ValueError as exc:
        raise ParseError(f"Malformed JSON: {exc}") from exc


def load_json_object(text: str) -> Mapping[str, Any]:
    data = load_json(text)
    if not isinstance(data, Mapping):
        raise ParseError(f"Expected a JSON object, got {type(data).__name__}")
    return data


class Classification(str, enum.Enum):
    OK = "ok"
    NETWORK_ERROR = "network_error"
    PARSE_ERROR = "parse_error"


@dataclass(frozen=True)
class Source:
    """One upstream location and the extraction function for its body.

    ``display`` replaces the URL in published records when the URL carries
    credentials.
    """

    url: str
    parser: Parser
    json: bool = False
    display: Optional[str] = None

    @property
    def reported(self) -> str:
        return self.display or self.url


@dataclass(frozen=True)
class ProviderOutcome:
    provider: str
    record: ConditionRecord
    classification: Classification
    duration: float
    used_fallback: bool = False
    error: Optional[str] = None


class Provider:
    """Fetches one ski area's conditions and never raises.

    The primary source is tried first; a network failure moves to the
    fallback source (a fresh, separately timed request) when one exists.
    Whatever happens, the outcome carries a record: fully parsed, or degraded
    to just name, status, timestamp and source.
    """

    def __init__(
        self,
        label: str,
        primary: Source,
        fallback: Optional[Source] = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        region: Optional[str] = None,
    ) -> None:
        self.label = label
        self.primary = primary
        self.fallback = fallback
        self.timeout = timeout
        self.region = region

    def __repr__(self) -> str:
        return f"Provider({self.label!r}, {self.primary.url!r})"

    @property
    def url(self) -> str:
        return self.primary.url

    @property
    def fallback_url(self) -> Optional[str]:
        return self.fallback.url if self.fallback else None

    def degraded_record(self, *, source: Optional[str] = None) -> ConditionRecord:
        return ConditionRecord.degraded(self.label, source=source or self.primary.reported)

    async def run(self, client: httpx.AsyncClient) -> ProviderOutcome:
        trace_id = uuid.uuid4().hex
        started = time.perf_counter()
        updated_at = utcnow()
        fetcher = HttpFetcher(client, timeout=self.timeout)

        def finish(
            classification: Classification,
            record: ConditionRecord,
            *,
            used_fallback: bool,
            error: Optional[Exception] = None,
        ) -> ProviderOutcome:
            return ProviderOutcome(
                provider=self.label,
                record=record,
                classification=classification,
                duration=time.perf_counter() - started,
                used_fallback=used_fallback,
                error=str(error) if error else None,
            )

        source = self.primary
        used_fallback = False
        try:
            body = await self._fetch(fetcher, source, trace_id)
        except NetworkError as exc:
            if self.fallback is None:
                return finish(
                    Classification.NETWORK_ERROR,
                    ConditionRecord.degraded(self.label, source=source.reported, updated_at=updated_at),
                    used_fallback=False,
                    error=exc,
                )
            logger.info(
                "provider.fallback",
                trace_id=trace_id,
                provider=self.label,
                url=source.url,
                fallback_url=self.fallback.url,
                error=str(exc),
            )
            source = self.fallback
            used_fallback = True
            try:
                body = await self._fetch(fetcher, source, trace_id)
            except NetworkError as fallback_exc:
                return finish(
                    Classification.NETWORK_ERROR,
                    ConditionRecord.degraded(self.label, source=source.reported, updated_at=updated_at),
                    used_fallback=True,
                    error=fallback_exc,
                )

        try:
            extracted = source.parser(body)
            if extracted.is_empty():
                raise ParseError(f"No condition fields found at {source.url}")
        except Exception as exc:  # any extraction failure degrades this record only
            error = exc if isinstance(exc, ParseError) else ParseError(f"{type(exc).__name__}: {exc}")
            return finish(
                Classification.PARSE_ERROR,
                ConditionRecord.degraded(self.label, source=source.reported, updated_at=updated_at),
                used_fallback=used_fallback,
                error=error,
            )

        record = ConditionRecord.from_fields(self.label, extracted, source=source.reported, updated_at=updated_at)
        return finish(Classification.OK, record, used_fallback=used_fallback)

    async def _fetch(self, fetcher: HttpFetcher, source: Source, trace_id: str) -> str:
        try:
            return await fetcher.fetch_text(source.url, json=source.json, trace_id=trace_id)
        except NetworkError:
            raise
        except Exception as exc:  # malformed URLs and other client-side faults
            raise NetworkError(f"{type(exc).__name__}: {exc}", url=source.url) from exc
