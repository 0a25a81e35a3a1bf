"""Fan-out over every provider, then resolve, deduplicate and count.

One run launches all providers at once and waits for every one of them to
settle; there is no concurrency cap and no partial result. After the barrier a
single pass turns outcomes into a :class:`Snapshot`.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence

import httpx

from .exceptions import NetworkError
from .http_client import build_client
from .logging import get_logger, log_adapter_event
from .models import ConditionRecord, Snapshot, utcnow
from .resolver import NameResolver
from .scrapers.base import Classification, Provider, ProviderOutcome

logger = get_logger(__name__)


@dataclass(frozen=True)
class AdapterEvent:
    provider: str
    classification: Classification
    duration: float
    used_fallback: bool
    error: Optional[str] = None

    @classmethod
    def from_outcome(cls, outcome: ProviderOutcome) -> "AdapterEvent":
        return cls(
            provider=outcome.provider,
            classification=outcome.classification,
            duration=outcome.duration,
            used_fallback=outcome.used_fallback,
            error=outcome.error,
        )


Hook = Callable[[AdapterEvent], None]
Clock = Callable[[], datetime]


def _escaped(provider: Provider, exc: BaseException, started: float) -> ProviderOutcome:
    classification = (
        Classification.NETWORK_ERROR if isinstance(exc, NetworkError) else Classification.PARSE_ERROR
    )
    return ProviderOutcome(
        provider=provider.label,
        record=provider.degraded_record(),
        classification=classification,
        duration=time.perf_counter() - started,
        error=f"{type(exc).__name__}: {exc}",
    )


def _emit(hook: Hook, event: AdapterEvent) -> None:
    try:
        hook(event)
    except Exception as exc:  # a broken sink must not fail the run
        logger.warning("pipeline.hook_failed", provider=event.provider, error=str(exc))


async def collect(
    providers: Sequence[Provider],
    client: httpx.AsyncClient,
    *,
    hook: Optional[Hook] = None,
) -> List[ProviderOutcome]:
    """Run every provider concurrently and return one outcome per provider.

    Outcomes are reported in registration order regardless of completion order.
    """
    hook = hook or log_adapter_event
    started = time.perf_counter()
    results = await asyncio.gather(
        *(provider.run(client) for provider in providers),
        return_exceptions=True,
    )

    outcomes: List[ProviderOutcome] = []
    for provider, result in zip(providers, results):
        if isinstance(result, (KeyboardInterrupt, SystemExit)):
            raise result
        if isinstance(result, BaseException):
            result = _escaped(provider, result, started)
        outcomes.append(result)
        _emit(hook, AdapterEvent.from_outcome(result))
    return outcomes


def aggregate(
    outcomes: Sequence[ProviderOutcome],
    resolver: NameResolver,
    *,
    scraped_at: datetime,
) -> Snapshot:
    """Resolve names, keep the first record per canonical name, count successes.

    A record whose name does not resolve falls back to its provider's label;
    only when that fails too is the record dropped.
    """
    mountains: List[ConditionRecord] = []
    seen: Dict[str, str] = {}
    for outcome in outcomes:
        record = outcome.record
        canonical = resolver.resolve(record.name)
        if canonical is None:
            # The provider's own label keeps its slot in the snapshot.
            canonical = resolver.resolve(outcome.provider)
            logger.warning(
                "resolver.unmapped",
                provider=outcome.provider,
                raw_name=record.name,
                kept_as=canonical,
            )
            if canonical is None:
                continue
        if canonical in seen:
            logger.warning(
                "pipeline.duplicate",
                provider=outcome.provider,
                name=canonical,
                kept=seen[canonical],
            )
            continue
        seen[canonical] = outcome.provider
        mountains.append(record.with_name(canonical))

    return Snapshot(
        mountains=tuple(mountains),
        scraped_at=scraped_at,
        success_count=sum(1 for record in mountains if record.ok),
        total_count=len(mountains),
    )


async def run_pipeline(
    providers: Sequence[Provider],
    resolver: NameResolver,
    *,
    client: Optional[httpx.AsyncClient] = None,
    hook: Optional[Hook] = None,
    clock: Optional[Clock] = None,
    timeout: Optional[float] = None,
) -> Snapshot:
    """Execute one full run and return its snapshot."""
    scraped_at = (clock or utcnow)()
    started = time.perf_counter()
    logger.info("scrape.start", providers=len(providers), scraped_at=scraped_at.isoformat())

    if client is None:
        client_kwargs = {} if timeout is None else {"timeout": timeout}
        async with build_client(**client_kwargs) as owned:
            outcomes = await collect(providers, owned, hook=hook)
    else:
        outcomes = await collect(providers, client, hook=hook)

    snapshot = aggregate(outcomes, resolver, scraped_at=scraped_at)
    logger.info(
        "pipeline.complete",
        success_count=snapshot.success_count,
        total_count=snapshot.total_count,
        elapsed=round(time.perf_counter() - started, 2),
    )
    return snapshot
