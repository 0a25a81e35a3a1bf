"""Trigger and query operations behind the HTTP surface, scheduler and CLI."""
from __future__ import annotations

import hmac
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import httpx

from skihaus.logging import get_logger
from skihaus.models import ConditionRecord, Snapshot, isoformat
from skihaus.pipeline import Clock, Hook, run_pipeline
from skihaus.resolver import NameResolver
from skihaus.scrapers.base import Provider
from skihaus.storage import SnapshotStore

logger = get_logger(__name__)

UNAUTHORIZED_HINT = "Pass ?secret=YOUR_CRON_SECRET or set CRON_SECRET env var to skip auth in dev"
UNAVAILABLE_ERROR = (
    "No conditions data available yet. Scrape has not run; trigger /api/scrape or wait for the daily cron."
)
UNAVAILABLE_HINT = "GET /api/scrape to run now"


@dataclass(frozen=True)
class Access:
    allowed: bool
    method: Optional[str] = None

    def __bool__(self) -> bool:
        return self.allowed


def is_authorized(
    secret: Optional[str],
    authorization: Optional[str] = None,
    query_secret: Optional[str] = None,
) -> Access:
    """Check a trigger request against the shared secret.

    With no secret configured every request is allowed (``dev``). Otherwise a
    ``Bearer`` header is a ``cron`` call and a ``?secret=`` match is ``manual``.
    """
    if not secret:
        return Access(True, "dev")
    if authorization and hmac.compare_digest(authorization, f"Bearer {secret}"):
        return Access(True, "cron")
    if query_secret and hmac.compare_digest(query_secret, secret):
        return Access(True, "manual")
    return Access(False)


def summarize(record: ConditionRecord) -> Dict[str, Any]:
    return {"name": record.name, "base": record.base, "new24": record.new_snow_24, "ok": record.ok}


@dataclass
class TriggerResult:
    snapshot: Snapshot
    saved: bool
    mountains: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": True,
            "scrapedAt": isoformat(self.snapshot.scraped_at),
            "successCount": self.snapshot.success_count,
            "totalCount": self.snapshot.total_count,
            "saved": self.saved,
            "mountains": self.mountains,
        }


async def trigger_scrape(
    providers: Sequence[Provider],
    resolver: NameResolver,
    store: SnapshotStore,
    *,
    client: Optional[httpx.AsyncClient] = None,
    hook: Optional[Hook] = None,
    clock: Optional[Clock] = None,
    method: Optional[str] = None,
    timeout: Optional[float] = None,
) -> TriggerResult:
    """Run the pipeline once and persist the snapshot.

    A failed write is reported as ``saved=False``; the run still succeeds.
    Anything raised outside provider isolation propagates to the caller.
    """
    logger.info("trigger.start", method=method, providers=len(providers))
    snapshot = await run_pipeline(
        providers, resolver, client=client, hook=hook, clock=clock, timeout=timeout
    )
    saved = store.put(snapshot)
    if not saved:
        logger.warning("trigger.not_saved", scraped_at=isoformat(snapshot.scraped_at))
    return TriggerResult(
        snapshot=snapshot,
        saved=saved,
        mountains=[summarize(record) for record in snapshot.mountains],
    )


def query_conditions(store: SnapshotStore) -> Dict[str, Any]:
    """Latest stored snapshot as a response body, or an unavailable body."""
    snapshot = store.get()
    if snapshot is None:
        return {"ok": False, "error": UNAVAILABLE_ERROR, "hint": UNAVAILABLE_HINT}
    data = snapshot.to_dict()
    return {
        "ok": True,
        "scrapedAt": data["scrapedAt"],
        "storedAt": data.get("storedAt"),
        "successCount": data["successCount"],
        "totalCount": data["totalCount"],
        "mountains": data["mountains"],
    }
