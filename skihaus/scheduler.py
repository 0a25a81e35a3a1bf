from __future__ import annotations

from typing import Awaitable, Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from skihaus.config import SchedulerConfig
from skihaus.logging import get_logger

logger = get_logger(__name__)


def build_scheduler(job: Callable[[], Awaitable[object]], config: SchedulerConfig) -> Optional[AsyncIOScheduler]:
    """Daily scrape on a UTC crontab; ``None`` when scheduling is disabled."""
    if not config.enabled:
        logger.info("scheduler.disabled")
        return None

    scheduler = AsyncIOScheduler(timezone="UTC")
    trigger = CronTrigger.from_crontab(config.cron, timezone="UTC")
    scheduler.add_job(job, trigger=trigger, id="scrape-conditions", max_instances=1, coalesce=True)
    logger.info("scheduler.configured", cron=config.cron)
    return scheduler
