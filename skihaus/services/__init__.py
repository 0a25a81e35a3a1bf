"""Service layer for triggering runs and serving stored conditions."""

from .conditions import Access, TriggerResult, is_authorized, query_conditions, trigger_scrape

__all__ = ["Access", "TriggerResult", "is_authorized", "query_conditions", "trigger_scrape"]
