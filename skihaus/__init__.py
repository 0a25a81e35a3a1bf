"""Ski area conditions aggregator."""

from .models import ConditionRecord, RecordFields, Snapshot, Status
from .pipeline import AdapterEvent, aggregate, collect, run_pipeline
from .resolver import DEFAULT_NAME_MAP, NameResolver
from .scrapers import PROVIDERS_BY_KIND, build_default_providers, build_providers
from .storage import FileSnapshotStore, RedisSnapshotStore, build_store

__all__ = [
    "AdapterEvent",
    "ConditionRecord",
    "DEFAULT_NAME_MAP",
    "FileSnapshotStore",
    "NameResolver",
    "PROVIDERS_BY_KIND",
    "RecordFields",
    "RedisSnapshotStore",
    "Snapshot",
    "Status",
    "aggregate",
    "build_default_providers",
    "build_providers",
    "build_store",
    "collect",
    "run_pipeline",
]
