from __future__ import annotations

import json
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

import redis

from .config import StorageBackend, StorageConfig, app_config
from .exceptions import StorageError
from .logging import get_logger
from .models import Snapshot, isoformat, parse_timestamp, utcnow

logger = get_logger(__name__)

RETENTION = timedelta(hours=36)


class SnapshotStore(Protocol):
    """Holds the latest snapshot. Readers never see a half-written one."""

    def get(self) -> Optional[Snapshot]:
        ...

    def put(self, snapshot: Snapshot) -> bool:
        ...


def _write_failed(backend: str, exc: Exception) -> bool:
    error = exc if isinstance(exc, StorageError) else StorageError(f"{type(exc).__name__}: {exc}")
    logger.warning("storage.write_failed", backend=backend, error=str(error))
    return False


def _read_failed(backend: str, exc: Exception) -> None:
    logger.warning("storage.read_failed", backend=backend, error=f"{type(exc).__name__}: {exc}")
    return None


class FileSnapshotStore:
    """Persists the latest snapshot to a local JSON file."""

    def __init__(self, path: Path | str = Path("/tmp/skihaus-cache.json"), ttl: timedelta = RETENTION) -> None:
        self.path = Path(path)
        self.ttl = ttl

    def get(self) -> Optional[Snapshot]:
        try:
            if not self.path.exists():
                return None
            data = json.loads(self.path.read_text())
            if not isinstance(data, dict):
                raise ValueError(f"Expected a snapshot object, got {type(data).__name__}")
            expires_at = data.get("expiresAt")
            if expires_at and parse_timestamp(expires_at) <= utcnow():
                return None
            return Snapshot.from_dict(data)
        except (OSError, ValueError, TypeError, KeyError) as exc:
            return _read_failed("file", exc)

    def put(self, snapshot: Snapshot) -> bool:
        stored_at = utcnow()
        payload: Dict[str, Any] = snapshot.stored(stored_at).to_dict()
        payload["expiresAt"] = isoformat(stored_at + self.ttl)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(payload, indent=2))
            # Atomic swap so a concurrent reader sees the old or the new file.
            tmp_path.replace(self.path)
        except OSError as exc:
            self._discard(tmp_path)
            return _write_failed("file", exc)
        return True

    @staticmethod
    def _discard(tmp_path: Path) -> None:
        try:
            if tmp_path.exists():
                tmp_path.unlink()
        except OSError as exc:
            logger.warning("storage.cleanup_failed", path=str(tmp_path), error=str(exc))


class RedisSnapshotStore:
    """Persists the latest snapshot under one Redis key with an expiry."""

    def __init__(self, client: "redis.Redis", key: str = "conditions_v1", ttl: timedelta = RETENTION) -> None:
        self.client = client
        self.key = key
        self.ttl = ttl

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> "RedisSnapshotStore":
        return cls(redis.from_url(url), **kwargs)

    def get(self) -> Optional[Snapshot]:
        try:
            raw = self.client.get(self.key)
            if raw is None:
                return None
            return Snapshot.from_dict(json.loads(raw))
        except (redis.RedisError, ValueError, TypeError, KeyError) as exc:
            return _read_failed("redis", exc)

    def put(self, snapshot: Snapshot) -> bool:
        payload = json.dumps(snapshot.stored(utcnow()).to_dict())
        try:
            self.client.set(self.key, payload, ex=int(self.ttl.total_seconds()))
        except redis.RedisError as exc:
            return _write_failed("redis", exc)
        return True


def build_store(settings: Optional[StorageConfig] = None) -> SnapshotStore:
    settings = settings or app_config.storage
    ttl = timedelta(hours=settings.ttl_hours)
    backend = StorageBackend(settings.backend)
    if backend is StorageBackend.REDIS:
        if not settings.redis_url:
            raise ValueError(
                "Redis storage selected but KV_URL and REDIS_URL hold no redis://, rediss:// or unix:// URL"
            )
        logger.info("storage.backend", backend=backend.value, key=settings.key)
        return RedisSnapshotStore.from_url(settings.redis_url, key=settings.key, ttl=ttl)
    logger.info("storage.backend", backend=backend.value, path=settings.file_path)
    return FileSnapshotStore(settings.file_path, ttl=ttl)
