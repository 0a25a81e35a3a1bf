from __future__ import annotations

import enum
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional

import structlog
import yaml
from dotenv import load_dotenv

_DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "config" / "defaults.yaml"
load_dotenv()

DEFAULT_SNOCOUNTRY_KEY = "SnoCountry.example"
_KV_URL_VARS = ("KV_URL", "REDIS_URL", "KV_REST_API_URL")
# Schemes redis-py can connect to; REST endpoints (https://) are not usable.
_REDIS_SCHEMES = ("redis://", "rediss://", "unix://")

logger = structlog.get_logger(__name__)


def _bool_from_env(value: str | None) -> Optional[bool]:
    if value is None:
        return None
    value = value.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    return None


def _merge_dicts(base: Dict, overrides: Mapping) -> Dict:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), Mapping):
            merged[key] = _merge_dicts(base[key], value)
        else:
            merged[key] = value
    return merged


def _load_yaml(path: Path) -> Dict:
    if not path.exists():
        return {}
    return yaml.safe_load(path.read_text()) or {}


class StorageBackend(str, enum.Enum):
    """Where snapshots are persisted."""

    REDIS = "redis"
    FILE = "file"


def redis_url_from_env(env: Mapping[str, str]) -> Optional[str]:
    """First KV variable holding a URL redis-py can connect to."""
    for name in _KV_URL_VARS:
        value = (env.get(name) or "").strip()
        if value.lower().startswith(_REDIS_SCHEMES):
            return value
    return None


def select_backend(env: Mapping[str, str]) -> StorageBackend:
    explicit = env.get("SKIHAUS_STORAGE_BACKEND")
    if explicit:
        return StorageBackend(explicit.strip().lower())
    if redis_url_from_env(env):
        return StorageBackend.REDIS
    configured = [name for name in _KV_URL_VARS if env.get(name)]
    if configured:
        logger.warning("storage.backend_unsupported", variables=configured, fallback=StorageBackend.FILE.value)
    return StorageBackend.FILE


@dataclass
class SchedulerConfig:
    cron: str = "0 12 * * *"
    enabled: bool = True


@dataclass
class LoggingConfig:
    level: str = "INFO"
    json: bool = True


@dataclass
class HttpConfig:
    timeout: float = 15.0


@dataclass
class StorageConfig:
    backend: StorageBackend = StorageBackend.FILE
    file_path: str = "/tmp/skihaus-cache.json"
    redis_url: Optional[str] = None
    key: str = "conditions_v1"
    ttl_hours: float = 36.0


@dataclass
class ProviderSettings:
    label: str
    kind: str
    url: str = ""
    fallback_url: Optional[str] = None
    unit: str = "in"
    state: Optional[str] = None
    region: Optional[str] = None
    selectors: Dict[str, str] = field(default_factory=dict)


@dataclass
class AppConfig:
    providers: List[ProviderSettings] = field(default_factory=list)
    names: Dict[str, str] = field(default_factory=dict)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    snocountry_key: str = DEFAULT_SNOCOUNTRY_KEY
    trigger_secret: Optional[str] = None


def load_config(*, config_path: str | None = None, env: Mapping[str, str] | None = None) -> AppConfig:
    env = dict(os.environ if env is None else env)
    data = _load_yaml(_DEFAULT_CONFIG_PATH)

    explicit_path = config_path or env.get("SKIHAUS_CONFIG_PATH")
    if explicit_path:
        data = _merge_dicts(data, _load_yaml(Path(explicit_path)))

    scheduler_data = dict(data.get("scheduler", {}))
    cron_override = env.get("SKIHAUS_SCHEDULER_CRON")
    if cron_override:
        scheduler_data["cron"] = cron_override
    enabled_override = _bool_from_env(env.get("SKIHAUS_SCHEDULER_ENABLED"))
    if enabled_override is not None:
        scheduler_data["enabled"] = enabled_override

    logging_data = dict(data.get("logging", {}))
    level_override = env.get("SKIHAUS_LOG_LEVEL")
    if level_override:
        logging_data["level"] = level_override
    json_override = _bool_from_env(env.get("SKIHAUS_LOG_JSON"))
    if json_override is not None:
        logging_data["json"] = json_override

    http_data = dict(data.get("http", {}))
    timeout_override = env.get("SKIHAUS_HTTP_TIMEOUT")
    if timeout_override:
        try:
            http_data["timeout"] = float(timeout_override)
        except ValueError:
            pass

    storage_data = dict(data.get("storage", {}))
    storage_data["backend"] = select_backend(env)
    redis_url = redis_url_from_env(env)
    if redis_url:
        storage_data["redis_url"] = redis_url
    cache_file = env.get("SKIHAUS_CACHE_FILE")
    if cache_file:
        storage_data["file_path"] = cache_file

    providers = [ProviderSettings(**provider) for provider in data.get("providers", [])]
    names = {str(raw): str(canonical) for raw, canonical in (data.get("names") or {}).items()}

    return AppConfig(
        providers=providers,
        names=names,
        scheduler=SchedulerConfig(**scheduler_data) if scheduler_data else SchedulerConfig(),
        logging=LoggingConfig(**logging_data) if logging_data else LoggingConfig(),
        http=HttpConfig(**http_data) if http_data else HttpConfig(),
        storage=StorageConfig(**storage_data),
        snocountry_key=env.get("SNOCOUNTRY_API_KEY") or DEFAULT_SNOCOUNTRY_KEY,
        trigger_secret=env.get("CRON_SECRET") or None,
    )


app_config = load_config()
