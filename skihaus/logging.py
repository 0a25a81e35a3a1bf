from __future__ import annotations

import logging as py_logging
from typing import TYPE_CHECKING, Any, List, MutableMapping, Optional

import structlog

from skihaus.config import LoggingConfig, app_config

if TYPE_CHECKING:
    from skihaus.pipeline import AdapterEvent

SERVICE_NAME = "skihaus"
# httpx logs every request at INFO; one run makes dozens of them.
_NOISY_LOGGERS = ("httpx", "httpcore", "apscheduler.executors.default")

_configured = False


def _add_service(_: Any, __: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def _level(config: LoggingConfig) -> int:
    return getattr(py_logging, str(config.level).upper(), py_logging.INFO)


def _processors(json_output: bool) -> List[Any]:
    shared: List[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _add_service,
        structlog.processors.StackInfoRenderer(),
    ]
    if json_output:
        return shared + [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    # ConsoleRenderer formats exc_info itself.
    return shared + [structlog.dev.ConsoleRenderer()]


def setup_logging(config: Optional[LoggingConfig] = None) -> None:
    global _configured
    if _configured:
        return

    config = config or app_config.logging
    level = _level(config)
    structlog.configure(
        processors=_processors(config.json),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    py_logging.basicConfig(level=level)
    for name in _NOISY_LOGGERS:
        py_logging.getLogger(name).setLevel(max(level, py_logging.WARNING))
    _configured = True


def get_logger(name: str = __name__):
    if not _configured:
        setup_logging()
    return structlog.get_logger(name)


def log_adapter_event(event: "AdapterEvent") -> None:
    """Default observability hook: one structured line per provider outcome."""
    logger = get_logger("skihaus.pipeline")
    log = logger.info if event.classification.value == "ok" else logger.warning
    log(
        "provider.outcome",
        provider=event.provider,
        classification=event.classification.value,
        duration=round(event.duration, 3),
        used_fallback=event.used_fallback,
        error=event.error,
    )
