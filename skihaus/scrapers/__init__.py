from __future__ import annotations

from functools import partial
from typing import Callable, Dict, Iterable, List, Optional

from ..config import AppConfig, ProviderSettings, app_config
from ..logging import get_logger
from ..normalization import Unit
from ..resolver import NameResolver
from . import jay_peak, killington, mountain_report, resort_page, snocountry, tremblant
from .base import Classification, Provider, ProviderOutcome, Source

logger = get_logger(__name__)

ProviderFactory = Callable[..., Provider]


def _resort_page(settings: ProviderSettings, *, timeout: float, **_: object) -> Provider:
    if not settings.selectors:
        raise ValueError(f"{settings.label}: resort_page providers need selectors")
    primary = Source(settings.url, resort_page.make_parser(settings.selectors, unit=settings.unit))
    fallback = None
    if settings.fallback_url:
        fallback = Source(settings.fallback_url, primary.parser)
    return Provider(settings.label, primary, fallback, timeout=timeout, region=settings.region)


def _mountain_report(settings: ProviderSettings, *, timeout: float, **_: object) -> Provider:
    primary = Source(settings.url, mountain_report.make_parser(settings.selectors, unit=settings.unit))
    return Provider(settings.label, primary, timeout=timeout, region=settings.region)


def _killington(settings: ProviderSettings, *, timeout: float, **_: object) -> Provider:
    primary = Source(settings.url or killington.DEFAULT_REPORT_URL, killington.parse_stats, json=True)
    fallback = Source(
        settings.fallback_url or killington.DEFAULT_FALLBACK_URL,
        partial(killington.parse_snow_report, selectors=settings.selectors),
    )
    return Provider(settings.label, primary, fallback, timeout=timeout, region=settings.region)


def _tremblant(settings: ProviderSettings, *, timeout: float, **_: object) -> Provider:
    primary = Source(settings.url or tremblant.DEFAULT_REPORT_URL, tremblant.parse_conditions, json=True)
    fallback = Source(
        settings.fallback_url or tremblant.DEFAULT_FALLBACK_URL,
        partial(tremblant.parse_fallback, selectors=settings.selectors),
    )
    return Provider(settings.label, primary, fallback, timeout=timeout, region=settings.region)


def _jay_peak(settings: ProviderSettings, *, timeout: float, **_: object) -> Provider:
    primary = Source(
        settings.url or jay_peak.DEFAULT_REPORT_URL,
        partial(jay_peak.parse_conditions, selectors=settings.selectors),
    )
    return Provider(settings.label, primary, timeout=timeout, region=settings.region)


def _snocountry(
    settings: ProviderSettings,
    *,
    timeout: float,
    resolver: NameResolver,
    snocountry_key: str,
) -> Provider:
    if not settings.state:
        raise ValueError(f"{settings.label}: snocountry providers need a state")
    return snocountry.SnoCountryProvider(
        settings.label,
        settings.state,
        resolver,
        api_key=snocountry_key,
        timeout=timeout,
        region=settings.region,
    )


PROVIDERS_BY_KIND: Dict[str, ProviderFactory] = {
    "resort_page": _resort_page,
    "mountain_report": _mountain_report,
    "killington": _killington,
    "tremblant": _tremblant,
    "jay_peak": _jay_peak,
    "snocountry": _snocountry,
}


def build_providers(
    settings: Iterable[ProviderSettings],
    resolver: NameResolver,
    *,
    snocountry_key: str,
    timeout: Optional[float] = None,
) -> List[Provider]:
    """Instantiate configured providers in registration order.

    Raises ``ValueError`` for unknown kinds, labels the resolver cannot map,
    two providers for the same canonical area, or an invalid unit.
    """
    providers: List[Provider] = []
    seen: Dict[str, str] = {}
    for item in settings:
        factory = PROVIDERS_BY_KIND.get(item.kind)
        if factory is None:
            raise ValueError(f"{item.label}: unknown provider kind {item.kind!r}")
        canonical = resolver.resolve(item.label)
        if canonical is None:
            raise ValueError(f"{item.label}: label has no canonical name; add it to the names config")
        if canonical in seen:
            raise ValueError(f"{item.label}: {canonical} is already provided by {seen[canonical]}")
        Unit(item.unit)
        seen[canonical] = item.label
        providers.append(
            factory(
                item,
                timeout=timeout if timeout is not None else app_config.http.timeout,
                resolver=resolver,
                snocountry_key=snocountry_key,
            )
        )
    logger.debug("providers.built", count=len(providers))
    return providers


def build_resolver(config: AppConfig | None = None) -> NameResolver:
    resolver = NameResolver()
    resolver.extend((config or app_config).names)
    return resolver


def build_default_providers(
    config: AppConfig | None = None, resolver: NameResolver | None = None
) -> List[Provider]:
    config = config or app_config
    if resolver is None:
        resolver = build_resolver(config)
    return build_providers(
        config.providers,
        resolver,
        snocountry_key=config.snocountry_key,
        timeout=config.http.timeout,
    )


__all__ = [
    "Classification",
    "PROVIDERS_BY_KIND",
    "Provider",
    "ProviderOutcome",
    "Source",
    "build_default_providers",
    "build_providers",
    "build_resolver",
]
