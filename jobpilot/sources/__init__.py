from .base import JobSource, SourceHealth, TIER_API, TIER_HTTP, TIER_BROWSER, TIER_SYNTHETIC
from .jsearch import JSearchSource
from .adzuna import AdzunaSource
from .remotive import RemotiveSource
from .web_search import WebSearchSource
from .browser_search import BrowserSearchSource
from .synthetic import SyntheticSource

from jobpilot.browser import BrowserSession
from jobpilot.config import Settings
from jobpilot.log import get_logger
from jobpilot.throttle import MinIntervalGate

log = get_logger(__name__)

__all__ = [
    "JobSource", "SourceHealth", "JSearchSource", "AdzunaSource", "RemotiveSource",
    "WebSearchSource", "BrowserSearchSource", "SyntheticSource",
    "TIER_API", "TIER_HTTP", "TIER_BROWSER", "TIER_SYNTHETIC",
    "build_sources",
]


def build_sources(settings: Settings, browser: BrowserSession, gate: MinIntervalGate) -> list[JobSource]:
    """The fallback chain in priority order; unconfigured sources stay in the
    chain but report themselves unavailable."""
    sources: list[JobSource] = [
        JSearchSource(settings.jsearch_api_key, timeout=settings.http_timeout_seconds),
        AdzunaSource(settings.adzuna_app_id, settings.adzuna_app_key, timeout=settings.http_timeout_seconds),
        RemotiveSource(timeout=settings.http_timeout_seconds),
        WebSearchSource(gate, timeout=settings.http_timeout_seconds),
        BrowserSearchSource(browser),
        SyntheticSource(),
    ]
    for src in sources:
        log.debug("Registered source %s (tier %d, available=%s)", src.name, src.tier, src.available())
    return sources
