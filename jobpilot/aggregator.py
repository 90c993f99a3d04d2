"""
Tiered job discovery.

Sources are tried tier by tier (structured APIs → plain HTTP → browser →
synthetic). A tier is consulted only while the pool collected so far is
below the minimum pool size, and the synthetic tier only when nothing real
came back. Any failure inside a source is logged and treated as "zero
results from that source"; ``search`` itself never raises.
"""
from __future__ import annotations

from itertools import groupby

from jobpilot.log import get_logger
from jobpilot.models import JobPosting, SearchCriteria
from jobpilot.sources.base import TIER_API, TIER_SYNTHETIC, JobSource, SourceHealth

log = get_logger(__name__)


class JobSourceAggregator:
    def __init__(self, sources: list[JobSource], min_pool_size: int = 3) -> None:
        self.sources = sorted(sources, key=lambda s: s.tier)
        self.min_pool_size = min_pool_size

    def search(self, criteria: SearchCriteria, limit: int) -> list[JobPosting]:
        try:
            return self._search(criteria, limit)
        except Exception:
            log.exception("Aggregator failed unexpectedly, returning no jobs")
            return []

    def _search(self, criteria: SearchCriteria, limit: int) -> list[JobPosting]:
        if limit <= 0:
            return []
        pool_target = min(self.min_pool_size, limit)
        results: list[JobPosting] = []

        for tier, group in groupby(self.sources, key=lambda s: s.tier):
            if len(results) >= limit:
                break
            if tier == TIER_SYNTHETIC and results:
                break
            if tier > TIER_API and tier != TIER_SYNTHETIC and len(results) >= pool_target:
                break
            for source in group:
                if len(results) >= limit:
                    break
                results.extend(self._query(source, criteria, limit - len(results)))
            log.info("After tier %d: %d job(s) collected", tier, len(results))

        if results and all(j.synthetic for j in results):
            log.warning("All real sources came back empty, serving synthetic postings")
        return results[:limit]

    def _query(self, source: JobSource, criteria: SearchCriteria, remaining: int) -> list[JobPosting]:
        if not source.available():
            log.debug("[%s] unavailable, skipped", source.name)
            return []
        if not source.applies_to(criteria):
            log.debug("[%s] does not cover %r, skipped", source.name, criteria.location)
            return []
        try:
            batch = source.search(criteria, remaining)
        except Exception as exc:
            log.warning("[%s] FAILED: %s", source.name, exc)
            return []
        log.info("[%s] returned %d jobs", source.name, len(batch))
        return batch

    def health(self) -> list[SourceHealth]:
        return [s.report_health() for s in self.sources]
