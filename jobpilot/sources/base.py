from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterable

from jobpilot.errors import SourceUnavailable
from jobpilot.models import JobPosting, SearchCriteria

TIER_API = 1
TIER_HTTP = 2
TIER_BROWSER = 3
TIER_SYNTHETIC = 4


@dataclass(frozen=True)
class SourceHealth:
    name: str
    tier: int
    available: bool
    calls: int
    failures: int
    last_count: int
    last_error: str | None


class JobSource(ABC):
    """One provider in the aggregator's fallback chain."""

    name: str = "source"
    tier: int = TIER_API

    def __init__(self) -> None:
        self._calls = 0
        self._failures = 0
        self._last_count = 0
        self._last_error: str | None = None

    def available(self) -> bool:
        return True

    def applies_to(self, criteria: SearchCriteria) -> bool:
        """Whether the source covers these criteria at all (e.g. its region)."""
        return True

    @abstractmethod
    def fetch(self, criteria: SearchCriteria, limit: int) -> list[JobPosting]:
        """Query the provider; may raise on any failure."""

    def search(self, criteria: SearchCriteria, limit: int) -> list[JobPosting]:
        """``fetch`` plus health bookkeeping; still raises so callers can escalate."""
        if not self.available():
            raise SourceUnavailable(self.name, "not configured or disabled")
        self._calls += 1
        try:
            jobs = self.fetch(criteria, limit)[:limit]
        except Exception as exc:
            self._failures += 1
            self._last_error = str(exc)[:200]
            self._last_count = 0
            raise
        self._last_count = len(jobs)
        self._last_error = None
        return jobs

    def report_health(self) -> SourceHealth:
        return SourceHealth(
            name=self.name,
            tier=self.tier,
            available=self.available(),
            calls=self._calls,
            failures=self._failures,
            last_count=self._last_count,
            last_error=self._last_error,
        )

    def _postings(self, payloads: Iterable[dict[str, Any]], *, synthetic: bool = False) -> list[JobPosting]:
        out: list[JobPosting] = []
        for payload in payloads:
            posting = JobPosting.from_payload(payload, source=self.name, synthetic=synthetic)
            if posting is not None:
                out.append(posting)
        return out
