"""Synthetic postings: terminal fallback so callers always get something to explore.

Every posting is flagged ``synthetic=True`` and points at example.com, so it
can never be mistaken for (or applied to as) a real listing.
"""
from __future__ import annotations

import hashlib
from datetime import datetime, timezone

from jobpilot.log import get_logger
from jobpilot.models import JobPosting, SearchCriteria
from jobpilot.sources.base import TIER_SYNTHETIC, JobSource

log = get_logger(__name__)

COMPANIES: list[str] = [
    "Northwind Labs", "Contoso Cloud", "Fabrikam Systems", "Tailspin Software",
    "Adatum Digital",
]
TITLES: list[str] = [
    "Senior Frontend Developer",
    "Full Stack Engineer",
    "Software Engineer",
    "Backend Engineer",
    "Platform Engineer",
]


def _day() -> str:
    """Date-based key so synthetic urls differ per day (and are re-shown daily)."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


class SyntheticSource(JobSource):
    name = "synthetic"
    tier = TIER_SYNTHETIC

    def __init__(self, count: int = 5, day: str | None = None) -> None:
        super().__init__()
        self.count = count
        self.day = day

    def fetch(self, criteria: SearchCriteria, limit: int) -> list[JobPosting]:
        day = self.day or _day()
        skills = ", ".join(criteria.keywords) or "software development"
        location = criteria.location or "Remote"
        seed = hashlib.sha256(f"{criteria.query}|{location}|{day}".encode()).hexdigest()[:8]
        payloads = []
        for i in range(min(self.count, limit)):
            company = COMPANIES[i % len(COMPANIES)]
            title = TITLES[i % len(TITLES)]
            payloads.append({
                "source_id": f"synthetic-{seed}-{i + 1}",
                "title": title,
                "company": company,
                "location": location,
                "url": f"https://example.com/jobs/synthetic-{day}-{seed}-{i + 1}",
                "description": (
                    f"SAMPLE LISTING, not a real job. {company} is looking for a {title} "
                    f"with experience in {skills}. {location}-based role."
                ),
                "posted_date": day,
            })
        log.info("SyntheticSource generated %d sample postings", len(payloads))
        return self._postings(payloads, synthetic=True)
