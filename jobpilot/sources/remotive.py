"""Remotive: free API for remote tech jobs (no API key required).

Docs: https://remotive.com/api/remote-jobs
"""
from __future__ import annotations

import requests
from bs4 import BeautifulSoup

from jobpilot.log import get_logger
from jobpilot.models import JobPosting, SearchCriteria
from jobpilot.retry import retry
from jobpilot.sources.base import TIER_API, JobSource

log = get_logger(__name__)

API_URL = "https://remotive.com/api/remote-jobs"

# Remotive matches short, broad terms far better than full role titles.
_GENERIC_WORDS = {
    "senior", "junior", "lead", "staff", "principal", "manager",
    "engineer", "developer", "specialist", "consultant", "ii", "iii", "iv",
}


def _search_terms(keywords: tuple[str, ...]) -> list[str]:
    terms: list[str] = []
    for kw in keywords[:3]:
        distinctive = [w for w in kw.lower().split() if w not in _GENERIC_WORDS]
        if distinctive and distinctive[0] not in terms:
            terms.append(distinctive[0])
    return terms or ["engineer"]


class RemotiveSource(JobSource):
    name = "remotive"
    tier = TIER_API

    def __init__(self, timeout: float = 15.0) -> None:
        super().__init__()
        self.timeout = timeout

    @retry(max_attempts=2, base_delay=1.5, retryable=(requests.RequestException, OSError))
    def _request(self, search: str, limit: int) -> dict:
        r = requests.get(API_URL, params={"search": search, "limit": limit}, timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def fetch(self, criteria: SearchCriteria, limit: int) -> list[JobPosting]:
        jobs: list[JobPosting] = []
        seen: set[str] = set()
        errors: list[Exception] = []
        for term in _search_terms(criteria.keywords):
            if len(jobs) >= limit:
                break
            try:
                data = self._request(term, limit)
            except Exception as exc:
                log.warning("Remotive search=%r error: %s", term, exc)
                errors.append(exc)
                continue
            payloads = []
            for hit in data.get("jobs", []):
                desc = BeautifulSoup(hit.get("description") or "", "html.parser").get_text(" ", strip=True)
                tags = hit.get("tags") or []
                if tags:
                    desc += " " + " ".join(str(t) for t in tags)
                payloads.append({
                    "source_id": hit.get("id"),
                    "title": hit.get("title"),
                    "company": hit.get("company_name"),
                    "location": hit.get("candidate_required_location") or "Remote",
                    "url": hit.get("url"),
                    "description": desc,
                    "posted_date": hit.get("publication_date"),
                })
            for job in self._postings(payloads):
                if job.url not in seen:
                    seen.add(job.url)
                    jobs.append(job)
            log.debug("Remotive search=%r returned %d jobs", term, len(payloads))
        if not jobs and errors:
            raise errors[-1]
        return jobs[:limit]
