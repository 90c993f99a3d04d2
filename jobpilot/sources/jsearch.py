"""JSearch API (RapidAPI): aggregated listings from the major job boards."""
from __future__ import annotations

import requests

from jobpilot.errors import SourceUnavailable
from jobpilot.log import get_logger
from jobpilot.models import JobPosting, SearchCriteria
from jobpilot.retry import is_auth_error, retry
from jobpilot.sources.base import TIER_API, JobSource

log = get_logger(__name__)

_EXPERIENCE_MAP: dict[str, str] = {
    "entry-level": "under_3_years_experience",
    "mid-level": "more_than_3_years_experience",
    "senior-level": "more_than_3_years_experience",
}
_JOB_TYPE_MAP: dict[str, str] = {
    "full-time": "FULLTIME",
    "part-time": "PARTTIME",
    "contract": "CONTRACTOR",
    "internship": "INTERN",
}


class JSearchSource(JobSource):
    name = "jsearch"
    tier = TIER_API
    BASE = "https://jsearch.p.rapidapi.com"

    def __init__(self, api_key: str, timeout: float = 15.0) -> None:
        super().__init__()
        self.api_key = api_key
        self.timeout = timeout

    def available(self) -> bool:
        return bool(self.api_key)

    @retry(max_attempts=3, base_delay=2.0, retryable=(requests.RequestException, OSError), giveup=is_auth_error)
    def _request(self, params: dict) -> dict:
        r = requests.get(
            f"{self.BASE}/search",
            params=params,
            headers={
                "X-RapidAPI-Key": self.api_key,
                "X-RapidAPI-Host": "jsearch.p.rapidapi.com",
            },
            timeout=self.timeout,
        )
        r.raise_for_status()
        return r.json()

    def fetch(self, criteria: SearchCriteria, limit: int) -> list[JobPosting]:
        query = criteria.query or "software engineer"
        if criteria.location:
            query = f"{query} in {criteria.location}"
        params = {"query": query, "num_pages": "1", "date_posted": "week"}
        if criteria.experience_level in _EXPERIENCE_MAP:
            params["job_requirements"] = _EXPERIENCE_MAP[criteria.experience_level]
        if criteria.job_type in _JOB_TYPE_MAP:
            params["employment_types"] = _JOB_TYPE_MAP[criteria.job_type]

        try:
            data = self._request(params)
        except requests.HTTPError as exc:
            if is_auth_error(exc):
                raise SourceUnavailable(self.name, "unauthorized, check the RapidAPI subscription") from exc
            raise

        payloads = []
        for hit in (data.get("data") or [])[:limit]:
            city = hit.get("job_city") or ""
            country = hit.get("job_country") or ""
            payloads.append({
                "source_id": hit.get("job_id"),
                "title": hit.get("job_title"),
                "company": hit.get("employer_name"),
                "location": ", ".join(p for p in (city, country) if p),
                "url": hit.get("job_apply_link") or hit.get("job_google_link"),
                "description": hit.get("job_description"),
                "posted_date": hit.get("job_posted_at_timestamp") or hit.get("job_posted_at_datetime_utc"),
            })
        jobs = self._postings(payloads)
        log.debug("JSearch query=%r returned %d jobs", query, len(jobs))
        return jobs
