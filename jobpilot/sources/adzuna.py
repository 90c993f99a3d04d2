"""Adzuna job search, a regional board, consulted when the location names a covered country.

Free tier: 250 requests/day.  Sign up at https://developer.adzuna.com/
"""
from __future__ import annotations

import re

import requests

from jobpilot.errors import SourceUnavailable
from jobpilot.log import get_logger
from jobpilot.models import JobPosting, SearchCriteria
from jobpilot.retry import is_auth_error, retry
from jobpilot.sources.base import TIER_API, JobSource

log = get_logger(__name__)

BASE_URL = "https://api.adzuna.com/v1/api/jobs"

# Location signal → Adzuna country code.
REGION_SIGNALS: dict[str, str] = {
    "india": "in", "bangalore": "in", "bengaluru": "in", "hyderabad": "in",
    "pune": "in", "mumbai": "in", "delhi": "in", "chennai": "in",
    "gurgaon": "in", "gurugram": "in", "noida": "in",
    "uk": "gb", "united kingdom": "gb", "england": "gb", "london": "gb",
    "manchester": "gb",
    "germany": "de", "berlin": "de", "munich": "de",
    "canada": "ca", "toronto": "ca", "vancouver": "ca",
    "australia": "au", "sydney": "au", "melbourne": "au",
    "singapore": "sg",
}

_COUNTRY_WORDS = {"india", "uk", "united kingdom", "england", "germany", "canada", "australia", "singapore"}


def region_for(location: str) -> str | None:
    """Country code when ``location`` mentions a covered region; None otherwise."""
    loc = (location or "").lower()
    for signal, code in REGION_SIGNALS.items():
        if re.search(rf"\b{re.escape(signal)}\b", loc):
            return code
    return None


class AdzunaSource(JobSource):
    name = "adzuna"
    tier = TIER_API

    def __init__(self, app_id: str, app_key: str, timeout: float = 15.0) -> None:
        super().__init__()
        self.app_id = app_id
        self.app_key = app_key
        self.timeout = timeout

    def available(self) -> bool:
        return bool(self.app_id and self.app_key)

    def applies_to(self, criteria: SearchCriteria) -> bool:
        return region_for(criteria.location) is not None

    @retry(max_attempts=3, base_delay=2.0, retryable=(requests.RequestException, OSError), giveup=is_auth_error)
    def _request(self, country: str, params: dict) -> dict:
        r = requests.get(f"{BASE_URL}/{country}/search/1", params=params, timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def fetch(self, criteria: SearchCriteria, limit: int) -> list[JobPosting]:
        country = region_for(criteria.location)
        if country is None:
            return []
        params: dict = {
            "app_id": self.app_id,
            "app_key": self.app_key,
            "what": criteria.query or "software engineer",
            "results_per_page": min(limit, 50),
            "content-type": "application/json",
        }
        where = criteria.location.strip()
        if where and where.lower() not in _COUNTRY_WORDS:
            params["where"] = where
        if criteria.job_type == "full-time":
            params["full_time"] = 1
        elif criteria.job_type == "contract":
            params["contract"] = 1

        try:
            data = self._request(country, params)
        except requests.HTTPError as exc:
            if is_auth_error(exc):
                raise SourceUnavailable(self.name, "unauthorized, check ADZUNA_APP_ID/ADZUNA_APP_KEY") from exc
            raise

        payloads = []
        for hit in data.get("results", []):
            payloads.append({
                "source_id": hit.get("id"),
                "title": hit.get("title"),
                "company": (hit.get("company") or {}).get("display_name"),
                "location": (hit.get("location") or {}).get("display_name"),
                "url": hit.get("redirect_url"),
                "description": hit.get("description"),
                "posted_date": hit.get("created"),
            })
        jobs = self._postings(payloads)
        log.debug("Adzuna country=%s where=%r returned %d jobs", country, params.get("where"), len(jobs))
        return jobs
