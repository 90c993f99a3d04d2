"""LinkedIn public job search rendered in the Playwright session."""
from __future__ import annotations

from urllib.parse import urlencode, urlsplit, urlunsplit

from bs4 import BeautifulSoup

from jobpilot.browser import BrowserSession
from jobpilot.log import get_logger
from jobpilot.models import JobPosting, SearchCriteria
from jobpilot.sources.base import TIER_BROWSER, JobSource

log = get_logger(__name__)

SEARCH_URL = "https://www.linkedin.com/jobs/search/"

_JOB_TYPE_CODES = {"full-time": "F", "part-time": "P", "contract": "C", "internship": "I"}
_EXPERIENCE_CODES = {"entry-level": "2", "mid-level": "3,4", "senior-level": "4", "executive": "5,6"}


def search_url(criteria: SearchCriteria) -> str:
    params = {
        "keywords": criteria.query,
        "location": criteria.location,
        "f_TPR": "r86400",
        "sortBy": "DD",
    }
    if criteria.job_type in _JOB_TYPE_CODES:
        params["f_JT"] = _JOB_TYPE_CODES[criteria.job_type]
    if criteria.experience_level in _EXPERIENCE_CODES:
        params["f_E"] = _EXPERIENCE_CODES[criteria.experience_level]
    return f"{SEARCH_URL}?{urlencode(params)}"


def _strip_tracking(url: str) -> str:
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


def parse_search_cards(html: str, limit: int) -> list[dict]:
    soup = BeautifulSoup(html, "html.parser")
    payloads: list[dict] = []
    for card in soup.select(".base-search-card, .job-search-card"):
        link = card.select_one("a.base-card__full-link, .base-search-card__title a, a[href*='/jobs/view/']")
        title = card.select_one(".base-search-card__title")
        company = card.select_one(".base-search-card__subtitle")
        loc = card.select_one(".job-search-card__location")
        posted = card.select_one("time")
        if link is None or not link.get("href"):
            continue
        payloads.append({
            "source_id": card.get("data-entity-urn") or link["href"],
            "title": (title or link).get_text(" ", strip=True),
            "company": company.get_text(" ", strip=True) if company else "",
            "location": loc.get_text(" ", strip=True) if loc else "",
            "url": _strip_tracking(link["href"]),
            "posted_date": posted.get("datetime") if posted else None,
        })
        if len(payloads) >= limit:
            break
    return payloads


class BrowserSearchSource(JobSource):
    name = "browser"
    tier = TIER_BROWSER

    def __init__(self, session: BrowserSession) -> None:
        super().__init__()
        self.session = session

    def available(self) -> bool:
        return self.session.available

    def fetch(self, criteria: SearchCriteria, limit: int) -> list[JobPosting]:
        html = self.session.navigate(search_url(criteria))
        jobs = self._postings(parse_search_cards(html, limit))
        log.info("Browser search found %d jobs", len(jobs))
        return jobs
