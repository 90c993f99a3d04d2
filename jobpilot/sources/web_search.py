"""Unauthenticated HTTP discovery: a search-engine lookup of LinkedIn job pages,
with a public Indeed search page as the secondary board.
"""
from __future__ import annotations

import re
from urllib.parse import parse_qs, quote_plus, urljoin, urlparse

import requests
from bs4 import BeautifulSoup

from jobpilot.config import BROWSER_USER_AGENT
from jobpilot.errors import SourceUnavailable
from jobpilot.log import get_logger
from jobpilot.models import JobPosting, SearchCriteria
from jobpilot.sources.base import TIER_HTTP, JobSource
from jobpilot.throttle import MinIntervalGate

log = get_logger(__name__)

GOOGLE_URL = "https://www.google.com/search"
INDEED_URL = "https://www.indeed.com/jobs"

_HEADERS = {
    "User-Agent": BROWSER_USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "DNT": "1",
}
_LINKEDIN_JOB = re.compile(r"https?://[\w.]*linkedin\.com/jobs/view/(?:[\w%-]*-)?(\d+)")


def _unwrap_google_href(href: str) -> str:
    """Google wraps result links as /url?q=<target>&sa=..."""
    if href.startswith("/url?"):
        target = parse_qs(urlparse(href).query).get("q", [""])[0]
        return target
    return href


def parse_google_results(html: str, location: str, limit: int) -> list[dict]:
    soup = BeautifulSoup(html, "html.parser")
    payloads: list[dict] = []
    seen: set[str] = set()
    for a in soup.select("a[href]"):
        href = _unwrap_google_href(a.get("href", ""))
        m = _LINKEDIN_JOB.match(href)
        if not m:
            continue
        job_id = m.group(1)
        if job_id in seen:
            continue
        seen.add(job_id)
        heading = a.find("h3")
        text = (heading or a).get_text(" ", strip=True)
        parts = [p.strip() for p in re.split(r"\s[-–|]\s", text) if p.strip()]
        title = parts[0] if parts else ""
        company = parts[1] if len(parts) > 1 else ""
        # "Acme hiring Frontend Engineer in Pune" style titles
        hiring = re.match(r"(.+?) hiring (.+?)(?: in (.+))?$", title)
        if hiring:
            company, title = hiring.group(1), hiring.group(2)
        payloads.append({
            "source_id": f"linkedin-{job_id}",
            "title": title,
            "company": company,
            "location": location,
            "url": f"https://www.linkedin.com/jobs/view/{job_id}",
        })
        if len(payloads) >= limit:
            break
    return payloads


def parse_indeed_results(html: str, location: str, limit: int) -> list[dict]:
    soup = BeautifulSoup(html, "html.parser")
    payloads: list[dict] = []
    for card in soup.select(".job_seen_beacon, .jobsearch-SerpJobCard"):
        link = card.select_one("h2.jobTitle a, .jobTitle a, h2 a")
        if link is None or not link.get("href"):
            continue
        company = card.select_one("[data-testid='company-name'], .companyName")
        loc = card.select_one("[data-testid='text-location'], .companyLocation")
        snippet = card.select_one(".job-snippet, [data-testid='jobsnippet_footer']")
        payloads.append({
            "source_id": link.get("data-jk") or link.get("id"),
            "title": link.get_text(" ", strip=True),
            "company": company.get_text(" ", strip=True) if company else "",
            "location": loc.get_text(" ", strip=True) if loc else location,
            "url": urljoin("https://www.indeed.com", link["href"]),
            "description": snippet.get_text(" ", strip=True) if snippet else "",
        })
        if len(payloads) >= limit:
            break
    return payloads


class WebSearchSource(JobSource):
    name = "web"
    tier = TIER_HTTP

    def __init__(self, gate: MinIntervalGate, timeout: float = 15.0, session: requests.Session | None = None) -> None:
        super().__init__()
        self.gate = gate
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(_HEADERS)

    def _get(self, url: str, params: dict) -> str:
        self.gate.wait()
        r = self.session.get(url, params=params, timeout=self.timeout)
        if r.status_code == 429 or "/sorry/" in r.url:
            raise SourceUnavailable(self.name, f"{urlparse(url).hostname} is rate limiting us")
        r.raise_for_status()
        return r.text

    def _google(self, criteria: SearchCriteria, limit: int) -> list[dict]:
        q = f"site:linkedin.com/jobs/view {criteria.query} {criteria.location}".strip()
        html = self._get(GOOGLE_URL, {"q": q, "hl": "en", "num": min(limit * 2, 50)})
        return parse_google_results(html, criteria.location, limit)

    def _indeed(self, criteria: SearchCriteria, limit: int) -> list[dict]:
        html = self._get(INDEED_URL, {"q": criteria.query, "l": criteria.location, "sort": "date"})
        return parse_indeed_results(html, criteria.location, limit)

    def fetch(self, criteria: SearchCriteria, limit: int) -> list[JobPosting]:
        last_error: Exception | None = None
        for label, lookup in (("google", self._google), ("indeed", self._indeed)):
            try:
                jobs = self._postings(lookup(criteria, limit))
            except Exception as exc:
                log.warning("Web search via %s failed: %s", label, exc)
                last_error = exc
                continue
            log.info("Web search via %s found %d jobs for %r", label, len(jobs), quote_plus(criteria.query))
            if jobs:
                return jobs
        if last_error is not None:
            raise last_error
        return []
