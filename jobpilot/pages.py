"""Fetch a job page and pull the full description out of it."""
from __future__ import annotations

import json
from dataclasses import dataclass

import requests
from bs4 import BeautifulSoup

from jobpilot.browser import BrowserSession
from jobpilot.config import BROWSER_USER_AGENT
from jobpilot.errors import ExtractionFailure, SourceUnavailable
from jobpilot.log import get_logger
from jobpilot.throttle import MinIntervalGate

log = get_logger(__name__)

DESCRIPTION_SELECTORS: list[str] = [
    ".show-more-less-html__markup",
    ".description__text",
    ".jobs-description__content",
    "#jobDescriptionText",
    ".job-description",
    "[data-testid='job-description']",
    "[class*='job-description']",
]
MIN_DESCRIPTION_CHARS = 80
MAX_DESCRIPTION_CHARS = 12000


@dataclass(frozen=True)
class JobPage:
    url: str
    html: str
    description: str


def _json_ld_description(soup: BeautifulSoup) -> str:
    for script in soup.select("script[type='application/ld+json']"):
        try:
            data = json.loads(script.string or "")
        except (json.JSONDecodeError, TypeError):
            continue
        items = data if isinstance(data, list) else data.get("@graph", [data]) if isinstance(data, dict) else []
        for item in items:
            if isinstance(item, dict) and item.get("@type") == "JobPosting" and item.get("description"):
                return BeautifulSoup(item["description"], "html.parser").get_text(" ", strip=True)
    return ""


def extract_description(html: str) -> str:
    """Description text from JSON-LD, known containers, then the page body."""
    soup = BeautifulSoup(html or "", "html.parser")
    text = _json_ld_description(soup)
    if len(text) < MIN_DESCRIPTION_CHARS:
        for sel in DESCRIPTION_SELECTORS:
            el = soup.select_one(sel)
            if el is not None:
                candidate = el.get_text(" ", strip=True)
                if len(candidate) >= MIN_DESCRIPTION_CHARS:
                    text = candidate
                    break
    if len(text) < MIN_DESCRIPTION_CHARS:
        for tag in soup(["script", "style", "noscript", "header", "footer", "nav"]):
            tag.decompose()
        body = soup.find("main") or soup.body
        text = body.get_text(" ", strip=True) if body else ""
    if len(text) < MIN_DESCRIPTION_CHARS:
        raise ExtractionFailure("no job description found on page")
    return text[:MAX_DESCRIPTION_CHARS]


class PageFetcher:
    def __init__(
        self,
        gate: MinIntervalGate,
        *,
        browser: BrowserSession | None = None,
        timeout: float = 15.0,
        session: requests.Session | None = None,
    ) -> None:
        self.gate = gate
        self.browser = browser
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": BROWSER_USER_AGENT, "Accept-Language": "en-US,en;q=0.9"})

    def _html_via_http(self, url: str) -> str:
        self.gate.wait()
        r = self.session.get(url, timeout=self.timeout, allow_redirects=True)
        r.raise_for_status()
        return r.text

    def fetch_html(self, url: str) -> str:
        if self.browser is not None and self.browser.available:
            try:
                return self.browser.navigate(url)
            except SourceUnavailable as exc:
                log.info("Browser fetch unavailable (%s), falling back to HTTP", exc.reason)
        try:
            return self._html_via_http(url)
        except requests.RequestException as exc:
            raise ExtractionFailure(f"could not fetch {url}: {exc}") from exc

    def fetch(self, url: str) -> JobPage:
        html = self.fetch_html(url)
        try:
            description = extract_description(html)
        except ExtractionFailure as exc:
            raise ExtractionFailure(str(exc), html=html) from exc
        return JobPage(url=url, html=html, description=description)
