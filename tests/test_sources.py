import pytest
import requests

from jobpilot.errors import SourceUnavailable
from jobpilot.models import SearchCriteria
from jobpilot.sources import build_sources
from jobpilot.sources.adzuna import AdzunaSource, region_for
from jobpilot.sources.browser_search import BrowserSearchSource, parse_search_cards, search_url
from jobpilot.sources.jsearch import JSearchSource
from jobpilot.sources.remotive import RemotiveSource, _search_terms
from jobpilot.sources.web_search import WebSearchSource, parse_google_results, parse_indeed_results
from jobpilot.throttle import MinIntervalGate

GOOGLE_HTML = """
<div>
  <a href="/url?q=https://in.linkedin.com/jobs/view/frontend-engineer-at-acme-3712345678&sa=U">
    <h3>Frontend Engineer - Acme Corp | LinkedIn</h3></a>
  <a href="https://in.linkedin.com/jobs/view/frontend-engineer-at-acme-3712345678?trk=x"><h3>dup</h3></a>
  <a href="https://www.linkedin.com/jobs/view/3799999999/"><h3>Globex hiring React Developer in Pune</h3></a>
  <a href="https://www.glassdoor.com/job/123"><h3>Not LinkedIn</h3></a>
</div>
"""

INDEED_HTML = """
<div class="job_seen_beacon">
  <h2 class="jobTitle"><a href="/rc/clk?jk=abc123" data-jk="abc123"><span>Node Engineer</span></a></h2>
  <span data-testid="company-name">Initech</span>
  <div data-testid="text-location">Remote</div>
  <div class="job-snippet">Build APIs in Node.js</div>
</div>
<div class="job_seen_beacon"><h2 class="jobTitle">No link here</h2></div>
"""

LINKEDIN_HTML = """
<ul>
  <li><div class="base-search-card" data-entity-urn="urn:li:jobPosting:111">
    <a class="base-card__full-link" href="https://in.linkedin.com/jobs/view/111?refId=abc&trackingId=x"></a>
    <h3 class="base-search-card__title">Senior React Engineer</h3>
    <h4 class="base-search-card__subtitle">Umbrella</h4>
    <span class="job-search-card__location">Pune, Maharashtra, India</span>
    <time datetime="2026-01-04">1 day ago</time>
  </div></li>
  <li><div class="base-search-card"><h3 class="base-search-card__title">Broken card</h3></div></li>
</ul>
"""


class FakeResponse:
    def __init__(self, *, text="", payload=None, status=200, url="https://example.org/"):
        self.text = text
        self._payload = payload
        self.status_code = status
        self.url = url

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)


class FakeHTTPSession:
    def __init__(self, responses):
        self.headers = {}
        self.responses = responses
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params))
        return self.responses[url]


@pytest.mark.parametrize("location, code", [
    ("Bengaluru, India", "in"),
    ("London, UK", "gb"),
    ("Berlin", "de"),
    ("Remote", None),
    ("Ukraine", None),
    ("", None),
])
def test_region_for(location, code):
    assert region_for(location) == code


def test_adzuna_skips_uncovered_regions():
    source = AdzunaSource("id", "key")
    assert source.applies_to(SearchCriteria(location="Mumbai"))
    assert not source.applies_to(SearchCriteria(location="Remote"))
    assert source.fetch(SearchCriteria(location="Remote"), 5) == []
    assert not AdzunaSource("", "key").available()


def test_adzuna_maps_results(monkeypatch):
    seen = {}

    def fake_get(url, params=None, timeout=None):
        seen["url"], seen["params"] = url, params
        return FakeResponse(payload={"results": [{
            "id": 42, "title": "React Dev", "company": {"display_name": "Acme"},
            "location": {"display_name": "Pune"}, "redirect_url": "https://adzuna.in/land/42",
            "description": "React work", "created": "2026-01-02T10:00:00Z",
        }]})

    monkeypatch.setattr(requests, "get", fake_get)
    jobs = AdzunaSource("id", "key").fetch(SearchCriteria(("react",), "Pune, India"), 10)

    assert seen["url"].endswith("/in/search/1")
    assert seen["params"]["where"] == "Pune, India"
    assert [(j.source_id, j.company, j.source) for j in jobs] == [("42", "Acme", "adzuna")]


def test_jsearch_maps_results_and_drops_bad_urls(monkeypatch):
    def fake_get(url, params=None, headers=None, timeout=None):
        assert headers["X-RapidAPI-Key"] == "secret"
        assert params["query"] == "react in India"
        return FakeResponse(payload={"data": [
            {"job_id": "a1", "job_title": "React Dev", "employer_name": "Acme", "job_city": "Pune",
             "job_country": "IN", "job_apply_link": "https://acme.io/apply", "job_posted_at_timestamp": 1767225600},
            {"job_id": "a2", "job_title": "No link"},
        ]})

    monkeypatch.setattr(requests, "get", fake_get)
    jobs = JSearchSource("secret").fetch(SearchCriteria(("react",), "India"), 10)

    assert len(jobs) == 1
    assert jobs[0].location == "Pune, IN"
    assert jobs[0].posted_date.startswith("2026-01-01")


def test_jsearch_unauthorized_is_unavailable(monkeypatch):
    monkeypatch.setattr(requests, "get", lambda *a, **k: FakeResponse(status=403))
    with pytest.raises(SourceUnavailable):
        JSearchSource("bad").fetch(SearchCriteria(("react",)), 5)
    assert not JSearchSource("").available()


def test_remotive_terms_and_html_descriptions(monkeypatch):
    assert _search_terms(("Senior React Developer", "node.js", "react")) == ["react", "node.js"]

    monkeypatch.setattr(requests, "get", lambda *a, **k: FakeResponse(payload={"jobs": [{
        "id": 7, "title": "React Engineer", "company_name": "Hooli", "url": "https://remotive.com/7",
        "description": "<p>Ship <b>features</b></p>", "tags": ["react", "ts"],
    }]}))
    jobs = RemotiveSource().fetch(SearchCriteria(("react",)), 5)

    assert jobs[0].description == "Ship features react ts"
    assert jobs[0].location == "Remote"


def test_parse_google_results():
    payloads = parse_google_results(GOOGLE_HTML, "India", 10)

    assert [p["url"] for p in payloads] == [
        "https://www.linkedin.com/jobs/view/3712345678",
        "https://www.linkedin.com/jobs/view/3799999999",
    ]
    assert (payloads[0]["title"], payloads[0]["company"]) == ("Frontend Engineer", "Acme Corp")
    assert (payloads[1]["title"], payloads[1]["company"]) == ("React Developer", "Globex")


def test_parse_indeed_results():
    payloads = parse_indeed_results(INDEED_HTML, "India", 10)
    assert payloads == [{
        "source_id": "abc123",
        "title": "Node Engineer",
        "company": "Initech",
        "location": "Remote",
        "url": "https://www.indeed.com/rc/clk?jk=abc123",
        "description": "Build APIs in Node.js",
    }]


def test_web_search_falls_back_to_indeed_when_google_throttles():
    session = FakeHTTPSession({
        "https://www.google.com/search": FakeResponse(status=200, url="https://www.google.com/sorry/index"),
        "https://www.indeed.com/jobs": FakeResponse(text=INDEED_HTML),
    })
    source = WebSearchSource(MinIntervalGate(0), session=session)

    jobs = source.search(SearchCriteria(("node",), "Remote"), 5)

    assert [j.title for j in jobs] == ["Node Engineer"]
    assert len(session.calls) == 2
    assert "User-Agent" in session.headers


def test_web_search_raises_when_every_board_fails():
    session = FakeHTTPSession({
        "https://www.google.com/search": FakeResponse(status=429),
        "https://www.indeed.com/jobs": FakeResponse(status=503),
    })
    source = WebSearchSource(MinIntervalGate(0), session=session)
    with pytest.raises(requests.HTTPError):
        source.search(SearchCriteria(("node",)), 5)
    assert source.report_health().failures == 1


def test_linkedin_search_url_and_cards():
    url = search_url(SearchCriteria(("react", "node"), "Pune", experience_level="senior-level", job_type="contract"))
    assert url.startswith("https://www.linkedin.com/jobs/search/?keywords=react+node&location=Pune")
    assert "f_JT=C" in url and "f_E=4" in url

    payloads = parse_search_cards(LINKEDIN_HTML, 10)
    assert len(payloads) == 1
    assert payloads[0]["url"] == "https://in.linkedin.com/jobs/view/111"
    assert payloads[0]["company"] == "Umbrella"
    assert payloads[0]["posted_date"] == "2026-01-04"


class PageStub:
    def __init__(self, html):
        self.url = ""
        self.html = html

    def goto(self, url, **kwargs):
        self.url = url
        return type("Response", (), {"status": 200})()

    def content(self):
        return self.html


def test_browser_search_source_uses_session():
    from jobpilot.browser import BrowserSession
    from jobpilot.throttle import CircuitBreaker

    page = PageStub(LINKEDIN_HTML)
    session = BrowserSession(gate=MinIntervalGate(0), circuit=CircuitBreaker("t"), page_factory=lambda: (page, lambda: None))

    jobs = BrowserSearchSource(session).search(SearchCriteria(("react",), "Pune"), 5)

    assert [j.title for j in jobs] == ["Senior React Engineer"]
    assert page.url.startswith("https://www.linkedin.com/jobs/search/")


def test_build_sources_order():
    from jobpilot.browser import BrowserSession
    from jobpilot.config import Settings

    sources = build_sources(Settings(), BrowserSession(enabled=False), MinIntervalGate(0))
    assert [s.name for s in sources] == ["jsearch", "adzuna", "remotive", "web", "browser", "synthetic"]
    assert [s.tier for s in sources] == sorted(s.tier for s in sources)
