from __future__ import annotations

import os

os.environ.setdefault("LOG_TO_FILE", "false")

import pytest  # noqa: E402

from jobpilot.api import JobPilotService  # noqa: E402
from jobpilot.errors import ExtractionFailure  # noqa: E402
from jobpilot.models import JobPosting, MatchAnalysis, SearchCriteria  # noqa: E402
from jobpilot.pipeline import JobPipeline  # noqa: E402
from jobpilot.scheduler import AutomationScheduler  # noqa: E402
from jobpilot.sources.base import TIER_API, JobSource  # noqa: E402
from jobpilot.store import SQLiteStore  # noqa: E402

RESUME = "Jane Doe\nFrontend engineer. TypeScript, React, Node.js.\n- Built design systems"
LONG_DESCRIPTION = "We need a React and TypeScript engineer to build product features. " * 5


def make_posting(n: int, *, description: str = LONG_DESCRIPTION, synthetic: bool = False, source: str = "fake") -> JobPosting:
    return JobPosting(
        source_id=f"job-{n}",
        title=f"Frontend Engineer {n}",
        company=f"Company {n}",
        location="Bengaluru, India",
        url=f"https://jobs.example.org/view/{n}",
        description=description,
        source=source,
        synthetic=synthetic,
    )


class FakeSource(JobSource):
    def __init__(self, name: str, postings=None, *, tier: int = TIER_API, error: Exception | None = None,
                 available: bool = True) -> None:
        super().__init__()
        self.name = name
        self.tier = tier
        self.postings = list(postings or [])
        self.error = error
        self._available = available
        self.calls: list[int] = []

    def available(self) -> bool:
        return self._available

    def fetch(self, criteria: SearchCriteria, limit: int):
        self.calls.append(limit)
        if self.error is not None:
            raise self.error
        return self.postings[:limit]


class FakeAggregator:
    def __init__(self, postings) -> None:
        self.postings = list(postings)
        self.calls: list[tuple[SearchCriteria, int]] = []

    def search(self, criteria: SearchCriteria, limit: int):
        self.calls.append((criteria, limit))
        return self.postings[:limit]


class FakeGateway:
    def __init__(self, *, score: int = 82, customized: str | None = "CUSTOM RESUME",
                 analyze_error: Exception | None = None, customize_error: Exception | None = None) -> None:
        self.score = score
        self.customized = customized
        self.analyze_error = analyze_error
        self.customize_error = customize_error
        self.analyzed: list[str] = []
        self.customized_for: list[str] = []

    def analyze(self, resume: str, description: str) -> MatchAnalysis:
        self.analyzed.append(description)
        if self.analyze_error:
            raise self.analyze_error
        return MatchAnalysis(match_score=self.score)

    def customize(self, resume: str, description: str, title: str, company: str) -> str:
        self.customized_for.append(title)
        if self.customize_error:
            raise self.customize_error
        return resume if self.customized is None else self.customized

    def usage(self) -> dict:
        return {"request_count": len(self.analyzed), "daily_limit": 45,
                "remaining": 45 - len(self.analyzed), "reset_at": "tomorrow"}


class RecordingNotifier:
    def __init__(self, ok: bool = True) -> None:
        self.ok = ok
        self.sent: list[tuple[str, str]] = []

    def send(self, user_identity: str, message: str) -> bool:
        self.sent.append((user_identity, message))
        return self.ok


@pytest.fixture
def store():
    s = SQLiteStore(":memory:")
    yield s
    s.close()


def add_user(store: SQLiteStore, email: str, *, linked=("linkedin", "google"), enabled: bool = True,
             preferences: dict | None = None):
    account = store.create_account(
        email,
        name=email.split("@")[0],
        preferences=preferences or {"keywords": ["react"], "location": "India"},
        resume_text=RESUME,
        automation_enabled=enabled,
    )
    for provider in linked:
        store.link_identity(account.id, provider, f"{provider}-{email}", token=f"tok-{provider}")
    return store.get_account(account.id)


@pytest.fixture
def user(store):
    return add_user(store, "jane@example.org")


class OfflineFetcher:
    def fetch(self, url: str):
        raise ExtractionFailure(f"offline: {url}")


def build_service(store: SQLiteStore, postings, *, gateway=None, notifier=None, sessions=None):
    """A fully wired service over fakes: no network, no browser."""
    gateway = gateway or FakeGateway()
    notifier = notifier or RecordingNotifier()
    pipeline = JobPipeline(
        lambda browser: FakeAggregator(postings),
        gateway,
        store,
        notifier=notifier,
        fetcher_factory=lambda browser: OfflineFetcher(),
        inter_job_delay=0,
        sleep=lambda s: None,
    )
    scheduler = AutomationScheduler(store, pipeline, notifier, sleep=lambda s: None)
    return JobPilotService(store, pipeline, scheduler, gateway, sessions=sessions, interactive_limit=10)
