"""
Per-job processing pipeline.

``JobPipeline.process`` takes one posting through

    CREATED → ANALYZED → (CUSTOMIZED) → STORED → NOTIFIED → DONE

Every stage is best-effort: a failure is logged, appended to the outcome's
error list (and so to the record's notes), and the next stage runs anyway.
``process`` always returns exactly one ApplicationRecord.

``JobPipeline.run`` is the loop shared by the scheduler and the interactive
entry point: search, drop already-seen urls, cap, process one at a time.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from jobpilot.ai_gateway import ERROR_FALLBACK, AIGateway
from jobpilot.aggregator import JobSourceAggregator
from jobpilot.artifacts import resume_file_name
from jobpilot.browser import BrowserSession
from jobpilot.contacts import ContactExtractor
from jobpilot.errors import ExtractionFailure
from jobpilot.identity import Account
from jobpilot.interfaces import ArtifactStore, Notifier, Persistence
from jobpilot.log import get_logger
from jobpilot.messages import application_message
from jobpilot.models import (
    ApplicationRecord,
    ApplicationStatus,
    AutomationRunResult,
    EventKind,
    HRContact,
    JobPosting,
    MatchAnalysis,
    ProgressEvent,
    ResumeArtifact,
    SearchCriteria,
)
from jobpilot.pages import PageFetcher

log = get_logger(__name__)

MIN_DESCRIPTION_CHARS = 200

AggregatorFactory = Callable[[BrowserSession], JobSourceAggregator]
EventSink = Callable[[ProgressEvent], None]


class PipelineStage(str, Enum):
    CREATED = "created"
    ANALYZED = "analyzed"
    CUSTOMIZED = "customized"
    STORED = "stored"
    NOTIFIED = "notified"
    DONE = "done"


@dataclass
class PipelineOutcome:
    posting: JobPosting
    record: ApplicationRecord
    analysis: MatchAnalysis = ERROR_FALLBACK
    artifact: ResumeArtifact | None = None
    contacts: list[HRContact] = field(default_factory=list)
    stages: list[PipelineStage] = field(default_factory=lambda: [PipelineStage.CREATED])
    errors: list[str] = field(default_factory=list)
    apply_method: str = ""

    def fail(self, stage: str, exc: BaseException | str) -> None:
        message = f"{stage}: {exc}"
        self.errors.append(message[:300])
        log.warning("[%s] %s", self.posting.url, message)

    def summary(self) -> dict[str, Any]:
        return {
            "url": self.posting.url,
            "title": self.posting.title,
            "company": self.posting.company,
            "status": self.record.status.value,
            "match_score": self.record.match_score,
            "resume_customized": self.record.resume_customized,
            "artifact_link": self.record.artifact_link,
            "contacts": len(self.contacts),
            "errors": list(self.errors),
        }


@dataclass
class RunSession:
    """Resources owned by a single run."""

    browser: BrowserSession
    fetcher: PageFetcher

    def close(self) -> None:
        self.browser.close()


def _default_fetcher(browser: BrowserSession) -> PageFetcher:
    return PageFetcher(browser.gate, browser=browser)


class JobPipeline:
    def __init__(
        self,
        aggregator_factory: AggregatorFactory,
        gateway: AIGateway,
        persistence: Persistence,
        *,
        contacts: ContactExtractor | None = None,
        notifier: Notifier | None = None,
        artifact_store_for: Callable[[Account], ArtifactStore | None] | None = None,
        browser_factory: Callable[[], BrowserSession] | None = None,
        fetcher_factory: Callable[[BrowserSession], PageFetcher] = _default_fetcher,
        inter_job_delay: float = 8.0,
        sleep: Callable[[float], None] = time.sleep,
        tz: str = "Asia/Kolkata",
    ) -> None:
        self.aggregator_factory = aggregator_factory
        self.gateway = gateway
        self.persistence = persistence
        self.contacts = contacts or ContactExtractor()
        self.notifier = notifier
        self.artifact_store_for = artifact_store_for
        self.browser_factory = browser_factory or (lambda: BrowserSession(enabled=False))
        self.fetcher_factory = fetcher_factory
        self.inter_job_delay = inter_job_delay
        self._sleep = sleep
        self.tz = tz

    def open_session(self) -> RunSession:
        browser = self.browser_factory()
        return RunSession(browser=browser, fetcher=self.fetcher_factory(browser))

    # ── single posting ─────────────────────────────────────────────────

    def process(self, posting: JobPosting, user: Account, session: RunSession | None = None) -> PipelineOutcome:
        owned = session is None
        session = session or self.open_session()
        record = ApplicationRecord(
            user_id=user.id,
            job_url=posting.url,
            status=ApplicationStatus.ATTEMPTED,
            match_score=ERROR_FALLBACK.match_score,
            resume_customized=False,
        )
        outcome = PipelineOutcome(posting=posting, record=record)
        try:
            self._run_stages(outcome, user, session)
        except Exception as exc:
            log.exception("Unexpected pipeline failure for %s", posting.url)
            outcome.fail("pipeline", exc)
            record.status = ApplicationStatus.advance(record.status, ApplicationStatus.ERROR)
            record.notes = self._notes(outcome)
        finally:
            if owned:
                session.close()
        return outcome

    def _run_stages(self, outcome: PipelineOutcome, user: Account, session: RunSession) -> None:
        posting, record = outcome.posting, outcome.record
        resume = user.resume_text or ""

        description, html = self._describe(outcome, session)
        outcome.contacts = self._extract_contacts(outcome, html)

        try:
            outcome.analysis = self.gateway.analyze(resume, description)
        except Exception as exc:
            outcome.fail("analysis", exc)
            outcome.analysis = ERROR_FALLBACK
        record.match_score = outcome.analysis.match_score
        outcome.stages.append(PipelineStage.ANALYZED)

        customized, changed = resume, False
        try:
            answer = self.gateway.customize(resume, description, posting.title, posting.company)
            if answer and answer.strip() and answer != resume:
                customized, changed = answer, True
        except Exception as exc:
            outcome.fail("customization", exc)
        record.resume_customized = changed
        outcome.artifact = ResumeArtifact(
            original_content=resume,
            customized_content=customized,
            customization_successful=record.resume_customized,
        )
        if record.resume_customized:
            outcome.stages.append(PipelineStage.CUSTOMIZED)

        self._attempt_apply(outcome, session)
        job_id = self._persist_details(outcome, user)
        record.artifact_link = self._upload(outcome, user)

        record.notes = self._notes(outcome)
        try:
            self.persistence.create_application_record(record)
            outcome.stages.append(PipelineStage.STORED)
        except Exception as exc:
            outcome.fail("record", exc)
            record.status = ApplicationStatus.advance(record.status, ApplicationStatus.ERROR)
            record.notes = self._notes(outcome)
        log.info(
            "Processed %s @ %s → %s (score %d, job #%s)",
            posting.title, posting.company, record.status.value, record.match_score, job_id,
        )

        if self._notify(outcome, user):
            outcome.stages.append(PipelineStage.NOTIFIED)
        outcome.stages.append(PipelineStage.DONE)

    def _describe(self, outcome: PipelineOutcome, session: RunSession) -> tuple[str, str]:
        posting = outcome.posting
        if posting.synthetic or len(posting.description) >= MIN_DESCRIPTION_CHARS:
            return posting.description or posting.fallback_description(), ""
        try:
            page = session.fetcher.fetch(posting.url)
        except ExtractionFailure as exc:
            log.info("Description fetch failed for %s: %s", posting.url, exc)
            return self._synthesized(posting), exc.html
        except Exception as exc:
            log.info("Description fetch failed for %s: %s", posting.url, exc)
            return self._synthesized(posting), ""
        if len(page.description) > len(posting.description):
            return page.description, page.html
        return posting.description, page.html

    @staticmethod
    def _synthesized(posting: JobPosting) -> str:
        return " ".join(filter(None, [posting.fallback_description(), posting.description]))

    def _extract_contacts(self, outcome: PipelineOutcome, html: str) -> list[HRContact]:
        if not html:
            return []
        try:
            return self.contacts.extract(html, outcome.posting.company)
        except Exception as exc:
            log.debug("Contact extraction failed: %s", exc)
            return []

    def _attempt_apply(self, outcome: PipelineOutcome, session: RunSession) -> None:
        if outcome.posting.synthetic:
            outcome.apply_method = "synthetic_posting"
            return
        if not session.browser.available:
            outcome.apply_method = "browser_unavailable"
            return
        try:
            status, method = session.browser.attempt_apply(outcome.posting.url)
        except Exception as exc:
            outcome.apply_method = "apply_failed"
            log.info("Apply attempt failed for %s: %s", outcome.posting.url, exc)
            return
        outcome.apply_method = method
        outcome.record.status = ApplicationStatus.advance(outcome.record.status, status)

    def _persist_details(self, outcome: PipelineOutcome, user: Account) -> int | None:
        """Posting, contacts and résumé rows; any failure marks the record as error."""
        failures = len(outcome.errors)
        job_id = self._store_rows(outcome, user)
        if len(outcome.errors) > failures:
            outcome.record.status = ApplicationStatus.advance(outcome.record.status, ApplicationStatus.ERROR)
        return job_id

    def _store_rows(self, outcome: PipelineOutcome, user: Account) -> int | None:
        try:
            job_id = self.persistence.upsert_job_posting(outcome.posting)
        except Exception as exc:
            outcome.fail("persist posting", exc)
            return None
        for contact in outcome.contacts:
            try:
                self.persistence.create_hr_contact(job_id, contact)
            except Exception as exc:
                outcome.fail("persist contact", exc)
        if outcome.artifact is not None:
            try:
                self.persistence.create_resume_artifact(user.id, job_id, outcome.artifact)
            except Exception as exc:
                outcome.fail("persist artifact", exc)
        return job_id

    def _upload(self, outcome: PipelineOutcome, user: Account) -> str | None:
        if self.artifact_store_for is None or outcome.artifact is None:
            return None
        try:
            store = self.artifact_store_for(user)
            if store is None:
                return None
            posting = outcome.posting
            name = resume_file_name(posting.title, posting.company, outcome.record.resume_customized)
            return store.save(outcome.artifact.customized_content, name, posting.title, posting.company)
        except Exception as exc:
            log.warning("Artifact upload failed for %s: %s", outcome.posting.url, exc)
            return None

    def _notify(self, outcome: PipelineOutcome, user: Account) -> bool:
        if self.notifier is None:
            return False
        try:
            return bool(self.notifier.send(user.email or user.id, application_message(
                outcome.posting, outcome.record, tz=self.tz,
            )))
        except Exception as exc:
            log.warning("Notification failed for %s: %s", user.id, exc)
            return False

    @staticmethod
    def _notes(outcome: PipelineOutcome) -> str:
        parts = [
            f"source={outcome.posting.source}",
            f"score={outcome.record.match_score}",
            f"customized={'yes' if outcome.record.resume_customized else 'no'}",
            f"contacts={len(outcome.contacts)}",
        ]
        if outcome.apply_method:
            parts.append(f"apply={outcome.apply_method}")
        if outcome.errors:
            parts.append("errors: " + " | ".join(outcome.errors))
        return "; ".join(parts)

    # ── one run ────────────────────────────────────────────────────────

    def run(
        self,
        user: Account,
        criteria: SearchCriteria,
        exclusion: set[str],
        cap: int | None,
        on_event: EventSink | None = None,
        *,
        limit: int = 20,
    ) -> AutomationRunResult:
        """Search, skip seen urls, process up to ``cap`` new postings in order."""
        result = AutomationRunResult()
        session = self.open_session()
        try:
            postings = self.aggregator_factory(session.browser).search(criteria, limit)
            result.found = len(postings)

            seen = set(exclusion)
            fresh: list[JobPosting] = []
            for posting in postings:
                if posting.url in seen:
                    result.skipped += 1
                    continue
                seen.add(posting.url)
                fresh.append(posting)
            batch = fresh if cap is None else fresh[:max(cap, 0)]
            log.info(
                "User %s: %d found, %d duplicate(s) skipped, processing %d",
                user.id, result.found, result.skipped, len(batch),
            )

            for i, posting in enumerate(batch):
                if i:
                    self._sleep(self.inter_job_delay)
                self._emit(on_event, EventKind.JOB_FOUND, {
                    "index": i, "title": posting.title, "company": posting.company,
                    "location": posting.location, "url": posting.url, "synthetic": posting.synthetic,
                })
                self._emit(on_event, EventKind.JOB_PROCESSING, {"index": i, "url": posting.url})
                outcome = self.process(posting, user, session)
                if outcome.record.status is ApplicationStatus.ERROR:
                    result.errors += 1
                elif outcome.record.status in (ApplicationStatus.ATTEMPTED, ApplicationStatus.APPLIED):
                    result.applied += 1
                self._emit(on_event, EventKind.JOB_DONE, {"index": i, **outcome.summary()})
        finally:
            session.close()
        return result

    @staticmethod
    def _emit(sink: EventSink | None, kind: EventKind, payload: dict[str, Any]) -> None:
        if sink is None:
            return
        try:
            sink(ProgressEvent(kind, payload))
        except Exception as exc:
            log.debug("Progress sink raised on %s: %s", kind.value, exc)
