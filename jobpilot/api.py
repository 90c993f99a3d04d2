"""The operations the HTTP/CLI layer calls, plus the wiring that builds them."""
from __future__ import annotations

import asyncio
from typing import Any

from jobpilot.ai_gateway import AIGateway
from jobpilot.aggregator import JobSourceAggregator
from jobpilot.artifacts import DriveArtifactStore, LocalArtifactStore
from jobpilot.browser import BrowserSession
from jobpilot.config import Settings, ensure_dirs, load_settings
from jobpilot.errors import AutomationFailure
from jobpilot.identity import Account, Session, SessionStore
from jobpilot.interactive import InteractiveRun, PushChannel
from jobpilot.log import get_logger
from jobpilot.models import AutomationRunResult, SearchCriteria
from jobpilot.notifier import build_notifier
from jobpilot.pages import PageFetcher
from jobpilot.pipeline import JobPipeline
from jobpilot.scheduler import AutomationScheduler
from jobpilot.sources import build_sources
from jobpilot.store import SQLiteStore
from jobpilot.throttle import MinIntervalGate

log = get_logger(__name__)


class JobPilotService:
    def __init__(
        self,
        store: SQLiteStore,
        pipeline: JobPipeline,
        scheduler: AutomationScheduler,
        gateway: AIGateway,
        *,
        sessions: SessionStore | None = None,
        interactive_limit: int = 10,
    ) -> None:
        self.store = store
        self.pipeline = pipeline
        self.scheduler = scheduler
        self.gateway = gateway
        self.sessions = sessions or SessionStore()
        self.interactive_limit = interactive_limit

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "JobPilotService":
        settings = settings or load_settings()
        settings.require_ai()
        ensure_dirs(settings)

        store = SQLiteStore(settings.db_path)
        gateway = AIGateway.from_settings(settings)
        gate = MinIntervalGate(settings.navigation_delay_seconds)
        notifier = build_notifier(settings, store.find_account)
        local = LocalArtifactStore(settings.artifacts_dir)

        def browser_factory() -> BrowserSession:
            return BrowserSession(
                headless=settings.run_headless,
                navigation_timeout=settings.navigation_timeout_seconds,
                gate=gate,
                enabled=settings.browser_enabled,
            )

        def aggregator_factory(browser: BrowserSession) -> JobSourceAggregator:
            return JobSourceAggregator(build_sources(settings, browser, gate), settings.min_pool_size)

        def artifact_store_for(account: Account):
            return DriveArtifactStore.for_account(account, timeout=settings.http_timeout_seconds) or local

        pipeline = JobPipeline(
            aggregator_factory,
            gateway,
            store,
            notifier=notifier,
            artifact_store_for=artifact_store_for,
            browser_factory=browser_factory,
            fetcher_factory=lambda browser: PageFetcher(gate, browser=browser, timeout=settings.http_timeout_seconds),
            inter_job_delay=settings.inter_job_delay_seconds,
            tz=settings.timezone,
        )
        scheduler = AutomationScheduler(
            store,
            pipeline,
            notifier,
            per_run_cap=settings.per_run_cap,
            overfetch_limit=settings.overfetch_limit,
            inter_user_delay=settings.inter_user_delay_seconds,
            tz=settings.timezone,
        )
        return cls(
            store,
            pipeline,
            scheduler,
            gateway,
            sessions=SessionStore(settings.session_ttl_seconds),
            interactive_limit=settings.interactive_limit,
        )

    def _account(self, user_ref: str) -> Account:
        account = self.store.find_account(user_ref)
        if account is None:
            raise AutomationFailure(f"Unknown user: {user_ref}")
        return account

    # ── sessions ───────────────────────────────────────────────────────

    def sign_in(self, provider: str, external_id: str) -> Session:
        """Session for the account that owns this exact linked identity."""
        account = self.store.resolve_identity(provider, external_id)
        if account is None:
            raise AutomationFailure(f"No account linked to {provider}:{external_id}")
        return self.sessions.create(account.id)

    def account_for_token(self, token: str) -> Account | None:
        session = self.sessions.get(token)
        return self.store.get_account(session.account_id) if session else None

    # ── operations ─────────────────────────────────────────────────────

    async def start_interactive_run(
        self,
        user_id: str,
        criteria: SearchCriteria | None,
        channel: PushChannel,
    ) -> AutomationRunResult:
        account = await asyncio.to_thread(self._account, user_id)
        exclusion = await asyncio.to_thread(self.store.find_application_urls_for_user, account.id)
        run = InteractiveRun(
            self.pipeline,
            account,
            criteria or account.criteria(),
            channel,
            exclusion=exclusion,
            limit=self.interactive_limit,
        )
        return await run.execute()

    def trigger_manual_run(self, user_ref: str) -> dict[str, Any]:
        result = self.scheduler.run_for_user(user_ref)
        return result.as_dict()

    def get_run_summary(self, user_id: str) -> dict[str, Any]:
        account = self._account(user_id)
        return {
            "user_id": account.id,
            "automation_enabled": account.automation_enabled,
            "eligible": account.is_eligible,
            "last_run": self.store.latest_run_summary(account.id),
            "recent_runs": self.store.list_runs(account.id),
            "recent_applications": [r.as_dict() for r in self.store.list_applications(account.id, limit=20)],
        }

    def verify_application(self, url: str) -> dict[str, Any]:
        record = self.store.find_application_by_url(url)
        if record is None:
            return {"applied": False, "method": "not_found", "record": None}
        return {"applied": True, "method": "database_record", "record": record.as_dict()}

    def ai_usage(self) -> dict[str, Any]:
        return self.gateway.usage()
