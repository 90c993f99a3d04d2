"""
Unattended batch runs over every eligible user.

Users are processed one after another with a pause in between. A failure
for one user is logged, counted, reported to that user and the loop moves
on. Only one batch runs at a time: a trigger that fires while a run is in
progress is skipped.
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Protocol

from jobpilot.errors import AutomationFailure
from jobpilot.identity import Account
from jobpilot.interfaces import IdentityStore, Notifier, Persistence
from jobpilot.log import get_logger
from jobpilot.messages import daily_summary_message, error_message, start_message
from jobpilot.models import AutomationRunResult
from jobpilot.pipeline import JobPipeline

log = get_logger(__name__)


class AccountStore(Persistence, IdentityStore, Protocol):
    pass


@dataclass
class BatchReport:
    started_at: str
    finished_at: str = ""
    totals: AutomationRunResult = field(default_factory=AutomationRunResult)
    per_user: dict[str, AutomationRunResult] = field(default_factory=dict)
    failed_users: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "users": len(self.per_user) + len(self.failed_users),
            "failed_users": list(self.failed_users),
            "totals": self.totals.as_dict(),
            "per_user": {uid: r.as_dict() for uid, r in self.per_user.items()},
        }


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class AutomationScheduler:
    def __init__(
        self,
        store: AccountStore,
        pipeline: JobPipeline,
        notifier: Notifier,
        *,
        per_run_cap: int = 3,
        overfetch_limit: int = 20,
        inter_user_delay: float = 10.0,
        announce_start: bool = True,
        sleep: Callable[[float], None] = time.sleep,
        tz: str = "Asia/Kolkata",
    ) -> None:
        self.store = store
        self.pipeline = pipeline
        self.notifier = notifier
        self.per_run_cap = per_run_cap
        self.overfetch_limit = overfetch_limit
        self.inter_user_delay = inter_user_delay
        self.announce_start = announce_start
        self._sleep = sleep
        self.tz = tz
        self._run_lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._run_lock.locked()

    def run_once(self) -> BatchReport | None:
        """One batch over all eligible users; None when another run holds the lock."""
        if not self._run_lock.acquire(blocking=False):
            log.warning("Automation run already in progress, skipping this trigger")
            return None
        try:
            return self._run_batch()
        finally:
            self._run_lock.release()

    def _run_batch(self) -> BatchReport:
        report = BatchReport(started_at=_now())
        users = self.store.eligible_accounts()
        log.info("Starting automation for %d eligible user(s)", len(users))

        for i, account in enumerate(users):
            if i:
                self._sleep(self.inter_user_delay)
            try:
                result = self._run_user(account)
            except Exception as exc:
                log.exception("Automation failed for user %s", account.id)
                report.failed_users.append(account.id)
                report.totals = report.totals.merge(AutomationRunResult(errors=1))
                self._record_failure(account, exc)
                continue
            report.per_user[account.id] = result
            report.totals = report.totals.merge(result)

        report.finished_at = _now()
        t = report.totals
        log.info(
            "Automation complete: %d user(s), found=%d applied=%d skipped=%d errors=%d",
            len(users), t.found, t.applied, t.skipped, t.errors,
        )
        return report

    def _run_user(self, account: Account) -> AutomationRunResult:
        started = _now()
        if self.announce_start:
            self._send(account, start_message(tz=self.tz))
        exclusion = self.store.find_application_urls_for_user(account.id)
        log.info("User %s: %d url(s) already processed", account.id, len(exclusion))
        result = self.pipeline.run(
            account,
            account.criteria(),
            exclusion,
            self.per_run_cap,
            limit=self.overfetch_limit,
        )
        self.store.save_run_summary(account.id, result, started_at=started)
        self._send(account, daily_summary_message(result))
        return result

    def _record_failure(self, account: Account, exc: BaseException) -> None:
        try:
            self.store.save_run_summary(
                account.id, AutomationRunResult(errors=1), started_at=_now(), error=str(exc)[:500]
            )
        except Exception as log_exc:
            log.warning("Could not write run log for %s: %s", account.id, log_exc)
        self._send(account, error_message(str(exc), tz=self.tz))

    def _send(self, account: Account, message: str) -> None:
        try:
            self.notifier.send(account.email or account.id, message)
        except Exception as exc:
            log.warning("Notification to %s failed: %s", account.id, exc)

    def run_for_user(self, user_ref: str) -> AutomationRunResult:
        """Manual one-off run for one account (id or e-mail)."""
        account = self.store.find_account(user_ref)
        if account is None:
            raise AutomationFailure(f"Unknown user: {user_ref}")
        if not account.is_eligible:
            raise AutomationFailure(
                f"User {user_ref} is not eligible: link LinkedIn and Google and enable automation"
            )
        if not self._run_lock.acquire(blocking=False):
            raise AutomationFailure("An automation run is already in progress")
        try:
            log.info("Manual automation trigger for %s", account.id)
            return self._run_user(account)
        except Exception as exc:
            self._record_failure(account, exc)
            raise AutomationFailure(f"Automation failed for {user_ref}: {exc}") from exc
        finally:
            self._run_lock.release()
