"""Collaborator contracts the pipeline and scheduler depend on."""
from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from jobpilot.identity import Account
from jobpilot.models import (
    ApplicationRecord,
    ApplicationStatus,
    AutomationRunResult,
    HRContact,
    JobPosting,
    ResumeArtifact,
)


@runtime_checkable
class Persistence(Protocol):
    def upsert_job_posting(self, posting: JobPosting) -> int: ...

    def create_application_record(self, record: ApplicationRecord) -> ApplicationRecord: ...

    def update_application_status(self, record_id: int, status: ApplicationStatus, notes: str) -> None: ...

    def find_application_urls_for_user(self, user_id: str) -> set[str]: ...

    def create_hr_contact(self, job_id: int, contact: HRContact) -> int: ...

    def create_resume_artifact(self, user_id: str, job_id: int, artifact: ResumeArtifact) -> int: ...

    def find_application_by_url(self, url: str) -> ApplicationRecord | None: ...

    def save_run_summary(
        self, user_id: str, result: AutomationRunResult, *, started_at: str, error: str | None = None
    ) -> int: ...

    def latest_run_summary(self, user_id: str) -> dict[str, Any] | None: ...


@runtime_checkable
class ArtifactStore(Protocol):
    def save(self, content: str, file_name: str, job_title: str, company: str) -> str | None:
        """Return a link to the stored document, or None on any failure."""
        ...


@runtime_checkable
class Notifier(Protocol):
    def send(self, user_identity: str, message: str) -> bool:
        """Deliver ``message``; False on failure, never raises."""
        ...


@runtime_checkable
class IdentityStore(Protocol):
    def find_account(self, user_ref: str) -> Account | None:
        """Account by id or e-mail; never a best guess."""
        ...

    def resolve_identity(self, provider: str, external_id: str) -> Account | None: ...

    def eligible_accounts(self) -> list[Account]: ...
