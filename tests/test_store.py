import pytest

from jobpilot.errors import PersistenceFailure
from jobpilot.models import (
    ApplicationRecord,
    ApplicationStatus,
    AutomationRunResult,
    HRContact,
    ResumeArtifact,
)
from jobpilot.store import SQLiteStore

from conftest import add_user, make_posting


def record(user_id, url, status=ApplicationStatus.ATTEMPTED):
    return ApplicationRecord(user_id=user_id, job_url=url, status=status, match_score=70, resume_customized=False)


def test_upsert_is_idempotent_and_keeps_longer_description(store):
    first = store.upsert_job_posting(make_posting(1, description="a long description of the role"))
    second = store.upsert_job_posting(make_posting(1, description="short"))
    assert first == second
    row = store.conn.execute("SELECT description FROM job_postings WHERE id=?", (first,)).fetchone()
    assert row["description"] == "a long description of the role"


def test_applications_roundtrip(store, user):
    saved = store.create_application_record(record(user.id, "https://jobs.example.org/view/1"))
    assert saved.id is not None

    store.update_application_status(saved.id, ApplicationStatus.APPLIED, "clicked")

    found = store.find_application_by_url("https://jobs.example.org/view/1")
    assert found.status is ApplicationStatus.APPLIED
    assert found.notes == "clicked"
    assert store.find_application_by_url("https://jobs.example.org/view/404") is None


def test_exclusion_set_is_per_user(store, user):
    other = add_user(store, "other@example.org")
    store.create_application_record(record(user.id, "https://a.org/1"))
    store.create_application_record(record(user.id, "https://a.org/1", ApplicationStatus.ERROR))
    store.create_application_record(record(other.id, "https://a.org/2"))
    assert store.find_application_urls_for_user(user.id) == {"https://a.org/1"}
    assert store.find_application_urls_for_user("nobody") == set()


def test_contacts_and_artifacts(store, user):
    job_id = store.upsert_job_posting(make_posting(1))
    store.create_hr_contact(job_id, HRContact(email="hr@acme.io", company="Acme"))
    store.create_resume_artifact(user.id, job_id, ResumeArtifact("orig", "custom", customization_successful=True))

    assert [c.email for c in store.list_hr_contacts(job_id)] == ["hr@acme.io"]
    artifact = store.get_resume_artifact(user.id, job_id)
    assert artifact.customized_content == "custom" and artifact.customization_successful
    assert store.get_resume_artifact("nobody", job_id) is None


def test_run_log(store, user):
    store.save_run_summary(user.id, AutomationRunResult(found=4, applied=2, skipped=1), started_at="2026-01-01T09:00:00")
    store.save_run_summary(user.id, AutomationRunResult(errors=1), started_at="2026-01-02T09:00:00", error="boom")
    latest = store.latest_run_summary(user.id)
    assert latest["error"] == "boom"
    assert [r["found"] for r in store.list_runs(user.id)] == [0, 4]
    assert store.latest_run_summary("nobody") is None


def test_identity_resolution_is_exact(store, user):
    assert store.resolve_identity("linkedin", "linkedin-jane@example.org").id == user.id
    assert store.resolve_identity("linkedin", "jane@example.org") is None
    assert store.resolve_identity("google", "linkedin-jane@example.org") is None


def test_identity_cannot_move_between_accounts(store, user):
    other = add_user(store, "other@example.org", linked=())
    with pytest.raises(PersistenceFailure):
        store.link_identity(other.id, "linkedin", "linkedin-jane@example.org")
    # re-linking to the same account refreshes the token
    store.link_identity(user.id, "google", "google-jane@example.org", token="fresh")
    assert store.get_account(user.id).identity("google").token == "fresh"


def test_find_account_by_id_or_email(store, user):
    assert store.find_account(user.id).email == "jane@example.org"
    assert store.find_account(" Jane@Example.org ").id == user.id
    assert store.find_account("jane") is None


def test_eligibility_and_updates(store, user):
    add_user(store, "half@example.org", linked=("linkedin",))
    assert [a.id for a in store.eligible_accounts()] == [user.id]

    store.update_account(user.id, automation_enabled=False, preferences={"keywords": ["vue"]})
    updated = store.get_account(user.id)
    assert not updated.is_eligible
    assert updated.criteria().keywords == ("vue",)
    assert store.eligible_accounts() == []
    with pytest.raises(ValueError):
        store.update_account(user.id, email="x@y.z")


def test_duplicate_email_is_a_persistence_failure(store, user):
    with pytest.raises(PersistenceFailure):
        store.create_account("jane@example.org")


def test_file_database_survives_reopen(tmp_path):
    path = tmp_path / "nested" / "jobs.db"
    first = SQLiteStore(str(path))
    account = first.create_account("a@b.co")
    first.close()
    second = SQLiteStore(str(path))
    assert second.get_account(account.id).email == "a@b.co"
    second.close()
