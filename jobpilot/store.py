"""SQLite persistence: postings, applications, contacts, artifacts, accounts, run log."""
from __future__ import annotations

import json
import sqlite3
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from jobpilot.errors import PersistenceFailure
from jobpilot.identity import Account, LinkedIdentity
from jobpilot.log import get_logger
from jobpilot.models import (
    ApplicationRecord,
    ApplicationStatus,
    AutomationRunResult,
    HRContact,
    JobPosting,
    ResumeArtifact,
)

log = get_logger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteStore:
    def __init__(self, db_path: str = "data/jobpilot.db") -> None:
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        # Interactive runs write from a worker thread.
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._init_schema()

    def _init_schema(self) -> None:
        self.conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS job_postings (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                url TEXT UNIQUE NOT NULL,
                source_id TEXT,
                title TEXT,
                company TEXT,
                location TEXT,
                description TEXT,
                posted_date TEXT,
                source TEXT,
                synthetic INTEGER DEFAULT 0,
                first_seen TEXT,
                last_seen TEXT
            );
            CREATE TABLE IF NOT EXISTS applications (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                job_url TEXT NOT NULL,
                status TEXT NOT NULL,
                match_score INTEGER,
                resume_customized INTEGER,
                notes TEXT,
                artifact_link TEXT,
                created_at TEXT
            );
            CREATE INDEX IF NOT EXISTS idx_applications_user ON applications(user_id);
            CREATE INDEX IF NOT EXISTS idx_applications_url ON applications(job_url);
            CREATE TABLE IF NOT EXISTS hr_contacts (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                job_id INTEGER,
                name TEXT,
                email TEXT,
                title TEXT,
                company TEXT,
                linkedin_profile TEXT,
                phone TEXT,
                created_at TEXT
            );
            CREATE TABLE IF NOT EXISTS resume_artifacts (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT,
                job_id INTEGER,
                original_content TEXT,
                customized_content TEXT,
                format_type TEXT,
                customization_successful INTEGER,
                created_at TEXT
            );
            CREATE TABLE IF NOT EXISTS accounts (
                id TEXT PRIMARY KEY,
                email TEXT UNIQUE,
                name TEXT,
                automation_enabled INTEGER DEFAULT 1,
                preferences TEXT,
                resume_text TEXT,
                telegram_chat_id TEXT,
                created_at TEXT
            );
            CREATE TABLE IF NOT EXISTS linked_identities (
                provider TEXT NOT NULL,
                external_id TEXT NOT NULL,
                account_id TEXT NOT NULL,
                token TEXT,
                linked_at TEXT,
                PRIMARY KEY (provider, external_id)
            );
            CREATE TABLE IF NOT EXISTS run_log (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT,
                started_at TEXT,
                finished_at TEXT,
                found INTEGER,
                applied INTEGER,
                skipped INTEGER,
                errors INTEGER,
                error TEXT
            );
            """
        )
        self.conn.commit()

    def _write(self, sql: str, params: tuple[Any, ...]) -> sqlite3.Cursor:
        with self._lock:
            try:
                cur = self.conn.execute(sql, params)
                self.conn.commit()
            except sqlite3.Error as exc:
                self.conn.rollback()
                raise PersistenceFailure(str(exc)) from exc
        return cur

    def _read(self, sql: str, params: tuple[Any, ...] = ()) -> list[sqlite3.Row]:
        with self._lock:
            try:
                return self.conn.execute(sql, params).fetchall()
            except sqlite3.Error as exc:
                raise PersistenceFailure(str(exc)) from exc

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    # ── postings / applications ────────────────────────────────────────

    def upsert_job_posting(self, posting: JobPosting) -> int:
        """Insert or refresh a posting keyed by url; keeps the longer description."""
        now = _now()
        self._write(
            """
            INSERT INTO job_postings(url, source_id, title, company, location, description,
                                     posted_date, source, synthetic, first_seen, last_seen)
            VALUES (?,?,?,?,?,?,?,?,?,?,?)
            ON CONFLICT(url) DO UPDATE SET
                title=excluded.title,
                company=excluded.company,
                location=excluded.location,
                description=CASE WHEN length(excluded.description) > length(job_postings.description)
                                 THEN excluded.description ELSE job_postings.description END,
                last_seen=excluded.last_seen
            """,
            (
                posting.url, posting.source_id, posting.title, posting.company, posting.location,
                posting.description, posting.posted_date, posting.source, int(posting.synthetic),
                now, now,
            ),
        )
        row = self._read("SELECT id FROM job_postings WHERE url=?", (posting.url,))
        return int(row[0]["id"])

    def create_application_record(self, record: ApplicationRecord) -> ApplicationRecord:
        cur = self._write(
            """
            INSERT INTO applications(user_id, job_url, status, match_score, resume_customized,
                                     notes, artifact_link, created_at)
            VALUES (?,?,?,?,?,?,?,?)
            """,
            (
                record.user_id, record.job_url, record.status.value, record.match_score,
                int(record.resume_customized), record.notes, record.artifact_link, record.created_at,
            ),
        )
        record.id = int(cur.lastrowid)
        return record

    def update_application_status(self, record_id: int, status: ApplicationStatus, notes: str) -> None:
        self._write(
            "UPDATE applications SET status=?, notes=? WHERE id=?",
            (ApplicationStatus(status).value, notes, record_id),
        )

    def find_application_urls_for_user(self, user_id: str) -> set[str]:
        rows = self._read("SELECT DISTINCT job_url FROM applications WHERE user_id=?", (user_id,))
        return {r["job_url"] for r in rows}

    def find_application_by_url(self, url: str) -> ApplicationRecord | None:
        rows = self._read("SELECT * FROM applications WHERE job_url=? ORDER BY id DESC LIMIT 1", (url,))
        return self._record(rows[0]) if rows else None

    def list_applications(self, user_id: str, limit: int = 50) -> list[ApplicationRecord]:
        rows = self._read(
            "SELECT * FROM applications WHERE user_id=? ORDER BY id DESC LIMIT ?", (user_id, limit)
        )
        return [self._record(r) for r in rows]

    @staticmethod
    def _record(row: sqlite3.Row) -> ApplicationRecord:
        return ApplicationRecord(
            id=row["id"],
            user_id=row["user_id"],
            job_url=row["job_url"],
            status=ApplicationStatus(row["status"]),
            match_score=row["match_score"] or 0,
            resume_customized=bool(row["resume_customized"]),
            notes=row["notes"] or "",
            artifact_link=row["artifact_link"],
            created_at=row["created_at"],
        )

    def create_hr_contact(self, job_id: int, contact: HRContact) -> int:
        cur = self._write(
            """
            INSERT INTO hr_contacts(job_id, name, email, title, company, linkedin_profile, phone, created_at)
            VALUES (?,?,?,?,?,?,?,?)
            """,
            (
                job_id, contact.name, contact.email, contact.title, contact.company,
                contact.linkedin_profile, contact.phone, _now(),
            ),
        )
        return int(cur.lastrowid)

    def list_hr_contacts(self, job_id: int) -> list[HRContact]:
        rows = self._read("SELECT * FROM hr_contacts WHERE job_id=? ORDER BY id", (job_id,))
        return [
            HRContact(
                name=r["name"], email=r["email"], title=r["title"], company=r["company"],
                linkedin_profile=r["linkedin_profile"], phone=r["phone"],
            )
            for r in rows
        ]

    def create_resume_artifact(self, user_id: str, job_id: int, artifact: ResumeArtifact) -> int:
        cur = self._write(
            """
            INSERT INTO resume_artifacts(user_id, job_id, original_content, customized_content,
                                         format_type, customization_successful, created_at)
            VALUES (?,?,?,?,?,?,?)
            """,
            (
                user_id, job_id, artifact.original_content, artifact.customized_content,
                artifact.format_type, int(artifact.customization_successful), _now(),
            ),
        )
        return int(cur.lastrowid)

    def get_resume_artifact(self, user_id: str, job_id: int) -> ResumeArtifact | None:
        rows = self._read(
            "SELECT * FROM resume_artifacts WHERE user_id=? AND job_id=? ORDER BY id DESC LIMIT 1",
            (user_id, job_id),
        )
        if not rows:
            return None
        r = rows[0]
        return ResumeArtifact(
            original_content=r["original_content"],
            customized_content=r["customized_content"],
            format_type=r["format_type"],
            customization_successful=bool(r["customization_successful"]),
        )

    # ── run log ────────────────────────────────────────────────────────

    def save_run_summary(
        self, user_id: str, result: AutomationRunResult, *, started_at: str, error: str | None = None
    ) -> int:
        cur = self._write(
            """
            INSERT INTO run_log(user_id, started_at, finished_at, found, applied, skipped, errors, error)
            VALUES (?,?,?,?,?,?,?,?)
            """,
            (user_id, started_at, _now(), result.found, result.applied, result.skipped, result.errors, error),
        )
        return int(cur.lastrowid)

    def latest_run_summary(self, user_id: str) -> dict[str, Any] | None:
        rows = self._read("SELECT * FROM run_log WHERE user_id=? ORDER BY id DESC LIMIT 1", (user_id,))
        return dict(rows[0]) if rows else None

    def list_runs(self, user_id: str, limit: int = 10) -> list[dict[str, Any]]:
        rows = self._read("SELECT * FROM run_log WHERE user_id=? ORDER BY id DESC LIMIT ?", (user_id, limit))
        return [dict(r) for r in rows]

    # ── accounts / identities ──────────────────────────────────────────

    def create_account(
        self,
        email: str,
        *,
        name: str = "",
        preferences: dict[str, Any] | None = None,
        resume_text: str = "",
        telegram_chat_id: str = "",
        automation_enabled: bool = True,
        account_id: str | None = None,
    ) -> Account:
        account_id = account_id or uuid.uuid4().hex
        self._write(
            """
            INSERT INTO accounts(id, email, name, automation_enabled, preferences, resume_text,
                                 telegram_chat_id, created_at)
            VALUES (?,?,?,?,?,?,?,?)
            """,
            (
                account_id, email.strip().lower(), name, int(automation_enabled),
                json.dumps(preferences or {}), resume_text, telegram_chat_id, _now(),
            ),
        )
        log.info("Created account %s (%s)", account_id, email)
        return self.get_account(account_id)  # type: ignore[return-value]

    def update_account(self, account_id: str, **changes: Any) -> Account | None:
        allowed = {"name", "automation_enabled", "preferences", "resume_text", "telegram_chat_id"}
        unknown = set(changes) - allowed
        if unknown:
            raise ValueError(f"cannot update {sorted(unknown)}")
        for column, value in changes.items():
            if column == "preferences":
                value = json.dumps(value or {})
            elif column == "automation_enabled":
                value = int(bool(value))
            self._write(f"UPDATE accounts SET {column}=? WHERE id=?", (value, account_id))
        return self.get_account(account_id)

    def link_identity(self, account_id: str, provider: str, external_id: str, token: str = "") -> LinkedIdentity:
        """Attach an external identity; re-linking the same key to another account is refused."""
        existing = self._read(
            "SELECT account_id FROM linked_identities WHERE provider=? AND external_id=?",
            (provider, external_id),
        )
        if existing and existing[0]["account_id"] != account_id:
            raise PersistenceFailure(f"{provider}:{external_id} is already linked to another account")
        self._write(
            """
            INSERT INTO linked_identities(provider, external_id, account_id, token, linked_at)
            VALUES (?,?,?,?,?)
            ON CONFLICT(provider, external_id) DO UPDATE SET token=excluded.token
            """,
            (provider, external_id, account_id, token, _now()),
        )
        return LinkedIdentity(provider, external_id, token)

    def get_account(self, account_id: str) -> Account | None:
        rows = self._read("SELECT * FROM accounts WHERE id=?", (account_id,))
        return self._account(rows[0]) if rows else None

    def find_account_by_email(self, email: str) -> Account | None:
        rows = self._read("SELECT * FROM accounts WHERE email=?", (email.strip().lower(),))
        return self._account(rows[0]) if rows else None

    def find_account(self, user_ref: str) -> Account | None:
        """Resolve an account id or an e-mail address; nothing fuzzier."""
        if "@" in user_ref:
            return self.find_account_by_email(user_ref)
        return self.get_account(user_ref)

    def resolve_identity(self, provider: str, external_id: str) -> Account | None:
        rows = self._read(
            "SELECT account_id FROM linked_identities WHERE provider=? AND external_id=?",
            (provider, external_id),
        )
        return self.get_account(rows[0]["account_id"]) if rows else None

    def list_accounts(self) -> list[Account]:
        return [self._account(r) for r in self._read("SELECT * FROM accounts ORDER BY created_at, rowid")]

    def eligible_accounts(self) -> list[Account]:
        return [a for a in self.list_accounts() if a.is_eligible]

    def _account(self, row: sqlite3.Row) -> Account:
        idents = self._read(
            "SELECT provider, external_id, token FROM linked_identities WHERE account_id=? ORDER BY linked_at",
            (row["id"],),
        )
        try:
            prefs = json.loads(row["preferences"] or "{}")
        except json.JSONDecodeError:
            log.warning("Unreadable preferences for account %s", row["id"])
            prefs = {}
        return Account(
            id=row["id"],
            email=row["email"],
            name=row["name"] or "",
            automation_enabled=bool(row["automation_enabled"]),
            preferences=prefs,
            resume_text=row["resume_text"] or "",
            telegram_chat_id=row["telegram_chat_id"] or "",
            identities=[LinkedIdentity(i["provider"], i["external_id"], i["token"] or "") for i in idents],
        )
