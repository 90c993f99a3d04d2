from datetime import date
from pathlib import Path

import requests

from jobpilot.artifacts import (
    DRIVE_FILES_URL,
    DRIVE_UPLOAD_URL,
    DriveArtifactStore,
    LocalArtifactStore,
    resume_file_name,
)
from jobpilot.identity import Account, LinkedIdentity


class DriveResponse:
    def __init__(self, payload=None, status=200):
        self.payload = payload or {}
        self.status_code = status

    def json(self):
        return self.payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}", response=self)


class FakeDrive:
    def __init__(self, status=200):
        self.headers = {}
        self.status = status
        self.posts = []
        self.queries = []

    def get(self, url, params=None, timeout=None):
        self.queries.append(params["q"])
        return DriveResponse({"files": []}, self.status)

    def post(self, url, json=None, params=None, data=None, headers=None, timeout=None):
        self.posts.append((url, json, data))
        if url == DRIVE_FILES_URL:
            return DriveResponse({"id": f"folder-{len(self.posts)}"})
        if url == DRIVE_UPLOAD_URL:
            return DriveResponse({"id": "file-9"})
        return DriveResponse({})


def test_file_name_is_sanitized():
    name = resume_file_name("Sr. Engineer (React/TS)", "Acme, Inc.", True, day=date(2026, 3, 4))
    assert name == "Resume_Acme_Inc_Sr_Engineer_ReactTS_AI_Customized_2026-03-04.txt"
    assert resume_file_name("Dev", "X", False, day=date(2026, 3, 4)).endswith("_Original_2026-03-04.txt")


def test_local_store_writes_per_company(tmp_path):
    store = LocalArtifactStore(tmp_path)
    link = store.save("RESUME BODY", "Resume_Acme_Dev.txt", "Dev", "Acme Corp")

    path = tmp_path / "Acme_Corp" / "Resume_Acme_Dev.txt"
    assert link == path.resolve().as_uri()
    text = path.read_text(encoding="utf-8")
    assert text.startswith("Resume for Dev at Acme Corp")
    assert text.endswith("RESUME BODY")


def test_local_store_failure_returns_none(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("not a directory")
    assert LocalArtifactStore(blocker).save("x", "a.txt", "Dev", "Acme") is None


def test_local_store_cannot_escape_root(tmp_path):
    link = LocalArtifactStore(tmp_path).save("x", "../../evil.txt", "Dev", "Acme")
    assert Path(link.replace("file://", "")).parent == (tmp_path / "Acme").resolve()


def test_drive_upload_creates_folders_and_shares():
    drive = FakeDrive()
    store = DriveArtifactStore("token-1", session=drive)

    link = store.save("RESUME", "Resume.txt", "Dev", "Acme")

    assert link == "https://drive.google.com/file/d/file-9/view"
    assert drive.headers["Authorization"] == "Bearer token-1"
    assert "name='Job Applications'" in drive.queries[0]
    urls = [p[0] for p in drive.posts]
    assert urls == [DRIVE_FILES_URL, DRIVE_FILES_URL, DRIVE_UPLOAD_URL, f"{DRIVE_FILES_URL}/file-9/permissions"]
    assert b"RESUME" in drive.posts[2][2]

    store.save("AGAIN", "Resume2.txt", "Dev", "Acme")
    assert len(drive.queries) == 2


def test_stale_drive_token_yields_no_link():
    store = DriveArtifactStore("expired", session=FakeDrive(status=401))
    assert store.save("RESUME", "Resume.txt", "Dev", "Acme") is None


def test_drive_store_needs_google_token():
    with_token = Account("1", "a@b.co", identities=[LinkedIdentity("google", "g", "tok")])
    without = Account("2", "a@b.co", identities=[LinkedIdentity("google", "g")])
    assert isinstance(DriveArtifactStore.for_account(with_token, session=FakeDrive()), DriveArtifactStore)
    assert DriveArtifactStore.for_account(without) is None
