"""Where customized résumés end up: a local folder or the user's Google Drive."""
from __future__ import annotations

import json
import re
import uuid
from datetime import date, datetime
from pathlib import Path

import requests

from jobpilot.identity import Account
from jobpilot.log import get_logger

log = get_logger(__name__)

DRIVE_FILES_URL = "https://www.googleapis.com/drive/v3/files"
DRIVE_UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3/files"
FOLDER_MIME = "application/vnd.google-apps.folder"
ROOT_FOLDER = "Job Applications"


def _sanitize(text: str) -> str:
    return re.sub(r"\s+", "_", re.sub(r"[^a-zA-Z0-9\s-]", "", text).strip())


def resume_file_name(job_title: str, company: str, customized: bool, *, day: date | None = None) -> str:
    kind = "AI_Customized" if customized else "Original"
    day = day or date.today()
    return f"Resume_{_sanitize(company)}_{_sanitize(job_title)}_{kind}_{day.isoformat()}.txt"


def _header(job_title: str, company: str) -> str:
    stamp = datetime.now().strftime("%Y-%m-%d %H:%M")
    return f"Resume for {job_title} at {company}\nGenerated: {stamp}\n{'=' * 60}\n\n"


class LocalArtifactStore:
    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def save(self, content: str, file_name: str, job_title: str, company: str) -> str | None:
        try:
            folder = self.root / (_sanitize(company) or "Unknown")
            folder.mkdir(parents=True, exist_ok=True)
            path = folder / Path(file_name).name
            path.write_text(_header(job_title, company) + content, encoding="utf-8")
        except OSError as exc:
            log.warning("Could not save résumé locally: %s", exc)
            return None
        log.info("Résumé saved → %s", path)
        return path.resolve().as_uri()


class DriveArtifactStore:
    """Uploads with the account's Google access token; a stale token just yields None."""

    def __init__(
        self,
        access_token: str,
        *,
        timeout: float = 15.0,
        session: requests.Session | None = None,
        share: bool = True,
    ) -> None:
        self.timeout = timeout
        self.share = share
        self.session = session or requests.Session()
        self.session.headers["Authorization"] = f"Bearer {access_token}"
        self._folders: dict[tuple[str, str | None], str] = {}

    @classmethod
    def for_account(cls, account: Account, **kwargs) -> "DriveArtifactStore | None":
        google = account.identity("google")
        if google is None or not google.token:
            return None
        return cls(google.token, **kwargs)

    def _folder(self, name: str, parent: str | None) -> str:
        key = (name, parent)
        if key in self._folders:
            return self._folders[key]
        safe = name.replace("'", "\\'")
        q = f"name='{safe}' and mimeType='{FOLDER_MIME}' and trashed=false"
        if parent:
            q += f" and '{parent}' in parents"
        r = self.session.get(DRIVE_FILES_URL, params={"q": q, "fields": "files(id,name)"}, timeout=self.timeout)
        r.raise_for_status()
        files = r.json().get("files") or []
        if files:
            folder_id = files[0]["id"]
        else:
            meta: dict = {"name": name, "mimeType": FOLDER_MIME}
            if parent:
                meta["parents"] = [parent]
            r = self.session.post(DRIVE_FILES_URL, json=meta, params={"fields": "id"}, timeout=self.timeout)
            r.raise_for_status()
            folder_id = r.json()["id"]
            log.info("Created Drive folder %r", name)
        self._folders[key] = folder_id
        return folder_id

    def _upload(self, content: str, file_name: str, job_title: str, company: str) -> str:
        root = self._folder(ROOT_FOLDER, None)
        parent = self._folder(_sanitize(company) or "Unknown", root)
        meta = {
            "name": file_name,
            "parents": [parent],
            "description": f"Resume for {job_title} at {company} - Generated on {date.today().isoformat()}",
        }
        boundary = f"jobpilot-{uuid.uuid4().hex}"
        body = (
            f"--{boundary}\r\nContent-Type: application/json; charset=UTF-8\r\n\r\n{json.dumps(meta)}\r\n"
            f"--{boundary}\r\nContent-Type: text/plain; charset=UTF-8\r\n\r\n"
            f"{_header(job_title, company)}{content}\r\n--{boundary}--"
        )
        r = self.session.post(
            DRIVE_UPLOAD_URL,
            params={"uploadType": "multipart", "fields": "id,webViewLink"},
            data=body.encode("utf-8"),
            headers={"Content-Type": f"multipart/related; boundary={boundary}"},
            timeout=self.timeout,
        )
        r.raise_for_status()
        file_id = r.json()["id"]
        if self.share:
            self.session.post(
                f"{DRIVE_FILES_URL}/{file_id}/permissions",
                json={"role": "reader", "type": "anyone"},
                timeout=self.timeout,
            ).raise_for_status()
        return f"https://drive.google.com/file/d/{file_id}/view"

    def save(self, content: str, file_name: str, job_title: str, company: str) -> str | None:
        try:
            link = self._upload(content, file_name, job_title, company)
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            if status in (401, 403):
                log.warning("Drive token rejected (HTTP %s); résumé not uploaded", status)
            else:
                log.warning("Drive upload failed: %s", exc)
            return None
        except (requests.RequestException, KeyError, ValueError) as exc:
            log.warning("Drive upload failed: %s", exc)
            return None
        log.info("Résumé uploaded to Drive: %s", link)
        return link
