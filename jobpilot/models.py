"""Data models for postings, analyses, applications and runs."""
from __future__ import annotations

import math
import re
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable

DEFAULT_KEYWORDS: tuple[str, ...] = ("typescript", "react", "node.js", "frontend", "fullstack")
DEFAULT_LOCATION = "India"

_WS = re.compile(r"\s+")


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return _WS.sub(" ", str(value)).strip()


def _clean_list(values: Any) -> tuple[str, ...]:
    if isinstance(values, str):
        values = [values]
    if values is None or isinstance(values, (bytes, dict)) or not isinstance(values, Iterable):
        return ()
    return tuple(s for s in (_clean(v) for v in values if isinstance(v, (str, int, float))) if s)


def _parse_date(value: Any) -> str | None:
    """ISO-8601 string for timestamps, ISO dates or epoch seconds; None otherwise."""
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.astimezone(timezone.utc).isoformat()
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(float(value), tz=timezone.utc).isoformat()
        except (OverflowError, OSError, ValueError):
            return None
    text = str(value).strip()
    if text.isdigit():
        return _parse_date(int(text))
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).isoformat()
    except ValueError:
        return None


@dataclass(frozen=True)
class SearchCriteria:
    keywords: tuple[str, ...] = ()
    location: str = ""
    experience_level: str = "mid-level"
    job_type: str = "full-time"

    def __post_init__(self) -> None:
        object.__setattr__(self, "keywords", _clean_list(self.keywords))
        object.__setattr__(self, "location", _clean(self.location))

    @property
    def query(self) -> str:
        return " ".join(self.keywords)

    @classmethod
    def from_preferences(
        cls,
        keywords: Iterable[str] | None,
        location: str | None,
        experience_level: str | None = None,
        job_type: str | None = None,
    ) -> "SearchCriteria":
        """Criteria from stored user preferences, falling back to defaults."""
        kws = _clean_list(keywords)
        return cls(
            keywords=kws or DEFAULT_KEYWORDS,
            location=_clean(location) or DEFAULT_LOCATION,
            experience_level=_clean(experience_level) or "mid-level",
            job_type=_clean(job_type) or "full-time",
        )


@dataclass(frozen=True)
class JobPosting:
    source_id: str
    title: str
    company: str
    location: str
    url: str
    description: str = ""
    posted_date: str | None = None
    source: str = "unknown"
    synthetic: bool = False

    @classmethod
    def from_payload(cls, payload: dict[str, Any], *, source: str, synthetic: bool = False) -> "JobPosting | None":
        """Validate a normalized source payload; None for unusable entries."""
        url = _clean(payload.get("url"))
        title = _clean(payload.get("title"))
        if not title or not url.lower().startswith(("http://", "https://")):
            return None
        return cls(
            source_id=_clean(payload.get("source_id")) or url,
            title=title,
            company=_clean(payload.get("company")) or "Unknown company",
            location=_clean(payload.get("location")),
            url=url,
            description=str(payload.get("description") or "").strip(),
            posted_date=_parse_date(payload.get("posted_date")),
            source=source,
            synthetic=synthetic,
        )

    def fallback_description(self) -> str:
        return f"Job: {self.title} at {self.company}. Location: {self.location or 'not specified'}"


@dataclass(frozen=True)
class MatchAnalysis:
    match_score: int
    missing_skills: tuple[str, ...] = ()
    recommendations: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "match_score", clamp_score(self.match_score))

    @classmethod
    def coerce(cls, payload: Any) -> "MatchAnalysis":
        """Build from an untyped AI response; raises ValueError when unusable."""
        if not isinstance(payload, dict):
            raise ValueError(f"expected an object, got {type(payload).__name__}")
        raw = payload.get("matchScore", payload.get("match_score"))
        if raw is None:
            raise ValueError("missing matchScore")
        return cls(
            match_score=clamp_score(raw),
            missing_skills=_clean_list(payload.get("missingSkills", payload.get("missing_skills"))),
            recommendations=_clean_list(payload.get("recommendations")),
        )


def clamp_score(value: Any) -> int:
    """Coerce ``value`` (int, float, "82%", "82.5") into 0..100."""
    if isinstance(value, bool):
        raise ValueError("boolean is not a score")
    if isinstance(value, str):
        m = re.search(r"-?\d+(?:\.\d+)?", value)
        if not m:
            raise ValueError(f"no number in {value!r}")
        value = float(m.group())
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"not a score: {value!r}") from exc
    if not math.isfinite(number):
        raise ValueError(f"non-finite score: {value!r}")
    if 0 < number <= 1 and not float(number).is_integer():
        number *= 100
    return max(0, min(100, int(round(number))))


class ApplicationStatus(str, Enum):
    ATTEMPTED = "attempted"
    APPLIED = "applied"
    REJECTED_BY_SOURCE = "rejected_by_source"
    ERROR = "error"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]

    @staticmethod
    def advance(current: "ApplicationStatus", new: "ApplicationStatus") -> "ApplicationStatus":
        """Move forward only; a lower-ranked status never replaces a higher one."""
        return new if new.rank > current.rank else current


_STATUS_RANK = {
    ApplicationStatus.ATTEMPTED: 0,
    ApplicationStatus.APPLIED: 1,
    ApplicationStatus.REJECTED_BY_SOURCE: 1,
    ApplicationStatus.ERROR: 2,
}


@dataclass
class ApplicationRecord:
    user_id: str
    job_url: str
    status: ApplicationStatus
    match_score: int
    resume_customized: bool
    notes: str = ""
    artifact_link: str | None = None
    id: int | None = None
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def as_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data


@dataclass(frozen=True)
class HRContact:
    name: str | None = None
    email: str | None = None
    title: str | None = None
    company: str | None = None
    linkedin_profile: str | None = None
    phone: str | None = None

    @property
    def dedup_key(self) -> str | None:
        return self.email or self.linkedin_profile or self.name or None


@dataclass(frozen=True)
class ResumeArtifact:
    original_content: str
    customized_content: str
    format_type: str = "professional"
    customization_successful: bool = False


@dataclass
class AutomationRunResult:
    found: int = 0
    applied: int = 0
    skipped: int = 0
    errors: int = 0

    def merge(self, other: "AutomationRunResult") -> "AutomationRunResult":
        return AutomationRunResult(
            found=self.found + other.found,
            applied=self.applied + other.applied,
            skipped=self.skipped + other.skipped,
            errors=self.errors + other.errors,
        )

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


class EventKind(str, Enum):
    JOB_FOUND = "job_found"
    JOB_PROCESSING = "job_processing"
    JOB_DONE = "job_done"
    RUN_COMPLETE = "run_complete"
    RUN_ERROR = "run_error"


@dataclass(frozen=True)
class ProgressEvent:
    kind: EventKind
    payload: dict[str, Any] = field(default_factory=dict)

    def as_message(self) -> dict[str, Any]:
        return {"event": self.kind.value, "data": self.payload}
