"""User-facing notification texts (light markdown: **bold**, _italic_, [links](url))."""
from __future__ import annotations

from datetime import date, datetime
from zoneinfo import ZoneInfo

from jobpilot.models import ApplicationRecord, ApplicationStatus, AutomationRunResult, JobPosting

_STATUS_LABELS: dict[ApplicationStatus, str] = {
    ApplicationStatus.ATTEMPTED: "Ready for manual submission",
    ApplicationStatus.APPLIED: "Applied",
    ApplicationStatus.REJECTED_BY_SOURCE: "Blocked by job site",
    ApplicationStatus.ERROR: "Processed with errors",
}


def _stamp(tz: str) -> str:
    return datetime.now(ZoneInfo(tz)).strftime("%d %b %Y, %H:%M")


def _score_badge(score: int) -> str:
    if score >= 80:
        return "\U0001f3af"
    if score >= 60:
        return "✅"
    return "\U0001f4dd"


def application_message(posting: JobPosting, record: ApplicationRecord, *, tz: str = "Asia/Kolkata") -> str:
    lines = [
        f"{_score_badge(record.match_score)} **{_STATUS_LABELS[record.status]}**",
        "",
        f"**{posting.company}**",
        f"- Role: {posting.title}",
        f"- Location: {posting.location or 'Location not specified'}",
        f"- Match score: {record.match_score}%",
        f"- Resume: {'AI-customized' if record.resume_customized else 'Original'}",
    ]
    if record.artifact_link:
        lines.append(f"- [View resume]({record.artifact_link})")
    lines.append(f"- [Job posting]({posting.url})")
    if posting.synthetic:
        lines.append("- _Sample posting: no live source returned jobs for this search_")
    lines += ["", f"_{_stamp(tz)}_"]
    return "\n".join(lines)


def daily_summary_message(result: AutomationRunResult, *, day: date | None = None) -> str:
    day = day or date.today()
    closing = (
        "Great progress today!"
        if result.applied > 0
        else "Check your search criteria if no applications were made."
    )
    return "\n".join([
        f"**Daily Job Automation Summary – {day.isoformat()}**",
        "",
        f"- Jobs found: {result.found}",
        f"- Applied: {result.applied}",
        f"- Skipped (duplicates): {result.skipped}",
        f"- Errors: {result.errors}",
        "",
        closing,
    ])


def error_message(error: str, *, tz: str = "Asia/Kolkata") -> str:
    return "\n".join([
        "**Automation Error**",
        "",
        "Your daily job automation hit an error:",
        f"`{error[:300]}`",
        "",
        "- Check your LinkedIn / Google account links",
        "- Verify your automation settings",
        "",
        f"_{_stamp(tz)}_",
    ])


def start_message(*, tz: str = "Asia/Kolkata") -> str:
    return "\n".join([
        "**Daily Automation Started**",
        "",
        "Searching for new openings, customizing your resume and saving each copy.",
        "You'll get a message for every application.",
        "",
        f"_{_stamp(tz)}_",
    ])
