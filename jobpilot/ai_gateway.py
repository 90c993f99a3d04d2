"""
Rate-limited gateway to the LLM (Groq, OpenAI-compatible API).

Two limits are enforced locally before any call leaves the process:

* a minimum wall-clock interval between successive calls, and
* a daily ceiling that resets when the local date changes.

Nothing here raises to the caller. Each failure mode has its own documented
fallback:

=====================  ==============  ==========================
condition              analyze score   customize returns
=====================  ==============  ==========================
daily ceiling reached  65              original résumé (no call)
provider 429 / quota   60              original résumé
any other failure      50              original résumé
=====================  ==============  ==========================
"""
from __future__ import annotations

import json
import re
import threading
import time
from datetime import date, datetime, timedelta
from typing import Any, Callable

from jobpilot.config import Settings
from jobpilot.errors import AIGatewayError, QuotaExhausted, RateLimitExceeded
from jobpilot.log import get_logger
from jobpilot.models import MatchAnalysis

log = get_logger(__name__)

GROQ_BASE_URL = "https://api.groq.com/openai/v1"

QUOTA_FALLBACK = MatchAnalysis(
    match_score=65,
    missing_skills=("Daily API limit reached",),
    recommendations=("Job analysis unavailable today - check back tomorrow",),
)
RATE_LIMIT_FALLBACK = MatchAnalysis(
    match_score=60,
    missing_skills=("Unable to analyze due to API limits",),
    recommendations=("Resume analysis temporarily unavailable - manual review recommended",),
)
ERROR_FALLBACK = MatchAnalysis(
    match_score=50,
    missing_skills=(),
    recommendations=("Unable to analyze - please review manually",),
)

ANALYZE_PROMPT = """Analyze how well this resume matches the job description and provide actionable insights.

RESUME:
{resume}

JOB DESCRIPTION:
{description}

Respond with a JSON object containing:
- matchScore: an integer from 0 to 100 for how well the resume matches
- missingSkills: array of key skills mentioned in the job but missing from the resume
- recommendations: array of specific suggestions to improve the application

Return only valid JSON, no other text or markdown formatting."""

CUSTOMIZE_PROMPT = """You are a professional resume writer. Customize this resume for a specific job application.

ORIGINAL RESUME:
{resume}

JOB TITLE: {title}
COMPANY: {company}
JOB DESCRIPTION:
{description}

Instructions:
1. Highlight the most relevant skills, experience and achievements for this role
2. Reorder bullet points to prioritize job-relevant experience
3. Work keywords from the job description in naturally
4. Adjust the professional summary to align with this role
5. Keep the same overall format, structure and length
6. Stay truthful - never add experience or skills the candidate does not have

Return ONLY the customized resume content, with no explanations or comments."""

# Cap prompt inputs so one huge posting cannot blow the token budget.
_MAX_RESUME_CHARS = 8000
_MAX_DESCRIPTION_CHARS = 6000

Completion = Callable[[str, int], str]


def _is_rate_limit(exc: BaseException) -> bool:
    if getattr(exc, "status_code", None) == 429:
        return True
    text = str(exc).lower()
    return "429" in text or "quota" in text or "rate limit" in text or "rate_limit" in text


def _strip_fences(text: str) -> str:
    text = text.strip()
    text = re.sub(r"^```(?:json)?\s*", "", text, flags=re.IGNORECASE)
    text = re.sub(r"\s*```$", "", text)
    return text.strip()


def parse_analysis(text: str) -> MatchAnalysis:
    """Parse the model's JSON answer; raises ValueError on malformed output."""
    cleaned = _strip_fences(text)
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError:
        m = re.search(r"\{.*\}", cleaned, flags=re.DOTALL)
        if not m:
            raise ValueError(f"no JSON object in model output: {cleaned[:80]!r}")
        payload = json.loads(m.group())
    return MatchAnalysis.coerce(payload)


def groq_completion(api_key: str, model: str, timeout: float = 30.0) -> Completion:
    from openai import OpenAI

    client = OpenAI(api_key=api_key, base_url=GROQ_BASE_URL, timeout=timeout, max_retries=0)

    def _complete(prompt: str, max_tokens: int) -> str:
        r = client.chat.completions.create(
            model=model,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=max_tokens,
            temperature=0.3,
        )
        return (r.choices[0].message.content or "").strip()

    return _complete


class AIGateway:
    def __init__(
        self,
        completion: Completion,
        *,
        daily_limit: int = 45,
        min_interval: float = 2.0,
        clock: Callable[[], float] = time.time,
        today: Callable[[], date] = date.today,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._complete = completion
        self.daily_limit = daily_limit
        self.min_interval = min_interval
        self._clock = clock
        self._today = today
        self._sleep = sleep
        self._lock = threading.Lock()
        self._count = 0
        self._count_day: date = today()
        self._last_call: float | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "AIGateway":
        settings.require_ai()
        return cls(
            groq_completion(settings.groq_api_key, settings.groq_model),
            daily_limit=settings.ai_daily_limit,
            min_interval=settings.ai_min_interval_seconds,
        )

    # ── limits ─────────────────────────────────────────────────────────

    def _reserve(self) -> None:
        """Claim one call slot or raise QuotaExhausted without calling out."""
        with self._lock:
            today = self._today()
            if today != self._count_day:
                self._count_day = today
                self._count = 0
            if self._count >= self.daily_limit:
                raise QuotaExhausted(
                    f"Daily API limit reached ({self.daily_limit} requests); resets at midnight"
                )
            if self._last_call is not None:
                wait = self.min_interval - (self._clock() - self._last_call)
                if wait > 0:
                    log.debug("Rate limiting: waiting %.2fs before next request", wait)
                    self._sleep(wait)
            self._last_call = self._clock()
            self._count += 1
            log.info("AI request %d/%d today", self._count, self.daily_limit)

    def _call(self, prompt: str, max_tokens: int) -> str:
        self._reserve()
        try:
            return self._complete(prompt, max_tokens)
        except Exception as exc:
            if _is_rate_limit(exc):
                raise RateLimitExceeded(str(exc)[:200]) from exc
            raise AIGatewayError(str(exc)[:200]) from exc

    def usage(self) -> dict[str, Any]:
        with self._lock:
            count = self._count if self._today() == self._count_day else 0
        reset = datetime.combine(self._today() + timedelta(days=1), datetime.min.time())
        return {
            "request_count": count,
            "daily_limit": self.daily_limit,
            "remaining": max(0, self.daily_limit - count),
            "reset_at": reset.isoformat(),
        }

    # ── operations ─────────────────────────────────────────────────────

    def analyze(self, resume: str, description: str) -> MatchAnalysis:
        prompt = ANALYZE_PROMPT.format(
            resume=resume[:_MAX_RESUME_CHARS],
            description=description[:_MAX_DESCRIPTION_CHARS],
        )
        try:
            return parse_analysis(self._call(prompt, max_tokens=600))
        except QuotaExhausted as exc:
            log.warning("Match analysis skipped: %s", exc)
            return QUOTA_FALLBACK
        except RateLimitExceeded as exc:
            log.warning("Match analysis rate limited, using fallback score: %s", exc)
            return RATE_LIMIT_FALLBACK
        except (AIGatewayError, ValueError) as exc:
            log.warning("Match analysis failed, using fallback score: %s", exc)
            return ERROR_FALLBACK

    def customize(self, resume: str, description: str, title: str, company: str) -> str:
        prompt = CUSTOMIZE_PROMPT.format(
            resume=resume[:_MAX_RESUME_CHARS],
            description=description[:_MAX_DESCRIPTION_CHARS],
            title=title,
            company=company,
        )
        try:
            customized = _strip_fences(self._call(prompt, max_tokens=2500))
        except QuotaExhausted as exc:
            log.warning("Resume customization skipped: %s", exc)
            return resume
        except AIGatewayError as exc:
            log.warning("Resume customization failed, keeping original: %s", exc)
            return resume
        if not customized:
            log.warning("Empty customization for %s @ %s, keeping original", title, company)
            return resume
        log.info("Resume customized for %s @ %s", title, company)
        return customized
