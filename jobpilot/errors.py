"""Exception taxonomy shared across sources, gateway, pipeline and scheduler."""
from __future__ import annotations


class JobPilotError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(JobPilotError):
    """Required settings or credentials are missing; nothing can fall back."""


class SourceUnavailable(JobPilotError):
    """A job source is down, unauthorized, blocked or not configured."""

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"{source}: {reason}")
        self.source = source
        self.reason = reason


class AIGatewayError(JobPilotError):
    """A generative-AI call failed."""


class RateLimitExceeded(AIGatewayError):
    """The provider rejected the call with a rate-limit / quota response."""


class QuotaExhausted(AIGatewayError):
    """The local daily call ceiling is reached; no call was attempted."""


class ExtractionFailure(JobPilotError):
    """A description or contact could not be extracted from a page.

    ``html`` holds the fetched page when the fetch itself succeeded.
    """

    def __init__(self, message: str, html: str = "") -> None:
        super().__init__(message)
        self.html = html


class PersistenceFailure(JobPilotError):
    """A write or read against the store failed."""


class AutomationFailure(JobPilotError):
    """A whole user's automation run failed or could not start."""
