"""
Playwright browser session shared by one pipeline run.

The session is opened lazily on first navigation and must be closed by its
owner on every exit path. Navigations go through the politeness gate and are
checked for block signals (auth walls, challenges, LinkedIn's 999); a block
trips the process-wide circuit so no later run retries the browser.
"""
from __future__ import annotations

import time
from typing import Any, Callable

from jobpilot.config import BROWSER_USER_AGENT
from jobpilot.errors import SourceUnavailable
from jobpilot.log import get_logger
from jobpilot.models import ApplicationStatus
from jobpilot.throttle import BROWSER_CIRCUIT, CircuitBreaker, MinIntervalGate

log = get_logger(__name__)

BLOCK_URL_MARKERS: tuple[str, ...] = (
    "authwall", "/checkpoint/", "challenge", "/uas/login", "/login", "captcha",
)
BLOCK_STATUS_CODES: frozenset[int] = frozenset({429, 999})

APPLY_SELECTORS: list[str] = [
    ".jobs-s-apply button",
    "button.jobs-apply-button",
    ".apply-button",
    "a:has-text('Apply')",
    "button:has-text('Apply')",
]
FORM_SELECTORS: list[str] = ["form", "input[type='email']", "textarea"]

_LAUNCH_ARGS: list[str] = [
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-blink-features=AutomationControlled",
]
_STEALTH_SCRIPT = "Object.defineProperty(navigator, 'webdriver', {get: () => undefined});"

PageFactory = Callable[[], "tuple[Any, Callable[[], None]]"]


def is_block_url(url: str) -> bool:
    u = (url or "").lower()
    return any(marker in u for marker in BLOCK_URL_MARKERS)


def _visible(locator, timeout: int = 2000) -> bool:
    """Safe visibility check that never throws."""
    try:
        return locator.count() > 0 and locator.first.is_visible(timeout=timeout)
    except Exception:
        return False


def _launch_chromium(headless: bool, user_agent: str, timeout_ms: int) -> tuple[Any, Callable[[], None]]:
    try:
        from playwright.sync_api import sync_playwright
    except ImportError as exc:
        raise SourceUnavailable("browser", "playwright is not installed") from exc

    pw = sync_playwright().start()
    try:
        browser = pw.chromium.launch(headless=headless, args=_LAUNCH_ARGS, timeout=timeout_ms)
        context = browser.new_context(
            viewport={"width": 1366, "height": 768},
            user_agent=user_agent,
            locale="en-US",
        )
        context.add_init_script(_STEALTH_SCRIPT)
        page = context.new_page()
        page.set_default_timeout(timeout_ms)
    except Exception:
        pw.stop()
        raise

    def _close() -> None:
        try:
            context.close()
            browser.close()
        finally:
            pw.stop()

    return page, _close


class BrowserSession:
    def __init__(
        self,
        *,
        headless: bool = True,
        user_agent: str = BROWSER_USER_AGENT,
        navigation_timeout: float = 20.0,
        gate: MinIntervalGate | None = None,
        circuit: CircuitBreaker = BROWSER_CIRCUIT,
        enabled: bool = True,
        page_factory: PageFactory | None = None,
    ) -> None:
        self.headless = headless
        self.user_agent = user_agent
        self.timeout_ms = int(navigation_timeout * 1000)
        self.gate = gate or MinIntervalGate(3.0)
        self.circuit = circuit
        self.enabled = enabled
        self._page_factory = page_factory or (
            lambda: _launch_chromium(self.headless, self.user_agent, self.timeout_ms)
        )
        self._page: Any = None
        self._closer: Callable[[], None] | None = None
        self._launch_failed: str | None = None

    # ── lifecycle ──────────────────────────────────────────────────────

    @property
    def available(self) -> bool:
        return self.enabled and not self.circuit.is_open and self._launch_failed is None

    @property
    def is_open(self) -> bool:
        return self._page is not None

    def _ensure_page(self) -> Any:
        if not self.available:
            raise SourceUnavailable("browser", self.circuit.reason or self._launch_failed or "disabled")
        if self._page is None:
            try:
                self._page, self._closer = self._page_factory()
                log.info("Browser session opened (headless=%s)", self.headless)
            except SourceUnavailable as exc:
                self._launch_failed = exc.reason
                raise
            except Exception as exc:
                self._launch_failed = str(exc)[:150]
                raise SourceUnavailable("browser", f"launch failed: {self._launch_failed}") from exc
        return self._page

    def close(self) -> None:
        closer, self._closer, self._page = self._closer, None, None
        if closer is None:
            return
        try:
            closer()
            log.info("Browser session closed")
        except Exception as exc:
            log.warning("Browser cleanup error (non-critical): %s", exc)

    def __enter__(self) -> "BrowserSession":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ── navigation ─────────────────────────────────────────────────────

    def _check_blocked(self, page: Any, status: int | None) -> None:
        current = getattr(page, "url", "") or ""
        if is_block_url(current):
            self.circuit.trip(f"redirected to {current[:80]}")
        elif status in BLOCK_STATUS_CODES:
            self.circuit.trip(f"HTTP {status}")
        if self.circuit.is_open:
            raise SourceUnavailable("browser", self.circuit.reason or "blocked")

    def navigate(self, url: str) -> str:
        """Open ``url`` and return the rendered html."""
        page = self._ensure_page()
        self.gate.wait()
        try:
            response = page.goto(url, wait_until="domcontentloaded", timeout=self.timeout_ms)
        except Exception as exc:
            raise SourceUnavailable("browser", f"navigation failed: {str(exc)[:120]}") from exc
        self._check_blocked(page, getattr(response, "status", None))
        return page.content()

    def attempt_apply(self, url: str) -> tuple[ApplicationStatus, str]:
        """Best-effort apply click; returns (status, method) and never submits forms."""
        try:
            self.navigate(url)
        except SourceUnavailable as exc:
            if self.circuit.is_open:
                return ApplicationStatus.REJECTED_BY_SOURCE, "blocked_by_source"
            return ApplicationStatus.ATTEMPTED, f"access_failed ({exc.reason})"

        page = self._page
        for sel in APPLY_SELECTORS:
            locator = page.locator(sel)
            if not _visible(locator):
                continue
            try:
                locator.first.click()
            except Exception as exc:
                log.debug("Apply click failed on %s: %s", sel, exc)
                continue
            time.sleep(min(self.gate.interval, 3.0))
            if is_block_url(getattr(page, "url", "")):
                self.circuit.trip("apply redirected to a login wall")
                return ApplicationStatus.REJECTED_BY_SOURCE, "blocked_by_source"
            if any(_visible(page.locator(f)) for f in FORM_SELECTORS):
                return ApplicationStatus.ATTEMPTED, "form_awaiting_manual_submission"
            return ApplicationStatus.APPLIED, "direct_application_completed"
        return ApplicationStatus.ATTEMPTED, "no_apply_button"
