"""
Run the automation batch every day at DAILY_RUN_HOUR in TIMEZONE.

Usage:
  - Cron (recommended): install with ``python setup_cron.py``, which adds
      0 9 * * * TZ=Asia/Kolkata cd /path/to/project && .venv/bin/python -m jobpilot.run_daily --once
  - Or keep this process running: ``python -m jobpilot.run_daily``
  - TEST_INTERVAL_MINUTES=5 runs every five minutes instead (testing only).
"""
from __future__ import annotations

import argparse
import json
import sys
import time
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from jobpilot.api import JobPilotService
from jobpilot.config import Settings, load_settings
from jobpilot.errors import ConfigurationError
from jobpilot.log import get_logger, setup_logging
from jobpilot.scheduler import AutomationScheduler

log = get_logger(__name__)


def next_run(now: datetime, hour: int, interval_minutes: int = 0) -> datetime:
    """Next trigger after ``now`` (timezone-aware)."""
    if interval_minutes > 0:
        return now + timedelta(minutes=interval_minutes)
    target = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if now >= target:
        target += timedelta(days=1)
    return target


def run_once(scheduler: AutomationScheduler) -> dict | None:
    report = scheduler.run_once()
    if report is None:
        return None
    summary = report.as_dict()
    log.info("Batch summary: %s", json.dumps(summary["totals"]))
    return summary


def loop(scheduler: AutomationScheduler, settings: Settings, *, sleep=time.sleep, max_runs: int | None = None) -> int:
    tz = ZoneInfo(settings.timezone)
    if settings.test_interval_minutes > 0:
        log.warning("Test schedule active: every %d minute(s)", settings.test_interval_minutes)
    else:
        log.info("Scheduler: run daily at %d:00 %s", settings.daily_run_hour, settings.timezone)
    runs = 0
    while max_runs is None or runs < max_runs:
        now = datetime.now(tz)
        target = next_run(now, settings.daily_run_hour, settings.test_interval_minutes)
        wait_secs = max(0.0, (target - now).total_seconds())
        log.info("Next run at %s (in %.1f hours)", target.strftime("%Y-%m-%d %H:%M %Z"), wait_secs / 3600)
        sleep(wait_secs)
        log.info("Running automation...")
        try:
            run_once(scheduler)
        except Exception:
            log.exception("Automation batch crashed; will retry at the next trigger")
        runs += 1
    return runs


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Daily job automation runner")
    parser.add_argument("--once", action="store_true", help="run a single batch and exit")
    parser.add_argument("--log-level", default=None, help="override LOG_LEVEL (DEBUG, INFO, ...)")
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    settings = load_settings()
    try:
        service = JobPilotService.from_settings(settings)
    except ConfigurationError as exc:
        log.error("Configuration error: %s", exc)
        return 2

    if args.once:
        summary = run_once(service.scheduler)
        return 0 if summary is not None else 1
    loop(service.scheduler, settings)
    return 0


if __name__ == "__main__":
    sys.exit(main())
