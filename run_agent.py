#!/usr/bin/env python3
"""Manual one-off automation run for a single user (account id or e-mail)."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))

from jobpilot.api import JobPilotService  # noqa: E402
from jobpilot.errors import AutomationFailure, ConfigurationError  # noqa: E402
from jobpilot.log import get_logger  # noqa: E402

log = get_logger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("user", help="account id or e-mail address")
    args = parser.parse_args(argv)

    try:
        service = JobPilotService.from_settings()
    except ConfigurationError as exc:
        log.error("Configuration error: %s", exc)
        return 2
    try:
        summary = service.trigger_manual_run(args.user)
    except AutomationFailure as exc:
        log.error("%s", exc)
        return 1

    log.info("Run complete.")
    log.info("  Jobs found: %d", summary["found"])
    log.info("  Applied: %d", summary["applied"])
    log.info("  Skipped (duplicates): %d", summary["skipped"])
    log.info("  Errors: %d", summary["errors"])
    usage = service.ai_usage()
    log.info("  AI requests today: %d/%d", usage["request_count"], usage["daily_limit"])
    return 0


if __name__ == "__main__":
    sys.exit(main())
