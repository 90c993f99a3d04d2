#!/usr/bin/env python3
"""
Install the cron job for the daily run at DAILY_RUN_HOUR in TIMEZONE (from .env).
Run once: python setup_cron.py
"""
from __future__ import annotations

import subprocess
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent
sys.path.insert(0, str(ROOT))

from jobpilot.config import load_settings  # noqa: E402

CRON_MARKER = "jobpilot.run_daily"


def cron_entry(root: Path, hour: int, tz: str, python: Path) -> str:
    return f"0 {hour} * * * TZ={tz} cd {root} && {python} -m {CRON_MARKER} --once >> {root / 'logs' / 'cron.log'} 2>&1"


def merge_crontab(existing: str, entry: str) -> str | None:
    """New crontab text, or None when ``entry`` is already installed.

    Any older jobpilot line (different hour or path) is replaced.
    """
    lines = [ln for ln in existing.strip().splitlines() if ln.strip()]
    if entry in lines:
        return None
    kept = [ln for ln in lines if CRON_MARKER not in ln]
    return "\n".join(kept + [entry])


def main() -> int:
    settings = load_settings()
    venv_python = ROOT / ".venv" / "bin" / "python"
    if not venv_python.exists():
        print("Error: .venv not found. Run: python -m venv .venv && .venv/bin/pip install -e .")
        return 1
    entry = cron_entry(ROOT, settings.daily_run_hour, settings.timezone, venv_python)
    try:
        out = subprocess.run(["crontab", "-l"], capture_output=True, text=True, timeout=5)
        existing = (out.stdout or "") if out.returncode == 0 else ""
        new_crontab = merge_crontab(existing, entry)
        if new_crontab is None:
            print("Cron entry already present. No change.")
            return 0
        proc = subprocess.run(["crontab", "-"], input=new_crontab + "\n", capture_output=True, text=True, timeout=5)
        if proc.returncode != 0:
            _write_crontab_file(new_crontab)
            print("Could not install crontab automatically. Run manually:")
            print(f"  crontab {ROOT / 'crontab.txt'}")
            return 1
        print(f"Cron installed: daily at {settings.daily_run_hour}:00 {settings.timezone}")
        print(f"  Entry: {entry}")
        return 0
    except subprocess.TimeoutExpired:
        _write_crontab_file(entry)
        print("Crontab timed out. To install manually, run:")
        print(f"  crontab {ROOT / 'crontab.txt'}")
        return 1
    except FileNotFoundError:
        print("crontab not found. On Windows use Task Scheduler; on Mac/Linux ensure cron is available.")
        _write_crontab_file(entry)
        return 1


def _write_crontab_file(content: str) -> None:
    path = ROOT / "crontab.txt"
    path.write_text(content + "\n", encoding="utf-8")
    print(f"Wrote {path}")


if __name__ == "__main__":
    raise SystemExit(main())
