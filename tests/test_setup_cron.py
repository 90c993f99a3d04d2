from pathlib import Path

from setup_cron import cron_entry, merge_crontab

ROOT = Path("/srv/jobpilot")
PYTHON = ROOT / ".venv" / "bin" / "python"


def test_cron_entry():
    assert cron_entry(ROOT, 9, "Asia/Kolkata", PYTHON) == (
        "0 9 * * * TZ=Asia/Kolkata cd /srv/jobpilot && /srv/jobpilot/.venv/bin/python "
        "-m jobpilot.run_daily --once >> /srv/jobpilot/logs/cron.log 2>&1"
    )


def test_merge_keeps_foreign_lines_and_replaces_old_entry():
    old = cron_entry(ROOT, 7, "UTC", PYTHON)
    new = cron_entry(ROOT, 9, "Asia/Kolkata", PYTHON)
    existing = f"# backups\n30 2 * * * /usr/local/bin/backup\n{old}\n"

    merged = merge_crontab(existing, new)

    assert merged.splitlines() == ["# backups", "30 2 * * * /usr/local/bin/backup", new]


def test_merge_is_idempotent():
    entry = cron_entry(ROOT, 9, "Asia/Kolkata", PYTHON)
    assert merge_crontab(entry + "\n", entry) is None
    assert merge_crontab("", entry) == entry
