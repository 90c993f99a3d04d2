from datetime import datetime
from zoneinfo import ZoneInfo

from jobpilot.config import Settings
from jobpilot.run_daily import loop, next_run, run_once
from jobpilot.scheduler import BatchReport

IST = ZoneInfo("Asia/Kolkata")


def test_next_run_later_today():
    now = datetime(2026, 5, 1, 7, 30, tzinfo=IST)
    assert next_run(now, 9) == datetime(2026, 5, 1, 9, 0, tzinfo=IST)


def test_next_run_rolls_to_tomorrow():
    now = datetime(2026, 5, 1, 9, 0, tzinfo=IST)
    assert next_run(now, 9) == datetime(2026, 5, 2, 9, 0, tzinfo=IST)


def test_next_run_test_interval():
    now = datetime(2026, 5, 1, 9, 0, tzinfo=IST)
    assert next_run(now, 9, interval_minutes=5) == datetime(2026, 5, 1, 9, 5, tzinfo=IST)


class StubScheduler:
    def __init__(self, reports):
        self.reports = list(reports)
        self.calls = 0

    def run_once(self):
        self.calls += 1
        report = self.reports.pop(0)
        if isinstance(report, Exception):
            raise report
        return report


def test_run_once_reports_totals():
    assert run_once(StubScheduler([BatchReport(started_at="t")]))["totals"]["found"] == 0
    assert run_once(StubScheduler([None])) is None


def test_loop_survives_a_crashed_batch():
    scheduler = StubScheduler([RuntimeError("db gone"), BatchReport(started_at="t")])
    waits = []

    runs = loop(scheduler, Settings(test_interval_minutes=1), sleep=waits.append, max_runs=2)

    assert runs == 2
    assert scheduler.calls == 2
    assert all(55 <= w <= 60 for w in waits)
