import asyncio

import pytest

from jobpilot.errors import AutomationFailure
from jobpilot.interactive import InteractiveRun
from jobpilot.models import SearchCriteria

from conftest import build_service, make_posting


class Channel:
    def __init__(self, fail_after=None):
        self.messages = []
        self.fail_after = fail_after

    async def send_json(self, data):
        if self.fail_after is not None and len(self.messages) >= self.fail_after:
            raise ConnectionResetError("client went away")
        self.messages.append(data)


def events(channel):
    return [m["event"] for m in channel.messages]


def test_events_arrive_in_order_and_end_with_run_complete(store, user):
    service = build_service(store, [make_posting(1), make_posting(2)])
    channel = Channel()

    result = asyncio.run(service.start_interactive_run(user.id, SearchCriteria(("react",), "India"), channel))

    assert events(channel) == ["job_found", "job_processing", "job_done"] * 2 + ["run_complete"]
    assert channel.messages[-1]["data"] == {"summary": result.as_dict(), "error": None}
    assert result.applied == 2


def test_disconnect_does_not_stop_the_work(store, user):
    service = build_service(store, [make_posting(i) for i in range(3)])
    channel = Channel(fail_after=2)

    result = asyncio.run(service.start_interactive_run(user.id, None, channel))

    assert events(channel) == ["job_found", "job_processing"]
    assert result.applied == 3
    assert len(store.list_applications(user.id)) == 3


def test_pipeline_crash_still_completes(store, user):
    class Crashing:
        def run(self, *args, **kwargs):
            raise RuntimeError("aggregator exploded")

    channel = Channel()

    async def go():
        run = InteractiveRun(Crashing(), user, SearchCriteria(), channel)
        return await run.execute()

    result = asyncio.run(go())

    assert events(channel) == ["run_error", "run_complete"]
    assert channel.messages[-1]["data"]["error"] == "aggregator exploded"
    assert result.found == 0


def test_already_applied_urls_are_skipped(store, user):
    service = build_service(store, [make_posting(1)])
    asyncio.run(service.start_interactive_run(user.id, None, Channel()))
    channel = Channel()

    result = asyncio.run(service.start_interactive_run(user.id, None, channel))

    assert result.skipped == 1
    assert events(channel) == ["run_complete"]


def test_unknown_user(store):
    service = build_service(store, [])
    with pytest.raises(AutomationFailure):
        asyncio.run(service.start_interactive_run("nobody", None, Channel()))
