"""
Interactive runs pushed to a connected client.

The pipeline is blocking, so it runs in a worker thread; its progress events
cross back into the event loop through an ``asyncio.Queue`` and are sent in
the order they were produced. If the client goes away, later events are
dropped but the work already started is not interrupted. The client always
gets a final ``run_complete`` event while it is still connected.
"""
from __future__ import annotations

import asyncio
from typing import Any, Protocol

from jobpilot.identity import Account
from jobpilot.log import get_logger
from jobpilot.models import AutomationRunResult, EventKind, ProgressEvent, SearchCriteria
from jobpilot.pipeline import JobPipeline

log = get_logger(__name__)


class PushChannel(Protocol):
    async def send_json(self, data: Any) -> None: ...


class InteractiveRun:
    def __init__(
        self,
        pipeline: JobPipeline,
        user: Account,
        criteria: SearchCriteria,
        channel: PushChannel,
        *,
        exclusion: set[str] | None = None,
        limit: int = 10,
    ) -> None:
        self.pipeline = pipeline
        self.user = user
        self.criteria = criteria
        self.channel = channel
        self.exclusion = set(exclusion or ())
        self.limit = limit
        self.connected = True
        self.sent = 0
        self.dropped = 0
        self._queue: asyncio.Queue[ProgressEvent | None] = asyncio.Queue()

    async def execute(self) -> AutomationRunResult:
        loop = asyncio.get_running_loop()

        def sink(event: ProgressEvent) -> None:
            loop.call_soon_threadsafe(self._queue.put_nowait, event)

        deliver = asyncio.create_task(self._deliver())
        result = AutomationRunResult()
        error: str | None = None
        try:
            result = await asyncio.to_thread(
                self.pipeline.run,
                self.user,
                self.criteria,
                self.exclusion,
                None,
                sink,
                limit=self.limit,
            )
        except Exception as exc:
            log.exception("Interactive run failed for %s", self.user.id)
            error = str(exc)[:300]
            self._queue.put_nowait(ProgressEvent(EventKind.RUN_ERROR, {"error": error}))
        self._queue.put_nowait(ProgressEvent(EventKind.RUN_COMPLETE, {
            "summary": result.as_dict(),
            "error": error,
        }))
        self._queue.put_nowait(None)
        await deliver
        log.info(
            "Interactive run for %s finished: %s (sent %d, dropped %d events)",
            self.user.id, result.as_dict(), self.sent, self.dropped,
        )
        return result

    async def _deliver(self) -> None:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            if not self.connected:
                self.dropped += 1
                continue
            try:
                await self.channel.send_json(event.as_message())
                self.sent += 1
            except Exception as exc:
                self.connected = False
                self.dropped += 1
                log.info("Client for %s disconnected (%s); run continues without updates", self.user.id, exc)
