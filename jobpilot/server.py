"""FastAPI surface: a websocket per interactive run plus a few JSON endpoints.

Serve with ``uvicorn jobpilot.server:app``.
"""
from __future__ import annotations

import asyncio
import contextlib
from datetime import datetime, timezone
from typing import Any, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from jobpilot.api import JobPilotService
from jobpilot.errors import AutomationFailure
from jobpilot.log import get_logger
from jobpilot.models import SearchCriteria

log = get_logger(__name__)

SESSION_SWEEP_SECONDS = 15 * 60


class TriggerRequest(BaseModel):
    user: str


class CriteriaMessage(BaseModel):
    keywords: List[str] = []
    location: str = ""
    experience_level: str = "mid-level"
    job_type: str = "full-time"


class SignInRequest(BaseModel):
    provider: str
    external_id: str


def create_app(service: Optional[JobPilotService] = None) -> FastAPI:
    app = FastAPI(title="jobpilot", version="0.3.0")
    state: dict[str, Any] = {"service": service}

    def get_service() -> JobPilotService:
        if state["service"] is None:
            state["service"] = JobPilotService.from_settings()
        return state["service"]

    async def _sweep_sessions() -> None:
        while True:
            await asyncio.sleep(SESSION_SWEEP_SECONDS)
            get_service().sessions.sweep()

    @app.on_event("startup")
    async def _startup() -> None:
        state["sweeper"] = asyncio.create_task(_sweep_sessions())

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        task = state.get("sweeper")
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    @app.get("/api/healthz")
    def healthz() -> dict[str, Any]:
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.post("/api/sessions")
    def sign_in(body: SignInRequest, svc: JobPilotService = Depends(get_service)) -> dict[str, Any]:
        try:
            session = svc.sign_in(body.provider, body.external_id)
        except AutomationFailure as exc:
            raise HTTPException(status_code=404, detail=str(exc))
        return {"token": session.token, "account_id": session.account_id, "expires_at": session.expires_at}

    @app.post("/api/automation/trigger")
    def trigger(body: TriggerRequest, svc: JobPilotService = Depends(get_service)) -> dict[str, Any]:
        try:
            summary = svc.trigger_manual_run(body.user)
        except AutomationFailure as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        return {"success": True, "summary": summary}

    @app.get("/api/automation/summary/{user_id}")
    def summary(user_id: str, svc: JobPilotService = Depends(get_service)) -> dict[str, Any]:
        try:
            return svc.get_run_summary(user_id)
        except AutomationFailure as exc:
            raise HTTPException(status_code=404, detail=str(exc))

    @app.get("/api/applications/verify")
    def verify(url: str = Query(..., min_length=8), svc: JobPilotService = Depends(get_service)) -> dict[str, Any]:
        return {"verification": svc.verify_application(url),
                "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.get("/api/ai/usage")
    def ai_usage(svc: JobPilotService = Depends(get_service)) -> dict[str, Any]:
        return svc.ai_usage()

    @app.websocket("/ws/runs/{user_id}")
    async def run_socket(websocket: WebSocket, user_id: str, token: Optional[str] = None) -> None:
        svc = get_service()
        await websocket.accept()
        if token is not None:
            account = await asyncio.to_thread(svc.account_for_token, token)
            if account is None or account.id != user_id:
                await websocket.send_json({"event": "run_error", "data": {"error": "invalid session"}})
                await websocket.close(code=4401)
                return
        try:
            raw = await websocket.receive_json()
        except WebSocketDisconnect:
            return
        try:
            c = CriteriaMessage(**(raw or {}))
            criteria = SearchCriteria(tuple(c.keywords), c.location, c.experience_level, c.job_type)
        except (TypeError, ValueError):
            criteria = None
        if criteria is not None and not criteria.keywords and not criteria.location:
            criteria = None
        try:
            await svc.start_interactive_run(user_id, criteria, websocket)
        except AutomationFailure as exc:
            with contextlib.suppress(RuntimeError, WebSocketDisconnect):
                await websocket.send_json({"event": "run_error", "data": {"error": str(exc)}})
                await websocket.send_json({"event": "run_complete", "data": {"summary": None, "error": str(exc)}})
        with contextlib.suppress(RuntimeError, WebSocketDisconnect):
            await websocket.close()

    return app


app = create_app()
