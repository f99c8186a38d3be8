from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

import redis
from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status

from portal.actions import dispatch_stage_action
from portal.api.deps import get_redis, get_redis_factory, get_registry, get_settings, ledger_for
from portal.api.models import (
    CertificateResponse,
    LedgerResponse,
    SessionCreateRequest,
    SessionListResponse,
    SessionState,
    StageFailRequest,
)
from portal.artifacts import CERTIFICATE_KEY, load_certificate
from portal.config import FlowSettings
from portal.core.errors import StageFailed
from portal.infra.redis_client import RedisFactory
from portal.session_runner import SessionRegistry, SessionRunner
from portal.session_store import get_session, list_sessions
from portal.stages import Stage
from portal.streams import EventStream, read_events
from portal.websocket_hub import hub

logger = logging.getLogger(__name__)

router = APIRouter()


def _live_stage(registry: SessionRegistry, r: redis.Redis, session_id: UUID) -> tuple[SessionRunner, Stage]:
    runner = registry.get(session_id)
    if runner is not None and runner.current_stage is not None:
        return runner, runner.current_stage
    # Finished sessions leave the registry but stay readable from Redis.
    if runner is None and get_session(r=r, session_id=session_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Session has no active stage")


async def _wait_until_past(runner: SessionRunner, stage: Stage, settings: FlowSettings) -> None:
    try:
        await runner.wait_until_past(stage, timeout=settings.advance_timeout_s)
    except TimeoutError as e:
        raise HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail=f"Session did not move past stage '{stage.name}' within {settings.advance_timeout_s}s",
        ) from e


@router.websocket("/ws/session/{session_id}")
async def session_updates_ws(websocket: WebSocket, session_id: UUID) -> None:
    sid = str(session_id)
    await hub.connect(sid, websocket)
    logger.debug("session %s: %d websocket subscriber(s)", sid, hub.subscribers(sid))

    try:
        # Keep the socket open; client can optionally send pings.
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        await hub.disconnect(sid, websocket)
    except Exception:
        await hub.disconnect(sid, websocket)
        raise


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/ledger", response_model=LedgerResponse)
async def ledger_route(r: redis.Redis = Depends(get_redis)) -> LedgerResponse:
    return LedgerResponse(coins=ledger_for(r).total())


@router.post("/session", response_model=SessionState, status_code=status.HTTP_201_CREATED)
async def create_session_route(
    payload: SessionCreateRequest | None = None,
    settings: FlowSettings = Depends(get_settings),
    new_redis: RedisFactory = Depends(get_redis_factory),
    registry: SessionRegistry = Depends(get_registry),
) -> SessionState:
    recipient = payload.recipient if payload is not None else None
    try:
        runner = await registry.start(settings=settings, new_redis=new_redis, recipient=recipient)
    except TimeoutError as e:
        raise HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail=f"Session did not start within {settings.advance_timeout_s}s",
        ) from e
    return runner.state


@router.get("/session", response_model=SessionListResponse)
async def list_sessions_route(r: redis.Redis = Depends(get_redis)) -> SessionListResponse:
    return SessionListResponse(sessions=list_sessions(r=r))


@router.get("/session/{session_id}", response_model=SessionState)
async def get_session_route(session_id: UUID, r: redis.Redis = Depends(get_redis)) -> SessionState:
    state = get_session(r=r, session_id=session_id)
    if state is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return state


@router.get("/session/{session_id}/stage")
async def get_stage_route(
    session_id: UUID,
    r: redis.Redis = Depends(get_redis),
    registry: SessionRegistry = Depends(get_registry),
) -> dict[str, Any]:
    _, stage = _live_stage(registry, r, session_id)
    return stage.snapshot()


@router.post("/session/{session_id}/stage/actions/{action}")
async def stage_action_route(
    session_id: UUID,
    action: str,
    body: dict[str, Any] | None = None,
    r: redis.Redis = Depends(get_redis),
    settings: FlowSettings = Depends(get_settings),
    registry: SessionRegistry = Depends(get_registry),
) -> dict[str, Any]:
    runner, stage = _live_stage(registry, r, session_id)
    try:
        result = dispatch_stage_action(stage=stage, action=action, payload=body or {})
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e

    if result.resolved:
        await _wait_until_past(runner, stage, settings)

    nxt = runner.current_stage
    return {
        "accepted": result.accepted,
        "resolved": result.resolved,
        "stage": result.snapshot,
        "next_stage": nxt.snapshot() if nxt is not None and nxt is not stage else None,
        "session": runner.state.model_dump(mode="json"),
    }


@router.post("/session/{session_id}/stage/fail", response_model=SessionState)
async def stage_fail_route(
    session_id: UUID,
    payload: StageFailRequest,
    r: redis.Redis = Depends(get_redis),
    settings: FlowSettings = Depends(get_settings),
    registry: SessionRegistry = Depends(get_registry),
) -> SessionState:
    """Renderer-side failure report: aborts the rest of the sequence."""

    runner, stage = _live_stage(registry, r, session_id)
    stage.fail(StageFailed(stage.name, payload.reason))
    await _wait_until_past(runner, stage, settings)
    return runner.state


@router.get("/session/{session_id}/events")
async def get_session_events_route(
    session_id: UUID,
    count: int = 50,
    start: str = "-",
    end: str = "+",
    r: redis.Redis = Depends(get_redis),
) -> dict[str, object]:
    """Debug endpoint: read a session's event Redis Stream."""

    if count < 1 or count > 200:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="count must be between 1 and 200")

    try:
        entries = read_events(r=r, session_id=str(session_id), count=count, start=start, end=end)
    except Exception as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e

    events = [{"id": eid, "fields": fields} for eid, fields in entries]
    return {"session_id": str(session_id), "stream": EventStream(session_id=str(session_id)).key, "events": events}


@router.get("/certificate", response_model=CertificateResponse)
async def certificate_route(r: redis.Redis = Depends(get_redis)) -> CertificateResponse:
    data_url = load_certificate(r=r)
    if data_url is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No certificate generated yet")
    return CertificateResponse(key=CERTIFICATE_KEY, data_url=data_url)
