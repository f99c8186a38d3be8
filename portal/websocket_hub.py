from __future__ import annotations

import asyncio
import logging
from collections import defaultdict

from fastapi import WebSocket

from portal.api.models import SessionState

logger = logging.getLogger(__name__)


class SessionWebSocketHub:
    """Pushes session progress to the rendering side.

    Every orchestrator event becomes one `session_updated` message carrying the
    session status, the live stage name and the ledger total; clients fetch the
    full stage snapshot from `GET /session/{id}/stage` when they need it.
    Sockets that fail to receive a message are dropped.
    """

    def __init__(self) -> None:
        self._by_session: dict[str, set[WebSocket]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def connect(self, session_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._by_session[session_id].add(websocket)

    async def disconnect(self, session_id: str, websocket: WebSocket) -> None:
        async with self._lock:
            self._drop(session_id, [websocket])

    def subscribers(self, session_id: str) -> int:
        return len(self._by_session.get(session_id, ()))

    async def publish_update(self, state: SessionState, *, event: str) -> int:
        """Broadcast a `session_updated` message; returns how many sockets got it."""

        sid = str(state.session_id)
        return await self.broadcast(
            sid,
            {
                "type": "session_updated",
                "session_id": sid,
                "event": event,
                "status": state.status.value,
                "current_stage": state.current_stage,
                "ledger_total": state.ledger_total,
            },
        )

    async def broadcast(self, session_id: str, payload: dict[str, object]) -> int:
        async with self._lock:
            conns = list(self._by_session.get(session_id, ()))

        sent = 0
        dead: list[WebSocket] = []
        for ws in conns:
            try:
                await ws.send_json(payload)
                sent += 1
            except Exception as e:
                logger.debug("dropping websocket for session %s: %s", session_id, e)
                dead.append(ws)

        if dead:
            async with self._lock:
                self._drop(session_id, dead)
        return sent

    def _drop(self, session_id: str, sockets: list[WebSocket]) -> None:
        conns = self._by_session.get(session_id)
        if conns is None:
            return
        conns.difference_update(sockets)
        if not conns:
            del self._by_session[session_id]


hub = SessionWebSocketHub()
