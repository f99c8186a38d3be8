from __future__ import annotations

from datetime import UTC, datetime
from uuid import UUID

import redis

from portal.api.models import SessionState


SESSIONS_SET_KEY = "portal:sessions"
SESSION_KEY_PREFIX = "portal:session:"  # + {uuid}


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _session_key(session_id: UUID) -> str:
    return f"{SESSION_KEY_PREFIX}{session_id}"


def save_session(*, r: redis.Redis, state: SessionState) -> None:
    state.last_updated_at = _now()
    r.set(_session_key(state.session_id), state.model_dump_json())
    r.sadd(SESSIONS_SET_KEY, str(state.session_id))


def get_session(*, r: redis.Redis, session_id: UUID) -> SessionState | None:
    raw = r.get(_session_key(session_id))
    if not raw:
        return None
    return SessionState.model_validate_json(raw)


def list_sessions(*, r: redis.Redis) -> list[SessionState]:
    ids = sorted(r.smembers(SESSIONS_SET_KEY))
    out: list[SessionState] = []
    for sid in ids:
        try:
            session_id = UUID(sid)
        except ValueError:
            continue
        state = get_session(r=r, session_id=session_id)
        if state is not None:
            out.append(state)
    out.sort(key=lambda s: s.created_at, reverse=True)
    return out
