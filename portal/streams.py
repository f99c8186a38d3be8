from __future__ import annotations

from dataclasses import dataclass
from typing import cast

import redis

from portal.core.events import SessionEvent


@dataclass(frozen=True, slots=True)
class EventStream:
    session_id: str

    @property
    def key(self) -> str:
        return f"events:{self.session_id}"


def publish_event(*, r: redis.Redis, event: SessionEvent) -> str:
    """Append a session event to the session's Redis Stream."""

    # redis-py stubs expect field/value unions; we only use string fields/values.
    stream_id = r.xadd(EventStream(session_id=event.session_id).key, event.as_fields())  # type: ignore[arg-type]
    return cast(str, stream_id)


def read_events(*, r: redis.Redis, session_id: str, count: int = 50, start: str = "-", end: str = "+") -> list[tuple[str, dict[str, str]]]:
    entries = r.xrange(EventStream(session_id=session_id).key, min=start, max=end, count=count)
    return cast(list[tuple[str, dict[str, str]]], entries)
