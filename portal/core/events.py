from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal

EventType = Literal[
    "SEQUENCE_STARTED",
    "STAGE_STARTED",
    "STAGE_RESOLVED",
    "ARTIFACT_REQUESTED",
    "SEQUENCE_COMPLETED",
    "SEQUENCE_ABORTED",
]


@dataclass(frozen=True, slots=True)
class SessionEvent:
    type: EventType
    session_id: str
    stage: str | None
    payload: dict[str, Any]
    ts: datetime

    @staticmethod
    def now(*, type: EventType, session_id: str, stage: str | None = None, payload: dict[str, Any] | None = None) -> "SessionEvent":
        return SessionEvent(
            type=type,
            session_id=session_id,
            stage=stage,
            payload=payload or {},
            ts=datetime.now(timezone.utc),
        )

    def as_fields(self) -> dict[str, str]:
        """Flatten into string fields for a Redis Stream entry."""

        fields = {"type": self.type, "session_id": self.session_id, "ts": self.ts.isoformat()}
        if self.stage is not None:
            fields["stage"] = self.stage
        for k, v in self.payload.items():
            fields[str(k)] = "" if v is None else str(v)
        return fields
