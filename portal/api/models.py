from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class SessionStatus(StrEnum):
    running = "running"
    completed = "completed"
    aborted = "aborted"


class StageRecord(BaseModel):
    name: str
    kind: str

    # None for stages that finish with a unit result.
    reward: int | None = None
    skipped: bool = False

    # Ledger value right after this stage's reward was committed.
    ledger_total: int


class SessionState(BaseModel):
    session_id: UUID = Field(default_factory=uuid4)
    created_at: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))
    last_updated_at: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))

    status: SessionStatus = SessionStatus.running

    ledger_start: int = Field(0, ge=0)
    ledger_total: int = Field(0, ge=0)

    results: list[StageRecord] = Field(default_factory=list)

    # Name of the stage currently awaited by the orchestrator.
    current_stage: str | None = None

    # Storage key of the generated artifact, once the sequence completed.
    artifact_key: str | None = None

    # Aggregate failure message when aborted.
    error: str | None = None

    @property
    def earned(self) -> int:
        return self.ledger_total - self.ledger_start


class SessionCreateRequest(BaseModel):
    recipient: str | None = Field(None, min_length=1, max_length=80)


class SessionListResponse(BaseModel):
    sessions: list[SessionState]


class LedgerResponse(BaseModel):
    coins: int


class StageFailRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


class CertificateResponse(BaseModel):
    key: str
    data_url: str
