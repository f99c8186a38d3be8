from __future__ import annotations


class StageFailed(RuntimeError):
    """A stage could not run to completion (e.g. its renderer failed to set up)."""

    def __init__(self, stage: str, reason: str) -> None:
        super().__init__(f"Stage '{stage}' failed: {reason}")
        self.stage = stage
        self.reason = reason


class SequenceAborted(RuntimeError):
    """Single aggregate failure surfaced when an orchestrated sequence stops early.

    Rewards committed before the failing stage are kept.
    """

    def __init__(self, *, stage: str, completed: int, cause: BaseException) -> None:
        super().__init__(f"Sequence aborted at '{stage}' after {completed} completed stage(s): {cause}")
        self.stage = stage
        self.completed = completed
        self.cause = cause
