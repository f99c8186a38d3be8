from __future__ import annotations

import logging

import redis

logger = logging.getLogger(__name__)

LEDGER_KEY = "portal:coins"


class RewardLedger:
    """Coin counter persisted in Redis across sessions.

    Passed explicitly to whoever awards coins (the orchestrator); there is no
    module-level instance. Amounts are committed with INCRBY, so concurrent
    writers still end up last-write-wins consistent.
    """

    def __init__(self, *, r: redis.Redis, key: str = LEDGER_KEY) -> None:
        self._r = r
        self.key = key

    def total(self) -> int:
        raw = self._r.get(self.key)
        return int(raw) if raw else 0

    def add(self, amount: int) -> int:
        """Add `amount` coins and return the new total."""

        if amount < 0:
            raise ValueError("amount must be >= 0")
        if amount == 0:
            return self.total()
        total = int(self._r.incrby(self.key, amount))  # type: ignore[arg-type]
        logger.info("ledger %s +%d -> %d", self.key, amount, total)
        return total

    def reset(self) -> None:
        """External reset; never called from within a session."""

        self._r.delete(self.key)
