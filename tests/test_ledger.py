from __future__ import annotations

import fakeredis
import pytest

from portal.ledger import LEDGER_KEY, RewardLedger


def test_starts_at_zero_and_accumulates(ledger: RewardLedger) -> None:
    assert ledger.total() == 0
    assert ledger.add(3) == 3
    assert ledger.add(0) == 3
    assert ledger.add(5) == 8
    assert ledger.total() == 8


def test_total_survives_a_new_handle(r: fakeredis.FakeRedis) -> None:
    RewardLedger(r=r).add(4)
    assert RewardLedger(r=r).total() == 4
    assert r.get(LEDGER_KEY) == "4"


def test_negative_amounts_are_rejected(ledger: RewardLedger) -> None:
    ledger.add(2)
    with pytest.raises(ValueError):
        ledger.add(-1)
    assert ledger.total() == 2


def test_separate_keys_do_not_interfere(r: fakeredis.FakeRedis) -> None:
    a = RewardLedger(r=r, key="coins:a")
    b = RewardLedger(r=r, key="coins:b")
    a.add(1)
    b.add(10)
    assert (a.total(), b.total()) == (1, 10)

    a.reset()
    assert a.total() == 0
    assert b.total() == 10
