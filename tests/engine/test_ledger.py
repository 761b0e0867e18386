import pytest

from mergemint.engine.config import PREPAID_SPLIT, RETROACTIVE
from mergemint.engine.ledger import (
    PrepaidSplitLedger,
    RetroactiveLedger,
    create_ledger,
    ledger_from_snapshot,
)


def test_prepaid_split_example():
    ledger = PrepaidSplitLedger()
    owner_cut = ledger.record_mint(400, 40)
    assert owner_cut == 160
    assert ledger.total_deposited == 400
    assert ledger.actual_available == 240
    assert ledger.reconciliation_delta(240) == 0


def test_prepaid_deposit_adds_to_both_counters():
    ledger = PrepaidSplitLedger()
    ledger.record_deposit(50)
    assert ledger.total_deposited == 50
    assert ledger.actual_available == 50


def test_prepaid_claim_reduces_both_counters():
    ledger = PrepaidSplitLedger(1000, 300)
    assert ledger.available(300) == 300
    ledger.record_claim(300)
    assert ledger.total_deposited == 700
    assert ledger.actual_available == 0


def test_prepaid_rejects_owner_withdrawal():
    with pytest.raises(ValueError):
        PrepaidSplitLedger().record_owner_withdrawal(1)


@pytest.mark.parametrize("withdrawn, expected", [(0, 800), (300, 500), (800, 0), (900, 0)])
def test_retroactive_withdrawable(withdrawn, expected):
    ledger = RetroactiveLedger(1000, withdrawn)
    assert ledger.owner_withdrawable(20) == expected
    assert 0 <= ledger.owner_withdrawable(20) <= max(0, 1000 - withdrawn)


def test_retroactive_entitlement_follows_winner_share():
    ledger = RetroactiveLedger()
    assert ledger.record_mint(1000, 40) == 0
    assert ledger.owner_withdrawable(60) == 400
    assert ledger.owner_withdrawable(20) == 800
    ledger.record_owner_withdrawal(400)
    assert ledger.owner_withdrawable(60) == 0
    assert ledger.reconciliation_delta(600) is None


def test_reset_clears_counters():
    prepaid = PrepaidSplitLedger(10, 6)
    prepaid.reset()
    assert (prepaid.total_deposited, prepaid.actual_available) == (0, 0)
    retro = RetroactiveLedger(10, 4)
    retro.reset()
    assert (retro.total_deposited, retro.total_withdrawn_by_owner) == (0, 0)


@pytest.mark.parametrize("mode", [PREPAID_SPLIT, RETROACTIVE])
def test_snapshot_round_trip(mode):
    ledger = create_ledger(mode)
    ledger.record_mint(500, 30)
    restored = ledger_from_snapshot(ledger.snapshot())
    assert type(restored) is type(ledger)
    assert restored.snapshot() == ledger.snapshot()


def test_unknown_mode():
    with pytest.raises(ValueError):
        create_ledger("split")
    with pytest.raises(ValueError):
        ledger_from_snapshot({"mode": "split"})
