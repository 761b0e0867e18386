import pytest

from support import make_context, merge_to_single
from mergemint.engine.collection import CompositeCollection
from mergemint.engine.composite import BLANK_INDEX
from mergemint.engine.config import RETROACTIVE, DeploymentConfig, PoolConfig, preset_config
from mergemint.engine.errors import (
    AllowanceTooLow,
    CooldownActive,
    InsufficientPayment,
    InvalidMergeOperation,
    InvalidRecipient,
    NotAuthorized,
    NotWinning,
    PaymentNotConfigured,
    PoolEmpty,
    UnitNotFound,
    ValidationError,
)
from mergemint.engine.events import Composited, Minted, PrizeClaimed, WinningTraitChanged
from mergemint.engine.tables import PRESET_DIVISORS


def _mint_four(collection, caller="alice"):
    return collection.mint(make_context(caller), caller, 4, 400)


def test_mint_creates_depth_zero_units(mini4):
    unit_ids = _mint_four(mini4)
    assert unit_ids == [1, 2, 3, 4]
    assert mini4.live_unit_count() == 4
    assert mini4.units_of("alice") == [1, 2, 3, 4]
    for unit_id in unit_ids:
        record = mini4.record(unit_id)
        assert record.depth == 0
        assert record.ancestry == [None] * 6
        assert len(mini4.resolve_color_indexes(unit_id)) == 4
    assert isinstance(mini4.events[-1], Minted)
    assert mini4.events[-1].unit_ids == (1, 2, 3, 4)


def test_prepaid_mint_example(mini4):
    _mint_four(mini4)
    status = mini4.pool_status()
    assert status["total_deposited"] == 400
    assert status["actual_available"] == 240
    assert status["held_balance"] == 240
    assert mini4.pool.medium.balance_of("owner") == 160
    assert mini4.reconciliation_delta() == 0


def test_mint_failures_leave_no_trace(mini4):
    with pytest.raises(InvalidRecipient):
        mini4.mint(make_context(), "", 1, 100)
    with pytest.raises(InsufficientPayment):
        mini4.mint(make_context(), "alice", 2, 150)
    with pytest.raises(InsufficientPayment):
        mini4.mint(make_context("nobody"), "nobody", 1, 100)
    assert mini4.mint_counter == 0
    assert mini4.live_unit_count() == 0
    assert mini4.events == []
    assert mini4.pool.medium.balance_of("alice") == 10_000


def test_token_mint_needs_allowance():
    collection = CompositeCollection.from_preset("compact20")
    token = collection.pool.medium
    token.credit("alice", 1_000)
    with pytest.raises(AllowanceTooLow):
        collection.mint(make_context(), "alice", 2)
    token.approve("alice", collection.pool.address, 200)
    assert collection.mint(make_context(), "alice", 2) == [1, 2]
    assert token.allowance("alice", collection.pool.address) == 0
    assert collection.pool_status()["actual_available"] == 120
    assert collection.unit(1)["palette"]


def test_unconfigured_payment():
    config = DeploymentConfig(pool=PoolConfig(payment=None))
    collection = CompositeCollection(config)
    with pytest.raises(PaymentNotConfigured):
        collection.mint(make_context(), "alice", 1, 100)
    with pytest.raises(PaymentNotConfigured):
        collection.deposit_funds(make_context(), 10)
    collection.set_payment_medium(make_context("owner"), "native")
    assert collection.pool_status()["state"] == "active"


def test_composite_advances_depth_and_burns(mini4):
    _mint_four(mini4)
    result = mini4.composite(make_context(), 1, 2)
    assert (result.keep_id, result.burn_id, result.depth, result.unit_count) == (1, 2, 1, 2)
    assert mini4.live_unit_count() == 3
    assert mini4.record(1).depth == 1
    assert mini4.record(1).ancestry[0] == 2
    # The burned unit's record stays readable for its descendants.
    assert mini4.record(2).depth == 0
    assert not mini4.unit(2)["live"]
    event = mini4.events[-1]
    assert isinstance(event, Composited)
    assert (event.keep_id, event.burn_id, event.unit_count) == (1, 2, 2)


def test_composite_preconditions(mini4):
    _mint_four(mini4)
    mini4.mint(make_context("bob"), "bob", 1, 100)
    with pytest.raises(InvalidMergeOperation):
        mini4.composite(make_context(), 1, 1)
    with pytest.raises(InvalidMergeOperation):
        mini4.composite(make_context(), 1, 5)
    with pytest.raises(InvalidMergeOperation):
        mini4.composite(make_context(), 1, 99)
    mini4.composite(make_context(), 1, 2)
    with pytest.raises(InvalidMergeOperation):
        mini4.composite(make_context(), 1, 3)
    mini4.composite(make_context(), 3, 4)
    mini4.composite(make_context(), 1, 3)
    mini4.mint(make_context(), "alice", 4, 400)
    merge_to_single(mini4, "alice", [6, 7, 8, 9])
    with pytest.raises(InvalidMergeOperation):
        mini4.composite(make_context(), 1, 6)
    assert mini4.record(1).depth == 2


def test_operator_may_composite(mini4):
    _mint_four(mini4)
    mini4.set_approval_for_all(make_context("alice"), "bob", True)
    mini4.composite(make_context("bob"), 1, 2)
    assert mini4.record(1).depth == 1


def test_failed_composite_rolls_back(mini4, monkeypatch):
    _mint_four(mini4)
    before = mini4.snapshot()

    def fail(unit_id):
        raise RuntimeError("registry unavailable")

    monkeypatch.setattr(mini4.registry, "burn", fail)
    with pytest.raises(RuntimeError):
        mini4.composite(make_context(), 1, 2)
    assert mini4.record(1).depth == 0
    assert mini4.record(1).ancestry[0] is None
    assert mini4.snapshot() == before


def test_burn(mini4):
    _mint_four(mini4)
    with pytest.raises(NotAuthorized):
        mini4.burn(make_context("bob"), 1)
    with pytest.raises(NotAuthorized):
        mini4.burn(make_context("alice"), 42)
    mini4.burn(make_context("alice"), 1)
    assert mini4.live_units() == [2, 3, 4]
    assert mini4.mint(make_context(), "alice", 1, 100) == [5]


def test_transfer_and_approve(mini4):
    _mint_four(mini4)
    mini4.approve(make_context("alice"), "bob", 1)
    mini4.transfer(make_context("bob"), "bob", 1)
    assert mini4.units_of("bob") == [1]
    with pytest.raises(NotAuthorized):
        mini4.transfer(make_context("alice"), "alice", 1)


def test_resolution_queries(mini4):
    _mint_four(mini4)
    mini4.composite(make_context(), 1, 2)
    assert mini4.resolve_color_indexes(1) == mini4.resolve_color_indexes(1)
    assert len(mini4.resolve_color_indexes(1, depth=0)) == 4
    with pytest.raises(ValidationError):
        mini4.resolve_color_indexes(1, depth=2)
    with pytest.raises(UnitNotFound):
        mini4.unit(99)
    view = mini4.unit(1)
    assert view["depth"] == 1
    assert view["unit_count"] == 2
    assert view["ancestry"] == [2]
    assert len(view["colors"]) == 2
    assert all(c.startswith("#") and len(c) == 7 for c in view["colors"])
    assert view["blank"] is False
    assert BLANK_INDEX not in view["color_indexes"]


def _winning_unit(collection):
    unit_id = merge_to_single(collection, "alice", [1, 2, 3, 4])
    collection.set_winning_color(make_context("owner"), collection.trait_color(unit_id))
    return unit_id


def test_claim_pays_winner_and_rotates(mini4):
    _mint_four(mini4)
    assert not mini4.is_winning(1)
    with pytest.raises(NotWinning):
        mini4.claim_prize(make_context(), 1)
    unit_id = _winning_unit(mini4)
    assert mini4.is_winning(unit_id)
    previous = mini4.pool.winning_trait_index
    with pytest.raises(NotAuthorized):
        mini4.claim_prize(make_context("bob"), unit_id)

    amount = mini4.claim_prize(make_context("alice", 1_700_000_500), unit_id)
    assert amount == 200
    assert mini4.pool.medium.balance_of("alice") == 10_000 - 400 + 200
    assert mini4.pool.winning_trait_index != previous
    assert mini4.pool.last_claim_timestamp == 1_700_000_500
    assert mini4.live_unit_count() == 0
    status = mini4.pool_status()
    assert status["total_deposited"] == 200
    assert status["actual_available"] == 40
    assert mini4.reconciliation_delta() == 0
    assert isinstance(mini4.events[-2], PrizeClaimed)
    assert isinstance(mini4.events[-1], WinningTraitChanged)


def test_claim_cap_example(mini4):
    owner = make_context("owner")
    mini4.set_owner_share_percent(owner, 70)
    mini4.set_mint_price(owner, 250)
    mini4.mint(make_context(), "alice", 4, 1000)
    assert mini4.pool_status()["actual_available"] == 300
    unit_id = _winning_unit(mini4)
    assert mini4.claim_prize(make_context(), unit_id) == 300
    status = mini4.pool_status()
    assert status["total_deposited"] == 700
    assert status["actual_available"] == 0


def test_failed_claim_changes_nothing(mini4):
    _mint_four(mini4)
    unit_id = _winning_unit(mini4)
    mini4.emergency_sweep(make_context("owner"))
    before = mini4.snapshot()
    with pytest.raises(PoolEmpty):
        mini4.claim_prize(make_context(), unit_id)
    assert mini4.snapshot() == before
    assert mini4.registry.exists(unit_id)


def test_failed_operations_keep_collaborators(mini4):
    _mint_four(mini4)
    token = mini4.pool.medium
    registry = mini4.registry
    pool = mini4.pool
    store = mini4.store

    with pytest.raises(InsufficientPayment):
        mini4.mint(make_context(), "alice", 2, 150)
    with pytest.raises(InvalidMergeOperation):
        mini4.composite(make_context(), 1, 1)
    with pytest.raises(NotWinning):
        mini4.claim_prize(make_context(), 1)

    assert mini4.pool is pool
    assert mini4.pool.medium is token
    assert mini4.registry is registry
    assert mini4.store is store
    token.credit("carol", 500)
    assert mini4.pool.medium.balance_of("carol") == 500
    mini4.composite(make_context(), 1, 2)
    assert not registry.exists(2)
    assert store.get(1).depth == 1


def _retroactive_collection():
    config = DeploymentConfig(
        name="mini4-retro",
        divisors=PRESET_DIVISORS["mini4"],
        pool=PoolConfig(accounting=RETROACTIVE, mint_price=250, winner_share_percent=20),
    )
    collection = CompositeCollection(config)
    collection.pool.medium.credit("alice", 10_000)
    return collection


def test_retroactive_example_and_cooldown():
    collection = _retroactive_collection()
    collection.mint(make_context(), "alice", 4, 1000)
    assert collection.owner_withdrawable() == 800
    unit_id = _winning_unit(collection)
    claim_time = 1_700_100_000
    assert collection.claim_prize(make_context("alice", claim_time), unit_id) == 200
    with pytest.raises(CooldownActive):
        collection.set_winner_share_percent(make_context("owner", claim_time + 60), 5)
    assert collection.pool.winner_share_percent == 20
    assert collection.owner_withdrawable() == 640
    assert collection.withdraw_owner_share(make_context("owner")) == 640
    assert collection.owner_withdrawable() == 0


def test_palette_winner_needs_single_unit():
    collection = CompositeCollection.from_preset("compact20")
    owner = make_context("owner")
    collection.set_max_mint_count(owner, 32)
    collection.set_mint_price(owner, 10)
    token = collection.pool.medium
    token.credit("alice", 320)
    token.approve("alice", collection.pool.address, 320)
    unit_ids = collection.mint(make_context(), "alice", 32)
    unit_id = merge_to_single(collection, "alice", unit_ids)
    record = collection.record(unit_id)
    assert record.depth == 5
    palette = collection.palettes.get(unit_id)
    assert palette.length == 1
    collection.set_winning_color(owner, palette.colors[0])
    assert collection.is_winning(unit_id)
    assert collection.claim_prize(make_context(), unit_id) == 160
    assert collection.reconciliation_delta() == 0


def test_owner_configuration_is_logged_as_events(mini4):
    mini4.set_mint_price(make_context("owner"), 120)
    assert mini4.events[-1].setting == "mint_price"
    with pytest.raises(NotAuthorized):
        mini4.set_mint_price(make_context("alice"), 1)
    assert len(mini4.events) == 1


@pytest.mark.parametrize("suffix", [".json", ".msgpack"])
def test_state_round_trip(mini4, tmp_path, suffix):
    _mint_four(mini4)
    mini4.composite(make_context(), 1, 2)
    path = mini4.save_state(tmp_path / f"state{suffix}")
    restored = CompositeCollection.load_state(path)
    assert restored.snapshot() == mini4.snapshot()
    assert restored.unit(1) == mini4.unit(1)
    assert restored.pool_status() == mini4.pool_status()
    assert [e.as_dict() for e in restored.events] == [e.as_dict() for e in mini4.events]
    restored.composite(make_context(), 3, 4)
    assert restored.mint(make_context(), "alice", 1, 100) == [5]


def test_restore_rejects_unknown_version(mini4):
    blob = mini4.snapshot()
    blob["version"] = 99
    with pytest.raises(ValueError):
        CompositeCollection.restore(blob)


def test_default_preset_is_spectrum80():
    collection = CompositeCollection()
    assert collection.config.name == "spectrum80"
    assert collection.config.pool.accounting == RETROACTIVE
    assert preset_config("spectrum80").as_dict() == collection.config.as_dict()
