import pytest

from mergemint.engine.errors import (
    AllowanceTooLow,
    InsufficientFunds,
    InsufficientPayment,
    InvalidRecipient,
    NotAuthorized,
    UnitNotFound,
    ZeroAmount,
)
from mergemint.engine.payments import (
    FungibleToken,
    NativeCurrency,
    create_medium,
    medium_from_snapshot,
)
from mergemint.engine.registry import InMemoryRegistry


def test_native_pull_and_transfer():
    medium = NativeCurrency()
    medium.credit("alice", 100)
    medium.pull("alice", "pool", "pool", 60)
    assert medium.balance_of("alice") == 40
    assert medium.balance_of("pool") == 60
    with pytest.raises(InsufficientPayment):
        medium.pull("alice", "pool", "pool", 41)
    with pytest.raises(InsufficientFunds):
        medium.transfer("pool", "bob", 61)
    with pytest.raises(ZeroAmount):
        medium.credit("alice", 0)


def test_token_pull_needs_allowance():
    token = FungibleToken()
    token.credit("alice", 100)
    with pytest.raises(AllowanceTooLow):
        token.pull("alice", "pool", "pool", 10)
    token.approve("alice", "pool", 30)
    token.pull("alice", "pool", "pool", 10)
    assert token.allowance("alice", "pool") == 20
    assert token.balance_of("pool") == 10
    token.approve("alice", "pool", 500)
    with pytest.raises(InsufficientPayment):
        token.pull("alice", "pool", "pool", 200)


def test_medium_snapshots():
    token = FungibleToken()
    token.credit("alice", 5)
    token.approve("alice", "pool", 3)
    restored = medium_from_snapshot(token.snapshot())
    assert isinstance(restored, FungibleToken)
    assert restored.allowance("alice", "pool") == 3
    assert restored.balance_of("alice") == 5
    assert medium_from_snapshot(None) is None
    assert create_medium("native").kind == "native"
    with pytest.raises(ValueError):
        create_medium("barter")


def test_registry_authorisation_paths():
    registry = InMemoryRegistry()
    registry.create("alice", 1)
    registry.create("alice", 2)
    assert registry.is_authorized("alice", 1)
    assert not registry.is_authorized("bob", 1)
    registry.approve("alice", "bob", 1)
    assert registry.is_authorized("bob", 1)
    assert not registry.is_authorized("bob", 2)
    registry.set_approval_for_all("alice", "carol", True)
    assert registry.is_authorized("carol", 2)
    registry.set_approval_for_all("alice", "carol", False)
    assert not registry.is_authorized("carol", 2)
    with pytest.raises(NotAuthorized):
        registry.approve("bob", "dave", 2)


def test_registry_transfer_clears_approval():
    registry = InMemoryRegistry()
    registry.create("alice", 1)
    registry.approve("alice", "bob", 1)
    registry.transfer("bob", "carol", 1)
    assert registry.owner_of(1) == "carol"
    assert not registry.is_authorized("bob", 1)
    with pytest.raises(InvalidRecipient):
        registry.transfer("carol", "", 1)


def test_registry_never_reuses_ids():
    registry = InMemoryRegistry()
    registry.create("alice", 1)
    registry.burn(1)
    assert not registry.exists(1)
    with pytest.raises(ValueError):
        registry.create("alice", 1)
    with pytest.raises(UnitNotFound):
        registry.burn(1)
    restored = InMemoryRegistry.restore(registry.snapshot())
    with pytest.raises(ValueError):
        restored.create("alice", 1)
