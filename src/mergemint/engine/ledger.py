"""Prize-pool accounting strategies.

Two deployments account for the owner's cut of mint revenue differently:

``PrepaidSplitLedger``
    splits every mint payment up front.  The owner share leaves the pool
    immediately, ``total_deposited`` grows by the gross payment and
    ``actual_available`` only by the net pool share.

``RetroactiveLedger``
    keeps every payment in the pool and derives the owner's entitlement on
    demand from the current winner share, net of past withdrawals.
"""

from __future__ import annotations

from typing import Dict, Mapping, Optional

from .config import PREPAID_SPLIT, RETROACTIVE


class PoolLedger:
    mode = ""
    guards_share_changes = False

    def __init__(self, total_deposited: int = 0) -> None:
        self.total_deposited = total_deposited

    def record_mint(self, payment: int, owner_share_percent: int) -> int:
        """Account for a mint payment; returns the owner cut to pay out now."""

        raise NotImplementedError

    def record_deposit(self, amount: int) -> None:
        self.total_deposited += amount

    def available(self, held: int) -> int:
        raise NotImplementedError

    def record_claim(self, amount: int) -> None:
        self.total_deposited = max(0, self.total_deposited - amount)

    def owner_withdrawable(self, winner_share_percent: int) -> int:
        return 0

    def record_owner_withdrawal(self, amount: int) -> None:
        raise NotImplementedError

    def reconciliation_delta(self, held: int) -> Optional[int]:
        return None

    def reset(self) -> None:
        self.total_deposited = 0

    def snapshot(self) -> Dict[str, object]:
        return {"mode": self.mode, "total_deposited": self.total_deposited}


class PrepaidSplitLedger(PoolLedger):
    mode = PREPAID_SPLIT

    def __init__(self, total_deposited: int = 0, actual_available: int = 0) -> None:
        super().__init__(total_deposited)
        self.actual_available = actual_available

    def record_mint(self, payment: int, owner_share_percent: int) -> int:
        owner_cut = payment * owner_share_percent // 100
        self.total_deposited += payment
        self.actual_available += payment - owner_cut
        return owner_cut

    def record_deposit(self, amount: int) -> None:
        super().record_deposit(amount)
        self.actual_available += amount

    def available(self, held: int) -> int:
        return min(self.actual_available, held)

    def record_claim(self, amount: int) -> None:
        super().record_claim(amount)
        self.actual_available -= amount

    def record_owner_withdrawal(self, amount: int) -> None:
        raise ValueError("the owner share is paid out at mint time in prepaid-split mode")

    def reconciliation_delta(self, held: int) -> Optional[int]:
        return held - self.actual_available

    def reset(self) -> None:
        super().reset()
        self.actual_available = 0

    def snapshot(self) -> Dict[str, object]:
        blob = super().snapshot()
        blob["actual_available"] = self.actual_available
        return blob


class RetroactiveLedger(PoolLedger):
    mode = RETROACTIVE
    guards_share_changes = True

    def __init__(self, total_deposited: int = 0, total_withdrawn_by_owner: int = 0) -> None:
        super().__init__(total_deposited)
        self.total_withdrawn_by_owner = total_withdrawn_by_owner

    def record_mint(self, payment: int, owner_share_percent: int) -> int:
        self.total_deposited += payment
        return 0

    def available(self, held: int) -> int:
        return held

    def owner_withdrawable(self, winner_share_percent: int) -> int:
        entitled = self.total_deposited * (100 - winner_share_percent) // 100
        return max(0, entitled - self.total_withdrawn_by_owner)

    def record_owner_withdrawal(self, amount: int) -> None:
        self.total_withdrawn_by_owner += amount

    def reset(self) -> None:
        super().reset()
        self.total_withdrawn_by_owner = 0

    def snapshot(self) -> Dict[str, object]:
        blob = super().snapshot()
        blob["total_withdrawn_by_owner"] = self.total_withdrawn_by_owner
        return blob


def create_ledger(mode: str) -> PoolLedger:
    if mode == PREPAID_SPLIT:
        return PrepaidSplitLedger()
    if mode == RETROACTIVE:
        return RetroactiveLedger()
    raise ValueError(f"unknown accounting mode {mode!r}")


def ledger_from_snapshot(blob: Mapping[str, object]) -> PoolLedger:
    mode = blob.get("mode")
    total = int(blob.get("total_deposited", 0))
    if mode == PREPAID_SPLIT:
        return PrepaidSplitLedger(total, int(blob.get("actual_available", 0)))
    if mode == RETROACTIVE:
        return RetroactiveLedger(total, int(blob.get("total_withdrawn_by_owner", 0)))
    raise ValueError(f"unknown accounting mode {mode!r}")


__all__ = [
    "PoolLedger",
    "PrepaidSplitLedger",
    "RetroactiveLedger",
    "create_ledger",
    "ledger_from_snapshot",
]
