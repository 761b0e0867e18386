"""Prize-pool ledger, owner configuration and the claim state machine."""

from __future__ import annotations

import logging
from typing import Dict, Mapping, Optional, Sequence, Tuple

from .config import PAYMENT_KINDS, PoolConfig
from .errors import (
    CooldownActive,
    InsufficientFunds,
    InsufficientPayment,
    InvalidMintCount,
    InvalidPercentage,
    InvalidTraitIndex,
    LedgerMismatch,
    NotAuthorized,
    PaymentNotConfigured,
    PoolEmpty,
    UnknownColor,
    ValidationError,
    ZeroAmount,
)
from .ledger import PoolLedger, create_ledger, ledger_from_snapshot
from .payments import NATIVE, PaymentMedium, create_medium, medium_from_snapshot
from .seeds import HostContext, SeedGenerator

logger = logging.getLogger(__name__)

UNINITIALIZED = "uninitialized"
ACTIVE = "active"
POOL_ADDRESS = "pool"


class PrizePool:
    """Holds the pool's funds, its accounting strategy and the winning trait.

    The pool is ``uninitialized`` until a payment medium is configured; every
    fund-moving operation raises :class:`PaymentNotConfigured` before that.
    Callers are expected to run each public operation inside the collection's
    transaction so a failure part-way leaves nothing behind.
    """

    def __init__(
        self,
        config: PoolConfig,
        winning_colors: Sequence[int],
        owner: str,
        *,
        medium: Optional[PaymentMedium] = None,
        address: str = POOL_ADDRESS,
    ) -> None:
        self.config = config
        self.winning_colors: Tuple[int, ...] = tuple(winning_colors)
        self.owner = owner
        self.address = address
        self.medium = medium
        self.ledger: PoolLedger = create_ledger(config.accounting)
        self.mint_price = config.mint_price
        self.max_mint_count = config.max_mint_count
        self.owner_share_percent = config.owner_share_percent
        self.winner_share_percent = config.winner_share_percent
        self.winning_trait_index = config.winning_trait_index
        self.last_claim_timestamp: Optional[int] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> str:
        return UNINITIALIZED if self.medium is None else ACTIVE

    def require_medium(self) -> PaymentMedium:
        if self.medium is None:
            raise PaymentNotConfigured("no payment medium has been configured")
        return self.medium

    def require_owner(self, caller: str) -> None:
        if caller != self.owner:
            raise NotAuthorized(f"{caller} is not the pool owner")

    @property
    def held_balance(self) -> int:
        return 0 if self.medium is None else self.medium.balance_of(self.address)

    @property
    def total_deposited(self) -> int:
        return self.ledger.total_deposited

    @property
    def actual_available(self) -> Optional[int]:
        return getattr(self.ledger, "actual_available", None)

    @property
    def total_withdrawn_by_owner(self) -> Optional[int]:
        return getattr(self.ledger, "total_withdrawn_by_owner", None)

    @property
    def winning_color(self) -> int:
        return self.winning_colors[self.winning_trait_index]

    def owner_withdrawable(self) -> int:
        return self.ledger.owner_withdrawable(self.winner_share_percent)

    def reconciliation_delta(self) -> Optional[int]:
        return self.ledger.reconciliation_delta(self.held_balance)

    def check_reconciliation(self) -> None:
        delta = self.reconciliation_delta()
        if delta:
            raise LedgerMismatch(
                f"held balance {self.held_balance} differs from tracked funds by {delta}"
            )

    # ------------------------------------------------------------------
    # Inflows
    # ------------------------------------------------------------------

    def mint_cost(self, count: int) -> int:
        if not 0 < count <= self.max_mint_count:
            raise InvalidMintCount(
                f"mint count must be between 1 and {self.max_mint_count}, got {count}"
            )
        return self.mint_price * count

    def collect_mint_payment(self, context: HostContext, count: int, value: Optional[int]) -> int:
        """Collect the payment for ``count`` units; returns the gross amount taken."""

        medium = self.require_medium()
        cost = self.mint_cost(count)
        if medium.kind == NATIVE:
            paid = int(value or 0)
            if paid < cost:
                raise InsufficientPayment(f"mint of {count} costs {cost}, received {paid}")
        else:
            paid = cost
        if paid:
            medium.pull(context.caller, self.address, self.address, paid)
        owner_cut = self.ledger.record_mint(paid, self.owner_share_percent)
        if owner_cut:
            medium.transfer(self.address, self.owner, owner_cut)
        logger.info(
            "Collected %d for %d unit(s) from %s (owner cut %d)",
            paid,
            count,
            context.caller,
            owner_cut,
        )
        return paid

    def deposit(self, context: HostContext, amount: int) -> None:
        medium = self.require_medium()
        if amount <= 0:
            raise ZeroAmount("deposit amount must be positive")
        medium.pull(context.caller, self.address, self.address, amount)
        self.ledger.record_deposit(amount)
        logger.info("Deposited %d from %s", amount, context.caller)

    # ------------------------------------------------------------------
    # Claims
    # ------------------------------------------------------------------

    def claim_amount(self) -> int:
        self.require_medium()
        available = self.ledger.available(self.held_balance)
        if self.total_deposited == 0 or available == 0:
            raise PoolEmpty("the prize pool has no funds to pay out")
        amount = min(self.total_deposited * self.winner_share_percent // 100, available)
        if amount == 0:
            raise InsufficientFunds("the winner share rounds down to nothing")
        return amount

    def pay_claim(self, context: HostContext, amount: int, seeds: SeedGenerator) -> int:
        """Pay ``amount`` to the caller and rotate the winning trait."""

        medium = self.require_medium()
        self.ledger.record_claim(amount)
        medium.transfer(self.address, context.caller, amount)
        previous = self.winning_trait_index
        self.winning_trait_index = self.next_winning_index(context, seeds)
        self.last_claim_timestamp = int(context.timestamp)
        logger.info(
            "Paid prize of %d to %s; winning trait %d -> %d",
            amount,
            context.caller,
            previous,
            self.winning_trait_index,
        )
        return self.winning_trait_index

    def next_winning_index(self, context: HostContext, seeds: SeedGenerator) -> int:
        previous = self.winning_trait_index
        bound = len(self.winning_colors)
        attempt = 0
        while True:
            candidate = seeds.rotation_draw(context, previous, attempt, bound)
            if candidate != previous:
                return candidate
            attempt += 1

    # ------------------------------------------------------------------
    # Owner operations
    # ------------------------------------------------------------------

    def withdraw_owner_share(self, context: HostContext, amount: Optional[int] = None) -> int:
        self.require_owner(context.caller)
        medium = self.require_medium()
        if not self.ledger.guards_share_changes:
            raise ValidationError("the owner share is paid out at mint time in this deployment")
        withdrawable = min(self.owner_withdrawable(), self.held_balance)
        requested = withdrawable if amount is None else int(amount)
        if requested <= 0:
            raise ZeroAmount("nothing to withdraw")
        if requested > withdrawable:
            raise InsufficientFunds(f"requested {requested}, withdrawable {withdrawable}")
        self.ledger.record_owner_withdrawal(requested)
        medium.transfer(self.address, self.owner, requested)
        logger.info("Owner withdrew %d", requested)
        return requested

    def emergency_sweep(self, context: HostContext) -> int:
        self.require_owner(context.caller)
        medium = self.require_medium()
        held = self.held_balance
        if held == 0:
            raise PoolEmpty("nothing to sweep")
        medium.transfer(self.address, self.owner, held)
        self.ledger.reset()
        logger.warning("Emergency sweep moved %d to the owner and reset the ledger", held)
        return held

    def _check_share_cooldown(self, context: HostContext) -> None:
        if not self.ledger.guards_share_changes or self.last_claim_timestamp is None:
            return
        unlock = self.last_claim_timestamp + self.config.claim_cooldown
        if int(context.timestamp) < unlock:
            raise CooldownActive(f"share percentages are locked until {unlock}")

    def set_owner_share_percent(self, context: HostContext, percent: int) -> None:
        self.require_owner(context.caller)
        low, high = self.config.owner_share_bounds
        if not low <= percent <= high:
            raise InvalidPercentage(f"owner share must be within [{low}, {high}]")
        self._check_share_cooldown(context)
        self.owner_share_percent = percent

    def set_winner_share_percent(self, context: HostContext, percent: int) -> None:
        self.require_owner(context.caller)
        low, high = self.config.winner_share_bounds
        if not low <= percent <= high:
            raise InvalidPercentage(f"winner share must be within [{low}, {high}]")
        self._check_share_cooldown(context)
        self.winner_share_percent = percent

    def set_mint_price(self, context: HostContext, price: int) -> None:
        self.require_owner(context.caller)
        if price < 0:
            raise ValidationError("mint price must be non-negative")
        self.mint_price = price

    def set_max_mint_count(self, context: HostContext, count: int) -> None:
        self.require_owner(context.caller)
        if count <= 0:
            raise InvalidMintCount("the per-mint unit count must be positive")
        self.max_mint_count = count

    def set_winning_trait_index(self, context: HostContext, index: int) -> None:
        self.require_owner(context.caller)
        if not 0 <= index < len(self.winning_colors):
            raise InvalidTraitIndex(
                f"winning trait index must be within [0, {len(self.winning_colors) - 1}]"
            )
        self.winning_trait_index = index

    def set_winning_color(self, context: HostContext, color: int) -> None:
        self.require_owner(context.caller)
        try:
            index = self.winning_colors.index(color)
        except ValueError:
            raise UnknownColor(f"colour #{color:06X} is not in the winning colour table") from None
        self.winning_trait_index = index

    def set_payment_medium(self, context: HostContext, kind: str) -> None:
        self.require_owner(context.caller)
        if kind not in PAYMENT_KINDS:
            raise ValidationError(f"payment medium must be one of {PAYMENT_KINDS}")
        if self.held_balance or self.total_deposited:
            raise ValidationError("the payment medium cannot change while the pool holds funds")
        self.medium = create_medium(kind)

    def set_owner(self, context: HostContext, new_owner: str) -> None:
        self.require_owner(context.caller)
        if not new_owner:
            raise ValidationError("the pool owner cannot be empty")
        self.owner = new_owner

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def status(self) -> Dict[str, object]:
        return {
            "state": self.state,
            "accounting": self.ledger.mode,
            "payment": None if self.medium is None else self.medium.kind,
            "owner": self.owner,
            "held_balance": self.held_balance,
            "total_deposited": self.total_deposited,
            "actual_available": self.actual_available,
            "total_withdrawn_by_owner": self.total_withdrawn_by_owner,
            "owner_withdrawable": self.owner_withdrawable(),
            "mint_price": self.mint_price,
            "max_mint_count": self.max_mint_count,
            "owner_share_percent": self.owner_share_percent,
            "winner_share_percent": self.winner_share_percent,
            "winning_trait_index": self.winning_trait_index,
            "winning_color": f"#{self.winning_color:06X}",
            "last_claim_timestamp": self.last_claim_timestamp,
        }

    def snapshot(self) -> Dict[str, object]:
        return {
            "owner": self.owner,
            "address": self.address,
            "medium": None if self.medium is None else self.medium.snapshot(),
            "ledger": self.ledger.snapshot(),
            "mint_price": self.mint_price,
            "max_mint_count": self.max_mint_count,
            "owner_share_percent": self.owner_share_percent,
            "winner_share_percent": self.winner_share_percent,
            "winning_trait_index": self.winning_trait_index,
            "last_claim_timestamp": self.last_claim_timestamp,
        }

    @classmethod
    def restore(
        cls, config: PoolConfig, winning_colors: Sequence[int], blob: Mapping[str, object]
    ) -> "PrizePool":
        pool = cls(
            config,
            winning_colors,
            str(blob["owner"]),
            medium=medium_from_snapshot(blob.get("medium")),  # type: ignore[arg-type]
            address=str(blob.get("address", POOL_ADDRESS)),
        )
        pool.ledger = ledger_from_snapshot(blob["ledger"])  # type: ignore[arg-type]
        pool.mint_price = int(blob["mint_price"])
        pool.max_mint_count = int(blob["max_mint_count"])
        pool.owner_share_percent = int(blob["owner_share_percent"])
        pool.winner_share_percent = int(blob["winner_share_percent"])
        pool.winning_trait_index = int(blob["winning_trait_index"])
        last_claim = blob.get("last_claim_timestamp")
        pool.last_claim_timestamp = None if last_claim is None else int(last_claim)
        return pool


__all__ = ["ACTIVE", "POOL_ADDRESS", "PrizePool", "UNINITIALIZED"]
