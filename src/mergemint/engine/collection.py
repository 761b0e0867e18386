"""Public operations of a deployed collection.

:class:`CompositeCollection` ties the trait store, the composite engine, the
optional palette tracker, the ownership registry and the prize pool together.
Each public operation runs under one re-entrant lock and inside a
transaction: the mutable state is copied on entry and put back if anything
raises, so callers only ever observe completed operations.
"""

from __future__ import annotations

import copy
import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from .composite import BLANK_INDEX, CompositeEngine, MergeResult
from .config import DeploymentConfig, preset_config
from .errors import (
    InvalidMergeOperation,
    InvalidRecipient,
    NotAuthorized,
    NotWinning,
    ValidationError,
)
from .events import (
    Burned,
    Composited,
    ConfigurationChanged,
    EmergencySwept,
    Event,
    FundsDeposited,
    Minted,
    OwnerWithdrawal,
    PrizeClaimed,
    WinningTraitChanged,
    event_from_dict,
)
from .palette import PaletteTracker
from .payments import create_medium
from .pool import PrizePool
from .registry import InMemoryRegistry
from .seeds import HostContext, SeedGenerator
from .state_common import load_snapshot, save_snapshot
from .tables import color_hex
from .traits import TraitStore, UnitRecord

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1

_Saved = Tuple[Tuple[object, ...], Tuple[object, ...], List[Event], int]


class CompositeCollection:
    def __init__(self, config: Optional[DeploymentConfig] = None, owner: str = "owner") -> None:
        self.config = config or DeploymentConfig()
        self.seeds = SeedGenerator(self.config.day_seconds)
        self.engine = CompositeEngine(self.config.divisors, self.config.colors, self.seeds)
        self.store = TraitStore()
        self.palettes: Optional[PaletteTracker] = (
            PaletteTracker(self.config.palette_colors) if self.config.uses_palette else None
        )
        self.registry = InMemoryRegistry()
        medium = (
            create_medium(self.config.pool.payment) if self.config.pool.payment else None
        )
        self.pool = PrizePool(
            self.config.pool, self.config.winning_colors, owner, medium=medium
        )
        self.events: List[Event] = []
        self.mint_counter = 0
        self._lock = threading.RLock()

    @classmethod
    def from_preset(cls, name: str, owner: str = "owner") -> "CompositeCollection":
        return cls(preset_config(name), owner=owner)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def _capture(self) -> "_Saved":
        live = (
            self.store,
            self.palettes,
            self.registry,
            self.pool,
            self.pool.medium,
            self.pool.ledger,
        )
        # One deepcopy keeps references shared between the collaborators consistent.
        return live, copy.deepcopy(live), list(self.events), self.mint_counter

    def _rollback(self, saved: "_Saved") -> None:
        """Put the captured state back into the same objects callers hold."""

        live, copies, events, mint_counter = saved
        for target, snapshot in zip(live, copies):
            if target is None:
                continue
            target.__dict__.clear()
            target.__dict__.update(snapshot.__dict__)
        store, palettes, registry, pool, medium, ledger = live
        pool.medium = medium  # type: ignore[attr-defined]
        pool.ledger = ledger  # type: ignore[attr-defined]
        self.store = store  # type: ignore[assignment]
        self.palettes = palettes  # type: ignore[assignment]
        self.registry = registry  # type: ignore[assignment]
        self.pool = pool  # type: ignore[assignment]
        self.events[:] = events
        self.mint_counter = mint_counter

    @property
    def lock(self):
        """The lock serialising operations; hold it to observe a stable state."""

        return self._lock

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[None]:
        with self._lock:
            saved = self._capture()
            try:
                yield
            except Exception as exc:
                self._rollback(saved)
                logger.debug("%s rejected: %s", operation, exc)
                raise

    # ------------------------------------------------------------------
    # Unit lifecycle
    # ------------------------------------------------------------------

    def mint(
        self,
        context: HostContext,
        recipient: str,
        count: int,
        value: Optional[int] = None,
    ) -> List[int]:
        """Create ``count`` depth-0 units for ``recipient`` and take payment.

        ``value`` is the native value travelling with the call; token
        deployments ignore it and pull the price through the allowance.
        """

        with self._transaction("mint"):
            if not recipient:
                raise InvalidRecipient("units cannot be minted to an empty address")
            paid = self.pool.collect_mint_payment(context, count, value)
            unit_ids: List[int] = []
            for _ in range(count):
                self.mint_counter += 1
                unit_id = self.mint_counter
                seed = self.seeds.derive_mint_seed(context, unit_id, self.mint_counter)
                self.registry.create(recipient, unit_id)
                self.store.create(unit_id, seed)
                if self.palettes is not None:
                    self.palettes.init_unit(unit_id, seed)
                unit_ids.append(unit_id)
            self.events.append(Minted(context.timestamp, recipient, tuple(unit_ids), paid))
            logger.info("Minted units %s to %s", unit_ids, recipient)
            return unit_ids

    def composite(self, context: HostContext, keep_id: int, burn_id: int) -> MergeResult:
        """Merge ``burn_id`` into ``keep_id``; both must share an eligible depth."""

        with self._transaction("composite"):
            if keep_id == burn_id:
                raise InvalidMergeOperation("cannot merge a unit with itself")
            for unit_id in (keep_id, burn_id):
                if not self.registry.is_authorized(context.caller, unit_id):
                    raise InvalidMergeOperation(
                        f"{context.caller} is not authorised for unit {unit_id}"
                    )
            keep = self.store.get(keep_id)
            burn = self.store.get(burn_id)
            randomizer = self.seeds.merge_randomizer(keep.seed, burn.seed)
            result = self.engine.merge(keep, burn)
            if self.palettes is not None:
                self.palettes.on_merge(keep_id, burn_id, randomizer)
            self.registry.burn(burn_id)
            self.events.append(
                Composited(context.timestamp, keep_id, burn_id, result.unit_count)
            )
            logger.info(
                "Composited unit %d into %d (now depth %d, %d unit(s))",
                burn_id,
                keep_id,
                result.depth,
                result.unit_count,
            )
            return result

    def burn(self, context: HostContext, unit_id: int) -> None:
        with self._transaction("burn"):
            if not self.registry.is_authorized(context.caller, unit_id):
                raise NotAuthorized(f"{context.caller} may not burn unit {unit_id}")
            self.registry.burn(unit_id)
            self.events.append(Burned(context.timestamp, unit_id, "burn"))
            logger.info("Burned unit %d", unit_id)

    def transfer(self, context: HostContext, recipient: str, unit_id: int) -> None:
        with self._transaction("transfer"):
            self.registry.transfer(context.caller, recipient, unit_id)

    def approve(self, context: HostContext, operator: Optional[str], unit_id: int) -> None:
        with self._transaction("approve"):
            self.registry.approve(context.caller, operator, unit_id)

    def set_approval_for_all(self, context: HostContext, operator: str, approved: bool) -> None:
        with self._transaction("set_approval_for_all"):
            self.registry.set_approval_for_all(context.caller, operator, approved)

    # ------------------------------------------------------------------
    # Prize pool
    # ------------------------------------------------------------------

    def claim_prize(self, context: HostContext, unit_id: int) -> int:
        """Burn a winning unit and pay its holder the winner share."""

        with self._transaction("claim_prize"):
            if not self.registry.is_authorized(context.caller, unit_id):
                raise NotAuthorized(f"{context.caller} may not claim with unit {unit_id}")
            if not self.is_winning(unit_id):
                raise NotWinning(f"unit {unit_id} does not hold the winning trait")
            amount = self.pool.claim_amount()
            previous = self.pool.winning_trait_index
            self.registry.burn(unit_id)
            current = self.pool.pay_claim(context, amount, self.seeds)
            self.events.append(Burned(context.timestamp, unit_id, "claim"))
            self.events.append(PrizeClaimed(context.timestamp, unit_id, context.caller, amount))
            self.events.append(WinningTraitChanged(context.timestamp, previous, current))
            return amount

    def deposit_funds(self, context: HostContext, amount: int) -> None:
        with self._transaction("deposit_funds"):
            self.pool.deposit(context, amount)
            self.events.append(FundsDeposited(context.timestamp, context.caller, amount))

    def withdraw_owner_share(self, context: HostContext, amount: Optional[int] = None) -> int:
        with self._transaction("withdraw_owner_share"):
            withdrawn = self.pool.withdraw_owner_share(context, amount)
            self.events.append(OwnerWithdrawal(context.timestamp, withdrawn))
            return withdrawn

    def emergency_sweep(self, context: HostContext) -> int:
        with self._transaction("emergency_sweep"):
            swept = self.pool.emergency_sweep(context)
            self.events.append(EmergencySwept(context.timestamp, swept))
            return swept

    # ------------------------------------------------------------------
    # Owner configuration
    # ------------------------------------------------------------------

    def _configure(self, context: HostContext, setting: str, value: object) -> None:
        with self._transaction(f"set_{setting}"):
            setter = getattr(self.pool, f"set_{setting}")
            setter(context, value)
            self.events.append(ConfigurationChanged(context.timestamp, setting, str(value)))
            logger.info("%s set %s to %s", context.caller, setting, value)

    def set_mint_price(self, context: HostContext, price: int) -> None:
        self._configure(context, "mint_price", price)

    def set_max_mint_count(self, context: HostContext, count: int) -> None:
        self._configure(context, "max_mint_count", count)

    def set_owner_share_percent(self, context: HostContext, percent: int) -> None:
        self._configure(context, "owner_share_percent", percent)

    def set_winner_share_percent(self, context: HostContext, percent: int) -> None:
        self._configure(context, "winner_share_percent", percent)

    def set_winning_trait_index(self, context: HostContext, index: int) -> None:
        self._configure(context, "winning_trait_index", index)

    def set_winning_color(self, context: HostContext, color: int) -> None:
        self._configure(context, "winning_color", color)

    def set_payment_medium(self, context: HostContext, kind: str) -> None:
        self._configure(context, "payment_medium", kind)

    def set_owner(self, context: HostContext, new_owner: str) -> None:
        self._configure(context, "owner", new_owner)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def record(self, unit_id: int) -> UnitRecord:
        return self.store.get(unit_id)

    def resolve_color_indexes(self, unit_id: int, depth: Optional[int] = None) -> List[int]:
        with self._lock:
            record = self.store.get(unit_id)
            if depth is not None and not 0 <= depth <= record.depth:
                raise ValidationError(f"unit {unit_id} has no colours recorded at depth {depth}")
            return self.engine.resolve_color_indexes(
                record.depth if depth is None else depth, record, self.store
            )

    def colors(self, unit_id: int) -> List[str]:
        with self._lock:
            return self.engine.resolve_colors(self.store.get(unit_id), self.store)

    def trait_color(self, unit_id: int) -> Optional[int]:
        """The colour compared against the winning trait, ``None`` when blank."""

        with self._lock:
            record = self.store.get(unit_id)
            if self.config.winning_source == "palette" and self.palettes is not None:
                if record.depth >= self.config.divisors.terminal_depth:
                    return None
                return self.palettes.first_color(unit_id)
            return self.engine.first_color(record, self.store)

    def is_winning(self, unit_id: int) -> bool:
        with self._lock:
            if not self.registry.exists(unit_id):
                return False
            record = self.store.get(unit_id)
            if self.config.divisors.unit_count(record.depth) != 1:
                return False
            return self.trait_color(unit_id) == self.pool.winning_color

    def unit(self, unit_id: int) -> Dict[str, object]:
        with self._lock:
            record = self.store.get(unit_id)
            live = self.registry.exists(unit_id)
            indexes = self.engine.resolve(record, self.store)
            view: Dict[str, object] = {
                "unit_id": unit_id,
                "live": live,
                "owner": self.registry.owner_of(unit_id) if live else None,
                "depth": record.depth,
                "unit_count": self.config.divisors.unit_count(record.depth),
                "band": self.engine.band_index(record, record.depth),
                "gradient": self.engine.gradient_index(record, record.depth),
                "ancestry": [a for a in record.ancestry if a is not None],
                "color_indexes": indexes,
                "colors": self.engine.resolve_colors(record, self.store),
                "blank": indexes == [BLANK_INDEX],
                "winning": self.is_winning(unit_id),
            }
            if self.palettes is not None and unit_id in self.palettes:
                view["palette"] = [color_hex(c) for c in self.palettes.get(unit_id).active()]
            return view

    def units_of(self, owner: str) -> List[int]:
        with self._lock:
            return self.registry.units_of(owner)

    def live_units(self) -> List[int]:
        with self._lock:
            return self.registry.live_units()

    def live_unit_count(self) -> int:
        with self._lock:
            return self.registry.live_count()

    def pool_status(self) -> Dict[str, object]:
        with self._lock:
            return self.pool.status()

    def owner_withdrawable(self) -> int:
        with self._lock:
            return self.pool.owner_withdrawable()

    def reconciliation_delta(self) -> Optional[int]:
        with self._lock:
            return self.pool.reconciliation_delta()

    def check_reconciliation(self) -> None:
        with self._lock:
            self.pool.check_reconciliation()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def snapshot(self) -> Dict[str, object]:
        with self._lock:
            return {
                "version": SNAPSHOT_VERSION,
                "config": self.config.as_dict(),
                "mint_counter": self.mint_counter,
                "registry": self.registry.snapshot(),
                "traits": self.store.snapshot(),
                "palettes": None if self.palettes is None else self.palettes.snapshot(),
                "pool": self.pool.snapshot(),
                "events": [event.as_dict() for event in self.events],
            }

    @classmethod
    def restore(cls, blob: Dict[str, object]) -> "CompositeCollection":
        version = blob.get("version")
        if version != SNAPSHOT_VERSION:
            raise ValueError(f"unsupported snapshot version {version!r}")
        config = DeploymentConfig.from_mapping(blob["config"])  # type: ignore[arg-type]
        pool_blob = blob["pool"]
        collection = cls(config, owner=str(pool_blob["owner"]))  # type: ignore[index]
        collection.mint_counter = int(blob["mint_counter"])  # type: ignore[arg-type]
        collection.registry = InMemoryRegistry.restore(blob["registry"])  # type: ignore[arg-type]
        collection.store = TraitStore.restore(blob["traits"])  # type: ignore[arg-type]
        palettes = blob.get("palettes")
        if config.uses_palette:
            collection.palettes = PaletteTracker.restore(
                config.palette_colors, palettes or {}  # type: ignore[arg-type]
            )
        collection.pool = PrizePool.restore(
            config.pool, config.winning_colors, pool_blob  # type: ignore[arg-type]
        )
        events = blob.get("events") or []
        collection.events = [event_from_dict(e) for e in events]  # type: ignore[union-attr]
        return collection

    def save_state(self, path: Path) -> Path:
        return save_snapshot(self.snapshot(), path)

    @classmethod
    def load_state(cls, path: Path) -> "CompositeCollection":
        return cls.restore(load_snapshot(path))


__all__ = ["CompositeCollection", "SNAPSHOT_VERSION"]
