"""Command line access to a collection persisted as a snapshot file.

Every invocation loads the snapshot given by ``--state``, applies a single
operation and, for mutating commands, writes the snapshot back.  The host
context of the operation is built from the wall clock, ``os.urandom`` and
``--caller``; ``--timestamp`` and ``--entropy`` pin those values for
reproducible runs.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import time
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional, Sequence

from mergemint.engine.collection import CompositeCollection
from mergemint.engine.config import PRESETS, DeploymentConfig, preset_config
from mergemint.engine.errors import MergeMintError, PaymentNotConfigured, ValidationError
from mergemint.engine.payments import FungibleToken
from mergemint.engine.seeds import HostContext
from mergemint.engine.tables import parse_color

logger = logging.getLogger(__name__)

MUTATING_COMMANDS = {
    "init",
    "fund",
    "mint",
    "composite",
    "burn",
    "transfer",
    "claim",
    "deposit",
    "withdraw",
    "sweep",
    "set",
}

SETTINGS: Dict[str, Callable[[str], object]] = {
    "price": int,
    "max-mint": int,
    "owner-share": int,
    "winner-share": int,
    "winning-index": int,
    "winning-color": parse_color,
    "payment": str,
    "owner": str,
}


def _configure_logging(verbose: bool, log_file: Optional[str]) -> None:
    if verbose and not logging.getLogger().handlers:
        logging.basicConfig(level=logging.INFO)
    if log_file:
        handler = logging.FileHandler(Path(log_file).expanduser(), encoding="utf-8")
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        package_logger = logging.getLogger("mergemint")
        package_logger.addHandler(handler)
        package_logger.setLevel(logging.DEBUG)


def _load_config(args: argparse.Namespace) -> DeploymentConfig:
    if args.config:
        with Path(args.config).expanduser().open("r", encoding="utf-8") as fh:
            blob = json.load(fh)
        return DeploymentConfig.from_mapping(blob, preset=args.preset)
    return preset_config(args.preset or "spectrum80")


def _host_context(args: argparse.Namespace) -> HostContext:
    timestamp = args.timestamp if args.timestamp is not None else int(time.time())
    entropy = (
        args.entropy
        if args.entropy is not None
        else int.from_bytes(os.urandom(32), "big")
    )
    return HostContext(timestamp=timestamp, entropy=entropy, caller=args.caller)


def _print_json(payload: object) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True, default=str))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mergemint",
        description="Mint, merge and claim composable collectibles from a snapshot file",
    )
    parser.add_argument("--state", required=True, help="Snapshot file (.json or .msgpack)")
    parser.add_argument("--config", help="JSON deployment config used by 'init'")
    parser.add_argument(
        "--preset",
        choices=sorted(PRESETS),
        help="Deployment preset used by 'init' (default: spectrum80)",
    )
    parser.add_argument("--caller", default="owner", help="Address submitting the operation")
    parser.add_argument("--timestamp", type=int, help="Override the host timestamp")
    parser.add_argument("--entropy", type=int, help="Override the host entropy value")
    parser.add_argument("--verbose", action="store_true", help="Log state transitions")
    parser.add_argument("--log-file", help="Append DEBUG logs to the given file")

    commands = parser.add_subparsers(dest="command", required=True)

    init = commands.add_parser("init", help="Create a new collection snapshot")
    init.add_argument("--owner", default="owner", help="Pool owner address")
    init.add_argument("--force", action="store_true", help="Overwrite an existing snapshot")

    fund = commands.add_parser("fund", help="Credit an address in the simulated payment medium")
    fund.add_argument("address")
    fund.add_argument("amount", type=int)
    fund.add_argument(
        "--approve",
        type=int,
        default=None,
        help="Also grant the pool this token allowance from the address",
    )

    mint = commands.add_parser("mint", help="Mint units to a recipient")
    mint.add_argument("recipient")
    mint.add_argument("count", type=int)
    mint.add_argument("--value", type=int, default=None, help="Native value sent with the call")

    composite = commands.add_parser("composite", help="Merge BURN into KEEP")
    composite.add_argument("keep", type=int)
    composite.add_argument("burn", type=int)

    burn = commands.add_parser("burn", help="Burn a unit")
    burn.add_argument("unit", type=int)

    transfer = commands.add_parser("transfer", help="Transfer a unit")
    transfer.add_argument("recipient")
    transfer.add_argument("unit", type=int)

    claim = commands.add_parser("claim", help="Claim the prize with a winning unit")
    claim.add_argument("unit", type=int)

    deposit = commands.add_parser("deposit", help="Deposit funds directly into the pool")
    deposit.add_argument("amount", type=int)

    withdraw = commands.add_parser("withdraw", help="Withdraw the owner's accrued share")
    withdraw.add_argument("amount", type=int, nargs="?", default=None)

    commands.add_parser("sweep", help="Emergency sweep of the whole pool balance to the owner")

    setter = commands.add_parser("set", help="Change an owner setting")
    setter.add_argument("setting", choices=sorted(SETTINGS))
    setter.add_argument("value")

    show = commands.add_parser("show", help="Show a unit's resolved traits")
    show.add_argument("unit", type=int)

    units = commands.add_parser("units", help="List live units")
    units.add_argument("--owner", default=None, help="Only list units held by this address")

    commands.add_parser("pool", help="Show the prize-pool ledger")

    events = commands.add_parser("events", help="Show recorded domain events")
    events.add_argument("--limit", type=int, default=20)

    return parser


def _apply_setting(
    collection: CompositeCollection, context: HostContext, setting: str, raw: str
) -> None:
    value = SETTINGS[setting](raw)
    dispatch = {
        "price": collection.set_mint_price,
        "max-mint": collection.set_max_mint_count,
        "owner-share": collection.set_owner_share_percent,
        "winner-share": collection.set_winner_share_percent,
        "winning-index": collection.set_winning_trait_index,
        "winning-color": collection.set_winning_color,
        "payment": collection.set_payment_medium,
        "owner": collection.set_owner,
    }
    dispatch[setting](context, value)


def _fund(collection: CompositeCollection, args: argparse.Namespace) -> None:
    medium = collection.pool.medium
    if medium is None:
        raise PaymentNotConfigured("configure a payment medium before funding addresses")
    medium.credit(args.address, args.amount)
    if args.approve is not None:
        if not isinstance(medium, FungibleToken):
            raise ValidationError("allowances only apply to token payment media")
        medium.approve(args.address, collection.pool.address, args.approve)
    print(f"{args.address} now holds {medium.balance_of(args.address)}")


def _run(collection: CompositeCollection, args: argparse.Namespace) -> None:
    context = _host_context(args)
    command = args.command
    if command == "fund":
        _fund(collection, args)
    elif command == "mint":
        unit_ids = collection.mint(context, args.recipient, args.count, args.value)
        print("Minted units: " + ", ".join(str(u) for u in unit_ids))
    elif command == "composite":
        result = collection.composite(context, args.keep, args.burn)
        print(
            f"Unit {result.keep_id} absorbed {result.burn_id}: depth {result.depth},"
            f" {result.unit_count} unit(s)"
        )
    elif command == "burn":
        collection.burn(context, args.unit)
        print(f"Burned unit {args.unit}")
    elif command == "transfer":
        collection.transfer(context, args.recipient, args.unit)
        print(f"Transferred unit {args.unit} to {args.recipient}")
    elif command == "claim":
        amount = collection.claim_prize(context, args.unit)
        print(f"Claimed {amount} with unit {args.unit}")
    elif command == "deposit":
        collection.deposit_funds(context, args.amount)
        print(f"Deposited {args.amount}")
    elif command == "withdraw":
        amount = collection.withdraw_owner_share(context, args.amount)
        print(f"Withdrew {amount}")
    elif command == "sweep":
        amount = collection.emergency_sweep(context)
        print(f"Swept {amount}")
    elif command == "set":
        _apply_setting(collection, context, args.setting, args.value)
        print(f"Set {args.setting} to {args.value}")
    elif command == "show":
        _print_json(collection.unit(args.unit))
    elif command == "units":
        if args.owner:
            _print_json(collection.units_of(args.owner))
        else:
            _print_json(collection.live_units())
    elif command == "pool":
        _print_json(collection.pool_status())
    elif command == "events":
        events = collection.events[-args.limit :] if args.limit > 0 else []
        _print_json([event.as_dict() for event in events])
    else:  # pragma: no cover - argparse rejects unknown commands
        raise ValueError(f"unknown command {command!r}")


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    _configure_logging(args.verbose, args.log_file)
    state_path = Path(args.state).expanduser()

    try:
        if args.command == "init":
            if state_path.exists() and not args.force:
                print(f"mergemint: {state_path} already exists (use --force)", file=sys.stderr)
                return 1
            collection = CompositeCollection(_load_config(args), owner=args.owner)
            collection.save_state(state_path)
            print(f"Initialised {collection.config.name} collection at {state_path}")
            return 0

        if not state_path.exists():
            print(f"mergemint: {state_path} does not exist; run 'init' first", file=sys.stderr)
            return 1
        collection = CompositeCollection.load_state(state_path)
        logger.debug("Loaded %s collection from %s", collection.config.name, state_path)
        _run(collection, args)
        if args.command in MUTATING_COMMANDS:
            collection.save_state(state_path)
        return 0
    except MergeMintError as exc:
        print(f"mergemint: {type(exc).__name__}: {exc}", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"mergemint: invalid value: {exc}", file=sys.stderr)
        return 2


def run(argv: Optional[Sequence[str]] = None) -> None:  # pragma: no cover - console entry
    sys.exit(main(argv))


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
