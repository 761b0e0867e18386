# python -m mergemint.interfaces.api.serve --state collection.json

import argparse
import logging
from pathlib import Path

import uvicorn

from mergemint.engine.collection import CompositeCollection
from mergemint.engine.config import PRESETS, preset_config

from .api_server import create_api_server


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Collection HTTP server")
    parser.add_argument(
        "--state",
        metavar="FILE",
        type=str,
        help="Snapshot to serve; created from --preset when missing",
        required=True,
    )
    parser.add_argument(
        "--preset",
        metavar="NAME",
        choices=sorted(PRESETS),
        default="spectrum80",
        help="Deployment preset used when the snapshot does not exist yet",
    )
    parser.add_argument(
        "--owner",
        metavar="ADDRESS",
        default="owner",
        help="Pool owner for a freshly created collection",
    )
    parser.add_argument(
        "--port",
        metavar="PORT",
        type=int,
        default=8000,
        help="Port to run the server on",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO)

    state_path = Path(args.state).expanduser()
    if state_path.exists():
        collection = CompositeCollection.load_state(state_path)
    else:
        collection = CompositeCollection(preset_config(args.preset), owner=args.owner)
        collection.save_state(state_path)

    app = create_api_server(
        collection, on_change=lambda current: current.save_state(state_path)
    )
    uvicorn.run(app, port=args.port)


if __name__ == "__main__":
    main()
