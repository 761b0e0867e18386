"""Snapshot encoding shared by the CLI, the HTTP API and the tools."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import MutableMapping

import msgpack

from .errors import SnapshotFormatError

JSON_BYTES_PREFIX = "__mergemint_bytes__:"
BIG_INT_PREFIX = "__mergemint_int__:"
DEFAULT_STATE_FILENAMES = ("mergemint_state.json", "mergemint_state.msgpack")
MSGPACK_SUFFIXES = {".msgpack", ".mpk"}
# msgpack integers are limited to 64 bits; anything wider travels as text.
_MSGPACK_INT_MIN = -(1 << 63)
_MSGPACK_INT_MAX = (1 << 64) - 1


def encode_snapshot_blob(value: object, *, binary: bool = False) -> object:
    """Encode a snapshot so it survives JSON (``binary=False``) or msgpack."""

    if isinstance(value, dict):
        return {
            encode_snapshot_blob(key, binary=binary): encode_snapshot_blob(item, binary=binary)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [encode_snapshot_blob(item, binary=binary) for item in value]
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value) if binary else JSON_BYTES_PREFIX + bytes(value).hex()
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, int) and not _MSGPACK_INT_MIN <= value <= _MSGPACK_INT_MAX:
        return BIG_INT_PREFIX + str(value)
    if isinstance(value, Path):
        return str(value)
    return value


def decode_snapshot_blob(blob: object) -> object:
    """Decode payloads produced by :func:`encode_snapshot_blob`."""

    if isinstance(blob, str):
        if blob.startswith(JSON_BYTES_PREFIX):
            return bytes.fromhex(blob[len(JSON_BYTES_PREFIX) :])
        if blob.startswith(BIG_INT_PREFIX):
            return int(blob[len(BIG_INT_PREFIX) :])
        return blob
    if isinstance(blob, list):
        return [decode_snapshot_blob(item) for item in blob]
    if isinstance(blob, dict):
        decoded: MutableMapping[object, object] = {}
        for key, value in blob.items():
            decoded[decode_snapshot_blob(key)] = decode_snapshot_blob(value)
        return dict(decoded)
    return blob


def save_snapshot(blob: dict, path: Path) -> Path:
    """Write ``blob`` to ``path``; readers never see a partially written file."""

    path = Path(path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    suffix = path.suffix.lower()
    tmp_path = path.with_name(path.name + ".tmp")
    if suffix == ".json":
        with tmp_path.open("w", encoding="utf-8") as fh:
            json.dump(encode_snapshot_blob(blob), fh, indent=2, sort_keys=True)
    elif suffix in MSGPACK_SUFFIXES:
        with tmp_path.open("wb") as fh:
            msgpack.pack(encode_snapshot_blob(blob, binary=True), fh, use_bin_type=True)
    else:
        raise SnapshotFormatError(f"Unsupported snapshot format: {path}")
    os.replace(tmp_path, path)
    return path


def load_snapshot(path: Path) -> dict:
    path = Path(path).expanduser()
    suffix = path.suffix.lower()
    if suffix == ".json":
        with path.open("r", encoding="utf-8") as fh:
            blob = json.load(fh)
    elif suffix in MSGPACK_SUFFIXES:
        with path.open("rb") as fh:
            blob = msgpack.unpack(fh, raw=False, strict_map_key=False)
    else:
        raise SnapshotFormatError(f"Unsupported snapshot format: {path}")
    decoded = decode_snapshot_blob(blob)
    if not isinstance(decoded, dict):
        raise SnapshotFormatError(f"Snapshot {path} does not contain a mapping")
    return decoded


__all__ = [
    "BIG_INT_PREFIX",
    "DEFAULT_STATE_FILENAMES",
    "JSON_BYTES_PREFIX",
    "decode_snapshot_blob",
    "encode_snapshot_blob",
    "load_snapshot",
    "save_snapshot",
]
