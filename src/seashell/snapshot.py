"""Versioned, gzip-compressed JSON snapshots of a scenario's override accounts.

Layout (format version 1)::

    {
      "version": 1,
      "name": "<scenario name>",
      "accounts": {
        "<base58 address>": {
          "lamports": 0, "owner": "<base58>", "data": "<hex>",
          "executable": false, "rent_epoch": 0
        }
      }
    }

Keys are sorted and the gzip header carries neither a filename nor a
timestamp, so identical content encodes to identical bytes on any machine.
"""

from __future__ import annotations

import gzip
import io
import json
import logging
import os
import zlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .config import SNAPSHOT_COMPRESSION_LEVEL, SNAPSHOT_FORMAT_VERSION, SNAPSHOT_SUFFIX
from .errors import PersistenceError, ScenarioError, SnapshotCorrupt, UnsupportedVersion
from .types import Account, decode_address, encode_address

logger = logging.getLogger(__name__)


@dataclass
class Snapshot:
    name: str
    accounts: dict[bytes, Account] = field(default_factory=dict)
    version: int = SNAPSHOT_FORMAT_VERSION

    def __len__(self) -> int:
        return len(self.accounts)


def _hex_to_bytes(v: str) -> bytes:
    return bytes.fromhex(v)


def _bytes_to_hex(v: bytes) -> str:
    return v.hex()


def snapshot_name_for(path: Path) -> str:
    name = path.name
    if name.endswith(SNAPSHOT_SUFFIX):
        return name[: -len(SNAPSHOT_SUFFIX)]
    return path.stem


def account_to_json(account: Account) -> dict[str, Any]:
    return {
        "lamports": account.lamports,
        "owner": encode_address(account.owner),
        "data": _bytes_to_hex(account.data),
        "executable": account.executable,
        "rent_epoch": account.rent_epoch,
    }


def account_from_json(address: bytes, data: dict[str, Any]) -> Account:
    return Account(
        address=address,
        lamports=data.get("lamports", 0),
        owner=decode_address(data["owner"]),
        data=_hex_to_bytes(data.get("data", "")) if data.get("data") else b"",
        executable=data.get("executable", False),
        rent_epoch=data.get("rent_epoch", 0),
    )


def snapshot_to_json(snapshot: Snapshot) -> dict[str, Any]:
    return {
        "version": snapshot.version,
        "name": snapshot.name,
        "accounts": {
            encode_address(address): account_to_json(account)
            for address, account in snapshot.accounts.items()
        },
    }


def snapshot_from_json(data: Any, path: Path) -> Snapshot:
    """Validate and decode the JSON document of a snapshot file."""
    if not isinstance(data, dict):
        raise SnapshotCorrupt(path, f"top level must be an object, got {type(data).__name__}")

    version = data.get("version")
    if isinstance(version, bool) or version != SNAPSHOT_FORMAT_VERSION:
        raise UnsupportedVersion(path, version)

    records = data.get("accounts", {})
    if not isinstance(records, dict):
        raise SnapshotCorrupt(path, "'accounts' must be an object")

    name = data.get("name") or snapshot_name_for(path)
    snapshot = Snapshot(name=name, version=version)
    for key, record in records.items():
        if not isinstance(record, dict):
            raise SnapshotCorrupt(path, f"record for {key} must be an object")
        try:
            address = decode_address(key)
            snapshot.accounts[address] = account_from_json(address, record)
        except (ScenarioError, KeyError, ValueError, TypeError) as e:
            raise SnapshotCorrupt(path, f"bad record for {key}: {e}") from e
    return snapshot


def encode_snapshot(snapshot: Snapshot) -> bytes:
    text = json.dumps(snapshot_to_json(snapshot), sort_keys=True, separators=(",", ":"))
    buf = io.BytesIO()
    with gzip.GzipFile(
        filename="",
        mode="wb",
        fileobj=buf,
        compresslevel=SNAPSHOT_COMPRESSION_LEVEL,
        mtime=0,
    ) as gz:
        gz.write(text.encode("utf-8"))
    return buf.getvalue()


def decode_snapshot(payload: bytes, path: Path) -> Snapshot:
    try:
        text = gzip.decompress(payload).decode("utf-8")
    except (OSError, EOFError, zlib.error, UnicodeDecodeError) as e:
        raise SnapshotCorrupt(path, f"cannot decompress: {e}") from e
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise SnapshotCorrupt(path, f"invalid JSON: {e}") from e
    return snapshot_from_json(data, path)


def load(path: Path) -> Snapshot:
    """Read a snapshot. A missing file is a new, empty scenario."""
    path = Path(path)
    try:
        payload = path.read_bytes()
    except FileNotFoundError:
        logger.debug(f"No snapshot at {path}; starting empty scenario")
        return Snapshot(name=snapshot_name_for(path))
    except OSError as e:
        raise SnapshotCorrupt(path, f"cannot read: {e}") from e

    snapshot = decode_snapshot(payload, path)
    logger.info(f"Loaded snapshot {path} ({len(snapshot)} accounts)")
    return snapshot


def _atomic_write(path: Path, data: bytes) -> None:
    tmp = path.with_name("." + path.name + ".tmp")
    dir_fd = os.open(path.parent, os.O_RDONLY)
    try:
        with open(tmp, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
        # Make the rename itself durable.
        os.fsync(dir_fd)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
    finally:
        os.close(dir_fd)


def save(snapshot: Snapshot, path: Path) -> None:
    """Write a snapshot; the target is replaced atomically or left untouched."""
    path = Path(path)
    payload = encode_snapshot(snapshot)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        _atomic_write(path, payload)
    except OSError as e:
        raise PersistenceError(path, str(e)) from e
    logger.debug(f"Persisted snapshot {path} ({len(snapshot)} accounts, {len(payload)} bytes)")
