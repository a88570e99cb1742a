"""Canonical scenario digest (v1)."""
from __future__ import annotations

from typing import Mapping

from blake3 import blake3

from .types import Account

DIGEST_DOMAIN = b"seashell-scenario-v1"


def _u64_be(value: int) -> bytes:
    if value < 0:
        raise ValueError("u64 must be non-negative")
    return int(value).to_bytes(8, "big", signed=False)


def compute_accounts_digest(accounts: Mapping[bytes, Account]) -> str:
    """Compute the digest of a set of accounts.

    Accounts are ordered by address bytes and every field is encoded in a
    fixed order before hashing with BLAKE3-256, so the result depends only on
    logical content, never on map order or compression.
    """
    buf = bytearray(DIGEST_DOMAIN)
    buf += _u64_be(len(accounts))
    for address in sorted(accounts):
        acc = accounts[address]
        buf += address
        buf += _u64_be(acc.lamports)
        buf += acc.owner
        buf += b"\x01" if acc.executable else b"\x00"
        buf += _u64_be(acc.rent_epoch)
        buf += _u64_be(len(acc.data))
        buf += acc.data
    return blake3(bytes(buf)).hexdigest()
