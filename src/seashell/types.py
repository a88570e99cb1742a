"""Account model for seashell scenarios.

An account is addressed by a 32-byte public key and carries a lamport
balance, the id of the program that owns it, an opaque data payload, an
executable flag and rent epoch metadata.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Union

import base58

from .config import ADDRESS_LENGTH, SYSTEM_PROGRAM_ID, U64_MAX
from .errors import BalanceOverflow, InsufficientBalance, InvalidAccount, InvalidAddress

Address = bytes
AddressLike = Union[bytes, str]


def encode_address(address: bytes) -> str:
    """Canonical text form of an address (base58)."""
    if not isinstance(address, (bytes, bytearray)) or len(address) != ADDRESS_LENGTH:
        raise InvalidAddress(address, f"address must be {ADDRESS_LENGTH} bytes")
    return base58.b58encode(bytes(address)).decode("ascii")


def decode_address(text: str) -> bytes:
    try:
        raw = base58.b58decode(text)
    except ValueError as e:
        raise InvalidAddress(text, str(e)) from e
    if len(raw) != ADDRESS_LENGTH:
        raise InvalidAddress(text, f"decodes to {len(raw)} bytes, expected {ADDRESS_LENGTH}")
    return raw


def to_address(value: AddressLike) -> bytes:
    """Accept raw bytes or base58 text; return the 32-byte address."""
    if isinstance(value, str):
        return decode_address(value)
    if isinstance(value, (bytes, bytearray)) and len(value) == ADDRESS_LENGTH:
        return bytes(value)
    raise InvalidAddress(value, f"expected {ADDRESS_LENGTH} bytes or base58 text")


def _check_u64(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAccount(f"{name} must be an integer, got {type(value).__name__}")
    if value < 0 or value > U64_MAX:
        raise InvalidAccount(f"{name} out of u64 range: {value}")


@dataclass(frozen=True)
class Account:
    address: bytes
    lamports: int = 0
    owner: bytes = SYSTEM_PROGRAM_ID
    data: bytes = b""
    executable: bool = False
    rent_epoch: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "address", to_address(self.address))
        object.__setattr__(self, "owner", to_address(self.owner))
        if not isinstance(self.data, (bytes, bytearray)):
            raise InvalidAccount(f"data must be bytes, got {type(self.data).__name__}")
        object.__setattr__(self, "data", bytes(self.data))
        _check_u64("lamports", self.lamports)
        _check_u64("rent_epoch", self.rent_epoch)
        if not isinstance(self.executable, bool):
            raise InvalidAccount("executable must be a bool")

    @classmethod
    def empty(cls, address: AddressLike) -> "Account":
        """The state of an address the ledger has never initialised."""
        return cls(address=to_address(address))

    def with_address(self, address: AddressLike) -> "Account":
        address = to_address(address)
        if address == self.address:
            return self
        return replace(self, address=address)

    def with_lamports(self, lamports: int) -> "Account":
        return replace(self, lamports=lamports)

    def __repr__(self) -> str:
        return (
            f"Account(address={encode_address(self.address)}, lamports={self.lamports}, "
            f"owner={encode_address(self.owner)}, data_len={len(self.data)}, "
            f"executable={self.executable}, rent_epoch={self.rent_epoch})"
        )


def apply_balance_change(balance: int, delta: int) -> int:
    """Apply +/- lamports with u64 bounds."""
    new_balance = balance + delta
    if new_balance < 0:
        raise InsufficientBalance(f"balance {balance} cannot cover {-delta}")
    if new_balance > U64_MAX:
        raise BalanceOverflow()
    return new_balance
