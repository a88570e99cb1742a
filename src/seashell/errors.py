"""Seashell scenario error codes and exceptions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from typing import Optional


class ErrorCategory(IntEnum):
    VALIDATION = 0x01
    RESOURCE = 0x03
    STATE = 0x04
    NETWORK = 0x06
    STORAGE = 0x07


class ErrorCode(IntEnum):
    # Validation
    INVALID_ADDRESS = 0x0106
    INVALID_ACCOUNT = 0x0107
    INVALID_SCENARIO_NAME = 0x0108
    SCENARIO_NOT_OPEN = 0x0109
    INVALID_CONFIG = 0x010A

    # Resource
    INSUFFICIENT_BALANCE = 0x0300
    BALANCE_OVERFLOW = 0x0304

    # State
    ACCOUNT_NOT_FOUND = 0x0400
    PROGRAM_NOT_FOUND = 0x0410

    # Network
    FETCH_FAILED = 0x0610

    # Storage
    PERSISTENCE_FAILED = 0x0700
    SNAPSHOT_CORRUPT = 0x0701
    UNSUPPORTED_VERSION = 0x0702

    @property
    def category(self) -> ErrorCategory:
        return ErrorCategory(self.value >> 8)


@dataclass(frozen=True)
class ScenarioError(Exception):
    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.name}({self.code:#06x}): {self.message}"


# Allow Python's Exception machinery to set __traceback__/__context__/__cause__
# while keeping dataclass fields frozen (Python 3.13 contextlib compat).
_EXCEPTION_ATTRS = frozenset(("__traceback__", "__context__", "__cause__", "__notes__"))
_frozen_setattr = ScenarioError.__setattr__


def _scenario_error_setattr(self: ScenarioError, name: str, value: object) -> None:
    if name in _EXCEPTION_ATTRS:
        object.__setattr__(self, name, value)
    else:
        _frozen_setattr(self, name, value)


ScenarioError.__setattr__ = _scenario_error_setattr  # type: ignore[method-assign]


def _context(error: ScenarioError, **fields: object) -> None:
    for name, value in fields.items():
        object.__setattr__(error, name, value)


def _b58(address: bytes) -> str:
    # Local import: types imports this module.
    from .types import encode_address

    try:
        return encode_address(address)
    except ScenarioError:
        return repr(address)


class InvalidAddress(ScenarioError):
    def __init__(self, value: object, reason: str) -> None:
        super().__init__(ErrorCode.INVALID_ADDRESS, f"invalid address {value!r}: {reason}")
        _context(self, value=value)


class InvalidAccount(ScenarioError):
    def __init__(self, reason: str) -> None:
        super().__init__(ErrorCode.INVALID_ACCOUNT, reason)


class InvalidScenarioName(ScenarioError):
    def __init__(self, name: str) -> None:
        super().__init__(
            ErrorCode.INVALID_SCENARIO_NAME,
            f"scenario name {name!r} must be a non-empty file name without path separators",
        )
        _context(self, name=name)


class ScenarioNotOpen(ScenarioError):
    def __init__(self, name: str) -> None:
        super().__init__(ErrorCode.SCENARIO_NOT_OPEN, f"scenario {name!r} has not been opened")
        _context(self, name=name)


class InvalidConfig(ScenarioError):
    """An environment setting that cannot be used as given."""

    def __init__(self, variable: str, value: str, reason: str) -> None:
        super().__init__(ErrorCode.INVALID_CONFIG, f"${variable}={value!r}: {reason}")
        _context(self, variable=variable, value=value)


class InsufficientBalance(ScenarioError):
    def __init__(self, message: str = "negative balance") -> None:
        super().__init__(ErrorCode.INSUFFICIENT_BALANCE, message)


class BalanceOverflow(ScenarioError):
    def __init__(self, message: str = "balance overflow") -> None:
        super().__init__(ErrorCode.BALANCE_OVERFLOW, message)


class AccountNotFound(ScenarioError):
    """No override or manual entry, and nothing configured to fetch one."""

    def __init__(self, address: bytes, reason: str) -> None:
        super().__init__(ErrorCode.ACCOUNT_NOT_FOUND, f"account {_b58(address)} not found: {reason}")
        _context(self, address=address, reason=reason)


class FetchError(ScenarioError):
    """Transport or protocol failure while reading an account remotely."""

    def __init__(self, address: bytes, endpoint: str, reason: str) -> None:
        super().__init__(
            ErrorCode.FETCH_FAILED,
            f"failed to fetch account {_b58(address)} from {endpoint}: {reason}",
        )
        _context(self, address=address, endpoint=endpoint, reason=reason)


class PersistenceError(ScenarioError):
    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(ErrorCode.PERSISTENCE_FAILED, f"failed to write snapshot {path}: {reason}")
        _context(self, path=path, reason=reason)


class SnapshotCorrupt(ScenarioError):
    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(ErrorCode.SNAPSHOT_CORRUPT, f"snapshot {path} is corrupt: {reason}")
        _context(self, path=path, reason=reason)


class UnsupportedVersion(ScenarioError):
    def __init__(self, path: Path, found: Optional[object]) -> None:
        super().__init__(
            ErrorCode.UNSUPPORTED_VERSION,
            f"snapshot {path} has unsupported format version {found!r}",
        )
        _context(self, path=path, found=found)


class ProgramNotFound(ScenarioError):
    def __init__(self, name: str, search_dir: Path) -> None:
        super().__init__(
            ErrorCode.PROGRAM_NOT_FOUND,
            f"no build artifact {name}.so in {search_dir}",
        )
        _context(self, name=name, search_dir=search_dir)
