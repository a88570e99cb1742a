"""Layered account lookup: overrides, then manual accounts, then one remote fetch.

Overrides hold replay-authoritative state (snapshot loads, completed fetches
and post-execution write-backs) and are the only tier that is persisted.
Manual accounts are run-scoped fixtures injected by test code; they never
shadow an override and are never written to disk.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Mapping, Optional, Tuple

from .errors import AccountNotFound, InvalidAccount
from .fetcher import AccountFetcher
from .types import Account, AddressLike, encode_address, to_address

logger = logging.getLogger(__name__)


class AccountResolver:
    def __init__(
        self,
        fetcher: Optional[AccountFetcher] = None,
        overrides: Optional[Mapping[bytes, Account]] = None,
    ):
        self.fetcher = fetcher
        self._overrides: Dict[bytes, Account] = {}
        self._manual: Dict[bytes, Account] = {}
        self._dirty = False
        self.fetch_count = 0
        if overrides:
            self.seed_overrides(overrides)

    @property
    def dirty(self) -> bool:
        """True while overrides hold changes that have not been persisted."""
        return self._dirty

    def mark_clean(self) -> None:
        self._dirty = False

    def overrides(self) -> Dict[bytes, Account]:
        return dict(self._overrides)

    def manual(self) -> Dict[bytes, Account]:
        return dict(self._manual)

    def get_override(self, address: AddressLike) -> Optional[Account]:
        return self._overrides.get(to_address(address))

    def lookup(self, address: AddressLike) -> Optional[Account]:
        """Resolve from memory only; never fetches."""
        address = to_address(address)
        account = self._overrides.get(address)
        if account is None:
            account = self._manual.get(address)
        return account

    def resolve(self, address: AddressLike) -> Account:
        address = to_address(address)
        account = self.lookup(address)
        if account is not None:
            return account

        if self.fetcher is None:
            raise AccountNotFound(
                address,
                "not in scenario overrides or manual accounts and no endpoint is configured; "
                "set RPC_URL to fetch missing accounts",
            )

        logger.debug(f"Fetching missing account {encode_address(address)} from {self.fetcher.endpoint}")
        # FetchError propagates; nothing is recorded for a failed fetch.
        account = self.fetcher.fetch(address).with_address(address)
        self.fetch_count += 1
        self.mark_override(address, account)
        return account

    def set_manual(self, address: AddressLike, account: Account) -> None:
        address = to_address(address)
        self._manual[address] = account.with_address(address)

    def mark_override(self, address: AddressLike, account: Account) -> None:
        address = to_address(address)
        self._overrides[address] = account.with_address(address)
        self._dirty = True

    def mark_overrides(self, updates: Iterable[Tuple[bytes, Account]]) -> int:
        """Record a batch of overrides; an invalid entry rejects the whole batch."""
        batch = []
        for address, account in updates:
            if not isinstance(account, Account):
                raise InvalidAccount(
                    f"override for {address!r} must be an Account, got {type(account).__name__}"
                )
            address = to_address(address)
            batch.append((address, account.with_address(address)))
        for address, account in batch:
            self._overrides[address] = account
        if batch:
            self._dirty = True
        return len(batch)

    def seed_overrides(self, accounts: Mapping[bytes, Account]) -> None:
        """Merge accounts loaded from disk; they already match disk, so not dirty."""
        for address, account in accounts.items():
            address = to_address(address)
            self._overrides[address] = account.with_address(address)
