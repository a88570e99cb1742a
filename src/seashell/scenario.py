"""Scenario lifecycle: open a named snapshot, resolve accounts through it and
write every change back to disk as soon as it happens.

Scenario files live at `<root>/scenarios/<name>.json.gz`. A handle owns its
file for its whole lifetime; two handles (or processes) writing the same
scenario concurrently may lose updates and must be serialised by the caller.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, Mapping, Optional, Tuple, Union

from . import snapshot as snapshot_codec
from .config import SCENARIOS_DIR, SNAPSHOT_SUFFIX, ScenarioConfig
from .digest import compute_accounts_digest
from .errors import InvalidScenarioName, ScenarioNotOpen
from .fetcher import AccountFetcher, RpcAccountFetcher
from .instruction import ExecutionResult
from .programs import load_program_account
from .resolver import AccountResolver
from .snapshot import Snapshot
from .types import Account, AddressLike, apply_balance_change, encode_address, to_address

logger = logging.getLogger(__name__)

FetcherFactory = Callable[[ScenarioConfig], AccountFetcher]
AccountUpdates = Union[Mapping[bytes, Account], Iterable[Tuple[bytes, Account]]]


class HandleState(Enum):
    UNOPENED = "unopened"
    LOADED = "loaded"
    DIRTY = "dirty"


class ScenarioHandle:
    """One opened scenario: a resolver plus the snapshot file backing it."""

    def __init__(
        self,
        name: str,
        path: Optional[Path],
        config: ScenarioConfig,
        fetcher: Optional[AccountFetcher] = None,
        root: Optional[Path] = None,
    ):
        self.name = name
        self.path = path
        self.config = config
        self.root = root
        self.resolver = AccountResolver(fetcher=fetcher)
        self._loaded = False

    @classmethod
    def rpc_only(
        cls, endpoint: str, fetcher_factory: Optional[FetcherFactory] = None
    ) -> "ScenarioHandle":
        """A fetch-enabled handle with no backing file; nothing is ever persisted."""
        config = ScenarioConfig(endpoint=endpoint)
        factory = fetcher_factory or RpcAccountFetcher.from_config
        handle = cls(name="<rpc>", path=None, config=config, fetcher=factory(config))
        handle.load()
        return handle

    @property
    def state(self) -> HandleState:
        if not self._loaded:
            return HandleState.UNOPENED
        return HandleState.DIRTY if self.resolver.dirty else HandleState.LOADED

    @property
    def persistent(self) -> bool:
        return self.path is not None

    def load(self) -> Snapshot:
        """Seed overrides from the snapshot file (missing file = empty scenario)."""
        if self.path is None:
            snapshot = Snapshot(name=self.name)
        else:
            snapshot = snapshot_codec.load(self.path)
            if snapshot.name != self.name:
                logger.warning(
                    f"Snapshot {self.path} is named {snapshot.name!r}; using {self.name!r}"
                )
        self.resolver.seed_overrides(snapshot.accounts)
        self._loaded = True
        return snapshot

    def _require_loaded(self) -> None:
        if not self._loaded:
            raise ScenarioNotOpen(self.name)

    def account(self, address: AddressLike) -> Account:
        """Resolve an account; a fetch that changed state is persisted before returning."""
        self._require_loaded()
        account = self.resolver.resolve(address)
        if self.resolver.dirty:
            self.persist()
        return account

    def set_account(self, address: AddressLike, account: Account) -> None:
        self._require_loaded()
        self.resolver.set_manual(address, account)

    def set_account_mock(self, address: AddressLike) -> Account:
        """Inject an empty, zero-lamport account owned by itself."""
        address = to_address(address)
        account = Account(address=address, owner=address)
        self.set_account(address, account)
        return account

    def airdrop(self, address: AddressLike, lamports: int) -> Account:
        """Credit lamports in whichever tier the account currently resolves from.

        Overrides are updated (and persisted); otherwise the manual account is
        credited, starting from an empty system-owned account if none exists.
        """
        self._require_loaded()
        address = to_address(address)
        existing = self.resolver.get_override(address)
        if existing is not None:
            credited = existing.with_lamports(apply_balance_change(existing.lamports, lamports))
            self.apply_updates([(address, credited)])
            return credited

        current = self.resolver.lookup(address) or Account.empty(address)
        credited = current.with_lamports(apply_balance_change(current.lamports, lamports))
        self.resolver.set_manual(address, credited)
        return credited

    def load_program(
        self, name: str, program_id: AddressLike, search_dir: Optional[Path] = None
    ) -> Account:
        """Install the compiled artifact `<name>.so` as an executable manual account."""
        account = load_program_account(name, program_id, search_dir=search_dir, root=self.root)
        self.set_account(account.address, account)
        return account

    def apply_updates(self, updates: AccountUpdates) -> int:
        """Record post-execution accounts as overrides and persist them."""
        self._require_loaded()
        items = updates.items() if isinstance(updates, Mapping) else updates
        count = self.resolver.mark_overrides(items)
        if self.resolver.dirty:
            self.persist()
        return count

    def commit(self, result: ExecutionResult) -> bool:
        """Apply an engine result; failed executions leave state untouched."""
        if not result.ok:
            logger.warning(f"Not committing failed execution in {self.name}: {result.error}")
            return False
        self.apply_updates(result.post_execution_accounts)
        return True

    def persist(self) -> None:
        self._require_loaded()
        overrides = self.resolver.overrides()
        if self.path is None:
            logger.debug(f"Scenario {self.name} has no backing file; {len(overrides)} overrides kept in memory")
            self.resolver.mark_clean()
            return
        snapshot_codec.save(Snapshot(name=self.name, accounts=overrides), self.path)
        self.resolver.mark_clean()

    def digest(self) -> str:
        return compute_accounts_digest(self.resolver.overrides())

    def close(self) -> None:
        """Flush anything a failed write-through left behind."""
        if self._loaded and self.resolver.dirty and self.persistent:
            self.persist()

    def __enter__(self) -> "ScenarioHandle":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"ScenarioHandle(name={self.name!r}, path={self.path}, state={self.state.value})"


class ScenarioManager:
    """Opens named scenarios under `<root>/scenarios`."""

    def __init__(
        self,
        root: Optional[Path] = None,
        fetcher_factory: Optional[FetcherFactory] = None,
    ):
        self.root = Path(root) if root is not None else Path.cwd()
        self.fetcher_factory = fetcher_factory or RpcAccountFetcher.from_config

    @property
    def scenarios_dir(self) -> Path:
        return self.root / SCENARIOS_DIR

    def scenario_path(self, name: str) -> Path:
        if (
            not name
            or name in (".", "..")
            or "/" in name
            or "\\" in name
            or "\x00" in name
        ):
            raise InvalidScenarioName(name)
        return self.scenarios_dir / f"{name}{SNAPSHOT_SUFFIX}"

    def open(self, name: str, config: Optional[ScenarioConfig] = None) -> ScenarioHandle:
        """Open (or start) scenario `name`.

        The endpoint is read from the environment here, once; it stays fixed
        for the lifetime of the returned handle.
        """
        path = self.scenario_path(name)
        config = config if config is not None else ScenarioConfig.from_env()
        fetcher = self.fetcher_factory(config) if config.can_fetch else None

        handle = ScenarioHandle(name, path, config, fetcher=fetcher, root=self.root)
        snapshot = handle.load()

        if fetcher is None:
            logger.info(f"Opened scenario {name} ({len(snapshot)} accounts, no endpoint)")
        else:
            logger.info(f"Opened scenario {name} ({len(snapshot)} accounts, endpoint {fetcher.endpoint})")
        return handle

    def list_scenarios(self) -> list[str]:
        if not self.scenarios_dir.is_dir():
            return []
        return sorted(
            p.name[: -len(SNAPSHOT_SUFFIX)]
            for p in self.scenarios_dir.iterdir()
            if p.name.endswith(SNAPSHOT_SUFFIX) and not p.name.startswith(".")
        )


def open_scenario(
    name: str,
    root: Optional[Path] = None,
    config: Optional[ScenarioConfig] = None,
) -> ScenarioHandle:
    return ScenarioManager(root).open(name, config)


def describe(handle: ScenarioHandle) -> dict[str, object]:
    """Plain-data summary of a handle's overrides, for dumps and the CLI."""
    overrides = handle.resolver.overrides()
    return {
        "name": handle.name,
        "path": str(handle.path) if handle.path else None,
        "digest": handle.digest(),
        "accounts": [
            {
                "address": encode_address(address),
                "lamports": account.lamports,
                "owner": encode_address(account.owner),
                "data_len": len(account.data),
                "executable": account.executable,
                "rent_epoch": account.rent_epoch,
            }
            for address, account in sorted(overrides.items())
        ],
    }
