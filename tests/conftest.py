"""Shared fixtures: an isolated environment and an in-memory remote ledger."""

from __future__ import annotations

from typing import Callable

import pytest

from seashell.config import (
    RPC_RETRIES_ENV,
    RPC_TIMEOUT_ENV,
    RPC_URL_ENV,
    SBF_OUT_DIR_ENV,
    ScenarioConfig,
)
from seashell.errors import FetchError
from seashell.scenario import ScenarioManager
from seashell.types import Account

FAKE_ENDPOINT = "http://fake-rpc.invalid"


class FakeFetcher:
    """Remote ledger stand-in that records every request it serves."""

    def __init__(self, remote: dict[bytes, Account], endpoint: str = FAKE_ENDPOINT):
        self.endpoint = endpoint
        self.remote = remote
        self.calls: list[bytes] = []
        self.fail_with: str | None = None

    def fetch(self, address: bytes) -> Account:
        self.calls.append(address)
        if self.fail_with is not None:
            raise FetchError(address, self.endpoint, self.fail_with)
        account = self.remote.get(address)
        if account is None:
            return Account.empty(address)
        return account


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (RPC_URL_ENV, RPC_TIMEOUT_ENV, RPC_RETRIES_ENV, SBF_OUT_DIR_ENV):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def remote() -> dict[bytes, Account]:
    return {}


@pytest.fixture
def fake_fetcher(remote: dict[bytes, Account]) -> FakeFetcher:
    return FakeFetcher(remote)


@pytest.fixture
def manager(tmp_path, fake_fetcher: FakeFetcher) -> ScenarioManager:
    """Scenarios under tmp_path; any configured endpoint is served by fake_fetcher."""

    def _factory(config: ScenarioConfig) -> FakeFetcher:
        fake_fetcher.endpoint = config.endpoint or FAKE_ENDPOINT
        return fake_fetcher

    return ScenarioManager(tmp_path, fetcher_factory=_factory)


@pytest.fixture
def with_endpoint(monkeypatch: pytest.MonkeyPatch) -> Callable[[], None]:
    def _set() -> None:
        monkeypatch.setenv(RPC_URL_ENV, FAKE_ENDPOINT)

    return _set
