"""Remote account reads over the ledger's JSON-RPC `getAccountInfo` method."""

from __future__ import annotations

import asyncio
import base64
import binascii
import itertools
import logging
from typing import Any, Dict, Optional, Protocol

import aiohttp

from .config import (
    DEFAULT_COMMITMENT,
    DEFAULT_RPC_BACKOFF,
    DEFAULT_RPC_RETRIES,
    DEFAULT_RPC_TIMEOUT,
    ScenarioConfig,
)
from .errors import FetchError, ScenarioError
from .types import Account, decode_address, encode_address

logger = logging.getLogger(__name__)

_request_ids = itertools.count(1)


class AccountFetcher(Protocol):
    endpoint: str

    def fetch(self, address: bytes) -> Account:
        """Return the remote account, `Account.empty` if it does not exist,
        or raise FetchError."""
        ...


class _TransientError(Exception):
    """Failure worth another attempt (transport, timeout, 429/5xx)."""


class RpcAccountFetcher:
    """JSON-RPC client bound to a single endpoint."""

    def __init__(
        self,
        endpoint: str,
        timeout: float = DEFAULT_RPC_TIMEOUT,
        max_retries: int = DEFAULT_RPC_RETRIES,
        backoff: float = DEFAULT_RPC_BACKOFF,
        commitment: str = DEFAULT_COMMITMENT,
    ):
        self.endpoint = endpoint
        self.timeout = timeout
        self.max_retries = max(0, max_retries)
        self.backoff = backoff
        self.commitment = commitment

    @classmethod
    def from_config(cls, config: ScenarioConfig) -> "RpcAccountFetcher":
        if not config.endpoint:
            raise ValueError("config has no endpoint")
        return cls(
            config.endpoint,
            timeout=config.timeout,
            max_retries=config.max_retries,
            backoff=config.backoff,
            commitment=config.commitment,
        )

    def fetch(self, address: bytes) -> Account:
        """Blocking fetch. Must not be called from inside a running event loop."""
        return asyncio.run(self.fetch_async(address))

    async def fetch_async(self, address: bytes) -> Account:
        request = {
            "jsonrpc": "2.0",
            "id": next(_request_ids),
            "method": "getAccountInfo",
            "params": [
                encode_address(address),
                {"encoding": "base64", "commitment": self.commitment},
            ],
        }
        attempts = self.max_retries + 1
        last_reason = "no attempt made"
        timeout = aiohttp.ClientTimeout(total=self.timeout)

        async with aiohttp.ClientSession(timeout=timeout) as session:
            for attempt in range(attempts):
                if attempt:
                    delay = self.backoff * (2 ** (attempt - 1))
                    logger.warning(
                        f"Retrying fetch of {encode_address(address)} in {delay:.2f}s "
                        f"(attempt {attempt + 1}/{attempts}): {last_reason}"
                    )
                    await asyncio.sleep(delay)
                try:
                    body = await self._post(session, address, request)
                except _TransientError as e:
                    last_reason = str(e)
                    continue
                account = parse_account_info(address, body, self.endpoint)
                logger.debug(f"Fetched {account!r} from {self.endpoint}")
                return account

        raise FetchError(address, self.endpoint, f"{last_reason} (gave up after {attempts} attempts)")

    async def _post(
        self, session: aiohttp.ClientSession, address: bytes, request: Dict[str, Any]
    ) -> Any:
        try:
            async with session.post(self.endpoint, json=request) as resp:
                if resp.status == 429 or resp.status >= 500:
                    raise _TransientError(f"HTTP {resp.status}")
                if resp.status != 200:
                    raise FetchError(address, self.endpoint, f"HTTP {resp.status}")
                try:
                    return await resp.json(content_type=None)
                except ValueError as e:
                    raise FetchError(address, self.endpoint, f"malformed response: {e}") from e
        except asyncio.TimeoutError as e:
            raise _TransientError(f"timed out after {self.timeout}s") from e
        except aiohttp.ClientError as e:
            raise _TransientError(f"{type(e).__name__}: {e}") from e


def parse_account_info(address: bytes, body: Any, endpoint: str) -> Account:
    """Decode a `getAccountInfo` JSON-RPC response body.

    A null `value` means the address was never initialised and yields
    `Account.empty`; anything unexpected is a FetchError.
    """
    if not isinstance(body, dict):
        raise FetchError(address, endpoint, "malformed response: body is not an object")

    error = body.get("error")
    if error is not None:
        if isinstance(error, dict):
            reason = f"rpc error {error.get('code')}: {error.get('message')}"
        else:
            reason = f"rpc error: {error!r}"
        raise FetchError(address, endpoint, reason)

    result = body.get("result")
    if not isinstance(result, dict) or "value" not in result:
        raise FetchError(address, endpoint, "malformed response: missing result.value")

    value: Optional[Dict[str, Any]] = result["value"]
    if value is None:
        return Account.empty(address)

    try:
        payload, encoding = value["data"]
        if encoding != "base64":
            raise ValueError(f"unexpected data encoding {encoding!r}")
        return Account(
            address=address,
            lamports=value["lamports"],
            owner=decode_address(value["owner"]),
            data=base64.b64decode(payload, validate=True),
            executable=value["executable"],
            rent_epoch=value.get("rentEpoch", 0),
        )
    except (KeyError, TypeError, ValueError, binascii.Error, ScenarioError) as e:
        raise FetchError(address, endpoint, f"malformed account payload: {e}") from e


def fetch_account(
    address: bytes,
    endpoint: str,
    timeout: float = DEFAULT_RPC_TIMEOUT,
    max_retries: int = DEFAULT_RPC_RETRIES,
    backoff: float = DEFAULT_RPC_BACKOFF,
) -> Account:
    """One-shot fetch of `address` from `endpoint`."""
    fetcher = RpcAccountFetcher(endpoint, timeout=timeout, max_retries=max_retries, backoff=backoff)
    return fetcher.fetch(address)

