"""Seashell configuration constants and environment-derived settings.

Keep the account constants aligned with the host ledger (32-byte addresses,
u64 lamports and rent epochs, base58 text form).
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from typing import Optional

import base58

from .errors import InvalidConfig

# Accounts
ADDRESS_LENGTH = 32
U64_MAX = (1 << 64) - 1
SYSTEM_PROGRAM_ID = bytes(32)
BPF_LOADER_ID = base58.b58decode("BPFLoader2111111111111111111111111111111111")

# Snapshots
SNAPSHOT_FORMAT_VERSION = 1
SNAPSHOT_SUFFIX = ".json.gz"
SCENARIOS_DIR = "scenarios"
SNAPSHOT_COMPRESSION_LEVEL = 9

# Program artifacts
PROGRAM_SUFFIX = ".so"
DEFAULT_PROGRAM_DIR = os.path.join("target", "deploy")

# Environment
RPC_URL_ENV = "RPC_URL"
RPC_TIMEOUT_ENV = "SEASHELL_RPC_TIMEOUT"
RPC_RETRIES_ENV = "SEASHELL_RPC_RETRIES"
SBF_OUT_DIR_ENV = "SBF_OUT_DIR"

# Remote fetch
DEFAULT_RPC_TIMEOUT = 30.0
DEFAULT_RPC_RETRIES = 3
DEFAULT_RPC_BACKOFF = 0.5
DEFAULT_COMMITMENT = "confirmed"


def _env_number(variable: str, kind: type, default):
    raw = os.environ.get(variable, "").strip()
    if not raw:
        return default
    try:
        return kind(raw)
    except ValueError as e:
        raise InvalidConfig(variable, raw, f"expected {kind.__name__}") from e


@dataclass(frozen=True)
class ScenarioConfig:
    """Settings fixed for the lifetime of one scenario handle."""
    endpoint: Optional[str] = None
    timeout: float = DEFAULT_RPC_TIMEOUT
    max_retries: int = DEFAULT_RPC_RETRIES
    backoff: float = DEFAULT_RPC_BACKOFF
    commitment: str = DEFAULT_COMMITMENT

    @property
    def can_fetch(self) -> bool:
        return bool(self.endpoint)

    @classmethod
    def from_env(cls) -> "ScenarioConfig":
        """Load configuration from environment variables."""
        endpoint = os.environ.get(RPC_URL_ENV, "").strip() or None
        timeout = _env_number(RPC_TIMEOUT_ENV, float, DEFAULT_RPC_TIMEOUT)
        if not math.isfinite(timeout) or timeout <= 0:
            raise InvalidConfig(
                RPC_TIMEOUT_ENV, os.environ[RPC_TIMEOUT_ENV], "timeout must be a positive number of seconds"
            )
        max_retries = _env_number(RPC_RETRIES_ENV, int, DEFAULT_RPC_RETRIES)
        if max_retries < 0:
            raise InvalidConfig(
                RPC_RETRIES_ENV, os.environ[RPC_RETRIES_ENV], "retry count must not be negative"
            )
        return cls(endpoint=endpoint, timeout=timeout, max_retries=max_retries)
