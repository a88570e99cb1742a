"""Locate compiled program artifacts and turn them into executable accounts.

The build pipeline is external; its only contract is that compiling program
`<name>` leaves `<name>.so` in `$SBF_OUT_DIR`, or in `target/deploy` under the
workspace root when that variable is unset.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from .config import BPF_LOADER_ID, DEFAULT_PROGRAM_DIR, PROGRAM_SUFFIX, SBF_OUT_DIR_ENV
from .errors import ProgramNotFound
from .types import Account, AddressLike, to_address

logger = logging.getLogger(__name__)

PROGRAM_ACCOUNT_LAMPORTS = 1


def program_search_dir(search_dir: Optional[Path] = None, root: Optional[Path] = None) -> Path:
    if search_dir is not None:
        return Path(search_dir)
    out_dir = os.environ.get(SBF_OUT_DIR_ENV)
    if out_dir:
        return Path(out_dir)
    return Path(root or Path.cwd()) / DEFAULT_PROGRAM_DIR


def find_program_artifact(
    name: str, search_dir: Optional[Path] = None, root: Optional[Path] = None
) -> Path:
    directory = program_search_dir(search_dir, root)
    candidate = directory / f"{name}{PROGRAM_SUFFIX}"
    if not candidate.is_file():
        raise ProgramNotFound(name, directory)
    return candidate


def program_account(program_id: AddressLike, elf: bytes) -> Account:
    return Account(
        address=to_address(program_id),
        lamports=PROGRAM_ACCOUNT_LAMPORTS,
        owner=BPF_LOADER_ID,
        data=elf,
        executable=True,
    )


def load_program_account(
    name: str,
    program_id: AddressLike,
    search_dir: Optional[Path] = None,
    root: Optional[Path] = None,
) -> Account:
    path = find_program_artifact(name, search_dir, root)
    elf = path.read_bytes()
    logger.info(f"Loaded program {name} from {path} ({len(elf)} bytes)")
    return program_account(program_id, elf)
