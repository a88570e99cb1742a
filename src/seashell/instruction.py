"""Boundary types between scenarios and the external execution engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from .types import Account, AddressLike, to_address

if TYPE_CHECKING:
    from .scenario import ScenarioHandle

# The program id always occupies transaction index 0.
INSTRUCTION_PROGRAM_ID_INDEX = 0


@dataclass(frozen=True)
class AccountMeta:
    address: bytes
    is_signer: bool = False
    is_writable: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "address", to_address(self.address))

    @classmethod
    def writable(cls, address: AddressLike, is_signer: bool = False) -> "AccountMeta":
        return cls(to_address(address), is_signer=is_signer, is_writable=True)

    @classmethod
    def readonly(cls, address: AddressLike, is_signer: bool = False) -> "AccountMeta":
        return cls(to_address(address), is_signer=is_signer, is_writable=False)


@dataclass
class Instruction:
    program_id: bytes
    accounts: List[AccountMeta] = field(default_factory=list)
    data: bytes = b""

    def __post_init__(self) -> None:
        self.program_id = to_address(self.program_id)


@dataclass(frozen=True)
class InstructionAccount:
    index_in_transaction: int
    index_in_caller: int
    index_in_callee: int
    is_signer: bool
    is_writable: bool


@dataclass
class ExecutionResult:
    """What the engine reports after running one instruction."""
    compute_units_consumed: int = 0
    return_data: bytes = b""
    error: Optional[str] = None
    post_execution_accounts: List[Tuple[bytes, Account]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


def compile_instruction_accounts(instruction: Instruction) -> List[InstructionAccount]:
    """Map each account meta to its transaction slot.

    Duplicate addresses share one slot whose privileges are the union over
    every occurrence; `index_in_callee` points at the first occurrence
    within the instruction.
    """
    privileges: Dict[bytes, List[bool]] = {instruction.program_id: [False, False]}
    for meta in instruction.accounts:
        entry = privileges.setdefault(meta.address, [False, False])
        entry[0] |= meta.is_signer
        entry[1] |= meta.is_writable

    slots = {address: idx for idx, address in enumerate(privileges)}
    account_indices = [slots[meta.address] for meta in instruction.accounts]

    compiled: List[InstructionAccount] = []
    for idx, global_idx in enumerate(account_indices):
        try:
            index_in_callee = account_indices[:idx].index(global_idx)
        except ValueError:
            index_in_callee = idx
        is_signer, is_writable = privileges[instruction.accounts[idx].address]
        compiled.append(
            InstructionAccount(
                index_in_transaction=global_idx,
                index_in_caller=global_idx,
                index_in_callee=index_in_callee,
                is_signer=is_signer,
                is_writable=is_writable,
            )
        )
    return compiled


def accounts_for_instruction(
    handle: "ScenarioHandle", instruction: Instruction
) -> List[Tuple[bytes, Account]]:
    """Resolve the program account followed by every meta, in order."""
    accounts = [(instruction.program_id, handle.account(instruction.program_id))]
    for meta in instruction.accounts:
        accounts.append((meta.address, handle.account(meta.address)))
    return accounts
