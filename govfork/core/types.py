"""Shared enums and types used across the engine."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Union

from pydantic import BaseModel, Field

LATEST = "latest"


# ── Enums ────────────────────────────────────────────────────────────────────


class GovernanceModel(str, enum.Enum):
    """Authorization scheme a target deployment uses to approve changes."""

    TIME_LOCKED_VOTING = "time_locked_voting"
    ROLE_BASED_ACCESS_CONTROL = "role_based_access_control"


class ProposalStage(str, enum.Enum):
    """Lifecycle position of a proposal driven by the time-locked voting driver."""

    PENDING = "pending"
    VOTED = "voted"
    QUEUED = "queued"
    EXECUTED = "executed"


class ExecutionStrategy(str, enum.Enum):
    """Which path finally executed the change."""

    GOVERNANCE = "governance"
    DIRECT = "direct"
    OWNER = "owner"
    ADMIN_OVERRIDE = "admin_override"


# ── Fork handle ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ForkHandle:
    """One ephemeral simulated environment.

    Mutations target the environment behind ``rpc_url``, never this record.
    ``owned`` is True only when the current session created the fork; reused
    forks are never torn down by the session.
    """

    fork_id: str
    rpc_url: str
    origin_network_id: int
    fork_network_id: int
    block_number: int | str = LATEST
    owned: bool = True


# ── Proposal references ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class ExistingProposal:
    """A proposal already created on the governor."""

    proposal_id: int


@dataclass(frozen=True)
class PayloadAddress:
    """A payload contract already deployed (on the fork or the origin chain)."""

    address: str


@dataclass(frozen=True)
class RawCalldata:
    """Arbitrary calldata sent to ``target``."""

    target: str
    calldata: bytes


ProposalReference = Union[ExistingProposal, PayloadAddress, RawCalldata]


# ── Storage mutations ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SlotMutation:
    """Direct write of a 32-byte word into a contract's storage."""

    contract_address: str
    storage_slot: bytes
    new_value: bytes

    def __post_init__(self) -> None:
        if len(self.storage_slot) != 32:
            raise ValueError(f"storage slot must be 32 bytes, got {len(self.storage_slot)}")
        if len(self.new_value) != 32:
            raise ValueError(f"storage value must be 32 bytes, got {len(self.new_value)}")

    @property
    def slot_hex(self) -> str:
        return "0x" + self.storage_slot.hex()

    @property
    def value_hex(self) -> str:
        return "0x" + self.new_value.hex()


@dataclass(frozen=True)
class RoleGrant:
    """A transient role membership written straight into a role registry."""

    role_name: str
    grantee: str


# ── Results ──────────────────────────────────────────────────────────────────


class SimulationResult(BaseModel):
    """Outcome of driving one proposal reference to execution."""

    model: GovernanceModel
    strategy: ExecutionStrategy
    proposal_id: int | None = None
    payload_address: str | None = None
    registry_address: str | None = None
    transaction_hashes: list[str] = Field(default_factory=list)
    grants: list[RoleGrant] = Field(default_factory=list)
