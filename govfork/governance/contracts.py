"""Minimal ABI bindings for the contracts the drivers talk to."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol, Sequence

from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from govfork.core.chains import GovernorConfig
from govfork.core.errors import ContractRevertedError
from govfork.core.slots import role_id

logger = logging.getLogger(__name__)

ZERO_BYTES32 = b"\x00" * 32

PROPOSAL_TUPLE = (
    "(uint256,address,address,address[],uint256[],string[],bytes[],bool[],"
    "uint256,uint256,uint256,uint256,uint256,bool,bool,address,bytes32)"
)


class Environment(Protocol):
    """What a binding needs from a fork submission context."""

    async def call(self, to: str, data: bytes, sender: str | None = None) -> bytes: ...

    async def send_transaction(
        self, sender: str, to: str | None, data: bytes, value: int = 0
    ) -> dict[str, Any]: ...


def encode_call(signature: str, arg_types: Sequence[str] = (), args: Sequence[Any] = ()) -> bytes:
    """Calldata for ``signature`` (e.g. ``"queue(uint256)"``) with ABI-encoded args."""
    selector = function_signature_to_4byte_selector(signature)
    if not arg_types:
        return selector
    return selector + encode(list(arg_types), list(args))


@dataclass(frozen=True)
class ProposalView:
    """The fields of a governor proposal the drivers care about."""

    id: int
    creator: str
    executor: str
    targets: tuple[str, ...]
    start_block: int
    end_block: int
    execution_time: int
    for_votes: int
    against_votes: int
    executed: bool
    canceled: bool

    @classmethod
    def from_tuple(cls, raw: Sequence[Any]) -> ProposalView:
        return cls(
            id=raw[0],
            creator=to_checksum_address(raw[1]),
            executor=to_checksum_address(raw[2]),
            targets=tuple(to_checksum_address(t) for t in raw[3]),
            start_block=raw[8],
            end_block=raw[9],
            execution_time=raw[10],
            for_votes=raw[11],
            against_votes=raw[12],
            executed=raw[13],
            canceled=raw[14],
        )


class GovernorContract:
    """Time-locked voting governor (Aave Governance V2 interface)."""

    def __init__(self, env: Environment, config: GovernorConfig) -> None:
        self.env = env
        self.config = config
        self.address = config.address

    async def get_proposal(self, proposal_id: int) -> ProposalView:
        raw = await self.env.call(
            self.address, encode_call("getProposalById(uint256)", ["uint256"], [proposal_id])
        )
        (proposal,) = decode([PROPOSAL_TUPLE], raw)
        return ProposalView.from_tuple(proposal)

    async def proposals_count(self) -> int:
        raw = await self.env.call(self.address, encode_call("getProposalsCount()"))
        (count,) = decode(["uint256"], raw)
        return count

    async def create(
        self,
        targets: list[str],
        values: list[int],
        signatures: list[str],
        calldatas: list[bytes],
        with_delegatecalls: list[bool],
        ipfs_hash: bytes = ZERO_BYTES32,
    ) -> dict[str, Any]:
        data = encode_call(
            "create(address,address[],uint256[],string[],bytes[],bool[],bytes32)",
            ["address", "address[]", "uint256[]", "string[]", "bytes[]", "bool[]", "bytes32"],
            [
                self.config.executor,
                targets,
                values,
                signatures,
                calldatas,
                with_delegatecalls,
                ipfs_hash,
            ],
        )
        return await self.env.send_transaction(self.config.proposer, self.address, data)

    async def queue(self, proposal_id: int) -> dict[str, Any]:
        return await self.env.send_transaction(
            self.config.proposer,
            self.address,
            encode_call("queue(uint256)", ["uint256"], [proposal_id]),
        )

    async def execute(self, proposal_id: int) -> dict[str, Any]:
        return await self.env.send_transaction(
            self.config.proposer,
            self.address,
            encode_call("execute(uint256)", ["uint256"], [proposal_id]),
        )


class AccessControlRegistry:
    """Role registry (ACL manager). Only read here; grants go through raw storage."""

    def __init__(self, env: Environment, address: str) -> None:
        self.env = env
        self.address = address

    async def has_role(self, role: str | bytes, account: str) -> bool:
        raw = await self.env.call(
            self.address,
            encode_call("hasRole(bytes32,address)", ["bytes32", "address"], [role_id(role), account]),
        )
        (granted,) = decode(["bool"], raw)
        return granted


class PayloadContract:
    """A deployed payload exposing ``execute()`` and, optionally, ``owner()``."""

    def __init__(self, env: Environment, address: str) -> None:
        self.env = env
        self.address = address

    async def execute(self, sender: str) -> dict[str, Any]:
        return await self.env.send_transaction(sender, self.address, encode_call("execute()"))

    async def owner(self) -> str | None:
        """Return the owner, or None when the payload has no ``owner()``."""
        try:
            raw = await self.env.call(self.address, encode_call("owner()"))
        except ContractRevertedError as exc:
            logger.debug("owner() reverted on %s: %s", self.address, exc)
            return None
        if len(raw) < 32:
            return None
        (owner,) = decode(["address"], raw)
        return to_checksum_address(owner)
