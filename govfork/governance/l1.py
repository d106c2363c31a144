"""Time-locked voting governor driver.

Drives one proposal through PENDING → VOTED → QUEUED → EXECUTED:

1. VOTED:    overwrite the proposal's ``forVotes`` word with a count far above
             quorum instead of waiting for the voting period.
2. QUEUED:   advance ``endBlock - startBlock + 1`` blocks so the voting window
             reads as closed, then call ``queue``.
3. EXECUTED: advance the clock past ``executionTime`` so the timelock reads as
             expired, then call ``execute``.

Any revert aborts the run; the driver does not diagnose why.
"""

from __future__ import annotations

import logging
from typing import Any

from eth_utils import to_checksum_address

from govfork.core.chains import GovernorConfig
from govfork.core.errors import LayoutMismatchError
from govfork.core.slots import for_votes_mutation
from govfork.core.types import (
    ExecutionStrategy,
    ExistingProposal,
    GovernanceModel,
    PayloadAddress,
    ProposalReference,
    ProposalStage,
    RawCalldata,
    SimulationResult,
)
from govfork.governance.contracts import ZERO_BYTES32, GovernorContract

logger = logging.getLogger(__name__)

DEFAULT_FORCED_VOTES = 5_000_000 * 10**18

_NEXT_STAGE = {
    ProposalStage.PENDING: ProposalStage.VOTED,
    ProposalStage.VOTED: ProposalStage.QUEUED,
    ProposalStage.QUEUED: ProposalStage.EXECUTED,
}


class TimeLockedVotingDriver:
    """Fast-forward a governor proposal to execution on a fork."""

    def __init__(
        self,
        env: Any,
        governor: GovernorConfig,
        forced_votes: int = DEFAULT_FORCED_VOTES,
    ) -> None:
        self.env = env
        self.config = governor
        self.governor = GovernorContract(env, governor)
        self.forced_votes = forced_votes
        self._stages: dict[int, ProposalStage] = {}
        self.transaction_hashes: list[str] = []

    def stage(self, proposal_id: int) -> ProposalStage:
        return self._stages.get(proposal_id, ProposalStage.PENDING)

    def _require(self, proposal_id: int, expected: ProposalStage) -> None:
        current = self.stage(proposal_id)
        if current is not expected:
            raise RuntimeError(
                f"proposal {proposal_id} is {current.value}, expected {expected.value}"
            )

    def _complete(self, proposal_id: int) -> None:
        self._stages[proposal_id] = _NEXT_STAGE[self.stage(proposal_id)]

    def _extra(self, proposal_id: int) -> dict[str, Any]:
        handle = getattr(self.env, "handle", None)
        return {"proposal_id": proposal_id, "fork_id": getattr(handle, "fork_id", "")}

    # ── Proposal creation ────────────────────────────────────────────

    async def create_proposal(self, reference: PayloadAddress | RawCalldata) -> int:
        """Submit a proposal for ``reference`` from the configured proposer."""
        if isinstance(reference, PayloadAddress):
            receipt = await self.governor.create(
                targets=[to_checksum_address(reference.address)],
                values=[0],
                signatures=["execute()"],
                calldatas=[ZERO_BYTES32],
                with_delegatecalls=[True],
            )
        elif isinstance(reference, RawCalldata):
            receipt = await self.governor.create(
                targets=[to_checksum_address(reference.target)],
                values=[0],
                signatures=[""],
                calldatas=[reference.calldata],
                with_delegatecalls=[False],
            )
        else:
            raise TypeError(f"cannot create a proposal from {type(reference).__name__}")

        self.transaction_hashes.append(receipt["transaction_hash"])
        proposal_id = await self.governor.proposals_count() - 1
        logger.info("Proposal created: %d", proposal_id, extra=self._extra(proposal_id))
        return proposal_id

    # ── State machine ────────────────────────────────────────────────

    async def pass_vote(self, proposal_id: int) -> None:
        """PENDING → VOTED: force ``forVotes`` far beyond quorum."""
        self._require(proposal_id, ProposalStage.PENDING)
        mutation = for_votes_mutation(
            self.config.address, proposal_id, self.forced_votes, self.config.layout
        )
        await self.env.apply_storage_mutation(mutation)

        proposal = await self.governor.get_proposal(proposal_id)
        if proposal.for_votes != self.forced_votes:
            raise LayoutMismatchError(
                f"forVotes of proposal {proposal_id} reads {proposal.for_votes} after writing "
                f"slot {mutation.slot_hex}; governor layout constants are wrong",
                slot=mutation.slot_hex,
            )
        self._complete(proposal_id)
        logger.info("Votes forced", extra=self._extra(proposal_id))

    async def queue(self, proposal_id: int) -> None:
        """VOTED → QUEUED: close the voting window and queue."""
        self._require(proposal_id, ProposalStage.VOTED)
        proposal = await self.governor.get_proposal(proposal_id)
        await self.env.advance_blocks(proposal.end_block - proposal.start_block + 1)

        receipt = await self.governor.queue(proposal_id)
        self.transaction_hashes.append(receipt["transaction_hash"])
        self._complete(proposal_id)
        logger.info("Proposal queued", extra=self._extra(proposal_id))

    async def execute(self, proposal_id: int) -> None:
        """QUEUED → EXECUTED: expire the timelock and execute."""
        self._require(proposal_id, ProposalStage.QUEUED)
        proposal = await self.governor.get_proposal(proposal_id)
        block = await self.env.get_block("latest")
        delta = proposal.execution_time - block["timestamp"]
        await self.env.advance_time(max(delta, 0) + 1)

        receipt = await self.governor.execute(proposal_id)
        self.transaction_hashes.append(receipt["transaction_hash"])
        self._complete(proposal_id)
        logger.info("Proposal executed", extra=self._extra(proposal_id))

    async def pass_and_execute(self, proposal_id: int) -> None:
        await self.pass_vote(proposal_id)
        await self.queue(proposal_id)
        await self.execute(proposal_id)

    async def run(self, reference: ProposalReference) -> SimulationResult:
        if isinstance(reference, ExistingProposal):
            proposal_id = reference.proposal_id
            payload = None
        elif isinstance(reference, PayloadAddress):
            proposal_id = await self.create_proposal(reference)
            payload = to_checksum_address(reference.address)
        elif isinstance(reference, RawCalldata):
            proposal_id = await self.create_proposal(reference)
            payload = None
        else:
            raise TypeError(f"unsupported proposal reference: {type(reference).__name__}")

        await self.pass_and_execute(proposal_id)
        return SimulationResult(
            model=GovernanceModel.TIME_LOCKED_VOTING,
            strategy=ExecutionStrategy.GOVERNANCE,
            proposal_id=proposal_id,
            payload_address=payload,
            transaction_hashes=list(self.transaction_hashes),
        )
