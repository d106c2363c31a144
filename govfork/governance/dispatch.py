"""Pick the governance model for a network and hand the reference to its driver."""

from __future__ import annotations

import logging
from typing import Any

from govfork.core.chains import get_governor, get_network_by_chain_id, resolve_pool
from govfork.core.config import Settings, get_settings
from govfork.core.types import (
    ExistingProposal,
    GovernanceModel,
    PayloadAddress,
    ProposalReference,
    RawCalldata,
    SimulationResult,
)
from govfork.governance.l1 import TimeLockedVotingDriver
from govfork.governance.l2 import RoleBasedDriver

logger = logging.getLogger(__name__)


def governance_model_for(
    network_id: int, override: GovernanceModel | str | None = None
) -> GovernanceModel:
    """Governance model of ``network_id``; only an explicit override changes it.

    Unknown networks are treated as role-registry networks, the registry
    lookup then decides whether they are supported.
    """
    if override is not None:
        return GovernanceModel(override)
    network = get_network_by_chain_id(network_id)
    if network is None:
        return GovernanceModel.ROLE_BASED_ACCESS_CONTROL
    return network.governance_model


def fork_alias(reference: ProposalReference | None = None, artifact: str | None = None) -> str:
    """Human-readable fork alias describing what the fork was created for."""
    if isinstance(reference, ExistingProposal):
        return f"proposalId-{reference.proposal_id}"
    if isinstance(reference, PayloadAddress):
        return f"payloadAddress-{reference.address}"
    if artifact:
        return f"artifact-{artifact}"
    if isinstance(reference, RawCalldata):
        return f"calldata-{reference.target}"
    return "vanilla-fork"


def build_driver(
    env: Any,
    network_id: int,
    model: GovernanceModel,
    pool: str | None = None,
    acl_manager: str | None = None,
    settings: Settings | None = None,
) -> TimeLockedVotingDriver | RoleBasedDriver:
    settings = settings or get_settings()
    if model is GovernanceModel.TIME_LOCKED_VOTING:
        return TimeLockedVotingDriver(
            env, get_governor(network_id), forced_votes=settings.forced_vote_count
        )
    pool_config = resolve_pool(network_id, pool_name=pool, acl_manager=acl_manager)
    return RoleBasedDriver(env, pool_config, operator=settings.operator_address)


def prepare_driver(
    env: Any,
    network_id: int,
    model: GovernanceModel | str | None = None,
    pool: str | None = None,
    acl_manager: str | None = None,
    settings: Settings | None = None,
) -> TimeLockedVotingDriver | RoleBasedDriver:
    """Resolve the model and its governor or registry without touching the fork.

    Lookup failures such as ``UnsupportedPoolError`` surface here, before any
    deployment or storage write.
    """
    resolved = governance_model_for(network_id, model)
    logger.info("Network %s uses %s", network_id, resolved.value)
    return build_driver(
        env, network_id, resolved, pool=pool, acl_manager=acl_manager, settings=settings
    )


async def simulate(
    env: Any,
    reference: ProposalReference,
    network_id: int,
    model: GovernanceModel | str | None = None,
    pool: str | None = None,
    acl_manager: str | None = None,
    settings: Settings | None = None,
) -> SimulationResult:
    """Drive ``reference`` to execution on the fork behind ``env``."""
    driver = prepare_driver(
        env, network_id, model, pool=pool, acl_manager=acl_manager, settings=settings
    )
    logger.info("Simulating %s", reference)
    return await driver.run(reference)
