"""Supported networks, governors and role-registry pools."""

from __future__ import annotations

from dataclasses import dataclass

from govfork.core.errors import ConfigurationError, UnsupportedPoolError
from govfork.core.types import GovernanceModel


@dataclass(frozen=True)
class NetworkConfig:
    """A forkable origin network."""

    chain_id: int
    name: str
    governance_model: GovernanceModel


@dataclass(frozen=True)
class GovernorLayout:
    """Storage layout of the voting governor's proposal mapping.

    ``proposals_slot`` is the declared slot of ``mapping(uint256 => Proposal)``;
    ``for_votes_offset`` is the position of ``forVotes`` in the struct's
    declaration order (id, creator, executor, targets, values, signatures,
    calldatas, withDelegatecalls, startBlock, endBlock, executionTime, forVotes).
    """

    proposals_slot: int = 4
    for_votes_offset: int = 11


@dataclass(frozen=True)
class GovernorConfig:
    """A time-locked voting governor deployment."""

    chain_id: int
    name: str
    address: str
    executor: str
    proposer: str
    layout: GovernorLayout = GovernorLayout()


@dataclass(frozen=True)
class PoolConfig:
    """A pool whose configuration is guarded by a role registry (ACL manager)."""

    name: str
    chain_id: int
    pool: str
    acl_manager: str
    roles_slot: int = 0


# ── Network Registry ─────────────────────────────────────────────────────────

NETWORKS: dict[str, NetworkConfig] = {
    "mainnet": NetworkConfig(1, "Ethereum Mainnet", GovernanceModel.TIME_LOCKED_VOTING),
    "optimism": NetworkConfig(10, "Optimism", GovernanceModel.ROLE_BASED_ACCESS_CONTROL),
    "polygon": NetworkConfig(137, "Polygon", GovernanceModel.ROLE_BASED_ACCESS_CONTROL),
    "fantom": NetworkConfig(250, "Fantom Opera", GovernanceModel.ROLE_BASED_ACCESS_CONTROL),
    "arbitrum_one": NetworkConfig(42161, "Arbitrum One", GovernanceModel.ROLE_BASED_ACCESS_CONTROL),
    "avalanche": NetworkConfig(43114, "Avalanche C-Chain", GovernanceModel.ROLE_BASED_ACCESS_CONTROL),
    "harmony": NetworkConfig(1666600000, "Harmony", GovernanceModel.ROLE_BASED_ACCESS_CONTROL),
}


# ── Governor Registry ────────────────────────────────────────────────────────

GOVERNORS: dict[int, GovernorConfig] = {
    1: GovernorConfig(
        chain_id=1,
        name="AaveGovernanceV2",
        address="0xEC568fffba86c094cf06b22134B23074DFE2252c",
        executor="0xEE56e2B3D491590B5b31738cC34d5232F378a8D5",  # short executor
        proposer="0x25F2226B597E8F9514B3F68F00f494cF4f286491",
    ),
}


# ── Pool Registry ────────────────────────────────────────────────────────────

_V3_POOL = "0x794a61358D6845594F94dc1DB02A252b5b4814aD"
_V3_ACL_MANAGER = "0xa72636CbcAa8F5FF95B2cc47F3CDEe83F3294a0B"

POOLS: dict[str, PoolConfig] = {
    "AaveV3Ethereum": PoolConfig(
        name="AaveV3Ethereum",
        chain_id=1,
        pool="0x87870Bca3F3fD6335C3F4ce8392D69350B4fA4E2",
        acl_manager="0xc2aaCf6553D20d1e9d78E365AAba8032af9c85b0",
    ),
    "AaveV3Optimism": PoolConfig("AaveV3Optimism", 10, _V3_POOL, _V3_ACL_MANAGER),
    "AaveV3Polygon": PoolConfig("AaveV3Polygon", 137, _V3_POOL, _V3_ACL_MANAGER),
    "AaveV3Fantom": PoolConfig("AaveV3Fantom", 250, _V3_POOL, _V3_ACL_MANAGER),
    "AaveV3Arbitrum": PoolConfig("AaveV3Arbitrum", 42161, _V3_POOL, _V3_ACL_MANAGER),
    "AaveV3Avalanche": PoolConfig("AaveV3Avalanche", 43114, _V3_POOL, _V3_ACL_MANAGER),
    "AaveV3Harmony": PoolConfig("AaveV3Harmony", 1666600000, _V3_POOL, _V3_ACL_MANAGER),
}


def get_network(name: str) -> NetworkConfig:
    """Get a network by name (case-insensitive)."""
    network = NETWORKS.get(name.lower())
    if network is None:
        raise ConfigurationError(
            f"Unknown network '{name}'. Choose one of: {', '.join(NETWORKS)}"
        )
    return network


def get_network_by_chain_id(chain_id: int) -> NetworkConfig | None:
    for network in NETWORKS.values():
        if network.chain_id == chain_id:
            return network
    return None


def get_governor(chain_id: int) -> GovernorConfig:
    """Return the voting governor deployed on ``chain_id``."""
    governor = GOVERNORS.get(chain_id)
    if governor is None:
        raise ConfigurationError(f"No voting governor registered for chain {chain_id}")
    return governor


def pools_for_chain(chain_id: int) -> list[PoolConfig]:
    return [p for p in POOLS.values() if p.chain_id == chain_id]


def get_pool(name: str) -> PoolConfig:
    pool = POOLS.get(name)
    if pool is None:
        raise UnsupportedPoolError(f"Unknown pool '{name}'", pool=name)
    return pool


def resolve_pool(
    chain_id: int,
    pool_name: str | None = None,
    acl_manager: str | None = None,
) -> PoolConfig:
    """Find the role registry guarding the target deployment.

    An explicit ``acl_manager`` wins, then a named pool (which must live on
    ``chain_id``), then the single pool registered for the chain.
    """
    if acl_manager:
        return PoolConfig(name="custom", chain_id=chain_id, pool="", acl_manager=acl_manager)

    if pool_name:
        pool = get_pool(pool_name)
        if pool.chain_id != chain_id:
            raise UnsupportedPoolError(
                f"Pool '{pool_name}' lives on chain {pool.chain_id}, not {chain_id}",
                pool=pool_name,
                chain_id=chain_id,
            )
        return pool

    candidates = pools_for_chain(chain_id)
    if len(candidates) == 1:
        return candidates[0]
    if not candidates:
        raise UnsupportedPoolError(
            f"No role registry known for chain {chain_id}", chain_id=chain_id
        )
    raise UnsupportedPoolError(
        f"Several pools on chain {chain_id}; pick one of: "
        f"{', '.join(p.name for p in candidates)}",
        chain_id=chain_id,
    )
