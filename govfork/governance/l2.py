"""Role-based access-control driver.

On networks without a voting governor, changes are authorized by a role
registry (ACL manager). The driver writes role memberships straight into the
registry's storage, then invokes the payload. Payloads that additionally
guard ``execute()`` with an owner check get one fallback: execute as the
discovered owner, or, when there is no ``owner()``, make the payload a
registry admin and retry once.
"""

from __future__ import annotations

import logging
from typing import Any

from eth_utils import to_checksum_address

from govfork.core.chains import PoolConfig
from govfork.core.errors import (
    ConfigurationError,
    ContractRevertedError,
    LayoutMismatchError,
    SecondaryGuardFailure,
)
from govfork.core.slots import DEFAULT_ADMIN_ROLE, role_grant_mutation
from govfork.core.types import (
    ExecutionStrategy,
    ExistingProposal,
    GovernanceModel,
    PayloadAddress,
    ProposalReference,
    RawCalldata,
    RoleGrant,
    SimulationResult,
)
from govfork.governance.contracts import AccessControlRegistry, PayloadContract

logger = logging.getLogger(__name__)

REQUIRED_ROLES = ("ASSET_LISTING_ADMIN", "RISK_ADMIN", "POOL_ADMIN")
DEFAULT_ADMIN_ROLE_NAME = "DEFAULT_ADMIN_ROLE"


class RoleBasedDriver:
    """Execute a payload on a role-registry network by granting itself the roles."""

    def __init__(
        self,
        env: Any,
        pool: PoolConfig,
        operator: str,
        roles: tuple[str, ...] = REQUIRED_ROLES,
    ) -> None:
        self.env = env
        self.pool = pool
        self.registry = AccessControlRegistry(env, to_checksum_address(pool.acl_manager))
        self.operator = to_checksum_address(operator)
        self.roles = roles
        self.grants: list[RoleGrant] = []
        self.transaction_hashes: list[str] = []

    @property
    def _extra(self) -> dict[str, Any]:
        handle = getattr(self.env, "handle", None)
        return {"fork_id": getattr(handle, "fork_id", "")}

    # ── Role grants ──────────────────────────────────────────────────

    async def grant_role(self, role: str, grantee: str) -> RoleGrant:
        """Write the membership flag for ``role`` and check the registry sees it."""
        raw_role = DEFAULT_ADMIN_ROLE if role == DEFAULT_ADMIN_ROLE_NAME else role
        mutation = role_grant_mutation(
            self.registry.address, raw_role, grantee, self.pool.roles_slot
        )
        await self.env.apply_storage_mutation(mutation)

        if not await self.registry.has_role(raw_role, grantee):
            raise LayoutMismatchError(
                f"registry {self.registry.address} does not report {role} for {grantee} "
                f"after writing slot {mutation.slot_hex}",
                slot=mutation.slot_hex,
                role=role,
            )
        grant = RoleGrant(role_name=role, grantee=grantee)
        self.grants.append(grant)
        logger.info("added role %s to %s", role, grantee, extra=self._extra)
        return grant

    async def grant_roles(self, grantee: str) -> list[RoleGrant]:
        return [await self.grant_role(role, grantee) for role in self.roles]

    # ── Execution ────────────────────────────────────────────────────

    async def execute_payload(self, address: str) -> ExecutionStrategy:
        """Invoke ``execute()`` directly, falling back once on an owner guard."""
        payload = PayloadContract(self.env, address)
        try:
            receipt = await payload.execute(self.operator)
        except ContractRevertedError as exc:
            logger.warning(
                "Direct execute() reverted (%s); trying owner fallback", exc, extra=self._extra
            )
        else:
            self.transaction_hashes.append(receipt["transaction_hash"])
            return ExecutionStrategy.DIRECT

        owner = await payload.owner()
        if owner is not None:
            strategy = ExecutionStrategy.OWNER
            sender = owner
            logger.info("Re-invoking execute() as owner %s", owner, extra=self._extra)
        else:
            strategy = ExecutionStrategy.ADMIN_OVERRIDE
            sender = self.operator
            logger.info("No owner(); designating payload as registry admin", extra=self._extra)
            await self.grant_role(DEFAULT_ADMIN_ROLE_NAME, address)

        try:
            receipt = await payload.execute(sender)
        except ContractRevertedError as exc:
            raise SecondaryGuardFailure(
                f"payload {address} rejected execute() after {strategy.value} fallback: {exc}",
                payload=address,
                strategy=strategy.value,
            ) from exc
        self.transaction_hashes.append(receipt["transaction_hash"])
        return strategy

    async def run(self, reference: ProposalReference) -> SimulationResult:
        if isinstance(reference, PayloadAddress):
            address = to_checksum_address(reference.address)
            await self.grant_roles(address)
            strategy = await self.execute_payload(address)
            payload: str | None = address
        elif isinstance(reference, RawCalldata):
            await self.grant_roles(self.operator)
            receipt = await self.env.send_transaction(
                self.operator, to_checksum_address(reference.target), reference.calldata
            )
            self.transaction_hashes.append(receipt["transaction_hash"])
            strategy = ExecutionStrategy.DIRECT
            payload = None
        elif isinstance(reference, ExistingProposal):
            raise ConfigurationError(
                f"proposal ids only exist on time-locked voting networks; "
                f"pass a payload address instead of proposal {reference.proposal_id}"
            )
        else:
            raise TypeError(f"unsupported proposal reference: {type(reference).__name__}")

        logger.info("Payload executed via %s path", strategy.value, extra=self._extra)
        return SimulationResult(
            model=GovernanceModel.ROLE_BASED_ACCESS_CONTROL,
            strategy=strategy,
            payload_address=payload,
            registry_address=self.registry.address,
            transaction_hashes=list(self.transaction_hashes),
            grants=list(self.grants),
        )
