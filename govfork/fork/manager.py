"""Fork lifecycle manager.

Creates, resolves, mutates and tears down forks, and hands out one
``ForkEnvironment`` per handle: the submission context every driver talks to.
``fork_session`` wraps the whole lifecycle in a scoped acquisition so a fork
created by the session is deleted on every exit path, including Ctrl-C.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx

from govfork.core.config import Settings, get_settings
from govfork.core.errors import ConfigurationError, ProvisioningError
from govfork.core.types import LATEST, ForkHandle, SlotMutation
from govfork.fork.rpc import ForkRPC
from govfork.fork.tenderly import TenderlyClient

logger = logging.getLogger(__name__)


class ForkEnvironment:
    """Submission context bound to one fork's RPC endpoint.

    Calls are awaited one at a time by the drivers; each step depends on the
    clock, height and storage left behind by the previous one.
    """

    def __init__(self, handle: ForkHandle, rpc: ForkRPC) -> None:
        self.handle = handle
        self.rpc = rpc

    @property
    def _log_extra(self) -> dict[str, Any]:
        return {"fork_id": self.handle.fork_id}

    async def apply_storage_mutation(self, mutation: SlotMutation) -> None:
        """Write one storage word. Re-applying the same mutation changes nothing."""
        logger.debug(
            "setStorageAt %s[%s] = %s",
            mutation.contract_address, mutation.slot_hex, mutation.value_hex,
            extra=self._log_extra,
        )
        await self.rpc.set_storage_at(
            mutation.contract_address, mutation.storage_slot, mutation.new_value
        )

    async def advance_blocks(self, count: int) -> None:
        logger.info("Advancing %d blocks", count, extra=self._log_extra)
        await self.rpc.increase_blocks(count)

    async def advance_time(self, seconds: int) -> None:
        logger.info("Advancing clock by %ds", seconds, extra=self._log_extra)
        await self.rpc.increase_time(seconds)

    async def fund_account(self, address: str, amount: int) -> None:
        logger.info("Funding %s with %d wei", address, amount, extra=self._log_extra)
        await self.rpc.set_balance(address, amount)

    async def get_block(self, block: int | str = LATEST) -> dict[str, Any]:
        return await self.rpc.get_block(block)

    async def get_balance(self, address: str) -> int:
        return await self.rpc.get_balance(address)

    async def call(self, to: str, data: bytes, sender: str | None = None) -> bytes:
        return await self.rpc.call(to, data, sender=sender)

    async def send_transaction(
        self, sender: str, to: str | None, data: bytes, value: int = 0
    ) -> dict[str, Any]:
        return await self.rpc.send_transaction(sender, to, data, value=value)

    async def close(self) -> None:
        await self.rpc.close()


class ForkManager:
    """Create, resolve, mutate and delete forks on the hosting collaborator."""

    def __init__(
        self,
        settings: Settings | None = None,
        tenderly: TenderlyClient | None = None,
        rpc_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._tenderly = tenderly
        self._rpc_transport = rpc_transport
        self._environments: dict[str, ForkEnvironment] = {}
        self._deleted: set[str] = set()

    async def __aenter__(self) -> ForkManager:
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    @property
    def tenderly(self) -> TenderlyClient:
        if self._tenderly is None:
            self.settings.require_tenderly_credentials()
            self._tenderly = TenderlyClient(self.settings)
        return self._tenderly

    async def close(self) -> None:
        for env in self._environments.values():
            await env.close()
        self._environments.clear()
        if self._tenderly is not None:
            await self._tenderly.close()

    # ── Lifecycle ────────────────────────────────────────────────────

    async def create_fork(
        self,
        origin_network_id: int,
        fork_network_id: int | None = None,
        block_number: int | str | None = None,
        alias: str | None = None,
    ) -> ForkHandle:
        """Provision a new fork rooted at ``origin_network_id``/``block_number``."""
        if fork_network_id is None:
            fork_network_id = self.settings.default_fork_network_id
        if block_number == LATEST:
            block_number = None

        fork_id = await self.tenderly.create_fork(
            origin_network_id, fork_network_id, block_number=block_number, alias=alias
        )
        return ForkHandle(
            fork_id=fork_id,
            rpc_url=self.settings.fork_rpc_url(fork_id),
            origin_network_id=int(origin_network_id),
            fork_network_id=int(fork_network_id),
            block_number=int(block_number) if block_number is not None else LATEST,
            owned=True,
        )

    async def resolve_existing(self, fork_id: str) -> ForkHandle:
        """Rebuild a handle for a fork this session did not create."""
        if not fork_id:
            raise ConfigurationError("A fork id is required to reuse an existing fork")
        params = await self.tenderly.get_fork(fork_id)
        logger.info(
            "Reusing fork of network %s", params["origin_network_id"], extra={"fork_id": fork_id}
        )
        return ForkHandle(
            fork_id=fork_id,
            rpc_url=self.settings.fork_rpc_url(fork_id),
            origin_network_id=params["origin_network_id"],
            fork_network_id=params["fork_network_id"],
            block_number=params["block_number"],
            owned=False,
        )

    def environment(self, handle: ForkHandle) -> ForkEnvironment:
        """Return the submission context for ``handle`` (one per fork)."""
        env = self._environments.get(handle.fork_id)
        if env is None:
            rpc = ForkRPC(
                handle.rpc_url,
                timeout=self.settings.http_timeout_seconds,
                transport=self._rpc_transport,
            )
            env = ForkEnvironment(handle, rpc)
            self._environments[handle.fork_id] = env
        return env

    async def delete_fork(self, handle: ForkHandle) -> None:
        """Tear down the remote fork. Calling it again is a no-op."""
        if handle.fork_id in self._deleted:
            logger.debug("Fork already torn down", extra={"fork_id": handle.fork_id})
            return
        await self.tenderly.delete_fork(handle.fork_id)
        self._deleted.add(handle.fork_id)
        await self.release(handle)

    async def release(self, handle: ForkHandle) -> None:
        """Drop the local submission context without touching the remote fork."""
        env = self._environments.pop(handle.fork_id, None)
        if env is not None:
            await env.close()

    # ── Environment operations ───────────────────────────────────────

    async def apply_storage_mutation(self, handle: ForkHandle, mutation: SlotMutation) -> None:
        await self.environment(handle).apply_storage_mutation(mutation)

    async def advance_blocks(self, handle: ForkHandle, count: int) -> None:
        await self.environment(handle).advance_blocks(count)

    async def advance_time(self, handle: ForkHandle, seconds: int) -> None:
        await self.environment(handle).advance_time(seconds)

    async def fund_account(self, handle: ForkHandle, address: str, amount: int) -> None:
        await self.environment(handle).fund_account(address, amount)


@asynccontextmanager
async def fork_session(
    manager: ForkManager,
    origin_network_id: int | None = None,
    fork_network_id: int | None = None,
    block_number: int | str | None = None,
    alias: str | None = None,
    fork_id: str | None = None,
    keep_alive: bool = False,
) -> AsyncIterator[ForkHandle]:
    """Acquire a fork and guarantee its release.

    With ``fork_id`` the existing fork is reused and never deleted. Otherwise
    a new fork is created and deleted exactly once when the block exits,
    whether normally, by exception or by cancellation, unless ``keep_alive``.
    """
    if fork_id:
        handle = await manager.resolve_existing(fork_id)
    else:
        if origin_network_id is None:
            raise ConfigurationError("An origin network id is required to create a fork")
        handle = await manager.create_fork(
            origin_network_id, fork_network_id, block_number=block_number, alias=alias
        )

    try:
        yield handle
    except BaseException:
        await _teardown(manager, handle, keep_alive, unwinding=True)
        raise
    await _teardown(manager, handle, keep_alive, unwinding=False)


async def _teardown(
    manager: ForkManager, handle: ForkHandle, keep_alive: bool, unwinding: bool
) -> None:
    """Delete or release the fork. A failed delete never masks the body's error."""
    if not handle.owned or keep_alive:
        logger.info("Leaving fork running", extra={"fork_id": handle.fork_id})
        await manager.release(handle)
        return
    try:
        await manager.delete_fork(handle)
    except ProvisioningError:
        if not unwinding:
            raise
        logger.exception("Fork teardown failed", extra={"fork_id": handle.fork_id})
    finally:
        await manager.release(handle)
