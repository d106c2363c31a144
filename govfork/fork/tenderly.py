"""Tenderly REST client — create, inspect and delete forks."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from govfork.core.config import Settings, get_settings
from govfork.core.errors import ProvisioningError

logger = logging.getLogger(__name__)


class TenderlyClient:
    """Async client for the Tenderly fork API.

    Usage::

        async with TenderlyClient() as client:
            fork_id = await client.create_fork(1, 3030, alias="proposalId-95")
            ...
            await client.delete_fork(fork_id)

    Provisioning calls are never retried: a create that timed out may still
    have produced a fork, so retrying blindly could leak environments.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._project_path = (
            f"account/{self.settings.tenderly_user}/project/{self.settings.tenderly_project}"
        )
        self._client = httpx.AsyncClient(
            base_url=self.settings.tenderly_api_url.rstrip("/") + "/",
            headers={
                "X-Access-Key": self.settings.tenderly_access_key,
                "Content-Type": "application/json",
            },
            timeout=httpx.Timeout(self.settings.http_timeout_seconds),
            transport=transport,
        )

    # ── Context manager ──────────────────────────────────────────────

    async def __aenter__(self) -> TenderlyClient:
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    # ── HTTP primitive ───────────────────────────────────────────────

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        url = f"{self._project_path}/{path}"
        try:
            resp = await self._client.request(method, url, **kwargs)
        except httpx.RequestError as exc:
            raise ProvisioningError(f"Tenderly {method} {path} failed: {exc}") from exc

        if resp.status_code >= 400:
            raise ProvisioningError(
                f"Tenderly {method} {path} returned {resp.status_code}: {resp.text[:200]}",
                status_code=resp.status_code,
            )
        return resp

    @staticmethod
    def _json(resp: httpx.Response, method: str, path: str) -> dict[str, Any]:
        try:
            return resp.json()
        except ValueError as exc:
            raise ProvisioningError(
                f"Tenderly {method} {path} returned invalid JSON: {resp.text[:200]}",
                status_code=resp.status_code,
            ) from exc

    # ── Forks ────────────────────────────────────────────────────────

    async def create_fork(
        self,
        origin_network_id: int,
        fork_network_id: int,
        block_number: int | None = None,
        alias: str | None = None,
    ) -> str:
        """Create a fork of ``origin_network_id`` and return its id."""
        body: dict[str, Any] = {
            "network_id": str(origin_network_id),
            "chain_config": {"chain_id": int(fork_network_id)},
        }
        if block_number is not None:
            body["block_number"] = int(block_number)
        if alias:
            body["alias"] = alias

        resp = await self._request("POST", "fork", json=body)
        data = self._json(resp, "POST", "fork")
        fork_id = (data.get("root_transaction") or {}).get("fork_id") or (
            data.get("simulation_fork") or {}
        ).get("id")
        if not fork_id:
            raise ProvisioningError("Tenderly response did not contain a fork id", response=data)

        logger.info(
            "Created fork of network %s (chain id %s)", origin_network_id, fork_network_id,
            extra={"fork_id": fork_id},
        )
        return fork_id

    async def get_fork(self, fork_id: str) -> dict[str, Any]:
        """Return origin network, fork network id and block number of a fork."""
        resp = await self._request("GET", f"fork/{fork_id}")
        fork = self._json(resp, "GET", f"fork/{fork_id}").get("simulation_fork") or {}
        if not fork:
            raise ProvisioningError(f"Fork {fork_id} not found", fork_id=fork_id)

        chain_config = fork.get("chain_config") or {}
        return {
            "origin_network_id": int(fork.get("network_id", 0)),
            "fork_network_id": int(chain_config.get("chain_id", 0)),
            "block_number": fork.get("block_number") or "latest",
        }

    async def delete_fork(self, fork_id: str) -> bool:
        """Delete a fork. Returns False if it was already gone."""
        try:
            await self._request("DELETE", f"fork/{fork_id}")
        except ProvisioningError as exc:
            if exc.status_code == 404:
                logger.info("Fork already deleted", extra={"fork_id": fork_id})
                return False
            raise
        logger.info("Fork deleted", extra={"fork_id": fork_id})
        return True
