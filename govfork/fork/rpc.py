"""JSON-RPC client for a simulated chain, including environment-control extensions."""

from __future__ import annotations

import itertools
import logging
from typing import Any

import httpx
from eth_utils import to_checksum_address

from govfork.core.errors import ContractRevertedError, EnvironmentRpcError

logger = logging.getLogger(__name__)

_REVERT_MARKERS = ("revert", "execution reverted", "invalid opcode")


def _to_hex(value: int) -> str:
    return hex(int(value))


def _is_revert(error: Any) -> bool:
    text = str(error.get("message", "") if isinstance(error, dict) else error).lower()
    return any(marker in text for marker in _REVERT_MARKERS)


class ForkRPC:
    """Thin async JSON-RPC client bound to one fork endpoint.

    Besides the standard ``eth_*`` reads it exposes the control methods the
    hosting environment understands: direct storage and balance writes and
    block-height/clock advancement. Nothing is retried; a failed call aborts
    the caller's current step.
    """

    def __init__(
        self,
        rpc_url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.rpc_url = rpc_url
        self._ids = itertools.count(1)
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def __aenter__(self) -> ForkRPC:
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    # ── Transport ────────────────────────────────────────────────────

    async def request(self, method: str, params: list[Any] | None = None) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        try:
            resp = await self._client.post(self.rpc_url, json=payload)
            resp.raise_for_status()
            body = resp.json()
        except httpx.HTTPError as exc:
            raise EnvironmentRpcError(f"{method} failed: {exc}", method=method) from exc
        except ValueError as exc:
            raise EnvironmentRpcError(f"{method} returned invalid JSON", method=method) from exc

        if "error" in body:
            error = body["error"]
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            exc_type = ContractRevertedError if _is_revert(error) else EnvironmentRpcError
            raise exc_type(f"{method}: {message}", method=method, rpc_error=error)

        logger.debug("rpc %s ok", method, extra={"rpc_method": method})
        return body.get("result")

    # ── Reads ────────────────────────────────────────────────────────

    async def get_block(self, block: int | str = "latest") -> dict[str, Any]:
        tag = block if isinstance(block, str) else _to_hex(block)
        result = await self.request("eth_getBlockByNumber", [tag, False])
        if result is None:
            raise EnvironmentRpcError(f"block {block} not found", method="eth_getBlockByNumber")
        return {
            "number": int(result["number"], 16),
            "timestamp": int(result["timestamp"], 16),
            "hash": result.get("hash"),
        }

    async def get_balance(self, address: str) -> int:
        return int(await self.request("eth_getBalance", [address, "latest"]), 16)

    async def call(self, to: str, data: bytes, sender: str | None = None) -> bytes:
        tx: dict[str, Any] = {"to": to, "data": "0x" + data.hex()}
        if sender:
            tx["from"] = sender
        result = await self.request("eth_call", [tx, "latest"])
        return bytes.fromhex(result[2:]) if result else b""

    async def get_transaction_receipt(self, tx_hash: str) -> dict[str, Any] | None:
        return await self.request("eth_getTransactionReceipt", [tx_hash])

    # ── Transactions ─────────────────────────────────────────────────

    async def send_transaction(
        self,
        sender: str,
        to: str | None,
        data: bytes,
        value: int = 0,
    ) -> dict[str, Any]:
        """Send a transaction from an unlocked ``sender`` and return its receipt.

        ``to=None`` creates a contract. A revert (reported either as an RPC
        error or as a failed receipt) raises ``ContractRevertedError``.
        """
        tx: dict[str, Any] = {"from": sender, "data": "0x" + data.hex()}
        if to is not None:
            tx["to"] = to
        if value:
            tx["value"] = _to_hex(value)

        tx_hash = await self.request("eth_sendTransaction", [tx])
        receipt = await self.get_transaction_receipt(tx_hash)
        if receipt is None:
            raise EnvironmentRpcError(
                f"no receipt for transaction {tx_hash}", method="eth_getTransactionReceipt"
            )
        if int(receipt.get("status", "0x1"), 16) == 0:
            raise ContractRevertedError(
                f"transaction {tx_hash} reverted", method="eth_sendTransaction", tx_hash=tx_hash
            )

        contract_address = receipt.get("contractAddress")
        return {
            "transaction_hash": tx_hash,
            "status": 1,
            "contract_address": to_checksum_address(contract_address) if contract_address else None,
            "block_number": int(receipt.get("blockNumber", "0x0"), 16),
        }

    # ── Environment control ──────────────────────────────────────────

    async def set_storage_at(self, address: str, slot: bytes, value: bytes) -> None:
        await self.request(
            "tenderly_setStorageAt", [address, "0x" + slot.hex(), "0x" + value.hex()]
        )

    async def set_balance(self, address: str, amount: int) -> None:
        await self.request("tenderly_setBalance", [[address], _to_hex(amount)])

    async def increase_blocks(self, count: int) -> None:
        await self.request("evm_increaseBlocks", [_to_hex(count)])

    async def increase_time(self, seconds: int) -> None:
        await self.request("evm_increaseTime", [int(seconds)])
