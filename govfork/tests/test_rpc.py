"""Tests for govfork.fork.rpc — JSON-RPC client and environment controls."""

from __future__ import annotations

import json

import httpx
import pytest

from govfork.core.errors import ContractRevertedError, EnvironmentRpcError
from govfork.fork.rpc import ForkRPC

RPC_URL = "https://rpc.tenderly.co/fork/f-1"
TX_HASH = "0x" + "11" * 32


class FakeNode:
    """Answers JSON-RPC requests from a method → result table."""

    def __init__(self, results: dict | None = None, errors: dict | None = None) -> None:
        self.results = results or {}
        self.errors = errors or {}
        self.requests: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(body)
        method = body["method"]
        if method in self.errors:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "error": self.errors[method]})
        return httpx.Response(
            200, json={"jsonrpc": "2.0", "id": body["id"], "result": self.results.get(method)}
        )

    def methods(self) -> list[str]:
        return [r["method"] for r in self.requests]


def _rpc(node: FakeNode) -> ForkRPC:
    return ForkRPC(RPC_URL, transport=httpx.MockTransport(node))


class TestTransport:
    @pytest.mark.asyncio
    async def test_request_ids_increase(self):
        node = FakeNode({"eth_call": "0x6080"})
        async with _rpc(node) as rpc:
            assert await rpc.call("0x" + "00" * 20, b"\x01") == b"\x60\x80"
            await rpc.call("0x" + "00" * 20, b"\x01")
        assert [r["id"] for r in node.requests] == [1, 2]
        assert node.requests[0]["jsonrpc"] == "2.0"

    @pytest.mark.asyncio
    async def test_rpc_error(self):
        node = FakeNode(errors={"eth_getTransactionReceipt": {"code": -32000, "message": "fork not found"}})
        async with _rpc(node) as rpc:
            with pytest.raises(EnvironmentRpcError) as exc_info:
                await rpc.get_transaction_receipt(TX_HASH)
        assert not isinstance(exc_info.value, ContractRevertedError)
        assert exc_info.value.method == "eth_getTransactionReceipt"

    @pytest.mark.asyncio
    async def test_revert_error(self):
        node = FakeNode(errors={"eth_call": {"code": 3, "message": "execution reverted: nope"}})
        async with _rpc(node) as rpc:
            with pytest.raises(ContractRevertedError):
                await rpc.call("0x" + "00" * 20, b"\x12\x34\x56\x78")

    @pytest.mark.asyncio
    async def test_http_failure(self):
        async with ForkRPC(RPC_URL, transport=httpx.MockTransport(lambda r: httpx.Response(502))) as rpc:
            with pytest.raises(EnvironmentRpcError):
                await rpc.get_block()


class TestReads:
    @pytest.mark.asyncio
    async def test_get_block(self):
        node = FakeNode(
            {"eth_getBlockByNumber": {"number": "0xeb1b46", "timestamp": "0x63000000", "hash": "0xab"}}
        )
        async with _rpc(node) as rpc:
            block = await rpc.get_block()
        assert block == {"number": 15407942, "timestamp": 0x63000000, "hash": "0xab"}
        assert node.requests[0]["params"] == ["latest", False]

    @pytest.mark.asyncio
    async def test_get_balance(self):
        node = FakeNode({"eth_getBalance": hex(10**18)})
        async with _rpc(node) as rpc:
            assert await rpc.get_balance("0x" + "aa" * 20) == 10**18
        assert node.requests[0]["params"] == ["0x" + "aa" * 20, "latest"]

    @pytest.mark.asyncio
    async def test_empty_call_result(self):
        node = FakeNode({"eth_call": "0x"})
        async with _rpc(node) as rpc:
            assert await rpc.call("0x" + "00" * 20, b"\x01") == b""

    @pytest.mark.asyncio
    async def test_call_includes_sender(self):
        node = FakeNode({"eth_call": "0x" + "00" * 31 + "01"})
        async with _rpc(node) as rpc:
            result = await rpc.call("0x" + "aa" * 20, b"\x01\x02", sender="0x" + "bb" * 20)
        assert result[-1] == 1
        tx = node.requests[0]["params"][0]
        assert tx == {"to": "0x" + "aa" * 20, "data": "0x0102", "from": "0x" + "bb" * 20}


class TestTransactions:
    @pytest.mark.asyncio
    async def test_send_returns_receipt(self):
        node = FakeNode(
            {
                "eth_sendTransaction": TX_HASH,
                "eth_getTransactionReceipt": {"status": "0x1", "blockNumber": "0x10"},
            }
        )
        async with _rpc(node) as rpc:
            receipt = await rpc.send_transaction("0x" + "aa" * 20, "0x" + "bb" * 20, b"\x01")
        assert receipt["transaction_hash"] == TX_HASH
        assert receipt["block_number"] == 16
        assert receipt["contract_address"] is None
        assert node.methods() == ["eth_sendTransaction", "eth_getTransactionReceipt"]

    @pytest.mark.asyncio
    async def test_contract_creation_omits_to(self):
        node = FakeNode(
            {
                "eth_sendTransaction": TX_HASH,
                "eth_getTransactionReceipt": {
                    "status": "0x1",
                    "blockNumber": "0x10",
                    "contractAddress": "0x5fbdb2315678afecb367f032d93f642f64180aa3",
                },
            }
        )
        async with _rpc(node) as rpc:
            receipt = await rpc.send_transaction("0x" + "aa" * 20, None, b"\x60\x80")
        assert "to" not in node.requests[0]["params"][0]
        assert receipt["contract_address"] == "0x5FbDB2315678afecb367f032d93F642f64180aa3"

    @pytest.mark.asyncio
    async def test_failed_receipt_is_revert(self):
        node = FakeNode(
            {
                "eth_sendTransaction": TX_HASH,
                "eth_getTransactionReceipt": {"status": "0x0", "blockNumber": "0x10"},
            }
        )
        async with _rpc(node) as rpc:
            with pytest.raises(ContractRevertedError):
                await rpc.send_transaction("0x" + "aa" * 20, "0x" + "bb" * 20, b"\x01")


class TestEnvironmentControl:
    @pytest.mark.asyncio
    async def test_set_storage_at(self):
        node = FakeNode()
        async with _rpc(node) as rpc:
            await rpc.set_storage_at("0x" + "aa" * 20, b"\x01" * 32, b"\x00" * 31 + b"\x01")
        assert node.requests[0]["method"] == "tenderly_setStorageAt"
        assert node.requests[0]["params"] == [
            "0x" + "aa" * 20,
            "0x" + "01" * 32,
            "0x" + "00" * 31 + "01",
        ]

    @pytest.mark.asyncio
    async def test_increase_blocks_is_hex(self):
        node = FakeNode()
        async with _rpc(node) as rpc:
            await rpc.increase_blocks(19_201)
        assert node.requests[0] == {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "evm_increaseBlocks",
            "params": ["0x4b01"],
        }

    @pytest.mark.asyncio
    async def test_increase_time_is_integer(self):
        node = FakeNode()
        async with _rpc(node) as rpc:
            await rpc.increase_time(86_401)
        assert node.requests[0]["method"] == "evm_increaseTime"
        assert node.requests[0]["params"] == [86_401]

    @pytest.mark.asyncio
    async def test_set_balance(self):
        node = FakeNode()
        async with _rpc(node) as rpc:
            await rpc.set_balance("0x" + "aa" * 20, 100 * 10**18)
        assert node.requests[0]["method"] == "tenderly_setBalance"
        assert node.requests[0]["params"] == [["0x" + "aa" * 20], hex(100 * 10**18)]
