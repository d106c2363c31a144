"""Payload artifacts: load (or compile) a local build output and deploy it to a fork."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

from eth_abi import encode
from eth_utils import to_checksum_address

from govfork.core.errors import ArtifactNotFoundError, ContractRevertedError, DeploymentRevertedError

logger = logging.getLogger(__name__)


@dataclass
class PayloadArtifact:
    """ABI and creation bytecode of one contract."""

    name: str
    abi: list[dict[str, Any]] = field(default_factory=list)
    bytecode: bytes = b""
    source_path: str = ""

    def constructor_types(self) -> list[str]:
        for entry in self.abi:
            if entry.get("type") == "constructor":
                return [inp["type"] for inp in entry.get("inputs", [])]
        return []


def _bytecode_from(raw: Any) -> str:
    # Foundry nests the hex under {"object": ...}, Hardhat stores the string
    if isinstance(raw, dict):
        raw = raw.get("object", "")
    return raw or ""


def _parse_hex(code: str, path: Path) -> bytes:
    code = code[2:] if code.startswith("0x") else code
    if "__" in code:
        raise ArtifactNotFoundError(
            f"{path} contains unlinked library placeholders", path=str(path)
        )
    try:
        return bytes.fromhex(code)
    except ValueError as exc:
        raise ArtifactNotFoundError(f"{path} has malformed bytecode", path=str(path)) from exc


def load_json_artifact(path: Path) -> PayloadArtifact:
    try:
        data = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as exc:
        raise ArtifactNotFoundError(f"cannot parse artifact {path}: {exc}", path=str(path)) from exc

    if not isinstance(data, dict):
        raise ArtifactNotFoundError(f"{path} is not a contract artifact", path=str(path))

    bytecode = _parse_hex(_bytecode_from(data.get("bytecode")), path)
    if not bytecode:
        raise ArtifactNotFoundError(f"{path} has no creation bytecode", path=str(path))

    return PayloadArtifact(
        name=data.get("contractName") or path.stem,
        abi=data.get("abi", []),
        bytecode=bytecode,
        source_path=str(path),
    )


class SolidityArtifactCompiler:
    """Compile a single Solidity payload with solc (via py-solc-x)."""

    def __init__(self, version: str | None = None, optimization_runs: int = 200) -> None:
        self.version = version
        self.optimization_runs = optimization_runs

    @staticmethod
    def _detect_version(source_code: str) -> str | None:
        match = re.search(r"pragma\s+solidity\s+[\^~>=]*\s*(\d+\.\d+\.\d+)", source_code)
        return match.group(1) if match else None

    def compile(self, path: Path, contract_name: str | None = None) -> PayloadArtifact:
        import solcx
        from solcx.exceptions import SolcError

        source_code = path.read_text()
        solc_version = self.version or self._detect_version(source_code)
        if not solc_version:
            raise ArtifactNotFoundError(f"cannot infer solc version for {path}", path=str(path))
        solcx.install_solc(solc_version)

        standard_input = {
            "language": "Solidity",
            "sources": {path.name: {"content": source_code}},
            "settings": {
                "optimizer": {"enabled": True, "runs": self.optimization_runs},
                "outputSelection": {"*": {"*": ["abi", "evm.bytecode.object"]}},
            },
        }
        try:
            output = solcx.compile_standard(
                standard_input, solc_version=solc_version, allow_paths=str(path.parent)
            )
        except SolcError as exc:
            raise ArtifactNotFoundError(f"compilation of {path} failed: {exc}", path=str(path)) from exc

        contracts = output.get("contracts", {}).get(path.name, {})
        deployable = {
            name: c for name, c in contracts.items()
            if c.get("evm", {}).get("bytecode", {}).get("object")
        }
        if contract_name:
            chosen = deployable.get(contract_name)
            name = contract_name
        elif deployable:
            # The payload is conventionally the last contract in the file
            name, chosen = list(deployable.items())[-1]
        else:
            chosen, name = None, ""
        if chosen is None:
            raise ArtifactNotFoundError(
                f"no deployable contract {contract_name or '(any)'} in {path}", path=str(path)
            )

        return PayloadArtifact(
            name=name,
            abi=chosen.get("abi", []),
            bytecode=_parse_hex(chosen["evm"]["bytecode"]["object"], path),
            source_path=str(path),
        )


def load_artifact(path: str | Path, contract_name: str | None = None) -> PayloadArtifact:
    """Load a JSON build artifact or compile a ``.sol`` source."""
    path = Path(path).expanduser()
    if not path.is_file():
        raise ArtifactNotFoundError(f"artifact {path} does not exist", path=str(path))
    if path.suffix == ".sol":
        return SolidityArtifactCompiler().compile(path, contract_name)
    return load_json_artifact(path)


class PayloadDeployer:
    """Deploy payload artifacts from a funded deployer identity."""

    def __init__(self, env: Any, deployer: str, funding_wei: int = 0) -> None:
        self.env = env
        self.deployer = to_checksum_address(deployer)
        self.funding_wei = funding_wei

    async def deploy(
        self, artifact: PayloadArtifact, constructor_args: Sequence[Any] = ()
    ) -> str:
        """Deploy ``artifact`` and return the checksum address of the new contract."""
        data = artifact.bytecode
        arg_types = artifact.constructor_types()
        if len(arg_types) != len(constructor_args):
            raise DeploymentRevertedError(
                f"{artifact.name} constructor takes {len(arg_types)} arguments, "
                f"got {len(constructor_args)}"
            )
        if arg_types:
            data += encode(arg_types, list(constructor_args))

        # never lower a balance the fork already holds
        if self.funding_wei and await self.env.get_balance(self.deployer) < self.funding_wei:
            await self.env.fund_account(self.deployer, self.funding_wei)

        try:
            receipt = await self.env.send_transaction(self.deployer, None, data)
        except ContractRevertedError as exc:
            raise DeploymentRevertedError(
                f"deployment of {artifact.name} reverted: {exc}", artifact=artifact.name
            ) from exc

        address = receipt.get("contract_address")
        if not address:
            raise DeploymentRevertedError(
                f"deployment of {artifact.name} produced no contract", artifact=artifact.name
            )
        logger.info("ProposalPayload deployed: %s", address)
        return address
