"""govfork CLI — fork a network and fast-forward governance proposals on it.

Usage:
    govfork fork --proposal-id 95                      Pass and execute an existing proposal
    govfork fork --payload-address 0x…                 Propose (or, on L2s, execute) a deployed payload
    govfork fork --artifact out/Payload.sol/Payload.json
                                                       Deploy a local payload, then run it
    govfork fork --fork-id <id> --payload-address 0x…  Reuse an existing fork
    govfork config                                     Show current configuration
    govfork --version                                  Print version

Examples:
    govfork fork --network polygon --artifact out/Listing.sol/Listing.json --pool AaveV3Polygon
    govfork fork --network-id 1 --block-number 15407942 --proposal-id 95 --keep-alive
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from eth_utils import is_address

from govfork import __version__
from govfork.core.chains import NETWORKS, POOLS, get_network
from govfork.core.errors import GovForkError
from govfork.core.types import (
    LATEST,
    ExistingProposal,
    ForkHandle,
    GovernanceModel,
    PayloadAddress,
    ProposalReference,
    RawCalldata,
    SimulationResult,
)


# ── Coloured output helpers ──────────────────────────────────────────────────

_RESET = "\033[0m"
_BOLD = "\033[1m"
_RED = "\033[91m"
_YELLOW = "\033[93m"
_GREEN = "\033[92m"
_CYAN = "\033[96m"
_DIM = "\033[2m"


def _c(text: str, code: str) -> str:
    return f"{code}{text}{_RESET}"


# ── Banner ───────────────────────────────────────────────────────────────────

BANNER = rf"""
{_BOLD}{_CYAN}  __ _  _____   __/ _| ___  _ __| | __
 / _` |/ _ \ \ / / |_ / _ \| '__| |/ /
| (_| | (_) \ V /|  _| (_) | |  |   <
 \__, |\___/ \_/ |_|  \___/|_|  |_|\_\
 |___/{_RESET}
  {_DIM}Governance proposal simulator — v{__version__}{_RESET}
"""


# ── CLI argument parser ─────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="govfork",
        description="govfork — simulate governance proposals on disposable forks",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="store_true", help="Print version and exit")
    parser.add_argument("--no-banner", action="store_true", help="Suppress the startup banner")
    parser.add_argument("--quiet", "-q", action="store_true", help="Minimal output")

    sub = parser.add_subparsers(dest="command")

    # ── fork ─────────────────────────────────────────────────────────────────
    fork_p = sub.add_parser("fork", help="Create (or reuse) a fork and run a proposal on it")

    where = fork_p.add_argument_group("fork")
    where.add_argument("--fork-id", help="Reuse an existing fork instead of creating one")
    where.add_argument("--network", choices=sorted(NETWORKS), help="Network to fork, by name")
    where.add_argument("--network-id", type=int, help="Network to fork, by chain id (default: 1)")
    where.add_argument(
        "--block-number", default=LATEST, help="Block to fork at (default: latest)"
    )
    where.add_argument(
        "--fork-network-id", type=int, help="Chain id used by the fork (default: 3030)"
    )

    what = fork_p.add_mutually_exclusive_group()
    what.add_argument("--proposal-id", type=int, help="Existing proposal id to execute")
    what.add_argument("--payload-address", help="Deployed payload address to execute")
    what.add_argument("--artifact", help="Local payload artifact (.json or .sol) to deploy and execute")
    what.add_argument("--calldata", help="Raw calldata (hex) to send to --target")
    fork_p.add_argument("--target", help="Target contract for --calldata")
    fork_p.add_argument("--contract", help="Contract name inside a .sol artifact")

    acl = fork_p.add_argument_group("role registry (non-mainnet networks)")
    acl.add_argument("--pool", choices=sorted(POOLS), help="Pool whose ACL manager to use")
    acl.add_argument("--acl-manager", help="ACL manager address of the target pool")

    fork_p.add_argument(
        "--model",
        choices=[m.value for m in GovernanceModel],
        help="Override the governance model picked from the network",
    )
    fork_p.add_argument(
        "--keep-alive", action="store_true", help="Do not delete the fork when the command ends"
    )
    fork_p.add_argument(
        "--no-wait",
        action="store_true",
        help="Delete the fork as soon as the simulation finishes instead of waiting for Ctrl-C",
    )
    fork_p.add_argument("--json", action="store_true", help="Print the simulation result as JSON")
    fork_p.add_argument("--log-level", help="Log level (default: from settings)")

    # ── config ───────────────────────────────────────────────────────────────
    sub.add_parser("config", help="Show current configuration")

    return parser


# ── Fork command ─────────────────────────────────────────────────────────────


def _address(option: str, value: str) -> str:
    if not is_address(value):
        raise GovForkError(f"{option} is not a valid address: {value!r}")
    return value


def _resolve_reference(args: argparse.Namespace) -> ProposalReference | None:
    if args.proposal_id is not None:
        return ExistingProposal(args.proposal_id)
    if args.payload_address:
        return PayloadAddress(_address("--payload-address", args.payload_address))
    if args.calldata:
        if not args.target:
            raise GovForkError("--calldata requires --target")
        target = _address("--target", args.target)
        hex_data = args.calldata[2:] if args.calldata.startswith("0x") else args.calldata
        try:
            return RawCalldata(target=target, calldata=bytes.fromhex(hex_data))
        except ValueError as exc:
            raise GovForkError(f"--calldata is not valid hex: {exc}") from exc
    return None


def _origin_network_id(args: argparse.Namespace) -> int:
    if args.network:
        return get_network(args.network).chain_id
    if args.network_id is not None:
        return args.network_id
    return 1


def _block_number(value: str) -> int | str:
    if value == LATEST:
        return LATEST
    try:
        return int(value)
    except ValueError as exc:
        raise GovForkError(f"--block-number must be an integer or 'latest', got {value!r}") from exc


def _print_result(result: SimulationResult, quiet: bool = False) -> None:
    print(f"\n{_BOLD}Simulation complete{_RESET} — {result.model.value} via {result.strategy.value}")
    if result.proposal_id is not None:
        print(f"  Proposal:  {_c(str(result.proposal_id), _CYAN)}")
    if result.payload_address:
        print(f"  Payload:   {_c(result.payload_address, _CYAN)}")
    if result.registry_address:
        print(f"  Registry:  {result.registry_address}")
    if not quiet:
        for grant in result.grants:
            print(f"  {_DIM}granted {grant.role_name} to {grant.grantee}{_RESET}")
        for tx in result.transaction_hashes:
            print(f"  {_DIM}tx {tx}{_RESET}")


def _print_interface_commands(handle: ForkHandle) -> None:
    """Console commands that point the Aave interface at the fork."""
    print("\nTo use this fork on the aave interface type the following commands in the console.")
    print("--------------")
    print("localStorage.setItem('forkEnabled', 'true');")
    print(f"localStorage.setItem('forkBaseChainId', {handle.origin_network_id});")
    print(f"localStorage.setItem('forkNetworkId', {handle.fork_network_id});")
    print(f'localStorage.setItem("forkRPCUrl", "{handle.rpc_url}");')
    print("--------------")


async def _wait_for_interrupt() -> None:
    await asyncio.Event().wait()


async def _run_fork(args: argparse.Namespace) -> int:
    """Acquire a fork, optionally deploy, simulate, and report."""
    from govfork.core.config import get_settings
    from govfork.core.logging import bind_fork_id, setup_logging
    from govfork.fork.manager import ForkManager, fork_session
    from govfork.governance.dispatch import fork_alias, prepare_driver
    from govfork.ingestion.artifacts import PayloadDeployer, load_artifact

    settings = get_settings()
    setup_logging(settings.app_env, args.log_level or settings.log_level)

    try:
        settings.require_tenderly_credentials()
        reference = _resolve_reference(args)
        artifact = load_artifact(args.artifact, args.contract) if args.artifact else None

        async with ForkManager(settings) as manager:
            async with fork_session(
                manager,
                origin_network_id=_origin_network_id(args),
                fork_network_id=args.fork_network_id,
                block_number=_block_number(args.block_number),
                alias=fork_alias(reference, args.artifact),
                fork_id=args.fork_id,
                keep_alive=args.keep_alive,
            ) as handle:
                bind_fork_id(handle.fork_id)
                env = manager.environment(handle)
                if not args.quiet:
                    print(f"  Fork {_c(handle.fork_id, _CYAN)} ready at {handle.rpc_url}")

                if reference is not None or artifact is not None:
                    driver = prepare_driver(
                        env,
                        handle.origin_network_id,
                        model=args.model,
                        pool=args.pool,
                        acl_manager=args.acl_manager,
                        settings=settings,
                    )
                    if artifact is not None:
                        deployer = PayloadDeployer(
                            env, settings.deployer_address, settings.deployer_funding_wei
                        )
                        reference = PayloadAddress(await deployer.deploy(artifact))
                    result = await driver.run(reference)
                    if args.json:
                        print(result.model_dump_json(indent=2))
                    else:
                        _print_result(result, quiet=args.quiet)

                _print_interface_commands(handle)

                if handle.owned and not args.keep_alive and not args.no_wait:
                    print(_c("warning: the fork will be deleted once this command is interrupted", _YELLOW))
                    await _wait_for_interrupt()
    except GovForkError as exc:
        print(_c(f"\nSimulation failed: {exc}", _RED), file=sys.stderr)
        return 1

    return 0


# ── Config command ───────────────────────────────────────────────────────────


def _run_config() -> int:
    """Print current settings (redacted)."""
    from govfork.core.config import get_settings

    s = get_settings()
    print(f"\n{_BOLD}govfork Configuration{_RESET}\n")
    for field_name in sorted(type(s).model_fields.keys()):
        val = getattr(s, field_name, "")
        if any(kw in field_name for kw in ("secret", "key", "token")):
            val = "****" if val else "(not set)"
        print(f"  {_DIM}{field_name}:{_RESET}  {val}")
    print()
    return 0


# ── Entrypoint ───────────────────────────────────────────────────────────────


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"govfork {__version__}")
        return 0

    if not args.no_banner:
        print(BANNER, file=sys.stderr)

    if not args.command:
        parser.print_help()
        return 0

    if args.command == "config":
        return _run_config()

    if args.command == "fork":
        try:
            return asyncio.run(_run_fork(args))
        except KeyboardInterrupt:
            print("Caught interrupt signal", file=sys.stderr)
            return 0

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
