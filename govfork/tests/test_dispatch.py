"""Tests for govfork.governance.dispatch — model selection and routing."""

from __future__ import annotations

import pytest

from govfork.core.errors import ConfigurationError, UnsupportedPoolError
from govfork.core.types import (
    ExecutionStrategy,
    ExistingProposal,
    ForkHandle,
    GovernanceModel,
    PayloadAddress,
    RawCalldata,
)
from govfork.governance.dispatch import (
    build_driver,
    fork_alias,
    governance_model_for,
    prepare_driver,
    simulate,
)
from govfork.governance.l1 import TimeLockedVotingDriver
from govfork.governance.l2 import RoleBasedDriver
from govfork.tests.fakes import FakeFork

PAYLOAD = "0x5FbDB2315678afecb367f032d93F642f64180aa3"


class TestGovernanceModel:
    def test_mainnet(self):
        assert governance_model_for(1) is GovernanceModel.TIME_LOCKED_VOTING

    def test_l2(self):
        assert governance_model_for(137) is GovernanceModel.ROLE_BASED_ACCESS_CONTROL

    def test_unknown_chain_defaults_to_roles(self):
        assert governance_model_for(56) is GovernanceModel.ROLE_BASED_ACCESS_CONTROL

    def test_override(self):
        assert governance_model_for(1, "role_based_access_control") is (
            GovernanceModel.ROLE_BASED_ACCESS_CONTROL
        )


class TestForkAlias:
    @pytest.mark.parametrize(
        "reference, artifact, expected",
        [
            (ExistingProposal(95), None, "proposalId-95"),
            (PayloadAddress(PAYLOAD), None, f"payloadAddress-{PAYLOAD}"),
            (None, "out/Payload.json", "artifact-out/Payload.json"),
            (RawCalldata(PAYLOAD, b"\x01"), None, f"calldata-{PAYLOAD}"),
            (None, None, "vanilla-fork"),
        ],
    )
    def test_alias(self, reference, artifact, expected):
        assert fork_alias(reference, artifact) == expected


class TestBuildDriver:
    def test_voting_driver_for_mainnet(self, settings, fake_fork):
        driver = build_driver(fake_fork, 1, GovernanceModel.TIME_LOCKED_VOTING, settings=settings)
        assert isinstance(driver, TimeLockedVotingDriver)
        assert driver.forced_votes == settings.forced_vote_count

    def test_role_driver_for_polygon(self, settings, polygon_fork):
        driver = build_driver(
            polygon_fork, 137, GovernanceModel.ROLE_BASED_ACCESS_CONTROL, settings=settings
        )
        assert isinstance(driver, RoleBasedDriver)
        assert driver.operator.lower() == settings.operator_address.lower()

    def test_voting_on_chain_without_governor(self, settings, polygon_fork):
        with pytest.raises(ConfigurationError):
            build_driver(polygon_fork, 137, GovernanceModel.TIME_LOCKED_VOTING, settings=settings)


class TestPrepareDriver:
    def test_model_follows_network(self, settings, polygon_fork):
        assert isinstance(prepare_driver(polygon_fork, 137, settings=settings), RoleBasedDriver)

    def test_override(self, settings, fake_fork):
        driver = prepare_driver(fake_fork, 1, "time_locked_voting", settings=settings)
        assert isinstance(driver, TimeLockedVotingDriver)

    def test_unknown_chain_fails_without_touching_fork(self, settings, fake_fork):
        with pytest.raises(UnsupportedPoolError):
            prepare_driver(fake_fork, 56, settings=settings)
        assert fake_fork.calls == []


class TestSimulate:
    @pytest.mark.asyncio
    async def test_mainnet_proposal(self, settings, fake_fork):
        result = await simulate(fake_fork, ExistingProposal(95), 1, settings=settings)
        assert result.strategy is ExecutionStrategy.GOVERNANCE
        assert fake_fork.proposals[95].executed

    @pytest.mark.asyncio
    async def test_polygon_payload(self, settings, polygon_fork):
        polygon_fork.add_payload(PAYLOAD)
        result = await simulate(polygon_fork, PayloadAddress(PAYLOAD), 137, settings=settings)
        assert result.model is GovernanceModel.ROLE_BASED_ACCESS_CONTROL
        assert result.strategy is ExecutionStrategy.DIRECT

    @pytest.mark.asyncio
    async def test_unsupported_pool_makes_no_mutations(self, settings):
        fork = FakeFork(
            handle=ForkHandle(
                fork_id="fork-bsc",
                rpc_url="https://rpc.tenderly.co/fork/fork-bsc",
                origin_network_id=56,
                fork_network_id=3030,
            )
        )
        with pytest.raises(UnsupportedPoolError):
            await simulate(fork, PayloadAddress(PAYLOAD), 56, settings=settings)
        assert fork.calls == []
