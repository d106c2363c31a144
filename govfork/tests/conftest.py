"""Shared fixtures for the govfork test suite."""

from __future__ import annotations

import pytest

from govfork.core.chains import PoolConfig
from govfork.core.config import Settings
from govfork.core.types import ForkHandle
from govfork.tests.fakes import POLYGON_ACL, FakeFork


# ── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture
def settings() -> Settings:
    return Settings(
        tenderly_access_key="test-key",
        tenderly_user="aave",
        tenderly_project="governance",
        _env_file=None,
    )


@pytest.fixture
def empty_settings() -> Settings:
    return Settings(
        tenderly_access_key="",
        tenderly_user="",
        tenderly_project="",
        _env_file=None,
    )


@pytest.fixture
def fake_fork() -> FakeFork:
    """A mainnet fork with proposal 95 in its voting window."""
    fork = FakeFork()
    fork.add_proposal(95)
    return fork


@pytest.fixture
def polygon_fork() -> FakeFork:
    return FakeFork(
        handle=ForkHandle(
            fork_id="fork-polygon",
            rpc_url="https://rpc.tenderly.co/fork/fork-polygon",
            origin_network_id=137,
            fork_network_id=3030,
        )
    )


@pytest.fixture
def polygon_pool() -> PoolConfig:
    return PoolConfig("AaveV3Polygon", 137, "0x794a61358D6845594F94dc1DB02A252b5b4814aD", POLYGON_ACL)
