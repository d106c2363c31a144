"""Core configuration for the govfork engine."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from govfork.core.errors import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="GOVFORK_",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # ── App ──────────────────────────────────────────────────────────────
    app_env: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"

    # ── Tenderly ─────────────────────────────────────────────────────────
    tenderly_access_key: str = Field(
        default="",
        validation_alias=AliasChoices("TENDERLY_ACCESS_KEY", "GOVFORK_TENDERLY_ACCESS_KEY"),
    )
    tenderly_user: str = Field(
        default="",
        validation_alias=AliasChoices("TENDERLY_USER", "GOVFORK_TENDERLY_USER"),
    )
    tenderly_project: str = Field(
        default="",
        validation_alias=AliasChoices("TENDERLY_PROJECT", "GOVFORK_TENDERLY_PROJECT"),
    )
    tenderly_api_url: str = "https://api.tenderly.co/api/v1"
    tenderly_rpc_url: str = "https://rpc.tenderly.co/fork"
    http_timeout_seconds: float = 30.0

    # ── Fork defaults ────────────────────────────────────────────────────
    default_fork_network_id: int = 3030

    # ── Simulation identities ────────────────────────────────────────────
    # Sender of direct payload executions on role-based networks.
    operator_address: str = "0x8f15dee0762dfc571b306a24dc68ca4bd14fd2ac"
    # Deployer of local payloads and proposer of new proposals on mainnet.
    deployer_address: str = "0x25F2226B597E8F9514B3F68F00f494cF4f286491"
    deployer_funding_wei: int = 100 * 10**18
    forced_vote_count: int = 5_000_000 * 10**18

    def missing_tenderly_credentials(self) -> list[str]:
        missing = []
        if not self.tenderly_access_key:
            missing.append("TENDERLY_ACCESS_KEY")
        if not self.tenderly_user:
            missing.append("TENDERLY_USER")
        if not self.tenderly_project:
            missing.append("TENDERLY_PROJECT")
        return missing

    def require_tenderly_credentials(self) -> None:
        """Raise ConfigurationError if any Tenderly credential is unset."""
        missing = self.missing_tenderly_credentials()
        if missing:
            raise ConfigurationError(
                f"Missing Tenderly credentials: set {', '.join(missing)}",
                missing=missing,
            )

    def fork_rpc_url(self, fork_id: str) -> str:
        return f"{self.tenderly_rpc_url.rstrip('/')}/{fork_id}"


@lru_cache
def get_settings() -> Settings:
    """Return cached settings singleton."""
    return Settings()
