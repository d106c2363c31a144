"""Error taxonomy for the proposal simulation engine.

Every failure raised by the engine carries a stable ``code`` so the CLI (and
any caller embedding the engine) can report it without string matching:

    ConfigurationError      missing credentials / identifiers, bad layout
    ProvisioningError       Tenderly REST call failed (create / get / delete)
    EnvironmentRpcError     JSON-RPC call against the fork failed
    UnsupportedPoolError    no role registry known for the target network
    SecondaryGuardFailure   payload rejected execution even after role grants
    ArtifactNotFoundError   build artifact missing or unparseable
    DeploymentRevertedError payload constructor reverted
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Stable error codes attached to every engine exception."""

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    LAYOUT_MISMATCH = "LAYOUT_MISMATCH"
    PROVISIONING_ERROR = "PROVISIONING_ERROR"
    ENVIRONMENT_RPC_ERROR = "ENVIRONMENT_RPC_ERROR"
    CONTRACT_REVERTED = "CONTRACT_REVERTED"
    UNSUPPORTED_POOL = "UNSUPPORTED_POOL"
    SECONDARY_GUARD_FAILURE = "SECONDARY_GUARD_FAILURE"
    ARTIFACT_NOT_FOUND = "ARTIFACT_NOT_FOUND"
    DEPLOYMENT_REVERTED = "DEPLOYMENT_REVERTED"


class GovForkError(Exception):
    """Base exception for all engine errors."""

    code: ErrorCode = ErrorCode.CONFIGURATION_ERROR

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code.value, "message": self.message, "details": self.details}


class ConfigurationError(GovForkError):
    """Missing or invalid configuration; fatal at startup."""

    code = ErrorCode.CONFIGURATION_ERROR


class LayoutMismatchError(ConfigurationError):
    """A storage write was not observed by the contract that should read it.

    Raised when the slot layout constants do not match the deployed contract,
    i.e. the computed slot was unused and the write landed nowhere useful.
    """

    code = ErrorCode.LAYOUT_MISMATCH


class ProvisioningError(GovForkError):
    """Fork creation, lookup or deletion failed on the hosting side."""

    code = ErrorCode.PROVISIONING_ERROR

    def __init__(self, message: str, status_code: int | None = None, **details: Any) -> None:
        super().__init__(message, **details)
        self.status_code = status_code


class EnvironmentRpcError(GovForkError):
    """A JSON-RPC call against the simulated chain failed."""

    code = ErrorCode.ENVIRONMENT_RPC_ERROR

    def __init__(self, message: str, method: str = "", rpc_error: Any = None, **details: Any) -> None:
        super().__init__(message, **details)
        self.method = method
        self.rpc_error = rpc_error


class ContractRevertedError(EnvironmentRpcError):
    """An on-chain call or transaction reverted."""

    code = ErrorCode.CONTRACT_REVERTED


class UnsupportedPoolError(GovForkError):
    """The target network or pool has no known role registry."""

    code = ErrorCode.UNSUPPORTED_POOL


class SecondaryGuardFailure(GovForkError):
    """The payload rejected execution after roles were granted and all fallbacks ran."""

    code = ErrorCode.SECONDARY_GUARD_FAILURE


class ArtifactNotFoundError(GovForkError):
    """The build artifact could not be located or parsed."""

    code = ErrorCode.ARTIFACT_NOT_FOUND


class DeploymentRevertedError(GovForkError):
    """Payload construction reverted on the fork."""

    code = ErrorCode.DEPLOYMENT_REVERTED
