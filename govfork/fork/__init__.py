"""Fork lifecycle: Tenderly provisioning, fork JSON-RPC and scoped sessions."""

from govfork.fork.manager import ForkEnvironment, ForkManager, fork_session
from govfork.fork.rpc import ForkRPC
from govfork.fork.tenderly import TenderlyClient

__all__ = ["ForkEnvironment", "ForkManager", "ForkRPC", "TenderlyClient", "fork_session"]
