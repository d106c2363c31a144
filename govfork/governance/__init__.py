"""Proposal drivers for time-locked voting governors and role-based registries.

``simulate`` picks the driver from the network's governance model; the
drivers themselves only need a fork environment to talk to.
"""

from govfork.governance.dispatch import (
    fork_alias,
    governance_model_for,
    prepare_driver,
    simulate,
)
from govfork.governance.l1 import TimeLockedVotingDriver
from govfork.governance.l2 import RoleBasedDriver

__all__ = [
    "RoleBasedDriver",
    "TimeLockedVotingDriver",
    "fork_alias",
    "governance_model_for",
    "prepare_driver",
    "simulate",
]
