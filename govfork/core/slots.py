"""Storage slot calculator.

Solidity lays out composite state variables by hashing:

    mapping value       keccak256(abi.encode(key, slot))
    struct field        base + field_offset
    nested mapping      keccak256(abi.encode(key2, keccak256(abi.encode(key1, slot))))

An OpenZeppelin-style role registry stores ``mapping(bytes32 => RoleData)``
where ``RoleData`` starts with ``mapping(address => bool) members``, so the
membership flag of ``grantee`` for ``role`` lives at

    members = keccak256(abi.encode(bytes32 roleId, uint256 slot))
    flag    = keccak256(abi.encode(address grantee, bytes32 members))

All functions here are pure. A wrong base slot or offset yields a slot nobody
reads; the drivers catch that by reading the value back through the contract.
"""

from __future__ import annotations

from typing import Any

from eth_abi import encode
from eth_utils import keccak, to_canonical_address

from govfork.core.chains import GovernorLayout
from govfork.core.types import SlotMutation

WORD_SIZE = 32
_MOD = 2**256

DEFAULT_ADMIN_ROLE = b"\x00" * WORD_SIZE


def encode_word(value: int | bool) -> bytes:
    """Left-pad an unsigned integer to a 32-byte storage word."""
    value = int(value)
    if value < 0 or value >= _MOD:
        raise ValueError(f"value out of uint256 range: {value}")
    return value.to_bytes(WORD_SIZE, byteorder="big")


def role_id(role: str | bytes) -> bytes:
    """Role identifier: keccak256 of the UTF-8 name, or a raw 32-byte id as-is."""
    if isinstance(role, bytes):
        if len(role) != WORD_SIZE:
            raise ValueError(f"raw role id must be 32 bytes, got {len(role)}")
        return role
    return keccak(text=role)


def compute_mapping_slot(key_type: str, key: Any, base_slot: int | bytes) -> bytes:
    """Slot of ``mapping[key]`` for a mapping declared at ``base_slot``.

    ``base_slot`` is either a declared slot index or the 32-byte slot of an
    enclosing mapping value (for nested mappings).
    """
    if isinstance(base_slot, bytes):
        return keccak(encode([key_type, "bytes32"], [key, base_slot]))
    return keccak(encode([key_type, "uint256"], [key, base_slot]))


def compute_role_slot(role: str | bytes, grantee: str, base_slot: int = 0) -> bytes:
    """Slot holding the ``hasRole(role, grantee)`` flag of a role registry."""
    members_slot = keccak(encode(["bytes32", "uint256"], [role_id(role), base_slot]))
    return keccak(encode(["address", "bytes32"], [to_canonical_address(grantee), members_slot]))


def compute_struct_field_slot(index: int, base_slot: int, field_offset: int) -> bytes:
    """Slot of one field of ``mapping(uint256 => Struct)[index]``."""
    struct_base = int.from_bytes(compute_mapping_slot("uint256", index, base_slot), "big")
    return encode_word((struct_base + field_offset) % _MOD)


def compute_for_votes_slot(proposal_id: int, layout: GovernorLayout | None = None) -> bytes:
    layout = layout or GovernorLayout()
    return compute_struct_field_slot(proposal_id, layout.proposals_slot, layout.for_votes_offset)


# ── Mutation builders ────────────────────────────────────────────────────────


def for_votes_mutation(
    governor: str,
    proposal_id: int,
    votes: int,
    layout: GovernorLayout | None = None,
) -> SlotMutation:
    return SlotMutation(
        contract_address=governor,
        storage_slot=compute_for_votes_slot(proposal_id, layout),
        new_value=encode_word(votes),
    )


def role_grant_mutation(
    registry: str,
    role: str | bytes,
    grantee: str,
    base_slot: int = 0,
) -> SlotMutation:
    return SlotMutation(
        contract_address=registry,
        storage_slot=compute_role_slot(role, grantee, base_slot),
        new_value=encode_word(True),
    )
