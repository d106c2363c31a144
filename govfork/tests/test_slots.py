"""Tests for govfork.core.slots — storage slot derivation."""

from __future__ import annotations

import pytest
from eth_utils import keccak

from govfork.core.chains import GovernorLayout
from govfork.core.slots import (
    DEFAULT_ADMIN_ROLE,
    compute_for_votes_slot,
    compute_mapping_slot,
    compute_role_slot,
    compute_struct_field_slot,
    encode_word,
    for_votes_mutation,
    role_grant_mutation,
    role_id,
)

GOVERNOR = "0xEC568fffba86c094cf06b22134B23074DFE2252c"
ACL = "0xa72636CbcAa8F5FF95B2cc47F3CDEe83F3294a0B"
GRANTEE = "0x5fbdb2315678afecb367f032d93f642f64180aa3"


def _word(value: int) -> bytes:
    return value.to_bytes(32, "big")


def _address_word(address: str) -> bytes:
    return bytes(12) + bytes.fromhex(address[2:])


class TestEncodeWord:
    def test_left_pads(self):
        assert encode_word(1) == b"\x00" * 31 + b"\x01"

    def test_bool(self):
        assert encode_word(True) == encode_word(1)

    def test_rejects_negative(self):
        with pytest.raises(ValueError):
            encode_word(-1)

    def test_rejects_overflow(self):
        with pytest.raises(ValueError):
            encode_word(2**256)


class TestRoleId:
    def test_name_is_hashed(self):
        assert role_id("POOL_ADMIN") == bytes.fromhex(
            "12ad05bde78c5ab75238ce885307f96ecd482bb402ef831f99e7018a0f169b7b"
        )

    def test_default_admin_is_zero_word(self):
        assert role_id(DEFAULT_ADMIN_ROLE) == b"\x00" * 32

    def test_raw_id_must_be_32_bytes(self):
        with pytest.raises(ValueError):
            role_id(b"\x01" * 31)


class TestMappingSlot:
    def test_uint_key_hashes_key_then_slot(self):
        assert compute_mapping_slot("uint256", 95, 4) == keccak(_word(95) + _word(4))

    def test_address_key_is_left_padded(self):
        assert compute_mapping_slot("address", GRANTEE, 0) == keccak(
            _address_word(GRANTEE) + _word(0)
        )

    def test_nested_mapping_uses_parent_slot(self):
        parent = compute_mapping_slot("uint256", 1, 2)
        assert compute_mapping_slot("address", GRANTEE, parent) == keccak(
            _address_word(GRANTEE) + parent
        )

    def test_distinct_keys_give_distinct_slots(self):
        assert compute_mapping_slot("uint256", 1, 4) != compute_mapping_slot("uint256", 2, 4)


class TestStructFieldSlot:
    def test_offset_is_added_to_struct_base(self):
        base = int.from_bytes(keccak(_word(95) + _word(4)), "big")
        assert compute_struct_field_slot(95, 4, 11) == _word(base + 11)

    def test_for_votes_slot_uses_governor_layout(self):
        assert compute_for_votes_slot(95) == compute_struct_field_slot(95, 4, 11)

    def test_custom_layout(self):
        layout = GovernorLayout(proposals_slot=7, for_votes_offset=3)
        assert compute_for_votes_slot(95, layout) == compute_struct_field_slot(95, 7, 3)

    def test_large_offset_still_fits_a_word(self):
        assert len(compute_struct_field_slot(2**255, 2**255, 2**255)) == 32


class TestRoleSlot:
    def test_matches_nested_mapping_derivation(self):
        members = keccak(role_id("RISK_ADMIN") + _word(0))
        expected = keccak(_address_word(GRANTEE) + members)
        assert compute_role_slot("RISK_ADMIN", GRANTEE) == expected

    def test_checksum_and_lowercase_agree(self):
        checksummed = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
        assert compute_role_slot("POOL_ADMIN", checksummed) == compute_role_slot(
            "POOL_ADMIN", GRANTEE
        )

    def test_base_slot_changes_result(self):
        assert compute_role_slot("POOL_ADMIN", GRANTEE, 0) != compute_role_slot(
            "POOL_ADMIN", GRANTEE, 1
        )

    def test_admin_role_by_raw_id(self):
        members = keccak(b"\x00" * 32 + _word(0))
        assert compute_role_slot(DEFAULT_ADMIN_ROLE, GRANTEE) == keccak(
            _address_word(GRANTEE) + members
        )


class TestMutationBuilders:
    def test_for_votes_mutation(self):
        votes = 5_000_000 * 10**18
        mutation = for_votes_mutation(GOVERNOR, 95, votes)
        assert mutation.contract_address == GOVERNOR
        assert mutation.storage_slot == compute_for_votes_slot(95)
        assert int.from_bytes(mutation.new_value, "big") == votes
        assert mutation.value_hex == "0x" + format(votes, "064x")

    def test_role_grant_mutation_writes_true(self):
        mutation = role_grant_mutation(ACL, "POOL_ADMIN", GRANTEE)
        assert mutation.new_value == encode_word(1)
        assert mutation.slot_hex.startswith("0x") and len(mutation.slot_hex) == 66

    def test_same_inputs_same_mutation(self):
        assert role_grant_mutation(ACL, "POOL_ADMIN", GRANTEE) == role_grant_mutation(
            ACL, "POOL_ADMIN", GRANTEE
        )


class TestRoleSlotCollisions:
    ROLES = ("POOL_ADMIN", "RISK_ADMIN", "ASSET_LISTING_ADMIN", "EMERGENCY_ADMIN", DEFAULT_ADMIN_ROLE)
    ADDRESSES = tuple("0x" + format(i, "040x") for i in range(1, 33))

    def test_no_collisions_across_sample(self):
        slots = {
            compute_role_slot(role, address)
            for role in self.ROLES
            for address in self.ADDRESSES
        }
        assert len(slots) == len(self.ROLES) * len(self.ADDRESSES)

    def test_deterministic(self):
        first = [compute_role_slot("POOL_ADMIN", a) for a in self.ADDRESSES]
        assert first == [compute_role_slot("POOL_ADMIN", a) for a in self.ADDRESSES]
