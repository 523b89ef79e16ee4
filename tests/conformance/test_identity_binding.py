"""
Identity Binding Conformance Tests

INVARIANT: A position is bound to the identity of its depositor.

    ∀ identities a ≠ b:
        position(a).owner = a
        deposit(b) leaves position(a) unchanged
        compute_deposit(position owned by a, depositor b) raises Unauthorized

Positions are keyed by depositor; no operation rebinds or transfers a
position, and no caller can address a position under another key.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st
from datetime import datetime

from tranche_vault import (
    TrancheVault, Tranche, Unauthorized,
    new_position_ledger, compute_deposit,
)

from tests.snapshots import usd, vault_snapshot, position_snapshot, AUTHORITY


identities = st.text(min_size=1, max_size=20).filter(lambda s: s.strip())
tranches = st.sampled_from(list(Tranche))


def new_vault():
    return TrancheVault("binding", AUTHORITY, 500, datetime(2025, 1, 1), verbose=False)


class TestIdentityBindingProperties:

    @given(identities, identities, tranches, tranches)
    @settings(max_examples=200)
    def test_other_identity_cannot_touch_position(self, owner, intruder, first, second):
        if owner == intruder:
            return
        vault = new_vault()
        vault.deposit(first, intruder, usd(1))
        vault.deposit(first, owner, usd(10))
        before = vault.get_position(owner)

        vault.deposit(second, intruder, usd(10))

        assert vault.get_position(owner) == before
        assert vault.get_position(intruder).owner == intruder

    @given(identities, identities, tranches)
    @settings(max_examples=200)
    def test_pure_deposit_rejects_foreign_position(self, owner, intruder, tranche):
        if owner == intruder:
            return
        position = position_snapshot(owner=owner, senior=usd(10))
        with pytest.raises(Unauthorized):
            compute_deposit(vault_snapshot(senior_nav=usd(10)), position, tranche, usd(1), intruder)

    @given(identities, st.lists(tranches, min_size=1, max_size=10))
    @settings(max_examples=100)
    def test_owner_stable_across_deposits(self, owner, sequence):
        vault = new_vault()
        for tranche in sequence:
            vault.deposit(tranche, owner, usd(1))
            assert vault.get_position(owner).owner == owner
        assert vault.list_positions() == [owner]

    @given(identities)
    @settings(max_examples=100)
    def test_first_deposit_binds_pure(self, owner):
        result = compute_deposit(vault_snapshot(), new_position_ledger(), Tranche.SENIOR, usd(1), owner)
        assert result.position.owner == owner


class TestIdentityBindingScenarios:

    def test_position_key_is_depositor(self):
        vault = new_vault()
        vault.deposit_senior("alice", usd(1))
        vault.deposit_senior("bob", usd(1))
        assert vault.get_position("alice").owner == "alice"
        assert vault.get_position("bob").owner == "bob"

    def test_authority_has_no_claim_on_positions(self):
        vault = new_vault()
        vault.deposit_junior("alice", usd(1))
        vault.deposit_junior(AUTHORITY, usd(1))

        assert vault.get_position("alice").junior_shares == usd(1)
        assert vault.get_position(AUTHORITY).owner == AUTHORITY
