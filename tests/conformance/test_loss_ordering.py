"""
Loss Ordering Conformance Tests

INVARIANT: For junior NAV j, senior NAV s and loss L > 0:
    absorbed_by_junior = min(L, j)
    absorbed_by_senior = min(L - absorbed_by_junior, s)
    absorbed_by_senior > 0 ⟹ absorbed_by_junior = j

Senior is touched only after junior is exhausted, neither NAV goes below
zero, and anything beyond j + s is reported as uncovered.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from tranche_vault import calculate_loss_split, compute_loss

from tests.snapshots import vault_snapshot


navs = st.integers(min_value=0, max_value=10**25)
losses = st.integers(min_value=1, max_value=10**26)


class TestLossOrderingProperties:

    @given(navs, navs, losses)
    @settings(max_examples=300)
    def test_junior_first(self, junior_nav, senior_nav, loss):
        by_junior, by_senior = calculate_loss_split(junior_nav, senior_nav, loss)
        assert by_junior == min(loss, junior_nav)
        assert by_senior == min(loss - by_junior, senior_nav)
        if by_senior > 0:
            assert by_junior == junior_nav

    @given(navs, navs, losses)
    @settings(max_examples=300)
    def test_navs_never_negative(self, junior_nav, senior_nav, loss):
        vault = vault_snapshot(senior_nav=senior_nav, junior_nav=junior_nav)
        result = compute_loss(vault, loss)
        assert result.vault.junior_nav == junior_nav - result.events[0].absorbed_by_junior
        assert result.vault.senior_nav == senior_nav - result.events[0].absorbed_by_senior
        assert result.vault.junior_nav >= 0
        assert result.vault.senior_nav >= 0

    @given(navs, navs, losses)
    @settings(max_examples=200)
    def test_uncovered_is_the_excess(self, junior_nav, senior_nav, loss):
        event = compute_loss(vault_snapshot(senior_nav=senior_nav, junior_nav=junior_nav), loss).events[0]
        assert event.absorbed_by_junior + event.absorbed_by_senior + event.uncovered == loss
        assert event.uncovered == max(0, loss - junior_nav - senior_nav)

    @given(navs, navs, losses)
    @settings(max_examples=100)
    def test_supplies_unchanged(self, junior_nav, senior_nav, loss):
        vault = vault_snapshot(senior_nav=senior_nav, junior_nav=junior_nav)
        result = compute_loss(vault, loss)
        assert result.vault.senior_shares_supply == vault.senior_shares_supply
        assert result.vault.junior_shares_supply == vault.junior_shares_supply


class TestLossOrderingScenarios:

    def test_loss_spills_into_senior(self):
        vault = vault_snapshot(senior_nav=80 * 10**9, junior_nav=20 * 10**9)
        event = compute_loss(vault, 30 * 10**9).events[0]
        assert event.absorbed_by_junior == 20 * 10**9
        assert event.absorbed_by_senior == 10 * 10**9

    def test_catastrophic_loss(self):
        vault = vault_snapshot(senior_nav=5 * 10**9, junior_nav=5 * 10**9)
        result = compute_loss(vault, 1000 * 10**9)
        assert result.vault.total_nav == 0
        assert result.events[0].uncovered == 990 * 10**9
