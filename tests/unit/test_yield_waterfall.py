"""
test_yield_waterfall.py - Unit tests for the capped yield waterfall

Tests:
- calculate_yield_split: below, at and above the senior cap
- Cap edge cases: empty senior, zero cap, cap above 100%
- compute_yield: NAV credits, timestamp recording, compounding
- compute_simulated_yield: authority, event order, check precedence
"""

import pytest

from tranche_vault import (
    YieldDistributed, SimulatedYield, U128_MAX, I64_MAX, I64_MIN,
    InvalidAmount, MathOverflow, Unauthorized,
    calculate_yield_split, compute_yield, compute_simulated_yield,
)

from tests.snapshots import usd, vault_snapshot


class TestYieldSplit:
    """calculate_yield_split(senior_nav, cap_bps, amount)"""

    def test_surplus_above_cap_goes_to_junior(self):
        assert calculate_yield_split(usd(200), 500, usd(50)) == (usd(10), usd(40), usd(10))

    def test_yield_below_cap_all_senior(self):
        assert calculate_yield_split(usd(200), 500, usd(4)) == (usd(4), 0, usd(10))

    def test_yield_exactly_at_cap(self):
        assert calculate_yield_split(usd(200), 500, usd(10)) == (usd(10), 0, usd(10))

    def test_empty_senior_has_zero_cap(self):
        assert calculate_yield_split(0, 500, usd(7)) == (0, usd(7), 0)

    def test_zero_cap_bps(self):
        assert calculate_yield_split(usd(200), 0, usd(7)) == (0, usd(7), 0)

    def test_full_cap(self):
        assert calculate_yield_split(usd(200), 10_000, usd(250)) == (usd(200), usd(50), usd(200))

    def test_cap_above_one_hundred_percent(self):
        assert calculate_yield_split(usd(200), 20_000, usd(250)) == (usd(250), 0, usd(400))

    def test_cap_rounds_down(self):
        """199 * 500 / 10000 = 9.95 rounds down to 9."""
        assert calculate_yield_split(199, 500, 100) == (9, 91, 9)

    def test_cap_overflow(self):
        with pytest.raises(MathOverflow):
            calculate_yield_split(U128_MAX // 100, 500, 1)


class TestComputeYield:

    def test_navs_credited(self):
        vault = vault_snapshot(senior_nav=usd(200), junior_nav=usd(50))
        result = compute_yield(vault, usd(50), 1_700_000_000)

        assert result.vault.senior_nav == usd(210)
        assert result.vault.junior_nav == usd(90)
        assert result.position is None
        assert result.events == (
            YieldDistributed(senior_gain=usd(10), junior_gain=usd(40), senior_cap=usd(10), surplus_to_junior=usd(40)),
        )

    def test_supplies_and_deposits_unchanged(self):
        vault = vault_snapshot(senior_nav=usd(200), junior_nav=usd(50))
        result = compute_yield(vault, usd(50), 1_700_000_000)
        assert result.vault.senior_shares_supply == usd(200)
        assert result.vault.junior_shares_supply == usd(50)
        assert result.vault.senior_total_deposits == usd(200)
        assert result.vault.junior_total_deposits == usd(50)

    def test_timestamp_recorded(self):
        vault = vault_snapshot(senior_nav=usd(200), last_yield_timestamp=1)
        result = compute_yield(vault, usd(1), 1_700_000_000)
        assert result.vault.last_yield_timestamp == 1_700_000_000

    def test_timestamp_can_be_negative(self):
        result = compute_yield(vault_snapshot(), usd(1), I64_MIN)
        assert result.vault.last_yield_timestamp == I64_MIN

    def test_cap_compounds_with_senior_nav(self):
        """Second event's cap is 5% of the already-credited senior NAV."""
        vault = vault_snapshot(senior_nav=usd(200), junior_nav=usd(50))
        first = compute_yield(vault, usd(50), 1)
        second = compute_yield(first.vault, usd(50), 2)

        assert second.events[0].senior_cap == usd(10.5)
        assert second.vault.senior_nav == usd(220.5)
        assert second.vault.junior_nav == usd(129.5)

    def test_all_yield_to_junior_when_senior_empty(self):
        vault = vault_snapshot(junior_nav=usd(50))
        result = compute_yield(vault, usd(5), 1)
        assert result.vault.senior_nav == 0
        assert result.vault.junior_nav == usd(55)

    def test_yield_with_no_deposits_accrues_to_junior_nav(self):
        result = compute_yield(vault_snapshot(), usd(5), 1)
        assert result.vault.junior_nav == usd(5)
        assert result.vault.junior_shares_supply == 0

    def test_yield_conserved(self):
        vault = vault_snapshot(senior_nav=usd(333), junior_nav=usd(17))
        result = compute_yield(vault, 123_456_789_012, 1)
        assert result.vault.total_nav == vault.total_nav + 123_456_789_012

    @pytest.mark.parametrize("amount", [0, -usd(1)])
    def test_non_positive_amount(self, amount):
        with pytest.raises(InvalidAmount):
            compute_yield(vault_snapshot(senior_nav=usd(200)), amount, 1)

    def test_non_integer_timestamp(self):
        with pytest.raises(InvalidAmount):
            compute_yield(vault_snapshot(senior_nav=usd(200)), usd(1), 1.5)

    def test_timestamp_out_of_range(self):
        with pytest.raises(MathOverflow):
            compute_yield(vault_snapshot(senior_nav=usd(200)), usd(1), I64_MAX + 1)

    def test_junior_nav_overflow(self):
        vault = vault_snapshot(junior_nav=U128_MAX)
        with pytest.raises(MathOverflow):
            compute_yield(vault, 1, 1)

    def test_cap_overflow_aborts_yield(self):
        vault = vault_snapshot(senior_nav=U128_MAX // 100)
        with pytest.raises(MathOverflow):
            compute_yield(vault, 1, 1)


class TestSimulatedYield:

    def test_event_order(self):
        vault = vault_snapshot(senior_nav=usd(200), junior_nav=usd(50))
        result = compute_simulated_yield(vault, usd(50), "admin", 1)
        assert result.events == (
            SimulatedYield(amount=usd(50)),
            YieldDistributed(senior_gain=usd(10), junior_gain=usd(40), senior_cap=usd(10), surplus_to_junior=usd(40)),
        )

    def test_same_state_as_distribute(self):
        vault = vault_snapshot(senior_nav=usd(200), junior_nav=usd(50))
        assert compute_simulated_yield(vault, usd(50), "admin", 1).vault == compute_yield(vault, usd(50), 1).vault

    def test_requires_authority(self):
        with pytest.raises(Unauthorized):
            compute_simulated_yield(vault_snapshot(senior_nav=usd(200)), usd(50), "mallory", 1)

    def test_amount_checked_before_authority(self):
        with pytest.raises(InvalidAmount):
            compute_simulated_yield(vault_snapshot(senior_nav=usd(200)), 0, "mallory", 1)
