"""
accounting.py - Tranche Accounting Engine

Stateless functions that price deposits and run the yield and loss
waterfalls over immutable ledger snapshots.

ARCHITECTURE (Pure Function Pattern):
=====================================

1. PURE CALCULATION FUNCTIONS (calculate_*):
   - Take plain integers, return plain integers
   - No ledger records, no hidden state
   - Example: calculate_price_per_share(nav, shares_supply) -> int

2. TRANSITION FUNCTIONS (compute_*):
   - Take the current VaultLedger (and PositionLedger for deposits)
   - Run every check and every checked step into locals first
   - Only then build the new snapshots and the emitted facts
   - Return a VaultTransition; inputs are never modified

A transition function either returns a complete VaultTransition or raises
a TrancheError. There is no partially applied result to roll back.

Key Formulas:
    pps           = FP_SCALE                        if shares_supply == 0
                  = nav * FP_SCALE // shares_supply otherwise
    shares_out    = amount * FP_SCALE // pps
    senior_cap    = senior_nav * cap_bps // BPS_DENOM
    senior_gain   = min(yield, senior_cap);  junior_gain = yield - senior_gain
    by_junior     = min(loss, junior_nav)
    by_senior     = min(loss - by_junior, senior_nav)
"""

from __future__ import annotations
from dataclasses import replace
from typing import Optional, Tuple

from .core import (
    FP_SCALE, BPS_DENOM, U16_MAX, I64_MIN, I64_MAX,
    Tranche, VaultLedger, PositionLedger, VaultTransition,
    Deposited, YieldDistributed, LossApplied, SimulatedYield, SimulatedLoss,
    NAV_FIELD, SUPPLY_FIELD, DEPOSITS_FIELD, SHARES_FIELD,
    InvalidAmount, ZeroShares, MathOverflow, Unauthorized, CapExceeded,
)
from .fixed_point import checked_add, checked_sub, checked_mul_div, require_amount


# ============================================================================
# FACTORIES
# ============================================================================

def new_vault_ledger(authority: str, senior_apy_cap_bps: int) -> VaultLedger:
    """
    Create the initial ledger for a pool.

    All totals start at zero. The cap is fixed for the life of the pool.
    Values above 10,000 bps are accepted; keeping the cap in a sensible
    range is the caller's responsibility.

    Args:
        authority: Identity allowed to run simulate_loss/simulate_yield_surplus
        senior_apy_cap_bps: Senior cap per yield event, in basis points

    Raises:
        CapExceeded: If the cap does not fit the 16-bit cap field
        ValueError: If authority is empty
    """
    if not isinstance(senior_apy_cap_bps, int) or isinstance(senior_apy_cap_bps, bool):
        raise CapExceeded(f"senior cap must be an integer bps value, got {senior_apy_cap_bps!r}")
    if senior_apy_cap_bps < 0 or senior_apy_cap_bps > U16_MAX:
        raise CapExceeded(f"senior cap {senior_apy_cap_bps} bps outside [0, {U16_MAX}]")
    return VaultLedger(authority=authority, senior_apy_cap_bps=senior_apy_cap_bps)


def new_position_ledger() -> PositionLedger:
    """Create an unbound position with zero shares."""
    return PositionLedger()


# ============================================================================
# PURE CALCULATION FUNCTIONS - No ledger records, all inputs explicit
# ============================================================================

def calculate_price_per_share(nav: int, shares_supply: int) -> int:
    """
    Price of one share in fixed point, rounded down.

    An empty tranche prices at par (FP_SCALE), so the first depositor
    receives shares 1:1 with the amount deposited.
    """
    if shares_supply == 0:
        return FP_SCALE
    return checked_mul_div(nav, FP_SCALE, shares_supply)


def calculate_shares_out(amount: int, pps: int) -> int:
    """
    Shares minted for `amount` at price `pps`, rounded down.

    A tranche whose NAV was wiped out while shares remain outstanding
    prices at zero, which surfaces here as InvalidAmount.
    """
    return checked_mul_div(amount, FP_SCALE, pps)


def calculate_yield_split(senior_nav: int, cap_bps: int, amount: int) -> Tuple[int, int, int]:
    """
    Split a yield amount between senior and junior under the senior cap.

    The cap is a fraction of the current senior NAV and applies per call,
    so it compounds as senior NAV grows. Everything above the cap goes
    to junior.

    Returns:
        (senior_gain, junior_gain, senior_cap)
    """
    senior_cap = checked_mul_div(senior_nav, cap_bps, BPS_DENOM)
    senior_gain = min(amount, senior_cap)
    junior_gain = checked_sub(amount, senior_gain)
    return senior_gain, junior_gain, senior_cap


def calculate_loss_split(junior_nav: int, senior_nav: int, amount: int) -> Tuple[int, int]:
    """
    Allocate a loss junior-first.

    Junior absorbs up to its whole NAV before senior is touched. Any part
    of the loss beyond junior_nav + senior_nav is left unallocated.

    Returns:
        (absorbed_by_junior, absorbed_by_senior)
    """
    by_junior = min(amount, junior_nav)
    remaining = checked_sub(amount, by_junior)
    by_senior = min(remaining, senior_nav)
    return by_junior, by_senior


def calculate_position_value(shares: int, nav: int, shares_supply: int) -> int:
    """
    USD value of `shares` at the tranche's current NAV, rounded down.

    Computed as shares * nav / supply directly rather than through the
    rounded PPS, so large holdings do not accumulate price dust.
    """
    if shares_supply == 0:
        return 0
    return checked_mul_div(shares, nav, shares_supply)


# ============================================================================
# AUTHORIZATION
# ============================================================================

def ensure_owner(position: PositionLedger, depositor: str) -> PositionLedger:
    """
    Bind an unbound position to `depositor`, or check an existing binding.

    Returns:
        The position with its owner set (a new snapshot on first use)

    Raises:
        Unauthorized: If the position belongs to someone else
    """
    if position.owner is None:
        return replace(position, owner=depositor)
    if position.owner != depositor:
        raise Unauthorized(f"position owned by {position.owner}, not {depositor}")
    return position


def require_authority(vault: VaultLedger, caller: str) -> None:
    """Raise Unauthorized unless caller is the vault authority."""
    if caller != vault.authority:
        raise Unauthorized(f"{caller} is not the vault authority")


def _require_timestamp(timestamp: int) -> int:
    if not isinstance(timestamp, int) or isinstance(timestamp, bool):
        raise InvalidAmount(f"timestamp must be an integer, got {type(timestamp).__name__}")
    if timestamp < I64_MIN or timestamp > I64_MAX:
        raise MathOverflow(f"timestamp outside 64-bit range: {timestamp}")
    return timestamp


# ============================================================================
# TRANSITION FUNCTIONS - Validate everything, then build new snapshots
# ============================================================================

def compute_deposit(
    vault: VaultLedger,
    position: PositionLedger,
    tranche: Tranche,
    amount: int,
    depositor: str,
) -> VaultTransition:
    """
    Price a deposit into one tranche and mint shares for it.

    Steps (all checked before anything is built):
    1. amount must be a positive 128-bit integer
    2. PPS from the tranche's (nav, shares_supply); par if supply is zero
    3. shares_out = amount * FP_SCALE // PPS; zero shares is rejected
    4. deposits += amount, nav += amount, supply += shares_out
    5. position owner is bound (first use) or must equal depositor
    6. position shares += shares_out

    Args:
        vault: Current vault snapshot
        position: Current position snapshot (unbound on first deposit)
        tranche: Tranche receiving the deposit
        amount: Deposit amount in fixed-point USD
        depositor: Verified identity of the caller

    Returns:
        VaultTransition with the new vault and position and a Deposited fact

    Raises:
        InvalidAmount: amount <= 0, or the tranche prices at zero
        ZeroShares: amount is too small to mint a single share unit
        MathOverflow: any 128-bit step overflows
        Unauthorized: position belongs to another identity
    """
    if not isinstance(tranche, Tranche):
        raise TypeError(f"tranche must be a Tranche, got {tranche!r}")
    require_amount(amount)

    pps = calculate_price_per_share(vault.nav(tranche), vault.shares_supply(tranche))
    shares_out = calculate_shares_out(amount, pps)
    if shares_out == 0:
        raise ZeroShares(f"deposit of {amount} mints zero {tranche.value} shares at pps {pps}")

    new_deposits = checked_add(vault.total_deposits(tranche), amount)
    new_nav = checked_add(vault.nav(tranche), amount)
    new_supply = checked_add(vault.shares_supply(tranche), shares_out)

    bound = ensure_owner(position, depositor)
    new_shares = checked_add(bound.shares(tranche), shares_out)

    new_vault = replace(vault, **{
        DEPOSITS_FIELD[tranche]: new_deposits,
        NAV_FIELD[tranche]: new_nav,
        SUPPLY_FIELD[tranche]: new_supply,
    })
    new_position = replace(bound, **{SHARES_FIELD[tranche]: new_shares})

    return VaultTransition(
        vault=new_vault,
        position=new_position,
        events=(Deposited(
            depositor=depositor,
            tranche=tranche,
            amount=amount,
            shares_minted=shares_out,
        ),),
    )


def compute_deposit_senior(
    vault: VaultLedger, position: PositionLedger, amount: int, depositor: str
) -> VaultTransition:
    """Deposit into the senior tranche. See compute_deposit."""
    return compute_deposit(vault, position, Tranche.SENIOR, amount, depositor)


def compute_deposit_junior(
    vault: VaultLedger, position: PositionLedger, amount: int, depositor: str
) -> VaultTransition:
    """Deposit into the junior tranche. See compute_deposit."""
    return compute_deposit(vault, position, Tranche.JUNIOR, amount, depositor)


def _apply_yield(vault: VaultLedger, amount: int, timestamp: int) -> Tuple[VaultLedger, YieldDistributed]:
    senior_gain, junior_gain, senior_cap = calculate_yield_split(
        vault.senior_nav, vault.senior_apy_cap_bps, amount
    )
    new_senior_nav = checked_add(vault.senior_nav, senior_gain)
    new_junior_nav = checked_add(vault.junior_nav, junior_gain)

    new_vault = replace(
        vault,
        senior_nav=new_senior_nav,
        junior_nav=new_junior_nav,
        last_yield_timestamp=timestamp,
    )
    event = YieldDistributed(
        senior_gain=senior_gain,
        junior_gain=junior_gain,
        senior_cap=senior_cap,
        surplus_to_junior=junior_gain,
    )
    return new_vault, event


def compute_yield(vault: VaultLedger, amount: int, timestamp: int) -> VaultTransition:
    """
    Distribute positive yield with senior capped at senior_nav * cap_bps / 10,000.

    The engine is time-agnostic: the caller decides what one period is and
    supplies the event timestamp, which is recorded as last_yield_timestamp.

    Raises:
        InvalidAmount: amount <= 0
        MathOverflow: cap computation or either NAV credit overflows
    """
    require_amount(amount)
    _require_timestamp(timestamp)
    new_vault, event = _apply_yield(vault, amount, timestamp)
    return VaultTransition(vault=new_vault, position=None, events=(event,))


def _apply_loss(vault: VaultLedger, amount: int) -> Tuple[VaultLedger, LossApplied]:
    by_junior, by_senior = calculate_loss_split(vault.junior_nav, vault.senior_nav, amount)
    new_junior_nav = checked_sub(vault.junior_nav, by_junior)
    new_senior_nav = checked_sub(vault.senior_nav, by_senior)

    new_vault = replace(vault, junior_nav=new_junior_nav, senior_nav=new_senior_nav)
    event = LossApplied(
        total_loss=amount,
        absorbed_by_junior=by_junior,
        absorbed_by_senior=by_senior,
    )
    return new_vault, event


def compute_loss(vault: VaultLedger, amount: int) -> VaultTransition:
    """
    Apply a loss, junior first, then senior.

    Neither NAV goes below zero. A loss larger than both NAVs combined
    zeroes both and the excess is not stored; see LossApplied.uncovered.
    last_yield_timestamp is left unchanged.

    Raises:
        InvalidAmount: amount <= 0
    """
    require_amount(amount)
    new_vault, event = _apply_loss(vault, amount)
    return VaultTransition(vault=new_vault, position=None, events=(event,))


def compute_simulated_loss(vault: VaultLedger, amount: int, caller: str) -> VaultTransition:
    """
    Authority-only loss injection.

    Same waterfall as compute_loss, followed by a SimulatedLoss marker.

    Raises:
        InvalidAmount: amount <= 0 (checked before authorization)
        Unauthorized: caller is not the vault authority
    """
    require_amount(amount)
    require_authority(vault, caller)
    new_vault, event = _apply_loss(vault, amount)
    return VaultTransition(
        vault=new_vault,
        position=None,
        events=(event, SimulatedLoss(amount=amount)),
    )


def compute_simulated_yield(
    vault: VaultLedger, amount: int, caller: str, timestamp: int
) -> VaultTransition:
    """
    Authority-only yield injection.

    Emits a SimulatedYield marker, then applies the same capped split as
    compute_yield.

    Raises:
        InvalidAmount: amount <= 0 (checked before authorization)
        Unauthorized: caller is not the vault authority
        MathOverflow: cap computation or either NAV credit overflows
    """
    require_amount(amount)
    require_authority(vault, caller)
    _require_timestamp(timestamp)
    new_vault, event = _apply_yield(vault, amount, timestamp)
    return VaultTransition(
        vault=new_vault,
        position=None,
        events=(SimulatedYield(amount=amount), event),
    )


def preview_deposit(
    vault: VaultLedger, tranche: Tranche, amount: int, position: Optional[PositionLedger] = None
) -> int:
    """
    Shares a deposit of `amount` would mint right now, without applying it.

    Raises the same errors as compute_deposit, except Unauthorized.
    """
    if not isinstance(tranche, Tranche):
        raise TypeError(f"tranche must be a Tranche, got {tranche!r}")
    require_amount(amount)
    pps = calculate_price_per_share(vault.nav(tranche), vault.shares_supply(tranche))
    shares_out = calculate_shares_out(amount, pps)
    if shares_out == 0:
        raise ZeroShares(f"deposit of {amount} mints zero {tranche.value} shares at pps {pps}")
    checked_add(vault.total_deposits(tranche), amount)
    checked_add(vault.nav(tranche), amount)
    checked_add(vault.shares_supply(tranche), shares_out)
    if position is not None:
        checked_add(position.shares(tranche), shares_out)
    return shares_out
