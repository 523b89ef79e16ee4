"""
Core types for the two-tranche vault accounting engine.

This module provides the foundational data structures for the engine:
1. Constants: fixed-point scale, basis-point denominator, integer ranges
2. Enums: Tranche selector
3. Exceptions: TrancheError and the typed failure outcomes
4. Immutable ledger records: VaultLedger, PositionLedger
5. Emitted facts: Deposited, YieldDistributed, LossApplied, SimulatedYield, SimulatedLoss
6. VaultTransition: the result of every pure accounting operation

All records are frozen. Accounting functions never mutate a record; they
return new snapshots which the owning TrancheVault commits as a whole.
"""

from __future__ import annotations
from dataclasses import dataclass, fields
from enum import Enum
from typing import Optional, Tuple, Union


# ============================================================================
# CONSTANTS
# ============================================================================

# All monetary quantities, NAVs, share balances and prices are integers
# scaled by FP_SCALE (1e9 = 1.0 USD, or one share at par).
FP_SCALE = 1_000_000_000

# Denominator for basis-point rates (500 bps = 5%).
BPS_DENOM = 10_000

# Representable ranges of the ledger fields.
U128_MAX = 2**128 - 1
U16_MAX = 2**16 - 1
I64_MIN = -(2**63)
I64_MAX = 2**63 - 1


# ============================================================================
# ENUMS
# ============================================================================

class Tranche(Enum):
    """
    Risk/return class within the pool.

    SENIOR: capped return, absorbs losses only after junior is exhausted.
    JUNIOR: uncapped return, first-loss.
    """
    SENIOR = "senior"
    JUNIOR = "junior"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class TrancheError(Exception):
    """Base exception for all vault accounting errors."""
    pass


class InvalidAmount(TrancheError):
    """Raised when a supplied amount is zero or not a positive integer, or a divisor resolves to zero."""
    pass


class ZeroShares(TrancheError):
    """Raised when a deposit would mint zero shares after rounding."""
    pass


class MathOverflow(TrancheError):
    """Raised when a checked arithmetic step would leave its representable range."""
    pass


class Unauthorized(TrancheError):
    """Raised when the caller identity does not match the position owner or vault authority."""
    pass


class CapExceeded(TrancheError):
    """Raised when a senior cap in basis points does not fit the 16-bit cap field."""
    pass


# ============================================================================
# VALIDATION HELPERS
# ============================================================================

def _check_int_range(name: str, value: int, low: int, high: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"{name} must be int, got {type(value).__name__}")
    if value < low or value > high:
        raise ValueError(f"{name} out of range: {value}")


def _check_identity(name: str, value: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{name} cannot be empty")


# ============================================================================
# LEDGER RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class VaultLedger:
    """
    Pool-wide accounting state. One instance per pool.

    Attributes:
        authority: Identity allowed to run the simulation entry points.
        senior_total_deposits: Cumulative gross senior deposits (informational).
        junior_total_deposits: Cumulative gross junior deposits (informational).
        senior_nav: Current senior net asset value.
        junior_nav: Current junior net asset value.
        senior_shares_supply: Senior shares outstanding.
        junior_shares_supply: Junior shares outstanding.
        senior_apy_cap_bps: Senior share of any single yield event, in bps of senior NAV.
        last_yield_timestamp: Unix time of the most recent yield event.

    A NAV of zero with shares still outstanding is a legal state: a loss
    can wipe out a tranche without burning its shares.
    """
    authority: str
    senior_total_deposits: int = 0
    junior_total_deposits: int = 0
    senior_nav: int = 0
    junior_nav: int = 0
    senior_shares_supply: int = 0
    junior_shares_supply: int = 0
    senior_apy_cap_bps: int = 0
    last_yield_timestamp: int = 0

    def __post_init__(self):
        _check_identity("VaultLedger authority", self.authority)
        for f in fields(self):
            if f.name in ("authority", "senior_apy_cap_bps", "last_yield_timestamp"):
                continue
            _check_int_range(f.name, getattr(self, f.name), 0, U128_MAX)
        _check_int_range("senior_apy_cap_bps", self.senior_apy_cap_bps, 0, U16_MAX)
        _check_int_range("last_yield_timestamp", self.last_yield_timestamp, I64_MIN, I64_MAX)

    def nav(self, tranche: Tranche) -> int:
        """Return the NAV of the selected tranche."""
        return self.senior_nav if tranche is Tranche.SENIOR else self.junior_nav

    def shares_supply(self, tranche: Tranche) -> int:
        """Return the shares outstanding in the selected tranche."""
        if tranche is Tranche.SENIOR:
            return self.senior_shares_supply
        return self.junior_shares_supply

    def total_deposits(self, tranche: Tranche) -> int:
        """Return cumulative gross deposits into the selected tranche."""
        if tranche is Tranche.SENIOR:
            return self.senior_total_deposits
        return self.junior_total_deposits

    @property
    def total_nav(self) -> int:
        return self.senior_nav + self.junior_nav


@dataclass(frozen=True, slots=True)
class PositionLedger:
    """
    Per-depositor share balances. One instance per (pool, depositor) pair.

    Attributes:
        owner: Identity of the sole economic holder. None until the first
               deposit binds it; never changes afterwards.
        senior_shares: Senior shares held.
        junior_shares: Junior shares held.
    """
    owner: Optional[str] = None
    senior_shares: int = 0
    junior_shares: int = 0

    def __post_init__(self):
        if self.owner is not None:
            _check_identity("PositionLedger owner", self.owner)
        _check_int_range("senior_shares", self.senior_shares, 0, U128_MAX)
        _check_int_range("junior_shares", self.junior_shares, 0, U128_MAX)

    def shares(self, tranche: Tranche) -> int:
        """Return the shares held in the selected tranche."""
        return self.senior_shares if tranche is Tranche.SENIOR else self.junior_shares

    @property
    def is_bound(self) -> bool:
        return self.owner is not None


# Field names addressed by a tranche selector.
NAV_FIELD = {Tranche.SENIOR: "senior_nav", Tranche.JUNIOR: "junior_nav"}
SUPPLY_FIELD = {Tranche.SENIOR: "senior_shares_supply", Tranche.JUNIOR: "junior_shares_supply"}
DEPOSITS_FIELD = {Tranche.SENIOR: "senior_total_deposits", Tranche.JUNIOR: "junior_total_deposits"}
SHARES_FIELD = {Tranche.SENIOR: "senior_shares", Tranche.JUNIOR: "junior_shares"}


# ============================================================================
# EMITTED FACTS
# ============================================================================

@dataclass(frozen=True, slots=True)
class Deposited:
    """Shares were minted for a deposit into one tranche."""
    depositor: str
    tranche: Tranche
    amount: int
    shares_minted: int


@dataclass(frozen=True, slots=True)
class YieldDistributed:
    """
    Positive yield was split between the tranches.

    Attributes:
        senior_gain: Amount credited to senior NAV (never above senior_cap).
        junior_gain: Amount credited to junior NAV.
        senior_cap: Per-call cap computed from senior NAV before the split.
        surplus_to_junior: Yield routed past the cap; always equal to junior_gain.
    """
    senior_gain: int
    junior_gain: int
    senior_cap: int
    surplus_to_junior: int


@dataclass(frozen=True, slots=True)
class LossApplied:
    """
    A loss was absorbed, junior first.

    The part of total_loss exceeding both NAVs is not recorded in any
    ledger field. It can be read back from the fact as `uncovered`.
    """
    total_loss: int
    absorbed_by_junior: int
    absorbed_by_senior: int

    @property
    def uncovered(self) -> int:
        return self.total_loss - self.absorbed_by_junior - self.absorbed_by_senior


@dataclass(frozen=True, slots=True)
class SimulatedYield:
    """Marker fact: the authority injected a yield surplus."""
    amount: int


@dataclass(frozen=True, slots=True)
class SimulatedLoss:
    """Marker fact: the authority injected a loss."""
    amount: int


VaultEvent = Union[Deposited, YieldDistributed, LossApplied, SimulatedYield, SimulatedLoss]


# ============================================================================
# TRANSITION RESULT
# ============================================================================

@dataclass(frozen=True, slots=True)
class VaultTransition:
    """
    Outcome of a pure accounting operation.

    Attributes:
        vault: The VaultLedger snapshot after the operation.
        position: The PositionLedger snapshot after the operation, or None for
                  operations that do not touch a position.
        events: Facts for the caller to persist or publish, in emission order.
    """
    vault: VaultLedger
    position: Optional[PositionLedger]
    events: Tuple[VaultEvent, ...]

    def __post_init__(self):
        if not self.events:
            raise ValueError("VaultTransition must carry at least one event")
