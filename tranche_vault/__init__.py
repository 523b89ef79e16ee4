"""
tranche_vault - Two-Tranche Pooled Vault Accounting

Share-based NAV accounting for a pool split into a capped, loss-protected
senior tranche and an uncapped, first-loss junior tranche.

Usage:
    from tranche_vault import TrancheVault, Tranche, to_fixed

    vault = TrancheVault("pool", authority="admin", senior_apy_cap_bps=500)

    # Mint shares at par for the first depositors
    vault.deposit_senior("alice", to_fixed("200"))
    vault.deposit_junior("bob", to_fixed("50"))

    # Senior receives at most 5% of its NAV; the rest goes to junior
    vault.distribute_yield(to_fixed("20"), timestamp=1_700_000_000)

    # Losses hit junior first, senior only once junior is exhausted
    vault.simulate_loss("admin", to_fixed("60"))

The pure engine can also be driven directly on snapshots:
    from tranche_vault import new_vault_ledger, new_position_ledger, compute_deposit

    vault = new_vault_ledger("admin", 500)
    result = compute_deposit(vault, new_position_ledger(), Tranche.SENIOR, to_fixed("100"), "alice")
"""

# Core types
from .core import (
    FP_SCALE,
    BPS_DENOM,
    U128_MAX,
    U16_MAX,
    I64_MIN,
    I64_MAX,
    Tranche,
    VaultLedger,
    PositionLedger,
    VaultTransition,
    VaultEvent,
    Deposited,
    YieldDistributed,
    LossApplied,
    SimulatedYield,
    SimulatedLoss,
    TrancheError,
    InvalidAmount,
    ZeroShares,
    MathOverflow,
    Unauthorized,
    CapExceeded,
)

# Fixed-point arithmetic
from .fixed_point import (
    checked_add,
    checked_sub,
    checked_mul,
    checked_mul_div,
    require_amount,
    to_fixed,
    from_fixed,
    format_usd,
)

# Accounting engine
from .accounting import (
    new_vault_ledger,
    new_position_ledger,
    calculate_price_per_share,
    calculate_shares_out,
    calculate_yield_split,
    calculate_loss_split,
    calculate_position_value,
    ensure_owner,
    require_authority,
    compute_deposit,
    compute_deposit_senior,
    compute_deposit_junior,
    compute_yield,
    compute_loss,
    compute_simulated_loss,
    compute_simulated_yield,
    preview_deposit,
)

# Vault
from .vault import TrancheVault, VaultTransaction, VaultAction

__all__ = [
    # Core
    'FP_SCALE', 'BPS_DENOM', 'U128_MAX', 'U16_MAX', 'I64_MIN', 'I64_MAX',
    'Tranche', 'VaultLedger', 'PositionLedger', 'VaultTransition', 'VaultEvent',
    'Deposited', 'YieldDistributed', 'LossApplied', 'SimulatedYield', 'SimulatedLoss',
    'TrancheError', 'InvalidAmount', 'ZeroShares', 'MathOverflow', 'Unauthorized',
    'CapExceeded',
    # Fixed point
    'checked_add', 'checked_sub', 'checked_mul', 'checked_mul_div', 'require_amount',
    'to_fixed', 'from_fixed', 'format_usd',
    # Accounting
    'new_vault_ledger', 'new_position_ledger',
    'calculate_price_per_share', 'calculate_shares_out', 'calculate_yield_split',
    'calculate_loss_split', 'calculate_position_value',
    'ensure_owner', 'require_authority',
    'compute_deposit', 'compute_deposit_senior', 'compute_deposit_junior',
    'compute_yield', 'compute_loss', 'compute_simulated_loss', 'compute_simulated_yield',
    'preview_deposit',
    # Vault
    'TrancheVault', 'VaultTransaction', 'VaultAction',
]

__version__ = '1.0.0'
