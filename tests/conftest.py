"""
conftest.py - Shared pytest fixtures for tranche vault tests

Provides common fixtures used across unit, conformance and functional tests:
- Empty vaults (production and test mode)
- Funded vaults with senior and junior depositors
"""

import pytest
from datetime import datetime

from tranche_vault import TrancheVault

from tests.snapshots import usd, AUTHORITY, CAP_BPS


# =============================================================================
# BASIC FIXTURES
# =============================================================================

@pytest.fixture
def empty_vault():
    """Fresh vault with a 5% senior cap and no deposits."""
    return TrancheVault("test", AUTHORITY, CAP_BPS, datetime(2025, 1, 1), verbose=False)


@pytest.fixture
def test_vault():
    """Fresh vault in test mode (tranche totals can be seeded directly)."""
    return TrancheVault("test", AUTHORITY, CAP_BPS, datetime(2025, 1, 1), verbose=False, test_mode=True)


# =============================================================================
# FUNDED FIXTURES
# =============================================================================

@pytest.fixture
def funded_vault(empty_vault):
    """Vault with alice holding $200 senior and bob holding $50 junior."""
    empty_vault.deposit_senior("alice", usd(200))
    empty_vault.deposit_junior("bob", usd(50))
    return empty_vault


@pytest.fixture
def multi_depositor_vault(empty_vault):
    """Vault with three depositors spread across both tranches."""
    empty_vault.deposit_senior("alice", usd(600))
    empty_vault.deposit_senior("carol", usd(200))
    empty_vault.deposit_junior("bob", usd(150))
    empty_vault.deposit_junior("carol", usd(50))
    return empty_vault
