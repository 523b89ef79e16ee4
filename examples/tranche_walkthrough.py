"""
Example: A senior/junior pool through yield, loss and recapitalisation.

Two investors buy senior shares, one buys junior. The pool earns yield
(senior capped at 5% per event), suffers a loss large enough to wipe out
junior, and is then recapitalised by a new junior investor at a discount.
"""

from datetime import datetime
from tranche_vault import TrancheVault, Tranche, TrancheError, to_fixed, format_usd


def print_positions(vault):
    for depositor in vault.list_positions():
        senior = vault.position_value(depositor, Tranche.SENIOR)
        junior = vault.position_value(depositor, Tranche.JUNIOR)
        print(f"  {depositor:<8} senior {format_usd(senior):>12}   junior {format_usd(junior):>12}")


def main():
    print("=" * 80)
    print("TRANCHE VAULT - Senior/Junior Walkthrough")
    print("=" * 80)
    print()

    vault = TrancheVault(
        "walkthrough",
        authority="risk_desk",
        senior_apy_cap_bps=500,
        initial_time=datetime(2025, 1, 1),
        verbose=True,
    )

    print()
    print("Step 1: Deposits at par")
    print("-" * 80)
    print("Empty tranches price at 1.0, so every dollar mints one share.")
    print()

    vault.deposit_senior("alice", to_fixed("600"))
    vault.deposit_senior("carol", to_fixed("200"))
    vault.deposit_junior("bob", to_fixed("200"))

    print()
    print_positions(vault)
    print()

    print("Step 2: Yield with a senior cap")
    print("-" * 80)
    print("100 of yield arrives. Senior's cap is 5% of 800 = 40; junior takes the other 60.")
    print()

    vault.advance_time(datetime(2025, 2, 1))
    vault.distribute_yield(to_fixed("100"))

    print()
    print_positions(vault)
    print()

    print("Step 3: A loss larger than the junior tranche")
    print("-" * 80)
    print("A 300 loss exhausts junior's 260 and takes the remaining 40 from senior.")
    print()

    vault.advance_time(datetime(2025, 3, 1))
    vault.simulate_loss("risk_desk", to_fixed("300"))

    print()
    print_positions(vault)
    print()

    print("Step 4: A wiped-out tranche cannot be priced")
    print("-" * 80)
    try:
        vault.deposit_junior("eve", to_fixed("45"))
    except TrancheError as e:
        print(f"Rejected: {type(e).__name__}: {e}")
    print()

    print("Step 5: Yield refills junior; eve recapitalises at a discount")
    print("-" * 80)
    print()

    vault.advance_time(datetime(2025, 4, 1))
    vault.distribute_yield(to_fixed("80"))
    pps = vault.price_per_share(Tranche.JUNIOR)
    print(f"Junior price per share: {format_usd(pps)}")
    vault.deposit_junior("eve", to_fixed("40"))

    print()
    print_positions(vault)
    print()

    print("Summary")
    print("-" * 80)
    state = vault.state
    print(f"Senior NAV: {format_usd(state.senior_nav)}  (deposited {format_usd(state.senior_total_deposits)})")
    print(f"Junior NAV: {format_usd(state.junior_nav)}  (deposited {format_usd(state.junior_total_deposits)})")
    print(f"Transactions logged: {len(vault.transaction_log)}")

    check = vault.verify_invariants()
    print(f"Invariants: {'OK' if check['valid'] else check['discrepancies']}")
    print()
    print("=" * 80)


if __name__ == "__main__":
    main()
