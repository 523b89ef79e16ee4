"""
vault.py - Stateful Two-Tranche Vault

The TrancheVault class owns one pool's VaultLedger and the PositionLedger
records of its depositors. It is the only module that replaces ledger state,
and it does so one whole operation at a time.

Key responsibilities:
    - Exposes the engine's entry points (deposits, yield, loss simulation)
    - Commits each pure VaultTransition atomically under a per-vault lock
    - Creates position records lazily on first deposit
    - Keeps a logical clock and an audit trail of applied operations
    - Rebuilds state from the audit trail (replay) for verification
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple, Any
import threading

from .core import (
    Tranche, VaultLedger, PositionLedger, VaultTransition, VaultEvent,
    LossApplied,
    NAV_FIELD, SUPPLY_FIELD, DEPOSITS_FIELD,
    TrancheError,
)
from .accounting import (
    new_vault_ledger, new_position_ledger,
    calculate_price_per_share, calculate_position_value,
    compute_deposit, compute_yield, compute_simulated_loss, compute_simulated_yield,
    preview_deposit,
)
from .fixed_point import format_usd


class VaultAction(Enum):
    """Entry point that produced a VaultTransaction."""
    DEPOSIT_SENIOR = "deposit_senior"
    DEPOSIT_JUNIOR = "deposit_junior"
    DISTRIBUTE_YIELD = "distribute_yield"
    SIMULATE_LOSS = "simulate_loss"
    SIMULATE_YIELD_SURPLUS = "simulate_yield_surplus"


_DEPOSIT_ACTION = {
    Tranche.SENIOR: VaultAction.DEPOSIT_SENIOR,
    Tranche.JUNIOR: VaultAction.DEPOSIT_JUNIOR,
}


def _unix_seconds(moment: datetime) -> int:
    """Unix time of a datetime; naive datetimes are read as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp())


@dataclass(frozen=True, slots=True)
class VaultTransaction:
    """
    An applied, immutable record of one entry point call.

    Attributes:
        sequence_number: Monotonic position within the vault's log
        exec_id: Unique execution identifier (vault + sequence + time)
        action: Which entry point ran
        caller: Verified identity of the caller (None for distribute_yield)
        amount: Fixed-point amount supplied by the caller
        timestamp: Yield timestamp recorded by the operation, if any
        execution_time: Vault logical time when the operation was applied
        position_id: Position record touched by a deposit, if any
        events: Facts emitted by the operation, in order
    """
    sequence_number: int
    exec_id: str
    action: VaultAction
    caller: Optional[str]
    amount: int
    timestamp: Optional[int]
    execution_time: datetime
    position_id: Optional[str]
    events: Tuple[VaultEvent, ...]

    def __repr__(self) -> str:
        w = 100
        bar = "─" * w

        def pad(text: str) -> str:
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))

        lines = [
            "",
            f"┌{bar}┐",
            f"│{pad(' VaultTransaction: ' + self.exec_id)}│",
            f"├{bar}┤",
            f"│{pad('   action         : ' + self.action.value)}│",
            f"│{pad('   caller         : ' + str(self.caller))}│",
            f"│{pad('   amount         : ' + format_usd(self.amount) + ' (' + str(self.amount) + ')')}│",
            f"│{pad('   execution_time : ' + str(self.execution_time))}│",
            f"│{pad('   sequence       : ' + str(self.sequence_number))}│",
        ]
        if self.position_id is not None:
            lines.append(f"│{pad('   position       : ' + self.position_id)}│")
        if self.timestamp is not None:
            lines.append(f"│{pad('   timestamp      : ' + str(self.timestamp))}│")
        lines.append(f"├{bar}┤")
        lines.append(f"│{pad(' Events (' + str(len(self.events)) + '):')}│")
        for i, event in enumerate(self.events):
            lines.append(f"│{pad(f'   [{i}] {event!r}')}│")
            if isinstance(event, LossApplied) and event.uncovered:
                lines.append(f"│{pad('       ! uncovered loss: ' + format_usd(event.uncovered))}│")
        lines.append(f"└{bar}┘")
        return "\n".join(lines)


class TrancheVault:
    """
    One pool: a VaultLedger plus the positions of its depositors.

    Every entry point runs the corresponding pure accounting function on the
    current snapshots and, only if it returns, swaps in the new snapshots.
    A failed call raises a TrancheError and leaves the vault, the positions
    and the audit trail exactly as they were.

    Thread Safety:
        Entry points are serialized by a per-vault lock, so no two operations
        on the same vault interleave. Separate vaults are independent.

    Example:
        vault = TrancheVault("pool", authority="admin", senior_apy_cap_bps=500)
        vault.deposit_senior("alice", to_fixed("100"))
        vault.deposit_junior("bob", to_fixed("50"))
        vault.distribute_yield(to_fixed("10"), timestamp=1_700_000_000)
        vault.simulate_loss("admin", to_fixed("30"))
    """

    def __init__(
        self,
        name: str,
        authority: str,
        senior_apy_cap_bps: int,
        initial_time: Optional[datetime] = None,
        verbose: bool = True,
        test_mode: bool = False,
    ):
        """
        Create and initialize a vault.

        Args:
            name: Vault identifier
            authority: Identity allowed to run the simulation entry points
            senior_apy_cap_bps: Senior cap per yield event in basis points
            initial_time: Starting logical time (default: 1970-01-01)
            verbose: Print a summary of each applied operation (default: True)
            test_mode: Allow set_tranche_state() calls (default: False)

        Raises:
            CapExceeded: If the cap does not fit in 16 bits
            ValueError: If authority is empty
        """
        self.name = name
        self._vault: VaultLedger = new_vault_ledger(authority, senior_apy_cap_bps)
        self.positions: Dict[str, PositionLedger] = {}
        self.transaction_log: List[VaultTransaction] = []
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)
        self.verbose = verbose
        self._test_mode = test_mode
        self._next_sequence: int = 0
        self._lock = threading.Lock()

    # ========================================================================
    # READ-ONLY ACCESS
    # ========================================================================

    @property
    def state(self) -> VaultLedger:
        """Current VaultLedger snapshot (immutable)."""
        return self._vault

    @property
    def authority(self) -> str:
        return self._vault.authority

    @property
    def current_time(self) -> datetime:
        """Current logical time of the vault."""
        return self._current_time

    def get_position(self, depositor: str) -> PositionLedger:
        """
        Return the position held by `depositor`.

        A position that has never received a deposit is reported as an
        unbound, empty PositionLedger; nothing is stored for it.
        """
        return self.positions.get(depositor, new_position_ledger())

    def list_positions(self) -> List[str]:
        """List the depositors that hold a position."""
        return sorted(self.positions.keys())

    def price_per_share(self, tranche: Tranche) -> int:
        """Current fixed-point price of one share in `tranche`."""
        vault = self._vault
        return calculate_price_per_share(vault.nav(tranche), vault.shares_supply(tranche))

    def position_value(self, depositor: str, tranche: Tranche) -> int:
        """Current fixed-point USD value of a depositor's shares in `tranche`."""
        vault = self._vault
        return calculate_position_value(
            self.get_position(depositor).shares(tranche),
            vault.nav(tranche),
            vault.shares_supply(tranche),
        )

    def preview_deposit(self, tranche: Tranche, amount: int, depositor: Optional[str] = None) -> int:
        """Shares a deposit would mint right now, without applying it."""
        position = self.positions.get(depositor) if depositor is not None else None
        return preview_deposit(self._vault, tranche, amount, position)

    def verify_invariants(self) -> Dict[str, Any]:
        """
        Check the structural accounting invariants.

        Checks performed:
        1. For each tranche, the shares held by all positions sum to the
           tranche's shares supply.
        2. Every position is bound to the depositor it is stored under.

        Field ranges are enforced by VaultLedger itself and need no check here.
        NAV of zero with shares outstanding is not a discrepancy; a full
        loss leaves a tranche in exactly that state. Supplies seeded with
        set_tranche_state() in test mode will show up as discrepancies.

        Returns:
            Dict with keys:
            - 'valid': bool - True if every invariant holds
            - 'discrepancies': List[Dict] - details of any violations
        """
        discrepancies = []
        vault = self._vault

        for tranche in Tranche:
            held = sum(p.shares(tranche) for _, p in sorted(self.positions.items()))
            supply = vault.shares_supply(tranche)
            if held != supply:
                discrepancies.append({
                    'check': 'shares_supply',
                    'tranche': tranche.value,
                    'expected': supply,
                    'actual': held,
                    'difference': supply - held,
                })

        for depositor, position in sorted(self.positions.items()):
            if position.owner != depositor:
                discrepancies.append({
                    'check': 'owner',
                    'position': depositor,
                    'actual': position.owner,
                })

        return {
            'valid': len(discrepancies) == 0,
            'discrepancies': discrepancies,
        }

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the vault's logical clock.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    # ========================================================================
    # ENTRY POINTS (Mutating)
    # ========================================================================

    def deposit(
        self,
        tranche: Tranche,
        depositor: str,
        amount: int,
    ) -> Tuple[VaultEvent, ...]:
        """
        Deposit `amount` into `tranche` and credit the minted shares.

        Args:
            tranche: Tranche to deposit into
            depositor: Verified identity of the caller
            amount: Fixed-point USD amount

        The depositor's position is created on first use and bound to the
        depositor. Positions are keyed by depositor identity only, so no
        caller can address another depositor's position.

        Returns:
            Emitted facts: (Deposited,)

        Raises:
            InvalidAmount, ZeroShares, MathOverflow
        """
        if not isinstance(tranche, Tranche):
            raise TypeError(f"tranche must be a Tranche, got {tranche!r}")
        if not isinstance(depositor, str) or not depositor.strip():
            raise ValueError("depositor cannot be empty")
        def transition(vault: VaultLedger) -> VaultTransition:
            return compute_deposit(vault, self.get_position(depositor), tranche, amount, depositor)

        return self._apply(
            _DEPOSIT_ACTION[tranche], depositor, amount, None, depositor, transition
        )

    def deposit_senior(self, depositor: str, amount: int) -> Tuple[VaultEvent, ...]:
        """Deposit into the senior tranche. See deposit()."""
        return self.deposit(Tranche.SENIOR, depositor, amount)

    def deposit_junior(self, depositor: str, amount: int) -> Tuple[VaultEvent, ...]:
        """Deposit into the junior tranche. See deposit()."""
        return self.deposit(Tranche.JUNIOR, depositor, amount)

    def distribute_yield(self, amount: int, timestamp: Optional[int] = None) -> Tuple[VaultEvent, ...]:
        """
        Split positive yield between the tranches under the senior cap.

        Args:
            amount: Fixed-point USD yield
            timestamp: Unix time of the yield event (default: the vault clock)

        Returns:
            Emitted facts: (YieldDistributed,)
        """
        ts = _unix_seconds(self._current_time) if timestamp is None else timestamp
        return self._apply(
            VaultAction.DISTRIBUTE_YIELD, None, amount, ts, None,
            lambda vault: compute_yield(vault, amount, ts),
        )

    def simulate_loss(self, caller: str, amount: int) -> Tuple[VaultEvent, ...]:
        """
        Authority-only: apply a loss, junior first, then senior.

        Returns:
            Emitted facts: (LossApplied, SimulatedLoss)
        """
        return self._apply(
            VaultAction.SIMULATE_LOSS, caller, amount, None, None,
            lambda vault: compute_simulated_loss(vault, amount, caller),
        )

    def simulate_yield_surplus(
        self, caller: str, amount: int, timestamp: Optional[int] = None
    ) -> Tuple[VaultEvent, ...]:
        """
        Authority-only: inject yield through the same capped split as distribute_yield.

        Returns:
            Emitted facts: (SimulatedYield, YieldDistributed)
        """
        ts = _unix_seconds(self._current_time) if timestamp is None else timestamp
        return self._apply(
            VaultAction.SIMULATE_YIELD_SURPLUS, caller, amount, ts, None,
            lambda vault: compute_simulated_yield(vault, amount, caller, ts),
        )

    def set_tranche_state(
        self,
        tranche: Tranche,
        nav: Optional[int] = None,
        shares_supply: Optional[int] = None,
        total_deposits: Optional[int] = None,
    ) -> None:
        """
        Overwrite a tranche's totals directly.

        WARNING: This bypasses the accounting engine and is only available
        in test mode. Positions are not adjusted, so verify_invariants()
        will report the difference.

        Raises:
            TrancheError: If called when test_mode is False
        """
        if not self._test_mode:
            raise TrancheError(
                "set_tranche_state() is disabled in production mode. "
                "Use the deposit and yield entry points to change tranche state. "
                "Set test_mode=True when creating TrancheVault for testing."
            )
        updates = {}
        if nav is not None:
            updates[NAV_FIELD[tranche]] = nav
        if shares_supply is not None:
            updates[SUPPLY_FIELD[tranche]] = shares_supply
        if total_deposits is not None:
            updates[DEPOSITS_FIELD[tranche]] = total_deposits
        with self._lock:
            self._vault = replace(self._vault, **updates)

    # ========================================================================
    # COMMIT
    # ========================================================================

    def _generate_exec_id(self, sequence: int) -> str:
        """Format: exec:{vault_name}:{sequence:012d}:{unix_seconds}"""
        return f"exec:{self.name}:{sequence:012d}:{_unix_seconds(self._current_time)}"

    def _apply(
        self,
        action: VaultAction,
        caller: Optional[str],
        amount: int,
        timestamp: Optional[int],
        position_id: Optional[str],
        transition: Callable[[VaultLedger], VaultTransition],
    ) -> Tuple[VaultEvent, ...]:
        """
        Run a pure transition against the current snapshots and commit it.

        The transition runs under the vault lock. If it raises, nothing has
        been written: snapshots, positions, log and sequence are untouched.
        """
        with self._lock:
            result = transition(self._vault)

            sequence = self._next_sequence
            tx = VaultTransaction(
                sequence_number=sequence,
                exec_id=self._generate_exec_id(sequence),
                action=action,
                caller=caller,
                amount=amount,
                timestamp=timestamp,
                execution_time=self._current_time,
                position_id=position_id,
                events=result.events,
            )

            self._vault = result.vault
            if position_id is not None and result.position is not None:
                self.positions[position_id] = result.position
            self.transaction_log.append(tx)
            self._next_sequence += 1

        if self.verbose:
            self._print_tx_result(tx, result.vault)
        return result.events

    def _print_tx_result(self, tx: VaultTransaction, vault: VaultLedger) -> None:
        """Print the applied transaction followed by the resulting tranche NAVs."""
        w = 100
        bar = "─" * w

        def pad(text: str) -> str:
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))

        lines = repr(tx).split('\n')
        lines[-1] = f"├{bar}┤"
        lines.append(f"│{pad(' senior nav ' + format_usd(vault.senior_nav) + ' / junior nav ' + format_usd(vault.junior_nav))}│")
        lines.append(f"│{pad(' ✓ APPLIED')}│")
        lines.append(f"└{bar}┘")
        print("\n".join(lines))

    # ========================================================================
    # VAULT OPERATIONS
    # ========================================================================

    def clone(self) -> TrancheVault:
        """
        Create an independent copy of this vault.

        Snapshots are immutable and shared; containers are copied, and the
        clone gets its own lock.
        """
        cloned = TrancheVault.__new__(TrancheVault)
        cloned.name = self.name
        with self._lock:
            cloned._vault = self._vault
            cloned.positions = dict(self.positions)
            cloned.transaction_log = list(self.transaction_log)
            cloned._next_sequence = self._next_sequence
        cloned._current_time = self._current_time
        cloned.verbose = self.verbose
        cloned._test_mode = self._test_mode
        cloned._lock = threading.Lock()
        return cloned

    def replay(self) -> TrancheVault:
        """
        Create a new vault by re-executing the transaction log.

        The new vault starts from the same authority and cap. Each logged
        call is re-issued with its original caller, amount and timestamp
        after advancing the clock to its execution time, and must emit the
        same facts it emitted originally.

        Note: State written with set_tranche_state() is not part of the log
        and is not replayed.

        Returns:
            New TrancheVault instance with replayed state

        Raises:
            TrancheError: If a logged call fails or diverges on replay
        """
        replayed = TrancheVault(
            name=f"{self.name}_replayed",
            authority=self._vault.authority,
            senior_apy_cap_bps=self._vault.senior_apy_cap_bps,
            initial_time=datetime(1970, 1, 1),
            verbose=self.verbose,
            test_mode=self._test_mode,
        )

        for tx in self.transaction_log:
            if tx.execution_time > replayed.current_time:
                replayed.advance_time(tx.execution_time)

            if tx.action is VaultAction.DEPOSIT_SENIOR:
                events = replayed.deposit_senior(tx.caller, tx.amount)
            elif tx.action is VaultAction.DEPOSIT_JUNIOR:
                events = replayed.deposit_junior(tx.caller, tx.amount)
            elif tx.action is VaultAction.DISTRIBUTE_YIELD:
                events = replayed.distribute_yield(tx.amount, tx.timestamp)
            elif tx.action is VaultAction.SIMULATE_LOSS:
                events = replayed.simulate_loss(tx.caller, tx.amount)
            else:
                events = replayed.simulate_yield_surplus(tx.caller, tx.amount, tx.timestamp)

            if events != tx.events:
                raise TrancheError(f"Replay diverged at tx {tx.exec_id}")

        return replayed
