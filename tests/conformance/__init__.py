"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the tranche vault engine.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. non_dilution.py - First deposit at par; deposits never dilute holders
2. yield_cap.py - Senior yield never exceeds its cap; yield is conserved
3. loss_ordering.py - Junior absorbs losses before senior
4. atomicity.py - Failed operations leave no trace
5. identity_binding.py - A position has exactly one owner, forever
6. conservation.py - NAV moves only by deposits, yield and absorbed loss
7. determinism.py - Replaying the log reproduces the vault

These tests use hypothesis for property-based testing.
"""
